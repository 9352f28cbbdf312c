"""Tests for CookieStore parsing and expiry prediction."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from postmonitor.cookie_store import OPTIMISTIC_DAYS_LEFT, CookieStore
from postmonitor.errors import CookieFormatError
from conftest import cookie_json


NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def store():
    return CookieStore()


class TestLoad:
    def test_loads_json_text(self, store):
        cookies = store.load(cookie_json())
        assert [c.name for c in cookies] == ["li_at", "JSESSIONID"]

    def test_accepts_decoded_list(self, store):
        cookies = store.load([{"name": "li_at", "value": "x"}])
        assert cookies[0].value == "x"

    @pytest.mark.parametrize("raw", ["not json", "{}", "[]", '{"name": "li_at"}', "null"])
    def test_rejects_non_list_or_empty(self, store, raw):
        with pytest.raises(CookieFormatError):
            store.load(raw)

    def test_rejects_entry_without_name(self, store):
        with pytest.raises(CookieFormatError, match="entry_1_missing_name"):
            store.load([{"name": "li_at", "value": "x"}, {"value": "orphan"}])

    def test_rejects_non_object_entry(self, store):
        with pytest.raises(CookieFormatError):
            store.load(json.dumps([{"name": "a"}, "b"]))

    def test_expiration_date_alias(self, store):
        cookies = store.load([{"name": "li_at", "value": "x", "expirationDate": 1893456000.5}])
        assert cookies[0].expires == 1893456000.5


class TestPredictExpiry:
    def test_future_primary_not_expired(self, store):
        expires = (NOW + timedelta(days=12, hours=3)).timestamp()
        prediction = store.predict_expiry(store.load(cookie_json(expires)), now=NOW)
        assert prediction.expired is False
        assert prediction.days_left == 12

    def test_past_primary_expired(self, store):
        expires = (NOW - timedelta(minutes=1)).timestamp()
        prediction = store.predict_expiry(store.load(cookie_json(expires)), now=NOW)
        assert prediction.expired is True
        assert prediction.days_left == 0

    def test_expiry_exactly_now_is_expired(self, store):
        prediction = store.predict_expiry(store.load(cookie_json(NOW.timestamp())), now=NOW)
        assert prediction.expired is True

    def test_missing_primary_is_optimistic(self, store):
        cookies = store.load([{"name": "JSESSIONID", "value": "x", "expires": 1.0}])
        prediction = store.predict_expiry(cookies, now=NOW)
        assert prediction.expired is False
        assert prediction.days_left == OPTIMISTIC_DAYS_LEFT

    def test_session_cookie_without_expiry_is_optimistic(self, store):
        prediction = store.predict_expiry(store.load(cookie_json(expires=None)), now=NOW)
        assert prediction.expired is False
        assert prediction.days_left == OPTIMISTIC_DAYS_LEFT

    def test_minus_one_means_session_cookie(self, store):
        prediction = store.predict_expiry(store.load(cookie_json(expires=-1)), now=NOW)
        assert prediction.expired is False


class TestBrowserCookies:
    def test_fills_defaults_and_maps_same_site(self, store):
        cookies = store.load(
            [
                {"name": "li_at", "value": "x", "sameSite": "no_restriction", "httpOnly": True, "secure": True},
                {"name": "lang", "value": "en", "domain": ".www.linkedin.com", "path": "/feed", "expires": -1},
            ]
        )
        normalized = store.to_browser_cookies(cookies)
        assert normalized[0] == {
            "name": "li_at",
            "value": "x",
            "domain": ".linkedin.com",
            "path": "/",
            "httpOnly": True,
            "secure": True,
            "sameSite": "None",
        }
        assert normalized[1]["domain"] == ".www.linkedin.com"
        assert "expires" not in normalized[1]

    def test_round_trip_from_browser_cookies(self, store):
        rows = store.from_browser_cookies([{"name": "li_at", "value": "x", "expires": 1893456000, "httpOnly": True}, {"name": ""}])
        assert len(rows) == 1
        assert rows[0].http_only is True
