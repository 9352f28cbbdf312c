"""Tests for record store adapters, the source feed, and redis-backed auxiliary state."""

import json
from unittest.mock import AsyncMock

import httpx
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from postmonitor.adapters.airtable_adapter import AirtableRecordStore, build_formula
from postmonitor.adapters.memory_adapter import MemoryRecordStore
from postmonitor.errors import PersistenceError, SourceEnumerationError
from postmonitor.models import RunSummary
from postmonitor.run_log import RunLog
from postmonitor.selector_profile import SelectorProfile, load_selector_profile
from postmonitor.session_store import SessionStore
from postmonitor.sources import SourceFeed
from conftest import make_settings


def dict_backed_redis():
    """AsyncMock redis whose get/set/delete operate on a plain dict."""
    data = {}
    redis = AsyncMock()
    redis.ping.return_value = True

    async def _set(key, value):
        data[key] = value
        return True

    async def _get(key):
        return data.get(key)

    async def _delete(key):
        return 1 if data.pop(key, None) is not None else 0

    redis.set.side_effect = _set
    redis.get.side_effect = _get
    redis.delete.side_effect = _delete
    return redis, data


def offline_redis():
    redis = AsyncMock()
    redis.ping.side_effect = RedisConnectionError("connection refused")
    return redis


class TestMemoryRecordStore:
    @pytest.mark.asyncio
    async def test_select_filters_and_projects(self):
        store = MemoryRecordStore({"Sources": [{"Name": "A", "Status": "Active"}, {"Name": "B", "Status": "Inactive"}]})
        rows = await store.select("Sources", equals={"Status": "Active"}, fields=["Name"])
        assert [r["fields"] for r in rows] == [{"Name": "A"}]
        assert rows[0]["id"].startswith("rec")

    @pytest.mark.asyncio
    async def test_create_and_max_records(self):
        store = MemoryRecordStore()
        for n in range(3):
            await store.create("Posts", {"Post URL": f"u{n}"})
        assert len(await store.select("Posts", max_records=2)) == 2
        assert await store.select("Missing") == []


class TestAirtableRecordStore:
    @pytest.fixture
    def airtable_settings(self):
        return make_settings(airtable_api_key="keyXYZ", airtable_base_id="appBASE")

    def test_build_formula(self):
        assert build_formula({"Status": "Active"}) == '{Status} = "Active"'
        assert build_formula({"Post URL": 'a"b'}) == '{Post URL} = "a\\"b"'
        assert build_formula({"Status": "Active", "Priority": 1}) == 'AND({Status} = "Active", {Priority} = 1)'

    def test_requires_credentials(self, settings):
        with pytest.raises(ValueError):
            AirtableRecordStore(settings)

    @pytest.mark.asyncio
    async def test_select_follows_offsets(self, airtable_settings):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.url.params.get("offset") == "page2":
                return httpx.Response(200, json={"records": [{"id": "rec2", "fields": {"Name": "B"}}]})
            return httpx.Response(200, json={"records": [{"id": "rec1", "fields": {"Name": "A"}}], "offset": "page2"})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        store = AirtableRecordStore(airtable_settings, client=client)
        rows = await store.select("Sources", equals={"Status": "Active"}, fields=["Name", "Profile URL"])
        await store.close()

        assert [r["id"] for r in rows] == ["rec1", "rec2"]
        assert seen[0].url.path == "/v0/appBASE/Sources"
        assert seen[0].url.params.get("filterByFormula") == '{Status} = "Active"'
        assert seen[0].url.params.get_list("fields[]") == ["Name", "Profile URL"]

    @pytest.mark.asyncio
    async def test_create_posts_typecast_record(self, airtable_settings):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"records": [{"id": "recNEW", "fields": {"Post URL": "u"}}]})

        store = AirtableRecordStore(airtable_settings, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        created = await store.create("LinkedIn Posts", {"Post URL": "u"})

        assert created == {"id": "recNEW", "fields": {"Post URL": "u"}}
        assert bodies == [{"records": [{"fields": {"Post URL": "u"}}], "typecast": True}]

    @pytest.mark.asyncio
    async def test_http_error_becomes_persistence_error(self, airtable_settings):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(422, json={"error": {"type": "INVALID_VALUE_FOR_COLUMN"}})

        store = AirtableRecordStore(airtable_settings, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        with pytest.raises(PersistenceError, match="http_422"):
            await store.create("LinkedIn Posts", {"Likes": "many"})

    @pytest.mark.asyncio
    async def test_non_json_success_body_becomes_persistence_error(self, airtable_settings):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>maintenance</html>")

        store = AirtableRecordStore(airtable_settings, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        with pytest.raises(PersistenceError, match="invalid_json"):
            await store.create("LinkedIn Posts", {"Post URL": "u"})

    @pytest.mark.asyncio
    async def test_transport_error_becomes_persistence_error(self, airtable_settings):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("dns failure", request=request)

        store = AirtableRecordStore(airtable_settings, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        with pytest.raises(PersistenceError):
            await store.select("Sources")


class TestSourceFeed:
    @pytest.mark.asyncio
    async def test_active_sources_only(self):
        store = MemoryRecordStore(
            {
                "Sources": [
                    {"Name": "Jane", "Profile URL": ["https://www.linkedin.com/in/jdoe/"], "Group": "Founders", "Status": "Active"},
                    {"Name": "Old", "Profile URL": "https://www.linkedin.com/in/old/", "Status": "Inactive"},
                    {"Name": "Blank", "Profile URL": "", "Status": "Active"},
                ]
            }
        )
        sources = await SourceFeed(store, "Sources").fetch_active()
        assert [(s.name, s.target_url, s.group) for s in sources] == [("Jane", "https://www.linkedin.com/in/jdoe/", "Founders")]

    @pytest.mark.asyncio
    async def test_store_failure_is_enumeration_error(self):
        store = AsyncMock()
        store.select.side_effect = PersistenceError("GET Sources: http_503")
        with pytest.raises(SourceEnumerationError):
            await SourceFeed(store, "Sources").fetch_active()


class TestSessionStore:
    @pytest.mark.asyncio
    async def test_encrypted_round_trip(self):
        redis, data = dict_backed_redis()
        store = SessionStore(make_settings(monitor_session_encryption_key="correct horse battery staple"), redis=redis)
        cookies = [{"name": "li_at", "value": "AQED"}]

        await store.save_cookies("JDoe@Example.com", cookies)

        (raw,) = data.values()
        assert raw.startswith("enc:")
        assert "AQED" not in raw
        assert await store.load_cookies("jdoe@example.com") == cookies
        assert await store.delete("jdoe@example.com") is True
        assert await store.load_cookies("jdoe@example.com") is None

    @pytest.mark.asyncio
    async def test_encrypted_payload_unreadable_without_key(self):
        redis, data = dict_backed_redis()
        writer = SessionStore(make_settings(monitor_session_encryption_key="k1"), redis=redis)
        await writer.save_cookies("jdoe@example.com", [{"name": "li_at", "value": "x"}])

        reader = SessionStore(make_settings(monitor_session_encryption_key=""), redis=redis)
        assert await reader.load_cookies("jdoe@example.com") is None

    @pytest.mark.asyncio
    async def test_memory_fallback(self, settings):
        store = SessionStore(settings, redis=offline_redis())
        await store.save_cookies("jdoe@example.com", [{"name": "li_at", "value": "x"}])
        assert await store.load_cookies("jdoe@example.com") == [{"name": "li_at", "value": "x"}]
        assert await store.load_cookies("other@example.com") is None


class TestRunLog:
    @pytest.mark.asyncio
    async def test_memory_fallback_newest_first_and_bounded(self):
        log = RunLog(make_settings(monitor_run_log_max_entries=2), redis=offline_redis())
        for n in range(3):
            await log.append(RunSummary(run_id=f"run{n}"))
        assert [e["run_id"] for e in await log.recent()] == ["run2", "run1"]
        assert [e["run_id"] for e in await log.recent(limit=1)] == ["run2"]

    @pytest.mark.asyncio
    async def test_redis_list_is_trimmed(self, settings):
        redis = AsyncMock()
        redis.ping.return_value = True
        log = RunLog(settings, redis=redis)

        await log.append(RunSummary(run_id="abc"))

        key, raw = redis.lpush.await_args.args
        assert key == settings.monitor_run_log_key
        assert json.loads(raw)["run_id"] == "abc"
        redis.ltrim.assert_awaited_once_with(key, 0, settings.monitor_run_log_max_entries - 1)


class TestSelectorProfile:
    def test_defaults_without_path(self):
        assert load_selector_profile("") == SelectorProfile()

    def test_missing_file_uses_defaults(self, tmp_path):
        assert load_selector_profile(str(tmp_path / "nope.json")) == SelectorProfile()

    def test_file_overrides_lists(self, tmp_path):
        path = tmp_path / "selectors.json"
        path.write_text(json.dumps({"containers": ["article.post"], "login_identifier": "#session_key"}), encoding="utf-8")
        profile = load_selector_profile(str(path))
        assert profile.containers == ["article.post"]
        assert profile.login_identifier == "#session_key"
        assert profile.content == SelectorProfile().content
