"""Shared fixtures: settings without delays, a scripted page driver, a memory store."""

import json
from typing import Any, Callable, Dict, List, Optional, Union
from unittest.mock import AsyncMock

import pytest

from postmonitor.adapters.memory_adapter import MemoryRecordStore
from postmonitor.config import Settings


FEED_SIGNALS = {
    "global_nav": True,
    "profile_affordance": True,
    "search_control": True,
    "messaging_affordance": False,
    "feed_content": True,
}
NO_SIGNALS = {
    "global_nav": False,
    "profile_affordance": False,
    "search_control": False,
    "messaging_affordance": False,
    "feed_content": False,
}

FAR_FUTURE = 4102444800.0  # 2100-01-01


def make_settings(**overrides: Any) -> Settings:
    values: Dict[str, Any] = {
        "linkedin_cookies": "",
        "linkedin_email": "",
        "linkedin_password": "",
        "airtable_api_key": "",
        "airtable_base_id": "",
        "api_secret": "",
        "monitor_session_encryption_key": "",
        "monitor_retry_backoff_s": 5.0,
        "monitor_auth_settle_s": 0,
        "monitor_login_form_wait_s": 0,
        "monitor_submit_race_s": 0,
        "monitor_think_delay_ms_min": 0,
        "monitor_think_delay_ms_max": 0,
        "monitor_scroll_wait_s": 0,
        "monitor_settle_after_load_s": 0,
        "monitor_write_delay_s": 0,
        "monitor_source_delay_s": 60,
        "monitor_url_delay_s": 30,
        "monitor_selector_profile_path": "",
        "monitor_log_to_file": False,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def cookie_json(expires: Optional[float] = FAR_FUTURE) -> str:
    primary: Dict[str, Any] = {"name": "li_at", "value": "AQEDAR-token", "domain": ".linkedin.com", "path": "/"}
    if expires is not None:
        primary["expires"] = expires
    return json.dumps([primary, {"name": "JSESSIONID", "value": "ajax:123", "domain": ".www.linkedin.com"}])


Signals = Union[Dict[str, bool], Callable[[str], Dict[str, bool]]]


class FakePage:
    """Scripted stand-in for PageDriver."""

    def __init__(
        self,
        *,
        signals: Signals = None,
        statuses: Optional[Dict[str, Any]] = None,
        has_login_form: bool = True,
        post_submit_url: str = "https://www.linkedin.com/feed/",
        rows: Optional[List[Dict[str, Any]]] = None,
        rows_by_url: Optional[Dict[str, List[Dict[str, Any]]]] = None,
    ) -> None:
        self.url = "about:blank"
        self._signals = signals if signals is not None else NO_SIGNALS
        self._statuses = statuses or {}
        self.has_login_form = has_login_form
        self.post_submit_url = post_submit_url
        self.rows = rows or []
        self.rows_by_url = rows_by_url or {}
        self.visited: List[str] = []
        self.typed: List[tuple] = []
        self.clicked: List[str] = []
        self.scrolls = 0
        self.collect_args: Optional[Dict[str, Any]] = None
        self.jar: List[Dict[str, Any]] = [{"name": "bcookie", "value": "stale"}]

    async def goto(self, url: str, *, timeout_ms: int, wait_until: str = "domcontentloaded") -> Optional[int]:
        self.visited.append(url)
        outcome = self._statuses.get(url, 200)
        if isinstance(outcome, Exception):
            raise outcome
        self.url = url
        return outcome

    def signals_for(self, url: str) -> Dict[str, bool]:
        if callable(self._signals):
            return self._signals(url)
        return self._signals

    async def evaluate(self, script_id: str, arg: Any = None) -> Any:
        if script_id == "login_signals":
            return {**self.signals_for(self.url), "url": self.url}
        if script_id == "has_element":
            return self.has_login_form
        if script_id == "scroll_viewport":
            self.scrolls += 1
            return self.scrolls * 900
        if script_id == "collect_post_containers":
            self.collect_args = arg
            rows = self.rows
            for marker, by_url in self.rows_by_url.items():
                if marker in self.url:
                    rows = by_url
            return {
                "matched_selector": "div.feed-shared-update-v2",
                "total_containers": len(rows),
                "rows": rows[: arg["maxItems"]],
            }
        raise KeyError(script_id)

    async def wait_for_selector(self, selector: str, *, timeout_ms: int) -> bool:
        return True

    async def wait_for_navigation(self, *, timeout_ms: int) -> bool:
        return True

    async def click(self, selector: str, *, click_count: int = 1) -> None:
        self.clicked.append(selector)
        if selector == "button[type='submit']":
            self.url = self.post_submit_url

    async def type_text(self, selector: str, text: str, *, delay_ms: int = 100) -> None:
        self.typed.append((selector, text))

    async def cookies(self) -> List[Dict[str, Any]]:
        return list(self.jar)

    async def clear_cookies(self) -> None:
        self.jar = []

    async def add_cookies(self, cookies: List[Dict[str, Any]]) -> None:
        self.jar.extend(cookies)


class FakeBrowser:
    def __init__(self, page: FakePage) -> None:
        self.page = page
        self.opened = False
        self.closed = False

    async def open(self) -> FakePage:
        self.opened = True
        return self.page

    async def close(self) -> None:
        self.closed = True


def post_row(n: int, **overrides: Any) -> Dict[str, Any]:
    row: Dict[str, Any] = {
        "content_candidates": ["", f"Post number {n} talks about distributed systems at length."],
        "datetime": "2026-10-01T08:30:00.000Z",
        "time_text": "2w",
        "post_link": f"https://www.linkedin.com/posts/jdoe_topic-activity-{7000 + n}-abcd?utm_source=share",
        "activity_link": "",
        "urn": f"urn:li:activity:{7000 + n}",
        "reaction_label": f"{n * 10} reactions",
        "comment_label": f"{n} comments on jdoe's post",
        "social_counts_text": "",
        "has_image": False,
        "image_src": "",
        "video_poster": "",
        "has_video": False,
    }
    row.update(overrides)
    return row


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def fake_sleep():
    return AsyncMock(return_value=None)


@pytest.fixture
def memory_store():
    return MemoryRecordStore()
