from __future__ import annotations

import json
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from postmonitor.errors import CookieFormatError
from postmonitor.models import CookieEntry, ExpiryPrediction


DEFAULT_COOKIE_DOMAIN = ".linkedin.com"
PRIMARY_SESSION_COOKIE = "li_at"
# Without expiry metadata the session is assumed good for this long.
OPTIMISTIC_DAYS_LEFT = 30

_SAME_SITE_MAP = {
    "strict": "Strict",
    "lax": "Lax",
    "none": "None",
    "no_restriction": "None",
}


CookieSet = List[CookieEntry]


class CookieStore:
    """Parses externally supplied session cookies and predicts their expiry."""

    def __init__(
        self,
        *,
        primary_cookie: str = PRIMARY_SESSION_COOKIE,
        default_domain: str = DEFAULT_COOKIE_DOMAIN,
    ) -> None:
        self.primary_cookie = primary_cookie
        self.default_domain = default_domain

    def load(self, raw: Any) -> CookieSet:
        if isinstance(raw, (str, bytes)):
            try:
                raw = json.loads(raw)
            except (TypeError, ValueError) as exc:
                raise CookieFormatError(f"invalid_json:{exc}") from exc
        if not isinstance(raw, list) or not raw:
            raise CookieFormatError("expected_non_empty_list")

        cookies: CookieSet = []
        for idx, item in enumerate(raw):
            if not isinstance(item, dict):
                raise CookieFormatError(f"entry_{idx}_not_an_object")
            data = dict(item)
            if data.get("expires") is None and data.get("expirationDate") is not None:
                data["expires"] = data["expirationDate"]
            name = str(data.get("name") or "").strip()
            if not name:
                raise CookieFormatError(f"entry_{idx}_missing_name")
            data["name"] = name
            data["value"] = str(data.get("value") or "")
            try:
                cookies.append(CookieEntry.model_validate(data))
            except ValidationError as exc:
                raise CookieFormatError(f"entry_{idx}_invalid:{exc.errors()[0].get('msg', '')}") from exc
        return cookies

    def find_primary(self, cookies: CookieSet) -> Optional[CookieEntry]:
        for cookie in cookies:
            if cookie.name == self.primary_cookie:
                return cookie
        return None

    def predict_expiry(self, cookies: CookieSet, now: Optional[datetime] = None) -> ExpiryPrediction:
        primary = self.find_primary(cookies)
        # Missing metadata is not proof of expiry.
        if primary is None or primary.expires is None or primary.expires < 0:
            return ExpiryPrediction(expired=False, days_left=OPTIMISTIC_DAYS_LEFT)
        now_ts = (now or datetime.now(timezone.utc)).timestamp()
        remaining_s = primary.expires - now_ts
        if remaining_s <= 0:
            return ExpiryPrediction(expired=True, days_left=0)
        return ExpiryPrediction(expired=False, days_left=int(math.floor(remaining_s / 86400)))

    def to_browser_cookies(self, cookies: CookieSet) -> List[Dict[str, Any]]:
        normalized: List[Dict[str, Any]] = []
        for cookie in cookies:
            item: Dict[str, Any] = {
                "name": cookie.name,
                "value": cookie.value,
                "domain": cookie.domain or self.default_domain,
                "path": cookie.path or "/",
            }
            if cookie.expires is not None and cookie.expires >= 0:
                item["expires"] = float(cookie.expires)
            if cookie.http_only is not None:
                item["httpOnly"] = bool(cookie.http_only)
            if cookie.secure is not None:
                item["secure"] = bool(cookie.secure)
            same_site = _SAME_SITE_MAP.get(str(cookie.same_site or "").strip().lower())
            if same_site:
                item["sameSite"] = same_site
            normalized.append(item)
        return normalized

    @staticmethod
    def from_browser_cookies(cookies: List[Dict[str, Any]]) -> CookieSet:
        rows: CookieSet = []
        for item in cookies:
            name = str(item.get("name", "")).strip()
            if not name:
                continue
            rows.append(CookieEntry.model_validate({**item, "name": name, "value": str(item.get("value", ""))}))
        return rows
