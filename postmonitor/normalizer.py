from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import unquote, urlparse

from postmonitor.models import UrlType


PROFILE_SEGMENT = "/in/"
COMPANY_SEGMENT = "/company/"
PROFILE_ACTIVITY_SUFFIX = "/recent-activity/all/"
COMPANY_POSTS_SUFFIX = "/posts/"

_COUNT_RE = re.compile(r"(\d[\d,\.]*)\s*([kKmM](?![a-zA-Z]))?")
_COMMENT_COUNT_RE = re.compile(r"(\d[\d,\.]*)\s*([kKmM](?![a-zA-Z]))?\s*comment", re.IGNORECASE)


def detect_url_type(url: str) -> UrlType:
    path = urlparse(str(url or "").strip()).path or str(url or "")
    if PROFILE_SEGMENT in path:
        return "profile"
    if COMPANY_SEGMENT in path:
        return "company"
    return "unknown"


def normalize_activity_url(url: str) -> str:
    """Return the source's recent-activity surface for its URL type."""
    cleaned = str(url or "").strip().rstrip("/")
    url_type = detect_url_type(cleaned)
    if url_type == "profile":
        if "/recent-activity/" in cleaned:
            return cleaned
        return f"{cleaned}{PROFILE_ACTIVITY_SUFFIX}"
    if url_type == "company":
        if COMPANY_POSTS_SUFFIX in cleaned + "/":
            return cleaned
        return f"{cleaned}{COMPANY_POSTS_SUFFIX}"
    return cleaned


def extract_author_name(url: str) -> str:
    url_type = detect_url_type(url)
    if url_type == "profile":
        match = re.search(r"/in/([^/?#]+)", url)
        return unquote(match.group(1)).replace("-", " ") if match else "Unknown"
    if url_type == "company":
        match = re.search(r"/company/([^/?#]+)", url)
        return unquote(match.group(1)).replace("-", " ") if match else "Unknown Company"
    return "Unknown"


def _count_from_match(digits: str, suffix: Optional[str]) -> int:
    if suffix:
        # "1.2K" style abbreviations keep the dot as decimal separator.
        try:
            value = float(digits.replace(",", "."))
        except ValueError:
            return 0
        return int(round(value * (1000 if suffix.lower() == "k" else 1_000_000)))
    cleaned = digits.replace(",", "").replace(".", "")
    return int(cleaned) if cleaned.isdigit() else 0


def parse_count(text: Any) -> int:
    """First number in ``text`` with thousands separators stripped; 0 when absent."""
    match = _COUNT_RE.search(str(text or ""))
    if not match:
        return 0
    return _count_from_match(match.group(1), match.group(2))


def parse_comment_count(text: Any) -> int:
    """Number directly followed by the word "comment"; 0 when absent."""
    match = _COMMENT_COUNT_RE.search(str(text or ""))
    if not match:
        return 0
    return _count_from_match(match.group(1), match.group(2))


def normalize_timestamp(value: Any, crawled_at: datetime) -> str:
    raw = str(value or "").strip()
    if raw:
        try:
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            parsed = None
        if parsed is not None:
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed.isoformat()
    # Relative labels ("2d", "1w") are not machine readable; crawl time is the approximation.
    return crawled_at.isoformat()


def synthesize_update_url(base_url: str, urn: str) -> str:
    urn = str(urn or "").strip()
    if not urn:
        return ""
    return f"{base_url.rstrip('/')}/feed/update/{urn}"


_NON_REACTION_RE = re.compile(r"\d[\d,\.]*\s*(?:[kKmM](?![a-zA-Z]))?\s*(?:comment|repost|share)s?", re.IGNORECASE)


def parse_like_count(text: Any) -> int:
    """Reaction count from a label or social-counts line, ignoring comment/repost figures."""
    return parse_count(_NON_REACTION_RE.sub(" ", str(text or "")))


def canonicalize_post_url(url: str, base_url: str) -> str:
    raw = str(url or "").strip()
    if not raw:
        return ""
    if raw.startswith("/"):
        raw = f"{base_url.rstrip('/')}{raw}"
    parsed = urlparse(raw)
    # Tracking parameters differ between visits of the same post.
    return parsed._replace(query="", fragment="").geturl()
