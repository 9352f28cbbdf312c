from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from postmonitor.config import Settings
from postmonitor.errors import NavigationError
from postmonitor.models import CONTENT_MAX_CHARS, ExtractedPost, UrlType
from postmonitor.navigation import NavigationRetrier
from postmonitor.normalizer import (
    canonicalize_post_url,
    detect_url_type,
    normalize_activity_url,
    normalize_timestamp,
    parse_comment_count,
    parse_like_count,
    synthesize_update_url,
)
from postmonitor.risk_control import Sleep
from postmonitor.selector_profile import SelectorProfile


logger = logging.getLogger("monitor-extract")

CONTENT_MIN_CHARS = 10


def pick_content(candidates: List[Any]) -> str:
    for candidate in candidates or []:
        text = str(candidate or "").strip()
        if len(text) > CONTENT_MIN_CHARS:
            return text[:CONTENT_MAX_CHARS]
    return ""


def pick_canonical_url(row: Dict[str, Any], base_url: str) -> str:
    for href in (row.get("post_link"), row.get("activity_link")):
        url = canonicalize_post_url(str(href or ""), base_url)
        if url:
            return url
    return synthesize_update_url(base_url, str(row.get("urn") or ""))


def parse_container(row: Dict[str, Any], *, crawled_at: datetime, base_url: str) -> Optional[ExtractedPost]:
    """Build a post from one container's raw material, or None when a required field is missing."""
    content = pick_content(row.get("content_candidates") or [])
    if not content:
        return None
    canonical_url = pick_canonical_url(row, base_url)
    if not canonical_url:
        return None

    like_count = parse_like_count(row.get("reaction_label"))
    if like_count == 0:
        like_count = parse_like_count(row.get("social_counts_text"))
    comment_count = parse_comment_count(row.get("comment_label"))
    if comment_count == 0:
        comment_count = parse_comment_count(row.get("social_counts_text"))

    image_src = str(row.get("image_src") or "").strip()
    video_poster = str(row.get("video_poster") or "").strip()
    has_media = bool(row.get("has_image")) or bool(row.get("has_video"))
    return ExtractedPost(
        content=content,
        published_at=normalize_timestamp(row.get("datetime"), crawled_at),
        canonical_url=canonical_url,
        like_count=like_count,
        comment_count=comment_count,
        has_media=has_media,
        media_url=(image_src or video_poster or None) if has_media else None,
    )


class ContentExtractor:
    """Loads a source's activity surface and pulls post records out of the DOM."""

    def __init__(
        self,
        settings: Settings,
        *,
        retrier: NavigationRetrier,
        selectors: SelectorProfile,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.retrier = retrier
        self.selectors = selectors
        self._sleep = sleep
        self.base_url = settings.linkedin_base_url.rstrip("/")

    def scroll_cycles(self, url_type: UrlType) -> int:
        if url_type == "company":
            return max(0, int(self.settings.monitor_company_scrolls))
        return max(0, int(self.settings.monitor_profile_scrolls))

    async def _load_more(self, page: Any, cycles: int) -> None:
        for _ in range(cycles):
            try:
                await page.evaluate("scroll_viewport")
            except Exception as exc:  # noqa: BLE001
                logger.debug("Scroll failed: %s", str(exc)[:120])
            await self._sleep(self.settings.monitor_scroll_wait_s)

    async def extract(self, page: Any, source_url: str, max_posts: Optional[int] = None) -> List[ExtractedPost]:
        cap = max(1, int(max_posts or self.settings.monitor_max_posts_per_source))
        url_type = detect_url_type(source_url)
        activity_url = normalize_activity_url(source_url)
        logger.info("Extracting %s posts from %s (cap %d)", url_type, activity_url, cap)

        if not await self.retrier.goto_with_retry(page, activity_url):
            raise NavigationError(activity_url)
        await self._sleep(self.settings.monitor_settle_after_load_s)

        if await page.wait_for_selector(", ".join(self.selectors.containers), timeout_ms=self.settings.monitor_container_wait_ms):
            logger.info("Post containers detected")
        else:
            logger.warning("No post container rendered yet, extracting anyway")

        await self._load_more(page, self.scroll_cycles(url_type))
        await self._sleep(self.settings.monitor_settle_after_load_s)

        crawled_at = datetime.now(timezone.utc)
        payload = await page.evaluate(
            "collect_post_containers",
            {"profile": self.selectors.model_dump(), "maxItems": cap},
        )
        payload = payload or {}
        rows = list(payload.get("rows") or [])[:cap]
        if not rows:
            logger.warning("No post containers found on %s", activity_url)
            return []
        logger.info(
            "%d containers via %r, processing %d",
            int(payload.get("total_containers") or len(rows)),
            payload.get("matched_selector") or "",
            len(rows),
        )

        posts: List[ExtractedPost] = []
        skipped = 0
        for row in rows:
            post = parse_container(row, crawled_at=crawled_at, base_url=self.base_url)
            if post is None:
                skipped += 1
                continue
            posts.append(post)
        if skipped:
            logger.debug("Skipped %d containers without text or permalink", skipped)
        logger.info("Extracted %d posts from %s", len(posts), activity_url)
        return posts[:cap]
