from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable

from postmonitor.adapters.base import RecordStore
from postmonitor.errors import PersistenceError
from postmonitor.models import ExtractedPost, PersistResult, SourceContext, StoredPost
from postmonitor.risk_control import Sleep


logger = logging.getLogger("monitor-persist")

POST_URL_FIELD = "Post URL"


def to_record_fields(post: StoredPost) -> Dict[str, Any]:
    fields: Dict[str, Any] = {
        "Author Name": post.author_name,
        "Author Profile URL": post.author_source_url,
        "Group": post.group,
        "Post Content": post.content,
        "Post Date": post.published_at,
        POST_URL_FIELD: post.canonical_url,
        "Likes": post.like_count,
        "Comments": post.comment_count,
        "Has Media": post.has_media,
        "Media URL": post.media_url or "",
        "Status": post.status,
    }
    if post.source_type:
        fields["Source Type"] = post.source_type
    return fields


class PostPersister:
    """Writes posts whose canonical URL is not in the store yet."""

    def __init__(self, store: RecordStore, table: str, *, write_delay_s: float = 0.5, sleep: Sleep = asyncio.sleep) -> None:
        self.store = store
        self.table = table
        self.write_delay_s = write_delay_s
        self._sleep = sleep

    async def exists(self, canonical_url: str) -> bool:
        records = await self.store.select(self.table, equals={POST_URL_FIELD: canonical_url}, max_records=1)
        return len(records) > 0

    async def persist_new(self, posts: Iterable[ExtractedPost], context: SourceContext) -> PersistResult:
        result = PersistResult()
        for post in posts:
            try:
                if await self.exists(post.canonical_url):
                    result.skipped_count += 1
                    continue
                stored = StoredPost.from_extracted(post, context)
                await self.store.create(self.table, to_record_fields(stored))
            except PersistenceError as exc:
                logger.error("Saving %s failed: %s", post.canonical_url, exc)
                result.errors.append(exc.describe())
                continue
            result.saved_count += 1
            result.saved_urls.append(post.canonical_url)
            logger.info("Saved post by %s: %s", context.author_name, post.canonical_url)
            await self._sleep(self.write_delay_s)
        logger.info(
            "%s: %d new, %d already stored, %d errors",
            context.author_name,
            result.saved_count,
            result.skipped_count,
            len(result.errors),
        )
        return result
