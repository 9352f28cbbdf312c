from __future__ import annotations

import logging
from typing import Any, List

from postmonitor.adapters.base import RecordStore
from postmonitor.errors import PersistenceError, SourceEnumerationError
from postmonitor.models import Source


logger = logging.getLogger("monitor-sources")

SOURCE_FIELDS = ["Name", "Profile URL", "Group", "Priority", "Status"]


def _first_url(value: Any) -> str:
    # Lookup/multi-select cells arrive as lists.
    if isinstance(value, list):
        value = value[0] if value else ""
    return str(value or "").strip()


class SourceFeed:
    """Read-only view of the configured sources."""

    def __init__(self, store: RecordStore, table: str) -> None:
        self.store = store
        self.table = table

    async def fetch_active(self) -> List[Source]:
        try:
            records = await self.store.select(self.table, equals={"Status": "Active"}, fields=SOURCE_FIELDS)
        except PersistenceError as exc:
            raise SourceEnumerationError(str(exc)) from exc

        sources: List[Source] = []
        for record in records:
            fields = record.get("fields") or {}
            url = _first_url(fields.get("Profile URL"))
            if not url:
                logger.warning("Source %s has no Profile URL, skipping", record.get("id"))
                continue
            sources.append(
                Source(
                    id=str(record.get("id") or ""),
                    name=str(fields.get("Name") or ""),
                    target_url=url,
                    group=str(fields.get("Group") or ""),
                    priority=fields.get("Priority"),
                    status="Active",
                )
            )
        logger.info("Loaded %d active sources", len(sources))
        return sources
