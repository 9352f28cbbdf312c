from __future__ import annotations

import uuid
from typing import Any, Dict, List, Mapping, Optional, Sequence

from postmonitor.adapters.base import Record, RecordStore


class MemoryRecordStore(RecordStore):
    """Process-local tables, for dry runs and tests."""

    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None) -> None:
        self._tables: Dict[str, List[Record]] = {}
        for table, rows in (tables or {}).items():
            for fields in rows:
                self._tables.setdefault(table, []).append({"id": f"rec{uuid.uuid4().hex[:14]}", "fields": dict(fields)})

    def rows(self, table: str) -> List[Record]:
        return list(self._tables.get(table, []))

    async def select(
        self,
        table: str,
        *,
        equals: Optional[Mapping[str, Any]] = None,
        fields: Optional[Sequence[str]] = None,
        max_records: Optional[int] = None,
    ) -> List[Record]:
        matched: List[Record] = []
        for record in self._tables.get(table, []):
            values = record["fields"]
            if equals and any(values.get(k) != v for k, v in equals.items()):
                continue
            if fields:
                projected = {k: values[k] for k in fields if k in values}
            else:
                projected = dict(values)
            matched.append({"id": record["id"], "fields": projected})
            if max_records and len(matched) >= max_records:
                break
        return matched

    async def create(self, table: str, fields: Mapping[str, Any]) -> Record:
        record = {"id": f"rec{uuid.uuid4().hex[:14]}", "fields": dict(fields)}
        self._tables.setdefault(table, []).append(record)
        return {"id": record["id"], "fields": dict(fields)}
