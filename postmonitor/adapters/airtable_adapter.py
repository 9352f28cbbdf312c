from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence
from urllib.parse import quote

import httpx

from postmonitor.adapters.base import Record, RecordStore
from postmonitor.config import Settings
from postmonitor.errors import PersistenceError


logger = logging.getLogger("monitor-airtable")


def _formula_literal(value: Any) -> str:
    if isinstance(value, bool):
        return "TRUE()" if value else "FALSE()"
    if isinstance(value, (int, float)):
        return str(value)
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def build_formula(equals: Mapping[str, Any]) -> str:
    clauses = [f"{{{name}}} = {_formula_literal(value)}" for name, value in equals.items()]
    if len(clauses) == 1:
        return clauses[0]
    return f"AND({', '.join(clauses)})"


class AirtableRecordStore(RecordStore):
    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None) -> None:
        if not settings.airtable_api_key or not settings.airtable_base_id:
            raise ValueError("AIRTABLE_API_KEY and AIRTABLE_BASE_ID are required")
        self._base_url = f"{settings.airtable_api_url.rstrip('/')}/{settings.airtable_base_id}"
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.airtable_timeout_s),
            headers={"Authorization": f"Bearer {settings.airtable_api_key}"},
        )

    def _table_url(self, table: str) -> str:
        return f"{self._base_url}/{quote(table, safe='')}"

    async def _request(self, method: str, table: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, self._table_url(table), **kwargs)
        except httpx.HTTPError as exc:
            raise PersistenceError(f"{method} {table}: {exc}") from exc
        if response.status_code < 200 or response.status_code >= 300:
            raise PersistenceError(f"{method} {table}: http_{response.status_code}:{response.text[:240]}")
        try:
            return response.json()
        except ValueError as exc:
            raise PersistenceError(f"{method} {table}: invalid_json:{response.text[:120]}") from exc

    async def select(
        self,
        table: str,
        *,
        equals: Optional[Mapping[str, Any]] = None,
        fields: Optional[Sequence[str]] = None,
        max_records: Optional[int] = None,
    ) -> List[Record]:
        params: List[tuple[str, str]] = []
        if equals:
            params.append(("filterByFormula", build_formula(equals)))
        for name in fields or []:
            params.append(("fields[]", name))
        if max_records:
            params.append(("maxRecords", str(max_records)))

        records: List[Record] = []
        offset: Optional[str] = None
        while True:
            page_params = list(params)
            if offset:
                page_params.append(("offset", offset))
            data = await self._request("GET", table, params=page_params)
            for item in data.get("records") or []:
                records.append({"id": str(item.get("id") or ""), "fields": dict(item.get("fields") or {})})
            offset = data.get("offset")
            if not offset or (max_records and len(records) >= max_records):
                break
        return records[:max_records] if max_records else records

    async def create(self, table: str, fields: Mapping[str, Any]) -> Record:
        data = await self._request("POST", table, json={"records": [{"fields": dict(fields)}], "typecast": True})
        created = (data.get("records") or [{}])[0]
        return {"id": str(created.get("id") or ""), "fields": dict(created.get("fields") or {})}

    async def close(self) -> None:
        await self._client.aclose()
