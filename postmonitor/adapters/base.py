from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Sequence


Record = Dict[str, Any]


class RecordStore(ABC):
    """Filtered select and create over named tables.

    Records come back as ``{"id": str, "fields": {...}}``.
    """

    @abstractmethod
    async def select(
        self,
        table: str,
        *,
        equals: Optional[Mapping[str, Any]] = None,
        fields: Optional[Sequence[str]] = None,
        max_records: Optional[int] = None,
    ) -> List[Record]:
        raise NotImplementedError

    @abstractmethod
    async def create(self, table: str, fields: Mapping[str, Any]) -> Record:
        raise NotImplementedError

    async def close(self) -> None:
        return None
