from postmonitor.adapters.airtable_adapter import AirtableRecordStore
from postmonitor.adapters.base import RecordStore
from postmonitor.adapters.memory_adapter import MemoryRecordStore

__all__ = ["AirtableRecordStore", "MemoryRecordStore", "RecordStore"]
