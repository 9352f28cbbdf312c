from __future__ import annotations

import logging

from postmonitor.adapters import AirtableRecordStore, MemoryRecordStore, RecordStore
from postmonitor.config import Settings
from postmonitor.orchestrator import CrawlOrchestrator
from postmonitor.run_log import RunLog
from postmonitor.session_store import SessionStore


logger = logging.getLogger("monitor-service")


def build_store(settings: Settings) -> RecordStore:
    if settings.airtable_api_key and settings.airtable_base_id:
        return AirtableRecordStore(settings)
    logger.warning("Airtable is not configured, using an in-memory record store")
    return MemoryRecordStore()


def build_orchestrator(settings: Settings) -> CrawlOrchestrator:
    return CrawlOrchestrator(
        settings,
        store=build_store(settings),
        session_store=SessionStore(settings),
        run_log=RunLog(settings),
    )
