from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Callable, List, Optional, Sequence

from postmonitor.adapters.base import RecordStore
from postmonitor.auth_session import AuthSession
from postmonitor.browser import BrowserSession
from postmonitor.config import Settings
from postmonitor.errors import AuthenticationFailure, MonitorError, SourceEnumerationError
from postmonitor.extractor import ContentExtractor
from postmonitor.models import (
    RunSummary,
    RunTrigger,
    ScrapeResponse,
    ScrapeTarget,
    SourceContext,
    SourceResult,
    StoreSummary,
    utc_now_iso,
)
from postmonitor.navigation import NavigationRetrier
from postmonitor.normalizer import detect_url_type, extract_author_name, normalize_activity_url
from postmonitor.persistence import PostPersister
from postmonitor.risk_control import Sleep
from postmonitor.run_log import RunLog
from postmonitor.selector_profile import SelectorProfile, load_selector_profile
from postmonitor.session_store import SessionStore
from postmonitor.sources import SourceFeed


logger = logging.getLogger("monitor-orchestrator")

BrowserFactory = Callable[[], Any]


class CrawlOrchestrator:
    """Runs the crawl pipeline over all active sources, one run at a time."""

    def __init__(
        self,
        settings: Settings,
        *,
        store: RecordStore,
        browser_factory: Optional[BrowserFactory] = None,
        session_store: Optional[SessionStore] = None,
        run_log: Optional[RunLog] = None,
        selectors: Optional[SelectorProfile] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.store = store
        self.session_store = session_store
        self.run_log = run_log
        self.selectors = selectors or load_selector_profile(settings.monitor_selector_profile_path)
        self._browser_factory = browser_factory or (lambda: BrowserSession(settings))
        self._sleep = sleep
        self._run_lock = asyncio.Lock()

        self.retrier = NavigationRetrier.from_settings(settings, sleep=sleep)
        self.extractor = ContentExtractor(settings, retrier=self.retrier, selectors=self.selectors, sleep=sleep)
        self.persister = PostPersister(
            store,
            settings.airtable_posts_table,
            write_delay_s=settings.monitor_write_delay_s,
            sleep=sleep,
        )
        self.sources = SourceFeed(store, settings.airtable_sources_table)

    @property
    def is_busy(self) -> bool:
        return self._run_lock.locked()

    def new_auth_session(self) -> AuthSession:
        return AuthSession(
            self.settings,
            retrier=self.retrier,
            selectors=self.selectors,
            session_store=self.session_store,
            sleep=self._sleep,
        )

    async def _crawl_source(
        self,
        page: Any,
        *,
        url: str,
        name: str,
        group: str,
        max_posts: Optional[int],
        persist: bool,
        source_id: str = "",
    ) -> SourceResult:
        url_type = detect_url_type(url)
        author = name or extract_author_name(url)
        result = SourceResult(source_id=source_id, name=author, url=url, url_type=url_type)
        try:
            posts = await self.extractor.extract(page, url, max_posts)
        except MonitorError as exc:
            logger.error("Extraction failed for %s: %s", author, exc)
            result.error = exc.describe()
            return result
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected error extracting %s", author)
            result.error = f"extract_failed:{str(exc)[:200]}"
            return result

        result.posts = posts
        result.posts_found = len(posts)
        result.success = True
        if persist and posts:
            context = SourceContext(author_name=author, author_source_url=url, group=group, url_type=url_type)
            saved = await self.persister.persist_new(posts, context)
            result.posts_saved = saved.saved_count
            result.saved_urls = saved.saved_urls
            result.store_errors = saved.errors
        return result

    async def _authenticate(self, page: Any) -> AuthSession:
        auth = self.new_auth_session()
        await auth.ensure_authenticated(page)
        return auth

    async def _record(self, summary: RunSummary) -> None:
        if self.run_log is None:
            return
        try:
            await self.run_log.append(summary)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Appending run summary failed: %s", str(exc)[:200])

    async def run(self, trigger: RunTrigger = "schedule") -> RunSummary:
        async with self._run_lock:
            summary = await self._run(trigger)
        await self._record(summary)
        return summary

    async def _run(self, trigger: RunTrigger) -> RunSummary:
        summary = RunSummary(run_id=uuid.uuid4().hex[:12], trigger=trigger)
        logger.info("Run %s started (%s)", summary.run_id, trigger)
        try:
            sources = await self.sources.fetch_active()
        except SourceEnumerationError as exc:
            logger.error("Cannot enumerate sources: %s", exc)
            summary.error = exc.describe()
            summary.finished_at = utc_now_iso()
            return summary

        summary.sources_total = len(sources)
        if not sources:
            logger.warning("No active sources to monitor")
            summary.finished_at = utc_now_iso()
            return summary

        browser = self._browser_factory()
        try:
            page = await browser.open()
            auth = self.new_auth_session()
            try:
                await auth.ensure_authenticated(page)
            except AuthenticationFailure as exc:
                summary.auth_state = auth.state
                summary.error = exc.describe()
                summary.sources_failed = len(sources)
                logger.error("Run %s aborted: %s", summary.run_id, exc.describe())
                return summary
            summary.auth_state = auth.state

            for idx, source in enumerate(sources):
                result = await self._crawl_source(
                    page,
                    url=source.target_url,
                    name=source.name,
                    group=source.group,
                    max_posts=self.settings.monitor_max_posts_per_source,
                    persist=True,
                    source_id=source.id,
                )
                summary.per_source.append(result)
                if result.success:
                    summary.sources_succeeded += 1
                    summary.posts_new_total += result.posts_saved
                else:
                    summary.sources_failed += 1
                if idx < len(sources) - 1:
                    logger.info("Waiting %.0fs before the next source", self.settings.monitor_source_delay_s)
                    await self._sleep(self.settings.monitor_source_delay_s)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Run %s failed", summary.run_id)
            summary.error = f"run_failed:{str(exc)[:200]}"
            summary.sources_failed = summary.sources_total - summary.sources_succeeded
        finally:
            await browser.close()
            summary.finished_at = utc_now_iso()

        logger.info(
            "Run %s done: %d/%d sources ok, %d new posts",
            summary.run_id,
            summary.sources_succeeded,
            summary.sources_total,
            summary.posts_new_total,
        )
        return summary

    async def scrape_urls(
        self,
        targets: Sequence[ScrapeTarget],
        *,
        max_posts: Optional[int] = None,
        persist: bool = False,
        group: Optional[str] = None,
    ) -> ScrapeResponse:
        async with self._run_lock:
            return await self._scrape_urls(list(targets), max_posts=max_posts, persist=persist, group=group)

    async def _scrape_urls(
        self,
        targets: List[ScrapeTarget],
        *,
        max_posts: Optional[int],
        persist: bool,
        group: Optional[str],
    ) -> ScrapeResponse:
        response = ScrapeResponse(success=False, total_urls=len(targets))
        default_cap = max_posts or self.settings.monitor_max_posts_per_source
        save_group = group or self.settings.monitor_default_group
        logger.info("On-demand scrape of %d url(s), persist=%s", len(targets), persist)

        browser = self._browser_factory()
        try:
            page = await browser.open()
            try:
                await self._authenticate(page)
            except AuthenticationFailure as exc:
                response.error = exc.describe()
                return response

            for idx, target in enumerate(targets):
                url = str(target.url or "").strip()
                if not url:
                    response.results.append(SourceResult(error="url_missing"))
                    continue
                if detect_url_type(url) == "unknown":
                    logger.warning("Unsupported url type: %s", url)
                    response.results.append(SourceResult(url=url, error="unsupported_url_type"))
                    continue
                result = await self._crawl_source(
                    page,
                    url=url,
                    name="",
                    group=save_group,
                    max_posts=target.max_posts or default_cap,
                    persist=persist,
                )
                result.url = normalize_activity_url(url)
                response.results.append(result)
                if idx < len(targets) - 1:
                    logger.info("Waiting %.0fs before the next url", self.settings.monitor_url_delay_s)
                    await self._sleep(self.settings.monitor_url_delay_s)
            response.success = True
        except Exception as exc:  # noqa: BLE001
            logger.exception("On-demand scrape failed")
            response.error = f"scrape_failed:{str(exc)[:200]}"
        finally:
            await browser.close()

        response.successful_urls = sum(1 for r in response.results if r.success)
        response.failed_urls = len(response.results) - response.successful_urls
        if persist:
            response.store = StoreSummary(
                total_processed=sum(r.posts_found for r in response.results if r.success),
                total_saved=sum(r.posts_saved for r in response.results),
                by_url=[
                    {
                        "url": r.url,
                        "url_type": r.url_type,
                        "saved": r.posts_saved,
                        "total": r.posts_found,
                        "error": r.error,
                    }
                    for r in response.results
                ],
            )
        logger.info("On-demand scrape done: %d/%d urls ok", response.successful_urls, len(targets))
        return response
