from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeout

from postmonitor.config import Settings
from postmonitor.page_scripts import STEALTH_INIT_SCRIPT, get_script
from postmonitor.risk_control import UserAgentPool


logger = logging.getLogger("monitor-browser")


class PageDriver:
    """Narrow capability surface over one Playwright page.

    Everything the pipeline needs from the rendering engine goes through here:
    navigation, script evaluation by id, cookie access and form input.
    """

    def __init__(self, page: Page, context: BrowserContext) -> None:
        self._page = page
        self._context = context

    @property
    def url(self) -> str:
        return self._page.url

    async def goto(self, url: str, *, timeout_ms: int, wait_until: str = "domcontentloaded") -> Optional[int]:
        """Navigate and return the HTTP status, or None when no response was observed."""
        response = await self._page.goto(url, wait_until=wait_until, timeout=timeout_ms)
        if response is None:
            return None
        return response.status

    async def evaluate(self, script_id: str, arg: Any = None) -> Any:
        script = get_script(script_id)
        if arg is None:
            return await self._page.evaluate(script)
        return await self._page.evaluate(script, arg)

    async def wait_for_selector(self, selector: str, *, timeout_ms: int) -> bool:
        try:
            await self._page.wait_for_selector(selector, timeout=timeout_ms)
            return True
        except PlaywrightTimeout:
            return False

    async def wait_for_navigation(self, *, timeout_ms: int) -> bool:
        try:
            await self._page.wait_for_event("framenavigated", timeout=timeout_ms)
            await self._page.wait_for_load_state("domcontentloaded", timeout=timeout_ms)
            return True
        except PlaywrightTimeout:
            return False

    async def click(self, selector: str, *, click_count: int = 1) -> None:
        await self._page.click(selector, click_count=click_count)

    async def type_text(self, selector: str, text: str, *, delay_ms: int = 100) -> None:
        await self._page.type(selector, text, delay=delay_ms)

    async def cookies(self) -> List[Dict[str, Any]]:
        return [dict(item) for item in await self._context.cookies()]

    async def clear_cookies(self) -> None:
        await self._context.clear_cookies()

    async def add_cookies(self, cookies: List[Dict[str, Any]]) -> None:
        await self._context.add_cookies(cookies)


class BrowserSession:
    """Owns the Playwright process, browser and the single context of a run."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self.driver: Optional[PageDriver] = None

    async def open(self) -> PageDriver:
        user_agent = UserAgentPool(self.settings.monitor_user_agent_pool).sample()
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.settings.monitor_playwright_headless,
            args=[
                "--no-sandbox",
                "--disable-dev-shm-usage",
                "--disable-blink-features=AutomationControlled",
            ],
        )
        self._context = await self._browser.new_context(
            user_agent=user_agent,
            viewport={
                "width": self.settings.monitor_viewport_width,
                "height": self.settings.monitor_viewport_height,
            },
            locale="en-US",
        )
        await self._context.add_init_script(STEALTH_INIT_SCRIPT)
        self._context.set_default_timeout(self.settings.monitor_page_timeout_ms)
        self._context.set_default_navigation_timeout(self.settings.monitor_page_timeout_ms)
        page = await self._context.new_page()
        self.driver = PageDriver(page, self._context)
        logger.info("Browser launched (headless=%s)", self.settings.monitor_playwright_headless)
        return self.driver

    async def close(self) -> None:
        for label, closer in (
            ("context", self._context.close if self._context else None),
            ("browser", self._browser.close if self._browser else None),
            ("playwright", self._playwright.stop if self._playwright else None),
        ):
            if closer is None:
                continue
            try:
                await asyncio.wait_for(closer(), timeout=10)
            except (PlaywrightError, asyncio.TimeoutError) as exc:
                logger.warning("Closing %s failed: %s", label, exc)
        self._context = None
        self._browser = None
        self._playwright = None
        self.driver = None
        logger.info("Browser closed")
