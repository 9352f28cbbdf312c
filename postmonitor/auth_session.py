from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional

from redis.exceptions import RedisError

from postmonitor.config import Settings
from postmonitor.cookie_store import CookieSet, CookieStore
from postmonitor.errors import AuthenticationFailure, ChallengeRequired, CookieFormatError
from postmonitor.models import AuthState, CredentialPair
from postmonitor.navigation import NavigationRetrier
from postmonitor.risk_control import Sleep, ThinkTime
from postmonitor.selector_profile import SelectorProfile
from postmonitor.session_store import SessionStore


logger = logging.getLogger("monitor-auth")


AUTHENTICATED_URL_MARKERS = ("/feed", "/mynetwork", "/in/")
CHALLENGE_URL_MARKERS = ("/checkpoint/challenge", "/checkpoint/pin")
LOGIN_URL_MARKERS = ("/login", "/uas/login")
SIGNAL_KEYS = ("global_nav", "profile_affordance", "search_control", "messaging_affordance", "feed_content")


def count_login_signals(checks: Mapping[str, Any]) -> int:
    return sum(1 for key in SIGNAL_KEYS if bool(checks.get(key)))


def is_authenticated_url(url: str) -> bool:
    return any(marker in str(url or "") for marker in AUTHENTICATED_URL_MARKERS)


def evaluate_login_signals(checks: Mapping[str, Any], url: str = "") -> bool:
    """Two structural signals, or one signal corroborated by an authenticated URL."""
    positive = count_login_signals(checks)
    if positive >= 2:
        return True
    return positive == 1 and is_authenticated_url(url or str(checks.get("url") or ""))


def classify_post_submit_url(url: str) -> str:
    if any(marker in url for marker in CHALLENGE_URL_MARKERS):
        return "challenge"
    if any(marker in url for marker in LOGIN_URL_MARKERS):
        return "login"
    return "other"


class AuthSession:
    """Establishes one authenticated browser context for a run.

    Cookie material is tried first, then the identifier/secret pair. The
    session walks ``AuthState`` and records every state it passed through in
    ``history``; it is never persisted.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        retrier: NavigationRetrier,
        selectors: SelectorProfile,
        cookie_store: Optional[CookieStore] = None,
        session_store: Optional[SessionStore] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.retrier = retrier
        self.selectors = selectors
        self.cookie_store = cookie_store or CookieStore(primary_cookie=settings.linkedin_session_cookie_name)
        self.session_store = session_store
        self._sleep = sleep
        self._think = ThinkTime(settings.monitor_think_delay_ms_min, settings.monitor_think_delay_ms_max, sleep=sleep)
        self.base_url = settings.linkedin_base_url.rstrip("/")
        self.state = AuthState.UNAUTHENTICATED
        self.history: List[AuthState] = [AuthState.UNAUTHENTICATED]
        self.error: Optional[str] = None
        self.fresh_cookies: Optional[List[Dict[str, Any]]] = None

    @property
    def feed_url(self) -> str:
        return f"{self.base_url}/feed/"

    @property
    def login_url(self) -> str:
        return f"{self.base_url}/login"

    def _transition(self, state: AuthState) -> None:
        logger.info("Auth state %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def _credentials(self) -> Optional[CredentialPair]:
        if not self.settings.has_credentials():
            return None
        return CredentialPair(identifier=self.settings.linkedin_email, secret=self.settings.linkedin_password)

    async def _cookie_material(self) -> Optional[CookieSet]:
        raw = self.settings.linkedin_cookies.strip()
        if raw:
            try:
                cookies = self.cookie_store.load(raw)
            except CookieFormatError as exc:
                logger.error("Configured cookies rejected: %s", exc)
                cookies = None
            if cookies:
                return cookies
        if self.session_store is not None and self.settings.linkedin_email:
            try:
                stored = await self.session_store.load_cookies(self.settings.linkedin_email)
            except (RedisError, OSError) as exc:
                logger.warning("Session store unavailable, skipping stored cookies: %s", exc)
                stored = None
            if stored:
                try:
                    cookies = self.cookie_store.load(stored)
                except CookieFormatError as exc:
                    logger.warning("Stored cookies rejected: %s", exc)
                    return None
                logger.info("Using %d cookies from the session store", len(cookies))
                return cookies
        return None

    def _usable(self, cookies: CookieSet) -> bool:
        prediction = self.cookie_store.predict_expiry(cookies)
        if prediction.expired:
            logger.warning("Session cookie %s has expired, skipping cookie login", self.cookie_store.primary_cookie)
            return False
        if prediction.days_left is not None and prediction.days_left <= self.settings.monitor_cookie_warn_days:
            logger.warning("Session cookie expires in %d day(s), refresh it soon", prediction.days_left)
        else:
            logger.info("Session cookie valid for ~%s more day(s)", prediction.days_left)
        return True

    async def is_logged_in(self, page: Any) -> bool:
        try:
            checks = await page.evaluate("login_signals", self.selectors.login_signals)
        except Exception as exc:  # noqa: BLE001
            logger.error("Login check failed: %s", str(exc)[:200])
            return False
        checks = dict(checks or {})
        url = str(checks.get("url") or page.url or "")
        result = evaluate_login_signals(checks, url)
        logger.info(
            "Login check: %d/%d signals, authenticated url=%s -> %s",
            count_login_signals(checks),
            len(SIGNAL_KEYS),
            is_authenticated_url(url),
            result,
        )
        return result

    async def establish(self, page: Any) -> AuthState:
        cookies = await self._cookie_material()
        credentials = self._credentials()

        if cookies and self._usable(cookies):
            self._transition(AuthState.COOKIE_ATTEMPTED)
            if await self._login_with_cookies(page, cookies):
                self._transition(AuthState.AUTHENTICATED)
                return self.state
            if credentials is None:
                self.error = "cookie_login_failed"
                self._transition(AuthState.FAILED)
                return self.state
        elif credentials is None:
            self.error = "no_session_material"
            logger.error("No usable cookies and no credentials configured")
            self._transition(AuthState.FAILED)
            return self.state

        self._transition(AuthState.CREDENTIAL_ATTEMPTED)
        assert credentials is not None
        outcome = await self._login_with_credentials(page, credentials)
        self._transition(outcome)
        return self.state

    async def ensure_authenticated(self, page: Any) -> AuthState:
        state = await self.establish(page)
        if state == AuthState.CHALLENGE_REQUIRED:
            raise ChallengeRequired(self.error or "verification page after login")
        if state != AuthState.AUTHENTICATED:
            raise AuthenticationFailure(self.error or "all login strategies failed")
        return state

    async def _login_with_cookies(self, page: Any, cookies: CookieSet) -> bool:
        logger.info("Trying cookie login with %d cookies", len(cookies))
        loaded = await self.retrier.goto_with_retry(
            page, self.base_url, timeout_ms=self.settings.monitor_base_page_timeout_ms
        )
        if not loaded:
            logger.error("Could not load %s to install cookies", self.base_url)
            return False
        await self._sleep(2)
        try:
            await page.clear_cookies()
            await page.add_cookies(self.cookie_store.to_browser_cookies(cookies))
        except Exception as exc:  # noqa: BLE001
            logger.error("Installing cookies failed: %s", str(exc)[:200])
            return False

        if not await self.retrier.goto_with_retry(page, self.feed_url):
            logger.warning("Could not reach the feed with cookies")
            return False
        await self._sleep(self.settings.monitor_auth_settle_s)
        if await self.is_logged_in(page):
            logger.info("Cookie login succeeded")
            return True
        logger.warning("Cookies invalid or expired")
        return False

    async def _race_navigation(self, page: Any) -> None:
        race_s = self.settings.monitor_submit_race_s
        navigation = asyncio.ensure_future(page.wait_for_navigation(timeout_ms=self.settings.monitor_page_timeout_ms))
        timer = asyncio.ensure_future(self._sleep(race_s))
        done, pending = await asyncio.wait({navigation, timer}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        if navigation in done and not navigation.cancelled() and navigation.exception() is not None:
            logger.debug("Navigation wait ended with %s", navigation.exception())

    async def _login_with_credentials(self, page: Any, credentials: CredentialPair) -> AuthState:
        logger.info("Trying credential login")
        if not await self.retrier.goto_with_retry(page, self.login_url):
            self.error = "login_page_unreachable"
            return AuthState.FAILED
        await self._sleep(self.settings.monitor_login_form_wait_s)

        # Some deployments skip the form when a session already exists.
        if await self.is_logged_in(page):
            logger.info("Already authenticated on the login surface")
            return AuthState.AUTHENTICATED

        if not await page.evaluate("has_element", self.selectors.login_identifier):
            self.error = "login_form_missing"
            logger.warning("Login form not found")
            return AuthState.FAILED

        delay_ms = self.settings.monitor_keystroke_delay_ms
        await page.click(self.selectors.login_identifier, click_count=3)
        await self._think.pause()
        await page.type_text(self.selectors.login_identifier, credentials.identifier, delay_ms=delay_ms)
        await self._think.pause()
        await page.click(self.selectors.login_secret, click_count=3)
        await self._think.pause()
        await page.type_text(self.selectors.login_secret, credentials.secret, delay_ms=delay_ms)
        await self._think.pause()

        logger.info("Submitting login form")
        await page.click(self.selectors.login_submit)
        await self._race_navigation(page)
        await self._sleep(self.settings.monitor_auth_settle_s)

        current_url = str(page.url or "")
        logger.info("URL after submit: %s", current_url)
        verdict = classify_post_submit_url(current_url)
        if verdict == "challenge":
            self.error = "verification_required"
            logger.error("Platform requires verification (2FA/captcha); use cookies from a verified session")
            return AuthState.CHALLENGE_REQUIRED
        if verdict == "login":
            self.error = "credentials_rejected"
            logger.error("Login failed, check the credentials")
            return AuthState.FAILED

        if not await self.is_logged_in(page):
            self.error = "login_state_uncertain"
            logger.warning("Login state uncertain after submit")
            return AuthState.FAILED

        await self._capture_fresh_cookies(page, credentials.identifier)
        logger.info("Credential login succeeded")
        return AuthState.AUTHENTICATED

    async def _capture_fresh_cookies(self, page: Any, account: str) -> None:
        try:
            self.fresh_cookies = await page.cookies()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not read cookies after login: %s", str(exc)[:200])
            return
        if self.session_store is None:
            logger.info("Fresh session cookies available (%d); set LINKEDIN_COOKIES to reuse them", len(self.fresh_cookies))
            return
        try:
            await self.session_store.save_cookies(account, self.fresh_cookies)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Persisting fresh cookies failed: %s", str(exc)[:200])
