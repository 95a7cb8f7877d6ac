"""Authentication manager: login, session persistence and verification."""

from __future__ import annotations

import asyncio
import logging
import os
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from mgrant_flow.errors import AuthError, SaveAuthFailedError
from mgrant_flow.models.auth_state import (
    AuthState,
    SessionSource,
    deserialize,
    parse_user,
    reset,
    serialize,
)
from mgrant_flow.models.config import AppConfig, Credentials
from mgrant_flow.utils.browser import settle

logger = logging.getLogger(__name__)

_READ_LOCAL_STORAGE_JS = """() => {
    const storage = {};
    for (let i = 0; i < window.localStorage.length; i++) {
        const key = window.localStorage.key(i);
        storage[key] = window.localStorage.getItem(key);
    }
    return storage;
}"""

_READ_SESSION_STORAGE_JS = """() => {
    const storage = {};
    for (let i = 0; i < window.sessionStorage.length; i++) {
        const key = window.sessionStorage.key(i);
        const value = window.sessionStorage.getItem(key);
        if (key && value) storage[key] = value;
    }
    return storage;
}"""

_WRITE_SESSION_STORAGE_JS = """(entries) => {
    Object.entries(entries).forEach(([key, value]) => window.sessionStorage.setItem(key, value));
}"""

_WRITE_LOCAL_STORAGE_JS = """(entries) => {
    Object.entries(entries).forEach(([key, value]) => window.localStorage.setItem(key, value));
}"""

_CLEAR_STORAGE_JS = """() => {
    window.localStorage.clear();
    window.sessionStorage.clear();
}"""

_TOKEN_PRESENCE_JS = """([tokenKey, userKey]) => ({
    token: !!window.sessionStorage.getItem(tokenKey),
    user: !!window.sessionStorage.getItem(userKey),
})"""

_TOKEN_READY_JS = "(tokenKey) => !!window.sessionStorage.getItem(tokenKey)"


class AuthStatus(str, Enum):
    UNKNOWN = "unknown"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


class AuthManager:
    """Owns the run's AuthState and its persisted snapshot."""

    def __init__(self, config: AppConfig, auth_file: Optional[Path] = None):
        self.config = config
        self.auth_file = Path(auth_file or config.auth_file)
        self.status = AuthStatus.UNKNOWN
        self._state = AuthState()

    @property
    def state(self) -> AuthState:
        return self._state

    def reset_auth_state(self, reason: str) -> None:
        self._state = reset(reason)
        logger.info("Authentication state reset: %s", reason)

    # ------------------------------------------------------------------
    # Snapshot persistence
    # ------------------------------------------------------------------

    def read_snapshot(self) -> Optional[AuthState]:
        """Read the persisted snapshot, or ``None`` when there is none.

        Raises ``CorruptSessionError`` for unreadable content.
        """
        if not self.auth_file.exists():
            return None
        return deserialize(self.auth_file.read_bytes())

    def clear_snapshot(self) -> bool:
        if not self.auth_file.exists():
            return False
        self.auth_file.unlink()
        logger.info("Removed authentication snapshot %s", self.auth_file)
        return True

    def _write_snapshot(self, state: AuthState) -> None:
        self.auth_file.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.auth_file.with_name(self.auth_file.name + ".tmp")
        try:
            tmp_path.write_bytes(serialize(state))
            os.replace(tmp_path, self.auth_file)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise

    async def save_auth_state(self, page: Page) -> AuthState:
        """Capture cookies and web storage from the live page and persist them."""
        logger.info("Saving authentication state...")
        try:
            cookies = await page.context.cookies()
            local_storage = await page.evaluate(_READ_LOCAL_STORAGE_JS)
            session_storage = await page.evaluate(_READ_SESSION_STORAGE_JS)
        except Exception as e:
            logger.error("Failed to read authentication state from page: %s", e)
            raise SaveAuthFailedError(str(e)) from e

        state = AuthState(
            is_authenticated=bool(session_storage.get(self.config.token_key)),
            cookies=cookies,
            local_storage=local_storage,
            session_storage=session_storage,
            user=parse_user(session_storage, self.config.user_key),
            url=page.url,
            last_validated=datetime.now(timezone.utc),
            session_source=SessionSource.LIVE,
        )
        try:
            self._write_snapshot(state)
        except OSError as e:
            logger.error("Failed to write %s: %s", self.auth_file, e)
            raise SaveAuthFailedError(str(e)) from e

        self._state = state
        logger.info("Saved %d cookies, %d localStorage items, %d sessionStorage items",
                    len(cookies), len(local_storage), len(session_storage))
        return state

    async def load_auth_state(self, page: Page) -> bool:
        """Restore a persisted snapshot into the page.

        A missing, corrupt or token-less snapshot is a normal outcome and
        returns ``False``; this method never raises.
        """
        logger.info("Loading authentication state from %s", self.auth_file)
        try:
            snapshot = self.read_snapshot()
            if snapshot is None:
                logger.info("No authentication snapshot found")
                return False
            if not snapshot.token(self.config.token_key):
                logger.warning("Authentication snapshot holds no session token")
                self.reset_auth_state("snapshot without token")
                return False

            timeouts = self.config.timeouts
            await page.goto(self.config.base_url, wait_until="commit",
                            timeout=timeouts.navigation_ms)
            await page.wait_for_timeout(500)

            # sessionStorage is the application's source of truth, restore it first
            await page.evaluate(_WRITE_SESSION_STORAGE_JS, snapshot.session_storage)
            if snapshot.local_storage:
                await page.evaluate(_WRITE_LOCAL_STORAGE_JS, snapshot.local_storage)
            if snapshot.cookies:
                await page.context.add_cookies(snapshot.cookies)

            await page.reload(wait_until="domcontentloaded")
            await settle(page, timeouts.settle_ms)
        except Exception as e:
            logger.error("Failed to load authentication state: %s", e)
            self.reset_auth_state(f"load failed: {e}")
            return False

        self._state = snapshot.model_copy(update={
            "is_authenticated": True,
            "session_source": SessionSource.FILE,
            "user": snapshot.user or parse_user(snapshot.session_storage, self.config.user_key),
        })
        logger.info("Restored %d sessionStorage items, %d localStorage items, %d cookies",
                    len(snapshot.session_storage), len(snapshot.local_storage),
                    len(snapshot.cookies))
        return True

    # ------------------------------------------------------------------
    # Login and verification
    # ------------------------------------------------------------------

    async def perform_login(self, page: Page, credentials: Optional[Credentials] = None) -> bool:
        """Log in through the form and cache the resulting session.

        Any failure resets the cached state and returns ``False``.
        """
        creds = credentials or self.config.credentials
        if creds is None:
            logger.error("Login failed: no credentials configured")
            self.reset_auth_state("no credentials")
            self.status = AuthStatus.UNAUTHENTICATED
            return False

        logger.info("Performing fresh login as %s", creds.email)
        timeouts = self.config.timeouts
        selectors = self.config.login_selectors
        try:
            await page.context.clear_cookies()
            await page.goto(self.config.url_for("login"), wait_until="networkidle",
                            timeout=timeouts.login_ms)
            await page.evaluate(_CLEAR_STORAGE_JS)
            await page.reload(wait_until="networkidle", timeout=timeouts.login_ms)

            await page.fill(selectors.username, creds.email)
            await page.fill(selectors.password, creds.password)
            await page.click(selectors.submit)

            try:
                await page.wait_for_function(_TOKEN_READY_JS, arg=self.config.token_key,
                                             timeout=timeouts.login_ms)
            except PlaywrightTimeoutError as e:
                raise AuthError("no authentication token appeared after submit") from e
            logger.debug("Token present, current URL after login: %s", page.url)

            await page.goto(self.config.url_for("protected"), wait_until="domcontentloaded",
                            timeout=timeouts.navigation_ms)
            if not await self.protected_page_visible(page, timeouts.verification_ms):
                raise AuthError("cannot access protected page after login")

            await self.save_auth_state(page)
        except Exception as e:
            logger.error("Login failed: %s", e)
            self.reset_auth_state(f"login failed: {e}")
            self.status = AuthStatus.UNAUTHENTICATED
            return False

        self.status = AuthStatus.AUTHENTICATED
        logger.info("Login successful")
        return True

    async def is_authenticated(self, page: Page) -> bool:
        """Probe the protected route.

        A missing token short-circuits to ``False`` before any UI check.
        With a token present, one visible protected-page signal is enough.
        """
        logger.info("Checking authentication status...")
        protected_url = self.config.url_for("protected")
        timeouts = self.config.timeouts
        try:
            try:
                await page.goto(protected_url, wait_until="domcontentloaded",
                                timeout=timeouts.navigation_ms)
            except PlaywrightError as e:
                logger.warning("Protected page navigation failed (%s), retrying...", e)
                await page.goto(protected_url, wait_until="networkidle",
                                timeout=timeouts.navigation_ms)
            await settle(page, timeouts.settle_ms)
            tokens = await page.evaluate(_TOKEN_PRESENCE_JS,
                                         [self.config.token_key, self.config.user_key])
        except PlaywrightError as e:
            logger.warning("Error checking authentication: %s", e)
            self.reset_auth_state(f"verification failed: {e}")
            return False

        if not tokens.get("token"):
            logger.info("No authentication token found")
            self.reset_auth_state("no token on protected page")
            return False
        if not tokens.get("user"):
            logger.debug("Token present without user identity, relying on page signals")

        if await self.protected_page_visible(page, timeouts.verification_ms):
            logger.info("User is authenticated")
            return True
        if not await self.session_expired(page):
            logger.info("User is not authenticated")
            self.reset_auth_state("protected page not reached")
        return False

    async def ensure_authenticated(
        self, page: Page, credentials: Optional[Credentials] = None
    ) -> bool:
        """Reuse the persisted session when it still works, else log in."""
        if await self.load_auth_state(page) and await self.is_authenticated(page):
            logger.info("Using existing authentication")
            self.status = AuthStatus.AUTHENTICATED
            return True

        logger.info("No usable cached session, logging in")
        return await self.perform_login(page, credentials)

    async def session_expired(self, page: Page) -> bool:
        """Detect a redirect to the login page and drop the cached state."""
        expired = self.config.routes.login in (page.url or "")
        if not expired:
            try:
                expired = await page.locator(self.config.login_selectors.login_form).first.is_visible()
            except PlaywrightError as e:
                logger.debug("Login form check failed: %s", e)
                expired = False
        if expired:
            logger.warning("Redirected to login page, session expired")
            self.reset_auth_state("session expired")
            self.status = AuthStatus.UNKNOWN
        return expired

    async def protected_page_visible(self, page: Page, timeout_ms: int) -> bool:
        """Race the protected-page signals; the first visible one wins."""
        selectors = self.config.protected_signals
        if not selectors:
            return False

        async def _wait(selector: str) -> str:
            await page.locator(selector).first.wait_for(state="visible", timeout=timeout_ms)
            return selector

        tasks = [asyncio.ensure_future(_wait(s)) for s in selectors]
        try:
            for next_done in asyncio.as_completed(tasks):
                try:
                    selector = await next_done
                except PlaywrightError as e:
                    logger.debug("Protected page signal not visible: %s", e)
                    continue
                logger.debug("Protected page signal visible: %s", selector)
                return True
            return False
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
