"""Per-run authentication context handed to every module."""

from __future__ import annotations

import logging
from typing import Optional

from playwright.async_api import Page

from mgrant_flow.auth.auth_manager import AuthManager
from mgrant_flow.models.auth_state import AuthState, validate
from mgrant_flow.models.config import AppConfig, Credentials

logger = logging.getLogger(__name__)


class AuthSession:
    """Authentication handle shared by all modules of one run."""

    def __init__(
        self,
        config: AppConfig,
        manager: Optional[AuthManager] = None,
        credentials: Optional[Credentials] = None,
    ):
        self.config = config
        self.manager = manager or AuthManager(config)
        self.credentials = credentials or config.credentials

    @property
    def state(self) -> AuthState:
        return self.manager.state

    async def login(self, page: Page) -> bool:
        return await self.manager.perform_login(page, self.credentials)

    async def ensure_if_needed(self, page: Page) -> bool:
        """Keep the current session if it still looks valid, else re-establish it."""
        cached_ok = validate(self.manager.state, self.config.token_key, self.config.user_key)
        if cached_ok and not await self.manager.session_expired(page):
            logger.debug("Cached authentication still valid (attempt %d)",
                         self.manager.state.validation_attempts)
            return True
        if not cached_ok:
            self.manager.reset_auth_state("cached session failed validation")
        logger.info("Re-establishing authentication")
        return await self.manager.ensure_authenticated(page, self.credentials)
