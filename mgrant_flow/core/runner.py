"""Continuous-flow test runner.

One browser context and one page serve the whole run. Modules execute
strictly in manifest order against that page, so authentication and
in-page state carry over from one module to the next.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from playwright.async_api import Browser, BrowserContext, Page

from mgrant_flow.auth.session import AuthSession
from mgrant_flow.core.recorder import ResultRecorder
from mgrant_flow.core.registry import ModuleEntry, ModuleRegistry, load_builtin_modules
from mgrant_flow.errors import FlowError, ModuleTimeoutError
from mgrant_flow.models.config import AppConfig, Manifest, ModuleDescriptor
from mgrant_flow.models.test_result import (
    ModuleOutcome,
    RunStats,
    TestStatus,
    summarize,
)
from mgrant_flow.utils.browser import create_flow_context

logger = logging.getLogger(__name__)

AUTHENTICATION_MODULE = "Authentication"


@dataclass
class BrowserSession:
    context: BrowserContext
    page: Page


class TestRunner:
    """Executes configured modules in one persistent browser session."""

    __test__ = False  # not a pytest test class

    def __init__(
        self,
        config: AppConfig,
        manifest_path: str | Path = "test-config.json",
        profile: str = "full",
        registry: Optional[ModuleRegistry] = None,
        auth: Optional[AuthSession] = None,
    ):
        self.config = config
        self.manifest_path = Path(manifest_path)
        self.profile = profile
        self.registry = registry or load_builtin_modules()
        self.auth = auth or AuthSession(config)

        self.manifest: Optional[Manifest] = None
        self.plan: list[tuple[ModuleDescriptor, ModuleEntry]] = []
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None
        self.recorder = ResultRecorder(Path(config.screenshot_dir))
        self.module_data: dict[str, Any] = {}
        self.module_outcomes: list[ModuleOutcome] = []
        self.is_authenticated = False

    @property
    def descriptors(self) -> list[ModuleDescriptor]:
        return [descriptor for descriptor, _ in self.plan]

    def load_configuration(self) -> Manifest:
        """Load and validate the manifest and resolve every module entry.

        All configuration errors surface here, before a browser exists.
        """
        manifest = Manifest.load(self.manifest_path)
        descriptors = manifest.descriptors(self.profile)
        self.plan = [(d, self.registry.resolve(d)) for d in descriptors]
        self.manifest = manifest
        logger.info("Configuration loaded: %d modules in profile '%s'",
                    len(self.plan), self.profile)
        return manifest

    async def initialize_browser_session(self, browser: Browser, **options) -> BrowserSession:
        """Open the run's single context and page."""
        if self.page is not None:
            raise FlowError("Browser session already initialized")
        logger.info("Initializing continuous flow browser session...")
        viewport = {"width": self.config.viewport.width, "height": self.config.viewport.height}
        self.context = await create_flow_context(browser, viewport, **options)
        self.page = await self.context.new_page()
        self.page.set_default_navigation_timeout(self.config.timeouts.navigation_ms)
        self.page.set_default_timeout(self.config.timeouts.action_ms)
        self.recorder.page = self.page
        logger.info("Browser session initialized")
        return BrowserSession(context=self.context, page=self.page)

    async def execute_all_modules(self) -> None:
        """Run every planned module in manifest order.

        The first module failure propagates and nothing after it runs.
        """
        if self.manifest is None:
            raise FlowError("Configuration not loaded. Call load_configuration() first.")
        if self.page is None:
            raise FlowError("Browser session not initialized. Call initialize_browser_session() first.")

        total = len(self.plan)
        logger.info("Starting dynamic test execution (%d modules)", total)
        for index, (descriptor, entry) in enumerate(self.plan, 1):
            logger.info("--- Module %d/%d: %s (priority %s) ---",
                        index, total, descriptor.name, descriptor.priority)
            if descriptor.description:
                logger.info("%s", descriptor.description)
            await self.execute_module(descriptor, entry)
        logger.info("All %d modules completed", total)

    async def execute_module(self, descriptor: ModuleDescriptor, entry: ModuleEntry) -> None:
        start = time.time()
        record_result = self.recorder.bind(descriptor.name)
        try:
            await asyncio.wait_for(
                entry(
                    self.page,
                    self.recorder.log_step,
                    record_result,
                    self.module_data,
                    self.is_authenticated,
                    auth=self.auth,
                ),
                timeout=descriptor.timeout_ms / 1000,
            )
        except asyncio.TimeoutError as e:
            error = ModuleTimeoutError(descriptor.name, descriptor.timeout_ms)
            if record_result.cancelled_case is None:
                await record_result(
                    f"{descriptor.name}: module timeout", TestStatus.FAILED,
                    {"timeout_ms": descriptor.timeout_ms},
                )
            self._record_outcome(descriptor, TestStatus.FAILED, start, error)
            logger.error("%s module timed out after %dms", descriptor.name, descriptor.timeout_ms)
            raise error from e
        except Exception as e:
            self._record_outcome(descriptor, TestStatus.FAILED, start, e)
            logger.error("%s module failed: %s", descriptor.name, e)
            raise

        self._record_outcome(descriptor, TestStatus.PASSED, start)
        if descriptor.name == AUTHENTICATION_MODULE:
            self.is_authenticated = True
        logger.info("%s module completed in %.1fs", descriptor.name, time.time() - start)

    def _record_outcome(
        self,
        descriptor: ModuleDescriptor,
        status: TestStatus,
        start: float,
        error: Optional[BaseException] = None,
    ) -> None:
        self.module_outcomes.append(ModuleOutcome(
            name=descriptor.name,
            status=status,
            duration_seconds=round(time.time() - start, 2),
            error=str(error) if error else None,
        ))

    async def cleanup(self) -> None:
        """Close page and context. Errors are logged, never raised."""
        logger.info("Cleaning up browser session...")
        try:
            if self.page is not None:
                await self.page.close()
            if self.context is not None:
                await self.context.close()
        except Exception as e:
            logger.warning("Error during cleanup: %s", e)
        finally:
            self.page = None
            self.context = None
            self.recorder.page = None
        logger.info("Browser session cleaned up")

    def get_stats(self) -> RunStats:
        results = self.recorder.results
        overall = summarize(results)
        return RunStats(
            total_steps=self.recorder.current_step,
            total_tests=overall.total,
            passed_tests=overall.passed,
            failed_tests=overall.failed,
            success_rate=overall.success_rate,
            modules_passed=sum(1 for m in self.module_outcomes if m.status == TestStatus.PASSED),
            modules_failed=sum(1 for m in self.module_outcomes if m.status == TestStatus.FAILED),
            is_authenticated=self.is_authenticated,
            module_results={
                name: summarize(group)
                for name, group in self.recorder.group_results_by_module().items()
            },
        )
