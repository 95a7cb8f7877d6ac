"""Run orchestrator: configuration, browser lifecycle, execution and reporting."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from pathlib import Path
from typing import Optional

from playwright.async_api import async_playwright

from mgrant_flow.core.runner import TestRunner
from mgrant_flow.models.config import AppConfig, ModuleDescriptor
from mgrant_flow.models.test_result import RunResult
from mgrant_flow.reporter.reporter import Reporter, basic_summary
from mgrant_flow.utils.browser import launch_browser

logger = logging.getLogger(__name__)


class Orchestrator:
    """Coordinates one continuous-flow run."""

    def __init__(
        self,
        config: AppConfig,
        manifest_path: str | Path = "test-config.json",
        profile: str = "full",
        headless: Optional[bool] = None,
        runner: Optional[TestRunner] = None,
    ):
        self.config = config
        self.profile = profile
        self.headless = config.headless if headless is None else headless
        self.runner = runner or TestRunner(config, manifest_path, profile)
        self.run_id = f"run_{uuid.uuid4().hex[:8]}"
        self.reports: dict[str, str] = {}

    def plan(self) -> list[ModuleDescriptor]:
        """Load the manifest and return the planned module order without running it."""
        self.runner.load_configuration()
        return self.runner.descriptors

    def run(self) -> RunResult:
        """Execute the configured profile and write reports."""
        return asyncio.run(self._run())

    async def _run(self) -> RunResult:
        # Configuration errors are fatal and must surface before a browser starts
        self.runner.load_configuration()

        started_at = time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
        start = time.time()
        error: Optional[BaseException] = None
        logger.info("=== Starting continuous flow %s (profile '%s') against %s ===",
                    self.run_id, self.profile, self.config.base_url)

        async with async_playwright() as p:
            browser = await launch_browser(p, headless=self.headless)
            try:
                await self.runner.initialize_browser_session(browser)
                try:
                    await self.runner.execute_all_modules()
                except Exception as e:
                    error = e
                    logger.error("Test execution halted: %s", e)
                finally:
                    await self.runner.cleanup()
            finally:
                await browser.close()

        result = self._build_result(started_at, time.time() - start, error)
        self.reports = self._report(result)
        logger.info("=== Run complete: %s ===", basic_summary(result))
        return result

    def _build_result(
        self, started_at: str, duration: float, error: Optional[BaseException]
    ) -> RunResult:
        return RunResult(
            run_id=self.run_id,
            profile=self.profile,
            base_url=self.config.base_url,
            started_at=started_at,
            completed_at=time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            duration_seconds=round(duration, 2),
            stats=self.runner.get_stats(),
            modules=list(self.runner.module_outcomes),
            results=list(self.runner.recorder.results),
            shared_data=dict(self.runner.module_data),
            error=str(error) if error else None,
            error_type=type(error).__name__ if error else None,
        )

    def _report(self, result: RunResult) -> dict[str, str]:
        reporter = Reporter(self.config)
        return reporter.generate_reports(result, output_dir=Path(self.config.report_output_dir))
