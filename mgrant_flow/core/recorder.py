"""Result recorder: per-test-case result log with screenshot-on-failure."""

from __future__ import annotations

import asyncio
import logging
import re
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Optional

from playwright.async_api import Page

from mgrant_flow.errors import RecordedTestFailure
from mgrant_flow.models.test_result import ExecutionResult, TestStatus

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9]")


class ResultRecorder:
    """Append-only log of test case results for one run."""

    def __init__(self, screenshot_dir: Path, page: Optional[Page] = None):
        self.screenshot_dir = Path(screenshot_dir)
        self.page = page
        self.current_step = 0
        self.results: list[ExecutionResult] = []

    def log_step(self, step: str) -> int:
        self.current_step += 1
        logger.info("Flow step %d: %s", self.current_step, step)
        return self.current_step

    async def record_result(
        self,
        module_name: str,
        test_name: str,
        status: TestStatus | str,
        details: Any = None,
        capture_screenshot: bool = False,
    ) -> ExecutionResult:
        status = TestStatus(status)
        screenshot_path = None
        if status == TestStatus.FAILED or capture_screenshot:
            screenshot_path = await self.take_screenshot(test_name)

        result = ExecutionResult(
            step_number=self.current_step,
            test_name=test_name,
            module_name=module_name,
            status=status,
            details=details,
            screenshot_path=screenshot_path,
        )
        self.results.append(result)
        logger.info("Result: %s - %s", test_name, status.value)
        return result

    async def take_screenshot(self, test_name: str) -> Optional[str]:
        """Capture a full-page screenshot. Failures are logged, never raised."""
        if self.page is None:
            logger.warning("Screenshot skipped for %s: no page attached", test_name)
            return None
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%f")
        path = self.screenshot_dir / f"{_UNSAFE_CHARS.sub('_', test_name)}_{stamp}.png"
        try:
            self.screenshot_dir.mkdir(parents=True, exist_ok=True)
            await self.page.screenshot(path=str(path), full_page=True)
        except Exception as e:
            logger.warning("Failed to capture screenshot for %s: %s", test_name, e)
            return None
        logger.info("Screenshot captured: %s", path.name)
        return str(path)

    def group_results_by_module(self) -> dict[str, list[ExecutionResult]]:
        grouped: dict[str, list[ExecutionResult]] = {}
        for result in self.results:
            grouped.setdefault(result.module_name, []).append(result)
        return grouped

    def bind(self, module_name: str) -> "ModuleRecorder":
        return ModuleRecorder(self, module_name)


class ModuleRecorder:
    """``record_result`` callable handed to one module.

    Every result it records carries the module's identifier.
    """

    def __init__(self, recorder: ResultRecorder, module_name: str):
        self.recorder = recorder
        self.module_name = module_name
        self.cancelled_case: Optional[str] = None

    async def __call__(
        self,
        test_name: str,
        status: TestStatus | str,
        details: Any = None,
        capture_screenshot: bool = False,
    ) -> ExecutionResult:
        return await self.recorder.record_result(
            self.module_name, test_name, status, details, capture_screenshot
        )

    @asynccontextmanager
    async def case(self, test_name: str) -> AsyncIterator[None]:
        """Run one test case.

        ``RecordedTestFailure`` marks the case FAILED and is absorbed; any
        other exception is recorded and re-raised to halt the run.
        Cancellation from a module timeout is recorded the same way.
        """
        self.recorder.log_step(test_name)
        try:
            yield
        except RecordedTestFailure as e:
            logger.warning("%s failed: %s", test_name, e)
            await self(test_name, TestStatus.FAILED, e.details)
        except Exception as e:
            logger.error("%s failed fatally: %s", test_name, e)
            await self(test_name, TestStatus.FAILED, str(e))
            raise
        except asyncio.CancelledError:
            self.cancelled_case = test_name
            logger.error("%s cancelled: module timed out", test_name)
            await self(test_name, TestStatus.FAILED, "Cancelled: module timed out")
            raise
        else:
            await self(test_name, TestStatus.PASSED)
