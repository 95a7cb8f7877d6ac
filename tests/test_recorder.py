"""Tests for the result recorder."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from mgrant_flow.core.recorder import ResultRecorder
from mgrant_flow.errors import RecordedTestFailure


@pytest.fixture
def recorder(tmp_path, mock_page) -> ResultRecorder:
    return ResultRecorder(tmp_path / "shots", page=mock_page)


class TestLogStep:
    def test_steps_increment(self, recorder):
        assert recorder.log_step("first") == 1
        assert recorder.log_step("second") == 2
        assert recorder.current_step == 2

    @pytest.mark.asyncio
    async def test_result_carries_current_step(self, recorder):
        recorder.log_step("one")
        recorder.log_step("two")
        result = await recorder.record_result("Authentication", "TC002", "PASSED")
        assert result.step_number == 2


class TestRecordResult:
    @pytest.mark.asyncio
    async def test_passed_result_takes_no_screenshot(self, recorder, mock_page):
        result = await recorder.record_result("Authentication", "TC001", "PASSED", "ok")
        assert result.screenshot_path is None
        assert result.details == "ok"
        mock_page.screenshot.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_result_takes_screenshot(self, recorder, mock_page, tmp_path):
        result = await recorder.record_result("Organisation", "TC005: Page Access", "FAILED", "boom")
        assert result.screenshot_path is not None
        assert Path(result.screenshot_path).parent == tmp_path / "shots"
        assert Path(result.screenshot_path).name.startswith("TC005__Page_Access_")
        mock_page.screenshot.assert_awaited_once()
        assert mock_page.screenshot.call_args.kwargs["full_page"] is True

    @pytest.mark.asyncio
    async def test_explicit_screenshot_on_pass(self, recorder, mock_page):
        result = await recorder.record_result("Org", "TC006", "PASSED", capture_screenshot=True)
        assert result.screenshot_path is not None

    @pytest.mark.asyncio
    async def test_screenshot_error_still_records_failure(self, recorder, mock_page):
        mock_page.screenshot = AsyncMock(side_effect=RuntimeError("page crashed"))
        result = await recorder.record_result("Org", "TC005", "FAILED", "boom")
        assert result.status == "FAILED"
        assert result.screenshot_path is None
        assert recorder.results == [result]

    @pytest.mark.asyncio
    async def test_no_page_skips_screenshot(self, tmp_path):
        recorder = ResultRecorder(tmp_path)
        result = await recorder.record_result("Org", "TC005", "FAILED")
        assert result.screenshot_path is None

    @pytest.mark.asyncio
    async def test_invalid_status_rejected(self, recorder):
        with pytest.raises(ValueError):
            await recorder.record_result("Org", "TC005", "SKIPPED")

    @pytest.mark.asyncio
    async def test_results_grouped_by_module_in_order(self, recorder):
        await recorder.record_result("Authentication", "TC001", "PASSED")
        await recorder.record_result("Organisation", "TC005", "PASSED")
        await recorder.record_result("Authentication", "TC003", "PASSED")
        grouped = recorder.group_results_by_module()
        assert list(grouped) == ["Authentication", "Organisation"]
        assert [r.test_name for r in grouped["Authentication"]] == ["TC001", "TC003"]


class TestModuleRecorder:
    @pytest.mark.asyncio
    async def test_bound_recorder_tags_module(self, recorder):
        record = recorder.bind("Masters-Beneficiary")
        result = await record("TC008", "PASSED")
        assert result.module_name == "Masters-Beneficiary"

    @pytest.mark.asyncio
    async def test_case_records_pass(self, recorder):
        async with recorder.bind("Authentication").case("TC001: Form"):
            pass
        (result,) = recorder.results
        assert result.status == "PASSED"
        assert result.step_number == 1

    @pytest.mark.asyncio
    async def test_case_absorbs_recorded_failure(self, recorder):
        record = recorder.bind("Organisation")
        async with record.case("TC006: Search"):
            raise RecordedTestFailure("not found", {"term": "x"})
        async with record.case("TC007: Projects"):
            pass
        first, second = recorder.results
        assert first.status == "FAILED"
        assert first.details == {"term": "x"}
        assert first.screenshot_path is not None
        assert second.status == "PASSED"

    @pytest.mark.asyncio
    async def test_case_reraises_other_errors(self, recorder):
        with pytest.raises(RuntimeError, match="selector timed out"):
            async with recorder.bind("Organisation").case("TC005"):
                raise RuntimeError("selector timed out")
        (result,) = recorder.results
        assert result.status == "FAILED"
        assert result.details == "selector timed out"
