"""Report generation orchestration."""

from __future__ import annotations

import logging
from pathlib import Path

from mgrant_flow.models.config import AppConfig
from mgrant_flow.models.test_result import RunResult

from .html_report import generate_html_report
from .json_report import generate_json_report

logger = logging.getLogger(__name__)


class Reporter:
    """Generates reports from a run result."""

    def __init__(self, config: AppConfig):
        self.config = config

    def generate_reports(
        self,
        run_result: RunResult,
        output_dir: Path | None = None,
    ) -> dict[str, str]:
        """Generate all configured report formats. Returns format -> file path."""
        out_dir = output_dir or Path(self.config.report_output_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        generated = {}
        logger.debug("Report output directory: %s", out_dir)

        if "html" in self.config.report_formats:
            path = out_dir / f"report_{run_result.run_id}.html"
            generate_html_report(run_result, path)
            generated["html"] = str(path)
            logger.info("HTML report: %s", path)

        if "json" in self.config.report_formats:
            path = out_dir / f"report_{run_result.run_id}.json"
            generate_json_report(run_result, path)
            generated["json"] = str(path)
            logger.info("JSON report: %s", path)

        return generated


def basic_summary(run_result: RunResult) -> str:
    """One-paragraph plain-text summary of a run."""
    stats = run_result.stats
    parts = [
        f"Ran profile '{run_result.profile}' against {run_result.base_url}: "
        f"{stats.total_tests} tests in {run_result.duration_seconds:.1f}s.",
        f"Results: {stats.passed_tests} passed, {stats.failed_tests} failed "
        f"({stats.success_rate}% success).",
    ]
    failures = [r for r in run_result.results if r.status == "FAILED"]
    if failures:
        parts.append(f"Failed: {', '.join(f.test_name for f in failures[:5])}.")
    if run_result.error:
        parts.append(f"Run halted by {run_result.error_type}: {run_result.error}")
    return " ".join(parts)
