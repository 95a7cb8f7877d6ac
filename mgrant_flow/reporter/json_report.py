"""JSON report output."""

from __future__ import annotations

import json
from pathlib import Path

from mgrant_flow.models.test_result import RunResult


def generate_json_report(run_result: RunResult, output_path: Path) -> None:
    """Write a machine-readable JSON report."""
    report = run_result.model_dump()
    report["exit_code"] = run_result.exit_code
    report["modules_by_name"] = {
        name: [r.test_name for r in run_result.results if r.module_name == name]
        for name in dict.fromkeys(r.module_name for r in run_result.results)
    }

    with open(output_path, "w") as f:
        json.dump(report, f, indent=2, default=str)
