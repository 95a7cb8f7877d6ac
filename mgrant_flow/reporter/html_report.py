"""HTML report generator: self-contained, grouped by module."""

from __future__ import annotations

import base64
import html
import json
import logging
from pathlib import Path

from mgrant_flow.models.test_result import ExecutionResult, ModuleOutcome, RunResult, summarize

logger = logging.getLogger(__name__)


def _embed_image(path: str) -> str:
    """Read an image file and return a base64 data URI, or empty string on failure."""
    try:
        p = Path(path)
        if not p.exists() or p.stat().st_size == 0:
            return ""
        with open(p, "rb") as f:
            data = base64.b64encode(f.read()).decode()
        return f"data:image/png;base64,{data}"
    except OSError as e:
        logger.debug("Could not embed %s: %s", path, e)
        return ""


def _format_details(details) -> str:
    if details is None:
        return ""
    if isinstance(details, str):
        return details
    return json.dumps(details, indent=2, default=str)


def _build_case_row(r: ExecutionResult) -> str:
    status = r.status.value.lower()
    row = f'''
    <div class="test-case">
      <div class="test-name">
        <span class="badge {status}">{r.status.value}</span>
        <strong>{html.escape(r.test_name)}</strong>
        <span class="test-meta">step {r.step_number} &middot; {r.timestamp:%H:%M:%S}</span>
      </div>'''
    details = _format_details(r.details)
    if details:
        row += f'<pre class="test-details">{html.escape(details[:2000])}</pre>'
    if r.screenshot_path:
        data_uri = _embed_image(r.screenshot_path)
        label = html.escape(Path(r.screenshot_path).name)
        if data_uri:
            row += (f'<div class="screenshot"><img src="{data_uri}" alt="{label}" loading="lazy" '
                    f'onclick="this.classList.toggle(\'zoomed\')"/><div class="screenshot-label">{label}</div></div>')
        else:
            row += f'<div class="screenshot-label">Screenshot: {label}</div>'
    row += '</div>'
    return row


def _build_module_section(name: str, results: list[ExecutionResult],
                          outcome: ModuleOutcome | None) -> str:
    stats = summarize(results)
    phase = ""
    if outcome is not None:
        phase = f'<span class="badge {outcome.status.value.lower()}">module {outcome.status.value}</span>'
    error = ""
    if outcome is not None and outcome.error:
        error = f'<div class="failure-banner"><strong>Module error:</strong> {html.escape(outcome.error)}</div>'
    rows = "".join(_build_case_row(r) for r in results)
    return f'''
  <div class="module">
    <div class="module-header">
      <h3 class="module-title">{html.escape(name)} {phase}</h3>
      <p class="module-meta">Tests: {stats.total} &middot; Passed: {stats.passed} &middot; Failed: {stats.failed} &middot; Success: {stats.success_rate}%</p>
    </div>
    {error}
    {rows or '<div class="test-case empty">No test cases recorded</div>'}
  </div>'''


def generate_html_report(run_result: RunResult, output_path: Path) -> None:
    """Generate a self-contained HTML report with one section per module."""
    outcomes = {m.name: m for m in run_result.modules}
    grouped: dict[str, list[ExecutionResult]] = {}
    for r in run_result.results:
        grouped.setdefault(r.module_name, []).append(r)
    # modules that ran but recorded nothing still get a section
    for name in outcomes:
        grouped.setdefault(name, [])

    sections = "".join(
        _build_module_section(name, results, outcomes.get(name))
        for name, results in grouped.items()
    )

    halted = ""
    if run_result.error:
        halted = (f'<div class="failure-banner"><strong>Run halted ({html.escape(run_result.error_type or "error")}):'
                  f'</strong> {html.escape(run_result.error)}</div>')

    stats = run_result.stats
    report_html = f'''<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>MGrant Flow Report &mdash; {html.escape(run_result.run_id)}</title>
<style>
  :root {{ --pass: #22c55e; --fail: #ef4444; --bg: #f8fafc; --card: white; --border: #e2e8f0; --text: #1e293b; --muted: #64748b; }}
  * {{ margin: 0; padding: 0; box-sizing: border-box; }}
  body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; background: var(--bg); color: var(--text); line-height: 1.6; padding: 1.5rem; }}
  .container {{ max-width: 1200px; margin: 0 auto; }}
  h1 {{ font-size: 1.8rem; margin-bottom: 0.3rem; }}
  .meta {{ color: var(--muted); margin-bottom: 1.5rem; font-size: 0.9rem; }}
  .summary {{ display: grid; grid-template-columns: repeat(auto-fit, minmax(130px, 1fr)); gap: 0.8rem; margin-bottom: 1.5rem; }}
  .stat {{ background: var(--card); border-radius: 8px; padding: 1rem; box-shadow: 0 1px 3px rgba(0,0,0,0.08); text-align: center; }}
  .stat .value {{ font-size: 1.8rem; font-weight: 700; }}
  .stat .label {{ font-size: 0.8rem; color: var(--muted); }}
  .stat.pass .value {{ color: var(--pass); }}
  .stat.fail .value {{ color: var(--fail); }}
  .badge {{ display: inline-block; padding: 0.15rem 0.55rem; border-radius: 9999px; font-size: 0.7rem; font-weight: 600; text-transform: uppercase; }}
  .badge.passed {{ background: #dcfce7; color: #166534; }}
  .badge.failed {{ background: #fecaca; color: #991b1b; }}
  .failure-banner {{ background: #fef2f2; border: 1px solid #fecaca; color: #991b1b; border-radius: 6px; padding: 0.6rem 0.8rem; margin: 0.8rem 0; font-size: 0.88rem; }}
  .module {{ background: var(--card); border-radius: 8px; margin-bottom: 1rem; box-shadow: 0 1px 3px rgba(0,0,0,0.08); overflow: hidden; }}
  .module-header {{ background: #f1f5f9; padding: 0.8rem 1rem; border-bottom: 1px solid var(--border); }}
  .module-title {{ font-size: 1.1rem; }}
  .module-meta {{ color: var(--muted); font-size: 0.85rem; }}
  .test-case {{ padding: 0.7rem 1rem; border-bottom: 1px solid #f1f5f9; }}
  .test-case:last-child {{ border-bottom: none; }}
  .test-case.empty {{ color: var(--muted); font-size: 0.85rem; }}
  .test-meta {{ font-size: 0.78rem; color: var(--muted); }}
  .test-details {{ background: #1e293b; color: #f1f5f9; padding: 0.6rem; border-radius: 6px; font-size: 0.78rem; margin-top: 0.4rem; white-space: pre-wrap; }}
  .screenshot img {{ max-width: 320px; margin-top: 0.4rem; border-radius: 6px; border: 1px solid var(--border); cursor: pointer; }}
  .screenshot img.zoomed {{ position: fixed; top: 5%; left: 5%; width: 90%; height: 90%; max-width: none; object-fit: contain; z-index: 1000; background: rgba(0,0,0,0.85); padding: 1rem; }}
  .screenshot-label {{ font-size: 0.75rem; color: var(--muted); }}
</style>
</head>
<body>
<div class="container">
  <h1>MGrant Test Automation Report</h1>
  <p class="meta">Run: {html.escape(run_result.run_id)} &middot; Profile: {html.escape(run_result.profile)} &middot; Target: {html.escape(run_result.base_url)} &middot; {html.escape(run_result.started_at)} &middot; Duration: {run_result.duration_seconds}s</p>

  <div class="summary">
    <div class="stat"><div class="value">{stats.total_tests}</div><div class="label">Total Tests</div></div>
    <div class="stat pass"><div class="value">{stats.passed_tests}</div><div class="label">Passed</div></div>
    <div class="stat fail"><div class="value">{stats.failed_tests}</div><div class="label">Failed</div></div>
    <div class="stat"><div class="value">{stats.success_rate}%</div><div class="label">Success Rate</div></div>
    <div class="stat"><div class="value">{stats.modules_passed}/{len(run_result.modules)}</div><div class="label">Modules Passed</div></div>
  </div>

  {halted}
  {sections}
</div>
</body>
</html>'''

    with open(output_path, "w", encoding="utf-8") as f:
        f.write(report_html)
