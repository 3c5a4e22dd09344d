import csv
import html
import json
from collections import Counter
from pathlib import Path

from .models import Outcome, SuiteResult


def summarize(results: list[SuiteResult]) -> dict:
    counts = Counter(r.outcome for r in results)
    return {
        "total": len(results),
        "passed": counts[Outcome.PASS],
        "failed": counts[Outcome.FAIL],
        "error": counts[Outcome.ERROR],
        "timeout": counts[Outcome.TIMEOUT],
        "skipped": counts[Outcome.SKIPPED],
    }


def exit_code(results: list[SuiteResult]) -> int:
    return 1 if any(r.outcome.is_failure for r in results) else 0


def write_results_json(results: list[SuiteResult], path: Path) -> None:
    payload = {"summary": summarize(results), "results": [r.to_dict() for r in results]}
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, default=str)


def write_html_report(results: list[SuiteResult], html_path: Path, title: str = "Page Assertion Report"):
    s = summarize(results)
    page = f"""
<html><head><title>{html.escape(title)}</title>
<style>
body {{ font-family: Arial, sans-serif; padding: 20px; }}
.summary {{ margin-bottom: 16px; }}
.passed {{ color: #0a7b44; }}
.failed, .error, .timeout {{ color: #b00020; }}
.skipped {{ color: #8a6d00; }}
pre {{ background: #f6f8fa; padding: 12px; border-radius: 6px; overflow: auto; }}
</style>
</head><body>
  <h1>{html.escape(title)}</h1>
  <div class="summary">
    <strong>Total:</strong> {s['total']} &nbsp; <strong class="passed">Passed:</strong> {s['passed']} &nbsp;
    <strong class="failed">Failed:</strong> {s['failed']} &nbsp; <strong class="error">Errors:</strong> {s['error']} &nbsp;
    <strong class="timeout">Timeouts:</strong> {s['timeout']} &nbsp; <strong class="skipped">Skipped:</strong> {s['skipped']}
  </div>
  <hr />
  {''.join(render_result(r) for r in results)}
</body></html>
"""
    with open(html_path, "w", encoding="utf-8") as f:
        f.write(page)


def render_result(result: SuiteResult) -> str:
    status = result.outcome.value
    reason = f" ({result.reason.value})" if result.reason else ""
    img_tag = f"<div><img src=\"{html.escape(result.screenshot)}\" style=\"max-width: 100%; border: 1px solid #ddd;\" /></div>" if result.screenshot else ""
    diff = ""
    if result.outcome.is_failure and (result.expected is not None or result.actual is not None):
        diff = f"<pre>expected: {html.escape(repr(result.expected))}\nactual:   {html.escape(repr(result.actual))}</pre>"
    return f"""
  <section>
    <h3 class="{status}">{html.escape(result.suite)} › {html.escape(result.rule_id)} — {status.upper()}{reason}</h3>
    <pre>{html.escape(result.diagnostic)}</pre>
    {diff}
    {img_tag}
  </section>
  <hr />
"""


def log_to_csv(log_path: Path, timestamp: str, results: list[SuiteResult], artifacts: dict):
    csv_exists = log_path.exists()
    s = summarize(results)
    with open(log_path, "a", newline="") as csvfile:
        writer = csv.writer(csvfile)
        if not csv_exists:
            writer.writerow(["Timestamp", "Total", "Passed", "Failed", "Errors", "Timeouts", "Skipped", "Results", "Report"])
        writer.writerow([
            timestamp,
            s["total"],
            s["passed"],
            s["failed"],
            s["error"],
            s["timeout"],
            s["skipped"],
            str(artifacts.get("results")),
            str(artifacts.get("report")),
        ])
