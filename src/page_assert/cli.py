#!/usr/bin/env python3

import argparse
import asyncio
import os
from datetime import datetime
from importlib import resources
from pathlib import Path

from .errors import PageAssertError
from .models import load_suites
from .report import exit_code, log_to_csv, summarize, write_html_report, write_results_json
from .runner import run_suites

DEFAULT_BASE_URL = "https://www.instagram.com"


def bundled_suite_path() -> Path:
    return Path(str(resources.files("page_assert") / "suites" / "instagram_login.json"))


def env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except ValueError:
        raise SystemExit(f"{name} must be an integer, got {os.environ.get(name)!r}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Declarative page assertions → Playwright → report")
    parser.add_argument("--base-url", default=os.environ.get("PAGE_ASSERT_BASE_URL", DEFAULT_BASE_URL),
                        help="Base URL that relative suite target_url values are joined to")
    parser.add_argument("--suite-file", help="Path to a suite definition JSON file (default: bundled login page suite)")
    parser.add_argument("--timeout-ms", type=int, default=env_int("PAGE_ASSERT_TIMEOUT_MS", 30000),
                        help="Budget for each navigation, rule and step")
    parser.add_argument("--run-dir", help="Directory for results, report and screenshots")
    parser.add_argument("--skip-optional", action="store_true", help="Do not run rules marked optional")
    parser.add_argument("--headful", action="store_true", help="Run browser headful for debugging")
    parser.add_argument("--verbose", action="store_true", help="Print step and selector logs")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    run_dir = Path(args.run_dir) if args.run_dir else Path(f"data/runs/run_{timestamp}")
    screenshots_dir = run_dir / "screenshots"
    run_dir.mkdir(parents=True, exist_ok=True)

    suite_path = Path(args.suite_file) if args.suite_file else bundled_suite_path()
    try:
        suites = load_suites(suite_path)
    except (OSError, ValueError, PageAssertError) as e:
        print(f"✖ Could not load suites from {suite_path}: {e}")
        return 2
    print(f"📄 Loaded {len(suites)} suite(s) from {suite_path}")

    print("🏃 Running page assertions with Playwright...")
    try:
        results = asyncio.run(run_suites(
            suites,
            base_url=args.base_url,
            headless=(not args.headful),
            timeout_ms=args.timeout_ms,
            screenshot_dir=screenshots_dir,
            skip_optional=args.skip_optional,
            verbose=args.verbose,
        ))
    except PageAssertError as e:
        print(f"✖ Run halted: {e}")
        return 2

    results_path = run_dir / "results.json"
    write_results_json(results, results_path)
    print(f"📊 Results written: {results_path}")

    report_path = run_dir / "report.html"
    write_html_report(results, report_path)
    print(f"📝 HTML report: {report_path}")

    log_to_csv(run_dir.parent / "run_log.csv", timestamp, results, {"results": results_path, "report": report_path})

    s = summarize(results)
    print(f"✅ Done. Total: {s['total']}, Passed: {s['passed']}, Failed: {s['failed']}, "
          f"Errors: {s['error']}, Timeouts: {s['timeout']}, Skipped: {s['skipped']}")
    return exit_code(results)


if __name__ == "__main__":
    raise SystemExit(main())
