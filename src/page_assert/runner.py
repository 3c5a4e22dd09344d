import asyncio
import os
import re
from dataclasses import replace
from pathlib import Path

from .assertions import evaluate
from .driver import BrowserHost, PlaywrightHost
from .errors import InteractionAborted, PageAssertError
from .interactions import execute
from .locator import ElementLocator
from .models import (
    AssertionRule,
    InteractionStep,
    Outcome,
    Reason,
    ResultLog,
    Scenario,
    SuiteDefinition,
    SuiteResult,
)
from .session import PageSession


def sanitize_for_filename(text: str) -> str:
    """Sanitize text for use in filenames."""
    text = re.sub(r'[^\w\s-]', '', text)
    text = re.sub(r'[-\s]+', '_', text)
    return text.strip('_').lower()[:100]


class SuiteRunner:
    """Runs suites sequentially against one BrowserHost.

    Read-only rules of a suite share a single PageSession. Every scenario gets
    its own fresh PageSession. One failing rule never stops its siblings; a
    failing step stops only the rest of its scenario. LocatorError and other
    definition errors propagate and end the run.
    """

    def __init__(
        self,
        host: BrowserHost,
        base_url: str | None = None,
        timeout: float | None = 30.0,
        screenshot_dir: Path | None = None,
        skip_optional: bool = False,
        verbose: bool = False,
    ):
        self.host = host
        self.base_url = base_url
        self.timeout = timeout
        self.screenshot_dir = screenshot_dir
        self.skip_optional = skip_optional
        self.verbose = verbose
        self.log = ResultLog()

    async def run(self, suites: list[SuiteDefinition]) -> list[SuiteResult]:
        for suite in suites:
            if self.verbose:
                print(f"\n===== Running Suite: {suite.name} =====")
            rules = [r for r in suite.rules if not (self.skip_optional and r.optional)]
            if rules:
                await self._run_rules(suite, rules)
            for scenario in suite.scenarios:
                await self._run_scenario(suite, scenario)
        return list(self.log.results)

    def _new_session(self, suite: SuiteDefinition) -> PageSession:
        return PageSession(
            self.host,
            suite.resolve_url(self.base_url),
            suite.expected_title,
            timeout=self.timeout,
            verbose=self.verbose,
        )

    async def _run_rules(self, suite: SuiteDefinition, rules: list[AssertionRule]) -> None:
        async with self._new_session(suite) as session:
            await session.navigate()
            if not session.ready:
                self._record_navigation_failure(suite, session, [r.id for r in rules])
                return
            locator = ElementLocator(session.driver, verbose=self.verbose)
            for rule in rules:
                try:
                    result = await asyncio.wait_for(evaluate(rule, locator, suite=suite.name), timeout=self.timeout)
                except asyncio.TimeoutError:
                    result = self._timeout_result(suite, rule.id)
                except PageAssertError:
                    raise
                except Exception as e:
                    result = SuiteResult(rule.id, Outcome.ERROR, f"Driver error: {e}", None, suite.name)
                result = await self._attach_screenshot(session, result, suite)
                self._record(result)

    async def _run_scenario(self, suite: SuiteDefinition, scenario: Scenario) -> None:
        if self.verbose:
            print(f"\n===== Running Scenario: {scenario.name} =====")
        async with self._new_session(suite) as session:
            await session.navigate()
            if not session.ready:
                self._record_navigation_failure(suite, session, scenario.result_ids() or [scenario.name])
                return
            locator = ElementLocator(session.driver, verbose=self.verbose)
            for idx, step in enumerate(scenario.steps):
                if self.verbose:
                    print(f"→ Step {idx + 1}/{len(scenario.steps)}: {step.id}")
                result_id = step.id if isinstance(step, AssertionRule) else (step.expect.id if step.expect else step.id)
                try:
                    if isinstance(step, InteractionStep):
                        result = await asyncio.wait_for(
                            execute(step, locator, suite=suite.name, verbose=self.verbose), timeout=self.timeout
                        )
                    else:
                        result = await asyncio.wait_for(evaluate(step, locator, suite=suite.name), timeout=self.timeout)
                except asyncio.TimeoutError:
                    self._record(await self._attach_screenshot(session, self._timeout_result(suite, result_id), suite))
                    self._abort_rest(suite, scenario, idx, f"step '{step.id}' timed out")
                    return
                except InteractionAborted as e:
                    aborted = SuiteResult(result_id, Outcome.ERROR, str(e), Reason.INTERACTION_ABORTED, suite.name)
                    self._record(await self._attach_screenshot(session, aborted, suite))
                    self._abort_rest(suite, scenario, idx, f"step '{step.id}' aborted")
                    return
                except PageAssertError:
                    raise
                except Exception as e:
                    failed = SuiteResult(result_id, Outcome.ERROR, f"Driver error: {e}", None, suite.name)
                    self._record(await self._attach_screenshot(session, failed, suite))
                    self._abort_rest(suite, scenario, idx, f"step '{step.id}' errored")
                    return
                if result is None:
                    continue
                self._record(await self._attach_screenshot(session, result, suite))
                if result.outcome.is_failure:
                    # Later steps depend on the state this one should have produced.
                    self._abort_rest(suite, scenario, idx, f"expectation '{result.rule_id}' failed")
                    return

    def _abort_rest(self, suite: SuiteDefinition, scenario: Scenario, failed_idx: int, why: str) -> None:
        for step in scenario.steps[failed_idx + 1:]:
            if isinstance(step, InteractionStep):
                if step.expect is None:
                    continue
                rule_id = step.expect.id
            else:
                rule_id = step.id
            self._record(SuiteResult(rule_id, Outcome.SKIPPED, f"not run: {why}", Reason.SCENARIO_ABORTED, suite.name))

    def _record_navigation_failure(self, suite: SuiteDefinition, session: PageSession, rule_ids: list[str]) -> None:
        if session.timed_out:
            outcome, reason = Outcome.TIMEOUT, Reason.TIMEOUT
        else:
            outcome, reason = Outcome.ERROR, Reason.NAVIGATION_FAILED
        for rule_id in rule_ids:
            self._record(SuiteResult(rule_id, outcome, session.diagnostic, reason, suite.name,
                                     expected=session.expected_title))

    def _timeout_result(self, suite: SuiteDefinition, rule_id: str) -> SuiteResult:
        return SuiteResult(rule_id, Outcome.TIMEOUT, f"Driver did not respond within {self.timeout}s",
                           Reason.TIMEOUT, suite.name)

    async def _attach_screenshot(self, session: PageSession, result: SuiteResult, suite: SuiteDefinition) -> SuiteResult:
        if not result.outcome.is_failure or self.screenshot_dir is None or session.driver is None:
            return result
        self.screenshot_dir.mkdir(parents=True, exist_ok=True)
        shot = self.screenshot_dir / f"{sanitize_for_filename(suite.name)}_{sanitize_for_filename(result.rule_id)}_failure.png"
        try:
            delay_ms = int(os.environ.get("SCREENSHOT_DELAY_MS", "0"))
        except ValueError:
            delay_ms = 0
        try:
            if delay_ms > 0:
                await asyncio.sleep(delay_ms / 1000)
            await asyncio.wait_for(session.driver.screenshot(shot), timeout=self.timeout)
        except Exception as e:
            if self.verbose:
                print(f"⚠️ Could not save failure screenshot: {e}")
            return result
        if self.verbose:
            print(f"📸 Failure screenshot saved: {shot.name}")
        return replace(result, screenshot=str(shot))

    def _record(self, result: SuiteResult) -> None:
        self.log.record(result)
        label = f"{result.suite} › {result.rule_id}"
        if result.outcome == Outcome.PASS:
            print(f"✓ Passed: {label}")
        elif result.outcome == Outcome.SKIPPED:
            print(f"↷ Skipped: {label} — {result.diagnostic}")
        else:
            diag = result.diagnostic if len(result.diagnostic) < 300 else (result.diagnostic[:297] + "...")
            print(f"✖ {result.outcome.value.capitalize()}: {label} — {diag}")


async def run_suites(
    suites: list[SuiteDefinition],
    base_url: str | None = None,
    headless: bool = True,
    timeout_ms: int = 30000,
    screenshot_dir: Path | None = None,
    skip_optional: bool = False,
    verbose: bool = False,
) -> list[SuiteResult]:
    async with PlaywrightHost(headless=headless, timeout_ms=timeout_ms, verbose=verbose) as host:
        runner = SuiteRunner(
            host,
            base_url=base_url,
            timeout=timeout_ms / 1000,
            screenshot_dir=screenshot_dir,
            skip_optional=skip_optional,
            verbose=verbose,
        )
        return await runner.run(suites)
