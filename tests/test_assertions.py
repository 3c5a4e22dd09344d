from unittest.mock import patch

import pytest

from page_assert.assertions import evaluate
from page_assert.locator import ElementLocator
from page_assert.models import (
    AssertionRule,
    Check,
    CheckKind,
    Outcome,
    Reason,
    Selector,
    absent,
    attribute_equals,
    count_at_least,
    count_equals,
    exists,
    text_equals,
    text_matches,
    visible,
)

FOOTER = 'footer[role="contentinfo"] a'


def rule(selector, *checks, optional=False, rule_id="r"):
    return AssertionRule(rule_id, selector, checks, optional=optional)


@pytest.mark.asyncio
@pytest.mark.parametrize("check", [
    exists(),
    visible(),
    text_equals("x"),
    text_matches("x"),
    attribute_equals("href", "/x"),
    count_equals(2),
    count_at_least(1),
])
async def test_zero_matches_is_selector_not_found(driver, check):
    result = await evaluate(rule(Selector(".missing"), check), ElementLocator(driver))
    assert result.outcome == Outcome.FAIL
    assert result.reason == Reason.SELECTOR_NOT_FOUND


@pytest.mark.asyncio
async def test_exists_and_visible_pass(driver):
    result = await evaluate(rule(Selector(FOOTER, text="Meta"), exists(), visible()), ElementLocator(driver))
    assert result.outcome == Outcome.PASS
    assert result.reason is None


@pytest.mark.asyncio
async def test_hidden_node_fails_visible(driver):
    result = await evaluate(rule(Selector(FOOTER, text="Hidden"), exists(), visible()), ElementLocator(driver))
    assert result.outcome == Outcome.FAIL
    assert result.reason == Reason.CHECK_FAILED
    assert "visible" in result.diagnostic


@pytest.mark.asyncio
async def test_visible_passes_if_any_match_visible(driver):
    # Five footer anchors, one of them hidden.
    result = await evaluate(rule(Selector(FOOTER), visible(), count_equals(5)), ElementLocator(driver))
    assert result.outcome == Outcome.PASS


@pytest.mark.asyncio
async def test_text_equals_uses_rendered_text(driver):
    sel = Selector('#loginForm :has(> input[name="username"]) > span')
    result = await evaluate(rule(sel, text_equals("Phone number, username, or email")), ElementLocator(driver))
    assert result.outcome == Outcome.PASS


@pytest.mark.asyncio
async def test_text_equals_mismatch_reports_both_values(driver):
    result = await evaluate(rule(Selector('#loginForm a'), text_equals("Forgot your password?")), ElementLocator(driver))
    assert result.reason == Reason.CHECK_FAILED
    assert result.expected == "Forgot your password?"
    assert result.actual == "Forgot password?"
    assert "Forgot your password?" in result.diagnostic and "Forgot password?" in result.diagnostic


@pytest.mark.asyncio
async def test_text_matches_case_insensitive(driver):
    locator = ElementLocator(driver)
    sel = Selector(FOOTER, text="Meta")
    assert (await evaluate(rule(sel, text_matches("meta", ignore_case=True)), locator)).outcome == Outcome.PASS
    strict = await evaluate(rule(sel, text_matches("meta")), locator)
    assert strict.reason == Reason.CHECK_FAILED


@pytest.mark.asyncio
async def test_text_matches_is_anchored(driver):
    result = await evaluate(rule(Selector(FOOTER, text="Meta"), text_matches("Met")), ElementLocator(driver))
    assert result.outcome == Outcome.FAIL


@pytest.mark.asyncio
async def test_jobs_href_matches(driver):
    jobs = rule(Selector(FOOTER, text="Jobs"), exists(), visible(), attribute_equals("href", "/about/jobs/"))
    assert (await evaluate(jobs, ElementLocator(driver))).outcome == Outcome.PASS


@pytest.mark.asyncio
async def test_jobs_href_mismatch_is_check_failed_with_both_values(driver, login_page):
    jobs_node = [n for n in login_page.nodes[FOOTER] if n.text == "Jobs"][0]
    jobs_node.attrs["href"] = "/careers/"
    jobs = rule(Selector(FOOTER, text="Jobs"), exists(), visible(), attribute_equals("href", "/about/jobs/"))
    result = await evaluate(jobs, ElementLocator(driver))
    assert result.outcome == Outcome.FAIL
    assert result.reason == Reason.CHECK_FAILED
    assert "/about/jobs/" in result.diagnostic and "/careers/" in result.diagnostic
    assert (result.expected, result.actual) == ("/about/jobs/", "/careers/")


@pytest.mark.asyncio
async def test_missing_attribute_reports_none(driver):
    result = await evaluate(rule(Selector(FOOTER, text="Jobs"), attribute_equals("target", "_blank")), ElementLocator(driver))
    assert result.reason == Reason.CHECK_FAILED
    assert result.actual is None


@pytest.mark.asyncio
async def test_stops_at_first_failing_check(driver):
    sel = Selector(FOOTER, text="Hidden")
    locator = ElementLocator(driver)
    with patch.object(driver, "get_attribute", wraps=driver.get_attribute) as spy:
        result = await evaluate(rule(sel, visible(), attribute_equals("href", "/nope/")), locator)
    assert "visible" in result.diagnostic
    spy.assert_not_called()


@pytest.mark.asyncio
async def test_absent_check(driver):
    locator = ElementLocator(driver)
    gone = await evaluate(rule(Selector(FOOTER, text="Nope"), absent()), locator)
    assert gone.outcome == Outcome.PASS
    present = await evaluate(rule(Selector(FOOTER, text="Jobs"), absent()), locator)
    assert present.reason == Reason.CHECK_FAILED


@pytest.mark.asyncio
async def test_count_checks(driver):
    locator = ElementLocator(driver)
    assert (await evaluate(rule(Selector(FOOTER), count_at_least(4)), locator)).passed
    too_few = await evaluate(rule(Selector(FOOTER), count_at_least(10)), locator)
    assert too_few.reason == Reason.CHECK_FAILED and too_few.actual == 5
    assert (await evaluate(rule(Selector(".missing"), Check(CheckKind.COUNT_EQUALS, 0)), locator)).passed


@pytest.mark.asyncio
async def test_optional_rule_missing_is_skipped(driver):
    result = await evaluate(rule(Selector(FOOTER, text="Home & Garden"), exists(), optional=True), ElementLocator(driver))
    assert result.outcome == Outcome.SKIPPED
    assert result.reason == Reason.SELECTOR_NOT_FOUND


@pytest.mark.asyncio
async def test_optional_rule_still_checks_present_elements(driver):
    result = await evaluate(
        rule(Selector(FOOTER, text="Jobs"), attribute_equals("href", "/x/"), optional=True), ElementLocator(driver)
    )
    assert result.outcome == Outcome.FAIL


@pytest.mark.asyncio
async def test_evaluation_is_idempotent(driver):
    locator = ElementLocator(driver)
    r = rule(Selector(FOOTER, text="Jobs"), exists(), attribute_equals("href", "/wrong/"))
    first = await evaluate(r, locator, suite="footer")
    second = await evaluate(r, locator, suite="footer")
    assert first == second
