from .errors import CheckFailed, SelectorNotFound
from .locator import ElementLocator
from .models import AssertionRule, Check, CheckKind, Outcome, Reason, SuiteResult, normalize_text


async def apply_check(check: Check, handles: list, locator: ElementLocator, rule: AssertionRule) -> None:
    """Raise SelectorNotFound or CheckFailed when the check does not hold for the node set."""
    if not handles and check.needs_nodes:
        raise SelectorNotFound(rule.selector)

    driver = locator.driver
    kind = check.kind
    if kind == CheckKind.EXISTS:
        return
    if kind == CheckKind.ABSENT:
        if handles:
            raise CheckFailed(kind.value, 0, len(handles),
                              f"absent failed: expected no match for {rule.selector.describe()}, found {len(handles)}")
        return
    if kind == CheckKind.VISIBLE:
        for h in handles:
            if await driver.is_visible(h):
                return
        raise CheckFailed(kind.value, True, False,
                          f"visible failed: none of {len(handles)} match(es) for {rule.selector.describe()} is visible")
    if kind == CheckKind.COUNT_EQUALS:
        if len(handles) != check.expected:
            raise CheckFailed(kind.value, check.expected, len(handles))
        return
    if kind == CheckKind.COUNT_AT_LEAST:
        if len(handles) < check.expected:
            raise CheckFailed(kind.value, check.expected, len(handles),
                              f"count_at_least failed: expected at least {check.expected}, got {len(handles)}")
        return
    if kind == CheckKind.ATTRIBUTE_EQUALS:
        actual = await driver.get_attribute(handles[0], check.name)
        if actual != check.expected:
            raise CheckFailed(kind.value, check.expected, actual,
                              f"attribute_equals failed: {check.name} expected {check.expected!r}, got {actual!r}")
        return

    # Text checks read the concatenated rendered text of every match.
    parts = [await driver.get_text(h) for h in handles]
    actual = normalize_text("".join(parts))
    if kind == CheckKind.TEXT_EQUALS:
        if actual != normalize_text(check.expected):
            raise CheckFailed(kind.value, check.expected, actual)
    elif kind == CheckKind.TEXT_MATCHES:
        if not check.compiled.fullmatch(actual):
            flags = "i" if check.ignore_case else ""
            raise CheckFailed(kind.value, f"/{check.expected}/{flags}", actual)


async def evaluate(rule: AssertionRule, locator: ElementLocator, suite: str = "") -> SuiteResult:
    """Resolve the rule's selector once and run its checks in order, stopping at the first failure.

    LocatorError propagates; assertion failures come back as results.
    """
    handles = await locator.resolve(rule.selector)
    for check in rule.checks:
        try:
            await apply_check(check, handles, locator, rule)
        except SelectorNotFound as e:
            if rule.optional:
                return SuiteResult(rule.id, Outcome.SKIPPED, f"optional: {e}", Reason.SELECTOR_NOT_FOUND, suite)
            return SuiteResult(rule.id, Outcome.FAIL, str(e), Reason.SELECTOR_NOT_FOUND, suite,
                               expected=check.describe())
        except CheckFailed as e:
            return SuiteResult(rule.id, Outcome.FAIL, str(e), Reason.CHECK_FAILED, suite,
                               expected=e.expected, actual=e.actual)
    summary = ", ".join(c.describe() for c in rule.checks)
    return SuiteResult(rule.id, Outcome.PASS, f"{rule.selector.describe()}: {summary}", None, suite)
