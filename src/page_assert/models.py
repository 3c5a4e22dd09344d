import json
import re
import urllib.parse
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from .errors import LocatorError, RuleDefinitionError


def normalize_text(text: str | None) -> str:
    """Collapse whitespace the way a browser renders it."""
    return " ".join((text or "").split())


def slugify(text: str) -> str:
    text = re.sub(r"[^\w\s-]", "", text)
    text = re.sub(r"[-\s]+", "-", text)
    return text.strip("-").lower()


@dataclass(frozen=True)
class Selector:
    """CSS path plus optional filters applied to each matched node.

    text:          exact match on normalized rendered text
    contains:      substring of normalized rendered text
    text_pattern:  anchored regex on normalized rendered text
    attribute:     (name, value) exact attribute match
    parent:        walk this many ancestors up from each surviving match
    """

    css: str
    text: str | None = None
    contains: str | None = None
    text_pattern: str | None = None
    ignore_case: bool = False
    attribute: tuple[str, str] | None = None
    parent: int = 0
    compiled: re.Pattern | None = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        if not isinstance(self.css, str) or not self.css.strip():
            raise LocatorError("Selector path must be a non-empty CSS expression")
        if self.parent < 0:
            raise LocatorError(f"Selector parent hops must be >= 0, got {self.parent}")
        if self.attribute is not None:
            object.__setattr__(self, "attribute", tuple(self.attribute))
            if len(self.attribute) != 2 or not self.attribute[0]:
                raise LocatorError(f"Selector attribute filter must be (name, value): {self.attribute!r}")
        if self.text_pattern is not None:
            try:
                compiled = re.compile(self.text_pattern, re.I if self.ignore_case else 0)
            except re.error as e:
                raise LocatorError(f"Invalid text pattern {self.text_pattern!r}: {e}") from e
            object.__setattr__(self, "compiled", compiled)

    @property
    def has_filters(self) -> bool:
        return any(v is not None for v in (self.text, self.contains, self.text_pattern, self.attribute))

    def describe(self) -> str:
        parts = [self.css]
        if self.text is not None:
            parts.append(f"text={self.text!r}")
        if self.contains is not None:
            parts.append(f"contains={self.contains!r}")
        if self.text_pattern is not None:
            parts.append(f"pattern=/{self.text_pattern}/{'i' if self.ignore_case else ''}")
        if self.attribute is not None:
            parts.append(f"[{self.attribute[0]}={self.attribute[1]!r}]")
        if self.parent:
            parts.append(f"parent^{self.parent}")
        return " ".join(parts)


class CheckKind(str, Enum):
    EXISTS = "exists"
    ABSENT = "absent"
    VISIBLE = "visible"
    TEXT_EQUALS = "text_equals"
    TEXT_MATCHES = "text_matches"
    ATTRIBUTE_EQUALS = "attribute_equals"
    COUNT_EQUALS = "count_equals"
    COUNT_AT_LEAST = "count_at_least"


_EXPECTS_STRING = (CheckKind.TEXT_EQUALS, CheckKind.TEXT_MATCHES, CheckKind.ATTRIBUTE_EQUALS)
_EXPECTS_COUNT = (CheckKind.COUNT_EQUALS, CheckKind.COUNT_AT_LEAST)


@dataclass(frozen=True)
class Check:
    kind: CheckKind
    expected: Any = None
    name: str | None = None
    ignore_case: bool = False
    compiled: re.Pattern | None = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        try:
            object.__setattr__(self, "kind", CheckKind(self.kind))
        except ValueError as e:
            raise RuleDefinitionError(f"Unknown check kind: {self.kind!r}") from e
        if self.kind in _EXPECTS_STRING and not isinstance(self.expected, str):
            raise RuleDefinitionError(f"{self.kind.value} requires a string expected value")
        if self.kind in _EXPECTS_COUNT and (not isinstance(self.expected, int) or self.expected < 0):
            raise RuleDefinitionError(f"{self.kind.value} requires a non-negative integer")
        if self.kind == CheckKind.ATTRIBUTE_EQUALS and not self.name:
            raise RuleDefinitionError("attribute_equals requires an attribute name")
        if self.kind == CheckKind.TEXT_MATCHES:
            try:
                compiled = re.compile(self.expected, re.I if self.ignore_case else 0)
            except re.error as e:
                raise RuleDefinitionError(f"Invalid text_matches pattern {self.expected!r}: {e}") from e
            object.__setattr__(self, "compiled", compiled)

    @property
    def needs_nodes(self) -> bool:
        return self.kind != CheckKind.ABSENT and not (
            self.kind in _EXPECTS_COUNT and self.expected == 0
        )

    def describe(self) -> str:
        if self.kind == CheckKind.ATTRIBUTE_EQUALS:
            return f"{self.kind.value}({self.name}={self.expected!r})"
        if self.expected is None:
            return self.kind.value
        return f"{self.kind.value}({self.expected!r})"


def exists() -> Check:
    return Check(CheckKind.EXISTS)


def absent() -> Check:
    return Check(CheckKind.ABSENT)


def visible() -> Check:
    return Check(CheckKind.VISIBLE)


def text_equals(expected: str) -> Check:
    return Check(CheckKind.TEXT_EQUALS, expected)


def text_matches(pattern: str, ignore_case: bool = False) -> Check:
    return Check(CheckKind.TEXT_MATCHES, pattern, ignore_case=ignore_case)


def attribute_equals(name: str, value: str) -> Check:
    return Check(CheckKind.ATTRIBUTE_EQUALS, value, name=name)


def count_equals(n: int) -> Check:
    return Check(CheckKind.COUNT_EQUALS, n)


def count_at_least(n: int) -> Check:
    return Check(CheckKind.COUNT_AT_LEAST, n)


@dataclass(frozen=True)
class AssertionRule:
    id: str
    selector: Selector
    checks: tuple[Check, ...]
    optional: bool = False

    def __post_init__(self):
        if not self.id:
            raise RuleDefinitionError("Rule id must be non-empty")
        if not isinstance(self.selector, Selector):
            raise RuleDefinitionError(f"Rule '{self.id}' selector must be a Selector")
        object.__setattr__(self, "checks", tuple(self.checks or ()))
        if not self.checks:
            raise RuleDefinitionError(f"Rule '{self.id}' has no checks")


class Action(str, Enum):
    TYPE = "type"
    CLICK = "click"


@dataclass(frozen=True)
class InteractionStep:
    id: str
    selector: Selector
    action: Action
    text: str | None = None
    expect: AssertionRule | None = None

    def __post_init__(self):
        if not self.id:
            raise RuleDefinitionError("Step id must be non-empty")
        try:
            object.__setattr__(self, "action", Action(self.action))
        except ValueError as e:
            raise RuleDefinitionError(f"Unknown action in step '{self.id}': {self.action!r}") from e
        if self.action == Action.TYPE and not isinstance(self.text, str):
            raise RuleDefinitionError(f"Step '{self.id}' types text but none was given")


@dataclass(frozen=True)
class Scenario:
    """Ordered steps and interleaved rules sharing one fresh PageSession."""

    name: str
    steps: tuple[InteractionStep | AssertionRule, ...]

    def __post_init__(self):
        object.__setattr__(self, "steps", tuple(self.steps))
        if not self.steps:
            raise RuleDefinitionError(f"Scenario '{self.name}' has no steps")

    def result_ids(self) -> list[str]:
        """Ids that produce a result, in execution order."""
        ids = []
        for step in self.steps:
            if isinstance(step, AssertionRule):
                ids.append(step.id)
            elif step.expect is not None:
                ids.append(step.expect.id)
        return ids


@dataclass(frozen=True)
class SuiteDefinition:
    name: str
    target_url: str
    expected_title: str
    rules: tuple[AssertionRule, ...] = ()
    scenarios: tuple[Scenario, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "rules", tuple(self.rules))
        object.__setattr__(self, "scenarios", tuple(self.scenarios))
        if not self.target_url:
            raise RuleDefinitionError(f"Suite '{self.name}' has no target_url")
        ids = [r.id for r in self.rules]
        for sc in self.scenarios:
            ids.extend(sc.result_ids())
        dupes = sorted({i for i in ids if ids.count(i) > 1})
        if dupes:
            raise RuleDefinitionError(f"Suite '{self.name}' has duplicate rule ids: {', '.join(dupes)}")

    def resolve_url(self, base_url: str | None) -> str:
        parsed = urllib.parse.urlparse(self.target_url)
        if (parsed.scheme and parsed.netloc) or not base_url:
            return self.target_url
        return urllib.parse.urljoin(base_url.rstrip("/") + "/", self.target_url.lstrip("/"))


class Outcome(str, Enum):
    PASS = "passed"
    FAIL = "failed"
    ERROR = "error"
    TIMEOUT = "timeout"
    SKIPPED = "skipped"

    @property
    def is_failure(self) -> bool:
        return self in (Outcome.FAIL, Outcome.ERROR, Outcome.TIMEOUT)


class Reason(str, Enum):
    SELECTOR_NOT_FOUND = "SelectorNotFound"
    CHECK_FAILED = "CheckFailed"
    INTERACTION_ABORTED = "InteractionAborted"
    TIMEOUT = "Timeout"
    NAVIGATION_FAILED = "NavigationFailed"
    SCENARIO_ABORTED = "ScenarioAborted"


@dataclass(frozen=True)
class SuiteResult:
    rule_id: str
    outcome: Outcome
    diagnostic: str = ""
    reason: Reason | None = None
    suite: str = ""
    expected: Any = None
    actual: Any = None
    screenshot: str = ""

    @property
    def passed(self) -> bool:
        return self.outcome == Outcome.PASS

    def to_dict(self) -> dict:
        return {
            "rule_id": self.rule_id,
            "suite": self.suite,
            "status": self.outcome.value,
            "reason": self.reason.value if self.reason else None,
            "diagnostic": self.diagnostic,
            "expected": self.expected,
            "actual": self.actual,
            "screenshot": self.screenshot,
        }


class ResultLog:
    """Append-only record of results for one run."""

    def __init__(self):
        self._results: list[SuiteResult] = []

    def record(self, result: SuiteResult) -> SuiteResult:
        self._results.append(result)
        return result

    @property
    def results(self) -> tuple[SuiteResult, ...]:
        return tuple(self._results)

    def failures(self) -> list[SuiteResult]:
        return [r for r in self._results if r.outcome.is_failure]

    def __iter__(self):
        return iter(self.results)

    def __len__(self) -> int:
        return len(self._results)


# --- dict / JSON loading ---------------------------------------------------

def selector_from_dict(data) -> Selector:
    if isinstance(data, Selector):
        return data
    if isinstance(data, str):
        return Selector(data)
    if not isinstance(data, dict):
        raise RuleDefinitionError(f"Selector must be a string or object, got {data!r}")
    unknown = set(data) - {"css", "text", "contains", "text_pattern", "ignore_case", "attribute", "parent"}
    if unknown:
        raise RuleDefinitionError(f"Unknown selector keys: {', '.join(sorted(unknown))}")
    attribute = data.get("attribute")
    if isinstance(attribute, dict):
        attribute = (attribute.get("name"), attribute.get("value"))
    return Selector(
        css=data.get("css", ""),
        text=data.get("text"),
        contains=data.get("contains"),
        text_pattern=data.get("text_pattern"),
        ignore_case=bool(data.get("ignore_case", False)),
        attribute=attribute,
        parent=int(data.get("parent", 0)),
    )


def check_from_dict(data) -> Check:
    if isinstance(data, str):
        return Check(data)
    if not isinstance(data, dict) or "kind" not in data:
        raise RuleDefinitionError(f"Check must be a kind name or object with 'kind': {data!r}")
    kind = data["kind"]
    if kind == CheckKind.TEXT_MATCHES.value:
        return Check(kind, data.get("pattern", data.get("expected")), ignore_case=bool(data.get("ignore_case", False)))
    return Check(kind, data.get("expected"), name=data.get("name"))


def rule_from_dict(data: dict) -> AssertionRule:
    if "selector" not in data:
        raise RuleDefinitionError(f"Rule '{data.get('id', '?')}' has no selector")
    return AssertionRule(
        id=data.get("id", ""),
        selector=selector_from_dict(data["selector"]),
        checks=tuple(check_from_dict(c) for c in data.get("checks", [])),
        optional=bool(data.get("optional", False)),
    )


def step_from_dict(data: dict, default_id: str) -> InteractionStep | AssertionRule:
    action = data.get("action")
    if action == "assert":
        return rule_from_dict({**data, "id": data.get("id", default_id)})
    if action not in (Action.TYPE.value, Action.CLICK.value):
        raise RuleDefinitionError(f"Unknown action in step '{data.get('id', default_id)}': {action!r}")
    if "selector" not in data:
        raise RuleDefinitionError(f"Step '{data.get('id', default_id)}' has no selector")
    expect = data.get("expect")
    step_id = data.get("id", default_id)
    return InteractionStep(
        id=step_id,
        selector=selector_from_dict(data["selector"]),
        action=action,
        text=data.get("text"),
        expect=rule_from_dict({"id": f"{step_id}-expect", **expect}) if expect else None,
    )


def scenario_from_dict(data: dict) -> Scenario:
    name = data.get("name", "scenario")
    slug = slugify(name)
    return Scenario(
        name=name,
        steps=tuple(step_from_dict(s, f"{slug}-step{i:02d}") for i, s in enumerate(data.get("steps", []), start=1)),
    )


def link_rules(container: str, links: list[dict], prefix: str = "link") -> list[AssertionRule]:
    """One rule per {text, href} row: anchor exists, is visible, and points where expected."""
    rules = []
    for row in links:
        text, href = row.get("text"), row.get("href")
        if not text or href is None:
            raise RuleDefinitionError(f"Link rows need 'text' and 'href': {row!r}")
        rules.append(AssertionRule(
            id=f"{prefix}-{slugify(text)}",
            selector=Selector(container, text=text),
            checks=(exists(), visible(), attribute_equals("href", href)),
            optional=bool(row.get("optional", False)),
        ))
    return rules


def suite_from_dict(data: dict) -> SuiteDefinition:
    rules = [rule_from_dict(r) for r in data.get("rules", [])]
    table = data.get("link_table")
    if table:
        rules.extend(link_rules(table.get("container", "a"), table.get("links", []), table.get("prefix", "link")))
    return SuiteDefinition(
        name=data.get("name", "suite"),
        target_url=data.get("target_url", "/"),
        expected_title=data.get("expected_title", ""),
        rules=tuple(rules),
        scenarios=tuple(scenario_from_dict(s) for s in data.get("scenarios", [])),
    )


def load_suites(path: Path) -> list[SuiteDefinition]:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("suites", [data])
    return [suite_from_dict(s) for s in data]
