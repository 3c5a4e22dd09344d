class PageAssertError(Exception):
    """Base for errors raised by page-assert itself."""


class LocatorError(PageAssertError):
    """Malformed selector or stale scope handle. Halts the whole run."""


class RuleDefinitionError(PageAssertError, ValueError):
    """A rule, step or suite definition is invalid."""


class SessionStateError(PageAssertError):
    """PageSession used outside its lifecycle (re-navigation, two active sessions)."""


class SelectorNotFound(AssertionError):
    def __init__(self, selector, message: str | None = None):
        self.selector = selector
        super().__init__(message or f"No element matched {selector.describe()}")


class CheckFailed(AssertionError):
    def __init__(self, kind: str, expected=None, actual=None, message: str | None = None):
        self.kind = kind
        self.expected = expected
        self.actual = actual
        super().__init__(message or f"{kind} failed: expected {expected!r}, got {actual!r}")


class InteractionAborted(PageAssertError):
    def __init__(self, step_id: str, reason: str):
        self.step_id = step_id
        self.reason = reason
        super().__init__(f"Step '{step_id}' aborted: {reason}")
