from .assertions import evaluate
from .errors import (
    CheckFailed,
    InteractionAborted,
    LocatorError,
    PageAssertError,
    RuleDefinitionError,
    SelectorNotFound,
    SessionStateError,
)
from .interactions import execute
from .locator import ElementLocator
from .models import (
    Action,
    AssertionRule,
    Check,
    CheckKind,
    InteractionStep,
    Outcome,
    Reason,
    Scenario,
    Selector,
    SuiteDefinition,
    SuiteResult,
    load_suites,
)
from .runner import SuiteRunner, run_suites
from .session import NavigationState, PageSession

__version__ = "0.1.0"
