from .assertions import evaluate
from .errors import InteractionAborted, LocatorError
from .locator import ElementLocator
from .models import Action, InteractionStep, SuiteResult


async def execute(step: InteractionStep, locator: ElementLocator, suite: str = "", verbose: bool = False) -> SuiteResult | None:
    """Perform one action, then evaluate its expectation against freshly resolved nodes.

    Raises InteractionAborted when the target cannot be located or the action fails.
    Returns the expectation's result, or None when the step has no expectation.
    """
    handles = await locator.resolve(step.selector)
    if not handles:
        raise InteractionAborted(step.id, f"no element matched {step.selector.describe()}")
    target = handles[0]

    try:
        if step.action == Action.TYPE:
            if verbose:
                print(f"→ Typing {step.text!r} into {step.selector.describe()}")
            await locator.driver.type_into(target, step.text)
        elif step.action == Action.CLICK:
            if verbose:
                print(f"→ Clicking {step.selector.describe()}")
            await locator.driver.click(target)
    except LocatorError:
        raise
    except Exception as e:
        raise InteractionAborted(step.id, f"{step.action.value} failed: {e}") from e

    if step.expect is None:
        return None
    # The action may have replaced nodes; the expectation resolves its own selector again.
    return await evaluate(step.expect, locator, suite=suite)
