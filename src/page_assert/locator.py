from .driver import BrowserDriver
from .errors import LocatorError
from .models import Selector, normalize_text


class ElementLocator:
    """Resolves Selectors against the live document of one driver. Read-only."""

    def __init__(self, driver: BrowserDriver, verbose: bool = False):
        self.driver = driver
        self.verbose = verbose

    async def resolve(self, selector: Selector, scope=None) -> list:
        """Return matching handles in document order; an empty list when nothing matches."""
        if not isinstance(selector, Selector) or not selector.css.strip():
            raise LocatorError(f"Malformed selector: {selector!r}")
        if scope is not None and not await self.driver.is_attached(scope):
            raise LocatorError(f"Scope handle for {selector.describe()} is detached from the document")

        handles = await self.driver.query_all(selector.css, scope)
        if selector.has_filters:
            handles = [h for h in handles if await self._passes_filters(selector, h)]
        if selector.parent:
            handles = await self._climb(handles, selector.parent)
        if self.verbose:
            print(f"🔍 {selector.describe()} → {len(handles)} match(es)")
        return handles

    async def text_of(self, handle) -> str:
        return normalize_text(await self.driver.get_text(handle))

    async def _passes_filters(self, selector: Selector, handle) -> bool:
        if selector.attribute is not None:
            name, value = selector.attribute
            if await self.driver.get_attribute(handle, name) != value:
                return False
        if selector.text is None and selector.contains is None and selector.compiled is None:
            return True
        text = await self.text_of(handle)
        if selector.text is not None and text != normalize_text(selector.text):
            return False
        if selector.contains is not None and normalize_text(selector.contains) not in text:
            return False
        if selector.compiled is not None and not selector.compiled.fullmatch(text):
            return False
        return True

    async def _climb(self, handles: list, hops: int) -> list:
        parents = []
        for h in handles:
            node = h
            for _ in range(hops):
                node = await self.driver.get_parent(node)
                if node is None:
                    break
            if node is None:
                continue
            for p in parents:
                if await self.driver.same_node(node, p):
                    break
            else:
                parents.append(node)
        return parents
