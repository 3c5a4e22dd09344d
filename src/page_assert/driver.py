from abc import ABC, abstractmethod
import time
from pathlib import Path
from typing import Any

from playwright.async_api import Browser, BrowserContext, ElementHandle, Error as PlaywrightError, Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from .errors import LocatorError, SessionStateError


# Upper bound on waiting for networkidle after the DOM is loaded.
NETWORKIDLE_TIMEOUT_MS = 5000

# Rendered text of a node; form controls render their current value.
RENDERED_TEXT_JS = """
el => {
  const tag = (el.tagName || '').toLowerCase();
  if (tag === 'input' || tag === 'textarea' || tag === 'select') return el.value ?? '';
  return el.innerText ?? el.textContent ?? '';
}
"""


class BrowserDriver(ABC):
    """One page in one isolated browser context. NodeHandles are opaque to callers."""

    @abstractmethod
    async def navigate_to(self, url: str) -> None: ...

    @abstractmethod
    async def query_all(self, css: str, scope: Any = None) -> list: ...

    @abstractmethod
    async def get_text(self, handle) -> str: ...

    @abstractmethod
    async def get_attribute(self, handle, name: str) -> str | None: ...

    @abstractmethod
    async def is_visible(self, handle) -> bool: ...

    @abstractmethod
    async def type_into(self, handle, text: str) -> None: ...

    @abstractmethod
    async def click(self, handle) -> None: ...

    @abstractmethod
    async def get_document_title(self) -> str: ...

    @abstractmethod
    async def get_parent(self, handle): ...

    @abstractmethod
    async def is_attached(self, handle) -> bool: ...

    async def same_node(self, a, b) -> bool:
        return a is b or a == b

    async def screenshot(self, path: Path) -> None:
        return None

    async def close(self) -> None:
        return None


class BrowserHost(ABC):
    """Hands out fresh pages and tracks which PageSession currently owns the browser."""

    def __init__(self):
        self.active_session = None

    def claim(self, session) -> None:
        if self.active_session is not None and self.active_session is not session:
            raise SessionStateError(
                f"Browser already owned by session for {self.active_session.target_url}; close it first"
            )
        self.active_session = session

    def release(self, session) -> None:
        if self.active_session is session:
            self.active_session = None

    @abstractmethod
    async def open_page(self) -> BrowserDriver: ...


class PlaywrightDriver(BrowserDriver):
    def __init__(self, context: BrowserContext, page: Page, timeout_ms: int = 30000, verbose: bool = False):
        self.context = context
        self.page = page
        self.timeout_ms = timeout_ms
        self.verbose = verbose

    def idle_timeout_ms(self, elapsed_ms: float) -> int:
        """Time left for networkidle: at most half of what goto left over, so the caller's budget holds."""
        remaining = self.timeout_ms - elapsed_ms
        return max(0, min(NETWORKIDLE_TIMEOUT_MS, int(remaining // 2)))

    async def navigate_to(self, url: str) -> None:
        started = time.monotonic()
        await self.page.goto(url, timeout=self.timeout_ms, wait_until="domcontentloaded")
        idle_ms = self.idle_timeout_ms((time.monotonic() - started) * 1000)
        if idle_ms <= 0:
            return
        try:
            await self.page.wait_for_load_state("networkidle", timeout=idle_ms)
        except PlaywrightTimeoutError:
            # Pages with long-polling never go idle; DOM is already loaded.
            if self.verbose:
                print(f"→ networkidle not reached for {url}, continuing")

    async def query_all(self, css: str, scope: ElementHandle | None = None) -> list[ElementHandle]:
        root = scope if scope is not None else self.page
        try:
            return await root.query_selector_all(css)
        except PlaywrightError as e:
            msg = str(e)
            if "selector" in msg.lower():
                raise LocatorError(f"Invalid selector {css!r}: {msg.splitlines()[0]}") from e
            raise

    async def get_text(self, handle: ElementHandle) -> str:
        return await handle.evaluate(RENDERED_TEXT_JS)

    async def get_attribute(self, handle: ElementHandle, name: str) -> str | None:
        return await handle.get_attribute(name)

    async def is_visible(self, handle: ElementHandle) -> bool:
        return await handle.is_visible()

    async def type_into(self, handle: ElementHandle, text: str) -> None:
        await handle.focus()
        await self.page.keyboard.type(text)

    async def click(self, handle: ElementHandle) -> None:
        await handle.click(timeout=self.timeout_ms)

    async def get_document_title(self) -> str:
        return await self.page.title()

    async def get_parent(self, handle: ElementHandle) -> ElementHandle | None:
        js_handle = await handle.evaluate_handle("el => el.parentElement")
        return js_handle.as_element()

    async def is_attached(self, handle: ElementHandle) -> bool:
        try:
            return bool(await handle.evaluate("el => el.isConnected"))
        except PlaywrightError:
            return False

    async def same_node(self, a: ElementHandle, b: ElementHandle) -> bool:
        return bool(await a.evaluate("(a, b) => a === b", b))

    async def screenshot(self, path: Path) -> None:
        await self.page.screenshot(path=str(path), full_page=True)

    async def close(self) -> None:
        await self.context.close()


class PlaywrightHost(BrowserHost):
    """Launches Chromium once; every open_page() gets a brand-new BrowserContext."""

    def __init__(self, headless: bool = True, timeout_ms: int = 30000, verbose: bool = False):
        super().__init__()
        self.headless = headless
        self.timeout_ms = timeout_ms
        self.verbose = verbose
        self._playwright = None
        self._browser: Browser | None = None

    async def __aenter__(self) -> "PlaywrightHost":
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(headless=self.headless)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._browser is not None:
            await self._browser.close()
        if self._playwright is not None:
            await self._playwright.stop()

    async def open_page(self) -> PlaywrightDriver:
        if self._browser is None:
            raise SessionStateError("PlaywrightHost used outside 'async with'")
        context = await self._browser.new_context(viewport={"width": 1366, "height": 900})
        try:
            page = await context.new_page()
        except BaseException:
            await context.close()
            raise
        return PlaywrightDriver(context, page, timeout_ms=self.timeout_ms, verbose=self.verbose)
