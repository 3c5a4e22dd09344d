import asyncio
from enum import Enum

from .driver import BrowserDriver, BrowserHost
from .errors import SessionStateError


class NavigationState(str, Enum):
    NOT_STARTED = "NotStarted"
    NAVIGATING = "Navigating"
    READY = "Ready"
    FAILED = "Failed"


class PageSession:
    """One navigation to target_url in a fresh browser context.

    NotStarted -> Navigating -> Ready | Failed. Ready and Failed are terminal;
    navigating again means building a new PageSession. Only one session per
    host may hold the browser at a time.
    """

    def __init__(self, host: BrowserHost, target_url: str, expected_title: str, timeout: float | None = None, verbose: bool = False):
        self.host = host
        self.target_url = target_url
        self.expected_title = expected_title
        self.timeout = timeout
        self.verbose = verbose
        self.state = NavigationState.NOT_STARTED
        self.driver: BrowserDriver | None = None
        self.diagnostic = ""
        self.timed_out = False

    @property
    def ready(self) -> bool:
        # A closed session keeps its terminal state but no longer owns the browser.
        return self.state == NavigationState.READY and self.host.active_session is self

    async def navigate(self) -> NavigationState:
        if self.state != NavigationState.NOT_STARTED:
            raise SessionStateError(f"Session for {self.target_url} already {self.state.value}; create a new session")
        self.host.claim(self)
        self.state = NavigationState.NAVIGATING
        if self.verbose:
            print(f"→ Navigating to {self.target_url}")
        try:
            title = await asyncio.wait_for(self._load(), timeout=self.timeout)
        except asyncio.TimeoutError:
            self.timed_out = True
            return self._fail(f"Navigation to {self.target_url} timed out after {self.timeout}s")
        except SessionStateError:
            raise
        except Exception as e:
            return self._fail(f"Navigation to {self.target_url} failed: {e}")

        if title != self.expected_title:
            return self._fail(f"Page title mismatch: expected {self.expected_title!r}, got {title!r}")
        self.state = NavigationState.READY
        if self.verbose:
            print(f"✓ Page ready: {title!r}")
        return self.state

    async def _load(self) -> str:
        self.driver = await self.host.open_page()
        await self.driver.navigate_to(self.target_url)
        return await self.driver.get_document_title()

    def _fail(self, message: str) -> NavigationState:
        self.state = NavigationState.FAILED
        self.diagnostic = message
        if self.verbose:
            print(f"✖ {message}")
        return self.state

    async def close(self) -> None:
        try:
            if self.driver is not None:
                await self.driver.close()
        finally:
            self.driver = None
            self.host.release(self)

    async def __aenter__(self) -> "PageSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
