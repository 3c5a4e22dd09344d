import asyncio

import pytest

from page_assert.driver import BrowserDriver, BrowserHost
from page_assert.errors import LocatorError

FORM_CONTROLS = ("input", "textarea", "select")
TOGGLE_CSS = '#loginForm button[type="button"]'


class FakeNode:
    def __init__(self, tag, text="", attrs=None, visible=True, parent=None, on_click=None):
        self.tag = tag
        self.text = text
        self.value = ""
        self.attrs = attrs or {}
        self.visible = visible
        self.parent = parent
        self.attached = True
        self.on_click = on_click

    def __repr__(self):
        return f"<FakeNode {self.tag} {self.text!r}>"


class FakePage:
    """A document as a map of CSS string -> matching nodes, in document order."""

    def __init__(self, title="Login • Instagram"):
        self.title = title
        self.nodes: dict[str, list[FakeNode]] = {}
        self.invalid_selectors: set[str] = set()
        self.nav_error: Exception | None = None
        self.nav_delay = 0.0
        self.query_delays: dict[str, float] = {}

    def add(self, css, node):
        self.nodes.setdefault(css, []).append(node)
        return node

    def replace(self, css, old, new):
        old.attached = False
        self.nodes[css] = [new if n is old else n for n in self.nodes[css]]


class FakeDriver(BrowserDriver):
    def __init__(self, page: FakePage):
        self.page = page
        self.visited = []
        self.closed = False
        self.queries = []
        self.typed = []
        self.screenshots = []

    async def navigate_to(self, url):
        self.visited.append(url)
        if self.page.nav_delay:
            await asyncio.sleep(self.page.nav_delay)
        if self.page.nav_error is not None:
            raise self.page.nav_error

    async def query_all(self, css, scope=None):
        self.queries.append(css)
        if css in self.page.invalid_selectors:
            raise LocatorError(f"Invalid selector {css!r}")
        if css in self.page.query_delays:
            await asyncio.sleep(self.page.query_delays[css])
        found = [n for n in self.page.nodes.get(css, []) if n.attached]
        if scope is not None:
            found = [n for n in found if _is_descendant(n, scope)]
        return found

    async def get_text(self, handle):
        if handle.tag in FORM_CONTROLS:
            return handle.value
        return handle.text

    async def get_attribute(self, handle, name):
        return handle.attrs.get(name)

    async def is_visible(self, handle):
        return handle.visible

    async def type_into(self, handle, text):
        for ch in text:
            handle.value += ch
            self.typed.append(ch)

    async def click(self, handle):
        if handle.on_click is not None:
            handle.on_click(self.page, handle)

    async def get_document_title(self):
        return self.page.title

    async def get_parent(self, handle):
        return handle.parent

    async def is_attached(self, handle):
        return handle.attached

    async def screenshot(self, path):
        self.screenshots.append(str(path))

    async def close(self):
        self.closed = True


def _is_descendant(node, ancestor):
    cur = node.parent
    while cur is not None:
        if cur is ancestor:
            return True
        cur = cur.parent
    return False


class FakeHost(BrowserHost):
    """Builds a brand-new page for every open_page(), like a fresh browser context."""

    def __init__(self, page_factory):
        super().__init__()
        self.page_factory = page_factory
        self.drivers: list[FakeDriver] = []

    async def open_page(self):
        driver = FakeDriver(self.page_factory())
        self.drivers.append(driver)
        return driver


def _toggle(label_from, label_to):
    def on_click(page, node):
        new = FakeNode("button", label_to, {"type": "button"}, parent=node.parent,
                       on_click=_toggle(label_to, label_from))
        page.replace(TOGGLE_CSS, node, new)
    return on_click


def build_login_page(title="Login • Instagram") -> FakePage:
    page = FakePage(title)
    form = FakeNode("form", attrs={"id": "loginForm"})

    user_label = FakeNode("label", parent=form)
    user_input = page.add('#loginForm input[name="username"]',
                          FakeNode("input", attrs={"name": "username"}, parent=user_label))
    page.add('#loginForm :has(> input[name="username"]) > span',
             FakeNode("span", "Phone number, username,\n  or email", parent=user_label))

    pw_label = FakeNode("label", parent=form)
    pw_input = FakeNode("input", attrs={"name": "password", "type": "password"}, parent=pw_label)
    page.add('#loginForm input[name="password"][type="password"]', pw_input)
    page.add('#loginForm input[name="password"]', pw_input)
    page.add(TOGGLE_CSS, FakeNode("button", "Show", {"type": "button"}, parent=pw_label,
                                  on_click=_toggle("Show", "Hide")))

    page.add('#loginForm a', FakeNode("a", "Forgot password?", {"href": "/accounts/password/reset/"}, parent=form))
    page.add('#loginForm button[type="submit"]', FakeNode("button", "Log In", {"type": "submit"}, parent=form))

    footer = FakeNode("footer", attrs={"role": "contentinfo"})
    links = [
        ("Meta", "https://about.facebook.com/meta"),
        ("About", "https://about.instagram.com/"),
        ("Jobs", "/about/jobs/"),
        ("Help", "https://help.instagram.com/"),
    ]
    for text, href in links:
        page.add('footer[role="contentinfo"] a', FakeNode("a", text, {"href": href}, parent=footer))
    page.add('footer[role="contentinfo"] a', FakeNode("a", "Hidden", {"href": "/hidden/"}, visible=False, parent=footer))
    return page


@pytest.fixture
def login_page():
    return build_login_page()


@pytest.fixture
def driver(login_page):
    return FakeDriver(login_page)


@pytest.fixture
def host():
    return FakeHost(build_login_page)
