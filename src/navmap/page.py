"""
Page adapter interface and the static (BeautifulSoup) implementation.

The discovery core never drives a browser directly. It talks to a
``PageAdapter`` that can snapshot rendered HTML, navigate, wait, hover and
temporarily reveal hidden elements, and obtains pages from a
``PageProvider`` that scopes their lifetime:

    async with provider.page(url) as page:
        candidate = await strategy.execute(page)
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Optional

import requests

from navmap import dom
from navmap.config import SiteCrawlConfig, settings
from navmap.constants import HIDDEN_MARKER
from navmap.urls import canonicalize

logger = logging.getLogger(__name__)


class PageAdapter(ABC):
    """Renderer-agnostic handle on one loaded page."""

    @property
    @abstractmethod
    def url(self) -> str:
        """Current URL of the page."""

    @abstractmethod
    async def _render(self) -> str:
        """Return the full document HTML with unrendered elements marked."""

    async def snapshot(self, selector: Optional[str] = None) -> str:
        """Get rendered HTML for the page or for the first element matching ``selector``.

        Elements that were not rendered carry ``data-nav-hidden="true"``.
        An empty string is returned when the selector matches nothing.
        """
        html = await self._render()
        if selector is None:
            return html
        element = dom.select_first(dom.parse(html), [selector])
        return str(element) if element is not None else ""

    async def is_ready(self) -> bool:
        """Whether the document finished loading."""
        return True

    @abstractmethod
    async def goto(self, url: str, timeout_ms: int) -> None:
        """Navigate to ``url``, raising on failure or timeout."""

    async def wait_for_stable(self, timeout_ms: int = 2000) -> None:
        """Wait until the page stops changing; best effort."""

    async def wait(self, ms: int) -> None:
        await asyncio.sleep(ms / 1000)

    @abstractmethod
    async def hover(self, selector: str) -> bool:
        """Hover the element matching ``selector``; False if it cannot be hovered."""

    @abstractmethod
    async def reset_hover(self) -> None:
        """Move the pointer away so no menu stays open."""

    async def scroll_to_bottom(self) -> None:
        """Scroll to the end of the document to trigger lazy loading."""

    @abstractmethod
    async def _reveal(self, selector: str) -> Any:
        """Force the matching element visible and return a restore token."""

    @abstractmethod
    async def _restore(self, token: Any) -> None:
        """Undo a previous ``_reveal``."""

    @asynccontextmanager
    async def revealed(self, selector: str) -> AsyncIterator["PageAdapter"]:
        """Temporarily make an element visible.

        The original visibility is restored on every exit path, including
        errors and cancellation.
        """
        token = await self._reveal(selector)
        try:
            yield self
        finally:
            await self._restore(token)


class PageProvider(ABC):
    """Supplies loaded pages and owns their lifecycle."""

    @abstractmethod
    def page(self, url: str) -> Any:
        """Async context manager yielding a loaded ``PageAdapter`` for ``url``."""

    def for_site(self, site: SiteCrawlConfig) -> "PageProvider":
        """Provider honoring a site's crawl configuration; this one by default."""
        return self


Fetcher = Callable[[str, float], str]


def requests_fetcher(user_agent: Optional[str] = None) -> Fetcher:
    """Build a fetcher backed by a shared requests session.

    Args:
        user_agent: User agent header to send (defaults to settings)

    Returns:
        Callable taking ``(url, timeout_seconds)`` and returning the HTML
    """
    session = requests.Session()
    session.headers.update({
        "User-Agent": user_agent or settings.USER_AGENT,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
    })

    def fetch(url: str, timeout: float) -> str:
        response = session.get(url, timeout=timeout)
        response.raise_for_status()
        return response.text

    return fetch


def mapping_fetcher(pages: dict[str, str]) -> Fetcher:
    """Build a fetcher that serves HTML from a URL -> HTML mapping.

    Unknown URLs raise ``requests.HTTPError`` like a 404 would.
    """
    def fetch(url: str, timeout: float) -> str:
        key = canonicalize(url)
        for candidate in (url, key):
            if candidate in pages:
                return pages[candidate]
        for known, html in pages.items():
            if canonicalize(known) == key:
                return html
        raise requests.HTTPError(f"404 Not Found: {url}")

    return fetch


class StaticPage(PageAdapter):
    """
    Page adapter over server-rendered HTML.

    Visibility comes from markup only (``hidden``, inline styles, utility
    classes). Hovering emulates CSS ``:hover`` menus by treating the hovered
    element's list item as rendered.
    """

    def __init__(self, url: str, html: str = "", fetcher: Optional[Fetcher] = None):
        """
        Initialize a static page.

        Args:
            url: URL the HTML was loaded from
            html: Initial document HTML
            fetcher: Callable used by goto() to load other URLs
        """
        self._url = url
        self._fetcher = fetcher or requests_fetcher()
        self._soup = dom.parse(html)
        self._hovered: Optional[str] = None

    @property
    def url(self) -> str:
        return self._url

    @property
    def html(self) -> str:
        """Current document HTML without visibility annotations."""
        return str(self._soup)

    async def goto(self, url: str, timeout_ms: int) -> None:
        loop = asyncio.get_running_loop()
        html = await asyncio.wait_for(
            loop.run_in_executor(None, self._fetcher, url, timeout_ms / 1000),
            timeout=timeout_ms / 1000,
        )
        self._url = url
        self._soup = dom.parse(html)
        self._hovered = None
        logger.debug(f"Loaded {url} ({len(html)} bytes)")

    async def _render(self) -> str:
        soup = dom.mark_hidden(dom.parse(str(self._soup)))
        if self._hovered:
            self._unhide_hover_region(soup, self._hovered)
        return str(soup)

    @staticmethod
    def _unhide_hover_region(soup, selector: str) -> None:
        target = dom.select_first(soup, [selector])
        if target is None:
            return
        region = target.find_parent("li") or target.parent or target
        for element in [region, *region.find_all(True)]:
            if element.has_attr(HIDDEN_MARKER):
                del element[HIDDEN_MARKER]

    async def hover(self, selector: str) -> bool:
        if dom.select_first(self._soup, [selector]) is None:
            return False
        self._hovered = selector
        return True

    async def reset_hover(self) -> None:
        self._hovered = None

    async def _reveal(self, selector: str) -> Any:
        element = dom.select_first(self._soup, [selector])
        if element is None:
            return None
        original = {
            name: element.get(name)
            for name in ("style", "hidden", "class")
            if element.has_attr(name)
        }
        element["style"] = "display: block; visibility: visible; opacity: 1"
        if element.has_attr("hidden"):
            del element["hidden"]
        if element.has_attr("class"):
            element["class"] = [c for c in element["class"] if c not in ("hidden", "d-none", "is-hidden")]
        return element, original

    async def _restore(self, token: Any) -> None:
        if token is None:
            return
        element, original = token
        for name in ("style", "hidden", "class"):
            if name in original:
                element[name] = original[name]
            elif element.has_attr(name):
                del element[name]


class StaticPageProvider(PageProvider):
    """Provides ``StaticPage`` instances loaded through a fetcher."""

    def __init__(self, fetcher: Optional[Fetcher] = None, timeout_ms: int = 15000):
        self._fetcher = fetcher or requests_fetcher()
        self._timeout_ms = timeout_ms
        self.pages_opened = 0
        self.pages_open = 0

    @asynccontextmanager
    async def page(self, url: str) -> AsyncIterator[StaticPage]:
        page = StaticPage(url, fetcher=self._fetcher)
        await page.goto(url, self._timeout_ms)
        self.pages_opened += 1
        self.pages_open += 1
        try:
            yield page
        finally:
            self.pages_open -= 1
