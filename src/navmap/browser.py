"""
Playwright-backed page adapter and provider.

Renders JavaScript-driven navigation (hover menus, client-side mega menus)
that the static adapter cannot see. Requires the ``browser`` extra::

    pip install "navmap[browser]" && playwright install chromium
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from navmap.config import SiteCrawlConfig, settings
from navmap.constants import HIDDEN_MARKER
from navmap.page import PageAdapter, PageProvider

logger = logging.getLogger(__name__)


class BrowserConfig(BaseModel):
    """Settings for rendering storefront pages with Playwright."""

    headless: bool = Field(
        default=True,
        description="Render pages without a visible window"
    )

    browser_type: Literal["chromium", "firefox", "webkit"] = Field(
        default="chromium",
        description="Browser engine used to render pages"
    )

    timeout: int = Field(
        default=30000,
        description="Navigation timeout for each category page in milliseconds",
        ge=1000,
        le=300000
    )

    wait_until: Literal["load", "domcontentloaded", "networkidle", "commit"] = Field(
        default="domcontentloaded",
        description="Load state after which a page is snapshotted"
    )

    user_agent: Optional[str] = Field(
        default=None,
        description="Custom user agent (defaults to NAVMAP_USER_AGENT)"
    )

    viewport_width: int = Field(default=1366, ge=320, le=3840)
    viewport_height: int = Field(default=900, ge=320, le=2160)

    block_resources: List[str] = Field(
        default_factory=lambda: ["image", "font", "media"],
        description="Request resource types aborted while rendering"
    )

    launch_args: List[str] = Field(
        default_factory=list,
        description="Extra arguments passed to the browser launcher"
    )

    class Config:
        """Pydantic model configuration."""
        frozen = False
        validate_assignment = True

    def get_user_agent(self) -> str:
        return self.user_agent or settings.USER_AGENT

    def for_site(self, site: SiteCrawlConfig) -> "BrowserConfig":
        """Copy of this config that honors the site's headless allowance."""
        if site.allowed_headless or not self.headless:
            return self
        logger.info(f"{site.domain} does not allow headless rendering; launching a visible browser")
        return self.model_copy(update={"headless": False})


# Clone the document with data-nav-hidden on every element that is not
# rendered in the live page. querySelectorAll order is identical in both.
_RENDER_JS = f"""
() => {{
    const live = Array.from(document.querySelectorAll('*'));
    const clone = document.documentElement.cloneNode(true);
    const copies = [clone, ...clone.querySelectorAll('*')];
    live.forEach((el, i) => {{
        const style = window.getComputedStyle(el);
        const hidden = style.display === 'none'
            || style.visibility === 'hidden'
            || parseFloat(style.opacity) === 0;
        if (hidden && copies[i]) copies[i].setAttribute('{HIDDEN_MARKER}', 'true');
    }});
    return '<!DOCTYPE html>' + clone.outerHTML;
}}
"""

_REVEAL_JS = """
(selector) => {
    const el = document.querySelector(selector);
    if (!el) return null;
    const token = {css: el.style.cssText, hidden: el.hasAttribute('hidden')};
    el.removeAttribute('hidden');
    el.style.setProperty('display', 'block', 'important');
    el.style.setProperty('visibility', 'visible', 'important');
    el.style.setProperty('opacity', '1', 'important');
    return token;
}
"""

_RESTORE_JS = """
([selector, token]) => {
    const el = document.querySelector(selector);
    if (!el) return;
    el.style.cssText = token.css;
    if (token.hidden) el.setAttribute('hidden', '');
}
"""


class PlaywrightPage(PageAdapter):
    """Page adapter over a live Playwright page."""

    HOVER_TIMEOUT_MS = 2000

    def __init__(self, page: Any, config: Optional[BrowserConfig] = None):
        self._page = page
        self._config = config or BrowserConfig()

    @property
    def url(self) -> str:
        return self._page.url

    async def _render(self) -> str:
        return await self._page.evaluate(_RENDER_JS)

    async def is_ready(self) -> bool:
        return await self._page.evaluate("document.readyState === 'complete'")

    async def goto(self, url: str, timeout_ms: int) -> None:
        response = await self._page.goto(url, timeout=timeout_ms, wait_until=self._config.wait_until)
        if response is not None and response.status >= 400:
            raise RuntimeError(f"HTTP {response.status} for {url}")
        logger.debug(f"Rendered {url}")

    async def wait_for_stable(self, timeout_ms: int = 2000) -> None:
        try:
            await self._page.wait_for_load_state("networkidle", timeout=timeout_ms)
        except Exception as e:
            # Long-polling pages never go idle; what rendered so far is used
            logger.debug(f"Page {self.url} not idle after {timeout_ms}ms: {e}")

    async def wait(self, ms: int) -> None:
        await self._page.wait_for_timeout(ms)

    async def hover(self, selector: str) -> bool:
        try:
            await self._page.hover(selector, timeout=self.HOVER_TIMEOUT_MS)
            return True
        except Exception as e:
            logger.debug(f"Could not hover {selector}: {e}")
            return False

    async def reset_hover(self) -> None:
        await self._page.mouse.move(0, 0)

    async def scroll_to_bottom(self) -> None:
        await self._page.evaluate("window.scrollTo(0, document.body.scrollHeight)")

    async def _reveal(self, selector: str) -> Any:
        token = await self._page.evaluate(_REVEAL_JS, selector)
        return (selector, token) if token is not None else None

    async def _restore(self, token: Any) -> None:
        if token is None:
            return
        selector, saved = token
        await self._page.evaluate(_RESTORE_JS, [selector, saved])


class BrowserPageProvider(PageProvider):
    """
    Provides rendered pages, each in its own browser context.

    One browser is kept per headless mode. Sites that refuse headless
    browsers get pages from a visible browser via ``for_site()``.

    Usage:
        async with BrowserPageProvider(BrowserConfig()) as provider:
            site_pages = provider.for_site(site_config)
            async with site_pages.page("https://shop.example.com") as page:
                html = await page.snapshot()
    """

    def __init__(self, config: Optional[BrowserConfig] = None):
        self._config = config or BrowserConfig()
        self._playwright = None
        self._browsers: Dict[bool, Any] = {}
        self._launch_lock = asyncio.Lock()
        self.pages_opened = 0

    async def __aenter__(self) -> "BrowserPageProvider":
        """Enter async context manager, launching browser."""
        try:
            from playwright.async_api import async_playwright
        except ImportError:
            raise ImportError(
                "Playwright is required for rendered discovery. "
                "Install with: pip install 'navmap[browser]' && playwright install chromium"
            )

        self._playwright = await async_playwright().start()
        await self._browser_for(self._config)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context manager, closing every launched browser."""
        for browser in self._browsers.values():
            await browser.close()
        self._browsers.clear()
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
        logger.info(f"Browser closed after {self.pages_opened} pages")

    async def _browser_for(self, config: BrowserConfig) -> Any:
        async with self._launch_lock:
            browser = self._browsers.get(config.headless)
            if browser is None:
                logger.info(f"Launching {config.browser_type} browser (headless={config.headless})")
                launcher = getattr(self._playwright, config.browser_type)
                launch_options = {"headless": config.headless}
                if config.launch_args:
                    launch_options["args"] = config.launch_args
                browser = await launcher.launch(**launch_options)
                self._browsers[config.headless] = browser
            return browser

    def for_site(self, site: SiteCrawlConfig) -> PageProvider:
        config = self._config.for_site(site)
        if config is self._config:
            return self
        return _SitePageProvider(self, config)

    def page(self, url: str):
        return self.open_page(url, self._config)

    @asynccontextmanager
    async def open_page(self, url: str, config: BrowserConfig) -> AsyncIterator[PlaywrightPage]:
        """Open ``url`` in a fresh context of the browser matching ``config``."""
        if self._playwright is None:
            raise RuntimeError("BrowserPageProvider must be entered with 'async with' before use")

        browser = await self._browser_for(config)
        context = await browser.new_context(
            user_agent=config.get_user_agent(),
            viewport={"width": config.viewport_width, "height": config.viewport_height},
            locale="en-US",
        )
        try:
            raw = await context.new_page()
            if config.block_resources:
                blocked = set(config.block_resources)
                await raw.route(
                    "**/*",
                    lambda route: (
                        route.abort()
                        if route.request.resource_type in blocked
                        else route.continue_()
                    ),
                )
            page = PlaywrightPage(raw, config)
            await page.goto(url, config.timeout)
            self.pages_opened += 1
            yield page
        finally:
            await context.close()


class _SitePageProvider(PageProvider):
    """Pages from a shared BrowserPageProvider under a site-specific config."""

    def __init__(self, owner: BrowserPageProvider, config: BrowserConfig):
        self._owner = owner
        self.config = config

    def page(self, url: str):
        return self._owner.open_page(url, self.config)

    def for_site(self, site: SiteCrawlConfig) -> PageProvider:
        return self._owner.for_site(site)
