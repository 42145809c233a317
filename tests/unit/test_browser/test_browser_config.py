"""Tests for browser provider configuration."""

import pytest
from pydantic import ValidationError

from navmap.browser import BrowserConfig, BrowserPageProvider
from navmap.config import SiteCrawlConfig, settings


class TestBrowserConfig:
    """Tests for BrowserConfig validation."""

    def test_defaults(self):
        """Test default configuration values."""
        config = BrowserConfig()

        assert config.headless is True
        assert config.browser_type == "chromium"
        assert config.wait_until == "domcontentloaded"
        assert "image" in config.block_resources

    def test_user_agent_falls_back_to_settings(self):
        """Test that the configured user agent wins over settings."""
        assert BrowserConfig().get_user_agent() == settings.USER_AGENT
        assert BrowserConfig(user_agent="navmap-test/1.0").get_user_agent() == "navmap-test/1.0"

    def test_rejects_unknown_engine(self):
        """Test that unsupported browser engines are rejected."""
        with pytest.raises(ValidationError):
            BrowserConfig(browser_type="netscape")

    def test_rejects_short_timeout(self):
        """Test the lower bound on page load timeout."""
        with pytest.raises(ValidationError):
            BrowserConfig(timeout=10)


class FakeResponse:
    status = 200


class FakeRawPage:
    url = "about:blank"

    async def route(self, pattern, handler):
        self.routed = pattern

    async def goto(self, url, timeout=None, wait_until=None):
        self.url = url
        return FakeResponse()


class FakeContext:
    closed = False

    async def new_page(self):
        return FakeRawPage()

    async def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self, headless):
        self.headless = headless
        self.contexts = []

    async def new_context(self, **options):
        context = FakeContext()
        self.contexts.append(context)
        return context

    async def close(self):
        pass


class FakeLauncher:
    def __init__(self):
        self.launches = []
        self.browsers = []

    async def launch(self, **options):
        self.launches.append(options)
        browser = FakeBrowser(options["headless"])
        self.browsers.append(browser)
        return browser


class FakePlaywright:
    def __init__(self):
        self.chromium = FakeLauncher()


class TestBrowserPageProvider:
    """Tests for provider lifecycle guards."""

    @pytest.mark.asyncio
    async def test_page_requires_context_manager(self):
        """Test that pages cannot be opened before the browser is launched."""
        provider = BrowserPageProvider()

        with pytest.raises(RuntimeError):
            async with provider.page("https://shop.example.com/"):
                pass

    @pytest.mark.asyncio
    async def test_site_without_headless_gets_visible_browser(self):
        """Test that pages for a site refusing headless come from a visible browser."""
        provider = BrowserPageProvider(BrowserConfig())
        provider._playwright = FakePlaywright()
        launcher = provider._playwright.chromium

        site_pages = provider.for_site(SiteCrawlConfig(domain="shop.example.com", allowed_headless=False))
        async with site_pages.page("https://shop.example.com/") as page:
            assert page.url == "https://shop.example.com/"

        assert launcher.launches == [{"headless": False}]
        assert launcher.browsers[0].contexts[0].closed
        assert provider.pages_opened == 1

        async with provider.page("https://other.example.com/"):
            pass
        assert launcher.launches == [{"headless": False}, {"headless": True}]

    @pytest.mark.asyncio
    async def test_browser_reused_per_headless_mode(self):
        """Test that one browser is launched per headless mode."""
        provider = BrowserPageProvider(BrowserConfig())
        provider._playwright = FakePlaywright()
        site_pages = provider.for_site(SiteCrawlConfig(domain="shop.example.com", allowed_headless=False))

        for url in ("https://shop.example.com/women", "https://shop.example.com/men"):
            async with site_pages.page(url):
                pass

        assert provider._playwright.chromium.launches == [{"headless": False}]
        assert len(provider._playwright.chromium.browsers[0].contexts) == 2

    def test_for_site_returns_self_when_headless_allowed(self):
        """Test that sites allowing headless share the provider as-is."""
        provider = BrowserPageProvider(BrowserConfig())

        assert provider.for_site(SiteCrawlConfig(domain="shop.example.com")) is provider


class TestBrowserConfigForSite:
    """Tests for per-site headless resolution."""

    def test_site_blocking_headless(self):
        """Test that a site refusing headless browsers gets a visible one."""
        site = SiteCrawlConfig(domain="shop.example.com", allowed_headless=False)

        config = BrowserConfig().for_site(site)

        assert config.headless is False
        assert config.browser_type == "chromium"

    def test_site_allowing_headless(self):
        """Test that the config is unchanged when headless is allowed."""
        base = BrowserConfig()

        assert base.for_site(SiteCrawlConfig(domain="shop.example.com")) is base
