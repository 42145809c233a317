"""End-to-end tests for SiteDiscovery against an in-memory storefront."""

import asyncio
from contextlib import asynccontextmanager

import pytest

from navmap.config import DiscoveryConfig, SiteConfigRegistry, SiteCrawlConfig, settings
from navmap.discovery import SiteDiscovery
from navmap.errors import InvalidSeedUrlError, PageUnavailableError
from navmap.intelligence import StrategyMemory
from navmap.models import Bucket, DiscoveryResult, DropdownMenu, NavigationItem, NodeKind, TreeNode
from navmap.page import PageProvider, StaticPageProvider, mapping_fetcher
from navmap.storage import ResultStore
from navmap.strategies import HiddenElementStrategy
from navmap.tree_builder import NavigationTreeBuilder

SHOP = "https://shop.example.com"


def make_discovery(provider, tmp_path=None, **overrides):
    """Discovery with fast politeness settings and no retry backoff."""
    options = {"node_settle_ms": 0, "node_retry_backoff_ms": 0}
    options.update(overrides.pop("config", {}))
    return SiteDiscovery(
        provider,
        config=DiscoveryConfig(**options),
        config_registry=SiteConfigRegistry(defaults={"crawl_rate_rps": 20, **overrides.pop("site", {})}),
        store=ResultStore(tmp_path / "discoveries") if tmp_path is not None else None,
        **overrides,
    )


class SlowCategoryProvider(PageProvider):
    """Serves the seed page at once and every other page after a delay."""

    def __init__(self, pages, delay_s):
        self._pages = StaticPageProvider(mapping_fetcher(pages))
        self.delay_s = delay_s

    @asynccontextmanager
    async def page(self, url):
        if url != f"{SHOP}/":
            await asyncio.sleep(self.delay_s)
        async with self._pages.page(url) as page:
            yield page


class SiteRecordingProvider(StaticPageProvider):
    """Static provider that records the site configs it is bound to."""

    def __init__(self, fetcher):
        super().__init__(fetcher)
        self.sites = []

    def for_site(self, site):
        self.sites.append(site)
        return self


class TestSiteDiscovery:
    """Tests for SiteDiscovery.discover()."""

    @pytest.mark.asyncio
    async def test_discovers_storefront(self, storefront_provider, tmp_path):
        """Test sections, dropdowns, tree and taxonomy for a storefront."""
        result = await make_discovery(storefront_provider, tmp_path).discover(SHOP)

        assert result.seed_url == f"{SHOP}/"
        assert result.domain == "shop.example.com"
        assert result.metadata["strategy"] == "aria"
        assert "error" not in result.metadata
        assert [s.name for s in result.main_sections][:4] == ["Women", "Dresses", "Tops", "Men"]
        assert set(result.dropdown_menus) == {"Women", "Men"}

        tree = result.hierarchical_tree
        assert tree.kind == NodeKind.ROOT
        assert [c.name for c in tree.children] == ["Women", "Men", "Shoes"]
        assert tree.metadata["total_items"] == 11

        taxonomy = result.taxonomy
        assert len(taxonomy.buckets[Bucket.GENDER_SECTION]) >= 1
        assert len(taxonomy.buckets[Bucket.UTILITY_PAGE]) >= 1
        assert taxonomy.metadata["classification_confidence"] == 1.0
        assert result.listings == {}

    @pytest.mark.asyncio
    async def test_result_saved(self, storefront_provider, tmp_path):
        """Test that the finished result is handed to the store."""
        discovery = make_discovery(storefront_provider, tmp_path)
        await discovery.discover(SHOP)

        saved = discovery.store.latest("shop.example.com")
        assert saved["domain"] == "shop.example.com"
        assert saved["hierarchical_tree"]["metadata"]["total_items"] == 11
        assert "genderSections" in saved["taxonomy"]

    @pytest.mark.asyncio
    async def test_resolves_listings(self, storefront_provider):
        """Test resolving terminal categories into product URLs and filters."""
        discovery = make_discovery(storefront_provider, config={"resolve_listings": 1})
        result = await discovery.discover(SHOP)

        listing = result.listings[f"{SHOP}/women/dresses/maxi"]
        assert listing.product_urls == [f"{SHOP}/products/maxi-1", f"{SHOP}/products/maxi-2"]
        assert listing.pages_visited == 2
        assert listing.state.stopped_reason == "no_more_pages"
        assert [g.name for g in result.filters] == ["Color"]

    @pytest.mark.asyncio
    async def test_before_discovery_hook(self, storefront_provider):
        """Test that the hook sees the seed page before strategies run."""
        seen = []

        async def dismiss_popups(page):
            seen.append(page.url)

        await make_discovery(storefront_provider, before_discovery=dismiss_popups).discover(SHOP)

        assert seen == [f"{SHOP}/"]

    @pytest.mark.asyncio
    async def test_no_navigation_found(self, tmp_path):
        """Test a degraded result when no strategy is confident."""
        provider = StaticPageProvider(mapping_fetcher({
            f"{SHOP}/": "<html><body><p>Coming soon</p></body></html>",
        }))
        result = await make_discovery(provider, tmp_path).discover(SHOP)

        assert result.metadata["error"].startswith("pipeline_exhausted")
        assert result.main_sections == []
        assert result.hierarchical_tree.children == []
        assert result.taxonomy.metadata["classification_confidence"] == 0.0

    @pytest.mark.asyncio
    async def test_global_timeout_returns_partial_result(self, storefront_provider, tmp_path):
        """Test that running out of time still returns and stores a result."""
        async def stall(page):
            await asyncio.sleep(5)

        discovery = make_discovery(
            storefront_provider, tmp_path, before_discovery=stall, site={"global_timeout_ms": 1000}
        )
        result = await discovery.discover(SHOP)

        assert result.metadata["error"] == "global_timeout"
        assert result.main_sections == []
        assert discovery.store.latest("shop.example.com")["metadata"]["error"] == "global_timeout"

    @pytest.mark.asyncio
    async def test_slow_category_pages_keep_tree(self, storefront_pages):
        """Test that category pages slower than the budget still leave a tree and taxonomy."""
        provider = SlowCategoryProvider(storefront_pages, delay_s=4)

        result = await make_discovery(provider, site={"global_timeout_ms": 2500}).discover(SHOP)

        tree = result.hierarchical_tree
        assert tree is not None
        assert [c.name for c in tree.children] == ["Women", "Men", "Shoes"]
        assert tree.metadata["budget_exhausted"] == "global_timeout"
        assert tree.metadata["total_items"] == 7
        assert tree.metadata["failed_nodes"] == []
        assert result.taxonomy.metadata["total_sections"] > 0
        assert "error" not in result.metadata

    @pytest.mark.asyncio
    async def test_global_timeout_during_tree_build(self, storefront_provider, monkeypatch):
        """Test that a run cut off mid-build keeps the partial tree and classifies it."""
        async def stuck_expand(self, parent, items, depth, state):
            parent.children.append(TreeNode("Kids", f"{SHOP}/kids", 1, NodeKind.MAIN_CATEGORY))
            await asyncio.sleep(10)

        monkeypatch.setattr(NavigationTreeBuilder, "_expand", stuck_expand)

        result = await make_discovery(storefront_provider, site={"global_timeout_ms": 1000}).discover(SHOP)

        assert result.metadata["error"] == "global_timeout"
        tree = result.hierarchical_tree
        assert [c.name for c in tree.children] == ["Kids"]
        assert tree.metadata["total_items"] == 1
        assert tree.metadata["budget_exhausted"] == "global_timeout"
        names = {e.section.name for e in result.taxonomy.entries()}
        assert {"Women", "Kids"} <= names
        assert "classification_confidence" in result.taxonomy.metadata

    @pytest.mark.asyncio
    async def test_pages_come_from_site_provider(self, storefront_pages):
        """Test that pages are opened through the provider bound to the site config."""
        provider = SiteRecordingProvider(mapping_fetcher(storefront_pages))

        await make_discovery(provider, site={"allowed_headless": False}).discover(SHOP)

        assert [(s.domain, s.allowed_headless) for s in provider.sites] == [("shop.example.com", False)]

    @pytest.mark.asyncio
    async def test_unlabeled_dropdowns_all_kept(self):
        """Test that dropdowns without a trigger label do not replace each other."""
        empty = "<html><body></body></html>"
        provider = StaticPageProvider(mapping_fetcher({
            f"{SHOP}/": (
                "<html><body>"
                '<div class="dropdown" hidden><a href="/women">Women</a><a href="/men">Men</a></div>'
                '<div class="dropdown" hidden><a href="/shoes">Shoes</a><a href="/bags">Bags</a></div>'
                "</body></html>"
            ),
            f"{SHOP}/women": empty,
            f"{SHOP}/men": empty,
            f"{SHOP}/shoes": empty,
            f"{SHOP}/bags": empty,
        }))

        result = await make_discovery(provider, strategies=[HiddenElementStrategy()]).discover(SHOP)

        assert list(result.dropdown_menus) == ["menu", "menu (2)"]
        assert [i.name for i in result.dropdown_menus["menu"].items] == ["Women", "Men"]
        assert [i.name for i in result.dropdown_menus["menu (2)"].items] == ["Shoes", "Bags"]

    @pytest.mark.asyncio
    async def test_invalid_seed(self, storefront_provider):
        """Test that a malformed seed URL is rejected before any work."""
        with pytest.raises(InvalidSeedUrlError):
            await make_discovery(storefront_provider).discover("not a url")

    @pytest.mark.asyncio
    async def test_seed_unavailable(self):
        """Test that an unreachable seed page is reported to the caller."""
        provider = StaticPageProvider(mapping_fetcher({}))

        with pytest.raises(PageUnavailableError):
            await make_discovery(provider).discover(SHOP)

    def test_site_config_lookup(self, storefront_provider):
        """Test that crawl bounds come from the registry."""
        discovery = make_discovery(storefront_provider, site={"max_depth": 2})

        config = discovery.site_config("shop.example.com")
        assert config.max_depth == 2
        assert config.crawl_rate_rps == 20


class TestFromSettings:
    """Tests for SiteDiscovery.from_settings()."""

    def test_collaborators_from_settings(self, storefront_provider, monkeypatch, tmp_path):
        """Test that store, memory and registry follow NAVMAP_* settings."""
        monkeypatch.setattr(settings, "OUTPUT_DIR", str(tmp_path / "out"))
        monkeypatch.setattr(settings, "MEMORY_PATH", str(tmp_path / "memory.json"))
        monkeypatch.setattr(settings, "SITE_CONFIG_PATH", None)

        discovery = SiteDiscovery.from_settings(storefront_provider, store=None)

        assert discovery.store is None
        assert isinstance(discovery.memory, StrategyMemory)
        assert discovery.memory.storage_path == tmp_path / "memory.json"
        assert discovery.site_config("shop.example.com").max_depth == SiteCrawlConfig(domain="x.com").max_depth


class TestSectionsForTaxonomy:
    """Tests for merging main sections with top-level tree nodes."""

    def test_merges_without_duplicates(self):
        """Test that tree nodes already in the main sections are skipped."""
        result = DiscoveryResult(seed_url=f"{SHOP}/", domain="shop.example.com")
        result.main_sections = [NavigationItem(name="Women", url=f"{SHOP}/women")]
        result.hierarchical_tree = TreeNode(
            name="shop.example.com",
            canonical_url=f"{SHOP}/",
            depth=0,
            kind=NodeKind.ROOT,
            children=[
                TreeNode("Women", f"{SHOP}/women/", 1, NodeKind.MAIN_CATEGORY),
                TreeNode("Kids", f"{SHOP}/kids", 1, NodeKind.MAIN_CATEGORY),
            ],
        )

        sections = SiteDiscovery.sections_for_taxonomy(result)

        assert [(s.name, s.url) for s in sections] == [("Women", f"{SHOP}/women"), ("Kids", f"{SHOP}/kids")]


class TestDropdownMap:
    """Tests for keying dropdown menus by trigger."""

    def test_unique_labels_used_as_keys(self):
        """Test that distinct trigger labels are the keys."""
        menus = [DropdownMenu(trigger="Women"), DropdownMenu(trigger="Men")]

        assert list(SiteDiscovery.dropdown_map(menus)) == ["Women", "Men"]

    def test_repeated_labels_kept(self):
        """Test that menus sharing a label are all kept."""
        menus = [
            DropdownMenu(trigger="Shop"),
            DropdownMenu(trigger="Shop", trigger_url=f"{SHOP}/shop/women"),
            DropdownMenu(trigger="Shop"),
            DropdownMenu(trigger="Shop"),
        ]

        keyed = SiteDiscovery.dropdown_map(menus)

        assert list(keyed) == ["Shop", f"{SHOP}/shop/women", "Shop (2)", "Shop (3)"]
        assert [keyed[k] for k in keyed] == menus
