"""Unit tests for NavigationTreeBuilder."""

import asyncio
import time
from contextlib import asynccontextmanager

import pytest

from navmap import events as ev
from navmap.config import DiscoveryConfig, SiteCrawlConfig
from navmap.errors import InvalidSeedUrlError
from navmap.events import CallbackEventSink
from navmap.infrastructure.rate_limiter import PolitenessLimiter, RateLimitConfig
from navmap.models import NavigationCandidate, NavigationItem, NodeKind
from navmap.page import PageProvider, StaticPageProvider, mapping_fetcher
from navmap.tree_builder import NavigationTreeBuilder, VisitedSet, explorable_pattern

SHOP = "https://shop.example.com"


def item(name, path, *children):
    return NavigationItem(name=name, url=f"{SHOP}{path}", has_dropdown=bool(children), children=list(children))


def storefront_candidate(men_extra=()):
    """Candidate like the one read from the storefront header."""
    return NavigationCandidate(
        items=[
            item("Women", "/women", item("Dresses", "/women/dresses"), item("Tops", "/women/tops")),
            item("Men", "/men", item("Shirts", "/men/shirts"), item("Jeans", "/men/jeans"), *men_extra),
            item("Shoes", "/shoes"),
            item("Sale", "/sale"),
            item("Account", "/account"),
        ],
        confidence=0.9,
        strategy_name="aria",
    )


def make_builder(pages, events=None, **site):
    """Tree builder without politeness delays or retry backoff."""
    return NavigationTreeBuilder(
        StaticPageProvider(mapping_fetcher(pages)),
        DiscoveryConfig(node_settle_ms=0, node_retry_backoff_ms=0),
        SiteCrawlConfig(domain="shop.example.com", **site),
        PolitenessLimiter(RateLimitConfig(base_delay=0, min_delay=0)),
        events,
    )


def all_nodes(root):
    return [n for n in root.iter_nodes() if n is not root]


class SlowProvider(PageProvider):
    """Static pages that each take ``delay_s`` to load."""

    def __init__(self, pages, delay_s):
        self._pages = StaticPageProvider(mapping_fetcher(pages))
        self.delay_s = delay_s

    @asynccontextmanager
    async def page(self, url):
        await asyncio.sleep(self.delay_s)
        async with self._pages.page(url) as page:
            yield page


class TestBuildTree:
    """Tests for build_tree()."""

    @pytest.mark.asyncio
    async def test_builds_storefront_tree(self, storefront_pages):
        """Test the full tree built from embedded and scanned children."""
        root = await make_builder(storefront_pages).build_tree(f"{SHOP}/", storefront_candidate())

        assert root.kind == NodeKind.ROOT
        assert root.name == "shop.example.com"
        assert root.canonical_url == f"{SHOP}/"
        assert [c.name for c in root.children] == ["Women", "Men", "Shoes"]

        women, men, shoes = root.children
        assert [c.name for c in women.children] == ["Dresses", "Tops"]
        assert [c.name for c in women.children[0].children] == ["Maxi Dresses", "Midi Dresses"]
        assert [c.name for c in shoes.children] == ["Boots", "Sneakers"]
        assert women.children[0].children[0].kind == NodeKind.SUB_SUBCATEGORY

        assert root.metadata["total_items"] == 11
        assert root.metadata["max_depth_reached"] == 3
        assert root.metadata["pages_loaded"] == 9
        assert root.metadata["failed_nodes"] == []
        assert root.metadata["budget_exhausted"] is None

    @pytest.mark.asyncio
    async def test_depth_and_uniqueness_invariants(self, storefront_pages):
        """Test parent/child depths and unique canonical URLs."""
        root = await make_builder(storefront_pages).build_tree(f"{SHOP}/", storefront_candidate())

        for node in root.iter_nodes():
            for child in node.children:
                assert child.depth == node.depth + 1
                assert child.kind == NodeKind.for_depth(child.depth)
        urls = [n.canonical_url for n in root.iter_nodes()]
        assert len(urls) == len(set(urls))

    @pytest.mark.asyncio
    async def test_max_depth_one(self, storefront_pages):
        """Test that depth 1 returns top-level nodes without children."""
        builder = make_builder(storefront_pages)
        root = await builder.build_tree(f"{SHOP}/", storefront_candidate(), max_depth=1)

        assert len(root.children) == 3
        assert all(node.children == [] for node in all_nodes(root))
        assert root.metadata["pages_loaded"] == 0

    @pytest.mark.asyncio
    async def test_site_max_depth(self, storefront_pages):
        """Test that the site configuration bounds depth."""
        root = await make_builder(storefront_pages, max_depth=2).build_tree(f"{SHOP}/", storefront_candidate())

        assert max(n.depth for n in all_nodes(root)) == 2

    @pytest.mark.asyncio
    async def test_duplicate_urls_claimed_once(self, storefront_pages):
        """Test that a URL reachable from two parents appears once."""
        candidate = storefront_candidate(men_extra=(item("Dresses", "/women/dresses/"),))
        root = await make_builder(storefront_pages).build_tree(f"{SHOP}/", candidate)

        men = root.children[1]
        assert [c.name for c in men.children] == ["Shirts", "Jeans"]
        dresses = [n for n in all_nodes(root) if n.canonical_url == f"{SHOP}/women/dresses"]
        assert len(dresses) == 1

    @pytest.mark.asyncio
    async def test_links_back_to_ancestors(self, storefront_pages):
        """Test that a category linking to its parents does not loop."""
        storefront_pages[f"{SHOP}/shoes/boots"] = (
            '<html><body><aside class="category-nav">'
            '<a href="/shoes">Shoes</a><a href="/women">Women</a><a href="/">Home</a>'
            "</aside></body></html>"
        )
        root = await make_builder(storefront_pages).build_tree(f"{SHOP}/", storefront_candidate())

        boots = root.children[2].children[0]
        assert boots.name == "Boots"
        assert boots.children == []

    @pytest.mark.asyncio
    async def test_failed_node_does_not_abort_siblings(self, storefront_pages):
        """Test partial results when one category page cannot be loaded."""
        del storefront_pages[f"{SHOP}/men/shirts"]
        root = await make_builder(storefront_pages).build_tree(f"{SHOP}/", storefront_candidate())

        failures = root.metadata["failed_nodes"]
        assert [f["url"] for f in failures] == [f"{SHOP}/men/shirts"]
        assert "2 attempt" in failures[0]["error"]
        assert [c.name for c in root.children[1].children] == ["Shirts", "Jeans"]
        assert root.metadata["total_items"] == 11

    @pytest.mark.asyncio
    async def test_branch_width(self, storefront_pages):
        """Test that each node keeps at most max_branch_width children."""
        root = await make_builder(storefront_pages, max_branch_width=2).build_tree(
            f"{SHOP}/", storefront_candidate()
        )

        assert [c.name for c in root.children] == ["Women", "Men"]
        assert all(len(n.children) <= 2 for n in root.iter_nodes())

    @pytest.mark.asyncio
    async def test_category_url_budget(self, storefront_pages):
        """Test that the build stops once the URL budget is spent."""
        root = await make_builder(storefront_pages, max_category_urls=3).build_tree(
            f"{SHOP}/", storefront_candidate()
        )

        assert root.metadata["total_items"] == 3
        assert root.metadata["budget_exhausted"] == "max_category_urls"

    @pytest.mark.asyncio
    async def test_time_budget(self, storefront_pages):
        """Test that an exhausted time budget returns the partial tree."""
        root = await make_builder(storefront_pages).build_tree(
            f"{SHOP}/", storefront_candidate(), time_budget_ms=0
        )

        assert root.children == []
        assert root.metadata["budget_exhausted"] == "global_timeout"

    @pytest.mark.asyncio
    async def test_emits_node_events(self, storefront_pages):
        """Test that explored nodes are reported with their source."""
        received = []
        sink = CallbackEventSink(lambda event, data: received.append((event, data)))
        await make_builder(storefront_pages, events=sink).build_tree(f"{SHOP}/", storefront_candidate())

        by_url = {d["url"]: d for e, d in received if e == ev.TREE_NODE_EXPLORED}
        assert by_url[f"{SHOP}/women"]["source"] == "embedded"
        assert by_url[f"{SHOP}/shoes"]["source"] == "scanned"
        assert by_url[f"{SHOP}/shoes"]["children"] == 2

    @pytest.mark.asyncio
    async def test_invalid_base_url(self, storefront_pages):
        """Test that an unusable base URL is rejected."""
        with pytest.raises(InvalidSeedUrlError):
            await make_builder(storefront_pages).build_tree("mailto:shop@example.com", storefront_candidate())

    @pytest.mark.asyncio
    async def test_slow_pages_cut_at_deadline(self, storefront_pages):
        """Test that a page load slower than the time budget ends the build on time."""
        builder = make_builder(storefront_pages)
        builder.provider = SlowProvider(storefront_pages, delay_s=5)

        started = time.monotonic()
        root = await builder.build_tree(f"{SHOP}/", storefront_candidate(), time_budget_ms=300)

        assert time.monotonic() - started < 2
        assert [c.name for c in root.children] == ["Women", "Men", "Shoes"]
        assert root.metadata["total_items"] == 7
        assert root.metadata["budget_exhausted"] == "global_timeout"
        assert root.metadata["failed_nodes"] == []

    @pytest.mark.asyncio
    async def test_cancelled_build_keeps_attached_nodes(self, storefront_pages):
        """Test that nodes claimed before a cancellation stay on the caller's root."""
        builder = make_builder(storefront_pages)
        builder.provider = SlowProvider(storefront_pages, delay_s=5)
        root = NavigationTreeBuilder.new_root(f"{SHOP}/")

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(builder.build_tree(f"{SHOP}/", storefront_candidate(), root=root), timeout=0.3)

        assert [c.name for c in root.children] == ["Women", "Men", "Shoes"]
        summary = NavigationTreeBuilder.summarize(root, "global_timeout")
        assert summary["total_items"] == 7
        assert summary["max_depth_reached"] == 2
        assert summary["budget_exhausted"] == "global_timeout"

    @pytest.mark.asyncio
    async def test_configured_explorable_terms(self, storefront_pages):
        """Test that seed selection follows the configured category terms."""
        builder = NavigationTreeBuilder(
            StaticPageProvider(mapping_fetcher(storefront_pages)),
            DiscoveryConfig(node_settle_ms=0, node_retry_backoff_ms=0, explorable_terms=("sale",)),
            SiteCrawlConfig(domain="shop.example.com", max_depth=1),
            PolitenessLimiter(RateLimitConfig(base_delay=0, min_delay=0)),
        )

        root = await builder.build_tree(f"{SHOP}/", storefront_candidate())

        assert [c.name for c in root.children] == ["Sale"]


class TestSeedsAndScanning:
    """Tests for seed selection and child link scanning."""

    def test_prefers_explorable_items(self):
        """Test that category-like items are chosen as seeds."""
        items = [item("Sale", "/sale"), item("Women", "/women"), item("Kids", "/kids")]
        seeds = NavigationTreeBuilder.select_seeds(items, width=5)

        assert [s.name for s in seeds] == ["Women", "Kids"]

    def test_falls_back_to_navigable_items(self):
        """Test seeds when no item looks like a category."""
        items = [
            NavigationItem(name="Brands"),
            item("Sale", "/sale"),
            item("Gifts", "/gifts"),
            item("Outlet", "/outlet"),
        ]
        seeds = NavigationTreeBuilder.select_seeds(items, width=2)

        assert [s.name for s in seeds] == ["Sale", "Gifts"]

    def test_custom_pattern(self):
        """Test seed selection with caller-supplied terms."""
        items = [item("Women", "/women"), item("Outlet", "/outlet"), item("Gifts", "/gifts")]
        seeds = NavigationTreeBuilder.select_seeds(items, 5, explorable_pattern(["Outlet", "gifts"]))

        assert [s.name for s in seeds] == ["Outlet", "Gifts"]

    def test_no_terms_match_nothing(self):
        """Test that an empty term list falls back to navigable items."""
        pattern = explorable_pattern([])
        items = [item("Women", "/women"), item("Sale", "/sale")]

        assert pattern.search("women") is None
        assert [s.name for s in NavigationTreeBuilder.select_seeds(items, 1, pattern)] == ["Women"]

    def test_scan_child_links(self):
        """Test subcategory link filtering on a category page."""
        html = """
        <html><body><aside class="category-nav">
          <a href="/shoes">Shoes</a>
          <a href="/shoes/boots">Boots</a>
          <a href="/shoes/boots/?utm_source=side">Boots again</a>
          <a href="/account">My Account</a>
          <a href="https://www.instagram.com/shop">Follow us</a>
          <a href="https://other.com/shoes/sandals">Partner sandals</a>
        </aside></body></html>
        """
        items = NavigationTreeBuilder.scan_child_links(html, f"{SHOP}/shoes", f"{SHOP}/", level=2)

        assert [(i.name, i.url, i.level) for i in items] == [("Boots", f"{SHOP}/shoes/boots", 2)]


class TestVisitedSet:
    """Tests for VisitedSet."""

    @pytest.mark.asyncio
    async def test_concurrent_claims(self):
        """Test that only one of many concurrent claims succeeds."""
        visited = VisitedSet()
        results = await asyncio.gather(*(visited.claim(f"{SHOP}/women") for _ in range(10)))

        assert results.count(True) == 1
        assert f"{SHOP}/women" in visited
        assert len(visited) == 1

    @pytest.mark.asyncio
    async def test_budget(self):
        """Test that claims beyond the budget fail and flag it."""
        visited = VisitedSet(max_urls=1)

        assert await visited.claim(f"{SHOP}/a")
        assert not await visited.claim(f"{SHOP}/b")
        assert visited.budget_exhausted
