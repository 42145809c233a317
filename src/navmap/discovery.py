"""
Site discovery: the end-to-end run for one seed URL.

Opens the seed page, arbitrates navigation candidates, builds the category
tree, classifies sections, optionally resolves terminal listings, and hands
the finished result to the store. Every stage after the seed page writes
into the result as it completes, so a run cut short by the global timeout
still returns everything gathered so far.
"""

import asyncio
import logging
import time
from contextlib import AsyncExitStack
from typing import Any, Awaitable, Callable, Optional, Sequence

from navmap.config import DiscoveryConfig, SiteConfigRegistry, SiteCrawlConfig
from navmap.errors import PageUnavailableError
from navmap.events import EventSink
from navmap.filters import discover_filters
from navmap.infrastructure.rate_limiter import PolitenessLimiter, RateLimitConfig
from navmap.intelligence.strategy_memory import StrategyMemory
from navmap.models import DiscoveryResult, DropdownMenu, ItemKind, ListingResult, NavigationItem, PaginationState
from navmap.page import PageAdapter, PageProvider
from navmap.pagination import PaginationHandler
from navmap.pipeline import DiscoveryPipeline
from navmap.storage import ResultStore
from navmap.strategies import NavigationStrategy
from navmap.taxonomy import TaxonomyClassifier
from navmap.tree_builder import NavigationTreeBuilder
from navmap.urls import canonicalize, domain_of, require_seed_url

logger = logging.getLogger(__name__)

BeforeDiscoveryHook = Callable[[PageAdapter], Awaitable[Any]]

# Time kept back from the tree build so the run can finish classification
TREE_BUDGET_RESERVE_MS = 1000


class SiteDiscovery:
    """Runs navigation and taxonomy discovery for a site."""

    def __init__(
        self,
        provider: PageProvider,
        config: Optional[DiscoveryConfig] = None,
        config_registry: Optional[SiteConfigRegistry] = None,
        memory: Optional[StrategyMemory] = None,
        store: Optional[ResultStore] = None,
        events: Optional[EventSink] = None,
        strategies: Optional[Sequence[NavigationStrategy]] = None,
        before_discovery: Optional[BeforeDiscoveryHook] = None,
    ):
        """
        Initialize site discovery.

        Args:
            provider: Supplies loaded pages
            config: Pipeline, tree and pagination defaults
            config_registry: Per-domain crawl bounds (defaults apply when absent)
            memory: Learned strategy priorities, updated after each run
            store: Where finished results are saved
            events: Progress event sink
            strategies: Strategies to arbitrate (defaults to all registered)
            before_discovery: Coroutine run on the seed page before strategies,
                e.g. to dismiss consent popups
        """
        self.provider = provider
        self.config = config or DiscoveryConfig()
        self.config_registry = config_registry
        self.memory = memory
        self.store = store
        self.events = events or EventSink()
        self.strategies = strategies
        self.before_discovery = before_discovery

    @classmethod
    def from_settings(cls, provider: PageProvider, **kwargs) -> "SiteDiscovery":
        """Build a discovery run configured from NAVMAP_* environment settings.

        Keyword arguments override the settings-derived collaborators.
        """
        options = {
            "config": DiscoveryConfig.from_env(),
            "config_registry": SiteConfigRegistry.from_settings(),
            "memory": StrategyMemory.from_settings(),
            "store": ResultStore(),
        }
        options.update(kwargs)
        return cls(provider, **options)

    def site_config(self, domain: str) -> SiteCrawlConfig:
        if self.config_registry is None:
            return SiteCrawlConfig(domain=domain)
        return self.config_registry.get(domain)

    async def discover(self, seed_url: str) -> DiscoveryResult:
        """
        Discover the navigation map of a site.

        Args:
            seed_url: Site URL to start from

        Returns:
            DiscoveryResult; ``metadata["error"]`` is set when the run was
            degraded (``global_timeout`` or an exhausted pipeline)

        Raises:
            InvalidSeedUrlError: If seed_url is not a usable http(s) URL
            PageUnavailableError: If the seed page cannot be opened
        """
        seed = require_seed_url(seed_url)
        domain = domain_of(seed)
        site = self.site_config(domain)
        result = DiscoveryResult(seed_url=seed, domain=domain)
        result.metadata["site_config"] = site.model_dump()

        started = time.monotonic()
        deadline = started + site.global_timeout_ms / 1000
        logger.info(f"Starting discovery for {seed} (budget {site.global_timeout_ms}ms)")

        try:
            await asyncio.wait_for(self._run(seed, site, result, deadline), timeout=site.global_timeout_ms / 1000)
        except asyncio.TimeoutError:
            result.metadata["error"] = "global_timeout"
            logger.warning(f"Discovery for {seed} hit the global timeout; returning partial result")
            self._finish_partial(result)

        result.metadata["duration_ms"] = round((time.monotonic() - started) * 1000, 1)

        if self.store is not None:
            self.store.save(domain, result)

        logger.info(
            f"Discovery for {domain} finished: {len(result.main_sections)} sections, "
            f"{self._tree_size(result)} tree nodes, "
            f"classification confidence {result.taxonomy.metadata.get('classification_confidence', 0.0):.2f}"
        )
        return result

    async def _run(self, seed: str, site: SiteCrawlConfig, result: DiscoveryResult, deadline: float) -> None:
        def remaining_ms() -> int:
            return max(0, int((deadline - time.monotonic()) * 1000))

        provider = self.provider.for_site(site)

        async with AsyncExitStack() as stack:
            try:
                page = await stack.enter_async_context(provider.page(seed))
            except Exception as e:
                raise PageUnavailableError(seed, str(e)) from e

            if self.before_discovery is not None:
                await self.before_discovery(page)

            pipeline = DiscoveryPipeline(self.strategies, self.config, self.memory, self.events)
            outcome = await pipeline.discover(
                page, timeout_ms=min(self.config.pipeline_timeout_ms, remaining_ms())
            )
            candidate = outcome.candidate
            result.main_sections = list(candidate.items)
            result.dropdown_menus = self.dropdown_map(candidate.dropdowns)
            result.metadata["pipeline"] = outcome.metadata
            result.metadata["strategy"] = candidate.strategy_name
            result.metadata["confidence"] = candidate.confidence
            if candidate.error:
                result.metadata["error"] = candidate.error

            result.filters = discover_filters(await page.snapshot(), page.url)

        limiter = PolitenessLimiter(RateLimitConfig.from_rps(site.crawl_rate_rps))
        builder = NavigationTreeBuilder(provider, self.config, site, limiter, self.events)
        # Attached before the build so a timeout keeps the partial tree
        result.hierarchical_tree = NavigationTreeBuilder.new_root(seed)
        await builder.build_tree(
            seed,
            candidate,
            time_budget_ms=max(0, remaining_ms() - TREE_BUDGET_RESERVE_MS),
            root=result.hierarchical_tree,
        )

        classifier = TaxonomyClassifier(self.events)
        result.taxonomy = classifier.classify(self.sections_for_taxonomy(result))

        if self.config.resolve_listings > 0:
            await self._resolve_listings(provider, result, remaining_ms)

    def _finish_partial(self, result: DiscoveryResult) -> None:
        """Summarize and classify whatever a cut-short run gathered."""
        tree = result.hierarchical_tree
        if tree is not None and "total_items" not in tree.metadata:
            tree.metadata = NavigationTreeBuilder.summarize(tree, "global_timeout")
        if "classification_confidence" not in result.taxonomy.metadata:
            sections = self.sections_for_taxonomy(result)
            if sections:
                result.taxonomy = TaxonomyClassifier(self.events).classify(sections)

    @staticmethod
    def dropdown_map(menus: Sequence[DropdownMenu]) -> dict[str, DropdownMenu]:
        """
        Key dropdown menus by trigger label.

        Menus sharing a label, such as several unlabeled ones, are kept under
        their trigger URL when it is free, otherwise as ``"label (n)"``.
        """
        keyed: dict[str, DropdownMenu] = {}
        for menu in menus:
            key = menu.trigger
            if key in keyed and menu.trigger_url and menu.trigger_url not in keyed:
                key = menu.trigger_url
            n = 2
            while key in keyed:
                key = f"{menu.trigger} ({n})"
                n += 1
            keyed[key] = menu
        return keyed

    @staticmethod
    def sections_for_taxonomy(result: DiscoveryResult) -> list[NavigationItem]:
        """Main sections plus first-level tree nodes, deduplicated."""
        sections: list[NavigationItem] = []
        seen: set[str] = set()

        def key(name: str, url: Optional[str]) -> str:
            canonical = canonicalize(url, result.seed_url) if url else None
            return canonical or f"name:{name.lower()}"

        for item in result.main_sections:
            k = key(item.name, item.url)
            if k not in seen:
                seen.add(k)
                sections.append(item)

        if result.hierarchical_tree is not None:
            for node in result.hierarchical_tree.children:
                k = key(node.name, node.canonical_url)
                if k not in seen:
                    seen.add(k)
                    sections.append(NavigationItem(
                        name=node.name,
                        url=node.canonical_url,
                        kind=ItemKind.MAIN_SECTION,
                        source_strategy="tree",
                    ))
        return sections

    async def _resolve_listings(
        self, provider: PageProvider, result: DiscoveryResult, remaining_ms: Callable[[], int]
    ) -> None:
        tree = result.hierarchical_tree
        leaves = tree.leaves() if tree is not None else []
        handler = PaginationHandler(
            max_pages=self.config.max_pagination_depth,
            retry_backoff_ms=self.config.node_retry_backoff_ms,
            navigation_timeout_ms=self.config.node_timeout_ms,
        )
        filter_names = {group.name.lower() for group in result.filters}

        for leaf in leaves[: self.config.resolve_listings]:
            url = leaf.canonical_url
            if url is None or remaining_ms() <= 0:
                break
            handler.max_duration_ms = remaining_ms()
            try:
                async with provider.page(url) as page:
                    for group in discover_filters(await page.snapshot(), page.url):
                        if group.name.lower() not in filter_names:
                            filter_names.add(group.name.lower())
                            result.filters.append(group)
                    listing = await handler.paginate(page, self.config.max_products_per_page)
            except Exception as e:
                logger.warning(f"Could not resolve listing {url}: {e}")
                listing = ListingResult(
                    state=PaginationState(current_url=url, stopped_reason="error"),
                    metadata={"error": str(e), "stopped_reason": "error"},
                )
            result.listings[url] = listing

    @staticmethod
    def _tree_size(result: DiscoveryResult) -> int:
        if result.hierarchical_tree is None:
            return 0
        return result.hierarchical_tree.metadata.get("total_items", 0)
