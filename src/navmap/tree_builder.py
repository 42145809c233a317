"""
Bounded, cycle-safe category tree construction.

The builder seeds the tree from the explorable items of a navigation
candidate, then walks down level by level. Items that already carry
dropdown children are expanded without loading anything; other items are
loaded through the page provider and scanned for subcategory links.

Guarantees:
- every node's depth is at most ``max_depth`` and children sit exactly one
  level below their parent;
- no canonical URL appears twice in one tree (the per-build VisitedSet is
  consulted under a lock before any exploration);
- one failing node never aborts its siblings or ancestors;
- running out of time or URL budget ends the build with the partial tree.
"""

import asyncio
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from navmap import dom
from navmap import events as ev
from navmap.config import DiscoveryConfig, SiteCrawlConfig
from navmap.constants import CHILD_LINK_SELECTORS, EXPLORABLE_TERMS
from navmap.errors import InvalidSeedUrlError, NodeNavigationError
from navmap.events import EventSink
from navmap.infrastructure.rate_limiter import PolitenessLimiter, RateLimitConfig
from navmap.models import ItemKind, NavigationCandidate, NavigationItem, NodeKind, TreeNode
from navmap.page import PageProvider
from navmap.urls import canonicalize, domain_of, is_excluded_url

logger = logging.getLogger(__name__)


def explorable_pattern(terms: Iterable[str]) -> re.Pattern:
    """Compile category-like terms into a whole-word matcher; no terms match nothing."""
    words = [re.escape(t.strip().lower()) for t in terms if t.strip()]
    if not words:
        return re.compile(r"(?!)")
    return re.compile(r"\b(" + "|".join(words) + r")\b")


_EXPLORABLE = explorable_pattern(EXPLORABLE_TERMS)


class VisitedSet:
    """Canonical URLs claimed during one tree build.

    Claims are made under an ``asyncio.Lock`` so two concurrently explored
    branches can never both take the same URL.
    """

    def __init__(self, max_urls: Optional[int] = None):
        self._urls: set[str] = set()
        self._lock = asyncio.Lock()
        self.max_urls = max_urls
        self.budget_exhausted = False

    async def claim(self, url: str) -> bool:
        """Claim a URL; False if it was already claimed or the budget is spent."""
        async with self._lock:
            if url in self._urls:
                return False
            if self.max_urls is not None and len(self._urls) >= self.max_urls:
                self.budget_exhausted = True
                return False
            self._urls.add(url)
            return True

    def __contains__(self, url: str) -> bool:
        return url in self._urls

    def __len__(self) -> int:
        return len(self._urls)


@dataclass
class _BuildState:
    base_url: str
    max_depth: int
    max_branch_width: int
    deadline: float
    visited: VisitedSet
    semaphore: asyncio.Semaphore
    failures: list[dict[str, Any]] = field(default_factory=list)
    stop_reason: Optional[str] = None
    pages_loaded: int = 0

    def remaining_s(self) -> float:
        return self.deadline - time.monotonic()

    def out_of_time(self) -> bool:
        if time.monotonic() >= self.deadline:
            self.stop_reason = self.stop_reason or "global_timeout"
            return True
        return False


def is_explorable(item: NavigationItem, pattern: re.Pattern = _EXPLORABLE) -> bool:
    """Check whether an item looks like a product category worth exploring."""
    return bool(pattern.search(item.name.lower()))


class NavigationTreeBuilder:
    """Builds hierarchical category trees from navigation candidates."""

    def __init__(
        self,
        provider: PageProvider,
        config: Optional[DiscoveryConfig] = None,
        site_config: Optional[SiteCrawlConfig] = None,
        limiter: Optional[PolitenessLimiter] = None,
        events: Optional[EventSink] = None,
    ):
        """
        Initialize the tree builder.

        Args:
            provider: Supplies loaded pages for category URLs
            config: Node timeout, settle and retry settings, and the seed terms
            site_config: Depth, width, budget and concurrency bounds
            limiter: Politeness limiter (defaults to the site's crawl rate)
            events: Optional progress event sink
        """
        self.provider = provider
        self.config = config or DiscoveryConfig()
        self.site_config = site_config or SiteCrawlConfig()
        self.limiter = limiter or PolitenessLimiter(RateLimitConfig.from_rps(self.site_config.crawl_rate_rps))
        self.events = events or EventSink()
        self._explorable = explorable_pattern(self.config.explorable_terms)

    @staticmethod
    def new_root(base_url: str) -> TreeNode:
        """
        Create the empty root node for a site.

        Raises:
            InvalidSeedUrlError: If base_url is not a usable http(s) URL
        """
        root_url = canonicalize(base_url)
        if root_url is None:
            raise InvalidSeedUrlError(base_url)
        return TreeNode(name=domain_of(root_url), canonical_url=root_url, depth=0, kind=NodeKind.ROOT)

    async def build_tree(
        self,
        base_url: str,
        candidate: NavigationCandidate,
        max_depth: Optional[int] = None,
        max_branch_width: Optional[int] = None,
        time_budget_ms: Optional[int] = None,
        root: Optional[TreeNode] = None,
    ) -> TreeNode:
        """
        Build the category tree for a site.

        Args:
            base_url: Site URL the candidate was discovered on
            candidate: Winning navigation candidate
            max_depth: Deepest level to create (defaults to the site config)
            max_branch_width: Children kept per node (defaults to the site config)
            time_budget_ms: Wall-clock budget (defaults to the site's global timeout)
            root: Root node to build into, from ``new_root()``; callers holding it
                keep the partial tree if the build is cancelled

        Returns:
            Root TreeNode whose metadata holds ``total_items``,
            ``max_depth_reached``, failures and budget information

        Raises:
            InvalidSeedUrlError: If base_url is not a usable http(s) URL
        """
        root = root or self.new_root(base_url)
        root_url = root.canonical_url

        max_depth = self.site_config.max_depth if max_depth is None else max_depth
        max_branch_width = self.site_config.max_branch_width if max_branch_width is None else max_branch_width
        budget_ms = self.site_config.global_timeout_ms if time_budget_ms is None else time_budget_ms

        started = time.monotonic()
        state = _BuildState(
            base_url=root_url,
            max_depth=max_depth,
            max_branch_width=max_branch_width,
            deadline=started + budget_ms / 1000,
            # The root URL is claimed too, so the budget covers it
            visited=VisitedSet(self.site_config.max_category_urls + 1),
            semaphore=asyncio.Semaphore(self.site_config.max_concurrent_pages),
        )
        await state.visited.claim(root_url)

        logger.info(f"Building category tree for {root_url} (max_depth={max_depth}, width={max_branch_width})")
        if max_depth >= 1:
            seeds = self.select_seeds(candidate.items, max_branch_width, self._explorable)
            await self._expand(root, seeds, 1, state)

        if state.visited.budget_exhausted:
            state.stop_reason = state.stop_reason or "max_category_urls"

        root.metadata = self.summarize(root, state.stop_reason)
        root.metadata.update({
            "pages_loaded": state.pages_loaded,
            "failed_nodes": state.failures,
            "duration_ms": round((time.monotonic() - started) * 1000, 1),
        })
        logger.info(
            f"Category tree for {root_url}: {root.metadata['total_items']} nodes, "
            f"depth {root.metadata['max_depth_reached']}, {len(state.failures)} failed nodes"
        )
        return root

    @staticmethod
    def select_seeds(
        items: tuple[NavigationItem, ...] | list[NavigationItem],
        width: int,
        pattern: re.Pattern = _EXPLORABLE,
    ) -> list[NavigationItem]:
        """
        Pick the top-level items to explore, preserving discovery order.

        Items matching category-like terms are preferred; when none match,
        the first items are used as-is.
        """
        navigable = [i for i in items if i.url]
        explorable = [i for i in navigable if is_explorable(i, pattern)]
        return (explorable or navigable)[:width]

    async def _expand(
        self, parent: TreeNode, items: list[NavigationItem], depth: int, state: _BuildState
    ) -> None:
        """Claim and attach children of ``parent``, then explore them concurrently."""
        claimed: list[tuple[TreeNode, NavigationItem]] = []
        for item in items:
            if len(claimed) >= state.max_branch_width:
                break
            if state.stop_reason or state.out_of_time():
                break
            url = canonicalize(item.url, state.base_url)
            if url is None or is_excluded_url(url, state.base_url):
                continue
            if not await state.visited.claim(url):
                if state.visited.budget_exhausted:
                    state.stop_reason = state.stop_reason or "max_category_urls"
                    break
                continue
            node = TreeNode(
                name=item.name,
                canonical_url=url,
                depth=depth,
                kind=NodeKind.for_depth(depth),
            )
            parent.children.append(node)
            claimed.append((node, item))

        await asyncio.gather(*(self._explore(node, item, state) for node, item in claimed))

    async def _explore(self, node: TreeNode, item: NavigationItem, state: _BuildState) -> None:
        if node.depth >= state.max_depth or state.stop_reason:
            return

        if item.children:
            child_items = list(item.children)
            source = "embedded"
        else:
            child_items = await self._scan_node(node, state)
            source = "scanned"

        await self._expand(node, child_items, node.depth + 1, state)
        self.events.emit(
            ev.TREE_NODE_EXPLORED,
            url=node.canonical_url,
            depth=node.depth,
            children=len(node.children),
            source=source,
        )

    async def _scan_node(self, node: TreeNode, state: _BuildState) -> list[NavigationItem]:
        """
        Load a category page and collect its subcategory links; [] on failure.

        Each attempt, including the wait for a page slot, is cut short at the
        build deadline so the partial tree is returned on time.
        """
        timeout = (self.config.node_timeout_ms + self.config.node_settle_ms) / 1000
        last_error: Optional[BaseException] = None

        for attempt in (1, 2):
            if state.out_of_time():
                return []
            started = time.monotonic()
            try:
                html = await asyncio.wait_for(self._load_slot(node.canonical_url, state, timeout), state.remaining_s())
                state.pages_loaded += 1
                self.limiter.record(time.monotonic() - started, success=True)
                return self.scan_child_links(html, node.canonical_url, state.base_url, node.depth + 1)
            except asyncio.TimeoutError:
                if state.out_of_time():
                    logger.debug(f"Build deadline reached while loading {node.canonical_url}")
                    return []
                last_error = TimeoutError(f"timed out after {timeout:.1f}s")
            except Exception as e:
                last_error = e
            self.limiter.record(time.monotonic() - started, success=False)
            if attempt == 1:
                logger.debug(f"Retrying {node.canonical_url} after error: {last_error}")
                await asyncio.sleep(max(0.0, min(self.config.node_retry_backoff_ms / 1000, state.remaining_s())))

        error = NodeNavigationError(node.canonical_url, str(last_error), attempts=2)
        logger.warning(f"Node exploration failed: {error}")
        state.failures.append({"url": node.canonical_url, "depth": node.depth, "error": str(error)})
        return []

    async def _load_slot(self, url: str, state: _BuildState, timeout: float) -> str:
        async with state.semaphore:
            await self.limiter.wait()
            return await asyncio.wait_for(self._load(url), timeout=timeout)

    async def _load(self, url: str) -> str:
        async with self.provider.page(url) as page:
            await page.wait_for_stable(self.config.node_settle_ms)
            return await page.snapshot()

    @staticmethod
    def scan_child_links(html: str, page_url: str, base_url: str, level: int) -> list[NavigationItem]:
        """
        Collect subcategory links from a category page.

        Args:
            html: Page snapshot
            page_url: URL of the category page (excluded from results)
            base_url: Site URL used for same-origin and exclusion checks
            level: Level to assign to the returned items

        Returns:
            Deduplicated child items in document order per selector
        """
        soup = dom.parse(html)
        page_key = canonicalize(page_url)
        seen: set[str] = set()
        items: list[NavigationItem] = []
        for selector in CHILD_LINK_SELECTORS:
            for anchor in dom.select(soup, selector):
                if anchor.name != "a":
                    continue
                text = dom.link_text(anchor)
                url = dom.link_url(anchor, page_url)
                if not text or not url or url == page_key or url in seen:
                    continue
                if dom.is_non_navigation(text) or is_excluded_url(url, base_url):
                    continue
                seen.add(url)
                items.append(NavigationItem(
                    name=text,
                    url=url,
                    kind=ItemKind.SIDEBAR,
                    level=level,
                    source_strategy="tree_scan",
                    selector=selector,
                ))
        return items

    @staticmethod
    def summarize(root: TreeNode, stop_reason: Optional[str] = None) -> dict[str, Any]:
        """Aggregate counts for a tree, computed in one traversal; works on partial trees."""
        nodes = [n for n in root.iter_nodes() if n is not root]
        by_kind: dict[str, int] = {}
        for node in nodes:
            by_kind[node.kind.value] = by_kind.get(node.kind.value, 0) + 1
        return {
            "total_items": len(nodes),
            "max_depth_reached": max((n.depth for n in nodes), default=0),
            "nodes_by_kind": by_kind,
            "leaf_count": sum(1 for n in nodes if not n.children),
            "budget_exhausted": stop_reason,
        }
