"""
Pagination and product-link resolution for terminal category pages.

``detect_next_page`` looks for the four next-page signals in precedence
order; ``ProductLinkExtractor`` pulls canonical product URLs out of a
listing snapshot; ``PaginationHandler`` walks the listing until it runs
out of pages, new products, or budget.
"""

import logging
import re
import time
from dataclasses import dataclass
from typing import Optional

from navmap import dom
from navmap.constants import (
    DEFAULT_MAX_PAGINATION_DEPTH,
    INFINITE_SCROLL_SELECTORS,
    NEXT_CONTROL_SELECTORS,
    NEXT_DATA_ATTRIBUTES,
    NEXT_REL_SELECTORS,
    NEXT_TEXT_PATTERNS,
    NODE_NAVIGATION_TIMEOUT_MS,
    PAGINATION_RETRY_BACKOFF_MS,
    PAGINATION_SLEEP_MS,
    PAGINATION_TIMEOUT_MS,
    PRODUCT_ANCHOR_SAMPLE,
    PRODUCT_LINK_SELECTORS,
    PRODUCT_URL_PATTERNS,
)
from navmap.errors import PaginationLoopGuardTripped
from navmap.models import ListingResult, PaginationState
from navmap.page import PageAdapter
from navmap.urls import canonicalize, is_excluded_url

logger = logging.getLogger(__name__)

# Signal kinds, in precedence order
REL_NEXT = "rel_next"
DATA_ATTRIBUTE = "data_attribute"
NEXT_CONTROL = "next_control"
INFINITE_SCROLL = "infinite_scroll"

_PRODUCT_URL = re.compile("|".join(f"(?:{p})" for p in PRODUCT_URL_PATTERNS), re.IGNORECASE)


@dataclass
class NextPageSignal:
    """How the next page of a listing is reached."""

    kind: str
    url: Optional[str] = None  # None for infinite scroll


def _is_disabled(element) -> bool:
    classes = " ".join(element.get("class") or []).lower()
    return (
        "disabled" in classes
        or element.get("aria-disabled") == "true"
        or element.has_attr("disabled")
    )


def _candidate_url(element, base_url: str) -> Optional[str]:
    if element is None or _is_disabled(element):
        return None
    url = dom.link_url(element, base_url)
    if url is None or url == canonicalize(base_url):
        return None
    return url


def detect_next_page(html: str, base_url: str) -> Optional[NextPageSignal]:
    """
    Find the next page of a listing.

    Precedence: a declared ``rel=next`` relation, a theme data attribute
    (``data-next-url``), a text/ARIA "next" control, and finally an
    infinite-scroll container.

    Args:
        html: Listing page snapshot
        base_url: URL of the listing page

    Returns:
        NextPageSignal, or None when no signal is present
    """
    soup = dom.parse(html)

    for selector in NEXT_REL_SELECTORS:
        for element in dom.select(soup, selector):
            url = _candidate_url(element, base_url)
            if url:
                return NextPageSignal(REL_NEXT, url)

    for attribute in NEXT_DATA_ATTRIBUTES:
        for element in dom.select(soup, f"[{attribute}]"):
            raw = (element.get(attribute) or "").strip()
            url = canonicalize(raw, base_url) if raw else None
            if url and url != canonicalize(base_url):
                return NextPageSignal(DATA_ATTRIBUTE, url)

    for selector in NEXT_CONTROL_SELECTORS:
        for element in dom.select(soup, selector):
            url = _candidate_url(element, base_url)
            if url:
                return NextPageSignal(NEXT_CONTROL, url)

    for anchor in soup.find_all("a", href=True):
        text = dom.text_of(anchor).lower()
        label = (anchor.get("aria-label") or anchor.get("title") or "").lower()
        if text in NEXT_TEXT_PATTERNS or label.startswith("next"):
            url = _candidate_url(anchor, base_url)
            if url:
                return NextPageSignal(NEXT_CONTROL, url)

    if dom.select_first(soup, INFINITE_SCROLL_SELECTORS) is not None:
        return NextPageSignal(INFINITE_SCROLL)

    return None


class ProductLinkExtractor:
    """Extracts canonical product URLs from listing pages."""

    def __init__(self, anchor_sample: int = PRODUCT_ANCHOR_SAMPLE):
        self.anchor_sample = anchor_sample

    def extract(self, html: str, base_url: str, limit: Optional[int] = None) -> list[str]:
        """
        Extract product URLs from a listing snapshot.

        Selector matches come first, in selector priority order, followed by
        anchors whose URL has a product-like shape.

        Args:
            html: Listing page snapshot
            base_url: URL of the listing page
            limit: Maximum number of URLs to return

        Returns:
            Canonical, deduplicated, same-site product URLs
        """
        soup = dom.parse(html)
        listing_url = canonicalize(base_url)
        found: list[str] = []
        seen: set[str] = set()

        def add(anchor) -> None:
            url = dom.link_url(anchor, base_url)
            if not url or url in seen or url == listing_url or is_excluded_url(url, base_url):
                return
            seen.add(url)
            found.append(url)

        for selector in PRODUCT_LINK_SELECTORS:
            for anchor in dom.select(soup, selector):
                if anchor.name == "a":
                    add(anchor)

        for anchor in soup.find_all("a", href=True, limit=self.anchor_sample):
            if _PRODUCT_URL.search(anchor["href"].split("?")[0]):
                add(anchor)

        return found[:limit] if limit else found


class PaginationHandler:
    """
    Walks a paginated listing and merges product URLs across pages.

    Every page URL is canonicalized into a visited set, so a listing that
    links back to an earlier page stops instead of looping.
    """

    def __init__(
        self,
        max_pages: int = DEFAULT_MAX_PAGINATION_DEPTH,
        max_duration_ms: int = PAGINATION_TIMEOUT_MS,
        sleep_ms: int = PAGINATION_SLEEP_MS,
        retry_backoff_ms: int = PAGINATION_RETRY_BACKOFF_MS,
        navigation_timeout_ms: int = NODE_NAVIGATION_TIMEOUT_MS,
        extractor: Optional[ProductLinkExtractor] = None,
    ):
        self.max_pages = max_pages
        self.max_duration_ms = max_duration_ms
        self.sleep_ms = sleep_ms
        self.retry_backoff_ms = retry_backoff_ms
        self.navigation_timeout_ms = navigation_timeout_ms
        self.extractor = extractor or ProductLinkExtractor()

    async def paginate(self, page: PageAdapter, max_products_per_page: Optional[int] = None) -> ListingResult:
        """
        Collect product URLs starting from the page's current listing.

        Args:
            page: Page already showing the first listing page
            max_products_per_page: Cap on URLs taken from each page

        Returns:
            ListingResult; ``state.stopped_reason`` is one of no_more_pages,
            no_new_products, max_pages_reached, timeout, duplicate or error
        """
        started = time.monotonic()
        start_url = canonicalize(page.url) or page.url
        state = PaginationState(current_url=start_url)
        visited: set[str] = set()
        products: list[str] = []
        seen: set[str] = set()
        signals: list[str] = []
        metadata: dict = {}
        action: Optional[NextPageSignal] = None

        try:
            while True:
                if state.pages_visited >= self.max_pages:
                    raise PaginationLoopGuardTripped("max_pages_reached", state.pages_visited)
                if (time.monotonic() - started) * 1000 > self.max_duration_ms:
                    raise PaginationLoopGuardTripped("timeout", state.pages_visited)

                if action is not None and action.url:
                    if action.url in visited:
                        state.stopped_reason = "duplicate"
                        break
                    await page.wait(self.sleep_ms)
                    await self._navigate(page, action.url)
                elif action is not None:
                    await page.scroll_to_bottom()
                    await page.wait(self.sleep_ms)

                state.current_url = canonicalize(page.url) or page.url
                visited.add(state.current_url)
                html = await page.snapshot()
                state.pages_visited += 1

                found = self.extractor.extract(html, page.url, limit=max_products_per_page)
                new = [url for url in found if url not in seen]
                seen.update(new)
                products.extend(new)
                logger.debug(f"Listing page {state.pages_visited} ({state.current_url}): {len(new)} new products")

                if not new:
                    state.stopped_reason = "no_new_products"
                    break

                action = detect_next_page(html, page.url)
                state.next_url = action.url if action else None
                if action is None:
                    state.stopped_reason = "no_more_pages"
                    break
                signals.append(action.kind)
        except PaginationLoopGuardTripped as e:
            logger.debug(str(e))
            state.stopped_reason = e.reason
        except Exception as e:
            logger.warning(f"Pagination failed at {action.url if action else page.url}: {e}")
            state.stopped_reason = "error"
            metadata["error"] = str(e)

        metadata.update({
            "stopped_reason": state.stopped_reason,
            "signals": signals,
            "visited_urls": sorted(visited),
            "duration_ms": round((time.monotonic() - started) * 1000, 1),
        })
        logger.info(
            f"Resolved {len(products)} products over {state.pages_visited} page(s) "
            f"from {start_url} ({state.stopped_reason})"
        )
        return ListingResult(
            product_urls=products,
            pages_visited=state.pages_visited,
            state=state,
            metadata=metadata,
        )

    async def _navigate(self, page: PageAdapter, url: str) -> None:
        """Load a listing page, retrying once after a backoff."""
        try:
            await page.goto(url, self.navigation_timeout_ms)
        except Exception as e:
            logger.debug(f"Retrying {url} after error: {e}")
            await page.wait(self.retry_backoff_ms)
            await page.goto(url, self.navigation_timeout_ms)


async def resolve_listing(
    page: PageAdapter,
    max_pagination_depth: int = DEFAULT_MAX_PAGINATION_DEPTH,
    max_products_per_page: Optional[int] = None,
) -> ListingResult:
    """
    Resolve a terminal category page down to product URLs.

    Args:
        page: Page showing the category listing
        max_pagination_depth: Maximum number of listing pages to visit
        max_products_per_page: Cap on URLs taken from each page

    Returns:
        ListingResult with merged, deduplicated product URLs
    """
    handler = PaginationHandler(max_pages=max_pagination_depth)
    return await handler.paginate(page, max_products_per_page=max_products_per_page)
