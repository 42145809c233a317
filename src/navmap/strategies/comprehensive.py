"""Fallback strategy that collects every navigation-looking link on the page."""

import logging
import re
from typing import Any

from navmap import dom
from navmap.constants import COMPREHENSIVE_LINK_SELECTORS, COMPREHENSIVE_SKIP_TEXT, CORE_NAVIGATION_TERMS
from navmap.models import DropdownMenu, NavigationItem
from navmap.page import PageAdapter
from navmap.strategies.base import Extraction, NavigationStrategy

logger = logging.getLogger(__name__)

_CORE_TERMS = re.compile(r"\b(" + "|".join(CORE_NAVIGATION_TERMS) + r")\b")


class ComprehensiveLinkStrategy(NavigationStrategy):
    """Gathers links straight from header, nav and category-shaped selectors."""

    name = "comprehensive"
    description = "All navigation-shaped links"

    async def extract(self, page: PageAdapter) -> Extraction:
        soup = dom.parse(await page.snapshot())
        base_url = page.url
        items: list[NavigationItem] = []
        seen_urls: set[str] = set()
        productive_selectors = visible = 0

        for selector in COMPREHENSIVE_LINK_SELECTORS:
            added = 0
            for anchor in dom.select(soup, selector):
                if anchor.name != "a" or not anchor.get("href"):
                    continue
                item = self.item_from_anchor(anchor, base_url, skip_text=COMPREHENSIVE_SKIP_TEXT)
                if item is None or item.url in seen_urls:
                    continue
                seen_urls.add(item.url)
                if not dom.is_hidden(anchor):
                    visible += 1
                items.append(item)
                added += 1
            if added:
                productive_selectors += 1

        return Extraction(
            items=items,
            metadata={
                "selectors_matched": productive_selectors,
                "visible_items": visible,
            },
        )

    def score(self, items: list[NavigationItem], dropdowns: list[DropdownMenu], metadata: dict[str, Any]) -> float:
        confidence = 0.5

        if len(items) > 100:
            confidence += 0.3
        elif len(items) > 50:
            confidence += 0.2
        elif len(items) > 20:
            confidence += 0.1
        elif len(items) < 5:
            confidence -= 0.2

        if metadata["selectors_matched"] > 5:
            confidence += 0.1

        if any(_CORE_TERMS.search(item.name.lower()) for item in items):
            confidence += 0.1

        return confidence
