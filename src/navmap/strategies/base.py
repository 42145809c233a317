"""
Base class for navigation extraction strategies.

Every strategy reads one already-rendered page and returns a
``NavigationCandidate``. Strategies never raise: failures are logged and
reported as a zero-confidence candidate whose metadata carries the error.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from bs4 import Tag

from navmap import dom
from navmap.constants import MAX_STRATEGY_CONFIDENCE, MIN_STRATEGY_CONFIDENCE
from navmap.errors import StrategyExecutionError
from navmap.models import DropdownMenu, ItemKind, NavigationCandidate, NavigationItem
from navmap.page import PageAdapter

logger = logging.getLogger(__name__)


@dataclass
class Extraction:
    """Raw output of a strategy before scoring."""
    items: list[NavigationItem] = field(default_factory=list)
    dropdowns: list[DropdownMenu] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)


def clamp_confidence(value: float) -> float:
    return max(MIN_STRATEGY_CONFIDENCE, min(MAX_STRATEGY_CONFIDENCE, value))


def dedupe_items(items: Iterable[NavigationItem]) -> list[NavigationItem]:
    """Deduplicate items by (name, url), keeping first-seen order.

    When a later duplicate knows about a dropdown the kept item lacks, the
    dropdown information is folded into the kept item.
    """
    kept: dict[tuple[str, Optional[str]], NavigationItem] = {}
    for item in items:
        key = (item.name.lower(), item.url)
        existing = kept.get(key)
        if existing is None:
            kept[key] = item
            continue
        if item.children and not existing.children:
            existing.children = item.children
        existing.has_dropdown = existing.has_dropdown or item.has_dropdown
    return list(kept.values())


class NavigationStrategy(ABC):
    """One heuristic for reading site navigation from a page."""

    name: str = "base"
    description: str = ""

    async def execute(self, page: PageAdapter) -> NavigationCandidate:
        """
        Run the strategy against a page.

        Args:
            page: Loaded page adapter

        Returns:
            NavigationCandidate with deduplicated items and a confidence in
            [0.1, 1.0], or confidence 0 when nothing was found or the
            strategy failed
        """
        start = time.time()
        try:
            extraction = await self.extract(page)
        except Exception as e:
            error = StrategyExecutionError(self.name, str(e) or type(e).__name__)
            logger.warning(f"Strategy {self.name} failed on {page.url}: {error}")
            return NavigationCandidate.failed(
                self.name,
                str(error),
                execution_ms=round((time.time() - start) * 1000, 1),
            )

        items = dedupe_items(extraction.items)
        metadata = {
            **extraction.metadata,
            "strategy": self.name,
            "item_count": len(items),
            "execution_ms": round((time.time() - start) * 1000, 1),
        }

        if not items:
            confidence = 0.0
            metadata.setdefault("reason", "no_items")
        else:
            confidence = clamp_confidence(self.score(items, extraction.dropdowns, metadata))

        logger.debug(
            f"Strategy {self.name}: {len(items)} items, "
            f"{len(extraction.dropdowns)} dropdowns, confidence {confidence:.2f}"
        )

        return NavigationCandidate(
            items=items,
            dropdowns=extraction.dropdowns,
            confidence=confidence,
            strategy_name=self.name,
            metadata=metadata,
        )

    @abstractmethod
    async def extract(self, page: PageAdapter) -> Extraction:
        """Collect items, dropdowns and scoring signals from the page."""

    @abstractmethod
    def score(
        self,
        items: list[NavigationItem],
        dropdowns: list[DropdownMenu],
        metadata: dict[str, Any],
    ) -> float:
        """Compute the unclamped confidence for a non-empty extraction."""

    def item_from_anchor(
        self,
        anchor: Tag,
        base_url: str,
        kind: ItemKind = ItemKind.MAIN_SECTION,
        level: int = 1,
        skip_text: Optional[Iterable[str]] = None,
    ) -> Optional[NavigationItem]:
        """Build an item from a link, or None if it is not navigation."""
        text = dom.link_text(anchor)
        url = dom.link_url(anchor, base_url)
        if not text or not url:
            return None
        if skip_text is not None:
            if dom.is_non_navigation(text, skip_text):
                return None
        elif dom.is_non_navigation(text):
            return None
        return NavigationItem(
            name=text,
            url=url,
            kind=kind,
            level=level,
            source_strategy=self.name,
            selector=dom.css_path(anchor),
        )

    def items_from_container(
        self,
        container: Tag,
        base_url: str,
        kind: ItemKind = ItemKind.MAIN_SECTION,
        level: int = 1,
        visible_only: bool = False,
    ) -> list[NavigationItem]:
        items = []
        for anchor in dom.anchors(container):
            if visible_only and dom.is_hidden(anchor):
                continue
            item = self.item_from_anchor(anchor, base_url, kind=kind, level=level)
            if item is not None:
                items.append(item)
        return items
