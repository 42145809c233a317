"""Discovery of collapsed, off-canvas and mobile menus that are not rendered."""

import logging
from typing import Any

from navmap import dom
from navmap.constants import HIDDEN_CONTAINER_SELECTORS
from navmap.models import DropdownMenu, ItemKind, NavigationItem
from navmap.page import PageAdapter
from navmap.strategies.base import Extraction, NavigationStrategy

logger = logging.getLogger(__name__)

MAX_REVEALED_CONTAINERS = 25


class HiddenElementStrategy(NavigationStrategy):
    """
    Reads navigation containers that are hidden in the current render.

    Each hidden container is briefly forced visible through
    ``page.revealed()`` so that its links are read as rendered; the page is
    restored before the next container is touched.
    """

    name = "hidden"
    description = "Hidden and collapsed menus"

    async def extract(self, page: PageAdapter) -> Extraction:
        soup = dom.parse(await page.snapshot())
        base_url = page.url
        items: list[NavigationItem] = []
        dropdowns: list[DropdownMenu] = []
        seen_paths: set[str] = set()
        containers = links = still_hidden = 0
        has_dropdown_menu = has_mobile_menu = False

        for selector, is_dropdown, is_mobile in HIDDEN_CONTAINER_SELECTORS:
            for element in dom.select(soup, selector):
                if containers >= MAX_REVEALED_CONTAINERS:
                    break
                if not dom.is_hidden(element):
                    continue
                path = dom.css_path(element)
                if path in seen_paths:
                    continue
                seen_paths.add(path)

                async with page.revealed(path):
                    fragment = await page.snapshot(path)
                container = dom.select_first(dom.parse(fragment), [element.name])
                if container is None:
                    continue

                kind = ItemKind.DROPDOWN_ITEM if is_dropdown else ItemKind.MAIN_SECTION
                level = 2 if is_dropdown else 1
                found, skipped = self._rendered_items(container, element, base_url, kind, level)
                still_hidden += skipped
                if not found:
                    continue

                containers += 1
                links += len(found)
                has_dropdown_menu = has_dropdown_menu or is_dropdown
                has_mobile_menu = has_mobile_menu or is_mobile
                items.extend(found)
                if is_dropdown:
                    dropdowns.append(DropdownMenu(
                        trigger=element.get("aria-label") or self._owner_label(element) or "menu",
                        items=found,
                        is_mega_menu="mega" in " ".join(element.get("class") or []).lower(),
                    ))

        return Extraction(
            items=items,
            dropdowns=dropdowns,
            metadata={
                "hidden_containers": containers,
                "hidden_links": links,
                "still_hidden_links": still_hidden,
                "dropdown_menus": has_dropdown_menu,
                "mobile_menus": has_mobile_menu,
            },
        )

    def _rendered_items(
        self, revealed, live, base_url: str, kind: ItemKind, level: int
    ) -> tuple[list[NavigationItem], int]:
        """
        Items for the links rendered once a container is revealed.

        Links under nested elements that stay hidden are counted and left
        for their own container. Selectors point at the live page anchors.

        Returns:
            Tuple of (items, number of links still hidden)
        """
        items: list[NavigationItem] = []
        skipped = 0
        # Revealing only changes attributes, so anchors line up one to one
        for anchor, live_anchor in zip(dom.anchors(revealed), dom.anchors(live)):
            if dom.is_hidden(anchor):
                skipped += 1
                continue
            item = self.item_from_anchor(anchor, base_url, kind=kind, level=level)
            if item is not None:
                item.selector = dom.css_path(live_anchor)
                items.append(item)
        return items, skipped

    @staticmethod
    def _owner_label(element) -> str:
        owner = element.find_parent("li")
        if owner is None:
            return ""
        anchor = owner.find(["a", "button"])
        return dom.text_of(anchor) if anchor is not None else ""

    def score(self, items: list[NavigationItem], dropdowns: list[DropdownMenu], metadata: dict[str, Any]) -> float:
        confidence = 0.3

        hidden = metadata["hidden_containers"]
        if hidden > 5:
            confidence += 0.3
        elif hidden > 2:
            confidence += 0.2
        elif hidden >= 1:
            confidence += 0.1

        if metadata["hidden_links"] > 20:
            confidence += 0.2
        elif metadata["hidden_links"] > 10:
            confidence += 0.1

        if metadata["dropdown_menus"]:
            confidence += 0.1
        if metadata["mobile_menus"]:
            confidence += 0.1

        return confidence
