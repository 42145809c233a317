"""Navigation discovery limited to what a visitor can currently see."""

import logging
from typing import Any

from bs4 import Tag

from navmap import dom
from navmap.constants import (
    BREADCRUMB_SELECTORS,
    DROPDOWN_PANEL_SELECTORS,
    NAV_CONTAINER_SELECTORS,
    SIDEBAR_SELECTORS,
)
from navmap.models import DropdownMenu, ItemKind, NavigationItem
from navmap.page import PageAdapter
from navmap.strategies.base import Extraction, NavigationStrategy

logger = logging.getLogger(__name__)

_DROPDOWN_HINT = ", ".join((".dropdown", ".submenu", ".mega-menu", "[data-dropdown]", '[class*="dropdown"]'))


class VisibleNavigationStrategy(NavigationStrategy):
    """Reads rendered navigation containers, open dropdowns, sidebars and breadcrumbs."""

    name = "visible"
    description = "Rendered navigation elements"

    async def extract(self, page: PageAdapter) -> Extraction:
        soup = dom.parse(await page.snapshot())
        base_url = page.url
        items: list[NavigationItem] = []
        dropdowns: list[DropdownMenu] = []
        seen: set[int] = set()

        nav_found = False
        main_sections = 0
        for selector in NAV_CONTAINER_SELECTORS:
            for container in dom.select(soup, selector):
                if id(container) in seen or dom.is_hidden(container):
                    continue
                seen.add(id(container))
                nav_found = True
                for anchor in dom.anchors(container):
                    if dom.is_hidden(anchor):
                        continue
                    item = self.item_from_anchor(anchor, base_url)
                    if item is None:
                        continue
                    item.has_dropdown = self._has_dropdown(anchor)
                    main_sections += 1
                    items.append(item)

        open_dropdowns = 0
        for selector in DROPDOWN_PANEL_SELECTORS:
            for panel in dom.select(soup, selector):
                if id(panel) in seen or dom.is_hidden(panel):
                    continue
                seen.add(id(panel))
                found = self.items_from_container(
                    panel, base_url, kind=ItemKind.DROPDOWN, level=2, visible_only=True
                )
                if found:
                    open_dropdowns += 1
                    items.extend(found)
                    dropdowns.append(DropdownMenu(trigger=self._panel_label(panel), items=found))

        for selector in SIDEBAR_SELECTORS:
            for sidebar in dom.select(soup, selector):
                if id(sidebar) in seen or dom.is_hidden(sidebar):
                    continue
                seen.add(id(sidebar))
                items.extend(self.items_from_container(
                    sidebar, base_url, kind=ItemKind.SIDEBAR, visible_only=True
                ))

        for selector in BREADCRUMB_SELECTORS:
            for crumb in dom.select(soup, selector):
                if id(crumb) in seen:
                    continue
                seen.add(id(crumb))
                items.extend(self.items_from_container(
                    crumb, base_url, kind=ItemKind.BREADCRUMB, visible_only=True
                ))

        return Extraction(
            items=items,
            dropdowns=dropdowns,
            metadata={
                "nav_found": nav_found,
                "document_ready": await page.is_ready(),
                "main_sections": main_sections,
                "open_dropdowns": open_dropdowns,
            },
        )

    @staticmethod
    def _has_dropdown(anchor: Tag) -> bool:
        parent = anchor.find_parent(["li"]) or anchor.find_parent(class_=["nav-item", "menu-item"])
        if parent is None:
            return False
        return bool(dom.select(parent, _DROPDOWN_HINT))

    @staticmethod
    def _panel_label(panel: Tag) -> str:
        label = panel.get("aria-label")
        if label:
            return label.strip()
        owner = panel.find_parent("li")
        if owner is not None:
            anchor = owner.find("a", href=True)
            if anchor is not None and dom.link_text(anchor):
                return dom.link_text(anchor)
        return "dropdown"

    def score(self, items: list[NavigationItem], dropdowns: list[DropdownMenu], metadata: dict[str, Any]) -> float:
        confidence = 0.5

        if metadata["nav_found"]:
            confidence += 0.2
        if metadata["document_ready"]:
            confidence += 0.1

        if len(items) > 10:
            confidence += 0.2
        elif len(items) > 5:
            confidence += 0.1
        elif len(items) < 3:
            confidence -= 0.2

        if metadata["main_sections"] > 0:
            confidence += 0.1
        if any(i.kind == ItemKind.DROPDOWN or i.has_dropdown for i in items):
            confidence += 0.1

        return confidence
