"""Hover-triggered dropdown and mega-menu discovery."""

import logging
from typing import Any, Optional

from bs4 import Tag

from navmap import dom
from navmap.constants import (
    DROPDOWN_PANEL_SELECTORS,
    HOVER_SETTLE_MS,
    HOVER_SKIP_TEXT,
    HOVER_TRIGGER_SELECTORS,
    MAX_HOVER_TRIGGERS,
)
from navmap.models import ColumnGroup, DropdownMenu, ItemKind, NavigationItem
from navmap.page import PageAdapter
from navmap.strategies.base import Extraction, NavigationStrategy

logger = logging.getLogger(__name__)

_DROPDOWN_PARENT_CLASSES = {"has-dropdown", "has-submenu", "menu-item-has-children"}
_COLUMN_HEADINGS = ("h2", "h3", "h4", "h5", "strong", '[class*="heading"]', '[class*="title"]')


class HoverDropdownStrategy(NavigationStrategy):
    """
    Opens menus by hovering top-level triggers and reads what appears.

    After each hover the strategy waits a fixed settle delay, reads the
    menu, then resets the pointer so the next trigger starts from a closed
    state.
    """

    name = "hover_dropdown"
    description = "Hover-revealed dropdowns and mega-menus"

    def __init__(self, settle_ms: int = HOVER_SETTLE_MS, max_triggers: int = MAX_HOVER_TRIGGERS):
        self.settle_ms = settle_ms
        self.max_triggers = max_triggers

    async def extract(self, page: PageAdapter) -> Extraction:
        base_url = page.url
        baseline = dom.parse(await page.snapshot())
        triggers = self._find_triggers(baseline, base_url)
        items: list[NavigationItem] = []
        dropdowns: list[DropdownMenu] = []

        for trigger_path, text, url in triggers[: self.max_triggers]:
            try:
                if not await page.hover(trigger_path):
                    continue
                await page.wait(self.settle_ms)
                opened = dom.parse(await page.snapshot())
                menu = self._read_menu(opened, trigger_path, text, url, base_url)
            finally:
                await page.reset_hover()

            if menu is None:
                continue
            dropdowns.append(menu)
            items.append(NavigationItem(
                name=text,
                url=url,
                has_dropdown=True,
                kind=ItemKind.DROPDOWN,
                source_strategy=self.name,
                selector=trigger_path,
                children=menu.items,
            ))

        return Extraction(
            items=items,
            dropdowns=dropdowns,
            metadata={
                "triggers_found": len(triggers),
                "menus_opened": len(dropdowns),
                "mega_menus": sum(1 for d in dropdowns if d.is_mega_menu),
                "dropdown_items": sum(len(d.items) for d in dropdowns),
            },
        )

    def _find_triggers(self, soup: Tag, base_url: str) -> list[tuple[str, str, Optional[str]]]:
        triggers = []
        seen = set()
        for selector in HOVER_TRIGGER_SELECTORS:
            for element in dom.select(soup, selector):
                if dom.is_hidden(element):
                    continue
                text = dom.link_text(element) if element.name == "a" else dom.text_of(element)
                if not text or dom.is_non_navigation(text, HOVER_SKIP_TEXT):
                    continue
                url = dom.link_url(element, base_url) if element.name == "a" else None
                key = (text.lower(), url)
                if key in seen or not self._likely_has_dropdown(element):
                    continue
                seen.add(key)
                triggers.append((dom.css_path(element), text, url))
        return triggers

    @staticmethod
    def _likely_has_dropdown(element: Tag) -> bool:
        if element.get("aria-haspopup") == "true" or element.has_attr("aria-expanded"):
            return True
        parent = element.find_parent("li")
        if parent is None:
            return False
        if _DROPDOWN_PARENT_CLASSES.intersection(parent.get("class") or []):
            return True
        return any(dom.select(parent, selector) for selector in DROPDOWN_PANEL_SELECTORS)

    def _read_menu(
        self,
        soup: Tag,
        trigger_path: str,
        text: str,
        url: Optional[str],
        base_url: str,
    ) -> Optional[DropdownMenu]:
        trigger = dom.select_first(soup, [trigger_path])
        if trigger is None:
            return None

        panel = None
        owner = trigger.find_parent("li")
        if owner is not None:
            panel = self._visible_panel(owner)

        if panel is None:
            return None

        children = [
            item for item in self.items_from_container(
                panel, base_url, kind=ItemKind.DROPDOWN_ITEM, level=2, visible_only=True
            )
            if item.url != url
        ]
        if not children:
            return None

        columns = self._columns(panel, base_url)
        classes = " ".join(panel.get("class") or []).lower()
        return DropdownMenu(
            trigger=text,
            trigger_url=url,
            items=children,
            columns=columns,
            is_mega_menu="mega" in classes or len(columns) >= 3,
        )

    @staticmethod
    def _visible_panel(owner: Tag) -> Optional[Tag]:
        for selector in DROPDOWN_PANEL_SELECTORS:
            for panel in dom.select(owner, selector):
                if not dom.is_hidden(panel) and dom.anchors(panel):
                    return panel
        return None

    def _columns(self, panel: Tag, base_url: str) -> list[ColumnGroup]:
        columns = []
        seen: set[int] = set()
        for selector in _COLUMN_HEADINGS:
            for heading in dom.select(panel, selector):
                if heading.find("a") is not None or heading.parent is None:
                    continue
                column = heading.parent
                if id(column) in seen or column is panel:
                    continue
                seen.add(id(column))
                column_items = self.items_from_container(
                    column, base_url, kind=ItemKind.DROPDOWN_ITEM, level=3
                )
                if column_items:
                    columns.append(ColumnGroup(heading=dom.text_of(heading), items=column_items))
        return columns

    def score(self, items: list[NavigationItem], dropdowns: list[DropdownMenu], metadata: dict[str, Any]) -> float:
        confidence = 0.3  # Dropdowns were found at all

        menus = len(dropdowns)
        confidence += 0.2 if menus >= 3 else menus * 0.06

        if metadata["mega_menus"] > 0:
            confidence += 0.2

        dropdown_items = metadata["dropdown_items"]
        confidence += 0.3 if dropdown_items >= 20 else dropdown_items * 0.015

        return confidence
