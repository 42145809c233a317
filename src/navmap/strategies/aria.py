"""ARIA role and attribute based navigation discovery."""

import logging
from typing import Any, Optional

from bs4 import Tag

from navmap import dom
from navmap.constants import ARIA_LABEL_SELECTORS, ARIA_MENU_ROLES
from navmap.models import DropdownMenu, ItemKind, NavigationItem
from navmap.page import PageAdapter
from navmap.strategies.base import Extraction, NavigationStrategy
from navmap.urls import canonicalize

logger = logging.getLogger(__name__)


class AriaNavigationStrategy(NavigationStrategy):
    """
    Reads navigation exposed through accessibility markup.

    Looks at ``role="navigation"`` landmarks, ``aria-haspopup`` menu
    triggers and the menus they control, collapsed ``aria-expanded``
    sections, navigation-like ``aria-label`` regions, menu item roles and
    tabs.
    """

    name = "aria"
    description = "ARIA roles and attributes"

    async def extract(self, page: PageAdapter) -> Extraction:
        soup = dom.parse(await page.snapshot())
        base_url = page.url
        processed: set[int] = set()
        items: list[NavigationItem] = []
        dropdowns: list[DropdownMenu] = []
        counts = {
            "navigation_roles": 0,
            "dropdowns": 0,
            "expandables": 0,
            "labeled_navs": 0,
            "menu_items": 0,
            "tabs": 0,
        }

        for nav in dom.select(soup, '[role="navigation"]'):
            processed.add(id(nav))
            nav_items = self.items_from_container(nav, base_url)
            if nav_items:
                counts["navigation_roles"] += 1
                items.extend(nav_items)

        for trigger in dom.select(soup, '[aria-haspopup="true"], [aria-haspopup="menu"]'):
            if id(trigger) in processed:
                continue
            processed.add(id(trigger))
            menu = self._read_popup(soup, trigger, base_url)
            if menu is None:
                continue
            trigger_item, dropdown = menu
            counts["dropdowns"] += 1
            items.append(trigger_item)
            if dropdown is not None:
                dropdowns.append(dropdown)

        for expandable in dom.select(soup, '[aria-expanded="false"][aria-controls]'):
            if id(expandable) not in processed:
                processed.add(id(expandable))
                counts["expandables"] += 1

        for selector in ARIA_LABEL_SELECTORS:
            for element in dom.select(soup, selector):
                if id(element) in processed:
                    continue
                processed.add(id(element))
                if element.name == "a":
                    item = self.item_from_anchor(element, base_url)
                    if item is not None:
                        items.append(item)
                    continue
                labeled = self.items_from_container(element, base_url)
                if labeled:
                    counts["labeled_navs"] += 1
                    items.extend(labeled)

        for role in ARIA_MENU_ROLES:
            for element in dom.select(soup, f'[role="{role}"]'):
                if id(element) in processed:
                    continue
                processed.add(id(element))
                anchor = element if element.name == "a" else element.find("a", href=True)
                if anchor is None:
                    continue
                item = self.item_from_anchor(anchor, base_url)
                if item is not None:
                    counts["menu_items"] += 1
                    items.append(item)

        for tab in dom.select(soup, '[role="tab"]'):
            if id(tab) in processed:
                continue
            processed.add(id(tab))
            text = dom.text_of(tab)
            if not text:
                continue
            href = tab.get("href") or tab.get("data-href")
            url = canonicalize(href, base_url) if href else None
            counts["tabs"] += 1
            items.append(NavigationItem(
                name=text,
                url=url,
                kind=ItemKind.TAB,
                source_strategy=self.name,
                selector=dom.css_path(tab),
            ))

        return Extraction(items=items, dropdowns=dropdowns, metadata=counts)

    def _read_popup(
        self, soup: Tag, trigger: Tag, base_url: str
    ) -> Optional[tuple[NavigationItem, Optional[DropdownMenu]]]:
        text = dom.text_of(trigger) or (trigger.get("aria-label") or "").strip()
        if not text:
            return None
        trigger_url = dom.link_url(trigger, base_url) if trigger.name == "a" else None

        controlled = None
        controls = trigger.get("aria-controls")
        if controls:
            controlled = soup.find(id=controls)
        if controlled is None:
            controlled = trigger.find_next_sibling() or (
                trigger.parent.find_next_sibling() if trigger.parent is not None else None
            )

        children = []
        if controlled is not None:
            children = self.items_from_container(
                controlled, base_url, kind=ItemKind.DROPDOWN_ITEM, level=2
            )

        trigger_item = NavigationItem(
            name=text,
            url=trigger_url,
            has_dropdown=True,
            kind=ItemKind.DROPDOWN,
            source_strategy=self.name,
            selector=dom.css_path(trigger),
            children=children,
        )
        dropdown = None
        if children:
            dropdown = DropdownMenu(trigger=text, trigger_url=trigger_url, items=children)
        return trigger_item, dropdown

    def score(self, items: list[NavigationItem], dropdowns: list[DropdownMenu], metadata: dict[str, Any]) -> float:
        confidence = 0.7

        if metadata["navigation_roles"] > 0:
            confidence += 0.2
        if metadata["dropdowns"] > 0:
            confidence += 0.1

        # Independent ARIA signals agreeing
        signal_types = sum(
            1 for key in ("navigation_roles", "dropdowns", "labeled_navs", "menu_items", "tabs")
            if metadata[key] > 0
        )
        if signal_types >= 3:
            confidence += 0.1
        elif signal_types == 2:
            confidence += 0.05

        if len(items) > 10:
            confidence += 0.1
        elif len(items) < 3:
            confidence -= 0.2

        return confidence
