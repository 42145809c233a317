"""Data attribute based navigation discovery."""

import logging
from typing import Any

from navmap import dom
from navmap.constants import DATA_ATTRIBUTE_SELECTORS, SPECIFIC_DATA_PATTERNS, TEST_ID_ATTRIBUTES
from navmap.models import DropdownMenu, ItemKind, NavigationItem
from navmap.page import PageAdapter
from navmap.strategies.base import Extraction, NavigationStrategy

logger = logging.getLogger(__name__)


class DataAttributeStrategy(NavigationStrategy):
    """
    Finds navigation through ``data-*`` attributes.

    Component, e-commerce and test-automation attributes (``data-testid``,
    ``data-cy``...) tend to survive redesigns, which makes them a strong
    signal when present.
    """

    name = "data_attribute"
    description = "data-* navigation attributes"

    async def extract(self, page: PageAdapter) -> Extraction:
        soup = dom.parse(await page.snapshot())
        base_url = page.url
        processed: set[int] = set()
        items: list[NavigationItem] = []
        dropdowns: list[DropdownMenu] = []
        containers = expandables = specific = 0
        attribute_names: set[str] = set()

        for selector, is_dropdown, is_menu in DATA_ATTRIBUTE_SELECTORS:
            for element in dom.select(soup, selector):
                if id(element) in processed:
                    continue
                processed.add(id(element))
                attribute_names.update(a for a in element.attrs if a.startswith("data-"))

                links = dom.anchors(element)
                if len(links) > 1:
                    kind = ItemKind.DROPDOWN_ITEM if is_dropdown else ItemKind.MAIN_SECTION
                    found = self.items_from_container(element, base_url, kind=kind)
                    if found:
                        containers += 1
                        items.extend(found)
                        for link in links:
                            attribute_names.update(a for a in link.attrs if a.startswith("data-"))
                elif element.name == "a" and element.get("href"):
                    item = self.item_from_anchor(element, base_url)
                    if item is not None:
                        items.append(item)
                elif len(links) == 1:
                    item = self.item_from_anchor(links[0], base_url)
                    if item is not None:
                        items.append(item)

                if self._is_expandable(element):
                    menu = self._read_target(soup, element, base_url)
                    if menu is not None:
                        expandables += 1
                        dropdowns.append(menu)
                        items.append(NavigationItem(
                            name=menu.trigger,
                            url=menu.trigger_url,
                            has_dropdown=True,
                            kind=ItemKind.EXPANDABLE,
                            source_strategy=self.name,
                            selector=dom.css_path(element),
                            children=menu.items,
                        ))

        for selector in SPECIFIC_DATA_PATTERNS:
            for element in dom.select(soup, selector):
                if id(element) in processed or element.name != "a":
                    continue
                processed.add(id(element))
                item = self.item_from_anchor(element, base_url)
                if item is not None:
                    specific += 1
                    items.append(item)
                    attribute_names.update(a for a in element.attrs if a.startswith("data-"))

        return Extraction(
            items=items,
            dropdowns=dropdowns,
            metadata={
                "container_count": containers,
                "expandable_count": expandables,
                "specific_pattern_matches": specific,
                "data_elements": len(processed),
                "data_attributes": sorted(attribute_names),
            },
        )

    @staticmethod
    def _is_expandable(element) -> bool:
        return (
            element.get("data-toggle") == "dropdown"
            or element.get("data-expanded") == "false"
            or element.get("data-state") == "closed"
        )

    def _read_target(self, soup, element, base_url: str):
        target_ref = (
            element.get("data-target")
            or element.get("data-controls")
            or element.get("aria-controls")
        )
        if not target_ref:
            return None
        target = soup.find(id=target_ref.lstrip("#"))
        if target is None:
            return None
        children = self.items_from_container(target, base_url, kind=ItemKind.DROPDOWN_ITEM, level=2)
        text = dom.text_of(element)
        if not children or not text:
            return None
        trigger_url = dom.link_url(element, base_url) if element.name == "a" else None
        return DropdownMenu(trigger=text, trigger_url=trigger_url, items=children)

    def score(self, items: list[NavigationItem], dropdowns: list[DropdownMenu], metadata: dict[str, Any]) -> float:
        confidence = 0.6

        if len(items) > 10:
            confidence += 0.2
        elif len(items) > 5:
            confidence += 0.1

        if metadata["container_count"] > 0:
            confidence += 0.1
        if metadata["expandable_count"] > 0:
            confidence += 0.1
        if metadata["specific_pattern_matches"] > 0:
            confidence += 0.1

        if any(attr.startswith(TEST_ID_ATTRIBUTES) for attr in metadata["data_attributes"]):
            confidence += 0.1

        return confidence
