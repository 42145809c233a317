"""
Listing filter (facet) discovery.

Filter panels are found by container selectors and split into groups by
their headings. Options can be checkbox or radio inputs, ``<select>``
options, or plain links.
"""

import logging
import re
from typing import Optional

import soupsieve as sv
from bs4 import Tag

from navmap import dom
from navmap.constants import FILTER_CONTAINER_SELECTORS, FILTER_HEADING_SELECTORS
from navmap.models import FilterGroup, FilterOption

logger = logging.getLogger(__name__)

_COUNT = re.compile(r"\(\s*([\d,]+)\s*\)\s*$")
_CONTROL_LABEL = re.compile(r"^(clear( all)?|reset( all)?|apply|done|show (more|less)|view (more|less))$", re.IGNORECASE)
_SORT_GROUP = re.compile(r"^sort\b", re.IGNORECASE)
_HEADING_SELECTOR = ", ".join(FILTER_HEADING_SELECTORS)

# Option type precedence when a group mixes controls
_TYPE_ORDER = ("checkbox", "radio", "select", "link")


def _is_heading(element: Tag) -> bool:
    return sv.match(_HEADING_SELECTOR, element)


def _headings(root: Tag) -> list[Tag]:
    """Outermost headings below root."""
    found = []
    for element in root.find_all(True):
        if not _is_heading(element):
            continue
        ancestor = element.parent
        while ancestor is not None and ancestor is not root and not _is_heading(ancestor):
            ancestor = ancestor.parent
        if ancestor is None or ancestor is root:
            found.append(element)
    return found


def split_count(label: str) -> tuple[str, Optional[int]]:
    """Split a trailing ``(12)`` count off an option label."""
    match = _COUNT.search(label)
    if not match:
        return label.strip(), None
    return label[: match.start()].strip(), int(match.group(1).replace(",", ""))


def _input_label(control: Tag, soup) -> str:
    control_id = control.get("id")
    if control_id:
        label = soup.find("label", attrs={"for": control_id})
        if label is not None:
            return dom.text_of(label)
    wrapper = control.find_parent("label")
    if wrapper is not None:
        return dom.text_of(wrapper)
    return control.get("aria-label") or control.get("value") or ""


def _options(scope: list[Tag], soup, base_url: str) -> tuple[list[FilterOption], set[str]]:
    options: list[FilterOption] = []
    types: set[str] = set()
    seen: set[str] = set()

    for root in scope:
        for element in [root, *root.find_all(True)]:
            label, value, url, kind = "", None, None, None
            if element.name == "input" and (element.get("type") or "").lower() in ("checkbox", "radio"):
                kind = element["type"].lower()
                label, value = _input_label(element, soup), element.get("value")
            elif element.name == "option":
                value = element.get("value")
                if value is None or value == "":
                    continue
                kind, label = "select", dom.text_of(element)
            elif element.name == "a" and element.get("href"):
                kind, label, url = "link", dom.link_text(element), dom.link_url(element, base_url)
                if url is None:
                    continue
            else:
                continue

            label, count = split_count(label)
            if not label or _CONTROL_LABEL.match(label) or label.lower() in seen:
                continue
            seen.add(label.lower())
            types.add(kind)
            options.append(FilterOption(label=label, value=value, url=url, count=count))
    return options, types


def _scope(heading: Tag, container: Tag) -> list[Tag]:
    parent = heading.parent
    if parent is not None and parent is not container and len(_headings(parent)) == 1:
        return [parent]
    scope = []
    for sibling in heading.find_next_siblings():
        if _is_heading(sibling) or _headings(sibling):
            break
        scope.append(sibling)
    return scope


def discover_filters(html: str, base_url: str) -> list[FilterGroup]:
    """
    Discover filter groups on a listing page.

    Args:
        html: Listing page snapshot
        base_url: URL of the listing page (for resolving option links)

    Returns:
        Filter groups in document order, deduplicated by name, empty
        groups dropped
    """
    soup = dom.parse(html)
    containers: list[Tag] = []
    for selector in FILTER_CONTAINER_SELECTORS:
        for container in dom.select(soup, selector):
            if any(container is c or any(p is c for p in container.parents) for c in containers):
                continue
            containers.append(container)

    groups: list[FilterGroup] = []
    names: set[str] = set()
    for container in containers:
        for heading in _headings(container):
            name, _ = split_count(dom.text_of(heading))
            if not name or name.lower() in names or _SORT_GROUP.match(name):
                continue
            scope = _scope(heading, container)
            options, types = _options(scope, soup, base_url)
            if not options:
                continue
            names.add(name.lower())
            groups.append(FilterGroup(
                name=name,
                filter_type=next(t for t in _TYPE_ORDER if t in types),
                options=options,
                selector=dom.css_path(scope[0]) if scope else None,
            ))

    logger.debug(f"Found {len(groups)} filter groups on {base_url}")
    return groups
