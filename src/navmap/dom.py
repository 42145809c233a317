"""BeautifulSoup helpers shared by strategies, the tree builder and pagination.

Page snapshots mark unrendered elements with ``data-nav-hidden``; the
helpers here read that marker instead of recomputing visibility.
"""

import logging
import re
from typing import Iterable, Optional

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

from navmap.constants import HIDDEN_MARKER, NON_NAVIGATION_TEXT
from navmap.urls import canonicalize

logger = logging.getLogger(__name__)

_SIMPLE_ID = re.compile(r"^[A-Za-z][\w-]*$")
_HIDING_STYLE = re.compile(
    r"(display\s*:\s*none|visibility\s*:\s*hidden|opacity\s*:\s*0(?:\.0+)?\s*(?:;|$))",
    re.IGNORECASE,
)
_HIDING_CLASSES = {"hidden", "d-none", "is-hidden"}


def parse(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def select(root: Tag, selector: str) -> list[Tag]:
    """Run a CSS selector, treating selectors the parser rejects as no match."""
    try:
        return root.select(selector)
    except (SelectorSyntaxError, ValueError, NotImplementedError) as e:
        logger.debug(f"Skipping selector {selector!r}: {e}")
        return []


def select_first(root: Tag, selectors: Iterable[str]) -> Optional[Tag]:
    for selector in selectors:
        found = select(root, selector)
        if found:
            return found[0]
    return None


def text_of(element: Tag) -> str:
    return " ".join(element.get_text(" ", strip=True).split())


def link_text(anchor: Tag) -> str:
    """Visible text of a link, falling back to its accessible label."""
    return text_of(anchor) or (anchor.get("aria-label") or anchor.get("title") or "").strip()


def link_url(anchor: Tag, base_url: str) -> Optional[str]:
    href = anchor.get("href")
    if isinstance(href, list):
        href = href[0] if href else None
    return canonicalize(href, base_url)


def is_non_navigation(text: str, patterns: Iterable[str] = NON_NAVIGATION_TEXT) -> bool:
    lowered = text.lower()
    return any(p in lowered for p in patterns)


def has_style_hiding(element: Tag) -> bool:
    """Check whether an element is hidden by its own markup.

    This covers the ``hidden`` attribute, inline display/visibility/opacity
    styles and common utility classes.
    """
    if element.name == "template" or element.has_attr("hidden"):
        return True
    style = element.get("style") or ""
    if style and _HIDING_STYLE.search(style):
        return True
    classes = element.get("class") or []
    return any(c in _HIDING_CLASSES for c in classes)


def mark_hidden(soup: BeautifulSoup) -> BeautifulSoup:
    """Annotate every element hidden by its own markup with the hidden marker."""
    for element in soup.find_all(True):
        if element.has_attr(HIDDEN_MARKER):
            continue
        if has_style_hiding(element):
            element[HIDDEN_MARKER] = "true"
    return soup


def is_hidden(element: Tag) -> bool:
    """Check whether an element or any ancestor was unrendered in the snapshot."""
    node: Optional[Tag] = element
    while node is not None and isinstance(node, Tag):
        if node.get(HIDDEN_MARKER) == "true":
            return True
        node = node.parent
    return False


def css_path(element: Tag) -> str:
    """Build a selector that addresses exactly this element in the page.

    Uses a simple id when one exists and is unique, otherwise a chain of
    ``tag:nth-of-type(n)`` steps from the document root.
    """
    element_id = element.get("id")
    if isinstance(element_id, str) and _SIMPLE_ID.match(element_id):
        root = element
        while root.parent is not None:
            root = root.parent
        if len(root.find_all(id=element_id)) == 1:
            return f"#{element_id}"

    steps = []
    node: Optional[Tag] = element
    while node is not None and isinstance(node, Tag) and node.name != "[document]":
        parent = node.parent
        if parent is None:
            steps.append(node.name)
            break
        siblings = [s for s in parent.find_all(node.name, recursive=False)]
        index = next(i for i, s in enumerate(siblings, start=1) if s is node)
        steps.append(f"{node.name}:nth-of-type({index})")
        node = parent
    return " > ".join(reversed(steps))


def anchors(root: Tag) -> list[Tag]:
    return root.find_all("a", href=True)
