"""
Rule-based taxonomy classification of navigation sections.

Each section is matched against an ordered rule cascade (utility, featured,
gender, product category, brand) over ``lowercase(name + " " + url)``. The
first rule that matches decides the bucket, so every section lands in
exactly one bucket.
"""

import logging
import re
from typing import Iterable, Optional

from navmap import events as ev
from navmap.constants import (
    BASE_PRIORITY,
    BRAND_EXCLUDED_PREFIXES,
    BRAND_INDICATOR_KEYWORDS,
    ESTIMATE_BRAND,
    ESTIMATE_BROAD,
    ESTIMATE_DEFAULT,
    ESTIMATE_NEW,
    ESTIMATE_PRODUCT_CATEGORY,
    ESTIMATE_SALE,
    FEATURED_KEYWORDS,
    GENDER_KEYWORDS,
    MAX_PRIORITY,
    MIN_PRIORITY,
    PRODUCT_CATEGORY_KEYWORDS,
    UTILITY_KEYWORDS,
)
from navmap.events import EventSink
from navmap.models import Bucket, NavigationItem, TaxonomyEntry, TaxonomyResult

logger = logging.getLogger(__name__)


def _keywords(words: Iterable[str]) -> re.Pattern:
    # Longest first so "new arrivals" wins over "new"
    ordered = sorted(words, key=len, reverse=True)
    return re.compile(r"(?<![a-z0-9])(" + "|".join(re.escape(w) for w in ordered) + r")(?![a-z0-9])")


UTILITY_PATTERN = _keywords(UTILITY_KEYWORDS)
FEATURED_PATTERN = _keywords(FEATURED_KEYWORDS)
GENDER_PATTERN = _keywords(GENDER_KEYWORDS)
PRODUCT_PATTERN = _keywords(PRODUCT_CATEGORY_KEYWORDS)
BRAND_INDICATOR_PATTERN = _keywords(BRAND_INDICATOR_KEYWORDS)
BREADTH_PATTERN = _keywords(("all", "shop"))
SALE_PATTERN = _keywords(("sale", "clearance"))
NEW_PATTERN = _keywords(("new", "new arrivals"))

# Title-cased proper-noun shape, e.g. "Nike", "Dolce & Gabbana"
BRAND_NAME_PATTERN = re.compile(r"^[A-Z][A-Za-z'.-]+(\s+([A-Z&+][A-Za-z'.-]*|&))*$")
BRAND_MAX_WORDS = 4

# Subtype groups are checked in order; the first group with a hit wins
UTILITY_SUBTYPES = (
    ("account", ("account", "login", "sign in", "register", "wishlist")),
    ("shopping", ("cart", "checkout")),
    ("support", ("help", "support", "customer service", "shipping", "returns", "size guide")),
    ("company", ("about", "contact", "store locator")),
)
FEATURED_SUBTYPES = (
    ("sale", ("sale", "clearance")),
    ("new_arrivals", ("new arrivals", "new")),
    ("featured", ("featured", "trending", "bestseller")),
    ("gift", ("gift", "holiday", "seasonal")),
    ("limited", ("limited", "exclusive")),
)
PRODUCT_SUBTYPES = (
    ("clothing", ("clothing", "shirts", "pants", "jeans", "dresses", "jackets", "sweaters", "coats")),
    ("footwear", ("shoes", "sneakers", "boots", "sandals", "heels", "flats")),
    ("jewelry", ("jewelry",)),
    ("bags", ("bags",)),
    ("watches", ("watches",)),
    ("accessories", ("accessories", "belts", "hats", "scarves", "sunglasses", "gloves", "ties")),
)

_SUBTYPE_PATTERNS = {
    name: _keywords(words)
    for groups in (UTILITY_SUBTYPES, FEATURED_SUBTYPES, PRODUCT_SUBTYPES)
    for name, words in groups
}
_MENS = _keywords(("men", "mens", "men's"))
_WOMENS = _keywords(("women", "womens", "women's"))
_KIDS = _keywords(("kids", "children", "boys", "girls", "baby"))
_UNISEX = _keywords(("unisex",))


def _subtype(text: str, groups) -> str:
    for name, _ in groups:
        if _SUBTYPE_PATTERNS[name].search(text):
            return name
    return "general"


def gender_target(text: str) -> str:
    """Identify the demographic a gender section targets."""
    mens, womens = bool(_MENS.search(text)), bool(_WOMENS.search(text))
    if mens and not womens:
        return "mens"
    if womens and not mens:
        return "womens"
    if _KIDS.search(text):
        return "kids"
    if _UNISEX.search(text):
        return "unisex"
    return "general"


def section_text(section: NavigationItem) -> str:
    return f"{section.name} {section.url or ''}".lower()


def looks_like_brand(section: NavigationItem) -> bool:
    """
    Best-effort brand heuristic.

    A section is a brand when it carries an explicit brand indicator
    ("brand", "designer", ...) or its name is a short title-cased proper
    noun that is not a generic category, sale or "new/all/shop" label.
    """
    if BRAND_INDICATOR_PATTERN.search(section_text(section)):
        return True

    name = section.name.strip()
    lowered = name.lower()
    if len(name.split()) > BRAND_MAX_WORDS or not BRAND_NAME_PATTERN.match(name):
        return False
    if any(lowered.startswith(prefix) or f" {prefix}" in lowered for prefix in BRAND_EXCLUDED_PREFIXES):
        return False
    return not (PRODUCT_PATTERN.search(lowered) or FEATURED_PATTERN.search(lowered))


def scraping_priority(section: NavigationItem) -> int:
    """Priority from 1 (skip) to 10 (scrape first)."""
    text = section_text(section)
    name = section.name.lower()
    priority = BASE_PRIORITY
    if PRODUCT_PATTERN.search(text):
        priority += 3
    if BREADTH_PATTERN.search(name):
        priority += 2
    if GENDER_PATTERN.search(text):
        priority += 1
    if SALE_PATTERN.search(name):
        priority += 1
    return max(MIN_PRIORITY, min(MAX_PRIORITY, priority))


def estimate_products(section: NavigationItem, bucket: Optional[Bucket] = None) -> int:
    """Rough product count used only for ranking scrape targets."""
    name = section.name.lower()
    if BREADTH_PATTERN.search(name):
        return ESTIMATE_BROAD
    if PRODUCT_PATTERN.search(section_text(section)):
        return ESTIMATE_PRODUCT_CATEGORY
    if SALE_PATTERN.search(name):
        return ESTIMATE_SALE
    if NEW_PATTERN.search(name):
        return ESTIMATE_NEW
    if bucket == Bucket.BRAND_COLLECTION or (bucket is None and looks_like_brand(section)):
        return ESTIMATE_BRAND
    return ESTIMATE_DEFAULT


class TaxonomyClassifier:
    """Classifies navigation sections into taxonomy buckets."""

    def __init__(self, events: Optional[EventSink] = None):
        self.events = events or EventSink()

    def classify_section(self, section: NavigationItem) -> tuple[Bucket, str, Optional[str]]:
        """
        Run the rule cascade for one section.

        Returns:
            Tuple of (bucket, subtype, reason); reason is only set for
            unclassified sections
        """
        text = section_text(section)

        if UTILITY_PATTERN.search(text):
            return Bucket.UTILITY_PAGE, _subtype(text, UTILITY_SUBTYPES), None
        if FEATURED_PATTERN.search(text):
            return Bucket.FEATURED_COLLECTION, _subtype(text, FEATURED_SUBTYPES), None
        if GENDER_PATTERN.search(text):
            return Bucket.GENDER_SECTION, gender_target(text), None
        if PRODUCT_PATTERN.search(text):
            return Bucket.PRODUCT_CATEGORY, _subtype(text, PRODUCT_SUBTYPES), None
        if looks_like_brand(section):
            return Bucket.BRAND_COLLECTION, "brand", None

        return Bucket.UNCLASSIFIED, "unknown", f"no keyword or brand pattern matched {section.name!r}"

    def classify(self, sections: Iterable[NavigationItem]) -> TaxonomyResult:
        """
        Classify sections into the six taxonomy buckets.

        Args:
            sections: Navigation sections in discovery order

        Returns:
            TaxonomyResult with every bucket present (possibly empty) and
            metadata including ``classification_confidence``
        """
        sections = list(sections)
        result = TaxonomyResult()

        for section in sections:
            bucket, subtype, reason = self.classify_section(section)
            entry = TaxonomyEntry(
                section=section,
                bucket=bucket,
                subtype=subtype,
                priority=scraping_priority(section),
                estimated_products=estimate_products(section, bucket),
                classification_confidence=0.0 if bucket == Bucket.UNCLASSIFIED else 1.0,
                reason=reason,
            )
            result.buckets[bucket].append(entry)
            logger.debug(f"Classified {section.name!r} as {bucket.value}/{subtype}")

        # sorted() is stable, so ties keep discovery order
        for bucket, entries in result.buckets.items():
            if bucket != Bucket.UTILITY_PAGE:
                result.buckets[bucket] = sorted(entries, key=lambda e: e.priority, reverse=True)

        total = len(sections)
        classified = total - len(result.buckets[Bucket.UNCLASSIFIED])
        confidence = classified / total if total else 0.0
        result.metadata = {
            "total_sections": total,
            "classified_sections": classified,
            "classification_confidence": confidence,
            "bucket_counts": {b.output_key: len(result.buckets[b]) for b in Bucket},
            "estimated_total_products": sum(
                e.estimated_products for e in result.entries() if e.bucket != Bucket.UTILITY_PAGE
            ),
        }

        self.events.emit(
            ev.CLASSIFICATION_DONE,
            total=total,
            classified=classified,
            confidence=round(confidence, 3),
        )
        logger.info(f"Classified {classified}/{total} sections (confidence {confidence:.2f})")
        return result


def classify(sections: Iterable[NavigationItem]) -> TaxonomyResult:
    """Classify sections with a default classifier."""
    return TaxonomyClassifier().classify(sections)
