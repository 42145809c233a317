"""Data models for navigation and taxonomy discovery."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterator, Optional


class ItemKind(str, Enum):
    """Where a navigation item was found on the page."""
    MAIN_SECTION = "main_section"
    DROPDOWN = "dropdown"
    DROPDOWN_ITEM = "dropdown_item"
    SIDEBAR = "sidebar"
    BREADCRUMB = "breadcrumb"
    TAB = "tab"
    EXPANDABLE = "expandable"


class NodeKind(str, Enum):
    """Position of a node in the category tree."""
    ROOT = "root"
    MAIN_CATEGORY = "main_category"
    SUBCATEGORY = "subcategory"
    SUB_SUBCATEGORY = "sub_subcategory"
    DEEP_CATEGORY = "deep_category"

    @classmethod
    def for_depth(cls, depth: int) -> "NodeKind":
        if depth <= 0:
            return cls.ROOT
        if depth == 1:
            return cls.MAIN_CATEGORY
        if depth == 2:
            return cls.SUBCATEGORY
        if depth == 3:
            return cls.SUB_SUBCATEGORY
        return cls.DEEP_CATEGORY


class Bucket(str, Enum):
    """Mutually exclusive taxonomy classification outcomes."""
    PRODUCT_CATEGORY = "product_category"
    BRAND_COLLECTION = "brand_collection"
    GENDER_SECTION = "gender_section"
    FEATURED_COLLECTION = "featured_collection"
    UTILITY_PAGE = "utility_page"
    UNCLASSIFIED = "unclassified"

    @property
    def output_key(self) -> str:
        """Key used for this bucket in serialized taxonomy output."""
        return _BUCKET_OUTPUT_KEYS[self]


_BUCKET_OUTPUT_KEYS = {
    Bucket.PRODUCT_CATEGORY: "productCategories",
    Bucket.BRAND_COLLECTION: "brandCollections",
    Bucket.GENDER_SECTION: "genderSections",
    Bucket.FEATURED_COLLECTION: "featuredCollections",
    Bucket.UTILITY_PAGE: "utilityPages",
    Bucket.UNCLASSIFIED: "unclassified",
}


@dataclass
class NavigationItem:
    """A single navigable entry discovered on a page.

    ``url`` is an absolute canonical URL, or None for triggers that open a
    menu without navigating anywhere.
    """

    name: str
    url: Optional[str] = None
    has_dropdown: bool = False
    kind: ItemKind = ItemKind.MAIN_SECTION
    source_strategy: str = ""
    selector: Optional[str] = None
    level: int = 1
    children: list["NavigationItem"] = field(default_factory=list)

    def __post_init__(self):
        self.name = " ".join((self.name or "").split())
        if not self.name:
            raise ValueError("NavigationItem name must be non-empty")

    def to_dict(self) -> dict[str, Any]:
        data = {
            "name": self.name,
            "url": self.url,
            "has_dropdown": self.has_dropdown,
            "kind": self.kind.value,
            "source_strategy": self.source_strategy,
            "selector": self.selector,
            "level": self.level,
        }
        if self.children:
            data["children"] = [child.to_dict() for child in self.children]
        return data


@dataclass
class ColumnGroup:
    """A headed column inside a mega-menu."""

    heading: str
    items: list[NavigationItem] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"heading": self.heading, "items": [i.to_dict() for i in self.items]}


@dataclass
class DropdownMenu:
    """Menu opened by one trigger; owned by a single candidate."""

    trigger: str
    items: list[NavigationItem] = field(default_factory=list)
    columns: list[ColumnGroup] = field(default_factory=list)
    trigger_url: Optional[str] = None
    is_mega_menu: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "trigger": self.trigger,
            "trigger_url": self.trigger_url,
            "is_mega_menu": self.is_mega_menu,
            "items": [i.to_dict() for i in self.items],
            "columns": [c.to_dict() for c in self.columns],
        }


@dataclass(frozen=True)
class NavigationCandidate:
    """One strategy's guess at the site navigation, with a confidence score.

    Candidates are immutable once built; the pipeline produces new values
    instead of editing the ones strategies return.
    """

    items: tuple[NavigationItem, ...] = ()
    dropdowns: tuple[DropdownMenu, ...] = ()
    confidence: float = 0.0
    strategy_name: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "items", tuple(self.items))
        object.__setattr__(self, "dropdowns", tuple(self.dropdowns))
        object.__setattr__(self, "confidence", min(1.0, max(0.0, float(self.confidence))))

    @classmethod
    def failed(cls, strategy_name: str, error: str, **metadata) -> "NavigationCandidate":
        """Build the zero-confidence candidate reported when a strategy fails."""
        return cls(
            confidence=0.0,
            strategy_name=strategy_name,
            metadata={"error": error, "strategy": strategy_name, **metadata},
        )

    @property
    def error(self) -> Optional[str]:
        return self.metadata.get("error")

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategy_name": self.strategy_name,
            "confidence": round(self.confidence, 3),
            "items": [i.to_dict() for i in self.items],
            "dropdowns": [d.to_dict() for d in self.dropdowns],
            "metadata": self.metadata,
        }


@dataclass
class PipelineResult:
    """Winning candidate plus pipeline diagnostics."""

    candidate: NavigationCandidate
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class TreeNode:
    """A node of the hierarchical category tree."""

    name: str
    canonical_url: Optional[str]
    depth: int
    kind: NodeKind
    children: list["TreeNode"] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    def iter_nodes(self) -> Iterator["TreeNode"]:
        """Yield this node and all descendants in pre-order."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def leaves(self) -> list["TreeNode"]:
        return [n for n in self.iter_nodes() if not n.children and n.kind != NodeKind.ROOT]

    def to_dict(self) -> dict[str, Any]:
        data = {
            "name": self.name,
            "url": self.canonical_url,
            "depth": self.depth,
            "kind": self.kind.value,
            "children": [child.to_dict() for child in self.children],
        }
        if self.metadata:
            data["metadata"] = self.metadata
        return data


@dataclass
class TaxonomyEntry:
    """Classification of one navigation section."""

    section: NavigationItem
    bucket: Bucket
    subtype: str
    priority: int
    estimated_products: int
    classification_confidence: float
    reason: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "name": self.section.name,
            "url": self.section.url,
            "bucket": self.bucket.value,
            "type": self.subtype,
            "priority": self.priority,
            "estimated_products": self.estimated_products,
            "classification_confidence": self.classification_confidence,
        }
        if self.reason:
            data["reason"] = self.reason
        return data


@dataclass
class TaxonomyResult:
    """All taxonomy buckets for one discovery run."""

    buckets: dict[Bucket, list[TaxonomyEntry]] = field(
        default_factory=lambda: {bucket: [] for bucket in Bucket}
    )
    metadata: dict[str, Any] = field(default_factory=dict)

    def entries(self) -> list[TaxonomyEntry]:
        return [entry for bucket in Bucket for entry in self.buckets.get(bucket, [])]

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            bucket.output_key: [e.to_dict() for e in self.buckets.get(bucket, [])]
            for bucket in Bucket
        }
        data["metadata"] = self.metadata
        return data


@dataclass
class PaginationState:
    """Progress of one paginated listing traversal."""

    current_url: str
    pages_visited: int = 0
    next_url: Optional[str] = None
    stopped_reason: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_url": self.current_url,
            "pages_visited": self.pages_visited,
            "next_url": self.next_url,
            "stopped_reason": self.stopped_reason,
        }


@dataclass
class ListingResult:
    """Product URLs resolved from a terminal category page."""

    product_urls: list[str] = field(default_factory=list)
    pages_visited: int = 0
    state: Optional[PaginationState] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_urls": self.product_urls,
            "pages_visited": self.pages_visited,
            "state": self.state.to_dict() if self.state else None,
            "metadata": self.metadata,
        }


@dataclass
class FilterOption:
    """One selectable value of a listing filter."""

    label: str
    value: Optional[str] = None
    url: Optional[str] = None
    count: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {"label": self.label, "value": self.value, "url": self.url, "count": self.count}


@dataclass
class FilterGroup:
    """A facet such as Size or Color with its options."""

    name: str
    filter_type: str = "link"  # checkbox, radio, select, link, range
    options: list[FilterOption] = field(default_factory=list)
    selector: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.filter_type,
            "selector": self.selector,
            "options": [o.to_dict() for o in self.options],
        }


@dataclass
class DiscoveryResult:
    """Complete navigation map of one site, ready to hand to persistence."""

    seed_url: str
    domain: str
    main_sections: list[NavigationItem] = field(default_factory=list)
    dropdown_menus: dict[str, DropdownMenu] = field(default_factory=dict)
    hierarchical_tree: Optional[TreeNode] = None
    taxonomy: TaxonomyResult = field(default_factory=TaxonomyResult)
    filters: list[FilterGroup] = field(default_factory=list)
    listings: dict[str, ListingResult] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    discovered_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "seed_url": self.seed_url,
            "domain": self.domain,
            "discovered_at": self.discovered_at.isoformat(),
            "main_sections": [s.to_dict() for s in self.main_sections],
            "dropdown_menus": {k: v.to_dict() for k, v in self.dropdown_menus.items()},
            "hierarchical_tree": self.hierarchical_tree.to_dict() if self.hierarchical_tree else None,
            "taxonomy": self.taxonomy.to_dict(),
            "filters": [f.to_dict() for f in self.filters],
            "listings": {k: v.to_dict() for k, v in self.listings.items()},
            "metadata": self.metadata,
        }
