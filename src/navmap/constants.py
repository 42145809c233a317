# src/navmap/constants.py
"""Centralized constants for navigation discovery.

Keyword lists, CSS selector tables and scoring thresholds shared across the
strategies, the tree builder, the taxonomy classifier and the pagination
resolver. For user-configurable bounds, see config.py and SiteCrawlConfig.
"""

# =============================================================================
# URL Canonicalization
# =============================================================================

# Query parameters removed during canonicalization (plus any utm_* key)
TRACKING_PARAMS = frozenset({"fbclid", "ref", "source"})

# Path fragments that are never explored as categories
EXCLUDED_PATH_PATTERNS = (
    "/account",
    "/signin",
    "/sign-in",
    "/login",
    "/register",
    "/cart",
    "/bag",
    "/checkout",
    "/wishlist",
    "/help",
    "/customer-service",
    "/privacy",
    "/terms",
    "/legal",
    "/cookie",
)

SOCIAL_DOMAINS = (
    "facebook.com",
    "twitter.com",
    "instagram.com",
    "youtube.com",
    "pinterest.com",
    "tiktok.com",
    "linkedin.com",
)

# Link texts skipped by every extraction strategy
NON_NAVIGATION_TEXT = (
    "facebook",
    "twitter",
    "instagram",
    "youtube",
    "pinterest",
    "privacy",
    "terms",
    "cookie",
    "copyright",
)


# =============================================================================
# Extraction Strategies
# =============================================================================

# Confidence is always clamped into this range by a successful strategy
MIN_STRATEGY_CONFIDENCE = 0.1
MAX_STRATEGY_CONFIDENCE = 1.0

# Attribute marking elements that were not rendered when a snapshot was taken
HIDDEN_MARKER = "data-nav-hidden"

NAV_CONTAINER_SELECTORS = (
    "nav",
    ".main-nav",
    ".primary-nav",
    ".header-nav",
    ".navigation",
    ".main-menu",
    '[role="navigation"]',
    ".navbar",
    "header nav",
)

ARIA_LABEL_SELECTORS = (
    '[aria-label*="menu" i]',
    '[aria-label*="navigation" i]',
    '[aria-label*="nav" i]',
    '[aria-label*="category" i]',
    '[aria-label*="department" i]',
    '[aria-label*="shop" i]',
)

ARIA_MENU_ROLES = ("menuitem", "menuitemcheckbox", "menuitemradio")

# (selector, is_dropdown, is_menu)
DATA_ATTRIBUTE_SELECTORS = (
    ("[data-nav]", False, False),
    ("[data-navigation]", False, False),
    ("[data-menu]", False, True),
    ("[data-nav-item]", False, False),
    ("[data-menu-item]", False, True),
    ("[data-dropdown]", True, False),
    ("[data-submenu]", False, True),
    ('[data-testid*="nav"]', False, False),
    ('[data-testid*="menu"]', False, True),
    ('[data-test*="nav"]', False, False),
    ('[data-cy*="nav"]', False, False),
    ('[data-automation*="nav"]', False, False),
    ('[data-component*="nav"]', False, False),
    ('[data-component*="menu"]', False, True),
    ('[data-module*="nav"]', False, False),
    ('[data-widget*="nav"]', False, False),
    ("[data-category]", False, False),
    ("[data-department]", False, False),
    ("[data-collection]", False, False),
    ("[data-product-category]", False, False),
    ("[data-nav-category]", False, False),
    ('[data-toggle="dropdown"]', True, False),
    ('[data-toggle="menu"]', False, True),
    ('[data-action="menu"]', False, True),
    ('[data-behavior="menu"]', False, True),
    ('[data-target*="menu"]', False, True),
    ('[data-target*="nav"]', False, False),
    ("[data-menu-target]", False, True),
    ("[data-dropdown-target]", True, False),
)

SPECIFIC_DATA_PATTERNS = (
    '[data-testid^="division-"]',
    '[data-testid*="link"]',
    "[data-nav-id]",
    "[data-menu-id]",
    "[data-category-id]",
)

# Test/automation attributes are the most stable signal a site offers
TEST_ID_ATTRIBUTES = ("data-testid", "data-test", "data-cy", "data-automation")

DROPDOWN_PANEL_SELECTORS = (
    ".dropdown-menu",
    ".dropdown",
    ".submenu",
    ".mega-menu",
    ".megamenu",
    '[class*="dropdown"]',
    '[class*="submenu"]',
    '[role="menu"]',
    ".menu-panel",
    "[data-dropdown]",
)

SIDEBAR_SELECTORS = (".sidebar", ".category-nav", ".filters", ".left-nav")

BREADCRUMB_SELECTORS = (".breadcrumb", ".breadcrumbs", '[aria-label="breadcrumb" i]')

# (selector, is_dropdown, is_mobile)
HIDDEN_CONTAINER_SELECTORS = (
    ("nav", False, False),
    ('[role="navigation"]', False, False),
    (".navigation", False, False),
    (".nav", False, False),
    (".menu", True, False),
    (".navbar", False, False),
    (".header-nav", False, False),
    (".main-nav", False, False),
    (".dropdown", True, False),
    (".mega-menu", True, False),
    (".megamenu", True, False),
    (".submenu", True, False),
    ('[class*="dropdown"]', True, False),
    ('[class*="mega"]', True, False),
    ('[class*="menu"]', True, False),
    (".mobile-nav", False, True),
    (".mobile-menu", True, True),
    (".hamburger-menu", True, True),
    (".off-canvas", False, False),
    (".side-menu", True, False),
    (".slide-menu", True, False),
    ("[data-menu]", True, False),
    ("[data-nav]", False, False),
    ("[data-dropdown]", True, False),
)

HOVER_TRIGGER_SELECTORS = (
    "nav > ul > li > a",
    "nav > ul > li > button",
    ".navigation > ul > li > a",
    '[role="navigation"] > ul > li > a',
    'a[aria-haspopup="true"]',
    "a[aria-expanded]",
    'button[aria-haspopup="true"]',
    "button[aria-expanded]",
    ".has-dropdown > a",
    ".has-submenu > a",
    ".dropdown-toggle",
    ".menu-item-has-children > a",
    ".nav-item > a",
    ".menu-item > a",
)

HOVER_SKIP_TEXT = ("sign in", "cart", "search", "account", "help")

# Delay after hovering a trigger before the menu is read
HOVER_SETTLE_MS = 500
MAX_HOVER_TRIGGERS = 15

COMPREHENSIVE_LINK_SELECTORS = (
    "nav a",
    "header a",
    '[role="navigation"] a',
    ".navigation a",
    '[class*="nav"] a',
    '[class*="menu"] a',
    '[id*="navigation" i] a',
    ".header a",
    ".navbar a",
    ".main-nav a",
    ".primary-nav a",
    ".header-nav a",
    ".main-menu a",
    "[data-nav] a",
    "[data-menu] a",
    ".site-nav a",
    ".global-nav a",
    'a[href*="/shop/"]',
    'a[href*="/browse/"]',
    'a[href*="/category/"]',
    'a[href*="/collection/"]',
    '[class*="nav-item"] a',
    '[class*="category-nav"] a',
)

COMPREHENSIVE_SKIP_TEXT = (
    "sign in",
    "sign up",
    "login",
    "logout",
    "cart",
    "bag",
    "basket",
    "checkout",
    "account",
    "profile",
    "help",
    "support",
    "contact",
    "facebook",
    "twitter",
    "instagram",
    "youtube",
    "pinterest",
    "privacy",
    "terms",
    "cookie",
    "legal",
    "copyright",
)

# Core department names whose presence signals a real storefront menu
CORE_NAVIGATION_TERMS = ("women", "men", "kids", "home", "sale", "shop")


# =============================================================================
# Discovery Pipeline
# =============================================================================

DEFAULT_MAX_STRATEGIES = 10
DEFAULT_MIN_CONFIDENCE = 0.3
EARLY_EXIT_CONFIDENCE = 0.9
PER_STRATEGY_TIMEOUT_MS = 5000
PIPELINE_TIMEOUT_MS = 30000


# =============================================================================
# Navigation Tree Builder
# =============================================================================

DEFAULT_MAX_DEPTH = 4
DEFAULT_MAX_BRANCH_WIDTH = 20
NODE_NAVIGATION_TIMEOUT_MS = 15000
NODE_SETTLE_MS = 2000
NODE_RETRY_BACKOFF_MS = 1000

EXPLORABLE_TERMS = (
    "women",
    "men",
    "kids",
    "baby",
    "girls",
    "boys",
    "clothing",
    "shoes",
    "accessories",
    "home",
    "beauty",
    "jewelry",
    "handbags",
    "furniture",
    "electronics",
)

CHILD_LINK_SELECTORS = (
    ".sidebar nav a",
    ".category-nav a",
    ".subcategory-list a",
    ".refinement a",
    '[class*="sidebar"] a',
    '[class*="filter"] a',
    '[class*="category"] a',
    "aside a",
    ".left-nav a",
)


# =============================================================================
# Taxonomy Classification
# =============================================================================

PRODUCT_CATEGORY_KEYWORDS = (
    "clothing", "shoes", "accessories", "bags", "jewelry", "watches",
    "shirts", "pants", "jeans", "dresses", "jackets", "sweaters", "coats",
    "sneakers", "boots", "sandals", "heels", "flats", "belts", "hats",
    "scarves", "sunglasses", "gloves", "ties",
)

GENDER_KEYWORDS = (
    "men", "mens", "men's", "women", "womens", "women's", "kids",
    "children", "boys", "girls", "unisex", "baby",
)

FEATURED_KEYWORDS = (
    "sale", "clearance", "new arrivals", "new", "featured", "trending",
    "bestseller", "limited", "exclusive", "gift", "holiday", "seasonal",
)

BRAND_INDICATOR_KEYWORDS = ("brand", "designer", "collection", "label")

UTILITY_KEYWORDS = (
    "account", "login", "sign in", "register", "cart", "checkout",
    "wishlist", "help", "support", "contact", "about", "store locator",
    "shipping", "returns", "size guide", "customer service", "privacy",
    "terms",
)

# Words that disqualify a title-cased name from the brand heuristic
BRAND_EXCLUDED_PREFIXES = ("all ", "new ", "shop ")

BASE_PRIORITY = 5
MIN_PRIORITY = 1
MAX_PRIORITY = 10

ESTIMATE_BROAD = 200
ESTIMATE_SALE = 100
ESTIMATE_PRODUCT_CATEGORY = 80
ESTIMATE_NEW = 40
ESTIMATE_BRAND = 25
ESTIMATE_DEFAULT = 15


# =============================================================================
# Pagination & Product Links
# =============================================================================

DEFAULT_MAX_PAGINATION_DEPTH = 3
PAGINATION_TIMEOUT_MS = 60000
PAGINATION_SLEEP_MS = 500
PAGINATION_RETRY_BACKOFF_MS = 1000

NEXT_REL_SELECTORS = ('link[rel~="next"]', 'a[rel~="next"]')
NEXT_DATA_ATTRIBUTES = ("data-next-url", "data-next-page-url")
NEXT_CONTROL_SELECTORS = (
    ".pagination .next a",
    "a.next",
    'a[aria-label*="next" i]',
    ".pagination-next a",
    '[class*="next"] a[href]',
    'a[class*="next"][href]',
)
NEXT_TEXT_PATTERNS = ("next", "next page", "›", "»", ">")
INFINITE_SCROLL_SELECTORS = (
    '[class*="infinite-scroll"]',
    "[data-infinite-scroll]",
    '[class*="load-more"]',
    'button[class*="load-more"]',
    '[data-action="load-more"]',
)

PRODUCT_LINK_SELECTORS = (
    'a[href*="/product"]',
    'a[href*="/item"]',
    'a[href*="/p/"]',
    'a[href*="/dp/"]',
    'a[href*="/pd/"]',
    '[class*="product"] a[href]',
    "[data-product-id] a[href]",
    "[data-sku] a[href]",
    ".product-tile a",
    ".product-card a",
    "article a[href]",
)

PRODUCT_URL_PATTERNS = (
    r"/products?/[^/]+$",
    r"/items?/[^/]+$",
    r"/p/[^/]+",
    r"/dp/[^/]+",
    r"/pd/[^/]+",
    r"/[^/]+/p[0-9]+$",
    r"-[0-9]+\.html$",
    r"/[^/]+/[0-9]{4,}$",
    r"/sku-",
)

# Anchors inspected by the structural product-URL fallback
PRODUCT_ANCHOR_SAMPLE = 200


# =============================================================================
# Listing Filters
# =============================================================================

FILTER_CONTAINER_SELECTORS = (
    '[role="region"][aria-label*="filter" i]',
    ".filters",
    ".filter",
    ".facets",
    ".refinements",
    ".collection-filters",
    "[data-filter]",
    "[data-facet]",
    "aside",
    ".sidebar",
)

FILTER_HEADING_SELECTORS = ("h2", "h3", "h4", "legend", "summary", '[class*="title"]')
