"""URL canonicalization and comparison helpers.

Every component that stores, compares or deduplicates URLs goes through
``canonicalize`` so that two spellings of the same page collapse to one key.
"""

import logging
from typing import Iterable, Optional
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

from navmap.constants import EXCLUDED_PATH_PATTERNS, SOCIAL_DOMAINS, TRACKING_PARAMS
from navmap.errors import InvalidSeedUrlError

logger = logging.getLogger(__name__)

_PSEUDO_SCHEMES = ("javascript:", "mailto:", "tel:", "data:")
_DEFAULT_PORTS = {"http": "80", "https": "443"}


def _is_tracking_param(key: str) -> bool:
    key = key.lower()
    return key.startswith("utm_") or key in TRACKING_PARAMS


def canonicalize(url: Optional[str], base_url: Optional[str] = None) -> Optional[str]:
    """Normalize a URL for equality and deduplication.

    Args:
        url: Absolute or relative URL
        base_url: Base to resolve relative URLs against

    Returns:
        Canonical absolute URL, or None for unparsable input, ``#``-only
        links and pseudo-URLs such as ``javascript:`` or ``mailto:``
    """
    if not url or not isinstance(url, str):
        return None

    url = url.strip()
    if not url or url.startswith("#"):
        return None
    if url.lower().startswith(_PSEUDO_SCHEMES):
        return None

    try:
        if base_url:
            url = urljoin(base_url, url)
        parts = urlsplit(url)
        port = parts.port
    except ValueError:
        return None

    scheme = parts.scheme.lower()
    if scheme not in ("http", "https") or not parts.hostname:
        return None

    host = parts.hostname.lower()
    if ":" in host:
        host = f"[{host}]"
    if port is not None and str(port) != _DEFAULT_PORTS[scheme]:
        host = f"{host}:{port}"

    path = parts.path or "/"
    if path != "/":
        path = path.rstrip("/") or "/"

    query_pairs = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if not _is_tracking_param(key)
    ]
    query = urlencode(sorted(query_pairs))

    return urlunsplit((scheme, host, path, query, ""))


def same_origin(a: Optional[str], b: Optional[str]) -> bool:
    """Check whether two URLs share scheme and host."""
    if not a or not b:
        return False
    try:
        pa, pb = urlsplit(a), urlsplit(b)
    except ValueError:
        return False
    return (
        pa.scheme.lower() == pb.scheme.lower()
        and (pa.hostname or "").lower() == (pb.hostname or "").lower()
    )


def domain_of(url: str) -> str:
    """Return the lowercase host of a URL with any leading ``www.`` removed."""
    host = (urlsplit(url).hostname or "").lower()
    return host[4:] if host.startswith("www.") else host


def require_seed_url(url: Optional[str]) -> str:
    """Canonicalize a seed URL, raising if it is not a usable http(s) URL.

    Raises:
        InvalidSeedUrlError: If the URL cannot be canonicalized
    """
    canonical = canonicalize(url)
    if canonical is None:
        raise InvalidSeedUrlError(url)
    return canonical


def unique_urls(urls: Iterable[Optional[str]], base_url: Optional[str] = None) -> list[str]:
    """Canonicalize and deduplicate URLs, keeping first-seen order."""
    seen: set[str] = set()
    result = []
    for url in urls:
        canonical = canonicalize(url, base_url)
        if canonical and canonical not in seen:
            seen.add(canonical)
            result.append(canonical)
    return result


def is_excluded_url(url: Optional[str], base_url: str) -> bool:
    """Check whether a URL should never be explored as a category page.

    Off-site links, social networks and account/cart/legal/help paths are
    excluded.
    """
    canonical = canonicalize(url, base_url)
    if canonical is None:
        return True
    if not same_origin(canonical, base_url):
        return True

    parts = urlsplit(canonical)
    host = (parts.hostname or "").lower()
    if any(host == d or host.endswith("." + d) for d in SOCIAL_DOMAINS):
        return True

    path = parts.path.lower()
    return any(pattern in path for pattern in EXCLUDED_PATH_PATTERNS)
