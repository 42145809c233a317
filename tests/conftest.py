"""Shared fixtures: a small server-rendered storefront served from memory."""

import pytest

from navmap.page import StaticPageProvider, mapping_fetcher

SHOP = "https://shop.example.com"

HOME = """
<html><head><title>Example Shop</title></head><body>
<header>
  <nav role="navigation" aria-label="Main menu">
    <ul>
      <li class="has-dropdown"><a href="/women" aria-haspopup="true">Women</a>
        <div class="dropdown-menu" hidden>
          <a href="/women/dresses">Dresses</a>
          <a href="/women/tops">Tops</a>
        </div>
      </li>
      <li class="has-dropdown"><a href="/men" aria-haspopup="true">Men</a>
        <div class="dropdown-menu" hidden>
          <a href="/men/shirts">Shirts</a>
          <a href="/men/jeans">Jeans</a>
        </div>
      </li>
      <li><a href="/shoes">Shoes</a></li>
      <li><a href="/sale">Sale</a></li>
      <li><a href="/account">Account</a></li>
      <li><a href="/help">Help</a></li>
    </ul>
  </nav>
</header>
<main><h1>Welcome</h1></main>
<footer>
  <a href="/privacy">Privacy Policy</a>
  <a href="https://www.facebook.com/exampleshop">Facebook</a>
</footer>
</body></html>
"""


def category_page(*links):
    """Category page with a sidebar of (name, path) subcategory links."""
    anchors = "".join(f'<a href="{path}">{name}</a>' for name, path in links)
    return f'<html><body><aside class="category-nav">{anchors}</aside></body></html>'


def listing_page(*slugs, next_path=None, filters=False):
    """Terminal listing page with product cards."""
    cards = "".join(f'<div class="product-card"><a href="/products/{s}">{s}</a></div>' for s in slugs)
    pager = f'<ul class="pagination"><li class="next"><a href="{next_path}">Next</a></li></ul>' if next_path else ""
    panel = (
        '<aside class="filters"><div class="filter-group"><h3>Color</h3>'
        '<label><input type="checkbox" name="color" value="red"> Red (3)</label>'
        '<label><input type="checkbox" name="color" value="blue"> Blue (1)</label>'
        "</div></aside>"
    ) if filters else ""
    return f"<html><body>{panel}<div class=\"grid\">{cards}</div>{pager}</body></html>"


@pytest.fixture
def storefront_pages():
    """URL -> HTML map for the storefront."""
    return {
        f"{SHOP}/": HOME,
        f"{SHOP}/women/dresses": category_page(
            ("Maxi Dresses", "/women/dresses/maxi"),
            ("Midi Dresses", "/women/dresses/midi"),
        ),
        f"{SHOP}/women/dresses/maxi": listing_page(
            "maxi-1", next_path="/women/dresses/maxi?page=2", filters=True
        ),
        f"{SHOP}/women/dresses/maxi?page=2": listing_page("maxi-2"),
        f"{SHOP}/women/dresses/midi": listing_page("midi-1"),
        f"{SHOP}/women/tops": listing_page("silk-top"),
        f"{SHOP}/men/shirts": listing_page("oxford"),
        f"{SHOP}/men/jeans": listing_page("slim"),
        f"{SHOP}/shoes": category_page(
            ("Boots", "/shoes/boots"),
            ("Sneakers", "/shoes/sneakers"),
            ("Cart", "/cart"),
        ),
        f"{SHOP}/shoes/boots": listing_page("chelsea"),
        f"{SHOP}/shoes/sneakers": listing_page("runner"),
    }


@pytest.fixture
def storefront_provider(storefront_pages):
    """Static page provider serving the storefront."""
    return StaticPageProvider(mapping_fetcher(storefront_pages))


@pytest.fixture
def home_html():
    return HOME
