"""Unit tests for TaxonomyClassifier."""

import pytest

from navmap import events as ev
from navmap.constants import ESTIMATE_BRAND, ESTIMATE_BROAD, ESTIMATE_PRODUCT_CATEGORY
from navmap.events import CallbackEventSink
from navmap.models import Bucket, NavigationItem
from navmap.taxonomy import (
    TaxonomyClassifier,
    classify,
    estimate_products,
    gender_target,
    looks_like_brand,
    scraping_priority,
)

BASE = "https://shop.example.com"


def section(name, path=None):
    """Build a section with a URL derived from its path."""
    return NavigationItem(name=name, url=f"{BASE}{path}" if path else None)


@pytest.fixture
def storefront_sections():
    """Sections of a typical storefront header."""
    return [
        section("Women", "/women"),
        section("Men", "/men"),
        section("Shoes", "/shoes"),
        section("Sale", "/sale"),
        section("Account", "/account"),
        section("Help", "/help"),
    ]


class TestClassify:
    """Tests for bucket assignment over a whole section list."""

    def test_storefront_fully_classified(self, storefront_sections):
        """Test that a standard header classifies every section."""
        result = classify(storefront_sections)

        assert len(result.buckets[Bucket.GENDER_SECTION]) >= 1
        assert len(result.buckets[Bucket.UTILITY_PAGE]) >= 1
        assert result.metadata["classification_confidence"] == 1.0
        assert result.buckets[Bucket.UNCLASSIFIED] == []

    def test_expected_buckets(self, storefront_sections):
        """Test the bucket chosen for each storefront section."""
        result = classify(storefront_sections)
        by_name = {e.section.name: e for e in result.entries()}

        assert by_name["Women"].bucket == Bucket.GENDER_SECTION
        assert by_name["Women"].subtype == "womens"
        assert by_name["Men"].subtype == "mens"
        assert by_name["Shoes"].bucket == Bucket.PRODUCT_CATEGORY
        assert by_name["Shoes"].subtype == "footwear"
        assert by_name["Sale"].bucket == Bucket.FEATURED_COLLECTION
        assert by_name["Sale"].subtype == "sale"
        assert by_name["Account"].subtype == "account"
        assert by_name["Help"].subtype == "support"

    def test_each_section_in_exactly_one_bucket(self, storefront_sections):
        """Test that buckets are mutually exclusive and complete."""
        sections = storefront_sections + [section("Nike", "/nike"), section("lookbook", "/lookbook")]
        result = classify(sections)

        entries = result.entries()
        assert len(entries) == len(sections)
        assert {id(e.section) for e in entries} == {id(s) for s in sections}

    def test_confidence_ratio(self):
        """Test classification confidence is classified / total."""
        result = classify([section("Shoes", "/shoes"), section("lookbook", "/lookbook")])

        assert result.metadata["total_sections"] == 2
        assert result.metadata["classified_sections"] == 1
        assert result.metadata["classification_confidence"] == 0.5

    def test_unclassified_has_reason(self):
        """Test that unclassified entries explain themselves."""
        result = classify([section("lookbook", "/lookbook")])
        entry = result.buckets[Bucket.UNCLASSIFIED][0]

        assert entry.subtype == "unknown"
        assert entry.classification_confidence == 0.0
        assert "lookbook" in entry.reason

    def test_empty_input(self):
        """Test that no sections gives zero confidence and empty buckets."""
        result = classify([])

        assert result.metadata["classification_confidence"] == 0.0
        assert all(entries == [] for entries in result.buckets.values())

    def test_all_buckets_serialized(self):
        """Test that every bucket key appears in serialized output."""
        data = classify([section("Shoes", "/shoes")]).to_dict()

        for key in ("productCategories", "brandCollections", "genderSections",
                    "featuredCollections", "utilityPages", "unclassified"):
            assert key in data
        assert data["metadata"]["bucket_counts"]["productCategories"] == 1

    def test_sorted_by_priority_with_stable_ties(self):
        """Test descending priority order; equal priorities keep input order."""
        sections = [
            section("Boots", "/boots"),
            section("Sneakers", "/sneakers"),
            section("All Shoes", "/shoes"),
        ]
        result = classify(sections)
        names = [e.section.name for e in result.buckets[Bucket.PRODUCT_CATEGORY]]

        assert names == ["All Shoes", "Boots", "Sneakers"]

    def test_utility_keeps_discovery_order(self):
        """Test that utility pages are not reordered."""
        sections = [section("Help", "/help"), section("Cart", "/cart"), section("About Us", "/about")]
        result = classify(sections)

        assert [e.section.name for e in result.buckets[Bucket.UTILITY_PAGE]] == ["Help", "Cart", "About Us"]

    def test_utility_excluded_from_product_estimate(self):
        """Test that utility pages do not add to the estimated product total."""
        result = classify([section("All Shoes", "/shoes"), section("Help", "/help")])
        assert result.metadata["estimated_total_products"] == ESTIMATE_BROAD

    def test_emits_classification_event(self, storefront_sections):
        """Test that classification completion is reported."""
        received = []
        classifier = TaxonomyClassifier(CallbackEventSink(lambda event, data: received.append((event, data))))

        classifier.classify(storefront_sections)

        assert received == [(ev.CLASSIFICATION_DONE, {"total": 6, "classified": 6, "confidence": 1.0})]


class TestRules:
    """Tests for the individual classification rules."""

    def test_men_does_not_match_women(self):
        """Test keyword matching respects word boundaries."""
        assert gender_target("women https://shop.example.com/women") == "womens"
        assert gender_target("men https://shop.example.com/men") == "mens"
        assert gender_target("kids https://shop.example.com/kids") == "kids"

    def test_utility_wins_over_gender(self):
        """Test that the cascade checks utility before gender."""
        bucket, subtype, _ = TaxonomyClassifier().classify_section(section("Women's Account", "/account"))
        assert bucket == Bucket.UTILITY_PAGE
        assert subtype == "account"

    def test_brand_by_indicator(self):
        """Test that brand indicators classify as brand collections."""
        bucket, subtype, _ = TaxonomyClassifier().classify_section(section("Designers", "/designer"))
        assert bucket == Bucket.BRAND_COLLECTION
        assert subtype == "brand"

    def test_brand_by_proper_noun(self):
        """Test the title-cased proper noun heuristic."""
        assert looks_like_brand(section("Nike", "/nike"))
        assert looks_like_brand(section("Dolce & Gabbana", "/dolce-gabbana"))
        assert not looks_like_brand(section("lookbook", "/lookbook"))
        assert not looks_like_brand(section("Shoes", "/shoes"))

    def test_new_arrivals_subtype(self):
        """Test that multi-word featured keywords set the subtype."""
        bucket, subtype, _ = TaxonomyClassifier().classify_section(section("New Arrivals", "/new-arrivals"))
        assert bucket == Bucket.FEATURED_COLLECTION
        assert subtype == "new_arrivals"

    @pytest.mark.parametrize("name,path", [
        ("All Men's Shoes Sale", "/mens-shoes-sale"),
        ("Account", "/account"),
        ("lookbook", "/lookbook"),
        ("Shop All Clothing", "/clothing"),
    ])
    def test_priority_bounds(self, name, path):
        """Test that priority is always between 1 and 10."""
        assert 1 <= scraping_priority(section(name, path)) <= 10

    def test_priority_boosts(self):
        """Test the additive priority boosts."""
        assert scraping_priority(section("lookbook", "/lookbook")) == 5
        assert scraping_priority(section("Shoes", "/shoes")) == 8
        assert scraping_priority(section("All Shoes", "/shoes")) == 10
        assert scraping_priority(section("Women", "/women")) == 6

    def test_estimates(self):
        """Test rough product estimates used for ranking."""
        assert estimate_products(section("Shop All", "/all")) == ESTIMATE_BROAD
        assert estimate_products(section("Shoes", "/shoes")) == ESTIMATE_PRODUCT_CATEGORY
        assert estimate_products(section("Nike", "/nike"), Bucket.BRAND_COLLECTION) == ESTIMATE_BRAND
