"""Tests for bundle detection."""

import pytest

from dealengine.detect.bundles import (
    BUNDLE_KEYWORDS,
    BUNDLE_PATTERNS,
    bundle_classifier,
    extract_bundle_description,
    is_bundle_title,
    matching_bundle_pattern,
    simplify_title,
)
from tests.factories import make_candidate, make_retailer


class TestIsBundleTitle:
    """Test the bundle decision procedure."""

    def test_free_cable_bundle(self):
        assert is_bundle_title("EV RE20 Microphone with FREE 20' XLR Cable", "EV RE20 Microphone")

    def test_identical_title_is_not_bundle(self):
        assert not is_bundle_title("EV RE20 Microphone", "EV RE20 Microphone")

    def test_parenthetical_bundle(self):
        assert is_bundle_title("Rode Procaster (Complete Podcasting Bundle)", "Rode Procaster")

    def test_punctuation_and_pipe_suffix_are_ignored(self):
        assert not is_bundle_title("EV RE-20 Microphone | Free Shipping", "EV RE 20 Microphone")

    def test_short_extra_text_is_not_bundle(self):
        # Only "kit" added: not longer than the name by more than five characters
        assert not is_bundle_title("Shure SM7B Kit", "Shure SM7B")

    def test_keyword_fallback(self):
        assert is_bundle_title("Shure SM7B Cloudlifter Savings", "Shure SM7B")

    def test_keyword_already_in_product_name(self):
        assert not is_bundle_title("Rode Podcaster Podcasting Edition", "Rode Podcaster Podcasting")

    def test_non_bundle_variant_title(self):
        assert not is_bundle_title("Sennheiser HD 600 Open Back Headphones", "Sennheiser HD 600")

    def test_total_on_odd_input(self):
        assert is_bundle_title("", "") is False
        assert is_bundle_title("((( ))) ---", "X") is False


class TestPatternTable:
    """Test the indicator pattern data table."""

    @pytest.mark.parametrize(
        "title,expected",
        [
            ("Shure SM7B Podcast Bundle", "bundle"),
            ("Focusrite Scarlett Solo Studio Kit", "kit"),
            ("Audio-Technica AT2020 with XLR Cable", "with_accessory"),
            ("Audio-Technica AT2020 with Desktop Stand", "with_word_accessory"),
            ("Rode NT1 with Free Pop Shield", "with_free"),
            ("KEF LS50 Meta Stereo Pair", "stereo_pair"),
            ("Rode NT-USB + Tripod", "plus_item"),
            ("Audeze LCD-X Free 2 Year Warranty", "free_quantity"),
            ("Shure MV7 Includes Carrying Case", "includes"),
        ],
    )
    def test_matching_pattern(self, title, expected):
        assert matching_bundle_pattern(title) == expected

    def test_plain_title_matches_nothing(self):
        assert matching_bundle_pattern("Sennheiser HD 600") is None

    def test_tables_are_data(self):
        names = [name for name, _ in BUNDLE_PATTERNS]
        assert len(names) == len(set(names))
        assert "cloudlifter" in BUNDLE_KEYWORDS
        assert "stereo pair" in BUNDLE_KEYWORDS


def test_simplify_title():
    assert simplify_title("EV RE-20 Microphone | Free Shipping") == "ev re 20 microphone"
    assert simplify_title("  Rode  NT1 (Black) ") == "rode nt1 black"


class TestExtractBundleDescription:
    """Test bundle description extraction."""

    def test_with_suffix(self):
        desc = extract_bundle_description(
            "EV RE20 Microphone with FREE 20' XLR Cable", "EV RE20 Microphone"
        )
        assert desc == "with FREE 20' XLR Cable"

    def test_parenthetical(self):
        desc = extract_bundle_description(
            "Rode Procaster (Complete Podcasting Bundle)", "Rode Procaster"
        )
        assert desc == "Complete Podcasting Bundle"

    def test_separator_is_stripped(self):
        desc = extract_bundle_description("Shure SM7B - Bundle with Cloudlifter", "Shure SM7B")
        assert desc == "Bundle with Cloudlifter"

    def test_suffix_without_indicator(self):
        desc = extract_bundle_description("Shure SM7B, Cloudlifter CL-1", "Shure SM7B")
        assert desc == "Cloudlifter CL-1"

    def test_product_name_not_in_title(self):
        assert extract_bundle_description("SM7B Mic with Boom Arm", "Shure SM7B") == "with Boom Arm"
        assert extract_bundle_description("SM7B + Cloudlifter", "Shure SM7B") == "+ Cloudlifter"
        assert (
            extract_bundle_description("SM7B (Podcast Kit) Black", "Shure SM7B")
            == "Podcast Kit"
        )

    def test_falls_back_to_title(self):
        assert extract_bundle_description("Something Else", "Shure SM7B") == "Something Else"


class TestBundleClassifier:
    """Test candidate filtering and classification."""

    def test_classify_keeps_displayable_bundles(self):
        candidates = [
            make_candidate("s1", title="Shure SM7B with FREE XLR Cable", price="399.00"),
            make_candidate("s2", title="Shure SM7B", price="379.00"),
            make_candidate("s3", title="Shure SM7B Podcast Bundle", price="0"),
            make_candidate("s4", title="Shure SM7B Podcast Bundle", price=None),
            make_candidate("s5", title="Shure SM7B Podcast Bundle", discontinued=True),
            make_candidate(
                "s6",
                retailer_id="r2",
                title="Shure SM7B Podcast Bundle",
                retailer=make_retailer("r2", is_active=False),
            ),
            make_candidate("s7", retailer_id="r3", title="Shure SM7B Podcast Bundle", retailer=None),
        ]

        offers = bundle_classifier.classify(candidates, "Shure SM7B")

        assert [o.candidate.id for o in offers] == ["s1"]
        assert offers[0].description == "with FREE XLR Cable"

    def test_no_product_name(self):
        candidates = [make_candidate("s1", title="Shure SM7B Podcast Bundle")]
        assert bundle_classifier.classify(candidates, None) == []

    def test_group_by_retailer_preserves_order(self):
        candidates = [
            make_candidate("s1", retailer_id="r1", title="Shure SM7B Podcast Bundle"),
            make_candidate("s2", retailer_id="r2", title="Shure SM7B Streaming Bundle"),
            make_candidate("s3", retailer_id="r1", title="Shure SM7B Broadcasting Bundle"),
        ]

        grouped = bundle_classifier.group_by_retailer(
            bundle_classifier.classify(candidates, "Shure SM7B")
        )

        assert [o.candidate.id for o in grouped["r1"]] == ["s1", "s3"]
        assert [o.candidate.id for o in grouped["r2"]] == ["s2"]
