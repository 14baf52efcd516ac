"""Tests for listing normalization."""

from dealengine.ingest.base import RawListing, StoreRowMeta
from dealengine.normalize.processor import listing_normalizer
from tests.factories import make_listing, make_retailer


def test_drops_inactive_and_unjoined_retailers():
    active = make_listing("a")
    inactive = make_listing("b", retailer=make_retailer("r1", is_active=False))
    unjoined = RawListing(
        id="c",
        product_id="p1",
        retailer_id="r9",
        price=active.price,
        last_checked=active.last_checked,
    )

    result = listing_normalizer.normalize([active, inactive, unjoined])

    assert result == [active]


def test_empty_input():
    assert listing_normalizer.normalize([]) == []


def test_store_row_flags():
    assert StoreRowMeta.from_raw_data("X", {"discontinued_new": True}).discontinued_new is True
    assert StoreRowMeta.from_raw_data("X", {"discontinued_banner": True}).discontinued_new is True
    assert StoreRowMeta.from_raw_data("X", {"discontinued": "yes"}).discontinued_new is False
    assert StoreRowMeta.from_raw_data(None, None) == StoreRowMeta(title="")


def test_enrich_sets_title_and_drops_discontinued():
    kept = make_listing("a", retailer_id="r1", external_id="sku-a")
    gone = make_listing("b", retailer_id="r1", external_id="sku-b")
    untouched = make_listing("c", retailer_id="r2", external_id="sku-c", offer_title="Existing")

    result = listing_normalizer.enrich_with_store_rows(
        [kept, gone, untouched],
        {
            ("r1", "sku-a"): StoreRowMeta(title="Widget X200 - Black"),
            ("r1", "sku-b"): StoreRowMeta(title="Widget X200 - White", discontinued_new=True),
        },
    )

    assert [l.id for l in result] == ["a", "c"]
    assert result[0].offer_title == "Widget X200 - Black"
    assert result[1].offer_title == "Existing"
