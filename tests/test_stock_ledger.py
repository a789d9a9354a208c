import pytest

from commerce.errors import InsufficientStock, InvalidSelection
from commerce.models import Product, ProductVariant
from commerce.services import stock_ledger
from commerce.services.stock_ledger import Stock


RED = {"name": "Color", "value": "Red"}
BLUE = {"name": "Color", "value": "Blue"}


def test_reserve_then_release_restores_stock(catalog, fetch):
    with catalog() as s:
        stock_ledger.reserve(s, s.get(Product, "p-plain"), None, 3)
    assert fetch(Product, "p-plain").stock == 2

    with catalog() as s:
        stock_ledger.release(s, s.get(Product, "p-plain"), None, 3)
    assert fetch(Product, "p-plain").stock == 5


def test_reserve_more_than_available_fails_and_leaves_stock(catalog, fetch):
    with pytest.raises(InsufficientStock):
        with catalog() as s:
            stock_ledger.reserve(s, s.get(Product, "p-plain"), None, 6)

    assert fetch(Product, "p-plain").stock == 5


def test_reserve_exactly_available_reaches_zero(catalog, fetch):
    with catalog() as s:
        stock_ledger.reserve(s, s.get(Product, "p-plain"), None, 5)

    assert fetch(Product, "p-plain").stock == 0
    with pytest.raises(InsufficientStock):
        with catalog() as s:
            stock_ledger.reserve(s, s.get(Product, "p-plain"), None, 1)
    assert fetch(Product, "p-plain").stock == 0


def test_tracked_option_stock_is_used(catalog, fetch, option_stock):
    with catalog() as s:
        stock_ledger.reserve(s, s.get(Product, "p-shirt"), RED, 2)

    assert option_stock("o-red") == 1
    assert fetch(Product, "p-shirt").stock == 4


def test_untracked_option_falls_back_to_base_stock(catalog, fetch, option_stock):
    with catalog() as s:
        stock_ledger.reserve(s, s.get(Product, "p-shirt"), BLUE, 4)

    assert option_stock("o-blue") is None
    assert fetch(Product, "p-shirt").stock == 0


def test_reserve_with_unknown_option_is_invalid(catalog):
    with pytest.raises(InvalidSelection):
        with catalog() as s:
            stock_ledger.reserve(s, s.get(Product, "p-shirt"), {"name": "Color", "value": "Green"}, 1)


def test_release_still_lands_after_variant_soft_delete(catalog, option_stock):
    with catalog() as s:
        stock_ledger.reserve(s, s.get(Product, "p-shirt"), RED, 3)
    with catalog() as s:
        s.get(ProductVariant, "v-color").is_deleted = True
    with catalog() as s:
        stock_ledger.release(s, s.get(Product, "p-shirt"), RED, 3)

    assert option_stock("o-red") == 3


def test_adjust_reserves_positive_and_releases_negative(catalog, fetch):
    with catalog() as s:
        stock_ledger.adjust(s, s.get(Product, "p-pen"), None, 10)
    assert fetch(Product, "p-pen").stock == 90

    with catalog() as s:
        stock_ledger.adjust(s, s.get(Product, "p-pen"), None, -4)
    assert fetch(Product, "p-pen").stock == 94


def test_available_reports_tagged_stock(catalog):
    with catalog() as s:
        shirt = s.get(Product, "p-shirt")
        assert stock_ledger.available(shirt, RED) == Stock.tracked(3)
        assert stock_ledger.available(shirt, BLUE) == Stock.tracked(4)


def test_stock_input_sentinel():
    assert Stock.from_input(-1).is_unlimited
    assert Stock.from_input(None).is_unlimited
    assert Stock.from_input(7) == Stock.tracked(7)
    assert Stock.unlimited().covers(10_000)
    assert not Stock.tracked(2).covers(3)
    with pytest.raises(ValueError):
        Stock.tracked(-2)
