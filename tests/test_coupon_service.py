from datetime import timedelta
from decimal import Decimal

import pytest

from commerce.errors import CouponError
from commerce.models import Cart, CartItem, Coupon, CouponRedemption
from commerce.services import coupon_service


def make_cart(total, *product_ids, user_id="u1"):
    return Cart(
        id="cart-1",
        user_id=user_id,
        total=Decimal(total),
        discount=Decimal("0"),
        total_after_discount=Decimal(total),
        is_deleted=False,
        items=[
            CartItem(id=f"ci-{pid}", product_id=pid, quantity=1, price=Decimal("1"), position=i)
            for i, pid in enumerate(product_ids)
        ],
    )


def make_coupon(**overrides):
    fields = dict(
        id="cp-x",
        code="X",
        type="percentage",
        value=Decimal("10"),
        min_cart_total=Decimal("0"),
        max_discount=None,
        usage_limit=5,
        used_count=0,
        active=True,
        product_ids=None,
        category_ids=None,
    )
    fields.update(overrides)
    return Coupon(**fields)


def test_percentage_discount_is_capped_by_max_discount():
    coupon = make_coupon(value=Decimal("10"), max_discount=Decimal("15"))

    discount = coupon_service.compute_discount(coupon, Decimal("200"))

    assert discount == Decimal("15.00")
    assert Decimal("200") - discount == Decimal("185.00")


def test_percentage_discount_without_cap():
    coupon = make_coupon(value=Decimal("12.5"))

    assert coupon_service.compute_discount(coupon, Decimal("80")) == Decimal("10.00")


def test_fixed_discount_never_exceeds_total():
    coupon = make_coupon(type="fixed", value=Decimal("50"))

    assert coupon_service.compute_discount(coupon, Decimal("120")) == Decimal("50.00")
    assert coupon_service.compute_discount(coupon, Decimal("30")) == Decimal("30.00")
    assert coupon_service.compute_discount(coupon, Decimal("0")) == Decimal("0.00")


def test_code_lookup_is_case_insensitive(catalog, add_coupon):
    add_coupon("SPRING")

    with catalog() as s:
        assert coupon_service.find_by_code(s, "  spring ").id == "cp-spring"
        with pytest.raises(CouponError) as exc:
            coupon_service.find_by_code(s, "AUTUMN")
    assert exc.value.kind == "not_found"
    assert exc.value.code == "coupon_not_found"


def test_codes_are_stored_upper_case(catalog, add_coupon, fetch):
    add_coupon("spring10")

    assert fetch(Coupon, "cp-spring10").code == "SPRING10"
    with catalog() as s:
        assert coupon_service.find_by_code(s, "SPRING10").id == "cp-spring10"
        assert coupon_service.find_by_code(s, "spring10").id == "cp-spring10"


@pytest.mark.parametrize(
    "overrides, total, kind",
    [
        ({"active": False}, "200", "inactive"),
        ({"used_count": 5, "usage_limit": 5}, "200", "exhausted"),
        ({"min_cart_total": Decimal("250")}, "200", "below_minimum"),
        ({"product_ids": ["p-mug"]}, "200", "not_applicable"),
    ],
)
def test_validation_failures(catalog, now, overrides, total, kind):
    coupon = make_coupon(expiry_date=now + timedelta(days=1), **overrides)

    with catalog() as s:
        with pytest.raises(CouponError) as exc:
            coupon_service.validate(s, coupon, make_cart(total, "p-plain"), "u1", now)
    assert exc.value.kind == kind


def test_expired_coupon(catalog, now):
    coupon = make_coupon(expiry_date=now - timedelta(seconds=1))

    with catalog() as s:
        with pytest.raises(CouponError) as exc:
            coupon_service.validate(s, coupon, make_cart("200", "p-plain"), "u1", now)
    assert exc.value.kind == "expired"
    assert exc.value.http_status == 400


def test_inactive_is_reported_before_expired(catalog, now):
    coupon = make_coupon(active=False, expiry_date=now - timedelta(days=1), used_count=9, usage_limit=1)

    with catalog() as s:
        with pytest.raises(CouponError) as exc:
            coupon_service.validate(s, coupon, make_cart("10", "p-plain"), "u1", now)
    assert exc.value.kind == "inactive"


def test_expiry_boundary_is_still_valid(catalog, now):
    coupon = make_coupon(expiry_date=now)

    with catalog() as s:
        assert coupon_service.validate(s, coupon, make_cart("10", "p-plain"), "u1", now) is coupon


def test_already_used_by_same_user(catalog, add_coupon, now):
    coupon_id = add_coupon("ONCE")
    with catalog() as s:
        s.add(CouponRedemption(id="r1", coupon_id=coupon_id, user_id="u1"))

    with catalog() as s:
        coupon = s.get(Coupon, coupon_id)
        with pytest.raises(CouponError) as exc:
            coupon_service.validate(s, coupon, make_cart("50", "p-plain"), "u1", now)
        assert exc.value.kind == "already_used"
        assert coupon_service.validate(s, coupon, make_cart("50", "p-plain"), "u2", now) is coupon


def test_scope_matches_by_product_or_category(catalog, now):
    by_product = make_coupon(product_ids=["p-pen", "p-plain"], expiry_date=now + timedelta(days=1))
    by_category = make_coupon(category_ids=["c-kitchen"], expiry_date=now + timedelta(days=1))

    with catalog() as s:
        assert coupon_service.validate(s, by_product, make_cart("40", "p-plain"), "u1", now)
        assert coupon_service.validate(s, by_category, make_cart("40", "p-plain", "p-mug"), "u1", now)
        with pytest.raises(CouponError) as exc:
            coupon_service.validate(s, by_category, make_cart("40", "p-plain"), "u1", now)
    assert exc.value.kind == "not_applicable"


def test_redeem_counts_use_and_stops_at_limit(catalog, add_coupon, fetch):
    coupon_id = add_coupon("TWICE", usage_limit=2)

    with catalog() as s:
        coupon_service.redeem(s, s.get(Coupon, coupon_id), "u1")
    with catalog() as s:
        coupon_service.redeem(s, s.get(Coupon, coupon_id), "u2")
    with pytest.raises(CouponError) as exc:
        with catalog() as s:
            coupon_service.redeem(s, s.get(Coupon, coupon_id), "u3")

    assert exc.value.kind == "exhausted"
    assert fetch(Coupon, coupon_id).used_count == 2
    with catalog() as s:
        assert s.query(CouponRedemption).filter(CouponRedemption.coupon_id == coupon_id).count() == 2
