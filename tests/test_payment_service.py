from decimal import Decimal

import pytest

from commerce.errors import DuplicatePayment, Forbidden, InvalidInput, InvalidTransition, NotFound
from commerce.models import Product, Store, User
from commerce.services import OrderService, PaymentService, payment_service


ADDRESS = {"street": "12 Nile St", "city": "Cairo", "postal_code": "11511", "country": "EG"}


@pytest.fixture
def orders(catalog, app_config, clock):
    return OrderService(catalog, app_config, clock)


@pytest.fixture
def payments(catalog, clock):
    return PaymentService(catalog, clock)


@pytest.fixture
def order(orders):
    return orders.create_order(
        user_id="u1",
        items=[
            {"product_id": "p-plain", "quantity": 1},
            {"product_id": "p-pen", "quantity": 2},
            {"product_id": "p-mug", "quantity": 1},
        ],
        shipping_address=ADDRESS,
    )


def revenue(fetch):
    return fetch(Store, "s-a").total_revenue, fetch(Store, "s-b").total_revenue


def test_payment_amount_comes_from_the_order(payments, order):
    payment = payments.create_payment(order_id=order["id"], user_id="u1", method="paypal")

    assert payment["amount"] == order["total_amount"] == 154.0
    assert payment["currency"] == "USD"
    assert payment["status"] == "pending"
    assert payment["method"] == "paypal"


def test_default_method_and_unknown_method(payments, order):
    with pytest.raises(InvalidInput):
        payments.create_payment(order_id=order["id"], user_id="u1", method="barter")

    assert payments.create_payment(order_id=order["id"], user_id="u1")["method"] == "credit_card"


def test_one_payment_per_order(payments, order):
    payments.create_payment(order_id=order["id"], user_id="u1")

    with pytest.raises(DuplicatePayment):
        payments.create_payment(order_id=order["id"], user_id="u1")
    with pytest.raises(DuplicatePayment):
        payments.create_payment(order_id=order["id"], user_id="u2")


def test_concurrent_insert_for_same_order_is_a_duplicate(payments, order, monkeypatch):
    payments.create_payment(order_id=order["id"], user_id="u1")
    # the second request saw no payment before the first one committed
    monkeypatch.setattr(payment_service, "_existing_payment", lambda session, order_id: None)

    with pytest.raises(DuplicatePayment):
        payments.create_payment(order_id=order["id"], user_id="u1")


def test_cannot_pay_for_someone_elses_order(payments, order):
    with pytest.raises(Forbidden):
        payments.create_payment(order_id=order["id"], user_id="u2")
    with pytest.raises(NotFound):
        payments.create_payment(order_id="missing", user_id="u1")


def test_cannot_pay_for_cancelled_order(payments, orders, order):
    orders.cancel_order(order["id"], user_id="u1")

    with pytest.raises(InvalidTransition):
        payments.create_payment(order_id=order["id"], user_id="u1")


def test_completed_payment_marks_order_paid_and_books_revenue(payments, orders, order, fetch, now):
    payment = payments.create_payment(order_id=order["id"], user_id="u1")

    updated = payments.update_payment_status(payment["id"], "completed", transaction_id="tx-1")

    assert updated["status"] == "completed"
    assert updated["transaction_id"] == "tx-1"
    paid = orders.get_order(order["id"], user_id="u1")
    assert paid["status"] == "paid"
    assert paid["paid_at"] == now.isoformat()
    assert revenue(fetch) == (Decimal("120.00"), Decimal("20.00"))


def test_completed_payment_cannot_go_back_to_pending(payments, order):
    payment = payments.create_payment(order_id=order["id"], user_id="u1")
    payments.update_payment_status(payment["id"], "completed")

    with pytest.raises(InvalidTransition):
        payments.update_payment_status(payment["id"], "pending")
    with pytest.raises(InvalidTransition):
        payments.update_payment_status(payment["id"], "completed")


def test_failed_payment_then_retry(payments, orders, order, fetch):
    payment = payments.create_payment(order_id=order["id"], user_id="u1")

    failed = payments.update_payment_status(payment["id"], "failed", error="card declined")

    assert failed["error_message"] == "card declined"
    assert orders.get_order(order["id"], user_id="u1")["status"] == "payment_failed"
    assert revenue(fetch) == (Decimal("0.00"), Decimal("0.00"))

    payments.update_payment_status(payment["id"], "completed")
    assert orders.get_order(order["id"], user_id="u1")["status"] == "paid"


def test_refund_reverses_revenue_and_closes_order(payments, orders, order, fetch, now):
    payment = payments.create_payment(order_id=order["id"], user_id="u1")
    payments.update_payment_status(payment["id"], "completed")

    refunded = payments.update_payment_status(payment["id"], "refunded")

    assert refunded["refunded_at"] == now.isoformat()
    assert orders.get_order(order["id"], user_id="u1")["status"] == "refunded"
    assert revenue(fetch) == (Decimal("0.00"), Decimal("0.00"))
    assert fetch(User, "u1").active_orders == 0

    with pytest.raises(InvalidTransition):
        payments.update_payment_status(payment["id"], "completed")


def test_cancelling_a_paid_order_returns_revenue_and_refund_settles_payment(payments, orders, order, fetch, now):
    payment = payments.create_payment(order_id=order["id"], user_id="u1")
    payments.update_payment_status(payment["id"], "completed")
    assert revenue(fetch) == (Decimal("120.00"), Decimal("20.00"))

    orders.cancel_order(order["id"], user_id="u1")
    assert revenue(fetch) == (Decimal("0.00"), Decimal("0.00"))

    refunded = payments.update_payment_status(payment["id"], "refunded")

    assert refunded["status"] == "refunded"
    assert refunded["refunded_at"] == now.isoformat()
    assert orders.get_order(order["id"], user_id="u1")["status"] == "cancelled"
    assert revenue(fetch) == (Decimal("0.00"), Decimal("0.00"))
    assert fetch(User, "u1").active_orders == 0


def test_deleted_order_does_not_follow_a_late_payment(payments, orders, order, fetch):
    payment = payments.create_payment(order_id=order["id"], user_id="u1")
    payments.update_payment_status(payment["id"], "failed")
    orders.delete_order(order["id"], user_id="u1")
    assert fetch(Product, "p-plain").stock == 5

    with pytest.raises(InvalidTransition):
        payments.update_payment_status(payment["id"], "completed")

    assert orders.get_order(order["id"], user_id="u1")["status"] == "payment_failed"
    assert payments.get_payment(payment["id"], user_id="u1")["status"] == "failed"
    assert revenue(fetch) == (Decimal("0.00"), Decimal("0.00"))
    assert fetch(Product, "p-plain").stock == 5


def test_refund_needs_completed_payment(payments, order):
    payment = payments.create_payment(order_id=order["id"], user_id="u1")

    with pytest.raises(InvalidTransition):
        payments.update_payment_status(payment["id"], "refunded")


def test_failed_payment_rolls_back_when_order_cannot_follow(payments, orders, order):
    payment = payments.create_payment(order_id=order["id"], user_id="u1")
    payments.update_payment_status(payment["id"], "completed")
    for status in ("processing", "shipped", "delivered"):
        orders.update_order_status(order["id"], status)

    with pytest.raises(InvalidTransition):
        payments.update_payment_status(payment["id"], "failed")

    assert payments.get_payment(payment["id"], user_id="u1")["status"] == "completed"


def test_unknown_status_and_missing_payment(payments, order):
    payment = payments.create_payment(order_id=order["id"], user_id="u1")

    with pytest.raises(InvalidInput):
        payments.update_payment_status(payment["id"], "settled")
    with pytest.raises(NotFound):
        payments.update_payment_status("missing", "completed")


def test_get_payment_ownership(payments, order):
    payment = payments.create_payment(order_id=order["id"], user_id="u1")

    assert payments.get_payment(payment["id"], user_id="u1")["id"] == payment["id"]
    assert payments.get_payment(payment["id"], user_id="ops", is_admin=True)["id"] == payment["id"]
    with pytest.raises(Forbidden):
        payments.get_payment(payment["id"], user_id="u2")
