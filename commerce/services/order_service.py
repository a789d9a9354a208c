from typing import Dict, Optional
from uuid import uuid4
from decimal import Decimal
from ..config import AppConfig, load_env
from ..db.session import get_session
from ..errors import Forbidden, InvalidInput, InvalidTransition, NotFound
from ..models.cart import Cart
from ..models.order import Order, OrderItem
from ..models.payment import Payment
from ..models.product import Product
from ..utils.clock import utcnow
from ..utils.dto import to_order_dto
from ..utils.pagination import paginate
from ..utils.validators import ensure_id, ensure_positive_int, normalize_address, normalize_items
from . import counters, coupon_service, order_state, pricing, stock_ledger
from .cart_service import recompute_cart
from .logging import log_event


NON_DELETABLE_STATUSES = frozenset({"shipped", "delivered"})


def store_subtotals(order: Order) -> Dict[str, Decimal]:
    amounts: Dict[str, Decimal] = {}
    for item in order.items:
        line = pricing.money(item.price) * item.quantity
        amounts[item.store_id] = amounts.get(item.store_id, Decimal("0")) + line
    return amounts


def release_order_stock(session, order: Order) -> None:
    """Hand back whatever each line still holds; lines already released are skipped."""
    for item in order.items:
        if not item.reserved_quantity:
            continue
        product = session.get(Product, item.product_id)
        if product is not None:
            stock_ledger.release(session, product, item.variant, item.reserved_quantity)
        item.reserved_quantity = 0


def has_completed_payment(session, order: Order) -> bool:
    return (
        session.query(Payment.id)
        .filter(Payment.order_id == order.id, Payment.status == "completed")
        .first()
        is not None
    )


def transition(session, order: Order, target: str, now) -> None:
    """Move ``order`` to ``target`` along with the side effects the move implies.

    Cancelling releases stock, rolls back store and user counters and gives
    back the revenue a completed payment booked; closing states drop the order
    from the user's active count. Deleted orders do not move.
    """
    if order.store_deleted:
        raise InvalidTransition("Order has been deleted")
    order_state.ensure_transition(order.status, target)
    if target == "cancelled":
        release_order_stock(session, order)
        if has_completed_payment(session, order):
            counters.adjust_store_revenue(session, store_subtotals(order), -1)
        counters.adjust_store_orders(session, order.store_ids, -1)
        counters.adjust_user(session, order.user_id, cancelled_orders=1, active_orders=-1)
        order.cancelled_at = now
    elif target in order_state.TERMINAL_STATUSES:
        counters.adjust_user(session, order.user_id, active_orders=-1)
    if target == "paid" and order.paid_at is None:
        order.paid_at = now
    elif target == "shipped":
        order.shipped_at = now
    elif target == "delivered":
        order.delivered_at = now
    previous = order.status
    order.status = target
    log_event("info", "order.status_changed", order_id=order.id, previous=previous, status=target)


class OrderService:
    """Order creation, status changes and compensation backed by DB.

    Each public method is one transaction: stock, counters and the order row
    either all change or none do.
    """

    def __init__(self, session_factory=get_session, config: Optional[AppConfig] = None, clock=utcnow):
        self._session_factory = session_factory
        self._config = config or load_env()
        self._clock = clock

    def use_config(self, config: AppConfig) -> None:
        """Swap pricing knobs for orders created from now on."""
        self._config = config

    # -- helpers -----------------------------------------------------------

    @staticmethod
    def _get(session, order_id: str) -> Order:
        order = session.get(Order, ensure_id(order_id, "order_id"))
        if order is None:
            raise NotFound("Order not found", code="order_not_found")
        return order

    @staticmethod
    def _ensure_owner(order: Order, user_id: str, is_admin: bool) -> None:
        if not is_admin and order.user_id != user_id:
            raise Forbidden("You are not authorized to perform this action")

    @staticmethod
    def _product(session, product_id: str) -> Product:
        product = session.get(Product, product_id)
        if product is None or product.is_deleted:
            raise NotFound(f"Product {product_id} not found", code="product_not_found")
        return product

    @staticmethod
    def _snapshot_price(product: Product, variant: Optional[dict]) -> Decimal:
        unit = pricing.money(product.base_price)
        _, option = pricing.resolve_option(product, variant) if variant is not None else (None, None)
        if option is not None:
            unit = max(pricing.money(unit + pricing.money(option.price_modifier)), Decimal("0.00"))
        return unit

    def _apply_totals(self, order: Order) -> None:
        gross = sum((pricing.money(it.price) * it.quantity for it in order.items), Decimal("0"))
        subtotal = max(Decimal("0"), pricing.money(gross - pricing.money(order.discount)))
        order.subtotal = subtotal
        order.tax = pricing.money(subtotal * self._config.tax_rate)
        order.shipping_fee = pricing.money(self._config.shipping_fee_for(subtotal))
        order.total_amount = pricing.money(order.subtotal + order.tax + order.shipping_fee)

    def _new_order(self, user_id: str, address: Dict[str, str]) -> Order:
        return Order(
            id=str(uuid4()),
            user_id=user_id,
            shipping_address=address,
            subtotal=Decimal("0"),
            discount=Decimal("0"),
            shipping_fee=Decimal("0"),
            tax=Decimal("0"),
            total_amount=Decimal("0"),
            currency=self._config.currency,
            status="pending",
            store_deleted=False,
        )

    @staticmethod
    def _line(product: Product, variant: Optional[dict], quantity: int, price: Decimal, sku, position: int) -> OrderItem:
        return OrderItem(
            id=str(uuid4()),
            product_id=product.id,
            store_id=product.store_id,
            name=product.name,
            quantity=quantity,
            price=price,
            image=product.primary_image,
            variant_name=variant["name"] if variant else None,
            variant_value=variant["value"] if variant else None,
            sku=sku,
            reserved_quantity=quantity,
            position=position,
        )

    @staticmethod
    def _record_created(session, order: Order) -> None:
        counters.adjust_store_orders(session, order.store_ids, 1)
        counters.adjust_user(session, order.user_id, orders_count=1, active_orders=1)

    # -- creation ----------------------------------------------------------

    def create_order(self, *, user_id: str, items: list, shipping_address: dict) -> Dict:
        """Create an order from an explicit item list, taking stock for every line."""
        user_id = ensure_id(user_id, "user_id")
        requested = normalize_items(items)
        address = normalize_address(shipping_address)
        merged: Dict[tuple, Dict] = {}
        for entry in requested:
            v = entry["variant"]
            key = (entry["product_id"], v["name"] if v else None, v["value"] if v else None)
            if key in merged:
                merged[key]["quantity"] += entry["quantity"]
            else:
                merged[key] = dict(entry)

        with self._session_factory() as session:
            order = self._new_order(user_id, address)
            for position, entry in enumerate(merged.values()):
                product = self._product(session, entry["product_id"])
                price = self._snapshot_price(product, entry["variant"])
                stock_ledger.reserve(session, product, entry["variant"], entry["quantity"])
                sku = None
                if entry["variant"] is not None:
                    _, option = pricing.resolve_option(product, entry["variant"])
                    sku = option.sku
                order.items.append(self._line(product, entry["variant"], entry["quantity"], price, sku, position))
            self._apply_totals(order)
            session.add(order)
            session.flush()
            self._record_created(session, order)
            log_event(
                "info",
                "order.created",
                order_id=order.id,
                items=len(order.items),
                subtotal=order.subtotal,
                total=order.total_amount,
            )
            return to_order_dto(order)

    def checkout_cart(self, *, user_id: str, shipping_address: dict) -> Dict:
        """Turn the user's cart into an order.

        The cart lines already hold their stock, so the reservation moves to the
        order unchanged. The attached coupon is redeemed and the cart emptied.
        """
        user_id = ensure_id(user_id, "user_id")
        address = normalize_address(shipping_address)
        with self._session_factory() as session:
            cart = session.query(Cart).filter(Cart.user_id == user_id).first()
            if cart is None or cart.is_deleted or not cart.items:
                raise InvalidInput("Cart is empty")
            now = self._clock()
            recompute_cart(session, cart, now)
            order = self._new_order(user_id, address)
            for position, line in enumerate(cart.items):
                product = self._product(session, line.product_id)
                order.items.append(self._line(product, line.variant, line.quantity, line.price, line.sku, position))
            coupon = cart.coupon
            if coupon is not None:
                order.coupon_id = coupon.id
                order.discount = cart.discount
            self._apply_totals(order)
            session.add(order)
            session.flush()
            if coupon is not None:
                coupon_service.redeem(session, coupon, user_id, order.id)
            self._record_created(session, order)
            for line in list(cart.items):
                cart.items.remove(line)
            cart.coupon = None
            cart.total = Decimal("0")
            cart.discount = Decimal("0")
            cart.total_after_discount = Decimal("0")
            session.flush()
            log_event(
                "info",
                "order.created",
                order_id=order.id,
                source="cart",
                items=len(order.items),
                subtotal=order.subtotal,
                total=order.total_amount,
            )
            return to_order_dto(order)

    # -- reads -------------------------------------------------------------

    def get_order(self, order_id: str, *, user_id: str, is_admin: bool = False) -> Dict:
        with self._session_factory() as session:
            order = self._get(session, order_id)
            self._ensure_owner(order, user_id, is_admin)
            return to_order_dto(order)

    def list_user_orders(self, *, user_id: str, page: int = 1, page_size: int = 10) -> Dict:
        with self._session_factory() as session:
            q = (
                session.query(Order)
                .filter(Order.user_id == user_id, Order.store_deleted.is_(False))
                .order_by(Order.created_at.desc(), Order.id)
            )
            return paginate(q, page, page_size, to_order_dto)

    def list_all_orders(self, *, page: int = 1, page_size: int = 10, status: Optional[str] = None) -> Dict:
        with self._session_factory() as session:
            q = session.query(Order)
            if status:
                q = q.filter(Order.status == status)
            q = q.order_by(Order.created_at.desc(), Order.id)
            return paginate(q, page, page_size, to_order_dto)

    # -- status changes ----------------------------------------------------

    def cancel_order(self, order_id: str, *, user_id: str, is_admin: bool = False) -> Dict:
        with self._session_factory() as session:
            order = self._get(session, order_id)
            self._ensure_owner(order, user_id, is_admin)
            transition(session, order, "cancelled", self._clock())
            session.flush()
            log_event("info", "order.cancelled", order_id=order.id, by=user_id)
            return to_order_dto(order)

    def update_order_status(self, order_id: str, status: str) -> Dict:
        """Admin status change along the transition table."""
        target = (status or "").strip().lower()
        with self._session_factory() as session:
            order = self._get(session, order_id)
            transition(session, order, target, self._clock())
            session.flush()
            return to_order_dto(order)

    def delete_order(self, order_id: str, *, user_id: str, is_admin: bool = False) -> Dict:
        """Cancel-with-audit: the row stays, flagged as deleted."""
        with self._session_factory() as session:
            order = self._get(session, order_id)
            self._ensure_owner(order, user_id, is_admin)
            if order.store_deleted:
                raise InvalidTransition("Order is already deleted")
            if order.status in NON_DELETABLE_STATUSES:
                raise InvalidTransition(f"Cannot delete an order that is {order.status}")
            now = self._clock()
            if order.status in order_state.CANCELLABLE_STATUSES:
                transition(session, order, "cancelled", now)
            else:
                # already closed or failed: only stock still held goes back
                release_order_stock(session, order)
                if order.status == "payment_failed":
                    counters.adjust_user(session, order.user_id, active_orders=-1)
                    counters.adjust_store_orders(session, order.store_ids, -1)
            order.store_deleted = True
            order.store_deleted_at = now
            session.flush()
            log_event("info", "order.deleted", order_id=order.id, by=user_id, status=order.status)
            return to_order_dto(order)

    def update_order_item(
        self, order_id: str, item_id: str, *, quantity: int, user_id: str, is_admin: bool = False
    ) -> Dict:
        """Change a line's quantity while the order is pending; prices are re-snapshotted."""
        qnty = ensure_positive_int(quantity, "quantity")
        with self._session_factory() as session:
            order = self._get(session, order_id)
            self._ensure_owner(order, user_id, is_admin)
            if order.status != "pending":
                raise InvalidTransition("Order items can only be changed while the order is pending")
            item = next((it for it in order.items if it.id == item_id), None)
            if item is None:
                raise NotFound("Order item not found", code="item_not_found")
            product = self._product(session, item.product_id)
            delta = qnty - item.quantity
            stock_ledger.adjust(session, product, item.variant, delta)
            item.reserved_quantity = max(0, item.reserved_quantity + delta)
            item.quantity = qnty
            item.price = self._snapshot_price(product, item.variant)
            item.name = product.name
            item.image = product.primary_image
            self._apply_totals(order)
            session.flush()
            log_event("info", "order.item_updated", order_id=order.id, item_id=item.id, quantity=qnty, delta=delta)
            return to_order_dto(order)
