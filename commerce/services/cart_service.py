from typing import Dict, List, Optional
from uuid import uuid4
from sqlalchemy.exc import IntegrityError
from decimal import Decimal
from ..db.session import get_session
from ..errors import Conflict, CouponError, InvalidInput, InvalidSelection, NotFound
from ..models.cart import Cart
from ..models.cart_item import CartItem
from ..models.product import Product
from ..utils.clock import utcnow
from ..utils.dto import to_cart_dto
from ..utils.validators import ensure_id, ensure_positive_int, normalize_items, normalize_variant
from . import coupon_service, pricing, stock_ledger
from .logging import log_event


class CartService:
    """Cart operations backed by DB.

    One cart row per user. Every operation loads (or lazily creates) that row,
    applies its change, re-prices all lines, re-validates the attached coupon
    and persists, all in one transaction. Line quantities hold stock: adding
    reserves the delta, removing releases it.
    """

    def __init__(self, session_factory=get_session, clock=utcnow):
        self._session_factory = session_factory
        self._clock = clock

    # -- loading -----------------------------------------------------------

    @staticmethod
    def _find(session, user_id: str) -> Optional[Cart]:
        return session.query(Cart).filter(Cart.user_id == user_id).first()

    @classmethod
    def _load(cls, session, user_id: str, *, revive: bool = True) -> Cart:
        cart = cls._find(session, user_id)
        if cart is None:
            cart = Cart(
                id=str(uuid4()),
                user_id=user_id,
                total=Decimal("0"),
                discount=Decimal("0"),
                total_after_discount=Decimal("0"),
                is_deleted=False,
            )
            session.add(cart)
            try:
                session.flush()
            except IntegrityError as exc:
                raise Conflict("Cart was created concurrently, please retry") from exc
        elif revive and cart.is_deleted:
            cart.is_deleted = False
        return cart

    @staticmethod
    def _product(session, product_id: str) -> Product:
        product = session.get(Product, product_id)
        if product is None or product.is_deleted:
            raise NotFound("Product not found or not available for sale", code="product_not_found")
        return product

    @staticmethod
    def _matching_lines(cart: Cart, product_id: str, variant: Optional[Dict[str, str]]) -> List[CartItem]:
        lines = [it for it in cart.items if it.product_id == product_id]
        if variant is not None:
            lines = [it for it in lines if it.variant == variant]
        return lines

    def _single_line(self, cart: Cart, product_id: str, variant: Optional[Dict[str, str]]) -> CartItem:
        lines = self._matching_lines(cart, product_id, variant)
        if not lines:
            raise NotFound("Product not found in cart", code="item_not_found")
        if len(lines) > 1:
            raise InvalidInput("variant required: the product appears in several cart lines")
        return lines[0]

    # -- totals ------------------------------------------------------------

    def _finish(self, session, cart: Cart) -> Dict:
        recompute_cart(session, cart, self._clock())
        session.flush()
        return to_cart_dto(cart)

    # -- operations --------------------------------------------------------

    def get_cart(self, *, user_id: str) -> Dict:
        with self._session_factory() as session:
            cart = self._load(session, ensure_id(user_id, "user_id"), revive=False)
            return self._finish(session, cart)

    def add_item(self, *, user_id: str, product_id: str, quantity: int, variant: Optional[dict] = None) -> Dict:
        product_id = ensure_id(product_id, "product_id")
        qnty = ensure_positive_int(quantity, "quantity")
        selector = normalize_variant(variant)
        with self._session_factory() as session:
            product = self._product(session, product_id)
            pricing.price(product, selector, qnty, self._clock())
            cart = self._load(session, ensure_id(user_id, "user_id"))
            existing = self._matching_lines(cart, product_id, selector)
            if selector is None and len(existing) > 1:
                raise InvalidInput("variant required: the product appears in several cart lines")
            # only the newly requested units are reserved, never the merged total
            stock_ledger.reserve(session, product, selector, qnty)
            if existing:
                existing[0].quantity += qnty
                item_id = existing[0].id
            else:
                item = CartItem(
                    id=str(uuid4()),
                    product_id=product_id,
                    variant_name=selector["name"] if selector else None,
                    variant_value=selector["value"] if selector else None,
                    quantity=qnty,
                    price=Decimal("0"),
                    position=len(cart.items),
                )
                cart.items.append(item)
                item_id = item.id
            result = self._finish(session, cart)
            log_event("info", "cart.item_added", user_id=user_id, product_id=product_id, item_id=item_id, quantity=qnty)
            return result

    def update_item(self, *, user_id: str, product_id: str, quantity: int, variant: Optional[dict] = None) -> Dict:
        product_id = ensure_id(product_id, "product_id")
        qnty = ensure_positive_int(quantity, "quantity")
        selector = normalize_variant(variant)
        with self._session_factory() as session:
            cart = self._load(session, ensure_id(user_id, "user_id"))
            line = self._single_line(cart, product_id, selector)
            delta = qnty - line.quantity
            if delta:
                product = session.get(Product, product_id)
                if delta > 0:
                    if product is None or product.is_deleted:
                        raise NotFound("Product not found or not available for sale", code="product_not_found")
                    stock_ledger.reserve(session, product, line.variant, delta)
                elif product is not None:
                    stock_ledger.release(session, product, line.variant, -delta)
                line.quantity = qnty
            return self._finish(session, cart)

    def remove_item(self, *, user_id: str, product_id: str, variant: Optional[dict] = None) -> Dict:
        product_id = ensure_id(product_id, "product_id")
        selector = normalize_variant(variant)
        with self._session_factory() as session:
            cart = self._load(session, ensure_id(user_id, "user_id"))
            line = self._single_line(cart, product_id, selector)
            product = session.get(Product, product_id)
            if product is not None:
                stock_ledger.release(session, product, line.variant, line.quantity)
            cart.items.remove(line)
            result = self._finish(session, cart)
            log_event("info", "cart.item_removed", user_id=user_id, product_id=product_id, quantity=line.quantity)
            return result

    def set_items(self, *, user_id: str, items: list) -> Dict:
        """Replace every line of the cart, swapping the old reservations for new ones."""
        requested = normalize_items(items, allow_empty=True)
        merged: Dict[tuple, Dict] = {}
        for entry in requested:
            v = entry["variant"]
            key = (entry["product_id"], v["name"] if v else None, v["value"] if v else None)
            if key in merged:
                merged[key]["quantity"] += entry["quantity"]
            else:
                merged[key] = dict(entry)
        with self._session_factory() as session:
            cart = self._load(session, ensure_id(user_id, "user_id"))
            self._release_all(session, cart)
            now = self._clock()
            for position, entry in enumerate(merged.values()):
                product = self._product(session, entry["product_id"])
                pricing.price(product, entry["variant"], entry["quantity"], now)
                stock_ledger.reserve(session, product, entry["variant"], entry["quantity"])
                cart.items.append(
                    CartItem(
                        id=str(uuid4()),
                        product_id=entry["product_id"],
                        variant_name=entry["variant"]["name"] if entry["variant"] else None,
                        variant_value=entry["variant"]["value"] if entry["variant"] else None,
                        quantity=entry["quantity"],
                        price=Decimal("0"),
                        position=position,
                    )
                )
            return self._finish(session, cart)

    def apply_coupon(self, *, user_id: str, code: str) -> Dict:
        with self._session_factory() as session:
            cart = self._load(session, ensure_id(user_id, "user_id"))
            coupon = coupon_service.find_by_code(session, code)
            recompute_cart(session, cart, self._clock())
            coupon_service.validate(session, coupon, cart, cart.user_id, self._clock())
            cart.coupon = coupon
            result = self._finish(session, cart)
            log_event("info", "cart.coupon_applied", user_id=user_id, code=coupon.code, discount=cart.discount)
            return result

    def remove_coupon(self, *, user_id: str) -> Dict:
        with self._session_factory() as session:
            cart = self._load(session, ensure_id(user_id, "user_id"))
            cart.coupon = None
            return self._finish(session, cart)

    def clear(self, *, user_id: str) -> None:
        """Soft-delete the cart, giving every reserved unit back."""
        with self._session_factory() as session:
            cart = self._load(session, ensure_id(user_id, "user_id"), revive=False)
            self._release_all(session, cart)
            cart.coupon = None
            cart.total = Decimal("0")
            cart.discount = Decimal("0")
            cart.total_after_discount = Decimal("0")
            cart.is_deleted = True
            session.flush()
            log_event("info", "cart.cleared", user_id=user_id)
        return None

    @staticmethod
    def _release_all(session, cart: Cart) -> None:
        for line in list(cart.items):
            product = session.get(Product, line.product_id)
            if product is not None:
                stock_ledger.release(session, product, line.variant, line.quantity)
            cart.items.remove(line)


def recompute_cart(session, cart: Cart, now) -> None:
    """Re-price every line and re-check the attached coupon; totals are never taken from input."""
    total = Decimal("0")
    for item in cart.items:
        product = session.get(Product, item.product_id)
        if product is not None and not product.is_deleted:
            try:
                quote = pricing.price(product, item.variant, item.quantity, now)
            except InvalidSelection:
                # variant was removed after the line was added; the snapshot price stands
                quote = None
            if quote is not None:
                item.price = quote.unit_price
                item.sku = quote.sku
        total += pricing.money(item.price) * item.quantity
    cart.total = pricing.money(total)
    cart.discount = Decimal("0")
    coupon = cart.coupon
    if coupon is not None:
        try:
            coupon_service.validate(session, coupon, cart, cart.user_id, now)
        except CouponError as exc:
            log_event("info", "cart.coupon_dropped", cart_id=cart.id, code=coupon.code, reason=exc.kind)
            cart.coupon = None
        else:
            cart.discount = coupon_service.compute_discount(coupon, cart.total)
    cart.total_after_discount = max(Decimal("0"), pricing.money(cart.total - cart.discount))
