from .base import Base
from .cart import Cart
from .cart_item import CartItem
from .coupon import Coupon, CouponRedemption
from .order import Order, OrderItem
from .payment import Payment
from .product import Product
from .store import Store
from .user import User
from .variant import ProductVariant, VariantOption

__all__ = [
    "Base",
    "Cart",
    "CartItem",
    "Coupon",
    "CouponRedemption",
    "Order",
    "OrderItem",
    "Payment",
    "Product",
    "ProductVariant",
    "Store",
    "User",
    "VariantOption",
]
