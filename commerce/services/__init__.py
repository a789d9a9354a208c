from .cart_service import CartService
from .order_service import OrderService
from .payment_service import PaymentService

__all__ = [
    "CartService",
    "OrderService",
    "PaymentService",
]
