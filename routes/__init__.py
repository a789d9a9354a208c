from .admin import admin_bp
from .cart import cart_bp
from .orders import orders_bp
from .payments import payments_bp

__all__ = ["admin_bp", "cart_bp", "orders_bp", "payments_bp"]
