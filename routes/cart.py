"""Cart endpoints for the signed-in user."""

from __future__ import annotations

from flask import Blueprint

from .common import components, current_user, payload, success, variant_from


cart_bp = Blueprint("cart", __name__, url_prefix="/cart")


def _carts():
    return components()["cart_service"]


@cart_bp.get("")
def get_cart():
    user = current_user()
    return success(_carts().get_cart(user_id=user["id"]))


@cart_bp.put("")
def set_cart_items():
    user = current_user()
    data = payload()
    return success(_carts().set_items(user_id=user["id"], items=data.get("items", [])))


@cart_bp.delete("")
def clear_cart():
    user = current_user()
    _carts().clear(user_id=user["id"])
    return "", 204


@cart_bp.post("/items")
def add_item():
    user = current_user()
    data = payload()
    cart = _carts().add_item(
        user_id=user["id"],
        product_id=data.get("productId") or data.get("product_id"),
        quantity=data.get("quantity", 1),
        variant=data.get("variant"),
    )
    return success(cart)


@cart_bp.patch("/items/<product_id>")
def update_item(product_id: str):
    user = current_user()
    data = payload()
    cart = _carts().update_item(
        user_id=user["id"],
        product_id=product_id,
        quantity=data.get("quantity"),
        variant=variant_from(data),
    )
    return success(cart)


@cart_bp.delete("/items/<product_id>")
def remove_item(product_id: str):
    user = current_user()
    data = payload()
    return success(_carts().remove_item(user_id=user["id"], product_id=product_id, variant=variant_from(data)))


@cart_bp.post("/apply-coupon")
def apply_coupon():
    user = current_user()
    data = payload()
    code = data.get("code") or data.get("couponCode")
    return success(_carts().apply_coupon(user_id=user["id"], code=code))


@cart_bp.delete("/coupon")
def remove_coupon():
    user = current_user()
    return success(_carts().remove_coupon(user_id=user["id"]))


@cart_bp.post("/checkout")
def checkout():
    user = current_user()
    data = payload()
    order = components()["order_service"].checkout_cart(
        user_id=user["id"],
        shipping_address=data.get("shippingAddress") or data.get("shipping_address"),
    )
    return success(order, 201)
