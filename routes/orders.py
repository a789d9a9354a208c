"""Order endpoints; the /admin routes need an admin token."""

from __future__ import annotations

from flask import Blueprint, request

from .common import components, current_user, is_admin, payload, require_admin, success


orders_bp = Blueprint("orders", __name__, url_prefix="/orders")


def _orders():
    return components()["order_service"]


@orders_bp.post("")
def create_order():
    user = current_user()
    data = payload()
    order = _orders().create_order(
        user_id=user["id"],
        items=data.get("orderItems") or data.get("items") or [],
        shipping_address=data.get("shippingAddress") or data.get("shipping_address"),
    )
    return success(order, 201)


@orders_bp.get("")
def list_my_orders():
    user = current_user()
    return success(
        _orders().list_user_orders(
            user_id=user["id"],
            page=request.args.get("page", 1),
            page_size=request.args.get("limit", 10),
        )
    )


@orders_bp.get("/admin")
def list_all_orders():
    require_admin()
    return success(
        _orders().list_all_orders(
            page=request.args.get("page", 1),
            page_size=request.args.get("limit", 10),
            status=request.args.get("status"),
        )
    )


@orders_bp.patch("/admin/<order_id>/status")
def update_order_status(order_id: str):
    require_admin()
    data = payload()
    return success(_orders().update_order_status(order_id, data.get("status")))


@orders_bp.get("/<order_id>")
def get_order(order_id: str):
    user = current_user()
    return success(_orders().get_order(order_id, user_id=user["id"], is_admin=is_admin(user)))


@orders_bp.patch("/<order_id>/cancel")
def cancel_order(order_id: str):
    user = current_user()
    return success(_orders().cancel_order(order_id, user_id=user["id"], is_admin=is_admin(user)))


@orders_bp.delete("/<order_id>")
def delete_order(order_id: str):
    user = current_user()
    return success(_orders().delete_order(order_id, user_id=user["id"], is_admin=is_admin(user)))


@orders_bp.patch("/<order_id>/items/<item_id>")
def update_order_item(order_id: str, item_id: str):
    user = current_user()
    data = payload()
    order = _orders().update_order_item(
        order_id,
        item_id,
        quantity=data.get("quantity"),
        user_id=user["id"],
        is_admin=is_admin(user),
    )
    return success(order)
