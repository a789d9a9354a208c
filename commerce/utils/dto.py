from typing import Any, Dict, Optional


def _money(value) -> float:
    return float(value or 0)


def _ts(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def to_cart_dto(cart: Any) -> Dict:
    items = [
        {
            "id": it.id,
            "product_id": it.product_id,
            "variant": it.variant,
            "quantity": it.quantity,
            "price": _money(it.price),
            "sku": it.sku,
        }
        for it in cart.items
    ]
    return {
        "id": cart.id,
        "user_id": cart.user_id,
        "items": items,
        "coupon_id": cart.coupon_id,
        "coupon_code": cart.coupon.code if cart.coupon is not None else None,
        "total": _money(cart.total),
        "discount": _money(cart.discount),
        "total_after_discount": _money(cart.total_after_discount),
        "is_deleted": bool(cart.is_deleted),
    }


def to_order_dto(order: Any) -> Dict:
    return {
        "id": order.id,
        "user_id": order.user_id,
        "items": [
            {
                "id": it.id,
                "product_id": it.product_id,
                "store_id": it.store_id,
                "name": it.name,
                "quantity": it.quantity,
                "price": _money(it.price),
                "image": it.image,
                "variant": it.variant,
                "sku": it.sku,
            }
            for it in order.items
        ],
        "shipping_address": order.shipping_address,
        "coupon_id": order.coupon_id,
        "subtotal": _money(order.subtotal),
        "discount": _money(order.discount),
        "shipping_fee": _money(order.shipping_fee),
        "tax": _money(order.tax),
        "total_amount": _money(order.total_amount),
        "currency": order.currency,
        "status": order.status,
        "paid_at": _ts(order.paid_at),
        "shipped_at": _ts(order.shipped_at),
        "delivered_at": _ts(order.delivered_at),
        "cancelled_at": _ts(order.cancelled_at),
        "store_deleted": bool(order.store_deleted),
        "store_deleted_at": _ts(order.store_deleted_at),
        "created_at": _ts(order.created_at),
    }


def to_payment_dto(payment: Any) -> Dict:
    return {
        "id": payment.id,
        "order_id": payment.order_id,
        "user_id": payment.user_id,
        "amount": _money(payment.amount),
        "currency": payment.currency,
        "method": payment.method,
        "provider": payment.provider,
        "status": payment.status,
        "transaction_id": payment.transaction_id,
        "error_message": payment.error_message,
        "refunded_at": _ts(payment.refunded_at),
        "created_at": _ts(payment.created_at),
    }
