"""Typed business errors raised by the commerce services.

Every error carries a machine readable ``code``, a human message and the HTTP
status the API boundary answers with. Services raise them at the point of
detection; nothing in between catches and rewraps them.
"""

from typing import Any, Dict, Optional


class CommerceError(Exception):
    code = "error"
    http_status = 500

    def __init__(self, message: str, *, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}


class NotFound(CommerceError):
    code = "not_found"
    http_status = 404


class InvalidInput(CommerceError):
    code = "invalid_input"
    http_status = 400


class InvalidSelection(InvalidInput):
    code = "invalid_selection"


class InsufficientStock(CommerceError):
    code = "insufficient_stock"
    http_status = 400


class InvalidTransition(CommerceError):
    code = "invalid_transition"
    http_status = 400


class AlreadyCancelled(InvalidTransition):
    code = "already_cancelled"


class Forbidden(CommerceError):
    code = "forbidden"
    http_status = 403


class Unauthorized(CommerceError):
    code = "unauthorized"
    http_status = 401


class DuplicatePayment(CommerceError):
    code = "duplicate_payment"
    http_status = 400


class Conflict(CommerceError):
    code = "conflict"
    http_status = 409


class Internal(CommerceError):
    code = "internal"
    http_status = 500


class CouponError(CommerceError):
    """A coupon failed one of the redemption rules.

    ``kind`` is one of ``COUPON_ERROR_KINDS``.
    """

    http_status = 400

    def __init__(self, kind: str, message: str) -> None:
        if kind not in COUPON_ERROR_KINDS:
            raise ValueError(f"unknown coupon error kind: {kind}")
        super().__init__(message, code=f"coupon_{kind}")
        self.kind = kind
        if kind == "not_found":
            self.http_status = 404

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["kind"] = self.kind
        return data


COUPON_ERROR_KINDS = (
    "not_found",
    "inactive",
    "expired",
    "exhausted",
    "below_minimum",
    "already_used",
    "not_applicable",
)
