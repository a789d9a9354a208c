"""Inventory reservations against product or variant-option stock.

Every change is a single conditional UPDATE so concurrent reservations on the
same row serialize in the database: a decrement only applies while enough
units remain, and the row count tells whether it did.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from sqlalchemy import update

from ..errors import InsufficientStock, InvalidInput
from ..models.product import Product
from ..models.variant import VariantOption
from .pricing import resolve_option


@dataclass(frozen=True)
class Stock:
    """Stock level of a row: ``Stock.tracked(n)`` or ``Stock.unlimited()``."""

    quantity: Optional[int] = None

    @classmethod
    def tracked(cls, quantity: int) -> "Stock":
        if quantity < 0:
            raise ValueError("tracked stock cannot be negative")
        return cls(quantity=quantity)

    @classmethod
    def unlimited(cls) -> "Stock":
        return cls(quantity=None)

    @classmethod
    def from_input(cls, raw) -> "Stock":
        # -1 and missing both mean "do not track"
        if raw is None or int(raw) == -1:
            return cls.unlimited()
        return cls.tracked(int(raw))

    @property
    def is_unlimited(self) -> bool:
        return self.quantity is None

    def covers(self, quantity: int) -> bool:
        return self.is_unlimited or quantity <= self.quantity


def option_stock(option: VariantOption) -> Stock:
    return Stock.unlimited() if option.stock is None else Stock.tracked(option.stock)


def _find_option_for_release(product: Product, variant: Dict[str, str]) -> Optional[VariantOption]:
    # releases must still land after a variant was soft-deleted
    for candidate in product.variants:
        if candidate.name == variant["name"]:
            option = candidate.option_by_value(variant["value"])
            if option is not None:
                return option
    return None


def _tracked_target(product: Product, variant: Optional[Dict[str, str]], *, strict: bool):
    """Return the mapped class and row id whose ``stock`` column applies."""
    if variant is not None:
        if strict:
            _, option = resolve_option(product, variant)
        else:
            option = _find_option_for_release(product, variant)
        if option is not None and option.tracks_stock:
            return VariantOption, option.id
    return Product, product.id


def available(product: Product, variant: Optional[Dict[str, str]] = None) -> Stock:
    model, row_id = _tracked_target(product, variant, strict=True)
    if model is VariantOption:
        for v in product.variants:
            for option in v.options:
                if option.id == row_id:
                    return option_stock(option)
    return Stock.tracked(product.stock or 0)


def reserve(session, product: Product, variant: Optional[Dict[str, str]], quantity: int) -> None:
    """Take ``quantity`` units, failing with InsufficientStock if they are not there."""
    if quantity < 1:
        raise InvalidInput("quantity must be >= 1")
    model, row_id = _tracked_target(product, variant, strict=True)
    result = session.execute(
        update(model)
        .where(model.id == row_id, model.stock >= quantity)
        .values(stock=model.stock - quantity)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount != 1:
        raise InsufficientStock(f"Insufficient stock for product {product.name}")


def release(session, product: Product, variant: Optional[Dict[str, str]], quantity: int) -> None:
    """Give ``quantity`` units back. Zero is a no-op."""
    if quantity < 0:
        raise InvalidInput("quantity must be >= 0")
    if quantity == 0:
        return
    model, row_id = _tracked_target(product, variant, strict=False)
    session.execute(
        update(model)
        .where(model.id == row_id)
        .values(stock=model.stock + quantity)
        .execution_options(synchronize_session="fetch")
    )


def adjust(session, product: Product, variant: Optional[Dict[str, str]], delta: int) -> None:
    """Reserve a positive delta or release a negative one."""
    if delta > 0:
        reserve(session, product, variant, delta)
    elif delta < 0:
        release(session, product, variant, -delta)
