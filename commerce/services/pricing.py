from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional, Tuple

from ..errors import InvalidInput, InvalidSelection
from ..models.product import Product
from ..models.variant import ProductVariant, VariantOption


CENT = Decimal("0.01")


def money(value) -> Decimal:
    if not isinstance(value, Decimal):
        value = Decimal(str(value or 0))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PriceQuote:
    unit_price: Decimal
    sku: Optional[str]
    quantity: int

    @property
    def line_total(self) -> Decimal:
        return money(self.unit_price * self.quantity)


def is_discount_active(product: Product, now: datetime) -> bool:
    if product.discount_price is None:
        return False
    start, end = product.discount_start, product.discount_end
    if start is None or end is None:
        return False
    return start <= now <= end


def base_price(product: Product, now: datetime) -> Decimal:
    if is_discount_active(product, now):
        return money(product.discount_price)
    return money(product.base_price)


def resolve_option(
    product: Product, variant: Optional[Dict[str, str]]
) -> Tuple[Optional[ProductVariant], Optional[VariantOption]]:
    """Find the variant option a selector points at.

    Products with live variants require a selector; products without must not
    receive one. Soft-deleted variants are invisible.
    """
    if not product.has_variants:
        if variant is not None:
            raise InvalidSelection(f"product {product.id} has no variants")
        return None, None
    if variant is None:
        raise InvalidSelection(f"product {product.id} requires a variant selection")
    for candidate in product.active_variants:
        if candidate.name == variant["name"]:
            option = candidate.option_by_value(variant["value"])
            if option is None:
                raise InvalidSelection(
                    f"option {variant['value']!r} not found for variant {variant['name']!r}"
                )
            return candidate, option
    raise InvalidSelection(f"variant {variant['name']!r} not found")


def price(
    product: Product,
    variant: Optional[Dict[str, str]],
    quantity: int,
    now: datetime,
) -> PriceQuote:
    """Effective unit price of one cart line. Pure; never touches stock."""
    if quantity is None or int(quantity) < 1:
        raise InvalidInput("quantity must be >= 1")
    unit = base_price(product, now)
    _, option = resolve_option(product, variant)
    sku = None
    if option is not None:
        unit = max(money(unit + money(option.price_modifier)), Decimal("0.00"))
        sku = option.sku
    return PriceQuote(unit_price=unit, sku=sku, quantity=int(quantity))
