from typing import Any, Dict, List, Optional

from ..errors import InvalidInput


ADDRESS_FIELDS = ("street", "city", "postal_code", "country")


def ensure_positive_int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise InvalidInput(f"{field} must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"{field} must be an integer")
    if number != value and not (isinstance(value, str) and value.strip().isdigit()):
        raise InvalidInput(f"{field} must be an integer")
    if number < 1:
        raise InvalidInput(f"{field} must be >= 1")
    return number


def ensure_id(value: Any, field: str) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise InvalidInput(f"{field} required")
    return text


def normalize_variant(variant: Any) -> Optional[Dict[str, str]]:
    """Return ``{"name", "value"}`` or None when no selector was given."""
    if variant is None or variant == {}:
        return None
    if not isinstance(variant, dict):
        raise InvalidInput("variant must be an object with name and value")
    name = str(variant.get("name") or "").strip()
    value = str(variant.get("value") or "").strip()
    if not name or not value:
        raise InvalidInput("variant requires both name and value")
    return {"name": name, "value": value}


def normalize_address(address: Any) -> Dict[str, str]:
    if not isinstance(address, dict):
        raise InvalidInput("shipping_address required")
    cleaned = {}
    for field in ADDRESS_FIELDS:
        raw = address.get(field)
        if raw is None and field == "postal_code":
            raw = address.get("postalCode")
        text = str(raw or "").strip()
        if not text:
            raise InvalidInput(f"shipping_address.{field} required")
        cleaned[field] = text
    return cleaned


def normalize_items(items: Any, *, allow_empty: bool = False) -> List[Dict[str, Any]]:
    if not isinstance(items, list):
        raise InvalidInput("items must be a list")
    if not items and not allow_empty:
        raise InvalidInput("at least one item is required")
    out = []
    for idx, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise InvalidInput(f"items[{idx}] must be an object")
        product_id = raw.get("product_id") or raw.get("productId") or raw.get("product")
        out.append(
            {
                "product_id": ensure_id(product_id, f"items[{idx}].product_id"),
                "quantity": ensure_positive_int(raw.get("quantity"), f"items[{idx}].quantity"),
                "variant": normalize_variant(raw.get("variant")),
            }
        )
    return out
