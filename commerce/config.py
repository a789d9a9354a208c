import os
from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
import json
from typing import Dict, List, Optional

from dotenv import load_dotenv


@dataclass
class AppConfig:
    database_url: str
    secret_key: str
    log_level: str
    currency: str
    tax_rate: Decimal
    shipping_flat_fee: Decimal
    free_shipping_threshold: Decimal
    jwt_algorithm: str = "HS256"

    def shipping_fee_for(self, subtotal: Decimal) -> Decimal:
        if subtotal >= self.free_shipping_threshold:
            return Decimal("0")
        return self.shipping_flat_fee


ALLOWED_HOT_KEYS = {"CURRENCY", "TAX_RATE", "SHIPPING_FLAT_FEE", "FREE_SHIPPING_THRESHOLD"}
SENSITIVE_KEYS = {"DATABASE_URL", "SECRET_KEY", "JWT_ALGORITHM"}


def validate_currency(value: Optional[str]) -> str:
    v = (value or "USD").strip().upper()
    if len(v) != 3:
        raise ValueError("Invalid currency code: expected ISO4217 length 3")
    return v


def validate_amount(value, field: str, default: str) -> Decimal:
    raw = default if value is None or value == "" else value
    try:
        amount = Decimal(str(raw))
    except InvalidOperation:
        raise ValueError(f"{field} must be a number")
    if amount < 0:
        raise ValueError(f"{field} must be >= 0")
    return amount


def settings_path() -> Path:
    override = os.getenv("COMMERCE_SETTINGS_FILE")
    if override:
        return Path(override)
    return Path(__file__).resolve().parents[1] / "data" / "settings.json"


def _load_settings_file() -> dict:
    path = settings_path()
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


def load_env() -> AppConfig:
    # data/settings.json wins, then the process environment, then .env
    load_dotenv()
    s = _load_settings_file()

    def pick(key: str) -> Optional[str]:
        value = s.get(key)
        return value if value is not None else os.getenv(key)

    return AppConfig(
        database_url=os.getenv("DATABASE_URL", "sqlite:///data/app.db"),
        secret_key=os.getenv("SECRET_KEY", "dev_secret"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        currency=validate_currency(pick("CURRENCY")),
        tax_rate=validate_amount(pick("TAX_RATE"), "TAX_RATE", "0.14"),
        shipping_flat_fee=validate_amount(pick("SHIPPING_FLAT_FEE"), "SHIPPING_FLAT_FEE", "50"),
        free_shipping_threshold=validate_amount(
            pick("FREE_SHIPPING_THRESHOLD"), "FREE_SHIPPING_THRESHOLD", "1000"
        ),
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
    )


def refresh_non_sensitive(overrides: Dict[str, str], current: AppConfig) -> AppConfig:
    updates = {k: v for k, v in (overrides or {}).items() if k in ALLOWED_HOT_KEYS}
    return replace(
        current,
        currency=validate_currency(updates.get("CURRENCY", current.currency)),
        tax_rate=validate_amount(updates.get("TAX_RATE", current.tax_rate), "TAX_RATE", "0"),
        shipping_flat_fee=validate_amount(
            updates.get("SHIPPING_FLAT_FEE", current.shipping_flat_fee), "SHIPPING_FLAT_FEE", "0"
        ),
        free_shipping_threshold=validate_amount(
            updates.get("FREE_SHIPPING_THRESHOLD", current.free_shipping_threshold),
            "FREE_SHIPPING_THRESHOLD",
            "0",
        ),
    )


def requires_restart(changed_keys: List[str]) -> bool:
    if not changed_keys:
        return False
    return any(k in SENSITIVE_KEYS for k in changed_keys)


def save_settings(overrides: Dict[str, str]) -> Dict[str, str]:
    """Merge the hot-swappable keys of ``overrides`` into the settings file."""
    current = _load_settings_file()
    current.update({k: str(v) for k, v in (overrides or {}).items() if k in ALLOWED_HOT_KEYS})
    path = settings_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(current, indent=2, ensure_ascii=False), encoding="utf-8")
    return current
