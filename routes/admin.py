"""Admin settings: currency and pricing knobs that can change without a restart."""

from __future__ import annotations

from flask import Blueprint, current_app

from commerce.config import ALLOWED_HOT_KEYS, SENSITIVE_KEYS, refresh_non_sensitive, requires_restart, save_settings
from commerce.errors import InvalidInput

from .common import app_config, components, payload, require_admin, success


admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


def _settings_view(config) -> dict:
    return {
        "CURRENCY": config.currency,
        "TAX_RATE": str(config.tax_rate),
        "SHIPPING_FLAT_FEE": str(config.shipping_flat_fee),
        "FREE_SHIPPING_THRESHOLD": str(config.free_shipping_threshold),
    }


@admin_bp.get("/settings")
def get_settings():
    require_admin()
    return success(_settings_view(app_config()))


@admin_bp.put("/settings")
def update_settings():
    """Apply and persist hot keys; sensitive keys are only reported."""
    require_admin()
    settings = payload().get("settings") or {}
    if not isinstance(settings, dict) or not settings:
        raise InvalidInput("settings required")
    unknown = set(settings) - ALLOWED_HOT_KEYS - SENSITIVE_KEYS
    if unknown:
        raise InvalidInput(f"unknown settings: {', '.join(sorted(unknown))}")

    try:
        config = refresh_non_sensitive(settings, app_config())
    except ValueError as exc:
        raise InvalidInput(str(exc))
    save_settings(settings)
    current_app.config["COMMERCE_CONFIG"] = config
    components()["order_service"].use_config(config)

    data = _settings_view(config)
    data["restart_required"] = requires_restart(list(settings))
    return success(data)
