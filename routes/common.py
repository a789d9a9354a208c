"""Helpers shared by the API blueprints: auth context and response envelope."""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, Optional

import jwt  # PyJWT
from flask import current_app, jsonify, request

from commerce.errors import Forbidden, Unauthorized
from commerce.utils.clock import utcnow


def components() -> Dict[str, Any]:
    return current_app.extensions["commerce_components"]


def app_config():
    return current_app.config["COMMERCE_CONFIG"]


def payload() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def success(data: Any, status_code: int = 200):
    return jsonify({"status": "success", "data": data}), status_code


def issue_token(user_id: str, *, role: str = "user", secret: str, algorithm: str = "HS256",
                expires_in: timedelta = timedelta(hours=12)) -> str:
    now = utcnow()
    claims = {"sub": str(user_id), "role": role, "iat": now, "exp": now + expires_in}
    return jwt.encode(claims, secret, algorithm=algorithm)


def current_user() -> Dict[str, str]:
    """Decode the bearer token into ``{"id", "role"}``."""
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        raise Unauthorized("Authentication required")
    token = header[len("Bearer "):].strip()
    cfg = app_config()
    try:
        claims = jwt.decode(token, cfg.secret_key, algorithms=[cfg.jwt_algorithm])
    except jwt.PyJWTError:
        raise Unauthorized("Invalid or expired token")
    user_id = claims.get("sub")
    if not user_id:
        raise Unauthorized("Invalid token subject")
    return {"id": str(user_id), "role": str(claims.get("role") or "user")}


def is_admin(user: Dict[str, str]) -> bool:
    return user.get("role") == "admin"


def require_admin() -> Dict[str, str]:
    user = current_user()
    if not is_admin(user):
        raise Forbidden("Admin access required")
    return user


def variant_from(data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    variant = data.get("variant")
    if variant is None and request.args.get("variant_name"):
        variant = {"name": request.args.get("variant_name"), "value": request.args.get("variant_value")}
    return variant
