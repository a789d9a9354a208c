"""Marketplace cart, order and payment API as a Flask application."""

from __future__ import annotations

import logging

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from commerce.config import AppConfig, load_env
from commerce.db.session import get_session, init_db
from commerce.errors import CommerceError
from commerce.services import CartService, OrderService, PaymentService
from commerce.services.logging import configure as configure_logging
from config import ServerConfig
from routes import admin_bp, cart_bp, orders_bp, payments_bp


logger = logging.getLogger(__name__)


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(CommerceError)
    def handle_commerce_error(exc: CommerceError):
        status = "error" if exc.http_status >= 500 else "fail"
        if exc.http_status >= 500:
            logger.error("request failed: %s", exc.message)
        return jsonify({"status": status, "data": exc.to_dict()}), exc.http_status

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        status = "error" if (exc.code or 500) >= 500 else "fail"
        body = {"code": exc.name.lower().replace(" ", "_"), "message": exc.description}
        return jsonify({"status": status, "data": body}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        logger.exception("unhandled error: %s", exc)
        body = {"code": "internal", "message": "Internal Server Error"}
        return jsonify({"status": "error", "data": body}), 500


def create_app(app_config: AppConfig | None = None, session_factory=None) -> Flask:
    config = app_config or load_env()
    configure_logging(config.log_level)

    app = Flask(__name__)
    app.config["SECRET_KEY"] = config.secret_key
    app.config["COMMERCE_CONFIG"] = config

    if session_factory is None:
        init_db()
        session_factory = get_session

    components = {
        "cart_service": CartService(session_factory),
        "order_service": OrderService(session_factory, config),
        "payment_service": PaymentService(session_factory),
    }
    app.extensions["commerce_components"] = components

    app.register_blueprint(cart_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(admin_bp)
    _register_error_handlers(app)

    return app


def main() -> None:
    server = ServerConfig.load()
    app = create_app()
    app.run(host=server.host, port=server.port, debug=server.debug)


if __name__ == "__main__":
    main()
