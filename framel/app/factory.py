from __future__ import annotations

import logging
from datetime import datetime

from flask import Flask, g, jsonify, redirect, render_template, request, url_for
from werkzeug.exceptions import HTTPException

from framel.app.api.register import register_blueprints
from framel.app.cli import cli_bp
from framel.app.common.auth import current_bearer_token, current_viewer, get_session_context
from framel.app.common.errors import FramelError, Unauthenticated
from framel.app.common.request_context import LOG_FORMAT, RequestIdFilter, init_request_id
from framel.app.config import Config
from framel.app.extensions import api, cors, identity
from framel.modules.catalog.rules import format_kes


def _wants_json() -> bool:
    return request.path == "/api" or request.path.startswith("/api/")


def create_app(config_object: type[Config] = Config) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object)

    # Basic logging
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    for handler in logging.getLogger().handlers:
        handler.addFilter(RequestIdFilter())

    # Extensions
    api.init_app(app)
    identity.init_app(app)
    api.token_getter = current_bearer_token
    cors.init_app(app, resources={r"/api/*": {"origins": app.config.get("CORS_ORIGINS") or "*"}})

    # Request id
    init_request_id(app)

    @app.context_processor
    def inject_viewer():
        return {
            "viewer": current_viewer(),
            "app_name": app.config["APP_NAME"],
            "current_year": datetime.utcnow().year,
        }

    app.add_template_filter(format_kes, "kes")

    # Health endpoint
    @app.get("/health")
    def health():
        return {"status": "ok"}, 200

    register_blueprints(app)

    # CLI (flask ping-api, flask order-id)
    app.register_blueprint(cli_bp)

    # Error handlers
    @app.errorhandler(Unauthenticated)
    def handle_unauthenticated(err: Unauthenticated):
        # the API rejected our token: drop the session and send the viewer to log in
        get_session_context().logout()
        if _wants_json():
            return jsonify(err.to_dict(g.get("request_id"))), 401
        return redirect(url_for("auth.login", next=request.full_path.rstrip("?")))

    @app.errorhandler(FramelError)
    def handle_framel_error(err: FramelError):
        app.logger.warning("%s: %s", err.code, err.message)
        if _wants_json():
            return jsonify(err.to_dict(g.get("request_id"))), err.status_code
        return render_template("error.html", message=err.message, status=err.status_code), err.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        if _wants_json():
            # Normalize Werkzeug errors into our JSON shape
            payload = {
                "error": {
                    "code": "http_error",
                    "message": err.description,
                    "details": {"name": err.name},
                    "request_id": g.get("request_id"),
                }
            }
            return jsonify(payload), err.code or 500
        if err.code == 404:
            return render_template("404.html"), 404
        return render_template("error.html", message=err.description, status=err.code), err.code or 500

    @app.errorhandler(Exception)
    def handle_unexpected(err: Exception):
        app.logger.exception("Unhandled exception")
        if _wants_json():
            payload = {
                "error": {
                    "code": "internal_error",
                    "message": "Internal server error",
                    "details": {},
                    "request_id": g.get("request_id"),
                }
            }
            return jsonify(payload), 500
        return render_template("error.html", message="Something went wrong.", status=500), 500

    return app
