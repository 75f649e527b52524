"""Flask application configuration and blueprint registration."""

from __future__ import annotations

from flask import Flask, jsonify

from batchlingo.ai.exceptions import TranslationError
from batchlingo.ai.service import create_provider
from batchlingo.documents.models import MalformedDocument
from batchlingo.logger import get_logger

from .routes.jobs import jobs_bp
from .routes.settings import settings_bp

logger = get_logger(__name__)


def build_app() -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)

    # Ensure JSON responses keep Unicode data.
    app.json.ensure_ascii = False
    # (config, provider_override) -> TranslationProvider; replaced in tests
    app.config["PROVIDER_FACTORY"] = lambda config, provider: create_provider(config, provider)

    register_blueprints(app)
    register_default_routes(app)
    register_error_handlers(app)

    return app


def register_blueprints(app: Flask) -> None:
    """Register Flask blueprints."""
    app.register_blueprint(jobs_bp, url_prefix="/api/jobs")
    app.register_blueprint(settings_bp, url_prefix="/api/settings")


def register_default_routes(app: Flask) -> None:
    """Register default health route."""

    @app.get("/health")
    def health_check():
        logger.debug("Health check requested")
        return jsonify({"status": "ok"})


def register_error_handlers(app: Flask) -> None:

    @app.errorhandler(TranslationError)
    def translation_error(e: TranslationError):
        logger.warning("Translation error: %s", e)
        return jsonify({"error": str(e), "code": e.code, "details": e.details}), 400

    @app.errorhandler(MalformedDocument)
    def malformed_document(e: MalformedDocument):
        logger.warning("Rejected document: %s", e)
        return jsonify({"error": str(e), "code": "malformed_document", "details": {"kind": e.kind}}), 422

    @app.errorhandler(404)
    def page_not_found(e):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(500)
    def internal_error(e):
        logger.exception("Internal server error: %s", e)
        return jsonify({"error": "Internal server error"}), 500
