"""Web application package for batchlingo."""

from flask import Flask

from batchlingo.config import initialize_app


def create_app() -> Flask:
    """Application factory for the HTTP job API."""
    initialize_app()

    from .app import build_app  # Import here to avoid circular imports

    return build_app()


__all__ = ["create_app"]
