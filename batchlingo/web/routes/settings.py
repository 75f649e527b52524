"""Settings management API routes."""

from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, jsonify, request

import batchlingo.config as config
from batchlingo.config import BUILTIN_PROVIDERS, PROVIDER_DEFAULTS, REQUEST_DELAY_PRESETS
from batchlingo.logger import get_logger

settings_bp = Blueprint("settings", __name__)
logger = get_logger(__name__)

_LOG_MODES = ("off", "info", "debug")


@settings_bp.get("")
def get_settings():
    """Return current configuration with default values merged."""
    return jsonify({
        "config": config.load_config(),
        "meta": {
            "builtin_providers": BUILTIN_PROVIDERS,
            "provider_defaults": PROVIDER_DEFAULTS,
            "request_delay_presets": REQUEST_DELAY_PRESETS,
        },
    })


@settings_bp.put("")
def update_settings():
    """Update configuration. Sections in the request are merged over the stored ones."""
    data = request.get_json(silent=True)
    if not data or "config" not in data:
        return jsonify({"error": "Request body must contain 'config'"}), 400

    new_config = data["config"]
    validation_error = validate_config(new_config)
    if validation_error:
        return jsonify({"error": validation_error}), 400

    current_config = config.load_config()
    for key, value in new_config.items():
        if isinstance(value, dict) and isinstance(current_config.get(key), dict) and key != "glossary":
            current_config[key].update(value)
        else:
            current_config[key] = value

    config.save_config(current_config)
    logger.info("Settings updated successfully")
    return jsonify({"message": "Settings updated successfully", "config": current_config})


def validate_config(config_dict: Dict[str, Any]) -> str | None:
    """Validate configuration structure and return error message if invalid."""
    if not isinstance(config_dict, dict):
        return "Configuration must be an object"

    provider = config_dict.get("provider")
    if provider is not None and provider not in BUILTIN_PROVIDERS:
        return f"Invalid provider: {provider}"

    if "log_mode" in config_dict and config_dict["log_mode"] not in _LOG_MODES:
        return f"log_mode must be one of {list(_LOG_MODES)}"

    for name in BUILTIN_PROVIDERS:
        provider_config = config_dict.get(name)
        if provider_config is None:
            continue
        if not isinstance(provider_config, dict):
            return f"{name} config must be an object"
        retries = provider_config.get("max_retries")
        if retries is not None and (not isinstance(retries, int) or retries < 1):
            return f"{name} max_retries must be at least 1"
        timeout = provider_config.get("timeout")
        if timeout is not None and (not isinstance(timeout, (int, float)) or timeout <= 0):
            return f"{name} timeout must be a positive number"

    translation = config_dict.get("translation")
    if translation is not None:
        if not isinstance(translation, dict):
            return "translation config must be an object"
        if "request_delay" in translation:
            try:
                config.resolve_request_delay(translation["request_delay"])
            except (TypeError, ValueError) as e:
                return str(e)
        batch_size = translation.get("batch_size")
        if batch_size is not None and (not isinstance(batch_size, int) or batch_size < 1):
            return "translation.batch_size must be a positive integer"
        formality = translation.get("formality")
        if formality not in (None, "", "default", "more", "less"):
            return "translation.formality must be 'more', 'less' or empty"

    dnt = config_dict.get("do_not_translate")
    if dnt is not None and (not isinstance(dnt, list) or not all(isinstance(term, str) for term in dnt)):
        return "do_not_translate must be a list of strings"

    glossary = config_dict.get("glossary")
    if glossary is not None:
        if not isinstance(glossary, dict) or not all(isinstance(v, dict) for v in glossary.values()):
            return "glossary must map source strings to {language: translation} objects"

    return None
