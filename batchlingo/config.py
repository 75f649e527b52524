import copy
import json
from dataclasses import dataclass, field
from typing import Dict, Any, Optional, Tuple, Union

from batchlingo.core import database as db
from batchlingo.core.schema import initialize_database
from batchlingo.logger import get_logger

logger = get_logger(__name__)

# Translation configuration constants
DEFAULT_BATCH_SIZE = 5
DEFAULT_SYSTEM_MESSAGE = "You are a professional translator. Return only valid JSON."

# Inter-request delay presets (seconds)
REQUEST_DELAY_PRESETS = {
    "fast": 0.1,
    "balanced": 0.3,
    "reliable": 0.5,
}
DEFAULT_REQUEST_DELAY = "reliable"

DEFAULT_DO_NOT_TRANSLATE = ["Blendedx"]

BUILTIN_PROVIDERS = ["deepl", "llm"]

PROVIDER_DEFAULTS = {
    "max_retries": 3,
    "timeout": 120
}

# Default prompts
DEFAULT_PROMPTS = {
    "array_translation_prompt": {
        "version": "1.0",
        "description": "Array translation prompt used by the LLM provider",
        "prompt": """You are a professional translator working on course and product content.

Translate each string from {source_language_name} ({source_language_code}) to {target_language_name} ({target_language_code}). Return ONLY a JSON array with the translated strings in the same order.
{content_section}{formality_section}{instructions_section}

CRITICAL REQUIREMENTS:
- Preserve ALL placeholders EXACTLY as they appear, including:
  * Glossary placeholders: __GLOSS_0__, __GLOSS_1__, etc. (DO NOT translate or modify these)
  * Variable patterns: {{name}}, ${{var}}, %s, %d, etc. (keep them unchanged)
- Maintain the original tone and style
- Return exactly {text_count} translated strings

Array to translate:
{texts_json}

Return format: ["translated1", "translated2", ...]
Do not include explanations, markdown code blocks, or any text outside the JSON array. Return ONLY the JSON array."""
    }
}

# Default configuration template
DEFAULT_CONFIG = {
    "provider": "deepl",
    "source_language": "en-US",
    "deepl": {
        "api_key": "YOUR_API_KEY_HERE",
        "max_retries": 3,
        "timeout": 60
    },
    "llm": {
        "api_key": "YOUR_API_KEY_HERE",
        "models": ["gpt-4o-mini", "gpt-4o"],  # First is default
        "max_retries": 3,
        "timeout": 120,
        "api_url": "https://api.openai.com/v1/chat/completions"
    },
    "translation": {
        "request_delay": DEFAULT_REQUEST_DELAY,
        "batch_size": DEFAULT_BATCH_SIZE,
        "formality": None,
        "instructions": "",
        "use_translation_memory": False,
        "partial_glossary": False
    },
    "do_not_translate": list(DEFAULT_DO_NOT_TRANSLATE),
    "glossary": {},
    "log_mode": "off"
}


def initialize_app():
    """
    Initialize the application.
    Creates the store and writes the default configuration if none exists yet.
    """
    logger.info("Initializing application...")

    initialize_database()

    try:
        if not db.get_app_config('config'):
            logger.info("No config in database, initializing default config")
            save_config(DEFAULT_CONFIG)
        else:
            logger.debug("Config already exists in database")
    except Exception as e:
        logger.error(f"Failed to check/initialize config in database: {e}")
        logger.warning("Application will use in-memory default configuration")

    logger.info("Application initialization complete")


def _merge_defaults(config: Dict[str, Any]) -> Dict[str, Any]:
    """Fill keys missing from a stored config with their defaults (one level deep)."""
    merged = copy.deepcopy(DEFAULT_CONFIG)
    for key, value in config.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key].update(value)
        else:
            merged[key] = value
    return merged


def load_config() -> Dict[str, Any]:
    """Load the configuration from database."""
    try:
        config_json = db.get_app_config('config')
        if config_json:
            logger.debug("Configuration loaded from database")
            return _merge_defaults(json.loads(config_json))

        logger.info("No config in database, using defaults")
        return copy.deepcopy(DEFAULT_CONFIG)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse config from database: {e}")
        logger.warning("Using default configuration")
        return copy.deepcopy(DEFAULT_CONFIG)
    except Exception as e:
        logger.error(f"Failed to load config from database: {e}")
        logger.warning("Using default configuration")
        return copy.deepcopy(DEFAULT_CONFIG)


def save_config(config: Dict[str, Any]):
    """Save the configuration to database."""
    try:
        config_json = json.dumps(config, ensure_ascii=False)
        db.set_app_config('config', config_json)
        logger.info("Configuration saved to database")
    except Exception as e:
        logger.error(f"Failed to save config to database: {e}")
        raise

    from batchlingo.logger import _clear_log_mode_cache
    _clear_log_mode_cache()


def get_prompt(prompt_name: str = "array_translation_prompt") -> Dict[str, Any]:
    """Get a specific prompt by name."""
    return DEFAULT_PROMPTS.get(prompt_name, DEFAULT_PROMPTS["array_translation_prompt"])


def factory_reset():
    """
    Perform a factory reset.
    WARNING: This deletes the store (config, review artifacts, memory).
    """
    logger.warning("Performing factory reset...")

    if db.DB_FILE.exists():
        db.DB_FILE.unlink()
        logger.info("Database deleted")

    initialize_app()
    logger.info("Factory reset complete")


def resolve_request_delay(value: Union[str, int, float, None]) -> float:
    """
    Turn a delay preset name or a number of seconds into seconds.

    Args:
        value: "fast", "balanced", "reliable", a number, or None for the default

    Returns:
        Delay in seconds (never negative)
    """
    if value is None:
        return REQUEST_DELAY_PRESETS[DEFAULT_REQUEST_DELAY]
    if isinstance(value, str):
        if value in REQUEST_DELAY_PRESETS:
            return REQUEST_DELAY_PRESETS[value]
        try:
            value = float(value)
        except ValueError:
            raise ValueError(
                f"Unknown request delay preset '{value}'. "
                f"Use one of {sorted(REQUEST_DELAY_PRESETS)} or a number of seconds."
            )
    return max(0.0, float(value))


@dataclass(frozen=True)
class PipelineSettings:
    """Everything the pipeline needs from configuration, passed explicitly."""

    do_not_translate: Tuple[str, ...] = tuple(DEFAULT_DO_NOT_TRANSLATE)
    glossary: Dict[str, Dict[str, str]] = field(default_factory=dict)
    request_delay: float = REQUEST_DELAY_PRESETS[DEFAULT_REQUEST_DELAY]
    batch_size: int = DEFAULT_BATCH_SIZE
    formality: Optional[str] = None
    instructions: str = ""
    use_translation_memory: bool = False
    partial_glossary: bool = False

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None) -> "PipelineSettings":
        """Build settings from a config dict (defaults to the stored config)."""
        if config is None:
            config = load_config()
        translation = config.get('translation', {})
        batch_size = int(translation.get('batch_size') or DEFAULT_BATCH_SIZE)
        if batch_size < 1:
            raise ValueError("translation.batch_size must be at least 1")
        return cls(
            do_not_translate=tuple(config.get('do_not_translate', DEFAULT_DO_NOT_TRANSLATE)),
            glossary=dict(config.get('glossary') or {}),
            request_delay=resolve_request_delay(translation.get('request_delay')),
            batch_size=batch_size,
            formality=translation.get('formality'),
            instructions=translation.get('instructions') or "",
            use_translation_memory=bool(translation.get('use_translation_memory', False)),
            partial_glossary=bool(translation.get('partial_glossary', False)),
        )
