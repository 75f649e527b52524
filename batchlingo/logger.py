"""
Logging helpers

This module hands out loggers whose level and handlers follow the `log_mode`
configuration key:
- off: nothing is emitted
- info: INFO and above to console and logs/app.log
- debug: everything, including per-batch controller chatter
"""

import logging
from pathlib import Path

LOG_DIR = Path(__file__).parent.parent / "logs"
LOG_FILE = LOG_DIR / "app.log"

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
_DISABLED = logging.CRITICAL + 1

# Cache for log mode to avoid repeated config reads
_log_mode_cache = None


def _get_log_mode() -> str:
    """Get log mode from configuration."""
    global _log_mode_cache
    if _log_mode_cache is not None:
        return _log_mode_cache

    try:
        from batchlingo.config import load_config
        log_mode = load_config().get('log_mode', 'off')
        _log_mode_cache = log_mode
        return log_mode
    except Exception:
        # Config unavailable during bootstrap; stay quiet
        return 'off'


def _level_for(log_mode: str) -> int:
    if log_mode == 'debug':
        return logging.DEBUG
    if log_mode == 'off':
        return _DISABLED
    return logging.INFO


def _file_handler() -> logging.FileHandler:
    LOG_DIR.mkdir(exist_ok=True)
    handler = logging.FileHandler(LOG_FILE, encoding='utf-8')
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def _apply_log_mode(logger: logging.Logger, log_mode: str) -> None:
    """Bring a logger's level and handlers in line with log_mode."""
    level = _level_for(log_mode)
    logger.setLevel(level)

    file_handlers = [h for h in logger.handlers if isinstance(h, logging.FileHandler)]
    if log_mode != 'off' and not file_handlers:
        logger.addHandler(_file_handler())
    elif log_mode == 'off':
        for handler in file_handlers:
            handler.close()
            logger.removeHandler(handler)

    console_handlers = [
        h for h in logger.handlers
        if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
    ]
    if log_mode != 'off' and not console_handlers:
        c_handler = logging.StreamHandler()
        c_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(c_handler)
        console_handlers = [c_handler]
    for handler in console_handlers:
        handler.setLevel(level)


def _clear_log_mode_cache():
    """Forget the cached log mode and re-apply it to every logger made by get_logger."""
    global _log_mode_cache
    _log_mode_cache = None

    log_mode = _get_log_mode()
    for logger_name in list(logging.Logger.manager.loggerDict.keys()):
        if not logger_name.startswith('batchlingo'):
            continue
        logger = logging.getLogger(logger_name)
        if logger.handlers or logger.level:
            _apply_log_mode(logger, log_mode)


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    _apply_log_mode(logger, _get_log_mode())
    return logger
