"""
Centralized logging setup for the Prerender Service.

This module provides functions to configure and obtain logger instances
throughout the application. It reads the `logging` section of the
`ConfigurationManager` settings, supporting console and rotating file handlers.

Key Functions:
- `setup_logging()`: Initializes the logging system based on external configuration.
                     Should be called once at application startup.
- `get_logger(name)`: Returns a logger instance for the specified module name.
"""
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional, Dict, Any

from prerender_service.core.config import ConfigurationManager

# PROJECT_ROOT: Used to resolve relative log file paths from the configuration.
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_logging_initialized = False


def setup_logging(config: Optional[ConfigurationManager] = None) -> None:
    """
    Sets up centralized logging using the 'logging' section of the configuration.

    Configures the root logger with a console handler and/or a rotating file
    handler. Falls back to `logging.basicConfig` when the configuration is
    missing or incomplete. Calling it again after a successful setup is a no-op.

    Args:
        config (Optional[ConfigurationManager]): The configuration manager instance.
            If None, the global `config_manager` is used.
    """
    global _logging_initialized
    if _logging_initialized:
        logging.getLogger(__name__).debug("Logging setup_logging: Already initialized.")
        return

    current_config = config
    if current_config is None:
        from prerender_service.core.config import config_manager as global_config_manager
        current_config = global_config_manager

    log_settings: Optional[Dict[str, Any]] = current_config.get("logging")

    if not log_settings:
        logging.basicConfig(level=logging.INFO, format=DEFAULT_LOG_FORMAT)
        logging.warning("Logging setup: 'logging' section not found in configuration. Using basicConfig.")
        _logging_initialized = True
        return

    log_level_str = str(log_settings.get("level", "INFO")).upper()
    log_level = getattr(logging, log_level_str, logging.INFO)
    log_format = log_settings.get("format", DEFAULT_LOG_FORMAT)

    root_logger = logging.getLogger()

    # Drop handlers installed by basicConfig or a previous setup to avoid duplicate lines.
    if root_logger.hasHandlers():
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)
            handler.close()

    root_logger.setLevel(log_level)
    formatter = logging.Formatter(log_format)

    handlers_settings = log_settings.get("handlers", {}) or {}

    console_handler_settings = handlers_settings.get("console", {}) or {}
    if console_handler_settings.get("enabled", False):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    file_handler_settings = handlers_settings.get("file", {}) or {}
    if file_handler_settings.get("enabled", False):
        log_file_path = file_handler_settings.get("path", "logs/prerender_service.log")
        if not os.path.isabs(log_file_path):
            log_file_path = os.path.join(PROJECT_ROOT, log_file_path)

        max_bytes = int(file_handler_settings.get("max_bytes", 10 * 1024 * 1024))
        backup_count = int(file_handler_settings.get("backup_count", 5))

        try:
            os.makedirs(os.path.dirname(log_file_path), exist_ok=True)
            file_handler = RotatingFileHandler(
                filename=log_file_path,
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding='utf-8'
            )
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
        except OSError as e:
            # Keep serving with whatever handlers are left.
            logging.error(f"Logging setup: Failed to configure file logging at '{log_file_path}': {e}. File logging disabled.", exc_info=True)

    _logging_initialized = True
    logging.info(f"Logging system initialized. Level: {log_level_str}.")
    if file_handler_settings.get("enabled", False):
        logging.debug(f"File logging handler enabled at path: {log_file_path}")


def get_logger(name: str) -> logging.Logger:
    """
    Retrieves a logger instance with the specified name.

    Unlike the root configuration, this never forces setup: modules call it at
    import time, and the application entry point calls `setup_logging()`.

    Args:
        name (str): The name for the logger, typically `__name__` of the calling module.

    Returns:
        logging.Logger: An instance of `logging.Logger`.
    """
    return logging.getLogger(name)


def reset_logging() -> None:
    """Marks logging as not initialized so the next `setup_logging()` call reconfigures it."""
    global _logging_initialized
    _logging_initialized = False
