from .config import get_config, config_manager, ConfigurationManager, ConfigError, ConfigFileNotFoundError, InvalidYamlError
from .exceptions import (
    PrerenderServiceError,
    ConfigurationError,
    MissingParameterError,
    InvalidParameterError,
    ComponentError,
    BrowserLaunchError,
    RenderError,
    RenderTimeoutError,
    RenderFailureError,
)
from .logger import setup_logging, get_logger

__all__ = [
    # Config
    "get_config",
    "config_manager",
    "ConfigurationManager",
    "ConfigError",
    "ConfigFileNotFoundError",
    "InvalidYamlError",
    # Logger
    "setup_logging",
    "get_logger",
    # Exceptions
    "PrerenderServiceError",
    "ConfigurationError",
    "MissingParameterError",
    "InvalidParameterError",
    "ComponentError",
    "BrowserLaunchError",
    "RenderError",
    "RenderTimeoutError",
    "RenderFailureError",
]
