"""Core types: results, errors, configuration."""

from .config import Config, ConfigError, load_config, load_config_or_default
from .errors import ErrorCode, PipelineError
from .result import Err, Ok, Result

__all__ = [
    # config
    "Config",
    "ConfigError",
    "load_config",
    "load_config_or_default",
    # errors
    "ErrorCode",
    "PipelineError",
    # result
    "Err",
    "Ok",
    "Result",
]
