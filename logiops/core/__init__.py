"""
Core infrastructure for the back-office service.

This module provides:
- Config: Configuration management
- Logging: structlog setup
- Errors: Error types rendered as JSON error envelopes
"""

from .config import ConfigManager, EnvironmentSettings, get_config, set_config
from .errors import (
    BusinessRuleError,
    DuplicateError,
    ImportFileError,
    InvalidInputError,
    LogiOpsError,
    NotFoundError,
    RateNotFoundError,
    SettlementStateError,
)
from .logging import configure_logging, get_logger

__all__ = [
    "ConfigManager",
    "EnvironmentSettings",
    "get_config",
    "set_config",
    "configure_logging",
    "get_logger",
    "LogiOpsError",
    "NotFoundError",
    "DuplicateError",
    "BusinessRuleError",
    "InvalidInputError",
    "ImportFileError",
    "SettlementStateError",
    "RateNotFoundError",
]
