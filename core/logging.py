"""
Unified Logging Configuration

This module sets up a centralized logging system for the entire application.
All modules should import and use the logger from this module instead of
using print() statements.

Usage:
    from core.logging import logger, get_logger

    logger.info("Aggregator ready")

    log = get_logger(__name__)   # "coinboard.providers.coingecko.api_client"
    log.debug("Fetching markets page 1")

Log Levels (from most to least verbose):
    DEBUG    - Request/response traces, cache hits
    INFO     - Lifecycle events, which provider served a request
    WARNING  - Provider failures, fallbacks to the durable cache
    ERROR    - Failures that abort a request or a background cycle
    CRITICAL - Unrecoverable errors

Configuration:
    Log level is controlled by the LOG_LEVEL setting in .env file.
"""

import logging
import sys
from typing import Optional

ROOT_LOGGER_NAME = "coinboard"


def setup_logging(
    log_level: str = "INFO",
    log_format: Optional[str] = None,
    include_timestamp: bool = True,
    include_module: bool = True
) -> logging.Logger:
    """
    Configure and return the application logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Custom log format string (uses default if None)
        include_timestamp: Include timestamp in log messages
        include_module: Include logger name in log messages

    Returns:
        logging.Logger: Configured logger instance

    Example:
        >>> logger = setup_logging(log_level="DEBUG")
        >>> logger.info("Application started")
        2024-01-01 12:00:00 [INFO] coinboard Application started
    """
    if log_format is None:
        format_parts = []

        if include_timestamp:
            format_parts.append("%(asctime)s")

        format_parts.append("[%(levelname)s]")

        if include_module:
            format_parts.append("%(name)s")

        format_parts.append("%(message)s")

        log_format = " ".join(format_parts)

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format=log_format,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True
    )

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    return logger


# ============================================
# Initialize Logger with Settings
# ============================================

# config.py only imports this module lazily, so the import order is safe
from core.config import settings

log_level = settings.log_level

logger = setup_logging(log_level=log_level)


# ============================================
# Convenience Functions
# ============================================

def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a specific module or component.

    Args:
        name: Name for the logger (typically __name__)

    Returns:
        logging.Logger: Child of the application logger

    Example:
        >>> get_logger("core.aggregator").name
        'coinboard.core.aggregator'
    """
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def set_log_level(level: str) -> None:
    """
    Change the log level at runtime.

    Args:
        level: New log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logging.getLogger().setLevel(getattr(logging, level.upper(), logging.INFO))


# ============================================
# Log Helper Functions
# ============================================

def log_api_request(provider: str, endpoint: str, params: dict = None) -> None:
    """
    Log an outbound provider request with consistent formatting.

    Example:
        >>> log_api_request("coingecko", "/coins/markets", {"page": 1})
        [DEBUG] API Request: coingecko /coins/markets | Params: {'page': 1}
    """
    if params:
        logger.debug(f"API Request: {provider} {endpoint} | Params: {params}")
    else:
        logger.debug(f"API Request: {provider} {endpoint}")


def log_api_response(provider: str, endpoint: str, status: int, response_time: float = None) -> None:
    """
    Log a provider response with status and timing information.

    Example:
        >>> log_api_response("coincap", "/assets", 200, 0.342)
        [DEBUG] API Response: coincap /assets | Status: 200 | Time: 0.342s
    """
    time_str = f" | Time: {response_time:.3f}s" if response_time else ""
    logger.debug(f"API Response: {provider} {endpoint} | Status: {status}{time_str}")


def log_provider_event(provider: str, event: str, details: str = None) -> None:
    """
    Log a provider health transition.

    Events "unavailable" and "error" are logged at WARNING, everything else at INFO.

    Example:
        >>> log_provider_event("coingecko", "unavailable", "3 consecutive errors")
        [WARNING] Provider: coingecko unavailable | 3 consecutive errors
    """
    details_str = f" | {details}" if details else ""
    level = logging.WARNING if event in ("unavailable", "error") else logging.INFO
    logger.log(level, f"Provider: {provider} {event}{details_str}")


logger.debug("Logging system initialized")
