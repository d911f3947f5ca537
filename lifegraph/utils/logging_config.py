"""
Centralized logging configuration for the application.

Under the MCP ``stdio`` transport stdout carries the protocol, so log records go
to stderr there.
"""

import logging
import sys
from typing import Optional, TextIO

from .config import AppConfig

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# AWS SDK loggers are capped at WARNING unless the app itself logs more coarsely.
SDK_LOGGERS = ('boto3', 'botocore', 'urllib3')


def _level(config: AppConfig) -> int:
    return getattr(logging, config.log_level.upper(), logging.INFO)


def _stream(config: AppConfig) -> TextIO:
    return sys.stderr if config.mcp.transport == 'stdio' else sys.stdout


def setup_logging(config: Optional[AppConfig] = None) -> None:
    """
    Setup centralized logging configuration.

    Args:
        config: AppConfig instance, uses default if None
    """
    if config is None:
        from .config import config as default_config
        config = default_config

    level = _level(config)
    # Configure root logger
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=[logging.StreamHandler(_stream(config))])

    for name in SDK_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str, config: Optional[AppConfig] = None) -> logging.Logger:
    """
    Get a module logger at the configured level.

    Args:
        name: Logger name (usually __name__)
        config: AppConfig instance, uses default if None

    Returns:
        Configured logger instance
    """
    if config is None:
        from .config import config as default_config
        config = default_config

    logger = logging.getLogger(name)
    logger.setLevel(_level(config))
    return logger
