"""
Configuration Module
Reads and validates the environment needed to talk to the Zabbix server.
"""

import os
import logging
from dataclasses import dataclass
from typing import Mapping, Optional
from urllib.parse import urlparse

from errors import (
    InvalidSettingError,
    InvalidURLPathError,
    InvalidURLSchemeError,
    MissingEnvironmentError,
)

logger = logging.getLogger(__name__)

API_PATH = '/api_jsonrpc.php'

REQUIRED_VARIABLES = ('ZABBIX_TOKEN', 'ZABBIX_URL', 'ZABBIX_USER', 'ZABBIX_PASSWORD')

DEFAULT_WIDTH = 1200
DEFAULT_HEIGHT = 600
DEFAULT_LOG_LEVEL = 'INFO'
VALID_LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR')


@dataclass(frozen=True)
class Settings:
    """Validated runtime configuration."""
    url: str
    token: str
    user: str
    password: str
    images_dir: str
    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT
    log_level: str = DEFAULT_LOG_LEVEL

    @property
    def base_url(self) -> str:
        """Web UI root, i.e. the API URL without the JSON-RPC service path,
        query string or fragment."""
        parts = urlparse(self.url)
        path = parts.path.rstrip('/')
        if path.endswith(API_PATH):
            path = path[:-len(API_PATH)]
        return parts._replace(path=path, params='', query='', fragment='').geturl()


def validate_url(url: str) -> None:
    """
    Check that the API URL is usable.

    Args:
        url: Value of ZABBIX_URL

    Raises:
        InvalidURLSchemeError: If the URL is not http or https
        InvalidURLPathError: If the URL does not target api_jsonrpc.php
    """
    if not (url.startswith('http://') or url.startswith('https://')):
        raise InvalidURLSchemeError("URL must be http or https")
    if not urlparse(url).path.rstrip('/').endswith(API_PATH):
        raise InvalidURLPathError(f"URL must target {API_PATH.lstrip('/')} service")


def _positive_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise InvalidSettingError(f"{name} must be an integer, got '{raw}'")
    if value <= 0:
        raise InvalidSettingError(f"{name} must be positive, got {value}")
    return value


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from environment variables.

    Args:
        environ: Mapping to read from, defaults to os.environ

    Returns:
        Validated Settings

    Raises:
        MissingEnvironmentError: If any required variable is unset or empty
        InvalidURLError: If ZABBIX_URL is malformed
        InvalidSettingError: If an optional variable has a bad value
    """
    if environ is None:
        environ = os.environ

    missing = [name for name in REQUIRED_VARIABLES if not environ.get(name)]
    if missing:
        raise MissingEnvironmentError(missing)

    url = environ['ZABBIX_URL']
    validate_url(url)

    log_level = environ.get('ZABBIX_LOG_LEVEL', DEFAULT_LOG_LEVEL).upper()
    if log_level not in VALID_LOG_LEVELS:
        raise InvalidSettingError(
            f"ZABBIX_LOG_LEVEL must be one of {', '.join(VALID_LOG_LEVELS)}, got '{log_level}'"
        )

    images_dir = environ.get('ZABBIX_IMAGES_DIR') or os.path.join(os.path.expanduser('~'), 'Images')

    settings = Settings(
        url=url,
        token=environ['ZABBIX_TOKEN'],
        user=environ['ZABBIX_USER'],
        password=environ['ZABBIX_PASSWORD'],
        images_dir=images_dir,
        width=_positive_int(environ, 'ZABBIX_GRAPH_WIDTH', DEFAULT_WIDTH),
        height=_positive_int(environ, 'ZABBIX_GRAPH_HEIGHT', DEFAULT_HEIGHT),
        log_level=log_level,
    )
    logger.debug(f"Settings loaded for {settings.url} (user {settings.user})")
    return settings
