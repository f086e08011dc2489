"""
Errors Module
Exception hierarchy and process exit codes for the graph downloader.
"""

from enum import IntEnum
from typing import Iterable


class ExitCode(IntEnum):
    """Process exit codes, one per failing stage."""
    OK = 0
    USAGE = 1
    MISSING_ENV = 2
    INVALID_URL_SCHEME = 3
    INVALID_URL_PATH = 4
    HOST_RESOLUTION = 5
    GRAPH_LISTING = 6
    OUTPUT_DIR = 7


class GraphDownloaderError(Exception):
    """Base class for all errors raised by the downloader."""
    exit_code = ExitCode.USAGE


# Configuration errors

class UsageError(GraphDownloaderError):
    """Wrong command line arguments."""
    exit_code = ExitCode.USAGE


class MissingEnvironmentError(GraphDownloaderError):
    """One or more required environment variables are unset."""
    exit_code = ExitCode.MISSING_ENV

    def __init__(self, names: Iterable[str]):
        self.names = list(names)
        super().__init__(f"Environment variable issue, missing: {', '.join(self.names)}")


class InvalidSettingError(GraphDownloaderError):
    """An optional environment variable holds an unusable value."""
    exit_code = ExitCode.MISSING_ENV


class InvalidURLError(GraphDownloaderError):
    """ZABBIX_URL is malformed."""


class InvalidURLSchemeError(InvalidURLError):
    exit_code = ExitCode.INVALID_URL_SCHEME


class InvalidURLPathError(InvalidURLError):
    exit_code = ExitCode.INVALID_URL_PATH


# Zabbix API errors

class ZabbixRequestError(GraphDownloaderError):
    """The HTTP request to the API could not be completed."""


class ZabbixAPIError(GraphDownloaderError):
    """The API answered with a JSON-RPC error envelope."""

    def __init__(self, action: str, message: str):
        self.action = action
        self.message = message
        super().__init__(f"API issue on {action}: {message}")


class HostNotFoundError(GraphDownloaderError):
    def __init__(self, hostname: str):
        self.hostname = hostname
        super().__init__(f"Host not found: {hostname}")


# Web UI errors

class WebLoginError(GraphDownloaderError):
    """Form login did not yield a session cookie."""


class ChartDownloadError(GraphDownloaderError):
    """The chart endpoint did not return an image."""


class StageError(GraphDownloaderError):
    """A run stage failed; carries the exit code of that stage."""

    def __init__(self, message: str, exit_code: ExitCode):
        super().__init__(message)
        self.exit_code = exit_code
