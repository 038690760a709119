#!/usr/bin/env python3
"""
Errors - Exception hierarchy for the memcached multigraph plugin

Only the CLI turns these into exit codes. Protocol noise from the server is
never raised; it is skipped while parsing.
"""


class MemcachedMultiError(Exception):
    """Base class for every fatal plugin error"""


class StatsConnectionError(MemcachedMultiError, ConnectionError):
    """The stats connection could not be opened within the timeout"""

    def __init__(self, host: str, port: int, reason: str = ''):
        self.host = host
        self.port = port
        self.reason = reason
        message = f"Unable to connect to memcached at {host}:{port}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class UnknownIdentityError(MemcachedMultiError, KeyError):
    """The selected graph identity is not in the registry"""

    def __init__(self, identity: str):
        self.identity = identity
        super().__init__(identity)

    def __str__(self):
        return f"Unknown graph specified: {self.identity or '(none)'}"


class InvalidModeError(MemcachedMultiError, ValueError):
    """Time scale normalization was asked for something other than config/data"""

    def __init__(self, mode):
        self.mode = mode
        super().__init__(f"Unknown time scale option given: {mode!r} (expected config or data)")


class ConfigError(MemcachedMultiError):
    """Plugin configuration could not be loaded"""
