#!/usr/bin/env python3
"""
Plugin configuration

Settings are layered, later sources win:

1. built-in defaults
2. an optional YAML file (``--config`` or ``MEMCACHED_MULTI_CONFIG``)
3. environment variables set by the collector's plugin configuration
   (``host``, ``port``, ``timescale``)
4. command line flags
"""

import os
import logging
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional

import yaml

from .client import DEFAULT_HOST, DEFAULT_PORT, DEFAULT_TIMEOUT
from .errors import ConfigError
from .renderer import DEFAULT_GRAPH_PREFIX
from .timescale import TimeUnit

CONFIG_ENV = 'MEMCACHED_MULTI_CONFIG'

# environment variable -> PluginConfig field
ENV_KEYS = {
    'host': 'host',
    'port': 'port',
    'timescale': 'timescale',
    'MEMCACHED_MULTI_GRAPH_PREFIX': 'graph_prefix',
    'MEMCACHED_MULTI_TIMEOUT': 'timeout',
    'MEMCACHED_MULTI_LOG_LEVEL': 'log_level',
}

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PluginConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    timescale: TimeUnit = TimeUnit.HOURS
    graph_prefix: str = DEFAULT_GRAPH_PREFIX
    timeout: float = DEFAULT_TIMEOUT
    log_level: str = 'WARNING'

    def merge(self, values: Mapping[str, Any], source: str) -> 'PluginConfig':
        """Return a copy with ``values`` applied, coercing each to its field type"""
        known = {f.name for f in fields(self)}
        updates = {}
        for key, value in values.items():
            if key not in known:
                logger.warning(f"Ignoring unknown setting '{key}' from {source}")
                continue
            if value is None or value == '':
                continue
            updates[key] = _coerce(key, value, source)
        return replace(self, **updates)


def _coerce(key: str, value: Any, source: str):
    if key == 'timescale':
        # unknown codes fall back to hours
        return TimeUnit.from_code(value)
    if key == 'port':
        try:
            port = int(value)
        except (TypeError, ValueError):
            raise ConfigError(f"Invalid port {value!r} in {source}") from None
        if not 0 < port < 65536:
            raise ConfigError(f"Port {port} out of range in {source}")
        return port
    if key == 'timeout':
        try:
            timeout = float(value)
        except (TypeError, ValueError):
            raise ConfigError(f"Invalid timeout {value!r} in {source}") from None
        if timeout <= 0:
            raise ConfigError(f"Timeout must be positive in {source}")
        return timeout
    if key == 'log_level':
        return str(value).upper()
    return str(value)


def load_yaml(config_file: str) -> Dict[str, Any]:
    """Read a YAML settings file; the document must be a mapping"""
    try:
        with open(config_file, 'r') as f:
            config = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigError(f"Configuration file not found: {config_file}") from None
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML configuration: {e}") from e

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigError(f"Configuration file {config_file} must contain a mapping")
    return config


def from_environ(environ: Mapping[str, str]) -> Dict[str, str]:
    return {field_name: environ[env_key] for env_key, field_name in ENV_KEYS.items() if env_key in environ}


def load_config(config_file: Optional[str] = None,
                environ: Optional[Mapping[str, str]] = None,
                overrides: Optional[Mapping[str, Any]] = None) -> PluginConfig:
    """Build the effective PluginConfig from all sources"""
    environ = os.environ if environ is None else environ
    config = PluginConfig()

    config_file = config_file or environ.get(CONFIG_ENV)
    if config_file:
        config = config.merge(load_yaml(config_file), config_file)

    config = config.merge(from_environ(environ), 'environment')

    if overrides:
        config = config.merge(overrides, 'command line')
    return config
