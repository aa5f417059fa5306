"""
Configuration file support for the signal sampler.

Supports loading configuration from YAML or JSON files. Provides the
historical defaults (interface wlan0, 30 samples, 3 second pause) when no
config file is present.
"""

import json
import logging
import math
import os
from dataclasses import dataclass, field
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV = 'SIGNAL_SAMPLER_CONFIG'
CONFIG_FILENAMES = ('signal_sampler.yaml', 'signal_sampler.yml', 'signal_sampler.json')


class ConfigError(ValueError):
    """Raised when a configuration value is out of range."""


@dataclass
class SamplerConfig:
    """Sampling loop settings."""

    # Wireless interface passed to the status command
    interface: str = 'wlan0'
    # Number of samples taken before the loop stops
    iterations: int = 30
    # Pause between samples in seconds
    interval: float = 3.0
    # Status utility, invoked as `<command> <interface>`
    command: str = 'iwconfig'

    def validate(self) -> None:
        if not self.interface:
            raise ConfigError('sampler.interface must not be empty')
        if not self.command:
            raise ConfigError('sampler.command must not be empty')
        if self.iterations < 1:
            raise ConfigError(f'sampler.iterations must be at least 1, got {self.iterations}')
        if not math.isfinite(self.interval) or self.interval < 0:
            raise ConfigError(f'sampler.interval must be a finite, non-negative number, got {self.interval}')


@dataclass
class LoggingConfig:
    """Logging settings."""

    level: str = 'WARNING'


@dataclass
class SignalSamplerConfig:
    """Main configuration container."""

    sampler: SamplerConfig = field(default_factory=SamplerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: dict) -> 'SignalSamplerConfig':
        """Create a SignalSamplerConfig from a dictionary."""
        config = cls()

        if 'sampler' in data:
            sampler_data = _section(data, 'sampler')
            defaults = SamplerConfig()
            try:
                config.sampler = SamplerConfig(
                    interface=str(sampler_data.get('interface', defaults.interface)),
                    iterations=int(sampler_data.get('iterations', defaults.iterations)),
                    interval=float(sampler_data.get('interval', defaults.interval)),
                    command=str(sampler_data.get('command', defaults.command)),
                )
            except (TypeError, ValueError) as e:
                raise ConfigError(f'Invalid sampler settings: {e}') from e

        if 'logging' in data:
            log_data = _section(data, 'logging')
            config.logging = LoggingConfig(
                level=str(log_data.get('level', 'WARNING')),
            )

        config.sampler.validate()
        return config


def _section(data: dict, name: str) -> dict:
    section = data[name] or {}
    if not isinstance(section, dict):
        raise ConfigError(f'{name} must be a mapping, got {type(section).__name__}')
    return section


def _search_paths(config_path: Optional[str]) -> list[str]:
    if config_path:
        return [config_path]

    env_path = os.environ.get(CONFIG_ENV)
    if env_path:
        return [env_path]

    script_dir = os.path.dirname(os.path.abspath(__file__))
    search_paths = []
    for search_dir in (os.getcwd(), script_dir):
        search_paths.extend(os.path.join(search_dir, name) for name in CONFIG_FILENAMES)
    return search_paths


def load_config(config_path: Optional[str] = None) -> SignalSamplerConfig:
    """
    Load configuration from a file.

    Args:
        config_path: Path to config file. If None, uses SIGNAL_SAMPLER_CONFIG
                     or searches for signal_sampler.yaml, signal_sampler.yml,
                     or signal_sampler.json in the current directory and the
                     directory containing this module.

    Returns:
        SignalSamplerConfig with loaded settings, or defaults if no config found.

    Raises:
        ConfigError: If a config file was read but holds out-of-range values.
    """
    for path in _search_paths(config_path):
        if os.path.exists(path):
            try:
                config = _load_config_file(path)
            except ConfigError:
                raise
            except (OSError, ValueError, yaml.YAMLError) as e:
                logger.warning(f'Failed to load config from {path}: {e}')
                continue
            logger.info(f'Loaded configuration from {path}')
            return config

    logger.info('No configuration file found, using defaults')
    return SignalSamplerConfig()


def _load_config_file(path: str) -> SignalSamplerConfig:
    """Load configuration from a specific file."""
    with open(path, 'r', encoding='utf-8') as f:
        content = f.read()

    _, ext = os.path.splitext(path)
    ext = ext.lower()

    if ext == '.json':
        data = json.loads(content)
    else:
        # YAML is a superset of JSON, so unknown extensions go through it
        data = yaml.safe_load(content)

    # Handle empty files
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(f'expected a mapping at the top level, got {type(data).__name__}')

    return SignalSamplerConfig.from_dict(data)


def apply_logging_config(config: SignalSamplerConfig) -> None:
    """Apply logging configuration."""
    level_name = config.logging.level.upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        logger.warning(f'Unknown logging level {config.logging.level!r}, using WARNING')
        level = logging.WARNING

    logging.getLogger().setLevel(level)
    logger.debug(f'Set logging level to {level_name}')
