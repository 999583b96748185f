# Copyright Red Hat
#
# fschron/config.py - File Chronicle configuration
#
# This file is part of the fschron project.
#
# SPDX-License-Identifier: Apache-2.0
"""
File Chronicle configuration file support.
"""
from configparser import ConfigParser, Error as ConfigParserError
from dataclasses import dataclass, field
from os.path import exists, expanduser, join
from typing import List, Optional
import logging
import os

from fschron import FSCHRON_SUBSYSTEM_CONFIG, FsChronConfigError

_log = logging.getLogger(__name__)


def _log_debug_config(msg, *args, **kwargs):
    """A wrapper for config subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": FSCHRON_SUBSYSTEM_CONFIG}, **kwargs)


#: Environment variable naming an alternate configuration file
FSCHRON_CONFIG_ENV = "FSCHRON_CONFIG"

#: Default configuration file location
_FSCHRON_CFG_PATH = join("~", ".config", "fschron", "fschron.conf")

_FSCHRON_CFG_GLOBAL = "global"
_FSCHRON_CFG_DEFAULT_FORMAT = "default_format"
_FSCHRON_CFG_DEFAULT_EXCLUDE = "default_exclude"
_FSCHRON_CFG_WATCH_INTERVAL = "watch_interval"
_FSCHRON_CFG_COLORED_OUTPUT = "colored_output"

#: Formats accepted for ``default_format``
_CONFIG_FORMATS = ("json", "csv", "html")

#: Built-in default exclude patterns
DEFAULT_EXCLUDE_PATTERNS = ("*.tmp", "*.log", ".git/**", "bin/**", "obj/**")


def default_config_path() -> str:
    """
    Return the configuration file path: ``$FSCHRON_CONFIG`` if set, or
    ``~/.config/fschron/fschron.conf``.

    :returns: The configuration file path.
    :rtype: ``str``
    """
    return os.environ.get(FSCHRON_CONFIG_ENV) or expanduser(_FSCHRON_CFG_PATH)


@dataclass
class FsChronConfig:
    """
    File Chronicle configuration.
    """

    default_format: str = "json"
    default_exclude: List[str] = field(
        default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS)
    )
    watch_interval: int = 5
    colored_output: bool = True

    @classmethod
    def from_file(cls, config_file: Optional[str] = None) -> "FsChronConfig":
        """
        Load ``FsChronConfig`` from an INI-style configuration file located at
        ``config_file``. Options that are not set keep their default values
        and a missing file yields the default configuration.

        :param config_file: path to fschron.conf, or ``None`` for the
                            default location.
        :type config_file: ``Optional[str]``
        :returns: A ``FsChronConfig`` instance initialised from ``config_file``.
        :rtype: ``FsChronConfig``
        :raises FsChronConfigError: If the file cannot be parsed or contains an
                                    invalid value.
        """
        config_file = config_file or default_config_path()
        config = cls()

        if not exists(config_file):
            _log_debug_config("No configuration file at '%s'", config_file)
            return config

        _log_debug_config("Loading configuration from '%s'", config_file)
        cfg = ConfigParser()
        try:
            cfg.read([config_file])
        except ConfigParserError as err:
            raise FsChronConfigError(
                f"Error parsing configuration file '{config_file}': {err}"
            ) from err

        if not cfg.has_section(_FSCHRON_CFG_GLOBAL):
            return config

        section = cfg[_FSCHRON_CFG_GLOBAL]
        if cfg.has_option(_FSCHRON_CFG_GLOBAL, _FSCHRON_CFG_DEFAULT_FORMAT):
            fmt = section[_FSCHRON_CFG_DEFAULT_FORMAT].strip().lower()
            if fmt not in _CONFIG_FORMATS:
                raise FsChronConfigError(
                    f"Invalid {_FSCHRON_CFG_DEFAULT_FORMAT} in '{config_file}': {fmt}"
                )
            config.default_format = fmt

        if cfg.has_option(_FSCHRON_CFG_GLOBAL, _FSCHRON_CFG_DEFAULT_EXCLUDE):
            patterns = section[_FSCHRON_CFG_DEFAULT_EXCLUDE]
            config.default_exclude = [
                pat.strip() for pat in patterns.split(",") if pat.strip()
            ]

        try:
            if cfg.has_option(_FSCHRON_CFG_GLOBAL, _FSCHRON_CFG_WATCH_INTERVAL):
                interval = section.getint(_FSCHRON_CFG_WATCH_INTERVAL)
                if interval <= 0:
                    raise ValueError(f"must be positive: {interval}")
                config.watch_interval = interval

            if cfg.has_option(_FSCHRON_CFG_GLOBAL, _FSCHRON_CFG_COLORED_OUTPUT):
                config.colored_output = section.getboolean(_FSCHRON_CFG_COLORED_OUTPUT)
        except ValueError as err:
            raise FsChronConfigError(
                f"Invalid value in configuration file '{config_file}': {err}"
            ) from err

        _log_debug_config("Loaded configuration: %s", config)
        return config


__all__ = [
    "DEFAULT_EXCLUDE_PATTERNS",
    "FSCHRON_CONFIG_ENV",
    "FsChronConfig",
    "default_config_path",
]
