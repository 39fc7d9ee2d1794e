"""Configuration objects and helpers for CHARM.

:mod:`runtime` holds the YAML-backed :class:`CharmConfig` (tick cadence,
output stream, enabled categories) and :mod:`app_config` the search paths for
sound packs and the config file.
"""

from .app_config import AppPaths
from .runtime import CharmConfig, config_from_mapping, load_config

__all__ = ["AppPaths", "CharmConfig", "config_from_mapping", "load_config"]
