"""
economy_config -- single public entrypoint for economy configuration.

Responsibility:
    ``get_active_config()`` is the one place runtime code obtains the
    economy rules.  The file named by the ``ECONOMY_CONFIG`` environment
    variable is loaded when set; otherwise the packaged defaults apply.

Architecture position:
    Configuration.  This package never imports from ``economy_kernel``;
    the kernel facade consumes the frozen ``EconomyConfig`` it produces.

Audit relevance:
    Every call emits an ``economy_config_loaded`` log entry carrying the
    source and checksum, tying engine behavior to an exact configuration.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from economy_config.loader import config_checksum, load_config
from economy_config.schema import EconomyConfig

_logger = logging.getLogger("economy_kernel.config")

CONFIG_ENV_VAR = "ECONOMY_CONFIG"

DEFAULT_CONFIG_PATH = Path(__file__).parent / "default.yaml"


def get_active_config(path: Path | str | None = None) -> EconomyConfig:
    """
    Return the active economy configuration.

    Resolution order: explicit ``path``, then ``$ECONOMY_CONFIG``, then the
    packaged ``default.yaml``.  A missing default file yields the schema
    defaults.
    """
    source = path or os.environ.get(CONFIG_ENV_VAR)
    if source:
        config = load_config(source)
    elif DEFAULT_CONFIG_PATH.exists():
        source = str(DEFAULT_CONFIG_PATH)
        config = load_config(DEFAULT_CONFIG_PATH)
    else:
        source = "<defaults>"
        config = EconomyConfig()

    _logger.info(
        "economy_config_loaded",
        extra={"config_source": str(source), "checksum": config_checksum(config)},
    )
    return config


__all__ = [
    "CONFIG_ENV_VAR",
    "EconomyConfig",
    "config_checksum",
    "get_active_config",
    "load_config",
]
