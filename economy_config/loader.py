"""
Configuration Loader (``economy_config.loader``).

Responsibility
--------------
Loads an economy YAML file and parses it into the frozen
``economy_config.schema.EconomyConfig``.  Unknown keys are rejected so a
typo never silently falls back to a default.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or out-of-range values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from economy_config.schema import EconomyConfig

_DECIMAL_FIELDS = frozenset({"repair_cost_pct", "health_decay_factor"})
_INT_FIELDS = frozenset(
    {
        "collection_window_seconds",
        "max_gap_window_seconds",
        "min_collection_interval_seconds",
        "investor_term_seconds",
        "maintenance_interval_seconds",
    }
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(name: str, value: Any) -> Decimal:
    # Floats go through str() so 6.5 stays 6.5, not its binary expansion
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"{name}: not a number: {value!r}") from exc


def parse_config(data: dict[str, Any]) -> EconomyConfig:
    """
    Build an EconomyConfig from a parsed mapping.

    Accepts either a flat mapping or one nested under an ``economy:`` key.
    """
    if "economy" in data and isinstance(data["economy"], dict):
        data = data["economy"]

    known = {f.name for f in fields(EconomyConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown economy configuration keys: {unknown}")

    kwargs: dict[str, Any] = {}
    for name, value in data.items():
        if name in _DECIMAL_FIELDS:
            kwargs[name] = parse_decimal(name, value)
        elif name in _INT_FIELDS:
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name}: expected an integer, got {value!r}")
            kwargs[name] = value
        else:
            kwargs[name] = str(value)
    return EconomyConfig(**kwargs)


def load_config(path: Path | str) -> EconomyConfig:
    """Load and validate an economy configuration file."""
    return parse_config(load_yaml_file(Path(path)))


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def config_checksum(config: EconomyConfig) -> str:
    """Deterministic identity of a configuration's values."""
    return compute_checksum(config.to_dict())
