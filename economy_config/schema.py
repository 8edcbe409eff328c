"""
EconomyConfig schema.

The tunable constants of the economy, parsed from YAML by the loader into
one frozen dataclass.  Catalog entries and the promotion are data (edited
through the admin interface), not configuration; this holds only the
rules every operation shares.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class EconomyConfig:
    """Engine-wide economy rules."""

    # Yield older than this is no longer payable to the owner
    collection_window_seconds: int = 86_400
    # Yield older than this is lost entirely (not even gap)
    max_gap_window_seconds: int = 2_592_000
    min_collection_interval_seconds: int = 60
    investor_term_seconds: int = 2_592_000
    # Percent of base price charged per repair
    repair_cost_pct: Decimal = Decimal("10")
    maintenance_interval_seconds: int = 86_400
    # Health points lost per period per 1 % monthly maintenance fee
    health_decay_factor: Decimal = Decimal("10")
    house_account_code: str = "house-vault"

    def __post_init__(self) -> None:
        problems = validate_config(self)
        if problems:
            raise ValueError("Invalid economy configuration: " + "; ".join(problems))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def validate_config(config: EconomyConfig) -> list[str]:
    """Return a list of human-readable problems; empty when valid."""
    problems: list[str] = []
    for name in (
        "collection_window_seconds",
        "max_gap_window_seconds",
        "investor_term_seconds",
        "maintenance_interval_seconds",
    ):
        if getattr(config, name) <= 0:
            problems.append(f"{name} must be positive")
    if config.min_collection_interval_seconds < 0:
        problems.append("min_collection_interval_seconds must not be negative")
    if config.max_gap_window_seconds < config.collection_window_seconds:
        problems.append(
            "max_gap_window_seconds must be >= collection_window_seconds"
        )
    if config.repair_cost_pct < 0:
        problems.append("repair_cost_pct must not be negative")
    if config.health_decay_factor < 0:
        problems.append("health_decay_factor must not be negative")
    if not config.house_account_code:
        problems.append("house_account_code must not be empty")
    return problems
