"""
Tests for economy_config: schema validation, YAML loading and resolution.
"""

from decimal import Decimal

import pytest
import yaml

from economy_config import CONFIG_ENV_VAR, EconomyConfig, config_checksum, get_active_config
from economy_config.loader import load_config, parse_config


class TestSchema:
    def test_defaults(self):
        config = EconomyConfig()

        assert config.collection_window_seconds == 86_400
        assert config.max_gap_window_seconds == 2_592_000
        assert config.min_collection_interval_seconds == 60
        assert config.investor_term_seconds == 2_592_000
        assert config.repair_cost_pct == Decimal("10")
        assert config.house_account_code == "house-vault"

    def test_frozen(self):
        config = EconomyConfig()

        with pytest.raises(AttributeError):
            config.collection_window_seconds = 1

    def test_gap_window_shorter_than_collection_window(self):
        with pytest.raises(ValueError, match="max_gap_window_seconds"):
            EconomyConfig(collection_window_seconds=100, max_gap_window_seconds=50)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"collection_window_seconds": 0},
            {"investor_term_seconds": -1},
            {"min_collection_interval_seconds": -5},
            {"repair_cost_pct": Decimal("-1")},
            {"house_account_code": ""},
        ],
    )
    def test_invalid_values(self, overrides):
        with pytest.raises(ValueError):
            EconomyConfig(**overrides)

    def test_zero_minimum_interval_allowed(self):
        assert EconomyConfig(min_collection_interval_seconds=0).min_collection_interval_seconds == 0


class TestLoader:
    def test_nested_and_flat_forms_agree(self):
        flat = parse_config({"min_collection_interval_seconds": 30})
        nested = parse_config({"economy": {"min_collection_interval_seconds": 30}})

        assert flat == nested
        assert flat.min_collection_interval_seconds == 30

    def test_float_percentages_keep_their_decimal_form(self):
        config = parse_config({"repair_cost_pct": 12.5})

        assert config.repair_cost_pct == Decimal("12.5")

    def test_unknown_key_rejected(self):
        with pytest.raises(ValueError, match="Unknown"):
            parse_config({"colection_window_seconds": 10})

    def test_non_integer_window_rejected(self):
        with pytest.raises(ValueError, match="integer"):
            parse_config({"collection_window_seconds": "one day"})

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "economy.yaml"
        path.write_text(yaml.safe_dump({"economy": {"investor_term_seconds": 604800}}))

        assert load_config(path).investor_term_seconds == 604_800

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.yaml")


class TestActiveConfig:
    def test_packaged_defaults(self, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)

        assert get_active_config() == EconomyConfig()

    def test_env_var_overrides_default(self, tmp_path, monkeypatch):
        path = tmp_path / "economy.yaml"
        path.write_text("economy:\n  min_collection_interval_seconds: 5\n")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

        assert get_active_config().min_collection_interval_seconds == 5

    def test_explicit_path_wins(self, tmp_path, monkeypatch):
        env_path = tmp_path / "env.yaml"
        env_path.write_text("min_collection_interval_seconds: 5\n")
        explicit = tmp_path / "explicit.yaml"
        explicit.write_text("min_collection_interval_seconds: 7\n")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(env_path))

        assert get_active_config(explicit).min_collection_interval_seconds == 7

    def test_load_is_logged_with_checksum(self, monkeypatch, captured_logs):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)

        config = get_active_config()

        records = [r for r in captured_logs() if r["message"] == "economy_config_loaded"]
        assert records[-1]["checksum"] == config_checksum(config)

    def test_checksum_tracks_values(self):
        assert config_checksum(EconomyConfig()) == config_checksum(EconomyConfig())
        assert config_checksum(EconomyConfig()) != config_checksum(
            EconomyConfig(min_collection_interval_seconds=1)
        )
