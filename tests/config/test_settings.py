"""
Tests for the YAML settings pipeline.

Covers:
- The shipped default set
- Overrides, unknown keys and invalid values
- INVENTORY_CONFIG_TRACE emission with a deterministic checksum
"""

import logging
from datetime import date
from zoneinfo import ZoneInfo

import pytest

from inventory_config import get_active_settings
from inventory_config.loader import compute_checksum, parse_settings
from inventory_config.schema import EngineSettings
from inventory_kernel.exceptions import ConfigurationError


class TestDefaultSettings:
    def test_shipped_file_matches_defaults(self):
        assert get_active_settings() == EngineSettings()

    def test_default_values(self):
        settings = EngineSettings()
        assert settings.ranking_limit == 5
        assert settings.maintenance_horizon_days == 7
        assert settings.all_time_floor == date(2000, 1, 1)
        assert settings.legacy_maintenance_offset == 100000
        assert settings.read_state_storage_key == "readAlerts"
        assert settings.secondary_sources == ("maintenances", "inventory_counts")


class TestParseSettings:
    def test_overrides(self):
        settings = parse_settings({
            "ranking_limit": 10,
            "reporting_timezone": "Africa/Abidjan",
            "all_time_floor": "2015-01-01",
            "secondary_sources": ["maintenances"],
        })
        assert settings.ranking_limit == 10
        assert settings.tz == ZoneInfo("Africa/Abidjan")
        assert settings.all_time_floor == date(2015, 1, 1)
        assert settings.secondary_sources == ("maintenances",)
        # untouched keys keep their defaults
        assert settings.maintenance_horizon_days == 7

    def test_empty_document(self):
        assert parse_settings({}) == EngineSettings()

    @pytest.mark.parametrize("data,field", [
        ({"colour": "blue"}, "colour"),
        ({"ranking_limit": -1}, "ranking_limit"),
        ({"ranking_limit": "5"}, "ranking_limit"),
        ({"maintenance_horizon_days": 0}, "maintenance_horizon_days"),
        ({"maintenance_horizon_days": True}, "maintenance_horizon_days"),
        ({"all_time_floor": "yesterday"}, "all_time_floor"),
        ({"reporting_timezone": "Mars/Olympus"}, "reporting_timezone"),
        ({"read_state_storage_key": "  "}, "read_state_storage_key"),
        ({"secondary_sources": ["vehicles"]}, "secondary_sources"),
        ({"secondary_sources": ["products"]}, "secondary_sources"),
    ])
    def test_invalid_values_rejected(self, data, field):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_settings(data)
        assert exc_info.value.field == field
        assert exc_info.value.code == "CONFIGURATION_INVALID"


class TestGetActiveSettings:
    def test_custom_file(self, tmp_path):
        path = tmp_path / "site.yaml"
        path.write_text("ranking_limit: 3\nreporting_timezone: Europe/Paris\n", encoding="utf-8")

        settings = get_active_settings(path)

        assert settings.ranking_limit == 3
        assert settings.reporting_timezone == "Europe/Paris"

    def test_non_mapping_document_rejected(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("- 1\n- 2\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            get_active_settings(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_settings(tmp_path / "absent.yaml")

    def test_trace_emitted(self, caplog):
        with caplog.at_level(logging.INFO, logger="inventory_kernel"):
            settings = get_active_settings()

        traces = [r for r in caplog.records if r.message == "INVENTORY_CONFIG_TRACE"]
        assert len(traces) == 1
        assert traces[0].checksum == compute_checksum(settings.to_dict())

    def test_checksum_deterministic(self):
        assert compute_checksum(EngineSettings().to_dict()) == compute_checksum(EngineSettings().to_dict())
        assert compute_checksum(EngineSettings().to_dict()) != compute_checksum(
            EngineSettings(ranking_limit=3).to_dict()
        )
