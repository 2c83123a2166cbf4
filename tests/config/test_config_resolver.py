"""
Tests for effective-dated configuration resolution.

Covers:
- Date-window resolution across versions (CI 2023.1 vs 2024.1)
- No fallback: missing country or date raises
- Ambiguity when two resolvable versions cover a date
- Pinned re-reads and checksum integrity
- YAML directory source validation
"""

from dataclasses import replace
from datetime import date
from pathlib import Path

import pytest

from payroll_kernel.exceptions import (
    ConfigurationAmbiguousError,
    ConfigurationIntegrityError,
    ConfigurationNotFoundError,
    InvalidConfigurationError,
)

from payroll_config.lifecycle import ConfigStatus
from payroll_config.resolver import ConfigurationResolver
from payroll_config.sources import InMemoryConfigurationSource, YamlDirectorySource
from tests.conftest import make_config


class TestResolve:

    def test_resolves_current_version(self, resolver):
        config = resolver.resolve("CI", date(2024, 3, 31))
        assert config.version == "2024.1"

    def test_resolves_superseded_version_for_its_window(self, resolver):
        config = resolver.resolve("CI", date(2023, 12, 31))
        assert config.version == "2023.1"

    def test_boundary_day_belongs_to_new_version(self, resolver):
        assert resolver.resolve("CI", date(2024, 1, 1)).version == "2024.1"

    def test_lowercase_country(self, resolver):
        assert resolver.resolve("sn", date(2024, 3, 31)).country_code == "SN"

    def test_unknown_country_raises(self, resolver):
        with pytest.raises(ConfigurationNotFoundError) as exc_info:
            resolver.resolve("ML", date(2024, 3, 31))
        assert exc_info.value.country_code == "ML"
        assert exc_info.value.as_of_date == "2024-03-31"

    def test_date_before_first_version_raises(self, resolver):
        with pytest.raises(ConfigurationNotFoundError):
            resolver.resolve("CI", date(2022, 12, 31))

    def test_no_fallback_to_most_recent(self):
        expired = make_config(effective_to=date(2024, 2, 29))
        resolver = ConfigurationResolver(InMemoryConfigurationSource([expired]))
        with pytest.raises(ConfigurationNotFoundError):
            resolver.resolve("TS", date(2024, 3, 31))

    def test_draft_not_resolvable(self):
        draft = make_config(status=ConfigStatus.DRAFT)
        resolver = ConfigurationResolver(InMemoryConfigurationSource([draft]))
        with pytest.raises(ConfigurationNotFoundError):
            resolver.resolve("TS", date(2024, 3, 31))

    def test_ambiguous(self):
        first = make_config(version="a")
        second = make_config(version="b", checksum="other")
        resolver = ConfigurationResolver(InMemoryConfigurationSource([second, first]))
        with pytest.raises(ConfigurationAmbiguousError) as exc_info:
            resolver.resolve("TS", date(2024, 3, 31))
        assert exc_info.value.versions == ["a", "b"]

    def test_trace_logged(self, resolver, captured_logs):
        resolver.resolve("CI", date(2024, 3, 31))
        traces = [r for r in captured_logs() if r["message"] == "PAYROLL_CONFIG_TRACE"]
        assert len(traces) == 1
        assert traces[0]["config_version"] == "2024.1"
        assert traces[0]["as_of_date"] == "2024-03-31"
        assert len(traces[0]["checksum"]) == 64


class TestResolvePinned:

    def test_returns_exact_version(self, resolver, yaml_source, ci_config):
        checksum = next(
            c.checksum for c in yaml_source.versions_for("CI") if c.version == "2023.1"
        )
        pinned = resolver.resolve_pinned("CI", "2023.1", checksum)
        assert pinned.version == "2023.1"
        assert resolver.resolve_pinned("CI", ci_config.version, ci_config.checksum) is ci_config

    def test_checksum_drift_raises(self, resolver):
        with pytest.raises(ConfigurationIntegrityError) as exc_info:
            resolver.resolve_pinned("CI", "2024.1", "0" * 64)
        assert exc_info.value.expected_checksum == "0" * 64

    def test_missing_version_raises(self, resolver):
        with pytest.raises(ConfigurationNotFoundError):
            resolver.resolve_pinned("CI", "1999.1", "x")

    def test_edited_in_memory_version_detected(self, test_config):
        source = InMemoryConfigurationSource([replace(test_config, checksum="edited")])
        with pytest.raises(ConfigurationIntegrityError):
            ConfigurationResolver(source).resolve_pinned(
                "TS", test_config.version, test_config.checksum,
            )


class TestYamlDirectorySource:

    def test_versions_cached(self, yaml_source):
        assert yaml_source.versions_for("CI") is yaml_source.versions_for("ci")

    def test_missing_country_directory(self, yaml_source):
        assert yaml_source.versions_for("ML") == ()

    def test_invalid_set_raises(self, tmp_path: Path):
        country = tmp_path / "TS"
        country.mkdir()
        (country / "bad.yaml").write_text(
            "country_code: TS\n"
            "version: '1'\n"
            "currency: XOF\n"
            "status: published\n"
            "effective_from: 2024-01-01\n"
            "income_tax:\n"
            "  code: IT\n"
            "  brackets:\n"
            "    - {lower: '10', upper: null, rate: '0.1'}\n"
            "accrual:\n"
            "  standard_monthly_days: '2'\n",
            encoding="utf-8",
        )
        with pytest.raises(InvalidConfigurationError) as exc_info:
            YamlDirectorySource(tmp_path).versions_for("TS")
        assert exc_info.value.code == "INVALID_CONFIGURATION"
        assert any("must start at 0" in e for e in exc_info.value.errors)

    def test_overlapping_files_raise(self, tmp_path: Path):
        country = tmp_path / "TS"
        country.mkdir()
        for version, start in (("1", "2023-01-01"), ("2", "2024-01-01")):
            (country / f"{version}.yaml").write_text(
                "country_code: TS\n"
                f"version: '{version}'\n"
                "currency: XOF\n"
                "status: published\n"
                f"effective_from: {start}\n"
                "income_tax:\n"
                "  code: IT\n"
                "  brackets:\n"
                "    - {lower: '0', upper: null, rate: '0.1'}\n"
                "accrual:\n"
                "  standard_monthly_days: '2'\n",
                encoding="utf-8",
            )
        with pytest.raises(InvalidConfigurationError):
            YamlDirectorySource(tmp_path).versions_for("TS")
