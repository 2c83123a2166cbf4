"""
payroll_config -- effective-dated statutory rule sets.

Responsibility:
    Owns everything that varies by country and changes when the law does:
    contribution schemes, tax brackets, minimum wage and transport tables,
    leave-accrual rules, and the special leave allowance policy.  Rules are
    data (YAML sets under ``sets/``), parsed into frozen dataclasses and
    validated before use.

Architecture position:
    Configuration -- sits above ``payroll_kernel`` and below
    ``payroll_engines`` / ``payroll_runs``.  The kernel never imports from
    this package.

Invariants enforced:
    - Exactly one resolvable version per (country, date); no fallback.
    - Published versions are immutable; a checksum pins each run to the
      rules it used.

Failure modes:
    - ``ConfigurationNotFoundError`` / ``ConfigurationAmbiguousError`` from
      resolution.
    - ``InvalidConfigurationError`` when a stored set fails validation.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path

from payroll_config.lifecycle import ConfigStatus
from payroll_config.resolver import ConfigurationResolver
from payroll_config.schema import CountryConfiguration
from payroll_config.sources import (
    ConfigurationSource,
    InMemoryConfigurationSource,
    YamlDirectorySource,
)

DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"

__all__ = [
    "ConfigStatus",
    "ConfigurationResolver",
    "ConfigurationSource",
    "CountryConfiguration",
    "DEFAULT_CONFIG_DIR",
    "InMemoryConfigurationSource",
    "YamlDirectorySource",
    "get_active_configuration",
]


def get_active_configuration(
    country_code: str,
    as_of_date: date,
    config_dir: Path | None = None,
) -> CountryConfiguration:
    """Resolve the configuration governing ``country_code`` on ``as_of_date``.

    Convenience entrypoint over the YAML sets shipped with the package (or
    ``config_dir``).  Long-lived callers should hold a
    ``ConfigurationResolver`` instead, so parsed sets are cached.

    Raises:
        ConfigurationNotFoundError: If no version is effective on the date.
        ConfigurationAmbiguousError: If several versions are.
        InvalidConfigurationError: If a stored set fails validation.
    """
    source = YamlDirectorySource(config_dir or DEFAULT_CONFIG_DIR)
    return ConfigurationResolver(source).resolve(country_code, as_of_date)
