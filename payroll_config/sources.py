"""
Configuration sources -- the read contract for country configurations.

A source returns every stored version for a country; choosing the one that
applies on a date is the resolver's job.  Two implementations ship:

* ``InMemoryConfigurationSource`` -- versions supplied by the caller
  (tests, embedding applications that store rules elsewhere).
* ``YamlDirectorySource`` -- versions read from ``<sets_dir>/<COUNTRY>/*.yaml``.
  Every file is validated on first load; a file with validation errors
  raises ``InvalidConfigurationError`` rather than being skipped.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path

from payroll_kernel.exceptions import InvalidConfigurationError
from payroll_kernel.logging_config import get_logger

from payroll_config.loader import load_country_configuration
from payroll_config.schema import CountryConfiguration
from payroll_config.validator import (
    validate_country_configuration,
    validate_version_set,
)

logger = get_logger("config.sources")


class ConfigurationSource(ABC):
    """Read-only access to stored configuration versions."""

    @abstractmethod
    def versions_for(self, country_code: str) -> tuple[CountryConfiguration, ...]:
        """All stored versions for ``country_code``, in any status."""
        ...


class InMemoryConfigurationSource(ConfigurationSource):
    """Configuration versions held in memory."""

    def __init__(self, configurations: Iterable[CountryConfiguration] = ()):
        self._by_country: dict[str, list[CountryConfiguration]] = {}
        for config in configurations:
            self.add(config)

    def add(self, config: CountryConfiguration) -> None:
        self._by_country.setdefault(config.country_code.upper(), []).append(config)

    def versions_for(self, country_code: str) -> tuple[CountryConfiguration, ...]:
        return tuple(self._by_country.get(country_code.upper(), ()))


class YamlDirectorySource(ConfigurationSource):
    """
    Versions loaded from a directory of YAML sets.

    Layout::

        sets/
          CI/
            2024-01.yaml
          SN/
            2024-01.yaml

    Countries are loaded lazily and cached; the cache is guarded by a lock
    so concurrent resolvers share one parsed copy.
    """

    def __init__(self, sets_dir: Path):
        self._sets_dir = Path(sets_dir)
        self._cache: dict[str, tuple[CountryConfiguration, ...]] = {}
        self._lock = threading.Lock()

    @property
    def sets_dir(self) -> Path:
        return self._sets_dir

    def versions_for(self, country_code: str) -> tuple[CountryConfiguration, ...]:
        key = country_code.upper()
        with self._lock:
            if key not in self._cache:
                self._cache[key] = self._load_country(key)
            return self._cache[key]

    def _load_country(self, country_code: str) -> tuple[CountryConfiguration, ...]:
        country_dir = self._sets_dir / country_code
        if not country_dir.is_dir():
            logger.debug(
                "configuration_country_missing",
                extra={"country_code": country_code, "sets_dir": str(self._sets_dir)},
            )
            return ()

        versions: list[CountryConfiguration] = []
        for path in sorted(country_dir.glob("*.yaml")):
            config = load_country_configuration(path)
            validation = validate_country_configuration(config)
            if not validation.is_valid:
                raise InvalidConfigurationError(str(path), validation.errors)
            for warning in validation.warnings:
                logger.warning(
                    "configuration_warning",
                    extra={"source": str(path), "warning": warning},
                )
            versions.append(config)

        overlap = validate_version_set(versions)
        if not overlap.is_valid:
            raise InvalidConfigurationError(str(country_dir), overlap.errors)

        logger.info(
            "configuration_versions_loaded",
            extra={
                "country_code": country_code,
                "version_count": len(versions),
                "versions": [v.version for v in versions],
            },
        )
        return tuple(versions)
