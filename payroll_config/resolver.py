"""
ConfigurationResolver -- effective-dated configuration lookup.

Responsibility:
    Return the single configuration version that governs a country on a
    calculation date, or fail loudly.  There is NO fallback: a missing
    configuration never degrades to a default or most-recent version,
    because paying employees under the wrong law is worse than not paying
    them on time.

Architecture position:
    Configuration -- the only component that performs configuration I/O
    (through its ``ConfigurationSource``).  Engines receive the resolved
    ``CountryConfiguration`` and never look anything up themselves.

Failure modes:
    - ConfigurationNotFoundError: no resolvable version covers the date.
    - ConfigurationAmbiguousError: more than one does.
    - ConfigurationIntegrityError: a pinned version's checksum drifted.

Audit relevance:
    Every successful resolution emits ``PAYROLL_CONFIG_TRACE`` with the
    version and checksum, tying each calculation to its exact rules.
"""

from __future__ import annotations

from datetime import date

from payroll_kernel.exceptions import (
    ConfigurationAmbiguousError,
    ConfigurationIntegrityError,
    ConfigurationNotFoundError,
)
from payroll_kernel.logging_config import get_logger

from payroll_config.schema import CountryConfiguration
from payroll_config.sources import ConfigurationSource

logger = get_logger("config.resolver")


class ConfigurationResolver:
    """Resolves effective-dated country configurations from a source."""

    def __init__(self, source: ConfigurationSource):
        self._source = source

    def resolve(self, country_code: str, as_of_date: date) -> CountryConfiguration:
        """
        Return the unique resolvable version effective on ``as_of_date``.

        Preconditions:
            - ``country_code`` is a non-empty country identifier.
        Postconditions:
            - effective_from <= as_of_date and
              (effective_to is None or as_of_date <= effective_to).
            - status is PUBLISHED or SUPERSEDED.
        Raises:
            ConfigurationNotFoundError: If no version matches.
            ConfigurationAmbiguousError: If several versions match.
        """
        country = country_code.upper()
        candidates = [
            config
            for config in self._source.versions_for(country)
            if config.is_resolvable and config.is_effective(as_of_date)
        ]

        if not candidates:
            logger.warning(
                "configuration_not_found",
                extra={"country_code": country, "as_of_date": as_of_date.isoformat()},
            )
            raise ConfigurationNotFoundError(country, as_of_date.isoformat())

        if len(candidates) > 1:
            versions = sorted(c.version for c in candidates)
            logger.error(
                "configuration_ambiguous",
                extra={
                    "country_code": country,
                    "as_of_date": as_of_date.isoformat(),
                    "versions": versions,
                },
            )
            raise ConfigurationAmbiguousError(country, as_of_date.isoformat(), versions)

        config = candidates[0]
        self._trace(config, as_of_date)
        return config

    def resolve_pinned(
        self, country_code: str, version: str, checksum: str,
    ) -> CountryConfiguration:
        """
        Re-read the exact version pinned on a payroll run.

        Raises:
            ConfigurationNotFoundError: If the version is no longer stored.
            ConfigurationIntegrityError: If its checksum no longer matches.
        """
        country = country_code.upper()
        for config in self._source.versions_for(country):
            if config.version != version:
                continue
            if config.checksum != checksum:
                raise ConfigurationIntegrityError(
                    country, version, checksum, config.checksum,
                )
            self._trace(config, None)
            return config
        raise ConfigurationNotFoundError(country, f"version {version}")

    def _trace(self, config: CountryConfiguration, as_of_date: date | None) -> None:
        logger.info(
            "PAYROLL_CONFIG_TRACE",
            extra={
                "trace_type": "PAYROLL_CONFIG_TRACE",
                "country_code": config.country_code,
                "config_version": config.version,
                "checksum": config.checksum,
                "status": config.status.value,
                "effective_from": config.effective_from.isoformat(),
                "effective_to": (
                    config.effective_to.isoformat() if config.effective_to else None
                ),
                "as_of_date": as_of_date.isoformat() if as_of_date else None,
                "scheme_count": len(config.contribution_schemes),
                "bracket_count": len(config.income_tax.brackets),
            },
        )
