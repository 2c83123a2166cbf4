#!/usr/bin/env python3
"""
Validate statutory rule sets and print the checksum each run would pin.

Usage:
    python scripts/validate_config.py [sets_directory_or_yaml_file ...]

With no argument, validates every country under payroll_config/sets/.

For each YAML set the script:
  1. Parses it into a CountryConfiguration
  2. Validates it (errors block use, warnings are printed)
  3. Prints its version, status, effective window and checksum
Then, per country, checks that resolvable versions never overlap.

Exits 1 if any set has errors.
"""

import sys
from pathlib import Path

# Add project root to path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from payroll_config import DEFAULT_CONFIG_DIR
from payroll_config.loader import load_country_configuration
from payroll_config.validator import validate_country_configuration, validate_version_set


def check_file(path: Path):
    """Validate one YAML set.  Returns (configuration, ok)."""
    config = load_country_configuration(path)
    print(f"{path}")
    print(f"  country:   {config.country_code}")
    print(f"  version:   {config.version}")
    print(f"  status:    {config.status.value}")
    window_end = config.effective_to.isoformat() if config.effective_to else "open"
    print(f"  effective: {config.effective_from.isoformat()} .. {window_end}")
    print(f"  checksum:  {config.checksum[:16]}...")

    result = validate_country_configuration(config)
    for err in result.errors:
        print(f"  ERROR: {err}")
    for w in result.warnings:
        print(f"  WARNING: {w}")
    return config, result.is_valid


def check_country(country_dir: Path) -> bool:
    ok = True
    configs = []
    for path in sorted(country_dir.glob("*.yaml")):
        config, valid = check_file(path)
        configs.append(config)
        ok = ok and valid

    overlap = validate_version_set(configs)
    for err in overlap.errors:
        print(f"  ERROR ({country_dir.name}): {err}")
    return ok and overlap.is_valid


def main():
    targets = [Path(a) for a in sys.argv[1:]] or [DEFAULT_CONFIG_DIR]

    ok = True
    for target in targets:
        if target.is_file():
            _, valid = check_file(target)
            ok = ok and valid
        elif target.is_dir():
            country_dirs = [d for d in sorted(target.iterdir()) if d.is_dir()]
            if not country_dirs:
                country_dirs = [target]
            for country_dir in country_dirs:
                ok = check_country(country_dir) and ok
        else:
            print(f"Error: not found: {target}", file=sys.stderr)
            sys.exit(1)

    if not ok:
        print("VALIDATION FAILED")
        sys.exit(1)
    print("All sets valid.")


if __name__ == "__main__":
    main()
