"""Configuration loading and validation for beacon-range.

Validates config.yaml parameters and flags coefficient combinations that
make the distance curve degenerate.
"""

from __future__ import annotations
import math
import sys
from pathlib import Path
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field
import yaml

from .curve_fit import CalibrationCoefficients

DEFAULT_CONFIG = Path(__file__).resolve().parent / "config.yaml"


@dataclass
class ValidationResult:
    """Result of a configuration validation."""
    valid: bool
    warnings: List[str]
    errors: List[str]
    fixed_values: Dict[str, Any]
    invalid_keys: List[str] = field(default_factory=list)


# Valid ranges for configuration parameters
CONFIG_SCHEMA = {
    # Curve coefficients (defaults are the bundled default device)
    "coefficient1": {
        "type": float,
        "default": 0.42093,
    },
    "coefficient2": {
        "type": float,
        "default": 6.9476,
    },
    "coefficient3": {
        "type": float,
        "default": 0.54992,
    },
    "tx_power": {
        "type": int,
        "min": -127,
        "max": 20,
        "default": -59,
        "unit": "dBm",
    },
    # Device lookup
    "device_model": {
        "type": str,
        "default": "",
    },
    "device_manufacturer": {
        "type": str,
        "default": "",
    },
    "models_file": {
        "type": str,
        "default": "",
    },
    # Logging
    "log_level": {
        "type": str,
        "allowed": ["DEBUG", "INFO", "WARNING", "ERROR"],
        "default": "WARNING",
    },
    "log_file": {
        "type": str,
        "default": "",
    },
}


COEFFICIENT_KEYS = ("coefficient1", "coefficient2", "coefficient3")


def _coerce(value: Any, expected_type: type) -> Any:
    """Return ``value`` as ``expected_type`` where YAML typing is lossless."""
    # bool is an int subclass; never accept it as a number
    if isinstance(value, bool):
        return value
    if expected_type is float and isinstance(value, int):
        return float(value)
    if expected_type is int and isinstance(value, float) and value.is_integer():
        return int(value)
    if expected_type is str and value is None:
        return ""
    return value


def _check_value(key: str, value: Any, schema: Dict[str, Any]) -> Optional[str]:
    """Return an error message for ``value``, or None when it is acceptable."""
    expected_type = schema["type"]
    if not isinstance(value, expected_type) or (
        isinstance(value, bool) and expected_type is not bool
    ):
        return f"{key}: expected {expected_type.__name__}, got {type(value).__name__}"
    allowed = schema.get("allowed")
    if allowed is not None and value not in allowed:
        return f"{key}: {value} not in allowed values {allowed}"
    if expected_type is float and not math.isfinite(value):
        return f"{key}: {value} is not a finite number"
    if "min" in schema and value < schema["min"]:
        return f"{key}: {value} below minimum {schema['min']}"
    if "max" in schema and value > schema["max"]:
        return f"{key}: {value} above maximum {schema['max']}"
    return None


def validate_config(cfg: Dict[str, Any], auto_fix: bool = False) -> ValidationResult:
    """Validate a configuration dictionary.

    Args:
        cfg: Configuration dictionary (from config.yaml)
        auto_fix: If True, suggest schema defaults for rejected keys

    Returns:
        ValidationResult; ``invalid_keys`` names every rejected key
    """
    warnings: List[str] = []
    errors: List[str] = []
    invalid: List[str] = []
    checked: Dict[str, Any] = {}

    def reject(message: str, *keys: str) -> None:
        errors.append(message)
        for key in keys:
            if key not in invalid:
                invalid.append(key)

    for key, schema in CONFIG_SCHEMA.items():
        if key not in cfg:
            continue
        value = _coerce(cfg[key], schema["type"])
        problem = _check_value(key, value, schema)
        if problem:
            reject(problem, key)
        else:
            checked[key] = value

    tx_power = checked.get("tx_power")
    if tx_power is not None and tx_power > 0:
        warnings.append(
            f"tx_power: {tx_power} dBm is positive, which is unusual for "
            f"RSSI at 1m. Typical values are -50 to -80 dBm."
        )

    # Coefficient combinations the curve cannot evaluate
    if not any(key in invalid for key in COEFFICIENT_KEYS):
        c1, c2, c3 = (
            checked.get(key, CONFIG_SCHEMA[key]["default"]) for key in COEFFICIENT_KEYS
        )
        if c1 == 0:
            reject(
                "coefficient1: 0 divides the reference power conversion by zero. "
                "Distances would be infinite or NaN.",
                "coefficient1",
            )
        elif (1.0 - c3) / c1 < 0:
            reject(
                f"coefficient1/coefficient3: (1 - {c3}) / {c1} is negative, so the "
                f"reference power conversion is NaN. Check the calibration table.",
                "coefficient1", "coefficient3",
            )
        if c2 == 0:
            reject("coefficient2: 0 makes the conversion exponent infinite.", "coefficient2")

    models_file = checked.get("models_file", "")
    if models_file and not Path(models_file).exists():
        warnings.append(f"models_file: '{models_file}' does not exist")

    if checked.get("device_model") and not checked.get("device_manufacturer"):
        warnings.append(
            "device_model is set without device_manufacturer; "
            "the default model will be used."
        )

    fixed = {key: CONFIG_SCHEMA[key]["default"] for key in invalid} if auto_fix else {}
    return ValidationResult(
        valid=not errors,
        warnings=warnings,
        errors=errors,
        fixed_values=fixed,
        invalid_keys=invalid,
    )


def load_config(path: Optional[str | Path] = None) -> Dict[str, Any]:
    """Read a YAML config (the bundled one when ``path`` is None)."""
    cfg_path = Path(path) if path else DEFAULT_CONFIG
    with open(cfg_path) as f:
        cfg = yaml.safe_load(f) or {}
    if not isinstance(cfg, dict):
        raise ValueError(f"{cfg_path}: expected a mapping at top level")
    return cfg


def validate_config_file(
    path: str | Path,
    auto_fix: bool = False,
    write_fixes: bool = False,
) -> ValidationResult:
    """Validate a config file, optionally writing suggested fixes back."""
    try:
        cfg = load_config(path)
    except OSError as exc:
        return ValidationResult(False, [], [f"Config file not found: {exc}"], {})
    except (yaml.YAMLError, ValueError) as exc:
        return ValidationResult(False, [], [f"Config file unreadable: {exc}"], {})

    result = validate_config(cfg, auto_fix=auto_fix or write_fixes)
    if write_fixes and result.fixed_values:
        cfg.update(result.fixed_values)
        with open(path, "w") as f:
            yaml.safe_dump(cfg, f, sort_keys=False)
    return result


def print_validation_report(result: ValidationResult, verbose: bool = True) -> None:
    print(f"Configuration: {'VALID' if result.valid else 'INVALID'}")
    sections = (("Errors", "ERROR", result.errors), ("Warnings", "WARN", result.warnings))
    for title, tag, messages in sections:
        if messages:
            print(f"\n{title} ({len(messages)}):")
            for msg in messages:
                print(f"  [{tag}] {msg}")
    if verbose and result.fixed_values:
        print("\nSuggested fixes:")
        for key, val in result.fixed_values.items():
            print(f"  {key}: {val}")
    if not result.errors and not result.warnings:
        print("No issues found.")


def get_config_with_defaults(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Return config with schema defaults under any extra keys."""
    full = {key: schema["default"] for key, schema in CONFIG_SCHEMA.items()}
    full.update(cfg)
    return full


def coefficients_from_config(cfg: Dict[str, Any]) -> CalibrationCoefficients:
    full = get_config_with_defaults(cfg)
    return CalibrationCoefficients(*(float(full[key]) for key in COEFFICIENT_KEYS))


def main(argv: Optional[List[str]] = None) -> int:
    """Validate a config file: ``python -m beacon_range.config_validator [path] [--fix]``."""
    import argparse

    parser = argparse.ArgumentParser(description="Validate beacon-range config")
    parser.add_argument("config", nargs="?", default=str(DEFAULT_CONFIG),
                        help="Path to config.yaml")
    parser.add_argument("--fix", action="store_true",
                        help="Replace rejected values with defaults in the file")
    args = parser.parse_args(argv)

    result = validate_config_file(args.config, write_fixes=args.fix)
    print_validation_report(result, verbose=args.fix)
    return 0 if result.valid else 1


if __name__ == "__main__":
    sys.exit(main())
