"""Command line front end.

Usage:
    # Estimate with the configured coefficients
    python run.py --rssi -65 --rssi -72 --tx-power -59

    # Coefficients of a known device
    python run.py --manufacturer LGE --model "Nexus 4" --rssi -70

    # Explicit coefficients, with intermediates
    python run.py --coefficients 0.89976 7.7095 0.111 --rssi -65 --explain

    # Validate configuration
    python run.py --validate --config my_config.yaml
"""

from __future__ import annotations
import argparse
import logging
import sys
from typing import List, Optional

from . import config_validator
from .curve_fit import (
    CalibrationCoefficients,
    CurveFittedDistanceCalculator,
    UNKNOWN_DISTANCE,
)
from .logs import level_from_name, setup_logging
from .models import DeviceModel, ModelTable


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Estimate beacon distance from RSSI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument(
        "--validate", "-V",
        action="store_true",
        help="Validate configuration and exit",
    )
    mode_group.add_argument(
        "--list-models",
        action="store_true",
        help="List device models in the coefficient table and exit",
    )

    parser.add_argument("--rssi", type=float, action="append", default=None,
                        help="Measured RSSI in dBm (repeatable)")
    parser.add_argument("--tx-power", type=int, default=None,
                        help="Expected RSSI at 1 m (dBm); defaults to config tx_power")
    parser.add_argument("--coefficients", type=float, nargs=3, default=None,
                        metavar=("C1", "C2", "C3"), help="Curve coefficients")
    parser.add_argument("--model", type=str, default=None, help="Device model to look up")
    parser.add_argument("--manufacturer", type=str, default=None, help="Device manufacturer")
    parser.add_argument("--config", "-c", type=str, default=None, help="Config file path")
    parser.add_argument("--models", type=str, default=None, help="Model table JSON path")
    parser.add_argument("--explain", action="store_true",
                        help="Print intermediate values for each estimate")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument("--log-file", type=str, default=None, help="Also log to this file")
    return parser


def _load_table(args: argparse.Namespace, cfg: dict) -> ModelTable:
    return ModelTable.load(args.models or cfg.get("models_file") or None)


def _make_calculator(
    args: argparse.Namespace, cfg: dict, logger: logging.Logger
) -> CurveFittedDistanceCalculator:
    if args.coefficients:
        return CurveFittedDistanceCalculator(CalibrationCoefficients(*args.coefficients),
                                             logger=logger)
    model = args.model or cfg.get("device_model") or ""
    manufacturer = args.manufacturer or cfg.get("device_manufacturer") or ""
    if model or manufacturer:
        device = DeviceModel(model=model, manufacturer=manufacturer)
        table = _load_table(args, cfg)
        entry = table.find(device)
        logger.info("Using coefficients of %s for %s", entry.device, device)
        return CurveFittedDistanceCalculator(entry.coefficients, logger=logger)
    return CurveFittedDistanceCalculator(
        config_validator.coefficients_from_config(cfg), logger=logger
    )


def _format_distance(distance: float) -> str:
    if distance == UNKNOWN_DISTANCE:
        return "unknown"
    return f"{distance:.2f} m"


def _blocking_keys(args: argparse.Namespace, validation) -> List[str]:
    """Config keys that are rejected and actually used by this invocation."""
    unused = set()
    if args.coefficients:
        unused.update(config_validator.COEFFICIENT_KEYS)
    if args.tx_power is not None:
        unused.add("tx_power")
    if args.log_file:
        unused.add("log_file")
    if args.verbose:
        unused.add("log_level")
    if args.models:
        unused.add("models_file")
    return [key for key in validation.invalid_keys if key not in unused]


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.validate:
        result = config_validator.validate_config_file(
            args.config or config_validator.DEFAULT_CONFIG
        )
        config_validator.print_validation_report(result, verbose=False)
        return 0 if result.valid else 1

    try:
        cfg = config_validator.load_config(args.config)
    except (OSError, ValueError) as exc:
        print(f"Could not read config: {exc}", file=sys.stderr)
        return 1

    validation = config_validator.validate_config(cfg)
    blocking = _blocking_keys(args, validation)
    if blocking:
        for err in validation.errors:
            print(f"Config error: {err}", file=sys.stderr)
        return 1

    # Rejected keys were either overridden on the command line or are unused here
    usable = {k: v for k, v in cfg.items() if k not in validation.invalid_keys}
    level = logging.DEBUG if args.verbose else level_from_name(
        usable.get("log_level"), logging.WARNING
    )
    logger = setup_logging(log_file=args.log_file or usable.get("log_file") or None, level=level)

    for warn in validation.warnings:
        logger.warning(f"Config warning: {warn}")

    if args.list_models:
        try:
            table = _load_table(args, usable)
        except (OSError, ValueError) as exc:
            print(f"Could not read model table: {exc}", file=sys.stderr)
            return 1
        for m in table.list_models():
            flag = " (default)" if m["default"] else ""
            print(f"{m['manufacturer']:<12} {m['model']:<12} {m['coefficients']}{flag}")
        return 0

    if not args.rssi:
        print("Provide at least one --rssi value", file=sys.stderr)
        return 1

    try:
        calc = _make_calculator(args, usable, logger)
    except (OSError, ValueError, LookupError) as exc:
        print(f"Could not select coefficients: {exc}", file=sys.stderr)
        return 1
    logger.debug(f"Using {calc}")

    tx_power = args.tx_power
    if tx_power is None:
        tx_power = int(config_validator.get_config_with_defaults(usable)["tx_power"])

    for rssi in args.rssi:
        distance = calc.calculate_distance(tx_power, rssi)
        print(f"{rssi:.2f} dBm -> {_format_distance(distance)}")
        if args.explain:
            b = calc.breakdown(tx_power, rssi)
            if b is not None:
                branch = "near-field" if b.near_field else "curve"
                print(
                    f"    converted tx power {b.converted_tx_power:.2f}, "
                    f"ratio {b.ratio:.3f}, converted ratio {b.converted_ratio:.3f} ({branch})"
                )
    return 0
