"""Curve-fitted RSSI to distance estimation.

The model maps the ratio of a measured RSSI to a reference power (the RSSI
expected at 1 m) onto meters using an offset power law::

    d = c1 * (rssi / tx_power) ** c2 + c3

The three coefficients are fitted offline for a specific receiving device.
Below 1 m the power law behaves poorly, so ratios under 1.0 (after
re-expressing the reference power for this device) use ``ratio ** 8``
instead, which pulls the estimate towards zero quickly.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

import numpy as np

TAG = "CurveFittedDistanceCalculator"
UNKNOWN_DISTANCE = -1.0

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalibrationCoefficients:
    """Device-specific coefficients of the distance curve."""

    coefficient1: float
    coefficient2: float
    coefficient3: float

    def __str__(self) -> str:
        return f"{self.coefficient1:.3f}/{self.coefficient2:.3f}/{self.coefficient3:.3f}"


@dataclass(frozen=True)
class DistanceBreakdown:
    """Intermediate values of one distance computation."""

    rssi: float
    tx_power: int
    converted_tx_power: float
    ratio: float
    converted_ratio: float
    near_field: bool
    distance: float


class CurveFittedDistanceCalculator:
    """Estimate beacon distance from RSSI using fitted coefficients.

    Args:
        coefficient1: Multiplier of the power law, or a
            :class:`CalibrationCoefficients` carrying all three values.
        coefficient2: Exponent of the power law.
        coefficient3: Constant offset in meters.
        logger: Sink for the per-call diagnostics. Defaults to this
            module's logger.
    """

    def __init__(
        self,
        coefficient1: float | CalibrationCoefficients,
        coefficient2: Optional[float] = None,
        coefficient3: Optional[float] = None,
        logger: Optional[logging.Logger] = None,
    ):
        if isinstance(coefficient1, CalibrationCoefficients):
            self.coefficients = coefficient1
        else:
            if coefficient2 is None or coefficient3 is None:
                raise TypeError("coefficient2 and coefficient3 are required")
            self.coefficients = CalibrationCoefficients(
                float(coefficient1), float(coefficient2), float(coefficient3)
            )
        self.logger = logger if logger is not None else _log

    def breakdown(self, tx_power: int, rssi: float) -> Optional[DistanceBreakdown]:
        """Return every intermediate of the estimate, or ``None`` for zero RSSI."""
        if rssi == 0:
            return None
        c = self.coefficients
        c1 = np.float64(c.coefficient1)
        c2 = np.float64(c.coefficient2)
        c3 = np.float64(c.coefficient3)
        txp = np.float64(tx_power)
        sample = np.float64(rssi)
        # IEEE semantics: zero divisors and negative bases give inf/nan, not exceptions
        with np.errstate(all="ignore"):
            # where THIS device sees the beacon at 1 m
            converted_tx_power = txp * np.power((1.0 - c3) / c1, 1.0 / c2)
            converted_ratio = sample / converted_tx_power
            ratio = sample / txp
            near_field = bool(converted_ratio < 1.0)
            if near_field:
                distance = np.power(converted_ratio, 8)
            else:
                distance = c1 * np.power(ratio, c2) + c3
        return DistanceBreakdown(
            rssi=float(rssi),
            tx_power=int(tx_power),
            converted_tx_power=float(converted_tx_power),
            ratio=float(ratio),
            converted_ratio=float(converted_ratio),
            near_field=near_field,
            distance=float(distance),
        )

    def calculate_distance(self, tx_power: int, rssi: float) -> float:
        """Return the estimated distance in meters, or -1.0 when ``rssi`` is 0."""
        if rssi == 0:
            return UNKNOWN_DISTANCE

        self.logger.debug(
            "calculating distance based on rssi of %s and tx_power of %s", rssi, tx_power
        )
        b = self.breakdown(tx_power, rssi)
        c = self.coefficients
        self.logger.info(
            "avgRssi: %.2f txPower: %d C1/C2/C3: %.3f/%.3f/%.3f => (convTxPower:%.2f) "
            "ratio:%.3f (convRatio:%.3f) => distance: %.2f",
            b.rssi,
            b.tx_power,
            c.coefficient1,
            c.coefficient2,
            c.coefficient3,
            b.converted_tx_power,
            b.ratio,
            b.converted_ratio,
            b.distance,
        )
        return b.distance

    def calculate_distances(self, tx_power: int, rssi_values: Iterable[float]) -> np.ndarray:
        """Estimate each sample independently."""
        return np.array(
            [self.calculate_distance(tx_power, float(r)) for r in rssi_values], dtype=float
        )

    def __str__(self) -> str:
        return f"{TAG} with C1/C2/C3: {self.coefficients}"

    def __repr__(self) -> str:
        c = self.coefficients
        return (
            f"{type(self).__name__}({c.coefficient1!r}, {c.coefficient2!r}, "
            f"{c.coefficient3!r})"
        )
