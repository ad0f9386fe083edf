"""RSSI to distance estimation for fixed-power beacons."""

from .curve_fit import (  # noqa: F401
    CalibrationCoefficients,
    CurveFittedDistanceCalculator,
    DistanceBreakdown,
    UNKNOWN_DISTANCE,
)
from .models import DeviceModel, ModelSpecificDistanceCalculator, ModelTable  # noqa: F401
