"""Per-device coefficient table.

Curve coefficients depend on the receiving device's radio, so a table of
fitted devices ships with the package and the closest entry is picked for
the device at hand.

The table is JSON in ``beacon_range/models.json``::

    {"models": [
        {"coefficient1": 0.42093, "coefficient2": 6.9476, "coefficient3": 0.54992,
         "version": "4.4.2", "build_number": "LPV79", "model": "Nexus 5",
         "manufacturer": "LGE", "default": true},
        ...
    ]}

Usage:
    from beacon_range.models import DeviceModel, ModelTable

    table = ModelTable.load()
    calc = table.calculator_for(DeviceModel(model="Nexus 4", manufacturer="LGE"))
    calc.calculate_distance(-59, -65.0)
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .curve_fit import CalibrationCoefficients, CurveFittedDistanceCalculator

DEFAULT_MODELS_FILE = Path(__file__).resolve().parent / "models.json"

_log = logging.getLogger(__name__)


def _same(a: str, b: str) -> bool:
    return a.strip().lower() == b.strip().lower()


@dataclass(frozen=True)
class DeviceModel:
    """Identity of a receiving device."""

    version: str = ""
    build_number: str = ""
    model: str = ""
    manufacturer: str = ""

    def match_score(self, other: "DeviceModel") -> int:
        """Score how closely ``other`` matches, 0 (manufacturer differs) to 4."""
        score = 0
        if _same(self.manufacturer, other.manufacturer):
            score = 1
            if _same(self.model, other.model):
                score = 2
                if _same(self.build_number, other.build_number):
                    score = 3
                    if _same(self.version, other.version):
                        score = 4
        return score

    def __str__(self) -> str:
        return f"{self.manufacturer};{self.model};{self.build_number};{self.version}"


@dataclass(frozen=True)
class ModelEntry:
    device: DeviceModel
    coefficients: CalibrationCoefficients
    default: bool = False


class ModelTable:
    """Lookup of fitted coefficients by device model."""

    def __init__(self, entries: list[ModelEntry]):
        self.entries = list(entries)

    @classmethod
    def from_dict(cls, data: dict) -> "ModelTable":
        if not isinstance(data, dict) or not isinstance(data.get("models"), list):
            raise ValueError("model table must be an object with a 'models' list")
        entries = []
        for i, raw in enumerate(data["models"]):
            if not isinstance(raw, dict):
                raise ValueError(f"models[{i}]: expected an object")
            try:
                coeffs = CalibrationCoefficients(
                    float(raw["coefficient1"]),
                    float(raw["coefficient2"]),
                    float(raw["coefficient3"]),
                )
            except KeyError as exc:
                raise ValueError(f"models[{i}]: missing {exc.args[0]}") from None
            except (TypeError, ValueError):
                raise ValueError(f"models[{i}]: coefficients must be numbers") from None
            device = DeviceModel(
                version=str(raw.get("version", "")),
                build_number=str(raw.get("build_number", "")),
                model=str(raw.get("model", "")),
                manufacturer=str(raw.get("manufacturer", "")),
            )
            entries.append(ModelEntry(device, coeffs, bool(raw.get("default", False))))
        return cls(entries)

    @classmethod
    def load(cls, path: Optional[str | Path] = None) -> "ModelTable":
        """Read a table from JSON; the bundled table when ``path`` is None."""
        p = Path(path) if path else DEFAULT_MODELS_FILE
        try:
            data = json.loads(p.read_text())
        except json.JSONDecodeError as exc:
            raise ValueError(f"{p}: invalid JSON ({exc})") from exc
        table = cls.from_dict(data)
        _log.debug("Loaded %d device models from %s", len(table.entries), p)
        return table

    def list_models(self) -> list[dict]:
        """Summaries of all entries, in table order."""
        return [
            {
                "manufacturer": e.device.manufacturer,
                "model": e.device.model,
                "build_number": e.device.build_number,
                "version": e.device.version,
                "coefficients": str(e.coefficients),
                "default": e.default,
            }
            for e in self.entries
        ]

    def default_entry(self) -> Optional[ModelEntry]:
        for e in self.entries:
            if e.default:
                return e
        return None

    def find(self, device: DeviceModel) -> ModelEntry:
        """Return the best matching entry, else the default one."""
        best: Optional[ModelEntry] = None
        best_score = 0
        for e in self.entries:
            score = device.match_score(e.device)
            if score > best_score:
                best, best_score = e, score
        if best is not None:
            _log.debug("Device %s matched %s (score %d)", device, best.device, best_score)
            return best
        fallback = self.default_entry()
        if fallback is None:
            raise LookupError(f"no model matches {device} and the table has no default")
        _log.debug("Device %s has no match, using default %s", device, fallback.device)
        return fallback

    def calculator_for(
        self, device: DeviceModel, logger: Optional[logging.Logger] = None
    ) -> CurveFittedDistanceCalculator:
        return CurveFittedDistanceCalculator(self.find(device).coefficients, logger=logger)


class ModelSpecificDistanceCalculator:
    """Distance calculator bound to the table entry matching ``device``."""

    def __init__(
        self,
        device: DeviceModel,
        table: Optional[ModelTable] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.table = table if table is not None else ModelTable.load()
        self.requested = device
        entry = self.table.find(device)
        self.model = entry.device
        self.calculator = CurveFittedDistanceCalculator(entry.coefficients, logger=logger)

    def calculate_distance(self, tx_power: int, rssi: float) -> float:
        return self.calculator.calculate_distance(tx_power, rssi)

    def __str__(self) -> str:
        return f"{self.calculator} for {self.model}"
