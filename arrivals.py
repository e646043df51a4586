from __future__ import annotations
"""
Ankunftsmodelle: Wie viele Passagiere eines Fluges kommen in welcher Minute an?

Die Engine kennt nur das Protokoll `ArrivalModel`. Mitgeliefert werden:

- `CurveArrivalModel`: im Legacy-Modus eine Gleichverteilung über das
  Ankunftsfenster, sonst eine geteilte Normalverteilung (Split-Gauss) um
  einen Peak vor dem Abflug.
- `StaticArrivalModel`: feste Minutenwerte pro Flugnummer, z.B. aus
  gemessenen Daten.

Alle Modelle liefern eine Liste der Länge `span_min`. Index 0 entspricht
`span_min` Minuten vor Abflug, der letzte Index einer Minute vor Abflug.
"""
import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Mapping, Protocol, Sequence

import numpy as np

from flights import Flight
from terminal_data import (
    DEFAULT_BOARDING_CLOSE_MIN,
    DEFAULT_CURVE_LATE_CLAMP_MIN, DEFAULT_CURVE_LEFT_SIGMA_MIN, DEFAULT_CURVE_PEAK_MIN,
    DEFAULT_CURVE_RIGHT_SIGMA_MIN, DEFAULT_CURVE_WINDOW_START_MIN, MIN_CURVE_SIGMA_MIN,
)

logger = logging.getLogger(__name__)


# =========================================================
# Konfiguration der Ankunftskurve
# =========================================================
@dataclass
class ArrivalCurveConfig:
    """
    Parameter der Ankunftskurve (alle Zeiten in Minuten vor Abflug).

    Jede Zuweisung wird sofort validiert und begrenzt, sodass die
    Konfiguration nie in einem ungültigen Zustand ist.
    """

    legacy_mode: bool = True
    window_start_min: int = DEFAULT_CURVE_WINDOW_START_MIN
    peak_min: int = DEFAULT_CURVE_PEAK_MIN
    left_sigma_min: float = DEFAULT_CURVE_LEFT_SIGMA_MIN
    right_sigma_min: float = DEFAULT_CURVE_RIGHT_SIGMA_MIN
    late_clamp_enabled: bool = False
    late_clamp_min: int = DEFAULT_CURVE_LATE_CLAMP_MIN
    boarding_close_min: int = DEFAULT_BOARDING_CLOSE_MIN

    def __post_init__(self):
        self.validate_and_clamp()
        object.__setattr__(self, "_ready", True)

    def __setattr__(self, name, value):
        object.__setattr__(self, name, value)
        if getattr(self, "_ready", False):
            self.validate_and_clamp()

    def validate_and_clamp(self) -> None:
        """Begrenzt alle Felder auf einen konsistenten Wertebereich."""
        close = max(0, int(self.boarding_close_min))
        window = max(close + 1, int(self.window_start_min))
        values = {
            "legacy_mode": bool(self.legacy_mode),
            "late_clamp_enabled": bool(self.late_clamp_enabled),
            "boarding_close_min": close,
            "window_start_min": window,
            "peak_min": min(window, max(close, int(self.peak_min))),
            "left_sigma_min": max(MIN_CURVE_SIGMA_MIN, float(self.left_sigma_min)),
            "right_sigma_min": max(MIN_CURVE_SIGMA_MIN, float(self.right_sigma_min)),
            "late_clamp_min": min(window, max(close, int(self.late_clamp_min))),
        }
        for k, v in values.items():
            object.__setattr__(self, k, v)

    @classmethod
    def legacy_default(cls) -> "ArrivalCurveConfig":
        return cls(legacy_mode=True)


# =========================================================
# Protokoll
# =========================================================
class ArrivalModel(Protocol):
    def arrivals_per_minute(
        self,
        flight: Flight,
        total_passengers: int,
        curve: ArrivalCurveConfig,
        span_min: int,
    ) -> List[int]:
        ...


def _apportion(weights: np.ndarray, total: int) -> List[int]:
    """
    Verteilt `total` ganzzahlig proportional zu `weights` (Largest-Remainder).

    Die Summe des Ergebnisses ist exakt `total`, sofern mindestens ein
    Gewicht positiv ist.
    """
    if total <= 0 or weights.size == 0 or weights.sum() <= 0:
        return [0] * int(weights.size)
    exact = weights / weights.sum() * total
    counts = np.floor(exact).astype(int)
    remainder = total - int(counts.sum())
    if remainder > 0:
        # bei gleichen Resten gewinnt die frühere Minute
        order = np.argsort(-(exact - counts), kind="stable")
        counts[order[:remainder]] += 1
    return [int(c) for c in counts]


# =========================================================
# Modelle
# =========================================================
class CurveArrivalModel:
    """Legacy-Gleichverteilung oder Split-Gauss-Kurve, je nach `curve.legacy_mode`."""

    def arrivals_per_minute(
        self,
        flight: Flight,
        total_passengers: int,
        curve: ArrivalCurveConfig,
        span_min: int,
    ) -> List[int]:
        span = max(0, int(span_min))
        if span == 0:
            return []
        if curve is None or curve.legacy_mode:
            return self._legacy(total_passengers, curve, span)
        return self._split_gauss(total_passengers, curve, span)

    @staticmethod
    def _close_min(curve: ArrivalCurveConfig | None) -> int:
        return curve.boarding_close_min if curve is not None else DEFAULT_BOARDING_CLOSE_MIN

    def _legacy(self, total: int, curve: ArrivalCurveConfig | None, span: int) -> List[int]:
        # gleichmäßig über alle Minuten vor dem Boarding-Schluss
        open_minutes = span - self._close_min(curve)
        weights = np.zeros(span)
        if open_minutes > 0:
            weights[:open_minutes] = 1.0
        return _apportion(weights, total)

    def _split_gauss(self, total: int, curve: ArrivalCurveConfig, span: int) -> List[int]:
        weights = np.zeros(span)
        for idx in range(span):
            before_dep = span - idx
            if before_dep <= curve.boarding_close_min or before_dep > curve.window_start_min:
                continue
            if curve.late_clamp_enabled and before_dep < curve.late_clamp_min:
                continue
            # links vom Peak = früher = mehr Minuten vor Abflug
            sigma = curve.left_sigma_min if before_dep > curve.peak_min else curve.right_sigma_min
            z = (before_dep - curve.peak_min) / sigma
            weights[idx] = math.exp(-0.5 * z * z)
        return _apportion(weights, total)


class StaticArrivalModel:
    """
    Feste Ankünfte pro Minute, indiziert über die Flugnummer.

    Zu kurze Sequenzen werden mit Nullen aufgefüllt, zu lange abgeschnitten.
    Die Summe wird auf die Passagierzahl des Fluges begrenzt.
    """

    def __init__(self, counts_by_flight: Mapping[str, Sequence[int]]):
        self._counts: Dict[str, List[int]] = {
            str(k).strip(): [max(0, int(c)) for c in v] for k, v in counts_by_flight.items()
        }

    def arrivals_per_minute(
        self,
        flight: Flight,
        total_passengers: int,
        curve: ArrivalCurveConfig,
        span_min: int,
    ) -> List[int]:
        span = max(0, int(span_min))
        raw = self._counts.get(flight.flight_number, [])
        out = (raw + [0] * span)[:span]

        remaining = max(0, int(total_passengers))
        for i, c in enumerate(out):
            out[i] = min(c, remaining)
            remaining -= out[i]
        if sum(out) < sum(raw[:span]):
            logger.warning(
                "Ankünfte für %s auf %d Passagiere begrenzt", flight.flight_number, total_passengers
            )
        return out
