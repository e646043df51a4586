from __future__ import annotations
"""
Wegzeiten zwischen den Stationen.

Der `TransitRouter` rechnet Wegzeiten in ganze Simulationsintervalle um.
Ist ein `TravelTimeProvider` gesetzt, werden dessen Minuten verwendet; ein
Wert <= 0 bedeutet "unbekannt" und führt zurück auf die festen
Legacy-Verzögerungen. Ohne Provider gelten die Legacy-Werte direkt.

Der `DistanceTravelTimeProvider` leitet Minuten aus einer Distanztabelle in
Metern und einer Gehgeschwindigkeit ab.
"""
import logging
import math
from typing import Dict, Mapping, Optional, Protocol, Tuple

import pandas as pd

from terminal_data import DEFAULT_WALK_SPEED_MPS, MIN_WALK_SPEED_MPS

logger = logging.getLogger(__name__)

LEG_TICKET_CHECKPOINT = "ticket_checkpoint"
LEG_CHECKPOINT_HOLD = "checkpoint_hold"


class TravelTimeProvider(Protocol):
    def minutes_ticket_to_checkpoint(self, ticket_idx: int, checkpoint_idx: int) -> int:
        ...

    def minutes_checkpoint_to_hold(self, checkpoint_idx: int, hold_room_idx: int) -> int:
        ...


# =========================================================
# Distanzbasierter Provider
# =========================================================
class DistanceTravelTimeProvider:
    """
    Wegzeiten aus festen Gehdistanzen (Meter).

    Minuten = ceil(Meter / Geschwindigkeit / 60), mindestens `max(1, min_minutes)`.
    Für unbekannte Paare wird 0 geliefert, damit die Engine auf die
    Legacy-Verzögerung zurückfällt.
    """

    def __init__(
        self,
        ticket_to_checkpoint_m: Optional[Mapping[Tuple[int, int], float]] = None,
        checkpoint_to_hold_m: Optional[Mapping[Tuple[int, int], float]] = None,
        walk_speed_mps: float = DEFAULT_WALK_SPEED_MPS,
        min_minutes: int = 0,
    ):
        self.ticket_to_checkpoint_m: Dict[Tuple[int, int], float] = dict(ticket_to_checkpoint_m or {})
        self.checkpoint_to_hold_m: Dict[Tuple[int, int], float] = dict(checkpoint_to_hold_m or {})
        self.walk_speed_mps = max(MIN_WALK_SPEED_MPS, float(walk_speed_mps))
        self.min_minutes = max(0, int(min_minutes))

    def set_walk_speed(self, mps: float) -> None:
        self.walk_speed_mps = max(MIN_WALK_SPEED_MPS, float(mps))

    def minutes_ticket_to_checkpoint(self, ticket_idx: int, checkpoint_idx: int) -> int:
        return self._minutes(self.ticket_to_checkpoint_m.get((ticket_idx, checkpoint_idx)))

    def minutes_checkpoint_to_hold(self, checkpoint_idx: int, hold_room_idx: int) -> int:
        return self._minutes(self.checkpoint_to_hold_m.get((checkpoint_idx, hold_room_idx)))

    def _minutes(self, distance_m: Optional[float]) -> int:
        if distance_m is None or distance_m <= 0:
            return 0
        seconds = distance_m / self.walk_speed_mps
        minutes = int(math.ceil(seconds / 60.0))
        return max(1, self.min_minutes, minutes)

    @classmethod
    def from_dataframe(
        cls,
        df: pd.DataFrame,
        walk_speed_mps: float = DEFAULT_WALK_SPEED_MPS,
        min_minutes: int = 0,
    ) -> "DistanceTravelTimeProvider":
        """
        Baut den Provider aus einer Distanztabelle.

        Args:
            df: DataFrame mit den Spalten `leg` ("ticket_checkpoint" oder
                "checkpoint_hold"), `from_idx`, `to_idx` und `distance_m`.
            walk_speed_mps: Gehgeschwindigkeit in m/s.
            min_minutes: Minimale Wegzeit in Minuten.

        Raises:
            ValueError: Wenn Spalten fehlen.
        """
        needed = ["leg", "from_idx", "to_idx", "distance_m"]
        missing = set(needed) - set(df.columns)
        if missing:
            raise ValueError(f"Distanztabelle fehlt Spalten: {sorted(missing)}")

        to_cp: Dict[Tuple[int, int], float] = {}
        to_hold: Dict[Tuple[int, int], float] = {}
        clean = df[needed].dropna()
        for row in clean.itertuples(index=False):
            key = (int(row.from_idx), int(row.to_idx))
            leg = str(row.leg).strip().lower()
            if leg == LEG_TICKET_CHECKPOINT:
                to_cp[key] = float(row.distance_m)
            elif leg == LEG_CHECKPOINT_HOLD:
                to_hold[key] = float(row.distance_m)
            else:
                logger.warning("Unbekannter Wegabschnitt %r ignoriert", row.leg)
        return cls(to_cp, to_hold, walk_speed_mps=walk_speed_mps, min_minutes=min_minutes)


# =========================================================
# Router
# =========================================================
def minutes_to_intervals_ceil(minutes: float, interval_min: int) -> int:
    """Rechnet Minuten aufgerundet in Intervalle um (0 bleibt 0)."""
    m = max(0.0, float(minutes))
    if m == 0:
        return 0
    return int(math.ceil(m / max(1, int(interval_min))))


class TransitRouter:
    """Bestimmt die Anzahl Intervalle für die Wege Ticket→Kontrolle und Kontrolle→Warteraum."""

    def __init__(
        self,
        interval_min: int,
        transit_delay_min: int,
        hold_delay_min: int,
        provider: Optional[TravelTimeProvider] = None,
    ):
        self.interval_min = max(1, int(interval_min))
        self.transit_delay_min = max(0, int(transit_delay_min))
        self.hold_delay_min = max(0, int(hold_delay_min))
        self.provider = provider

    def ticket_to_checkpoint(self, ticket_idx: int, checkpoint_idx: int) -> int:
        legacy = minutes_to_intervals_ceil(self.transit_delay_min, self.interval_min)
        if self.provider is None:
            return max(1, legacy)
        minutes = self.provider.minutes_ticket_to_checkpoint(ticket_idx, checkpoint_idx)
        return self._from_provider(minutes, legacy)

    def checkpoint_to_hold(self, checkpoint_idx: int, hold_room_idx: int, walk_seconds: int) -> int:
        if self.provider is None:
            walk_minutes = max(0, walk_seconds) // 60 + (1 if max(0, walk_seconds) % 60 else 0)
            return max(1, minutes_to_intervals_ceil(walk_minutes, self.interval_min))
        minutes = self.provider.minutes_checkpoint_to_hold(checkpoint_idx, hold_room_idx)
        legacy = minutes_to_intervals_ceil(self.hold_delay_min, self.interval_min)
        return self._from_provider(minutes, legacy)

    def _from_provider(self, minutes: Optional[float], legacy_intervals: int) -> int:
        intervals = minutes_to_intervals_ceil(minutes or 0, self.interval_min)
        if intervals <= 0:
            intervals = legacy_intervals
        return max(1, intervals)
