from __future__ import annotations
"""
Boarding-Schluss und Abflug.

Der `BoardingCloseMonitor` berechnet für jeden Flug das Intervall des
Boarding-Schlusses und des Abflugs relativ zum globalen Simulationsstart.
Beim Boarding-Schluss werden alle Passagiere des Fluges, die noch nicht in
ihrem Warteraum sind, in allen Containern als verpasst markiert. Beim Abflug
wird der Warteraum geleert. Am Ende jedes Intervalls entfernt eine globale
Bereinigung alle verpassten Passagiere.
"""
import logging
from typing import Callable, Dict, List, Sequence, Set

import pandas as pd

from flights import Flight, Passenger

logger = logging.getLogger(__name__)

MarkFn = Callable[[Passenger], None]


def departure_minute(flight: Flight, global_start: pd.Timestamp) -> int:
    """Minuten vom globalen Start bis zum Abflug (abgerundet, nie negativ)."""
    delta = (flight.departure - global_start).total_seconds() / 60.0
    return max(0, int(delta // 1))


def close_interval_for(flight: Flight, global_start: pd.Timestamp, interval_min: int) -> int:
    dep_min = departure_minute(flight, global_start)
    return max(0, (dep_min - flight.boarding_close_min) // max(1, interval_min))


def departure_interval_for(flight: Flight, global_start: pd.Timestamp, interval_min: int) -> int:
    return departure_minute(flight, global_start) // max(1, interval_min)


def sweep_pending(
    pending: Dict[int, List[Passenger]],
    flight: Flight,
    safe_ids: Set[int],
    mark: MarkFn,
    targets: Dict[int, int] | None = None,
) -> int:
    """
    Entfernt die Passagiere eines Fluges aus einer Pending-Map und markiert sie als verpasst.

    Leere Buckets werden anschließend entfernt. Ist `targets` angegeben,
    wird auch die Ziel-Kontrolle der entfernten Passagiere gelöscht.

    Returns:
        Anzahl der entfernten Einträge.
    """
    removed = 0
    for key in list(pending.keys()):
        kept = []
        for p in pending[key]:
            if p.flight == flight and p.pax_id not in safe_ids:
                mark(p)
                if targets is not None:
                    targets.pop(p.pax_id, None)
                removed += 1
            else:
                kept.append(p)
        if kept:
            pending[key] = kept
        else:
            del pending[key]
    return removed


def purge_pending(pending: Dict[int, List[Passenger]], targets: Dict[int, int] | None = None) -> None:
    for key in list(pending.keys()):
        kept = [p for p in pending[key] if not p.missed]
        if targets is not None:
            for p in pending[key]:
                if p.missed:
                    targets.pop(p.pax_id, None)
        if kept:
            pending[key] = kept
        else:
            del pending[key]


def clear_flight_pending(pending: Dict[int, List[Passenger]], flight: Flight, targets: Dict[int, int] | None = None) -> None:
    for key in list(pending.keys()):
        kept = [p for p in pending[key] if p.flight != flight]
        if targets is not None:
            for p in pending[key]:
                if p.flight == flight:
                    targets.pop(p.pax_id, None)
        if kept:
            pending[key] = kept
        else:
            del pending[key]


# =========================================================
# Monitor
# =========================================================
class BoardingCloseMonitor:
    """
    Kennt Boarding-Schluss und Abflug aller Flüge und führt die zugehörigen Bereinigungen aus.

    Die Methoden arbeiten auf einem `EngineState` (siehe `snapshots.py`),
    damit die Operationen nach einem Restore auf dem aktuellen Zustand laufen.
    """

    def __init__(self, flights: Sequence[Flight], global_start: pd.Timestamp, interval_min: int):
        self.interval_min = max(1, int(interval_min))
        self.global_start = global_start
        self.close_interval: Dict[str, int] = {}
        self.departure_interval: Dict[str, int] = {}
        self._flights = list(flights)
        for f in self._flights:
            self.close_interval[f.flight_number] = close_interval_for(f, global_start, self.interval_min)
            self.departure_interval[f.flight_number] = departure_interval_for(f, global_start, self.interval_min)

    def is_closed(self, flight: Flight, interval: int) -> bool:
        return interval >= self.close_interval.get(flight.flight_number, 0)

    def closing_at(self, interval: int) -> List[Flight]:
        return [f for f in self._flights if self.close_interval[f.flight_number] == interval]

    def departing_at(self, interval: int) -> List[Flight]:
        return [f for f in self._flights if self.departure_interval[f.flight_number] == interval]

    def total_intervals(self) -> int:
        return max(self.departure_interval.values(), default=-1) + 1

    # ---------- Boarding-Schluss ----------
    def close_flight(self, state, flight: Flight, mark: MarkFn) -> None:
        """
        Boarding-Schluss für einen Flug.

        Sicher sind nur Passagiere, die sich bereits im zugewiesenen Warteraum
        des Fluges befinden. Alle anderen werden in Schlangen, Staging,
        Pending-Maps und Schaltern als verpasst markiert.
        """
        safe = state.hold.safe_ids(flight)
        state.ticket.mark_flight_missed(flight, safe, mark)
        state.checkpoint.mark_flight_missed(flight, safe, mark)
        n_cp = sweep_pending(state.pending_to_checkpoint, flight, safe, mark, state.target_checkpoint)
        n_hold = sweep_pending(state.pending_to_hold, flight, safe, mark)
        state.just_closed.append(flight)
        logger.debug(
            "Boarding-Schluss %s: %d sicher, %d/%d aus Pending entfernt",
            flight.flight_number, len(safe), n_cp, n_hold,
        )

    def depart_flight(self, state, flight: Flight) -> int:
        boarded = state.hold.clear_flight(flight)
        logger.debug("Abflug %s: %d Passagiere an Bord", flight.flight_number, boarded)
        return boarded

    # ---------- Bereinigung am Intervallende ----------
    def clear_non_hold_areas(self, state, flight: Flight) -> None:
        """Entfernt verbleibende Passagiere eines geschlossenen Fluges außerhalb der Warteräume."""
        state.ticket.clear_flight(flight)
        state.checkpoint.clear_flight(flight)
        clear_flight_pending(state.pending_to_checkpoint, flight, state.target_checkpoint)
        clear_flight_pending(state.pending_to_hold, flight)

    @staticmethod
    def purge_missed(state) -> None:
        """Entfernt alle verpassten Passagiere aus allen Containern."""
        state.ticket.purge_missed()
        state.checkpoint.purge_missed()
        state.hold.purge_missed()
        purge_pending(state.pending_to_checkpoint, state.target_checkpoint)
        purge_pending(state.pending_to_hold)
        missed_ids = state.missed_ids
        state.visible_ticket_ids.difference_update(missed_ids)
        for pid in missed_ids:
            state.target_checkpoint.pop(pid, None)
        missed_ids.clear()
