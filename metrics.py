from __future__ import annotations
"""
Kennzahlen der Intervall-Simulation.

Gesammelt werden vier Zeitreihen (Ticket-Schlange, Kontroll-Schlange,
Belegung der Warteräume, aufgehaltene Passagiere), ein Flussprotokoll pro
Intervall und Flug sowie Zähler pro Flug. Zeitreihen und Flussprotokoll
wachsen mit jedem Intervall; ein Snapshot hält davon nur den Anteil seines
eigenen Intervalls (`slice_at`), die Live-Kennzahlen werden bei der
Navigation gekürzt (`truncate`) bzw. aus den Snapshots ergänzt (`merge`).
"""
import dataclasses
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict

import pandas as pd

FLOW_KEYS = ["arrivals", "enqueued_ticket", "ticketed", "arrived_checkpoint", "passed_checkpoint"]

SERIES = (
    "ticket_queued_by_interval",
    "checkpoint_queued_by_interval",
    "hold_room_total_by_interval",
    "held_ups_by_interval",
)


def _drop_after(d: dict, interval: int) -> None:
    # Schlüssel werden aufsteigend eingefügt, daher genügt popitem() vom Ende
    while d and next(reversed(d)) > interval:
        d.popitem()


@dataclass
class FlightTally:
    """Zähler eines Fluges über den gesamten Lauf."""

    arrived: int = 0
    in_person: int = 0
    online: int = 0
    missed: int = 0
    boarded: int = 0


@dataclass
class IntervalMetrics:
    ticket_queued_by_interval: Dict[int, int] = field(default_factory=dict)
    checkpoint_queued_by_interval: Dict[int, int] = field(default_factory=dict)
    hold_room_total_by_interval: Dict[int, int] = field(default_factory=dict)
    held_ups_by_interval: Dict[int, int] = field(default_factory=dict)

    # ein Eintrag pro simuliertem Intervall: Flugnummer -> Zähler
    flow: Dict[int, Dict[str, Counter]] = field(default_factory=dict)
    tallies: Dict[str, FlightTally] = field(default_factory=dict)

    # ---------- Fluss ----------
    def count(self, interval: int, flight_number: str, key: str, n: int = 1) -> None:
        if n <= 0:
            return
        per_flight = self.flow.setdefault(interval, {})
        per_flight.setdefault(flight_number, Counter())[key] += n

    def tally(self, flight_number: str) -> FlightTally:
        return self.tallies.setdefault(flight_number, FlightTally())

    def drop_interval(self, interval: int) -> None:
        """Verwirft das Flussprotokoll eines Intervalls, bevor es neu berechnet wird."""
        self.flow.pop(interval, None)

    # ---------- Snapshot-Anteile ----------
    def slice_at(self, interval: int) -> "IntervalMetrics":
        """
        Der Anteil der Kennzahlen, den der Zustand zu Beginn von `interval` selbst beiträgt.

        Das sind die vier Zeitreihenwerte bei `interval`, der Flusseintrag des
        Intervalls davor und Kopien der Zähler pro Flug. Die Größe hängt nicht
        von der Anzahl bereits berechneter Intervalle ab.
        """
        part = IntervalMetrics(tallies={k: dataclasses.replace(v) for k, v in self.tallies.items()})
        for name in SERIES:
            src = getattr(self, name)
            if interval in src:
                getattr(part, name)[interval] = src[interval]
        prev = self.flow.get(interval - 1)
        if prev is not None:
            part.flow[interval - 1] = {fln: Counter(c) for fln, c in prev.items()}
        return part

    def truncate(self, interval: int) -> None:
        """Verwirft Zeitreihen nach `interval` und Flusseinträge ab `interval`."""
        for name in SERIES:
            _drop_after(getattr(self, name), interval)
        _drop_after(self.flow, interval - 1)

    def merge(self, part: "IntervalMetrics") -> None:
        """Übernimmt Zeitreihen- und Flusseinträge eines Snapshot-Anteils (ohne Zähler)."""
        for name in SERIES:
            getattr(self, name).update(getattr(part, name))
        for interval, per_flight in part.flow.items():
            self.flow[interval] = {fln: Counter(c) for fln, c in per_flight.items()}

    def load_tallies(self, part: "IntervalMetrics") -> None:
        self.tallies.clear()
        self.tallies.update({k: dataclasses.replace(v) for k, v in part.tallies.items()})

    # ---------- Zeitreihen ----------
    def record_totals(self, interval: int, ticket_queued: int, checkpoint_queued: int, hold_total: int) -> None:
        self.ticket_queued_by_interval[interval] = ticket_queued
        self.checkpoint_queued_by_interval[interval] = checkpoint_queued
        self.hold_room_total_by_interval[interval] = hold_total

    def record_held_ups(self, interval: int, held_ups: int) -> None:
        self.held_ups_by_interval[interval] = held_ups

    def arrival_history(self) -> Dict[str, Dict[int, int]]:
        """Ankünfte pro Flug und Intervall."""
        out: Dict[str, Dict[int, int]] = {}
        for interval in sorted(self.flow):
            for fln, c in self.flow[interval].items():
                if c["arrivals"]:
                    out.setdefault(fln, {})[interval] = c["arrivals"]
        return out

    # ---------- DataFrames ----------
    def to_frame(self) -> pd.DataFrame:
        """Zeitreihen als DataFrame mit einer Zeile pro Intervall."""
        intervals = sorted(
            set(self.ticket_queued_by_interval)
            | set(self.checkpoint_queued_by_interval)
            | set(self.hold_room_total_by_interval)
            | set(self.held_ups_by_interval)
        )
        rows = []
        for i in intervals:
            rows.append({
                "interval": i,
                "ticket_queued": self.ticket_queued_by_interval.get(i, 0),
                "checkpoint_queued": self.checkpoint_queued_by_interval.get(i, 0),
                "hold_room_total": self.hold_room_total_by_interval.get(i, 0),
                "held_ups": self.held_ups_by_interval.get(i, 0),
            })
        return pd.DataFrame(
            rows, columns=["interval", "ticket_queued", "checkpoint_queued", "hold_room_total", "held_ups"]
        )

    def flow_frame(self) -> pd.DataFrame:
        """Flussprotokoll als DataFrame mit einer Zeile pro (Intervall, Flug)."""
        rows = []
        for interval in sorted(self.flow):
            for fln in sorted(self.flow[interval]):
                c = self.flow[interval][fln]
                row = {"interval": interval, "flight": fln}
                row.update({k: int(c.get(k, 0)) for k in FLOW_KEYS})
                rows.append(row)
        return pd.DataFrame(rows, columns=["interval", "flight"] + FLOW_KEYS)

    # ---------- Zusammenfassung ----------
    def summary(self) -> dict:
        """
        Erstellt eine zusammenfassende Statistik über alle Flüge.

        Returns:
            Ein Dictionary mit Gesamtzahlen, einer Tabelle pro Flug und der
            Verteilung der Endzustände (jeweils als List[dict]).
        """
        total = sum(t.arrived for t in self.tallies.values())

        def pct(n: int, base: int) -> float:
            return (100.0 * n / base) if base else 0.0

        table_by_flight = []
        for fln, t in sorted(self.tallies.items()):
            table_by_flight.append({
                "flight": fln,
                "arrived": t.arrived,
                "in_person": t.in_person,
                "online": t.online,
                "boarded": t.boarded,
                "missed": t.missed,
                "missed_pct": round(pct(t.missed, t.arrived), 1),
            })

        c_status = Counter()
        for t in self.tallies.values():
            c_status["boarded"] += t.boarded
            c_status["missed"] += t.missed
            c_status["in_terminal"] += t.arrived - t.boarded - t.missed

        table_by_status = []
        for status, n in sorted(c_status.items(), key=lambda x: (-x[1], x[0])):
            table_by_status.append({
                "status": status,
                "count": n,
                "share_pct": round(pct(n, total), 1),
            })

        return {
            "total": total,
            "boarded": c_status["boarded"],
            "missed": c_status["missed"],
            "by_flight": table_by_flight,
            "by_status": table_by_status,
        }
