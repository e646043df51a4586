from __future__ import annotations
"""
Generische Servicestation mit parallelen Schaltern (Ticket, Sicherheitskontrolle).

Jeder Schalter besitzt eine eigene FIFO-Warteschlange und einen
Fortschrittszähler. Pro Intervall wird die anteilige Kapazität addiert und
nur ganze Abfertigungen werden ausgeführt; der Rest wird ins nächste
Intervall übertragen. So geht an Intervallgrenzen keine Kapazität verloren.
"""
import copy
import math
from collections import deque
from typing import Callable, Deque, Iterable, List, Optional, Sequence, Set

from flights import Flight, Passenger


ServedCallback = Callable[[int, Passenger], None]
MissedCallback = Callable[[Passenger], None]


def _refill(target: List[Deque[Passenger]], source: Sequence[Iterable[Passenger]]) -> None:
    """Überschreibt Warteschlangen in-place, damit externe Referenzen gültig bleiben."""
    if len(target) != len(source):
        target[:] = [deque(s) for s in source]
        return
    for t, s in zip(target, source):
        t.clear()
        t.extend(s)


class ServiceStage:
    """
    Eine Station mit `n` parallelen Schaltern.

    Attributes:
        lines: Warteschlange pro Schalter.
        completed_lines: Abgefertigte Passagiere pro Schalter (Staging für den Weg zur nächsten Station).
        progress: Anteiliger Fortschritt pro Schalter, nach jedem Service-Schritt in [0, 1).
        serving: Zuletzt im aktuellen Intervall abgefertigter Passagier pro Schalter.
    """

    def __init__(self, name: str, configs: Sequence, interval_min: int):
        self.name = name
        self.configs = list(configs)
        self.interval_min = max(1, int(interval_min))

        n = len(self.configs)
        self.lines: List[Deque[Passenger]] = [deque() for _ in range(n)]
        self.completed_lines: List[Deque[Passenger]] = [deque() for _ in range(n)]
        self.progress: List[float] = [0.0] * n
        self.serving: List[Optional[Passenger]] = [None] * n

    def __len__(self) -> int:
        return len(self.configs)

    def __deepcopy__(self, memo):
        # Konfiguration ist konstant und wird geteilt
        clone = ServiceStage.__new__(ServiceStage)
        memo[id(self)] = clone
        clone.name = self.name
        clone.configs = self.configs
        clone.interval_min = self.interval_min
        clone.lines = copy.deepcopy(self.lines, memo)
        clone.completed_lines = copy.deepcopy(self.completed_lines, memo)
        clone.progress = list(self.progress)
        clone.serving = copy.deepcopy(self.serving, memo)
        return clone

    # ---------- Abfragen ----------
    def rate_per_interval(self, idx: int) -> float:
        if idx < 0 or idx >= len(self.configs):
            return 0.0
        return max(0.0, self.configs[idx].rate_per_min) * self.interval_min

    def queued(self) -> int:
        return sum(len(line) for line in self.lines)

    def eligible(self, flight: Flight) -> List[int]:
        """Alle Schalter, die den Flug annehmen; nimmt keiner an, sind alle zulässig."""
        allowed = [i for i, cfg in enumerate(self.configs) if cfg.accepts(flight)]
        return allowed or list(range(len(self.configs)))

    def pick_line(self, flight: Flight) -> int:
        """Zulässiger Schalter mit der kürzesten Warteschlange (bei Gleichstand der niedrigste Index)."""
        best = -1
        for i in self.eligible(flight):
            if best < 0 or len(self.lines[i]) < len(self.lines[best]):
                best = i
        return max(0, best)

    # ---------- Ablauf ----------
    def enqueue(self, idx: int, pax: Passenger) -> None:
        self.lines[idx].append(pax)

    def begin_interval(self) -> None:
        for i in range(len(self.serving)):
            self.serving[i] = None

    def serve(self, on_served: ServedCallback) -> int:
        """
        Führt den Service-Schritt für alle Schalter aus.

        Pro Schalter wird die Rate des Intervalls zum Fortschritt addiert und
        `floor(progress)` Passagiere werden abgefertigt. Bereits verpasste
        Passagiere werden dabei verworfen. Ist die Warteschlange leer, verfällt
        die restliche Kapazität dieses Intervalls.

        Args:
            on_served: Wird für jeden abgefertigten Passagier mit (Schalterindex, Passagier) aufgerufen.

        Returns:
            Anzahl der in diesem Intervall abgefertigten Passagiere.
        """
        served = 0
        for c in range(len(self.configs)):
            self.progress[c] += self.rate_per_interval(c)
            units = int(math.floor(self.progress[c]))
            self.progress[c] -= units

            for _ in range(units):
                pax = self._take_first_not_missed(self.lines[c])
                if pax is None:
                    break
                self.serving[c] = pax
                self.completed_lines[c].append(pax)
                on_served(c, pax)
                served += 1
        return served

    @staticmethod
    def _take_first_not_missed(line: Deque[Passenger]) -> Optional[Passenger]:
        while line:
            pax = line.popleft()
            if not pax.missed:
                return pax
        return None

    def remove_completed(self, pax: Passenger) -> bool:
        for line in self.completed_lines:
            for i, p in enumerate(line):
                if p is pax:
                    del line[i]
                    return True
        return False

    # ---------- Boarding-Schluss ----------
    def mark_flight_missed(self, flight: Flight, safe_ids: Set[int], mark: MissedCallback) -> None:
        """Markiert alle Passagiere des Fluges in Schlangen, Staging und Schaltern als verpasst (außer `safe_ids`)."""
        for lines in (self.lines, self.completed_lines):
            for line in lines:
                for p in line:
                    if p.flight == flight and p.pax_id not in safe_ids:
                        mark(p)
        for p in self.serving:
            if p is not None and p.flight == flight and p.pax_id not in safe_ids:
                mark(p)

    def clear_flight(self, flight: Flight) -> None:
        for lines in (self.lines, self.completed_lines):
            for line in lines:
                kept = [p for p in line if p.flight != flight]
                if len(kept) != len(line):
                    line.clear()
                    line.extend(kept)
        for i, p in enumerate(self.serving):
            if p is not None and p.flight == flight:
                self.serving[i] = None

    def purge_missed(self) -> int:
        """Entfernt alle verpassten Passagiere aus allen Containern der Station."""
        removed = 0
        for lines in (self.lines, self.completed_lines):
            for line in lines:
                kept = [p for p in line if not p.missed]
                removed += len(line) - len(kept)
                if len(kept) != len(line):
                    line.clear()
                    line.extend(kept)
        for i, p in enumerate(self.serving):
            if p is not None and p.missed:
                self.serving[i] = None
        return removed

    # ---------- Zustand ----------
    def reset(self) -> None:
        for line in self.lines:
            line.clear()
        for line in self.completed_lines:
            line.clear()
        self.progress[:] = [0.0] * len(self.configs)
        self.serving[:] = [None] * len(self.configs)

    def load(self, other: "ServiceStage") -> None:
        """Übernimmt den Zustand einer (kopierten) Station in-place."""
        _refill(self.lines, other.lines)
        _refill(self.completed_lines, other.completed_lines)
        self.progress[:] = list(other.progress)
        self.serving[:] = list(other.serving)
