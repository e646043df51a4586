from __future__ import annotations
"""
Zuordnung der Flüge zu Warteräumen (Gate Hold Rooms).

Jeder Flug erhält bei der Konstruktion genau einen festen Warteraum: den
nächstgelegenen (kürzeste Gehzeit ab Kontrolle) unter allen Räumen, die den
Flug annehmen. Gleichstände werden über einen injizierten Zufallsgenerator
aufgelöst, damit Läufe mit gleichem Seed reproduzierbar bleiben.
"""
import copy
import logging
import random
from typing import Dict, List, Optional, Sequence, Set

from flights import Flight, Passenger
from stations import HoldRoomConfig

logger = logging.getLogger(__name__)


def default_hold_room_configs(flights: Sequence[Flight], hold_delay_min: int) -> List[HoldRoomConfig]:
    """Ein Warteraum pro Flug, der nur diesen Flug annimmt."""
    configs = []
    for i, f in enumerate(flights):
        cfg = HoldRoomConfig(id=i + 1, allowed_flights=[f.flight_number])
        cfg.set_walk_time(max(0, hold_delay_min), 0)
        configs.append(cfg)
    return configs


class HoldRoomAssignment:
    """
    Warteräume samt fester Flugzuordnung und einer Warteschlange pro Raum.

    Attributes:
        configs: Konfiguration pro Warteraum.
        lines: Passagiere, die sich aktuell im jeweiligen Warteraum befinden.
    """

    def __init__(
        self,
        configs: Optional[Sequence[HoldRoomConfig]],
        flights: Sequence[Flight],
        hold_delay_min: int,
        rng: random.Random,
    ):
        rooms = list(configs or [])
        if not rooms:
            rooms = default_hold_room_configs(flights, hold_delay_min)
        if not rooms:
            fallback = HoldRoomConfig(id=1)
            fallback.set_walk_time(max(0, hold_delay_min), 0)
            rooms.append(fallback)
            logger.warning("Keine Warteräume konfiguriert, Ersatzraum %s angelegt", fallback.id)

        self.configs: List[HoldRoomConfig] = rooms
        self.lines: List[List[Passenger]] = [[] for _ in rooms]
        self._chosen: Dict[str, int] = {}
        self._assign(flights, rng)

    def __len__(self) -> int:
        return len(self.configs)

    def __deepcopy__(self, memo):
        # Räume und Flugzuordnung stehen nach der Konstruktion fest
        clone = HoldRoomAssignment.__new__(HoldRoomAssignment)
        memo[id(self)] = clone
        clone.configs = self.configs
        clone._chosen = self._chosen
        clone.lines = copy.deepcopy(self.lines, memo)
        return clone

    def _assign(self, flights: Sequence[Flight], rng: random.Random) -> None:
        for f in flights:
            candidates: List[int] = []
            best_seconds = None
            for r, cfg in enumerate(self.configs):
                if not cfg.accepts(f):
                    continue
                ws = max(0, cfg.walk_seconds)
                if best_seconds is None or ws < best_seconds:
                    best_seconds = ws
                    candidates = [r]
                elif ws == best_seconds:
                    candidates.append(r)

            if candidates:
                chosen = candidates[0] if len(candidates) == 1 else rng.choice(candidates)
            else:
                # kein Raum nimmt den Flug explizit an: erster "alle Flüge"-Raum, sonst Raum 0
                chosen = next((r for r, cfg in enumerate(self.configs) if cfg.accepts_all), 0)
                logger.warning("Kein Warteraum für %s, verwende Raum %d", f.flight_number, chosen)

            self._chosen[f.flight_number] = min(max(chosen, 0), len(self.configs) - 1)

    def chosen_index(self, flight: Optional[Flight]) -> int:
        if flight is None:
            return 0
        return self._chosen.get(flight.flight_number, 0)

    def walk_seconds(self, room_idx: int) -> int:
        return max(0, self.configs[room_idx].walk_seconds)

    # ---------- Belegung ----------
    def admit(self, pax: Passenger, interval: int) -> int:
        """Nimmt den Passagier in seinen Warteraum auf und vergibt die Sequenznummer."""
        room_idx = pax.assigned_hold_room_index
        if room_idx is None:
            room_idx = self.chosen_index(pax.flight)
            pax.assign_hold_room(room_idx)
        room_idx = min(max(room_idx, 0), len(self.lines) - 1)

        room = self.lines[room_idx]
        pax.hold_room_entry_interval = interval
        pax.hold_room_sequence = len(room) + 1
        room.append(pax)
        return room_idx

    def safe_ids(self, flight: Flight) -> Set[int]:
        """Passagiere des Fluges, die sich bereits in seinem zugewiesenen Warteraum befinden."""
        room = self.lines[min(self.chosen_index(flight), len(self.lines) - 1)]
        return {p.pax_id for p in room if p.flight == flight}

    def clear_flight(self, flight: Flight) -> int:
        """Leert alle Warteräume vom Flug (Abflug). Gibt die Anzahl der entfernten Passagiere zurück."""
        removed = 0
        for room in self.lines:
            kept = [p for p in room if p.flight != flight]
            removed += len(room) - len(kept)
            room[:] = kept
        return removed

    def purge_missed(self) -> None:
        for room in self.lines:
            room[:] = [p for p in room if not p.missed]

    def total(self) -> int:
        return sum(len(room) for room in self.lines)

    def reset(self) -> None:
        for room in self.lines:
            room.clear()

    def load(self, other: "HoldRoomAssignment") -> None:
        if len(self.lines) != len(other.lines):
            self.lines[:] = [list(room) for room in other.lines]
            return
        for room, src in zip(self.lines, other.lines):
            room[:] = list(src)
