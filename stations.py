from __future__ import annotations
"""
Konfiguration der Stationen: Ticketschalter, Sicherheitskontrollen und Warteräume.

Jede Konfiguration besitzt eine optionale Liste erlaubter Flugnummern. Eine
leere Liste bedeutet, dass die Station alle Flüge annimmt. Raten werden beim
Setzen auf Werte >= 0 begrenzt.
"""
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from flights import Flight
from terminal_data import DEFAULT_CHECKPOINT_RATE_PER_HOUR, DEFAULT_TICKET_RATE_PER_MIN


def _normalize_flight_numbers(values: Optional[Iterable]) -> List[str]:
    """Akzeptiert Flugnummern oder `Flight`-Objekte und liefert getrimmte, eindeutige Nummern."""
    out: List[str] = []
    for v in values or []:
        if v is None:
            continue
        num = v.flight_number if isinstance(v, Flight) else str(v)
        num = num.strip()
        if num and num not in out:
            out.append(num)
    return out


class _FlightFilter:
    """Gemeinsame Annahmelogik; erwartet ein Attribut `allowed_flights`."""

    allowed_flights: List[str]

    @property
    def accepts_all(self) -> bool:
        return not self.allowed_flights

    def accepts(self, flight: Optional[Flight]) -> bool:
        """Prüft, ob Passagiere des Fluges an dieser Station angenommen werden."""
        if flight is None or not flight.flight_number:
            return False
        if self.accepts_all:
            return True
        return flight.flight_number in self.allowed_flights

    def set_allowed_flights(self, flights: Optional[Iterable]) -> None:
        self.allowed_flights = _normalize_flight_numbers(flights)


# =========================================================
# Servicestationen
# =========================================================
@dataclass
class TicketCounterConfig(_FlightFilter):
    """Ein Ticketschalter. Die Rate wird in Passagieren pro Minute angegeben."""

    id: int
    rate_per_min: float = DEFAULT_TICKET_RATE_PER_MIN
    allowed_flights: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.rate_per_min = max(0.0, float(self.rate_per_min))
        self.allowed_flights = _normalize_flight_numbers(self.allowed_flights)

    @property
    def rate_per_hour(self) -> float:
        return self.rate_per_min * 60.0


@dataclass
class CheckpointConfig(_FlightFilter):
    """
    Eine Sicherheitskontrolle.

    Die Eingabe erfolgt in Passagieren pro Stunde (Branchenstandard), die
    Engine verbraucht `rate_per_min`.
    """

    id: int
    rate_per_hour: float = DEFAULT_CHECKPOINT_RATE_PER_HOUR
    allowed_flights: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.rate_per_hour = max(0.0, float(self.rate_per_hour))
        self.allowed_flights = _normalize_flight_numbers(self.allowed_flights)

    @property
    def rate_per_min(self) -> float:
        return self.rate_per_hour / 60.0


# =========================================================
# Warteraum
# =========================================================
@dataclass
class HoldRoomConfig(_FlightFilter):
    """
    Ein Warteraum (Gate Hold Room).

    `walk_seconds` ist die Gehzeit von der Sicherheitskontrolle zum Warteraum.
    Sie wird für die Wahl des nächstgelegenen Warteraums verwendet und als
    Wegzeit, solange kein TravelTimeProvider gesetzt ist.
    """

    id: int
    walk_seconds: int = 0
    allowed_flights: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.walk_seconds = max(0, int(self.walk_seconds))
        self.allowed_flights = _normalize_flight_numbers(self.allowed_flights)

    def set_walk_time(self, minutes: int, seconds: int = 0) -> None:
        m = max(0, int(minutes))
        s = max(0, min(59, int(seconds)))
        self.walk_seconds = m * 60 + s

    @property
    def walk_minutes_ceil(self) -> int:
        """Gehzeit in ganzen Minuten, aufgerundet."""
        s = max(0, self.walk_seconds)
        return s // 60 + (1 if s % 60 else 0)
