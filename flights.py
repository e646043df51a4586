from __future__ import annotations
"""
Datenstrukturen für Flüge und Passagiere.

Ein `Flight` ist nach der Erzeugung unveränderlich und wird von allen seinen
Passagieren nur gelesen. Ein `Passenger` gehört immer genau dem Container
(Warteschlange, Staging-Liste, Warteraum), in dem er sich gerade befindet.
Zusätzlich enthält das Modul den Import einer Flugtabelle aus einem
pandas DataFrame.
"""
import logging
import math
from dataclasses import dataclass
from typing import List, Optional

import pandas as pd

from terminal_data import DEFAULT_BOARDING_CLOSE_MIN, DEFAULT_SEATS, DEFAULT_SEATS_BY_TYP4

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """Rundet kaufmännisch (0.5 wird aufgerundet), anders als Pythons `round`."""
    return int(math.floor(value + 0.5))


# =========================================================
# Flug
# =========================================================
@dataclass(frozen=True)
class Flight:
    """Ein abgehender Flug mit Abflugzeit, Sitzplätzen und Auslastung."""

    flight_number: str
    departure: pd.Timestamp
    seats: int
    fill: float
    # Minuten vor Abflug, ab denen der Warteraum geschlossen ist
    boarding_close_min: int = DEFAULT_BOARDING_CLOSE_MIN
    typ4: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "flight_number", str(self.flight_number).strip())
        object.__setattr__(self, "departure", pd.Timestamp(self.departure))
        object.__setattr__(self, "seats", max(0, int(self.seats)))
        object.__setattr__(self, "fill", max(0.0, float(self.fill)))
        object.__setattr__(self, "boarding_close_min", max(0, int(self.boarding_close_min)))

    @property
    def total_passengers(self) -> int:
        return round_half_up(self.seats * self.fill)

    def __deepcopy__(self, memo):
        # unveränderlich: Snapshots teilen sich dieselbe Instanz
        return self


# =========================================================
# Passagier
# =========================================================
@dataclass(eq=False)
class Passenger:
    """
    Ein einzelner Passagier auf dem Weg zum Warteraum.

    Alle Zeitstempel sind Intervall-Indizes der Engine. `missed` wird nur über
    `mark_missed()` gesetzt und nie zurückgenommen; der Warteraum-Index wird
    nur einmal vergeben.
    """

    pax_id: int
    flight: Flight
    arrival_interval: int
    in_person: bool
    missed: bool = False

    ticket_completion_interval: Optional[int] = None
    checkpoint_entry_interval: Optional[int] = None
    checkpoint_completion_interval: Optional[int] = None
    hold_room_entry_interval: Optional[int] = None

    checkpoint_line: Optional[int] = None
    assigned_hold_room_index: Optional[int] = None
    hold_room_sequence: Optional[int] = None

    def mark_missed(self) -> bool:
        """Markiert den Passagier als verpasst. Gibt True zurück, wenn sich der Status geändert hat."""
        if self.missed:
            return False
        self.missed = True
        return True

    def assign_hold_room(self, room_idx: int) -> None:
        if self.assigned_hold_room_index is None:
            self.assigned_hold_room_index = room_idx
        elif self.assigned_hold_room_index != room_idx:
            logger.warning(
                "Pax %s hat bereits Warteraum %s, Zuweisung %s ignoriert",
                self.pax_id, self.assigned_hold_room_index, room_idx,
            )


# =========================================================
# Import aus Flugtabellen
# =========================================================
def flights_from_dataframe(df: pd.DataFrame) -> List[Flight]:
    """
    Wandelt eine Flugtabelle in eine Liste von `Flight`-Objekten um.

    Pflichtspalten sind `FLN` (Flugnummer) und `DEP` (Abflugzeit). Optional
    werden `SEATS`, `FILL`, `CLOSE_MIN` und `Typ4` ausgewertet. Die
    Sitzplatzzahl folgt der Priorität SEATS > Typ4-Tabelle > Default.
    Zeilen ohne gültige Abflugzeit werden verworfen.

    Args:
        df: Der rohe DataFrame mit einer Zeile pro Flug.

    Returns:
        Die nach Abflugzeit sortierte Liste der Flüge.

    Raises:
        ValueError: Wenn Pflichtspalten fehlen.
    """
    needed = ["FLN", "DEP"]
    missing = set(needed) - set(df.columns)
    if missing:
        raise ValueError(f"Flugtabelle fehlt Spalten: {sorted(missing)}")

    out = df.copy()
    out["FLN"] = out["FLN"].astype(str).str.strip()
    out["DEP"] = pd.to_datetime(out["DEP"], errors="coerce")

    invalid = out["DEP"].isna()
    if invalid.any():
        logger.warning("%d Flüge ohne gültige Abflugzeit verworfen", int(invalid.sum()))
        out = out[~invalid]

    if "SEATS" in out.columns:
        out["SEATS"] = pd.to_numeric(out["SEATS"], errors="coerce")
    else:
        out["SEATS"] = pd.NA
    if "FILL" in out.columns:
        out["FILL"] = pd.to_numeric(out["FILL"], errors="coerce").fillna(1.0)
    else:
        out["FILL"] = 1.0
    if "CLOSE_MIN" in out.columns:
        out["CLOSE_MIN"] = pd.to_numeric(out["CLOSE_MIN"], errors="coerce").fillna(DEFAULT_BOARDING_CLOSE_MIN)
    else:
        out["CLOSE_MIN"] = DEFAULT_BOARDING_CLOSE_MIN

    flights: List[Flight] = []
    for _, r in out.sort_values("DEP").iterrows():
        typ4 = str(r["Typ4"]).strip() if "Typ4" in out.columns and pd.notna(r.get("Typ4")) else None

        # Sitzplätze: SEATS > Typ4 > Default
        if pd.notna(r["SEATS"]):
            seats = int(r["SEATS"])
        else:
            seats = DEFAULT_SEATS_BY_TYP4.get(typ4, DEFAULT_SEATS)

        flights.append(Flight(
            flight_number=r["FLN"],
            departure=r["DEP"],
            seats=seats,
            fill=float(r["FILL"]),
            boarding_close_min=int(r["CLOSE_MIN"]),
            typ4=typ4,
        ))
    return flights
