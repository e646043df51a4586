from __future__ import annotations
"""
Aufbau einer Engine aus einem Layout mit festen Gehdistanzen.

Die Fabrik erzeugt Standard-Stationen (Ticketschalter mit 60 Pax/h,
Kontrollen mit 180 Pax/h) und Warteräume, die alle Flüge annehmen. Die
Gehzeit jedes Warteraums wird aus dem TravelTimeProvider vorbelegt, damit
die Warteraum-Zuordnung zu den tatsächlichen Wegzeiten passt.
"""
import logging
import random
from typing import List, Optional, Sequence

from arrivals import ArrivalCurveConfig, ArrivalModel
from engine import SimConfig, SimulationEngine
from flights import Flight
from stations import CheckpointConfig, HoldRoomConfig, TicketCounterConfig
from terminal_data import (
    DEFAULT_HOLD_DELAY_MIN, DEFAULT_TRANSIT_DELAY_MIN,
    FACTORY_CHECKPOINT_RATE_PER_HOUR, FACTORY_TICKET_RATE_PER_HOUR,
)
from transit import TravelTimeProvider

logger = logging.getLogger(__name__)


def build_ticket_counters(n: int, rate_per_hour: float = FACTORY_TICKET_RATE_PER_HOUR) -> List[TicketCounterConfig]:
    per_min = max(0.0, rate_per_hour) / 60.0
    return [TicketCounterConfig(id=i + 1, rate_per_min=per_min) for i in range(n)]


def build_checkpoints(n: int, rate_per_hour: float = FACTORY_CHECKPOINT_RATE_PER_HOUR) -> List[CheckpointConfig]:
    return [CheckpointConfig(id=i + 1, rate_per_hour=rate_per_hour) for i in range(n)]


def build_hold_rooms(n: int, provider: TravelTimeProvider) -> List[HoldRoomConfig]:
    """Warteräume für alle Flüge; Gehzeit ab Kontrolle 0 laut Provider, sonst Fallback."""
    rooms = []
    for i in range(n):
        room = HoldRoomConfig(id=i + 1)
        minutes = provider.minutes_checkpoint_to_hold(0, i)
        if minutes <= 0:
            minutes = DEFAULT_HOLD_DELAY_MIN
        room.set_walk_time(minutes, 0)
        rooms.append(room)
    return rooms


def build_distance_engine(
    provider: TravelTimeProvider,
    n_ticket: int,
    n_checkpoint: int,
    n_hold: int,
    percent_in_person: float,
    flights: Optional[Sequence[Flight]],
    curve_cfg: Optional[ArrivalCurveConfig],
    span: int,
    interval: int,
    walk_speed_mps: Optional[float] = None,
    arrival_model: Optional[ArrivalModel] = None,
    seed: int = 42,
) -> SimulationEngine:
    """
    Baut eine vollständig konfigurierte Engine für ein Layout.

    Args:
        provider: Liefert die Wegzeiten zwischen den Stationen.
        n_ticket: Anzahl Ticketschalter (mindestens 1).
        n_checkpoint: Anzahl Sicherheitskontrollen (mindestens 1).
        n_hold: Anzahl Warteräume (mindestens 1).
        percent_in_person: Anteil der Passagiere mit Ticketschalter (0..1).
        flights: Die zu simulierenden Flüge.
        curve_cfg: Optionale Ankunftskurve.
        span: Länge des Ankunftsfensters in Minuten.
        interval: Intervalllänge in Minuten.
        walk_speed_mps: Setzt die Gehgeschwindigkeit am Provider, falls dieser das unterstützt.
        arrival_model: Optionales Ankunftsmodell.
        seed: Seed für die Warteraum-Zuordnung.

    Returns:
        Die Engine im Zustand vor dem ersten Intervall.
    """
    n_ticket, n_checkpoint, n_hold = max(1, n_ticket), max(1, n_checkpoint), max(1, n_hold)

    if walk_speed_mps is not None:
        set_speed = getattr(provider, "set_walk_speed", None)
        if set_speed is not None:
            set_speed(walk_speed_mps)
        else:
            logger.warning("Provider %s unterstützt keine Gehgeschwindigkeit", type(provider).__name__)

    cfg = SimConfig(
        percent_in_person=percent_in_person,
        ticket_counters=build_ticket_counters(n_ticket),
        checkpoints=build_checkpoints(n_checkpoint),
        arrival_span_min=span,
        interval_min=interval,
        transit_delay_min=DEFAULT_TRANSIT_DELAY_MIN,
        hold_delay_min=DEFAULT_HOLD_DELAY_MIN,
        seed=seed,
    )
    engine = SimulationEngine(
        cfg,
        list(flights or []),
        hold_rooms=build_hold_rooms(n_hold, provider),
        arrival_model=arrival_model,
        rng=random.Random(seed),
    )
    if curve_cfg is not None:
        engine.set_arrival_curve_config(curve_cfg)
    engine.set_travel_time_provider(provider)
    return engine
