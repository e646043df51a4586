from __future__ import annotations

import pandas as pd
import pytest

from arrivals import StaticArrivalModel
from engine import SimConfig, SimulationEngine
from flights import Flight
from stations import CheckpointConfig, HoldRoomConfig, TicketCounterConfig

T0 = pd.Timestamp("2025-06-01 08:00")


def make_flight(fln: str = "LH100", dep_offset_min: int = 60, seats: int = 100, fill: float = 1.0, close: int = 20) -> Flight:
    return Flight(
        flight_number=fln,
        departure=T0 + pd.Timedelta(minutes=dep_offset_min),
        seats=seats,
        fill=fill,
        boarding_close_min=close,
    )


def scenario_engine(checkpoint_rate_per_hour: float, seed: int = 7) -> SimulationEngine:
    """Ein Flug, 100 Pax mit 5/min in den Minuten 0-19, Ticket 5/min, Wege je 1 Intervall."""
    flight = make_flight()
    cfg = SimConfig(
        percent_in_person=1.0,
        ticket_counters=[TicketCounterConfig(id=1, rate_per_min=5.0)],
        checkpoints=[CheckpointConfig(id=1, rate_per_hour=checkpoint_rate_per_hour)],
        arrival_span_min=60,
        interval_min=1,
        transit_delay_min=1,
        hold_delay_min=1,
        seed=seed,
    )
    return SimulationEngine(
        cfg,
        [flight],
        hold_rooms=[HoldRoomConfig(id=1, walk_seconds=60)],
        arrival_model=StaticArrivalModel({"LH100": [5] * 20}),
    )


def live_pax_ids(engine: SimulationEngine) -> set:
    """Alle Passagiere in Live-Containern (Ticket-Historie nur, solange unterwegs)."""
    ids = set()
    for line in engine.ticket_lines:
        ids.update(p.pax_id for p in line)
    for i in range(len(engine.ticket_lines)):
        ids.update(p.pax_id for p in engine.visible_completed_ticket_line(i))
    for lines in (engine.checkpoint_lines, engine.completed_checkpoint_lines, engine.hold_room_lines):
        for line in lines:
            ids.update(p.pax_id for p in line)
    for pending in (engine.pending_to_checkpoint, engine.pending_to_hold):
        for bucket in pending.values():
            ids.update(p.pax_id for p in bucket)
    return ids


def all_live_passengers(engine: SimulationEngine) -> list:
    out = []
    for lines in (
        engine.ticket_lines, engine.completed_ticket_lines, engine.checkpoint_lines,
        engine.completed_checkpoint_lines, engine.hold_room_lines,
    ):
        for line in lines:
            out.extend(line)
    for pending in (engine.pending_to_checkpoint, engine.pending_to_hold):
        for bucket in pending.values():
            out.extend(bucket)
    out.extend(p for p in engine.counter_serving if p is not None)
    out.extend(p for p in engine.checkpoint_serving if p is not None)
    return out


def state_signature(engine: SimulationEngine) -> tuple:
    def ids(lines):
        return tuple(tuple(p.pax_id for p in line) for line in lines)

    def pending(m):
        return tuple(sorted((k, tuple(p.pax_id for p in v)) for k, v in m.items()))

    return (
        engine.current_interval,
        ids(engine.ticket_lines),
        ids(engine.completed_ticket_lines),
        ids(engine.checkpoint_lines),
        ids(engine.completed_checkpoint_lines),
        ids(engine.hold_room_lines),
        pending(engine.pending_to_checkpoint),
        pending(engine.pending_to_hold),
        tuple(engine.state.ticket.progress),
        tuple(engine.state.checkpoint.progress),
        tuple(sorted(engine.state.visible_ticket_ids)),
        tuple(sorted(engine.state.target_checkpoint.items())),
        dict(engine.ticket_queued_by_interval),
        dict(engine.checkpoint_queued_by_interval),
        dict(engine.hold_room_total_by_interval),
        dict(engine.held_ups_by_interval),
        engine.state.next_pax_id,
        tuple(f.flight_number for f in engine.flights_just_closed()),
    )


@pytest.fixture
def flight() -> Flight:
    return make_flight()


@pytest.fixture
def scenario_a() -> SimulationEngine:
    return scenario_engine(checkpoint_rate_per_hour=300.0)


@pytest.fixture
def scenario_b() -> SimulationEngine:
    return scenario_engine(checkpoint_rate_per_hour=60.0)
