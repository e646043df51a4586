"""Integrationstests für komplette Läufe der Intervall-Simulation."""

from __future__ import annotations

import logging

import pandas as pd
import pytest

from arrivals import ArrivalCurveConfig, StaticArrivalModel
from conftest import all_live_passengers, live_pax_ids, make_flight, scenario_engine
from engine import SimConfig, SimulationEngine, run_simulation
from stations import CheckpointConfig, HoldRoomConfig, TicketCounterConfig


class TestScenarioA:

    def test_everyone_reaches_hold_room(self, scenario_a):
        engine = scenario_a
        for _ in range(25):
            engine.compute_next_interval()
        assert engine.current_interval == 25
        assert sum(len(room) for room in engine.hold_room_lines) == 100
        assert engine.summary()["missed"] == 0

    def test_last_passenger_enters_by_interval_21(self, scenario_a):
        engine = scenario_a
        for _ in range(22):
            engine.compute_next_interval()
        entries = [p.hold_room_entry_interval for p in engine.hold_room_lines[0]]
        assert len(entries) == 100
        assert max(entries) == 21
        assert [p.hold_room_sequence for p in engine.hold_room_lines[0]] == list(range(1, 101))

    def test_full_run_boards_everyone(self, scenario_a):
        scenario_a.run_all_intervals()
        summary = scenario_a.summary()
        assert scenario_a.total_intervals == 61
        assert summary["total"] == 100
        assert summary["boarded"] == 100
        assert summary["missed"] == 0
        assert scenario_a.hold_room_total_by_interval[61] == 0


class TestScenarioB:

    def test_checkpoint_queue_grows(self, scenario_b):
        scenario_b.run_all_intervals()
        queued = scenario_b.checkpoint_queued_by_interval
        assert queued[20] > queued[5] > 0

    def test_missed_after_close(self, scenario_b):
        scenario_b.run_all_intervals()
        summary = scenario_b.summary()
        assert summary["missed"] > 0
        assert summary["boarded"] + summary["missed"] == 100
        # Kontrolle 1/min ab Intervall 1, Zutritt nur vor Intervall 40
        assert summary["boarded"] == 38
        assert summary["missed"] == 62

    def test_flight_listed_as_just_closed(self, scenario_b):
        for _ in range(40):
            scenario_b.compute_next_interval()
        assert scenario_b.flights_just_closed() == []
        scenario_b.compute_next_interval()
        assert [f.flight_number for f in scenario_b.flights_just_closed()] == ["LH100"]
        # nach dem Schluss nur noch Passagiere im Warteraum
        assert all(len(line) == 0 for line in scenario_b.checkpoint_lines)
        assert all(len(line) == 0 for line in scenario_b.completed_ticket_lines)
        assert scenario_b.pending_to_hold == {}


class TestConservation:

    @pytest.mark.parametrize("rate", [60.0, 150.0, 300.0])
    def test_every_arrival_is_accounted_for(self, rate):
        engine = scenario_engine(checkpoint_rate_per_hour=rate)
        while engine.can_fast_forward():
            engine.compute_next_interval()
            tally = engine.metrics.tallies["LH100"]
            assert tally.arrived == len(live_pax_ids(engine)) + tally.missed + tally.boarded

    def test_missed_never_left_in_containers(self, scenario_b):
        while scenario_b.can_fast_forward():
            scenario_b.compute_next_interval()
            assert not any(p.missed for p in all_live_passengers(scenario_b))
            assert scenario_b.state.missed_ids == set()

    def test_two_flights_with_curve(self):
        flights = [make_flight("AB1", dep_offset_min=90), make_flight("AB2", dep_offset_min=150, seats=150, fill=0.8)]
        cfg = SimConfig(
            percent_in_person=0.4,
            ticket_counters=[TicketCounterConfig(id=1, rate_per_min=1.5), TicketCounterConfig(id=2, rate_per_min=0.75)],
            checkpoints=[CheckpointConfig(id=1, rate_per_hour=90.0), CheckpointConfig(id=2, rate_per_hour=45.0)],
            arrival_span_min=120,
            interval_min=2,
            transit_delay_min=3,
            hold_delay_min=4,
            curve=ArrivalCurveConfig(legacy_mode=False),
        )
        engine = SimulationEngine(cfg, flights)
        while engine.can_fast_forward():
            engine.compute_next_interval()
            tallies = engine.metrics.tallies
            arrived = sum(t.arrived for t in tallies.values())
            missed = sum(t.missed for t in tallies.values())
            boarded = sum(t.boarded for t in tallies.values())
            assert arrived == len(live_pax_ids(engine)) + missed + boarded
        assert sum(t.arrived for t in engine.metrics.tallies.values()) == 100 + 120


class TestRouting:

    def test_no_ticket_counters_folds_in_person_into_online(self):
        flight = make_flight()
        cfg = SimConfig(
            percent_in_person=0.8,
            checkpoints=[CheckpointConfig(id=1, rate_per_hour=600.0)],
            arrival_span_min=60,
            transit_delay_min=1,
        )
        engine = SimulationEngine(cfg, [flight], arrival_model=StaticArrivalModel({"LH100": [10] * 10}))
        engine.compute_next_interval()
        tally = engine.metrics.tallies["LH100"]
        assert tally.in_person == 0
        assert tally.online == 10
        assert engine.ticket_lines == []

    def test_in_person_split_rounds_half_up(self):
        flight = make_flight()
        cfg = SimConfig(
            percent_in_person=0.5,
            ticket_counters=[TicketCounterConfig(id=1, rate_per_min=0.0)],
            checkpoints=[CheckpointConfig(id=1, rate_per_hour=0.0)],
            arrival_span_min=60,
        )
        engine = SimulationEngine(cfg, [flight], arrival_model=StaticArrivalModel({"LH100": [5]}))
        engine.compute_next_interval()
        assert len(engine.ticket_lines[0]) == 3
        assert len(engine.checkpoint_lines[0]) == 2
        assert all(p.checkpoint_entry_interval == 0 for p in engine.checkpoint_lines[0])

    def test_shortest_line_lowest_index_on_tie(self):
        flight = make_flight()
        cfg = SimConfig(
            percent_in_person=1.0,
            ticket_counters=[TicketCounterConfig(id=i, rate_per_min=0.0) for i in (1, 2, 3)],
            checkpoints=[CheckpointConfig(id=1)],
            arrival_span_min=60,
        )
        engine = SimulationEngine(cfg, [flight], arrival_model=StaticArrivalModel({"LH100": [7]}))
        engine.compute_next_interval()
        assert [len(line) for line in engine.ticket_lines] == [3, 2, 2]

    def test_restricted_counter_only_takes_its_flight(self):
        f1, f2 = make_flight("AA1"), make_flight("BB2")
        cfg = SimConfig(
            percent_in_person=1.0,
            ticket_counters=[
                TicketCounterConfig(id=1, rate_per_min=0.0, allowed_flights=["AA1"]),
                TicketCounterConfig(id=2, rate_per_min=0.0, allowed_flights=["BB2"]),
            ],
            checkpoints=[CheckpointConfig(id=1)],
            arrival_span_min=60,
        )
        model = StaticArrivalModel({"AA1": [4], "BB2": [2]})
        engine = SimulationEngine(cfg, [f1, f2], arrival_model=model)
        engine.compute_next_interval()
        assert {p.flight.flight_number for p in engine.ticket_lines[0]} == {"AA1"}
        assert {p.flight.flight_number for p in engine.ticket_lines[1]} == {"BB2"}

    def test_ticketed_passenger_visible_until_checkpoint(self, scenario_a):
        scenario_a.compute_next_interval()
        visible = scenario_a.visible_completed_ticket_line(0)
        assert len(visible) == 5
        assert sum(len(b) for b in scenario_a.pending_to_checkpoint.values()) == 5
        scenario_a.compute_next_interval()
        ids_first_batch = {p.pax_id for p in visible}
        assert not ids_first_batch & {p.pax_id for p in scenario_a.visible_completed_ticket_line(0)}
        assert scenario_a.visible_completed_ticket_line(5) == []

    def test_late_arrival_is_missed(self):
        flight = make_flight()
        cfg = SimConfig(checkpoints=[CheckpointConfig(id=1)], arrival_span_min=60)
        model = StaticArrivalModel({"LH100": [0] * 45 + [3]})
        engine = SimulationEngine(cfg, [flight], arrival_model=model)
        engine.run_all_intervals()
        tally = engine.metrics.tallies["LH100"]
        assert tally.arrived == 3
        assert tally.missed == 3


class TestConfigurationClamping:

    def test_missing_checkpoints_get_fallback(self, caplog):
        with caplog.at_level(logging.WARNING):
            engine = SimulationEngine(SimConfig(checkpoints=[]), [make_flight()])
        assert len(engine.checkpoint_lines) == 1
        assert engine.state.checkpoint.rate_per_interval(0) == 0.0
        assert "Ersatzkontrolle" in caplog.text

    def test_percent_and_interval_clamped(self):
        engine = SimulationEngine(SimConfig(percent_in_person=1.7, interval_min=0), None)
        assert engine.percent_in_person == 1.0
        assert engine.interval_min == 1
        assert engine.total_intervals == 0
        assert len(engine.hold_room_lines) == 1

    def test_interval_arithmetic(self):
        flight = make_flight(dep_offset_min=0, close=15)
        engine = SimulationEngine(SimConfig(arrival_span_min=120, interval_min=5), [flight])
        assert engine.global_start == flight.departure - pd.Timedelta(minutes=120)
        assert engine.close_interval(flight) == (120 - 15) // 5
        assert engine.departure_interval(flight) == 24
        assert engine.total_intervals == 25

    def test_minute_table_and_curve_change(self):
        flight = make_flight()
        engine = SimulationEngine(SimConfig(arrival_span_min=60), [flight])
        # Legacy: 100 Pax gleichmäßig über 40 Minuten vor dem Schluss
        assert sum(engine.total_arrivals_at_minute(m) for m in range(60)) == 100
        assert engine.total_arrivals_at_minute(45) == 0
        engine.set_arrival_curve_config(ArrivalCurveConfig(legacy_mode=False, window_start_min=50, peak_min=40))
        assert engine.total_arrivals_at_minute(5) == 0
        assert sum(engine.total_arrivals_at_minute(m) for m in range(60)) == 100

    def test_arrival_history(self, scenario_a):
        for _ in range(3):
            scenario_a.compute_next_interval()
        assert scenario_a.arrival_history() == {"LH100": {0: 5, 1: 5, 2: 5}}


def test_run_simulation_returns_finished_engine():
    engine = run_simulation(
        [make_flight()],
        SimConfig(
            ticket_counters=[TicketCounterConfig(id=1, rate_per_min=2.0)],
            checkpoints=[CheckpointConfig(id=1, rate_per_hour=240.0)],
            arrival_span_min=90,
        ),
        hold_rooms=[HoldRoomConfig(id=1, walk_seconds=90)],
    )
    assert engine.current_interval == engine.total_intervals
    assert engine.summary()["total"] == 100
    assert not engine.can_fast_forward()


class FixedMinutesProvider:
    """Liefert für jedes Paar dieselben Minuten."""

    def __init__(self, to_checkpoint: int = 0, to_hold: int = 0):
        self.to_checkpoint = to_checkpoint
        self.to_hold = to_hold

    def minutes_ticket_to_checkpoint(self, ticket_idx, checkpoint_idx):
        return self.to_checkpoint

    def minutes_checkpoint_to_hold(self, checkpoint_idx, hold_room_idx):
        return self.to_hold


class TestTravelTimeProvider:

    def test_provider_minutes_set_checkpoint_arrival(self, scenario_a):
        scenario_a.set_travel_time_provider(FixedMinutesProvider(to_checkpoint=7))
        for _ in range(3):
            scenario_a.compute_next_interval()
        assert sorted(scenario_a.pending_to_checkpoint) == [7, 8, 9]
        assert all(len(b) == 5 for b in scenario_a.pending_to_checkpoint.values())
        assert scenario_a.checkpoint_queued_by_interval[3] == 0

    @pytest.mark.parametrize("to_hold", [0, -4])
    def test_unknown_minutes_fall_back_and_round_up(self, to_hold):
        cfg = SimConfig(
            percent_in_person=1.0,
            ticket_counters=[TicketCounterConfig(id=1, rate_per_min=5.0)],
            checkpoints=[CheckpointConfig(id=1, rate_per_hour=600.0)],
            arrival_span_min=60,
            interval_min=2,
            transit_delay_min=1,
            hold_delay_min=5,
        )
        engine = SimulationEngine(
            cfg,
            [make_flight()],
            hold_rooms=[HoldRoomConfig(id=1, walk_seconds=60)],
            arrival_model=StaticArrivalModel({"LH100": [2, 2, 2, 2]}),
        )
        engine.set_travel_time_provider(FixedMinutesProvider(to_checkpoint=3, to_hold=to_hold))

        # 3 Minuten bei 2-Minuten-Intervallen: 2 Intervalle
        engine.compute_next_interval()
        engine.compute_next_interval()
        assert sorted(engine.pending_to_checkpoint) == [2, 3]

        # Kontrolle in Intervall 2, Warteraum nach ceil(5 / 2) = 3 Intervallen
        engine.compute_next_interval()
        assert sorted(engine.pending_to_hold) == [5]
        assert len(engine.pending_to_hold[5]) == 4

    def test_provider_change_affects_only_later_service(self, scenario_a):
        scenario_a.compute_next_interval()
        scenario_a.compute_next_interval()
        assert sorted(scenario_a.pending_to_checkpoint) == [2]
        underway = {p.pax_id for p in scenario_a.pending_to_checkpoint[2]}

        scenario_a.set_travel_time_provider(FixedMinutesProvider(to_checkpoint=7))
        scenario_a.compute_next_interval()

        assert sorted(scenario_a.pending_to_checkpoint) == [9]
        # bereits unterwegs: Ankunft wie geplant, danach Warteraum über hold_delay_min
        assert {p.pax_id for p in scenario_a.pending_to_hold[3]} == underway
        assert all(p.checkpoint_entry_interval == 2 for p in scenario_a.pending_to_hold[3])

    def test_removing_provider_restores_fixed_delays(self, scenario_a):
        scenario_a.set_travel_time_provider(FixedMinutesProvider(to_checkpoint=7))
        scenario_a.compute_next_interval()
        scenario_a.set_travel_time_provider(None)
        scenario_a.compute_next_interval()
        assert sorted(scenario_a.pending_to_checkpoint) == [2, 7]


class TestCheckpointChoice:

    def test_target_uses_line_lengths_before_transit_arrivals(self):
        flight = make_flight()
        cfg = SimConfig(
            percent_in_person=1.0,
            ticket_counters=[TicketCounterConfig(id=1, rate_per_min=1.0)],
            checkpoints=[CheckpointConfig(id=1, rate_per_hour=0.0), CheckpointConfig(id=2, rate_per_hour=0.0)],
            arrival_span_min=60,
            transit_delay_min=1,
        )
        engine = SimulationEngine(cfg, [flight], arrival_model=StaticArrivalModel({"LH100": [1, 1]}))
        engine.compute_next_interval()
        first = engine.pending_to_checkpoint[1][0]
        assert engine.state.target_checkpoint[first.pax_id] == 0

        # Intervall 1: der zweite Passagier wird abgefertigt, bevor der erste Kontrolle 0 erreicht
        engine.compute_next_interval()
        second = engine.pending_to_checkpoint[2][0]
        assert [len(line) for line in engine.checkpoint_lines] == [1, 0]
        assert first.checkpoint_line == 0
        assert engine.state.target_checkpoint[second.pax_id] == 0


def test_curve_reset_to_legacy_default():
    engine = SimulationEngine(
        SimConfig(arrival_span_min=60, curve=ArrivalCurveConfig(legacy_mode=False, window_start_min=50, peak_min=40)),
        [make_flight()],
    )
    assert engine.total_arrivals_at_minute(5) == 0
    engine.set_arrival_curve_config(None)
    assert engine.curve == ArrivalCurveConfig.legacy_default()
    assert engine.total_arrivals_at_minute(5) > 0
    assert sum(engine.total_arrivals_at_minute(m) for m in range(60)) == 100
