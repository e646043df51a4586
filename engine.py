from __future__ import annotations
"""
Kernmodul der Simulations-Engine.

Dieses Modul enthält die zentrale Logik der Intervall-Simulation des
Passagierflusses im Terminal: Ticketschalter (optional), Sicherheitskontrolle
und Warteraum. Die Zeit läuft in festen Intervallen; pro Intervall werden
Ankünfte eingespeist, die Stationen bedient, Wege zwischen den Stationen
aufgelöst und der Boarding-Schluss überwacht. Nach jedem Intervall wird ein
Snapshot abgelegt, über den vor- und zurücknavigiert werden kann, ohne neu
zu rechnen.
"""
import dataclasses
import logging
import random
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Sequence

import pandas as pd

from arrivals import ArrivalCurveConfig, ArrivalModel, CurveArrivalModel
from boarding import BoardingCloseMonitor, departure_minute
from flights import Flight, Passenger, round_half_up
from hold_rooms import HoldRoomAssignment
from metrics import IntervalMetrics
from service_stage import ServiceStage
from snapshots import EngineState, SnapshotManager
from stations import CheckpointConfig, HoldRoomConfig, TicketCounterConfig
from terminal_data import (
    DEFAULT_ARRIVAL_SPAN_MIN, DEFAULT_HOLD_DELAY_MIN, DEFAULT_INTERVAL_MIN, DEFAULT_TRANSIT_DELAY_MIN,
)
from transit import TransitRouter, TravelTimeProvider

logger = logging.getLogger(__name__)


# =========================================================
# Datenstrukturen: Konfiguration
# =========================================================
@dataclass
class SimConfig:
    """Datenklasse zur Speicherung aller Konfigurationsparameter für einen Simulationslauf."""

    # Anteil der Passagiere, die am Ticketschalter einchecken (0..1)
    percent_in_person: float = 0.5

    # Stationen
    ticket_counters: List[TicketCounterConfig] = field(default_factory=list)
    checkpoints: List[CheckpointConfig] = field(default_factory=list)

    # Zeitraster [Minuten]
    arrival_span_min: int = DEFAULT_ARRIVAL_SPAN_MIN
    interval_min: int = DEFAULT_INTERVAL_MIN

    # Fallback-Wegzeiten [Minuten]
    transit_delay_min: int = DEFAULT_TRANSIT_DELAY_MIN
    hold_delay_min: int = DEFAULT_HOLD_DELAY_MIN

    # Ankunftskurve
    curve: ArrivalCurveConfig = field(default_factory=ArrivalCurveConfig.legacy_default)

    # Seed für die Warteraum-Zuordnung bei Gleichstand
    seed: int = 42


def _normalize_flights(flights: Optional[Sequence[Flight]]) -> List[Flight]:
    out: List[Flight] = []
    seen = set()
    for f in flights or []:
        if f is None:
            continue
        if f.flight_number in seen:
            logger.warning("Doppelte Flugnummer %s ignoriert", f.flight_number)
            continue
        seen.add(f.flight_number)
        out.append(f)
    return sorted(out, key=lambda f: (f.departure, f.flight_number))


# =========================================================
# Engine
# =========================================================
class SimulationEngine:
    """
    Diskrete Intervall-Simulation des Passagierflusses.

    Der veränderliche Zustand liegt vollständig in `self.state`. Alle
    Zugriffsmethoden liefern die Live-Container per Referenz; sie dürfen von
    außen nicht verändert werden.
    """

    def __init__(
        self,
        cfg: SimConfig,
        flights: Optional[Sequence[Flight]],
        hold_rooms: Optional[Sequence[HoldRoomConfig]] = None,
        arrival_model: Optional[ArrivalModel] = None,
        rng: Optional[random.Random] = None,
    ):
        self.cfg = cfg
        self.flights = _normalize_flights(flights)
        self.rng = rng if rng is not None else random.Random(cfg.seed)

        self.interval_min = max(1, int(cfg.interval_min))
        if self.interval_min != cfg.interval_min:
            logger.warning("Intervalllänge %s auf %d begrenzt", cfg.interval_min, self.interval_min)
        self.arrival_span_min = max(0, int(cfg.arrival_span_min))
        self.percent_in_person = min(1.0, max(0.0, float(cfg.percent_in_person)))
        if self.percent_in_person != cfg.percent_in_person:
            logger.warning("Anteil Ticketschalter %s auf %.2f begrenzt", cfg.percent_in_person, self.percent_in_person)

        ticket_cfgs = list(cfg.ticket_counters or [])
        checkpoint_cfgs = list(cfg.checkpoints or [])
        if not checkpoint_cfgs:
            checkpoint_cfgs = [CheckpointConfig(id=1, rate_per_hour=0.0)]
            logger.warning("Keine Sicherheitskontrolle konfiguriert, Ersatzkontrolle mit Rate 0 angelegt")

        if self.flights:
            first_dep = min(f.departure for f in self.flights)
            self.global_start = first_dep - pd.Timedelta(minutes=self.arrival_span_min)
        else:
            self.global_start = pd.Timestamp("1970-01-01")

        self.arrival_model: ArrivalModel = arrival_model if arrival_model is not None else CurveArrivalModel()
        self.curve = self._copy_curve(cfg.curve)
        self.router = TransitRouter(self.interval_min, cfg.transit_delay_min, cfg.hold_delay_min)
        self.monitor = BoardingCloseMonitor(self.flights, self.global_start, self.interval_min)
        self.total_intervals = self.monitor.total_intervals()

        self.minute_arrivals: Dict[str, Dict[int, int]] = {}
        self._build_minute_table()

        self.state = EngineState(
            current_interval=0,
            ticket=ServiceStage("ticket", ticket_cfgs, self.interval_min),
            checkpoint=ServiceStage("checkpoint", checkpoint_cfgs, self.interval_min),
            hold=HoldRoomAssignment(hold_rooms, self.flights, max(0, int(cfg.hold_delay_min)), self.rng),
        )
        self.snapshots = SnapshotManager()
        self._start_fresh()

        logger.info(
            "Engine erstellt: %d Flüge, %d Intervalle à %d min, Start %s",
            len(self.flights), self.total_intervals, self.interval_min, self.global_start,
        )

    # ---------- Konfiguration zur Laufzeit ----------
    def set_arrival_curve_config(self, curve: Optional[ArrivalCurveConfig]) -> None:
        """Übernimmt eine validierte Kopie der Kurve (None: Legacy-Standard); wirkt ab dem nächsten eingespeisten Intervall."""
        self.curve = self._copy_curve(curve)
        self._build_minute_table()

    @staticmethod
    def _copy_curve(curve: Optional[ArrivalCurveConfig]) -> ArrivalCurveConfig:
        return dataclasses.replace(curve) if curve is not None else ArrivalCurveConfig.legacy_default()

    def set_travel_time_provider(self, provider: Optional[TravelTimeProvider]) -> None:
        self.router.provider = provider

    def _build_minute_table(self) -> None:
        """Ankünfte pro Flug und globaler Minute (ab `global_start`)."""
        self.minute_arrivals.clear()
        span = self.arrival_span_min
        for f in self.flights:
            counts = self.arrival_model.arrivals_per_minute(f, f.total_passengers, self.curve, span)
            dep_min = departure_minute(f, self.global_start)
            per_minute: Dict[int, int] = {}
            for idx, c in enumerate(counts[:span]):
                minute = dep_min - span + idx
                if c > 0 and minute >= 0:
                    per_minute[minute] = per_minute.get(minute, 0) + int(c)
            self.minute_arrivals[f.flight_number] = per_minute

    def total_arrivals_at_minute(self, minute: int) -> int:
        return sum(per_minute.get(minute, 0) for per_minute in self.minute_arrivals.values())

    # ---------- Hilfsfunktionen ----------
    def _mark_missed(self, pax: Passenger) -> None:
        if pax.mark_missed():
            self.state.metrics.tally(pax.flight.flight_number).missed += 1
            self.state.missed_ids.add(pax.pax_id)

    def _record_totals(self) -> None:
        s = self.state
        s.metrics.record_totals(s.current_interval, s.ticket.queued(), s.checkpoint.queued(), s.hold.total())

    def _start_fresh(self) -> None:
        self.state.reset()
        self.snapshots.reset()
        self.state.metrics.record_held_ups(0, 0)
        self._record_totals()
        self.snapshots.capture(self.state)

    # =========================================================
    # Ein Intervall
    # =========================================================
    def simulate_interval(self) -> None:
        """
        Simuliert das aktuelle Intervall und legt danach einen Snapshot ab.

        Ablauf: Boarding-Schluss und Ankünfte, Ticketservice, Ankunft an den
        Kontrollen, Kontrollservice, Ankunft in den Warteräumen, Abflüge,
        Bereinigung verpasster Passagiere und Kennzahlen. Die Zielkontrolle
        wird also nach den Schlangenlängen vor den Ankünften des Intervalls
        gewählt.
        """
        s = self.state
        t = s.current_interval
        s.metrics.drop_interval(t)
        s.ticket.begin_interval()
        s.checkpoint.begin_interval()
        s.just_closed.clear()

        # 1) Boarding-Schluss + Ankünfte
        for f in self.monitor.closing_at(t):
            self.monitor.close_flight(s, f, self._mark_missed)
        self._inject_arrivals(t)

        # 2) Ticketservice, danach Ankunft an den Kontrollen
        s.ticket.serve(lambda c, p: self._on_ticketed(t, c, p))
        self._arrive_at_checkpoints(t)

        # 3) Kontrollservice, danach Ankunft in den Warteräumen
        s.checkpoint.serve(lambda c, p: self._on_checkpoint_passed(t, c, p))
        self._arrive_at_hold_rooms(t)

        # 4) Abflüge
        for f in self.monitor.departing_at(t):
            s.metrics.tally(f.flight_number).boarded += self.monitor.depart_flight(s, f)

        # 5) Bereinigung
        for f in s.just_closed:
            self.monitor.clear_non_hold_areas(s, f)
        self.monitor.purge_missed(s)

        s.current_interval = t + 1
        s.metrics.record_held_ups(s.current_interval, s.ticket.queued() + s.checkpoint.queued())
        self._record_totals()
        self.snapshots.capture(s)

    def _inject_arrivals(self, t: int) -> None:
        s = self.state
        start = t * self.interval_min
        minutes = range(start, start + self.interval_min)
        has_counters = len(s.ticket) > 0

        for f in self.flights:
            per_minute = self.minute_arrivals.get(f.flight_number)
            if not per_minute:
                continue
            count = sum(per_minute.get(m, 0) for m in minutes)
            if count <= 0:
                continue

            # ohne Ticketschalter checken alle online ein
            n_in_person = round_half_up(count * self.percent_in_person) if has_counters else 0
            n_in_person = min(count, n_in_person)

            fln = f.flight_number
            tally = s.metrics.tally(fln)
            tally.arrived += count
            tally.in_person += n_in_person
            tally.online += count - n_in_person
            s.metrics.count(t, fln, "arrivals", count)

            closed = self.monitor.is_closed(f, t)
            for k in range(count):
                pax = Passenger(pax_id=s.next_pax_id, flight=f, arrival_interval=t, in_person=k < n_in_person)
                s.next_pax_id += 1
                if closed:
                    # Ankunft nach Boarding-Schluss
                    self._mark_missed(pax)
                    continue
                if pax.in_person:
                    s.ticket.enqueue(s.ticket.pick_line(f), pax)
                    s.metrics.count(t, fln, "enqueued_ticket")
                else:
                    self._enter_checkpoint(t, pax, s.checkpoint.pick_line(f))

    def _enter_checkpoint(self, t: int, pax: Passenger, line_idx: int) -> None:
        pax.checkpoint_entry_interval = t
        pax.checkpoint_line = line_idx
        self.state.checkpoint.enqueue(line_idx, pax)
        self.state.metrics.count(t, pax.flight.flight_number, "arrived_checkpoint")

    def _on_ticketed(self, t: int, counter_idx: int, pax: Passenger) -> None:
        s = self.state
        pax.ticket_completion_interval = t
        s.visible_ticket_ids.add(pax.pax_id)
        target = s.checkpoint.pick_line(pax.flight)
        s.target_checkpoint[pax.pax_id] = target
        delay = self.router.ticket_to_checkpoint(counter_idx, target)
        s.pending_to_checkpoint.setdefault(t + delay, []).append(pax)
        s.metrics.count(t, pax.flight.flight_number, "ticketed")

    def _arrive_at_checkpoints(self, t: int) -> None:
        s = self.state
        for pax in s.pending_to_checkpoint.pop(t, []):
            if pax.missed:
                continue
            s.visible_ticket_ids.discard(pax.pax_id)
            target = s.target_checkpoint.pop(pax.pax_id, None)
            if target is None:
                target = s.checkpoint.pick_line(pax.flight)
            target = min(max(target, 0), len(s.checkpoint) - 1)
            self._enter_checkpoint(t, pax, target)

    def _on_checkpoint_passed(self, t: int, checkpoint_idx: int, pax: Passenger) -> None:
        s = self.state
        pax.checkpoint_completion_interval = t
        pax.assign_hold_room(s.hold.chosen_index(pax.flight))
        room = pax.assigned_hold_room_index
        delay = self.router.checkpoint_to_hold(checkpoint_idx, room, s.hold.walk_seconds(room))
        s.pending_to_hold.setdefault(t + delay, []).append(pax)
        s.metrics.count(t, pax.flight.flight_number, "passed_checkpoint")

    def _arrive_at_hold_rooms(self, t: int) -> None:
        s = self.state
        for pax in s.pending_to_hold.pop(t, []):
            if pax.missed:
                continue
            if self.monitor.is_closed(pax.flight, t):
                self._mark_missed(pax)
                continue
            s.checkpoint.remove_completed(pax)
            s.hold.admit(pax, t)

    # =========================================================
    # Navigation
    # =========================================================
    @property
    def current_interval(self) -> int:
        return self.state.current_interval

    @property
    def max_computed_interval(self) -> int:
        return self.snapshots.max_computed_interval

    def can_rewind(self) -> bool:
        return self.current_interval > 0

    def can_fast_forward(self) -> bool:
        return self.current_interval < self.total_intervals

    def go_to_interval(self, interval: int) -> None:
        """Stellt den gespeicherten Zustand zu Beginn von `interval` wieder her (ohne Neuberechnung)."""
        target = self.snapshots.restore_into(self.state, interval)
        logger.debug("Navigation zu Intervall %d (angefragt %s)", target, interval)

    def rewind_one_interval(self) -> None:
        if self.can_rewind():
            self.go_to_interval(self.current_interval - 1)

    def compute_next_interval(self) -> None:
        if self.current_interval >= self.total_intervals:
            return
        if self.current_interval + 1 <= self.max_computed_interval:
            self.go_to_interval(self.current_interval + 1)
        else:
            self.simulate_interval()

    def fast_forward_one_interval(self) -> None:
        if self.current_interval + 1 <= self.max_computed_interval:
            self.go_to_interval(self.current_interval + 1)
        else:
            self.compute_next_interval()

    def run_all_intervals(self) -> None:
        """Setzt auf Intervall 0 zurück und simuliert alle Intervalle bis nach dem letzten Abflug."""
        self._start_fresh()
        while self.current_interval < self.total_intervals:
            self.simulate_interval()
        totals = self.state.metrics.summary()
        logger.info(
            "Simulation abgeschlossen: %d Intervalle, %d Passagiere, %d an Bord, %d verpasst",
            self.total_intervals, totals["total"], totals["boarded"], totals["missed"],
        )

    # =========================================================
    # Lesezugriffe
    # =========================================================
    @property
    def ticket_lines(self) -> List[Deque[Passenger]]:
        return self.state.ticket.lines

    @property
    def completed_ticket_lines(self) -> List[Deque[Passenger]]:
        return self.state.ticket.completed_lines

    def visible_completed_ticket_line(self, idx: int) -> List[Passenger]:
        """Abgefertigte Passagiere am Ticketschalter `idx`, die noch unterwegs zur Kontrolle sind."""
        if idx < 0 or idx >= len(self.state.ticket):
            return []
        visible = self.state.visible_ticket_ids
        return [p for p in self.state.ticket.completed_lines[idx] if p.pax_id in visible]

    @property
    def checkpoint_lines(self) -> List[Deque[Passenger]]:
        return self.state.checkpoint.lines

    @property
    def completed_checkpoint_lines(self) -> List[Deque[Passenger]]:
        return self.state.checkpoint.completed_lines

    @property
    def hold_room_lines(self) -> List[List[Passenger]]:
        return self.state.hold.lines

    @property
    def counter_serving(self) -> List[Optional[Passenger]]:
        return self.state.ticket.serving

    @property
    def checkpoint_serving(self) -> List[Optional[Passenger]]:
        return self.state.checkpoint.serving

    @property
    def pending_to_checkpoint(self) -> Dict[int, List[Passenger]]:
        return self.state.pending_to_checkpoint

    @property
    def pending_to_hold(self) -> Dict[int, List[Passenger]]:
        return self.state.pending_to_hold

    @property
    def metrics(self) -> IntervalMetrics:
        return self.state.metrics

    @property
    def ticket_queued_by_interval(self) -> Dict[int, int]:
        return self.state.metrics.ticket_queued_by_interval

    @property
    def checkpoint_queued_by_interval(self) -> Dict[int, int]:
        return self.state.metrics.checkpoint_queued_by_interval

    @property
    def hold_room_total_by_interval(self) -> Dict[int, int]:
        return self.state.metrics.hold_room_total_by_interval

    @property
    def held_ups_by_interval(self) -> Dict[int, int]:
        return self.state.metrics.held_ups_by_interval

    def arrival_history(self) -> Dict[str, Dict[int, int]]:
        return self.state.metrics.arrival_history()

    def chosen_hold_room_index(self, flight: Flight) -> int:
        return self.state.hold.chosen_index(flight)

    def flights_just_closed(self) -> List[Flight]:
        return list(self.state.just_closed)

    def close_interval(self, flight: Flight) -> int:
        return self.monitor.close_interval.get(flight.flight_number, 0)

    def departure_interval(self, flight: Flight) -> int:
        return self.monitor.departure_interval.get(flight.flight_number, 0)

    def metrics_frame(self) -> pd.DataFrame:
        return self.state.metrics.to_frame()

    def flow_frame(self) -> pd.DataFrame:
        return self.state.metrics.flow_frame()

    def summary(self) -> dict:
        out = self.state.metrics.summary()
        out["intervals"] = self.total_intervals
        out["current_interval"] = self.current_interval
        return out


# =========================================================
# Simulations-Runner
# =========================================================
def run_simulation(
    flights: Sequence[Flight],
    cfg: SimConfig,
    hold_rooms: Optional[Sequence[HoldRoomConfig]] = None,
    arrival_model: Optional[ArrivalModel] = None,
    provider: Optional[TravelTimeProvider] = None,
    seed: Optional[int] = None,
) -> SimulationEngine:
    """
    Initialisiert und startet einen vollständigen Simulationslauf.

    Args:
        flights: Die Flüge, die simuliert werden sollen.
        cfg: Die Konfiguration für diesen Simulationslauf.
        hold_rooms: Optionale Warteräume; ohne Angabe einer pro Flug.
        arrival_model: Optionales Ankunftsmodell; Standard ist `CurveArrivalModel`.
        provider: Optionaler TravelTimeProvider für die Wegzeiten.
        seed: Überschreibt `cfg.seed`, falls gesetzt.

    Returns:
        Die `SimulationEngine` nach dem letzten Intervall.
    """
    rng = random.Random(cfg.seed if seed is None else seed)
    engine = SimulationEngine(cfg, flights, hold_rooms=hold_rooms, arrival_model=arrival_model, rng=rng)
    if provider is not None:
        engine.set_travel_time_provider(provider)
    engine.run_all_intervals()
    return engine
