from __future__ import annotations
"""
Veränderlicher Engine-Zustand und Snapshots pro Intervall.

Der gesamte veränderliche Zustand der Engine liegt in einem `EngineState`.
Nach jedem simulierten Intervall wird eine tiefe Kopie der Live-Container
abgelegt (Schlangen, Staging, Schalter, Wege, Fortschritt, Sichtbarkeit).
Von den Kennzahlen enthält ein Snapshot nur den Anteil seines Intervalls,
sodass Ablage und Wiederherstellung nicht mit der Laufzeit wachsen.

Bei der Navigation wird der gespeicherte Zustand erneut kopiert und
in-place in die Live-Strukturen geladen, damit Referenzen von außen gültig
bleiben. Flüge und Stationskonfigurationen sind unveränderlich und werden
von allen Kopien geteilt.
"""
import copy
import logging
from dataclasses import dataclass, field, fields
from typing import Dict, List, Set

from flights import Flight, Passenger
from hold_rooms import HoldRoomAssignment
from metrics import IntervalMetrics
from service_stage import ServiceStage

logger = logging.getLogger(__name__)


def _reload_pending(target: Dict[int, List[Passenger]], source: Dict[int, List[Passenger]]) -> None:
    target.clear()
    for k, v in source.items():
        target[k] = list(v)


@dataclass
class EngineState:
    """
    Alles, was sich während eines Laufs ändert.

    Attributes:
        current_interval: Nächstes zu simulierendes Intervall.
        ticket: Ticketschalter mit Schlangen, Staging und Fortschritt.
        checkpoint: Sicherheitskontrollen mit Schlangen, Staging und Fortschritt.
        hold: Warteräume mit ihrer Belegung.
        pending_to_checkpoint: Passagiere auf dem Weg zur Kontrolle, nach Ankunftsintervall.
        pending_to_hold: Passagiere auf dem Weg zum Warteraum, nach Ankunftsintervall.
        target_checkpoint: Ziel-Kontrolle pro Passagier-ID.
        visible_ticket_ids: Abgefertigte Ticket-Passagiere, die noch unterwegs zur Kontrolle sind.
        missed_ids: Seit der letzten Bereinigung als verpasst markierte IDs.
        just_closed: Flüge, deren Boarding im letzten Intervall geschlossen wurde.
        metrics: Zeitreihen, Flussprotokoll und Zähler pro Flug.
        next_pax_id: Nächste freie Passagier-ID.
    """

    current_interval: int
    ticket: ServiceStage
    checkpoint: ServiceStage
    hold: HoldRoomAssignment
    pending_to_checkpoint: Dict[int, List[Passenger]] = field(default_factory=dict)
    pending_to_hold: Dict[int, List[Passenger]] = field(default_factory=dict)
    target_checkpoint: Dict[int, int] = field(default_factory=dict)
    visible_ticket_ids: Set[int] = field(default_factory=set)
    missed_ids: Set[int] = field(default_factory=set)
    just_closed: List[Flight] = field(default_factory=list)
    metrics: IntervalMetrics = field(default_factory=IntervalMetrics)
    next_pax_id: int = 1

    def reset(self) -> None:
        self.current_interval = 0
        self.ticket.reset()
        self.checkpoint.reset()
        self.hold.reset()
        self.pending_to_checkpoint.clear()
        self.pending_to_hold.clear()
        self.target_checkpoint.clear()
        self.visible_ticket_ids.clear()
        self.missed_ids.clear()
        self.just_closed.clear()
        for f in fields(IntervalMetrics):
            getattr(self.metrics, f.name).clear()
        self.next_pax_id = 1

    def copy_live(self) -> "EngineState":
        """
        Kopie aller Live-Container und der Kennzahlen des aktuellen Intervalls.

        Ein gemeinsames Memo hält Passagiere, die zugleich im Staging und in
        einem Weg stehen, auch in der Kopie identisch.
        """
        memo: dict = {}
        return EngineState(
            current_interval=self.current_interval,
            ticket=copy.deepcopy(self.ticket, memo),
            checkpoint=copy.deepcopy(self.checkpoint, memo),
            hold=copy.deepcopy(self.hold, memo),
            pending_to_checkpoint=copy.deepcopy(self.pending_to_checkpoint, memo),
            pending_to_hold=copy.deepcopy(self.pending_to_hold, memo),
            target_checkpoint=dict(self.target_checkpoint),
            visible_ticket_ids=set(self.visible_ticket_ids),
            missed_ids=set(self.missed_ids),
            just_closed=list(self.just_closed),
            metrics=self.metrics.slice_at(self.current_interval),
            next_pax_id=self.next_pax_id,
        )

    def load(self, other: "EngineState") -> None:
        """
        Übernimmt die Live-Container und Zähler von `other` in-place.

        `other` sollte bereits eine Kopie sein. Zeitreihen und Flussprotokoll
        gleicht `SnapshotManager.restore_into` ab.
        """
        self.current_interval = other.current_interval
        self.ticket.load(other.ticket)
        self.checkpoint.load(other.checkpoint)
        self.hold.load(other.hold)
        _reload_pending(self.pending_to_checkpoint, other.pending_to_checkpoint)
        _reload_pending(self.pending_to_hold, other.pending_to_hold)
        self.target_checkpoint.clear()
        self.target_checkpoint.update(other.target_checkpoint)
        self.visible_ticket_ids.clear()
        self.visible_ticket_ids.update(other.visible_ticket_ids)
        self.missed_ids.clear()
        self.missed_ids.update(other.missed_ids)
        self.just_closed[:] = list(other.just_closed)
        self.metrics.load_tallies(other.metrics)
        self.next_pax_id = other.next_pax_id


@dataclass(frozen=True)
class EngineSnapshot:
    interval: int
    state: EngineState


# =========================================================
# Verwaltung
# =========================================================
class SnapshotManager:
    """
    Ablage der Snapshots, ein Eintrag pro berechnetem Intervall.

    Wird ein früheres Intervall neu berechnet, ersetzt der neue Snapshot den
    alten und alle späteren Snapshots werden verworfen.
    """

    def __init__(self):
        self._snapshots: Dict[int, EngineSnapshot] = {}

    def __len__(self) -> int:
        return len(self._snapshots)

    def __contains__(self, interval: int) -> bool:
        return interval in self._snapshots

    @property
    def max_computed_interval(self) -> int:
        return max(self._snapshots, default=0)

    def capture(self, state: EngineState) -> EngineSnapshot:
        interval = state.current_interval
        stale = [k for k in self._snapshots if k > interval]
        if stale:
            logger.debug("Verwerfe %d Snapshots nach Intervall %d", len(stale), interval)
            for k in stale:
                del self._snapshots[k]
        snap = EngineSnapshot(interval=interval, state=state.copy_live())
        self._snapshots[interval] = snap
        return snap

    def get(self, interval: int) -> EngineSnapshot:
        snap = self._snapshots.get(interval)
        if snap is None:
            raise KeyError(f"Kein Snapshot für Intervall {interval}")
        return snap

    def clamp(self, interval: int) -> int:
        return max(0, min(int(interval), self.max_computed_interval))

    def restore(self, interval: int) -> EngineState:
        """
        Liefert eine frische Kopie des Zustands zu Beginn von `interval`.

        Der Index wird auf [0, max_computed_interval] begrenzt. Die Kopie kann
        ohne Rückwirkung auf den Snapshot verändert werden. Ihre Kennzahlen
        enthalten nur den Anteil dieses Intervalls.
        """
        # KeyError nur möglich, wenn noch nichts gespeichert ist
        return self.get(self.clamp(interval)).state.copy_live()

    def restore_into(self, state: EngineState, interval: int) -> int:
        """
        Stellt `state` in-place auf den Beginn von `interval` zurück.

        Die Live-Container werden aus dem Snapshot kopiert. Zeitreihen und
        Flussprotokoll werden nur um die Differenz zum bisherigen Intervall
        gekürzt bzw. aus den dazwischenliegenden Snapshots ergänzt.

        Returns:
            Das tatsächlich wiederhergestellte (begrenzte) Intervall.
        """
        t = self.clamp(interval)
        previous = state.current_interval
        state.load(self.restore(t))
        state.metrics.truncate(t)
        for k in range(min(previous, t) + 1, t + 1):
            state.metrics.merge(self._snapshots[k].state.metrics)
        return t

    def reset(self) -> None:
        self._snapshots.clear()
