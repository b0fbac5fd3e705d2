from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .models import (
    AggregateSnapshot,
    DeclarationRecord,
    EntityStateRecord,
    FALLBACK_TYPE,
    ObservationCounts,
    Replication,
    ScanResult,
    Side,
    StateObservation,
    StateRecord,
    StateScope,
)

logger = logging.getLogger(__name__)


@dataclass
class _StateEntry:
    name: str
    type: str
    scope: StateScope
    owning_units: List[str] = field(default_factory=list)
    sides: Set[Side] = field(default_factory=set)
    replicated: bool = False

    def observe(self, observation: StateObservation, unit: str) -> None:
        if unit not in self.owning_units:
            self.owning_units.append(unit)
        self.sides.add(observation.side)
        # Once two observations disagree the key stays "any" for good.
        if self.type != observation.type:
            self.type = FALLBACK_TYPE
        self.replicated = self.replicated or observation.replicated

    def to_record(self) -> StateRecord:
        return StateRecord(
            name=self.name,
            type=self.type,
            scope=self.scope,
            owning_units=sorted(self.owning_units),
            sides=sorted(self.sides),
            replicated=self.replicated,
        )


def resolve_replication(
    server: Optional[StateRecord],
    client: Optional[StateRecord],
) -> Replication:
    """Resolve how a per-player key propagates given which sides write it."""
    if server is not None and client is not None:
        return "bidirectional"
    if server is not None:
        return "to-client" if server.replicated else "server-only"
    if client is not None:
        return "to-server" if client.replicated else "client-only"
    raise ValueError("at least one side must have been observed")


def merge_entity_states(
    server_states: Iterable[StateRecord],
    client_states: Iterable[StateRecord],
) -> List[EntityStateRecord]:
    """Unify server-side and client-side per-player keys into one view by name."""
    servers = {s.name: s for s in server_states}
    clients = {c.name: c for c in client_states}
    merged: List[EntityStateRecord] = []
    for name in sorted(set(servers) | set(clients)):
        server = servers.get(name)
        client = clients.get(name)
        observed = [s for s in (server, client) if s is not None]
        types = {s.type for s in observed}
        merged.append(EntityStateRecord(
            name=name,
            type=types.pop() if len(types) == 1 else FALLBACK_TYPE,
            replication=resolve_replication(server, client),
            owning_units=sorted({u for s in observed for u in s.owning_units}),
            sides=sorted({side for s in observed for side in s.sides}),
        ))
    return merged


class Aggregator:
    """Accumulates scan results across files for a single run.

    Exports are only concatenated per unit and side. State keys are merged by
    ``(name, scope)``: owning units are unioned and conflicting types widen to
    ``any``.
    """

    def __init__(self) -> None:
        self._exports: Dict[str, Dict[Side, List[DeclarationRecord]]] = defaultdict(lambda: defaultdict(list))
        self._states: Dict[Tuple[str, StateScope], _StateEntry] = {}
        self._global_observed = 0
        self._entity_observed = 0
        self._exports_observed = 0

    def add_exports(self, records: Iterable[DeclarationRecord], unit: str) -> None:
        for record in records:
            self._exports[unit][record.side].append(record)
            self._exports_observed += 1

    def _add_state(self, observation: StateObservation, unit: str) -> None:
        key = (observation.name, observation.scope)
        entry = self._states.get(key)
        if entry is None:
            entry = _StateEntry(name=observation.name, type=observation.type, scope=observation.scope)
            self._states[key] = entry
        entry.observe(observation, unit)

    def add_global_states(self, observations: Iterable[StateObservation], unit: str) -> None:
        for observation in observations:
            if observation.scope != "global":
                logger.debug(f"Ignoring {observation.scope} observation {observation.name!r} passed as global state")
                continue
            self._add_state(observation, unit)
            self._global_observed += 1

    def add_entity_states(self, observations: Iterable[StateObservation], unit: str) -> None:
        for observation in observations:
            if observation.scope == "global":
                logger.debug(f"Ignoring global observation {observation.name!r} passed as per-player state")
                continue
            self._add_state(observation, unit)
            self._entity_observed += 1

    def add_scan(self, result: ScanResult, unit: str) -> None:
        self.add_exports(result.exports, unit)
        self.add_global_states(result.global_states, unit)
        self.add_entity_states(result.server_entity_states, unit)
        self.add_entity_states(result.client_entity_states, unit)

    def _records(self, scope: StateScope) -> List[StateRecord]:
        entries = [e for (_, s), e in self._states.items() if s == scope]
        return [e.to_record() for e in sorted(entries, key=lambda e: e.name)]

    def global_states(self) -> List[StateRecord]:
        return self._records("global")

    def entity_states(self) -> List[EntityStateRecord]:
        return merge_entity_states(self._records("entity_server"), self._records("entity_client"))

    def exports_for(self, unit: str) -> Dict[Side, List[DeclarationRecord]]:
        by_side = self._exports.get(unit, {})
        # sorted() is stable so duplicate identifiers keep arrival order
        return {side: sorted(records, key=lambda r: r.identifier) for side, records in sorted(by_side.items())}

    @property
    def units(self) -> List[str]:
        return sorted(self._exports)

    def counts(self) -> ObservationCounts:
        unique_exports = {
            (unit, side, record.identifier)
            for unit, by_side in self._exports.items()
            for side, records in by_side.items()
            for record in records
        }
        entity_names = {name for (name, scope) in self._states if scope != "global"}
        return ObservationCounts(
            exports_observed=self._exports_observed,
            exports_unique=len(unique_exports),
            global_observed=self._global_observed,
            global_unique=sum(1 for (_, scope) in self._states if scope == "global"),
            entity_observed=self._entity_observed,
            entity_unique=len(entity_names),
        )

    def snapshot(self) -> AggregateSnapshot:
        return AggregateSnapshot(
            exports={unit: self.exports_for(unit) for unit in self.units},
            global_states=self.global_states(),
            entity_states=self.entity_states(),
            counts=self.counts(),
        )
