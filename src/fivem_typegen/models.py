from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field


Side = Literal["client", "server", "shared"]
InferredType = Literal["boolean", "nil", "string", "number", "table", "any"]
StateScope = Literal["global", "entity_server", "entity_client"]
Replication = Literal["server-only", "client-only", "to-client", "to-server", "bidirectional"]
CommentPolicy = Literal["strict", "lenient"]

FALLBACK_TYPE = "any"


class Parameter(BaseModel):
    name: str
    type: str = FALLBACK_TYPE
    description: str = ""


class ReturnValue(BaseModel):
    type: str
    description: str = ""


class DocBlock(BaseModel):
    description: str = ""
    params: List[Parameter] = Field(default_factory=list)
    returns: List[ReturnValue] = Field(default_factory=list)
    # None means no @deprecated tag; "" means a bare @deprecated
    deprecation_note: Optional[str] = None
    raw_comments: List[str] = Field(default_factory=list)


class DeclarationRecord(BaseModel):
    identifier: str
    side: Side
    parameters: List[Parameter] = Field(default_factory=list)
    returns: List[ReturnValue] = Field(default_factory=list)
    description: str = ""
    deprecation_note: Optional[str] = None
    source_path: str = ""
    line: int = 0


class StateObservation(BaseModel):
    name: str
    type: InferredType = FALLBACK_TYPE
    scope: StateScope
    side: Side
    replicated: bool = False
    value: str = ""
    source_path: str = ""
    line: int = 0


class StateRecord(BaseModel):
    name: str
    type: str
    scope: StateScope
    owning_units: List[str] = Field(default_factory=list)
    sides: List[Side] = Field(default_factory=list)
    replicated: bool = False


class EntityStateRecord(BaseModel):
    name: str
    type: str
    replication: Replication
    owning_units: List[str] = Field(default_factory=list)
    sides: List[Side] = Field(default_factory=list)


class ScanResult(BaseModel):
    path: str
    side: Side
    exports: List[DeclarationRecord] = Field(default_factory=list)
    global_states: List[StateObservation] = Field(default_factory=list)
    server_entity_states: List[StateObservation] = Field(default_factory=list)
    client_entity_states: List[StateObservation] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (
            self.exports
            or self.global_states
            or self.server_entity_states
            or self.client_entity_states
        )


class ObservationCounts(BaseModel):
    exports_observed: int = 0
    exports_unique: int = 0
    global_observed: int = 0
    global_unique: int = 0
    entity_observed: int = 0
    entity_unique: int = 0


class AggregateSnapshot(BaseModel):
    exports: Dict[str, Dict[Side, List[DeclarationRecord]]] = Field(default_factory=dict)
    global_states: List[StateRecord] = Field(default_factory=list)
    entity_states: List[EntityStateRecord] = Field(default_factory=list)
    counts: ObservationCounts = Field(default_factory=ObservationCounts)

    @property
    def has_state(self) -> bool:
        return bool(self.global_states or self.entity_states)
