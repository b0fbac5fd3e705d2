from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Sequence

from .models import AggregateSnapshot, DeclarationRecord, Side

logger = logging.getLogger(__name__)


META_HEADER = "---@meta\n\n"
NO_DESCRIPTION = "This export doesn't have a description"


def export_access(unit: str) -> str:
    # Dashes are not valid in a dotted Lua field access
    if "-" in unit:
        return f"exports['{unit}']"
    return f"exports.{unit}"


def _last_wins(records: Sequence[DeclarationRecord], unit: str, side: Side) -> List[DeclarationRecord]:
    by_identifier: Dict[str, DeclarationRecord] = {}
    for record in records:
        previous = by_identifier.get(record.identifier)
        if previous is not None:
            logger.warning(
                f"Duplicate {side} export {record.identifier!r} in {unit}: "
                f"{previous.source_path}:{previous.line} replaced by {record.source_path}:{record.line}"
            )
        by_identifier[record.identifier] = record
    return [by_identifier[name] for name in sorted(by_identifier)]


def render_export(record: DeclarationRecord, unit: str) -> str:
    lines = [f"---**`{record.side}`**"]
    description = [line for line in record.description.split("\n") if line.strip()]
    if description:
        lines.extend(f"---{line}" for line in description)
    else:
        lines.append(f"---{NO_DESCRIPTION}")

    for param in record.parameters:
        entry = f"---@param {param.name} {param.type}"
        if param.description:
            entry += f" {param.description}"
        lines.append(entry)

    for ret in record.returns:
        entry = f"---@return {ret.type}"
        if ret.description:
            entry += f" {ret.description}"
        lines.append(entry)

    if record.deprecation_note is not None:
        lines.append(f"---@deprecated {record.deprecation_note}".rstrip())

    names = ", ".join(p.name.rstrip("?") for p in record.parameters)
    lines.append(f"function {export_access(unit)}:{record.identifier}({names}) end")
    return "\n".join(lines)


def render_type_file(records: Sequence[DeclarationRecord], unit: str, side: Side) -> str:
    blocks = [render_export(r, unit) for r in _last_wins(records, unit, side)]
    return META_HEADER + "\n\n".join(blocks) + "\n"


def render_unit(unit: str, exports_by_side: Mapping[Side, Sequence[DeclarationRecord]]) -> Dict[str, str]:
    """Render the declaration files for one resource.

    ``shared.lua`` always carries the class so the language server can
    complete ``exports.<unit>``; shared-side exports are appended to it.
    """
    files: Dict[str, str] = {
        "shared.lua": f"{META_HEADER}---@class {unit}\n{export_access(unit)} = {{}}\n",
    }
    for side in ("client", "server"):
        records = exports_by_side.get(side) or []
        if records:
            files[f"{side}.lua"] = render_type_file(records, unit, side)

    shared = exports_by_side.get("shared") or []
    if shared:
        files["shared.lua"] += "\n" + render_type_file(shared, unit, "shared")
    return files


def _used_by(owning_units: Sequence[str], annotate_units: bool) -> List[str]:
    if annotate_units and owning_units:
        return [f"---Used by: {', '.join(owning_units)}"]
    return []


def render_state_file(snapshot: AggregateSnapshot, annotate_units: bool = False) -> str:
    """Render GlobalState and player state bag declarations."""
    lines: List[str] = ["---@meta", ""]

    if snapshot.global_states:
        lines.append("---Global state table accessible across all clients and server")
        lines.append("---@class GlobalStateTable")
        for state in snapshot.global_states:
            lines.extend(_used_by(state.owning_units, annotate_units))
            lines.append(f"---@field {state.name} {state.type}")
        lines.extend(["", "---@type GlobalStateTable", "GlobalState = {}", ""])

    if snapshot.entity_states:
        lines.append("---Player state table")
        lines.append("---@class StateBagInterface")
        for state in snapshot.entity_states:
            lines.extend(_used_by(state.owning_units, annotate_units))
            lines.append(f"---@field {state.name} {state.type} Replication: {state.replication}")
        lines.append("---@field set fun(self: any, key: string, value: any, replicated?: boolean)")
        lines.extend([
            "",
            "---Set a state bag value",
            "---@param key string The state key to set",
            "---@param value any The value to set",
            "---@param replicated boolean Whether to replicate to clients (server) or server (client)",
            "function StateBagInterface:set(key, value, replicated) end",
            "",
            "---@class PlayerTable",
            "---@field state StateBagInterface",
            "",
            "---Get player by server id",
            "---@param serverId number",
            "---@return PlayerTable",
            "function Player(serverId) end",
            "",
            "---@class LocalPlayerTable",
            "---@field state StateBagInterface",
            "",
            "---@type LocalPlayerTable",
            "LocalPlayer = {}",
        ])

    return "\n".join(lines).rstrip("\n") + "\n"


def render_state_files(snapshot: AggregateSnapshot, annotate_units: bool = False) -> Dict[str, str]:
    if not snapshot.has_state:
        return {}
    return {"shared.lua": render_state_file(snapshot, annotate_units)}
