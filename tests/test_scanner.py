"""Tests for export and state discovery."""

from typing import List

import pytest

from fivem_typegen.aggregator import Aggregator
from fivem_typegen.models import Parameter
from fivem_typegen.scanner import (
    ScanOptions,
    detect_side,
    find_function_definition,
    merge_parameters,
    scan_entity_states,
    scan_exports,
    scan_global_states,
    scan_source,
    split_call_arguments,
    statement_value,
)


def _lines(text: str) -> List[str]:
    return text.strip("\n").splitlines()


class TestDetectSide:
    @pytest.mark.parametrize(
        "path,expected",
        [
            ("resources/jobs/client/main.lua", "client"),
            ("resources/jobs/server/main.lua", "server"),
            ("resources/jobs/shared/config.lua", "shared"),
            ("resources/jobs/Server.lua", "server"),
            ("resources/jobs/init.lua", "shared"),
            # client is checked before server
            ("server/client_bridge.lua", "client"),
        ],
    )
    def test_detect_side(self, path: str, expected: str) -> None:
        assert detect_side(path) == expected


class TestScanExports:
    def test_documented_reference_export(self) -> None:
        lines = _lines(
            """
--- Adds a job.
--- @param name string Job name
--- @return boolean ok
function AddJob(name) end
exports('AddJob', AddJob)
"""
        )
        records = scan_exports(lines, "server.lua")
        assert len(records) == 1
        record = records[0]
        assert record.identifier == "AddJob"
        assert record.side == "server"
        assert [p.model_dump() for p in record.parameters] == [
            {"name": "name", "type": "string", "description": "Job name"}
        ]
        assert [r.model_dump() for r in record.returns] == [{"type": "boolean", "description": "ok"}]
        assert record.description == "Adds a job."
        assert record.deprecation_note is None
        assert record.line == 5

    def test_inline_export_same_line(self) -> None:
        lines = _lines(
            """
--- Heals the player.
--- @param amount number
exports("Heal", function(amount, silent)
    return true
end)
"""
        )
        record = scan_exports(lines, "client/main.lua")[0]
        assert record.identifier == "Heal"
        assert record.side == "client"
        assert [(p.name, p.type) for p in record.parameters] == [("amount", "number"), ("silent", "any")]
        assert record.description == "Heals the player."

    def test_inline_export_split_across_lines(self) -> None:
        lines = _lines(
            """
exports('Spawn',
    function(model,
             coords)
    end)
"""
        )
        record = scan_exports(lines, "shared.lua")[0]
        assert record.identifier == "Spawn"
        assert [p.name for p in record.parameters] == ["model", "coords"]

    def test_unresolved_reference_has_no_parameters(self) -> None:
        lines = _lines(
            """
--- Defined in another file.
exports('Remote', RemoteImpl)
"""
        )
        record = scan_exports(lines, "server.lua")[0]
        assert record.identifier == "Remote"
        assert record.parameters == []
        assert record.description == "Defined in another file."

    def test_reference_outside_window_is_not_resolved(self) -> None:
        lines = ["function Far(a, b) end"] + ["local x = 1"] * 10 + ["exports('Far', Far)"]
        assert scan_exports(lines, "server.lua", ScanOptions(reference_window=5))[0].parameters == []
        resolved = scan_exports(lines, "server.lua")[0]
        assert [p.name for p in resolved.parameters] == ["a", "b"]

    def test_commented_out_header_is_skipped(self) -> None:
        lines = _lines(
            """
local function Foo(a, b) end
-- function Foo(x) end
exports('Foo', Foo)
"""
        )
        record = scan_exports(lines, "server.lua")[0]
        assert [p.name for p in record.parameters] == ["a", "b"]

    def test_assigned_function_reference(self) -> None:
        lines = _lines(
            """
--- Returns the grade.
local GetGrade = function(job)
end
exports('GetGrade', GetGrade)
"""
        )
        record = scan_exports(lines, "server.lua")[0]
        assert [p.name for p in record.parameters] == ["job"]
        assert record.description == "Returns the grade."

    def test_header_split_across_lines(self) -> None:
        lines = _lines(
            """
function Long(a,
              b)
end
exports('Long', Long)
"""
        )
        assert [p.name for p in scan_exports(lines, "server.lua")[0].parameters] == ["a", "b"]

    def test_documented_varargs_appended(self) -> None:
        lines = _lines(
            """
--- @param event string
--- @param ... any Payload
function Emit(event, ...) end
exports('Emit', Emit)
"""
        )
        record = scan_exports(lines, "server.lua")[0]
        assert [(p.name, p.type, p.description) for p in record.parameters] == [
            ("event", "string", ""),
            ("...", "any", "Payload"),
        ]

    def test_deprecated_export(self) -> None:
        lines = _lines(
            """
--- Old API.
--- @deprecated use NewApi
function OldApi() end
exports('OldApi', OldApi)
"""
        )
        assert scan_exports(lines, "server.lua")[0].deprecation_note == "use NewApi"

    def test_commented_export_and_noise_are_ignored(self) -> None:
        lines = _lines(
            """
-- exports('Hidden', Hidden)
local inv = exports.ox_inventory
local x = exports['qb-core']:GetCoreObject()
exports('Broken'
"""
        )
        assert scan_exports(lines, "server.lua") == []

    def test_multiple_exports_keep_file_order(self) -> None:
        lines = _lines(
            """
function B() end
function A() end
exports('B', B)
exports('A', A)
"""
        )
        assert [r.identifier for r in scan_exports(lines, "server.lua")] == ["B", "A"]

    def test_doc_anchor_is_export_line_for_inline(self) -> None:
        lines = _lines(
            """
--- Not this one.

--- This one.
exports('Thing', function() end)
"""
        )
        assert scan_exports(lines, "shared.lua")[0].description == "This one."


class TestMergeParameters:
    def test_signature_order_and_tag_preference(self) -> None:
        signature = [Parameter(name="a"), Parameter(name="b")]
        documented = [
            Parameter(name="b", type="number", description="second"),
            Parameter(name="extra", type="table"),
        ]
        merged = merge_parameters(signature, documented)
        assert [(p.name, p.type, p.description) for p in merged] == [
            ("a", "any", ""),
            ("b", "number", "second"),
            ("extra", "table", ""),
        ]

    def test_optional_tag_matches_plain_name(self) -> None:
        merged = merge_parameters([Parameter(name="id")], [Parameter(name="id?", type="number")])
        assert [(p.name, p.type) for p in merged] == [("id?", "number")]

    def test_empty_inputs(self) -> None:
        assert merge_parameters([], []) == []


def test_find_function_definition_returns_line_index() -> None:
    lines = ["local y = 2", "function Target(q) end", "local z = 3", "exports('T', Target)"]
    found = find_function_definition(lines, 3, "Target")
    assert found is not None
    index, params = found
    assert index == 1
    assert [p.name for p in params] == ["q"]
    assert find_function_definition(lines, 3, "Missing") is None


class TestScanGlobalStates:
    def test_assignments(self) -> None:
        lines = _lines(
            """
GlobalState.weather = 'sunny'
GlobalState['count'] = 5 -- players online
GlobalState.blackout = false
GlobalState.config = { a = 1 }
GlobalState.dynamic = GetValue()
"""
        )
        states = scan_global_states(lines, "server/main.lua")
        assert [(s.name, s.type) for s in states] == [
            ("weather", "string"),
            ("count", "number"),
            ("blackout", "boolean"),
            ("config", "table"),
            ("dynamic", "any"),
        ]
        assert all(s.scope == "global" and s.side == "server" for s in states)
        assert states[1].value == "5"
        assert states[1].line == 2

    def test_comparisons_reads_and_comments_ignored(self) -> None:
        lines = _lines(
            """
if GlobalState.weather == 'rain' then end
local w = GlobalState.weather
-- GlobalState.old = 1
if GlobalState.x ~= nil then end
"""
        )
        assert scan_global_states(lines, "server.lua") == []

    def test_value_ends_at_block_keyword(self) -> None:
        lines = ["if not GlobalState.ready then GlobalState.ready = true end"]
        [state] = scan_global_states(lines, "server.lua")
        assert (state.name, state.type, state.value) == ("ready", "boolean", "true")

    def test_several_writes_on_one_line(self) -> None:
        lines = ["GlobalState.a = 1; GlobalState.b = 'x'", "GlobalState.c = {} GlobalState.d = nil"]
        states = scan_global_states(lines, "server.lua")
        assert [(s.name, s.type, s.line) for s in states] == [
            ("a", "number", 1),
            ("b", "string", 1),
            ("c", "table", 2),
            ("d", "nil", 2),
        ]

    def test_read_on_right_hand_side_is_not_a_write(self) -> None:
        [state] = scan_global_states(["GlobalState.copy = GlobalState.weather"], "server.lua")
        assert (state.name, state.type) == ("copy", "any")


class TestStatementValue:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("true end", "true"),
            ("1; x = 2", "1"),
            ("'a;b end' then", "'a;b end'"),
            ("{ a = 1, b = { 2 } } else", "{ a = 1, b = { 2 } }"),
            ("GetValue(x, 'then') -- note", "GetValue(x, 'then')"),
            ("ending", "ending"),
            ("x) end", "x"),
            ("", ""),
        ],
    )
    def test_statement_value(self, text: str, expected: str) -> None:
        assert statement_value(text) == expected


class TestScanEntityStates:
    def test_server_and_client_accessors(self) -> None:
        lines = _lines(
            """
Player(source).state:set('job', 'police', true)
Player(tonumber(src)).state:set("data", {a = 1, b = {2, 3}}, true)
LocalPlayer.state:set('busy', false)
LocalPlayer.state:set('ping', 10, replicate)
"""
        )
        server, client = scan_entity_states(lines, "shared/bridge.lua")
        assert [(s.name, s.type, s.replicated, s.scope) for s in server] == [
            ("job", "string", True, "entity_server"),
            ("data", "table", True, "entity_server"),
        ]
        assert [(s.name, s.type, s.replicated, s.scope) for s in client] == [
            ("busy", "boolean", False, "entity_client"),
            ("ping", "number", False, "entity_client"),
        ]
        assert all(s.side == "shared" for s in server + client)

    def test_non_literal_keys_and_missing_values_skipped(self) -> None:
        lines = _lines(
            """
LocalPlayer.state:set(key, 1)
Player(id).state:set('onlykey')
-- LocalPlayer.state:set('commented', true)
local bag = LocalPlayer.state.busy
"""
        )
        assert scan_entity_states(lines, "client.lua") == ([], [])

    def test_call_spanning_lines_keeps_replicated_flag(self) -> None:
        lines = [
            "Player(src).state:set('inventory', {",
            "  -- slots",
            "  items = {}",
            "}, true)",
        ]
        server, _ = scan_entity_states(lines, "server.lua")
        assert [(s.name, s.type, s.replicated, s.line) for s in server] == [("inventory", "table", True, 1)]
        assert server[0].value == "{ items = {} }"

    def test_call_beyond_lookahead_takes_what_is_present(self) -> None:
        lines = ["LocalPlayer.state:set('cfg', {"] + ["  a = 1,"] * 6 + ["}, true)"]
        _, client = scan_entity_states(lines, "client.lua", ScanOptions(signature_lookahead=3))
        assert [(s.name, s.type, s.replicated) for s in client] == [("cfg", "table", False)]

    def test_multi_line_call_resolves_to_client_replication(self) -> None:
        lines = ["Player(src).state:set('job', {", "  name = 'police'", "}, true)"]
        server, _ = scan_entity_states(lines, "server.lua")
        agg = Aggregator()
        agg.add_entity_states(server, "jobs")
        assert agg.entity_states()[0].replication == "to-client"

    def test_two_calls_on_one_line(self) -> None:
        lines = ["LocalPlayer.state:set('a', 1) LocalPlayer.state:set('b', 'x')"]
        _, client = scan_entity_states(lines, "client.lua")
        assert [(s.name, s.type) for s in client] == [("a", "number"), ("b", "string")]


class TestSplitCallArguments:
    def test_nested_and_quoted(self) -> None:
        assert split_call_arguments("'a,b', f(1, 2), {x, y}) trailing") == ["'a,b'", "f(1, 2)", "{x, y}"]

    def test_escaped_quote(self) -> None:
        assert split_call_arguments(r"'it\'s', 1)") == [r"'it\'s'", "1"]

    def test_trailing_comment_stops(self) -> None:
        assert split_call_arguments("'k', true -- note") == ["'k'", "true"]

    def test_empty(self) -> None:
        assert split_call_arguments(")") == [""]
        assert split_call_arguments("") == []


def test_scan_source_runs_all_scanners() -> None:
    text = "\n".join([
        "--- Doc",
        "function Foo() end",
        "exports('Foo', Foo)",
        "GlobalState.ready = true",
        "Player(1).state:set('hp', 100)",
        "LocalPlayer.state:set('hp', 100)",
    ])
    result = scan_source(text, "server/main.lua")
    assert result.side == "server"
    assert [r.identifier for r in result.exports] == ["Foo"]
    assert [s.name for s in result.global_states] == ["ready"]
    assert [s.name for s in result.server_entity_states] == ["hp"]
    assert [s.name for s in result.client_entity_states] == ["hp"]
    assert not result.is_empty


def test_scan_source_tolerates_garbage() -> None:
    text = "exports(\n((((\n'\"\nGlobalState.=\nPlayer(.state:set(\n\x00"
    result = scan_source(text, "x.lua")
    assert result.exports == []
