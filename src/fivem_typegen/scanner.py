from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .comments import PLAIN_MARKER, documentation_for
from .inference import infer_type, strip_inline_comment
from .models import (
    CommentPolicy,
    DeclarationRecord,
    DocBlock,
    FALLBACK_TYPE,
    Parameter,
    ScanResult,
    Side,
    StateObservation,
    StateScope,
)


_EXPORT_MARKER_RE = re.compile(r"\bexports\s*\(")
_EXPORT_REFERENCE_RE = re.compile(r"""exports\s*\(\s*['"]([^'"]+)['"]\s*,\s*([\w.]+)\s*\)""")
_EXPORT_INLINE_RE = re.compile(r"""exports\s*\(\s*['"]([^'"]+)['"]\s*,\s*function\s*\(""")
_FUNCTION_LITERAL_RE = re.compile(r"function\s*\(([^)]*)\)")
_NAMED_FUNCTION_RE = re.compile(r"^(?:local\s+)?function\s+([\w.:]+)\s*\(")
_ASSIGNED_FUNCTION_RE = re.compile(r"^(?:local\s+)?([\w.]+)\s*=\s*function\s*\(")
_PARAM_LIST_RE = re.compile(r"\(([^)]*)\)")

_GLOBAL_STATE_RE = re.compile(
    r"""\bGlobalState\s*(?:\.\s*(\w+)|\[\s*['"]([^'"]+)['"]\s*\])\s*=(?!=)\s*"""
)
_STATEMENT_BREAK_RE = re.compile(r"(?:end|then|else|elseif|do|local|return|GlobalState)\b")
_SERVER_STATE_RE = re.compile(r"\bPlayer\s*\(.*?\)\s*\.\s*state\s*:\s*set\s*\(")
_CLIENT_STATE_RE = re.compile(r"\bLocalPlayer\s*\.\s*state\s*:\s*set\s*\(")
_QUOTED_KEY_RE = re.compile(r"""^(['"])(.*)\1$""")

_SIDE_TOKENS: Tuple[Side, ...] = ("client", "server", "shared")


@dataclass
class ScanOptions:
    reference_window: int = 500
    inline_lookahead: int = 3
    signature_lookahead: int = 5
    comment_policy: CommentPolicy = "strict"


DEFAULT_OPTIONS = ScanOptions()


def detect_side(path: str) -> Side:
    """Classify a file as client/server/shared from its path."""
    lowered = str(path).lower()
    for token in _SIDE_TOKENS:
        if token in lowered:
            return token
    return "shared"


def _is_comment(line: str) -> bool:
    return line.strip().startswith(PLAIN_MARKER)


def _join_code_lines(lines: Sequence[str], start: int, count: int, first_offset: int = 0) -> str:
    """Join up to ``count`` lines from ``start`` into one string, skipping comments.

    The first line is cut at ``first_offset``. Trailing comments are removed.
    """
    parts: List[str] = []
    for i in range(start, min(start + count, len(lines))):
        line = lines[i]
        if i == start:
            line = line[first_offset:]
        elif _is_comment(line):
            continue
        parts.append(strip_inline_comment(line))
    return " ".join(parts)


def parse_parameter_list(params_text: str) -> List[Parameter]:
    parameters: List[Parameter] = []
    for raw in params_text.split(","):
        name = raw.strip()
        if name:
            parameters.append(Parameter(name=name, type=FALLBACK_TYPE))
    return parameters


def _bare_name(name: str) -> str:
    return name[:-1] if name.endswith("?") else name


def merge_parameters(signature: Sequence[Parameter], documented: Sequence[Parameter]) -> List[Parameter]:
    """Merge signature parameters with @param tags by name.

    Signature order comes first with documented type/description preferred.
    Documented parameters missing from the signature are appended after.
    """
    by_name: Dict[str, Parameter] = {}
    for doc_param in documented:
        by_name[_bare_name(doc_param.name)] = doc_param

    merged: List[Parameter] = []
    seen = set()
    for param in signature:
        key = _bare_name(param.name)
        seen.add(key)
        doc_param = by_name.get(key)
        if doc_param is not None:
            merged.append(Parameter(
                name=doc_param.name,
                type=doc_param.type or param.type or FALLBACK_TYPE,
                description=doc_param.description,
            ))
        else:
            merged.append(Parameter(name=param.name, type=param.type or FALLBACK_TYPE))

    for doc_param in documented:
        key = _bare_name(doc_param.name)
        if key in seen:
            continue
        seen.add(key)
        merged.append(by_name[key].model_copy())
    return merged


def _header_parameters(lines: Sequence[str], index: int, options: ScanOptions) -> List[Parameter]:
    text = _join_code_lines(lines, index, options.signature_lookahead)
    open_at = text.find("(")
    if open_at == -1:
        return []
    match = _PARAM_LIST_RE.match(text, open_at)
    if not match:
        return []
    return parse_parameter_list(match.group(1))


def find_function_definition(
    lines: Sequence[str],
    export_index: int,
    function_name: str,
    options: ScanOptions = DEFAULT_OPTIONS,
) -> Optional[Tuple[int, List[Parameter]]]:
    """Search backward for the named function a bare export refers to.

    Returns ``(line_index, parameters)`` or None when nothing matches inside
    the reference window. Commented-out headers are ignored.
    """
    lower = max(0, export_index - options.reference_window)
    for i in range(export_index - 1, lower - 1, -1):
        line = lines[i].strip()
        if line.startswith(PLAIN_MARKER):
            continue
        match = _NAMED_FUNCTION_RE.match(line) or _ASSIGNED_FUNCTION_RE.match(line)
        if match and match.group(1) == function_name:
            return i, _header_parameters(lines, i, options)
    return None


def _build_declaration(
    identifier: str,
    side: Side,
    signature: Sequence[Parameter],
    doc: DocBlock,
    path: str,
    export_index: int,
) -> DeclarationRecord:
    return DeclarationRecord(
        identifier=identifier,
        side=side,
        parameters=merge_parameters(signature, doc.params),
        returns=list(doc.returns),
        description=doc.description,
        deprecation_note=doc.deprecation_note,
        source_path=path,
        line=export_index + 1,
    )


def parse_export(
    lines: Sequence[str],
    index: int,
    side: Side,
    path: str = "",
    options: ScanOptions = DEFAULT_OPTIONS,
) -> Optional[DeclarationRecord]:
    """Build the declaration for the export call found on line ``index``.

    Returns None when the line does not hold a recognisable export call.
    """
    marker = _EXPORT_MARKER_RE.search(lines[index])
    if marker is None:
        return None
    call_text = _join_code_lines(lines, index, options.inline_lookahead, marker.start())

    reference = _EXPORT_REFERENCE_RE.match(call_text)
    if reference:
        identifier, function_ref = reference.group(1), reference.group(2)
        signature: List[Parameter] = []
        doc_anchor = index
        found = find_function_definition(lines, index, function_ref, options)
        if found is not None:
            doc_anchor, signature = found
        doc = documentation_for(lines, doc_anchor, options.comment_policy)
        return _build_declaration(identifier, side, signature, doc, path, index)

    inline = _EXPORT_INLINE_RE.match(call_text)
    if inline:
        signature_text = _join_code_lines(lines, index, options.signature_lookahead, marker.start())
        literal = _FUNCTION_LITERAL_RE.search(signature_text)
        signature = parse_parameter_list(literal.group(1)) if literal else []
        doc = documentation_for(lines, index, options.comment_policy)
        return _build_declaration(inline.group(1), side, signature, doc, path, index)

    return None


def scan_exports(
    lines: Sequence[str],
    path: str,
    options: ScanOptions = DEFAULT_OPTIONS,
) -> List[DeclarationRecord]:
    side = detect_side(path)
    records: List[DeclarationRecord] = []
    for index, line in enumerate(lines):
        if _is_comment(line) or "exports" not in line:
            continue
        record = parse_export(lines, index, side, path, options)
        if record is not None:
            records.append(record)
    return records


def statement_value(text: str) -> str:
    """Return the expression at the start of ``text`` up to the end of its statement.

    The value ends at a top-level ``;``, a trailing comment, an unbalanced
    close bracket, a block keyword such as ``end`` or ``then``, or the start
    of another ``GlobalState`` write.
    """
    depth = 0
    quote: Optional[str] = None
    i = 0
    while i < len(text):
        ch = text[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif text.startswith("--", i):
            break
        elif ch in "({[":
            depth += 1
        elif ch in ")}]":
            if depth == 0:
                break
            depth -= 1
        elif depth == 0:
            if ch == ";":
                break
            at_word_start = i == 0 or not (text[i - 1].isalnum() or text[i - 1] == "_")
            if at_word_start and _STATEMENT_BREAK_RE.match(text, i):
                break
        i += 1
    return text[:i].strip()


def scan_global_states(lines: Sequence[str], path: str) -> List[StateObservation]:
    side = detect_side(path)
    states: List[StateObservation] = []
    for index, line in enumerate(lines):
        if _is_comment(line) or "GlobalState" not in line:
            continue
        for match in _GLOBAL_STATE_RE.finditer(line):
            value = statement_value(line[match.end():])
            states.append(StateObservation(
                name=match.group(1) or match.group(2),
                type=infer_type(value),
                scope="global",
                side=side,
                value=value,
                source_path=path,
                line=index + 1,
            ))
    return states


def split_call_arguments(text: str) -> List[str]:
    """Split the argument text following an opening paren at top-level commas.

    Stops at the matching close paren or at a trailing comment. An
    unterminated call yields whatever arguments are present.
    """
    args: List[str] = []
    current: List[str] = []
    depth = 0
    quote: Optional[str] = None
    i = 0
    while i < len(text):
        ch = text[i]
        if quote:
            current.append(ch)
            if ch == "\\" and i + 1 < len(text):
                current.append(text[i + 1])
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
            current.append(ch)
        elif text.startswith("--", i):
            break
        elif ch in "({[":
            depth += 1
            current.append(ch)
        elif ch in ")}]":
            if depth == 0:
                args.append("".join(current).strip())
                return args
            depth -= 1
            current.append(ch)
        elif ch == "," and depth == 0:
            args.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
        i += 1
    tail = "".join(current).strip()
    if tail or args:
        args.append(tail)
    return args


def _entity_observation(
    arguments: Sequence[str],
    scope: StateScope,
    side: Side,
    path: str,
    index: int,
) -> Optional[StateObservation]:
    if len(arguments) < 2:
        return None
    key = _QUOTED_KEY_RE.match(arguments[0])
    if not key or not key.group(2):
        return None
    replicated = len(arguments) > 2 and arguments[2] == "true"
    return StateObservation(
        name=key.group(2),
        type=infer_type(arguments[1]),
        scope=scope,
        side=side,
        replicated=replicated,
        value=arguments[1],
        source_path=path,
        line=index + 1,
    )


def scan_entity_states(
    lines: Sequence[str],
    path: str,
    options: ScanOptions = DEFAULT_OPTIONS,
) -> Tuple[List[StateObservation], List[StateObservation]]:
    """Find per-player state bag writes.

    ``Player(id).state:set(...)`` is the server-side accessor and
    ``LocalPlayer.state:set(...)`` the client-side one. A call whose
    arguments span several lines is reassembled within
    ``options.signature_lookahead`` lines. Returns
    ``(server_side, client_side)``.
    """
    side = detect_side(path)
    server_states: List[StateObservation] = []
    client_states: List[StateObservation] = []
    patterns = (
        (_SERVER_STATE_RE, "entity_server", server_states),
        (_CLIENT_STATE_RE, "entity_client", client_states),
    )
    for index, line in enumerate(lines):
        if _is_comment(line) or "state" not in line:
            continue
        for pattern, scope, bucket in patterns:
            for match in pattern.finditer(line):
                call_text = _join_code_lines(lines, index, options.signature_lookahead, match.end())
                arguments = split_call_arguments(call_text)
                observation = _entity_observation(arguments, scope, side, path, index)
                if observation is not None:
                    bucket.append(observation)
    return server_states, client_states


def scan_lines(
    lines: Sequence[str],
    path: str,
    options: ScanOptions = DEFAULT_OPTIONS,
) -> ScanResult:
    server_states, client_states = scan_entity_states(lines, path, options)
    return ScanResult(
        path=str(path),
        side=detect_side(path),
        exports=scan_exports(lines, path, options),
        global_states=scan_global_states(lines, path),
        server_entity_states=server_states,
        client_entity_states=client_states,
    )


def scan_source(text: str, path: str, options: ScanOptions = DEFAULT_OPTIONS) -> ScanResult:
    """Scan one file's text for exports and state assignments."""
    return scan_lines(text.splitlines(), str(path), options)
