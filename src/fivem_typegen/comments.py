from __future__ import annotations

import re
from typing import List, Sequence

from .models import CommentPolicy, DocBlock, Parameter, ReturnValue


RICH_MARKER = "---"
PLAIN_MARKER = "--"

_PARAM_RE = re.compile(r"@param\s+(\w+\??|\.\.\.)\s+(\S+)(?:\s+(.+))?")
_RETURN_RE = re.compile(r"@returns?\s+(\S+)(?:\s+(.+))?")
_TAG_RE = re.compile(r"@(param|returns?|deprecated)(?=\s|$)")


def _block_has_rich_line(lines: Sequence[str], start: int, policy: CommentPolicy) -> bool:
    """Check whether the contiguous comment run above ``start`` has a rich line.

    Uses the same termination rules as the collection pass so plain lines are
    only unlocked by a rich line inside the very block they belong to.
    """
    i = start
    while i >= 0:
        line = lines[i].strip()
        if line.startswith(RICH_MARKER):
            return True
        if line == "":
            if policy == "strict":
                return False
        elif not line.startswith(PLAIN_MARKER):
            return False
        i -= 1
    return False


def extract_comment_block(
    lines: Sequence[str],
    anchor_index: int,
    policy: CommentPolicy = "strict",
) -> List[str]:
    """Collect the documentation comment lines directly above ``anchor_index``.

    Rich (``---``) lines are always collected. Plain (``--``) lines are only
    collected when a rich line is part of the same block, otherwise they are
    treated as noise. The block ends at the first code line; with the
    ``strict`` policy it also ends at the first blank line, with ``lenient``
    blank lines are skipped.

    Returns the comment text with markers stripped, in top-to-bottom order.
    """
    start = min(anchor_index, len(lines)) - 1
    if start < 0:
        return []

    include_plain = _block_has_rich_line(lines, start, policy)
    collected: List[str] = []
    i = start
    while i >= 0:
        line = lines[i].strip()
        if line == "":
            if policy == "strict":
                break
        elif line.startswith(RICH_MARKER):
            collected.insert(0, line[len(RICH_MARKER):].strip())
        elif line.startswith(PLAIN_MARKER):
            if include_plain:
                collected.insert(0, line[len(PLAIN_MARKER):].strip())
        else:
            break
        i -= 1
    return collected


def parse_tags(comment_lines: Sequence[str]) -> DocBlock:
    """Split comment lines into a description and @param/@return/@deprecated tags.

    Text before the first tag is the description; text after it is dropped.
    Malformed tag lines are skipped.
    """
    doc = DocBlock(raw_comments=list(comment_lines))
    description_lines: List[str] = []
    found_tag = False

    for line in comment_lines:
        tag = _TAG_RE.match(line)
        keyword = tag.group(1) if tag else None
        if keyword == "param":
            found_tag = True
            match = _PARAM_RE.match(line)
            if match:
                doc.params.append(Parameter(
                    name=match.group(1),
                    type=match.group(2),
                    description=(match.group(3) or "").strip(),
                ))
        elif keyword in ("return", "returns"):
            found_tag = True
            match = _RETURN_RE.match(line)
            if match:
                doc.returns.append(ReturnValue(
                    type=match.group(1),
                    description=(match.group(2) or "").strip(),
                ))
        elif keyword == "deprecated":
            found_tag = True
            doc.deprecation_note = line[len("@deprecated"):].strip()
        elif not found_tag and line.strip():
            description_lines.append(line)

    doc.description = "\n".join(description_lines).strip()
    return doc


def documentation_for(
    lines: Sequence[str],
    anchor_index: int,
    policy: CommentPolicy = "strict",
) -> DocBlock:
    return parse_tags(extract_comment_block(lines, anchor_index, policy))
