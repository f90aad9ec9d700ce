"""
Structured Text (IEC 61131-3) declaration and routine scanner.

This is a line-oriented regex scan, not a grammar.  It recognises the
declaration shapes found in exported POUs and GVLs::

    VAR_INPUT
        Start   : BOOL;                      (* start button *)
        Sensor AT %IX0.1 : BOOL;
        Speed   : REAL := 1.5;               // address=%MD10 line speed
        Mode    : INT;                       // scope=global operating mode
        a, b    : INT;
    END_VAR
    VAR_TEMP i : INT; END_VAR

and ``PROGRAM | FUNCTION_BLOCK | FUNCTION <name> ... END_<same>`` spans.
Anything it does not understand is skipped.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Union

from .models import CanonicalTag, Direction, Routine, TagType, Vendor
from .validator import resolve_type_lenient

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

_BLOCK_START_RE = re.compile(
    r"^VAR(?P<kind>_INPUT|_OUTPUT|_IN_OUT|_GLOBAL|_TEMP|_EXTERNAL|_STAT)?\b"
    r"(?P<qualifiers>(?:\s+(?:CONSTANT|RETAIN|PERSISTENT))*)",
    re.IGNORECASE,
)
_BLOCK_END_RE = re.compile(r"^END_VAR\b", re.IGNORECASE)

_DECLARATION_RE = re.compile(
    r"^(?P<names>[A-Za-z_]\w*(?:\s*,\s*[A-Za-z_]\w*)*)\s*"
    r"(?:AT\s+(?P<address>%[A-Za-z]+[\d.]*\*?)\s*)?"
    r":\s*(?P<type>[^;:=]+?)\s*"
    r"(?::=\s*(?P<default>(?:'[^']*'|[^;])+?))?\s*;?\s*$",
    re.IGNORECASE,
)

_BLOCK_COMMENT_RE = re.compile(r"\(\*(.*?)\*\)", re.DOTALL)
_ADDRESS_HINT_RE = re.compile(r"address\s*=\s*([^\s,]+)", re.IGNORECASE)
_SCOPE_HINT_RE = re.compile(r"scope\s*=\s*([^\s,]+)", re.IGNORECASE)
# one ';'-terminated statement; quoted literals may contain ';'
_STATEMENT_RE = re.compile(r"""(?:'[^']*'|"[^"]*"|[^;'"])+""")

ROUTINE_RE = re.compile(
    r"\b(PROGRAM|FUNCTION_BLOCK|FUNCTION)\s+(\w+)(.*?)\bEND_\1\b",
    re.IGNORECASE | re.DOTALL,
)

# VAR block suffix -> (scope label, direction, tag type)
_BLOCK_KINDS = {
    "": ("Local", Direction.INTERNAL, TagType.MEMORY),
    "_INPUT": ("Input", Direction.INPUT, TagType.INPUT),
    "_OUTPUT": ("Output", Direction.OUTPUT, TagType.OUTPUT),
    "_IN_OUT": ("InOut", Direction.INPUT, TagType.MEMORY),
    "_GLOBAL": ("Global", Direction.INTERNAL, TagType.MEMORY),
    "_TEMP": ("Temp", Direction.INTERNAL, TagType.TEMP),
    "_EXTERNAL": ("External", Direction.INTERNAL, TagType.MEMORY),
    "_STAT": ("Static", Direction.INTERNAL, TagType.MEMORY),
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _split_comment(line: str) -> tuple[str, str]:
    """Return ``(code, comment_text)`` for one line."""
    comments = [m.strip() for m in _BLOCK_COMMENT_RE.findall(line)]
    code = _BLOCK_COMMENT_RE.sub(" ", line)
    if "//" in code:
        code, tail = code.split("//", 1)
        comments.append(tail.strip())
    return code.strip(), " ".join(c for c in comments if c)


def _hints_from_comment(comment: str) -> tuple[str, str, str]:
    """Pull ``address=`` and ``scope=`` hints out of a comment.

    Returns:
        ``(address, scope, remaining_description)``; a missing hint is ``""``.
    """
    m = _ADDRESS_HINT_RE.search(comment)
    address = m.group(1) if m else ""
    m = _SCOPE_HINT_RE.search(comment)
    scope = m.group(1) if m else ""
    description = _SCOPE_HINT_RE.sub("", _ADDRESS_HINT_RE.sub("", comment))
    return address, scope, " ".join(description.split())


def _direction_for_address(address: str, default: Direction) -> Direction:
    addr = address.upper()
    if addr.startswith("%I"):
        return Direction.INPUT
    if addr.startswith("%Q"):
        return Direction.OUTPUT
    return default


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def extract_variables(
    source: str,
    vendor: Union[Vendor, str] = Vendor.GENERIC,
) -> List[CanonicalTag]:
    """Extract variable declarations from VAR blocks.

    Args:
        source: Structured Text source.
        vendor: Vendor recorded on the tags; also selects the data-type
            table (Generic sources use the IEC table).

    Returns:
        One tag per declared name, in source order.  Scope, direction and
        tag type come from the enclosing block keyword; a ``scope=`` comment
        hint overrides the scope and ``AT %I``/``%Q`` locations override the
        direction.
    """
    vendor = Vendor.coerce(vendor)
    tags: List[CanonicalTag] = []
    block: Optional[tuple] = None
    constant = False
    in_comment = False

    for line in source.splitlines():
        text = line.strip()

        # multi-line (* ... *) comments
        if in_comment:
            if "*)" in text:
                in_comment = False
                text = text.split("*)", 1)[1].strip()
            else:
                continue
        if "(*" in text and "*)" not in text.split("(*", 1)[1]:
            in_comment = True
            text = text.split("(*", 1)[0].strip()

        if not text:
            continue

        if block is None:
            m = _BLOCK_START_RE.match(text)
            if not m:
                continue
            block = _BLOCK_KINDS[(m.group("kind") or "").upper()]
            constant = "CONSTANT" in (m.group("qualifiers") or "").upper()
            # declarations may follow the keyword on the same line
            text = text[m.end():].strip()

        code, comment = _split_comment(text)
        hinted_address, hinted_scope, description = _hints_from_comment(comment)

        for statement in _STATEMENT_RE.findall(code):
            statement = statement.strip()
            if not statement:
                continue
            if _BLOCK_END_RE.match(statement):
                block = None
                break
            m = _DECLARATION_RE.match(statement)
            if not m:
                logger.debug("Skipping unrecognised declaration: %r", statement)
                continue

            scope, direction, tag_type = block
            address = m.group("address") or hinted_address
            raw_type = " ".join(m.group("type").split())
            default = m.group("default")

            for name in re.split(r"\s*,\s*", m.group("names")):
                tags.append(CanonicalTag(
                    name=name,
                    type=resolve_type_lenient(vendor, raw_type),
                    vendor_data_type=raw_type.upper(),
                    vendor=vendor.value,
                    address=address,
                    scope=hinted_scope or scope,
                    tag_type=TagType.CONSTANT if constant else tag_type,
                    default_value=default.strip() if default else None,
                    description=description,
                    direction=_direction_for_address(address, direction),
                ))

    return tags


def extract_routines(source: str, source_file: str = "") -> List[Routine]:
    """Extract ``PROGRAM``/``FUNCTION_BLOCK``/``FUNCTION`` spans.

    Each routine's ``code`` is the raw matched text, keyword through
    ``END_`` keyword.
    """
    routines: List[Routine] = []
    for m in ROUTINE_RE.finditer(source):
        routines.append(Routine(
            name=m.group(2),
            kind=m.group(1).upper(),
            code=m.group(0),
            source_file=source_file,
        ))
    return routines
