"""
Shared data models, enumerations, and typed structures for the tag toolkit.

Provides:
- ``str``-based enums for vendor, canonical type, scope, tag type, etc.
  These compare equal to plain strings (``Vendor.ROCKWELL == "rockwell"``),
  so callers that pass bare string literals keep working.
- Frozen dataclasses for the canonical tag/routine model and the structured
  results returned by import and project-parse operations.  Records are
  built once per call and never mutated; use :func:`dataclasses.replace`
  to derive an updated copy.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

# ---------------------------------------------------------------------------
# Module logger
# ---------------------------------------------------------------------------
logger = logging.getLogger(__name__)


# ===================================================================
# Enumerations
# ===================================================================

class Vendor(str, Enum):
    """Closed set of ecosystems a file can be classified as."""
    SIEMENS = "siemens"
    ROCKWELL = "rockwell"
    BECKHOFF = "beckhoff"
    GENERIC = "generic"
    UNKNOWN = "unknown"

    @property
    def label(self) -> str:
        """Display name used in project-parse results (``'Siemens'``)."""
        return self.value.capitalize()

    @classmethod
    def coerce(cls, value: Any) -> "Vendor":
        """Return the member matching *value* case-insensitively.

        Raises:
            ValueError: If *value* names no vendor.
        """
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value == text:
                return member
        raise ValueError(f"Unknown vendor '{value}'")


# Vendors that have tag import/export conventions.
TAG_VENDORS = (Vendor.SIEMENS, Vendor.ROCKWELL, Vendor.BECKHOFF)


class CanonicalType(str, Enum):
    """Vendor-neutral data type every canonical tag resolves to."""
    BOOL = "BOOL"
    INT = "INT"
    DINT = "DINT"
    REAL = "REAL"
    STRING = "STRING"
    WORD = "WORD"
    DWORD = "DWORD"
    TIMER = "TIMER"
    COUNTER = "COUNTER"


class TagScope(str, Enum):
    """Visibility of a tag within a PLC program."""
    GLOBAL = "global"
    LOCAL = "local"
    INPUT = "input"
    OUTPUT = "output"
    INTERNAL = "internal"


class TagType(str, Enum):
    """Memory class of a tag."""
    INPUT = "input"
    OUTPUT = "output"
    MEMORY = "memory"
    TEMP = "temp"
    CONSTANT = "constant"


class Direction(str, Enum):
    """Signal direction reported by project reconnaissance."""
    INPUT = "Input"
    OUTPUT = "Output"
    INTERNAL = "Internal"


class RoutineKind(str, Enum):
    """Well-known routine kinds.  Rockwell routines may also carry their
    language type (``RLL``, ``ST``) as the kind."""
    PROGRAM = "PROGRAM"
    FUNCTION_BLOCK = "FUNCTION_BLOCK"
    FUNCTION = "FUNCTION"
    AOI = "AOI"
    POU = "POU"
    ROUTINE = "Routine"


class TagFormat(str, Enum):
    """Physical file formats supported for tag import/export."""
    CSV = "csv"
    XML = "xml"
    XLSX = "xlsx"


# ===================================================================
# Dataclasses -- canonical model
# ===================================================================

@dataclass(frozen=True)
class CanonicalTag:
    """Vendor-neutral representation of a single PLC variable.

    ``vendor_data_type`` keeps the type string as the vendor file declared
    it, even when ``type`` is a fallback.  ``direction`` is only meaningful
    for tags discovered by project reconnaissance.  ``id`` is assigned by a
    :class:`~plc_tag_toolkit.store.TagStore` once persisted.
    """
    name: str
    type: CanonicalType
    vendor_data_type: str
    vendor: str
    address: str = ""
    scope: str = TagScope.GLOBAL
    tag_type: str = TagType.MEMORY
    default_value: Optional[str] = None
    description: str = ""
    is_ai_generated: bool = False
    project_id: Optional[int] = None
    user_id: Optional[str] = None
    direction: str = Direction.INTERNAL
    id: Optional[int] = None

    def to_dict(self) -> dict:
        """Serialize to a plain dict (for JSON compatibility)."""
        d: dict[str, Any] = {
            "name": self.name,
            "type": _plain(self.type),
            "data_type": self.vendor_data_type,
            "address": self.address,
            "scope": _plain(self.scope),
            "tag_type": _plain(self.tag_type),
            "description": self.description,
            "vendor": _plain(self.vendor),
            "direction": _plain(self.direction),
            "is_ai_generated": self.is_ai_generated,
        }
        if self.default_value is not None:
            d["default_value"] = self.default_value
        if self.project_id is not None:
            d["project_id"] = self.project_id
        if self.user_id is not None:
            d["user_id"] = self.user_id
        if self.id is not None:
            d["id"] = self.id
        return d


@dataclass(frozen=True)
class Routine:
    """A program unit discovered in a project file."""
    name: str
    kind: str = RoutineKind.ROUTINE
    program: str = ""
    code: str = ""
    source_file: str = ""

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "kind": _plain(self.kind),
            "program": self.program,
            "code": self.code,
            "source_file": self.source_file,
        }


@dataclass(frozen=True)
class ProjectMetadata:
    """File-level facts gathered while parsing a project."""
    file_count: int = 1
    total_size: int = 0
    line_count: Optional[int] = None
    plc_type: Optional[str] = None
    software_version: Optional[str] = None

    def to_dict(self) -> dict:
        d: dict[str, Any] = {
            "file_count": self.file_count,
            "total_size": self.total_size,
        }
        if self.line_count is not None:
            d["line_count"] = self.line_count
        if self.plc_type is not None:
            d["plc_type"] = self.plc_type
        if self.software_version is not None:
            d["software_version"] = self.software_version
        return d


@dataclass(frozen=True)
class ProjectParseResult:
    """Result of project-file reconnaissance.

    ``errors`` lists structural failures that were caught and logged
    while parsing; the tags and routines extracted before a failure are
    still returned.
    """
    vendor: str
    project_name: str
    tags: tuple[CanonicalTag, ...] = ()
    routines: tuple[Routine, ...] = ()
    metadata: ProjectMetadata = field(default_factory=ProjectMetadata)
    errors: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "vendor": self.vendor,
            "project_name": self.project_name,
            "tags": [t.to_dict() for t in self.tags],
            "routines": [r.to_dict() for r in self.routines],
            "metadata": self.metadata.to_dict(),
            "errors": list(self.errors),
        }


# ===================================================================
# Dataclasses -- import results
# ===================================================================

@dataclass(frozen=True)
class RowError:
    """Validation problems found on one data row (1-based)."""
    row: int
    errors: tuple[str, ...]
    raw: dict

    def to_dict(self) -> dict:
        return {"row": self.row, "errors": list(self.errors), "raw": dict(self.raw)}


@dataclass(frozen=True)
class ImportResult:
    """Outcome of a tag import.

    On success ``inserted`` counts the tags written.  On failure nothing
    was written, ``errors`` holds every row problem and ``processed``
    counts the rows that mapped cleanly.
    """
    success: bool
    inserted: Optional[int] = None
    errors: tuple[RowError, ...] = ()
    processed: Optional[int] = None

    def to_dict(self) -> dict:
        d: dict[str, Any] = {"success": self.success}
        if self.inserted is not None:
            d["inserted"] = self.inserted
        if self.errors:
            d["errors"] = [e.to_dict() for e in self.errors]
        if self.processed is not None:
            d["processed"] = self.processed
        return d


@dataclass(frozen=True)
class ExportOptions:
    """Caller-supplied export settings.

    Attributes:
        delimiter: CSV field delimiter.
        pretty_print: Indent XML output.
        sheet_name: XLSX worksheet title; ``None`` uses the vendor default.
        table_name: Siemens XML tag table name; ``None`` derives
            ``Project_<id>_Tags`` when a project id is known.
    """
    delimiter: str = ","
    pretty_print: bool = True
    sheet_name: Optional[str] = None
    table_name: Optional[str] = None


def _plain(value: Any) -> Any:
    """Unwrap a str-enum member to its value for JSON output."""
    return value.value if isinstance(value, Enum) else value
