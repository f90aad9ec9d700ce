"""
Row validation and mapping for vendor tag imports.

Each canonical row dict produced by :mod:`~plc_tag_toolkit.canonical` is
checked against its vendor's rules and, when clean, mapped to a
:class:`~plc_tag_toolkit.models.CanonicalTag`.

Problems are collected, never raised: every row is validated even after
an earlier row failed, so the caller sees the complete list of problems
in one pass.

Per-vendor rules:
    - **Rockwell**: name and data type required; the data type must be a
      Studio 5000 type; addresses follow the PLC-5/SLC file grammar
      (``I:1/0``, ``N7:0`` ...) or are plain symbols.  Scope is the
      lower-cased ``scope`` column, defaulting to ``global``.
    - **Siemens**: the name must be an identifier; a blank data type is
      inferred from the initial value or the address.  Scope and tag type
      follow the leading address letter (German ``E``/``A`` accepted).
    - **Beckhoff**: name and data type required; unknown types degrade to
      ``DINT`` with the declared type kept.  ``%I``/``%Q`` addresses set
      both scope and tag type.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional, Tuple, Union

from .models import CanonicalTag, CanonicalType, RowError, TagScope, TagType, Vendor
from .schema import (
    BECKHOFF_ADDRESS_PATTERNS,
    BECKHOFF_FALLBACK_TYPE,
    BECKHOFF_STANDARD_TYPES,
    BECKHOFF_TYPE_ALIASES,
    BOOLEAN_LITERALS,
    ROCKWELL_ADDRESS_PATTERNS,
    ROCKWELL_STANDARD_TYPES,
    ROCKWELL_TYPE_ALIASES,
    SIEMENS_ADDRESS_PREFIXES,
    SIEMENS_STANDARD_TYPES,
    SIEMENS_TYPE_ALIASES,
)
from .utils import normalize_key, validate_tag_name

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------

_TYPE_TABLES = {
    Vendor.ROCKWELL: (ROCKWELL_TYPE_ALIASES, ROCKWELL_STANDARD_TYPES),
    Vendor.SIEMENS: (SIEMENS_TYPE_ALIASES, SIEMENS_STANDARD_TYPES),
    Vendor.BECKHOFF: (BECKHOFF_TYPE_ALIASES, BECKHOFF_STANDARD_TYPES),
}

_ADDRESS_PATTERNS = {
    Vendor.ROCKWELL: [re.compile(p, re.IGNORECASE) for p in ROCKWELL_ADDRESS_PATTERNS],
    Vendor.BECKHOFF: [re.compile(p, re.IGNORECASE) for p in BECKHOFF_ADDRESS_PATTERNS],
}

_LEADING_IDENT_RE = re.compile(r"^\s*([A-Za-z_]+)")
_NUMBER_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")

_TAG_TYPES = {t.value for t in TagType}


# ---------------------------------------------------------------------------
# Result container
# ---------------------------------------------------------------------------

class RowValidation:
    """Outcome of validating one row.

    ``mapped`` is set only when ``errors`` is empty.
    """

    def __init__(self) -> None:
        self.errors: list[str] = []
        self.mapped: Optional[CanonicalTag] = None

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    def __repr__(self) -> str:
        return (
            f"RowValidation(errors={len(self.errors)}, "
            f"mapped={self.mapped.name if self.mapped else None!r})"
        )


# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------

def resolve_type(
    vendor: Union[Vendor, str], raw_type: str
) -> Optional[Tuple[str, CanonicalType]]:
    """Resolve a vendor data type string.

    Lookup is case- and whitespace-insensitive.  For Beckhoff, parameterised
    declarations resolve by their leading keyword (``ARRAY [0..9] OF INT``
    -> ``ARRAY``, ``STRING(80)`` -> ``STRING``).

    Returns:
        ``(vendor_type_name, canonical_type)``, or ``None`` if the type is
        not in the vendor table.
    """
    vendor = Vendor.coerce(vendor)
    if vendor not in _TYPE_TABLES or not raw_type:
        return None
    aliases, standard = _TYPE_TABLES[vendor]

    name = aliases.get(normalize_key(raw_type))
    if name is None and vendor is Vendor.BECKHOFF:
        m = _LEADING_IDENT_RE.match(raw_type)
        if m:
            name = aliases.get(m.group(1).lower())
    if name is None or name not in standard:
        return None
    return name, CanonicalType(standard[name])


def resolve_type_lenient(
    vendor: Union[Vendor, str], raw_type: str
) -> CanonicalType:
    """Resolve a data type for reconnaissance, never failing.

    Generic and unknown sources use the IEC 61131-3 (TwinCAT) table.
    Anything unresolved maps to ``DINT``.
    """
    vendor = Vendor.coerce(vendor)
    if vendor not in _TYPE_TABLES:
        vendor = Vendor.BECKHOFF
    resolved = resolve_type(vendor, raw_type)
    if resolved is None and vendor is not Vendor.BECKHOFF:
        resolved = resolve_type(Vendor.BECKHOFF, raw_type)
    if resolved is None:
        return CanonicalType(BECKHOFF_FALLBACK_TYPE)
    return resolved[1]


def _is_number(text: str) -> bool:
    return bool(_NUMBER_RE.match(text))


def infer_siemens_type(default_value: str, address: str) -> str:
    """Guess a TIA Portal type for a row whose data type column is blank."""
    value = (default_value or "").strip()
    if value.lower() in BOOLEAN_LITERALS:
        return "BOOL"
    if value and _is_number(value):
        return "REAL" if "." in value else "DINT"
    if (address or "").strip().lstrip("%").lower()[:1] in ("i", "q", "e", "a"):
        return "BOOL"
    return "DINT"


# ---------------------------------------------------------------------------
# Addresses
# ---------------------------------------------------------------------------

def validate_address(vendor: Union[Vendor, str], address: str) -> bool:
    """Return ``True`` if *address* fits the vendor's address grammar.

    Siemens addresses have no strict grammar and are always accepted.
    """
    vendor = Vendor.coerce(vendor)
    patterns = _ADDRESS_PATTERNS.get(vendor)
    if patterns is None:
        return True
    addr = (address or "").strip()
    return any(p.match(addr) for p in patterns)


def _siemens_prefix(address: str) -> Optional[Tuple[str, str]]:
    return SIEMENS_ADDRESS_PREFIXES.get((address or "").strip().lstrip("%").lower()[:1])


def _iec_direction(address: str) -> Optional[str]:
    addr = (address or "").strip().upper()
    if addr.startswith("%I"):
        return "input"
    if addr.startswith("%Q"):
        return "output"
    return None


def infer_scope(vendor: Vendor, address: str, explicit: str = "") -> str:
    """Derive a tag scope from the explicit column and the address."""
    explicit = (explicit or "").strip().lower()
    if vendor is Vendor.BECKHOFF:
        return _iec_direction(address) or explicit or TagScope.GLOBAL.value
    if explicit:
        return explicit
    if vendor is Vendor.SIEMENS:
        prefix = _siemens_prefix(address)
        if prefix and prefix[0] in ("input", "output"):
            return prefix[0]
    return TagScope.GLOBAL.value


def infer_tag_type(vendor: Vendor, address: str, category: str = "") -> str:
    """Derive a tag type from an explicit category or the address prefix."""
    category = (category or "").strip().lower()
    if category in _TAG_TYPES:
        return category
    if vendor is Vendor.SIEMENS:
        prefix = _siemens_prefix(address)
        return prefix[1] if prefix else TagType.MEMORY.value
    return _iec_direction(address) or TagType.MEMORY.value


# ---------------------------------------------------------------------------
# Row validation
# ---------------------------------------------------------------------------

def validate_row(
    vendor: Union[Vendor, str],
    row: dict,
    project_id: Optional[int] = None,
    user_id: Optional[str] = None,
) -> RowValidation:
    """Validate one canonical row and map it to a :class:`CanonicalTag`.

    Args:
        vendor: Vendor whose rules apply.
        row: Canonical row dict (see :mod:`~plc_tag_toolkit.canonical`).
        project_id: Owning project, copied onto the mapped tag.
        user_id: Importing user, copied onto the mapped tag.

    Returns:
        A :class:`RowValidation`; ``mapped`` is ``None`` when any check
        failed.
    """
    vendor = Vendor.coerce(vendor)
    result = RowValidation()
    label = vendor.label

    name = (row.get("name") or "").strip()
    raw_type = (row.get("data_type") or "").strip()
    address = (row.get("address") or "").strip()
    default_value = (row.get("default_value") or "").strip()

    # -- name --
    if not name:
        result.add_error(
            "Missing variable name" if vendor is Vendor.BECKHOFF
            else "Missing tag name"
        )
    elif vendor is Vendor.SIEMENS:
        try:
            validate_tag_name(name)
        except ValueError:
            result.add_error(
                "Invalid tag name format for Siemens. Must start with letter "
                "or underscore, followed by letters, numbers, or underscores"
            )

    # -- data type --
    vendor_type = ""
    canonical_type: Optional[CanonicalType] = None
    if not raw_type and vendor is Vendor.SIEMENS:
        vendor_type = infer_siemens_type(default_value, address)
        canonical_type = CanonicalType(SIEMENS_STANDARD_TYPES[vendor_type])
    elif not raw_type:
        result.add_error("Missing data type")
    else:
        resolved = resolve_type(vendor, raw_type)
        if resolved is not None:
            vendor_type, canonical_type = resolved
            if vendor is Vendor.SIEMENS:
                vendor_type = raw_type
            elif normalize_key(raw_type) not in BECKHOFF_TYPE_ALIASES and \
                    vendor is Vendor.BECKHOFF:
                # parameterised declaration, kept as written
                vendor_type = raw_type
        elif vendor is Vendor.BECKHOFF:
            logger.debug(
                "Unknown Beckhoff type %r for %r; using %s",
                raw_type, name, BECKHOFF_FALLBACK_TYPE,
            )
            vendor_type = raw_type
            canonical_type = CanonicalType(BECKHOFF_FALLBACK_TYPE)
        else:
            result.add_error(f"Unsupported {label} data type: {raw_type}")

    # -- address --
    if address and not validate_address(vendor, address):
        result.add_error(f"Invalid {label} address format: {address}")

    if result.errors:
        return result

    result.mapped = CanonicalTag(
        name=name,
        type=canonical_type,
        vendor_data_type=vendor_type,
        vendor=vendor.value,
        address=address,
        scope=infer_scope(vendor, address, row.get("scope", "")),
        tag_type=infer_tag_type(vendor, address, row.get("category", "")),
        default_value=default_value or None,
        description=(row.get("description") or "").strip(),
        project_id=project_id,
        user_id=user_id,
    )
    return result


def validate_rows(
    vendor: Union[Vendor, str],
    rows: Iterable[dict],
    project_id: Optional[int] = None,
    user_id: Optional[str] = None,
) -> Tuple[List[CanonicalTag], List[RowError]]:
    """Validate every row, collecting all problems.

    Row numbers are 1-based data-row indices.  A name repeated within the
    same file is reported on each repeat.

    Returns:
        ``(tags, errors)`` -- the cleanly mapped tags and one
        :class:`RowError` per failing row.
    """
    vendor = Vendor.coerce(vendor)
    tags: List[CanonicalTag] = []
    errors: List[RowError] = []
    seen: dict[str, int] = {}

    for i, row in enumerate(rows):
        row_number = i + 1
        result = validate_row(vendor, row, project_id, user_id)
        if result.mapped is not None:
            first = seen.get(result.mapped.name)
            if first is not None:
                result.add_error(
                    f"Duplicate tag name '{result.mapped.name}' "
                    f"(first defined on row {first})"
                )
            else:
                seen[result.mapped.name] = row_number

        if result.errors:
            errors.append(RowError(row=row_number, errors=tuple(result.errors), raw=dict(row)))
        else:
            tags.append(result.mapped)

    logger.debug(
        "Validated %d %s rows: %d clean, %d with errors",
        len(tags) + len(errors), vendor.value, len(tags), len(errors),
    )
    return tags, errors
