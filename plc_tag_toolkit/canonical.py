"""
Row sources: turn vendor tag files into canonical row dicts.

Every tag file, whatever its physical format, is reduced to a list of
plain dicts keyed by the canonical field names in
:data:`~plc_tag_toolkit.schema.CANONICAL_FIELDS`.  Values are trimmed
strings; columns the vendor alias table does not know are dropped.

- CSV goes through :class:`CsvCanonicalizer`, one instance per vendor.
- XLSX goes through :func:`read_xlsx_rows` (openpyxl, first worksheet).
- Vendor XML tag exports go through :func:`read_xml_rows`.

All three funnel into :func:`canonicalize_records`, so header handling is
identical across formats.
"""

from __future__ import annotations

import csv
import io
import logging
import re
from typing import Dict, Iterable, List, Optional, Sequence, Union

from lxml import etree
from openpyxl import load_workbook

from .errors import ParseError, UnsupportedVendorError
from .models import Vendor
from .schema import (
    BECKHOFF_HEADER_ALIASES,
    ROCKWELL_HEADER_ALIASES,
    SIEMENS_HEADER_ALIASES,
)
from .utils import decode_text
from .xml_walker import XmlNode, find_nodes, parse_xml_tree

logger = logging.getLogger(__name__)

HEADER_ALIASES = {
    Vendor.ROCKWELL: ROCKWELL_HEADER_ALIASES,
    Vendor.SIEMENS: SIEMENS_HEADER_ALIASES,
    Vendor.BECKHOFF: BECKHOFF_HEADER_ALIASES,
}

Row = Dict[str, str]


def _require_tag_vendor(vendor: Union[Vendor, str]) -> Vendor:
    try:
        vendor = Vendor.coerce(vendor)
    except ValueError as exc:
        raise UnsupportedVendorError(str(exc)) from exc
    if vendor not in HEADER_ALIASES:
        raise UnsupportedVendorError(
            f"Vendor '{vendor.value}' has no tag file conventions"
        )
    return vendor


def _cell_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


# ---------------------------------------------------------------------------
# Header mapping
# ---------------------------------------------------------------------------

def map_header(vendor: Union[Vendor, str], raw_header: str) -> Optional[str]:
    """Return the canonical field for *raw_header*, or ``None`` if unmapped.

    Headers are trimmed and lower-cased.  Beckhoff headers are also looked
    up with whitespace runs collapsed to ``_``.
    """
    vendor = _require_tag_vendor(vendor)
    aliases = HEADER_ALIASES[vendor]
    key = (raw_header or "").strip().lower()
    field_name = aliases.get(key)
    if field_name is None and vendor is Vendor.BECKHOFF:
        field_name = aliases.get(re.sub(r"\s+", "_", key))
    return field_name


def canonicalize_records(
    vendor: Union[Vendor, str],
    headers: Sequence,
    rows: Iterable[Sequence],
) -> List[Row]:
    """Map raw header/row tuples onto canonical row dicts.

    Args:
        vendor: Vendor whose header alias table applies.
        headers: The raw header row.
        rows: Data rows.  Short rows are padded, blank rows skipped.

    Returns:
        One dict per non-blank data row.  When two columns map to the same
        field, the first column wins.
    """
    vendor = _require_tag_vendor(vendor)

    columns: list[tuple[int, str]] = []
    seen: set[str] = set()
    for index, header in enumerate(headers):
        field_name = map_header(vendor, _cell_text(header))
        if field_name is None:
            logger.debug("Dropping unmapped %s column %r", vendor.value, header)
            continue
        if field_name in seen:
            continue
        seen.add(field_name)
        columns.append((index, field_name))

    records: List[Row] = []
    for raw in rows:
        cells = [_cell_text(c) for c in raw]
        if not any(cells):
            continue
        record: Row = {}
        for index, field_name in columns:
            record[field_name] = cells[index] if index < len(cells) else ""
        records.append(record)
    return records


# ---------------------------------------------------------------------------
# CSV
# ---------------------------------------------------------------------------

class CsvCanonicalizer:
    """Parse a vendor CSV tag export into canonical row dicts.

    Siemens exports are written with ``;`` or ``,`` depending on the
    regional settings of the engineering station, so the delimiter is
    taken from the first line.  Rockwell and Beckhoff always use ``,``.

    Usage::

        rows = CsvCanonicalizer(Vendor.ROCKWELL).parse(buffer)
    """

    def __init__(self, vendor: Union[Vendor, str]) -> None:
        self.vendor = _require_tag_vendor(vendor)
        self.aliases = HEADER_ALIASES[self.vendor]

    def detect_delimiter(self, text: str) -> str:
        if self.vendor is not Vendor.SIEMENS:
            return ","
        first_line = text.split("\n", 1)[0]
        return ";" if ";" in first_line else ","

    def parse(self, buffer: Union[bytes, str]) -> List[Row]:
        """Parse *buffer* into canonical rows.

        Raises:
            ParseError: If the buffer is not UTF-8, cannot be tokenised, or
                contains no data rows.
        """
        label = self.vendor.label
        try:
            text = decode_text(buffer)
        except UnicodeDecodeError as exc:
            raise ParseError(f"Failed to parse {label} CSV: {exc}") from exc

        reader = csv.reader(
            io.StringIO(text, newline=""),
            delimiter=self.detect_delimiter(text),
            skipinitialspace=True,
        )
        try:
            all_rows = [r for r in reader if any(c.strip() for c in r)]
        except csv.Error as exc:
            raise ParseError(f"Failed to parse {label} CSV: {exc}") from exc

        if not all_rows:
            raise ParseError(f"No rows parsed from {label} CSV file")

        records = canonicalize_records(self.vendor, all_rows[0], all_rows[1:])
        if not records:
            raise ParseError(f"No rows parsed from {label} CSV file")
        logger.debug("Parsed %d %s CSV rows", len(records), self.vendor.value)
        return records


# ---------------------------------------------------------------------------
# XLSX
# ---------------------------------------------------------------------------

def read_xlsx_rows(vendor: Union[Vendor, str], buffer: bytes) -> List[Row]:
    """Read the first worksheet of an XLSX workbook into canonical rows.

    Row 1 is the header row.

    Raises:
        ParseError: If the workbook cannot be opened or has no data rows.
    """
    vendor = _require_tag_vendor(vendor)
    try:
        wb = load_workbook(io.BytesIO(buffer), read_only=True, data_only=True)
    except Exception as exc:
        raise ParseError(f"Failed to read {vendor.label} XLSX: {exc}") from exc

    try:
        ws = wb.worksheets[0]
        values = list(ws.iter_rows(values_only=True))
    finally:
        wb.close()

    if len(values) < 2:
        raise ParseError(f"No rows parsed from {vendor.label} XLSX file")
    records = canonicalize_records(vendor, values[0], values[1:])
    if not records:
        raise ParseError(f"No rows parsed from {vendor.label} XLSX file")
    return records


# ---------------------------------------------------------------------------
# XML
# ---------------------------------------------------------------------------

def _rockwell_xml_record(node: XmlNode) -> Optional[Row]:
    # alias tags carry no data type of their own; only the base tag is imported
    if node.get("TagType").lower() == "alias" or node.get("AliasFor"):
        logger.debug("Skipping alias tag %r", node.get("Name"))
        return None
    return {
        "name": node.get("Name"),
        "data_type": node.get("DataType"),
        "description": node.first("Description", "Comment"),
        "scope": node.get("Scope"),
        "address": node.get("Address"),
        "default_value": node.first("DefaultValue", "Value"),
        "external_access": node.get("ExternalAccess"),
    }


def _siemens_xml_record(node: XmlNode) -> Row:
    return {
        "name": node.get("Name"),
        "data_type": node.first("DataType", "DataTypeName"),
        "address": node.first("Address", "LogicalAddress"),
        "description": node.first("Comment", "Description"),
        "default_value": node.first("InitialValue", "StartValue"),
        "scope": node.get("Scope"),
    }


def _beckhoff_xml_record(node: XmlNode) -> Row:
    return {
        "name": node.get("Name"),
        "data_type": node.first("DataType", "Type"),
        "address": node.first("PhysicalAddress", "Address"),
        "description": node.first("Comment", "Description"),
        "default_value": node.first("InitialValue", "DefaultValue"),
        "scope": node.get("Scope"),
        "access_mode": node.get("AccessMode"),
    }


# vendor -> ((element names, record builder), ...)
_XML_SOURCES = {
    Vendor.ROCKWELL: ((("Tag",), _rockwell_xml_record),),
    Vendor.SIEMENS: ((("Tag", "SW.Tags.PlcTag"), _siemens_xml_record),),
    Vendor.BECKHOFF: ((("Variable",), _beckhoff_xml_record),),
}


def read_xml_rows(vendor: Union[Vendor, str], buffer: Union[bytes, str]) -> List[Row]:
    """Read a vendor XML tag export into canonical rows.

    Tag elements are found at any depth, and each field is read from an
    attribute or a child element alike.  Rockwell alias tags are skipped.

    Raises:
        ParseError: If the document is malformed or holds no tag elements.
    """
    vendor = _require_tag_vendor(vendor)
    try:
        root = parse_xml_tree(buffer)
    except etree.XMLSyntaxError as exc:
        raise ParseError(f"Failed to parse {vendor.label} XML: {exc}") from exc

    records: List[Row] = []
    for names, build in _XML_SOURCES[vendor]:
        for name in names:
            for node in find_nodes(root, name):
                record = build(node)
                if record is not None:
                    records.append(record)

    if not records:
        raise ParseError(f"No tags found in {vendor.label} XML file")
    return records
