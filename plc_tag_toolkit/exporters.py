"""
Tag exporters: canonical tags -> vendor CSV, XML and XLSX files.

Each vendor has one header convention, shared by its CSV and XLSX
output, and one XML element shape:

    ========  ==================================================
    Rockwell  ``ControllerTags > Tag``
    Siemens   ``Siemens.TIA.Portal.TagTable > TagTable > Tags > Tag``
    Beckhoff  ``Variables > Variable``
    ========  ==================================================

Exporting an empty tag list always produces a well-formed file: a CSV
header line, an empty root element, or a header-only worksheet.
"""

from __future__ import annotations

import csv
import io
import logging
import re
from dataclasses import replace
from typing import BinaryIO, Callable, Dict, List, Optional, Sequence, Union

from lxml import etree
from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from .errors import UnsupportedVendorError
from .models import CanonicalTag, ExportOptions, TAG_VENDORS, TagFormat, Vendor
from .schema import (
    BECKHOFF_COLUMN_WIDTHS,
    BECKHOFF_EXPORT_HEADERS,
    CONVERSION_TYPE_NAMES,
    ROCKWELL_COLUMN_WIDTHS,
    ROCKWELL_EXPORT_HEADERS,
    SIEMENS_COLUMN_WIDTHS,
    SIEMENS_EXPORT_HEADERS,
    SIEMENS_XML_ROOT,
    XLSX_SHEET_NAMES,
)
from .store import TagStore
from .utils import add_text_child, element_to_bytes
from .validator import validate_address

logger = logging.getLogger(__name__)


def _text(value) -> str:
    if value is None:
        return ""
    return getattr(value, "value", value)


# ---------------------------------------------------------------------------
# Row layouts
# ---------------------------------------------------------------------------

def _rockwell_row(tag: CanonicalTag) -> List[str]:
    return [
        tag.name,
        tag.vendor_data_type,
        _text(tag.scope) or "Global",
        tag.description,
        "",
        _text(tag.default_value),
        tag.address,
    ]


def _siemens_row(tag: CanonicalTag) -> List[str]:
    return [
        tag.name,
        tag.vendor_data_type,
        tag.address,
        tag.description,
        _text(tag.default_value),
        _text(tag.scope),
    ]


def _beckhoff_row(tag: CanonicalTag) -> List[str]:
    return [
        tag.name,
        tag.vendor_data_type or "DINT",
        tag.address,
        tag.description,
        _text(tag.default_value),
        _text(tag.scope) or "Global",
        "",
    ]


# vendor -> (headers, column widths, row builder)
_LAYOUTS: Dict[Vendor, tuple] = {
    Vendor.ROCKWELL: (ROCKWELL_EXPORT_HEADERS, ROCKWELL_COLUMN_WIDTHS, _rockwell_row),
    Vendor.SIEMENS: (SIEMENS_EXPORT_HEADERS, SIEMENS_COLUMN_WIDTHS, _siemens_row),
    Vendor.BECKHOFF: (BECKHOFF_EXPORT_HEADERS, BECKHOFF_COLUMN_WIDTHS, _beckhoff_row),
}


def _export_vendor(vendor: Union[Vendor, str]) -> Vendor:
    try:
        vendor = Vendor.coerce(vendor)
    except ValueError as exc:
        raise UnsupportedVendorError(str(exc)) from exc
    if vendor not in TAG_VENDORS:
        raise UnsupportedVendorError(
            f"Tag export is not supported for vendor '{vendor.value}'"
        )
    return vendor


# ---------------------------------------------------------------------------
# CSV
# ---------------------------------------------------------------------------

def render_csv(
    tags: Sequence[CanonicalTag],
    vendor: Union[Vendor, str],
    options: Optional[ExportOptions] = None,
) -> bytes:
    """Render *tags* as a vendor CSV file (UTF-8, CRLF line endings)."""
    vendor = _export_vendor(vendor)
    options = options or ExportOptions()
    headers, _, build_row = _LAYOUTS[vendor]

    out = io.StringIO(newline="")
    writer = csv.writer(out, delimiter=options.delimiter)
    writer.writerow(headers)
    for tag in tags:
        writer.writerow(build_row(tag))
    return out.getvalue().encode("utf-8")


# ---------------------------------------------------------------------------
# XML
# ---------------------------------------------------------------------------

def _rockwell_xml(tags: Sequence[CanonicalTag], options: ExportOptions) -> etree._Element:
    root = etree.Element("ControllerTags")
    for tag in tags:
        el = etree.SubElement(root, "Tag")
        add_text_child(el, "Name", tag.name)
        add_text_child(el, "DataType", tag.vendor_data_type or "DINT")
        if tag.description:
            add_text_child(el, "Comment", tag.description)
        add_text_child(el, "Scope", _text(tag.scope) or "Global")
        if tag.address:
            add_text_child(el, "Address", tag.address)
        if tag.default_value:
            add_text_child(el, "DefaultValue", tag.default_value)
    return root


def _beckhoff_xml(tags: Sequence[CanonicalTag], options: ExportOptions) -> etree._Element:
    root = etree.Element("Variables")
    for tag in tags:
        el = etree.SubElement(root, "Variable")
        add_text_child(el, "Name", tag.name)
        add_text_child(el, "DataType", tag.vendor_data_type or "DINT")
        if tag.address:
            add_text_child(el, "PhysicalAddress", tag.address)
        if tag.description:
            add_text_child(el, "Comment", tag.description)
        if tag.default_value:
            add_text_child(el, "InitialValue", tag.default_value)
        add_text_child(el, "Scope", _text(tag.scope) or "Global")
    return root


def _siemens_xml(tags: Sequence[CanonicalTag], options: ExportOptions) -> etree._Element:
    root = etree.Element(SIEMENS_XML_ROOT, Version="1.0")
    table = etree.SubElement(root, "TagTable")
    add_text_child(table, "Name", options.table_name or "Tags")
    tags_el = etree.SubElement(table, "Tags")
    for tag in tags:
        el = etree.SubElement(tags_el, "Tag")
        add_text_child(el, "Name", tag.name)
        add_text_child(el, "DataType", tag.vendor_data_type)
        if tag.address:
            add_text_child(el, "Address", tag.address)
        if tag.description:
            add_text_child(el, "Comment", tag.description)
        if tag.default_value:
            add_text_child(el, "InitialValue", tag.default_value)
        if tag.scope:
            add_text_child(el, "Scope", _text(tag.scope))
    return root


_XML_BUILDERS: Dict[Vendor, Callable] = {
    Vendor.ROCKWELL: _rockwell_xml,
    Vendor.SIEMENS: _siemens_xml,
    Vendor.BECKHOFF: _beckhoff_xml,
}


def render_xml(
    tags: Sequence[CanonicalTag],
    vendor: Union[Vendor, str],
    options: Optional[ExportOptions] = None,
) -> bytes:
    """Render *tags* as a vendor XML document."""
    vendor = _export_vendor(vendor)
    options = options or ExportOptions()
    root = _XML_BUILDERS[vendor](tags, options)
    return element_to_bytes(root, pretty_print=options.pretty_print)


# ---------------------------------------------------------------------------
# XLSX
# ---------------------------------------------------------------------------

def render_xlsx(
    tags: Sequence[CanonicalTag],
    vendor: Union[Vendor, str],
    options: Optional[ExportOptions] = None,
) -> bytes:
    """Render *tags* as a single-sheet workbook.

    The header row is bold and every column gets the vendor's fixed width.
    """
    vendor = _export_vendor(vendor)
    options = options or ExportOptions()
    headers, widths, build_row = _LAYOUTS[vendor]

    wb = Workbook()
    ws = wb.active
    ws.title = options.sheet_name or XLSX_SHEET_NAMES[vendor.value]

    header_font = Font(bold=True)
    for col, header in enumerate(headers, 1):
        ws.cell(row=1, column=col, value=header).font = header_font
    for row_idx, tag in enumerate(tags, 2):
        for col, value in enumerate(build_row(tag), 1):
            ws.cell(row=row_idx, column=col,
                    value=ILLEGAL_CHARACTERS_RE.sub("", value) if value else None)
    for col, width in enumerate(widths, 1):
        ws.column_dimensions[get_column_letter(col)].width = width

    out = io.BytesIO()
    wb.save(out)
    return out.getvalue()


# ---------------------------------------------------------------------------
# Cross-vendor conversion
# ---------------------------------------------------------------------------

_ROCKWELL_IO_RE = re.compile(r"^([IO]):(\d+)/(\d+)$", re.IGNORECASE)
_IEC_IO_RE = re.compile(r"^%([IQ])X?(\d+)\.(\d+)$", re.IGNORECASE)


def _convert_address(address: str, target: Vendor) -> str:
    """Translate a discrete I/O address between Rockwell and IEC notation.

    ``I:1/0`` becomes ``%I1.0`` (Siemens) or ``%IX1.0`` (Beckhoff) and back.
    Other addresses are kept when they fit the target grammar and dropped
    otherwise.
    """
    if not address:
        return ""
    m = _ROCKWELL_IO_RE.match(address)
    if m and target is not Vendor.ROCKWELL:
        area = "I" if m.group(1).upper() == "I" else "Q"
        bit = "X" if target is Vendor.BECKHOFF else ""
        return f"%{area}{bit}{m.group(2)}.{m.group(3)}"
    m = _IEC_IO_RE.match(address)
    if m and target is Vendor.ROCKWELL:
        area = "I" if m.group(1).upper() == "I" else "O"
        return f"{area}:{m.group(2)}/{m.group(3)}"
    if validate_address(target, address):
        return address
    logger.debug("Dropping address %r with no %s equivalent", address, target.label)
    return ""


def convert_tag(tag: CanonicalTag, vendor: Union[Vendor, str]) -> CanonicalTag:
    """Re-express *tag* in another vendor's conventions.

    The data type is rewritten from the canonical type (see
    :data:`~plc_tag_toolkit.schema.CONVERSION_TYPE_NAMES`) and the address
    is translated where an equivalent exists.  Name, scope, description and
    default value carry over; the result is not yet persisted.

    Raises:
        UnsupportedVendorError: If *vendor* has no tag file conventions.
    """
    vendor = _export_vendor(vendor)
    if Vendor.coerce(tag.vendor) is vendor:
        return tag
    names = CONVERSION_TYPE_NAMES[vendor.value]
    return replace(
        tag,
        vendor=vendor.value,
        vendor_data_type=names.get(_text(tag.type), names["DINT"]),
        address=_convert_address(tag.address, vendor),
        id=None,
    )


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

_RENDERERS = {
    TagFormat.CSV: render_csv,
    TagFormat.XML: render_xml,
    TagFormat.XLSX: render_xlsx,
}


def render_tags(
    tags: Sequence[CanonicalTag],
    vendor: Union[Vendor, str],
    fmt: Union[TagFormat, str] = TagFormat.CSV,
    options: Optional[ExportOptions] = None,
) -> bytes:
    """Render *tags* in the requested format.

    Args:
        tags: Tags to write, in output order.
        vendor: Target vendor convention.
        fmt: ``"csv"``, ``"xml"`` or ``"xlsx"``.
        options: Per-call settings; defaults apply when omitted.

    Returns:
        The complete file as bytes.

    Raises:
        UnsupportedVendorError: If *vendor* has no tag file conventions.
        ValueError: If *fmt* is not a known format.
    """
    if not isinstance(fmt, TagFormat):
        fmt = TagFormat(str(fmt).lower())
    return _RENDERERS[fmt](tags, vendor, options)


def export_tags(
    project_id: Optional[int],
    vendor: Union[Vendor, str],
    sink: BinaryIO,
    *,
    store: TagStore,
    fmt: Union[TagFormat, str] = TagFormat.CSV,
    options: Optional[ExportOptions] = None,
    source_vendor: Union[Vendor, str, None] = None,
) -> int:
    """Write a project's tags for one vendor to *sink*.

    Tags are read from *store* ordered by name.  The Siemens XML tag table
    is named ``Project_<id>_Tags`` unless ``options.table_name`` is set.

    Args:
        source_vendor: When given, the stored tags of this vendor are read
            and converted to *vendor* with :func:`convert_tag`.  Defaults
            to *vendor* itself.

    Returns:
        The number of tags written.
    """
    vendor = _export_vendor(vendor)
    source = _export_vendor(source_vendor) if source_vendor else vendor
    options = options or ExportOptions()
    if options.table_name is None and project_id is not None:
        options = replace(options, table_name=f"Project_{project_id}_Tags")

    tags = store.list_tags(project_id, source)
    if source is not vendor:
        tags = [convert_tag(tag, vendor) for tag in tags]
    sink.write(render_tags(tags, vendor, fmt, options))
    logger.info(
        "Exported %d %s tags for project %s as %s",
        len(tags), vendor.value, project_id, _text(fmt),
    )
    return len(tags)
