"""
Tag import orchestration.

An import is all-or-nothing at file granularity: every row is parsed and
validated first, and only a batch with zero row errors is written.  A
half-applied I/O mapping is worse than a rejected file the operator can
fix and re-submit.

    parse rows -> validate every row -> errors?  return failure, write nothing
                                     -> clean?   store.upsert_tags() in one
                                                 transaction

Usage::

    store = InMemoryTagStore()
    result = import_tags(buffer, project_id=7, user_id="u1",
                         vendor="rockwell", store=store)
    if not result.success:
        for err in result.errors:
            print(err.row, err.errors)
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from .canonical import CsvCanonicalizer, read_xlsx_rows, read_xml_rows
from .errors import UnsupportedVendorError
from .models import ImportResult, TAG_VENDORS, TagFormat, Vendor
from .store import TagStore
from .utils import is_zip_buffer, looks_like_xml
from .validator import validate_rows

logger = logging.getLogger(__name__)


def detect_format(buffer: bytes) -> TagFormat:
    """Guess the physical format of a tag file from its first bytes."""
    if is_zip_buffer(buffer):
        return TagFormat.XLSX
    if looks_like_xml(buffer):
        return TagFormat.XML
    return TagFormat.CSV


def _tag_vendor(vendor: Union[Vendor, str]) -> Vendor:
    try:
        vendor = Vendor.coerce(vendor)
    except ValueError as exc:
        raise UnsupportedVendorError(str(exc)) from exc
    if vendor not in TAG_VENDORS:
        raise UnsupportedVendorError(
            f"Tag import is not supported for vendor '{vendor.value}'"
        )
    return vendor


def read_rows(
    buffer: bytes,
    vendor: Union[Vendor, str],
    fmt: Union[TagFormat, str, None] = None,
) -> list:
    """Parse *buffer* into canonical row dicts.

    Raises:
        ParseError: If the file is structurally unreadable or empty.
    """
    vendor = _tag_vendor(vendor)
    if fmt is None:
        fmt = detect_format(buffer)
    elif not isinstance(fmt, TagFormat):
        fmt = TagFormat(fmt.lower())

    if fmt is TagFormat.XLSX:
        return read_xlsx_rows(vendor, buffer)
    if fmt is TagFormat.XML:
        return read_xml_rows(vendor, buffer)
    return CsvCanonicalizer(vendor).parse(buffer)


def import_tags(
    buffer: bytes,
    project_id: Optional[int],
    user_id: Optional[str],
    *,
    vendor: Union[Vendor, str],
    store: TagStore,
    fmt: Union[TagFormat, str, None] = None,
) -> ImportResult:
    """Import a vendor tag file into *store*.

    Args:
        buffer: Complete file contents.
        project_id: Project the tags belong to.
        user_id: User performing the import.
        vendor: Vendor whose conventions the file follows.
        store: Destination tag store.
        fmt: ``"csv"``, ``"xml"`` or ``"xlsx"``; detected from the
            content when omitted.

    Returns:
        ``ImportResult(success=True, inserted=n)`` when every row was
        valid and written, otherwise ``ImportResult(success=False,
        errors=[...], processed=<clean rows>)`` with nothing written.

    Raises:
        ParseError: If the file cannot be read into rows.
        UnsupportedVendorError: If *vendor* has no tag file conventions.
        PersistenceError: Propagated from *store*.
    """
    vendor = _tag_vendor(vendor)
    rows = read_rows(buffer, vendor, fmt)

    tags, errors = validate_rows(vendor, rows, project_id, user_id)
    if errors:
        logger.warning(
            "Rejected %s import for project %s: %d of %d rows invalid",
            vendor.value, project_id, len(errors), len(rows),
        )
        return ImportResult(success=False, errors=tuple(errors), processed=len(tags))

    inserted = store.upsert_tags(tags)
    logger.info(
        "Imported %d %s tags into project %s", inserted, vendor.value, project_id
    )
    return ImportResult(success=True, inserted=inserted)


def import_csv(buffer, project_id, user_id, *, vendor, store) -> ImportResult:
    """Import a vendor CSV tag file.  See :func:`import_tags`."""
    return import_tags(buffer, project_id, user_id, vendor=vendor, store=store, fmt=TagFormat.CSV)


def import_xml(buffer, project_id, user_id, *, vendor, store) -> ImportResult:
    """Import a vendor XML tag export.  See :func:`import_tags`."""
    return import_tags(buffer, project_id, user_id, vendor=vendor, store=store, fmt=TagFormat.XML)


def import_xlsx(buffer, project_id, user_id, *, vendor, store) -> ImportResult:
    """Import a vendor XLSX tag sheet.  See :func:`import_tags`."""
    return import_tags(buffer, project_id, user_id, vendor=vendor, store=store, fmt=TagFormat.XLSX)
