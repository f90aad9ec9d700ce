"""
MCP Server for the PLC Tag Toolkit.

Exposes vendor detection, project reconnaissance, and tag import/export
via the Model Context Protocol, so any MCP-compatible client can move tag
tables between Siemens TIA Portal, Rockwell Studio 5000 and Beckhoff
TwinCAT files through natural language.

Imported tags are held in an in-memory tag store owned by this server
process; they survive between tool calls until the server restarts.

Usage:
    python -m plc_tag_toolkit.mcp_server
    # or
    plc-tag-mcp-server
"""

from __future__ import annotations

import json
import logging
import os
import sys
from urllib.parse import unquote, urlparse

from mcp.server.fastmcp import FastMCP

# ---------------------------------------------------------------------------
# Toolkit imports
# ---------------------------------------------------------------------------
from .detect import detect_vendor
from .exporters import export_tags
from .importer import import_tags
from .models import TagFormat, Vendor
from .project import parse_project
from .store import InMemoryTagStore
from .validator import validate_address

# ---------------------------------------------------------------------------
# Logging (stderr only -- stdout is reserved for MCP protocol)
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    stream=sys.stderr,
)
log = logging.getLogger("plc-tag-mcp")

# ---------------------------------------------------------------------------
# MCP Server
# ---------------------------------------------------------------------------
mcp = FastMCP(
    "PLC Tag Toolkit",
    instructions=(
        "Tools for reading PLC project files and converting tag tables "
        "between Siemens, Rockwell and Beckhoff formats.\n\n"
        "Typical flow: detect_file_vendor -> import_tag_file (into a "
        "project id) -> export_tag_file for the target vendor, passing "
        "source_vendor to convert the imported tags.  "
        "parse_project_file is read-only and never modifies stored tags.\n\n"
        "Imports are all-or-nothing: a file with any invalid row is "
        "rejected and the row errors are returned."
    ),
)

# ---------------------------------------------------------------------------
# Server state
# ---------------------------------------------------------------------------
_store = InMemoryTagStore()


def _normalize_path(raw_path: str) -> str:
    """Normalize a file path from an MCP client into a real filesystem path.

    Handles:
    - file:///C:/... URIs (drag-and-drop gives these)
    - URL-encoded characters (%20 for spaces, etc.)
    - Surrounding quotes or whitespace
    - Relative paths (resolved against cwd)
    """
    path = raw_path.strip().strip('"').strip("'")

    if path.startswith("file:///"):
        decoded = unquote(urlparse(path).path)
        # /C:/path on Windows
        if len(decoded) >= 3 and decoded[0] == '/' and decoded[2] == ':':
            decoded = decoded[1:]
        path = decoded
    elif path.startswith("file://"):
        path = unquote(path[7:])

    return os.path.abspath(os.path.normpath(path))


def _read_file(file_path: str) -> tuple[str, bytes]:
    resolved = _normalize_path(file_path)
    with open(resolved, "rb") as fh:
        return resolved, fh.read()


def _format_for(path: str, fmt: str) -> TagFormat:
    """Explicit *fmt*, else the format implied by the file extension."""
    if fmt:
        return TagFormat(fmt.strip().lower())
    ext = os.path.splitext(path)[1].lower().lstrip(".")
    if ext in ("l5x", "xml"):
        return TagFormat.XML
    if ext in ("xlsx", "xlsm"):
        return TagFormat.XLSX
    return TagFormat.CSV


# ===================================================================
# 1. Reconnaissance
# ===================================================================

@mcp.tool()
def detect_file_vendor(file_path: str) -> str:
    """Identify which PLC vendor produced a file.

    Args:
        file_path: Path to the project or tag file.

    Returns:
        The vendor: siemens, rockwell, beckhoff, generic or unknown.
    """
    try:
        resolved, content = _read_file(file_path)
        vendor = detect_vendor(resolved, content)
        log.info("Detected %s for %s", vendor.value, resolved)
        return vendor.value
    except Exception as e:
        return f"Error detecting vendor: {e}"


@mcp.tool()
def parse_project_file(file_path: str, include_code: bool = False) -> str:
    """Extract tags and routines from a vendor project file.

    Works on TIA Portal archives and XML exports, Studio 5000 L5X files,
    TwinCAT project/POU files and plain Structured Text.

    Args:
        file_path: Path to the project file.
        include_code: Include routine source code in the output.

    Returns:
        JSON with vendor, project_name, tags, routines, metadata and any
        structural errors encountered.
    """
    try:
        resolved, content = _read_file(file_path)
        result = parse_project(resolved, content).to_dict()
        if not include_code:
            for routine in result["routines"]:
                routine.pop("code", None)
        return json.dumps(result, indent=2)
    except Exception as e:
        return f"Error parsing project: {e}"


# ===================================================================
# 2. Tag import / export
# ===================================================================

@mcp.tool()
def import_tag_file(
    file_path: str,
    vendor: str,
    project_id: int,
    user_id: str = "",
    fmt: str = "",
) -> str:
    """Import a vendor tag file (CSV, XML or XLSX) into a project.

    The whole file is validated first; nothing is stored unless every row
    is valid.

    Args:
        file_path: Path to the tag file.
        vendor: siemens, rockwell or beckhoff.
        project_id: Project to import into.
        user_id: Optional user recorded on the tags.
        fmt: csv, xml or xlsx.  Detected from the content if empty.

    Returns:
        JSON: ``{"success": true, "inserted": N}`` or
        ``{"success": false, "errors": [...], "processed": N}``.
    """
    try:
        _, content = _read_file(file_path)
        result = import_tags(
            content,
            project_id,
            user_id or None,
            vendor=vendor,
            store=_store,
            fmt=fmt or None,
        )
        return json.dumps(result.to_dict(), indent=2)
    except Exception as e:
        return f"Error importing tags: {e}"


@mcp.tool()
def export_tag_file(
    project_id: int,
    vendor: str,
    file_path: str,
    fmt: str = "",
    source_vendor: str = "",
) -> str:
    """Write a project's tags to a vendor tag file.

    Args:
        project_id: Project whose tags to export.
        vendor: siemens, rockwell or beckhoff.  The file follows this
            vendor's conventions.
        file_path: Destination path.
        fmt: csv, xml or xlsx.  Taken from the file extension if empty.
        source_vendor: Vendor of the stored tags to convert from.  Empty
            exports the tags already stored for *vendor*.
    """
    try:
        dest = _normalize_path(file_path)
        tag_format = _format_for(dest, fmt)
        with open(dest, "wb") as sink:
            count = export_tags(
                project_id, vendor, sink, store=_store, fmt=tag_format,
                source_vendor=source_vendor or None,
            )
        log.info("Exported %d tags to %s", count, dest)
        return f"Exported {count} {Vendor.coerce(vendor).label} tags to: {dest}"
    except Exception as e:
        return f"Error exporting tags: {e}"


@mcp.tool()
def list_project_tags(project_id: int, vendor: str = "") -> str:
    """List the stored tags of a project.

    Args:
        project_id: Project to list.
        vendor: Optional vendor filter.

    Returns:
        JSON array of tags ordered by name.
    """
    try:
        tags = _store.list_tags(project_id, vendor or None)
        return json.dumps([t.to_dict() for t in tags], indent=2)
    except Exception as e:
        return f"Error listing tags: {e}"


@mcp.tool()
def validate_address_tool(vendor: str, address: str) -> str:
    """Check an I/O address against a vendor's address grammar.

    Args:
        vendor: siemens, rockwell or beckhoff.
        address: Address to check, e.g. ``I:1/0`` or ``%QX0.0``.
    """
    try:
        label = Vendor.coerce(vendor).label
        if validate_address(vendor, address):
            return f"Valid {label} address: {address}"
        return f"Invalid {label} address: {address}"
    except Exception as e:
        return f"Error validating address: {e}"


def main():
    """Run the MCP server on stdio transport."""
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
