"""
Project-file reconnaissance: vendor project exports -> tags and routines.

One :class:`ProjectParser` subclass exists per :class:`Vendor` member and
:data:`PARSERS` maps every member, so dispatch in :func:`parse_project`
is exhaustive.

Parsing here is read-only and lenient.  Vendor exports drift between
software versions, so elements are searched by local name at any depth
(see :mod:`~plc_tag_toolkit.xml_walker`) and a missing section simply
contributes nothing.  Structural failures (a corrupt archive, malformed
XML) are caught and logged; the parser returns whatever it extracted
before the failure, with the failure recorded in ``result.errors``.

What each parser reads:

    Siemens   GlobalDB variables; FB / FC / OB blocks as routines, with
              their interface members as tags.  ZIP archives (.ap*) are
              opened and every ``.xml`` entry is parsed.
    Rockwell  Controller and program ``Tag`` elements, ``Program >
              Routine`` (ST lines or ladder rung text), and Add-On
              Instructions with their parameters.
    Beckhoff  ``Variable`` elements, ``POU`` implementations, and the
              VAR blocks of POU / GVL declarations.
    Generic   Plain Structured Text (see :mod:`~plc_tag_toolkit.st_parser`).
"""

from __future__ import annotations

import io
import logging
import os
import zipfile
from abc import ABC, abstractmethod
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from lxml import etree

from .detect import detect_vendor
from .models import (
    CanonicalTag,
    Direction,
    ProjectMetadata,
    ProjectParseResult,
    Routine,
    RoutineKind,
    TagType,
    Vendor,
)
from .st_parser import extract_routines, extract_variables
from .utils import decode_text, is_zip_buffer
from .validator import resolve_type_lenient
from .xml_walker import XmlNode, find_first, find_nodes, iter_nodes, parse_xml_tree, walk

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

def address_direction(address: str) -> Direction:
    """Infer a signal direction from an address or location string."""
    upper = (address or "").upper()
    if "%I" in upper or "INPUT" in upper:
        return Direction.INPUT
    if "%Q" in upper or "OUTPUT" in upper:
        return Direction.OUTPUT
    return Direction.INTERNAL


def section_direction(section: str) -> Direction:
    """Map an interface section name (``Input``, ``InOut`` ...) to a direction."""
    upper = (section or "").upper()
    if "INPUT" in upper:
        return Direction.INPUT
    if "OUTPUT" in upper:
        return Direction.OUTPUT
    return Direction.INTERNAL


def usage_direction(usage: str) -> Direction:
    """Map a Rockwell AOI parameter ``Usage`` attribute to a direction."""
    upper = (usage or "").upper()
    if upper == "INPUT":
        return Direction.INPUT
    if upper == "OUTPUT":
        return Direction.OUTPUT
    return Direction.INTERNAL


_DIRECTION_TAG_TYPES = {
    Direction.INPUT: TagType.INPUT,
    Direction.OUTPUT: TagType.OUTPUT,
}


def _text_of(node: Optional[XmlNode], key: str) -> str:
    """Value of *key* on *node*, descending into multi-language wrappers.

    TIA Portal writes comments as ``<Comment><MultiLanguageText>..``;
    the first non-blank text below the element is used.
    """
    if node is None:
        return ""
    value = node.get(key)
    if value:
        return value
    child = node.child(key)
    if child is None:
        return ""
    for inner in walk(child):
        if inner.text.strip():
            return inner.text.strip()
    return ""


def _interface_members(node: XmlNode, section: str = "") -> Iterator[Tuple[str, XmlNode]]:
    """Yield ``(section name, Member)`` for the top-level members under *node*.

    Members nested inside a struct or instance member belong to that member
    and are not yielded.
    """
    for child in node.children:
        if child.name == "Member":
            yield section, child
        else:
            name = child.get("Name") if child.name == "Section" else section
            yield from _interface_members(child, name)


class _Collector:
    """Mutable accumulator a parser fills while walking a project."""

    def __init__(self, vendor: Vendor) -> None:
        self.vendor = vendor
        self.tags: List[CanonicalTag] = []
        self.routines: List[Routine] = []
        self.errors: List[str] = []
        self.file_count = 1
        self.line_count: Optional[int] = None
        self.plc_type: Optional[str] = None
        self.software_version: Optional[str] = None

    def add_tag(
        self,
        name: str,
        data_type: str,
        scope: str,
        address: str = "",
        direction: Direction = Direction.INTERNAL,
        description: str = "",
    ) -> None:
        if not name:
            logger.debug("Skipping nameless %s tag", self.vendor.value)
            return
        self.tags.append(CanonicalTag(
            name=name,
            type=resolve_type_lenient(self.vendor, data_type),
            vendor_data_type=data_type,
            vendor=self.vendor.value,
            address=address,
            scope=scope,
            tag_type=_DIRECTION_TAG_TYPES.get(direction, TagType.MEMORY),
            description=description,
            direction=direction,
        ))

    def add_routine(self, name: str, kind: str, code: str = "", program: str = "",
                    source_file: str = "") -> None:
        self.routines.append(Routine(
            name=name, kind=kind, program=program, code=code, source_file=source_file,
        ))

    def fail(self, message: str, exc: Exception) -> None:
        logger.error("%s: %s", message, exc)
        self.errors.append(f"{message}: {exc}")


# ---------------------------------------------------------------------------
# Parser base
# ---------------------------------------------------------------------------

class ProjectParser(ABC):
    """Extract tags and routines from one vendor's project files.

    Subclasses implement :meth:`_parse`, filling a collector.  :meth:`parse`
    wraps it so that no exception escapes.
    """

    vendor: Vendor = Vendor.UNKNOWN
    plc_type: Optional[str] = None
    software_version: Optional[str] = None

    def parse(self, file_path: str, buffer: bytes) -> ProjectParseResult:
        """Parse *buffer* (the contents of *file_path*).

        Never raises; structural failures are logged and listed in
        ``result.errors``.
        """
        out = _Collector(self.vendor)
        out.plc_type = self.plc_type
        out.software_version = self.software_version
        try:
            self._parse(file_path, buffer, out)
        except Exception as exc:
            out.fail(f"{self.vendor.label} parsing failed for {file_path}", exc)

        logger.info(
            "Parsed %s project %s: %d tags, %d routines, %d errors",
            self.vendor.label, file_path, len(out.tags), len(out.routines),
            len(out.errors),
        )
        return ProjectParseResult(
            vendor=self.vendor.label,
            project_name=os.path.basename(file_path),
            tags=tuple(out.tags),
            routines=tuple(out.routines),
            metadata=ProjectMetadata(
                file_count=out.file_count,
                total_size=len(buffer),
                line_count=out.line_count,
                plc_type=out.plc_type,
                software_version=out.software_version,
            ),
            errors=tuple(out.errors),
        )

    @abstractmethod
    def _parse(self, file_path: str, buffer: bytes, out: _Collector) -> None:
        """Fill *out* from *buffer*.  May raise; :meth:`parse` catches."""

    def _parse_xml(self, raw: bytes, source: str, out: _Collector) -> Optional[XmlNode]:
        """Parse one XML document, recording a failure instead of raising."""
        try:
            return parse_xml_tree(raw)
        except (etree.XMLSyntaxError, ValueError) as exc:
            out.fail(f"Error parsing {self.vendor.label} XML {source}", exc)
            return None


def _st_code(node: XmlNode) -> str:
    """ST source of a block: ``STSource``, else ``Implementation > ST``."""
    st_source = find_first(node, "STSource")
    if st_source is not None:
        return st_source.text.strip()
    implementation = find_first(node, "Implementation")
    if implementation is not None:
        st = find_first(implementation, "ST")
        if st is not None:
            return st.text.strip()
    return ""


# ---------------------------------------------------------------------------
# Siemens
# ---------------------------------------------------------------------------

# Openness block element -> routine kind
_SIEMENS_BLOCKS = (
    ("SW.Blocks.FB", RoutineKind.FUNCTION_BLOCK),
    ("SW.Blocks.FC", RoutineKind.FUNCTION),
    ("SW.Blocks.OB", RoutineKind.PROGRAM),
)


class SiemensProjectParser(ProjectParser):
    """TIA Portal Openness XML exports and zipped project archives."""

    vendor = Vendor.SIEMENS
    plc_type = "Siemens S7"
    software_version = "TIA Portal"

    def _parse(self, file_path, buffer, out):
        if is_zip_buffer(buffer) or os.path.splitext(file_path)[1].lower().startswith((".ap", ".zap")):
            self._parse_archive(file_path, buffer, out)
        else:
            self._parse_document(buffer, os.path.basename(file_path), out)

    def _parse_archive(self, file_path: str, buffer: bytes, out: _Collector) -> None:
        try:
            archive = zipfile.ZipFile(io.BytesIO(buffer))
        except zipfile.BadZipFile as exc:
            out.fail(f"Error opening Siemens archive {file_path}", exc)
            return

        with archive:
            entries = [
                info for info in archive.infolist()
                if not info.is_dir() and info.filename.lower().endswith(".xml")
            ]
            out.file_count = max(len(entries), 1)
            for info in entries:
                try:
                    raw = archive.read(info)
                except (zipfile.BadZipFile, OSError) as exc:
                    out.fail(f"Error reading archive entry {info.filename}", exc)
                    continue
                self._parse_document(raw, info.filename, out)

    def _parse_document(self, raw: bytes, source: str, out: _Collector) -> None:
        root = self._parse_xml(raw, source, out)
        if root is None:
            return

        engineering = find_first(root, "Engineering")
        if engineering is not None and engineering.get("version"):
            out.software_version = f"TIA Portal {engineering.get('version')}"

        for db in find_nodes(root, "SW.Blocks.GlobalDB"):
            for var in find_nodes(db, "SW.Blocks.GlobalDB.Var"):
                address = var.get("Address")
                out.add_tag(
                    name=var.get("Name"),
                    data_type=var.first("DataType", "Datatype"),
                    scope="Global",
                    address=address,
                    direction=address_direction(address),
                    description=_text_of(var, "Comment"),
                )
            for _, member in _interface_members(db):
                out.add_tag(
                    name=member.get("Name"),
                    data_type=member.first("Datatype", "DataType"),
                    scope="Global",
                    description=_text_of(member, "Comment"),
                )

        for element_name, kind in _SIEMENS_BLOCKS:
            for block in find_nodes(root, element_name):
                out.add_routine(
                    name=block.get("Name"),
                    kind=kind,
                    program=block.get("Program"),
                    code=_st_code(block),
                    source_file=source,
                )
                self._parse_interface(block, out)

    @staticmethod
    def _parse_interface(block: XmlNode, out: _Collector) -> None:
        for section_name, member in _interface_members(block):
            out.add_tag(
                name=member.get("Name"),
                data_type=member.first("Datatype", "DataType"),
                scope=section_name,
                direction=section_direction(section_name),
                description=_text_of(member, "Comment"),
            )


# ---------------------------------------------------------------------------
# Rockwell
# ---------------------------------------------------------------------------

def _rockwell_code(node: XmlNode) -> str:
    """Routine source: ``STContent > Line`` or ``RLLContent > Rung > Text``."""
    st_content = find_first(node, "STContent")
    if st_content is not None:
        return "\n".join(line.text.strip("\r\n") for line in find_nodes(st_content, "Line"))
    rll_content = find_first(node, "RLLContent")
    if rll_content is not None:
        return "\n".join(rung.get("Text") for rung in find_nodes(rll_content, "Rung"))
    return ""


class RockwellProjectParser(ProjectParser):
    """Studio 5000 L5X exports."""

    vendor = Vendor.ROCKWELL
    plc_type = "Allen-Bradley ControlLogix"
    software_version = "Studio 5000"

    def _parse(self, file_path, buffer, out):
        root = self._parse_xml(buffer, os.path.basename(file_path), out)
        if root is None:
            return

        revision = root.get("SoftwareRevision")
        if revision:
            out.software_version = f"Studio 5000 v{revision}"
        controller = find_first(root, "Controller")
        if controller is not None and controller.get("ProcessorType"):
            out.plc_type = f"Allen-Bradley ControlLogix ({controller.get('ProcessorType')})"

        programs = find_nodes(root, "Program")
        program_tags = {
            id(tag) for program in programs for tag in iter_nodes(program, "Tag")
        }

        for tag in find_nodes(root, "Tag"):
            out.add_tag(
                name=tag.get("Name"),
                data_type=tag.get("DataType"),
                scope="Program" if id(tag) in program_tags else "Controller",
                address=tag.get("Address"),
                direction=Direction.INTERNAL,
                description=tag.get("Description"),
            )

        for program in programs:
            program_name = program.get("Name")
            for routine in find_nodes(program, "Routine"):
                out.add_routine(
                    name=routine.get("Name"),
                    kind=routine.get("Type") or RoutineKind.ROUTINE,
                    program=program_name,
                    code=_rockwell_code(routine),
                )

        for aoi in find_nodes(root, "AddOnInstruction"):
            out.add_routine(
                name=aoi.get("Name"),
                kind=RoutineKind.AOI,
                code=_rockwell_code(aoi),
            )
            for param in find_nodes(aoi, "Parameter"):
                out.add_tag(
                    name=param.get("Name"),
                    data_type=param.get("DataType"),
                    scope="AOI",
                    direction=usage_direction(param.get("Usage")),
                    description=param.get("Description"),
                )


# ---------------------------------------------------------------------------
# Beckhoff
# ---------------------------------------------------------------------------

def _pou_kind(pou: XmlNode, declaration: str) -> str:
    explicit = pou.get("Type")
    if explicit:
        return explicit
    first_word = declaration.split(None, 1)[0].upper() if declaration.strip() else ""
    if first_word in (RoutineKind.PROGRAM.value, RoutineKind.FUNCTION_BLOCK.value,
                      RoutineKind.FUNCTION.value):
        return first_word
    return RoutineKind.POU


class BeckhoffProjectParser(ProjectParser):
    """TwinCAT 3 project, POU and GVL files."""

    vendor = Vendor.BECKHOFF
    plc_type = "Beckhoff TwinCAT"
    software_version = "TwinCAT 3"

    def _parse(self, file_path, buffer, out):
        root = self._parse_xml(buffer, os.path.basename(file_path), out)
        if root is None:
            return

        for var in find_nodes(root, "Variable"):
            address = var.first("Address", "PhysicalAddress")
            out.add_tag(
                name=var.get("Name"),
                data_type=var.first("Type", "DataType"),
                scope=var.get("Scope") or "Global",
                address=address,
                direction=address_direction(address),
                description=var.get("Comment"),
            )

        for pou in find_nodes(root, "POU"):
            declaration = self._declaration(pou)
            out.add_routine(
                name=pou.get("Name"),
                kind=_pou_kind(pou, declaration),
                code=_st_code(pou),
                source_file=os.path.basename(file_path),
            )
            out.tags.extend(extract_variables(declaration, self.vendor))

        for gvl in find_nodes(root, "GVL"):
            out.tags.extend(extract_variables(self._declaration(gvl), self.vendor))

    @staticmethod
    def _declaration(node: XmlNode) -> str:
        declaration = node.child("Declaration")
        return declaration.text if declaration is not None else ""


# ---------------------------------------------------------------------------
# Generic Structured Text / Unknown
# ---------------------------------------------------------------------------

class StructuredTextParser(ProjectParser):
    """Plain IEC 61131-3 Structured Text (.st / .scl)."""

    vendor = Vendor.GENERIC
    plc_type = "Generic ST"

    def _parse(self, file_path, buffer, out):
        source = decode_text(buffer, strict=False)
        out.line_count = len(source.split("\n"))
        out.tags.extend(extract_variables(source, self.vendor))
        out.routines.extend(extract_routines(source, os.path.basename(file_path)))


class UnknownProjectParser(ProjectParser):
    """Files no vendor claims.  Produces an empty result."""

    vendor = Vendor.UNKNOWN

    def _parse(self, file_path, buffer, out):
        logger.warning("Unknown vendor for file: %s", file_path)


PARSERS: Dict[Vendor, ProjectParser] = {
    Vendor.SIEMENS: SiemensProjectParser(),
    Vendor.ROCKWELL: RockwellProjectParser(),
    Vendor.BECKHOFF: BeckhoffProjectParser(),
    Vendor.GENERIC: StructuredTextParser(),
    Vendor.UNKNOWN: UnknownProjectParser(),
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def parse_project(file_path: str, buffer: bytes) -> ProjectParseResult:
    """Detect the vendor of *file_path* and parse it.

    Args:
        file_path: Path or file name; the extension drives detection.
        buffer: Complete file contents.

    Returns:
        A :class:`~plc_tag_toolkit.models.ProjectParseResult`.  Never
        raises for malformed input.
    """
    vendor = detect_vendor(file_path, buffer)
    return PARSERS[vendor].parse(file_path, buffer)


def parse_projects(files: Iterable[Tuple[str, bytes]]) -> List[ProjectParseResult]:
    """Parse several ``(file_path, buffer)`` pairs, in order."""
    return [parse_project(path, buffer) for path, buffer in files]
