"""
Utility functions for vendor file handling.

Provides byte/text helpers (BOM stripping, container sniffing), lxml parse
and serialisation helpers, and identifier validation shared by the import,
export, and project-parse paths.

Vendor exports are frequently written by Windows tooling: many begin with
a UTF-8 BOM and use CRLF line endings, and TIA Portal / Studio 5000 wrap
free text in CDATA sections.  The parser configured here keeps CDATA text
intact and refuses to resolve external entities or touch the network.
"""

import re
from typing import Optional, Union

from lxml import etree

from .schema import SIEMENS_NAME_PATTERN


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_TAG_NAME_RE = re.compile(SIEMENS_NAME_PATTERN)

# Characters allowed in identifier-style tag names.
_VALID_TAG_CHARS = set(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789_"
)

# UTF-8 BOM bytes.  Many vendor exports begin with this.
_UTF8_BOM = b"\xef\xbb\xbf"

# Local file header signature of a ZIP container (.ap16, .xlsx, ...).
_ZIP_MAGIC = b"PK\x03\x04"

# Characters XML 1.0 does not allow in element text.
_XML_ILLEGAL_RE = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")


# ---------------------------------------------------------------------------
# Byte / text helpers
# ---------------------------------------------------------------------------

def strip_bom(raw: bytes) -> bytes:
    """Return *raw* without a leading UTF-8 BOM."""
    if raw.startswith(_UTF8_BOM):
        return raw[len(_UTF8_BOM):]
    return raw


def decode_text(raw: Union[bytes, str], *, strict: bool = True) -> str:
    """Decode a buffer as UTF-8, dropping a leading BOM.

    Args:
        raw: File contents.  ``str`` input is returned unchanged (minus BOM).
        strict: When ``False``, undecodable bytes are replaced instead of
            raising.  Used for signature sniffing.

    Raises:
        UnicodeDecodeError: If *strict* and the bytes are not UTF-8.
    """
    if isinstance(raw, str):
        return raw.lstrip("\ufeff")
    return strip_bom(raw).decode("utf-8", errors="strict" if strict else "replace")


def is_zip_buffer(raw: bytes) -> bool:
    """Return ``True`` if *raw* starts with a ZIP local file header."""
    return raw[:4] == _ZIP_MAGIC


def looks_like_xml(raw: bytes) -> bool:
    """Return ``True`` if the first non-blank character of *raw* is ``<``."""
    head = strip_bom(raw[:512]).lstrip()
    return head.startswith(b"<")


# ---------------------------------------------------------------------------
# XML helpers
# ---------------------------------------------------------------------------

def parse_xml_bytes(raw: Union[bytes, str]) -> etree._Element:
    """Parse an XML document and return its root element.

    Handles a leading UTF-8 BOM and keeps CDATA sections, so routine code
    and descriptions survive verbatim.

    Args:
        raw: The document as bytes (preferred) or text.

    Returns:
        The root ``lxml.etree._Element``.

    Raises:
        etree.XMLSyntaxError: If the document is malformed or empty.
    """
    if isinstance(raw, str):
        raw = raw.encode("utf-8")
    raw = strip_bom(raw)

    parser = etree.XMLParser(
        strip_cdata=False,
        remove_blank_text=False,
        resolve_entities=False,
        no_network=True,
        huge_tree=True,
    )
    return etree.fromstring(raw, parser=parser)


def element_to_bytes(
    element: etree._Element,
    *,
    pretty_print: bool = True,
) -> bytes:
    """Serialize an element tree to UTF-8 bytes with an XML declaration.

    Args:
        element: The root element to serialise.
        pretty_print: Whether to indent the output.

    Returns:
        The encoded document.
    """
    return etree.tostring(
        element,
        xml_declaration=True,
        pretty_print=pretty_print,
        encoding="UTF-8",
    )


def add_text_child(
    parent: etree._Element, tag_name: str, text: Optional[str]
) -> etree._Element:
    """Append ``<tag_name>text</tag_name>`` to *parent* and return it.

    Characters that XML 1.0 cannot represent are dropped from *text*.
    """
    child = etree.SubElement(parent, tag_name)
    child.text = _XML_ILLEGAL_RE.sub("", text or "")
    return child


# ---------------------------------------------------------------------------
# Name validation
# ---------------------------------------------------------------------------

def validate_tag_name(name: str) -> bool:
    """Validate an identifier-style tag name.

    Names must:
    - Start with a letter (A-Z, a-z) or underscore (``_``)
    - Contain only letters, digits (0-9), and underscores

    Args:
        name: The candidate tag name to validate.

    Returns:
        ``True`` if *name* is valid.

    Raises:
        ValueError: If *name* violates any of the naming rules.  The
            exception message describes the specific violation.
    """
    if not name:
        raise ValueError("Tag name must not be empty")

    if name[0] not in "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz_":
        raise ValueError(
            f"Tag name '{name}' must start with a letter or underscore, "
            f"not '{name[0]}'"
        )

    if not _TAG_NAME_RE.match(name):
        bad_chars = sorted(set(name) - _VALID_TAG_CHARS)
        raise ValueError(
            f"Tag name '{name}' contains invalid characters: {bad_chars}"
        )

    return True


def normalize_key(text: str) -> str:
    """Lower-case *text*, trim it, and collapse whitespace runs to ``_``.

    Used as the lookup key for data-type alias tables.
    """
    return re.sub(r"\s+", "_", text.strip().lower())
