"""
Vendor detection for PLC project and tag files.

Classifies a file as Siemens, Rockwell, Beckhoff, Generic (plain IEC
61131-3 Structured Text) or Unknown.  The extension is authoritative when
it is one of the known vendor extensions; otherwise the buffer is scanned
for vendor signature strings.  ``Vendor.UNKNOWN`` is a normal outcome,
not an error.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from .models import Vendor
from .schema import (
    BECKHOFF_EXTENSIONS,
    BECKHOFF_SIGNATURES,
    GENERIC_EXTENSIONS,
    ROCKWELL_EXTENSIONS,
    ROCKWELL_SIGNATURES,
    SIEMENS_EXTENSIONS,
    SIEMENS_SIGNATURES,
)
from .utils import decode_text

logger = logging.getLogger(__name__)

# Only this many leading bytes are scanned for signatures.
_SNIFF_BYTES = 256 * 1024

_EXTENSION_MAP = (
    (SIEMENS_EXTENSIONS, Vendor.SIEMENS),
    (ROCKWELL_EXTENSIONS, Vendor.ROCKWELL),
    (BECKHOFF_EXTENSIONS, Vendor.BECKHOFF),
    (GENERIC_EXTENSIONS, Vendor.GENERIC),
)

# Order matters: a Siemens export may mention a Rockwell keyword in a
# comment, but never carries the Openness block names.
_SIGNATURE_MAP = (
    (SIEMENS_SIGNATURES, Vendor.SIEMENS),
    (ROCKWELL_SIGNATURES, Vendor.ROCKWELL),
    (BECKHOFF_SIGNATURES, Vendor.BECKHOFF),
)


def vendor_from_extension(file_path: str) -> Optional[Vendor]:
    """Return the vendor implied by the file extension, or ``None``."""
    extension = os.path.splitext(os.path.basename(file_path))[1].lower()
    for extensions, vendor in _EXTENSION_MAP:
        if extension in extensions:
            return vendor
    return None


def vendor_from_content(content: bytes) -> Vendor:
    """Scan *content* for vendor signature substrings."""
    text = decode_text(content[:_SNIFF_BYTES], strict=False)
    for signatures, vendor in _SIGNATURE_MAP:
        if any(sig in text for sig in signatures):
            return vendor
    return Vendor.UNKNOWN


def detect_vendor(file_path: str, content: Optional[bytes] = None) -> Vendor:
    """Classify a file by extension, falling back to content signatures.

    Args:
        file_path: File path or bare file name.
        content: Optional file contents, used when the extension is
            ambiguous (``.xml`` and anything unrecognised).

    Returns:
        A :class:`~plc_tag_toolkit.models.Vendor` member.
    """
    vendor = vendor_from_extension(file_path)
    if vendor is not None:
        return vendor

    if content:
        vendor = vendor_from_content(content)
        logger.debug("Content-based detection for %s: %s", file_path, vendor.value)
        return vendor

    return Vendor.UNKNOWN
