"""
Error taxonomy for the tag toolkit.

- :class:`ParseError` -- structural problems (unreadable archive, unparsable
  XML/CSV/XLSX, a file with no data rows).  Raised to the caller on the
  import path; caught and logged by project parsers.
- Row validation problems are not exceptions: they are collected as
  :class:`~plc_tag_toolkit.models.RowError` records.
- :class:`PersistenceError` -- raised by a tag store and propagated
  unmodified.
"""


class TagToolkitError(Exception):
    """Base class for all toolkit errors."""


class ParseError(TagToolkitError, ValueError):
    """A file could not be read into rows or an XML tree."""


class PersistenceError(TagToolkitError):
    """The tag store failed to read or write."""


class UnsupportedVendorError(TagToolkitError, ValueError):
    """Tag import/export was requested for a vendor without conventions."""
