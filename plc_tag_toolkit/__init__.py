"""
PLC Tag Toolkit - multi-vendor PLC tag interchange.

Reads tag tables and project files exported by Siemens TIA Portal,
Rockwell Studio 5000 and Beckhoff TwinCAT, normalises them into one
canonical tag/routine model, and writes canonical tags back out in each
vendor's native CSV, XML or XLSX conventions.

Core Design Principle:
    Imports are strict and atomic (a file with any invalid row writes
    nothing); project parsing is lenient and read-only (a missing or
    broken section yields a partial result, never an exception).

Usage:
    from plc_tag_toolkit import InMemoryTagStore, import_tags, export_tags

    store = InMemoryTagStore()

    # Import a Rockwell CSV tag export into project 7
    with open('tags.csv', 'rb') as fh:
        result = import_tags(fh.read(), 7, 'user-1',
                             vendor='rockwell', store=store)
    if not result.success:
        for err in result.errors:
            print(err.row, err.errors)

    # Re-export the same tags as a Rockwell ControllerTags XML file
    with open('tags.xml', 'wb') as sink:
        export_tags(7, 'rockwell', sink, store=store, fmt='xml')

    # Convert the same tags to a Siemens tag table
    with open('siemens.csv', 'wb') as sink:
        export_tags(7, 'siemens', sink, store=store, source_vendor='rockwell')

    # Project reconnaissance
    from plc_tag_toolkit import parse_project
    with open('Project.ap16', 'rb') as fh:
        info = parse_project('Project.ap16', fh.read())
    print(info.vendor, len(info.tags), len(info.routines))

    # Vendor detection and address checks
    from plc_tag_toolkit import detect_vendor, validate_address
    detect_vendor('line1.L5X')                 # Vendor.ROCKWELL
    validate_address('beckhoff', '%QX0.0')     # True
"""

__version__ = '0.1.0'

# name -> defining submodule
_EXPORTS = {
    'CanonicalTag': 'models',
    'ExportOptions': 'models',
    'ImportResult': 'models',
    'ProjectParseResult': 'models',
    'Routine': 'models',
    'Vendor': 'models',
    'ParseError': 'errors',
    'PersistenceError': 'errors',
    'UnsupportedVendorError': 'errors',
    'detect_vendor': 'detect',
    'import_tags': 'importer',
    'export_tags': 'exporters',
    'convert_tag': 'exporters',
    'render_tags': 'exporters',
    'parse_project': 'project',
    'parse_projects': 'project',
    'TagStore': 'store',
    'InMemoryTagStore': 'store',
    'validate_address': 'validator',
}


def __getattr__(name):
    """Lazy import so that ``import plc_tag_toolkit`` stays cheap."""
    module_name = _EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    from importlib import import_module
    return getattr(import_module(f'.{module_name}', __name__), name)


__all__ = list(_EXPORTS)
