"""
Vendor Schema Constants and Validation Rules.

Defines the per-vendor configuration tables used by the import and export
paths: CSV header aliases, data-type alias and standard-type tables,
address grammars, export header layouts, and detection signatures.

Every table is an explicit alias -> canonical mapping, loaded once at
import time.  Keys of data-type alias tables are lower-case with runs of
whitespace collapsed to ``_``.
"""

# ---------------------------------------------------------------------------
# Canonical row fields produced by CSV / XLSX / XML row sources
# ---------------------------------------------------------------------------

CANONICAL_FIELDS = (
    'name',
    'data_type',
    'address',
    'default_value',
    'scope',
    'description',
    'access_mode',
    'category',
    'external_access',
)

# ---------------------------------------------------------------------------
# CSV header aliases (lower-cased raw header -> canonical field)
# ---------------------------------------------------------------------------

ROCKWELL_HEADER_ALIASES = {
    'tagname': 'name',
    'tag name': 'name',
    'name': 'name',
    'symbol': 'name',
    'datatype': 'data_type',
    'data type': 'data_type',
    'type': 'data_type',
    'scope': 'scope',
    'description': 'description',
    'comment': 'description',
    'address': 'address',
    'external access': 'external_access',
    'default value': 'default_value',
    'initial value': 'default_value',
}

SIEMENS_HEADER_ALIASES = {
    'name': 'name',
    'tag name': 'name',
    'symbol': 'name',
    'datatype': 'data_type',
    'data type': 'data_type',
    'type': 'data_type',
    'address': 'address',
    'logical address': 'address',
    'comment': 'description',
    'description': 'description',
    'initialvalue': 'default_value',
    'initial value': 'default_value',
    'default value': 'default_value',
    'start value': 'default_value',
    'scope': 'scope',
    'category': 'category',
    'accessmode': 'access_mode',
    'access mode': 'access_mode',
}

# Beckhoff headers are looked up both as-is and with whitespace -> '_'.
BECKHOFF_HEADER_ALIASES = {
    'name': 'name',
    'variable name': 'name',
    'variable_name': 'name',
    'symbol': 'name',
    'type': 'data_type',
    'data type': 'data_type',
    'data_type': 'data_type',
    'datatype': 'data_type',
    'comment': 'description',
    'description': 'description',
    'address': 'address',
    'physical address': 'address',
    'physical_address': 'address',
    'physicaladdress': 'address',
    'initial value': 'default_value',
    'initial_value': 'default_value',
    'initialvalue': 'default_value',
    'default value': 'default_value',
    'default_value': 'default_value',
    'scope': 'scope',
    'access mode': 'access_mode',
    'access_mode': 'access_mode',
    'accessmode': 'access_mode',
    'category': 'category',
}

# ---------------------------------------------------------------------------
# Data-type tables
# ---------------------------------------------------------------------------

# Rockwell: alias -> Studio 5000 type name.
ROCKWELL_TYPE_ALIASES = {
    'bool': 'BOOL',
    'sint': 'SINT',
    'int': 'INT',
    'dint': 'DINT',
    'real': 'REAL',
    'lint': 'LINT',
    'string': 'STRING',
    'word': 'WORD',
    'dword': 'DWORD',
    'lword': 'LWORD',
    'byte': 'BYTE',
    'char': 'CHAR',
    'enum': 'ENUM',
    'struct': 'STRUCT',
    'timer': 'TIMER',
    'counter': 'COUNTER',
}

# Rockwell type name -> canonical type.
ROCKWELL_STANDARD_TYPES = {
    'BOOL': 'BOOL',
    'SINT': 'INT',
    'INT': 'INT',
    'DINT': 'DINT',
    'REAL': 'REAL',
    'LINT': 'DINT',
    'STRING': 'STRING',
    'WORD': 'INT',
    'DWORD': 'DINT',
    'LWORD': 'DINT',
    'BYTE': 'INT',
    'CHAR': 'STRING',
    'ENUM': 'INT',
    'STRUCT': 'STRING',
    'TIMER': 'TIMER',
    'COUNTER': 'COUNTER',
}

# Siemens: alias -> TIA Portal type name.
SIEMENS_TYPE_ALIASES = {
    'bool': 'BOOL',
    'byte': 'BYTE',
    'word': 'WORD',
    'dword': 'DWORD',
    'sint': 'SINT',
    'usint': 'USINT',
    'int': 'INT',
    'uint': 'UINT',
    'dint': 'DINT',
    'udint': 'UDINT',
    'real': 'REAL',
    'lreal': 'LREAL',
    'string': 'STRING',
    'wstring': 'WSTRING',
    'char': 'CHAR',
    'time': 'TIME',
    's5time': 'S5TIME',
}

# Siemens type name -> canonical type.
SIEMENS_STANDARD_TYPES = {
    'BOOL': 'BOOL',
    'BYTE': 'INT',
    'WORD': 'WORD',
    'DWORD': 'DWORD',
    'SINT': 'INT',
    'USINT': 'INT',
    'INT': 'INT',
    'UINT': 'INT',
    'DINT': 'DINT',
    'UDINT': 'DINT',
    'REAL': 'REAL',
    'LREAL': 'REAL',
    'STRING': 'STRING',
    'WSTRING': 'STRING',
    'CHAR': 'STRING',
    'TIME': 'DINT',
    'S5TIME': 'DINT',
}

# Beckhoff: alias -> TwinCAT type name.
BECKHOFF_TYPE_ALIASES = {
    'bool': 'BOOL',
    'byte': 'BYTE',
    'word': 'WORD',
    'dword': 'DWORD',
    'lword': 'LWORD',
    'sint': 'SINT',
    'usint': 'USINT',
    'int': 'INT',
    'uint': 'UINT',
    'dint': 'DINT',
    'udint': 'UDINT',
    'lint': 'LINT',
    'ulint': 'ULINT',
    'real': 'REAL',
    'lreal': 'LREAL',
    'time': 'TIME',
    'date': 'DATE',
    'time_of_day': 'TIME_OF_DAY',
    'tod': 'TIME_OF_DAY',
    'date_and_time': 'DATE_AND_TIME',
    'dt': 'DATE_AND_TIME',
    'string': 'STRING',
    'wstring': 'WSTRING',
    'array': 'ARRAY',
    'struct': 'STRUCT',
}

# Beckhoff type name -> canonical type.
BECKHOFF_STANDARD_TYPES = {
    'BOOL': 'BOOL',
    'BYTE': 'INT',
    'WORD': 'INT',
    'DWORD': 'DINT',
    'LWORD': 'DINT',
    'SINT': 'INT',
    'USINT': 'INT',
    'INT': 'INT',
    'UINT': 'INT',
    'DINT': 'DINT',
    'UDINT': 'DINT',
    'LINT': 'DINT',
    'ULINT': 'DINT',
    'REAL': 'REAL',
    'LREAL': 'REAL',
    'TIME': 'DINT',
    'DATE': 'STRING',
    'TIME_OF_DAY': 'DINT',
    'DATE_AND_TIME': 'STRING',
    'STRING': 'STRING',
    'WSTRING': 'STRING',
    'ARRAY': 'STRING',
    'STRUCT': 'STRING',
}

# Canonical type used when a Beckhoff type is not in the table.
BECKHOFF_FALLBACK_TYPE = 'DINT'

# Canonical type -> type name written when converting a tag to a vendor.
# Every name resolves again through that vendor's tables on import.
CONVERSION_TYPE_NAMES = {
    'rockwell': {
        'BOOL': 'BOOL',
        'INT': 'INT',
        'DINT': 'DINT',
        'REAL': 'REAL',
        'STRING': 'STRING',
        'WORD': 'INT',
        'DWORD': 'DINT',
        'TIMER': 'TIMER',
        'COUNTER': 'COUNTER',
    },
    'siemens': {
        'BOOL': 'Bool',
        'INT': 'Int',
        'DINT': 'DInt',
        'REAL': 'Real',
        'STRING': 'String',
        'WORD': 'Word',
        'DWORD': 'DWord',
        'TIMER': 'Time',
        'COUNTER': 'DInt',
    },
    'beckhoff': {
        'BOOL': 'BOOL',
        'INT': 'INT',
        'DINT': 'DINT',
        'REAL': 'REAL',
        'STRING': 'STRING',
        'WORD': 'WORD',
        'DWORD': 'DWORD',
        'TIMER': 'TIME',
        'COUNTER': 'DINT',
    },
}

# ---------------------------------------------------------------------------
# Address grammars
# ---------------------------------------------------------------------------

# Bare symbolic identifier accepted by every vendor.
SYMBOL_PATTERN = r'^[A-Za-z_]\w*$'

ROCKWELL_ADDRESS_PATTERNS = (
    r'^I:\d+/\d+$',      # I:1/0
    r'^O:\d+/\d+$',      # O:2/0
    r'^N\d+:\d+$',       # N7:0 integer file
    r'^F\d+:\d+$',       # F8:0 float file
    r'^B\d+:\d+$',       # B3:0 bit file
    r'^R\d+:\d+$',       # R6:0 control file
    r'^S\d+:\d+$',       # S2:0 status file
    r'^%[IQMTC]\d+(\.\d+)?$',  # %I1.0 IEC-style reference
    SYMBOL_PATTERN,
)

BECKHOFF_ADDRESS_PATTERNS = (
    r'^%[IQMT]X?\d+(\.\d+)?$',     # %I0.0, %QX0.0, %M1.5, %T0
    r'^%[IQMT][BWDL]\d+$',         # %IB0, %QW1, %MD200, %ML100
    SYMBOL_PATTERN,
    r'^GVL\.[A-Za-z_]\w*$',        # global variable list reference
    r'^MAIN\.[A-Za-z_]\w*$',       # program reference
)

# Valid characters in Siemens tag names.
SIEMENS_NAME_PATTERN = r'^[A-Za-z_][A-Za-z0-9_]*$'

# Siemens leading address letter -> (scope, tag type).  German mnemonics
# E/A are the equivalents of I/Q.
SIEMENS_ADDRESS_PREFIXES = {
    'i': ('input', 'input'),
    'e': ('input', 'input'),
    'q': ('output', 'output'),
    'a': ('output', 'output'),
    'm': ('global', 'memory'),
    't': ('global', 'temp'),
}

# Literals treated as boolean when inferring a blank Siemens data type.
BOOLEAN_LITERALS = {'true', 'false', '1', '0'}

# ---------------------------------------------------------------------------
# Export layouts
# ---------------------------------------------------------------------------

ROCKWELL_EXPORT_HEADERS = [
    'Tag Name',
    'Data Type',
    'Scope',
    'Description',
    'External Access',
    'Default Value',
    'Address',
]

SIEMENS_EXPORT_HEADERS = [
    'Name',
    'DataType',
    'Address',
    'Comment',
    'InitialValue',
    'Scope',
]

BECKHOFF_EXPORT_HEADERS = [
    'Name',
    'DataType',
    'Address',
    'Comment',
    'InitialValue',
    'Scope',
    'AccessMode',
]

# XLSX column widths, one per export header.
ROCKWELL_COLUMN_WIDTHS = [25, 15, 12, 30, 16, 15, 20]
SIEMENS_COLUMN_WIDTHS = [25, 15, 20, 30, 15, 10]
BECKHOFF_COLUMN_WIDTHS = [25, 15, 20, 30, 15, 10, 12]

XLSX_SHEET_NAMES = {
    'rockwell': 'Rockwell Tags',
    'siemens': 'Siemens Tags',
    'beckhoff': 'Beckhoff Tags',
}

# Root element of the Siemens XML tag table export.
SIEMENS_XML_ROOT = 'Siemens.TIA.Portal.TagTable'

# ---------------------------------------------------------------------------
# Vendor detection
# ---------------------------------------------------------------------------

SIEMENS_EXTENSIONS = {
    '.ap11', '.ap12', '.ap13', '.ap14', '.ap15', '.ap16', '.ap17',
    '.ap18', '.ap19', '.zap13', '.zap14', '.zap15', '.zap16', '.zap17',
    '.zap18', '.zap19',
}
ROCKWELL_EXTENSIONS = {'.acd', '.l5x'}
BECKHOFF_EXTENSIONS = {'.tsproj', '.plcproj', '.tcpou', '.tcgvl'}
GENERIC_EXTENSIONS = {'.st', '.scl'}

SIEMENS_SIGNATURES = (
    'siemens.com/automation',
    'SW.Blocks.GlobalDB',
    'SW.Blocks.FB',
    'Siemens.TIA.Portal',
    'Step7',
)
ROCKWELL_SIGNATURES = (
    'RSLogix5000Content',
    'ControllerTags',
    'AddOnInstruction',
)
BECKHOFF_SIGNATURES = (
    'TcPlcProject',
    'TcPlcObject',
    'TwinCAT',
    'Beckhoff',
)
