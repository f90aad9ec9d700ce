"""Tests for the Structured Text declaration and routine scanner."""

from plc_tag_toolkit.models import CanonicalType, Direction, TagType, Vendor
from plc_tag_toolkit.st_parser import extract_routines, extract_variables


FB_SOURCE = """
FUNCTION_BLOCK FB_Motor
VAR_INPUT
    Start   : BOOL;                 (* start button *)
    Sensor AT %IX0.1 : BOOL;
END_VAR
VAR_OUTPUT
    Running : BOOL;
    Lamp AT %QX0.0 : BOOL;
END_VAR
VAR
    Speed   : REAL := 1.5;          // address=%MD10 line speed
    a, b    : INT;
    Label   : STRING(80);
    fbTimer : TON;
END_VAR
    Running := Start AND Sensor;
END_FUNCTION_BLOCK
"""


def _by_name(tags):
    return {t.name: t for t in tags}


class TestExtractVariables:
    def test_all_declarations_found(self):
        tags = extract_variables(FB_SOURCE)
        assert [t.name for t in tags] == [
            "Start", "Sensor", "Running", "Lamp", "Speed", "a", "b", "Label", "fbTimer",
        ]

    def test_input_block(self):
        start = _by_name(extract_variables(FB_SOURCE))["Start"]
        assert start.scope == "Input"
        assert start.direction == Direction.INPUT
        assert start.tag_type == TagType.INPUT
        assert start.type == CanonicalType.BOOL
        assert start.description == "start button"

    def test_output_block(self):
        running = _by_name(extract_variables(FB_SOURCE))["Running"]
        assert running.scope == "Output"
        assert running.direction == Direction.OUTPUT

    def test_at_location(self):
        tags = _by_name(extract_variables(FB_SOURCE))
        assert tags["Sensor"].address == "%IX0.1"
        assert tags["Lamp"].address == "%QX0.0"
        assert tags["Lamp"].direction == Direction.OUTPUT

    def test_local_block_with_default_and_hint(self):
        speed = _by_name(extract_variables(FB_SOURCE))["Speed"]
        assert speed.scope == "Local"
        assert speed.direction == Direction.INTERNAL
        assert speed.type == CanonicalType.REAL
        assert speed.default_value == "1.5"
        assert speed.address == "%MD10"
        assert speed.description == "line speed"

    def test_name_list_shares_declaration(self):
        tags = _by_name(extract_variables(FB_SOURCE))
        assert tags["a"].type == tags["b"].type == CanonicalType.INT

    def test_parameterised_and_unknown_types(self):
        tags = _by_name(extract_variables(FB_SOURCE))
        assert tags["Label"].type == CanonicalType.STRING
        assert tags["Label"].vendor_data_type == "STRING(80)"
        assert tags["fbTimer"].type == CanonicalType.DINT
        assert tags["fbTimer"].default_value is None

    def test_vendor_recorded(self):
        tags = extract_variables("VAR\n x : INT;\nEND_VAR", Vendor.BECKHOFF)
        assert tags[0].vendor == "beckhoff"
        assert extract_variables("VAR\n x : INT;\nEND_VAR")[0].vendor == "generic"

    def test_direction_override_in_local_block(self):
        tags = extract_variables("VAR_GLOBAL\n  In1 AT %IX2.0 : BOOL;\nEND_VAR")
        assert tags[0].scope == "Global"
        assert tags[0].direction == Direction.INPUT

    def test_constant_block(self):
        tags = extract_variables("VAR_GLOBAL CONSTANT\n  MaxSpeed : INT := 100;\nEND_VAR")
        assert tags[0].tag_type == TagType.CONSTANT
        assert tags[0].default_value == "100"

    def test_temp_block(self):
        tags = extract_variables("VAR_TEMP\n  i : DINT;\nEND_VAR")
        assert tags[0].scope == "Temp"
        assert tags[0].tag_type == TagType.TEMP

    def test_in_out_block(self):
        tags = extract_variables("VAR_IN_OUT\n  buf : WORD;\nEND_VAR")
        assert tags[0].scope == "InOut"
        assert tags[0].direction == Direction.INPUT
        assert tags[0].type == CanonicalType.INT

    def test_multiline_comment_skipped(self):
        source = (
            "VAR\n"
            "  (* disabled:\n"
            "     Old : INT;\n"
            "  *)\n"
            "  New : INT;\n"
            "END_VAR\n"
        )
        assert [t.name for t in extract_variables(source)] == ["New"]

    def test_scope_hint_overrides_block_scope(self):
        tags = extract_variables("VAR\n  x : INT; // address=%MW0 scope=global counter\nEND_VAR")
        assert tags[0].scope == "global"
        assert tags[0].address == "%MW0"
        assert tags[0].description == "counter"
        assert tags[0].tag_type == TagType.MEMORY

    def test_single_line_block(self):
        tags = extract_variables("PROGRAM P\nVAR x : INT; END_VAR\nEND_PROGRAM")
        assert [(t.name, t.scope) for t in tags] == [("x", "Local")]

    def test_several_declarations_on_one_line(self):
        source = "VAR_OUTPUT a : BOOL; b : REAL := 1.5;\nEND_VAR\nVAR c : INT; END_VAR"
        tags = extract_variables(source)
        assert [(t.name, t.scope) for t in tags] == [
            ("a", "Output"), ("b", "Output"), ("c", "Local"),
        ]
        assert tags[1].default_value == "1.5"

    def test_semicolon_inside_string_default(self):
        tags = extract_variables("VAR\n  s : STRING := 'a;b';\nEND_VAR")
        assert tags[0].default_value == "'a;b'"

    def test_declarations_outside_blocks_ignored(self):
        assert extract_variables("x : INT;\nPROGRAM MAIN\nEND_PROGRAM") == []

    def test_garbage_lines_skipped(self):
        tags = extract_variables("VAR\n  ???\n  ok : BOOL;\nEND_VAR")
        assert [t.name for t in tags] == ["ok"]

    def test_lowercase_keywords(self):
        tags = extract_variables("var_input\n  s : bool;\nend_var")
        assert tags[0].scope == "Input"
        assert tags[0].vendor_data_type == "BOOL"


class TestExtractRoutines:
    def test_function_block(self):
        routines = extract_routines(FB_SOURCE, "FB_Motor.st")
        assert len(routines) == 1
        routine = routines[0]
        assert routine.name == "FB_Motor"
        assert routine.kind == "FUNCTION_BLOCK"
        assert routine.code.startswith("FUNCTION_BLOCK FB_Motor")
        assert routine.code.endswith("END_FUNCTION_BLOCK")
        assert routine.source_file == "FB_Motor.st"

    def test_several_kinds(self):
        source = (
            "PROGRAM MAIN\n  x := 1;\nEND_PROGRAM\n"
            "FUNCTION Add : INT\n  Add := a + b;\nEND_FUNCTION\n"
            "FUNCTION_BLOCK FB_X\nEND_FUNCTION_BLOCK\n"
        )
        routines = extract_routines(source)
        assert [(r.kind, r.name) for r in routines] == [
            ("PROGRAM", "MAIN"),
            ("FUNCTION", "Add"),
            ("FUNCTION_BLOCK", "FB_X"),
        ]

    def test_unterminated_routine_ignored(self):
        assert extract_routines("PROGRAM MAIN\n x := 1;\n") == []

    def test_mismatched_end_keyword(self):
        assert extract_routines("FUNCTION F\nEND_FUNCTION_BLOCK") == []
