"""Tests for project-file reconnaissance."""

import io
import zipfile

import pytest
from plc_tag_toolkit.models import CanonicalType, Direction, TagType
from plc_tag_toolkit.project import (
    PARSERS,
    ProjectParser,
    address_direction,
    parse_project,
    parse_projects,
    section_direction,
    usage_direction,
)


SIEMENS_XML = b"""<?xml version="1.0" encoding="utf-8"?>
<Document>
  <Engineering version="V17" />
  <SW.Blocks.GlobalDB ID="0">
    <AttributeList>
      <Interface>
        <Sections xmlns="http://www.siemens.com/automation/Openness/SW/Interface/v5">
          <Section Name="Static">
            <Member Name="Setpoint" Datatype="Real">
              <Comment>
                <MultiLanguageText Lang="en-US">Speed setpoint</MultiLanguageText>
              </Comment>
            </Member>
          </Section>
        </Sections>
      </Interface>
      <Name>DB_Settings</Name>
    </AttributeList>
    <SW.Blocks.GlobalDB.Var Name="Alarm" DataType="Bool" Address="%I1.0"/>
  </SW.Blocks.GlobalDB>
  <SW.Blocks.FB ID="1">
    <AttributeList>
      <Interface>
        <Sections xmlns="http://www.siemens.com/automation/Openness/SW/Interface/v5">
          <Section Name="Input"><Member Name="Start" Datatype="Bool"/></Section>
          <Section Name="Output"><Member Name="Running" Datatype="Bool"/></Section>
          <Section Name="Static"><Member Name="Count" Datatype="Int"/></Section>
        </Sections>
      </Interface>
      <Name>FB_Motor</Name>
      <ProgrammingLanguage>SCL</ProgrammingLanguage>
    </AttributeList>
    <STSource><![CDATA[#Running := #Start;]]></STSource>
  </SW.Blocks.FB>
  <SW.Blocks.OB ID="2">
    <AttributeList><Name>Main</Name></AttributeList>
  </SW.Blocks.OB>
</Document>
"""

SIEMENS_FC_XML = b"""<?xml version="1.0" encoding="utf-8"?>
<Document>
  <SW.Blocks.FC ID="0">
    <AttributeList>
      <Interface><Sections><Section Name="InOut"><Member Name="Value" Datatype="DInt"/></Section></Sections></Interface>
      <Name>FC_Scale</Name>
    </AttributeList>
  </SW.Blocks.FC>
</Document>
"""

SIEMENS_NESTED_XML = b"""<?xml version="1.0" encoding="utf-8"?>
<Document>
  <SW.Blocks.FB ID="0">
    <AttributeList>
      <Interface><Sections>
        <Section Name="Input"><Member Name="Start" Datatype="Bool"/></Section>
        <Section Name="Static">
          <Member Name="Motor1" Datatype="&quot;FB_Drive&quot;">
            <Sections>
              <Section Name="Input"><Member Name="Start" Datatype="Bool"/></Section>
              <Section Name="Output"><Member Name="Ready" Datatype="Bool"/></Section>
            </Sections>
          </Member>
        </Section>
      </Sections></Interface>
      <Name>FB_Line</Name>
    </AttributeList>
  </SW.Blocks.FB>
</Document>
"""

ROCKWELL_L5X = b"""<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<RSLogix5000Content SchemaRevision="1.0" SoftwareRevision="32.00">
<Controller Name="Line1" ProcessorType="1756-L83E">
<AddOnInstructionDefinitions>
<AddOnInstruction Name="Valve">
<Parameters>
<Parameter Name="EnableIn" DataType="BOOL" Usage="Input"/>
<Parameter Name="Open" DataType="BOOL" Usage="Output"><Description><![CDATA[open cmd]]></Description></Parameter>
<Parameter Name="Ref" DataType="REAL" Usage="InOut"/>
</Parameters>
<Routines>
<Routine Name="Logic" Type="RLL"><RLLContent>
<Rung Number="0"><Text><![CDATA[XIC(EnableIn)OTE(Open);]]></Text></Rung>
</RLLContent></Routine>
</Routines>
</AddOnInstruction>
</AddOnInstructionDefinitions>
<Tags>
<Tag Name="MotorRun" TagType="Base" DataType="BOOL"><Description><![CDATA[Motor run]]></Description></Tag>
<Tag Name="Recipe" TagType="Base" DataType="MyUDT"/>
</Tags>
<Programs>
<Program Name="MainProgram">
<Tags><Tag Name="Step" TagType="Base" DataType="DINT"/></Tags>
<Routines>
<Routine Name="MainRoutine" Type="RLL"><RLLContent>
<Rung Number="0"><Text><![CDATA[XIC(MotorRun)OTE(Lamp);]]></Text></Rung>
<Rung Number="1"><Text><![CDATA[NOP();]]></Text></Rung>
</RLLContent></Routine>
<Routine Name="Calc" Type="ST"><STContent>
<Line Number="0"><![CDATA[Step := Step + 1;]]></Line>
<Line Number="1"><![CDATA[IF Step > 10 THEN Step := 0; END_IF;]]></Line>
</STContent></Routine>
</Routines>
</Program>
</Programs>
</Controller>
</RSLogix5000Content>
"""

BECKHOFF_POU = b"""<?xml version="1.0" encoding="utf-8"?>
<TcPlcObject Version="1.1.0.1" ProductVersion="3.1.4024.12">
  <POU Name="FB_Motor" Id="{5f1d0c1e-0000-0000-0000-000000000000}" SpecialFunc="None">
    <Declaration><![CDATA[FUNCTION_BLOCK FB_Motor
VAR_INPUT
    bStart AT %IX0.0 : BOOL;
END_VAR
VAR_OUTPUT
    bRunning : BOOL;
END_VAR
VAR
    nCount : INT := 0;
END_VAR
]]></Declaration>
    <Implementation>
      <ST><![CDATA[bRunning := bStart;]]></ST>
    </Implementation>
  </POU>
</TcPlcObject>
"""

BECKHOFF_GVL = b"""<?xml version="1.0" encoding="utf-8"?>
<TcPlcObject Version="1.1.0.1">
  <GVL Name="GVL_IO">
    <Declaration><![CDATA[VAR_GLOBAL
    bLamp AT %QX0.1 : BOOL;
    rSpeed : REAL;
END_VAR
]]></Declaration>
  </GVL>
</TcPlcObject>
"""

BECKHOFF_TSPROJ = b"""<?xml version="1.0"?>
<TcSmProject>
  <Project>
    <Plc>
      <Variable><Name>Sensor1</Name><Type>BOOL</Type><Address>%IX1.0</Address><Comment>sensor</Comment></Variable>
      <Variable><Type>INT</Type></Variable>
    </Plc>
  </Project>
</TcSmProject>
"""

GENERIC_ST = b"""PROGRAM MAIN
VAR
    counter : INT := 0;
    flag AT %QX0.0 : BOOL;
END_VAR
counter := counter + 1;
END_PROGRAM

FUNCTION Scale : REAL
VAR_INPUT
    raw : INT;
END_VAR
Scale := raw * 0.1;
END_FUNCTION
"""


def _zip(entries):
    out = io.BytesIO()
    with zipfile.ZipFile(out, "w") as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return out.getvalue()


def _names(items):
    return [i.name for i in items]


class TestDirections:
    def test_address_direction(self):
        assert address_direction("%IX0.0") == Direction.INPUT
        assert address_direction("Local:1:Output") == Direction.OUTPUT
        assert address_direction("%MW10") == Direction.INTERNAL
        assert address_direction("") == Direction.INTERNAL

    def test_section_direction(self):
        assert section_direction("Input") == Direction.INPUT
        assert section_direction("InOut") == Direction.INTERNAL
        assert section_direction("Output") == Direction.OUTPUT
        assert section_direction("Static") == Direction.INTERNAL

    def test_usage_direction(self):
        assert usage_direction("Input") == Direction.INPUT
        assert usage_direction("Output") == Direction.OUTPUT
        assert usage_direction("InOut") == Direction.INTERNAL


class TestSiemens:
    def test_openness_document(self):
        result = parse_project("export.xml", SIEMENS_XML)
        assert result.vendor == "Siemens"
        assert result.project_name == "export.xml"
        assert result.errors == ()
        assert _names(result.tags) == ["Alarm", "Setpoint", "Start", "Running", "Count"]
        assert [(r.name, r.kind) for r in result.routines] == [
            ("FB_Motor", "FUNCTION_BLOCK"),
            ("Main", "PROGRAM"),
        ]

    def test_global_db_tags(self):
        tags = {t.name: t for t in parse_project("export.xml", SIEMENS_XML).tags}
        assert tags["Alarm"].direction == Direction.INPUT
        assert tags["Alarm"].address == "%I1.0"
        assert tags["Setpoint"].scope == "Global"
        assert tags["Setpoint"].type == CanonicalType.REAL
        assert tags["Setpoint"].description == "Speed setpoint"

    def test_interface_tags(self):
        tags = {t.name: t for t in parse_project("export.xml", SIEMENS_XML).tags}
        assert tags["Start"].scope == "Input"
        assert tags["Start"].direction == Direction.INPUT
        assert tags["Start"].tag_type == TagType.INPUT
        assert tags["Running"].direction == Direction.OUTPUT
        assert tags["Count"].direction == Direction.INTERNAL
        assert tags["Count"].type == CanonicalType.INT

    def test_nested_instance_members_not_flattened(self):
        result = parse_project("line.xml", SIEMENS_NESTED_XML)
        assert _names(result.tags) == ["Start", "Motor1"]
        tags = {t.name: t for t in result.tags}
        assert tags["Start"].scope == "Input"
        assert tags["Motor1"].scope == "Static"

    def test_block_code(self):
        fb = parse_project("export.xml", SIEMENS_XML).routines[0]
        assert fb.code == "#Running := #Start;"
        assert fb.source_file == "export.xml"

    def test_metadata(self):
        meta = parse_project("export.xml", SIEMENS_XML).metadata
        assert meta.plc_type == "Siemens S7"
        assert meta.software_version == "TIA Portal V17"
        assert meta.file_count == 1
        assert meta.total_size == len(SIEMENS_XML)

    def test_archive(self):
        buf = _zip({
            "Blocks/Motor.xml": SIEMENS_XML,
            "Blocks/Scale.xml": SIEMENS_FC_XML,
            "readme.txt": b"not xml",
        })
        result = parse_project("Line1.ap16", buf)
        assert result.errors == ()
        assert result.metadata.file_count == 2
        assert ("FC_Scale", "FUNCTION") in [(r.name, r.kind) for r in result.routines]
        assert "Value" in _names(result.tags)
        assert {r.source_file for r in result.routines} == {"Blocks/Motor.xml", "Blocks/Scale.xml"}

    def test_archive_with_broken_entry(self):
        buf = _zip({"good.xml": SIEMENS_FC_XML, "bad.xml": b"<Document><SW.Blocks.FB>"})
        result = parse_project("Line1.ap17", buf)
        assert _names(result.routines) == ["FC_Scale"]
        assert len(result.errors) == 1
        assert "bad.xml" in result.errors[0]

    def test_bad_archive(self):
        result = parse_project("Line1.ap16", b"this is not a zip archive")
        assert result.tags == ()
        assert result.routines == ()
        assert len(result.errors) == 1


class TestRockwell:
    def test_tags_and_scopes(self):
        result = parse_project("Line1.L5X", ROCKWELL_L5X)
        assert result.vendor == "Rockwell"
        tags = {t.name: t for t in result.tags}
        assert _names(result.tags) == ["MotorRun", "Recipe", "Step", "EnableIn", "Open", "Ref"]
        assert tags["MotorRun"].scope == "Controller"
        assert tags["MotorRun"].description == "Motor run"
        assert tags["Step"].scope == "Program"
        assert tags["Recipe"].type == CanonicalType.DINT
        assert tags["Recipe"].vendor_data_type == "MyUDT"

    def test_aoi_parameters(self):
        tags = {t.name: t for t in parse_project("Line1.L5X", ROCKWELL_L5X).tags}
        assert tags["EnableIn"].scope == "AOI"
        assert tags["EnableIn"].direction == Direction.INPUT
        assert tags["Open"].direction == Direction.OUTPUT
        assert tags["Open"].description == "open cmd"
        assert tags["Ref"].direction == Direction.INTERNAL

    def test_routines(self):
        routines = parse_project("Line1.L5X", ROCKWELL_L5X).routines
        assert [(r.name, r.kind, r.program) for r in routines] == [
            ("MainRoutine", "RLL", "MainProgram"),
            ("Calc", "ST", "MainProgram"),
            ("Valve", "AOI", ""),
        ]
        assert routines[0].code == "XIC(MotorRun)OTE(Lamp);\nNOP();"
        assert routines[1].code == "Step := Step + 1;\nIF Step > 10 THEN Step := 0; END_IF;"
        assert routines[2].code == "XIC(EnableIn)OTE(Open);"

    def test_metadata(self):
        meta = parse_project("Line1.L5X", ROCKWELL_L5X).metadata
        assert meta.software_version == "Studio 5000 v32.00"
        assert meta.plc_type == "Allen-Bradley ControlLogix (1756-L83E)"


class TestBeckhoff:
    def test_pou(self):
        result = parse_project("FB_Motor.TcPOU", BECKHOFF_POU)
        assert result.vendor == "Beckhoff"
        assert result.errors == ()
        routine = result.routines[0]
        assert routine.name == "FB_Motor"
        assert routine.kind == "FUNCTION_BLOCK"
        assert routine.code == "bRunning := bStart;"
        assert routine.source_file == "FB_Motor.TcPOU"

    def test_pou_declaration_tags(self):
        tags = {t.name: t for t in parse_project("FB_Motor.TcPOU", BECKHOFF_POU).tags}
        assert set(tags) == {"bStart", "bRunning", "nCount"}
        assert tags["bStart"].address == "%IX0.0"
        assert tags["bStart"].direction == Direction.INPUT
        assert tags["bStart"].vendor == "beckhoff"
        assert tags["bRunning"].scope == "Output"
        assert tags["nCount"].default_value == "0"

    def test_explicit_pou_type(self):
        buf = b'<TcPlcObject><POU Name="MAIN" Type="PROGRAM"><Declaration/></POU></TcPlcObject>'
        routine = parse_project("MAIN.TcPOU", buf).routines[0]
        assert routine.kind == "PROGRAM"

    def test_pou_without_keyword(self):
        buf = b'<TcPlcObject><POU Name="X"><Declaration>VAR END_VAR</Declaration></POU></TcPlcObject>'
        assert parse_project("X.TcPOU", buf).routines[0].kind == "POU"

    def test_gvl(self):
        result = parse_project("GVL_IO.TcGVL", BECKHOFF_GVL)
        assert result.routines == ()
        tags = {t.name: t for t in result.tags}
        assert tags["bLamp"].scope == "Global"
        assert tags["bLamp"].direction == Direction.OUTPUT
        assert tags["rSpeed"].type == CanonicalType.REAL

    def test_project_variables(self):
        result = parse_project("Line.tsproj", BECKHOFF_TSPROJ)
        assert _names(result.tags) == ["Sensor1"]
        sensor = result.tags[0]
        assert sensor.address == "%IX1.0"
        assert sensor.direction == Direction.INPUT
        assert sensor.tag_type == TagType.INPUT
        assert sensor.scope == "Global"
        assert sensor.description == "sensor"
        assert result.metadata.software_version == "TwinCAT 3"


class TestGenericAndUnknown:
    def test_structured_text(self):
        result = parse_project("logic.st", GENERIC_ST)
        assert result.vendor == "Generic"
        assert _names(result.tags) == ["counter", "flag", "raw"]
        assert [(r.name, r.kind) for r in result.routines] == [
            ("MAIN", "PROGRAM"),
            ("Scale", "FUNCTION"),
        ]
        assert result.metadata.line_count == GENERIC_ST.decode().count("\n") + 1
        assert result.metadata.plc_type == "Generic ST"

    def test_unknown(self):
        result = parse_project("notes.txt", b"hello world")
        assert result.vendor == "Unknown"
        assert result.tags == ()
        assert result.routines == ()
        assert result.errors == ()

    def test_every_vendor_has_a_parser(self):
        from plc_tag_toolkit.models import Vendor
        assert set(PARSERS) == set(Vendor)


class TestCorruptedInput:
    @pytest.mark.parametrize("path,buf,vendor", [
        ("export.xml", b"<Document><SW.Blocks.FB><AttributeList>", "Siemens"),
        ("Line1.L5X", b"<RSLogix5000Content><Controller>", "Rockwell"),
        ("MAIN.TcPOU", b"<TcPlcObject><POU", "Beckhoff"),
    ])
    def test_malformed_xml_yields_empty_result(self, path, buf, vendor):
        result = parse_project(path, buf)
        assert result.vendor == vendor
        assert result.tags == ()
        assert result.routines == ()
        assert len(result.errors) == 1

    def test_unexpected_exception_is_caught(self):
        class Exploding(ProjectParser):
            def _parse(self, file_path, buffer, out):
                out.add_tag("Before", "INT", "Global")
                raise RuntimeError("boom")

        result = Exploding().parse("x.bin", b"")
        assert _names(result.tags) == ["Before"]
        assert "boom" in result.errors[0]

    def test_to_dict(self):
        d = parse_project("Line1.L5X", ROCKWELL_L5X).to_dict()
        assert d["vendor"] == "Rockwell"
        assert d["metadata"]["file_count"] == 1
        assert d["tags"][0]["name"] == "MotorRun"
        assert d["errors"] == []


class TestParseProjects:
    def test_batch(self):
        results = parse_projects([
            ("Line1.L5X", ROCKWELL_L5X),
            ("logic.st", GENERIC_ST),
        ])
        assert [r.vendor for r in results] == ["Rockwell", "Generic"]
