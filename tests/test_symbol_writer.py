"""Tests for symbol_writer.py - KiCad symbol generation."""
import pytest

from nlbn.kicad.primitives import (
    Arc,
    Circle,
    Line,
    Pin,
    PinStyle,
    PinType,
    Polygon,
    Rectangle,
    SymbolDefinition,
    SymbolUnit,
    Text,
)
from nlbn.kicad.symbol_builder import build_symbol
from nlbn.kicad.symbol_writer import (
    LEGACY_FOOTER,
    LEGACY_HEADER,
    _estimate_bottom,
    _estimate_top,
    write_legacy_library,
    write_legacy_symbol,
    write_symbol,
    write_symbol_library,
)


def _pin(number="1", name="A", **kwargs):
    return Pin(
        number=number,
        name=name,
        position=kwargs.pop("position", (0, 0)),
        length=kwargs.pop("length", 2.54),
        orientation=0,
        **kwargs,
    )


def _symbol(graphics=(), pins=(), units=None, **kwargs):
    if units is None:
        units = [SymbolUnit(graphics=list(graphics), pins=list(pins))]
    return SymbolDefinition(name=kwargs.pop("name", "Test"), units=units, **kwargs)


class TestWriteSymbol:
    def test_minimal_symbol(self):
        result = write_symbol(_symbol())
        assert '(symbol "Test"' in result
        assert "(in_bom yes)" in result
        assert "(on_board yes)" in result
        assert '(symbol "Test_0_1"' in result

    def test_reference_property(self):
        assert '(property "Reference" "R"' in write_symbol(_symbol(reference="R"))

    def test_value_defaults_to_name(self):
        assert '(property "Value" "Test"' in write_symbol(_symbol())

    def test_optional_properties(self):
        result = write_symbol(
            _symbol(footprint="nlbn:Test", lcsc_id="C1", manufacturer="ACME", manufacturer_part="MPN-1")
        )
        assert '(property "Footprint" "nlbn:Test"' in result
        assert '(property "LCSC" "C1"' in result
        assert '(property "Manufacturer" "ACME"' in result
        assert '(property "Manufacturer Part" "MPN-1"' in result

    def test_empty_optional_properties_omitted(self):
        result = write_symbol(_symbol())
        assert '"LCSC"' not in result
        assert '"Manufacturer"' not in result

    def test_escapes_quotes(self):
        assert '\\"' in write_symbol(_symbol(description='10" part'))

    def test_pin(self):
        result = write_symbol(_symbol(pins=[_pin(electrical_type=PinType.INPUT, style=PinStyle.INVERTED)]))
        assert "(pin input inverted (at 0 0 0) (length 2.54)" in result
        assert '(number "1"' in result

    def test_hidden_pin_name(self):
        result = write_symbol(_symbol(pins=[_pin(name_visible=False)]))
        assert '(name "A" (effects (font (size 1.27 1.27)) hide))' in result

    def test_graphics(self):
        result = write_symbol(
            _symbol(
                graphics=[
                    Rectangle(start=(-1, 1), end=(1, -1), width=0.254, filled=True),
                    Circle(center=(0, 0), radius=1, width=0.254),
                    Line(points=[(0, 0), (1, 1)], width=0.254),
                    Polygon(points=[(0, 0), (1, 0), (1, 1)], width=0.254),
                    Arc(start=(0, 0), end=(2, 0), bulge=1.0, width=0.254),
                    Text(text="Hi", position=(0, 0), rotation=90, size=1.27),
                ]
            )
        )
        assert "(rectangle (start -1 1) (end 1 -1)" in result
        assert "(fill (type background))" in result
        assert "(circle (center 0 0) (radius 1)" in result
        assert "(pts (xy 0 0) (xy 1 1))" in result
        # Polygons are written closed
        assert "(pts (xy 0 0) (xy 1 0) (xy 1 1) (xy 0 0))" in result
        assert "(arc (start 0 0) (mid 1 -1) (end 2 0)" in result
        assert '(text "Hi" (at 0 0 900)' in result

    def test_unknown_graphic_rejected(self):
        with pytest.raises(TypeError):
            write_symbol(_symbol(graphics=["bogus"]))

    def test_multi_unit_names(self):
        units = [SymbolUnit(pins=[_pin("1")]), SymbolUnit(pins=[_pin("2")])]
        result = write_symbol(_symbol(units=units))
        assert '(symbol "Test_1_1"' in result
        assert '(symbol "Test_2_1"' in result
        assert "Test_0_1" not in result

    def test_estimates(self):
        sym = _symbol(graphics=[Rectangle(start=(-5, 4), end=(5, -3), width=0.2)])
        assert _estimate_top(sym) == 4
        assert _estimate_bottom(sym) == -3


class TestWriteSymbolLibrary:
    def test_wraps_blocks(self):
        lib = write_symbol_library([write_symbol(_symbol())], 9)
        assert lib.startswith("(kicad_symbol_lib")
        assert "(version 20241209)" in lib
        assert '(generator_version "1.0")' in lib
        assert lib.rstrip().endswith(")")

    def test_kicad8_has_no_generator_version(self):
        lib = write_symbol_library([], 8)
        assert "(version 20231120)" in lib
        assert "generator_version" not in lib


class TestWriteLegacySymbol:
    def test_def_header(self):
        result = write_legacy_symbol(_symbol(reference="R", pins=[_pin()], legacy=True))
        assert "DEF Test R 0 40 Y Y 1 F N" in result
        assert result.rstrip().endswith("ENDDEF")
        assert 'F0 "R"' in result

    def test_named_fields(self):
        result = write_legacy_symbol(_symbol(lcsc_id="C1", manufacturer="ACME", legacy=True))
        assert 'F4 "C1" 0 0 50 H I C CNN "LCSC"' in result
        assert 'F5 "ACME" 0 0 50 H I C CNN "Manufacturer"' in result

    def test_pin_line(self):
        pin = _pin(position=(-300, 100), length=100, electrical_type=PinType.POWER_IN)
        result = write_legacy_symbol(_symbol(pins=[pin], legacy=True))
        assert "X A 1 -300 100 100 R 50 50 1 1 W" in result

    @pytest.mark.parametrize("orientation, letter", [(0, "R"), (90, "U"), (180, "L"), (270, "D")])
    def test_pin_orientation(self, orientation, letter):
        pin = Pin(number="1", name="A", position=(0, 0), length=100, orientation=orientation)
        result = write_legacy_symbol(_symbol(pins=[pin], legacy=True))
        assert f"X A 1 0 0 100 {letter} " in result

    def test_pin_names_hidden_only_when_all_hidden(self):
        some = write_legacy_symbol(_symbol(pins=[_pin("1", name_visible=False), _pin("2")], legacy=True))
        assert "DEF Test U 0 40 Y Y" in some
        everyone = write_legacy_symbol(
            _symbol(pins=[_pin("1", name_visible=False), _pin("2", name_visible=False)], legacy=True)
        )
        assert "DEF Test U 0 40 Y N" in everyone

    def test_graphics(self):
        result = write_legacy_symbol(
            _symbol(
                graphics=[
                    Rectangle(start=(-100, 100), end=(100, -100), width=10, filled=True),
                    Circle(center=(0, 0), radius=50, width=10),
                    Polygon(points=[(0, 0), (100, 0), (100, 100)], width=10),
                    Arc(start=(100, 0), end=(-100, 0), bulge=1.0, width=10),
                ],
                legacy=True,
            )
        )
        assert "S -100 100 100 -100 1 1 10 f" in result
        assert "C 0 0 50 1 1 10 N" in result
        assert "P 4 1 1 10 0 0 100 0 100 100 0 0 F" in result
        assert "A 0 0 100 0 1800 1 1 10 N 100 0 -100 0" in result

    def test_clockwise_arc_written_counter_clockwise(self):
        result = write_legacy_symbol(
            _symbol(graphics=[Arc(start=(-100, 0), end=(100, 0), bulge=-1.0, width=10)], legacy=True)
        )
        assert "A 0 0 100 0 1800 1 1 10 N 100 0 -100 0" in result

    def test_multi_unit_locked(self):
        units = [SymbolUnit(pins=[_pin("1", length=100)]), SymbolUnit(pins=[_pin("2", length=100)])]
        result = write_legacy_symbol(_symbol(units=units, legacy=True))
        assert "DEF Test U 0 40 Y Y 2 L N" in result
        assert "X A 2 0 0 100 R 50 50 2 1 U" in result

    def test_library_wrapper(self):
        lib = write_legacy_library([write_legacy_symbol(_symbol(legacy=True))])
        assert lib.startswith(LEGACY_HEADER)
        assert lib.endswith(LEGACY_FOOTER)


class TestBuiltSymbol:
    def test_sample_symbol_round_trip_through_writer(self, source):
        text = write_symbol(build_symbol(source, "Test_Part_C1234", footprint_ref="nlbn:Test_Part_C1234"))
        assert text.count("(pin ") == 2
        assert "(pin power_in line (at -7.62 2.54 0)" in text
        assert "(pin input inverted (at 7.62 2.54 180)" in text
