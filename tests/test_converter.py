"""Tests for converter.py - per-output conversion of one component."""
from dataclasses import replace

import pytest

from conftest import OBJ_DATA, STEP_DATA
from nlbn.converter import ModelData, convert_component
from nlbn.easyeda.ee_types import ShapeDocument
from nlbn.errors import DuplicatePad, MalformedPrimitive, MissingOutput, ModelUnavailable
from nlbn.kicad.library import OUTPUT_FOOTPRINT, OUTPUT_MODEL, OUTPUT_SYMBOL, LibraryPaths

BAD_POLYLINE = "PL~10 x~#880000~1~0~none~gge9~0"


@pytest.fixture
def paths(tmp_path):
    return LibraryPaths.for_output(str(tmp_path), "nlbn", 9)


def _with_symbol_shapes(source, *extra):
    doc = source.symbol_parts[0]
    return replace(source, symbol_parts=(ShapeDocument(doc.shapes + extra, doc.origin_x, doc.origin_y),))


class TestConvertComponent:
    def test_symbol_and_footprint(self, source, paths):
        result = convert_component(source, paths)
        assert result.name == "Test_Part_C1234"
        assert result.errors == {}
        assert '(symbol "Test_Part_C1234"' in result.symbol
        assert '(property "Footprint" "nlbn:Test_Part_C1234"' in result.symbol
        assert result.footprint.startswith('(footprint "Test_Part_C1234"')
        assert result.model is None

    def test_only_requested_outputs(self, source, paths):
        result = convert_component(source, paths, symbol=False)
        assert result.symbol is None
        assert result.footprint is not None

    def test_model_linked_from_footprint(self, source, paths):
        data = ModelData(step=STEP_DATA, obj=OBJ_DATA)
        result = convert_component(source, paths, model=True, model_data=data)
        assert result.model.step_data == STEP_DATA
        assert "nlbn.3dshapes/Test_Part_C1234.step" in result.footprint
        assert "(rotate (xyz 0 0 -90))" in result.footprint

    def test_project_relative_model(self, source, paths):
        data = ModelData(step=STEP_DATA)
        result = convert_component(source, paths, model=True, model_data=data, project_relative=True)
        assert '(model "${KIPRJMOD}/nlbn.3dshapes/Test_Part_C1234.step"' in result.footprint

    def test_legacy_outputs(self, source, tmp_path):
        legacy = LibraryPaths.for_output(str(tmp_path), "nlbn", 5)
        result = convert_component(source, legacy)
        assert "DEF Test_Part_C1234 U" in result.symbol
        assert result.footprint.startswith("(module Test_Part_C1234")


class TestPerOutputErrors:
    def test_missing_footprint(self, source_factory, paths):
        result = convert_component(source_factory(footprint=False), paths)
        assert isinstance(result.errors[OUTPUT_FOOTPRINT], MissingOutput)
        assert result.errors[OUTPUT_FOOTPRINT].kind == "NotFound"
        # The symbol is still produced, without a footprint link
        assert '(property "Footprint" ""' in result.symbol

    def test_missing_symbol(self, source_factory, paths):
        result = convert_component(source_factory(symbol=False), paths)
        assert isinstance(result.errors[OUTPUT_SYMBOL], MissingOutput)
        assert result.footprint is not None

    def test_part_without_model(self, source_factory, paths):
        result = convert_component(source_factory(model=False), paths, model=True)
        assert isinstance(result.errors[OUTPUT_MODEL], ModelUnavailable)
        # No model, so the footprint carries no model reference
        assert "(model" not in result.footprint

    def test_model_download_failed(self, source, paths):
        result = convert_component(source, paths, model=True, model_data=ModelData())
        assert isinstance(result.errors[OUTPUT_MODEL], ModelUnavailable)
        assert result.symbol is not None

    def test_duplicate_pad_only_fails_footprint(self, source, paths):
        doc = source.footprint
        dup = replace(source, footprint=ShapeDocument(doc.shapes + (doc.shapes[0],), doc.origin_x, doc.origin_y))
        result = convert_component(dup, paths)
        assert isinstance(result.errors[OUTPUT_FOOTPRINT], DuplicatePad)
        assert result.footprint is None
        assert result.symbol is not None


class TestStrictMode:
    def test_bad_shape_dropped_with_warning(self, source, paths):
        result = convert_component(_with_symbol_shapes(source, BAD_POLYLINE), paths)
        assert result.symbol is not None
        assert any(w.startswith("MalformedPrimitive") and "PL~" in w for w in result.warnings)

    def test_bad_shape_aborts_component(self, source, paths):
        with pytest.raises(MalformedPrimitive):
            convert_component(_with_symbol_shapes(source, BAD_POLYLINE), paths, strict=True)
