"""Tests for parser.py - EasyEDA shape string parsing."""
import json

import pytest

from nlbn.easyeda.ee_types import EEArc, EECircle, EEEllipse, EELine, EEPolygon, EERectangle, EEText
from nlbn.easyeda.parser import (
    parse_footprint_shapes,
    parse_svg_path,
    parse_svgnode,
    parse_symbol_shapes,
)
from nlbn.errors import MalformedPrimitive, ShapeErrorPolicy

PIN = (
    "P~show~0~1~370~290~180~gge2~0^^370~290^^M370,290h10~#880000"
    "^^1~383~294~0~VCC~start~~~#0000FF^^1~376~289~0~1~end~~~#0000FF"
    "^^0~373~290^^0~M 370 287 L 367 290 L 370 293"
)


class TestParseSvgPath:
    def test_absolute_polyline(self):
        [(points, bulges, closed)] = parse_svg_path("M 0 0 L 10 0 L 10 10")
        assert points == [(0, 0), (10, 0), (10, 10)]
        assert bulges == [0.0, 0.0]
        assert closed is False

    def test_relative_and_hv(self):
        [(points, _bulges, _closed)] = parse_svg_path("M10,10 h5 v5 H0 V0 l1 1")
        assert points == [(10, 10), (15, 10), (15, 15), (0, 15), (0, 0), (1, 1)]

    def test_close_adds_start_point(self):
        [(points, bulges, closed)] = parse_svg_path("M0 0 L4 0 L4 4 Z")
        assert closed is True
        assert points[-1] == (0, 0)
        assert len(bulges) == len(points) - 1

    def test_arc_edge_has_bulge(self):
        [(points, bulges, _closed)] = parse_svg_path("M0 0 A1 1 0 0 1 2 0")
        assert points == [(0, 0), (2, 0)]
        assert bulges[0] == pytest.approx(1.0)

    def test_multiple_subpaths(self):
        subpaths = parse_svg_path("M0 0 L1 0 M5 5 L6 6 Z")
        assert len(subpaths) == 2
        assert subpaths[0][2] is False
        assert subpaths[1][2] is True

    def test_implicit_lineto(self):
        [(points, _bulges, _closed)] = parse_svg_path("M0 0 1 1 2 0")
        assert points == [(0, 0), (1, 1), (2, 0)]

    def test_truncated_command(self):
        with pytest.raises(MalformedPrimitive):
            parse_svg_path("M0 0 L5")

    def test_unsupported_command(self):
        with pytest.raises(MalformedPrimitive):
            parse_svg_path("M0 0 C1 1 2 2 3 3")


class TestParseSymbolShapes:
    def test_pin(self):
        sym = parse_symbol_shapes([PIN])
        [pin] = sym.pins
        assert pin.number == "1"
        assert pin.name == "VCC"
        assert (pin.x, pin.y) == (370, 290)
        assert pin.rotation == 180
        assert pin.length == 10
        assert pin.type_code == "0"
        assert not pin.dot
        assert not pin.clock

    def test_pin_dot_and_clock(self):
        shape = PIN.replace("^^0~373~290^^0~M", "^^1~373~290^^1~M")
        [pin] = parse_symbol_shapes([shape]).pins
        assert pin.dot
        assert pin.clock

    def test_hidden_pin_name(self):
        shape = PIN.replace("^^1~383~294~0~VCC", "^^0~383~294~0~VCC")
        [pin] = parse_symbol_shapes([shape]).pins
        assert not pin.name_visible
        assert pin.number_visible

    def test_pin_without_number_is_dropped(self):
        policy = ShapeErrorPolicy()
        sym = parse_symbol_shapes(["P~show~0~~370~290~180~gge2~0"], policy)
        assert sym.pins == []
        assert len(policy.warnings) == 1

    def test_pin_with_bad_length_is_dropped(self):
        shape = PIN.replace("M370,290h10", "M370,290h-")
        policy = ShapeErrorPolicy()
        sym = parse_symbol_shapes([shape], policy)
        assert sym.pins == []
        [warning] = policy.warnings
        assert warning.startswith("MalformedPrimitive")

    def test_pin_with_bad_length_strict(self):
        shape = PIN.replace("M370,290h10", "M370,290h-")
        with pytest.raises(MalformedPrimitive, match="invalid pin length"):
            parse_symbol_shapes([shape], ShapeErrorPolicy(True))

    def test_rectangle(self):
        sym = parse_symbol_shapes(["R~380~280~2~2~40~30~#880000~1~0~none~gge1~0~"])
        [rect] = sym.shapes
        assert isinstance(rect, EERectangle)
        assert (rect.x, rect.y, rect.width, rect.height) == (380, 280, 40, 30)
        assert rect.stroke_width == 1
        assert not rect.filled

    def test_circle_and_ellipse(self):
        sym = parse_symbol_shapes(
            [
                "C~400~300~5~#880000~1~0~#880000~gge4~0",
                "E~400~300~6~3~#880000~1~0~none~gge5~0",
            ]
        )
        circle, ellipse = sym.shapes
        assert isinstance(circle, EECircle) and circle.filled
        assert isinstance(ellipse, EEEllipse)
        assert (ellipse.rx, ellipse.ry) == (6, 3)

    def test_polyline_and_polygon(self):
        sym = parse_symbol_shapes(
            [
                "PL~380 290 390 290 390 300~#880000~1~0~none~gge6~0",
                "PG~380 290 390 290 390 300~#880000~1~0~#880000~gge7~0",
            ]
        )
        line, poly = sym.shapes
        assert isinstance(line, EELine)
        assert line.points == [(380, 290), (390, 290), (390, 300)]
        assert isinstance(poly, EEPolygon)
        assert poly.filled

    def test_open_path_with_arc_is_a_line(self):
        sym = parse_symbol_shapes(["PT~M 0 0 A 1 1 0 0 1 2 0~#880000~1~0~none~gge8~0"])
        [line] = sym.shapes
        assert isinstance(line, EELine)
        assert line.bulges[0] == pytest.approx(1.0)

    def test_closed_path_is_a_polygon(self):
        sym = parse_symbol_shapes(["PT~M 0 0 L 4 0 L 4 4 Z~#880000~1~0~#880000~gge9~0"])
        [poly] = sym.shapes
        assert isinstance(poly, EEPolygon)
        assert poly.filled

    def test_arc(self):
        sym = parse_symbol_shapes(["A~M 380 290 A 10 10 0 0 1 400 290~~#880000~1~0~none~gge10~0"])
        [arc] = sym.shapes
        assert isinstance(arc, EEArc)
        assert arc.start == (380, 290)
        assert arc.end == (400, 290)
        assert arc.sweep == 1

    def test_text_font_size_in_points(self):
        sym = parse_symbol_shapes(["T~L~400~300~0~#0000FF~~6pt~~~~comment~Hello~1~start~gge11~0"])
        [text] = sym.shapes
        assert isinstance(text, EEText)
        assert text.text == "Hello"
        assert text.font_size == pytest.approx(8.0)

    def test_malformed_shape_dropped_with_warning(self):
        policy = ShapeErrorPolicy()
        sym = parse_symbol_shapes(["R~abc~280~2~2~40~30~#880000~1~0~none~gge1~0~", PIN], policy)
        assert sym.shapes == []
        assert len(sym.pins) == 1
        assert len(policy.warnings) == 1
        assert policy.warnings[0].startswith("MalformedPrimitive")

    def test_malformed_shape_strict(self):
        with pytest.raises(MalformedPrimitive):
            parse_symbol_shapes(["C~400~300"], ShapeErrorPolicy(strict=True))

    def test_unknown_shape_ignored(self):
        sym = parse_symbol_shapes(["J~whatever"])
        assert sym.shapes == [] and sym.pins == []


class TestParseFootprintShapes:
    def test_smd_pad(self):
        fp = parse_footprint_shapes(["PAD~RECT~3990~3000~6~8~1~~1~0~~45~gge10~0"])
        [pad] = fp.pads
        assert pad.shape == "RECT"
        assert pad.number == "1"
        assert pad.layer == "1"
        assert pad.hole_radius == 0
        assert pad.rotation == 45

    def test_polygon_pad_points(self):
        fp = parse_footprint_shapes(["PAD~POLYGON~10~10~4~4~1~~1~0~8 8 12 8 12 12 8 12~0~gge1~0"])
        assert fp.pads[0].polygon_points == [8, 8, 12, 8, 12, 12, 8, 12]

    def test_slotted_pad(self):
        fp = parse_footprint_shapes(["PAD~OVAL~0~0~6~12~11~~1~1.5~~0~gge1~8"])
        assert fp.pads[0].hole_length == 8

    def test_track(self):
        fp = parse_footprint_shapes(["TRACK~1~3~~3980 2990 4020 2990~gge13~0"])
        [line] = fp.shapes
        assert line.points == [(3980, 2990), (4020, 2990)]
        assert line.layer == "3"

    def test_decorative_circle_skipped(self):
        fp = parse_footprint_shapes(["CIRCLE~4000~3000~1~0.5~100~gge15~0", "CIRCLE~4000~3000~1~0.5~3~gge16~0"])
        assert len(fp.shapes) == 1
        assert fp.shapes[0].layer == "3"

    def test_hole_and_via(self):
        fp = parse_footprint_shapes(["HOLE~4000~2980~2~gge14~0", "VIA~10~10~3~~1~gge2~0"])
        assert fp.holes[0].radius == 2
        assert fp.vias[0].diameter == 3
        assert fp.vias[0].hole_radius == 1

    def test_solid_region(self):
        fp = parse_footprint_shapes(["SOLIDREGION~3~~M 0 0 L 4 0 L 4 4 Z~solid~gge1~0"])
        [poly] = fp.shapes
        assert isinstance(poly, EEPolygon)
        assert poly.layer == "3"
        assert poly.filled

    def test_npth_region_becomes_edge_outline(self):
        fp = parse_footprint_shapes(["SOLIDREGION~99~~M 0 0 L 4 0 L 4 4 Z~npth~gge1~0"])
        [poly] = fp.shapes
        assert poly.layer == "10"
        assert not poly.filled

    def test_cutout_region_skipped(self):
        fp = parse_footprint_shapes(["SOLIDREGION~3~~M 0 0 L 4 0 L 4 4 Z~cutout~gge1~0"])
        assert fp.shapes == []

    def test_text(self):
        fp = parse_footprint_shapes(["TEXT~L~4000~2970~0.8~90~0~3~~4.5~Hi~M 0 0~~gge16~0"])
        [text] = fp.shapes
        assert text.text == "Hi"
        assert text.rotation == 90
        assert text.layer == "3"

    def test_model(self):
        node = {"attrs": {"uuid": "u1", "title": "M", "c_origin": "10,20", "z": "3", "c_rotation": "0,0,90"}}
        fp = parse_footprint_shapes(["SVGNODE~" + json.dumps(node)])
        assert fp.model.uuid == "u1"
        assert (fp.model.origin_x, fp.model.origin_y, fp.model.z) == (10, 20, 3)
        assert fp.model.rotation == (0, 0, -90)

    def test_malformed_pad_dropped(self):
        policy = ShapeErrorPolicy()
        fp = parse_footprint_shapes(["PAD~RECT~x~3000~6~8~1~~1"], policy)
        assert fp.pads == []
        assert len(policy.warnings) == 1


class TestParseSvgnode:
    def test_non_model_node_ignored(self):
        node = {"attrs": {"uuid": "u1", "c_etype": "outline"}}
        assert parse_svgnode(["SVGNODE", json.dumps(node)]) is None

    def test_invalid_json(self):
        assert parse_svgnode(["SVGNODE", "{not json"]) is None

    def test_missing_uuid(self):
        assert parse_svgnode(["SVGNODE", json.dumps({"attrs": {}})]) is None
