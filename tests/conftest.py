"""Shared test fixtures for nlbn tests."""
import json
import os
import sys

import pytest

# Make the src layout importable without installing the package
_src_dir = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "src")
if _src_dir not in sys.path:
    sys.path.insert(0, _src_dir)

from nlbn.easyeda.ee_types import ComponentSource, EE3DModel, ShapeDocument  # noqa: E402

# Symbol canvas origin is (400, 300); a 40x40 box with VCC on the left, IN on the right
SYMBOL_SHAPES = (
    "R~380~280~2~2~40~40~#880000~1~0~none~gge1~0~",
    "P~show~0~1~370~290~180~gge2~0^^370~290^^M370,290h10~#880000"
    "^^1~383~294~0~VCC~start~~~#0000FF^^1~376~289~0~1~end~~~#0000FF"
    "^^0~373~290^^0~M 370 287 L 367 290 L 370 293",
    "P~show~1~2~430~290~0~gge3~0^^430~290^^M430,290h-10~#880000"
    "^^1~417~294~0~IN~end~~~#0000FF^^1~424~289~0~2~start~~~#0000FF"
    "^^1~433~290^^0~M 430 287 L 433 290 L 430 293",
)

MODEL_SVGNODE = "SVGNODE~" + json.dumps(
    {
        "gId": "g1",
        "nodeName": "g",
        "nodeType": 1,
        "layerid": "19",
        "attrs": {
            "c_width": "10",
            "c_height": "10",
            "c_origin": "4000,3000",
            "z": "0",
            "title": "R0603",
            "uuid": "abc123",
            "c_rotation": "0,0,90",
            "c_etype": "outline3D",
        },
    }
)

# Footprint canvas origin is (4000, 3000)
FOOTPRINT_SHAPES = (
    "PAD~RECT~3990~3000~6~8~1~~1~0~3987 2996 3993 2996 3993 3004 3987 3004~0~gge10~0~~Y~0~0~0.2~3990,3000",
    "PAD~RECT~4010~3000~6~8~1~~2~0~4007 2996 4013 2996 4013 3004 4007 3004~90~gge11~0~~Y~0~0~0.2~4010,3000",
    "PAD~ELLIPSE~4000~3020~6~6~11~~3~1.5~~0~gge12~0~~Y",
    "TRACK~1~3~~3980 2990 4020 2990~gge13~0",
    "HOLE~4000~2980~2~gge14~0",
    "CIRCLE~4000~3000~1~0.5~100~gge15~0",
    "TEXT~N~4000~2970~0.8~0~0~3~~4.5~R1~M 0 0~~gge16~0",
    MODEL_SVGNODE,
)

MODEL = EE3DModel(uuid="abc123", title="R0603", origin_x=4000, origin_y=3000, z=0, rotation=(0.0, 0.0, -90.0))

STEP_DATA = b"ISO-10303-21;\nHEADER;\nENDSEC;\nEND-ISO-10303-21;\n"

OBJ_DATA = (
    "newmtl mat0\nKd 0.5 0.5 0.5\nKs 0 0 0\nd 0\nendmtl\n"
    "v 0 0 0\nv 1 0 0\nv 0 1 0\nv 0 0 1\n"
    "usemtl mat0\nf 1//1 2//2 3//3\nf 1//1 2//2 4//4\n"
)


def make_source(lcsc_id="C1234", title="Test Part", symbol=True, footprint=True, model=True, **kwargs):
    """Build a ComponentSource from the sample documents above."""
    return ComponentSource(
        lcsc_id=lcsc_id,
        title=title,
        prefix=kwargs.pop("prefix", "U"),
        symbol_parts=(ShapeDocument(SYMBOL_SHAPES, 400, 300),) if symbol else (),
        footprint=ShapeDocument(FOOTPRINT_SHAPES, 4000, 3000) if footprint else None,
        model=MODEL if model else None,
        datasheet=kwargs.pop("datasheet", "https://example.invalid/ds.pdf"),
        description=kwargs.pop("description", "Test component"),
        manufacturer=kwargs.pop("manufacturer", "ACME"),
        manufacturer_part=kwargs.pop("manufacturer_part", "TP-1"),
        **kwargs,
    )


@pytest.fixture
def source():
    return make_source()


@pytest.fixture
def source_factory():
    return make_source
