"""Dataclass types for fetched components and parsed EasyEDA primitives.

All geometry here is in raw EasyEDA canvas units (10 mil), Y down, relative
to the canvas rather than the component origin. Conversion to KiCad space
happens in :mod:`nlbn.kicad.transform`.
"""
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union


@dataclass
class EEPin:
    number: str
    name: str
    x: float
    y: float
    rotation: float
    length: float
    type_code: str  # "0"=undefined, "1"=input, "2"=output, "3"=bidirectional, "4"=power
    name_visible: bool = True
    number_visible: bool = True
    dot: bool = False
    clock: bool = False


@dataclass
class EEPad:
    shape: str  # "RECT", "OVAL", "ELLIPSE", "POLYGON"
    x: float
    y: float
    width: float
    height: float
    layer: str  # "1"=F.Cu, "2"=B.Cu, "11"=multilayer
    number: str
    hole_radius: float = 0.0  # 0 for SMD
    rotation: float = 0.0
    polygon_points: List[float] = field(default_factory=list)  # absolute x, y pairs
    hole_length: float = 0.0  # slot length, 0 for round holes


@dataclass
class EELine:
    points: List[Tuple[float, float]]
    width: float
    layer: str = ""
    filled: bool = False
    bulges: List[float] = field(default_factory=list)  # per edge, empty when straight


@dataclass
class EEArc:
    start: Tuple[float, float]
    end: Tuple[float, float]
    rx: float
    ry: float
    large_arc: int
    sweep: int
    width: float
    layer: str = ""


@dataclass
class EECircle:
    cx: float
    cy: float
    radius: float
    width: float
    layer: str = ""
    filled: bool = False


@dataclass
class EEEllipse:
    cx: float
    cy: float
    rx: float
    ry: float
    width: float
    layer: str = ""
    filled: bool = False


@dataclass
class EERectangle:
    x: float
    y: float
    width: float
    height: float
    stroke_width: float = 0.0
    layer: str = ""
    filled: bool = False


@dataclass
class EEPolygon:
    """Closed outline; ``bulges[i]`` bends the edge from vertex i to i + 1."""

    points: List[Tuple[float, float]]
    width: float = 0.0
    layer: str = ""
    filled: bool = True
    bulges: List[float] = field(default_factory=list)


@dataclass
class EEText:
    text: str
    x: float
    y: float
    rotation: float
    font_size: float  # EasyEDA units
    width: float = 0.0
    layer: str = ""
    anchor: str = "start"  # SVG text-anchor: start, middle, end
    kind: str = "L"  # "L" label, "N" name, "P" prefix/reference
    visible: bool = True


@dataclass
class EEHole:
    x: float
    y: float
    radius: float


@dataclass
class EEVia:
    x: float
    y: float
    diameter: float
    hole_radius: float


@dataclass
class EE3DModel:
    uuid: str
    title: str
    origin_x: float
    origin_y: float
    z: float
    rotation: Tuple[float, float, float]


EEShape = Union[EELine, EEArc, EECircle, EEEllipse, EERectangle, EEPolygon, EEText]


@dataclass
class EESymbol:
    pins: List[EEPin] = field(default_factory=list)
    shapes: List[EEShape] = field(default_factory=list)


@dataclass
class EEFootprint:
    pads: List[EEPad] = field(default_factory=list)
    shapes: List[EEShape] = field(default_factory=list)
    holes: List[EEHole] = field(default_factory=list)
    vias: List[EEVia] = field(default_factory=list)
    model: Optional[EE3DModel] = None


@dataclass(frozen=True)
class ShapeDocument:
    """One EasyEDA document: its raw shape strings and canvas origin."""

    shapes: Tuple[str, ...]
    origin_x: float = 0.0
    origin_y: float = 0.0


@dataclass(frozen=True)
class ComponentSource:
    """Everything fetched for one LCSC part, before any conversion.

    ``symbol_parts`` holds one document per symbol unit. ``footprint`` is
    None when EasyEDA has no package for the part.
    """

    lcsc_id: str
    title: str
    prefix: str = "U"
    symbol_parts: Tuple[ShapeDocument, ...] = ()
    footprint: Optional[ShapeDocument] = None
    model: Optional[EE3DModel] = None
    datasheet: str = ""
    description: str = ""
    manufacturer: str = ""
    manufacturer_part: str = ""
