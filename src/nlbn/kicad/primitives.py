"""KiCad-side primitives and the symbol/footprint definitions built from them.

Geometry is already in target units (mm, or mils for legacy symbols) and in
the target's axis orientation. Writers dispatch on the concrete class; any
other object is a programming error and raises ``TypeError``.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple, Union

Point = Tuple[float, float]


class PinType(str, Enum):
    INPUT = "input"
    OUTPUT = "output"
    BIDIRECTIONAL = "bidirectional"
    TRI_STATE = "tri_state"
    PASSIVE = "passive"
    UNSPECIFIED = "unspecified"
    POWER_IN = "power_in"
    POWER_OUT = "power_out"
    OPEN_COLLECTOR = "open_collector"
    NO_CONNECT = "no_connect"


class PinStyle(str, Enum):
    LINE = "line"
    INVERTED = "inverted"
    CLOCK = "clock"
    INVERTED_CLOCK = "inverted_clock"


class PadKind(str, Enum):
    SMD = "smd"
    THRU_HOLE = "thru_hole"
    NP_THRU_HOLE = "np_thru_hole"


@dataclass
class Line:
    points: List[Point]
    width: float
    layer: str = ""


@dataclass
class Arc:
    """Arc from ``start`` to ``end``; ``bulge`` is tan(sweep / 4), never 0."""

    start: Point
    end: Point
    bulge: float
    width: float
    layer: str = ""


@dataclass
class Circle:
    center: Point
    radius: float
    width: float
    layer: str = ""
    filled: bool = False
    approximated: bool = False


@dataclass
class Rectangle:
    start: Point
    end: Point
    width: float
    layer: str = ""
    filled: bool = False


@dataclass
class Polygon:
    """Closed outline; the closing edge back to ``points[0]`` is implicit."""

    points: List[Point]
    width: float
    layer: str = ""
    filled: bool = True
    approximated: bool = False


@dataclass
class Text:
    text: str
    position: Point
    rotation: float
    size: float
    thickness: float = 0.0
    layer: str = ""
    justify: str = "center"  # left, center, right


@dataclass
class Drill:
    """Round when ``width == height``, otherwise an oval slot."""

    width: float
    height: float

    @property
    def is_slot(self) -> bool:
        return abs(self.width - self.height) > 1e-9


@dataclass
class Pad:
    number: str
    kind: PadKind
    shape: str  # rect, oval, circle, custom
    position: Point
    size: Tuple[float, float]
    layers: Tuple[str, ...]
    rotation: float = 0.0
    drill: Optional[Drill] = None
    polygon: List[Point] = field(default_factory=list)  # custom outline, relative to position


@dataclass
class Pin:
    number: str
    name: str
    position: Point
    length: float
    orientation: float  # direction from the connection point towards the body, degrees
    electrical_type: PinType = PinType.UNSPECIFIED
    style: PinStyle = PinStyle.LINE
    name_visible: bool = True
    number_visible: bool = True


Graphic = Union[Line, Arc, Circle, Rectangle, Polygon, Text]
Primitive = Union[Line, Arc, Circle, Rectangle, Polygon, Text, Pad, Pin]

GRAPHIC_KINDS = (Line, Arc, Circle, Rectangle, Polygon, Text)


@dataclass
class SymbolUnit:
    graphics: List[Graphic] = field(default_factory=list)
    pins: List[Pin] = field(default_factory=list)


@dataclass
class SymbolDefinition:
    name: str
    reference: str = "U"
    value: str = ""
    footprint: str = ""
    datasheet: str = ""
    description: str = ""
    lcsc_id: str = ""
    manufacturer: str = ""
    manufacturer_part: str = ""
    units: List[SymbolUnit] = field(default_factory=list)
    legacy: bool = False  # coordinates in mils

    @property
    def pins(self) -> List[Pin]:
        return [pin for unit in self.units for pin in unit.pins]


@dataclass
class ModelLink:
    path: str
    offset: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    rotation: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    scale: Tuple[float, float, float] = (1.0, 1.0, 1.0)


@dataclass
class FootprintDefinition:
    name: str
    attribute: str = "smd"  # smd or through_hole
    pads: List[Pad] = field(default_factory=list)
    graphics: List[Graphic] = field(default_factory=list)
    model: Optional[ModelLink] = None
    description: str = ""
    datasheet: str = ""
    lcsc_id: str = ""
    legacy: bool = False
