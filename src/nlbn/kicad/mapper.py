"""Map parsed EasyEDA shapes onto KiCad graphic primitives.

The mapper is shared by the symbol and footprint builders. A :class:`MapTarget`
describes what the output format can express (rectangles, font sizes, board
layers); the :class:`~nlbn.kicad.transform.CoordinateTransform` describes
where the geometry goes. Pins and pads are not graphics and are handled by
the builders.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from ..easyeda.ee_types import (
    EEArc,
    EECircle,
    EEEllipse,
    EEHole,
    EELine,
    EEPad,
    EEPin,
    EEPolygon,
    EERectangle,
    EEText,
    EEVia,
)
from ..errors import InvalidGeometry, ShapeErrorPolicy
from .geometry import arc_polyline, ellipse_polygon, svg_arc_bulge
from .primitives import Arc, Circle, Graphic, Line, Polygon, Rectangle, Text
from .transform import CoordinateTransform

logger = logging.getLogger(__name__)

# EasyEDA layer ID -> KiCad layer name
LAYER_MAP = {
    "1": "F.Cu",
    "2": "B.Cu",
    "3": "F.SilkS",
    "4": "B.SilkS",
    "5": "F.Paste",
    "6": "B.Paste",
    "7": "F.Mask",
    "8": "B.Mask",
    "10": "Edge.Cuts",
    "12": "F.Fab",
    "13": "F.Fab",
    "14": "B.Fab",
    "15": "Dwgs.User",
    "99": "F.CrtYd",
    "100": "F.Fab",
    "101": "F.Fab",
}
DEFAULT_LAYER = "F.SilkS"

SYMBOL_FONT_SIZES_MM = (1.0, 1.27, 1.524, 2.032, 2.54)
SYMBOL_FONT_SIZES_MIL = (40.0, 50.0, 60.0, 80.0, 100.0)
FOOTPRINT_FONT_SIZES_MM = (0.5, 0.8, 1.0, 1.27, 1.5, 2.0)

_JUSTIFY = {"start": "left", "middle": "center", "end": "right"}

# Same tolerance for "is this ellipse a circle" in every target
_ELLIPSE_TOLERANCE = 1e-3
_ELLIPSE_SEGMENTS = 36

# KiCad rejects zero-width footprint strokes
_MIN_FOOTPRINT_STROKE = 0.1


class MappingRouteError(TypeError):
    """Raised when a pin, pad, hole or via reaches the graphics mapper."""


@dataclass(frozen=True)
class MapTarget:
    """Capabilities of the output format the shapes are mapped for."""

    kind: str  # "symbol" or "footprint"
    legacy: bool = False
    has_rectangle: bool = True
    font_sizes: Tuple[float, ...] = SYMBOL_FONT_SIZES_MM
    board_layers: bool = False
    min_stroke: float = 0.0


def symbol_target(legacy: bool = False) -> MapTarget:
    sizes = SYMBOL_FONT_SIZES_MIL if legacy else SYMBOL_FONT_SIZES_MM
    return MapTarget("symbol", legacy=legacy, has_rectangle=True, font_sizes=sizes)


def footprint_target(legacy: bool = False) -> MapTarget:
    # The KiCad 5 module format has no rectangle graphic
    return MapTarget(
        "footprint",
        legacy=legacy,
        has_rectangle=not legacy,
        font_sizes=FOOTPRINT_FONT_SIZES_MM,
        board_layers=True,
        min_stroke=_MIN_FOOTPRINT_STROKE,
    )


def map_layer(layer: str) -> str:
    """Translate an EasyEDA layer ID to a KiCad layer name."""
    return LAYER_MAP.get(layer, DEFAULT_LAYER)


def snap_font_size(size: float, sizes: Iterable[float]) -> float:
    """Return the supported size closest to ``size``."""
    return min(sizes, key=lambda s: abs(s - size))


def _layer(shape, target: MapTarget) -> str:
    return map_layer(shape.layer) if target.board_layers else ""


def _stroke(width: float, transform: CoordinateTransform, target: MapTarget) -> float:
    w = transform.length(width)
    return w if w > 0 else target.min_stroke


def _map_line(line: EELine, transform: CoordinateTransform, target: MapTarget) -> List[Graphic]:
    width = _stroke(line.width, transform, target)
    layer = _layer(line, target)
    pts = [transform.point(x, y) for x, y in line.points]

    if line.filled and not any(line.bulges):
        if len(pts) > 2 and pts[0] == pts[-1]:
            pts = pts[:-1]
        return [Polygon(points=pts, width=width, layer=layer, filled=True)]

    if not any(line.bulges):
        return [Line(points=pts, width=width, layer=layer)]

    # Split into straight runs and arcs
    out: List[Graphic] = []
    run = [pts[0]]
    for i in range(len(pts) - 1):
        bulge = line.bulges[i] if i < len(line.bulges) else 0.0
        if bulge == 0.0:
            run.append(pts[i + 1])
            continue
        if len(run) > 1:
            out.append(Line(points=run, width=width, layer=layer))
        out.append(Arc(start=pts[i], end=pts[i + 1], bulge=-bulge if transform.flip_y else bulge, width=width, layer=layer))
        run = [pts[i + 1]]
    if len(run) > 1:
        out.append(Line(points=run, width=width, layer=layer))
    return out


def _map_arc(arc: EEArc, transform: CoordinateTransform, target: MapTarget) -> List[Graphic]:
    width = _stroke(arc.width, transform, target)
    layer = _layer(arc, target)
    start = transform.point(*arc.start)
    end = transform.point(*arc.end)
    bulge = svg_arc_bulge(arc.start, arc.end, arc.rx, arc.ry, arc.large_arc, arc.sweep)
    if bulge == 0.0:
        # Zero radius or coincident endpoints: SVG draws a straight segment
        return [Line(points=[start, end], width=width, layer=layer)]
    if transform.flip_y:
        bulge = -bulge
    return [Arc(start=start, end=end, bulge=bulge, width=width, layer=layer)]


def _map_circle(circle: EECircle, transform: CoordinateTransform, target: MapTarget) -> List[Graphic]:
    return [
        Circle(
            center=transform.point(circle.cx, circle.cy),
            radius=transform.length(circle.radius),
            width=_stroke(circle.width, transform, target),
            layer=_layer(circle, target),
            filled=circle.filled,
        )
    ]


def _map_ellipse(ellipse: EEEllipse, transform: CoordinateTransform, target: MapTarget) -> List[Graphic]:
    width = _stroke(ellipse.width, transform, target)
    layer = _layer(ellipse, target)
    if abs(ellipse.rx - ellipse.ry) < _ELLIPSE_TOLERANCE:
        return [
            Circle(
                center=transform.point(ellipse.cx, ellipse.cy),
                radius=transform.length(ellipse.rx),
                width=width,
                layer=layer,
                filled=ellipse.filled,
            )
        ]
    outline = ellipse_polygon(ellipse.cx, ellipse.cy, ellipse.rx, ellipse.ry, _ELLIPSE_SEGMENTS)[:-1]
    return [
        Polygon(
            points=[transform.point(x, y) for x, y in outline],
            width=width,
            layer=layer,
            filled=ellipse.filled,
            approximated=True,
        )
    ]


def _map_rectangle(rect: EERectangle, transform: CoordinateTransform, target: MapTarget) -> List[Graphic]:
    width = _stroke(rect.stroke_width, transform, target)
    layer = _layer(rect, target)
    start = transform.point(rect.x, rect.y)
    end = transform.point(rect.x + rect.width, rect.y + rect.height)
    if target.has_rectangle:
        return [Rectangle(start=start, end=end, width=width, layer=layer, filled=rect.filled)]
    corners = [start, (end[0], start[1]), end, (start[0], end[1])]
    return [Polygon(points=corners, width=width, layer=layer, filled=rect.filled)]


def _map_polygon(poly: EEPolygon, transform: CoordinateTransform, target: MapTarget) -> List[Graphic]:
    # KiCad polygons have no arc edges, so bulged edges are flattened
    outline = [poly.points[0]]
    for i in range(len(poly.points) - 1):
        bulge = poly.bulges[i] if i < len(poly.bulges) else 0.0
        outline.extend(arc_polyline(poly.points[i], poly.points[i + 1], bulge)[1:])
    if len(outline) > 2 and outline[0] == outline[-1]:
        outline = outline[:-1]
    width = transform.length(poly.width) if poly.width > 0 else (0.0 if poly.filled else target.min_stroke)
    return [
        Polygon(
            points=[transform.point(x, y) for x, y in outline],
            width=width,
            layer=_layer(poly, target),
            filled=poly.filled,
        )
    ]


def _map_text(text: EEText, transform: CoordinateTransform, target: MapTarget) -> List[Graphic]:
    # Reference and name placeholders become properties, not free text
    if not text.visible or text.kind in ("P", "N") or not text.text.strip():
        return []
    size = snap_font_size(transform.length(text.font_size), target.font_sizes)
    thickness = transform.length(text.width) if text.width > 0 else size * 0.15
    return [
        Text(
            text=text.text,
            position=transform.point(text.x, text.y),
            rotation=transform.angle(text.rotation),
            size=size,
            thickness=thickness,
            layer=_layer(text, target),
            justify=_JUSTIFY.get(text.anchor, "center"),
        )
    ]


_HANDLERS = {
    EELine: _map_line,
    EEArc: _map_arc,
    EECircle: _map_circle,
    EEEllipse: _map_ellipse,
    EERectangle: _map_rectangle,
    EEPolygon: _map_polygon,
    EEText: _map_text,
}


def map_shape(shape, transform: CoordinateTransform, target: MapTarget) -> List[Graphic]:
    """Map one source shape to zero or more target primitives.

    Raises:
        MappingRouteError: for pins, pads, holes and vias.
        TypeError: for anything that is not an EasyEDA shape.
        InvalidGeometry: when a coordinate is not finite.
    """
    if isinstance(shape, (EEPin, EEPad, EEHole, EEVia)):
        raise MappingRouteError(f"{type(shape).__name__} is handled by the builders, not the mapper")
    handler = _HANDLERS.get(type(shape))
    if handler is None:
        raise TypeError(f"Unsupported shape type: {type(shape).__name__}")
    return handler(shape, transform, target)


def map_shapes(
    shapes: Iterable,
    transform: CoordinateTransform,
    target: MapTarget,
    policy: Optional[ShapeErrorPolicy] = None,
) -> List[Graphic]:
    """Map a list of shapes, letting ``policy`` decide about bad geometry."""
    policy = policy or ShapeErrorPolicy()
    graphics: List[Graphic] = []
    for shape in shapes:
        try:
            graphics.extend(map_shape(shape, transform, target))
        except InvalidGeometry as e:
            policy.handle(e, repr(shape))
    return graphics
