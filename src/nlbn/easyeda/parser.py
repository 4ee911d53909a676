"""EasyEDA shape string parser for footprints and symbols.

Shapes are ``~``-separated strings whose first field names the primitive.
Parsed geometry stays in EasyEDA canvas units; nothing here knows about KiCad.
A shape that lacks required fields raises :class:`MalformedPrimitive`, which
the :class:`ShapeErrorPolicy` either records (the shape is dropped) or
re-raises in strict mode.
"""
import json
import logging
import re
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from ..errors import MalformedPrimitive, ShapeErrorPolicy
from ..kicad.geometry import svg_arc_bulge
from .ee_types import (
    EE3DModel,
    EEArc,
    EECircle,
    EEEllipse,
    EEFootprint,
    EEHole,
    EELine,
    EEPad,
    EEPin,
    EEPolygon,
    EERectangle,
    EESymbol,
    EEText,
    EEVia,
)

logger = logging.getLogger(__name__)

# EasyEDA footprint layers that only carry decorative pad/marking circles
_DECORATIVE_CIRCLE_LAYERS = ("100", "101")

_SVG_ARC_RE = re.compile(
    r"M\s*([\d.e+-]+)[,\s]+([\d.e+-]+)\s*A\s*([\d.e+-]+)[,\s]+([\d.e+-]+)"
    r"[,\s]+([\d.e+-]+)[,\s]+([01])[,\s]+([01])[,\s]+([\d.e+-]+)[,\s]+([\d.e+-]+)"
)

_PATH_TOKEN_RE = re.compile(r"[MLAZHVCSQTmlazhvcsqt]|[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")


def _float(parts: Sequence[str], index: int, field_name: str) -> float:
    """Read a required numeric field, raising MalformedPrimitive if absent."""
    try:
        return float(parts[index])
    except (IndexError, ValueError) as e:
        raise MalformedPrimitive(f"{parts[0]}: missing or invalid {field_name}") from e


def _opt_float(parts: Sequence[str], index: int, default: float = 0.0) -> float:
    """Read an optional numeric field."""
    if index >= len(parts) or not parts[index].strip():
        return default
    try:
        return float(parts[index])
    except ValueError:
        return default


def _field(parts: Sequence[str], index: int, default: str = "") -> str:
    return parts[index] if index < len(parts) else default


def _is_fill(color: str) -> bool:
    color = color.strip().lower()
    return color.startswith("#") and color != "none"


def _parse_points(text: str, kind: str) -> List[Tuple[float, float]]:
    """Parse ``"x1 y1 x2 y2 ..."`` (space or comma separated) into pairs."""
    coords = text.replace(",", " ").split()
    if len(coords) % 2:
        raise MalformedPrimitive(f"{kind}: odd number of coordinates")
    try:
        values = [float(c) for c in coords]
    except ValueError as e:
        raise MalformedPrimitive(f"{kind}: invalid coordinate list") from e
    return [(values[i], values[i + 1]) for i in range(0, len(values), 2)]


def _parse_svg_arc_path(svg_path: str):
    """Parse an SVG arc path string (M sx sy A rx ry rot large sweep ex ey).

    Returns (sx, sy, rx, ry, large_arc, sweep, ex, ey) or None if parsing fails.
    """
    match = _SVG_ARC_RE.match(svg_path.strip())
    if not match:
        return None
    sx = float(match.group(1))
    sy = float(match.group(2))
    rx = float(match.group(3))
    ry = float(match.group(4))
    large_arc = int(match.group(6))
    sweep = int(match.group(7))
    ex = float(match.group(8))
    ey = float(match.group(9))
    return (sx, sy, rx, ry, large_arc, sweep, ex, ey)


def _find_svg_path(parts: List[str], start: int = 1) -> str:
    """Find the SVG path field (starting with 'M') in a parts list."""
    for i in range(start, len(parts)):
        p = parts[i].strip()
        if p.startswith("M"):
            return p
    return ""


def parse_svg_path(svg_path: str) -> List[Tuple[List[Tuple[float, float]], List[float], bool]]:
    """Split an SVG path into subpaths of vertices and per-edge bulges.

    Supports M/L/H/V/A/Z in absolute and relative form, which covers what
    EasyEDA emits. Returns a list of ``(points, bulges, closed)`` where
    ``bulges[i]`` belongs to the edge ``points[i] -> points[i + 1]``.
    """
    tokens = _PATH_TOKEN_RE.findall(svg_path)
    subpaths = []
    points: List[Tuple[float, float]] = []
    bulges: List[float] = []
    cmd = ""
    i = 0

    def number() -> float:
        nonlocal i
        if i >= len(tokens) or tokens[i].isalpha():
            raise MalformedPrimitive(f"path: truncated command {cmd!r}")
        value = float(tokens[i])
        i += 1
        return value

    def flush(closed: bool) -> None:
        nonlocal points, bulges
        if len(points) >= 2:
            subpaths.append((points, bulges, closed))
        points = []
        bulges = []

    while i < len(tokens):
        token = tokens[i]
        if token.isalpha():
            cmd = token
            i += 1
            if cmd in "Zz":
                if points and points[0] != points[-1]:
                    points.append(points[0])
                    bulges.append(0.0)
                flush(True)
                continue
        elif not cmd:
            raise MalformedPrimitive("path: coordinates before first command")

        cur = points[-1] if points else (0.0, 0.0)
        relative = cmd.islower()
        upper = cmd.upper()
        if upper == "M":
            x, y = number(), number()
            if relative:
                x, y = cur[0] + x, cur[1] + y
            flush(False)
            points.append((x, y))
            # Implicit lineto after the first moveto pair
            cmd = "l" if relative else "L"
        elif upper == "L":
            x, y = number(), number()
            if relative:
                x, y = cur[0] + x, cur[1] + y
            points.append((x, y))
            bulges.append(0.0)
        elif upper == "H":
            x = number()
            points.append((cur[0] + x if relative else x, cur[1]))
            bulges.append(0.0)
        elif upper == "V":
            y = number()
            points.append((cur[0], cur[1] + y if relative else y))
            bulges.append(0.0)
        elif upper == "A":
            rx, ry, _rot = number(), number(), number()
            large, sweep = int(number()), int(number())
            x, y = number(), number()
            if relative:
                x, y = cur[0] + x, cur[1] + y
            bulges.append(svg_arc_bulge(cur, (x, y), rx, ry, large, sweep))
            points.append((x, y))
        else:
            raise MalformedPrimitive(f"path: unsupported command {cmd!r}")

        if not points[:-1] and upper != "M":
            raise MalformedPrimitive("path: drawing command without a start point")

    flush(False)
    return subpaths


# --- Symbol shape parsers ---


def _parse_pin(shape_str: str) -> EEPin:
    """Parse pin shape string."""
    # P~show~elec_type~number~x~y~rotation~id~locked^^dot^^path^^name^^num^^dot_bis^^clock
    sections = shape_str.split("^^")
    main_parts = sections[0].split("~")

    type_code = _field(main_parts, 2, "0")
    number = _field(main_parts, 3).strip()
    x = _float(main_parts, 4, "x")
    y = _float(main_parts, 5, "y")
    rotation = _opt_float(main_parts, 6)

    # Pin length from the path section: "M360,290h10" or "M 440 310 v -10"
    length = 10.0
    if len(sections) > 2:
        path_section = sections[2]
        h_match = re.search(r"h\s*([-\d.]+)", path_section)
        v_match = re.search(r"v\s*([-\d.]+)", path_section)
        match = h_match or v_match
        if match:
            try:
                length = abs(float(match.group(1)))
            except ValueError as e:
                raise MalformedPrimitive(f"P: invalid pin length {match.group(1)!r}") from e

    # Name display: visible~x~y~rotation~text~anchor~font~size
    name = ""
    name_visible = True
    if len(sections) > 3:
        name_parts = sections[3].split("~")
        name = _field(name_parts, 4)
        if name_parts and name_parts[0] == "0":
            name_visible = False

    number_visible = True
    if len(sections) > 4:
        num_parts = sections[4].split("~")
        if num_parts and num_parts[0] == "0":
            number_visible = False
        if not number:
            number = _field(num_parts, 4).strip()

    dot = len(sections) > 5 and sections[5].split("~")[0] == "1"
    clock = len(sections) > 6 and sections[6].split("~")[0] == "1"

    if not number:
        raise MalformedPrimitive("P: pin without a number")

    return EEPin(
        number=number,
        name=name,
        x=x,
        y=y,
        rotation=rotation,
        length=length,
        type_code=type_code,
        name_visible=name_visible,
        number_visible=number_visible,
        dot=dot,
        clock=clock,
    )


def _parse_sym_rect(parts: List[str]) -> EERectangle:
    """Parse symbol rectangle."""
    # R~x~y~rx~ry~width~height~stroke_color~stroke_width~stroke_style~fill~id~locked
    # or R~x~y~width~height~... (shorter)
    x = _float(parts, 1, "x")
    y = _float(parts, 2, "y")
    if len(parts) >= 12:
        w = _float(parts, 5, "width")
        h = _float(parts, 6, "height")
        stroke = _opt_float(parts, 8)
        filled = _is_fill(_field(parts, 10))
    else:
        w = _float(parts, 3, "width")
        h = _float(parts, 4, "height")
        stroke = 0.0
        filled = True
    return EERectangle(x=x, y=y, width=w, height=h, stroke_width=stroke, filled=filled)


def _parse_sym_circle(parts: List[str]) -> EECircle:
    """Parse symbol circle."""
    # C~cx~cy~r~stroke_color~stroke_width~stroke_style~fill_color~id~locked
    return EECircle(
        cx=_float(parts, 1, "cx"),
        cy=_float(parts, 2, "cy"),
        radius=_float(parts, 3, "radius"),
        width=_opt_float(parts, 5),
        filled=_is_fill(_field(parts, 7)),
    )


def _parse_sym_ellipse(parts: List[str]) -> EEEllipse:
    """Parse symbol ellipse."""
    # E~cx~cy~rx~ry~stroke_color~stroke_width~stroke_style~fill_color~id~locked
    rx = _float(parts, 3, "rx")
    return EEEllipse(
        cx=_float(parts, 1, "cx"),
        cy=_float(parts, 2, "cy"),
        rx=rx,
        ry=_opt_float(parts, 4, rx),
        width=_opt_float(parts, 6),
        filled=_is_fill(_field(parts, 8)),
    )


def _parse_sym_polyline(parts: List[str]):
    """Parse symbol polyline (PL) or polygon (PG)."""
    is_polygon = parts[0] == "PG"
    # Format 1 (space-separated in one field): PL~13 -8 13 8~#880000~1~0~none~id
    # Format 2 (tilde-separated): PL~100~100~200~200~0~3
    if len(parts) > 1 and " " in parts[1].strip():
        points = _parse_points(parts[1], parts[0])
        stroke = _opt_float(parts, 3)
        fill = _field(parts, 5)
    else:
        points = []
        i = 1
        while i < len(parts) - 2:
            try:
                points.append((float(parts[i]), float(parts[i + 1])))
            except ValueError:
                break
            i += 2
        stroke = 0.0
        fill = ""

    if len(points) < 2:
        raise MalformedPrimitive(f"{parts[0]}: fewer than two points")
    if is_polygon:
        return EEPolygon(points=points, width=stroke, filled=True)
    return EELine(points=points, width=stroke, filled=_is_fill(fill))


def _parse_sym_path(parts: List[str]) -> List:
    """Parse symbol path (PT) into lines and closed polygons."""
    # PT~path~stroke_color~stroke_width~stroke_style~fill_color~id~locked
    path = _field(parts, 1)
    if not path.strip():
        raise MalformedPrimitive("PT: empty path")
    stroke = _opt_float(parts, 3)
    filled = _is_fill(_field(parts, 5))
    shapes = []
    for points, bulges, closed in parse_svg_path(path):
        if closed:
            shapes.append(EEPolygon(points=points, width=stroke, filled=filled, bulges=bulges))
        else:
            shapes.append(EELine(points=points, width=stroke, bulges=bulges if any(bulges) else []))
    return shapes


def _parse_sym_arc(parts: List[str]) -> EEArc:
    """Parse symbol arc."""
    # A~path~helper_dots~stroke_color~stroke_width~stroke_style~fill~id~locked
    svg_path = _find_svg_path(parts, start=1)
    parsed = _parse_svg_arc_path(svg_path) if svg_path else None
    if not parsed:
        raise MalformedPrimitive("A: missing or unparsable arc path")
    sx, sy, rx, ry, large_arc, sweep, ex, ey = parsed
    return EEArc(
        start=(sx, sy),
        end=(ex, ey),
        rx=rx,
        ry=ry,
        large_arc=large_arc,
        sweep=sweep,
        width=_opt_float(parts, 4),
    )


def _parse_font_size(value: str) -> float:
    """Convert a schematic font size ("7pt", "9px", "7") to EasyEDA units."""
    value = value.strip().lower()
    if value.endswith("pt"):
        return float(value[:-2]) * 4 / 3
    if value.endswith("px"):
        return float(value[:-2])
    return float(value) if value else 7 * 4 / 3


def _parse_sym_text(parts: List[str]) -> EEText:
    """Parse symbol text."""
    # T~mark~x~y~rotation~color~font~font_size~weight~style~baseline~type~text~visible~anchor~id
    try:
        font_size = _parse_font_size(_field(parts, 7))
    except ValueError as e:
        raise MalformedPrimitive("T: invalid font size") from e
    return EEText(
        text=_field(parts, 12),
        x=_float(parts, 2, "x"),
        y=_float(parts, 3, "y"),
        rotation=_opt_float(parts, 4),
        font_size=font_size,
        anchor=_field(parts, 14, "start") or "start",
        kind=_field(parts, 1, "L"),
        visible=_field(parts, 13, "1") != "0",
    )


def parse_symbol_shapes(shapes: List[str], policy: Optional[ShapeErrorPolicy] = None) -> EESymbol:
    """Parse symbol shape strings into an EESymbol."""
    policy = policy or ShapeErrorPolicy()
    sym = EESymbol()

    handlers: Dict[str, Callable[[List[str]], object]] = {
        "R": _parse_sym_rect,
        "C": _parse_sym_circle,
        "E": _parse_sym_ellipse,
        "PL": _parse_sym_polyline,
        "PG": _parse_sym_polyline,
        "PT": _parse_sym_path,
        "A": _parse_sym_arc,
        "T": _parse_sym_text,
    }

    for shape_str in shapes:
        kind = shape_str.split("~", 1)[0]
        try:
            if kind == "P":
                # Pins use ^^ as sub-delimiter
                sym.pins.append(_parse_pin(shape_str))
                continue
            handler = handlers.get(kind)
            if handler is None:
                logger.debug("Ignoring symbol shape type %r", kind)
                continue
            parsed = handler(shape_str.split("~"))
            if isinstance(parsed, list):
                sym.shapes.extend(parsed)
            else:
                sym.shapes.append(parsed)
        except MalformedPrimitive as e:
            policy.handle(e, shape_str)

    return sym


# --- Footprint shape parsers ---


def _parse_pad(parts: List[str]) -> EEPad:
    """Parse PAD shape string."""
    # PAD~shape~x~y~width~height~layer~net~number~hole_radius~points~rotation~id~hole_length~...
    shape = _field(parts, 1)
    x = _float(parts, 2, "x")
    y = _float(parts, 3, "y")
    width = _float(parts, 4, "width")
    height = _float(parts, 5, "height")
    layer = _field(parts, 6)

    polygon_points: List[float] = []
    polygon_str = _field(parts, 10)
    if polygon_str.strip() and shape == "POLYGON":
        for px, py in _parse_points(polygon_str, "PAD"):
            polygon_points.extend((px, py))

    return EEPad(
        shape=shape,
        x=x,
        y=y,
        width=width,
        height=height,
        layer=layer,
        number=_field(parts, 8).strip(),
        hole_radius=_opt_float(parts, 9),
        rotation=_opt_float(parts, 11),
        polygon_points=polygon_points,
        hole_length=_opt_float(parts, 13),
    )


def _parse_track(parts: List[str]) -> EELine:
    """Parse TRACK shape string."""
    # TRACK~width~layer~net~points~id~locked
    width = _float(parts, 1, "width")
    layer = _field(parts, 2)

    # The points field usually sits at index 4, older data has it at 3
    points_str = ""
    for i in range(3, len(parts)):
        if " " in parts[i].strip() and any(c.isdigit() for c in parts[i]):
            points_str = parts[i]
            break
    if not points_str:
        raise MalformedPrimitive("TRACK: no point list")

    points = _parse_points(points_str, "TRACK")
    if len(points) < 2:
        raise MalformedPrimitive("TRACK: fewer than two points")
    return EELine(points=points, width=width, layer=layer)


def _parse_fp_arc(parts: List[str]) -> EEArc:
    """Parse footprint ARC shape string."""
    # ARC~width~layer~net~svg_path~helper_dots~id~locked
    width = _float(parts, 1, "width")
    svg_path = _find_svg_path(parts, start=3)
    parsed = _parse_svg_arc_path(svg_path) if svg_path else None
    if not parsed:
        raise MalformedPrimitive("ARC: missing or unparsable arc path")
    sx, sy, rx, ry, large_arc, sweep, ex, ey = parsed
    return EEArc(
        start=(sx, sy),
        end=(ex, ey),
        rx=rx,
        ry=ry,
        large_arc=large_arc,
        sweep=sweep,
        width=width,
        layer=_field(parts, 2),
    )


def _parse_circle(parts: List[str]) -> Optional[EECircle]:
    """Parse CIRCLE shape string."""
    # CIRCLE~cx~cy~radius~width~layer~id~locked
    circle = EECircle(
        cx=_float(parts, 1, "cx"),
        cy=_float(parts, 2, "cy"),
        radius=_float(parts, 3, "radius"),
        width=_opt_float(parts, 4),
        layer=_field(parts, 5),
    )
    # Lead shape and component marking layers hold decorative pad circles
    if circle.layer in _DECORATIVE_CIRCLE_LAYERS:
        return None
    return circle


def _parse_hole(parts: List[str]) -> EEHole:
    """Parse HOLE shape string."""
    # HOLE~x~y~radius~id~locked
    return EEHole(x=_float(parts, 1, "x"), y=_float(parts, 2, "y"), radius=_float(parts, 3, "radius"))


def _parse_via(parts: List[str]) -> EEVia:
    """Parse VIA shape string."""
    # VIA~x~y~diameter~net~hole_radius~id~locked
    return EEVia(
        x=_float(parts, 1, "x"),
        y=_float(parts, 2, "y"),
        diameter=_float(parts, 3, "diameter"),
        hole_radius=_float(parts, 5, "hole radius"),
    )


def _parse_fp_rect(parts: List[str]) -> EERectangle:
    """Parse footprint RECT shape string."""
    # RECT~x~y~width~height~layer~id~locked~stroke_width
    return EERectangle(
        x=_float(parts, 1, "x"),
        y=_float(parts, 2, "y"),
        width=_float(parts, 3, "width"),
        height=_float(parts, 4, "height"),
        layer=_field(parts, 5),
        stroke_width=_opt_float(parts, 8),
    )


def _parse_solid_region(parts: List[str]) -> List[EEPolygon]:
    """Parse SOLIDREGION shape string."""
    # SOLIDREGION~layer~net~svg_path~type~id~locked
    layer = _field(parts, 1)
    svg_path = ""
    region_type = "solid"
    for i in range(2, len(parts)):
        p = parts[i].strip()
        if p.startswith("M"):
            svg_path = p
        elif p in ("npth", "solid", "cutout"):
            region_type = p
    if not svg_path:
        raise MalformedPrimitive("SOLIDREGION: missing path")
    if region_type == "cutout":
        return []

    regions = []
    for points, bulges, _closed in parse_svg_path(svg_path):
        if len(points) < 3:
            continue
        if region_type == "npth":
            # Non-plated cut-outs become board edge outlines
            regions.append(EEPolygon(points=points, layer="10", filled=False, bulges=bulges))
        else:
            regions.append(EEPolygon(points=points, layer=layer, filled=True, bulges=bulges))
    return regions


def _parse_fp_text(parts: List[str]) -> EEText:
    """Parse footprint TEXT shape string."""
    # TEXT~type~x~y~stroke_width~rotation~mirror~layer~net~font_size~text~path~display~id
    return EEText(
        text=_field(parts, 10),
        x=_float(parts, 2, "x"),
        y=_float(parts, 3, "y"),
        rotation=_opt_float(parts, 5),
        font_size=_float(parts, 9, "font size"),
        width=_opt_float(parts, 4),
        layer=_field(parts, 7),
        kind=_field(parts, 1, "L"),
        visible=_field(parts, 12) != "none",
    )


def parse_svgnode(parts: List[str]) -> Optional[EE3DModel]:
    """Parse SVGNODE shape string for 3D model info."""
    # SVGNODE~{json}
    json_str = "~".join(parts[1:])  # Rejoin in case JSON contained ~
    try:
        data = json.loads(json_str)
    except json.JSONDecodeError:
        return None

    attrs = data.get("attrs", {})
    if attrs.get("c_etype", "outline3D") != "outline3D":
        return None
    uuid = attrs.get("uuid", "")
    if not uuid:
        return None

    try:
        c_origin = attrs.get("c_origin", "0,0").split(",")
        origin_x = float(c_origin[0]) if len(c_origin) > 0 else 0.0
        origin_y = float(c_origin[1]) if len(c_origin) > 1 else 0.0
        z = float(attrs.get("z", "0") or 0)
        c_rotation = attrs.get("c_rotation", "0,0,0").split(",")
        rot = tuple(-float(a) for a in c_rotation[:3]) if len(c_rotation) >= 3 else (0.0, 0.0, 0.0)
    except ValueError:
        logger.warning("Ignoring 3D model %s with invalid placement attributes", uuid)
        return None

    return EE3DModel(
        uuid=uuid,
        title=attrs.get("title", "") or uuid,
        origin_x=origin_x,
        origin_y=origin_y,
        z=z,
        rotation=rot,
    )


def parse_footprint_shapes(shapes: List[str], policy: Optional[ShapeErrorPolicy] = None) -> EEFootprint:
    """Parse footprint shape strings into an EEFootprint."""
    policy = policy or ShapeErrorPolicy()
    fp = EEFootprint()

    for shape_str in shapes:
        parts = shape_str.split("~")
        shape_type = parts[0]
        try:
            if shape_type == "PAD":
                fp.pads.append(_parse_pad(parts))
            elif shape_type == "TRACK":
                fp.shapes.append(_parse_track(parts))
            elif shape_type == "ARC":
                fp.shapes.append(_parse_fp_arc(parts))
            elif shape_type == "CIRCLE":
                circle = _parse_circle(parts)
                if circle:
                    fp.shapes.append(circle)
            elif shape_type == "RECT":
                fp.shapes.append(_parse_fp_rect(parts))
            elif shape_type == "SOLIDREGION":
                fp.shapes.extend(_parse_solid_region(parts))
            elif shape_type == "TEXT":
                fp.shapes.append(_parse_fp_text(parts))
            elif shape_type == "HOLE":
                fp.holes.append(_parse_hole(parts))
            elif shape_type == "VIA":
                fp.vias.append(_parse_via(parts))
            elif shape_type == "SVGNODE":
                model = parse_svgnode(parts)
                if model:
                    fp.model = model
            else:
                logger.debug("Ignoring footprint shape type %r", shape_type)
        except MalformedPrimitive as e:
            policy.handle(e, shape_str)

    return fp
