"""Generate KiCad footprint files.

:func:`write_footprint` targets the ``(footprint ...)`` format of KiCad 8 and
9; :func:`write_legacy_footprint` targets the KiCad 5 ``(module ...)`` format.
"""

from typing import List, Tuple

from ._format import escape_sexpr as _escape
from ._format import fmt_float as _fmt
from ._format import gen_uuid as _uuid
from .geometry import arc_center, arc_midpoint
from .primitives import (
    GRAPHIC_KINDS,
    Arc,
    Circle,
    Drill,
    FootprintDefinition,
    Line,
    ModelLink,
    Pad,
    Polygon,
    Rectangle,
    Text,
)
from .version import DEFAULT_KICAD_VERSION, footprint_format_version, has_embedded_fonts, has_generator_version

_PROPERTY_EFFECTS = "(effects (font (size 1 1) (thickness 0.15)))"


def _y_extent(footprint: FootprintDefinition) -> Tuple[float, float]:
    """Bounding Y range of pads and graphics, for reference/value placement."""
    all_y = []
    for pad in footprint.pads:
        all_y.extend([pad.position[1] - pad.size[1] / 2, pad.position[1] + pad.size[1] / 2])
        all_y.extend(pad.position[1] + y for _x, y in pad.polygon)
    for g in footprint.graphics:
        if isinstance(g, (Line, Polygon)):
            all_y.extend(p[1] for p in g.points)
        elif isinstance(g, Rectangle):
            all_y.extend([g.start[1], g.end[1]])
        elif isinstance(g, Circle):
            all_y.extend([g.center[1] - g.radius, g.center[1] + g.radius])
    min_y = min(all_y) if all_y else -2
    max_y = max(all_y) if all_y else 2
    return min_y, max_y


def _drill_str(drill: Drill) -> str:
    """Return the KiCad drill specification string for a pad.

    Slots are written as ``(drill oval W H)``, round holes as ``(drill D)``.
    """
    if drill.is_slot:
        return f"(drill oval {_fmt(drill.width)} {_fmt(drill.height)})"
    return f"(drill {_fmt(drill.width)})"


def _model_lines(model: ModelLink, indent: str = "  ") -> List[str]:
    ox, oy, oz = model.offset
    sx, sy, sz = model.scale
    rx, ry, rz = model.rotation
    return [
        f'{indent}(model "{_escape(model.path)}"',
        f"{indent}  (offset (xyz {_fmt(ox)} {_fmt(oy)} {_fmt(oz)}))",
        f"{indent}  (scale (xyz {_fmt(sx)} {_fmt(sy)} {_fmt(sz)}))",
        f"{indent}  (rotate (xyz {_fmt(rx)} {_fmt(ry)} {_fmt(rz)}))",
        f"{indent})",
    ]


def _graphic_sexpr(g) -> List[str]:
    if not isinstance(g, GRAPHIC_KINDS):
        raise TypeError(f"Unsupported footprint graphic: {type(g).__name__}")
    stroke = f"(stroke (width {_fmt(getattr(g, 'width', 0))}) (type solid))"
    tail = f'(layer "{g.layer}") (uuid "{_uuid()}"))'
    if isinstance(g, Line):
        out = []
        for (x1, y1), (x2, y2) in zip(g.points, g.points[1:]):
            out.append(f"  (fp_line (start {_fmt(x1)} {_fmt(y1)}) (end {_fmt(x2)} {_fmt(y2)}) {stroke} {tail}")
        return out
    if isinstance(g, Arc):
        mid = arc_midpoint(g.start, g.end, g.bulge)
        return [
            f"  (fp_arc (start {_fmt(g.start[0])} {_fmt(g.start[1])})"
            f" (mid {_fmt(mid[0])} {_fmt(mid[1])})"
            f" (end {_fmt(g.end[0])} {_fmt(g.end[1])}) {stroke} {tail}"
        ]
    if isinstance(g, Circle):
        fill = "solid" if g.filled else "none"
        return [
            f"  (fp_circle (center {_fmt(g.center[0])} {_fmt(g.center[1])})"
            f" (end {_fmt(g.center[0] + g.radius)} {_fmt(g.center[1])}) {stroke} (fill {fill}) {tail}"
        ]
    if isinstance(g, Rectangle):
        fill = "solid" if g.filled else "none"
        return [
            f"  (fp_rect (start {_fmt(g.start[0])} {_fmt(g.start[1])})"
            f" (end {_fmt(g.end[0])} {_fmt(g.end[1])}) {stroke} (fill {fill}) {tail}"
        ]
    if isinstance(g, Polygon):
        pts_str = " ".join(f"(xy {_fmt(x)} {_fmt(y)})" for x, y in g.points)
        fill = "solid" if g.filled else "none"
        return [f"  (fp_poly (pts {pts_str}) {stroke} (fill {fill}) {tail}"]
    if isinstance(g, Text):
        justify = f" (justify {g.justify})" if g.justify != "center" else ""
        return [
            f'  (fp_text user "{_escape(g.text)}" (at {_fmt(g.position[0])} {_fmt(g.position[1])} {_fmt(g.rotation)})'
            f' (layer "{g.layer}") (uuid "{_uuid()}")',
            f"    (effects (font (size {_fmt(g.size)} {_fmt(g.size)}) (thickness {_fmt(g.thickness)})){justify})",
            "  )",
        ]
    raise TypeError(f"Unsupported footprint graphic: {type(g).__name__}")


def _pad_sexpr(pad: Pad) -> List[str]:
    layers_str = " ".join(f'"{layer}"' for layer in pad.layers)
    number = _escape(pad.number)
    x, y = pad.position
    if pad.shape == "custom":
        # The polygon defines the final shape, so the pad is not rotated and
        # uses a minimal anchor that does not fill in notches of the outline.
        pts_str = " ".join(f"(xy {_fmt(px)} {_fmt(py)})" for px, py in pad.polygon)
        lines = [
            f'  (pad "{number}" {pad.kind.value} custom (at {_fmt(x)} {_fmt(y)})'
            f" (size {_fmt(pad.size[0])} {_fmt(pad.size[1])})"
        ]
        if pad.drill is not None:
            lines.append(f"    {_drill_str(pad.drill)}")
        lines.append(f"    (layers {layers_str})")
        lines.append("    (options (clearance outline) (anchor rect))")
        lines.append("    (primitives")
        lines.append(f"      (gr_poly (pts {pts_str}) (width 0) (fill yes))")
        lines.append(f'    ) (uuid "{_uuid()}"))')
        return lines

    at_str = f"(at {_fmt(x)} {_fmt(y)}"
    if pad.rotation != 0:
        at_str += f" {_fmt(pad.rotation)}"
    at_str += ")"
    pad_line = f'  (pad "{number}" {pad.kind.value} {pad.shape} {at_str} (size {_fmt(pad.size[0])} {_fmt(pad.size[1])})'
    if pad.drill is not None:
        pad_line += f" {_drill_str(pad.drill)}"
    pad_line += f' (layers {layers_str}) (uuid "{_uuid()}"))'
    return [pad_line]


def write_footprint(footprint: FootprintDefinition, kicad_version: int = DEFAULT_KICAD_VERSION) -> str:
    """Generate complete .kicad_mod content for a footprint."""
    lines = []
    min_y, max_y = _y_extent(footprint)
    ref_y = min_y - 1.0
    val_y = max_y + 1.0

    lines.append(f'(footprint "{_escape(footprint.name)}"')
    lines.append(f"  (version {footprint_format_version(kicad_version)})")
    lines.append('  (generator "nlbn")')
    if has_generator_version(kicad_version):
        lines.append('  (generator_version "1.0")')
    lines.append('  (layer "F.Cu")')
    if footprint.description:
        lines.append(f'  (descr "{_escape(footprint.description)}")')
    if footprint.lcsc_id:
        lines.append(f'  (tags "{_escape(footprint.lcsc_id)}")')

    # Properties
    lines.append(f'  (property "Reference" "REF**" (at 0 {_fmt(ref_y)} 0) (layer "F.SilkS") (uuid "{_uuid()}")')
    lines.append(f"    {_PROPERTY_EFFECTS}")
    lines.append("  )")
    lines.append(
        f'  (property "Value" "{_escape(footprint.name)}" (at 0 {_fmt(val_y)} 0) (layer "F.Fab") (uuid "{_uuid()}")'
    )
    lines.append(f"    {_PROPERTY_EFFECTS}")
    lines.append("  )")
    hidden = [
        ("Datasheet", footprint.datasheet),
        ("Description", footprint.description),
        ("LCSC", footprint.lcsc_id),
    ]
    for key, value in hidden:
        if value:
            lines.append(
                f'  (property "{key}" "{_escape(value)}" (at 0 0 0) (layer "F.Fab") (hide yes) (uuid "{_uuid()}")'
            )
            lines.append(f"    {_PROPERTY_EFFECTS}")
            lines.append("  )")

    lines.append(f"  (attr {footprint.attribute})")

    for g in footprint.graphics:
        lines.extend(_graphic_sexpr(g))
    for pad in footprint.pads:
        lines.extend(_pad_sexpr(pad))

    if footprint.model is not None:
        lines.extend(_model_lines(footprint.model))

    if has_embedded_fonts(kicad_version):
        lines.append("  (embedded_fonts no)")
    lines.append(")")

    return "\n".join(lines) + "\n"


# --- KiCad 5 legacy format ---


def _token(s: str) -> str:
    """Quote a legacy S-expression atom only when it needs it."""
    if not s or any(c in s for c in ' ()"\\\t'):
        return f'"{_escape(s)}"'
    return s


def _legacy_graphic(g) -> List[str]:
    if not isinstance(g, GRAPHIC_KINDS):
        raise TypeError(f"Unsupported legacy footprint graphic: {type(g).__name__}")
    width = f"(width {_fmt(getattr(g, 'width', 0))})"
    layer = f"(layer {g.layer})"
    if isinstance(g, Line):
        return [
            f"  (fp_line (start {_fmt(x1)} {_fmt(y1)}) (end {_fmt(x2)} {_fmt(y2)}) {layer} {width})"
            for (x1, y1), (x2, y2) in zip(g.points, g.points[1:])
        ]
    if isinstance(g, Arc):
        arc = arc_center(g.start, g.end, g.bulge)
        cx, cy = arc.center
        return [
            f"  (fp_arc (start {_fmt(cx)} {_fmt(cy)}) (end {_fmt(g.start[0])} {_fmt(g.start[1])})"
            f" (angle {_fmt(round(arc.sweep, 4))}) {layer} {width})"
        ]
    if isinstance(g, Circle):
        cx, cy = g.center
        if g.filled:
            # No filled circles in this format: a ring as wide as the radius covers the disc
            r = g.radius / 2
            return [
                f"  (fp_circle (center {_fmt(cx)} {_fmt(cy)}) (end {_fmt(cx + r)} {_fmt(cy)}) {layer}"
                f" (width {_fmt(g.radius + g.width)}))"
            ]
        return [f"  (fp_circle (center {_fmt(cx)} {_fmt(cy)}) (end {_fmt(cx + g.radius)} {_fmt(cy)}) {layer} {width})"]
    if isinstance(g, Polygon):
        if g.filled:
            pts_str = " ".join(f"(xy {_fmt(x)} {_fmt(y)})" for x, y in g.points)
            return [f"  (fp_poly (pts {pts_str}) {layer} {width})"]
        # Polygons are always filled in this format, so outlines become segments
        closed = list(g.points) + [g.points[0]]
        return _legacy_graphic(Line(points=closed, width=g.width, layer=g.layer))
    if isinstance(g, Text):
        justify = f" (justify {g.justify})" if g.justify != "center" else ""
        return [
            f"  (fp_text user {_token(g.text)} (at {_fmt(g.position[0])} {_fmt(g.position[1])} {_fmt(g.rotation)}) {layer}",
            f"    (effects (font (size {_fmt(g.size)} {_fmt(g.size)}) (thickness {_fmt(g.thickness)})){justify})",
            "  )",
        ]
    raise TypeError(f"Unsupported legacy footprint graphic: {type(g).__name__}")


def _legacy_pad(pad: Pad) -> List[str]:
    x, y = pad.position
    layers_str = " ".join(pad.layers)
    at_str = f"(at {_fmt(x)} {_fmt(y)}" + (f" {_fmt(pad.rotation)})" if pad.rotation != 0 else ")")
    head = (
        f"  (pad {_token(pad.number)} {pad.kind.value} {pad.shape} {at_str}"
        f" (size {_fmt(pad.size[0])} {_fmt(pad.size[1])})"
    )
    if pad.drill is not None:
        head += f" {_drill_str(pad.drill)}"
    head += f" (layers {layers_str})"
    if pad.shape != "custom":
        return [head + ")"]
    pts_str = " ".join(f"(xy {_fmt(px)} {_fmt(py)})" for px, py in pad.polygon)
    return [
        head,
        "    (zone_connect 0)",
        "    (options (clearance outline) (anchor circle))",
        "    (primitives",
        f"      (gr_poly (pts {pts_str}) (width 0))",
        "    ))",
    ]


def write_legacy_footprint(footprint: FootprintDefinition) -> str:
    """Generate KiCad 5 ``(module ...)`` content for a footprint."""
    min_y, max_y = _y_extent(footprint)
    lines = [f"(module {_token(footprint.name)} (layer F.Cu) (tedit 0)"]
    if footprint.description:
        lines.append(f"  (descr {_token(footprint.description)})")
    if footprint.lcsc_id:
        lines.append(f"  (tags {_token(footprint.lcsc_id)})")
    if footprint.attribute == "smd":
        lines.append("  (attr smd)")
    lines.append(f"  (fp_text reference REF** (at 0 {_fmt(min_y - 1.0)}) (layer F.SilkS)")
    lines.append(f"    {_PROPERTY_EFFECTS}")
    lines.append("  )")
    lines.append(f"  (fp_text value {_token(footprint.name)} (at 0 {_fmt(max_y + 1.0)}) (layer F.Fab)")
    lines.append(f"    {_PROPERTY_EFFECTS}")
    lines.append("  )")

    for g in footprint.graphics:
        lines.extend(_legacy_graphic(g))
    for pad in footprint.pads:
        lines.extend(_legacy_pad(pad))

    if footprint.model is not None:
        lines.extend(_model_lines(footprint.model))

    lines.append(")")
    return "\n".join(lines) + "\n"
