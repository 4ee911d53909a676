"""Generate KiCad symbol library content.

:func:`write_symbol` emits a ``(symbol ...)`` block for ``.kicad_sym`` files
(KiCad 8 and 9); :func:`write_legacy_symbol` emits a ``DEF ... ENDDEF``
entry for KiCad 5 ``EESchema-LIBRARY`` files.
"""

from typing import List

from ._format import escape_legacy
from ._format import escape_sexpr as _escape
from ._format import fmt_float as _fmt
from ._format import fmt_mil as _mil
from .geometry import arc_center, arc_midpoint
from .primitives import Arc, Circle, Line, Pin, PinStyle, PinType, Polygon, Rectangle, SymbolDefinition, Text
from .version import DEFAULT_KICAD_VERSION, has_generator_version, symbol_format_version

_FONT = "(font (size 1.27 1.27))"

LEGACY_HEADER = "EESchema-LIBRARY Version 2.4\n#encoding utf-8\n"
LEGACY_FOOTER = "#\n#End Library\n"

_LEGACY_PIN_TYPES = {
    PinType.INPUT: "I",
    PinType.OUTPUT: "O",
    PinType.BIDIRECTIONAL: "B",
    PinType.TRI_STATE: "T",
    PinType.PASSIVE: "P",
    PinType.UNSPECIFIED: "U",
    PinType.POWER_IN: "W",
    PinType.POWER_OUT: "w",
    PinType.OPEN_COLLECTOR: "C",
    PinType.NO_CONNECT: "N",
}

_LEGACY_PIN_STYLES = {
    PinStyle.LINE: "",
    PinStyle.INVERTED: " I",
    PinStyle.CLOCK: " C",
    PinStyle.INVERTED_CLOCK: " CI",
}

# Pin orientation in degrees -> legacy direction letter
_LEGACY_ORIENTATION = {0: "R", 90: "U", 180: "L", 270: "D"}

_LEGACY_JUSTIFY = {"left": "L", "center": "C", "right": "R"}


def _property(lines: List[str], key: str, value: str, x: float, y: float, hidden: bool) -> None:
    lines.append(f'    (property "{key}" "{_escape(value)}" (at {_fmt(x)} {_fmt(y)} 0)')
    lines.append(f"      (effects {_FONT}{' hide' if hidden else ''})")
    lines.append("    )")


def _symbol_ys(symbol: SymbolDefinition) -> List[float]:
    ys = []
    for unit in symbol.units:
        for g in unit.graphics:
            if isinstance(g, Rectangle):
                ys.extend([g.start[1], g.end[1]])
            elif isinstance(g, (Line, Polygon)):
                ys.extend(p[1] for p in g.points)
            elif isinstance(g, Circle):
                ys.extend([g.center[1] - g.radius, g.center[1] + g.radius])
        ys.extend(pin.position[1] for pin in unit.pins)
    return ys


def _estimate_top(symbol: SymbolDefinition) -> float:
    """Estimate the top Y coordinate of the symbol."""
    ys = _symbol_ys(symbol)
    return max(ys) if ys else 5.0


def _estimate_bottom(symbol: SymbolDefinition) -> float:
    """Estimate the bottom Y coordinate of the symbol."""
    ys = _symbol_ys(symbol)
    return min(ys) if ys else -5.0


def _stroke(width: float) -> str:
    return f"(stroke (width {_fmt(width)}) (type default))"


def _graphic_sexpr(g) -> List[str]:
    if isinstance(g, Line):
        pts_str = " ".join(f"(xy {_fmt(x)} {_fmt(y)})" for x, y in g.points)
        return [
            "      (polyline",
            f"        (pts {pts_str})",
            f"        {_stroke(g.width)}",
            "        (fill (type none))",
            "      )",
        ]
    if isinstance(g, Polygon):
        points = list(g.points) + [g.points[0]]
        pts_str = " ".join(f"(xy {_fmt(x)} {_fmt(y)})" for x, y in points)
        fill_type = "outline" if g.filled else "none"
        return [
            "      (polyline",
            f"        (pts {pts_str})",
            f"        {_stroke(g.width)}",
            f"        (fill (type {fill_type}))",
            "      )",
        ]
    if isinstance(g, Arc):
        mid = arc_midpoint(g.start, g.end, g.bulge)
        return [
            f"      (arc (start {_fmt(g.start[0])} {_fmt(g.start[1])})"
            f" (mid {_fmt(mid[0])} {_fmt(mid[1])})"
            f" (end {_fmt(g.end[0])} {_fmt(g.end[1])})",
            f"        {_stroke(g.width)}",
            "        (fill (type none))",
            "      )",
        ]
    if isinstance(g, Circle):
        # "outline" gives a solid dot, "none" a hollow circle
        fill_type = "outline" if g.filled else "none"
        return [
            f"      (circle (center {_fmt(g.center[0])} {_fmt(g.center[1])}) (radius {_fmt(g.radius)})",
            f"        {_stroke(g.width)}",
            f"        (fill (type {fill_type}))",
            "      )",
        ]
    if isinstance(g, Rectangle):
        fill_type = "background" if g.filled else "none"
        return [
            f"      (rectangle (start {_fmt(g.start[0])} {_fmt(g.start[1])}) (end {_fmt(g.end[0])} {_fmt(g.end[1])})",
            f"        {_stroke(g.width)}",
            f"        (fill (type {fill_type}))",
            "      )",
        ]
    if isinstance(g, Text):
        justify = f" (justify {g.justify})" if g.justify != "center" else ""
        # Symbol text angles are stored in tenths of a degree
        return [
            f'      (text "{_escape(g.text)}" (at {_fmt(g.position[0])} {_fmt(g.position[1])} {_fmt(g.rotation * 10)})',
            f"        (effects (font (size {_fmt(g.size)} {_fmt(g.size)})){justify})",
            "      )",
        ]
    raise TypeError(f"Unsupported symbol graphic: {type(g).__name__}")


def _pin_sexpr(pin: Pin) -> List[str]:
    lines = [
        f"      (pin {pin.electrical_type.value} {pin.style.value}"
        f" (at {_fmt(pin.position[0])} {_fmt(pin.position[1])} {_fmt(pin.orientation)})"
        f" (length {_fmt(pin.length)})"
    ]
    name_effects = f"(effects {_FONT}{'' if pin.name_visible else ' hide'})"
    lines.append(f'        (name "{_escape(pin.name)}" {name_effects})')
    num_effects = f"(effects {_FONT}{'' if pin.number_visible else ' hide'})"
    lines.append(f'        (number "{_escape(pin.number)}" {num_effects})')
    lines.append("      )")
    return lines


def write_symbol(symbol: SymbolDefinition) -> str:
    """Generate a complete (symbol ...) block, all units included."""
    name = _escape(symbol.name)
    lines = [
        f'  (symbol "{name}"',
        "    (pin_names (offset 1.016))",
        "    (exclude_from_sim no)",
        "    (in_bom yes)",
        "    (on_board yes)",
    ]

    _property(lines, "Reference", symbol.reference, 0, _estimate_top(symbol) + 2.54, False)
    _property(lines, "Value", symbol.value or symbol.name, 0, _estimate_bottom(symbol) - 2.54, False)
    _property(lines, "Footprint", symbol.footprint, 0, 0, True)
    _property(lines, "Datasheet", symbol.datasheet, 0, 0, True)
    if symbol.description:
        _property(lines, "Description", symbol.description, 0, 0, True)
    if symbol.lcsc_id:
        _property(lines, "LCSC", symbol.lcsc_id, 0, 0, True)
    if symbol.manufacturer:
        _property(lines, "Manufacturer", symbol.manufacturer, 0, 0, True)
    if symbol.manufacturer_part:
        _property(lines, "Manufacturer Part", symbol.manufacturer_part, 0, 0, True)

    multi_unit = len(symbol.units) > 1
    for index, unit in enumerate(symbol.units, start=1):
        unit_num = index if multi_unit else 0
        lines.append(f'    (symbol "{name}_{unit_num}_1"')
        for g in unit.graphics:
            lines.extend(_graphic_sexpr(g))
        for pin in unit.pins:
            lines.extend(_pin_sexpr(pin))
        lines.append("    )")

    lines.append("  )")
    return "\n".join(lines) + "\n"


def write_symbol_library(
    symbols_content: List[str],
    kicad_version: int = DEFAULT_KICAD_VERSION,
) -> str:
    """Wrap symbol blocks in a complete library file."""
    lines = [
        "(kicad_symbol_lib",
        f"  (version {symbol_format_version(kicad_version)})",
        '  (generator "nlbn")',
    ]
    if has_generator_version(kicad_version):
        lines.append('  (generator_version "1.0")')
    for sym in symbols_content:
        lines.append(sym.rstrip("\n"))
    lines.append(")")
    return "\n".join(lines) + "\n"


# --- KiCad 5 legacy format ---


def _legacy_fill(filled: bool) -> str:
    return "F" if filled else "N"


def _legacy_angle(degrees: float) -> int:
    """Tenths of a degree in (-1800, 1800]."""
    tenths = int(round(degrees * 10)) % 3600
    return tenths - 3600 if tenths > 1800 else tenths


def _legacy_graphic(g, unit: int) -> str:
    if isinstance(g, Line):
        pts = " ".join(f"{_mil(x)} {_mil(y)}" for x, y in g.points)
        return f"P {len(g.points)} {unit} 1 {_mil(g.width)} {pts} N"
    if isinstance(g, Polygon):
        points = list(g.points) + [g.points[0]]
        pts = " ".join(f"{_mil(x)} {_mil(y)}" for x, y in points)
        return f"P {len(points)} {unit} 1 {_mil(g.width)} {pts} {_legacy_fill(g.filled)}"
    if isinstance(g, Arc):
        start, end = g.start, g.end
        bulge = g.bulge
        # Legacy arcs run counter-clockwise from the first to the second angle
        if bulge < 0:
            start, end, bulge = end, start, -bulge
        arc = arc_center(start, end, bulge)
        cx, cy = arc.center
        return (
            f"A {_mil(cx)} {_mil(cy)} {_mil(arc.radius)}"
            f" {_legacy_angle(arc.start_angle)} {_legacy_angle(arc.end_angle)}"
            f" {unit} 1 {_mil(g.width)} N"
            f" {_mil(start[0])} {_mil(start[1])} {_mil(end[0])} {_mil(end[1])}"
        )
    if isinstance(g, Circle):
        return (
            f"C {_mil(g.center[0])} {_mil(g.center[1])} {_mil(g.radius)}"
            f" {unit} 1 {_mil(g.width)} {_legacy_fill(g.filled)}"
        )
    if isinstance(g, Rectangle):
        return (
            f"S {_mil(g.start[0])} {_mil(g.start[1])} {_mil(g.end[0])} {_mil(g.end[1])}"
            f" {unit} 1 {_mil(g.width)} {'f' if g.filled else 'N'}"
        )
    if isinstance(g, Text):
        text = g.text.replace('"', "'")
        return (
            f'T {_legacy_angle(g.rotation)} {_mil(g.position[0])} {_mil(g.position[1])} {_mil(g.size)}'
            f' 0 {unit} 1 "{text}" Normal 0 {_LEGACY_JUSTIFY.get(g.justify, "C")} C'
        )
    raise TypeError(f"Unsupported symbol graphic: {type(g).__name__}")


def _legacy_pin(pin: Pin, unit: int) -> str:
    orientation = _LEGACY_ORIENTATION.get(int(round(pin.orientation)) % 360, "R")
    return (
        f"X {escape_legacy(pin.name)} {escape_legacy(pin.number)}"
        f" {_mil(pin.position[0])} {_mil(pin.position[1])} {_mil(pin.length)} {orientation}"
        f" 50 50 {unit} 1 {_LEGACY_PIN_TYPES[pin.electrical_type]}{_LEGACY_PIN_STYLES[pin.style]}"
    )


def _legacy_field(index: int, value: str, x: float, y: float, visible: bool, name: str = "") -> str:
    value = value.replace('"', "'")
    line = f'F{index} "{value}" {_mil(x)} {_mil(y)} 50 H {"V" if visible else "I"} C CNN'
    if name:
        line += f' "{name}"'
    return line


def write_legacy_symbol(symbol: SymbolDefinition) -> str:
    """Generate a DEF ... ENDDEF entry for a KiCad 5 symbol library.

    Coordinates are expected in mils. The legacy format can only hide pin
    names and numbers for the whole symbol, so they are hidden only when
    every pin hides them.
    """
    name = escape_legacy(symbol.name)
    pins = symbol.pins
    show_numbers = "N" if pins and not any(p.number_visible for p in pins) else "Y"
    show_names = "N" if pins and not any(p.name_visible for p in pins) else "Y"
    unit_count = max(len(symbol.units), 1)
    locked = "L" if unit_count > 1 else "F"

    lines = [
        "#",
        f"# {name}",
        "#",
        f"DEF {name} {escape_legacy(symbol.reference)} 0 40 {show_numbers} {show_names} {unit_count} {locked} N",
        _legacy_field(0, symbol.reference, 0, _estimate_top(symbol) + 100, True),
        _legacy_field(1, symbol.value or symbol.name, 0, _estimate_bottom(symbol) - 100, True),
        _legacy_field(2, symbol.footprint, 0, 0, False),
        _legacy_field(3, symbol.datasheet, 0, 0, False),
    ]
    extra = [
        ("LCSC", symbol.lcsc_id),
        ("Manufacturer", symbol.manufacturer),
        ("Manufacturer Part", symbol.manufacturer_part),
    ]
    index = 4
    for field_name, value in extra:
        if value:
            lines.append(_legacy_field(index, value, 0, 0, False, field_name))
            index += 1

    lines.append("DRAW")
    for unit_index, unit in enumerate(symbol.units, start=1):
        for g in unit.graphics:
            lines.append(_legacy_graphic(g, unit_index))
        for pin in unit.pins:
            lines.append(_legacy_pin(pin, unit_index))
    lines.append("ENDDRAW")
    lines.append("ENDDEF")
    return "\n".join(lines) + "\n"


def write_legacy_library(entries: List[str]) -> str:
    """Wrap DEF entries in a complete KiCad 5 symbol library."""
    return LEGACY_HEADER + "".join(entries) + LEGACY_FOOTER
