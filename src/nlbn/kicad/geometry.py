"""Arc and polygon math shared by the primitive mapper and the writers.

Arcs are carried between stages in bulge form: start point, end point and
``bulge = tan(sweep / 4)``, where ``sweep`` is the signed angle travelled from
start to end around the centre (positive in the direction of increasing
``atan2`` in the frame the points live in). A bulge of 0 is a straight
segment. Mirroring the frame negates the bulge; scaling leaves it unchanged.
"""

import math
from dataclasses import dataclass
from typing import List, Tuple

Point = Tuple[float, float]

_EPS = 1e-9


@dataclass(frozen=True)
class ArcGeometry:
    center: Point
    radius: float
    start_angle: float  # degrees
    sweep: float  # degrees, signed

    @property
    def end_angle(self) -> float:
        return self.start_angle + self.sweep


def svg_arc_bulge(start: Point, end: Point, rx: float, ry: float, large_arc: int, sweep: int) -> float:
    """Convert SVG endpoint arc parameters to a bulge.

    Elliptical radii are averaged (KiCad has no elliptical arcs). A zero
    radius or coincident endpoints describe a straight segment and yield 0,
    matching the SVG rule for degenerate arcs. A radius too small to span
    the chord is scaled up, which makes the arc a half circle.
    """
    chord = math.hypot(end[0] - start[0], end[1] - start[1])
    radius = (abs(rx) + abs(ry)) / 2
    if chord < _EPS or radius < _EPS:
        return 0.0

    half = min(1.0, chord / (2 * radius))
    theta = 2 * math.asin(half)
    if large_arc:
        theta = 2 * math.pi - theta
    if not sweep:
        theta = -theta
    return math.tan(theta / 4)


def arc_center(start: Point, end: Point, bulge: float) -> ArcGeometry:
    """Reconstruct centre, radius and angles of a bulge-encoded arc."""
    if abs(bulge) < _EPS:
        raise ValueError("zero bulge describes a straight segment, not an arc")
    sx, sy = start
    ex, ey = end
    dx = ex - sx
    dy = ey - sy
    chord = math.hypot(dx, dy)
    if chord < _EPS:
        raise ValueError("arc endpoints coincide")

    theta = 4 * math.atan(bulge)
    # Left-hand normal of the chord direction
    nx = -dy / chord
    ny = dx / chord
    h = (chord / 2) / math.tan(theta / 2)
    cx = (sx + ex) / 2 + h * nx
    cy = (sy + ey) / 2 + h * ny
    radius = (chord / 2) / abs(math.sin(theta / 2))
    start_angle = math.degrees(math.atan2(sy - cy, sx - cx))
    return ArcGeometry(center=(cx, cy), radius=radius, start_angle=start_angle, sweep=math.degrees(theta))


def arc_midpoint(start: Point, end: Point, bulge: float) -> Point:
    """Return the point halfway along a bulge-encoded arc."""
    sx, sy = start
    ex, ey = end
    dx = ex - sx
    dy = ey - sy
    chord = math.hypot(dx, dy)
    if chord < _EPS:
        return (sx, sy)
    nx = -dy / chord
    ny = dx / chord
    sagitta = bulge * chord / 2
    return ((sx + ex) / 2 - sagitta * nx, (sy + ey) / 2 - sagitta * ny)


def arc_polyline(start: Point, end: Point, bulge: float, segments: int = 8) -> List[Point]:
    """Approximate an arc by ``segments`` chords, endpoints included."""
    if abs(bulge) < _EPS:
        return [start, end]
    arc = arc_center(start, end, bulge)
    cx, cy = arc.center
    points = []
    for i in range(segments + 1):
        a = math.radians(arc.start_angle + arc.sweep * i / segments)
        points.append((cx + arc.radius * math.cos(a), cy + arc.radius * math.sin(a)))
    points[0] = start
    points[-1] = end
    return points


def ellipse_polygon(cx: float, cy: float, rx: float, ry: float, segments: int = 36) -> List[Point]:
    """Closed polygon approximating an axis-aligned ellipse."""
    points = []
    for i in range(segments):
        a = 2 * math.pi * i / segments
        points.append((cx + rx * math.cos(a), cy + ry * math.sin(a)))
    points.append(points[0])
    return points


def rotate_point(x: float, y: float, degrees: float) -> Point:
    """Rotate around the origin, counter-clockwise as displayed with Y down."""
    a = math.radians(degrees)
    c = math.cos(a)
    s = math.sin(a)
    return (x * c + y * s, -x * s + y * c)


def rect_outline(width: float, height: float) -> List[Point]:
    """Corners of a rectangle centred on the origin."""
    hw = width / 2
    hh = height / 2
    return [(-hw, -hh), (hw, -hh), (hw, hh), (-hw, hh)]


def stadium_outline(width: float, height: float, segments: int = 8) -> List[Point]:
    """Outline of an oval (obround) pad centred on the origin."""
    if abs(width - height) < _EPS:
        return ellipse_polygon(0.0, 0.0, width / 2, height / 2, segments * 2)[:-1]
    points = []
    if width > height:
        r = height / 2
        offset = width / 2 - r
        # Right cap from -90 to 90 degrees, then left cap from 90 to 270
        for i in range(segments + 1):
            a = math.radians(-90 + 180 * i / segments)
            points.append((offset + r * math.cos(a), r * math.sin(a)))
        for i in range(segments + 1):
            a = math.radians(90 + 180 * i / segments)
            points.append((-offset + r * math.cos(a), r * math.sin(a)))
    else:
        r = width / 2
        offset = height / 2 - r
        # Bottom cap from 0 to 180 degrees, then top cap from 180 to 360
        for i in range(segments + 1):
            a = math.radians(180 * i / segments)
            points.append((r * math.cos(a), offset + r * math.sin(a)))
        for i in range(segments + 1):
            a = math.radians(180 + 180 * i / segments)
            points.append((r * math.cos(a), -offset + r * math.sin(a)))
    return points


def normalize_rotation(degrees: float) -> float:
    """Wrap an angle into (-180, 180] as KiCad writes pad orientations."""
    degrees = degrees % 360
    if degrees > 180:
        degrees -= 360
    return degrees
