"""EasyEDA to KiCad unit and coordinate conversion.

EasyEDA stores geometry in canvas units of 10 mil (0.254 mm) with the Y axis
pointing down and the origin somewhere on the canvas (the ``head`` x/y of the
document). KiCad footprints are in millimetres with Y down, KiCad symbols in
millimetres with Y up, and legacy KiCad 5 symbols in mils with Y up.
"""

import math
from dataclasses import dataclass
from typing import Tuple

from ..errors import InvalidGeometry

# 1 EasyEDA unit = 10 mil = 0.254 mm (exact)
EE_UNIT_MM = 0.254
EE_UNIT_MIL = 10.0


def ee_to_mm(value: float) -> float:
    """Convert an EasyEDA length to millimetres."""
    return value * EE_UNIT_MM


def _check_finite(*values: float) -> None:
    for v in values:
        if not isinstance(v, (int, float)) or not math.isfinite(v):
            raise InvalidGeometry(f"non-finite coordinate: {v!r}")


@dataclass(frozen=True)
class CoordinateTransform:
    """Maps points from one component's EasyEDA canvas into a KiCad space.

    The same instance is applied to every primitive of a component so that
    relative geometry is preserved exactly.
    """

    origin_x: float = 0.0
    origin_y: float = 0.0
    scale: float = EE_UNIT_MM
    flip_y: bool = False

    def point(self, x: float, y: float) -> Tuple[float, float]:
        _check_finite(x, y)
        kx = (x - self.origin_x) * self.scale
        ky = (y - self.origin_y) * self.scale
        return (kx, -ky if self.flip_y else ky)

    def inverse(self, x: float, y: float) -> Tuple[float, float]:
        """Map a target-space point back to EasyEDA canvas coordinates."""
        _check_finite(x, y)
        if self.flip_y:
            y = -y
        return (x / self.scale + self.origin_x, y / self.scale + self.origin_y)

    def length(self, value: float) -> float:
        _check_finite(value)
        return value * self.scale

    def angle(self, degrees: float) -> float:
        """Convert a rotation angle, mirroring it when the Y axis flips."""
        _check_finite(degrees)
        if self.flip_y:
            degrees = -degrees
        return degrees % 360


def footprint_transform(origin_x: float, origin_y: float) -> CoordinateTransform:
    """Footprint space: millimetres, Y down (same orientation as EasyEDA)."""
    return CoordinateTransform(origin_x, origin_y, EE_UNIT_MM, flip_y=False)


def symbol_transform(origin_x: float, origin_y: float, legacy: bool = False) -> CoordinateTransform:
    """Symbol space: millimetres (mils for KiCad 5), Y up."""
    scale = EE_UNIT_MIL if legacy else EE_UNIT_MM
    return CoordinateTransform(origin_x, origin_y, scale, flip_y=True)
