"""Build a KiCad footprint definition from a fetched EasyEDA footprint document."""
import logging
from collections import Counter
from typing import List, Optional

from ..easyeda.ee_types import ComponentSource, EEHole, EEPad, EEVia
from ..easyeda.parser import parse_footprint_shapes
from ..errors import DuplicatePad, InvalidGeometry, ShapeErrorPolicy
from .geometry import normalize_rotation, rect_outline, rotate_point, stadium_outline
from .mapper import footprint_target, map_shapes
from .primitives import Drill, FootprintDefinition, ModelLink, Pad, PadKind
from .transform import CoordinateTransform, footprint_transform

logger = logging.getLogger(__name__)

_SHAPE_MAP = {
    "RECT": "rect",
    "OVAL": "oval",
    "ELLIPSE": "circle",
    "POLYGON": "custom",
}

THT_LAYERS = ("*.Cu", "*.Mask")
SMD_FRONT_LAYERS = ("F.Cu", "F.Paste", "F.Mask")
SMD_BACK_LAYERS = ("B.Cu", "B.Paste", "B.Mask")

# Anchor of custom pads whose outline is given entirely by the polygon
_CUSTOM_ANCHOR = 0.1


def check_unique_pads(pads: List[EEPad]) -> None:
    """Raise DuplicatePad if two numbered pads share a number."""
    counts = Counter(pad.number for pad in pads if pad.number)
    duplicates = sorted(number for number, count in counts.items() if count > 1)
    if duplicates:
        raise DuplicatePad(f"duplicate pad number(s): {', '.join(duplicates)}")


def _drill(pad: EEPad, transform: CoordinateTransform, width: float, height: float) -> Optional[Drill]:
    """Round drill, or an oval slot oriented along the long pad axis."""
    if pad.hole_radius <= 0:
        return None
    diameter = transform.length(pad.hole_radius * 2)
    slot = transform.length(pad.hole_length)
    if slot <= diameter:
        return Drill(diameter, diameter)
    if height >= width:
        return Drill(diameter, slot)
    return Drill(slot, diameter)


def _pad_shape(pad: EEPad, width: float, height: float) -> str:
    shape = _SHAPE_MAP.get(pad.shape, "rect")
    if shape == "circle" and abs(width - height) > 1e-6:
        shape = "oval"
    # Only use custom shape if polygon data is available; fall back to rect
    if shape == "custom" and len(pad.polygon_points) < 6:
        shape = "rect"
    return shape


def _convert_pad(pad: EEPad, transform: CoordinateTransform, legacy: bool) -> Pad:
    position = transform.point(pad.x, pad.y)
    width = transform.length(pad.width)
    height = transform.length(pad.height)
    drill = _drill(pad, transform, width, height)
    shape = _pad_shape(pad, width, height)

    if drill is not None:
        kind = PadKind.THRU_HOLE
        layers = THT_LAYERS
    else:
        kind = PadKind.SMD
        layers = SMD_BACK_LAYERS if pad.layer == "2" else SMD_FRONT_LAYERS

    rotation = normalize_rotation(pad.rotation)

    if shape == "custom":
        # Vertices are absolute and already rotated, so the pad itself is not
        pts = pad.polygon_points
        polygon = []
        for i in range(0, len(pts) - 1, 2):
            px, py = transform.point(pts[i], pts[i + 1])
            polygon.append((px - position[0], py - position[1]))
        return Pad(
            number=pad.number,
            kind=kind,
            shape="custom",
            position=position,
            size=(_CUSTOM_ANCHOR, _CUSTOM_ANCHOR),
            layers=layers,
            drill=drill,
            polygon=polygon,
        )

    if shape == "circle" or rotation == 0:
        return Pad(
            number=pad.number,
            kind=kind,
            shape=shape,
            position=position,
            size=(width, height),
            layers=layers,
            rotation=0.0 if shape == "circle" else rotation,
            drill=drill,
        )

    if not legacy:
        return Pad(
            number=pad.number,
            kind=kind,
            shape=shape,
            position=position,
            size=(width, height),
            layers=layers,
            rotation=rotation,
            drill=drill,
        )

    # KiCad 5 output: bake the rotation into a custom outline
    outline = rect_outline(width, height) if shape == "rect" else stadium_outline(width, height)
    polygon = [rotate_point(x, y, rotation) for x, y in outline]
    if drill is not None and drill.is_slot and abs(abs(rotation) - 90) < 1e-6:
        drill = Drill(drill.height, drill.width)
    anchor = min(width, height)
    return Pad(
        number=pad.number,
        kind=kind,
        shape="custom",
        position=position,
        size=(anchor, anchor),
        layers=layers,
        drill=drill,
        polygon=polygon,
    )


def _convert_hole(hole: EEHole, transform: CoordinateTransform) -> Pad:
    diameter = transform.length(hole.radius * 2)
    return Pad(
        number="",
        kind=PadKind.NP_THRU_HOLE,
        shape="circle",
        position=transform.point(hole.x, hole.y),
        size=(diameter, diameter),
        layers=THT_LAYERS,
        drill=Drill(diameter, diameter),
    )


def _convert_via(via: EEVia, transform: CoordinateTransform) -> Pad:
    size = transform.length(via.diameter)
    drill = transform.length(via.hole_radius * 2)
    return Pad(
        number="",
        kind=PadKind.THRU_HOLE,
        shape="circle",
        position=transform.point(via.x, via.y),
        size=(size, size),
        layers=THT_LAYERS,
        drill=Drill(drill, drill),
    )


def _convert_each(items, convert, policy: ShapeErrorPolicy) -> list:
    """Convert each item, pairing it with its result; bad geometry goes to ``policy``."""
    converted = []
    for item in items:
        try:
            converted.append((item, convert(item)))
        except InvalidGeometry as e:
            policy.handle(e, repr(item))
    return converted


def build_footprint(
    source: ComponentSource,
    name: str,
    legacy: bool = False,
    model: Optional[ModelLink] = None,
    policy: Optional[ShapeErrorPolicy] = None,
) -> FootprintDefinition:
    """Convert the footprint document of ``source``.

    ``legacy`` selects KiCad 5 output, where rotated rectangular and oval
    pads are turned into custom pads with a rotated outline. ``model`` is
    attached as-is.
    """
    if source.footprint is None:
        raise ValueError(f"{source.lcsc_id} has no footprint document")
    policy = policy or ShapeErrorPolicy()
    doc = source.footprint

    ee_footprint = parse_footprint_shapes(list(doc.shapes), policy)
    transform = footprint_transform(doc.origin_x, doc.origin_y)

    converted = _convert_each(ee_footprint.pads, lambda pad: _convert_pad(pad, transform, legacy), policy)
    check_unique_pads([ee_pad for ee_pad, _pad in converted])
    pads = [pad for _ee_pad, pad in converted]
    pads.extend(pad for _hole, pad in _convert_each(ee_footprint.holes, lambda h: _convert_hole(h, transform), policy))
    pads.extend(pad for _via, pad in _convert_each(ee_footprint.vias, lambda v: _convert_via(v, transform), policy))

    attribute = "through_hole" if any(p.kind == PadKind.THRU_HOLE and p.number for p in pads) else "smd"

    logger.debug("Built footprint %s: %d pad(s), attribute %s", name, len(pads), attribute)
    return FootprintDefinition(
        name=name,
        attribute=attribute,
        pads=pads,
        graphics=map_shapes(ee_footprint.shapes, transform, footprint_target(legacy), policy),
        model=model,
        description=source.description,
        datasheet=source.datasheet,
        lcsc_id=source.lcsc_id,
        legacy=legacy,
    )
