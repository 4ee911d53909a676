"""Build a KiCad symbol definition from fetched EasyEDA symbol documents."""
import logging
from collections import Counter
from typing import List, Optional

from ..easyeda.ee_types import ComponentSource, EEPin
from ..easyeda.parser import parse_symbol_shapes
from ..errors import DuplicatePin, InvalidGeometry, ShapeErrorPolicy
from .mapper import map_shapes, symbol_target
from .pin_types import DEFAULT_RULES, PinTypeRules
from .primitives import Pin, PinStyle, SymbolDefinition, SymbolUnit
from .transform import CoordinateTransform, symbol_transform

logger = logging.getLogger(__name__)


def _pin_style(pin: EEPin) -> PinStyle:
    if pin.dot and pin.clock:
        return PinStyle.INVERTED_CLOCK
    if pin.dot:
        return PinStyle.INVERTED
    if pin.clock:
        return PinStyle.CLOCK
    return PinStyle.LINE


def _convert_pin(pin: EEPin, transform: CoordinateTransform, rules: PinTypeRules) -> Pin:
    # EasyEDA pins point inward, KiCad pins point outward
    orientation = (pin.rotation + 180) % 360
    return Pin(
        number=pin.number,
        name=pin.name,
        position=transform.point(pin.x, pin.y),
        length=transform.length(pin.length),
        orientation=orientation,
        electrical_type=rules.resolve(pin.type_code, pin.name),
        style=_pin_style(pin),
        name_visible=pin.name_visible,
        number_visible=pin.number_visible,
    )


def check_unique_pins(pins: List[EEPin]) -> None:
    """Raise DuplicatePin if two pins share a number."""
    counts = Counter(pin.number for pin in pins)
    duplicates = sorted(number for number, count in counts.items() if count > 1)
    if duplicates:
        raise DuplicatePin(f"duplicate pin number(s): {', '.join(duplicates)}")


def build_symbol(
    source: ComponentSource,
    name: str,
    legacy: bool = False,
    footprint_ref: str = "",
    pin_rules: Optional[PinTypeRules] = None,
    policy: Optional[ShapeErrorPolicy] = None,
) -> SymbolDefinition:
    """Convert every symbol part of ``source`` into one (multi-unit) symbol.

    Each EasyEDA part becomes one KiCad unit, converted with its own origin.
    Pin numbers must be unique across all units.
    """
    rules = pin_rules or DEFAULT_RULES
    policy = policy or ShapeErrorPolicy()
    target = symbol_target(legacy)

    units = []
    kept_pins = []
    for doc in source.symbol_parts:
        ee_symbol = parse_symbol_shapes(list(doc.shapes), policy)
        transform = symbol_transform(doc.origin_x, doc.origin_y, legacy=legacy)
        pins = []
        for ee_pin in ee_symbol.pins:
            try:
                pins.append(_convert_pin(ee_pin, transform, rules))
            except InvalidGeometry as e:
                policy.handle(e, repr(ee_pin))
                continue
            kept_pins.append(ee_pin)
        units.append(SymbolUnit(graphics=map_shapes(ee_symbol.shapes, transform, target, policy), pins=pins))
    check_unique_pins(kept_pins)

    logger.debug(
        "Built symbol %s: %d unit(s), %d pin(s)", name, len(units), sum(len(u.pins) for u in units)
    )
    return SymbolDefinition(
        name=name,
        reference=source.prefix or "U",
        value=name,
        footprint=footprint_ref,
        datasheet=source.datasheet,
        description=source.description,
        lcsc_id=source.lcsc_id,
        manufacturer=source.manufacturer,
        manufacturer_part=source.manufacturer_part,
        units=units,
        legacy=legacy,
    )
