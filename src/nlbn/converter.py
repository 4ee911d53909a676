"""Convert one fetched component into library-ready text and model data.

Conversion is pure: it reads a :class:`ComponentSource` (plus any downloaded
model binaries) and returns rendered file fragments. Writing them is the
library writer's job.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .easyeda.ee_types import ComponentSource
from .errors import (
    DuplicatePad,
    DuplicatePin,
    InvalidGeometry,
    MalformedPrimitive,
    MissingOutput,
    ModelUnavailable,
    NlbnError,
    ShapeErrorPolicy,
)
from .kicad.footprint_builder import build_footprint
from .kicad.footprint_writer import write_footprint, write_legacy_footprint
from .kicad.library import OUTPUT_FOOTPRINT, OUTPUT_MODEL, OUTPUT_SYMBOL, LibraryPaths, entry_name, model_link
from .kicad.model3d import ModelEntry, relay_model
from .kicad.pin_types import PinTypeRules
from .kicad.symbol_builder import build_symbol
from .kicad.symbol_writer import write_legacy_symbol, write_symbol

logger = logging.getLogger(__name__)

# Errors that only cost the output they occurred in
_OUTPUT_ERRORS = (DuplicatePin, DuplicatePad, InvalidGeometry, MalformedPrimitive)


@dataclass
class ModelData:
    """Downloaded 3D model binaries; either may be missing."""

    step: Optional[bytes] = None
    obj: Optional[str] = None


@dataclass
class Conversion:
    """Rendered outputs of one component.

    ``errors`` maps an output kind to the error that prevented it.
    """

    name: str
    symbol: Optional[str] = None
    footprint: Optional[str] = None
    model: Optional[ModelEntry] = None
    errors: Dict[str, NlbnError] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)


def _output_error(error: NlbnError, strict: bool) -> NlbnError:
    # In strict mode bad geometry aborts the whole component
    if strict and isinstance(error, (InvalidGeometry, MalformedPrimitive)):
        raise error
    return error


def convert_component(
    source: ComponentSource,
    paths: LibraryPaths,
    symbol: bool = True,
    footprint: bool = True,
    model: bool = False,
    model_data: Optional[ModelData] = None,
    strict: bool = False,
    project_relative: bool = False,
    pin_rules: Optional[PinTypeRules] = None,
) -> Conversion:
    """Convert the requested outputs of ``source``.

    Per-output failures (duplicate pins or pads, unavailable model, missing
    EasyEDA document, bad geometry outside strict mode) are collected in
    :attr:`Conversion.errors`; the remaining outputs are still produced.

    Raises:
        InvalidGeometry, MalformedPrimitive: in strict mode.
    """
    name = entry_name(source.title, source.lcsc_id)
    policy = ShapeErrorPolicy(strict)
    result = Conversion(name=name)

    if model:
        if source.model is None:
            result.errors[OUTPUT_MODEL] = ModelUnavailable(f"{source.lcsc_id} has no 3D model")
        else:
            data = model_data or ModelData()
            fp_origin = (source.footprint.origin_x, source.footprint.origin_y) if source.footprint else (0.0, 0.0)
            try:
                result.model = relay_model(source.model, name, data.step, data.obj, fp_origin)
            except ModelUnavailable as e:
                result.errors[OUTPUT_MODEL] = e

    if footprint:
        if source.footprint is None:
            result.errors[OUTPUT_FOOTPRINT] = MissingOutput(f"{source.lcsc_id} has no footprint on EasyEDA")
        else:
            link = model_link(paths, result.model, project_relative) if result.model else None
            try:
                fp = build_footprint(source, name, legacy=paths.legacy, model=link, policy=policy)
                if paths.legacy:
                    result.footprint = write_legacy_footprint(fp)
                else:
                    result.footprint = write_footprint(fp, paths.kicad_version)
            except _OUTPUT_ERRORS as e:
                result.errors[OUTPUT_FOOTPRINT] = _output_error(e, strict)

    if symbol:
        if not source.symbol_parts:
            result.errors[OUTPUT_SYMBOL] = MissingOutput(f"{source.lcsc_id} has no symbol on EasyEDA")
        else:
            footprint_ref = paths.footprint_ref(name) if source.footprint else ""
            try:
                sym = build_symbol(
                    source,
                    name,
                    legacy=paths.legacy,
                    footprint_ref=footprint_ref,
                    pin_rules=pin_rules,
                    policy=policy,
                )
                result.symbol = write_legacy_symbol(sym) if paths.legacy else write_symbol(sym)
            except _OUTPUT_ERRORS as e:
                result.errors[OUTPUT_SYMBOL] = _output_error(e, strict)

    result.warnings = list(policy.warnings)
    for kind, error in result.errors.items():
        logger.warning("%s: %s not converted: %s: %s", source.lcsc_id, kind, error.kind, error)
    return result
