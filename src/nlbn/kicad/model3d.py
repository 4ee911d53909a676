"""3D model relay: STEP pass-through, OBJ to VRML conversion and placement."""

import logging
import os
from dataclasses import dataclass
from typing import Optional, Tuple

from ..easyeda.ee_types import EE3DModel
from ..errors import ModelUnavailable
from .transform import ee_to_mm

logger = logging.getLogger(__name__)

STEP_MAGIC = b"ISO-10303-21"

# KiCad VRML files are in units of 0.1 inch; EasyEDA OBJ vertices are in mm
_MM_PER_VRML_UNIT = 2.54


@dataclass
class ModelEntry:
    """A 3D model ready to be written next to the footprint library."""

    name: str
    step_data: Optional[bytes] = None
    wrl_text: Optional[str] = None
    offset: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    rotation: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    scale: Tuple[float, float, float] = (1.0, 1.0, 1.0)


def is_step(data: bytes) -> bool:
    """Whether ``data`` looks like an ISO 10303-21 (STEP) file."""
    return data.lstrip(b"\xef\xbb\xbf \t\r\n").startswith(STEP_MAGIC)


def compute_model_transform(
    model: EE3DModel,
    fp_origin_x: float,
    fp_origin_y: float,
    obj_source: Optional[str] = None,
) -> Tuple[Tuple[float, float, float], Tuple[float, float, float]]:
    """Compute 3D model offset and rotation from footprint model data.

    The model origin is placed relative to the footprint origin. KiCad's 3D
    Y axis points up while the footprint's points down, hence the sign flip.
    When the OBJ geometry is known the model is also centred on its XY
    bounding box and its lowest point is put on the board surface.

    Args:
        model: EasyEDA 3D model data (origin and z in EasyEDA units)
        fp_origin_x: Footprint origin X coordinate (EasyEDA units)
        fp_origin_y: Footprint origin Y coordinate (EasyEDA units)
        obj_source: Optional OBJ file content for geometry analysis

    Returns:
        Tuple of (offset, rotation) in mm and degrees.
    """
    dx = ee_to_mm(model.origin_x - fp_origin_x)
    dy = ee_to_mm(model.origin_y - fp_origin_y)
    dz = ee_to_mm(model.z)

    if obj_source is None:
        return (dx, -dy, dz), model.rotation

    cx, cy, z_min, _z_max = _obj_bounding_box(obj_source)
    offset = (dx - cx, -dy - cy, dz - z_min)
    return offset, model.rotation


def _obj_bounding_box(obj_source: str) -> Tuple[float, float, float, float]:
    """Return XY center and Z range of OBJ vertex data (cx, cy, z_min, z_max in mm)."""
    min_x = min_y = min_z = float("inf")
    max_x = max_y = max_z = float("-inf")
    found = False

    for line in obj_source.split("\n"):
        line = line.strip()
        if not line.startswith("v "):
            continue
        parts = line.split()
        if len(parts) < 4:
            continue
        try:
            x, y, z = float(parts[1]), float(parts[2]), float(parts[3])
        except ValueError:
            continue
        min_x, max_x = min(min_x, x), max(max_x, x)
        min_y, max_y = min(min_y, y), max(max_y, y)
        min_z, max_z = min(min_z, z), max(max_z, z)
        found = True

    if not found:
        return 0.0, 0.0, 0.0, 0.0
    return (min_x + max_x) / 2, (min_y + max_y) / 2, min_z, max_z


def relay_model(
    reference: EE3DModel,
    name: str,
    step_data: Optional[bytes],
    obj_source: Optional[str],
    fp_origin: Tuple[float, float] = (0.0, 0.0),
) -> ModelEntry:
    """Package downloaded model data for writing.

    STEP bytes are kept unchanged; a payload that is not STEP is dropped.
    The OBJ source is re-encoded as VRML.

    Raises:
        ModelUnavailable: if neither a STEP nor a VRML model remains.
    """
    if step_data is not None and not is_step(step_data):
        logger.warning("Ignoring model %s for %s: payload is not a STEP file", reference.uuid, name)
        step_data = None

    wrl_text = convert_to_vrml(obj_source) if obj_source else None

    if step_data is None and wrl_text is None:
        raise ModelUnavailable(f"no usable 3D model for {name} (model {reference.uuid})")

    offset, rotation = compute_model_transform(reference, fp_origin[0], fp_origin[1], obj_source)
    return ModelEntry(name=name, step_data=step_data, wrl_text=wrl_text, offset=offset, rotation=rotation)


def save_models(output_dir: str, entry: ModelEntry) -> Tuple[Optional[str], Optional[str]]:
    """Save the STEP and WRL files of ``entry`` to *output_dir*.

    Returns *(step_path, wrl_path)*; a path is ``None`` when that format is
    absent from the entry.
    """
    os.makedirs(output_dir, exist_ok=True)

    step_path = os.path.join(output_dir, f"{entry.name}.step")
    wrl_path = os.path.join(output_dir, f"{entry.name}.wrl")

    output_dir_abs = os.path.abspath(output_dir)
    for path in (step_path, wrl_path):
        if os.path.dirname(os.path.abspath(path)) != output_dir_abs:
            raise ValueError(f"Invalid model name: {entry.name}")

    step_out = None
    if entry.step_data is not None:
        with open(step_path, "wb") as f:
            f.write(entry.step_data)
        step_out = step_path

    wrl_out = None
    if entry.wrl_text is not None:
        with open(wrl_path, "w", encoding="utf-8") as f:
            f.write(entry.wrl_text)
        wrl_out = wrl_path

    return step_out, wrl_out


def _three_floats(parts):
    return (float(parts[1]), float(parts[2]), float(parts[3]))


def convert_to_vrml(obj_source: str) -> Optional[str]:
    """Convert EasyEDA OBJ-like 3D text format to VRML 2.0.

    Returns None when the source has no vertices or no faces.
    """
    materials = {}
    vertices = []
    shape_groups = []

    current_mtl = None
    for raw in obj_source.split("\n"):
        line = raw.strip()
        parts = line.split()
        try:
            if line.startswith("newmtl "):
                current_mtl = {"name": line[7:].strip(), "Kd": (0.8, 0.8, 0.8), "Ks": (0, 0, 0), "d": 0}
            elif line.startswith("Kd ") and current_mtl and len(parts) >= 4:
                current_mtl["Kd"] = _three_floats(parts)
            elif line.startswith("Ks ") and current_mtl and len(parts) >= 4:
                current_mtl["Ks"] = _three_floats(parts)
            elif line.startswith("d ") and current_mtl and len(parts) >= 2:
                current_mtl["d"] = float(parts[1])
            elif line == "endmtl" and current_mtl:
                materials[current_mtl["name"]] = current_mtl
                current_mtl = None
            elif line.startswith("v ") and len(parts) >= 4:
                x, y, z = _three_floats(parts)
                vertices.append((x / _MM_PER_VRML_UNIT, y / _MM_PER_VRML_UNIT, z / _MM_PER_VRML_UNIT))
            elif line.startswith("usemtl "):
                shape_groups.append({"material": line[7:].strip(), "faces": []})
            elif line.startswith("f ") and shape_groups:
                # f v1//n1 v2//n2 v3//n3
                face = [int(p.split("/")[0]) - 1 for p in parts[1:]]
                if len(face) >= 3:
                    shape_groups[-1]["faces"].append(face)
        except ValueError:
            logger.debug("Skipping malformed OBJ line: %r", line)

    if not vertices or not shape_groups:
        return None

    vrml_lines = ["#VRML V2.0 utf8", ""]

    for group in shape_groups:
        faces = [f for f in group["faces"] if all(0 <= i < len(vertices) for i in f)]
        if not faces:
            continue

        mtl = materials.get(group["material"], {"Kd": (0.8, 0.8, 0.8), "Ks": (0, 0, 0), "d": 0})

        # Each shape gets its own compact point list
        used = sorted({i for face in faces for i in face})
        local = {g: n for n, g in enumerate(used)}
        points = [f"{vertices[g][0]:.6f} {vertices[g][1]:.6f} {vertices[g][2]:.6f}" for g in used]
        coord_indices = [", ".join(str(local[i]) for i in face) + ", -1" for face in faces]

        kd = mtl["Kd"]
        ks = mtl["Ks"]
        vrml_lines.append("Shape {")
        vrml_lines.append("  appearance Appearance {")
        vrml_lines.append("    material Material {")
        vrml_lines.append(f"      diffuseColor {kd[0]:.4f} {kd[1]:.4f} {kd[2]:.4f}")
        vrml_lines.append(f"      specularColor {ks[0]:.4f} {ks[1]:.4f} {ks[2]:.4f}")
        vrml_lines.append("      ambientIntensity 0.2")
        vrml_lines.append(f"      transparency {mtl['d']:.4f}")
        vrml_lines.append("      shininess 0.5")
        vrml_lines.append("    }")
        vrml_lines.append("  }")
        vrml_lines.append("  geometry IndexedFaceSet {")
        vrml_lines.append("    ccw TRUE")
        vrml_lines.append("    solid FALSE")
        vrml_lines.append("    coord DEF co Coordinate {")
        vrml_lines.append("      point [")
        vrml_lines.extend(f"        {pt}," for pt in points)
        vrml_lines.append("      ]")
        vrml_lines.append("    }")
        vrml_lines.append("    coordIndex [")
        vrml_lines.extend(f"      {ci}," for ci in coord_indices)
        vrml_lines.append("    ]")
        vrml_lines.append("  }")
        vrml_lines.append("}")
        vrml_lines.append("")

    if len(vrml_lines) == 2:
        return None
    return "\n".join(vrml_lines)
