"""Library file management - create/append symbols, save footprints and models.

A library lives in one output directory::

    <lib_name>.kicad_sym   (or <lib_name>.lib for KiCad 5)
    <lib_name>.pretty/<entry>.kicad_mod
    <lib_name>.3dshapes/<entry>.step / .wrl

Entries are named ``<sanitized title>_<LCSC ID>``, so everything belonging to
one LCSC part can be found again by its ID suffix. All ``OSError`` failures
surface as :class:`~nlbn.errors.LibraryIOError`.
"""

import glob
import logging
import os
import re
from dataclasses import dataclass
from typing import List, Optional, Set

from ..errors import LibraryIOError
from .model3d import ModelEntry, save_models
from .primitives import ModelLink
from .symbol_writer import LEGACY_FOOTER, write_legacy_library, write_symbol_library
from .version import DEFAULT_KICAD_VERSION, is_legacy, symbol_lib_extension

logger = logging.getLogger(__name__)

OUTPUT_SYMBOL = "symbol"
OUTPUT_FOOTPRINT = "footprint"
OUTPUT_MODEL = "model"


@dataclass(frozen=True)
class LibraryPaths:
    base_dir: str
    lib_name: str
    kicad_version: int = DEFAULT_KICAD_VERSION

    @classmethod
    def for_output(cls, base_dir: str, lib_name: str = "nlbn", kicad_version: int = DEFAULT_KICAD_VERSION):
        return cls(os.path.abspath(base_dir), lib_name, kicad_version)

    @property
    def legacy(self) -> bool:
        return is_legacy(self.kicad_version)

    @property
    def sym_path(self) -> str:
        return os.path.join(self.base_dir, self.lib_name + symbol_lib_extension(self.kicad_version))

    @property
    def fp_dir(self) -> str:
        return os.path.join(self.base_dir, f"{self.lib_name}.pretty")

    @property
    def models_dir(self) -> str:
        return os.path.join(self.base_dir, f"{self.lib_name}.3dshapes")

    def footprint_ref(self, name: str) -> str:
        """``lib:name`` link used in the symbol's Footprint property."""
        return f"{self.lib_name}:{name}"


def ensure_lib_structure(paths: LibraryPaths) -> None:
    """Create library directory structure if needed."""
    try:
        os.makedirs(paths.fp_dir, exist_ok=True)
        os.makedirs(paths.models_dir, exist_ok=True)
    except OSError as e:
        raise LibraryIOError(f"cannot create library directories in {paths.base_dir}: {e}") from e


def _read(path: str) -> str:
    with open(path, encoding="utf-8") as f:
        return f.read()


def _write(path: str, content: str) -> None:
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)


def add_symbol_to_lib(
    sym_path: str,
    name: str,
    content: str,
    overwrite: bool = False,
    kicad_version: int = DEFAULT_KICAD_VERSION,
) -> bool:
    """Add a symbol to the symbol library file.

    Creates the library file if it doesn't exist. ``content`` is a
    ``(symbol ...)`` block, or a ``DEF ... ENDDEF`` entry for KiCad 5.
    Returns True if the symbol was added/replaced, False if it already
    exists and overwrite=False.
    """
    try:
        if is_legacy(kicad_version):
            return _add_legacy_symbol(sym_path, name, content, overwrite)
        return _add_sexpr_symbol(sym_path, name, content, overwrite, kicad_version)
    except OSError as e:
        raise LibraryIOError(f"cannot update symbol library {sym_path}: {e}") from e


def _add_sexpr_symbol(sym_path: str, name: str, content: str, overwrite: bool, kicad_version: int) -> bool:
    if not os.path.exists(sym_path):
        _write(sym_path, write_symbol_library([content], kicad_version))
        return True

    lib_content = _read(sym_path)
    if f'(symbol "{name}"' in lib_content:
        if not overwrite:
            return False
        lib_content = _remove_symbol(lib_content, name)

    # Insert before final closing paren
    last_paren = lib_content.rfind(")")
    if last_paren == -1:
        raise LibraryIOError(f"{sym_path} is not a symbol library")
    _write(sym_path, lib_content[:last_paren] + content + ")\n")
    return True


def _remove_symbol(lib_content: str, name: str) -> str:
    """Remove a symbol block from library content."""
    start = lib_content.find(f'  (symbol "{name}"')
    if start == -1:
        return lib_content

    # Find matching closing paren by counting depth
    depth = 0
    in_symbol = False
    for i in range(start, len(lib_content)):
        c = lib_content[i]
        if c == "(":
            depth += 1
            in_symbol = True
        elif c == ")":
            depth -= 1
            if in_symbol and depth == 0:
                end = i + 1
                while end < len(lib_content) and lib_content[end] in ("\n", "\r"):
                    end += 1
                return lib_content[:start] + lib_content[end:]

    return lib_content


def _legacy_entry_re(name_pattern: str) -> re.Pattern:
    # Comment header (optional) + DEF ... ENDDEF
    return re.compile(
        r"(?:#\n# [^\n]*\n#\n)?^DEF " + name_pattern + r" .*?^ENDDEF\n?",
        re.MULTILINE | re.DOTALL,
    )


def _add_legacy_symbol(sym_path: str, name: str, content: str, overwrite: bool) -> bool:
    if not os.path.exists(sym_path):
        _write(sym_path, write_legacy_library([content]))
        return True

    lib_content = _read(sym_path)
    entry_re = _legacy_entry_re(re.escape(name))
    if entry_re.search(lib_content):
        if not overwrite:
            return False
        lib_content = entry_re.sub("", lib_content)

    footer_at = lib_content.rfind("#End Library")
    if footer_at == -1:
        raise LibraryIOError(f"{sym_path} is not a KiCad 5 symbol library")
    # Drop the "#" line that precedes the footer; LEGACY_FOOTER restores it
    head = lib_content[:footer_at]
    if head.endswith("#\n"):
        head = head[:-2]
    _write(sym_path, head + content + LEGACY_FOOTER)
    return True


def save_footprint(fp_dir: str, name: str, content: str, overwrite: bool = False) -> bool:
    """Save a .kicad_mod footprint file.

    Returns True if saved, False if exists and overwrite=False.
    """
    fp_path = os.path.join(fp_dir, f"{name}.kicad_mod")
    if os.path.exists(fp_path) and not overwrite:
        return False
    try:
        os.makedirs(fp_dir, exist_ok=True)
        _write(fp_path, content)
    except OSError as e:
        raise LibraryIOError(f"cannot write footprint {fp_path}: {e}") from e
    return True


def write_models(models_dir: str, entry: ModelEntry, overwrite: bool = False) -> bool:
    """Save the model files of ``entry``.

    Returns False without writing when a model of that name exists and
    overwrite=False.
    """
    existing = [os.path.join(models_dir, f"{entry.name}{ext}") for ext in (".step", ".wrl")]
    if not overwrite and any(os.path.exists(p) for p in existing):
        return False
    try:
        save_models(models_dir, entry)
    except ValueError as e:
        raise LibraryIOError(str(e)) from e
    except OSError as e:
        raise LibraryIOError(f"cannot write 3D model {entry.name} to {models_dir}: {e}") from e
    return True


def model_link(paths: LibraryPaths, entry: ModelEntry, project_relative: bool = False) -> ModelLink:
    """Footprint model reference for ``entry``, preferring STEP over VRML."""
    ext = ".step" if entry.step_data is not None else ".wrl"
    if project_relative:
        path = f"${{KIPRJMOD}}/{paths.lib_name}.3dshapes/{entry.name}{ext}"
    else:
        path = os.path.join(paths.models_dir, entry.name + ext).replace("\\", "/")
    return ModelLink(path=path, offset=entry.offset, rotation=entry.rotation, scale=entry.scale)


def _symbol_names(paths: LibraryPaths, lcsc_id: str) -> List[str]:
    if not os.path.exists(paths.sym_path):
        return []
    content = _read(paths.sym_path)
    suffix = re.escape(f"_{lcsc_id}")
    if paths.legacy:
        pattern = re.compile(r"^DEF (\S*" + suffix + r") ", re.MULTILINE)
    else:
        pattern = re.compile(r'\(symbol "([^"]*' + suffix + r')"')
    return pattern.findall(content)


def _footprint_files(paths: LibraryPaths, lcsc_id: str) -> List[str]:
    return glob.glob(os.path.join(glob.escape(paths.fp_dir), f"*_{lcsc_id}.kicad_mod"))


def _model_files(paths: LibraryPaths, lcsc_id: str) -> List[str]:
    models = glob.escape(paths.models_dir)
    return glob.glob(os.path.join(models, f"*_{lcsc_id}.step")) + glob.glob(os.path.join(models, f"*_{lcsc_id}.wrl"))


def find_existing(paths: LibraryPaths, lcsc_id: str) -> Set[str]:
    """Return which outputs (symbol, footprint, model) exist for an LCSC ID."""
    found = set()
    try:
        if _symbol_names(paths, lcsc_id):
            found.add(OUTPUT_SYMBOL)
    except OSError as e:
        raise LibraryIOError(f"cannot read symbol library {paths.sym_path}: {e}") from e
    if _footprint_files(paths, lcsc_id):
        found.add(OUTPUT_FOOTPRINT)
    if _model_files(paths, lcsc_id):
        found.add(OUTPUT_MODEL)
    return found


def remove_component(paths: LibraryPaths, lcsc_id: str) -> List[str]:
    """Delete every symbol, footprint and model belonging to ``lcsc_id``.

    Returns a description of each removed item.
    """
    removed = []
    try:
        names = _symbol_names(paths, lcsc_id)
        if names:
            content = _read(paths.sym_path)
            for name in names:
                if paths.legacy:
                    content = _legacy_entry_re(re.escape(name)).sub("", content)
                else:
                    content = _remove_symbol(content, name)
                removed.append(f"symbol {name}")
            _write(paths.sym_path, content)
        for path in _footprint_files(paths, lcsc_id) + _model_files(paths, lcsc_id):
            os.remove(path)
            removed.append(os.path.basename(path))
    except OSError as e:
        raise LibraryIOError(f"cannot remove {lcsc_id} from {paths.base_dir}: {e}") from e
    for item in removed:
        logger.info("Removed %s", item)
    return removed


_WINDOWS_RESERVED = re.compile(r"^(CON|PRN|AUX|NUL|COM[0-9]|LPT[0-9])$", re.IGNORECASE)


def sanitize_name(title: str) -> str:
    """Sanitize component name for KiCad file/symbol naming.

    Strips all path separators and special characters to produce a safe
    base filename. Rejects Windows reserved device names.
    """
    name = re.sub(r"[^A-Za-z0-9_\-]", "_", title)
    name = re.sub(r"_+", "_", name)
    name = name.strip("_")
    if _WINDOWS_RESERVED.match(name):
        name = "_" + name
    if not name:
        name = "unnamed"
    return name


def entry_name(title: str, lcsc_id: str, max_title: Optional[int] = 64) -> str:
    """Library entry name for a part: ``<sanitized title>_<LCSC ID>``."""
    base = sanitize_name(title)
    if max_title and len(base) > max_title:
        base = base[:max_title].rstrip("_-")
    return f"{base}_{lcsc_id}"
