"""Tests for library.py - library layout, symbol merging and file naming."""
import os

import pytest

from conftest import STEP_DATA
from nlbn.errors import LibraryIOError
from nlbn.kicad.library import (
    OUTPUT_FOOTPRINT,
    OUTPUT_MODEL,
    OUTPUT_SYMBOL,
    LibraryPaths,
    add_symbol_to_lib,
    ensure_lib_structure,
    entry_name,
    find_existing,
    model_link,
    remove_component,
    sanitize_name,
    save_footprint,
    write_models,
)
from nlbn.kicad.model3d import ModelEntry
from nlbn.kicad.symbol_writer import LEGACY_FOOTER, LEGACY_HEADER


def _legacy_entry(name, body="DRAW\nENDDRAW"):
    return f"#\n# {name}\n#\nDEF {name} U 0 40 Y Y 1 F N\n{body}\nENDDEF\n"


def _read(path):
    with open(path, encoding="utf-8") as f:
        return f.read()


@pytest.fixture
def paths(tmp_path):
    p = LibraryPaths.for_output(str(tmp_path), "nlbn", 9)
    ensure_lib_structure(p)
    return p


@pytest.fixture
def legacy_paths(tmp_path):
    p = LibraryPaths.for_output(str(tmp_path), "nlbn", 5)
    ensure_lib_structure(p)
    return p


class TestLibraryPaths:
    def test_layout(self, tmp_path):
        p = LibraryPaths.for_output(str(tmp_path), "parts")
        assert p.sym_path == os.path.join(str(tmp_path), "parts.kicad_sym")
        assert p.fp_dir == os.path.join(str(tmp_path), "parts.pretty")
        assert p.models_dir == os.path.join(str(tmp_path), "parts.3dshapes")
        assert p.footprint_ref("R_C1") == "parts:R_C1"

    def test_legacy_extension(self, tmp_path):
        p = LibraryPaths.for_output(str(tmp_path), "parts", 5)
        assert p.legacy
        assert p.sym_path.endswith("parts.lib")

    def test_structure_created(self, paths):
        assert os.path.isdir(paths.fp_dir)
        assert os.path.isdir(paths.models_dir)
        # Idempotent
        ensure_lib_structure(paths)


class TestSanitizeName:
    def test_special_characters(self):
        assert sanitize_name("10k 0603 1%") == "10k_0603_1"

    def test_path_separators(self):
        assert sanitize_name("../../etc/passwd") == "etc_passwd"

    def test_reserved_device_name(self):
        assert sanitize_name("CON") == "_CON"

    def test_empty(self):
        assert sanitize_name("///") == "unnamed"


class TestEntryName:
    def test_appends_lcsc_id(self):
        assert entry_name("NE555 Timer", "C46749") == "NE555_Timer_C46749"

    def test_long_title_capped(self):
        name = entry_name("A" * 100, "C1")
        assert name == "A" * 64 + "_C1"

    def test_cap_does_not_leave_trailing_separator(self):
        assert entry_name("A" * 63 + "_B", "C1") == "A" * 63 + "_C1"


class TestAddSymbolToLib:
    def test_creates_new_library(self, paths):
        assert add_symbol_to_lib(paths.sym_path, "R_C1", '  (symbol "R_C1")\n') is True
        text = _read(paths.sym_path)
        assert text.startswith("(kicad_symbol_lib")
        assert '(symbol "R_C1")' in text

    def test_appends_to_existing(self, paths):
        add_symbol_to_lib(paths.sym_path, "R_C1", '  (symbol "R_C1")\n')
        add_symbol_to_lib(paths.sym_path, "C_C2", '  (symbol "C_C2")\n')
        text = _read(paths.sym_path)
        assert '(symbol "R_C1")' in text
        assert '(symbol "C_C2")' in text
        assert text.rstrip().endswith(")")

    def test_skip_existing_no_overwrite(self, paths):
        add_symbol_to_lib(paths.sym_path, "R_C1", '  (symbol "R_C1"\n    (old)\n  )\n')
        assert add_symbol_to_lib(paths.sym_path, "R_C1", '  (symbol "R_C1"\n    (new)\n  )\n') is False
        assert "(old)" in _read(paths.sym_path)

    def test_overwrite_existing(self, paths):
        add_symbol_to_lib(paths.sym_path, "R_C1", '  (symbol "R_C1"\n    (old)\n  )\n')
        add_symbol_to_lib(paths.sym_path, "C_C2", '  (symbol "C_C2")\n')
        result = add_symbol_to_lib(paths.sym_path, "R_C1", '  (symbol "R_C1"\n    (new)\n  )\n', overwrite=True)
        assert result is True
        text = _read(paths.sym_path)
        assert "(new)" in text
        assert "(old)" not in text
        assert text.count('(symbol "R_C1"') == 1
        assert '(symbol "C_C2")' in text

    def test_not_a_library(self, paths):
        with open(paths.sym_path, "w") as f:
            f.write("garbage")
        with pytest.raises(LibraryIOError):
            add_symbol_to_lib(paths.sym_path, "R_C1", '  (symbol "R_C1")\n')


class TestAddLegacySymbol:
    def test_creates_new_library(self, legacy_paths):
        add_symbol_to_lib(legacy_paths.sym_path, "R_C1", _legacy_entry("R_C1"), kicad_version=5)
        text = _read(legacy_paths.sym_path)
        assert text.startswith(LEGACY_HEADER)
        assert text.endswith(LEGACY_FOOTER)
        assert "DEF R_C1 U" in text

    def test_appends_before_footer(self, legacy_paths):
        add_symbol_to_lib(legacy_paths.sym_path, "R_C1", _legacy_entry("R_C1"), kicad_version=5)
        add_symbol_to_lib(legacy_paths.sym_path, "C_C2", _legacy_entry("C_C2"), kicad_version=5)
        text = _read(legacy_paths.sym_path)
        assert text.index("DEF R_C1") < text.index("DEF C_C2") < text.index("#End Library")
        assert text.count("#End Library") == 1

    def test_skip_and_overwrite(self, legacy_paths):
        add_symbol_to_lib(legacy_paths.sym_path, "R_C1", _legacy_entry("R_C1", "OLD"), kicad_version=5)
        assert add_symbol_to_lib(legacy_paths.sym_path, "R_C1", _legacy_entry("R_C1", "NEW"), kicad_version=5) is False
        assert add_symbol_to_lib(
            legacy_paths.sym_path, "R_C1", _legacy_entry("R_C1", "NEW"), overwrite=True, kicad_version=5
        )
        text = _read(legacy_paths.sym_path)
        assert "NEW" in text
        assert "OLD" not in text
        assert text.count("DEF R_C1 ") == 1


class TestSaveFootprint:
    def test_saves_new_file(self, paths):
        assert save_footprint(paths.fp_dir, "R_C1", "(footprint x)\n") is True
        assert _read(os.path.join(paths.fp_dir, "R_C1.kicad_mod")) == "(footprint x)\n"

    def test_skip_existing(self, paths):
        save_footprint(paths.fp_dir, "R_C1", "original")
        assert save_footprint(paths.fp_dir, "R_C1", "new") is False
        assert _read(os.path.join(paths.fp_dir, "R_C1.kicad_mod")) == "original"

    def test_overwrite(self, paths):
        save_footprint(paths.fp_dir, "R_C1", "original")
        assert save_footprint(paths.fp_dir, "R_C1", "new", overwrite=True) is True
        assert _read(os.path.join(paths.fp_dir, "R_C1.kicad_mod")) == "new"


class TestWriteModels:
    def test_writes_and_skips(self, paths):
        entry = ModelEntry(name="R_C1", step_data=STEP_DATA)
        assert write_models(paths.models_dir, entry) is True
        assert os.path.exists(os.path.join(paths.models_dir, "R_C1.step"))
        assert write_models(paths.models_dir, entry) is False
        assert write_models(paths.models_dir, entry, overwrite=True) is True

    def test_bad_name_is_library_error(self, paths):
        with pytest.raises(LibraryIOError):
            write_models(paths.models_dir, ModelEntry(name="../R_C1", step_data=STEP_DATA))


class TestModelLink:
    def test_absolute_step(self, paths):
        link = model_link(paths, ModelEntry(name="R_C1", step_data=STEP_DATA, offset=(1.0, 2.0, 0.0)))
        assert link.path == os.path.join(paths.models_dir, "R_C1.step").replace("\\", "/")
        assert link.offset == (1.0, 2.0, 0.0)

    def test_project_relative_wrl(self, paths):
        link = model_link(paths, ModelEntry(name="R_C1", wrl_text="#VRML"), project_relative=True)
        assert link.path == "${KIPRJMOD}/nlbn.3dshapes/R_C1.wrl"


class TestFindAndRemove:
    def _populate(self, paths):
        add_symbol_to_lib(paths.sym_path, "R_C1", '  (symbol "R_C1"\n    (symbol "R_C1_0_1")\n  )\n')
        add_symbol_to_lib(paths.sym_path, "R_C12", '  (symbol "R_C12")\n')
        save_footprint(paths.fp_dir, "R_C1", "(footprint R_C1)")
        write_models(paths.models_dir, ModelEntry(name="R_C1", step_data=STEP_DATA, wrl_text="#VRML"))

    def test_find_existing(self, paths):
        assert find_existing(paths, "C1") == set()
        self._populate(paths)
        assert find_existing(paths, "C1") == {OUTPUT_SYMBOL, OUTPUT_FOOTPRINT, OUTPUT_MODEL}
        assert find_existing(paths, "C12") == {OUTPUT_SYMBOL}
        assert find_existing(paths, "C2") == set()

    def test_find_existing_legacy(self, legacy_paths):
        add_symbol_to_lib(legacy_paths.sym_path, "R_C1", _legacy_entry("R_C1"), kicad_version=5)
        assert find_existing(legacy_paths, "C1") == {OUTPUT_SYMBOL}

    def test_remove_component(self, paths):
        self._populate(paths)
        removed = remove_component(paths, "C1")
        assert "symbol R_C1" in removed
        assert "R_C1.kicad_mod" in removed
        assert "R_C1.step" in removed
        assert "R_C1.wrl" in removed
        assert find_existing(paths, "C1") == set()
        # Neighbouring part with a longer ID is left alone
        assert '(symbol "R_C12")' in _read(paths.sym_path)

    def test_remove_legacy(self, legacy_paths):
        add_symbol_to_lib(legacy_paths.sym_path, "R_C1", _legacy_entry("R_C1"), kicad_version=5)
        add_symbol_to_lib(legacy_paths.sym_path, "C_C2", _legacy_entry("C_C2"), kicad_version=5)
        assert remove_component(legacy_paths, "C1") == ["symbol R_C1"]
        text = _read(legacy_paths.sym_path)
        assert "R_C1" not in text
        assert "DEF C_C2" in text

    def test_remove_nothing(self, paths):
        assert remove_component(paths, "C9") == []
