"""Tests for version.py - KiCad version constants and format helpers."""
import pytest

from nlbn.kicad.version import (
    DEFAULT_KICAD_VERSION,
    footprint_format_version,
    has_embedded_fonts,
    has_generator_version,
    is_legacy,
    symbol_format_version,
    symbol_lib_extension,
    validate_kicad_version,
)


class TestValidateKicadVersion:
    @pytest.mark.parametrize("version", [5, 8, 9])
    def test_supported(self, version):
        assert validate_kicad_version(version) == version

    @pytest.mark.parametrize("version", [6, 7, 10])
    def test_unsupported(self, version):
        with pytest.raises(ValueError, match="Unsupported KiCad version"):
            validate_kicad_version(version)


class TestFormatHelpers:
    def test_default_is_current(self):
        assert DEFAULT_KICAD_VERSION == 9
        assert not is_legacy()

    def test_legacy(self):
        assert is_legacy(5)
        assert symbol_lib_extension(5) == ".lib"
        assert symbol_lib_extension(8) == ".kicad_sym"

    def test_format_stamps(self):
        assert symbol_format_version(8) == "20231120"
        assert footprint_format_version(9) == "20241229"

    def test_v9_only_fields(self):
        assert has_generator_version(9) and has_embedded_fonts(9)
        assert not has_generator_version(8)
        assert not has_embedded_fonts(8)
