"""KiCad version constants and format helpers.

Encapsulates the differences between the legacy KiCad 5 formats and the
S-expression formats of KiCad 8 and 9 so that writers and library management
code can target any of them cleanly.
"""

# Supported major versions
KICAD_V5 = 5
KICAD_V8 = 8
KICAD_V9 = 9
DEFAULT_KICAD_VERSION = KICAD_V9
SUPPORTED_VERSIONS = (KICAD_V5, KICAD_V8, KICAD_V9)

# S-expression version stamps per major KiCad version
_SYMBOL_FORMAT_VERSIONS = {
    KICAD_V8: "20231120",
    KICAD_V9: "20241209",
}

_FOOTPRINT_FORMAT_VERSIONS = {
    KICAD_V8: "20240108",
    KICAD_V9: "20241229",
}


def validate_kicad_version(version: int) -> int:
    """Validate and return a KiCad major version number.

    Raises ValueError if the version is not supported.
    """
    if version not in SUPPORTED_VERSIONS:
        raise ValueError(f"Unsupported KiCad version: {version}. Supported: {SUPPORTED_VERSIONS}")
    return version


def is_legacy(kicad_version: int = DEFAULT_KICAD_VERSION) -> bool:
    """Whether the version uses the KiCad 5 .lib / (module ...) formats."""
    return kicad_version <= KICAD_V5


def symbol_format_version(kicad_version: int = DEFAULT_KICAD_VERSION) -> str:
    """Return the symbol library format version string for a KiCad version."""
    return _SYMBOL_FORMAT_VERSIONS[kicad_version]


def footprint_format_version(kicad_version: int = DEFAULT_KICAD_VERSION) -> str:
    """Return the footprint format version string for a KiCad version."""
    return _FOOTPRINT_FORMAT_VERSIONS[kicad_version]


def has_generator_version(kicad_version: int = DEFAULT_KICAD_VERSION) -> bool:
    """Whether the format includes a (generator_version ...) field."""
    return kicad_version >= KICAD_V9


def has_embedded_fonts(kicad_version: int = DEFAULT_KICAD_VERSION) -> bool:
    """Whether the footprint format includes (embedded_fonts no)."""
    return kicad_version >= KICAD_V9


def symbol_lib_extension(kicad_version: int = DEFAULT_KICAD_VERSION) -> str:
    """Return the symbol library file extension for a KiCad version."""
    return ".lib" if is_legacy(kicad_version) else ".kicad_sym"
