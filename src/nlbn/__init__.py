"""nlbn - convert EasyEDA/LCSC components into KiCad libraries."""

__version__ = "0.1.0"
