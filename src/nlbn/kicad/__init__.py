"""KiCad primitive model, builders, writers and library files."""
