"""Shared formatting utilities for KiCad file output."""
import uuid as _uuid_mod


def gen_uuid() -> str:
    """Generate a random UUID string for KiCad elements."""
    return str(_uuid_mod.uuid4())


def fmt_float(v: float) -> str:
    """Format a float for KiCad S-expression output.

    Returns integers without decimals, otherwise up to 6 decimal places
    with trailing zeros stripped. Negative zero is written as ``0``.
    """
    if v == int(v) and abs(v) < 1e10:
        return str(int(v))
    text = f"{v:.6f}".rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


def fmt_mil(v: float) -> int:
    """Round a legacy-format coordinate to whole mils."""
    return int(round(v))


def escape_sexpr(s: str) -> str:
    """Escape special characters for S-expression string values."""
    return s.replace("\\", "\\\\").replace('"', '\\"').replace("\n", " ")


def escape_legacy(s: str) -> str:
    """Make a string safe for a legacy symbol library field.

    Legacy fields are space separated, so whitespace inside names is replaced
    and an empty value becomes ``~``.
    """
    s = s.replace('"', "'").replace("\n", " ").strip()
    if not s:
        return "~"
    return s.replace(" ", "_")
