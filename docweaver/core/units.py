"""Layout unit conversions used when writing WordprocessingML."""

TWIPS_PER_POINT = 20
LINE_UNITS_PER_LINE = 240
TWIPS_PER_INDENT_CHAR = 180
EMU_PER_PIXEL = 9525  # 96 dpi


def points_to_twips(value: float) -> int:
    """Convert typographic points to twips (1/20th of a point)."""
    return int(round(value * TWIPS_PER_POINT))


def line_spacing_to_units(multiplier: float) -> int:
    """Convert a line-height multiplier into 240ths of a line (lineRule=auto)."""
    return int(round(multiplier * LINE_UNITS_PER_LINE))


def indent_chars_to_twips(chars: float) -> int:
    """Convert a first-line indent expressed in character widths to twips."""
    return int(round(chars * TWIPS_PER_INDENT_CHAR))


def pixels_to_emu(value: int) -> int:
    return int(value * EMU_PER_PIXEL)
