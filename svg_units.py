from __future__ import annotations
import math
import re
from typing import Callable

DEFAULT_DPI = 96.0
DEFAULT_UNITS = "px"
DEFAULT_FONT_SIZE = 16.0

number_pattern = re.compile(r'^([-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)\s*([a-zA-Z%]*)$')
list_separator_pattern = re.compile(r'[\s,]+')

LENGTH_UNITS = ('', 'px', 'pt', 'pc', 'mm', 'cm', 'in', '%', 'em', 'ex')

def unit_to_pixels(unit: str, dpi: float = DEFAULT_DPI) -> float:
    """Pixels in one absolute unit at the given DPI."""
    unit = unit.lower()
    if unit in ('', 'px'):
        return 1.0
    if unit == 'in':
        return dpi
    if unit == 'cm':
        return dpi / 2.54
    if unit == 'mm':
        return dpi / 25.4
    if unit == 'pt':
        return dpi / 72.0
    if unit == 'pc':
        return dpi / 6.0
    raise ValueError(f"not an absolute unit: {unit!r}")

def parse_number_with_unit(value: str) -> tuple[float, str]:
    if not isinstance(value, str):
        raise ValueError(f"not a length: {value!r}")

    match = number_pattern.match(value.strip())
    if not match:
        raise ValueError(f"not a length: {value!r}")

    num_value = float(match.group(1))
    unit = match.group(2).lower()
    if unit not in LENGTH_UNITS:
        raise ValueError(f"unknown unit in {value!r}")
    if not math.isfinite(num_value):
        raise ValueError(f"non-finite length: {value!r}")
    return (num_value, unit)

def parse_number(value: str) -> float:
    num_value, unit = parse_number_with_unit(value)
    if unit:
        raise ValueError(f"unexpected unit in {value!r}")
    return num_value

def to_pixels(value: str, dpi: float = DEFAULT_DPI, reference: float = None,
              font_size: float = DEFAULT_FONT_SIZE) -> float:
    """Convert a length like "2in", "50%" or "1.5em" to pixels.

    Percentages need `reference`, the dimension they are a fraction of.
    """
    num_value, unit = parse_number_with_unit(value)

    if unit == '%':
        if reference is None:
            raise ValueError(f"percentage without reference: {value!r}")
        return num_value / 100.0 * reference
    if unit == 'em':
        return num_value * font_size
    if unit == 'ex':
        return num_value * font_size * 0.5
    return num_value * unit_to_pixels(unit, dpi)

def parse_number_list(value: str) -> list[float]:
    if value is None:
        raise ValueError("missing number list")
    value = value.strip()
    if not value:
        return []
    return [parse_number(part) for part in list_separator_pattern.split(value) if part]

def parse_dash_array(value: str, length: Callable[[str], float] = to_pixels) -> list[float]:
    """Dash lengths, normalised so an all-zero pattern means solid.

    Odd-length lists are repeated to make them even, as SVG requires.
    """
    value = value.strip()
    if value.lower() == 'none' or not value:
        return []
    dashes = [length(part) for part in list_separator_pattern.split(value) if part]
    if any(d < 0 for d in dashes):
        raise ValueError(f"negative dash length in {value!r}")
    if sum(dashes) <= 0:
        return []
    if len(dashes) % 2 == 1:
        dashes = dashes * 2
    return dashes

def parse_view_box(value: str) -> tuple[float, float, float, float]:
    parts = parse_number_list(value)
    if len(parts) != 4:
        raise ValueError(f"viewBox needs four numbers: {value!r}")
    min_x, min_y, width, height = parts
    if width <= 0 or height <= 0:
        raise ValueError(f"viewBox with empty area: {value!r}")
    return (min_x, min_y, width, height)

def normalized_diagonal(width: float, height: float) -> float:
    # reference for percentages of lengths that are neither horizontal nor vertical
    return math.sqrt((width * width + height * height) / 2.0)
