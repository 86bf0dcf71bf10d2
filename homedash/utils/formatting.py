"""Unit formatting helpers shared by the service normalizers."""

from typing import Optional, Union

Number = Union[int, float]

BYTE_UNITS = ["B", "KiB", "MiB", "GiB", "TiB", "PiB"]


def format_bytes(value: Optional[Number], precision: int = 2) -> str:
    """Formats a byte count with IEC (base-1024) units.

    Args:
        value: Number of bytes.
        precision: Decimal places in the rendered number.

    Returns:
        A string such as ``"1.00 KiB"``; ``"0 B"`` for zero or missing input.
    """
    if not value:
        return "0 B"
    scaled = float(value)
    index = 0
    while abs(scaled) >= 1024 and index < len(BYTE_UNITS) - 1:
        scaled /= 1024
        index += 1
    return f"{scaled:.{precision}f} {BYTE_UNITS[index]}"


def format_percent(
    part: Optional[Number],
    whole: Optional[Number],
    precision: int = 1,
    default: str = "0%",
) -> str:
    """Renders ``part / whole`` as a percentage, or ``default`` when whole is 0."""
    if not whole:
        return default
    return f"{(part or 0) / whole * 100:.{precision}f}%"


def format_ratio(value: Optional[Number], precision: int = 1) -> str:
    """Renders a 0-1 fraction as a percentage."""
    return f"{(value or 0) * 100:.{precision}f}%"
