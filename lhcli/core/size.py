"""Size and duration string helpers."""

import re

_SIZE_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)\s*(?:([KMGTPE])I?)?B?$")
_DURATION_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)\s*(ms|s|m|h)?$")

# Binary multipliers, smallest first
UNITS = ["K", "M", "G", "T", "P", "E"]
_MULTIPLIERS = {unit: 1024 ** (i + 1) for i, unit in enumerate(UNITS)}

_DURATION_SECONDS = {"ms": 0.001, "s": 1, "m": 60, "h": 3600}


def parse_size(size: str) -> int:
    """Parse a size string such as ``10Gi``, ``1T`` or ``512MiB`` into bytes.

    All units are binary. A bare number is a byte count.

    Args:
        size: Size string

    Returns:
        Number of bytes

    Raises:
        ValueError: If the string is not a valid size
    """
    if size is None:
        return 0
    size = str(size).strip().upper()
    if size in ("", "0"):
        return 0

    match = _SIZE_PATTERN.match(size)
    if not match:
        raise ValueError(f"invalid size format: {size}")

    value = float(match.group(1))
    unit = match.group(2)
    if not unit:
        return int(value)
    return int(value * _MULTIPLIERS[unit])


def format_size(size_bytes: int) -> str:
    """Format a byte count for humans, e.g. ``10.0 GiB``."""
    size_bytes = int(size_bytes)
    if size_bytes < 1024:
        return f"{size_bytes} B"

    div, exp = 1024, 0
    n = size_bytes // 1024
    while n >= 1024 and exp < len(UNITS) - 1:
        div *= 1024
        exp += 1
        n //= 1024
    return f"{size_bytes / div:.1f} {UNITS[exp]}iB"


def format_size_in_gi(size_bytes: int) -> str:
    """Format a byte count in Gi with two decimals."""
    return f"{int(size_bytes) / 1024 ** 3:.2f}Gi"


def to_quantity(size_bytes: int) -> str:
    """Convert a byte count back to the shortest exact quantity string.

    ``parse_size(to_quantity(n)) == n`` holds for every non-negative ``n``.
    """
    size_bytes = int(size_bytes)
    if size_bytes == 0:
        return "0"
    for unit in reversed(UNITS):
        multiplier = _MULTIPLIERS[unit]
        if size_bytes % multiplier == 0:
            return f"{size_bytes // multiplier}{unit}i"
    return str(size_bytes)


def parse_duration(text: str) -> float:
    """Parse ``500ms``, ``5s``, ``2m`` or ``1h`` into seconds.

    A bare number is taken as seconds.

    Raises:
        ValueError: If the string is not a valid duration
    """
    match = _DURATION_PATTERN.match(str(text).strip().lower())
    if not match:
        raise ValueError(f"invalid duration: {text}")
    return float(match.group(1)) * _DURATION_SECONDS[match.group(2) or "s"]
