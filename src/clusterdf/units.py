"""Size formatting (SI, binary, bytes) and parsing of size literals."""

import re
from enum import Enum

from .errors import ParseUnitsError

_PREFIXES = ["", "K", "M", "G", "T", "P", "E"]

_SIZE_RE = re.compile(r"^\s*(?P<num>\d+(?:\.\d+)?)\s*(?P<prefix>[kKmMgGtTpPeE]?)(?P<bin>i?)[bB]?\s*$")


class Units(str, Enum):
    SI = "SI"
    BINARY = "binary"
    BYTES = "bytes"

    @classmethod
    def parse(cls, text: str) -> "Units":
        for units in cls:
            if units.value.lower() == text.lower():
                return units
        raise ParseUnitsError(f"{text!r} is not a unit system; use SI, binary or bytes")

    def fmt(self, n: int) -> str:
        if self == Units.BYTES:
            return str(n)
        base = 1024 if self == Units.BINARY else 1000
        suffix = "i" if self == Units.BINARY else ""
        if n < base:
            return str(n)
        value = float(n)
        exp = 0
        while value >= base and exp < len(_PREFIXES) - 1:
            value /= base
            exp += 1
        if value < 10:
            text = f"{value:.1f}"
        else:
            text = f"{value:.0f}"
        return f"{text}{_PREFIXES[exp]}{suffix}"


def parse_size(text: str) -> int:
    """'100G' -> 100*1000^3, '4Ti' / '4TiB' -> 4*1024^4, '512' -> 512."""
    m = _SIZE_RE.match(text)
    if not m:
        raise ValueError(f"{text!r} is not a size")
    base = 1024 if m.group("bin") else 1000
    exp = _PREFIXES.index(m.group("prefix").upper())
    return int(float(m.group("num")) * base ** exp)
