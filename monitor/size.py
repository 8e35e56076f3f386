# monitor/size.py
import re
from decimal import Decimal

from .errors import InvalidSizeFormat, UnknownDimension

# <number>[dimension][i], e.g. "500M", "8Gi", "1.5Ti"
SIZE_RE = re.compile(r"(?P<size>\d+(?:\.\d+)?)(?P<dim>[KMGTPE])?(?P<unit>i)?", re.ASCII)

DIMENSIONS = {"K": 1, "M": 2, "G": 3, "T": 4, "P": 5, "E": 6}


def parse_size(text: str) -> int:
    """
    Parse a human readable storage size into a number of bytes.

    A trailing "i" selects binary scaling (1Ki == 1024), otherwise the
    dimension is decimal (1K == 1000). A bare number is taken as bytes.
    The product is computed exactly and any fractional byte is truncated,
    so "1.5" is 1 and "0.5Ki" is 512.
    """
    m = SIZE_RE.fullmatch(text) if isinstance(text, str) else None
    if not m:
        raise InvalidSizeFormat(text)

    size = Decimal(m.group("size"))
    dim = m.group("dim")
    if dim:
        if dim not in DIMENSIONS:
            raise UnknownDimension(dim)
        base = 1024 if m.group("unit") == "i" else 1000
        size *= base ** DIMENSIONS[dim]
    return int(size)
