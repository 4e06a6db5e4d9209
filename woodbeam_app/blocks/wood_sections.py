from __future__ import annotations

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, List, Mapping, Tuple

from .wood_errors import InvalidSpan


# -----------------------------
# Rectangular section properties
# -----------------------------
def rect_A(b_in: float, d_in: float) -> float:
    return b_in * d_in


def rect_S(b_in: float, d_in: float) -> float:
    return b_in * d_in**2 / 6.0


def rect_I(b_in: float, d_in: float) -> float:
    return b_in * d_in**3 / 12.0


@dataclass(frozen=True)
class RectSection:
    """Solid or built-up rectangular section bending about its strong axis."""

    width_in: float
    depth_in: float
    plies: int = 1

    @property
    def area_in2(self) -> float:
        return rect_A(self.width_in, self.depth_in)

    @property
    def section_modulus_in3(self) -> float:
        return rect_S(self.width_in, self.depth_in)

    @property
    def moment_of_inertia_in4(self) -> float:
        return rect_I(self.width_in, self.depth_in)


# -----------------------------
# Nominal lumber sizes (actual dressed dimensions, in)
# -----------------------------
_NOMINAL_ACTUAL: Dict[int, float] = {2: 1.5, 3: 2.5, 4: 3.5, 6: 5.5, 8: 7.25, 10: 9.25, 12: 11.25, 14: 13.25, 16: 15.25}
# Timbers (5" and thicker) dress 1/2" off each nominal dimension above 6".
_TIMBER_ACTUAL: Dict[int, float] = {6: 5.5, 8: 7.5, 10: 9.5, 12: 11.5, 14: 13.5, 16: 15.5}


def _actual(nominal_b: int, nominal_d: int) -> Tuple[float, float]:
    if nominal_b >= 5:
        return _TIMBER_ACTUAL[nominal_b], _TIMBER_ACTUAL[nominal_d]
    return _NOMINAL_ACTUAL[nominal_b], _NOMINAL_ACTUAL[nominal_d]


_SIZES: List[Tuple[int, int]] = (
    [(2, d) for d in (4, 6, 8, 10, 12, 14)]
    + [(3, d) for d in (4, 6, 8, 10, 12)]
    + [(4, d) for d in (4, 6, 8, 10, 12, 14, 16)]
    + [(6, d) for d in (6, 8, 10, 12, 14, 16)]
    + [(8, d) for d in (8, 10, 12, 14, 16)]
)

NOMINAL_SIZES: Mapping[str, Tuple[float, float]] = MappingProxyType({f"{b}x{d}": _actual(b, d) for b, d in _SIZES})

_SIZE_RE = re.compile(r"^\s*(?:(\d+)\s*-\s*)?(\d+)\s*[xX]\s*(\d+)\s*$")


def parse_nominal_size(text: str) -> RectSection:
    """Parse ``"2x10"`` or a built-up ``"3-2x12"`` into actual dimensions.

    Built-up sections multiply the width by the ply count.
    """
    m = _SIZE_RE.match(str(text))
    if not m:
        raise InvalidSpan(f"Unrecognised lumber size {text!r}", size=str(text))
    plies = int(m.group(1) or 1)
    key = f"{int(m.group(2))}x{int(m.group(3))}"
    if key not in NOMINAL_SIZES or plies < 1:
        raise InvalidSpan(f"Unknown nominal lumber size {text!r}", size=str(text))
    b, d = NOMINAL_SIZES[key]
    return RectSection(width_in=b * plies, depth_in=d, plies=plies)

