"""Closed-form single-span beam solutions.

Every response is written in initial-parameter form (Roark Table 8.1): with R_A, M_A, theta_A
and y_A known at the left end, the fields at x follow from the Macaulay load terms

    V(x)    = R_A - FV(x)
    M(x)    = M_A + R_A x - FM(x)
    EI t(x) = EI t_A + M_A x + R_A x^2/2 - Ft(x)
    EI y(x) = EI y_A + EI t_A x + M_A x^2/2 + R_A x^3/6 - Fy(x)

x in ft, loads in lb / plf, EI in lb-in^2. y is positive upward internally; deflections are
reported positive downward.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

from woodbeam_app.blocks.wood_errors import InsufficientSupports, InvalidLoadPosition, InvalidSpan

from .constants import DEFAULT_DIAGRAM_POINTS, IN2_PER_FT2, IN3_PER_FT3, POSITION_TOL_FT, STATION_EPS_FT
from .models import SupportType


@dataclass(frozen=True)
class PointLoad:
    magnitude_lb: float
    position_ft: float


@dataclass(frozen=True)
class UniformLoad:
    """Uniform load from ``start_ft`` to ``end_ft``; ``end_ft=None`` runs to the end of the span."""

    magnitude_plf: float
    start_ft: float = 0.0
    end_ft: Optional[float] = None


SpanLoad = Union[PointLoad, UniformLoad]


class BoundaryPair(str, Enum):
    PIN_PIN = "pin-pin"
    FIXED_FIXED = "fixed-fixed"
    FIXED_PINNED = "fixed-pinned"
    PINNED_FIXED = "pinned-fixed"
    FIXED_FREE = "fixed-free"
    FREE_FIXED = "free-fixed"


def classify_supports(left: SupportType, right: SupportType) -> BoundaryPair:
    """Map an end-support pair onto a solvable boundary pair (roller counts as pinned)."""
    left, right = SupportType(left), SupportType(right)
    key = (
        "fixed" if left == SupportType.FIXED else ("free" if left == SupportType.FREE else "pinned"),
        "fixed" if right == SupportType.FIXED else ("free" if right == SupportType.FREE else "pinned"),
    )
    table = {
        ("pinned", "pinned"): BoundaryPair.PIN_PIN,
        ("fixed", "fixed"): BoundaryPair.FIXED_FIXED,
        ("fixed", "pinned"): BoundaryPair.FIXED_PINNED,
        ("pinned", "fixed"): BoundaryPair.PINNED_FIXED,
        ("fixed", "free"): BoundaryPair.FIXED_FREE,
        ("free", "fixed"): BoundaryPair.FREE_FIXED,
    }
    if key not in table:
        raise InsufficientSupports(
            f"A single span on {left.value}/{right.value} supports is unstable",
            left=left.value,
            right=right.value,
        )
    return table[key]


# -----------------------------
# Macaulay load terms
# -----------------------------
def _bracket(x: float, a: float, n: int) -> float:
    return (x - a) ** n if x > a else 0.0


def load_terms(load: Optional[SpanLoad], x: float, length_ft: float = math.inf) -> Tuple[float, float, float, float]:
    """(FV, FM, Ftheta, Fy) of one load at station x.

    A point load sitting on the right end of the span passes straight into that support, so it never
    enters the shear inside the span.
    """
    if load is None:
        return 0.0, 0.0, 0.0, 0.0
    if isinstance(load, PointLoad):
        p, a = load.magnitude_lb, load.position_ft
        step = 1.0 if (x > a or (x == a and a < length_ft)) else 0.0
        return (
            p * step,
            p * _bracket(x, a, 1),
            p * _bracket(x, a, 2) / 2.0,
            p * _bracket(x, a, 3) / 6.0,
        )
    w, c, d = load.magnitude_plf, load.start_ft, load.end_ft
    return (
        w * (_bracket(x, c, 1) - _bracket(x, d, 1)),
        w / 2.0 * (_bracket(x, c, 2) - _bracket(x, d, 2)),
        w / 6.0 * (_bracket(x, c, 3) - _bracket(x, d, 3)),
        w / 24.0 * (_bracket(x, c, 4) - _bracket(x, d, 4)),
    )


def total_load(load: Optional[SpanLoad]) -> float:
    if load is None:
        return 0.0
    if isinstance(load, PointLoad):
        return load.magnitude_lb
    return load.magnitude_plf * (load.end_ft - load.start_ft)


def reflect(load: SpanLoad, length_ft: float) -> SpanLoad:
    if isinstance(load, PointLoad):
        return PointLoad(load.magnitude_lb, length_ft - load.position_ft)
    return UniformLoad(load.magnitude_plf, length_ft - load.end_ft, length_ft - load.start_ft)


# -----------------------------
# Responses
# -----------------------------
@dataclass(frozen=True)
class LoadResponse:
    """Response of one span to one load (or to a pair of end moments when ``load`` is None).

    Initial parameters at x = 0: r_a (lb), m_a (ft-lb), ei_theta_a (lb-ft^2), ei_y_a (lb-ft^3).
    """

    load: Optional[SpanLoad]
    r_a: float
    m_a: float
    ei_theta_a: float
    ei_y_a: float = 0.0
    length_ft: float = math.inf

    def shear(self, x: float) -> float:
        return self.r_a - load_terms(self.load, x, self.length_ft)[0]

    def moment(self, x: float) -> float:
        return self.m_a + self.r_a * x - load_terms(self.load, x)[1]

    def ei_slope(self, x: float) -> float:
        return self.ei_theta_a + self.m_a * x + self.r_a * x * x / 2.0 - load_terms(self.load, x)[2]

    def ei_y(self, x: float) -> float:
        return (
            self.ei_y_a
            + self.ei_theta_a * x
            + self.m_a * x * x / 2.0
            + self.r_a * x**3 / 6.0
            - load_terms(self.load, x)[3]
        )


def _response(pair: BoundaryPair, load: SpanLoad, L: float) -> LoadResponse:
    if pair == BoundaryPair.PINNED_FIXED:
        return _mirror(_response(BoundaryPair.FIXED_PINNED, reflect(load, L), L), load, L)
    if pair == BoundaryPair.FREE_FIXED:
        return _mirror(_response(BoundaryPair.FIXED_FREE, reflect(load, L), L), load, L)

    _, fm, ft, fy = load_terms(load, L)
    if pair == BoundaryPair.PIN_PIN:
        r_a = fm / L
        return LoadResponse(load, r_a, 0.0, (fy - r_a * L**3 / 6.0) / L, length_ft=L)
    if pair == BoundaryPair.FIXED_FREE:
        r_a = total_load(load)
        return LoadResponse(load, r_a, fm - r_a * L, 0.0, length_ft=L)
    if pair == BoundaryPair.FIXED_PINNED:
        r_a = 3.0 * fm / (2.0 * L) - 3.0 * fy / L**3
        return LoadResponse(load, r_a, fm - r_a * L, 0.0, length_ft=L)
    # fixed-fixed
    r_a = 6.0 * ft / L**2 - 12.0 * fy / L**3
    return LoadResponse(load, r_a, ft / L - r_a * L / 2.0, 0.0, length_ft=L)


def _mirror(reflected: LoadResponse, load: SpanLoad, L: float) -> LoadResponse:
    # Left-end parameters of the real span are the right-end values of the reflected one.
    r_b = total_load(reflected.load) - reflected.r_a
    return LoadResponse(
        load,
        r_b,
        reflected.moment(L),
        -reflected.ei_slope(L),
        reflected.ei_y(L),
        length_ft=L,
    )


def end_moment_response(L: float, m_left: float, m_right: float) -> LoadResponse:
    """Pin-pin span carrying sagging-positive end moments M(0) = m_left, M(L) = m_right."""
    r_a = (m_right - m_left) / L
    return LoadResponse(None, r_a, m_left, (-m_left * L * L / 2.0 - r_a * L**3 / 6.0) / L, length_ft=L)


def overhang_response(load: Optional[SpanLoad], L: float, *, free_end: str, ei_theta_support: float) -> LoadResponse:
    """Statically determinate overhang hinged on a support that rotates by ``ei_theta_support``.

    ``free_end`` is "right" when the support is at x = 0, "left" when it is at x = L.
    """
    _, fm, ft, fy = load_terms(load, L)
    if free_end == "right":
        r_a = total_load(load)
        return LoadResponse(load, r_a, fm - r_a * L, ei_theta_support, length_ft=L)
    ei_theta_a = ei_theta_support + ft
    return LoadResponse(load, 0.0, 0.0, ei_theta_a, fy - ei_theta_a * L, length_ft=L)


# -----------------------------
# Stations / diagrams
# -----------------------------
@dataclass(frozen=True)
class Stations:
    """Ordered sample positions along a span; iterating twice yields the same sequence."""

    length_ft: float
    points: Tuple[float, ...]

    def __iter__(self) -> Iterator[float]:
        return iter(self.points)

    def __len__(self) -> int:
        return len(self.points)

    def as_array(self) -> np.ndarray:
        return np.asarray(self.points, dtype=float)


@dataclass(frozen=True)
class Diagram:
    """Lazily evaluated (x, value) pairs of one field over a station sequence."""

    stations: Stations
    fn: Callable[[float], float]
    units: str = ""

    def __iter__(self) -> Iterator[Tuple[float, float]]:
        for x in self.stations:
            yield x, self.fn(x)

    def to_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        xs = self.stations.as_array()
        return xs, np.array([self.fn(float(x)) for x in xs], dtype=float)

    def max(self) -> Tuple[float, float]:
        xs, vs = self.to_arrays()
        i = int(np.argmax(vs))
        return float(xs[i]), float(vs[i])

    def min(self) -> Tuple[float, float]:
        xs, vs = self.to_arrays()
        i = int(np.argmin(vs))
        return float(xs[i]), float(vs[i])

    def max_abs(self) -> Tuple[float, float]:
        xs, vs = self.to_arrays()
        i = int(np.argmax(np.abs(vs)))
        return float(xs[i]), float(vs[i])


# -----------------------------
# Solution
# -----------------------------
@dataclass(frozen=True)
class SpanSolution:
    """Superposed response of one span. Sign conventions: moment sagging +, shear left-side-up +,
    deflection downward +, reactions upward +."""

    length_ft: float
    ei_lb_in2: float
    pair: Optional[BoundaryPair]
    loads: Tuple[SpanLoad, ...]
    responses: Tuple[LoadResponse, ...]

    def shear(self, x: float) -> float:
        return sum((r.shear(x) for r in self.responses), 0.0)

    def moment(self, x: float) -> float:
        return sum((r.moment(x) for r in self.responses), 0.0)

    def slope(self, x: float) -> float:
        """Rotation (rad), counter-clockwise positive."""
        return sum((r.ei_slope(x) for r in self.responses), 0.0) * IN2_PER_FT2 / self.ei_lb_in2

    def deflection(self, x: float) -> float:
        """Deflection (in), downward positive."""
        return -sum((r.ei_y(x) for r in self.responses), 0.0) * IN3_PER_FT3 / self.ei_lb_in2

    @property
    def reactions(self) -> Tuple[float, float]:
        """(left, right) support reactions, lb."""
        r_left = sum((r.r_a for r in self.responses), 0.0)
        total = sum((total_load(ld) for ld in self.loads), 0.0)
        return r_left, total - r_left

    @property
    def end_moments(self) -> Tuple[float, float]:
        """Sagging-positive moments at x = 0 and x = L, ft-lb."""
        return self.moment(0.0), self.moment(self.length_ft)

    def breakpoints(self) -> List[float]:
        pts = {0.0, float(self.length_ft)}
        for ld in self.loads:
            if isinstance(ld, PointLoad):
                pts.add(float(ld.position_ft))
            else:
                pts.add(float(ld.start_ft))
                pts.add(float(ld.end_ft))
        return sorted(pts)

    def zero_shear_points(self) -> List[float]:
        """Interior points where V crosses zero. V is linear between breakpoints, so these are exact."""
        out: List[float] = []
        bps = self.breakpoints()
        for x0, x1 in zip(bps[:-1], bps[1:]):
            if x1 - x0 <= POSITION_TOL_FT:
                continue
            v0 = self.shear(x0)
            xm = 0.5 * (x0 + x1)
            slope = (self.shear(xm) - v0) / (xm - x0)
            v1 = v0 + slope * (x1 - x0)
            if v0 * v1 < 0.0:
                out.append(x0 - v0 / slope)
        return out

    def stations(self, resolution: int = DEFAULT_DIAGRAM_POINTS) -> Stations:
        L = float(self.length_ft)
        pts = set(np.linspace(0.0, L, max(2, int(resolution))).tolist())
        for ld in self.loads:
            if isinstance(ld, PointLoad):
                pts.add(ld.position_ft)
                if ld.position_ft - STATION_EPS_FT > 0.0:
                    pts.add(ld.position_ft - STATION_EPS_FT)
            else:
                pts.add(ld.start_ft)
                pts.add(ld.end_ft)
        pts.update(self.zero_shear_points())
        clean = sorted(min(L, max(0.0, float(p))) for p in pts)
        merged: List[float] = []
        for p in clean:
            if not merged or p - merged[-1] > 1e-12:
                merged.append(p)
        return Stations(length_ft=L, points=tuple(merged))

    def _points(self, points: Optional[Iterable[float]]) -> Stations:
        if points is None:
            return self.stations()
        if isinstance(points, Stations):
            return points
        return Stations(length_ft=self.length_ft, points=tuple(float(p) for p in points))

    def shear_diagram(self, points: Optional[Iterable[float]] = None) -> Diagram:
        return Diagram(self._points(points), self.shear, "lb")

    def moment_diagram(self, points: Optional[Iterable[float]] = None) -> Diagram:
        return Diagram(self._points(points), self.moment, "ft-lb")

    def slope_diagram(self, points: Optional[Iterable[float]] = None) -> Diagram:
        return Diagram(self._points(points), self.slope, "rad")

    def deflection_diagram(self, points: Optional[Iterable[float]] = None) -> Diagram:
        return Diagram(self._points(points), self.deflection, "in")

    def extrema(self, resolution: int = DEFAULT_DIAGRAM_POINTS) -> Dict[str, float]:
        st = self.stations(resolution)
        x_m, m = self.moment_diagram(st).max_abs()
        x_v, v = self.shear_diagram(st).max_abs()
        x_d, d = self.deflection_diagram(st).max_abs()
        _, m_pos = self.moment_diagram(st).max()
        _, m_neg = self.moment_diagram(st).min()
        return {
            "max_abs_moment_ftlb": m,
            "x_max_abs_moment_ft": x_m,
            "max_positive_moment_ftlb": max(0.0, m_pos),
            "max_negative_moment_ftlb": min(0.0, m_neg),
            "max_abs_shear_lb": v,
            "x_max_abs_shear_ft": x_v,
            "max_abs_deflection_in": d,
            "x_max_abs_deflection_ft": x_d,
        }


# -----------------------------
# Entry points
# -----------------------------
def _validate(length_ft: float, ei_lb_in2: float) -> None:
    if not (math.isfinite(length_ft) and length_ft > 0.0):
        raise InvalidSpan(f"Span length must be positive, got {length_ft}", length_ft=length_ft)
    if not (math.isfinite(ei_lb_in2) and ei_lb_in2 > 0.0):
        raise InvalidSpan(f"Flexural stiffness EI must be positive, got {ei_lb_in2}", ei_lb_in2=ei_lb_in2)


def normalize_loads(length_ft: float, loads: Sequence[SpanLoad]) -> Tuple[SpanLoad, ...]:
    """Check positions against [0, L], resolve open-ended uniform loads and drop zero-length ones."""
    L = float(length_ft)
    tol = POSITION_TOL_FT
    out: List[SpanLoad] = []
    for ld in loads:
        if isinstance(ld, PointLoad):
            a = float(ld.position_ft)
            if a < -tol or a > L + tol:
                raise InvalidLoadPosition(f"Point load at {a} ft is outside the span [0, {L}]", position_ft=a, length_ft=L)
            out.append(PointLoad(float(ld.magnitude_lb), min(L, max(0.0, a))))
            continue
        c = float(ld.start_ft)
        d = L if ld.end_ft is None else float(ld.end_ft)
        if c < -tol or d > L + tol:
            raise InvalidLoadPosition(f"Uniform load {c}-{d} ft extends beyond the span [0, {L}]", start_ft=c, end_ft=d, length_ft=L)
        if d < c:
            raise InvalidLoadPosition(f"Uniform load ends ({d} ft) before it starts ({c} ft)", start_ft=c, end_ft=d)
        c, d = max(0.0, c), min(L, d)
        if d - c <= 0.0:
            continue
        out.append(UniformLoad(float(ld.magnitude_plf), c, d))
    return tuple(out)


def solve(
    length_ft: float,
    supports: Union[BoundaryPair, Tuple[SupportType, SupportType]],
    loads: Sequence[SpanLoad],
    ei_lb_in2: float,
) -> SpanSolution:
    """Closed-form solution of one span under any mix of point and (partial) uniform loads."""
    _validate(length_ft, ei_lb_in2)
    pair = supports if isinstance(supports, BoundaryPair) else classify_supports(*supports)
    L = float(length_ft)
    clean = normalize_loads(L, loads)
    responses = tuple(_response(pair, ld, L) for ld in clean)
    return SpanSolution(length_ft=L, ei_lb_in2=float(ei_lb_in2), pair=pair, loads=clean, responses=responses)


def solve_with_end_moments(
    length_ft: float,
    loads: Sequence[SpanLoad],
    ei_lb_in2: float,
    m_left: float,
    m_right: float,
) -> SpanSolution:
    """Pin-pin span plus applied sagging-positive end moments (continuous-beam interior span)."""
    base = solve(length_ft, BoundaryPair.PIN_PIN, loads, ei_lb_in2)
    extra = end_moment_response(base.length_ft, float(m_left), float(m_right))
    return SpanSolution(
        length_ft=base.length_ft,
        ei_lb_in2=base.ei_lb_in2,
        pair=BoundaryPair.PIN_PIN,
        loads=base.loads,
        responses=base.responses + (extra,),
    )


def solve_overhang(
    length_ft: float,
    loads: Sequence[SpanLoad],
    ei_lb_in2: float,
    *,
    free_end: str,
    support_slope_rad: float = 0.0,
) -> SpanSolution:
    """Cantilever overhang rotated rigidly by the slope of the joint that carries it."""
    _validate(length_ft, ei_lb_in2)
    L = float(length_ft)
    clean = normalize_loads(L, loads)
    ei_theta = float(support_slope_rad) * float(ei_lb_in2) / IN2_PER_FT2
    if clean:
        responses = [overhang_response(clean[0], L, free_end=free_end, ei_theta_support=ei_theta)]
        responses += [overhang_response(ld, L, free_end=free_end, ei_theta_support=0.0) for ld in clean[1:]]
    else:
        responses = [overhang_response(None, L, free_end=free_end, ei_theta_support=ei_theta)]
    pair = BoundaryPair.FIXED_FREE if free_end == "right" else BoundaryPair.FREE_FIXED
    return SpanSolution(length_ft=L, ei_lb_in2=float(ei_lb_in2), pair=pair, loads=clean, responses=tuple(responses))
