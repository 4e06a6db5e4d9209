from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from loguru import logger

from woodbeam_app.blocks.asce7_combinations import LoadCombination, LoadType, factored_magnitude
from woodbeam_app.blocks.wood_errors import InsufficientSupports, InvalidLoadPosition, InvalidSpan
from woodbeam_app.blocks.wood_materials import base_properties

from .constants import POSITION_TOL_FT
from .models import ContinuousBeamInput, DiscreteLoad, EngineSettings, LoadDistribution, SupportType
from .moment_distribution import MDMember, MDResult, MomentDistribution, cantilever_end_moment, fixed_end_moments
from .single_span import (
    PointLoad,
    SpanLoad,
    SpanSolution,
    Stations,
    UniformLoad,
    solve,
    solve_overhang,
    solve_with_end_moments,
    total_load,
)


@dataclass(frozen=True)
class SpanResult:
    index: int
    x_start_ft: float
    solution: SpanSolution
    stations: Stations
    overhang: Optional[str] = None

    @property
    def length_ft(self) -> float:
        return self.solution.length_ft

    def global_stations(self) -> List[float]:
        return [self.x_start_ft + x for x in self.stations]


@dataclass(frozen=True)
class Extreme:
    value: float
    x_ft: float
    span: int


@dataclass(frozen=True)
class ContinuousBeamResult:
    """Analysis of one beam under one set of span loads (typically one load combination)."""

    label: str
    spans: Tuple[SpanResult, ...]
    reactions_lb: Tuple[float, ...]
    support_moments_ftlb: Tuple[float, ...]
    support_moments_right_ftlb: Tuple[float, ...]
    moment_reactions_ftlb: Tuple[float, ...]
    rotations_rad: Tuple[float, ...]
    max_abs_moment: Extreme
    max_positive_moment: Extreme
    max_negative_moment: Extreme
    max_abs_shear: Extreme
    max_abs_deflection: Extreme
    total_load_lb: float
    md: Optional[MDResult] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "reactions_lb": list(self.reactions_lb),
            "support_moments_ftlb": list(self.support_moments_ftlb),
            "support_moments_right_ftlb": list(self.support_moments_right_ftlb),
            "moment_reactions_ftlb": list(self.moment_reactions_ftlb),
            "rotations_rad": list(self.rotations_rad),
            "max_abs_moment_ftlb": self.max_abs_moment.value,
            "max_positive_moment_ftlb": self.max_positive_moment.value,
            "max_negative_moment_ftlb": self.max_negative_moment.value,
            "max_abs_shear_lb": self.max_abs_shear.value,
            "max_abs_deflection_in": self.max_abs_deflection.value,
            "total_load_lb": self.total_load_lb,
            "md_iterations": self.md.iterations if self.md is not None else 0,
            "diagrams": [
                {
                    "span": s.index,
                    "x_ft": s.global_stations(),
                    "shear_lb": [v for _, v in s.solution.shear_diagram(s.stations)],
                    "moment_ftlb": [v for _, v in s.solution.moment_diagram(s.stations)],
                    "deflection_in": [v for _, v in s.solution.deflection_diagram(s.stations)],
                }
                for s in self.spans
            ],
        }


# -----------------------------
# Validation
# -----------------------------
def check_stability(supports: Sequence[SupportType]) -> None:
    sup = [SupportType(s) for s in supports]
    for node in range(1, len(sup) - 1):
        if sup[node] == SupportType.FREE:
            raise InsufficientSupports(f"Interior node {node} has no support", node=node)
    restraints = sum(1 for s in sup if s.restrains_vertical)
    has_fixed = any(s == SupportType.FIXED for s in sup)
    if not (restraints >= 2 or (has_fixed and restraints >= 1)):
        raise InsufficientSupports(
            "Beam is unstable: needs two vertical supports or a fixed support",
            supports=[s.value for s in sup],
        )


def check_spans(beam: ContinuousBeamInput) -> None:
    for i, s in enumerate(beam.spans):
        if not (math.isfinite(s.length_ft) and s.length_ft > 0.0):
            raise InvalidSpan(f"Span {i} length must be positive, got {s.length_ft}", span=i, length_ft=s.length_ft)
    if len(beam.supports) != len(beam.spans) + 1:
        raise InsufficientSupports(
            f"{len(beam.spans)} spans need {len(beam.spans) + 1} supports",
            spans=len(beam.spans),
            supports=len(beam.supports),
        )


# -----------------------------
# Loads -> spans
# -----------------------------
def _locate(nodes: Sequence[float], x: float) -> int:
    for i in range(len(nodes) - 1):
        if x <= nodes[i + 1] + POSITION_TOL_FT:
            return i
    return len(nodes) - 2


def distribute_load(beam: ContinuousBeamInput, load: DiscreteLoad, magnitude: float) -> List[List[SpanLoad]]:
    """Split one global load of signed ``magnitude`` into per-span local loads."""
    nodes = beam.node_positions
    total = nodes[-1]
    out: List[List[SpanLoad]] = [[] for _ in beam.spans]
    if load.distribution == LoadDistribution.POINT:
        x = float(load.position_ft)
        if x < -POSITION_TOL_FT or x > total + POSITION_TOL_FT:
            raise InvalidLoadPosition(f"Point load at {x} ft is outside the beam [0, {total}]", position_ft=x, length_ft=total)
        i = _locate(nodes, x)
        out[i].append(PointLoad(magnitude, min(beam.spans[i].length_ft, max(0.0, x - nodes[i]))))
        return out

    if load.distribution == LoadDistribution.UNIFORM:
        c, d = 0.0, total
    else:
        c, d = float(load.start_ft), float(load.end_ft)
        if c < -POSITION_TOL_FT or d > total + POSITION_TOL_FT:
            raise InvalidLoadPosition(f"Load {c}-{d} ft extends beyond the beam [0, {total}]", start_ft=c, end_ft=d, length_ft=total)
        if d < c:
            raise InvalidLoadPosition(f"Load ends ({d} ft) before it starts ({c} ft)", start_ft=c, end_ft=d)
    for i in range(len(beam.spans)):
        lo, hi = max(c, nodes[i]), min(d, nodes[i + 1])
        if hi - lo > 0.0:
            out[i].append(UniformLoad(magnitude, lo - nodes[i], hi - nodes[i]))
    return out


def self_weight_plf(beam: ContinuousBeamInput) -> List[float]:
    return [s.self_weight_plf() for s in beam.spans]


def factored_span_loads(beam: ContinuousBeamInput, combination: LoadCombination) -> List[List[SpanLoad]]:
    """Per-span local loads for one combination, with self-weight folded into D."""
    per_span: List[List[SpanLoad]] = [[] for _ in beam.spans]
    for load in beam.load_case.loads:
        mag = factored_magnitude(combination, load)
        if mag == 0.0:
            continue
        for i, loads in enumerate(distribute_load(beam, load, mag)):
            per_span[i].extend(loads)
    if beam.load_case.include_self_weight:
        f_d = combination.factor_for(LoadType.DEAD)
        if f_d != 0.0:
            for i, (span, w) in enumerate(zip(beam.spans, self_weight_plf(beam))):
                per_span[i].append(UniformLoad(f_d * w, 0.0, span.length_ft))
    return per_span


def reference_stiffness(beam: ContinuousBeamInput) -> List[float]:
    return [base_properties(s.material).e_psi * s.moment_of_inertia_in4 for s in beam.spans]


# -----------------------------
# Analysis
# -----------------------------
def _overhang_side(supports: Sequence[SupportType], i: int, n_spans: int) -> Optional[str]:
    if n_spans < 2:
        return None
    if i == 0 and supports[0] == SupportType.FREE:
        return "left"
    if i == n_spans - 1 and supports[-1] == SupportType.FREE:
        return "right"
    return None


def analyze(
    beam: ContinuousBeamInput,
    span_loads: Sequence[Sequence[SpanLoad]],
    ei_lb_in2: Optional[Sequence[float]] = None,
    settings: Optional[EngineSettings] = None,
    label: str = "",
) -> ContinuousBeamResult:
    """Solve the beam for the given per-span loads.

    One span goes to the closed-form solver; two or more use moment distribution followed by
    per-span pin-pin + end-moment superposition.
    """
    settings = settings or EngineSettings()
    check_spans(beam)
    check_stability(beam.supports)
    supports = [SupportType(s) for s in beam.supports]
    ei = list(ei_lb_in2) if ei_lb_in2 is not None else reference_stiffness(beam)
    n = len(beam.spans)
    lengths = [float(s.length_ft) for s in beam.spans]

    md_result: Optional[MDResult] = None
    solutions: List[SpanSolution] = []
    overhangs: List[Optional[str]] = [_overhang_side(supports, i, n) for i in range(n)]

    if n == 1:
        solutions.append(solve(lengths[0], (supports[0], supports[1]), span_loads[0], ei[0]))
    else:
        members = []
        for i in range(n):
            if overhangs[i] is not None:
                fl, fr = cantilever_end_moment(span_loads[i], lengths[i], "right" if overhangs[i] == "right" else "left")
            else:
                fl, fr = fixed_end_moments(span_loads[i], lengths[i], settings.fem_subdivisions)
            members.append(MDMember(lengths[i], ei[i], fl, fr, overhangs[i]))
        md = MomentDistribution(members, supports, tolerance=settings.md_tolerance, max_iterations=settings.md_max_iterations)
        md_result = md.run()
        sag = md_result.sagging_end_moments()

        by_index: Dict[int, SpanSolution] = {}
        for i in range(n):
            if overhangs[i] is None:
                by_index[i] = solve_with_end_moments(lengths[i], span_loads[i], ei[i], sag[i][0], sag[i][1])
        for i in range(n):
            side = overhangs[i]
            if side is None:
                continue
            node = i + 1 if side == "left" else i
            if supports[node] == SupportType.FIXED:
                slope = 0.0
            elif side == "left":
                slope = by_index[i + 1].slope(0.0) if (i + 1) in by_index else 0.0
            else:
                slope = by_index[i - 1].slope(lengths[i - 1]) if (i - 1) in by_index else 0.0
            by_index[i] = solve_overhang(lengths[i], span_loads[i], ei[i], free_end=side, support_slope_rad=slope)
        solutions = [by_index[i] for i in range(n)]

    nodes = beam.node_positions
    span_results = tuple(
        SpanResult(i, nodes[i], sol, sol.stations(settings.diagram_points), overhangs[i]) for i, sol in enumerate(solutions)
    )

    reactions = [0.0] * (n + 1)
    for i, sol in enumerate(solutions):
        r_l, r_r = sol.reactions
        reactions[i] += r_l
        reactions[i + 1] += r_r

    # Sagging moment just left and just right of each node; the ends read their only side.
    support_moments = [solutions[0].moment(0.0)] + [sol.moment(sol.length_ft) for sol in solutions]
    support_moments_right = [sol.moment(0.0) for sol in solutions] + [solutions[-1].moment(solutions[-1].length_ft)]
    moment_reactions = _moment_reactions(supports, solutions)
    rotations = [solutions[0].slope(0.0)] + [sol.slope(sol.length_ft) for sol in solutions]
    total = sum(total_load(ld) for sol in solutions for ld in sol.loads)

    result = ContinuousBeamResult(
        label=label or beam.label,
        spans=span_results,
        reactions_lb=tuple(reactions),
        support_moments_ftlb=tuple(support_moments),
        support_moments_right_ftlb=tuple(support_moments_right),
        moment_reactions_ftlb=tuple(moment_reactions),
        rotations_rad=tuple(rotations),
        max_abs_moment=_extreme(span_results, "moment", abs),
        max_positive_moment=_extreme(span_results, "moment", lambda v: v),
        max_negative_moment=_extreme(span_results, "moment", lambda v: -v),
        max_abs_shear=_extreme(span_results, "shear", abs),
        max_abs_deflection=_extreme(span_results, "deflection", abs),
        total_load_lb=total,
        md=md_result,
    )
    logger.debug(
        "Analysed '{}' ({} spans): Mmax={:.1f} ft-lb, Vmax={:.1f} lb, dmax={:.4f} in",
        result.label,
        n,
        result.max_abs_moment.value,
        result.max_abs_shear.value,
        result.max_abs_deflection.value,
    )
    return result


def _extreme(spans: Sequence[SpanResult], field_name: str, key) -> Extreme:
    best: Optional[Extreme] = None
    best_key = float("-inf")
    for s in spans:
        fn = getattr(s.solution, field_name)
        for x in s.stations:
            v = fn(x)
            k = key(v)
            if k > best_key:
                best_key = k
                best = Extreme(value=float(v), x_ft=s.x_start_ft + float(x), span=s.index)
    if best is None:
        return Extreme(0.0, 0.0, 0)
    # Signed extremes that never reach the requested sign report zero.
    if key(best.value) < 0.0:
        return Extreme(0.0, best.x_ft, best.span)
    return best


def _moment_reactions(supports: Sequence[SupportType], solutions: Sequence[SpanSolution]) -> List[float]:
    """Clockwise-positive couple each fixed support applies to the beam; zero elsewhere.

    The couple equals the jump in sagging moment across the node, M(right) - M(left).
    """
    n = len(solutions)
    out: List[float] = []
    for node, sup in enumerate(supports):
        if sup != SupportType.FIXED:
            out.append(0.0)
            continue
        m_left = solutions[node - 1].moment(solutions[node - 1].length_ft) if node > 0 else 0.0
        m_right = solutions[node].moment(0.0) if node < n else 0.0
        out.append(m_right - m_left)
    return out
