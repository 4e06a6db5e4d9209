from __future__ import annotations

import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

import pandas as pd
from loguru import logger

from woodbeam_app.blocks.asce7_combinations import DesignMethod, LoadCombination, LoadType, combinations, load_types_in
from woodbeam_app.blocks.nds_factors import (
    AdjustedValue,
    adjusted_bending,
    adjusted_modulus,
    adjusted_shear,
)
from woodbeam_app.blocks.wood_materials import base_properties, display_name, fb_for_depth

from .calc_trace import CalcTrace, CalcVar, UnityCheck, code_ref, compute_step, derived_ref, table_ref
from .constants import (
    IN_PER_FT,
    REF_ADJUSTMENTS,
    REF_BENDING,
    REF_COMBINATIONS_ASD,
    REF_COMBINATIONS_LRFD,
    REF_DEFLECTION,
    REF_SELF_WEIGHT,
    REF_SHEAR,
    UNITY_TOLERANCE,
)
from .continuous_beam import ContinuousBeamResult, analyze, factored_span_loads
from .models import ContinuousBeamInput, EngineSettings


def util_ratio(demand: float, capacity: float) -> float:
    if capacity <= 0.0:
        return float("inf") if demand > 0.0 else 0.0
    return float(demand) / float(capacity)


# -----------------------------
# Result records
# -----------------------------
@dataclass(frozen=True)
class SpanCapacity:
    fb_positive: AdjustedValue
    fb_negative: AdjustedValue
    fv: AdjustedValue


@dataclass(frozen=True)
class SpanCheck:
    """Demand/capacity of one span under one combination."""

    span: int
    m_pos_ftlb: float
    m_neg_ftlb: float
    v_max_lb: float
    defl_max_in: float
    fb_pos_psi: float
    fb_neg_psi: float
    fv_psi: float
    fb_pos_allow_psi: float
    fb_neg_allow_psi: float
    fv_allow_psi: float
    defl_allow_in: float
    bending_unity: float
    shear_unity: float
    deflection_unity: float
    capacity: SpanCapacity


@dataclass(frozen=True)
class CombinationCheck:
    combination: LoadCombination
    analysis: ContinuousBeamResult
    spans: Tuple[SpanCheck, ...]

    def governing_span(self, check: str) -> SpanCheck:
        attr = f"{check}_unity"
        best = self.spans[0]
        for s in self.spans[1:]:
            if getattr(s, attr) > getattr(best, attr):
                best = s
        return best


@dataclass(frozen=True)
class GoverningCheck:
    name: str
    unity: float
    demand: float
    capacity: float
    units: str
    combination: str
    span: int
    detail: str = ""

    @property
    def passed(self) -> bool:
        return self.unity <= 1.0 + UNITY_TOLERANCE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "unity": self.unity,
            "demand": self.demand,
            "capacity": self.capacity,
            "units": self.units,
            "combination": self.combination,
            "span": self.span,
            "detail": self.detail,
            "pass": self.passed,
        }


@dataclass(frozen=True)
class ReactionEnvelope:
    node: int
    min_lb: float
    min_combination: str
    max_lb: float
    max_combination: str


@dataclass(frozen=True)
class BeamDesignResult:
    label: str
    method: DesignMethod
    combinations: Tuple[CombinationCheck, ...]
    governing: Mapping[str, GoverningCheck]
    reactions: Tuple[ReactionEnvelope, ...]
    self_weight_plf: Tuple[float, ...]
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "governing", MappingProxyType(dict(self.governing)))

    @property
    def passed(self) -> bool:
        return all(g.passed for g in self.governing.values())

    def combination(self, name: str) -> CombinationCheck:
        for c in self.combinations:
            if c.combination.name == name:
                return c
        raise KeyError(name)

    def summary_table(self) -> pd.DataFrame:
        rows = []
        for c in self.combinations:
            gb = c.governing_span("bending")
            gv = c.governing_span("shear")
            gd = c.governing_span("deflection")
            rows.append(
                {
                    "combination": c.combination.name,
                    "equation": c.combination.equation,
                    "M_max_ftlb": c.analysis.max_abs_moment.value,
                    "V_max_lb": c.analysis.max_abs_shear.value,
                    "defl_max_in": c.analysis.max_abs_deflection.value,
                    "bending_unity": gb.bending_unity,
                    "shear_unity": gv.shear_unity,
                    "deflection_unity": gd.deflection_unity,
                }
            )
        return pd.DataFrame(rows)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "method": self.method,
            "pass": self.passed,
            "governing": {k: v.to_dict() for k, v in self.governing.items()},
            "reactions": [
                {
                    "node": r.node,
                    "min_lb": r.min_lb,
                    "min_combination": r.min_combination,
                    "max_lb": r.max_lb,
                    "max_combination": r.max_combination,
                }
                for r in self.reactions
            ],
            "self_weight_plf": list(self.self_weight_plf),
            "combinations": self.summary_table().to_dict(orient="records"),
            "warnings": list(self.warnings),
        }


# -----------------------------
# Check
# -----------------------------
def _span_extremes(analysis: ContinuousBeamResult, i: int) -> Tuple[float, float, float, float]:
    s = analysis.spans[i]
    _, m_pos = s.solution.moment_diagram(s.stations).max()
    _, m_neg = s.solution.moment_diagram(s.stations).min()
    _, v = s.solution.shear_diagram(s.stations).max_abs()
    _, d = s.solution.deflection_diagram(s.stations).max_abs()
    return max(0.0, m_pos), min(0.0, m_neg), abs(v), abs(d)


def present_load_types(beam: ContinuousBeamInput) -> Set[LoadType]:
    present = load_types_in(beam.load_case)
    if beam.load_case.include_self_weight:
        present.add(LoadType.DEAD)
    return present


def span_capacity(
    beam: ContinuousBeamInput,
    i: int,
    method: DesignMethod,
    combination: Optional[LoadCombination],
    load_types: Optional[Set[LoadType]] = None,
) -> SpanCapacity:
    span = beam.spans[i]
    props = base_properties(span.material)
    factors = beam.adjustment_factors
    geom = span.geometry()
    kw = dict(method=method, combination=combination, load_types=load_types)
    return SpanCapacity(
        fb_positive=adjusted_bending(fb_for_depth(span.material, span.depth_in), factors, geom, e_min_psi=props.e_min_psi, **kw),
        fb_negative=adjusted_bending(
            fb_for_depth(span.material, span.depth_in, negative=True), factors, geom, e_min_psi=props.e_min_psi, **kw
        ),
        fv=adjusted_shear(props.fv_psi, factors, **kw),
    )


def check_beam(
    beam: ContinuousBeamInput,
    method: DesignMethod = "ASD",
    settings: Optional[EngineSettings] = None,
    log: Any = None,
) -> BeamDesignResult:
    """Analyse every load combination and pick the governing bending, shear and deflection checks."""
    settings = settings or EngineSettings()
    log = log or logger
    combos = combinations(beam.load_case, method)
    present = present_load_types(beam)

    e_adj = [adjusted_modulus(base_properties(s.material).e_psi, beam.adjustment_factors) for s in beam.spans]
    ei = [e.value_psi * s.moment_of_inertia_in4 for e, s in zip(e_adj, beam.spans)]
    sw = tuple(s.self_weight_plf() for s in beam.spans)

    log.info(f"Checking '{beam.label}': {len(beam.spans)} span(s), {len(combos)} {method} combinations")

    checks: List[CombinationCheck] = []
    governing: Dict[str, GoverningCheck] = {}
    warnings: List[str] = []
    n_nodes = len(beam.spans) + 1
    r_min: List[Tuple[float, str]] = [(math.inf, "")] * n_nodes
    r_max: List[Tuple[float, str]] = [(-math.inf, "")] * n_nodes

    for combo in combos:
        analysis = analyze(beam, factored_span_loads(beam, combo), ei, settings, label=combo.name)
        span_checks: List[SpanCheck] = []
        for i, span in enumerate(beam.spans):
            cap = span_capacity(beam, i, method, combo, present)
            for w in cap.fb_positive.warnings:
                if w not in warnings:
                    warnings.append(w)
            m_pos, m_neg, v, d = _span_extremes(analysis, i)
            fb_pos = m_pos * IN_PER_FT / span.section_modulus_in3
            fb_neg = abs(m_neg) * IN_PER_FT / span.section_modulus_in3
            fv = 1.5 * v / span.area_in2
            d_allow = span.length_ft * IN_PER_FT / settings.deflection_limit
            sc = SpanCheck(
                span=i,
                m_pos_ftlb=m_pos,
                m_neg_ftlb=m_neg,
                v_max_lb=v,
                defl_max_in=d,
                fb_pos_psi=fb_pos,
                fb_neg_psi=fb_neg,
                fv_psi=fv,
                fb_pos_allow_psi=cap.fb_positive.value_psi,
                fb_neg_allow_psi=cap.fb_negative.value_psi,
                fv_allow_psi=cap.fv.value_psi,
                defl_allow_in=d_allow,
                bending_unity=max(
                    util_ratio(fb_pos, cap.fb_positive.value_psi), util_ratio(fb_neg, cap.fb_negative.value_psi)
                ),
                shear_unity=util_ratio(fv, cap.fv.value_psi),
                deflection_unity=util_ratio(d, d_allow),
                capacity=cap,
            )
            span_checks.append(sc)
            _track(governing, "bending", sc, combo.name)
            _track(governing, "shear", sc, combo.name)
            _track(governing, "deflection", sc, combo.name)

        for node, r in enumerate(analysis.reactions_lb):
            if r < r_min[node][0]:
                r_min[node] = (r, combo.name)
            if r > r_max[node][0]:
                r_max[node] = (r, combo.name)
        checks.append(CombinationCheck(combination=combo, analysis=analysis, spans=tuple(span_checks)))
        log.debug(
            f"{combo.name}: M={analysis.max_abs_moment.value:.1f} ft-lb, V={analysis.max_abs_shear.value:.1f} lb, "
            f"d={analysis.max_abs_deflection.value:.4f} in"
        )

    reactions = tuple(
        ReactionEnvelope(node=n, min_lb=r_min[n][0], min_combination=r_min[n][1], max_lb=r_max[n][0], max_combination=r_max[n][1])
        for n in range(n_nodes)
    )
    result = BeamDesignResult(
        label=beam.label,
        method=method,
        combinations=tuple(checks),
        governing=governing,
        reactions=reactions,
        self_weight_plf=sw,
        warnings=tuple(warnings),
    )
    for g in governing.values():
        log.info(f"{g.name}: unity {g.unity:.3f} ({g.combination}, span {g.span}) -> {'OK' if g.passed else 'NG'}")
    return result


def _track(governing: Dict[str, GoverningCheck], name: str, sc: SpanCheck, combo_name: str) -> None:
    if name == "bending":
        use_neg = util_ratio(sc.fb_neg_psi, sc.fb_neg_allow_psi) > util_ratio(sc.fb_pos_psi, sc.fb_pos_allow_psi)
        demand = sc.fb_neg_psi if use_neg else sc.fb_pos_psi
        capacity = sc.fb_neg_allow_psi if use_neg else sc.fb_pos_allow_psi
        unity, units = sc.bending_unity, "psi"
        detail = "negative moment" if use_neg else "positive moment"
    elif name == "shear":
        demand, capacity, unity, units = sc.fv_psi, sc.fv_allow_psi, sc.shear_unity, "psi"
        detail = ""
    else:
        demand, capacity, unity, units = sc.defl_max_in, sc.defl_allow_in, sc.deflection_unity, "in"
        detail = ""
    current = governing.get(name)
    # Strictly greater: ties keep the earlier combination.
    if current is None or unity > current.unity:
        governing[name] = GoverningCheck(name, unity, demand, capacity, units, combo_name, sc.span, detail)


# -----------------------------
# Calculation trace
# -----------------------------
_RECT = derived_ref("Rectangular section")


def trace_design(trace: CalcTrace, beam: ContinuousBeamInput, result: BeamDesignResult, settings: EngineSettings) -> None:
    """Record section properties, adjustment factors and the governing checks."""
    ref_combos = REF_COMBINATIONS_ASD if result.method == "ASD" else REF_COMBINATIONS_LRFD
    for i, span in enumerate(beam.spans):
        sec = f"Span {i + 1} section ({display_name(span.material)}, {span.width_in:g} x {span.depth_in:g} in)"
        dims = [CalcVar("b", "Width", span.width_in, "in"), CalcVar("d", "Depth", span.depth_in, "in")]
        props = (
            ("A", "Area", "A = b d", "in^2", span.area_in2),
            ("S", "Section modulus", "S = b d^2 / 6", "in^3", span.section_modulus_in3),
            ("I", "Moment of inertia", "I = b d^3 / 12", "in^4", span.moment_of_inertia_in4),
        )
        for symbol, title, equation, units, value in props:
            compute_step(
                trace, id=f"S{i + 1}.{symbol}", section=sec, title=title, output_symbol=symbol, equation=equation,
                variables=dims, compute_fn=lambda value=value: value, units=units, references=[_RECT], span=i,
            )
        if beam.load_case.include_self_weight:
            compute_step(
                trace, id=f"S{i + 1}.SW", section=sec, title="Self-weight", output_symbol="w_sw",
                equation="w_sw = rho A / 144",
                variables=[
                    CalcVar("rho", "Density", base_properties(span.material).density_pcf, "pcf"),
                    CalcVar("A", "Area", span.area_in2, "in^2"),
                ],
                compute_fn=lambda i=i: result.self_weight_plf[i], units="plf",
                references=[code_ref(REF_SELF_WEIGHT)], span=i,
            )

    checks_meta = {
        "bending": ("f_b", "f_b = M (12) / S", REF_BENDING, "Bending (fb <= Fb')"),
        "shear": ("f_v", "f_v = 1.5 V / A", REF_SHEAR, "Shear (fv <= Fv')"),
        "deflection": ("delta", f"delta <= L / {settings.deflection_limit:g}", REF_DEFLECTION, f"Deflection (delta <= L/{settings.deflection_limit:g})"),
    }
    for name, g in result.governing.items():
        symbol, equation, ref, label = checks_meta[name]
        sc = result.combination(g.combination).spans[g.span]
        step_warnings: List[str] = []
        if name == "bending":
            adj = sc.capacity.fb_negative if g.detail == "negative moment" else sc.capacity.fb_positive
            step_warnings = list(adj.warnings)
            _trace_adjusted(trace, f"G.{name}.cap", "Fb'", adj, g)
        elif name == "shear":
            _trace_adjusted(trace, f"G.{name}.cap", "Fv'", sc.capacity.fv, g)
        compute_step(
            trace,
            id=f"G.{name}",
            section="Governing checks",
            title=f"{name.capitalize()} ({g.combination}, span {g.span + 1})",
            output_symbol=symbol,
            equation=equation,
            variables=[CalcVar("demand", "Demand", g.demand, g.units), CalcVar("capacity", "Capacity", g.capacity, g.units)],
            compute_fn=lambda g=g: g.demand,
            units=g.units,
            references=[code_ref(ref), code_ref(ref_combos)],
            combination=g.combination,
            span=g.span,
            checks=[UnityCheck(label, g.demand, g.capacity, g.unity, g.units, g.passed)],
            warnings=step_warnings,
        )

    trace.tables["combinations"] = result.summary_table().to_dict(orient="records")
    trace.tables["reactions"] = [
        {"node": r.node, "min_lb": r.min_lb, "min_combination": r.min_combination, "max_lb": r.max_lb, "max_combination": r.max_combination}
        for r in result.reactions
    ]
    trace.summary = {
        "pass": result.passed,
        "governing": {k: v.to_dict() for k, v in result.governing.items()},
    }


def _trace_adjusted(trace: CalcTrace, step_id: str, symbol: str, adj: AdjustedValue, g: GoverningCheck) -> None:
    base = symbol.rstrip("'")
    variables = [CalcVar(base, "Reference design value", adj.reference_psi, "psi")]
    variables += [CalcVar(f.symbol, f.note or f.symbol, f.value) for f in adj.factors]
    compute_step(
        trace,
        id=step_id,
        section="Adjusted design values",
        title=f"{symbol} for {g.combination}",
        output_symbol=symbol,
        equation=f"{symbol} = {base} " + " ".join(f.symbol for f in adj.factors),
        variables=variables,
        compute_fn=lambda: adj.value_psi,
        units="psi",
        references=[code_ref(REF_ADJUSTMENTS)] + [table_ref(f.reference) for f in adj.factors if f.reference],
        combination=g.combination,
        span=g.span,
        warnings=adj.warnings,
    )
