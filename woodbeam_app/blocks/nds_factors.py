from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import AbstractSet, Any, Dict, List, Mapping, Optional, Tuple

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from .asce7_combinations import DesignMethod, LoadCombination, LoadType
from .wood_errors import MaterialPropertyMissing


class LoadDuration(str, Enum):
    PERMANENT = "permanent"
    NORMAL = "normal"
    SNOW = "snow"
    CONSTRUCTION = "construction"
    WIND_SEISMIC = "wind_seismic"
    IMPACT = "impact"
    AUTO = "auto"


class WetService(str, Enum):
    DRY = "dry"
    WET = "wet"


class Temperature(str, Enum):
    NORMAL = "normal"  # T <= 100 F
    ELEVATED = "elevated"  # 100 F < T <= 125 F
    HIGH = "high"  # 125 F < T <= 150 F


class Incising(str, Enum):
    NONE = "none"
    INCISED = "incised"


class RepetitiveMember(str, Enum):
    SINGLE = "single"
    REPETITIVE = "repetitive"


class FlatUse(str, Enum):
    EDGEWISE = "edgewise"
    FLATWISE = "flatwise"


# NDS Table 2.3.2
LOAD_DURATION_CD: Mapping[LoadDuration, float] = MappingProxyType(
    {
        LoadDuration.PERMANENT: 0.9,
        LoadDuration.NORMAL: 1.0,
        LoadDuration.SNOW: 1.15,
        LoadDuration.CONSTRUCTION: 1.25,
        LoadDuration.WIND_SEISMIC: 1.6,
        LoadDuration.IMPACT: 2.0,
    }
)

# Duration class assigned to each load type when C_D is derived per combination.
LOAD_TYPE_DURATION: Mapping[LoadType, LoadDuration] = MappingProxyType(
    {
        LoadType.DEAD: LoadDuration.PERMANENT,
        LoadType.LIVE: LoadDuration.NORMAL,
        LoadType.SNOW: LoadDuration.SNOW,
        LoadType.ROOF_LIVE: LoadDuration.CONSTRUCTION,
        LoadType.RAIN: LoadDuration.CONSTRUCTION,
        LoadType.WIND: LoadDuration.WIND_SEISMIC,
        LoadType.SEISMIC: LoadDuration.WIND_SEISMIC,
        LoadType.EARTH: LoadDuration.PERMANENT,
    }
)

# NDS Supplement Table 4A footnotes (wet service)
WET_SERVICE_CM: Mapping[str, float] = MappingProxyType({"Fb": 0.85, "Fv": 0.97, "E": 0.9, "Emin": 0.9})
WET_FB_THRESHOLD_PSI = 1150.0

# NDS Table 2.3.3: (dry, wet) per temperature band
_CT_STRENGTH: Dict[Temperature, Tuple[float, float]] = {
    Temperature.NORMAL: (1.0, 1.0),
    Temperature.ELEVATED: (0.8, 0.7),
    Temperature.HIGH: (0.7, 0.5),
}
_CT_MODULUS: Dict[Temperature, float] = {
    Temperature.NORMAL: 1.0,
    Temperature.ELEVATED: 0.9,
    Temperature.HIGH: 0.9,
}

# NDS Table 4.3.8
INCISING_CI: Mapping[str, float] = MappingProxyType({"Fb": 0.80, "Fv": 0.80, "E": 0.95, "Emin": 0.95})

# NDS 4.3.9
REPETITIVE_CR = 1.15

# NDS Appendix N (LRFD format conversion and resistance factors)
FORMAT_KF: Mapping[str, float] = MappingProxyType({"Fb": 2.54, "Fv": 2.88, "Emin": 1.76})
RESISTANCE_PHI: Mapping[str, float] = MappingProxyType({"Fb": 0.85, "Fv": 0.75, "Emin": 0.85})

# NDS 3.3.3
RB_LIMIT = 50.0
KBE = 1.20  # 1.20 E'min / R_B^2 (E'min already carries the 1.66 safety factor)


class AdjustmentFactors(BaseModel):
    """Service-condition selections. Numeric C-values are derived from these, never stored."""

    model_config = ConfigDict(frozen=True)

    load_duration: LoadDuration = Field(
        default=LoadDuration.AUTO,
        description="Load duration class for C_D. 'auto' takes the shortest-duration load in each combination.",
    )
    wet_service: WetService = Field(default=WetService.DRY, description="Moisture content in service (C_M).")
    temperature: Temperature = Field(default=Temperature.NORMAL, description="Sustained temperature band (C_t).")
    incising: Incising = Field(default=Incising.NONE, description="Incised for preservative treatment (C_i).")
    repetitive_member: RepetitiveMember = Field(
        default=RepetitiveMember.SINGLE,
        description="Three or more members at <= 24 in o.c. joined by load-distributing elements (C_r).",
    )
    flat_use: FlatUse = Field(default=FlatUse.EDGEWISE, description="Bending orientation (C_fu).")
    compression_edge_braced: bool = Field(
        default=True,
        description="Compression edge continuously braced; C_L = 1.0 when True.",
    )
    unbraced_length_ft: Optional[float] = Field(
        default=None,
        gt=0.0,
        description="Unbraced length of the compression edge; defaults to the span length.",
    )


@dataclass(frozen=True)
class MemberGeometry:
    width_in: float
    depth_in: float
    span_ft: float
    plies: int = 1
    sawn: bool = True

    @property
    def ply_thickness_in(self) -> float:
        return self.width_in / max(1, int(self.plies))


@dataclass(frozen=True)
class AppliedFactor:
    symbol: str
    value: float
    reference: str = ""
    note: str = ""


@dataclass(frozen=True)
class AdjustedValue:
    """Adjusted design value with the ordered factor breakdown that produced it."""

    reference_psi: float
    value_psi: float
    factors: Tuple[AppliedFactor, ...]
    warnings: Tuple[str, ...] = ()

    def factor(self, symbol: str) -> float:
        for f in self.factors:
            if f.symbol == symbol:
                return f.value
        return 1.0

    @property
    def product(self) -> float:
        return math.prod(f.value for f in self.factors)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reference_psi": self.reference_psi,
            "value_psi": self.value_psi,
            "factors": [
                {"symbol": f.symbol, "value": f.value, "reference": f.reference, "note": f.note} for f in self.factors
            ],
            "warnings": list(self.warnings),
        }


def _compose(reference: float, factors: List[AppliedFactor], warnings: Optional[List[str]] = None) -> AdjustedValue:
    value = float(reference)
    for f in factors:
        value *= f.value
    return AdjustedValue(
        reference_psi=float(reference),
        value_psi=value,
        factors=tuple(factors),
        warnings=tuple(warnings or ()),
    )


def _require(value: float, name: str) -> float:
    if value is None or not math.isfinite(float(value)) or float(value) <= 0.0:
        raise MaterialPropertyMissing(f"Reference design value {name} is missing or not positive", property=name)
    return float(value)


# -----------------------------
# Individual factors
# -----------------------------
def _active_factors(combination: LoadCombination, load_types: Optional[AbstractSet[LoadType]]) -> Dict[LoadType, float]:
    return {
        lt: f for lt, f in combination.factors.items() if f != 0.0 and (load_types is None or lt in load_types)
    }


def duration_for_combination(
    combination: LoadCombination, load_types: Optional[AbstractSet[LoadType]] = None
) -> LoadDuration:
    """Shortest-duration class among the loads the combination carries.

    ``load_types`` restricts the search to load types actually present in the load case.
    """
    best = None
    for lt in _active_factors(combination, load_types):
        dur = LOAD_TYPE_DURATION[lt]
        if best is None or LOAD_DURATION_CD[dur] > LOAD_DURATION_CD[best]:
            best = dur
    return best if best is not None else LoadDuration.NORMAL


def load_duration_factor(
    factors: AdjustmentFactors,
    combination: Optional[LoadCombination] = None,
    load_types: Optional[AbstractSet[LoadType]] = None,
) -> AppliedFactor:
    dur = factors.load_duration
    note = dur.value
    if dur == LoadDuration.AUTO:
        dur = duration_for_combination(combination, load_types) if combination is not None else LoadDuration.NORMAL
        note = f"auto: {dur.value}" + (f" ({combination.name})" if combination is not None else "")
    return AppliedFactor("C_D", LOAD_DURATION_CD[dur], "NDS Table 2.3.2", note)


def time_effect_for_combination(
    combination: Optional[LoadCombination], load_types: Optional[AbstractSet[LoadType]] = None
) -> float:
    """LRFD time effect factor lambda (NDS Table N3)."""
    if combination is None:
        return 0.8
    active = _active_factors(combination, load_types)
    if set(active) == {LoadType.DEAD}:
        return 0.6
    for lt in (LoadType.WIND, LoadType.SEISMIC):
        if abs(active.get(lt, 0.0)) >= 1.0:
            return 1.0
    return 0.8


def wet_service_factor(
    prop: str, factors: AdjustmentFactors, *, fb_cf_psi: Optional[float] = None, sawn: bool = True
) -> AppliedFactor:
    if factors.wet_service == WetService.DRY:
        return AppliedFactor("C_M", 1.0, "NDS Supplement Table 4A", "dry service")
    if prop == "Fb" and sawn and fb_cf_psi is not None and fb_cf_psi <= WET_FB_THRESHOLD_PSI:
        return AppliedFactor("C_M", 1.0, "NDS Supplement Table 4A", "wet, Fb*C_F <= 1150 psi")
    return AppliedFactor("C_M", WET_SERVICE_CM[prop], "NDS Supplement Table 4A", "wet service")


def temperature_factor(prop: str, factors: AdjustmentFactors) -> AppliedFactor:
    if prop in ("E", "Emin"):
        value = _CT_MODULUS[factors.temperature]
    else:
        dry, wet = _CT_STRENGTH[factors.temperature]
        value = wet if factors.wet_service == WetService.WET else dry
    return AppliedFactor("C_t", value, "NDS Table 2.3.3", factors.temperature.value)


def incising_factor(prop: str, factors: AdjustmentFactors) -> AppliedFactor:
    if factors.incising == Incising.NONE:
        return AppliedFactor("C_i", 1.0, "NDS Table 4.3.8", "not incised")
    return AppliedFactor("C_i", INCISING_CI[prop], "NDS Table 4.3.8", "incised")


def repetitive_member_factor(factors: AdjustmentFactors, geometry: MemberGeometry) -> AppliedFactor:
    if factors.repetitive_member == RepetitiveMember.REPETITIVE and geometry.sawn:
        return AppliedFactor("C_r", REPETITIVE_CR, "NDS 4.3.9", "repetitive member")
    return AppliedFactor("C_r", 1.0, "NDS 4.3.9", "single member")


def flat_use_factor(factors: AdjustmentFactors, geometry: MemberGeometry) -> AppliedFactor:
    if factors.flat_use == FlatUse.EDGEWISE:
        return AppliedFactor("C_fu", 1.0, "NDS Supplement Table 4A", "edgewise")
    b = geometry.width_in
    if b <= 1.5:
        value = 1.0
    elif b <= 2.5:
        value = 1.04
    elif b <= 3.5:
        value = 1.10
    else:
        value = 1.15
    return AppliedFactor("C_fu", value, "NDS Supplement Table 4A", f"flatwise, b = {b:g} in")


# NDS Supplement Table 4A size factors for Fb; (2" & 3" thick, 4" thick) by nominal depth.
_SIZE_FACTOR_FB: Tuple[Tuple[float, float, float], ...] = (
    (3.5, 1.5, 1.5),  # 2", 3", 4"
    (4.5, 1.4, 1.4),  # 5"
    (5.5, 1.3, 1.3),  # 6"
    (7.25, 1.2, 1.3),  # 8"
    (9.25, 1.1, 1.2),  # 10"
    (11.25, 1.0, 1.1),  # 12"
)
_SIZE_FACTOR_FB_DEEP = (0.9, 1.0)  # 14" and wider


def size_factor(geometry: MemberGeometry) -> AppliedFactor:
    """C_F for bending. Dimension lumber by table; beams & stringers by (12/d)^(1/9)."""
    if not geometry.sawn:
        return AppliedFactor("C_F", 1.0, "NDS 4.3.6", "engineered product")
    d = geometry.depth_in
    t = geometry.ply_thickness_in
    if t > 4.0:
        value = (12.0 / d) ** (1.0 / 9.0) if d > 12.0 else 1.0
        return AppliedFactor("C_F", value, "NDS 4.3.6.2", "timber, (12/d)^(1/9)")
    col = 0 if t <= 2.5 else 1
    for d_max, f_thin, f_thick in _SIZE_FACTOR_FB:
        if d <= d_max + 1e-9:
            value = (f_thin, f_thick)[col]
            break
    else:
        value = _SIZE_FACTOR_FB_DEEP[col]
    return AppliedFactor("C_F", value, "NDS Supplement Table 4A", f"d = {d:g} in, t = {t:g} in")


def effective_length_in(factors: AdjustmentFactors, geometry: MemberGeometry) -> float:
    lu_ft = factors.unbraced_length_ft if factors.unbraced_length_ft is not None else geometry.span_ft
    return float(lu_ft) * 12.0


def beam_stability_factor(
    fb_star_psi: float,
    e_min_adj_psi: float,
    factors: AdjustmentFactors,
    geometry: MemberGeometry,
) -> Tuple[AppliedFactor, List[str]]:
    """NDS 3.3.3 beam stability factor C_L.

    R_B = sqrt(le d / b^2), F_bE = 1.20 E'min / R_B^2,
    C_L = (1 + F_bE/Fb*)/1.9 - sqrt(((1 + F_bE/Fb*)/1.9)^2 - (F_bE/Fb*)/0.95)
    """
    if factors.compression_edge_braced:
        return AppliedFactor("C_L", 1.0, "NDS 3.3.3", "compression edge braced"), []

    le = effective_length_in(factors, geometry)
    b = geometry.width_in
    d = geometry.depth_in
    rb = math.sqrt(le * d / (b * b))
    if rb > RB_LIMIT:
        msg = f"Slenderness ratio R_B = {rb:.1f} exceeds {RB_LIMIT:g}; C_L taken as 0."
        logger.warning(msg)
        return AppliedFactor("C_L", 0.0, "NDS 3.3.3.7", f"R_B = {rb:.2f}"), [msg]

    fbe = KBE * e_min_adj_psi / (rb * rb)
    ratio = fbe / fb_star_psi
    a = (1.0 + ratio) / 1.9
    cl = a - math.sqrt(max(0.0, a * a - ratio / 0.95))
    cl = min(1.0, max(0.0, cl))
    logger.debug("C_L: le={:.1f} in, R_B={:.2f}, F_bE={:.0f} psi, Fb*={:.0f} psi -> {:.4f}", le, rb, fbe, fb_star_psi, cl)
    return AppliedFactor("C_L", cl, "NDS 3.3.3", f"le = {le:.1f} in, R_B = {rb:.2f}"), []


def _strength_format(
    prop: str,
    factors: AdjustmentFactors,
    method: DesignMethod,
    combination: Optional[LoadCombination],
    load_types: Optional[AbstractSet[LoadType]] = None,
) -> List[AppliedFactor]:
    if method == "LRFD":
        lam = time_effect_for_combination(combination, load_types)
        return [
            AppliedFactor("K_F", FORMAT_KF[prop], "NDS Table 4.3.1", "LRFD format conversion"),
            AppliedFactor("phi", RESISTANCE_PHI[prop], "NDS Table 4.3.1", "resistance factor"),
            AppliedFactor("lambda", lam, "NDS Table N3", combination.name if combination is not None else ""),
        ]
    return [load_duration_factor(factors, combination, load_types)]


# -----------------------------
# Adjusted design values
# -----------------------------
def adjusted_modulus(e_psi: float, factors: AdjustmentFactors) -> AdjustedValue:
    """E' = E C_M C_t C_i"""
    e = _require(e_psi, "E")
    parts = [wet_service_factor("E", factors), temperature_factor("E", factors), incising_factor("E", factors)]
    return _compose(e, parts)


def adjusted_modulus_min(e_min_psi: float, factors: AdjustmentFactors, *, method: DesignMethod = "ASD") -> AdjustedValue:
    """E'min = Emin C_M C_t C_i (x K_F phi for LRFD)"""
    e = _require(e_min_psi, "Emin")
    parts = [
        wet_service_factor("Emin", factors),
        temperature_factor("Emin", factors),
        incising_factor("Emin", factors),
    ]
    if method == "LRFD":
        parts += [
            AppliedFactor("K_F", FORMAT_KF["Emin"], "NDS Table 4.3.1", "LRFD format conversion"),
            AppliedFactor("phi", RESISTANCE_PHI["Emin"], "NDS Table 4.3.1", "resistance factor"),
        ]
    return _compose(e, parts)


def adjusted_shear(
    fv_psi: float,
    factors: AdjustmentFactors,
    *,
    method: DesignMethod = "ASD",
    combination: Optional[LoadCombination] = None,
    load_types: Optional[AbstractSet[LoadType]] = None,
) -> AdjustedValue:
    """Fv' = Fv C_D C_M C_t C_i"""
    fv = _require(fv_psi, "Fv")
    parts = _strength_format("Fv", factors, method, combination, load_types) + [
        wet_service_factor("Fv", factors),
        temperature_factor("Fv", factors),
        incising_factor("Fv", factors),
    ]
    return _compose(fv, parts)


def adjusted_bending(
    fb_psi: float,
    factors: AdjustmentFactors,
    geometry: MemberGeometry,
    *,
    e_min_psi: float,
    method: DesignMethod = "ASD",
    combination: Optional[LoadCombination] = None,
    load_types: Optional[AbstractSet[LoadType]] = None,
) -> AdjustedValue:
    """Fb' = Fb C_D C_M C_t C_L C_F C_fu C_i C_r

    Fb* for the stability check carries every factor except C_fu and C_L.
    """
    fb = _require(fb_psi, "Fb")
    cd_parts = _strength_format("Fb", factors, method, combination, load_types)
    c_f = size_factor(geometry)
    c_m = wet_service_factor("Fb", factors, fb_cf_psi=fb * c_f.value, sawn=geometry.sawn)
    c_t = temperature_factor("Fb", factors)
    c_fu = flat_use_factor(factors, geometry)
    c_i = incising_factor("Fb", factors)
    c_r = repetitive_member_factor(factors, geometry)

    fb_star = fb * math.prod(f.value for f in cd_parts + [c_m, c_t, c_f, c_i, c_r])
    e_min_adj = adjusted_modulus_min(e_min_psi, factors, method=method).value_psi
    c_l, warnings = beam_stability_factor(fb_star, e_min_adj, factors, geometry)

    parts = cd_parts + [c_m, c_t, c_l, c_f, c_fu, c_i, c_r]
    return _compose(fb, parts, warnings)
