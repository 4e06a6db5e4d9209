from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Literal, Mapping, Optional, Sequence, Set, Tuple

DesignMethod = Literal["ASD", "LRFD"]


class LoadType(str, Enum):
    DEAD = "D"
    LIVE = "L"
    ROOF_LIVE = "Lr"
    SNOW = "S"
    RAIN = "R"
    WIND = "W"
    SEISMIC = "E"
    EARTH = "H"

    @property
    def is_gravity(self) -> bool:
        return self in (LoadType.DEAD, LoadType.LIVE, LoadType.ROOF_LIVE, LoadType.SNOW, LoadType.RAIN)

    @property
    def is_directional(self) -> bool:
        return self in (LoadType.WIND, LoadType.SEISMIC)


D = LoadType.DEAD
L = LoadType.LIVE
Lr = LoadType.ROOF_LIVE
S = LoadType.SNOW
R = LoadType.RAIN
W = LoadType.WIND
E = LoadType.SEISMIC
H = LoadType.EARTH


@dataclass(frozen=True)
class LoadCombination:
    """One factored combination. Factor order is the order terms are written in the equation."""

    name: str
    method: DesignMethod
    factors: Mapping[LoadType, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "factors", MappingProxyType(dict(self.factors)))

    def factor_for(self, load_type: LoadType) -> float:
        return float(self.factors.get(LoadType(load_type), 0.0))

    def includes(self, load_type: LoadType) -> bool:
        return self.factor_for(load_type) != 0.0

    @property
    def equation(self) -> str:
        return format_equation(self.factors)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "method": self.method,
            "equation": self.equation,
            "factors": {lt.value: f for lt, f in self.factors.items()},
        }


def _coef(value: float) -> str:
    return "" if abs(value - 1.0) < 1e-12 else f"{value:g}"


def format_equation(factors: Mapping[LoadType, float]) -> str:
    parts: List[str] = []
    for lt, f in factors.items():
        if f == 0.0:
            continue
        term = f"{_coef(abs(f))}{lt.value}"
        if not parts:
            parts.append(term if f > 0 else f"-{term}")
        else:
            parts.append(f"{'+' if f > 0 else '-'} {term}")
    return " ".join(parts) if parts else "0"


# -----------------------------
# ASCE 7-16 basic combinations
# -----------------------------
# §2.4.1 (ASD)
_ASD_BASE: Tuple[Tuple[str, Tuple[Tuple[LoadType, float], ...]], ...] = (
    ("ASD-1", ((D, 1.0),)),
    ("ASD-2", ((D, 1.0), (L, 1.0))),
    ("ASD-3a", ((D, 1.0), (Lr, 1.0))),
    ("ASD-3b", ((D, 1.0), (S, 1.0))),
    ("ASD-3c", ((D, 1.0), (R, 1.0))),
    ("ASD-4a", ((D, 1.0), (L, 0.75), (Lr, 0.75))),
    ("ASD-4b", ((D, 1.0), (L, 0.75), (S, 0.75))),
    ("ASD-4c", ((D, 1.0), (L, 0.75), (R, 0.75))),
    ("ASD-5a", ((D, 1.0), (W, 0.6))),
    ("ASD-5b", ((D, 1.0), (E, 0.7))),
    ("ASD-6a", ((D, 1.0), (L, 0.75), (W, 0.45), (Lr, 0.75))),
    ("ASD-6b", ((D, 1.0), (L, 0.75), (W, 0.45), (S, 0.75))),
    ("ASD-6c", ((D, 1.0), (L, 0.75), (W, 0.45), (R, 0.75))),
    ("ASD-7", ((D, 1.0), (L, 0.75), (E, 0.525), (S, 0.75))),
    ("ASD-8", ((D, 0.6), (W, 0.6))),
    ("ASD-9", ((D, 0.6), (E, 0.7))),
)

# §2.3.1 (LRFD)
_LRFD_BASE: Tuple[Tuple[str, Tuple[Tuple[LoadType, float], ...]], ...] = (
    ("LRFD-1", ((D, 1.4),)),
    ("LRFD-2a", ((D, 1.2), (L, 1.6), (Lr, 0.5))),
    ("LRFD-2b", ((D, 1.2), (L, 1.6), (S, 0.5))),
    ("LRFD-2c", ((D, 1.2), (L, 1.6), (R, 0.5))),
    ("LRFD-3a", ((D, 1.2), (Lr, 1.6), (L, 1.0))),
    ("LRFD-3b", ((D, 1.2), (Lr, 1.6), (W, 0.5))),
    ("LRFD-3c", ((D, 1.2), (S, 1.6), (L, 1.0))),
    ("LRFD-3d", ((D, 1.2), (S, 1.6), (W, 0.5))),
    ("LRFD-3e", ((D, 1.2), (R, 1.6), (L, 1.0))),
    ("LRFD-3f", ((D, 1.2), (R, 1.6), (W, 0.5))),
    ("LRFD-4a", ((D, 1.2), (W, 1.0), (L, 1.0), (Lr, 0.5))),
    ("LRFD-4b", ((D, 1.2), (W, 1.0), (L, 1.0), (S, 0.5))),
    ("LRFD-4c", ((D, 1.2), (W, 1.0), (L, 1.0), (R, 0.5))),
    ("LRFD-5", ((D, 1.2), (E, 1.0), (L, 1.0), (S, 0.2))),
    ("LRFD-6", ((D, 0.9), (W, 1.0))),
    ("LRFD-7", ((D, 0.9), (E, 1.0))),
)

# Lateral earth pressure factor; omitted where dead load counteracts (0.6D / 0.9D).
_EARTH_FACTOR: Dict[str, float] = {"ASD": 1.0, "LRFD": 1.6}
_COUNTERACTING_DEAD = (0.6, 0.9)


def base_combinations(method: DesignMethod) -> Tuple[LoadCombination, ...]:
    table = _ASD_BASE if method == "ASD" else _LRFD_BASE
    return tuple(LoadCombination(name, method, dict(terms)) for name, terms in table)


def load_types_in(load_case: Any) -> Set[LoadType]:
    return {LoadType(ld.load_type) for ld in getattr(load_case, "loads", ())}


def combinations(load_case: Any, method: DesignMethod) -> Tuple[LoadCombination, ...]:
    """Full ASCE 7-16 set for ``method`` as applied to ``load_case``.

    Wind is reversible: when the case carries W loads every wind combination is emitted as a
    ``(+W)`` / ``(-W)`` pair. Earth pressure H is appended when present.
    """
    if method not in ("ASD", "LRFD"):
        raise ValueError(f"Unknown design method: {method!r}")
    present = load_types_in(load_case)
    has_wind = W in present
    has_earth = H in present

    out: List[LoadCombination] = []
    for combo in base_combinations(method):
        factors = dict(combo.factors)
        if has_earth and factors.get(D) not in _COUNTERACTING_DEAD:
            factors[H] = _EARTH_FACTOR[method]
        if has_wind and W in factors:
            out.append(LoadCombination(f"{combo.name} (+W)", method, factors))
            negated = dict(factors)
            negated[W] = -factors[W]
            out.append(LoadCombination(f"{combo.name} (-W)", method, negated))
        else:
            out.append(LoadCombination(combo.name, method, factors))
    return tuple(out)


def factored_magnitude(combination: LoadCombination, load: Any) -> float:
    """Signed factored intensity of one discrete load (lb or plf)."""
    return combination.factor_for(load.load_type) * float(load.effective_magnitude)


def factor(
    combination: LoadCombination,
    load_case: Any,
    span_lengths: Sequence[float],
    self_weight_plf: Optional[Sequence[float]] = None,
) -> float:
    """Total signed factored load (lb) of ``load_case`` over the whole beam.

    ``self_weight_plf`` gives the per-span self-weight that is folded into D when the case asks
    for it.
    """
    total_length = float(sum(span_lengths))
    total = 0.0
    for ld in load_case.loads:
        total += combination.factor_for(ld.load_type) * ld.total_force(total_length)
    if getattr(load_case, "include_self_weight", False) and self_weight_plf:
        sw = sum(float(w) * float(Ls) for w, Ls in zip(self_weight_plf, span_lengths))
        total += combination.factor_for(D) * sw
    return total


def governing_total(
    load_case: Any,
    combos: Iterable[LoadCombination],
    span_lengths: Sequence[float],
    self_weight_plf: Optional[Sequence[float]] = None,
) -> Tuple[float, str]:
    """Largest total factored load and the combination producing it (first wins on ties)."""
    best_val = float("-inf")
    best_name = ""
    for combo in combos:
        val = factor(combo, load_case, span_lengths, self_weight_plf)
        if val > best_val:
            best_val, best_name = val, combo.name
    return best_val, best_name
