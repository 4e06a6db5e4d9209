from __future__ import annotations

import hashlib
import json
import math
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence


@dataclass(frozen=True)
class TraceMeta:
    tool_id: str
    tool_version: str
    timestamp: str
    units_system: str
    input_hash: str
    design_method: str = "ASD"
    code_basis: Optional[str] = None


@dataclass(frozen=True)
class Assumption:
    id: str
    text: str


@dataclass(frozen=True)
class CalcVar:
    symbol: str
    description: str
    value: Any
    units: str = "-"

    @property
    def display(self) -> str:
        text = f"{self.value:g}" if isinstance(self.value, (int, float)) else str(self.value)
        return f"{text} {self.units}" if self.units and self.units != "-" else text


@dataclass(frozen=True)
class Reference:
    type: str  # "code" | "table" | "derived"
    ref: str


def code_ref(ref: str) -> Reference:
    return Reference("code", ref)


def table_ref(ref: str) -> Reference:
    return Reference("table", ref)


def derived_ref(ref: str) -> Reference:
    return Reference("derived", ref)


@dataclass(frozen=True)
class UnityCheck:
    """Demand over capacity for one limit state, as reported in the trace."""

    label: str
    demand: float
    capacity: float
    unity: float
    units: str
    passed: bool

    @property
    def pass_fail(self) -> str:
        return "PASS" if self.passed else "FAIL"


@dataclass
class CalcStep:
    id: str
    section: str
    title: str
    output_symbol: str
    equation: str
    substitution: str
    variables: List[CalcVar]
    value: float
    value_rounded: float
    units: str
    references: List[Reference]
    combination: Optional[str] = None
    span: Optional[int] = None
    checks: List[UnityCheck] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class CalcTrace:
    """Step-by-step record of one beam design run.

    Reports are rendered from this object alone; nothing downstream recomputes values.
    Steps are grouped by ``section`` (one per span for section properties, then the
    adjusted design values and the governing checks).
    """

    meta: TraceMeta
    assumptions: List[Assumption] = field(default_factory=list)
    steps: List[CalcStep] = field(default_factory=list)
    tables: Dict[str, Any] = field(default_factory=dict)
    summary: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def new(
        cls,
        *,
        tool_id: str,
        tool_version: str,
        inputs: Dict[str, Any],
        design_method: str = "ASD",
        units_system: str = "US",
        input_hash: Optional[str] = None,
        code_basis: Optional[str] = None,
    ) -> "CalcTrace":
        meta = TraceMeta(
            tool_id=str(tool_id),
            tool_version=str(tool_version),
            timestamp=datetime.now().isoformat(timespec="seconds"),
            units_system=str(units_system),
            input_hash=input_hash or compute_input_hash(inputs),
            design_method=str(design_method),
            code_basis=code_basis,
        )
        return cls(meta=meta)

    def step(self, step_id: str) -> Optional[CalcStep]:
        return next((s for s in self.steps if s.id == step_id), None)

    def section(self, name: str) -> List[CalcStep]:
        return [s for s in self.steps if s.section == name]

    def failed_checks(self) -> List[UnityCheck]:
        return [c for s in self.steps for c in s.checks if c.pass_fail == "FAIL"]

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        for step, s in zip(d["steps"], self.steps):
            for check, c in zip(step["checks"], s.checks):
                check["pass_fail"] = c.pass_fail
        return d


def _normalize(value: Any) -> Any:
    if isinstance(value, float):
        return float(f"{value:.12g}")
    if isinstance(value, dict):
        return {str(k): _normalize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize(v) for v in value]
    return value


def compute_input_hash(inputs: Dict[str, Any]) -> str:
    """Deterministic hash of the (nested) inputs; floats are normalized to 12 significant digits."""
    payload = json.dumps(_normalize(inputs), sort_keys=True, separators=(",", ":"), ensure_ascii=True, default=str)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:12]


def round_sigfigs(x: float, sig: int = 4) -> float:
    if x == 0 or not math.isfinite(x):
        return float(x)
    return round(float(x), sig - 1 - int(math.floor(math.log10(abs(float(x))))))


def substitute(equation: str, variables: Sequence[CalcVar]) -> str:
    """Write values into the right-hand side of ``equation``.

    Longest symbols go first so ``Fb'`` is not clobbered by ``Fb``.
    """
    lhs, sep, rhs = equation.partition(" = ")
    if not sep:
        lhs, rhs = "", equation
    for v in sorted(variables, key=lambda x: len(x.symbol), reverse=True):
        rhs = rhs.replace(v.symbol, v.display)
    return f"{lhs}{sep}{rhs}"


def compute_step(
    trace: CalcTrace,
    *,
    id: str,
    section: str,
    title: str,
    output_symbol: str,
    equation: str,
    variables: Sequence[CalcVar],
    compute_fn: Callable[[], float],
    units: str,
    references: Sequence[Reference],
    combination: Optional[str] = None,
    span: Optional[int] = None,
    checks: Sequence[UnityCheck] = (),
    warnings: Sequence[str] = (),
    sigfigs: int = 4,
) -> float:
    """Evaluate one step, append it to ``trace`` and return the unrounded value."""
    if not id or not section or not title:
        raise ValueError("compute_step requires non-empty id/section/title.")
    if trace.step(id) is not None:
        raise ValueError(f"Duplicate trace step id {id!r}.")

    value = float(compute_fn())
    trace.steps.append(
        CalcStep(
            id=id,
            section=section,
            title=title,
            output_symbol=output_symbol,
            equation=equation,
            substitution=substitute(equation, variables),
            variables=list(variables),
            value=value,
            value_rounded=round_sigfigs(value, sigfigs),
            units=units,
            references=list(references),
            combination=combination,
            span=span,
            checks=list(checks),
            warnings=list(warnings),
        )
    )
    return value
