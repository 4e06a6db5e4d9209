from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from loguru import logger

from woodbeam_app.blocks.wood_errors import InsufficientSupports, MomentDistributionDidNotConverge

from .constants import DEFAULT_FEM_SUBDIVISIONS, DEFAULT_MD_MAX_ITERATIONS, DEFAULT_MD_TOLERANCE
from .models import SupportType
from .single_span import PointLoad, SpanLoad, UniformLoad

CARRYOVER = 0.5


# -----------------------------
# Fixed-end moments (member-end moments, clockwise positive)
# -----------------------------
def fem_point(p: float, a: float, length_ft: float) -> Tuple[float, float]:
    L = length_ft
    b = L - a
    return -p * a * b * b / (L * L), p * a * a * b / (L * L)


def fem_uniform(w: float, length_ft: float) -> Tuple[float, float]:
    m = w * length_ft * length_ft / 12.0
    return -m, m


def fem_partial(w: float, start_ft: float, end_ft: float, length_ft: float, subdivisions: int = DEFAULT_FEM_SUBDIVISIONS) -> Tuple[float, float]:
    """Midpoint-rule superposition of point-load FEMs over the loaded length."""
    if start_ft <= 1e-12 and end_ft >= length_ft - 1e-12:
        return fem_uniform(w, length_ft)
    n = max(1, int(subdivisions))
    dx = (end_ft - start_ft) / n
    left = right = 0.0
    for i in range(n):
        fl, fr = fem_point(w * dx, start_ft + (i + 0.5) * dx, length_ft)
        left += fl
        right += fr
    return left, right


def fixed_end_moments(loads: Sequence[SpanLoad], length_ft: float, subdivisions: int = DEFAULT_FEM_SUBDIVISIONS) -> Tuple[float, float]:
    left = right = 0.0
    for ld in loads:
        if isinstance(ld, PointLoad):
            fl, fr = fem_point(ld.magnitude_lb, ld.position_ft, length_ft)
        elif isinstance(ld, UniformLoad):
            end = length_ft if ld.end_ft is None else ld.end_ft
            fl, fr = fem_partial(ld.magnitude_plf, ld.start_ft, end, length_ft, subdivisions)
        else:
            raise TypeError(f"Unsupported span load {ld!r}")
        left += fl
        right += fr
    return left, right


def cantilever_end_moment(loads: Sequence[SpanLoad], length_ft: float, free_end: str) -> Tuple[float, float]:
    """Member-end moments of an overhang; statically determinate, zero at the free end."""
    total = 0.0
    for ld in loads:
        if isinstance(ld, PointLoad):
            p, xc = ld.magnitude_lb, ld.position_ft
        else:
            end = length_ft if ld.end_ft is None else ld.end_ft
            p, xc = ld.magnitude_plf * (end - ld.start_ft), 0.5 * (ld.start_ft + end)
        arm = xc if free_end == "right" else length_ft - xc
        total += p * arm
    if free_end == "right":
        return -total, 0.0
    return 0.0, total


# -----------------------------
# State machine
# -----------------------------
class MDState(str, Enum):
    INITIALIZING = "initializing"
    DISTRIBUTING = "distributing"
    CONVERGED = "converged"
    FAILED = "failed"


@dataclass(frozen=True)
class MDMember:
    length_ft: float
    ei_lb_in2: float
    fem_left: float
    fem_right: float
    overhang: Optional[str] = None  # "left" / "right": which end is free


@dataclass(frozen=True)
class MDResult:
    end_moments: Tuple[Tuple[float, float], ...]  # clockwise positive, per member
    iterations: int
    residual: float
    state: MDState

    def sagging_end_moments(self) -> Tuple[Tuple[float, float], ...]:
        """Beam-convention (sagging +) moments at each member's left and right end."""
        return tuple((ml, -mr) for ml, mr in self.end_moments)

    @property
    def support_moments(self) -> Tuple[float, ...]:
        """Sagging-positive moment at every node."""
        sag = self.sagging_end_moments()
        out = [sag[0][0]]
        out.extend(right for _, right in sag)
        return tuple(out)


@dataclass
class MomentDistribution:
    """Hardy Cross moment distribution over a line of members.

    INITIALIZING -> DISTRIBUTING -> CONVERGED | FAILED. Interior pinned/roller joints distribute;
    fixed joints absorb their unbalance; exterior pinned/roller ends are released up front.
    """

    members: Sequence[MDMember]
    supports: Sequence[SupportType]
    tolerance: float = DEFAULT_MD_TOLERANCE
    max_iterations: int = DEFAULT_MD_MAX_ITERATIONS
    state: MDState = MDState.INITIALIZING
    iterations: int = 0
    residual: float = float("inf")
    history: List[float] = field(default_factory=list)
    moments: List[List[float]] = field(default_factory=list)

    def __post_init__(self) -> None:
        if len(self.supports) != len(self.members) + 1:
            raise InsufficientSupports(
                "Moment distribution needs one support per node",
                members=len(self.members),
                supports=len(self.supports),
            )
        self.supports = [SupportType(s) for s in self.supports]
        self.members = list(self.members)

    # ---- topology
    @property
    def n_nodes(self) -> int:
        return len(self.supports)

    def _released_exterior(self, node: int) -> bool:
        return node in (0, self.n_nodes - 1) and self.supports[node].is_released

    def stiffness(self, i: int, near: str) -> float:
        m = self.members[i]
        if m.overhang is not None:
            return 0.0
        far_node = i + 1 if near == "left" else i
        if self._released_exterior(far_node):
            return 3.0 * m.ei_lb_in2 / m.length_ft
        return 4.0 * m.ei_lb_in2 / m.length_ft

    def joint_ends(self, node: int) -> List[Tuple[int, int]]:
        """(member index, end index 0=left/1=right) meeting at ``node``."""
        ends: List[Tuple[int, int]] = []
        if node - 1 >= 0:
            ends.append((node - 1, 1))
        if node < len(self.members):
            ends.append((node, 0))
        return ends

    def distributing_joints(self) -> List[int]:
        return [n for n in range(1, self.n_nodes - 1) if self.supports[n].is_released]

    def distribution_factors(self, node: int) -> List[float]:
        ks = [self.stiffness(i, "left" if e == 0 else "right") for i, e in self.joint_ends(node)]
        total = sum(ks)
        if total <= 0.0:
            return [0.0 for _ in ks]
        return [k / total for k in ks]

    def _carry_target_open(self, i: int, end: int) -> bool:
        far_node = i + 1 if end == 0 else i
        if self.members[i].overhang is not None:
            return False
        return not self._released_exterior(far_node)

    def unbalance(self, node: int) -> float:
        return sum(self.moments[i][e] for i, e in self.joint_ends(node))

    # ---- state transitions
    def initialize(self) -> None:
        self.state = MDState.INITIALIZING
        self.moments = [[m.fem_left, m.fem_right] for m in self.members]
        for node, (i, e) in ((0, (0, 0)), (self.n_nodes - 1, (len(self.members) - 1, 1))):
            if not self._released_exterior(node) or self.members[i].overhang is not None:
                continue
            release = -self.moments[i][e]
            self.moments[i][e] = 0.0
            if self._carry_target_open(i, e):
                self.moments[i][1 - e] += CARRYOVER * release
        self.iterations = 0
        self.history = []
        self.state = MDState.DISTRIBUTING
        logger.debug("Moment distribution initialised: {} members, joints {}", len(self.members), self.distributing_joints())

    def _scale(self) -> float:
        return max((abs(v) for m in self.members for v in (m.fem_left, m.fem_right)), default=0.0)

    def _residual(self) -> float:
        return max((abs(self.unbalance(n)) for n in self.distributing_joints()), default=0.0)

    def sweep(self) -> None:
        for node in self.distributing_joints():
            unb = self.unbalance(node)
            if unb == 0.0:
                continue
            for (i, e), df in zip(self.joint_ends(node), self.distribution_factors(node)):
                dist = -unb * df
                self.moments[i][e] += dist
                if self._carry_target_open(i, e):
                    self.moments[i][1 - e] += CARRYOVER * dist
        self.iterations += 1

    def run(self) -> MDResult:
        self.initialize()
        scale = self._scale()
        while True:
            self.residual = self._residual()
            self.history.append(self.residual)
            if scale == 0.0 or self.residual < self.tolerance * scale:
                self.state = MDState.CONVERGED
                logger.debug("Moment distribution converged after {} sweeps (residual {:.3e})", self.iterations, self.residual)
                break
            if self.iterations >= self.max_iterations:
                self.state = MDState.FAILED
                logger.warning(
                    "Moment distribution failed to converge in {} sweeps (residual {:.3e} ft-lb)",
                    self.iterations,
                    self.residual,
                )
                raise MomentDistributionDidNotConverge(
                    f"Moment distribution did not converge in {self.iterations} iterations",
                    residual=self.residual,
                    iterations=self.iterations,
                )
            self.sweep()
        return MDResult(
            end_moments=tuple((float(ml), float(mr)) for ml, mr in self.moments),
            iterations=self.iterations,
            residual=self.residual,
            state=self.state,
        )
