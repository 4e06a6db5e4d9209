from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from woodbeam_app.blocks.asce7_combinations import DesignMethod, LoadType
from woodbeam_app.blocks.nds_factors import AdjustmentFactors, MemberGeometry
from woodbeam_app.blocks.wood_materials import Material, SawnLumber, base_properties, is_engineered
from woodbeam_app.blocks.wood_sections import RectSection, parse_nominal_size
from woodbeam_app.core.settings import tool_settings

from .constants import (
    DEFAULT_DEFLECTION_LIMIT,
    DEFAULT_DIAGRAM_POINTS,
    DEFAULT_FEM_SUBDIVISIONS,
    DEFAULT_MD_MAX_ITERATIONS,
    DEFAULT_MD_TOLERANCE,
    TOOL_ID,
)


class LoadDistribution(str, Enum):
    POINT = "point"
    UNIFORM = "uniform"
    PARTIAL_UNIFORM = "partial_uniform"


class DiscreteLoad(BaseModel):
    """One load of one type. Positions are measured from the left end of the whole beam (ft)."""

    model_config = ConfigDict(frozen=True)

    load_type: LoadType = Field(default=LoadType.DEAD, description="ASCE 7 load type.")
    distribution: LoadDistribution = Field(default=LoadDistribution.UNIFORM, description="Load shape.")
    magnitude: float = Field(default=0.0, description="lb for point loads, plf (or psf with a tributary width) otherwise.")
    position_ft: Optional[float] = Field(default=None, description="Point load position from the left end (ft).")
    start_ft: Optional[float] = Field(default=None, description="Partial uniform load start (ft).")
    end_ft: Optional[float] = Field(default=None, description="Partial uniform load end (ft).")
    tributary_width_ft: float = Field(default=1.0, gt=0.0, description="Multiplier turning an area load into a line load.")
    note: str = Field(default="", description="Free text.")

    @model_validator(mode="after")
    def _check_shape(self) -> "DiscreteLoad":
        if self.distribution == LoadDistribution.POINT and self.position_ft is None:
            raise ValueError("point loads require position_ft")
        if self.distribution == LoadDistribution.PARTIAL_UNIFORM and (self.start_ft is None or self.end_ft is None):
            raise ValueError("partial uniform loads require start_ft and end_ft")
        return self

    @property
    def effective_magnitude(self) -> float:
        return float(self.magnitude) * float(self.tributary_width_ft)

    def total_force(self, total_length_ft: float) -> float:
        """Resultant in lb over a beam of ``total_length_ft``."""
        if self.distribution == LoadDistribution.POINT:
            return self.effective_magnitude
        if self.distribution == LoadDistribution.UNIFORM:
            return self.effective_magnitude * float(total_length_ft)
        return self.effective_magnitude * max(0.0, float(self.end_ft) - float(self.start_ft))

    @classmethod
    def point(cls, load_type: LoadType, magnitude_lb: float, position_ft: float, **kw: Any) -> "DiscreteLoad":
        return cls(load_type=load_type, distribution=LoadDistribution.POINT, magnitude=magnitude_lb, position_ft=position_ft, **kw)

    @classmethod
    def uniform(cls, load_type: LoadType, magnitude_plf: float, **kw: Any) -> "DiscreteLoad":
        return cls(load_type=load_type, distribution=LoadDistribution.UNIFORM, magnitude=magnitude_plf, **kw)

    @classmethod
    def partial(cls, load_type: LoadType, magnitude_plf: float, start_ft: float, end_ft: float, **kw: Any) -> "DiscreteLoad":
        return cls(
            load_type=load_type,
            distribution=LoadDistribution.PARTIAL_UNIFORM,
            magnitude=magnitude_plf,
            start_ft=start_ft,
            end_ft=end_ft,
            **kw,
        )


class LoadCase(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str = Field(default="Loads", description="Load case label.")
    loads: Tuple[DiscreteLoad, ...] = Field(default=(), description="Loads in entry order.")
    include_self_weight: bool = Field(default=True, description="Add member self-weight to D at evaluation time.")


class SupportType(str, Enum):
    FREE = "free"
    PINNED = "pinned"
    ROLLER = "roller"
    FIXED = "fixed"

    @property
    def restrains_vertical(self) -> bool:
        return self != SupportType.FREE

    @property
    def restrains_rotation(self) -> bool:
        return self == SupportType.FIXED

    @property
    def is_released(self) -> bool:
        """Translation restrained, rotation free."""
        return self in (SupportType.PINNED, SupportType.ROLLER)


class SpanSegment(BaseModel):
    model_config = ConfigDict(frozen=True)

    length_ft: float = Field(default=12.0, description="Span length (ft).")
    width_in: float = Field(default=1.5, gt=0.0, description="Actual member width b (in), all plies.")
    depth_in: float = Field(default=9.25, gt=0.0, description="Actual member depth d (in).")
    plies: int = Field(default=1, ge=1, description="Number of plies in a built-up member.")
    material: Material = Field(default_factory=SawnLumber, description="Member material.")
    label: str = Field(default="", description="Span label.")

    @property
    def section(self) -> RectSection:
        return RectSection(width_in=self.width_in, depth_in=self.depth_in, plies=self.plies)

    @property
    def area_in2(self) -> float:
        return self.section.area_in2

    @property
    def section_modulus_in3(self) -> float:
        return self.section.section_modulus_in3

    @property
    def moment_of_inertia_in4(self) -> float:
        return self.section.moment_of_inertia_in4

    def geometry(self) -> MemberGeometry:
        return MemberGeometry(
            width_in=self.width_in,
            depth_in=self.depth_in,
            span_ft=self.length_ft,
            plies=self.plies,
            sawn=not is_engineered(self.material),
        )

    def self_weight_plf(self) -> float:
        return base_properties(self.material).density_pcf * self.area_in2 / 144.0

    @classmethod
    def from_nominal(cls, size: str, length_ft: float, material: Optional[Material] = None, label: str = "") -> "SpanSegment":
        sec = parse_nominal_size(size)
        return cls(
            length_ft=length_ft,
            width_in=sec.width_in,
            depth_in=sec.depth_in,
            plies=sec.plies,
            material=material if material is not None else SawnLumber(),
            label=label or size,
        )


class ContinuousBeamInput(BaseModel):
    """Beam of N spans on N+1 supports; span i sits between support i and i+1."""

    model_config = ConfigDict(frozen=True)

    label: str = Field(default="Beam", description="Beam label.")
    spans: Tuple[SpanSegment, ...] = Field(default=(SpanSegment(),), min_length=1, description="Spans, left to right.")
    supports: Tuple[SupportType, ...] = Field(
        default=(SupportType.PINNED, SupportType.ROLLER), description="Support at each node, left to right."
    )
    load_case: LoadCase = Field(default_factory=LoadCase, description="Applied loads.")
    adjustment_factors: AdjustmentFactors = Field(default_factory=AdjustmentFactors, description="NDS service conditions.")

    @model_validator(mode="after")
    def _check_supports(self) -> "ContinuousBeamInput":
        if len(self.supports) != len(self.spans) + 1:
            raise ValueError(f"{len(self.spans)} spans need {len(self.spans) + 1} supports, got {len(self.supports)}")
        return self

    @property
    def total_length_ft(self) -> float:
        return float(sum(s.length_ft for s in self.spans))

    @property
    def node_positions(self) -> List[float]:
        out = [0.0]
        for s in self.spans:
            out.append(out[-1] + float(s.length_ft))
        return out

    @classmethod
    def _single(cls, span: SpanSegment, left: SupportType, right: SupportType, load_case: Optional[LoadCase], **kw: Any) -> "ContinuousBeamInput":
        return cls(spans=(span,), supports=(left, right), load_case=load_case or LoadCase(), **kw)

    @classmethod
    def simple_span(cls, span: SpanSegment, load_case: Optional[LoadCase] = None, **kw: Any) -> "ContinuousBeamInput":
        return cls._single(span, SupportType.PINNED, SupportType.ROLLER, load_case, **kw)

    @classmethod
    def cantilever(cls, span: SpanSegment, load_case: Optional[LoadCase] = None, **kw: Any) -> "ContinuousBeamInput":
        return cls._single(span, SupportType.FIXED, SupportType.FREE, load_case, **kw)

    @classmethod
    def fixed_fixed(cls, span: SpanSegment, load_case: Optional[LoadCase] = None, **kw: Any) -> "ContinuousBeamInput":
        return cls._single(span, SupportType.FIXED, SupportType.FIXED, load_case, **kw)

    @classmethod
    def propped_cantilever(cls, span: SpanSegment, load_case: Optional[LoadCase] = None, **kw: Any) -> "ContinuousBeamInput":
        return cls._single(span, SupportType.FIXED, SupportType.ROLLER, load_case, **kw)


class EngineSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    fem_subdivisions: int = Field(default=DEFAULT_FEM_SUBDIVISIONS, ge=1, description="Midpoint-rule slices for partial-load FEMs.")
    md_tolerance: float = Field(default=DEFAULT_MD_TOLERANCE, gt=0.0, description="Relative unbalance tolerance.")
    md_max_iterations: int = Field(default=DEFAULT_MD_MAX_ITERATIONS, ge=1, description="Moment distribution sweep cap.")
    diagram_points: int = Field(default=DEFAULT_DIAGRAM_POINTS, ge=2, description="Uniform stations per span.")
    deflection_limit: float = Field(default=DEFAULT_DEFLECTION_LIMIT, gt=0.0, description="n in the L/n deflection limit.")

    @classmethod
    def from_user_settings(cls, overrides: Optional[Dict[str, Any]] = None) -> "EngineSettings":
        """Defaults overlaid with settings.json["wood_beam_design"], then ``overrides``."""
        data: Dict[str, Any] = {k: v for k, v in tool_settings(TOOL_ID).items() if k in cls.model_fields}
        data.update(overrides or {})
        return cls.model_validate(data)


def _default_beam() -> ContinuousBeamInput:
    return ContinuousBeamInput.simple_span(
        SpanSegment(length_ft=12.0, width_in=1.5, depth_in=9.25, label="2x10"),
        LoadCase(
            label="Floor",
            loads=(
                DiscreteLoad.uniform(LoadType.DEAD, 10.0, tributary_width_ft=1.333),
                DiscreteLoad.uniform(LoadType.LIVE, 40.0, tributary_width_ft=1.333),
            ),
        ),
        label="Floor joist",
    )


class WoodBeamInputs(BaseModel):
    """Inputs for the wood beam design tool.

    Units: ft, lb, plf, in, psi. Load positions are measured from the left end of the beam.
    """

    beam: ContinuousBeamInput = Field(default_factory=_default_beam, description="Beam geometry, supports and loads.")
    design_method: DesignMethod = Field(default="ASD", description="Design methodology.")
    settings: EngineSettings = Field(default_factory=EngineSettings, description="Solver and check settings.")
