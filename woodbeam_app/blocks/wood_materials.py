from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Annotated, Dict, List, Literal, Mapping, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .wood_errors import MaterialPropertyMissing

# Density basis for self-weight (NDS Supplement 3.1.3), moisture content in percent.
SELF_WEIGHT_MC_PCT = 19.0
WATER_DENSITY_PCF = 62.4


class WoodSpecies(str, Enum):
    DOUGLAS_FIR_LARCH = "DF-L"
    SOUTHERN_PINE = "SP"
    HEM_FIR = "HF"
    SPRUCE_PINE_FIR = "SPF"
    DOUGLAS_FIR_SOUTH = "DF-S"


class WoodGrade(str, Enum):
    SELECT_STRUCTURAL = "SS"
    NO1 = "No.1"
    NO2 = "No.2"
    NO3 = "No.3"
    STUD = "Stud"
    CONSTRUCTION = "Construction"
    STANDARD = "Standard"
    UTILITY = "Utility"


class GlulamStressClass(str, Enum):
    F16_E13 = "16F-1.3E"
    F20_E15 = "20F-1.5E"
    F24_E17 = "24F-1.7E"
    F24_E18 = "24F-1.8E"
    F26_E19 = "26F-1.9E"
    F24_V4 = "24F-V4"
    F24_V8 = "24F-V8"


class GlulamLayup(str, Enum):
    BALANCED = "balanced"
    UNBALANCED = "unbalanced"


class LvlGrade(str, Enum):
    E20 = "LVL-2.0E"
    E22 = "LVL-2.2E"


class PslGrade(str, Enum):
    E20 = "PSL-2.0E"


@dataclass(frozen=True)
class WoodProperties:
    """Reference (unadjusted) design values, psi unless noted."""

    fb_psi: float
    fb_neg_psi: float
    ft_psi: float
    fv_psi: float
    fc_perp_psi: float
    fc_psi: float
    e_psi: float
    e_min_psi: float
    specific_gravity: float

    @property
    def density_pcf(self) -> float:
        # NDS Supplement 3.1.3: rho = 62.4 [G / (1 + G(0.009)(m.c.))] [1 + m.c./100]
        g = self.specific_gravity
        mc = SELF_WEIGHT_MC_PCT
        return WATER_DENSITY_PCF * (g / (1.0 + g * 0.009 * mc)) * (1.0 + mc / 100.0)


# -----------------------------
# Reference tables
# -----------------------------
# NDS Supplement Table 4A (visually graded dimension lumber, 2"-4" thick)
# (Fb, Ft, Fv, Fc_perp, Fc, E, Emin, G)
_SAWN_LUMBER_4A: Dict[Tuple[WoodSpecies, WoodGrade], Tuple[float, ...]] = {
    (WoodSpecies.DOUGLAS_FIR_LARCH, WoodGrade.SELECT_STRUCTURAL): (1500, 1000, 180, 625, 1700, 1.9e6, 690_000, 0.50),
    (WoodSpecies.DOUGLAS_FIR_LARCH, WoodGrade.NO1): (1200, 800, 180, 625, 1550, 1.7e6, 620_000, 0.50),
    (WoodSpecies.DOUGLAS_FIR_LARCH, WoodGrade.NO2): (900, 575, 180, 625, 1350, 1.6e6, 580_000, 0.50),
    (WoodSpecies.DOUGLAS_FIR_LARCH, WoodGrade.NO3): (525, 325, 180, 625, 775, 1.4e6, 510_000, 0.50),
    (WoodSpecies.SOUTHERN_PINE, WoodGrade.SELECT_STRUCTURAL): (1500, 1000, 175, 565, 1800, 1.8e6, 660_000, 0.55),
    (WoodSpecies.SOUTHERN_PINE, WoodGrade.NO1): (1250, 825, 175, 565, 1650, 1.7e6, 620_000, 0.55),
    (WoodSpecies.SOUTHERN_PINE, WoodGrade.NO2): (850, 550, 175, 565, 1450, 1.4e6, 510_000, 0.55),
    (WoodSpecies.SOUTHERN_PINE, WoodGrade.NO3): (500, 300, 175, 565, 825, 1.2e6, 440_000, 0.55),
    (WoodSpecies.HEM_FIR, WoodGrade.SELECT_STRUCTURAL): (1400, 925, 150, 405, 1500, 1.6e6, 580_000, 0.43),
    (WoodSpecies.HEM_FIR, WoodGrade.NO1): (1100, 725, 150, 405, 1350, 1.5e6, 550_000, 0.43),
    (WoodSpecies.HEM_FIR, WoodGrade.NO2): (850, 525, 150, 405, 1300, 1.3e6, 470_000, 0.43),
    (WoodSpecies.HEM_FIR, WoodGrade.NO3): (500, 300, 150, 405, 750, 1.2e6, 440_000, 0.43),
    (WoodSpecies.SPRUCE_PINE_FIR, WoodGrade.SELECT_STRUCTURAL): (1250, 825, 135, 425, 1400, 1.5e6, 550_000, 0.42),
    (WoodSpecies.SPRUCE_PINE_FIR, WoodGrade.NO1): (1000, 650, 135, 425, 1250, 1.4e6, 510_000, 0.42),
    (WoodSpecies.SPRUCE_PINE_FIR, WoodGrade.NO2): (875, 450, 135, 425, 1150, 1.4e6, 510_000, 0.42),
    (WoodSpecies.SPRUCE_PINE_FIR, WoodGrade.NO3): (500, 250, 135, 425, 650, 1.2e6, 440_000, 0.42),
    (WoodSpecies.DOUGLAS_FIR_SOUTH, WoodGrade.SELECT_STRUCTURAL): (1350, 900, 180, 520, 1600, 1.4e6, 510_000, 0.46),
    (WoodSpecies.DOUGLAS_FIR_SOUTH, WoodGrade.NO1): (1050, 700, 180, 520, 1450, 1.2e6, 440_000, 0.46),
    (WoodSpecies.DOUGLAS_FIR_SOUTH, WoodGrade.NO2): (875, 525, 180, 520, 1350, 1.1e6, 400_000, 0.46),
    (WoodSpecies.DOUGLAS_FIR_SOUTH, WoodGrade.NO3): (500, 300, 180, 520, 775, 1.0e6, 370_000, 0.46),
}

# NDS Supplement Table 5A (structural glued laminated softwood timber, bending about x-x)
# (Fb+, Fb- unbalanced, Ft, Fv, Fc_perp, Fc, E, Emin, G)
_GLULAM_5A: Dict[GlulamStressClass, Tuple[float, ...]] = {
    GlulamStressClass.F16_E13: (1600, 925, 675, 195, 315, 925, 1.3e6, 690_000, 0.42),
    GlulamStressClass.F20_E15: (2000, 1100, 875, 210, 425, 925, 1.5e6, 790_000, 0.42),
    GlulamStressClass.F24_E17: (2400, 1450, 775, 210, 500, 1000, 1.7e6, 900_000, 0.42),
    GlulamStressClass.F24_E18: (2400, 1450, 1100, 265, 650, 1600, 1.8e6, 950_000, 0.50),
    GlulamStressClass.F26_E19: (2600, 1950, 1150, 265, 650, 1600, 1.9e6, 1_000_000, 0.50),
    GlulamStressClass.F24_V4: (2400, 1850, 1100, 265, 650, 1650, 1.8e6, 950_000, 0.50),
    GlulamStressClass.F24_V8: (2400, 2400, 1100, 265, 650, 1650, 1.8e6, 950_000, 0.50),
}

# Structural composite lumber, typical published values at 12" depth
# (Fb, Ft, Fv, Fc_perp, Fc, E, Emin, G)
_LVL: Dict[LvlGrade, Tuple[float, ...]] = {
    LvlGrade.E20: (2600, 1555, 285, 750, 2510, 2.0e6, 1_016_000, 0.50),
    LvlGrade.E22: (2900, 1938, 285, 750, 2900, 2.2e6, 1_118_000, 0.50),
}
_PSL: Dict[PslGrade, Tuple[float, ...]] = {
    PslGrade.E20: (2900, 2025, 290, 625, 2900, 2.0e6, 1_016_000, 0.50),
}

# SCL depth effect: Fb x (12/d)^0.111 for d > 12 in.
SCL_DEPTH_EXPONENT = 0.111


def _props(fb: float, fb_neg: float, rest: Tuple[float, ...]) -> WoodProperties:
    ft, fv, fc_perp, fc, e, e_min, g = rest
    return WoodProperties(
        fb_psi=float(fb),
        fb_neg_psi=float(fb_neg),
        ft_psi=float(ft),
        fv_psi=float(fv),
        fc_perp_psi=float(fc_perp),
        fc_psi=float(fc),
        e_psi=float(e),
        e_min_psi=float(e_min),
        specific_gravity=float(g),
    )


# Built once at import; read-only for the life of the process.
SAWN_LUMBER: Mapping[Tuple[WoodSpecies, WoodGrade], WoodProperties] = MappingProxyType(
    {k: _props(v[0], v[0], v[1:]) for k, v in _SAWN_LUMBER_4A.items()}
)
GLULAM: Mapping[GlulamStressClass, WoodProperties] = MappingProxyType(
    {k: _props(v[0], v[1], v[2:]) for k, v in _GLULAM_5A.items()}
)
LVL: Mapping[LvlGrade, WoodProperties] = MappingProxyType({k: _props(v[0], v[0], v[1:]) for k, v in _LVL.items()})
PSL: Mapping[PslGrade, WoodProperties] = MappingProxyType({k: _props(v[0], v[0], v[1:]) for k, v in _PSL.items()})


# -----------------------------
# Lenient name parsing
# -----------------------------
_SPECIES_ALIASES: Dict[str, WoodSpecies] = {
    "DFL": WoodSpecies.DOUGLAS_FIR_LARCH,
    "DOUGLASFIRLARCH": WoodSpecies.DOUGLAS_FIR_LARCH,
    "SP": WoodSpecies.SOUTHERN_PINE,
    "SYP": WoodSpecies.SOUTHERN_PINE,
    "SOUTHERNPINE": WoodSpecies.SOUTHERN_PINE,
    "HF": WoodSpecies.HEM_FIR,
    "HEMFIR": WoodSpecies.HEM_FIR,
    "SPF": WoodSpecies.SPRUCE_PINE_FIR,
    "SPRUCEPINEFIR": WoodSpecies.SPRUCE_PINE_FIR,
    "DFS": WoodSpecies.DOUGLAS_FIR_SOUTH,
    "DOUGLASFIRSOUTH": WoodSpecies.DOUGLAS_FIR_SOUTH,
}

_GRADE_ALIASES: Dict[str, WoodGrade] = {
    "SS": WoodGrade.SELECT_STRUCTURAL,
    "SELECTSTRUCTURAL": WoodGrade.SELECT_STRUCTURAL,
    "NO1": WoodGrade.NO1,
    "1": WoodGrade.NO1,
    "NO2": WoodGrade.NO2,
    "2": WoodGrade.NO2,
    "NO3": WoodGrade.NO3,
    "3": WoodGrade.NO3,
    "STUD": WoodGrade.STUD,
    "CONSTRUCTION": WoodGrade.CONSTRUCTION,
    "STANDARD": WoodGrade.STANDARD,
    "UTILITY": WoodGrade.UTILITY,
}


def _squash(text: str) -> str:
    return re.sub(r"[^A-Z0-9]", "", str(text).upper())


def parse_species(value: Union[str, WoodSpecies]) -> WoodSpecies:
    if isinstance(value, WoodSpecies):
        return value
    key = _squash(value)
    if key in _SPECIES_ALIASES:
        return _SPECIES_ALIASES[key]
    raise MaterialPropertyMissing(f"Unknown wood species {value!r}", species=str(value))


def parse_grade(value: Union[str, WoodGrade]) -> WoodGrade:
    if isinstance(value, WoodGrade):
        return value
    key = _squash(value)
    if key in _GRADE_ALIASES:
        return _GRADE_ALIASES[key]
    raise MaterialPropertyMissing(f"Unknown lumber grade {value!r}", grade=str(value))


def species_options() -> List[str]:
    return sorted({k[0].value for k in SAWN_LUMBER.keys()})


def grade_options_for_species(species: Union[str, WoodSpecies]) -> List[str]:
    sp = parse_species(species)
    return [k[1].value for k in SAWN_LUMBER.keys() if k[0] == sp]


# -----------------------------
# Material variants
# -----------------------------
def _lenient(parser, value):
    # Leave unrecognised text for pydantic's enum validation to report.
    if isinstance(value, str):
        try:
            return parser(value)
        except MaterialPropertyMissing:
            return value
    return value


class SawnLumber(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["sawn_lumber"] = "sawn_lumber"
    species: WoodSpecies = Field(default=WoodSpecies.DOUGLAS_FIR_LARCH, description="Species combination (NDS Table 4A).")
    grade: WoodGrade = Field(default=WoodGrade.NO2, description="Visual grade.")

    @field_validator("species", mode="before")
    @classmethod
    def _norm_species(cls, v):
        return _lenient(parse_species, v)

    @field_validator("grade", mode="before")
    @classmethod
    def _norm_grade(cls, v):
        return _lenient(parse_grade, v)


class Glulam(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["glulam"] = "glulam"
    stress_class: GlulamStressClass = Field(default=GlulamStressClass.F24_V4, description="Glulam stress class.")
    layup: GlulamLayup = Field(
        default=GlulamLayup.UNBALANCED,
        description="Unbalanced layups carry a reduced Fb- for negative (hogging) bending.",
    )


class Lvl(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["lvl"] = "lvl"
    grade: LvlGrade = Field(default=LvlGrade.E20, description="LVL grade.")


class Psl(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["psl"] = "psl"
    grade: PslGrade = Field(default=PslGrade.E20, description="PSL grade.")


Material = Annotated[Union[SawnLumber, Glulam, Lvl, Psl], Field(discriminator="kind")]


def _lookup(table: Mapping, key, label: str) -> WoodProperties:
    props = table.get(key)
    if props is None:
        raise MaterialPropertyMissing(f"No reference design values for {label}", material=label)
    return props


def base_properties(material: Material) -> WoodProperties:
    """Reference design values for any material variant."""
    if isinstance(material, SawnLumber):
        return _lookup(
            SAWN_LUMBER,
            (material.species, material.grade),
            f"{material.species.value} {material.grade.value}",
        )
    if isinstance(material, Glulam):
        props = _lookup(GLULAM, material.stress_class, material.stress_class.value)
        if material.layup == GlulamLayup.BALANCED:
            props = _props(props.fb_psi, props.fb_psi, _rest(props))
        return props
    if isinstance(material, Lvl):
        return _lookup(LVL, material.grade, material.grade.value)
    if isinstance(material, Psl):
        return _lookup(PSL, material.grade, material.grade.value)
    raise MaterialPropertyMissing(f"Unsupported material {material!r}", material=repr(material))


def _rest(p: WoodProperties) -> Tuple[float, ...]:
    return (p.ft_psi, p.fv_psi, p.fc_perp_psi, p.fc_psi, p.e_psi, p.e_min_psi, p.specific_gravity)


def fb_for_depth(material: Material, depth_in: float, *, negative: bool = False) -> float:
    """Reference Fb including the product depth effect of SCL.

    Glulam returns Fb+ or Fb- depending on the sign of bending. Sawn lumber depth effects live in
    the size factor C_F instead.
    """
    props = base_properties(material)
    fb = props.fb_neg_psi if negative else props.fb_psi
    if isinstance(material, (Lvl, Psl)) and depth_in > 12.0:
        fb = fb * (12.0 / depth_in) ** SCL_DEPTH_EXPONENT
    return fb


def is_engineered(material: Material) -> bool:
    return not isinstance(material, SawnLumber)


def display_name(material: Material) -> str:
    if isinstance(material, SawnLumber):
        return f"{material.species.value} {material.grade.value}"
    if isinstance(material, Glulam):
        return f"Glulam {material.stress_class.value} ({material.layup.value})"
    return str(material.grade.value)

