from __future__ import annotations

TOOL_ID = "wood_beam_design"
TOOL_VERSION = "0.3.0"

DEFAULT_UNITS_SYSTEM = "US"
CODE_BASIS = "NDS 2018 / ASCE 7-16"

# Engine defaults (overridable through settings.json -> "wood_beam_design")
DEFAULT_FEM_SUBDIVISIONS = 20
DEFAULT_MD_TOLERANCE = 1e-6
DEFAULT_MD_MAX_ITERATIONS = 100
DEFAULT_DIAGRAM_POINTS = 101
DEFAULT_DEFLECTION_LIMIT = 240.0

# Unity ratios within this of 1.0 still pass.
UNITY_TOLERANCE = 1e-9

# Positional tolerance (ft) for load positions against span ends.
POSITION_TOL_FT = 1e-9

# Offset (ft) used to sample the shear just left of a concentrated load.
STATION_EPS_FT = 1e-6

# Unit conversions between ft-based loads and lb-in^2 stiffness.
IN_PER_FT = 12.0
IN2_PER_FT2 = 144.0
IN3_PER_FT3 = 1728.0

# Report references
REF_BENDING = "NDS 3.3.1"
REF_SHEAR = "NDS 3.4.2"
REF_DEFLECTION = "NDS 3.5.1"
REF_ADJUSTMENTS = "NDS Table 4.3.1"
REF_COMBINATIONS_ASD = "ASCE 7-16 2.4.1"
REF_COMBINATIONS_LRFD = "ASCE 7-16 2.3.1"
REF_SELF_WEIGHT = "NDS Supplement 3.1.3"
