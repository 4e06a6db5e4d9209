from __future__ import annotations

from typing import Any, Dict


class WoodBeamError(Exception):
    """Base class for calculation errors surfaced to the caller.

    Every error carries a stable machine-readable ``code`` and a ``details`` mapping so the tool
    boundary can hand a structured record to the UI/CLI instead of a traceback.
    """

    code = "CALC_ERROR"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": dict(self.details)}


class InvalidSpan(WoodBeamError):
    code = "INVALID_SPAN"


class InvalidLoadPosition(WoodBeamError):
    code = "INVALID_LOAD_POSITION"


class InsufficientSupports(WoodBeamError):
    code = "INSUFFICIENT_SUPPORTS"


class MaterialPropertyMissing(WoodBeamError):
    code = "MATERIAL_PROPERTY_MISSING"


class MomentDistributionDidNotConverge(WoodBeamError):
    code = "MD_NOT_CONVERGED"

    def __init__(self, message: str, *, residual: float, iterations: int, **details: Any) -> None:
        super().__init__(message, residual=residual, iterations=iterations, **details)
        self.residual = float(residual)
        self.iterations = int(iterations)
