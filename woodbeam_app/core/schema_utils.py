from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, ValidationError


def format_validation_error(e: ValidationError) -> List[Dict[str, Any]]:
    return [
        {"loc": ".".join(str(p) for p in err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in e.errors()
    ]


def validate_inputs(model: Optional[Type[BaseModel]], raw: Dict[str, Any]) -> Tuple[Dict[str, Any], Optional[str]]:
    """
    Returns (validated_dict, error_message). If model is None, returns raw as-is.
    """
    if model is None:
        return raw, None
    try:
        obj = model.model_validate(raw)
        return obj.model_dump(mode="json"), None
    except ValidationError as e:
        return {}, "; ".join(f"{d['loc']}: {d['msg']}" for d in format_validation_error(e))
