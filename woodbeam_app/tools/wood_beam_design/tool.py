from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from woodbeam_app.blocks.wood_errors import WoodBeamError
from woodbeam_app.core.paths import runs_dir
from woodbeam_app.core.schema_utils import validate_inputs
from woodbeam_app.core.tool_base import ToolMeta

from .calc_trace import Assumption, CalcTrace, compute_input_hash
from .constants import CODE_BASIS, DEFAULT_UNITS_SYSTEM, TOOL_ID, TOOL_VERSION
from .design_check import check_beam, trace_design
from .logging_utils import add_run_sink, get_calc_logger, remove_run_sink
from .models import EngineSettings, WoodBeamInputs


def _with_user_settings(inputs: Dict[str, Any]) -> Dict[str, Any]:
    # Solver settings left out of the inputs come from settings.json.
    if "settings" in inputs:
        return inputs
    return {**inputs, "settings": EngineSettings.from_user_settings().model_dump()}


def _assumptions(model: WoodBeamInputs) -> List[Assumption]:
    out = [
        Assumption(id="A1", text="Prismatic members per span; linear-elastic, small-deflection bending theory."),
        Assumption(id="A2", text="Shear stress from f_v = 1.5 V / A at the maximum shear; no reduction within d of supports."),
        Assumption(
            id="A3",
            text=f"Deflection limit L/{model.settings.deflection_limit:g} applied to each span, cantilevers included.",
        ),
    ]
    if model.beam.load_case.include_self_weight:
        out.append(Assumption(id="A4", text="Member self-weight at 19% moisture content is added to the dead load."))
    if len(model.beam.spans) > 1:
        out.append(
            Assumption(
                id="A5",
                text="Continuous spans solved by moment distribution; partial-load fixed-end moments by midpoint rule.",
            )
        )
    return out


class WoodBeamDesignTool:
    """Wood beam analysis and NDS code check.

    run() is headless and returns a plain dict; run_batch() also writes the trace and a run log to
    the user data directory.
    """

    meta = ToolMeta(
        id=TOOL_ID,
        name="Wood Beam Design",
        category="Wood",
        version=TOOL_VERSION,
        description="Single and continuous wood beams (sawn, glulam, LVL, PSL) checked to NDS 2018 with ASCE 7-16 combinations.",
    )

    InputModel = WoodBeamInputs

    def default_inputs(self) -> Dict[str, Any]:
        return self.InputModel().model_dump(mode="json")

    def run(self, inputs: Dict[str, Any]) -> Dict[str, Any]:
        validated, err = validate_inputs(self.InputModel, _with_user_settings(inputs))
        if err:
            return {"ok": False, "error": {"code": "INVALID_INPUT", "message": err, "details": {}}}
        return self._run_validated(validated)

    def _run_validated(self, validated: Dict[str, Any], log: Any = None) -> Dict[str, Any]:
        model = self.InputModel.model_validate(validated)
        input_hash = compute_input_hash(validated)
        log = log or get_calc_logger(self.meta.id, input_hash)

        try:
            log.info(f"Starting {self.meta.id} v{self.meta.version} ({model.design_method})")
            trace = CalcTrace.new(
                tool_id=self.meta.id,
                tool_version=self.meta.version,
                inputs=validated,
                design_method=model.design_method,
                units_system=DEFAULT_UNITS_SYSTEM,
                input_hash=input_hash,
                code_basis=CODE_BASIS,
            )
            trace.assumptions.extend(_assumptions(model))

            result = check_beam(model.beam, model.design_method, model.settings, log=log)
            trace_design(trace, model.beam, result, model.settings)

            log.info(f"Finished: {'PASS' if result.passed else 'FAIL'}")
            return {
                "ok": True,
                "input_hash": input_hash,
                "result": result.to_dict(),
                "trace": trace.to_dict(),
            }

        except WoodBeamError as e:
            log.error(f"{e.code}: {e.message}")
            return {"ok": False, "input_hash": input_hash, "error": e.to_dict()}

        except Exception:
            log.exception("Wood beam run failed")
            raise

    # ------------------------------
    # Batch calculation API (headless, writes to disk)
    # ------------------------------
    def run_batch(self, inputs: Dict[str, Any], out_dir: Optional[Path] = None) -> Dict[str, Any]:
        """Run and write ``trace.json`` / ``run.log`` under ``runs/<tool>/<input hash>/``."""
        validated, err = validate_inputs(self.InputModel, _with_user_settings(inputs))
        if err:
            return {"ok": False, "error": {"code": "INVALID_INPUT", "message": err, "details": {}}}

        input_hash = compute_input_hash(validated)
        run_dir = Path(out_dir) if out_dir is not None else runs_dir() / self.meta.id / input_hash
        run_dir.mkdir(parents=True, exist_ok=True)
        sink = add_run_sink(run_dir / "run.log", self.meta.id, input_hash)
        try:
            res = self._run_validated(validated, get_calc_logger(self.meta.id, input_hash))
            res["run_dir"] = str(run_dir)
            if res["ok"]:
                (run_dir / "trace.json").write_text(json.dumps(res["trace"], indent=2, default=str), encoding="utf-8")
            return res
        finally:
            remove_run_sink(sink)


TOOL = WoodBeamDesignTool()
