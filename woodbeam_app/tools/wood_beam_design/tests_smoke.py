from __future__ import annotations

import json
from pathlib import Path

import pytest

from woodbeam_app.core.loader import discover_tools, tools_by_id
from woodbeam_app.tools.wood_beam_design import TOOL


@pytest.fixture(autouse=True)
def _isolated_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WOODBEAM_DATA_DIR", str(tmp_path / "data"))


def test_smoke_default_inputs() -> None:
    res = TOOL.run(TOOL.default_inputs())
    assert res["ok"] is True
    assert len(res["input_hash"]) == 12
    assert set(res["result"]["governing"]) == {"bending", "shear", "deflection"}
    assert res["trace"]["meta"]["tool_id"] == "wood_beam_design"
    assert any(s["id"] == "G.bending" for s in res["trace"]["steps"])


def test_smoke_hash_is_deterministic() -> None:
    a = TOOL.run(TOOL.default_inputs())
    b = TOOL.run(TOOL.default_inputs())
    assert a["input_hash"] == b["input_hash"]


def test_smoke_lrfd_continuous_glulam() -> None:
    inputs = {
        "design_method": "LRFD",
        "beam": {
            "label": "Glulam header",
            "spans": [
                {"length_ft": 16.0, "width_in": 5.125, "depth_in": 15.0, "material": {"kind": "glulam", "stress_class": "24F-V4"}},
                {"length_ft": 12.0, "width_in": 5.125, "depth_in": 15.0, "material": {"kind": "glulam", "stress_class": "24F-V4"}},
                {"length_ft": 3.0, "width_in": 5.125, "depth_in": 15.0, "material": {"kind": "glulam", "stress_class": "24F-V4"}},
            ],
            "supports": ["pinned", "roller", "roller", "free"],
            "load_case": {
                "loads": [
                    {"load_type": "D", "distribution": "uniform", "magnitude": 15.0, "tributary_width_ft": 10.0},
                    {"load_type": "S", "distribution": "uniform", "magnitude": 30.0, "tributary_width_ft": 10.0},
                    {"load_type": "W", "distribution": "partial_uniform", "magnitude": -10.0, "start_ft": 0.0, "end_ft": 16.0, "tributary_width_ft": 10.0},
                    {"load_type": "L", "distribution": "point", "magnitude": 2000.0, "position_ft": 22.0},
                ]
            },
        },
    }
    res = TOOL.run(inputs)
    assert res["ok"] is True
    assert res["result"]["method"] == "LRFD"
    assert len(res["result"]["combinations"]) == 23
    assert len(res["result"]["reactions"]) == 4


def test_smoke_batch_writes_outputs(tmp_path: Path) -> None:
    res = TOOL.run_batch(TOOL.default_inputs(), out_dir=tmp_path / "run")
    assert res["ok"] is True
    run_dir = Path(res["run_dir"])
    assert (run_dir / "run.log").exists()
    trace = json.loads((run_dir / "trace.json").read_text(encoding="utf-8"))
    assert trace["meta"]["input_hash"] == res["input_hash"]


def test_smoke_invalid_input() -> None:
    res = TOOL.run({"beam": {"spans": "not a list"}})
    assert res["ok"] is False
    assert res["error"]["code"] == "INVALID_INPUT"

    res = TOOL.run({"beam": {"spans": [{"length_ft": 10.0}], "supports": ["pinned"]}})
    assert res["ok"] is False
    assert res["error"]["code"] == "INVALID_INPUT"


def test_smoke_unstable_beam_is_reported() -> None:
    inputs = TOOL.default_inputs()
    inputs["beam"]["supports"] = ["pinned", "free"]
    res = TOOL.run(inputs)
    assert res["ok"] is False
    assert res["error"]["code"] == "INSUFFICIENT_SUPPORTS"


def test_smoke_load_off_the_beam_is_reported() -> None:
    inputs = TOOL.default_inputs()
    inputs["beam"]["load_case"]["loads"].append(
        {"load_type": "L", "distribution": "point", "magnitude": 500.0, "position_ft": 30.0}
    )
    res = TOOL.run(inputs)
    assert res["ok"] is False
    assert res["error"]["code"] == "INVALID_LOAD_POSITION"


def test_tool_is_discovered() -> None:
    assert "wood_beam_design" in tools_by_id()
    assert any(t.meta.id == "wood_beam_design" for t in discover_tools())


def test_cli_runs_input_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    from loguru import logger

    from woodbeam_app.tools.wood_beam_design.cli import main

    src = tmp_path / "beam.json"
    src.write_text(json.dumps(TOOL.default_inputs()), encoding="utf-8")
    try:
        code = main([str(src), "--out", str(tmp_path / "out")])
    finally:
        logger.remove()
    assert code in (0, 1)
    out = capsys.readouterr().out
    assert "bending" in out
    assert (tmp_path / "out" / "trace.json").exists()


def test_saved_settings_apply_when_inputs_omit_them() -> None:
    from woodbeam_app.core.settings import save_settings

    save_settings({"wood_beam_design": {"deflection_limit": 360.0, "not_a_setting": 1}})
    inputs = TOOL.default_inputs()
    inputs.pop("settings")
    res = TOOL.run(inputs)
    assert res["ok"] is True
    assert any("L/360" in a["text"] for a in res["trace"]["assumptions"])

    res = TOOL.run(TOOL.default_inputs())
    assert any("L/240" in a["text"] for a in res["trace"]["assumptions"])
