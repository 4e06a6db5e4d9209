from __future__ import annotations

import pytest

from woodbeam_app.blocks.asce7_combinations import LoadType
from woodbeam_app.blocks.wood_errors import InvalidSpan
from woodbeam_app.tools.wood_beam_design.calc_trace import CalcTrace
from woodbeam_app.tools.wood_beam_design.design_check import check_beam, trace_design, util_ratio
from woodbeam_app.tools.wood_beam_design.models import (
    ContinuousBeamInput,
    DiscreteLoad,
    EngineSettings,
    LoadCase,
    SpanSegment,
    SupportType,
)

JOIST = SpanSegment(length_ft=12.0, width_in=1.5, depth_in=9.25)
S_JOIST = 1.5 * 9.25**2 / 6.0


def _dead_only(*extra: DiscreteLoad) -> ContinuousBeamInput:
    return ContinuousBeamInput.simple_span(
        JOIST,
        LoadCase(loads=(DiscreteLoad.uniform(LoadType.DEAD, 150.0),) + extra, include_self_weight=False),
    )


def test_util_ratio() -> None:
    assert util_ratio(50.0, 100.0) == 0.5
    assert util_ratio(0.0, 0.0) == 0.0
    assert util_ratio(1.0, 0.0) == float("inf")


def test_dead_load_simple_span() -> None:
    res = check_beam(_dead_only())
    asd1 = res.combination("ASD-1").analysis
    assert asd1.max_abs_moment.value == pytest.approx(2700.0)
    assert abs(asd1.max_abs_shear.value) == pytest.approx(900.0)
    assert asd1.reactions_lb == pytest.approx((900.0, 900.0))

    bending = res.governing["bending"]
    fb = 2700.0 * 12.0 / S_JOIST
    assert bending.combination == "ASD-1"
    assert bending.demand == pytest.approx(fb)
    assert bending.capacity == pytest.approx(900.0 * 0.9 * 1.1)
    assert bending.unity == pytest.approx(fb / 891.0)
    assert bending.unity == pytest.approx(1.70, abs=0.005)
    assert bending.detail == "positive moment"
    assert not bending.passed
    assert not res.passed

    shear = res.governing["shear"]
    assert shear.demand == pytest.approx(1.5 * 900.0 / (1.5 * 9.25))
    assert shear.capacity == pytest.approx(180.0 * 0.9)
    assert shear.passed


def test_governing_checks_are_read_only() -> None:
    res = check_beam(_dead_only())
    with pytest.raises(TypeError):
        res.governing["bending"] = res.governing["shear"]
    assert res.governing["bending"].detail == "positive moment"
    assert res.passed is False


def test_point_load_superposition() -> None:
    res = check_beam(_dead_only(DiscreteLoad.point(LoadType.DEAD, 1000.0, 6.0)))
    analysis = res.combination("ASD-1").analysis
    assert analysis.max_abs_moment.value == pytest.approx(5700.0)
    assert analysis.max_abs_moment.x_ft == pytest.approx(6.0)
    assert abs(analysis.max_abs_shear.value) == pytest.approx(1400.0)


def test_deflection_uses_adjusted_modulus() -> None:
    res = check_beam(_dead_only())
    d = res.governing["deflection"]
    ei = 1.6e6 * 1.5 * 9.25**3 / 12.0
    assert d.demand == pytest.approx(5.0 * 150.0 * 12.0**4 / 384.0 * 1728.0 / ei, rel=1e-6)
    assert d.capacity == pytest.approx(144.0 / 240.0)
    tighter = check_beam(_dead_only(), settings=EngineSettings(deflection_limit=360.0))
    assert tighter.governing["deflection"].unity == pytest.approx(d.unity * 1.5)


def test_two_span_continuous_interior_moment() -> None:
    beam = ContinuousBeamInput(
        spans=(SpanSegment(length_ft=10.0), SpanSegment(length_ft=10.0)),
        supports=(SupportType.PINNED, SupportType.ROLLER, SupportType.ROLLER),
        load_case=LoadCase(loads=(DiscreteLoad.uniform(LoadType.DEAD, 100.0),), include_self_weight=False),
    )
    res = check_beam(beam)
    analysis = res.combination("ASD-1").analysis
    assert analysis.support_moments_ftlb[1] == pytest.approx(-100.0 * 10.0**2 / 8.0, rel=1e-6)
    assert res.governing["bending"].detail == "negative moment"
    assert res.governing["bending"].span in (0, 1)


def test_reaction_envelope_and_summary() -> None:
    beam = ContinuousBeamInput.simple_span(
        JOIST,
        LoadCase(
            loads=(DiscreteLoad.uniform(LoadType.DEAD, 20.0), DiscreteLoad.uniform(LoadType.LIVE, 60.0)),
            include_self_weight=False,
        ),
    )
    res = check_beam(beam)
    left = res.reactions[0]
    assert left.max_lb == pytest.approx(80.0 * 6.0)
    assert left.max_combination == "ASD-2"
    assert left.min_lb == pytest.approx(0.6 * 20.0 * 6.0)
    assert left.min_combination == "ASD-8"

    table = res.summary_table()
    assert len(table) == 16
    assert {"combination", "equation", "M_max_ftlb", "bending_unity", "deflection_unity"} <= set(table.columns)
    assert table["M_max_ftlb"].max() == pytest.approx(80.0 * 144.0 / 8.0)

    data = res.to_dict()
    assert data["pass"] is True
    assert set(data["governing"]) == {"bending", "shear", "deflection"}


def test_lrfd_dead_only_governs_with_time_effect() -> None:
    res = check_beam(_dead_only(), method="LRFD")
    bending = res.governing["bending"]
    assert bending.combination == "LRFD-1"
    assert bending.capacity == pytest.approx(900.0 * 2.54 * 0.85 * 0.6 * 1.1)
    assert bending.demand == pytest.approx(1.4 * 2700.0 * 12.0 / S_JOIST)


def test_self_weight_adds_to_dead_load() -> None:
    beam = ContinuousBeamInput.simple_span(JOIST, LoadCase(loads=(DiscreteLoad.uniform(LoadType.LIVE, 100.0),)))
    res = check_beam(beam)
    sw = res.self_weight_plf[0]
    assert sw > 0.0
    assert res.combination("ASD-1").analysis.total_load_lb == pytest.approx(sw * 12.0)
    assert res.combination("ASD-2").analysis.total_load_lb == pytest.approx((sw + 100.0) * 12.0)


def test_invalid_span_surfaces() -> None:
    beam = ContinuousBeamInput.simple_span(SpanSegment(length_ft=0.0), LoadCase(include_self_weight=False))
    with pytest.raises(InvalidSpan):
        check_beam(beam)


def test_trace_records_governing_checks() -> None:
    beam = _dead_only()
    settings = EngineSettings()
    res = check_beam(beam, settings=settings)
    trace = CalcTrace.new(tool_id="wood_beam_design", tool_version="test", inputs={"case": 1})
    trace_design(trace, beam, res, settings)
    step = trace.step("G.bending")
    assert step is not None
    assert step.checks[0].pass_fail == "FAIL"
    assert step.checks[0].unity == pytest.approx(res.governing["bending"].unity)
    cap = trace.step("G.bending.cap")
    assert cap is not None
    assert cap.value == pytest.approx(891.0)
    assert cap.substitution.startswith("Fb' = 900")
    assert trace.step("S1.S").value == pytest.approx(S_JOIST)
    assert trace.summary["pass"] is False
    assert len(trace.tables["combinations"]) == 16


def test_trace_sections_and_duplicate_ids() -> None:
    from woodbeam_app.tools.wood_beam_design.calc_trace import CalcVar, compute_step, derived_ref

    beam = _dead_only()
    settings = EngineSettings()
    res = check_beam(beam, settings=settings)
    trace = CalcTrace.new(tool_id="wood_beam_design", tool_version="test", inputs={"case": 1})
    trace_design(trace, beam, res, settings)
    governing = trace.section("Governing checks")
    assert {s.id for s in governing} == {"G.bending", "G.shear", "G.deflection"}
    assert all(s.combination is not None for s in governing)
    assert "Bending (fb <= Fb')" in [c.label for c in trace.failed_checks()]
    assert trace.to_dict()["steps"][-1]["checks"][0]["pass_fail"] in ("PASS", "FAIL")
    with pytest.raises(ValueError):
        compute_step(
            trace, id="S1.A", section="x", title="Area", output_symbol="A", equation="A = b d",
            variables=[CalcVar("b", "Width", 1.5, "in")], compute_fn=lambda: 1.0, units="in^2",
            references=[derived_ref("Rectangular section")],
        )
