from __future__ import annotations

import pytest

from woodbeam_app.blocks.asce7_combinations import LoadType, combinations, factor
from woodbeam_app.blocks.wood_errors import InsufficientSupports, MomentDistributionDidNotConverge
from woodbeam_app.tools.wood_beam_design.continuous_beam import analyze, check_stability, factored_span_loads
from woodbeam_app.tools.wood_beam_design.models import (
    ContinuousBeamInput,
    DiscreteLoad,
    EngineSettings,
    LoadCase,
    SpanSegment,
    SupportType,
)
from woodbeam_app.tools.wood_beam_design.moment_distribution import (
    MDMember,
    MDState,
    MomentDistribution,
    fem_partial,
    fem_point,
    fem_uniform,
)
from woodbeam_app.tools.wood_beam_design.single_span import UniformLoad

EI = 1.0e8
P, R, F, X = SupportType.PINNED, SupportType.ROLLER, SupportType.FIXED, SupportType.FREE


def _beam(lengths, supports, loads=()) -> ContinuousBeamInput:
    return ContinuousBeamInput(
        spans=tuple(SpanSegment(length_ft=L) for L in lengths),
        supports=tuple(supports),
        load_case=LoadCase(loads=tuple(loads), include_self_weight=False),
    )


def test_fixed_end_moments() -> None:
    assert fem_uniform(120.0, 10.0) == pytest.approx((-1000.0, 1000.0))
    assert fem_point(1000.0, 5.0, 10.0) == pytest.approx((-1250.0, 1250.0))
    # Full-length partial load falls back to the exact uniform result.
    assert fem_partial(120.0, 0.0, 10.0, 10.0) == pytest.approx((-1000.0, 1000.0))
    left, right = fem_partial(120.0, 0.0, 5.0, 10.0, subdivisions=200)
    # Exact: w a^2 (6L^2 - 8aL + 3a^2) / (12 L^2) with a = L/2
    assert -left == pytest.approx(120.0 * 25.0 * (600.0 - 400.0 + 75.0) / 1200.0, rel=1e-4)
    # Exact: w a^3 (4L - 3a) / (12 L^2)
    assert right == pytest.approx(120.0 * 125.0 * (40.0 - 15.0) / 1200.0, rel=1e-4)


def test_two_equal_spans_uniform_load() -> None:
    m = fem_uniform(100.0, 10.0)
    md = MomentDistribution(
        [MDMember(10.0, EI, *m), MDMember(10.0, EI, *m)],
        [P, R, R],
    )
    res = md.run()
    assert res.state == MDState.CONVERGED
    assert md.state == MDState.CONVERGED
    assert res.support_moments == pytest.approx((0.0, -1250.0, 0.0), abs=1e-6)


def test_does_not_converge_with_one_sweep() -> None:
    zero = (0.0, 0.0)
    md = MomentDistribution(
        [MDMember(10.0, EI, *zero), MDMember(10.0, EI, *fem_uniform(100.0, 10.0)), MDMember(10.0, EI, *zero)],
        [P, R, R, R],
        max_iterations=1,
    )
    with pytest.raises(MomentDistributionDidNotConverge) as exc:
        md.run()
    assert md.state == MDState.FAILED
    assert exc.value.iterations == 1
    assert exc.value.residual > 0.0
    assert exc.value.to_dict()["details"]["residual"] == pytest.approx(exc.value.residual)


def test_three_span_converges_and_is_symmetric() -> None:
    m = fem_uniform(100.0, 12.0)
    md = MomentDistribution([MDMember(12.0, EI, *m) for _ in range(3)], [P, R, R, R])
    res = md.run()
    assert res.state == MDState.CONVERGED
    # Three equal spans: interior support moments -0.1 w L^2
    assert res.support_moments[1] == pytest.approx(-0.1 * 100.0 * 144.0, rel=1e-5)
    assert res.support_moments[2] == pytest.approx(res.support_moments[1], rel=1e-5)
    assert md.history[-1] < md.history[0]


def test_continuous_beam_reactions_and_equilibrium() -> None:
    beam = _beam([10.0, 10.0], [P, R, R], [DiscreteLoad.uniform(LoadType.DEAD, 100.0)])
    res = analyze(beam, [[UniformLoad(100.0)], [UniformLoad(100.0)]], [EI, EI])
    assert res.reactions_lb == pytest.approx((375.0, 1250.0, 375.0))
    assert sum(res.reactions_lb) == pytest.approx(res.total_load_lb)
    assert res.support_moments_ftlb[1] == pytest.approx(-1250.0)
    assert res.max_negative_moment.value == pytest.approx(-1250.0)
    assert res.max_positive_moment.value == pytest.approx(9.0 * 100.0 * 100.0 / 128.0, rel=1e-6)
    assert res.md is not None and res.md.state == MDState.CONVERGED


def test_fixed_ends_match_closed_form() -> None:
    beam = _beam([10.0, 10.0], [F, R, F])
    res = analyze(beam, [[UniformLoad(100.0)], [UniformLoad(100.0)]], [EI, EI])
    # Symmetric: the interior joint does not rotate, each span behaves as fixed-fixed.
    assert res.support_moments_ftlb[0] == pytest.approx(-100.0 * 100.0 / 12.0)
    assert res.support_moments_ftlb[1] == pytest.approx(-100.0 * 100.0 / 12.0)
    assert res.rotations_rad[1] == pytest.approx(0.0, abs=1e-12)


def test_overhang_support_moment() -> None:
    beam = _beam([10.0, 3.0], [P, R, X])
    res = analyze(beam, [[UniformLoad(100.0)], [UniformLoad(100.0)]], [EI, EI])
    assert res.support_moments_ftlb[1] == pytest.approx(-100.0 * 9.0 / 2.0)
    assert res.support_moments_ftlb[2] == pytest.approx(0.0, abs=1e-9)
    assert sum(res.reactions_lb) == pytest.approx(1300.0)
    assert res.reactions_lb[2] == pytest.approx(0.0)
    # Back span pin-pin with the overhang moment at its right end.
    assert res.reactions_lb[0] == pytest.approx(500.0 - 450.0 / 10.0)


def test_overhang_tip_follows_back_span_rotation() -> None:
    beam = _beam([10.0, 3.0], [P, R, X])
    res = analyze(beam, [[UniformLoad(100.0)], []], [EI, EI])
    back = res.spans[0].solution
    tip = res.spans[1].solution
    assert tip.slope(0.0) == pytest.approx(back.slope(10.0))
    # Uplift at the tip of an unloaded overhang.
    assert tip.deflection(3.0) < 0.0


def test_stability_rules() -> None:
    check_stability([P, R])
    check_stability([F, X])
    check_stability([X, F, X])
    with pytest.raises(InsufficientSupports):
        check_stability([P, X, R])
    with pytest.raises(InsufficientSupports):
        check_stability([X, P, X])
    with pytest.raises(InsufficientSupports):
        analyze(_beam([10.0, 10.0], [X, P, X]), [[], []], [EI, EI])


def test_settings_cap_is_enforced_through_analyze() -> None:
    beam = _beam([10.0, 10.0, 10.0], [P, R, R, R])
    loads = [[], [UniformLoad(100.0)], []]
    with pytest.raises(MomentDistributionDidNotConverge):
        analyze(beam, loads, [EI] * 3, EngineSettings(md_max_iterations=1))


def test_fixed_support_moment_reactions() -> None:
    beam = _beam([10.0, 10.0], [F, R, F])
    res = analyze(beam, [[UniformLoad(100.0)], [UniformLoad(100.0)]], [EI, EI])
    m = 100.0 * 100.0 / 12.0
    assert res.moment_reactions_ftlb[0] == pytest.approx(-m)
    assert res.moment_reactions_ftlb[1] == 0.0
    assert res.moment_reactions_ftlb[2] == pytest.approx(m)
    assert res.support_moments_right_ftlb[1] == pytest.approx(res.support_moments_ftlb[1])


def test_interior_fixed_support_reports_both_sides() -> None:
    # Node 1 cannot rotate: span 0 acts as a propped cantilever, span 1 carries nothing.
    beam = _beam([10.0, 10.0], [P, F, R])
    res = analyze(beam, [[UniformLoad(100.0)], []], [EI, EI])
    assert res.support_moments_ftlb[1] == pytest.approx(-1250.0)
    assert res.support_moments_right_ftlb[1] == pytest.approx(0.0, abs=1e-9)
    assert res.moment_reactions_ftlb[1] == pytest.approx(1250.0)
    assert res.moment_reactions_ftlb[0] == 0.0
    assert res.moment_reactions_ftlb[2] == 0.0
    assert res.reactions_lb == pytest.approx((375.0, 625.0, 0.0), abs=1e-9)


@pytest.mark.parametrize("method", ["ASD", "LRFD"])
@pytest.mark.parametrize(
    "lengths, supports",
    [([10.0, 3.0], [P, R, X]), ([10.0, 8.0], [F, R, F])],
    ids=["overhang", "fixed-ends"],
)
def test_reactions_balance_every_combination(lengths, supports, method) -> None:
    beam = _beam(
        lengths,
        supports,
        [
            DiscreteLoad.uniform(LoadType.DEAD, 40.0),
            DiscreteLoad.partial(LoadType.LIVE, 150.0, 2.0, 11.5),
            DiscreteLoad.point(LoadType.WIND, 600.0, 12.0),
            DiscreteLoad.uniform(LoadType.SNOW, 60.0),
        ],
    )
    combos = combinations(beam.load_case, method)
    assert len(combos) > 1
    for combo in combos:
        res = analyze(beam, factored_span_loads(beam, combo), [EI, EI])
        expected = factor(combo, beam.load_case, lengths)
        assert sum(res.reactions_lb) == pytest.approx(expected, abs=1e-6), combo.name
