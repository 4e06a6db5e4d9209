from __future__ import annotations

import pytest

from woodbeam_app.blocks.wood_errors import InsufficientSupports, InvalidLoadPosition, InvalidSpan
from woodbeam_app.tools.wood_beam_design.models import SupportType
from woodbeam_app.tools.wood_beam_design.single_span import (
    BoundaryPair,
    PointLoad,
    UniformLoad,
    classify_supports,
    solve,
    solve_overhang,
)

EI = 1.0e8  # lb-in^2
PIN = (SupportType.PINNED, SupportType.ROLLER)


def test_simple_span_uniform_load() -> None:
    sol = solve(10.0, PIN, [UniformLoad(100.0)], EI)
    r_l, r_r = sol.reactions
    assert r_l == pytest.approx(500.0)
    assert r_r == pytest.approx(500.0)
    assert sol.moment(5.0) == pytest.approx(1250.0)
    assert sol.moment(0.0) == pytest.approx(0.0, abs=1e-9)
    assert sol.moment(10.0) == pytest.approx(0.0, abs=1e-9)
    assert sol.shear(0.0) == pytest.approx(500.0)
    # 5 w L^4 / 384 EI with L in ft -> in
    assert sol.deflection(5.0) == pytest.approx(5.0 * 100.0 * 10.0**4 / 384.0 * 1728.0 / EI)
    assert sol.deflection(0.0) == pytest.approx(0.0, abs=1e-12)
    assert sol.deflection(10.0) == pytest.approx(0.0, abs=1e-12)


def test_simple_span_midspan_point_load() -> None:
    sol = solve(12.0, PIN, [PointLoad(1000.0, 6.0)], EI)
    assert sol.reactions == pytest.approx((500.0, 500.0))
    assert sol.moment(6.0) == pytest.approx(1000.0 * 12.0 / 4.0)
    assert sol.shear(5.9) == pytest.approx(500.0)
    assert sol.shear(6.1) == pytest.approx(-500.0)
    assert sol.deflection(6.0) == pytest.approx(1000.0 * 12.0**3 / 48.0 * 1728.0 / EI)


def test_fixed_fixed_uniform_load() -> None:
    sol = solve(10.0, (SupportType.FIXED, SupportType.FIXED), [UniformLoad(100.0)], EI)
    assert sol.pair == BoundaryPair.FIXED_FIXED
    assert sol.moment(0.0) == pytest.approx(-100.0 * 100.0 / 12.0)
    assert sol.moment(10.0) == pytest.approx(-100.0 * 100.0 / 12.0)
    assert sol.moment(5.0) == pytest.approx(100.0 * 100.0 / 24.0)
    assert sol.deflection(5.0) == pytest.approx(100.0 * 10.0**4 / 384.0 * 1728.0 / EI)
    assert sol.slope(0.0) == pytest.approx(0.0, abs=1e-12)


def test_propped_cantilever_uniform_load() -> None:
    sol = solve(10.0, (SupportType.FIXED, SupportType.ROLLER), [UniformLoad(100.0)], EI)
    r_l, r_r = sol.reactions
    assert r_l == pytest.approx(5.0 * 100.0 * 10.0 / 8.0)
    assert r_r == pytest.approx(3.0 * 100.0 * 10.0 / 8.0)
    assert sol.moment(0.0) == pytest.approx(-100.0 * 100.0 / 8.0)
    assert sol.moment(10.0) == pytest.approx(0.0, abs=1e-9)


def test_cantilever_uniform_load() -> None:
    sol = solve(8.0, (SupportType.FIXED, SupportType.FREE), [UniformLoad(50.0)], EI)
    assert sol.reactions == pytest.approx((400.0, 0.0))
    assert sol.moment(0.0) == pytest.approx(-50.0 * 64.0 / 2.0)
    assert sol.moment(8.0) == pytest.approx(0.0, abs=1e-9)
    assert sol.shear(8.0) == pytest.approx(0.0, abs=1e-9)
    assert sol.deflection(8.0) == pytest.approx(50.0 * 8.0**4 / 8.0 * 1728.0 / EI)


def test_mirrored_pairs_match_reflected_solution() -> None:
    load = PointLoad(800.0, 3.0)
    left = solve(10.0, (SupportType.FIXED, SupportType.PINNED), [PointLoad(800.0, 7.0)], EI)
    right = solve(10.0, (SupportType.PINNED, SupportType.FIXED), [load], EI)
    assert right.pair == BoundaryPair.PINNED_FIXED
    assert right.reactions[0] == pytest.approx(left.reactions[1])
    assert right.moment(10.0) == pytest.approx(left.moment(0.0))
    for x in (1.0, 3.0, 5.5, 9.0):
        assert right.moment(x) == pytest.approx(left.moment(10.0 - x))
        assert right.deflection(x) == pytest.approx(left.deflection(10.0 - x))


def test_free_fixed_tip_deflection() -> None:
    sol = solve(6.0, (SupportType.FREE, SupportType.FIXED), [PointLoad(300.0, 0.0)], EI)
    assert sol.reactions == pytest.approx((0.0, 300.0))
    assert sol.moment(6.0) == pytest.approx(-1800.0)
    assert sol.deflection(0.0) == pytest.approx(300.0 * 6.0**3 / 3.0 * 1728.0 / EI)
    assert sol.deflection(6.0) == pytest.approx(0.0, abs=1e-12)


def test_superposition_of_loads() -> None:
    a = solve(10.0, PIN, [UniformLoad(100.0)], EI)
    b = solve(10.0, PIN, [PointLoad(500.0, 4.0)], EI)
    ab = solve(10.0, PIN, [UniformLoad(100.0), PointLoad(500.0, 4.0)], EI)
    for x in (0.0, 2.5, 4.0, 7.0, 10.0):
        assert ab.moment(x) == pytest.approx(a.moment(x) + b.moment(x))
        assert ab.deflection(x) == pytest.approx(a.deflection(x) + b.deflection(x))


def test_zero_length_partial_load_is_ignored() -> None:
    sol = solve(10.0, PIN, [UniformLoad(100.0, 4.0, 4.0)], EI)
    assert sol.loads == ()
    assert sol.reactions == pytest.approx((0.0, 0.0))
    assert sol.moment(5.0) == pytest.approx(0.0)


def test_point_load_on_support_goes_to_reaction() -> None:
    sol = solve(10.0, PIN, [PointLoad(1000.0, 10.0)], EI)
    assert sol.reactions == pytest.approx((0.0, 1000.0))
    assert sol.shear(5.0) == pytest.approx(0.0)
    assert sol.shear(10.0) == pytest.approx(0.0)
    ext = sol.extrema()
    assert ext["max_abs_moment_ftlb"] == pytest.approx(0.0, abs=1e-9)


def test_partial_load_zero_shear_station() -> None:
    sol = solve(10.0, PIN, [UniformLoad(200.0, 0.0, 5.0)], EI)
    xs = sol.zero_shear_points()
    assert len(xs) == 1
    r_l = sol.reactions[0]
    assert xs[0] == pytest.approx(r_l / 200.0)
    assert xs[0] in sol.stations().points
    _, m = sol.moment_diagram().max()
    assert m == pytest.approx(r_l**2 / (2.0 * 200.0))


def test_invalid_inputs() -> None:
    with pytest.raises(InvalidSpan):
        solve(0.0, PIN, [], EI)
    with pytest.raises(InvalidSpan):
        solve(10.0, PIN, [], 0.0)
    with pytest.raises(InvalidLoadPosition):
        solve(10.0, PIN, [PointLoad(100.0, 10.5)], EI)
    with pytest.raises(InvalidLoadPosition):
        solve(10.0, PIN, [UniformLoad(100.0, 6.0, 4.0)], EI)


def test_unstable_single_span() -> None:
    with pytest.raises(InsufficientSupports) as exc:
        classify_supports(SupportType.PINNED, SupportType.FREE)
    assert exc.value.code == "INSUFFICIENT_SUPPORTS"
    with pytest.raises(InsufficientSupports):
        solve(10.0, (SupportType.FREE, SupportType.FREE), [UniformLoad(10.0)], EI)


def test_overhang_rotates_with_support() -> None:
    sol = solve_overhang(4.0, [], EI, free_end="right", support_slope_rad=0.01)
    assert sol.deflection(4.0) == pytest.approx(-0.01 * 4.0 * 12.0)
    assert sol.reactions == pytest.approx((0.0, 0.0))


def test_diagram_is_reiterable() -> None:
    sol = solve(10.0, PIN, [UniformLoad(100.0)], EI)
    diagram = sol.moment_diagram(sol.stations(11))
    first = list(diagram)
    second = list(diagram)
    assert first == second
    assert len(first) == 11
