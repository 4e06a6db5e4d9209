from __future__ import annotations

import math

import pytest

from woodbeam_app.blocks.asce7_combinations import LoadType, base_combinations
from woodbeam_app.blocks.nds_factors import (
    AdjustmentFactors,
    LoadDuration,
    MemberGeometry,
    RepetitiveMember,
    Temperature,
    WetService,
    adjusted_bending,
    adjusted_modulus,
    adjusted_modulus_min,
    adjusted_shear,
    duration_for_combination,
    size_factor,
    time_effect_for_combination,
)
from woodbeam_app.blocks.wood_errors import MaterialPropertyMissing

JOIST = MemberGeometry(width_in=1.5, depth_in=9.25, span_ft=12.0)
ASD = {c.name: c for c in base_combinations("ASD")}
LRFD = {c.name: c for c in base_combinations("LRFD")}


def test_size_factor_table() -> None:
    assert size_factor(JOIST).value == pytest.approx(1.1)
    assert size_factor(MemberGeometry(1.5, 11.25, 12.0)).value == pytest.approx(1.0)
    assert size_factor(MemberGeometry(3.5, 7.25, 12.0)).value == pytest.approx(1.3)
    assert size_factor(MemberGeometry(1.5, 13.25, 12.0)).value == pytest.approx(0.9)
    # Built-up plies are classed by ply thickness.
    assert size_factor(MemberGeometry(4.5, 9.25, 12.0, plies=3)).value == pytest.approx(1.1)
    # Timbers deeper than 12 in use (12/d)^(1/9).
    assert size_factor(MemberGeometry(5.5, 15.5, 12.0)).value == pytest.approx((12.0 / 15.5) ** (1.0 / 9.0))
    assert size_factor(MemberGeometry(3.5, 11.875, 12.0, sawn=False)).value == 1.0


def test_load_duration_auto_uses_present_loads() -> None:
    present = {LoadType.DEAD, LoadType.LIVE}
    assert duration_for_combination(ASD["ASD-1"], present) == LoadDuration.PERMANENT
    assert duration_for_combination(ASD["ASD-2"], present) == LoadDuration.NORMAL
    # Snow is in the equation but not in the load case.
    assert duration_for_combination(ASD["ASD-3b"], present) == LoadDuration.PERMANENT
    assert duration_for_combination(ASD["ASD-3b"]) == LoadDuration.SNOW
    assert duration_for_combination(ASD["ASD-5a"]) == LoadDuration.WIND_SEISMIC


def test_bending_factor_breakdown() -> None:
    fb = adjusted_bending(900.0, AdjustmentFactors(), JOIST, e_min_psi=580_000, combination=ASD["ASD-1"], load_types={LoadType.DEAD})
    assert [f.symbol for f in fb.factors] == ["C_D", "C_M", "C_t", "C_L", "C_F", "C_fu", "C_i", "C_r"]
    assert fb.factor("C_D") == pytest.approx(0.9)
    assert fb.value_psi == pytest.approx(900.0 * 0.9 * 1.1)
    assert fb.value_psi == pytest.approx(fb.reference_psi * fb.product)
    assert fb.warnings == ()


def test_fixed_duration_overrides_auto() -> None:
    factors = AdjustmentFactors(load_duration=LoadDuration.SNOW)
    fv = adjusted_shear(180.0, factors, combination=ASD["ASD-1"])
    assert fv.value_psi == pytest.approx(180.0 * 1.15)


def test_repetitive_and_service_factors() -> None:
    factors = AdjustmentFactors(
        repetitive_member=RepetitiveMember.REPETITIVE,
        wet_service=WetService.WET,
        temperature=Temperature.ELEVATED,
    )
    fb = adjusted_bending(900.0, factors, JOIST, e_min_psi=580_000, combination=ASD["ASD-2"], load_types={LoadType.DEAD, LoadType.LIVE})
    assert fb.factor("C_r") == pytest.approx(1.15)
    # Fb C_F = 990 psi <= 1150 psi: no wet reduction for bending.
    assert fb.factor("C_M") == 1.0
    assert fb.factor("C_t") == pytest.approx(0.7)
    fb_ss = adjusted_bending(1500.0, factors, JOIST, e_min_psi=690_000, combination=ASD["ASD-2"])
    assert fb_ss.factor("C_M") == pytest.approx(0.85)
    fv = adjusted_shear(180.0, factors, combination=ASD["ASD-2"])
    assert fv.factor("C_M") == pytest.approx(0.97)
    e = adjusted_modulus(1.6e6, factors)
    assert e.value_psi == pytest.approx(1.6e6 * 0.9 * 0.9)


def test_repetitive_factor_only_for_sawn() -> None:
    factors = AdjustmentFactors(repetitive_member=RepetitiveMember.REPETITIVE)
    lvl = MemberGeometry(1.75, 11.875, 12.0, sawn=False)
    fb = adjusted_bending(2600.0, factors, lvl, e_min_psi=1_016_000)
    assert fb.factor("C_r") == 1.0


def test_beam_stability_factor() -> None:
    factors = AdjustmentFactors(compression_edge_braced=False)
    fb = adjusted_bending(900.0, factors, JOIST, e_min_psi=580_000)
    rb2 = 144.0 * 9.25 / 1.5**2
    fbe = 1.20 * 580_000 / rb2
    ratio = fbe / (900.0 * 1.1)
    a = (1.0 + ratio) / 1.9
    expected = a - math.sqrt(a * a - ratio / 0.95)
    assert fb.factor("C_L") == pytest.approx(expected)
    assert 0.0 < fb.factor("C_L") < 1.0
    braced = adjusted_bending(900.0, AdjustmentFactors(), JOIST, e_min_psi=580_000)
    assert braced.factor("C_L") == 1.0


def test_slender_beam_gets_zero_capacity_and_warning() -> None:
    factors = AdjustmentFactors(compression_edge_braced=False, unbraced_length_ft=60.0)
    fb = adjusted_bending(900.0, factors, JOIST, e_min_psi=580_000)
    assert fb.factor("C_L") == 0.0
    assert fb.value_psi == 0.0
    assert len(fb.warnings) == 1
    assert "R_B" in fb.warnings[0]


def test_lrfd_format_conversion() -> None:
    fb = adjusted_bending(900.0, AdjustmentFactors(), JOIST, e_min_psi=580_000, method="LRFD", combination=LRFD["LRFD-2a"], load_types={LoadType.DEAD, LoadType.LIVE})
    assert fb.factor("K_F") == pytest.approx(2.54)
    assert fb.factor("phi") == pytest.approx(0.85)
    assert fb.factor("lambda") == pytest.approx(0.8)
    assert fb.value_psi == pytest.approx(900.0 * 2.54 * 0.85 * 0.8 * 1.1)
    assert time_effect_for_combination(LRFD["LRFD-1"]) == pytest.approx(0.6)
    assert time_effect_for_combination(LRFD["LRFD-6"]) == pytest.approx(1.0)
    # Only dead load present in a D + L equation -> lambda for dead load.
    assert time_effect_for_combination(LRFD["LRFD-2a"], {LoadType.DEAD}) == pytest.approx(0.6)
    e_min = adjusted_modulus_min(580_000, AdjustmentFactors(), method="LRFD")
    assert e_min.value_psi == pytest.approx(580_000 * 1.76 * 0.85)


def test_missing_reference_value() -> None:
    with pytest.raises(MaterialPropertyMissing):
        adjusted_shear(0.0, AdjustmentFactors())
    with pytest.raises(MaterialPropertyMissing):
        adjusted_modulus(float("nan"), AdjustmentFactors())


def test_factor_composition_is_order_independent() -> None:
    factors = AdjustmentFactors(wet_service=WetService.WET, repetitive_member=RepetitiveMember.REPETITIVE)
    fb = adjusted_bending(1500.0, factors, JOIST, e_min_psi=690_000, combination=ASD["ASD-2"])
    forward = fb.reference_psi * math.prod(f.value for f in fb.factors)
    backward = fb.reference_psi * math.prod(f.value for f in reversed(fb.factors))
    assert fb.value_psi == pytest.approx(forward)
    assert fb.value_psi == pytest.approx(backward)
