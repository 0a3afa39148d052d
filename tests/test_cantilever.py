# tests/test_cantilever.py
"""
CANTILEVER TESTS: Closed-Form Validation
========================================

A cantilever fixed at one end and loaded at the other has textbook answers
for tip deflection, tip rotation, root reactions and the internal force
diagrams. Euler-Bernoulli elements reproduce them exactly at the nodes, and
the station interpolation (Hermite + fixed-fixed particular solution) is
exact along the span as well.

    tip load P:   δ = P·L³ / (3·E·I)     θ = P·L² / (2·E·I)
    uniform q:    δ = q·L⁴ / (8·E·I)
"""

import numpy as np
import pytest

from builders import E, IY, IZ, cantilever, member_section
from struct_core import run
from struct_core.model import BeamLoad

L = 3.0
P = 1000.0


def _static(model, **config):
    record = run(model, config)
    assert record.status == "completed", record.error_message
    return record.load_case_results[0]


def test_tip_load_deflection_and_rotation(loaded_cantilever):
    result = _static(loaded_cantilever)
    tip = result.node_displacement("N1")

    assert tip["dz"] == pytest.approx(-P * L ** 3 / (3 * E * IY), rel=1e-9)
    # θy = -dw/dx: a tip dropping along +x rotates positively about y
    assert tip["ry"] == pytest.approx(P * L ** 2 / (2 * E * IY), rel=1e-9)
    assert tip["dx"] == pytest.approx(0.0, abs=1e-15)
    assert tip["dy"] == pytest.approx(0.0, abs=1e-15)


def test_weak_axis_uses_iz():
    result = _static(cantilever(tip_load={"fy": P}))
    assert result.node_displacement("N1")["dy"] == pytest.approx(P * L ** 3 / (3 * E * IZ), rel=1e-9)


def test_root_reactions(loaded_cantilever):
    """
    Root must push up with P and resist the moment P·L.

    r × F for the tip load: (L, 0, 0) × (0, 0, -P) = (0, P·L, 0), so the
    reaction moment about y is -P·L.
    """
    reaction = _static(loaded_cantilever).node_reaction("N0")
    assert reaction["fz"] == pytest.approx(P, rel=1e-9)
    assert reaction["my"] == pytest.approx(-P * L, rel=1e-9)
    for key in ("fx", "fy", "mx", "mz"):
        assert reaction[key] == pytest.approx(0.0, abs=1e-6)


def test_free_node_has_no_reaction(loaded_cantilever):
    result = _static(loaded_cantilever)
    np.testing.assert_array_equal(result.reactions[1], np.zeros(6))


def test_internal_force_diagrams(loaded_cantilever):
    beam = _static(loaded_cantilever, stationCount=7).beams["B1"]
    x = beam.positions

    np.testing.assert_allclose(x, np.linspace(0.0, L, 7))
    np.testing.assert_allclose(np.abs(beam.forces[:, 2]), P, rtol=1e-9)
    np.testing.assert_allclose(np.abs(beam.forces[:, 4]), P * (L - x), rtol=1e-9, atol=1e-6)
    np.testing.assert_allclose(beam.forces[:, [0, 1, 3, 5]], 0.0, atol=1e-6)


def test_bending_stress_at_root(loaded_cantilever):
    beam = _static(loaded_cantilever).beams["B1"]
    Sy = IY / 0.15
    assert abs(beam.stresses[0, 1]) == pytest.approx(P * L / Sy, rel=1e-9)
    assert beam.von_mises[0] >= abs(beam.stresses[0, 1])


def test_station_displacements_follow_elastic_curve(loaded_cantilever):
    beam = _static(loaded_cantilever, stationCount=11).beams["B1"]
    x = beam.positions
    expected = -P * x ** 2 * (3 * L - x) / (6 * E * IY)
    np.testing.assert_allclose(beam.displacements[:, 2], expected, rtol=1e-9, atol=1e-15)


def test_station_lookup(loaded_cantilever):
    beam = _static(loaded_cantilever, stationCount=5).beams["B1"]
    root, tip = beam.station(0), beam.station(-1)
    assert root["position"] == 0.0
    assert tip["position"] == pytest.approx(L)
    assert abs(root["forces"]["moment_y"]) == pytest.approx(P * L, rel=1e-9)
    assert tip["forces"]["moment_y"] == pytest.approx(0.0, abs=1e-6)
    assert root["stresses"]["von_mises"] == pytest.approx(beam.von_mises[0])
    assert tip["displacements"]["dz"] == pytest.approx(beam.displacements[-1, 2])


def test_uniform_load_tip_and_midspan():
    q = 2000.0
    model = cantilever()
    model.beam("B1").loads.append(BeamLoad("LC1", kind="uniform", direction="global-z", value=-q))
    result = _static(model, stationCount=11)

    assert result.node_displacement("N1")["dz"] == pytest.approx(-q * L ** 4 / (8 * E * IY), rel=1e-9)
    mid = result.beams["B1"].displacements[5, 2]
    assert mid == pytest.approx(-17 * q * L ** 4 / (384 * E * IY), rel=1e-6)

    # root: shear q·L, moment q·L²/2
    reaction = result.node_reaction("N0")
    assert reaction["fz"] == pytest.approx(q * L, rel=1e-9)
    assert abs(result.beams["B1"].forces[0, 4]) == pytest.approx(q * L ** 2 / 2, rel=1e-9)


@pytest.mark.parametrize("segments", [1, 4])
def test_inclined_cantilever_matches_axis_aligned(segments):
    """Rotating the whole problem must not change the deflection magnitude."""
    direction = np.array([1.0, 2.0, 0.0]) / np.sqrt(5.0)
    model = cantilever(segments=segments, direction=direction, tip_load={"fz": -P})
    tip = _static(model).displacements[-1]
    assert tip[2] == pytest.approx(-P * L ** 3 / (3 * E * IY), rel=1e-9)


def test_shear_deformation_adds_flexibility():
    section = member_section(Az=0.004)
    flexible = _static(cantilever(tip_load={"fz": -P}, section=section))
    stiff = _static(cantilever(tip_load={"fz": -P}, section=section), includeShearDeformation=False)

    G = E / (2 * 1.3)
    extra = P * L / (G * 0.004)
    assert flexible.displacements[1, 2] == pytest.approx(stiff.displacements[1, 2] - extra, rel=1e-9)
