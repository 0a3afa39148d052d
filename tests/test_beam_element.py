# tests/test_beam_element.py
"""
BEAM ELEMENT TESTS
==================

Fixed-end forces, end releases, rigid offsets and thermal loads, each
checked against a closed-form result on a one-element model.

Reactions are K·u - F_direct - F_equivalent. On a fixed-fixed beam u = 0,
so the reactions ARE the negated fixed-end forces: if the equivalent-load
term were missing from reaction recovery, every reaction here would be zero.
"""

import numpy as np
import pytest

from builders import A, E, IY, cantilever, fixed_fixed, member_section
from struct_core import AnalysisConfiguration, run
from struct_core.elements import build_elements
from struct_core.elements.beam import beam_local_stiffness
from struct_core.elements.transform import beam_axes, rigid_offset
from struct_core.kernel.assemble import assemble_mass
from struct_core.kernel.dof import DOFManager
from struct_core.model import BeamLoad


def _case(model, **config):
    record = run(model, config)
    assert record.status == "completed", record.error_message
    return record.load_case_results[0]


class TestLocalAxes:

    def test_horizontal_member(self):
        L, R = beam_axes(np.zeros(3), np.array([2.0, 0.0, 0.0]))
        assert L == pytest.approx(2.0)
        np.testing.assert_allclose(R, np.eye(3), atol=1e-15)

    def test_vertical_member_uses_global_y(self):
        _, R = beam_axes(np.zeros(3), np.array([0.0, 0.0, 3.0]))
        np.testing.assert_allclose(R[1], [0.0, 1.0, 0.0], atol=1e-15)
        np.testing.assert_allclose(R[2], [-1.0, 0.0, 0.0], atol=1e-15)

    def test_orientation_angle_rotates_about_member_axis(self):
        _, R = beam_axes(np.zeros(3), np.array([2.0, 0.0, 0.0]), 90.0)
        np.testing.assert_allclose(R[1], [0.0, 0.0, 1.0], atol=1e-12)
        np.testing.assert_allclose(R[2], [0.0, -1.0, 0.0], atol=1e-12)

    def test_zero_length_rejected(self):
        with pytest.raises(ValueError):
            beam_axes(np.ones(3), np.ones(3))

    def test_rigid_offset_moves_with_rotation(self):
        # θz = 1 about the node moves a point at +x offset along +y
        d = rigid_offset([1.0, 0.0, 0.0]) @ np.array([0, 0, 0, 0, 0, 1.0])
        np.testing.assert_allclose(d[:3], [0.0, 1.0, 0.0])


class TestFixedEndForces:

    def test_uniform_load(self):
        L, w = 4.0, 3000.0
        model = fixed_fixed(L)
        model.beam("B1").loads.append(BeamLoad("LC1", kind="uniform", direction="global-z", value=-w))
        result = _case(model)

        start, end = result.node_reaction("N0"), result.node_reaction("N1")
        assert start["fz"] == pytest.approx(w * L / 2, rel=1e-12)
        assert end["fz"] == pytest.approx(w * L / 2, rel=1e-12)
        assert abs(start["my"]) == pytest.approx(w * L ** 2 / 12, rel=1e-12)
        assert start["my"] == pytest.approx(-end["my"], rel=1e-12)
        np.testing.assert_allclose(result.displacements, 0.0)

        # midspan sagging moment w·L²/24, ends hogging w·L²/12
        M = result.beams["B1"].forces[:, 4]
        assert abs(M[5]) == pytest.approx(w * L ** 2 / 24, rel=1e-9)
        assert np.sign(M[5]) == -np.sign(M[0])

    def test_point_load_off_centre(self):
        L, P, a = 4.0, 10000.0, 1.0
        b = L - a
        model = fixed_fixed(L)
        model.beam("B1").loads.append(
            BeamLoad("LC1", kind="point", direction="global-z", value=-P, position=a / L))
        result = _case(model)

        assert result.node_reaction("N0")["fz"] == pytest.approx(P * b ** 2 * (3 * a + b) / L ** 3, rel=1e-12)
        assert result.node_reaction("N1")["fz"] == pytest.approx(P * a ** 2 * (a + 3 * b) / L ** 3, rel=1e-12)
        assert abs(result.node_reaction("N0")["my"]) == pytest.approx(P * a * b ** 2 / L ** 2, rel=1e-12)
        assert abs(result.node_reaction("N1")["my"]) == pytest.approx(P * a ** 2 * b / L ** 2, rel=1e-12)

    def test_linear_load_total(self):
        L = 4.0
        model = fixed_fixed(L)
        model.beam("B1").loads.append(
            BeamLoad("LC1", kind="linear", direction="global-y", start_value=0.0, end_value=-1200.0))
        result = _case(model)
        total = result.node_reaction("N0")["fy"] + result.node_reaction("N1")["fy"]
        assert total == pytest.approx(1200.0 * L / 2, rel=1e-12)
        # triangular load: 3/10 at the light end, 7/10 at the heavy end
        assert result.node_reaction("N1")["fy"] == pytest.approx(0.7 * 1200.0 * L / 2, rel=1e-12)

    def test_uniform_temperature_builds_axial_force(self):
        model = fixed_fixed()
        model.beam("B1").loads.append(
            BeamLoad("LC1", kind="thermal", top_temperature=30.0, bottom_temperature=30.0))
        result = _case(model)
        N = E * A * 1.2e-5 * 30.0
        np.testing.assert_allclose(result.beams["B1"].forces[:, 0], -N, rtol=1e-12)
        assert result.node_reaction("N0")["fx"] == pytest.approx(N, rel=1e-12)
        assert result.node_reaction("N1")["fx"] == pytest.approx(-N, rel=1e-12)

    def test_temperature_gradient_builds_constant_moment(self):
        model = fixed_fixed()
        model.beam("B1").loads.append(
            BeamLoad("LC1", kind="thermal", top_temperature=20.0, bottom_temperature=-20.0))
        result = _case(model)
        M = E * IY * 1.2e-5 * 40.0 / 0.3
        np.testing.assert_allclose(np.abs(result.beams["B1"].forces[:, 4]), M, rtol=1e-12)
        np.testing.assert_allclose(result.beams["B1"].forces[:, 0], 0.0, atol=1e-6)

    def test_thermal_cantilever_is_free_to_expand(self):
        L = 3.0
        model = cantilever(L)
        model.beam("B1").loads.append(
            BeamLoad("LC1", kind="thermal", top_temperature=50.0, bottom_temperature=50.0))
        result = _case(model)
        assert result.node_displacement("N1")["dx"] == pytest.approx(1.2e-5 * 50.0 * L, rel=1e-12)
        np.testing.assert_allclose(result.beams["B1"].forces, 0.0, atol=1e-3)


class TestReleases:

    def test_pinned_ends_make_a_simple_beam(self):
        L, w = 4.0, 3000.0
        model = fixed_fixed(L)
        beam = model.beam("B1")
        beam.start_releases = (False, False, False, False, True, False)
        beam.end_releases = (False, False, False, False, True, False)
        beam.loads.append(BeamLoad("LC1", kind="uniform", direction="global-z", value=-w))
        result = _case(model, stationCount=11)

        for node in ("N0", "N1"):
            reaction = result.node_reaction(node)
            assert reaction["fz"] == pytest.approx(w * L / 2, rel=1e-12)
            assert reaction["my"] == pytest.approx(0.0, abs=1e-6)

        forces = result.beams["B1"].forces
        assert abs(forces[5, 4]) == pytest.approx(w * L ** 2 / 8, rel=1e-9)
        assert forces[0, 4] == pytest.approx(0.0, abs=1e-6)
        assert forces[-1, 4] == pytest.approx(0.0, abs=1e-6)

        mid = result.beams["B1"].displacements[5, 2]
        assert mid == pytest.approx(-5 * w * L ** 4 / (384 * E * IY), rel=1e-9)

    def test_propped_cantilever_from_released_end(self):
        """Fixed root, vertical prop at the tip with the member end pinned onto it."""
        L, w = 3.0, 2000.0
        model = cantilever(L)
        model.beam("B1").end_releases = (False, False, False, False, True, True)
        model.node("N1").restraints = (False, False, True, False, True, True)
        model.beam("B1").loads.append(BeamLoad("LC1", kind="uniform", direction="global-z", value=-w))
        result = _case(model)

        assert result.node_reaction("N1")["fz"] == pytest.approx(3 * w * L / 8, rel=1e-9)
        assert result.node_reaction("N0")["fz"] == pytest.approx(5 * w * L / 8, rel=1e-9)
        assert abs(result.node_reaction("N0")["my"]) == pytest.approx(w * L ** 2 / 8, rel=1e-9)
        assert result.node_reaction("N1")["my"] == pytest.approx(0.0, abs=1e-6)
        assert result.beams["B1"].forces[-1, 4] == pytest.approx(0.0, abs=1e-6)

    def test_condensed_stiffness_has_zero_rows(self):
        model = fixed_fixed()
        model.beam("B1").end_releases = (False, False, False, False, True, True)
        dofs = DOFManager.from_model(model)
        beam = build_elements(model, dofs, AnalysisConfiguration())[0]
        k = beam.stiffness()
        np.testing.assert_allclose(k[10], 0.0, atol=1e-6)
        np.testing.assert_allclose(k[11], 0.0, atol=1e-6)


class TestOffsets:

    def test_start_offset_shortens_flexible_length(self):
        L, P, o = 3.0, 1000.0, 0.5
        model = cantilever(L, tip_load={"fz": -P})
        model.beam("B1").start_offset = (o, 0.0, 0.0)
        result = _case(model)

        flexible = L - o
        assert result.node_displacement("N1")["dz"] == pytest.approx(-P * flexible ** 3 / (3 * E * IY), rel=1e-9)
        # the rigid link still carries the full lever arm into the support
        assert result.node_reaction("N0")["my"] == pytest.approx(-P * L, rel=1e-9)

    def test_eccentric_axis_couples_axial_load_into_bending(self):
        L, P, e = 3.0, 5000.0, 0.2
        model = cantilever(L, tip_load={"fx": P})
        model.beam("B1").start_offset = (0.0, 0.0, e)
        model.beam("B1").end_offset = (0.0, 0.0, e)
        result = _case(model)
        forces = result.beams["B1"].forces
        np.testing.assert_allclose(forces[:, 0], P, rtol=1e-9)
        np.testing.assert_allclose(np.abs(forces[:, 4]), P * e, rtol=1e-6)


class TestMass:

    @pytest.mark.parametrize("formulation", ["consistent", "lumped"])
    def test_total_translational_mass(self, formulation):
        L = 3.0
        model = cantilever(L, segments=3)
        dofs = DOFManager.from_model(model)
        M = assemble_mass(build_elements(model, dofs, AnalysisConfiguration()), dofs, "dense", formulation)

        for c in range(3):
            r = np.zeros(dofs.ndof)
            r[c::6] = 1.0
            assert r @ M @ r == pytest.approx(7850.0 * A * L, rel=1e-9)

    def test_lumped_mass_is_diagonal_in_local_axes(self):
        model = cantilever()
        dofs = DOFManager.from_model(model)
        beam = build_elements(model, dofs, AnalysisConfiguration())[0]
        m = beam.mass("lumped")
        np.testing.assert_allclose(m, np.diag(np.diag(m)), atol=1e-12)


def test_local_stiffness_blocks():
    k = beam_local_stiffness(E, 80e9, A, IY, 4e-6, 1e-6, 2.0)
    assert k[0, 0] == pytest.approx(E * A / 2.0)
    assert k[3, 3] == pytest.approx(80e9 * 1e-6 / 2.0)
    assert k[2, 2] == pytest.approx(12 * E * IY / 8.0)
    assert k[1, 1] == pytest.approx(12 * E * 4e-6 / 8.0)
    # θy = -dw/dx flips the coupling sign between the two bending planes
    assert k[1, 5] == pytest.approx(6 * E * 4e-6 / 4.0)
    assert k[2, 4] == pytest.approx(-6 * E * IY / 4.0)


def test_section_fallbacks():
    section = member_section(depth=None, width=None, Sy=2e-4)
    assert section.thermal_depth == pytest.approx(2 * IY / 2e-4)
    assert section.modulus_z is None
    assert section.torsion_lever == pytest.approx(1e-6 / (IY / 2e-4))
