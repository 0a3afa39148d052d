# tests/test_stability.py
"""
STABILITY TESTS: Buckling and P-Delta
=====================================

Vertical cantilever column, base fixed, compressive load P at the top.

    Euler:      P_cr = π²·E·I / (4·L²)
    P-Delta:    lateral load H together with P amplifies the linear sway by

                    3·(tan u - u) / u³,   u = L·sqrt(P / (E·I))

Both use the weak axis. A vertical member has local y = global Y, so weak
axis bending (Iz) sways the column along global Y.
"""

import numpy as np
import pytest

from builders import E, IY, IZ, cantilever
from struct_core import run
from struct_core.model import LoadCase, NodalLoad

L = 3.0
P_CR = np.pi ** 2 * E * IZ / (4 * L ** 2)


def _column(**tip_load):
    return cantilever(L, segments=10, direction=(0.0, 0.0, 1.0), tip_load=tip_load)


def _amplification(P):
    u = L * np.sqrt(P / (E * IZ))
    return 3 * (np.tan(u) - u) / u ** 3


class TestBuckling:

    def test_euler_load_factor(self):
        P = 1000.0
        record = run(_column(fz=-P), {"analysisType": "buckling", "modalOptions": {"numberOfModes": 2}})
        assert record.status == "completed", record.error_message

        first, second = record.buckling_results
        assert first.load_case == "LC1"
        assert first.load_factor == pytest.approx(P_CR / P, rel=1e-3)
        assert second.load_factor == pytest.approx(P_CR / P * IY / IZ, rel=1e-3)

        shape = first.shape
        assert np.max(np.abs(shape)) == pytest.approx(1.0)
        # sways along global y, grows towards the top
        assert abs(shape[-1, 1]) == pytest.approx(1.0)
        np.testing.assert_allclose(shape[:, 0], 0.0, atol=1e-8)

    def test_tension_gives_no_buckling_modes(self):
        record = run(_column(fz=1000.0), {"analysisType": "buckling"})
        assert record.status == "completed", record.error_message
        assert record.buckling_results == ()

    def test_buckling_of_every_requested_case(self):
        model = _column(fz=-1000.0)
        model.add(LoadCase("LC2"))
        model.node("N10").loads.append(NodalLoad("LC2", fz=-2000.0))
        record = run(model, {"analysisType": "buckling", "modalOptions": {"numberOfModes": 1}})

        by_case = {b.load_case: b.load_factor for b in record.buckling_results}
        assert by_case["LC2"] == pytest.approx(by_case["LC1"] / 2, rel=1e-9)


class TestPDelta:

    @pytest.mark.parametrize("ratio", [0.1, 0.3, 0.5])
    def test_sway_amplification_matches_closed_form(self, ratio):
        P, H = ratio * P_CR, 1000.0
        model = _column(fz=-P, fy=H)

        linear = run(model).load_case_results[0].node_displacement("N10")["dy"]
        record = run(model, {"includePDelta": True})
        assert record.status == "completed", record.error_message
        second_order = record.load_case_results[0].node_displacement("N10")["dy"]

        assert linear == pytest.approx(H * L ** 3 / (3 * E * IZ), rel=1e-9)
        assert second_order / linear == pytest.approx(_amplification(P), rel=5e-3)

    def test_base_moment_includes_p_delta_term(self):
        P, H = 0.3 * P_CR, 1000.0
        result = run(_column(fz=-P, fy=H), {"includePDelta": True}).load_case_results[0]
        sway = result.node_displacement("N10")["dy"]
        # overturning about global x: H·L from the lateral load plus P·Δ
        assert abs(result.node_reaction("N0")["mx"]) == pytest.approx(H * L + P * sway, rel=1e-6)

    def test_tension_stiffens(self):
        P, H = 0.3 * P_CR, 1000.0
        model = _column(fz=P, fy=H)
        linear = run(model).load_case_results[0].node_displacement("N10")["dy"]
        stiffened = run(model, {"includePDelta": True}).load_case_results[0].node_displacement("N10")["dy"]
        assert 0 < stiffened < linear

    def test_no_axial_force_is_plain_linear(self):
        model = _column(fy=1000.0)
        linear = run(model).load_case_results[0].displacements
        pdelta = run(model, {"includePDelta": True}).load_case_results[0].displacements
        np.testing.assert_allclose(pdelta, linear, rtol=1e-12, atol=1e-15)

    def test_iteration_cap(self):
        model = _column(fz=-0.5 * P_CR, fy=1000.0)
        record = run(model, {"includePDelta": True, "convergence": {
            "maxIterations": 1, "displacementTolerance": 1e-15, "forceTolerance": 1e-15}})
        assert record.status == "failed"
        assert record.error_kind == "convergence"
        assert record.error_message.startswith("Load case 'LC1'")
