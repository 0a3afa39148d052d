# tests/test_summary.py
"""Governing extremes: value, location and the load case or combination it came from."""

import numpy as np
import pytest

from builders import cantilever
from struct_core import run
from struct_core.model import LoadCase, LoadCombination, NodalLoad, PlateLoad
from struct_core.results import CaseResult
from struct_core.summary import scan

P = 1000.0


def _result(source_id, displacements, reactions, kind="load_case"):
    displacements = np.asarray(displacements, dtype=float)
    return CaseResult(
        source_id=source_id,
        source_kind=kind,
        node_ids=[f"N{i}" for i in range(len(displacements))],
        displacements=displacements,
        reactions=np.asarray(reactions, dtype=float),
        restraints=np.array([[True] * 6] + [[False] * 6] * (len(displacements) - 1)),
    )


def test_largest_values_with_locations():
    model = cantilever(segments=3, tip_load={"fz": -P})
    model.add(LoadCase("LC2"), LoadCombination("C1", {"LC1": 1.5, "LC2": 1.0}))
    model.node("N2").loads.append(NodalLoad("LC2", fy=P))
    record = run(model)
    assert record.status == "completed", record.error_message
    summary = record.summary

    assert summary.max_displacement.location == "N3"
    assert summary.max_displacement.source_id == "C1"
    assert summary.max_displacement.source_kind == "combination"
    tip = record.result_for("C1").displacements[3, :3]
    assert summary.max_displacement.value == pytest.approx(np.linalg.norm(tip))

    assert summary.max_reaction.location == "N0"
    assert summary.max_reaction.source_id == "C1"
    assert summary.max_reaction.value == pytest.approx(np.hypot(1.5 * P, P))

    # root of the first segment carries the largest moment
    assert summary.max_stress.location == "B1"
    assert summary.max_stress.element_kind == "beam"
    assert summary.max_stress.value == pytest.approx(record.result_for("C1").beams["B1"].von_mises[0])


def test_ties_keep_the_first_result():
    a = _result("LC1", [[0, 0, 0, 0, 0, 0], [0.0, 0.0, -2.0, 0, 0, 0]], [[0, 0, 5.0, 0, 0, 0], [0] * 6])
    b = _result("LC2", [[0, 0, 0, 0, 0, 0], [2.0, 0.0, 0.0, 0, 0, 0]], [[5.0, 0, 0, 0, 0, 0], [0] * 6])
    summary = scan([a, b])
    assert summary.max_displacement.source_id == "LC1"
    assert summary.max_reaction.source_id == "LC1"

    summary = scan([b, a])
    assert summary.max_displacement.source_id == "LC2"


def test_reactions_only_at_supported_nodes():
    result = _result("LC1", [[0] * 6, [0] * 6], [[0, 0, 1.0, 0, 0, 0], [0, 0, 99.0, 0, 0, 0]])
    assert scan([result]).max_reaction.value == 1.0


def test_rotations_and_moments_are_ignored():
    result = _result("LC1", [[0] * 6, [0, 0, 1e-3, 5.0, 5.0, 5.0]], [[0, 0, 1.0, 1e6, 0, 0], [0] * 6])
    summary = scan([result])
    assert summary.max_displacement.value == pytest.approx(1e-3)
    assert summary.max_reaction.value == pytest.approx(1.0)


def test_empty_result_list():
    summary = scan([])
    assert summary.max_displacement is None
    assert summary.max_reaction is None
    assert summary.max_stress is None


def test_plate_stress_is_tagged_as_plate(loaded_portal):
    # only plate loads: the slab governs
    for beam in loaded_portal.beams:
        beam.loads.clear()
    for node in loaded_portal.nodes:
        node.loads.clear()
    for plate in loaded_portal.plates:
        plate.loads = [PlateLoad("LC1", value=-5.0e4)]
    record = run(loaded_portal, {"loadCasesToAnalyze": ["LC1"]})
    assert record.status == "completed", record.error_message

    stress = record.summary.max_stress
    plate_peak = max(p.von_mises.max() for p in record.result_for("LC1").plates.values())
    beam_peak = max(b.von_mises.max() for b in record.result_for("LC1").beams.values())
    expected_kind = "plate" if plate_peak >= beam_peak else "beam"
    assert stress.element_kind == expected_kind
    assert stress.value == pytest.approx(max(plate_peak, beam_peak))
