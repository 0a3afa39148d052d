# tests/conftest.py
"""Fixtures shared by the analysis tests (builders live in builders.py)."""

import pytest

from builders import cantilever, portal_frame
from struct_core.model import BeamLoad, NodalLoad, PlateLoad


@pytest.fixture
def loaded_cantilever():
    """3 m cantilever, 1 kN downward at the tip."""
    return cantilever(tip_load={"fz": -1000.0})


@pytest.fixture
def loaded_portal():
    """Portal frame with gravity (LC1) and lateral wind (LC2)."""
    model = portal_frame()
    for beam in model.beams:
        if beam.id.startswith("G"):
            beam.loads.append(BeamLoad("LC1", kind="uniform", direction="global-z", value=-5000.0))
    for plate in model.plates:
        plate.loads.append(PlateLoad("LC1", kind="pressure", direction="global-z", value=-2000.0))
    model.node("T0").loads.append(NodalLoad("LC2", fx=8000.0, my=500.0))
    model.beam("C1").loads.append(BeamLoad("LC2", kind="point", direction="global-y", value=3000.0, position=0.4))
    model.beam("C3").loads.append(BeamLoad("LC2", kind="linear", direction="local-y",
                                           start_value=1000.0, end_value=-400.0))
    return model
