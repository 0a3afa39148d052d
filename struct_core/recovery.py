# struct_core/recovery.py
"""
Result recovery for one solved load case.

    displacements  full vector, restrained DOFs are zero
    reactions      K·u - F_direct - F_equivalent at restrained DOFs
    beams          station forces/stresses/displacements
    plates         nodal forces/moments/surface stresses
"""

from typing import Dict, Optional, Sequence

import numpy as np

from .kernel.assemble import LoadVectors
from .results import CaseResult


def reactions(K, u: np.ndarray, loads: LoadVectors, dofs) -> np.ndarray:
    """
    Support reactions as a full vector (zero at free DOFs).

    The equivalent nodal loads of span loads must be subtracted as well as the
    direct nodal loads; otherwise a loaded member framing into a support
    reports the wrong reaction.
    """
    R = np.zeros(dofs.ndof)
    restrained = dofs.restrained_dofs
    R[restrained] = (K @ u - loads.direct - loads.equivalent)[restrained]
    return R


def recover_case(
    load_case,
    K,
    u: np.ndarray,
    loads: LoadVectors,
    dofs,
    elements: Sequence,
    station_count: int,
    axial_forces: Optional[Dict[str, float]] = None,
) -> CaseResult:
    axial_forces = axial_forces or {}
    result = CaseResult(
        source_id=load_case.id,
        source_kind="load_case",
        node_ids=list(dofs.node_ids),
        displacements=dofs.node_array(u).copy(),
        reactions=dofs.node_array(reactions(K, u, loads, dofs)),
        restraints=dofs.restraints.copy(),
    )
    for el in elements:
        r = el.recover(el.gather(u), load_case.id, load_case.factor, station_count,
                       axial_force=axial_forces.get(el.id, 0.0))
        if el.kind == "beam":
            result.beams[el.id] = r
        else:
            result.plates[el.id] = r
    return result
