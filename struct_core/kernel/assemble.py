# struct_core/kernel/assemble.py
"""
ASSEMBLY: Global Matrix and Load Vector Assembly
================================================

PURPOSE:
--------
Scatter-add of element contributions into the global system.

Assembly does not care about element TYPE. It only needs, per element, a DOF
map and a matrix (or vector) in global coordinates. Beams (12×12) and plates
(18×18 or 24×24) go through exactly the same code.

STORAGE:
--------
    'dense'   numpy array
    'sparse'  scipy.sparse CSR (duplicate (i, j) entries are summed)
    'skyline' not available

LOADS:
------
For one load case the load vector is kept in two parts so reactions can be
recovered exactly later:

    F_direct      loads applied straight to nodes
    F_equivalent  equivalent nodal loads of element span/surface loads

Both are scaled by the load case factor.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import scipy.sparse as sp

from ..errors import UnsupportedFeatureError
from .dof import DOF_PER_NODE, DOFManager

logger = logging.getLogger(__name__)

STORAGE_TYPES = ("dense", "sparse")


def check_storage(storage: str) -> None:
    if storage not in STORAGE_TYPES:
        raise UnsupportedFeatureError(f"matrix storage '{storage}'", "use 'sparse' or 'dense'")


def assemble_global_K(
    ndof: int,
    contributions: Sequence[Tuple[Sequence[int], np.ndarray]],
    storage: str = "dense",
):
    """
    Assemble a global matrix from element contributions.

    ALGORITHM:
    ----------
    for each element:
        K[dof_map[a], dof_map[b]] += ke[a, b]

    Parameters:
    -----------
    ndof : int
        Total number of DOFs in the system
    contributions : sequence of (dof_map, ke)
        ke in global coordinates, shape (len(dof_map), len(dof_map))
    storage : str
        'dense' → np.ndarray, 'sparse' → scipy.sparse.csr_matrix

    Returns:
    --------
    Global matrix, shape (ndof, ndof)
    """
    check_storage(storage)

    if storage == "dense":
        K = np.zeros((ndof, ndof), dtype=float)
        for dof_map, ke in contributions:
            idx = np.asarray(dof_map, dtype=int)
            assert ke.shape == (len(idx), len(idx)), \
                f"Element matrix shape {ke.shape} doesn't match dof_map length {len(idx)}"
            K[np.ix_(idx, idx)] += ke
        return K

    rows, cols, vals = [], [], []
    for dof_map, ke in contributions:
        idx = np.asarray(dof_map, dtype=int)
        assert ke.shape == (len(idx), len(idx)), \
            f"Element matrix shape {ke.shape} doesn't match dof_map length {len(idx)}"
        rows.append(np.repeat(idx, len(idx)))
        cols.append(np.tile(idx, len(idx)))
        vals.append(ke.ravel())
    if not rows:
        return sp.csr_matrix((ndof, ndof), dtype=float)
    return sp.coo_matrix(
        (np.concatenate(vals), (np.concatenate(rows), np.concatenate(cols))),
        shape=(ndof, ndof),
    ).tocsr()


def assemble_global_F(
    ndof: int,
    contributions: Sequence[Tuple[Sequence[int], np.ndarray]],
) -> np.ndarray:
    """Same scatter-add as assemble_global_K, for load vectors."""
    F = np.zeros(ndof, dtype=float)
    for dof_map, fe in contributions:
        idx = np.asarray(dof_map, dtype=int)
        assert fe.shape == (len(idx),), \
            f"Element load shape {fe.shape} doesn't match dof_map length {len(idx)}"
        np.add.at(F, idx, fe)
    return F


def add_nodal_load(F: np.ndarray, dofs: DOFManager, node_id: str, load_vector: np.ndarray) -> None:
    """Add a 6-component nodal load to F in place."""
    base = DOF_PER_NODE * dofs.node_index(node_id)
    F[base:base + DOF_PER_NODE] += load_vector


@dataclass
class LoadVectors:
    """Global load vector of one load case, split by origin."""
    direct: np.ndarray
    equivalent: np.ndarray

    @property
    def total(self) -> np.ndarray:
        return self.direct + self.equivalent


def assemble_stiffness(
    elements: Sequence,
    dofs: DOFManager,
    storage: str = "dense",
    axial_forces: Optional[Dict[str, float]] = None,
):
    """
    Global stiffness of all elements.

    When ``axial_forces`` is given, each element that supports it adds its
    geometric stiffness for that axial force (P-Delta).
    """
    axial_forces = axial_forces or {}
    contributions = [(el.dof_map, el.stiffness(axial_forces.get(el.id, 0.0))) for el in elements]
    return assemble_global_K(dofs.ndof, contributions, storage)


def assemble_geometric_stiffness(
    elements: Sequence,
    dofs: DOFManager,
    axial_forces: Dict[str, float],
    storage: str = "dense",
):
    """Global geometric stiffness K_g for the given element axial forces."""
    contributions = []
    for el in elements:
        N = axial_forces.get(el.id, 0.0)
        kg = el.geometric_stiffness(N) if N else None
        if kg is not None:
            contributions.append((el.dof_map, kg))
    return assemble_global_K(dofs.ndof, contributions, storage)


def assemble_mass(elements: Sequence, dofs: DOFManager, storage: str = "dense",
                  formulation: str = "consistent"):
    contributions = [(el.dof_map, el.mass(formulation)) for el in elements]
    return assemble_global_K(dofs.ndof, contributions, storage)


def assemble_loads(model, elements: Sequence, dofs: DOFManager, load_case) -> LoadVectors:
    """
    Load vectors for one load case.

    Parameters:
    -----------
    model : StructuralModel
        Source of direct nodal loads
    elements : sequence of Element
        Source of equivalent nodal loads
    load_case : LoadCase
        Selects tagged loads; its factor scales them
    """
    factor = load_case.factor
    contributions: List[Tuple[List[int], np.ndarray]] = []
    for el in elements:
        fe = el.equivalent_loads(load_case.id, factor)
        if fe is not None:
            contributions.append((el.dof_map, fe))
    equivalent = assemble_global_F(dofs.ndof, contributions)

    direct = np.zeros(dofs.ndof, dtype=float)
    for node in model.nodes:
        for load in node.loads:
            if load.load_case == load_case.id:
                add_nodal_load(direct, dofs, node.id, factor * load.vector())

    logger.debug("Load case '%s': %d loaded elements, |F| = %.4e",
                 load_case.id, len(contributions), np.linalg.norm(direct + equivalent))
    return LoadVectors(direct=direct, equivalent=equivalent)
