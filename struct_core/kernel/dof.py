# struct_core/kernel/dof.py
"""
DOF MANAGER: Global Degree of Freedom Indexing
==============================================

PURPOSE:
--------
Maps (node, local DOF) to a global equation index and splits the global
indices into free and restrained sets.

Every node carries six DOFs, numbered contiguously in node-declaration order:

    node k  →  6k + (0:dx, 1:dy, 2:dz, 3:rx, 4:ry, 5:rz)

The map is rebuilt for every run straight from the model, so identical model
order always gives identical numbering.

USAGE:
------
    dofs = DOFManager.from_model(model)
    dofs.ndof                         # 6 × number of nodes
    dofs.idx("N2", 1)                 # global index of dy at node N2
    dofs.element_dof_map(["N1", "N2"])
    dofs.free_dofs                    # ordered numpy index array
    dofs.describe(13)                 # → ("N3", "dy")
"""

from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

import numpy as np


DOF_PER_NODE = 6
DOF_LABELS = ("dx", "dy", "dz", "rx", "ry", "rz")


@dataclass
class DOFManager:
    """
    Degree-of-freedom indexing for a 6-DOF-per-node model.

    Attributes:
    -----------
    node_ids : list of str
        Node ids in declaration order
    restraints : (n_nodes, 6) bool array
        Support flags in DOF order

    Examples:
    ---------
    >>> dofs = DOFManager(["A", "B"], np.zeros((2, 6), dtype=bool))
    >>> dofs.idx("B", 2)
    8
    >>> dofs.element_dof_map(["A", "B"])[:3]
    [0, 1, 2]
    """
    node_ids: List[str]
    restraints: np.ndarray
    _index: Dict[str, int] = field(init=False, repr=False)

    def __post_init__(self):
        self.restraints = np.asarray(self.restraints, dtype=bool).reshape(len(self.node_ids), DOF_PER_NODE)
        self._index = {nid: k for k, nid in enumerate(self.node_ids)}

    @classmethod
    def from_model(cls, model) -> "DOFManager":
        return cls(
            [n.id for n in model.nodes],
            np.array([n.restraints for n in model.nodes], dtype=bool).reshape(-1, DOF_PER_NODE),
        )

    @property
    def n_nodes(self) -> int:
        return len(self.node_ids)

    @property
    def ndof(self) -> int:
        """Total number of DOFs (size of K)."""
        return DOF_PER_NODE * self.n_nodes

    def node_index(self, node_id: str) -> int:
        return self._index[node_id]

    def idx(self, node_id: str, local_dof: int) -> int:
        """Global DOF index for a node's local DOF (0..5)."""
        return DOF_PER_NODE * self._index[node_id] + local_dof

    def node_dofs(self, node_id: str) -> List[int]:
        base = DOF_PER_NODE * self._index[node_id]
        return list(range(base, base + DOF_PER_NODE))

    def element_dof_map(self, node_ids: Sequence[str]) -> List[int]:
        """
        Flattened global DOF indices for an element connecting ``node_ids``.

        Used to scatter element matrices into, and gather element
        displacements from, the global system.
        """
        result = []
        for node_id in node_ids:
            result.extend(self.node_dofs(node_id))
        return result

    @property
    def restrained_dofs(self) -> np.ndarray:
        """Restrained global indices, ascending."""
        return np.flatnonzero(self.restraints.ravel())

    @property
    def free_dofs(self) -> np.ndarray:
        """Free global indices, ascending (complement of restrained_dofs)."""
        return np.flatnonzero(~self.restraints.ravel())

    def describe(self, global_dof: int) -> Tuple[str, str]:
        """(node_id, dof label) for a global DOF index."""
        node, local = divmod(int(global_dof), DOF_PER_NODE)
        return self.node_ids[node], DOF_LABELS[local]

    def node_array(self, vector: np.ndarray) -> np.ndarray:
        """Reshape a global vector into one row of six values per node."""
        return np.asarray(vector).reshape(self.n_nodes, DOF_PER_NODE)
