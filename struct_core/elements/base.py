# struct_core/elements/base.py
"""Common capability of all element formulations."""

from abc import ABC, abstractmethod
from typing import List, Optional

import numpy as np


class Element(ABC):
    """
    A finite element bound to the global DOF numbering.

    The assembler and the recoverer only talk to this interface, so adding a
    new element kind never touches them. All matrices and vectors returned
    here are in GLOBAL coordinates, ordered like ``dof_map``.
    """
    kind = "element"

    def __init__(self, element_id: str, node_ids: List[str], dofs):
        self.id = element_id
        self.node_ids = list(node_ids)
        self.dof_map = dofs.element_dof_map(self.node_ids)

    def gather(self, u: np.ndarray) -> np.ndarray:
        """Element slice of a full displacement vector."""
        return u[self.dof_map]

    @abstractmethod
    def stiffness(self, axial_force: float = 0.0) -> np.ndarray:
        """Stiffness matrix, including geometric stiffness for ``axial_force`` where supported."""

    def geometric_stiffness(self, axial_force: float) -> Optional[np.ndarray]:
        """Geometric stiffness for the given axial force; None if not modelled."""
        return None

    def axial_force(self, d: np.ndarray, load_case: str, factor: float) -> float:
        """Representative axial force (tension positive) from element displacements."""
        return 0.0

    @abstractmethod
    def mass(self, formulation: str = "consistent") -> np.ndarray:
        """'consistent' or 'lumped' mass matrix."""

    @abstractmethod
    def equivalent_loads(self, load_case: str, factor: float = 1.0) -> Optional[np.ndarray]:
        """Equivalent nodal loads of the element loads of one case; None when unloaded."""

    @abstractmethod
    def recover(self, d: np.ndarray, load_case: Optional[str], factor: float,
                station_count: int, axial_force: float = 0.0):
        """Result container for element displacements ``d`` (element slice)."""

    def __repr__(self):
        return f"{type(self).__name__}({self.id!r}, nodes={self.node_ids})"
