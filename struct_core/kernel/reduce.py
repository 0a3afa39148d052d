# struct_core/kernel/reduce.py
"""
Boundary reduction: partition the global system into free/restrained blocks.

Restrained DOFs have zero prescribed displacement, so only the free-free
block and the free part of the load vector are needed to solve. K and F are
never modified; reactions are recovered later from the full K.
"""

from dataclasses import dataclass

import numpy as np
import scipy.sparse as sp


@dataclass
class ReducedSystem:
    K_ff: object
    F_f: np.ndarray
    free: np.ndarray
    restrained: np.ndarray

    @property
    def size(self) -> int:
        return len(self.free)


def extract_block(K, rows: np.ndarray, cols: np.ndarray):
    """K[rows][:, cols] for dense or sparse K (always a copy)."""
    if sp.issparse(K):
        return K.tocsr()[rows, :][:, cols].tocsr()
    return K[np.ix_(rows, cols)].copy()


def reduce_system(K, F: np.ndarray, dofs) -> ReducedSystem:
    free = dofs.free_dofs
    return ReducedSystem(
        K_ff=extract_block(K, free, free),
        F_f=np.array(F, dtype=float)[free],
        free=free,
        restrained=dofs.restrained_dofs,
    )


def expand(u_free: np.ndarray, free: np.ndarray, ndof: int) -> np.ndarray:
    """Full displacement vector; restrained entries are zero."""
    u = np.zeros(ndof, dtype=float)
    u[free] = u_free
    return u
