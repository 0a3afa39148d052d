# struct_core/kernel/buckling.py
"""Linear buckling: (K + λ·K_g)·φ = 0 for the axial forces of a load case."""

import logging
from typing import List

import numpy as np
import scipy.sparse as sp
from scipy.linalg import eigh

from ..results import BucklingResult
from .reduce import expand, extract_block
from .solve import factorize

logger = logging.getLogger(__name__)


def critical_load_factors(K_ff, Kg_ff, n_modes: int, configuration, describe=None):
    """
    Smallest positive load factors λ with K·φ = -λ·K_g·φ.

    Solved as -K_g·φ = μ·K·φ with μ = 1/λ (K positive definite), so the
    critical modes are the largest positive μ.

    Returns:
        factors: ascending λ (may be empty when nothing is in compression)
        phi: matching eigenvectors (n_free x n_found)
    """
    factorize(K_ff, configuration, describe)
    K = K_ff.toarray() if sp.issparse(K_ff) else np.asarray(K_ff)
    Kg = Kg_ff.toarray() if sp.issparse(Kg_ff) else np.asarray(Kg_ff)
    if not np.any(Kg):
        return np.zeros(0), np.zeros((K.shape[0], 0))

    mu, vecs = eigh(-Kg, K)
    positive = np.flatnonzero(mu > np.max(np.abs(mu)) * 1e-10)[::-1][:n_modes]
    return 1.0 / mu[positive], vecs[:, positive]


def buckling_analysis(K, Kg, dofs, configuration, load_case: str, describe=None) -> List[BucklingResult]:
    """Buckling modes of one load case; shapes scaled to a largest component of +1."""
    free = dofs.free_dofs
    factors, phi = critical_load_factors(
        extract_block(K, free, free), extract_block(Kg, free, free),
        configuration.modal_options.number_of_modes, configuration, describe,
    )
    if not len(factors):
        logger.info("Load case '%s': no compression, no buckling modes", load_case)

    results = []
    for i, lam in enumerate(factors):
        shape = phi[:, i]
        shape = shape / shape[np.argmax(np.abs(shape))]
        results.append(BucklingResult(
            load_case=load_case,
            mode=i + 1,
            load_factor=float(lam),
            shape=dofs.node_array(expand(shape, free, dofs.ndof)),
        ))
    return results
