# struct_core/kernel/modal.py
"""Modal analysis: reduced generalized eigenproblem, normalization, mass participation."""

import logging
from typing import List, Tuple

import numpy as np
import scipy.sparse as sp
import scipy.sparse.linalg as spla
from scipy.linalg import eigh

from ..errors import ConvergenceError
from ..results import ModalResult
from .dof import DOF_PER_NODE
from .reduce import expand, extract_block
from .solve import factorize

logger = logging.getLogger(__name__)

DIRECTIONS = ("x", "y", "z", "rx", "ry", "rz")


def _dense(A) -> np.ndarray:
    return A.toarray() if sp.issparse(A) else np.asarray(A)


def natural_frequencies(K_ff, M_ff, n_modes: int, configuration, describe=None) -> Tuple[np.ndarray, np.ndarray]:
    """
    Lowest eigenpairs of K·φ = ω²·M·φ on the free DOFs.

    Uses shift-invert Lanczos about σ = 0 (K is factorized once with the
    configured direct strategy, so a mechanism is reported as
    SingularMatrixError). Small systems are solved densely.

    Args:
        K_ff, M_ff: Reduced stiffness and mass
        n_modes: Number of modes wanted

    Returns:
        omega2: Eigenvalues ω², ascending, non-negative
        phi: Eigenvectors (n_free x n_found), columns matching omega2

    Raises:
        ConvergenceError: Lanczos iteration did not converge or ARPACK stopped with an error
    """
    eig = configuration.solver_settings.eigen_solver
    n = K_ff.shape[0]
    k = min(n_modes, n)
    if k == 0:
        return np.zeros(0), np.zeros((n, 0))

    solve = factorize(K_ff, configuration, describe)

    if not eig.shift_invert:
        omega2, phi = eigh(_dense(K_ff), _dense(M_ff), subset_by_index=[0, k - 1])
        return np.maximum(omega2, 0.0), phi

    ncv = min(n, max(2 * k + 1, k + eig.block_size))
    if k >= n - 1 or ncv >= n:
        # dense shift-invert: M·φ = (1/ω²)·K·φ, largest 1/ω² first
        mu, vecs = eigh(_dense(M_ff), _dense(K_ff))
        keep = np.flatnonzero(mu > mu.max() * 1e-12)[::-1][:k] if mu.max() > 0 else []
        return 1.0 / mu[keep], vecs[:, keep]

    rng = np.random.default_rng(configuration.random_seed)
    op = spla.LinearOperator((n, n), matvec=solve, dtype=float)
    try:
        omega2, phi = spla.eigsh(
            K_ff, k=k, M=M_ff, sigma=0.0, which="LM", OPinv=op,
            tol=eig.tolerance, maxiter=eig.max_iterations, ncv=ncv,
            v0=rng.standard_normal(n),
        )
    except spla.ArpackNoConvergence as exc:
        raise ConvergenceError(
            f"Eigen solver found {len(exc.eigenvalues)} of {k} modes",
            iterations=eig.max_iterations,
        ) from exc
    except spla.ArpackError as exc:
        raise ConvergenceError(f"Eigen solver failed: {exc}", iterations=eig.max_iterations) from exc
    order = np.argsort(omega2)
    return np.maximum(omega2[order], 0.0), phi[:, order]


def mass_normalize(phi: np.ndarray, M_ff) -> np.ndarray:
    """Scale each column so that φᵀ·M·φ = 1."""
    m_star = np.einsum("ij,ij->j", phi, M_ff @ phi)
    return phi / np.sqrt(m_star)


def _fix_sign(phi: np.ndarray) -> np.ndarray:
    """Largest-magnitude component of every mode positive (reproducible shapes)."""
    idx = np.argmax(np.abs(phi), axis=0)
    signs = np.sign(phi[idx, np.arange(phi.shape[1])])
    return phi * np.where(signs == 0, 1.0, signs)


def rigid_body_influence(positions: np.ndarray) -> np.ndarray:
    """
    Unit rigid-body motions of the whole structure (ndof x 6): translations
    along x, y, z and rotations about axes through the node centroid.
    """
    n = len(positions)
    centre = positions.mean(axis=0)
    R = np.zeros((DOF_PER_NODE * n, 6))
    for k, p in enumerate(positions):
        base = DOF_PER_NODE * k
        R[base:base + 3, 0:3] = np.eye(3)
        for a in range(3):
            R[base:base + 3, 3 + a] = np.cross(np.eye(3)[a], p - centre)
            R[base + 3 + a, 3 + a] = 1.0
    return R


def participation_ratios(phi: np.ndarray, M_ff, R_f: np.ndarray) -> np.ndarray:
    """
    Effective-mass ratio of every mode in every direction (n_modes x 6).

        ratio = (φᵀ·M·r)² / (φᵀ·M·φ · rᵀ·M·r)
    """
    MR = M_ff @ R_f
    total = np.einsum("ij,ij->j", R_f, MR)
    gamma = phi.T @ MR
    m_star = np.einsum("ij,ij->j", phi, M_ff @ phi)
    with np.errstate(divide="ignore", invalid="ignore"):
        ratios = gamma ** 2 / (m_star[:, None] * total[None, :])
    return np.where(total[None, :] > 0, ratios, 0.0)


def modal_analysis(K, M, dofs, positions: np.ndarray, configuration, describe=None) -> List[ModalResult]:
    """
    Modes of the structure up to the configured count and frequency cutoff.

    Returns:
        ModalResult per mode, ascending frequency
    """
    options = configuration.modal_options
    eig = configuration.solver_settings.eigen_solver
    free = dofs.free_dofs
    K_ff = extract_block(K, free, free)
    M_ff = extract_block(M, free, free)

    omega2, phi = natural_frequencies(K_ff, M_ff, options.number_of_modes, configuration, describe)
    freqs = np.sqrt(omega2) / (2.0 * np.pi)
    keep = freqs <= options.max_frequency
    if not np.all(keep):
        logger.info("Dropping %d mode(s) above %.3g Hz", int(np.sum(~keep)), options.max_frequency)
    omega2, phi, freqs = omega2[keep], phi[:, keep], freqs[keep]

    phi = mass_normalize(phi, M_ff)
    ratios = participation_ratios(phi, M_ff, rigid_body_influence(positions)[free])
    if not eig.normalize_eigenvectors:
        phi = phi / np.max(np.abs(phi), axis=0)
    phi = _fix_sign(phi)

    cumulative = 100.0 * ratios[:, :3].sum(axis=0)
    short = [d for d, c in zip(DIRECTIONS, cumulative) if c < options.mass_participation]
    if len(freqs) and short:
        logger.warning("Cumulative mass participation below %.0f%% in %s (%s)",
                       options.mass_participation, ", ".join(short),
                       ", ".join(f"{c:.1f}%" for c in cumulative))

    results = []
    for i in range(len(freqs)):
        omega = float(np.sqrt(omega2[i]))
        results.append(ModalResult(
            mode=i + 1,
            frequency=float(freqs[i]),
            angular_frequency=omega,
            period=1.0 / float(freqs[i]) if freqs[i] > 0 else float("inf"),
            participation=dict(zip(DIRECTIONS, ratios[i].tolist())),
            shape=dofs.node_array(expand(phi[:, i], free, dofs.ndof)),
        ))
    return results
