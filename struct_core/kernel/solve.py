# struct_core/kernel/solve.py
"""
Linear system solver: direct and iterative strategies, singularity detection,
and P-Delta iteration.

DIRECT (solver_type='direct'):
    dense  → Cholesky; LU when not positive definite (pivoting='partial');
             QR with column pivoting (pivoting='complete'); Cholesky only
             (pivoting='none')
    sparse → SuperLU with a fill-reducing column ordering

    Every pivot is compared with the magnitude of its column. A ratio at
    round-off level means the structure is a mechanism at that DOF and raises
    SingularMatrixError naming the node; a ratio below ``pivot_threshold``
    is only logged as ill-conditioning.

ITERATIVE (solver_type='iterative'):
    pcg / gmres / bicgstab / minres from scipy.sparse.linalg with a
    none / jacobi / ilu / ssor preconditioner. Starts from zero, so results
    are reproducible. Not reaching the tolerance raises ConvergenceError.

Before either strategy runs, every connected part of the structure must
reach a restrained DOF. A floating sub-structure is reported as
SingularMatrixError whatever the solver.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

import numpy as np
import scipy.linalg as la
import scipy.sparse as sp
import scipy.sparse.linalg as spla
from scipy.sparse.csgraph import connected_components, reverse_cuthill_mckee

from ..errors import ConvergenceError, SingularMatrixError, UnsupportedFeatureError
from .dof import DOF_PER_NODE
from .reduce import expand, reduce_system

logger = logging.getLogger(__name__)

# matrix_reordering → SuperLU permc_spec
PERMC_SPEC = {
    "automatic": "COLAMD",
    "amd": "MMD_AT_PLUS_A",
    "rcm": "NATURAL",  # RCM is applied as an explicit symmetric permutation first
    "none": "NATURAL",
}

# Largest system that is densified to locate an exactly singular DOF
DENSE_LOCATE_LIMIT = 4000

# Rank tolerance of a pivot relative to its column: max(n, RANK_FACTOR) · eps
RANK_FACTOR = 1000

Describe = Callable[[int], Tuple[int, str, str]]


def _raise_singular(message: str, reduced_index: Optional[int], describe: Optional[Describe]):
    if reduced_index is None or describe is None:
        raise SingularMatrixError(message, dof=reduced_index)
    dof, node_id, label = describe(int(reduced_index))
    raise SingularMatrixError(message, dof=dof, node_id=node_id, label=label)


def _diagonal(A) -> np.ndarray:
    return np.asarray(A.diagonal() if sp.issparse(A) else np.diag(A), dtype=float)


def _column_scale(A) -> np.ndarray:
    if sp.issparse(A):
        return np.asarray(abs(A).max(axis=0).todense()).ravel()
    return np.max(np.abs(A), axis=0)


def check_diagonal(A, describe: Optional[Describe] = None) -> None:
    """A free DOF without any stiffness is singular no matter the solver."""
    diag = _diagonal(A)
    if diag.size == 0:
        return
    scale = np.max(np.abs(diag))
    weak = np.flatnonzero(np.abs(diag) <= 1e-14 * scale) if scale > 0 else np.arange(diag.size)
    if weak.size:
        _raise_singular("Free DOF has no stiffness", weak[0], describe)


def _check_pivots(pivots: np.ndarray, columns: np.ndarray, order: np.ndarray,
                  threshold: float, check: bool, describe: Optional[Describe]) -> None:
    """
    pivots[j] belongs to variable order[j]; columns[i] is the magnitude of
    column i of the matrix that was factorized.

    A pivot at round-off level relative to its column, max(n, 1000)·eps, is a
    mechanism. A pivot below ``threshold`` but above round-off only means the
    system is ill-conditioned (fine meshes get there), which is logged.
    """
    n = pivots.size
    if n == 0:
        return
    ratio = np.abs(pivots) / np.where(columns[order] > 0, columns[order], 1.0)
    rank_tol = max(n, RANK_FACTOR) * np.finfo(pivots.dtype).eps if check else 0.0
    bad = np.flatnonzero(~np.isfinite(ratio) | (ratio <= rank_tol))
    if bad.size:
        j = bad[np.argmin(ratio[bad])] if np.all(np.isfinite(ratio[bad])) else bad[0]
        logger.debug("Pivot ratio %.3e at reduced index %d", ratio[j], order[j])
        _raise_singular("Stiffness matrix is singular: unstable mechanism", order[j], describe)
    j = int(np.argmin(ratio))
    if check and ratio[j] <= threshold:
        logger.warning("Ill-conditioned stiffness: pivot ratio %.3e at reduced index %d (threshold %.1e)",
                       ratio[j], order[j], threshold)


def _dependent_column(A) -> Optional[int]:
    """Index of the first linearly dependent column (rank-revealing QR)."""
    if A.shape[0] > DENSE_LOCATE_LIMIT:
        return None
    dense = A.toarray() if sp.issparse(A) else np.asarray(A)
    _, R, piv = la.qr(dense, pivoting=True, mode="economic")
    r = np.abs(np.diag(R))
    if r.size == 0 or r[0] == 0:
        return 0
    rank = int(np.sum(r > r[0] * dense.shape[0] * np.finfo(float).eps))
    return int(piv[min(rank, len(piv) - 1)])


def _leading_minor(exc: Exception) -> Optional[int]:
    match = re.search(r"(\d+)-th leading minor", str(exc))
    return int(match.group(1)) - 1 if match else None


def _factor_dense(A: np.ndarray, direct, threshold: float, check: bool, describe) -> Callable:
    n = A.shape[0]
    columns = _column_scale(A)

    if direct.pivoting == "complete":
        Q, R, piv = la.qr(A, pivoting=True)
        _check_pivots(np.diag(R), columns, piv, threshold, check, describe)

        def solve_qr(b):
            z = la.solve_triangular(R, Q.T @ b)
            x = np.empty_like(z)
            x[piv] = z
            return x
        return solve_qr

    try:
        c = la.cho_factor(A, lower=False, check_finite=False)
    except la.LinAlgError as exc:
        if direct.pivoting == "none":
            _raise_singular("Stiffness matrix is not positive definite", _leading_minor(exc), describe)
        logger.debug("Cholesky failed (%s); falling back to LU", exc)
    else:
        _check_pivots(np.diag(c[0]) ** 2, columns, np.arange(n), threshold, check, describe)
        return lambda b: la.cho_solve(c, b, check_finite=False)

    lu, piv = la.lu_factor(A, check_finite=False)
    _check_pivots(np.diag(lu), columns, np.arange(n), threshold, check, describe)
    return lambda b: la.lu_solve((lu, piv), b, check_finite=False)


def _factor_sparse(A, reordering: str, threshold: float, check: bool, describe) -> Callable:
    if reordering == "metis":
        raise UnsupportedFeatureError("matrix reordering 'metis'", "use 'automatic', 'amd', 'rcm' or 'none'")
    A = sp.csc_matrix(A)
    perm = None
    if reordering == "rcm":
        perm = reverse_cuthill_mckee(A.tocsr(), symmetric_mode=True)
        A = A[perm, :][:, perm].tocsc()

    def original(k):
        if k is None:
            return None
        return int(perm[k]) if perm is not None else int(k)

    try:
        lu = spla.splu(A, permc_spec=PERMC_SPEC[reordering])
    except RuntimeError as exc:
        logger.debug("SuperLU failed: %s", exc)
        _raise_singular("Stiffness matrix is exactly singular", original(_dependent_column(A)), describe)

    # U column j holds variable argsort(perm_c)[j]
    order = np.argsort(lu.perm_c)
    columns = _column_scale(A)
    try:
        _check_pivots(lu.U.diagonal(), columns, order, threshold, check, describe=None)
    except SingularMatrixError as exc:
        _raise_singular(str(exc), original(exc.dof), describe)

    if perm is None:
        return lu.solve

    def solve_permuted(b):
        x = np.empty_like(b)
        x[perm] = lu.solve(b[perm])
        return x
    return solve_permuted


def factorize(A, configuration, describe: Optional[Describe] = None) -> Callable:
    """
    Factorize a reduced stiffness matrix with the configured direct strategy.

    Returns a function ``solve(b) -> x``. Honors matrix storage, reordering,
    pivoting, pivot threshold, symmetric scaling, precision and iterative
    refinement.

    Raises:
        SingularMatrixError: zero or near-zero pivot (mechanism)
        UnsupportedFeatureError: storage or reordering without implementation
    """
    settings = configuration.solver_settings
    direct = settings.direct_solver
    threshold, check = direct.pivot_threshold, settings.check_singularity
    dtype = np.float32 if configuration.precision == "single" else np.float64

    check_diagonal(A, describe)
    scale = None
    work = A
    if settings.matrix_scaling:
        scale = 1.0 / np.sqrt(np.abs(_diagonal(A)))
        if sp.issparse(A):
            D = sp.diags(scale)
            work = (D @ A @ D).tocsc()
        else:
            work = A * scale[:, None] * scale[None, :]

    work = work.astype(dtype)
    if sp.issparse(work):
        solve_raw = _factor_sparse(work, settings.matrix_reordering, threshold, check, describe)
    else:
        solve_raw = _factor_dense(np.asarray(work), direct, threshold, check, describe)

    def solve(b: np.ndarray) -> np.ndarray:
        rhs = b if scale is None else b * scale
        y = np.asarray(solve_raw(rhs.astype(dtype)), dtype=float)
        return y if scale is None else y * scale

    if not direct.iterative_refinement:
        return solve

    def solve_refined(b: np.ndarray) -> np.ndarray:
        x = solve(b)
        return x + solve(b - A @ x)
    return solve_refined


def _preconditioner(A: sp.csr_matrix, settings):
    kind = settings.preconditioner
    n = A.shape[0]
    if kind == "none":
        return None
    if kind == "amg":
        raise UnsupportedFeatureError("preconditioner 'amg'", "use 'jacobi', 'ilu' or 'ssor'")
    D = A.diagonal()
    if kind == "jacobi":
        return spla.LinearOperator((n, n), matvec=lambda x: x / D, dtype=A.dtype)
    if kind == "ilu":
        ilu = spla.spilu(A.tocsc(), drop_tol=1e-6, fill_factor=20)
        return spla.LinearOperator((n, n), matvec=ilu.solve, dtype=A.dtype)

    # SSOR: M = (D + wL) D^-1 (D + wU) / (w (2 - w))
    w = settings.relaxation_factor
    lower = (sp.tril(A, k=-1) * w + sp.diags(D)).tocsr()
    upper = (sp.triu(A, k=1) * w + sp.diags(D)).tocsr()

    def apply_ssor(x):
        y = spla.spsolve_triangular(lower, x, lower=True)
        return w * (2.0 - w) * spla.spsolve_triangular(upper, D * y, lower=False)
    return spla.LinearOperator((n, n), matvec=apply_ssor, dtype=A.dtype)


def solve_iterative(A, b: np.ndarray, configuration, describe: Optional[Describe] = None) -> np.ndarray:
    """
    Krylov solve of A x = b.

    Raises:
        ConvergenceError: tolerance not reached within the iteration cap
    """
    settings = configuration.solver_settings.iterative_solver
    dtype = np.float32 if configuration.precision == "single" else np.float64
    check_diagonal(A, describe)
    if not np.any(b):
        return np.zeros_like(b, dtype=float)

    A = sp.csr_matrix(A, dtype=dtype)
    rhs = np.asarray(b, dtype=dtype)
    M = _preconditioner(A, settings)
    x0 = np.zeros_like(rhs)
    iterations = [0]

    def count(_):
        iterations[0] += 1

    common = dict(x0=x0, maxiter=settings.max_iterations, M=M, callback=count)
    if settings.method == "pcg":
        x, info = spla.cg(A, rhs, rtol=settings.tolerance, atol=0.0, **common)
    elif settings.method == "gmres":
        x, info = spla.gmres(A, rhs, rtol=settings.tolerance, atol=0.0,
                             restart=settings.restart_parameter, callback_type="pr_norm", **common)
    elif settings.method == "bicgstab":
        x, info = spla.bicgstab(A, rhs, rtol=settings.tolerance, atol=0.0, **common)
    else:
        x, info = spla.minres(A, rhs, rtol=settings.tolerance, **common)

    x = np.asarray(x, dtype=float)
    residual = float(np.linalg.norm(b - A.astype(float) @ x) / np.linalg.norm(b))
    if info != 0:
        raise ConvergenceError(
            f"{settings.method.upper()} did not converge to {settings.tolerance:.1e}",
            residual=residual, iterations=iterations[0],
        )
    logger.debug("%s converged in %d iterations (residual %.3e)",
                 settings.method, iterations[0], residual)
    return x


def solve_reduced(K_ff, F_f: np.ndarray, configuration, describe: Optional[Describe] = None) -> np.ndarray:
    """Solve the reduced system with the configured solver family."""
    if K_ff.shape[0] == 0:
        return np.zeros(0)
    if configuration.solver_type == "iterative":
        return solve_iterative(K_ff, F_f, configuration, describe)
    return factorize(K_ff, configuration, describe)(F_f)


def free_dof_describer(dofs, free: np.ndarray) -> Describe:
    def describe(k: int):
        dof = int(free[k])
        node_id, label = dofs.describe(dof)
        return dof, node_id, label
    return describe


def check_supported_parts(K, dofs) -> None:
    """
    Every group of nodes coupled through K must contain a restrained DOF.

    Raises:
        SingularMatrixError: naming the first node of a floating group
    """
    n = dofs.n_nodes
    coo = sp.coo_matrix(K)
    mask = coo.data != 0
    rows = coo.row[mask] // DOF_PER_NODE
    cols = coo.col[mask] // DOF_PER_NODE
    graph = sp.csr_matrix((np.ones(rows.size), (rows, cols)), shape=(n, n))
    n_parts, part = connected_components(graph, directed=False)

    supported = np.zeros(n_parts, dtype=bool)
    supported[part[dofs.restraints.any(axis=1)]] = True
    floating = np.flatnonzero(~supported[part])
    if floating.size:
        node = int(floating[0])
        logger.debug("%d of %d node group(s) unsupported", int(np.sum(~supported)), n_parts)
        dof = DOF_PER_NODE * node
        node_id, label = dofs.describe(dof)
        raise SingularMatrixError("Unsupported sub-structure: no restrained DOF reachable",
                                  dof=dof, node_id=node_id, label=label)


def solve_linear(K, F: np.ndarray, dofs, configuration) -> Tuple[np.ndarray, np.ndarray]:
    """
    Solve K·u = F with zero displacement at restrained DOFs.

    Returns:
        u: Full displacement vector (ndof,)
        R: K·u - F (non-zero only at restrained DOFs, up to round-off)

    Raises:
        SingularMatrixError: floating sub-structure or mechanism
    """
    reduced = reduce_system(K, F, dofs)
    describe = free_dof_describer(dofs, reduced.free)
    check_diagonal(reduced.K_ff, describe)
    check_supported_parts(K, dofs)
    u_f = solve_reduced(reduced.K_ff, reduced.F_f, configuration, describe)
    u = expand(u_f, reduced.free, dofs.ndof)
    return u, K @ u - F


@dataclass
class PDeltaSolution:
    u: np.ndarray
    K: object
    axial_forces: Dict[str, float]
    iterations: int
    amplification: float


def solve_pdelta(
    build_stiffness: Callable[[Dict[str, float]], object],
    axial_forces_of: Callable[[np.ndarray], Dict[str, float]],
    F: np.ndarray,
    dofs,
    configuration,
) -> PDeltaSolution:
    """
    Iterative P-Delta (second-order) analysis.

    Solve linearly, compute member axial forces, rebuild K + K_g(N), solve
    again, and repeat until both the displacement and the axial forces stop
    changing (``convergence`` settings).

    Args:
        build_stiffness: axial forces → global stiffness including K_g
        axial_forces_of: full displacement vector → {element id: N}
        F: Global load vector

    Raises:
        ConvergenceError: no convergence within ``convergence.max_iterations``
        SingularMatrixError: the structure buckled under the applied load
    """
    conv = configuration.convergence
    K = build_stiffness({})
    u_linear, _ = solve_linear(K, F, dofs, configuration)
    forces = axial_forces_of(u_linear)
    if not any(abs(N) > 0 for N in forces.values()):
        return PDeltaSolution(u_linear, K, forces, 0, 1.0)

    u_prev = u_linear
    d_change = f_change = np.inf
    for iteration in range(1, conv.max_iterations + 1):
        K = build_stiffness(forces)
        try:
            u_new, _ = solve_linear(K, F, dofs, configuration)
        except SingularMatrixError as exc:
            raise SingularMatrixError(
                f"P-Delta iteration {iteration}: structure buckled",
                dof=exc.dof, node_id=exc.node_id, label=exc.label,
            ) from exc
        new_forces = axial_forces_of(u_new)

        d_norm = np.linalg.norm(u_new)
        d_change = np.linalg.norm(u_new - u_prev) / d_norm if d_norm > 0 else 0.0
        f_scale = max(max(abs(N) for N in new_forces.values()), 1e-300)
        f_change = max(abs(new_forces[k] - forces.get(k, 0.0)) for k in new_forces) / f_scale
        logger.debug("P-Delta iteration %d: du=%.3e dN=%.3e", iteration, d_change, f_change)

        u_prev, forces = u_new, new_forces
        if d_change < conv.displacement_tolerance and f_change < conv.force_tolerance:
            linear_max = np.max(np.abs(u_linear))
            amplification = np.max(np.abs(u_new)) / linear_max if linear_max > 0 else 1.0
            return PDeltaSolution(u_new, K, forces, iteration, float(amplification))

    raise ConvergenceError(
        f"P-Delta did not converge after {conv.max_iterations} iterations",
        residual=float(max(d_change, f_change)), iterations=conv.max_iterations,
    )
