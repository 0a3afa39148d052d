# struct_core/elements/beam.py
"""
BEAM ELEMENT: 3-D Frame Member (12 DOF)
=======================================

Local DOF order (per end node): u, v, w, θx, θy, θz

    Node i:  [0, 1, 2, 3, 4, 5]
    Node j:  [6, 7, 8, 9, 10, 11]

STIFFNESS:
----------
Euler-Bernoulli bending in both principal planes with Timoshenko shear terms

    φ = 12·E·I / (G·A_s·L²)

when shear deformation is requested and the shear area is known. Axial EA/L,
torsion GJ/L. The x-z plane uses the same block as the x-y plane with the
rotation signs flipped (θy = -dw/dx).

RELEASES:
---------
Released end DOFs are statically condensed out before the transformation:
u = Γ·u_r with u_c = -k_cc⁻¹·k_cr·u_r, so k* = Γᵀ·k·Γ and q* = Γᵀ·q.

OFFSETS:
--------
The flexible part of the member runs between the offset end points; the
rigid links enter as T = T_rotation · T_offset.

LOADS:
------
Point, uniform, linear and thermal loads become fixed-end equivalent nodal
loads q (local). Global-direction distributed loads act per unit member
length.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np
from scipy.linalg import block_diag

from ..results import BeamResult
from .base import Element
from .transform import beam_axes, expand_rotation, rigid_offset


V_PLANE = [1, 5, 7, 11]   # v, θz at both ends: bending about local z
W_PLANE = [2, 4, 8, 10]   # w, θy at both ends: bending about local y
FLIP = np.diag([1.0, -1.0, 1.0, -1.0])

GAUSS_POINTS, GAUSS_WEIGHTS = np.polynomial.legendre.leggauss(6)


def _bending_block(EI: float, L: float, phi: float = 0.0) -> np.ndarray:
    c = EI / ((1.0 + phi) * L ** 3)
    return c * np.array([
        [12.0, 6 * L, -12.0, 6 * L],
        [6 * L, (4 + phi) * L ** 2, -6 * L, (2 - phi) * L ** 2],
        [-12.0, -6 * L, 12.0, -6 * L],
        [6 * L, (2 - phi) * L ** 2, -6 * L, (4 + phi) * L ** 2],
    ])


def beam_local_stiffness(E, G, A, Iy, Iz, J, L, phi_y=0.0, phi_z=0.0) -> np.ndarray:
    """
    12x12 local elastic stiffness.

    Args:
        E, G: Elastic and shear modulus
        A, Iy, Iz, J: Section properties
        L: Length of the flexible part
        phi_y: Shear parameter for bending in the x-y plane (uses Iz, A_y)
        phi_z: Shear parameter for bending in the x-z plane (uses Iy, A_z)
    """
    k = np.zeros((12, 12))
    bar = np.array([[1.0, -1.0], [-1.0, 1.0]])
    k[np.ix_([0, 6], [0, 6])] = E * A / L * bar
    k[np.ix_([3, 9], [3, 9])] = G * J / L * bar
    k[np.ix_(V_PLANE, V_PLANE)] = _bending_block(E * Iz, L, phi_y)
    k[np.ix_(W_PLANE, W_PLANE)] = FLIP @ _bending_block(E * Iy, L, phi_z) @ FLIP
    return k


def beam_local_geometric(N: float, L: float) -> np.ndarray:
    """
    12x12 local geometric stiffness for axial force N (tension positive).

    Consistent cubic-interpolation form; compression (N < 0) softens the
    transverse stiffness.
    """
    g = N / (30.0 * L) * np.array([
        [36.0, 3 * L, -36.0, 3 * L],
        [3 * L, 4 * L ** 2, -3 * L, -L ** 2],
        [-36.0, -3 * L, 36.0, -3 * L],
        [3 * L, -L ** 2, -3 * L, 4 * L ** 2],
    ])
    kg = np.zeros((12, 12))
    kg[np.ix_(V_PLANE, V_PLANE)] = g
    kg[np.ix_(W_PLANE, W_PLANE)] = FLIP @ g @ FLIP
    return kg


def beam_local_mass(rho: float, A: float, Ip: float, L: float) -> np.ndarray:
    """12x12 consistent mass (translational + torsional inertia)."""
    m = np.zeros((12, 12))
    m[np.ix_([0, 6], [0, 6])] = rho * A * L / 6.0 * np.array([[2.0, 1.0], [1.0, 2.0]])
    m[np.ix_([3, 9], [3, 9])] = rho * Ip * L / 6.0 * np.array([[2.0, 1.0], [1.0, 2.0]])
    b = rho * A * L / 420.0 * np.array([
        [156.0, 22 * L, 54.0, -13 * L],
        [22 * L, 4 * L ** 2, 13 * L, -3 * L ** 2],
        [54.0, 13 * L, 156.0, -22 * L],
        [-13 * L, -3 * L ** 2, -22 * L, 4 * L ** 2],
    ])
    m[np.ix_(V_PLANE, V_PLANE)] = b
    m[np.ix_(W_PLANE, W_PLANE)] = FLIP @ b @ FLIP
    return m


def lump_diagonal(m: np.ndarray, groups) -> np.ndarray:
    """
    Row-sum-free diagonal lumping: keep the diagonal of the consistent matrix
    and scale each (translations, rotations) group so the translational
    entries add up to the group's total mass.
    """
    d = np.diag(m).copy()
    for translations, rotations, total in groups:
        s = d[translations].sum()
        if s > 0:
            d[translations + rotations] *= total / s
    return np.diag(d)


def point_load_vector(P: np.ndarray, a: float, L: float) -> np.ndarray:
    """Equivalent nodal loads (local, 12) of a force P (local 3-vector) at distance a."""
    b = L - a
    q = np.zeros(12)
    q[0] += P[0] * b / L
    q[6] += P[0] * a / L
    for d, (i, ri, j, rj, sign) in ((1, (1, 5, 7, 11, 1.0)), (2, (2, 4, 8, 10, -1.0))):
        q[i] += P[d] * b * b * (3 * a + b) / L ** 3
        q[j] += P[d] * a * a * (a + 3 * b) / L ** 3
        q[ri] += sign * P[d] * a * b * b / L ** 2
        q[rj] -= sign * P[d] * a * a * b / L ** 2
    return q


def distributed_load_vector(w1: np.ndarray, w2: np.ndarray, L: float) -> np.ndarray:
    """Equivalent nodal loads of a load varying linearly from w1 to w2 (local 3-vectors)."""
    q = np.zeros(12)
    q[0] += L * (2 * w1[0] + w2[0]) / 6.0
    q[6] += L * (w1[0] + 2 * w2[0]) / 6.0
    for d, (i, ri, j, rj, sign) in ((1, (1, 5, 7, 11, 1.0)), (2, (2, 4, 8, 10, -1.0))):
        q[i] += L * (7 * w1[d] + 3 * w2[d]) / 20.0
        q[j] += L * (3 * w1[d] + 7 * w2[d]) / 20.0
        q[ri] += sign * L ** 2 * (3 * w1[d] + 2 * w2[d]) / 60.0
        q[rj] -= sign * L ** 2 * (2 * w1[d] + 3 * w2[d]) / 60.0
    return q


def _clamped_green(x, a, L):
    """Deflection at x of a clamped-clamped beam (EI = 1) under a unit load at a."""
    x, a = np.broadcast_arrays(np.asarray(x, dtype=float), np.asarray(a, dtype=float))
    b = L - a
    xr = L - x
    left = b ** 2 * x ** 2 * (3 * a * L - (3 * a + b) * x)
    right = a ** 2 * xr ** 2 * (3 * b * L - (3 * b + a) * xr)
    return np.where(x <= a, left, right) / (6.0 * L ** 3)


def _bar_green(x, a, L):
    """Axial displacement at x of a bar fixed at both ends (EA = 1) under a unit load at a."""
    x, a = np.broadcast_arrays(np.asarray(x, dtype=float), np.asarray(a, dtype=float))
    return np.where(x <= a, x * (L - a), a * (L - x)) / L


@dataclass
class SpanLoads:
    """Local span loads of one load case, already scaled."""
    q: np.ndarray = field(default_factory=lambda: np.zeros(12))
    points: List[Tuple[float, np.ndarray]] = field(default_factory=list)
    distributed: List[Tuple[np.ndarray, np.ndarray]] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not np.any(self.q)


class BeamElement(Element):
    """3-D frame element with releases, rigid offsets and span loads."""
    kind = "beam"

    def __init__(self, beam, start, end, section, material, dofs,
                 include_shear_deformation: bool = True):
        super().__init__(beam.id, beam.node_ids, dofs)
        self.beam = beam
        self.section = section
        self.material = material

        o_i = np.asarray(beam.start_offset, dtype=float)
        o_j = np.asarray(beam.end_offset, dtype=float)
        self.L, self.R = beam_axes(start.position + o_i, end.position + o_j, beam.orientation_angle)
        self.T = expand_rotation(self.R, 4) @ block_diag(rigid_offset(o_i), rigid_offset(o_j))

        E, G, s = material.E, material.G, section
        phi_y = phi_z = 0.0
        if include_shear_deformation:
            if s.Ay:
                phi_y = 12.0 * E * s.Iz / (G * s.Ay * self.L ** 2)
            if s.Az:
                phi_z = 12.0 * E * s.Iy / (G * s.Az * self.L ** 2)
        self.k_local = beam_local_stiffness(E, G, s.A, s.Iy, s.Iz, s.J, self.L, phi_y, phi_z)

        self.released = np.flatnonzero(np.r_[beam.start_releases, beam.end_releases])
        self.kept = np.setdiff1d(np.arange(12), self.released)
        self.gamma = np.eye(12)
        self._cc_inv = None
        if self.released.size:
            self._cc_inv = np.linalg.pinv(self.k_local[np.ix_(self.released, self.released)])
            k_cr = self.k_local[np.ix_(self.released, self.kept)]
            self.gamma[np.ix_(self.released, self.kept)] = -self._cc_inv @ k_cr
            self.gamma[np.ix_(self.released, self.released)] = 0.0

        self._loads: Dict[Tuple[str, float], SpanLoads] = {}

    # --- matrices ----------------------------------------------------------

    def _to_global(self, m_local: np.ndarray) -> np.ndarray:
        condensed = self.gamma.T @ m_local @ self.gamma
        return self.T.T @ condensed @ self.T

    def local_stiffness(self, axial_force: float = 0.0) -> np.ndarray:
        if axial_force:
            return self.k_local + beam_local_geometric(axial_force, self.L)
        return self.k_local

    def stiffness(self, axial_force: float = 0.0) -> np.ndarray:
        return self._to_global(self.local_stiffness(axial_force))

    def geometric_stiffness(self, axial_force: float) -> np.ndarray:
        return self._to_global(beam_local_geometric(axial_force, self.L))

    def mass(self, formulation: str = "consistent") -> np.ndarray:
        s = self.section
        rho = self.material.density
        m = beam_local_mass(rho, s.A, s.Iy + s.Iz, self.L)
        if formulation == "lumped":
            total = rho * s.A * self.L
            m = lump_diagonal(m, [
                ([0, 6], [3, 9], total),
                ([1, 7], [5, 11], total),
                ([2, 8], [4, 10], total),
            ])
        return self._to_global(m)

    # --- loads -------------------------------------------------------------

    def _local_direction(self, direction: str) -> np.ndarray:
        e = np.eye(3)["xyz".index(direction[-1])]
        return e if direction.startswith("local") else self.R @ e

    def span_loads(self, load_case: Optional[str], factor: float = 1.0) -> SpanLoads:
        key = (load_case, factor)
        if key in self._loads:
            return self._loads[key]

        loads = SpanLoads()
        L = self.L
        for load in self.beam.loads:
            if load.load_case != load_case:
                continue
            if load.kind == "thermal":
                self._add_thermal(loads, load, factor)
                continue
            e = self._local_direction(load.direction)
            if load.kind == "point":
                a = float(np.clip(load.position, 0.0, 1.0)) * L
                P = factor * load.value * e
                loads.points.append((a, P))
                loads.q += point_load_vector(P, a, L)
            else:
                if load.kind == "uniform":
                    w1 = w2 = factor * load.value * e
                else:
                    w1, w2 = factor * load.start_value * e, factor * load.end_value * e
                loads.distributed.append((w1, w2))
                loads.q += distributed_load_vector(w1, w2, L)

        self._loads[key] = loads
        return loads

    def _add_thermal(self, loads: SpanLoads, load, factor: float) -> None:
        # top fibre = local +z
        s, E = self.section, self.material.E
        alpha = self.material.thermal_expansion
        t_avg = factor * 0.5 * (load.top_temperature + load.bottom_temperature)
        axial = E * s.A * alpha * t_avg
        loads.q[0] -= axial
        loads.q[6] += axial

        gradient = factor * (load.top_temperature - load.bottom_temperature)
        if gradient:
            kappa = alpha * gradient / s.thermal_depth
            loads.q[4] -= E * s.Iy * kappa
            loads.q[10] += E * s.Iy * kappa

    def equivalent_loads(self, load_case: str, factor: float = 1.0) -> Optional[np.ndarray]:
        loads = self.span_loads(load_case, factor)
        if loads.empty:
            return None
        return self.T.T @ (self.gamma.T @ loads.q)

    # --- recovery ----------------------------------------------------------

    def end_forces(self, d: np.ndarray, loads: SpanLoads, axial_force: float = 0.0):
        """
        Local displacements of the flexible ends and end forces (forces the
        nodes exert on the member, local axes).
        """
        u = self.T @ d
        if self.released.size:
            k_cr = self.k_local[np.ix_(self.released, self.kept)]
            u[self.released] = self._cc_inv @ (loads.q[self.released] - k_cr @ u[self.kept])
        f = self.local_stiffness(axial_force) @ u - loads.q
        f[self.released] = 0.0
        return u, f

    def axial_force(self, d: np.ndarray, load_case: Optional[str], factor: float = 1.0) -> float:
        _, f = self.end_forces(d, self.span_loads(load_case, factor))
        return 0.5 * (f[6] - f[0])

    def recover(self, d, load_case, factor, station_count, axial_force=0.0) -> BeamResult:
        loads = self.span_loads(load_case, factor)
        u, f = self.end_forces(d, loads, axial_force)
        L = self.L
        x = np.linspace(0.0, L, station_count)

        # resultant and first moment of the span loads acting on [0, x]
        load_F = np.zeros((station_count, 3))
        load_Q = np.zeros((station_count, 3))
        for a, P in loads.points:
            on = (x > a) | (x >= L)
            load_F[on] += P
            load_Q[on] += np.outer(x[on] - a, P)
        for w1, w2 in loads.distributed:
            load_F += np.outer(x, w1) + np.outer(x ** 2 / (2 * L), w2 - w1)
            load_Q += np.outer(x ** 2 / 2, w1) + np.outer(x ** 3 / (6 * L), w2 - w1)

        Fi, Mi = f[0:3], f[3:6]
        shear = -(Fi + load_F)
        moments = np.column_stack([
            np.full(station_count, -Mi[0]),
            -(Mi[1] + x * Fi[2] + load_Q[:, 2]),
            -(Mi[2] - x * Fi[1] - load_Q[:, 1]),
        ])
        forces = np.column_stack([shear, moments])

        return BeamResult(
            element_id=self.id,
            positions=x,
            forces=forces,
            stresses=self.stresses(forces),
            displacements=self.station_displacements(x, u, loads) @ self.R,
        )

    def stresses(self, forces: np.ndarray) -> np.ndarray:
        s = self.section
        N, Vy, Vz, T, My, Mz = forces.T
        Sy, Sz, Wt = s.modulus_y, s.modulus_z, s.torsion_lever
        zero = np.zeros_like(N)
        return np.column_stack([
            N / s.A,
            My / Sy if Sy else zero,
            Mz / Sz if Sz else zero,
            Vy / (s.Ay or s.A),
            Vz / (s.Az or s.A),
            T / Wt if Wt else zero,
        ])

    def station_displacements(self, x: np.ndarray, u: np.ndarray, loads: SpanLoads) -> np.ndarray:
        """
        Local translations along the axis: Hermite/linear interpolation of the
        end values plus the clamped-clamped response to the span loads.
        """
        L = self.L
        xi = x / L
        N1 = 1 - 3 * xi ** 2 + 2 * xi ** 3
        N2 = L * (xi - 2 * xi ** 2 + xi ** 3)
        N3 = 3 * xi ** 2 - 2 * xi ** 3
        N4 = L * (xi ** 3 - xi ** 2)
        local = np.column_stack([
            (1 - xi) * u[0] + xi * u[6],
            N1 * u[1] + N2 * u[5] + N3 * u[7] + N4 * u[11],
            N1 * u[2] - N2 * u[4] + N3 * u[8] - N4 * u[10],
        ])

        E, s = self.material.E, self.section
        rigidity = (E * s.A, E * s.Iz, E * s.Iy)
        kernels = (_bar_green, _clamped_green, _clamped_green)
        for a, P in loads.points:
            for c in range(3):
                if P[c]:
                    local[:, c] += P[c] * kernels[c](x, a, L) / rigidity[c]
        if loads.distributed:
            for k, xk in enumerate(x):
                for lo, hi in ((0.0, xk), (xk, L)):
                    if hi <= lo:
                        continue
                    s_pts = lo + 0.5 * (GAUSS_POINTS + 1.0) * (hi - lo)
                    weights = 0.5 * (hi - lo) * GAUSS_WEIGHTS
                    p = sum(np.outer(1 - s_pts / L, w1) + np.outer(s_pts / L, w2)
                            for w1, w2 in loads.distributed)
                    for c in range(3):
                        local[k, c] += np.sum(weights * p[:, c] * kernels[c](xk, s_pts, L)) / rigidity[c]
        return local
