# struct_core/elements/plate.py
"""
PLATE ELEMENT: Flat 4-Node Shell (membrane + Mindlin bending + drilling)
=======================================================================

Local DOF order per node: u, v, w, θx, θy, θz

    MEMBRANE  u, v      bilinear plane stress
    BENDING   w, θx, θy Mindlin-Reissner plate, MITC4 assumed transverse shear
    DRILLING  θz        penalty α·G·t·(θz - ½(∂v/∂x - ∂u/∂y))²

Kinematics (z through the thickness, top = +z):

    u = z·θy,  v = -z·θx
    κ = [θy,x,  -θx,y,  θy,y - θx,x]
    γ = [w,x + θy,  w,y - θx]

All terms are integrated with 2×2 Gauss points. A 3-node plate is a
quadrilateral whose third and fourth corners coincide; its 24 DOFs are
condensed onto 18 by the node map [0, 1, 2, 2].

RESULTS are evaluated at the Gauss points and extrapolated to the corners.
"""

import logging
from typing import List, Optional

import numpy as np

from ..errors import UnsupportedFeatureError
from ..results import PlateResult
from .base import Element
from .transform import expand_rotation, plate_axes, warping_ratio

logger = logging.getLogger(__name__)

CORNERS = np.array([[-1.0, -1.0], [1.0, -1.0], [1.0, 1.0], [-1.0, 1.0]])
GAUSS = CORNERS / np.sqrt(3.0)
SHEAR_CORRECTION = 5.0 / 6.0

# MITC4 tying points: γ_ξz at A(0, 1), C(0, -1); γ_ηz at D(1, 0), B(-1, 0)
TYING_A, TYING_C = (0.0, 1.0), (0.0, -1.0)
TYING_D, TYING_B = (1.0, 0.0), (-1.0, 0.0)


def shape_functions(xi: float, eta: float):
    """Bilinear shape functions and their natural derivatives (2 x 4)."""
    N = 0.25 * (1 + xi * CORNERS[:, 0]) * (1 + eta * CORNERS[:, 1])
    dN = np.vstack([
        0.25 * CORNERS[:, 0] * (1 + eta * CORNERS[:, 1]),
        0.25 * CORNERS[:, 1] * (1 + xi * CORNERS[:, 0]),
    ])
    return N, dN


def corner_layout(n_nodes: int) -> List[int]:
    """Plate node feeding each of the four corners (a triangle repeats its third node)."""
    return [0, 1, 2, 3] if n_nodes == 4 else [0, 1, 2, 2]


def jacobian_determinants(xy: np.ndarray) -> np.ndarray:
    """det J at the four Gauss points for corner coordinates ``xy`` (4 x 2)."""
    return np.array([np.linalg.det(shape_functions(xi, eta)[1] @ xy) for xi, eta in GAUSS])


def _plane_stress(E: float, nu: float) -> np.ndarray:
    return E / (1 - nu ** 2) * np.array([
        [1.0, nu, 0.0],
        [nu, 1.0, 0.0],
        [0.0, 0.0, 0.5 * (1 - nu)],
    ])


def _covariant_shear(xi: float, eta: float, xy: np.ndarray) -> np.ndarray:
    """Rows [γ_ξz, γ_ηz] as functions of the 24 DOFs at a natural point."""
    N, dN = shape_functions(xi, eta)
    J = dN @ xy
    B = np.zeros((2, 24))
    for i in range(4):
        w, tx, ty = 6 * i + 2, 6 * i + 3, 6 * i + 4
        for r in range(2):
            B[r, w] = dN[r, i]
            B[r, tx] = -N[i] * J[r, 1]
            B[r, ty] = N[i] * J[r, 0]
    return B


class GaussPoint:
    """Strain-displacement operators of one Gauss point."""

    def __init__(self, xi: float, eta: float, xy: np.ndarray, shear_tying):
        self.N, dN = shape_functions(xi, eta)
        J = dN @ xy
        self.detJ = float(np.linalg.det(J))
        if self.detJ <= 0:
            raise ValueError("Plate has a non-positive Jacobian; check node order and shape")
        dNxy = np.linalg.solve(J, dN)

        self.Bm = np.zeros((3, 24))
        self.Bb = np.zeros((3, 24))
        self.bd = np.zeros(24)
        for i in range(4):
            u, v, tx, ty, tz = 6 * i, 6 * i + 1, 6 * i + 3, 6 * i + 4, 6 * i + 5
            dx, dy = dNxy[0, i], dNxy[1, i]
            self.Bm[0, u] = dx
            self.Bm[1, v] = dy
            self.Bm[2, u] = dy
            self.Bm[2, v] = dx
            self.Bb[0, ty] = dx
            self.Bb[1, tx] = -dy
            self.Bb[2, ty] = dy
            self.Bb[2, tx] = -dx
            self.bd[tz] = self.N[i]
            self.bd[u] = 0.5 * dy
            self.bd[v] = -0.5 * dx

        A, C, D, B = shear_tying
        covariant = np.vstack([
            0.5 * (1 + eta) * A[0] + 0.5 * (1 - eta) * C[0],
            0.5 * (1 + xi) * D[1] + 0.5 * (1 - xi) * B[1],
        ])
        self.Bs = np.linalg.solve(J, covariant)


class PlateElement(Element):
    """Flat shell over 3 or 4 nodes."""
    kind = "plate"

    def __init__(self, plate, nodes, material, dofs, drilling_ratio: float = 1e-3,
                 warping_tolerance: float = 1e-3):
        if len(plate.nodes) not in (3, 4):
            raise UnsupportedFeatureError(
                f"plate with {len(plate.nodes)} nodes", f"plate '{plate.id}': use 3 or 4 nodes"
            )
        super().__init__(plate.id, plate.nodes, dofs)
        self.plate = plate
        self.material = material
        self.t = plate.thickness
        self.n = len(plate.nodes)

        points = np.array([node.position for node in nodes])
        self.centroid, self.R, local = plate_axes(points, plate.local_axis_angle)
        self.warping = warping_ratio(local) if self.n == 4 else 0.0
        if self.warping > warping_tolerance:
            logger.warning("Plate '%s' is warped (ratio %.2e); projected onto its mean plane",
                           plate.id, self.warping)

        self.node_map = corner_layout(self.n)
        self.xy = local[self.node_map, :2]
        self.A = np.zeros((24, 6 * self.n))
        for corner, node in enumerate(self.node_map):
            self.A[6 * corner:6 * corner + 6, 6 * node:6 * node + 6] = np.eye(6)
        self.T = expand_rotation(self.R, 2 * self.n)

        E, nu, G, t = material.E, material.nu, material.G, self.t
        self.Dm = t * _plane_stress(E, nu)
        self.Db = t ** 3 / 12.0 * _plane_stress(E, nu)
        self.Ds = SHEAR_CORRECTION * G * t * np.eye(2)
        self.kd = drilling_ratio * G * t

        tying = tuple(_covariant_shear(xi, eta, self.xy) for xi, eta in (TYING_A, TYING_C, TYING_D, TYING_B))
        self.points = [GaussPoint(xi, eta, self.xy, tying) for xi, eta in GAUSS]
        self._k = None

    @property
    def area(self) -> float:
        return sum(gp.detJ for gp in self.points)

    def _to_global(self, m: np.ndarray) -> np.ndarray:
        return self.T.T @ (self.A.T @ m @ self.A) @ self.T

    def local_stiffness(self) -> np.ndarray:
        """24x24 stiffness in the local corner layout."""
        k = np.zeros((24, 24))
        for gp in self.points:
            k += (gp.Bm.T @ self.Dm @ gp.Bm
                  + gp.Bb.T @ self.Db @ gp.Bb
                  + gp.Bs.T @ self.Ds @ gp.Bs
                  + self.kd * np.outer(gp.bd, gp.bd)) * gp.detJ
        return k

    def stiffness(self, axial_force: float = 0.0) -> np.ndarray:
        if self._k is None:
            self._k = self._to_global(self.local_stiffness())
        return self._k

    def mass(self, formulation: str = "consistent") -> np.ndarray:
        rho, t = self.material.density, self.t
        if formulation == "lumped":
            share = self.area / self.n
            per_node = [rho * t * share] * 3 + [rho * t ** 3 / 12.0 * share] * 3
            m_local = np.diag(np.tile(per_node, self.n))
            return self.T.T @ m_local @ self.T

        m = np.zeros((24, 24))
        for gp in self.points:
            NN = np.outer(gp.N, gp.N) * gp.detJ
            for c, density in enumerate([rho * t] * 3 + [rho * t ** 3 / 12.0] * 3):
                m[c::6, c::6] += density * NN
        return self._to_global(m)

    # --- loads -------------------------------------------------------------

    def _initial_strains(self, load_case: Optional[str], factor: float):
        """Thermal membrane strain and curvature of one load case."""
        eps = np.zeros(3)
        kappa = np.zeros(3)
        alpha = self.material.thermal_expansion
        for load in self.plate.loads:
            if load.load_case == load_case and load.kind == "thermal":
                t_avg = 0.5 * (load.top_temperature + load.bottom_temperature)
                gradient = load.top_temperature - load.bottom_temperature
                eps += factor * alpha * t_avg * np.array([1.0, 1.0, 0.0])
                kappa += factor * alpha * gradient / self.t * np.array([1.0, 1.0, 0.0])
        return eps, kappa

    def _traction_direction(self, direction: str) -> np.ndarray:
        e = np.eye(3)["xyz".index(direction[-1])]
        return e if direction.startswith("local") else self.R @ e

    def equivalent_loads(self, load_case: str, factor: float = 1.0) -> Optional[np.ndarray]:
        f = np.zeros(24)
        for load in self.plate.loads:
            if load.load_case != load_case or load.kind != "pressure":
                continue
            if load.nodal_values is not None:
                values = np.asarray(load.nodal_values, dtype=float)[self.node_map]
            else:
                values = np.full(4, load.value, dtype=float)
            e = self._traction_direction(load.direction)
            for gp in self.points:
                p = factor * (gp.N @ values)
                for c in range(3):
                    f[c::6] += gp.N * p * e[c] * gp.detJ

        eps, kappa = self._initial_strains(load_case, factor)
        if np.any(eps) or np.any(kappa):
            for gp in self.points:
                f += (gp.Bm.T @ self.Dm @ eps + gp.Bb.T @ self.Db @ kappa) * gp.detJ

        if not np.any(f):
            return None
        return self.T.T @ (self.A.T @ f)

    # --- recovery ----------------------------------------------------------

    def recover(self, d, load_case, factor, station_count=None, axial_force=0.0) -> PlateResult:
        u = self.A @ (self.T @ d)
        eps, kappa = self._initial_strains(load_case, factor)

        membrane = np.array([self.Dm @ (gp.Bm @ u - eps) for gp in self.points])
        moments = np.array([self.Db @ (gp.Bb @ u - kappa) for gp in self.points])
        shears = np.array([self.Ds @ (gp.Bs @ u) for gp in self.points])

        # Gauss values → corner values
        E = np.array([shape_functions(*(np.sqrt(3.0) * c))[0] for c in CORNERS])
        membrane, moments, shears = (self._to_nodes(E @ v) for v in (membrane, moments, shears))

        t = self.t
        return PlateResult(
            element_id=self.id,
            node_ids=list(self.node_ids),
            membrane=membrane,
            moments=moments,
            shears=shears,
            top=membrane / t + 6.0 * moments / t ** 2,
            bottom=membrane / t - 6.0 * moments / t ** 2,
            displacements=np.asarray(d).reshape(self.n, 6)[:, :3].copy(),
        )

    def _to_nodes(self, corner_values: np.ndarray) -> np.ndarray:
        if self.n == 4:
            return corner_values
        return np.vstack([corner_values[:2], corner_values[2:4].mean(axis=0)])
