# struct_core/elements/transform.py
"""
Coordinate transformations shared by the element formulations.

Local beam axes:
    x  along the member, start → end
    y  horizontal, = Z × x  (global Y for vertical members)
    z  = x × y, points "up" for non-vertical members
then y and z are rotated by the orientation angle about x.
"""

import numpy as np
from scipy.linalg import block_diag


def beam_axes(start: np.ndarray, end: np.ndarray, angle_deg: float = 0.0):
    """
    Local axes of a member.

    Returns:
        (L, R): length and the 3x3 rotation whose rows are local x, y, z in
        global components (global → local).

    Raises:
        ValueError: zero-length member
    """
    delta = np.asarray(end, dtype=float) - np.asarray(start, dtype=float)
    L = float(np.linalg.norm(delta))
    if L < 1e-12:
        raise ValueError("Zero-length element")
    ex = delta / L

    if abs(ex[2]) > 1.0 - 1e-9:
        ey = np.array([0.0, 1.0, 0.0])
    else:
        ey = np.cross([0.0, 0.0, 1.0], ex)
        ey /= np.linalg.norm(ey)
    ez = np.cross(ex, ey)

    if angle_deg:
        c, s = np.cos(np.radians(angle_deg)), np.sin(np.radians(angle_deg))
        ey, ez = c * ey + s * ez, -s * ey + c * ez

    return L, np.vstack([ex, ey, ez])


def expand_rotation(R: np.ndarray, n_blocks: int) -> np.ndarray:
    """Block-diagonal transformation with ``n_blocks`` copies of R."""
    return block_diag(*([R] * n_blocks))


def skew(v) -> np.ndarray:
    """Matrix S(v) with S(v) @ w = v × w."""
    x, y, z = v
    return np.array([[0.0, -z, y], [z, 0.0, -x], [-y, x, 0.0]])


def rigid_offset(offset) -> np.ndarray:
    """
    6x6 map from node DOFs to the DOFs of a point rigidly offset by ``offset``.

        u_end = u_node + θ × o = u_node - S(o) θ
        θ_end = θ_node
    """
    T = np.eye(6)
    T[0:3, 3:6] = -skew(offset)
    return T


def plate_axes(points: np.ndarray, angle_deg: float = 0.0):
    """
    Local frame of a flat (or nearly flat) plate.

    The normal comes from the diagonals (quadrilateral) or the edges
    (triangle); local x follows the first edge projected into the plane, then
    x and y are rotated by ``angle_deg`` about the normal.

    Returns:
        (centroid, R, local): R rows are local x, y, z in global components;
        ``local`` holds the node coordinates in that frame (n x 3, the third
        column is the out-of-plane deviation).
    """
    P = np.asarray(points, dtype=float)
    centroid = P.mean(axis=0)
    if len(P) == 4:
        normal = np.cross(P[2] - P[0], P[3] - P[1])
    else:
        normal = np.cross(P[1] - P[0], P[2] - P[0])
    norm = np.linalg.norm(normal)
    if norm < 1e-14:
        raise ValueError("Degenerate plate: zero area")
    ez = normal / norm

    edge = P[1] - P[0]
    ex = edge - (edge @ ez) * ez
    ex /= np.linalg.norm(ex)
    ey = np.cross(ez, ex)

    if angle_deg:
        c, s = np.cos(np.radians(angle_deg)), np.sin(np.radians(angle_deg))
        ex, ey = c * ex + s * ey, -s * ex + c * ey

    R = np.vstack([ex, ey, ez])
    return centroid, R, (P - centroid) @ R.T


def warping_ratio(local: np.ndarray) -> float:
    """Largest out-of-plane deviation divided by the longest diagonal/edge."""
    xy = local[:, :2]
    size = max(np.linalg.norm(a - b) for a in xy for b in xy)
    return float(np.max(np.abs(local[:, 2])) / size) if size > 0 else 0.0
