# struct_core/results.py
"""
RESULT CONTAINERS
=================

Per-load-case (and per-combination) results, stored as numpy arrays.

Every container separates RAW quantities (displacements, reactions, internal
forces, stress components) from DERIVED scalars (von Mises, principal
stresses, principal angle). Raw quantities superpose linearly; derived ones
do not, so they are always recomputed from the raw arrays in
``__post_init__``. Combining results therefore means: sum the raw arrays,
build a new container.

SIGN CONVENTIONS:
-----------------
Beam internal forces are in local axes, tension positive. Station 0 carries
the negated end force at the start node, the last station the end force at
the end node.

Plate forces/moments are per unit length in the plate's local axes. ``top``
is the local +z surface.
"""

from dataclasses import dataclass, field
from typing import ClassVar, Dict, List, Tuple

import numpy as np

from .kernel.dof import DOF_LABELS


BEAM_FORCE_COMPONENTS = ("axial", "shear_y", "shear_z", "torsion", "moment_y", "moment_z")
BEAM_STRESS_COMPONENTS = ("axial", "bending_y", "bending_z", "shear_y", "shear_z", "torsional")
REACTION_LABELS = ("fx", "fy", "fz", "mx", "my", "mz")


def beam_von_mises(stresses: np.ndarray) -> np.ndarray:
    """
    Von Mises stress at the governing fibre of each station.

    Normal components add at the extreme corner fibre; shear from the two
    shear forces combines vectorially and adds to the torsional shear:

        σ = |σ_a| + |σ_by| + |σ_bz|
        τ = sqrt(τ_y² + τ_z²) + |τ_t|
        σ_vm = sqrt(σ² + 3τ²)
    """
    s = np.atleast_2d(stresses)
    sigma = np.abs(s[:, 0]) + np.abs(s[:, 1]) + np.abs(s[:, 2])
    tau = np.hypot(s[:, 3], s[:, 4]) + np.abs(s[:, 5])
    return np.sqrt(sigma ** 2 + 3.0 * tau ** 2)


def principal_stresses(tensor: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Principal values of plane stress tensors.

    Args:
        tensor: (n, 3) array of [sxx, syy, sxy]

    Returns:
        s1, s2 (s1 >= s2) and the angle of s1 from local x in degrees
    """
    t = np.atleast_2d(tensor)
    sxx, syy, sxy = t[:, 0], t[:, 1], t[:, 2]
    centre = 0.5 * (sxx + syy)
    radius = np.hypot(0.5 * (sxx - syy), sxy)
    angle = 0.5 * np.degrees(np.arctan2(2.0 * sxy, sxx - syy))
    return centre + radius, centre - radius, angle


def plane_von_mises(tensor: np.ndarray) -> np.ndarray:
    t = np.atleast_2d(tensor)
    sxx, syy, sxy = t[:, 0], t[:, 1], t[:, 2]
    return np.sqrt(sxx ** 2 - sxx * syy + syy ** 2 + 3.0 * sxy ** 2)


@dataclass
class BeamResult:
    """Station results along one beam."""
    element_id: str
    positions: np.ndarray      # (n,) distance from the start end
    forces: np.ndarray         # (n, 6) BEAM_FORCE_COMPONENTS
    stresses: np.ndarray       # (n, 6) BEAM_STRESS_COMPONENTS
    displacements: np.ndarray  # (n, 3) global translations of the beam axis
    von_mises: np.ndarray = field(init=False)

    kind: ClassVar[str] = "beam"
    RAW_FIELDS: ClassVar[Tuple[str, ...]] = ("forces", "stresses", "displacements")

    def __post_init__(self):
        self.von_mises = beam_von_mises(self.stresses)

    def station(self, i: int) -> Dict[str, object]:
        return {
            "position": float(self.positions[i]),
            "forces": dict(zip(BEAM_FORCE_COMPONENTS, self.forces[i].tolist())),
            "stresses": dict(zip(BEAM_STRESS_COMPONENTS, self.stresses[i].tolist()),
                             von_mises=float(self.von_mises[i])),
            "displacements": dict(zip(("dx", "dy", "dz"), self.displacements[i].tolist())),
        }


@dataclass
class PlateResult:
    """
    Nodal results of one plate, one row per plate node.

    Raw: membrane forces [nxx, nyy, nxy], moments [mxx, myy, mxy], transverse
    shear forces [qx, qy], top/bottom surface stresses [sxx, syy, sxy], and
    global node translations.
    """
    element_id: str
    node_ids: List[str]
    membrane: np.ndarray
    moments: np.ndarray
    shears: np.ndarray
    top: np.ndarray
    bottom: np.ndarray
    displacements: np.ndarray
    top_principal: np.ndarray = field(init=False)
    top_angle: np.ndarray = field(init=False)
    top_von_mises: np.ndarray = field(init=False)
    bottom_principal: np.ndarray = field(init=False)
    bottom_angle: np.ndarray = field(init=False)
    bottom_von_mises: np.ndarray = field(init=False)

    kind: ClassVar[str] = "plate"
    RAW_FIELDS: ClassVar[Tuple[str, ...]] = (
        "membrane", "moments", "shears", "top", "bottom", "displacements",
    )

    def __post_init__(self):
        s1, s2, angle = principal_stresses(self.top)
        self.top_principal = np.column_stack([s1, s2])
        self.top_angle = angle
        self.top_von_mises = plane_von_mises(self.top)
        s1, s2, angle = principal_stresses(self.bottom)
        self.bottom_principal = np.column_stack([s1, s2])
        self.bottom_angle = angle
        self.bottom_von_mises = plane_von_mises(self.bottom)

    @property
    def von_mises(self) -> np.ndarray:
        """Governing surface von Mises stress per node."""
        return np.maximum(self.top_von_mises, self.bottom_von_mises)

    def node(self, node_id: str) -> Dict[str, object]:
        i = self.node_ids.index(node_id)

        def surface(prefix):
            stress = getattr(self, prefix)[i]
            principal = getattr(self, f"{prefix}_principal")[i]
            return {
                "sxx": float(stress[0]), "syy": float(stress[1]), "sxy": float(stress[2]),
                "s1": float(principal[0]), "s2": float(principal[1]),
                "angle": float(getattr(self, f"{prefix}_angle")[i]),
                "svm": float(getattr(self, f"{prefix}_von_mises")[i]),
            }

        return {
            "forces": dict(zip(("nxx", "nyy", "nxy"), self.membrane[i].tolist())),
            "moments": dict(zip(("mxx", "myy", "mxy"), self.moments[i].tolist())),
            "shears": dict(zip(("qx", "qy"), self.shears[i].tolist())),
            "top": surface("top"),
            "bottom": surface("bottom"),
            "displacements": dict(zip(("dx", "dy", "dz"), self.displacements[i].tolist())),
        }


@dataclass
class CaseResult:
    """
    Results of one load case or load combination.

    ``displacements`` and ``reactions`` hold one row of six values per node in
    model order. Reactions are zero where a DOF is not restrained.
    """
    source_id: str
    source_kind: str  # 'load_case' or 'combination'
    node_ids: List[str]
    displacements: np.ndarray
    reactions: np.ndarray
    restraints: np.ndarray
    beams: Dict[str, BeamResult] = field(default_factory=dict)
    plates: Dict[str, PlateResult] = field(default_factory=dict)

    RAW_FIELDS: ClassVar[Tuple[str, ...]] = ("displacements", "reactions")

    def _row(self, node_id: str) -> int:
        return self.node_ids.index(node_id)

    def node_displacement(self, node_id: str) -> Dict[str, float]:
        return dict(zip(DOF_LABELS, self.displacements[self._row(node_id)].tolist()))

    def node_reaction(self, node_id: str) -> Dict[str, float]:
        return dict(zip(REACTION_LABELS, self.reactions[self._row(node_id)].tolist()))

    @property
    def elements(self):
        yield from self.beams.values()
        yield from self.plates.values()


@dataclass
class ModalResult:
    mode: int
    frequency: float          # Hz
    angular_frequency: float  # rad/s
    period: float             # s
    participation: Dict[str, float]  # x, y, z, rx, ry, rz as fractions of total mass
    shape: np.ndarray         # (n_nodes, 6), mass-normalized


@dataclass
class BucklingResult:
    load_case: str
    mode: int
    load_factor: float
    shape: np.ndarray  # (n_nodes, 6), largest component = 1
