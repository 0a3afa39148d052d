# struct_core/model.py
"""
MODEL DEFINITIONS: Nodes, Materials, Sections, Beams, Plates, Load Cases
========================================================================

PURPOSE:
--------
Plain data structures describing a 3-D structural model. Nothing in here does
numerics; the element library reads these records and produces matrices.

Identifiers are strings. Elements reference nodes, sections and materials by
id (they never own them), which is why removing a node that is still in use
is refused.

COORDINATES & DOFs:
-------------------
Right-handed global axes, z up. Every node carries six DOFs in the order

    dx, dy, dz, rx, ry, rz

and six matching restraint flags. Loads use the same order
(fx, fy, fz, mx, my, mz).

LOAD CASES:
-----------
Every load (nodal, beam, plate) is tagged with a load case id. The load case
``factor`` scales all loads tagged with it before analysis.
"""

import copy
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np


Restraints = Tuple[bool, bool, bool, bool, bool, bool]

FREE: Restraints = (False, False, False, False, False, False)
PINNED: Restraints = (True, True, True, False, False, False)
FIXED: Restraints = (True, True, True, True, True, True)

BEAM_LOAD_KINDS = ("point", "uniform", "linear", "thermal")
PLATE_LOAD_KINDS = ("pressure", "thermal")
LOAD_DIRECTIONS = ("global-x", "global-y", "global-z", "local-x", "local-y", "local-z")
LOAD_CASE_CATEGORIES = ("dead", "live", "wind", "snow", "seismic", "temperature", "other")
COMBINATION_CATEGORIES = ("ultimate", "serviceability", "other")

DEFAULT_POISSON_RATIO = 0.3


@dataclass
class NodalLoad:
    """Point force/moment applied directly at a node for one load case."""
    load_case: str
    fx: float = 0.0
    fy: float = 0.0
    fz: float = 0.0
    mx: float = 0.0
    my: float = 0.0
    mz: float = 0.0

    def vector(self) -> np.ndarray:
        return np.array([self.fx, self.fy, self.fz, self.mx, self.my, self.mz], dtype=float)


@dataclass
class Node:
    """
    A joint in 3-D space.

    Parameters:
    -----------
    id : str
        Unique node identifier
    x, y, z : float
        Global coordinates
    restraints : tuple of 6 bool
        Support flags in DOF order (dx, dy, dz, rx, ry, rz). True = restrained.
    loads : list of NodalLoad
        Direct nodal loads, each tagged with a load case

    Examples:
    ---------
    >>> base = Node("N1", 0.0, 0.0, 0.0, restraints=FIXED)
    >>> tip = Node("N2", 3.0, 0.0, 0.0, loads=[NodalLoad("LC1", fz=-1000.0)])
    """
    id: str
    x: float
    y: float
    z: float
    restraints: Restraints = FREE
    loads: List[NodalLoad] = field(default_factory=list)

    @property
    def position(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=float)

    @property
    def is_restrained(self) -> bool:
        return any(self.restraints)


@dataclass
class Material:
    """
    Isotropic linear-elastic material.

    Only ``elastic_modulus`` is required. The shear modulus is derived from
    E and the Poisson ratio when it is not given (ν defaults to 0.3).
    """
    id: str
    elastic_modulus: float
    shear_modulus: Optional[float] = None
    poisson_ratio: Optional[float] = None
    density: float = 0.0
    thermal_expansion: float = 0.0
    yield_strength: Optional[float] = None
    ultimate_strength: Optional[float] = None
    compression_strength: Optional[float] = None
    name: str = ""
    kind: str = "other"

    @property
    def E(self) -> float:
        return self.elastic_modulus

    @property
    def nu(self) -> float:
        if self.poisson_ratio is not None:
            return self.poisson_ratio
        if self.shear_modulus:
            return self.elastic_modulus / (2.0 * self.shear_modulus) - 1.0
        return DEFAULT_POISSON_RATIO

    @property
    def G(self) -> float:
        if self.shear_modulus:
            return self.shear_modulus
        return self.elastic_modulus / (2.0 * (1.0 + self.nu))


@dataclass
class Section:
    """
    Beam cross-section.

    Axis convention: local y and z are the principal axes of the section.
    ``Iy`` resists bending in the local x-z plane (deflection along z),
    ``Iz`` resists bending in the local x-y plane. ``depth`` is the extent
    along local z, ``width`` the extent along local y. Shear areas are
    optional; when absent, shear deformation is ignored for that direction
    and shear stress falls back to V/A.
    """
    id: str
    material: str
    A: float
    Iy: float
    Iz: float
    J: float
    Sy: Optional[float] = None
    Sz: Optional[float] = None
    Ay: Optional[float] = None
    Az: Optional[float] = None
    ry: Optional[float] = None
    rz: Optional[float] = None
    depth: Optional[float] = None
    width: Optional[float] = None
    torsion_modulus: Optional[float] = None
    name: str = ""

    @property
    def modulus_y(self) -> Optional[float]:
        """Elastic section modulus for moment about local y."""
        if self.Sy:
            return self.Sy
        if self.depth:
            return self.Iy / (self.depth / 2.0)
        return None

    @property
    def modulus_z(self) -> Optional[float]:
        """Elastic section modulus for moment about local z."""
        if self.Sz:
            return self.Sz
        if self.width:
            return self.Iz / (self.width / 2.0)
        return None

    @property
    def thermal_depth(self) -> Optional[float]:
        """Distance between top and bottom fibre used for thermal gradients."""
        if self.depth:
            return self.depth
        if self.Sy:
            return 2.0 * self.Iy / self.Sy
        return None

    @property
    def torsion_lever(self) -> Optional[float]:
        """Section modulus for torsion, W_t such that tau = T / W_t."""
        if self.torsion_modulus:
            return self.torsion_modulus
        extents = [d / 2.0 for d in (self.depth, self.width) if d]
        if not extents:
            extents = [i / s for s, i in ((self.Sy, self.Iy), (self.Sz, self.Iz)) if s]
        if not extents or self.J <= 0:
            return None
        return self.J / max(extents)


@dataclass
class BeamLoad:
    """
    A span load on a beam.

    kind:
        'point'   - concentrated force ``value`` at ``position`` (fraction 0..1 of length)
        'uniform' - distributed force ``value`` per unit length over the full length
        'linear'  - distributed force varying from ``start_value`` to ``end_value``
        'thermal' - temperatures at the top (local +z) and bottom fibres
    direction:
        'global-x/y/z' or 'local-x/y/z'. Global distributed loads are per
        unit member length.
    """
    load_case: str
    kind: str = "uniform"
    direction: str = "global-z"
    value: float = 0.0
    position: float = 0.5
    start_value: float = 0.0
    end_value: float = 0.0
    top_temperature: float = 0.0
    bottom_temperature: float = 0.0


@dataclass
class Beam:
    """A 3-D frame element between two nodes."""
    id: str
    start_node: str
    end_node: str
    section: str
    orientation_angle: float = 0.0
    start_releases: Restraints = FREE
    end_releases: Restraints = FREE
    start_offset: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    end_offset: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    loads: List[BeamLoad] = field(default_factory=list)

    @property
    def node_ids(self) -> List[str]:
        return [self.start_node, self.end_node]


@dataclass
class PlateLoad:
    """
    A surface load on a plate.

    'pressure': force per unit area ``value`` (or per-node ``nodal_values``)
    acting along ``direction`` ('local-z' = plate normal, or 'global-x/y/z').
    'thermal': temperatures on the top (local +z) and bottom faces.
    """
    load_case: str
    kind: str = "pressure"
    direction: str = "local-z"
    value: float = 0.0
    nodal_values: Optional[List[float]] = None
    top_temperature: float = 0.0
    bottom_temperature: float = 0.0


@dataclass
class Plate:
    """A flat shell element over 3 or 4 nodes (counter-clockwise about its normal)."""
    id: str
    nodes: List[str]
    material: str
    thickness: float
    local_axis_angle: float = 0.0
    loads: List[PlateLoad] = field(default_factory=list)

    @property
    def node_ids(self) -> List[str]:
        return list(self.nodes)


@dataclass
class LoadCase:
    id: str
    category: str = "other"
    factor: float = 1.0
    description: str = ""
    name: str = ""


@dataclass
class LoadCombination:
    """Linear combination of load cases: ``factors`` maps load-case id to factor."""
    id: str
    factors: Dict[str, float] = field(default_factory=dict)
    category: str = "ultimate"
    description: str = ""
    name: str = ""


@dataclass
class StructuralModel:
    """
    The complete structural model.

    Entity order matters: DOF numbering follows node order, and results are
    produced in the declared order of load cases and combinations.
    """
    nodes: List[Node] = field(default_factory=list)
    materials: List[Material] = field(default_factory=list)
    sections: List[Section] = field(default_factory=list)
    beams: List[Beam] = field(default_factory=list)
    plates: List[Plate] = field(default_factory=list)
    load_cases: List[LoadCase] = field(default_factory=list)
    combinations: List[LoadCombination] = field(default_factory=list)

    # --- lookups -----------------------------------------------------------

    def node_map(self) -> Dict[str, Node]:
        return {n.id: n for n in self.nodes}

    def material_map(self) -> Dict[str, Material]:
        return {m.id: m for m in self.materials}

    def section_map(self) -> Dict[str, Section]:
        return {s.id: s for s in self.sections}

    def load_case_map(self) -> Dict[str, LoadCase]:
        return {lc.id: lc for lc in self.load_cases}

    def combination_map(self) -> Dict[str, LoadCombination]:
        return {c.id: c for c in self.combinations}

    def node(self, node_id: str) -> Node:
        return _find(self.nodes, node_id, "node")

    def beam(self, beam_id: str) -> Beam:
        return _find(self.beams, beam_id, "beam")

    def plate(self, plate_id: str) -> Plate:
        return _find(self.plates, plate_id, "plate")

    # --- edits -------------------------------------------------------------

    def add(self, *entities) -> "StructuralModel":
        """Append entities to the list matching their type. Returns self for chaining."""
        targets = {
            Node: self.nodes, Material: self.materials, Section: self.sections,
            Beam: self.beams, Plate: self.plates, LoadCase: self.load_cases,
            LoadCombination: self.combinations,
        }
        for entity in entities:
            try:
                targets[type(entity)].append(entity)
            except KeyError:
                raise TypeError(f"Cannot add {type(entity).__name__} to a structural model") from None
        return self

    def element_references(self, node_id: str) -> List[str]:
        """Ids of beams and plates that reference the given node."""
        refs = [b.id for b in self.beams if node_id in b.node_ids]
        refs += [p.id for p in self.plates if node_id in p.nodes]
        return refs

    def remove_node(self, node_id: str) -> Node:
        """Remove a node. Refused while any element still references it."""
        node = self.node(node_id)
        refs = self.element_references(node_id)
        if refs:
            raise ValueError(f"Node '{node_id}' is referenced by elements: {', '.join(refs)}")
        self.nodes.remove(node)
        return node

    def remove_beam(self, beam_id: str) -> Beam:
        beam = self.beam(beam_id)
        self.beams.remove(beam)
        return beam

    def remove_plate(self, plate_id: str) -> Plate:
        plate = self.plate(plate_id)
        self.plates.remove(plate)
        return plate

    def remove_load_case(self, load_case_id: str) -> LoadCase:
        """
        Remove a load case and every load tagged with it.

        Refused while a load combination references the case.
        """
        case = _find(self.load_cases, load_case_id, "load case")
        users = [c.id for c in self.combinations if load_case_id in c.factors]
        if users:
            raise ValueError(
                f"Load case '{load_case_id}' is used by combinations: {', '.join(users)}"
            )
        for node in self.nodes:
            node.loads = [ld for ld in node.loads if ld.load_case != load_case_id]
        for element in list(self.beams) + list(self.plates):
            element.loads = [ld for ld in element.loads if ld.load_case != load_case_id]
        self.load_cases.remove(case)
        return case

    def remove_combination(self, combination_id: str) -> LoadCombination:
        combination = _find(self.combinations, combination_id, "load combination")
        self.combinations.remove(combination)
        return combination

    def snapshot(self) -> "StructuralModel":
        """Independent deep copy; later edits to self do not affect it."""
        return copy.deepcopy(self)

    def has_loads(self) -> bool:
        return any(_iter_loads(self))


def _iter_loads(model: StructuralModel) -> Iterable:
    for node in model.nodes:
        yield from node.loads
    for beam in model.beams:
        yield from beam.loads
    for plate in model.plates:
        yield from plate.loads


def _find(items, item_id, what):
    for item in items:
        if item.id == item_id:
            return item
    raise KeyError(f"Unknown {what} '{item_id}'")
