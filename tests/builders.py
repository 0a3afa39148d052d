# tests/builders.py
"""
Shared structure builders.

Units are SI throughout (N, m, Pa, kg/m³). The default section is a
rectangular-ish steel member with Iy = 2·Iz, so bending about the two local
axes can be told apart in every test.
"""

import numpy as np

from struct_core.model import (
    FIXED,
    Beam,
    LoadCase,
    Material,
    NodalLoad,
    Node,
    Plate,
    Section,
    StructuralModel,
)

E = 210e9
A = 0.01
IY = 8.0e-6
IZ = 4.0e-6
J = 1.0e-6
RHO = 7850.0


def steel(nu: float = 0.3) -> Material:
    return Material("steel", E, poisson_ratio=nu, density=RHO, thermal_expansion=1.2e-5)


def member_section(**overrides) -> Section:
    props = dict(A=A, Iy=IY, Iz=IZ, J=J, depth=0.3, width=0.15)
    props.update(overrides)
    return Section("S1", "steel", **props)


def cantilever(L: float = 3.0, segments: int = 1, tip_load=None, direction=(1.0, 0.0, 0.0),
               load_case: str = "LC1", section=None) -> StructuralModel:
    """
    Cantilever from N0 (fixed) along ``direction`` split into ``segments``
    beams B1..Bn. ``tip_load`` is a NodalLoad kwargs dict applied at the tip.
    """
    axis = np.asarray(direction, dtype=float)
    axis = axis / np.linalg.norm(axis)
    model = StructuralModel()
    model.add(steel(), section or member_section(), LoadCase(load_case, category="dead"))
    for k in range(segments + 1):
        x, y, z = axis * L * k / segments
        model.add(Node(f"N{k}", x, y, z, restraints=FIXED if k == 0 else (False,) * 6))
    for k in range(segments):
        model.add(Beam(f"B{k + 1}", f"N{k}", f"N{k + 1}", "S1"))
    if tip_load:
        model.nodes[-1].loads.append(NodalLoad(load_case, **tip_load))
    return model


def fixed_fixed(L: float = 4.0) -> StructuralModel:
    """Single beam B1 between two fully fixed nodes, no loads yet."""
    model = StructuralModel()
    model.add(
        steel(), member_section(), LoadCase("LC1"),
        Node("N0", 0.0, 0.0, 0.0, restraints=FIXED),
        Node("N1", L, 0.0, 0.0, restraints=FIXED),
        Beam("B1", "N0", "N1", "S1"),
    )
    return model


def portal_frame(width: float = 6.0, height: float = 3.0, depth: float = 4.0) -> StructuralModel:
    """
    3-D two-bay frame: four fixed columns, a beam grid at the top and a roof
    slab of two plates. No loads.
    """
    model = StructuralModel()
    model.add(steel(), member_section(), LoadCase("LC1", category="dead"), LoadCase("LC2", category="wind"))
    corners = [(0.0, 0.0), (width, 0.0), (width, depth), (0.0, depth)]
    for k, (x, y) in enumerate(corners):
        model.add(Node(f"B{k}", x, y, 0.0, restraints=FIXED), Node(f"T{k}", x, y, height))
        model.add(Beam(f"C{k}", f"B{k}", f"T{k}", "S1"))
    for k in range(4):
        model.add(Beam(f"G{k}", f"T{k}", f"T{(k + 1) % 4}", "S1", orientation_angle=15.0 * k))
    model.add(Node("M0", width / 2, 0.0, height), Node("M1", width / 2, depth, height))
    model.add(
        Plate("P1", ["T0", "M0", "M1", "T3"], "steel", 0.12),
        Plate("P2", ["M0", "T1", "T2", "M1"], "steel", 0.12),
    )
    return model


def plate_strip(L: float = 2.0, b: float = 0.2, t: float = 0.02, n: int = 10,
                nu: float = 0.0) -> StructuralModel:
    """Strip of n quads along x, clamped along x = 0."""
    model = StructuralModel()
    model.add(steel(nu), LoadCase("LC1"))
    for k in range(n + 1):
        x = L * k / n
        restraints = FIXED if k == 0 else (False,) * 6
        model.add(Node(f"A{k}", x, 0.0, 0.0, restraints=restraints),
                  Node(f"C{k}", x, b, 0.0, restraints=restraints))
    for k in range(n):
        model.add(Plate(f"P{k}", [f"A{k}", f"A{k + 1}", f"C{k + 1}", f"C{k}"], "steel", t))
    return model
