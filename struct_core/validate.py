# struct_core/validate.py
"""
Model validation.

Collects every referential or physical defect it can find and raises a
single ModelValidationError listing all of them. Nothing here builds
matrices, so a bad model fails before any numerical work starts.
"""

from collections import Counter
from typing import List, Optional

import numpy as np

from .config import AnalysisConfiguration
from .elements.plate import corner_layout, jacobian_determinants
from .elements.transform import plate_axes, warping_ratio
from .errors import ModelValidationError
from .model import (
    BEAM_LOAD_KINDS,
    COMBINATION_CATEGORIES,
    LOAD_CASE_CATEGORIES,
    LOAD_DIRECTIONS,
    PLATE_LOAD_KINDS,
    StructuralModel,
)


def _duplicates(kind: str, ids) -> List[str]:
    return [f"Duplicate {kind} id '{i}'" for i, n in Counter(ids).items() if n > 1]


def _has_mass(model: StructuralModel) -> bool:
    materials = model.material_map()
    sections = model.section_map()
    used = [sections[b.section].material for b in model.beams if b.section in sections]
    used += [p.material for p in model.plates]
    return any(materials[m].density > 0 for m in used if m in materials)


def _plate_geometry(plate, points, policy) -> List[str]:
    """Area, corner angles and (under the 'reject' policy) flatness of one plate."""
    try:
        _, _, local = plate_axes(points, plate.local_axis_angle)
    except ValueError:
        return [f"Plate '{plate.id}': zero area (nodes are collinear or coincide)"]
    xy = local[corner_layout(len(points)), :2]
    if np.any(jacobian_determinants(xy) <= 0):
        return [f"Plate '{plate.id}': distorted shape or clockwise corners (non-positive Jacobian)"]
    if policy is not None and policy.warping_policy == "reject" and len(points) == 4:
        ratio = warping_ratio(local)
        if ratio > policy.warping_tolerance:
            return [f"Plate '{plate.id}': warped (ratio {ratio:.2e} > {policy.warping_tolerance:.2e})"]
    return []


def collect_violations(model: StructuralModel,
                       configuration: Optional[AnalysisConfiguration] = None) -> List[str]:
    """Every violation found in ``model``, in a stable order."""
    v: List[str] = []

    if not model.nodes:
        v.append("Model has no nodes")
    if not model.beams and not model.plates:
        v.append("Model has no beams or plates")
    if not model.materials:
        v.append("Model has no materials")
    if model.beams and not model.sections:
        v.append("Model has beams but no sections")

    v += _duplicates("node", [n.id for n in model.nodes])
    v += _duplicates("material", [m.id for m in model.materials])
    v += _duplicates("section", [s.id for s in model.sections])
    v += _duplicates("element", [e.id for e in list(model.beams) + list(model.plates)])
    v += _duplicates("load case", [lc.id for lc in model.load_cases])
    v += _duplicates("load combination", [c.id for c in model.combinations])

    nodes = model.node_map()
    materials = model.material_map()
    sections = model.section_map()
    cases = model.load_case_map()

    for m in model.materials:
        if not m.elastic_modulus or m.elastic_modulus <= 0:
            v.append(f"Material '{m.id}': elastic modulus must be positive")

    for s in model.sections:
        if s.material not in materials:
            v.append(f"Section '{s.id}': unknown material '{s.material}'")
        if s.A <= 0:
            v.append(f"Section '{s.id}': area must be positive")
        if s.Iy <= 0 or s.Iz <= 0 or s.J <= 0:
            v.append(f"Section '{s.id}': Iy, Iz and J must be positive")

    for b in model.beams:
        for end, nid in (("start", b.start_node), ("end", b.end_node)):
            if nid not in nodes:
                v.append(f"Beam '{b.id}': unknown {end} node '{nid}'")
        if b.start_node == b.end_node:
            v.append(f"Beam '{b.id}': start and end node are the same")
        elif b.start_node in nodes and b.end_node in nodes:
            p_i = nodes[b.start_node].position + np.asarray(b.start_offset, dtype=float)
            p_j = nodes[b.end_node].position + np.asarray(b.end_offset, dtype=float)
            if np.linalg.norm(p_j - p_i) < 1e-12:
                v.append(f"Beam '{b.id}': zero length")
        section = sections.get(b.section)
        if section is None:
            v.append(f"Beam '{b.id}': unknown section '{b.section}'")
        elif section.material not in materials:
            v.append(f"Beam '{b.id}': section '{section.id}' has unknown material '{section.material}'")
        for load in b.loads:
            if load.kind not in BEAM_LOAD_KINDS:
                v.append(f"Beam '{b.id}': unknown load kind '{load.kind}'")
            elif load.kind != "thermal" and load.direction not in LOAD_DIRECTIONS:
                v.append(f"Beam '{b.id}': unknown load direction '{load.direction}'")
            elif (load.kind == "thermal" and load.top_temperature != load.bottom_temperature
                  and section is not None and section.thermal_depth is None):
                v.append(f"Beam '{b.id}': thermal gradient needs section depth or Sy")

    policy = configuration.plate_options if configuration is not None else None
    for p in model.plates:
        if len(p.nodes) < 3:
            v.append(f"Plate '{p.id}': needs at least 3 nodes")
        missing = [n for n in p.nodes if n not in nodes]
        for nid in missing:
            v.append(f"Plate '{p.id}': unknown node '{nid}'")
        if len(set(p.nodes)) != len(p.nodes):
            v.append(f"Plate '{p.id}': repeated node")
        if p.material not in materials:
            v.append(f"Plate '{p.id}': unknown material '{p.material}'")
        if p.thickness <= 0:
            v.append(f"Plate '{p.id}': thickness must be positive")
        for load in p.loads:
            if load.kind not in PLATE_LOAD_KINDS:
                v.append(f"Plate '{p.id}': unknown load kind '{load.kind}'")
            elif load.kind == "pressure" and load.direction not in LOAD_DIRECTIONS:
                v.append(f"Plate '{p.id}': unknown load direction '{load.direction}'")
            elif load.nodal_values is not None and len(load.nodal_values) != len(p.nodes):
                v.append(f"Plate '{p.id}': pressure needs one value per node")
        if len(p.nodes) in (3, 4) and not missing and len(set(p.nodes)) == len(p.nodes):
            v += _plate_geometry(p, [nodes[n].position for n in p.nodes], policy)

    if model.nodes and not any(n.is_restrained for n in model.nodes):
        v.append("No restrained DOF: structure is a free body")

    if not model.has_loads():
        v.append("No loads applied")

    if configuration is not None and configuration.analysis_type == "modal" and not _has_mass(model):
        v.append("Modal analysis needs mass: no element material has a positive density")

    for lc in model.load_cases:
        if lc.category not in LOAD_CASE_CATEGORIES:
            v.append(f"Load case '{lc.id}': unknown category '{lc.category}'")

    for owner, loads in (
        [(f"Node '{n.id}'", n.loads) for n in model.nodes]
        + [(f"Beam '{b.id}'", b.loads) for b in model.beams]
        + [(f"Plate '{p.id}'", p.loads) for p in model.plates]
    ):
        for lc in sorted({ld.load_case for ld in loads if ld.load_case not in cases}):
            v.append(f"{owner}: load tagged with unknown load case '{lc}'")

    for c in model.combinations:
        if not c.factors:
            v.append(f"Load combination '{c.id}' has no factors")
        if c.category not in COMBINATION_CATEGORIES:
            v.append(f"Load combination '{c.id}': unknown category '{c.category}'")
        for lc in c.factors:
            if lc not in cases:
                v.append(f"Load combination '{c.id}': unknown load case '{lc}'")

    return v


def validate_model(model: StructuralModel,
                   configuration: Optional[AnalysisConfiguration] = None) -> None:
    """
    Raises:
        ModelValidationError: with every violation found
    """
    violations = collect_violations(model, configuration)
    if violations:
        raise ModelValidationError(violations)
