# struct_core/elements - Element library
"""
ELEMENT LIBRARY
===============

    base.py       Element: the capability the assembler and recoverer rely on
    beam.py       BeamElement: 12-DOF frame member
    plate.py      PlateElement: flat 3/4-node shell
    transform.py  local axes, rotations, rigid offsets

``build_elements`` turns model records into bound element objects, beams
first, then plates, each in declaration order.
"""

from typing import List

from .base import Element
from .beam import BeamElement
from .plate import PlateElement


def build_elements(model, dofs, configuration) -> List[Element]:
    nodes = model.node_map()
    sections = model.section_map()
    materials = model.material_map()
    plate_options = configuration.plate_options

    elements: List[Element] = []
    for beam in model.beams:
        section = sections[beam.section]
        elements.append(BeamElement(
            beam, nodes[beam.start_node], nodes[beam.end_node], section,
            materials[section.material], dofs,
            include_shear_deformation=configuration.include_shear_deformation,
        ))
    for plate in model.plates:
        elements.append(PlateElement(
            plate, [nodes[n] for n in plate.nodes], materials[plate.material], dofs,
            drilling_ratio=plate_options.drilling_stiffness_ratio,
            warping_tolerance=plate_options.warping_tolerance,
        ))
    return elements


__all__ = ["Element", "BeamElement", "PlateElement", "build_elements"]
