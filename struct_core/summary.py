# struct_core/summary.py
"""Governing extremes over all load-case and combination results."""

from dataclasses import dataclass
from typing import Iterable, Optional

import numpy as np

from .results import CaseResult


@dataclass
class Extreme:
    value: float
    location: str              # node id or element id
    source_id: str             # load case or combination id
    source_kind: str           # 'load_case' or 'combination'
    element_kind: Optional[str] = None


@dataclass
class Summary:
    max_displacement: Optional[Extreme] = None
    max_reaction: Optional[Extreme] = None
    max_stress: Optional[Extreme] = None


def _better(current: Optional[Extreme], value: float) -> bool:
    # strict: on a tie the first one encountered is kept
    return current is None or value > current.value


def scan(results: Iterable[CaseResult]) -> Summary:
    """
    Walk results in order (then nodes / elements / stations in model order)
    and keep the largest resultant displacement, resultant reaction force and
    von Mises stress.
    """
    summary = Summary()
    for result in results:
        src = (result.source_id, result.source_kind)

        disp = np.linalg.norm(result.displacements[:, :3], axis=1)
        for node_id, value in zip(result.node_ids, disp):
            if _better(summary.max_displacement, value):
                summary.max_displacement = Extreme(float(value), node_id, *src)

        supported = np.any(result.restraints, axis=1)
        reaction = np.linalg.norm(result.reactions[:, :3], axis=1)
        for node_id, value, on in zip(result.node_ids, reaction, supported):
            if on and _better(summary.max_reaction, value):
                summary.max_reaction = Extreme(float(value), node_id, *src)

        for element in result.elements:
            for value in element.von_mises:
                if _better(summary.max_stress, value):
                    summary.max_stress = Extreme(float(value), element.element_id, *src, element.kind)
    return summary
