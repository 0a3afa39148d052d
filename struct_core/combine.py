# struct_core/combine.py
"""Load-combination superposition of per-load-case results."""

from dataclasses import replace
from typing import Dict, Iterable, List, Tuple

import numpy as np

from .errors import AnalysisReferenceError
from .model import LoadCombination
from .results import CaseResult


def combine_results(case_results: Dict[str, CaseResult], combination: LoadCombination) -> CaseResult:
    """
    Superpose load-case results with the combination factors.

    Only raw quantities are summed. Every element container is rebuilt from
    the summed raw arrays, so von Mises and principal stresses are derived
    from the combined components instead of being added up.

    Raises:
        AnalysisReferenceError: a referenced load case has no result
    """
    weighted = list(_iter_weighted_results(case_results, combination))
    template = case_results[next(iter(combination.factors))]

    combined = CaseResult(
        source_id=combination.id,
        source_kind="combination",
        node_ids=list(template.node_ids),
        displacements=_combine_field(weighted, lambda r: r.displacements),
        reactions=_combine_field(weighted, lambda r: r.reactions),
        restraints=template.restraints.copy(),
    )
    for element_id, beam in template.beams.items():
        combined.beams[element_id] = _combine_element(
            beam, [(f, r.beams[element_id]) for f, r in weighted])
    for element_id, plate in template.plates.items():
        combined.plates[element_id] = _combine_element(
            plate, [(f, r.plates[element_id]) for f, r in weighted])
    return combined


def _iter_weighted_results(
    case_results: Dict[str, CaseResult],
    combination: LoadCombination,
) -> Iterable[Tuple[float, CaseResult]]:
    missing: List[str] = [lc for lc in combination.factors if lc not in case_results]
    if missing:
        raise AnalysisReferenceError(missing)
    for load_case, factor in combination.factors.items():
        yield factor, case_results[load_case]


def _combine_field(weighted, getter) -> np.ndarray:
    total = np.zeros_like(getter(weighted[0][1]), dtype=float)
    for factor, result in weighted:
        total += factor * getter(result)
    return total


def _combine_element(template, weighted):
    raw = {name: _combine_field(weighted, lambda r, n=name: getattr(r, n))
           for name in template.RAW_FIELDS}
    return replace(template, **raw)
