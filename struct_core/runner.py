# struct_core/runner.py
"""
RUN CONTROLLER
==============

Orchestrates one analysis run over a model snapshot:

    validate → resolve requested cases → number DOFs → build elements
    → per load case: assemble, reduce, solve, recover
    → per combination: superpose
    → modal / buckling eigen-analysis (when requested)
    → summary

The run record (``AnalysisRun``) is written by exactly one writer, the
controller, and is frozen once it reaches ``completed`` or ``failed``.
Progress never decreases:

     5  running
    10  model validated
    20  structure prepared
    20 → 70  load cases
    70 → 90  combinations
    95  eigen-analysis done
   100  completed

Any ``AnalysisError`` ends the run as ``failed`` with its message and kind,
and no partial results are kept. Cancellation is checked between load-case
and combination iterations.
"""

import copy
import logging
import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np
from pydantic import ValidationError

from .combine import combine_results
from .config import AnalysisConfiguration
from .elements import build_elements
from .errors import (
    AnalysisCancelledError,
    AnalysisError,
    AnalysisReferenceError,
    ModelValidationError,
    UnsupportedFeatureError,
)
from .kernel.assemble import (
    assemble_geometric_stiffness,
    assemble_loads,
    assemble_mass,
    assemble_stiffness,
    check_storage,
)
from .kernel.buckling import buckling_analysis
from .kernel.dof import DOFManager
from .kernel.modal import modal_analysis
from .kernel.solve import free_dof_describer, solve_linear, solve_pdelta
from .model import StructuralModel
from .recovery import recover_case
from .results import BucklingResult, CaseResult, ModalResult
from .summary import Summary, scan
from .validate import validate_model

logger = logging.getLogger(__name__)

PENDING, RUNNING, COMPLETED, FAILED = "pending", "running", "completed", "failed"
TERMINAL = (COMPLETED, FAILED)

UNSUPPORTED_ANALYSIS_TYPES = ("nonlinear", "dynamic", "timeHistory", "responseSpectrum")


@dataclass
class ProgressEvent:
    run_id: str
    project_id: Optional[str]
    status: str
    progress: float


ProgressSink = Callable[[ProgressEvent], None]


@dataclass
class AnalysisRun:
    """
    Observable record of one analysis run.

    Read it freely while the run is in flight; only the controller writes it.
    Setting any attribute after the run reached a terminal state raises
    RuntimeError.
    """
    project_id: Optional[str] = None
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: str = PENDING
    progress: float = 0.0
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    error_message: Optional[str] = None
    error_kind: Optional[str] = None
    load_case_results: Tuple[CaseResult, ...] = ()
    modal_results: Tuple[ModalResult, ...] = ()
    buckling_results: Tuple[BucklingResult, ...] = ()
    summary: Optional[Summary] = None
    _cancel_requested: threading.Event = field(default_factory=threading.Event, repr=False, compare=False)

    def __setattr__(self, name, value):
        if getattr(self, "status", PENDING) in TERMINAL:
            raise RuntimeError(f"Analysis run {self.run_id} is {self.status} and can no longer change")
        super().__setattr__(name, value)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL

    def cancel(self) -> None:
        """Ask the run to stop at the next load-case/combination boundary."""
        self._cancel_requested.set()

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested.is_set()

    def result_for(self, source_id: str) -> CaseResult:
        for result in self.load_case_results:
            if result.source_id == source_id:
                return result
        raise KeyError(f"No result for '{source_id}'")

    def modal_frequencies(self) -> np.ndarray:
        return np.array([m.frequency for m in self.modal_results])


class _Controller:
    """Sole writer of an AnalysisRun."""

    def __init__(self, analysis_run: AnalysisRun, sink: Optional[ProgressSink]):
        self.run = analysis_run
        self.sink = sink
        self.context = ""

    def emit(self):
        if self.sink is not None:
            self.sink(ProgressEvent(self.run.run_id, self.run.project_id, self.run.status, self.run.progress))

    def start(self):
        self.run.status = RUNNING
        self.run.start_time = datetime.now(timezone.utc)
        self.advance(5)

    def advance(self, progress: float):
        progress = float(min(max(progress, self.run.progress), 100.0))
        self.run.progress = progress
        self.emit()

    def check_cancel(self):
        if self.run.cancel_requested:
            raise AnalysisCancelledError(f"Run {self.run.run_id} was cancelled")

    def complete(self, cases: List[CaseResult], modes: List[ModalResult],
                 buckling: List[BucklingResult], summary: Summary):
        run = self.run
        run.load_case_results = tuple(cases)
        run.modal_results = tuple(modes)
        run.buckling_results = tuple(buckling)
        run.summary = summary
        run.end_time = datetime.now(timezone.utc)
        run.progress = 100.0
        run.status = COMPLETED
        self.emit()

    def fail(self, exc: Exception, kind: str):
        run = self.run
        message = str(exc)
        if self.context and not isinstance(exc, AnalysisCancelledError):
            message = f"{self.context}: {message}"
        run.load_case_results = ()
        run.modal_results = ()
        run.buckling_results = ()
        run.summary = None
        run.error_message = message
        run.error_kind = kind
        run.end_time = datetime.now(timezone.utc)
        run.status = FAILED
        self.emit()


def check_supported(configuration: AnalysisConfiguration) -> None:
    if configuration.analysis_type in UNSUPPORTED_ANALYSIS_TYPES:
        raise UnsupportedFeatureError(f"analysis type '{configuration.analysis_type}'",
                                      "use 'static', 'modal' or 'buckling'")
    if configuration.large_displacement:
        raise UnsupportedFeatureError("large displacement analysis")
    check_storage(configuration.solver_settings.matrix_storage)


def resolve_cases(model: StructuralModel, configuration: AnalysisConfiguration):
    """
    Load cases and combinations to analyse.

    Nothing requested means everything. Load cases used by a requested
    combination are analysed even when not requested themselves (appended in
    model order).

    Raises:
        AnalysisReferenceError: a requested id is not in the model
    """
    cases = model.load_case_map()
    combinations = model.combination_map()
    case_ids = list(configuration.load_cases_to_analyze)
    combo_ids = list(configuration.load_combinations_to_analyze)
    if not case_ids and not combo_ids:
        case_ids = list(cases)
        combo_ids = list(combinations)

    missing = [i for i in case_ids if i not in cases] + [i for i in combo_ids if i not in combinations]
    if missing:
        raise AnalysisReferenceError(missing)

    needed = {lc for cid in combo_ids for lc in combinations[cid].factors}
    case_ids += [lc.id for lc in model.load_cases if lc.id in needed and lc.id not in case_ids]
    return [cases[i] for i in case_ids], [combinations[i] for i in combo_ids]


def _coerce_configuration(configuration) -> AnalysisConfiguration:
    try:
        return AnalysisConfiguration.coerce(configuration)
    except ValidationError as exc:
        raise ModelValidationError(
            [f"configuration {'.'.join(map(str, e['loc']))}: {e['msg']}" for e in exc.errors()]
        ) from exc


def _execute(model: StructuralModel, configuration, ctl: _Controller):
    config = _coerce_configuration(configuration)
    check_supported(config)
    validate_model(model, config)
    ctl.advance(10)

    cases, combinations = resolve_cases(model, config)
    storage = config.solver_settings.matrix_storage
    dofs = DOFManager.from_model(model)
    elements = build_elements(model, dofs, config)
    K = assemble_stiffness(elements, dofs, storage)
    describe = free_dof_describer(dofs, dofs.free_dofs)
    ctl.advance(20)
    logger.info("Prepared %d DOFs (%d free), %d elements, %d load case(s), %d combination(s)",
                dofs.ndof, len(dofs.free_dofs), len(elements), len(cases), len(combinations))

    def axial_forces(u, load_case):
        return {el.id: el.axial_force(el.gather(u), load_case.id, load_case.factor)
                for el in elements if el.kind == "beam"}

    results: Dict[str, CaseResult] = {}
    solutions: Dict[str, np.ndarray] = {}
    for i, load_case in enumerate(cases):
        ctl.check_cancel()
        ctl.context = f"Load case '{load_case.id}'"
        started = time.perf_counter()
        loads = assemble_loads(model, elements, dofs, load_case)

        if config.include_p_delta:
            solution = solve_pdelta(
                lambda forces: assemble_stiffness(elements, dofs, storage, forces),
                lambda u, lc=load_case: axial_forces(u, lc),
                loads.total, dofs, config,
            )
            u, K_case, forces = solution.u, solution.K, solution.axial_forces
            logger.info("Load case '%s': P-Delta converged in %d iteration(s), amplification %.3f",
                        load_case.id, solution.iterations, solution.amplification)
        else:
            u, _ = solve_linear(K, loads.total, dofs, config)
            K_case, forces = K, None

        results[load_case.id] = recover_case(load_case, K_case, u, loads, dofs, elements,
                                             config.station_count, forces)
        solutions[load_case.id] = u
        logger.info("Load case '%s' solved in %.3fs", load_case.id, time.perf_counter() - started)
        ctl.advance(20 + 50 * (i + 1) / len(cases))

    ordered = [results[lc.id] for lc in cases]
    ctl.advance(70)
    for j, combination in enumerate(combinations):
        ctl.check_cancel()
        ctl.context = f"Load combination '{combination.id}'"
        ordered.append(combine_results(results, combination))
        ctl.advance(70 + 20 * (j + 1) / len(combinations))
    ctl.advance(90)

    modes: List[ModalResult] = []
    buckling: List[BucklingResult] = []
    if config.analysis_type == "modal":
        ctl.check_cancel()
        ctl.context = "Modal analysis"
        M = assemble_mass(elements, dofs, storage, config.modal_options.mass_formulation)
        positions = np.array([n.position for n in model.nodes])
        modes = modal_analysis(K, M, dofs, positions, config, describe)
        logger.info("Modal analysis: %d mode(s)", len(modes))
    elif config.analysis_type == "buckling":
        for load_case in cases:
            ctl.check_cancel()
            ctl.context = f"Buckling of load case '{load_case.id}'"
            Kg = assemble_geometric_stiffness(
                elements, dofs, axial_forces(solutions[load_case.id], load_case), storage)
            buckling += buckling_analysis(K, Kg, dofs, config, load_case.id, describe)
    ctl.context = ""
    ctl.advance(95)

    return ordered, modes, buckling, scan(ordered)


def run(
    model: StructuralModel,
    configuration=None,
    progress_sink: Optional[ProgressSink] = None,
    project_id: Optional[str] = None,
    analysis_run: Optional[AnalysisRun] = None,
) -> AnalysisRun:
    """
    Analyse ``model`` and return the run record in a terminal state.

    Args:
        model: Structural model; a snapshot is taken, later edits are ignored
        configuration: AnalysisConfiguration or mapping (camelCase or snake_case)
        progress_sink: Called with a ProgressEvent at every checkpoint
        project_id: Passed through to progress events
        analysis_run: Existing pending record to fill (used by AnalysisWorker)

    Returns:
        The AnalysisRun, ``completed`` or ``failed``. Analysis errors are
        recorded on the run, not raised. Unexpected exceptions mark the run
        failed with kind 'internal' and are re-raised.
    """
    analysis_run = analysis_run or AnalysisRun(project_id=project_id)
    if analysis_run.status != PENDING:
        raise RuntimeError(f"Analysis run {analysis_run.run_id} is already {analysis_run.status}")
    ctl = _Controller(analysis_run, progress_sink)
    snapshot = model.snapshot()

    logger.info("Analysis run %s started", analysis_run.run_id)
    try:
        ctl.start()
        outcome = _execute(snapshot, configuration, ctl)
    except AnalysisError as exc:
        logger.warning("Analysis run %s failed (%s): %s", analysis_run.run_id, exc.kind, exc)
        ctl.fail(exc, exc.kind)
        return analysis_run
    except Exception as exc:
        logger.exception("Analysis run %s crashed", analysis_run.run_id)
        ctl.fail(exc, "internal")
        raise
    ctl.complete(*outcome)
    logger.info("Analysis run %s completed", analysis_run.run_id)
    return analysis_run


class AnalysisWorker:
    """
    Runs analyses off the caller's thread.

    ``submit`` snapshots the model and configuration, and returns the pending
    run record immediately. Runs on different worker threads never share
    matrices.

    Example:
        >>> with AnalysisWorker() as worker:
        ...     record = worker.submit(model, {"analysisType": "static"})
        ...     worker.result(record)
    """

    def __init__(self, max_workers: int = 1, progress_sink: Optional[ProgressSink] = None):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="analysis")
        self._progress_sink = progress_sink
        self._futures: Dict[str, Future] = {}

    def submit(self, model: StructuralModel, configuration=None, project_id: Optional[str] = None,
               progress_sink: Optional[ProgressSink] = None) -> AnalysisRun:
        analysis_run = AnalysisRun(project_id=project_id)
        self._futures[analysis_run.run_id] = self._executor.submit(
            run, model.snapshot(), copy.deepcopy(configuration),
            progress_sink or self._progress_sink, project_id, analysis_run,
        )
        return analysis_run

    def result(self, analysis_run: AnalysisRun, timeout: Optional[float] = None) -> AnalysisRun:
        """
        Block until the run is terminal. Re-raises unexpected (internal) errors.

        A finished run is forgotten once collected; asking again returns the
        record as is.
        """
        future = self._futures.get(analysis_run.run_id)
        if future is None:
            if analysis_run.is_terminal:
                return analysis_run
            raise KeyError(f"Run '{analysis_run.run_id}' was not submitted to this worker")
        try:
            return future.result(timeout=timeout)
        finally:
            if future.done():
                del self._futures[analysis_run.run_id]

    @property
    def outstanding(self) -> int:
        """Submitted runs whose result has not been collected yet."""
        return len(self._futures)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.shutdown()
