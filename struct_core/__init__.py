# struct_core - 3-D linear structural analysis core
"""
STRUCT-CORE: Finite-Element Analysis of 3-D Frames and Shells
==============================================================

This package provides:
- 12-DOF frame members (Euler-Bernoulli or Timoshenko, releases, rigid offsets)
- 3/4-node flat shells (membrane + Mindlin bending, MITC4 shear)
- Linear static and P-Delta analysis per load case
- Load combinations by superposition
- Modal and linear buckling eigen-analysis
- A run controller with progress reporting and cancellation

ARCHITECTURE:
-------------
    model.py        Structural model records (nodes, members, plates, loads)
    config.py       AnalysisConfiguration (pydantic, camelCase aware)
    validate.py     Pre-flight model checks
    elements/       Beam and plate element formulations
    kernel/         DOF numbering, assembly, solvers, eigen-analysis
    recovery.py     Displacements, reactions and element results per case
    combine.py      Load-combination superposition
    summary.py      Governing extremes
    runner.py       Run controller, AnalysisRun, AnalysisWorker
    errors.py       Error taxonomy
"""

from .config import AnalysisConfiguration
from .errors import (
    AnalysisCancelledError,
    AnalysisError,
    AnalysisReferenceError,
    ConvergenceError,
    ModelValidationError,
    SingularMatrixError,
    UnsupportedFeatureError,
)
from .model import (
    Beam,
    BeamLoad,
    FIXED,
    FREE,
    LoadCase,
    LoadCombination,
    Material,
    NodalLoad,
    Node,
    PINNED,
    Plate,
    PlateLoad,
    Section,
    StructuralModel,
)
from .runner import AnalysisRun, AnalysisWorker, ProgressEvent, run

__version__ = "0.1.0"
