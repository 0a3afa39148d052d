# struct_core/errors.py
"""
Error taxonomy for analysis runs.

Every failure that ends a run is an ``AnalysisError``. The ``kind`` tag is what
the run record stores next to the human-readable message, so callers can branch
on it without importing the classes.
"""

from typing import List, Optional, Sequence


class AnalysisError(RuntimeError):
    """Base class for every error that terminates an analysis run."""
    kind = "internal"


class ModelValidationError(AnalysisError):
    """Pre-flight referential/physical defects. Carries every violation found."""
    kind = "model_validation"

    def __init__(self, violations: Sequence[str]):
        self.violations: List[str] = list(violations)
        lines = "\n".join(f"  - {v}" for v in self.violations)
        super().__init__(f"Model has {len(self.violations)} violation(s):\n{lines}")


class SingularMatrixError(AnalysisError):
    """
    The reduced stiffness matrix is singular: the structure (or part of it)
    is a mechanism.

    Attributes:
        dof: Global DOF index at which the zero pivot was met
        node_id: Node owning that DOF
        label: DOF label ('dx' ... 'rz')
    """
    kind = "singular_matrix"

    def __init__(self, message: str, dof: Optional[int] = None,
                 node_id: Optional[str] = None, label: Optional[str] = None):
        self.dof = dof
        self.node_id = node_id
        self.label = label
        if node_id is not None:
            message = f"{message} (node '{node_id}', dof {label}, global index {dof})"
        super().__init__(message)


class ConvergenceError(AnalysisError):
    """An iterative procedure did not reach its tolerance within the iteration cap."""
    kind = "convergence"

    def __init__(self, message: str, residual: float = float("nan"), iterations: int = 0):
        self.residual = residual
        self.iterations = iterations
        super().__init__(f"{message} (residual={residual:.3e}, iterations={iterations})")


class UnsupportedFeatureError(AnalysisError):
    """A configuration option has no implemented formulation."""
    kind = "unsupported_feature"

    def __init__(self, feature: str, detail: str = ""):
        self.feature = feature
        message = f"Unsupported feature: {feature}"
        if detail:
            message += f" ({detail})"
        super().__init__(message)


class AnalysisReferenceError(AnalysisError):
    """A load case or combination named in the configuration is not in the model."""
    kind = "reference"

    def __init__(self, missing: Sequence[str]):
        self.missing: List[str] = list(missing)
        super().__init__("Unknown load case/combination: " + ", ".join(self.missing))


class AnalysisCancelledError(AnalysisError):
    """The run was cancelled between load-case or combination iterations."""
    kind = "cancelled"
