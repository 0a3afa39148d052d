# struct_core/config.py
"""
Analysis configuration record.

Accepted either as an ``AnalysisConfiguration`` instance or as a plain mapping
using the camelCase keys of the surrounding application (``includePDelta``,
``solverSettings.directSolver.pivotThreshold`` ...) or snake_case field names.
Unknown keys are ignored.
"""

from typing import Any, List, Literal, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class _Settings(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ModalOptions(_Settings):
    number_of_modes: int = Field(10, ge=1, description="Lowest modes to extract")
    max_frequency: float = Field(100.0, gt=0, description="Frequency cutoff (Hz)")
    mass_participation: float = Field(90.0, ge=0, le=100, description="Cumulative participation target (%)")
    mass_formulation: Literal["consistent", "lumped"] = "consistent"


class ConvergenceSettings(_Settings):
    """Tolerances of the P-Delta iteration."""
    force_tolerance: float = Field(1e-6, gt=0)
    displacement_tolerance: float = Field(1e-6, gt=0)
    max_iterations: int = Field(100, ge=1)


class DirectSolverSettings(_Settings):
    pivoting: Literal["partial", "complete", "none"] = "partial"
    pivot_threshold: float = Field(1e-8, ge=0)
    iterative_refinement: bool = False


class IterativeSolverSettings(_Settings):
    method: Literal["pcg", "gmres", "bicgstab", "minres"] = "pcg"
    preconditioner: Literal["none", "jacobi", "ilu", "ssor", "amg"] = "jacobi"
    tolerance: float = Field(1e-8, gt=0)
    max_iterations: int = Field(1000, ge=1)
    restart_parameter: int = Field(30, ge=1)
    relaxation_factor: float = Field(1.0, gt=0, lt=2)


class EigenSolverSettings(_Settings):
    tolerance: float = Field(1e-10, ge=0)
    max_iterations: int = Field(300, ge=1)
    block_size: int = Field(5, ge=1)
    shift_invert: bool = True
    normalize_eigenvectors: bool = True


class SolverSettings(_Settings):
    matrix_storage: Literal["sparse", "dense", "skyline"] = "sparse"
    matrix_reordering: Literal["automatic", "amd", "rcm", "metis", "none"] = "automatic"
    matrix_scaling: bool = False
    check_singularity: bool = True
    direct_solver: DirectSolverSettings = Field(default_factory=DirectSolverSettings)
    iterative_solver: IterativeSolverSettings = Field(default_factory=IterativeSolverSettings)
    eigen_solver: EigenSolverSettings = Field(default_factory=EigenSolverSettings)


class PlateOptions(_Settings):
    """
    warping_policy 'tolerate' projects a warped quadrilateral onto its mean
    plane; 'reject' fails validation when the out-of-plane deviation divided
    by the element size exceeds ``warping_tolerance``.
    """
    warping_policy: Literal["tolerate", "reject"] = "tolerate"
    warping_tolerance: float = Field(1e-3, ge=0)
    drilling_stiffness_ratio: float = Field(1e-3, gt=0)


AnalysisType = Literal[
    "static", "modal", "buckling", "nonlinear", "dynamic", "timeHistory", "responseSpectrum"
]


class AnalysisConfiguration(_Settings):
    analysis_type: AnalysisType = "static"
    solver_type: Literal["direct", "iterative"] = "direct"
    precision: Literal["single", "double"] = "double"
    include_p_delta: bool = False
    include_shear_deformation: bool = True
    large_displacement: bool = False
    modal_options: ModalOptions = Field(default_factory=ModalOptions)
    convergence: ConvergenceSettings = Field(default_factory=ConvergenceSettings)
    solver_settings: SolverSettings = Field(default_factory=SolverSettings)
    plate_options: PlateOptions = Field(default_factory=PlateOptions)
    station_count: int = Field(11, ge=2, description="Beam result stations, both ends included")
    random_seed: int = 0
    load_cases_to_analyze: List[str] = Field(default_factory=list)
    load_combinations_to_analyze: List[str] = Field(default_factory=list)

    @field_validator("load_cases_to_analyze", "load_combinations_to_analyze")
    @classmethod
    def _unique_ids(cls, ids: List[str]) -> List[str]:
        return list(dict.fromkeys(ids))

    @classmethod
    def coerce(cls, value: Union["AnalysisConfiguration", Mapping[str, Any], None]) -> "AnalysisConfiguration":
        """Return an independent, validated configuration."""
        if value is None:
            return cls()
        if isinstance(value, AnalysisConfiguration):
            return value.model_copy(deep=True)
        return cls.model_validate(value)
