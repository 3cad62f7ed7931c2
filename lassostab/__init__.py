__version__ = "0.1.0"

from lassostab.api import AnalysisResult, run_analysis, stability_classif, stability_regression
from lassostab.bootstrap import BootstrapCoefficientEstimator, CoefficientTensor
from lassostab.config import (
    AnalysisConfig,
    Classification,
    LambdaCriterion,
    Regression,
    SplitPolicy,
    TaskConfig,
)
from lassostab.core.metrics import ClassificationPerformance, RegressionPerformance
from lassostab.ensemble import EnsembleEvaluator, EnsembleResult
from lassostab.exceptions import (
    ConfigurationError,
    DegenerateSplitWarning,
    NumericalDegeneracy,
    SolverFailure,
)
from lassostab.fitting import CrossValidatedFitter, SelectedLambda, TrialResult, select_lambda
from lassostab.solver import FittedPath, RegularizationPathSolver
from lassostab.stability import StabilityRecord, StabilityResult, StabilitySelector


__all__ = [
    "__version__",
    "AnalysisConfig",
    "AnalysisResult",
    "run_analysis",
    "stability_regression",
    "stability_classif",
    "TaskConfig",
    "Regression",
    "Classification",
    "SplitPolicy",
    "LambdaCriterion",
    "RegularizationPathSolver",
    "FittedPath",
    "CrossValidatedFitter",
    "SelectedLambda",
    "TrialResult",
    "select_lambda",
    "RegressionPerformance",
    "ClassificationPerformance",
    "EnsembleEvaluator",
    "EnsembleResult",
    "BootstrapCoefficientEstimator",
    "CoefficientTensor",
    "StabilitySelector",
    "StabilityRecord",
    "StabilityResult",
    "ConfigurationError",
    "DegenerateSplitWarning",
    "NumericalDegeneracy",
    "SolverFailure",
]
