"""One-call analysis over the configuration surface."""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

import numpy as np

from lassostab.bootstrap import BootstrapCoefficientEstimator, CoefficientTensor
from lassostab.config import AnalysisConfig, Classification, Regression, SplitPolicy
from lassostab.ensemble import EnsembleEvaluator, EnsembleResult
from lassostab.exceptions import DegenerateSplitWarning
from lassostab.fitting import CrossValidatedFitter
from lassostab.solver import RegularizationPathSolver
from lassostab.stability import StabilityResult, StabilitySelector


@dataclass(frozen=True)
class AnalysisResult:
    """
    Bundle handed to plotting and reporting code.

    `tensor` and `stability` are None unless stability analysis ran;
    `lambda_source` says where the bootstrap lambdas came from.
    """
    config: AnalysisConfig
    performance: EnsembleResult
    tensor: Optional[CoefficientTensor] = None
    stability: Optional[StabilityResult] = None
    lambda_source: Optional[str] = None


def run_analysis(
    X,
    y=None,
    config: Optional[AnalysisConfig] = None,
    lambdas=None,
    solver: Optional[RegularizationPathSolver] = None,
    should_stop: Optional[Callable[[], bool]] = None,
) -> AnalysisResult:
    """
    Estimate performance over repeated splits and, optionally, feature stability.

    Parameters
    ----------
    X : DataFrame or array of shape (n_samples, n_features)
        Feature matrix.
    y : array-like, optional
        Response. Derived from `config.positive_indices` for classification.
    config : AnalysisConfig, optional
        Defaults to `AnalysisConfig()` (regression, one trial).
    lambdas : array-like, optional
        Lambda sequence for the bootstrap. If None, the path of trial
        `config.lambda_trial` is used.
    solver : RegularizationPathSolver, optional
        Shared by the ensemble and the bootstrap.
    should_stop : callable, optional
        Cancellation hook polled between trial batches.

    Returns
    -------
    AnalysisResult
    """
    config = config if config is not None else AnalysisConfig()
    config.validate()
    task = config.task()
    solver = solver if solver is not None else RegularizationPathSolver()

    fitter = CrossValidatedFitter(
        task,
        split=config.split(),
        criterion=config.criterion(),
        solver=solver,
        verbose=config.verbose,
    )
    evaluator = EnsembleEvaluator(
        fitter,
        n_trials=config.n_trials,
        base_seed=config.base_seed,
        n_jobs=config.n_jobs,
        show_progress=config.show_progress,
        verbose=config.verbose,
    )
    performance = evaluator.evaluate(X, y, should_stop=should_stop)

    if not config.run_stability:
        return AnalysisResult(config=config, performance=performance)

    if lambdas is None:
        lambdas = performance.lambda_sequence(config.lambda_trial)
        source = f"trial {performance.trials[config.lambda_trial].trial}"
    else:
        source = "explicit"

    # replicate seeds live in their own stream, apart from the trial seeds
    estimator = BootstrapCoefficientEstimator(
        lambdas,
        n_bootstrap=config.n_bootstrap,
        base_seed=config.base_seed + 1,
        n_jobs=config.n_jobs,
        solver=solver,
        show_progress=config.show_progress,
        verbose=config.verbose,
    )
    tensor = estimator.fit(X, y, task=task)
    stability = StabilitySelector(
        min_stability=config.min_stability,
        verbose=config.verbose,
    ).fit(tensor)

    return AnalysisResult(
        config=config,
        performance=performance,
        tensor=tensor,
        stability=stability,
        lambda_source=source,
    )


# =============================================================================
# Convenience Functions
# =============================================================================

def stability_regression(
    X,
    y,
    lambdas=None,
    min_stability: float = 0.7,
    n_bootstrap: int = 100,
    fold_count: int = 10,
    base_seed: int = 42,
    n_jobs: int = 1,
    verbose: bool = False,
) -> List[str]:
    """
    Stability selection for a continuous response.

    If `lambdas` is None, one cross-validated fit on all complete rows
    provides the lambda path.

    Returns
    -------
    selected_features : list of str
        Features with stability >= min_stability, most stable first.
    """
    return _stability_select(
        X, y, Regression(), lambdas, min_stability, n_bootstrap,
        fold_count, base_seed, n_jobs, verbose,
    ).selected


def stability_classif(
    X,
    positive_indices: Iterable,
    lambdas=None,
    min_stability: float = 0.7,
    n_bootstrap: int = 100,
    fold_count: int = 10,
    base_seed: int = 42,
    n_jobs: int = 1,
    verbose: bool = False,
) -> List[str]:
    """
    Stability selection for a binary response defined by positive row labels.

    Returns
    -------
    selected_features : list of str
        Features with stability >= min_stability, most stable first.
    """
    return _stability_select(
        X, None, Classification(positive_indices), lambdas, min_stability,
        n_bootstrap, fold_count, base_seed, n_jobs, verbose,
    ).selected


def _stability_select(X, y, task, lambdas, min_stability, n_bootstrap,
                      fold_count, base_seed, n_jobs, verbose) -> StabilityResult:
    if lambdas is None:
        split = SplitPolicy(train_fraction=1.0, fold_count=fold_count)
        fitter = CrossValidatedFitter(task, split=split, verbose=verbose)
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", DegenerateSplitWarning)
            lambdas = fitter.fit_trial(X, y, rng=np.random.default_rng(base_seed)).lambdas

    tensor = BootstrapCoefficientEstimator(
        lambdas, n_bootstrap=n_bootstrap, base_seed=base_seed, n_jobs=n_jobs, verbose=verbose,
    ).fit(X, y, task=task)
    return StabilitySelector(min_stability=min_stability, verbose=verbose).fit(tensor)
