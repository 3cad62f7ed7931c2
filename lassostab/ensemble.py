"""
Repeated train/test evaluation of a cross-validated lasso.

Each trial owns a generator derived from (base_seed, trial index), so the
collected results do not depend on worker count or completion order.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Callable, List, Optional

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from tqdm import tqdm

from lassostab._preprocess import PreparedInputs
from lassostab.config import check_positive_int
from lassostab.core.metrics import ClassificationPerformance
from lassostab.core.sampling import trial_rng, trial_seed
from lassostab.exceptions import ConfigurationError, SolverFailure
from lassostab.fitting import CrossValidatedFitter, TrialResult


@dataclass(frozen=True)
class EnsembleResult:
    """
    Per-trial results of an ensemble run.

    Attributes
    ----------
    trials : list of TrialResult
        One entry per trial that ran, in trial order.
    n_requested : int
        Trials asked for. Larger than len(trials) only when cancelled.
    task_family : str
    cancelled : bool
        True if `should_stop` ended the run early.
    """
    trials: List[TrialResult]
    n_requested: int
    task_family: str
    cancelled: bool = False

    @property
    def n_failed(self) -> int:
        return sum(t.failed for t in self.trials)

    @property
    def performances(self) -> list:
        """Performance record per trial, None for failed or held-out-less trials."""
        return [t.performance for t in self.trials]

    def scores(self) -> np.ndarray:
        """Correlation or AUC per trial, NaN where undefined."""
        return np.array(
            [np.nan if p is None else p.score for p in self.performances],
            dtype=np.float64,
        )

    def correlations(self) -> np.ndarray:
        if self.task_family != "gaussian":
            raise ValueError("correlations() is only defined for regression results")
        return self.scores()

    def aucs(self) -> np.ndarray:
        if self.task_family != "binomial":
            raise ValueError("aucs() is only defined for classification results")
        return self.scores()

    def roc_curves(self) -> list:
        """(trial, fpr, tpr) for every trial with a defined ROC curve."""
        return [
            (t.trial, t.performance.fpr, t.performance.tpr)
            for t in self.trials
            if isinstance(t.performance, ClassificationPerformance) and np.isfinite(t.performance.auc)
        ]

    def lambda_sequence(self, trial: int = -1) -> np.ndarray:
        """
        Lambda path fitted in a named trial.

        Negative values count from the last trial that ran. Raises
        ConfigurationError if that trial failed.
        """
        if not self.trials:
            raise ConfigurationError("No trials ran; there is no lambda path to reuse.")
        try:
            result = self.trials[trial]
        except IndexError:
            raise ConfigurationError(
                f"Trial {trial} not available ({len(self.trials)} trials ran)"
            ) from None
        if result.failed:
            raise ConfigurationError(
                f"Trial {result.trial} failed ({result.error}); choose another trial's lambda path."
            )
        return result.lambdas.copy()

    def to_frame(self) -> pd.DataFrame:
        """One row per trial for downstream statistics."""
        return pd.DataFrame({
            'trial': [t.trial for t in self.trials],
            'seed': [t.seed for t in self.trials],
            'score': self.scores(),
            'lambda': [np.nan if t.selected is None else t.selected.value for t in self.trials],
            'n_nonzero': [np.nan if t.n_nonzero is None else t.n_nonzero for t in self.trials],
            'n_train': [len(t.train_index) for t in self.trials],
            'n_test': [len(t.test_index) for t in self.trials],
            'n_dropped': [t.n_dropped for t in self.trials],
            'failed': [t.failed for t in self.trials],
            'error': [t.error for t in self.trials],
        })


class EnsembleEvaluator:
    """
    Repeat a CrossValidatedFitter over independent random splits.

    Parameters
    ----------
    fitter : CrossValidatedFitter
        Trial definition (task, split, lambda criterion, solver).
    n_trials : int, default=1
        Number of trials.
    base_seed : int, default=42
        Seed every trial generator is derived from.
    n_jobs : int, default=1
        Parallel workers (-1 = all cores). 1 runs sequentially.
    parallel_backend : str, default='threads'
        Joblib backend preference.
    chunk_size : int, default=20
        Trials scheduled per batch; cancellation is checked between batches.
    show_progress : bool, default=False
        tqdm progress bar over batches.
    verbose : bool, default=False
        Print a summary.
    """

    def __init__(
        self,
        fitter: CrossValidatedFitter,
        n_trials: int = 1,
        base_seed: int = 42,
        n_jobs: int = 1,
        parallel_backend: Optional[str] = 'threads',
        chunk_size: int = 20,
        show_progress: bool = False,
        verbose: bool = False,
    ):
        self.fitter = fitter
        self.n_trials = n_trials
        self.base_seed = base_seed
        self.n_jobs = n_jobs
        self.parallel_backend = parallel_backend
        self.chunk_size = chunk_size
        self.show_progress = show_progress
        self.verbose = verbose

    def evaluate(
        self,
        X,
        y=None,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> EnsembleResult:
        """
        Run all trials and collect their results.

        Parameters
        ----------
        X : DataFrame or array of shape (n_samples, n_features)
        y : array-like, optional
            Response; derived from the task for classification.
        should_stop : callable, optional
            Polled between batches. When it returns True, trials not yet
            scheduled are skipped and finished ones are kept.
        """
        check_positive_int("n_trials", self.n_trials)
        check_positive_int("n_jobs", self.n_jobs, allow_all=True)
        check_positive_int("chunk_size", self.chunk_size)
        inputs = self.fitter.prepare(X, y)

        results: List[TrialResult] = []
        cancelled = False
        starts = range(0, self.n_trials, self.chunk_size)
        for start in tqdm(starts, disable=not self.show_progress, desc="trials"):
            if should_stop is not None and should_stop():
                cancelled = True
                break
            stop = min(start + self.chunk_size, self.n_trials)
            if self.n_jobs == 1:
                chunk = [self._run_trial(inputs, t) for t in range(start, stop)]
            else:
                chunk = Parallel(n_jobs=self.n_jobs, prefer=self.parallel_backend)(
                    delayed(self._run_trial)(inputs, t) for t in range(start, stop)
                )
            results.extend(chunk)

        result = EnsembleResult(
            trials=results,
            n_requested=self.n_trials,
            task_family=self.fitter.task.family,
            cancelled=cancelled,
        )

        if result.n_failed:
            warnings.warn(
                f"{result.n_failed} of {len(results)} trials failed in the path solver "
                f"and are recorded as missing.",
                RuntimeWarning,
                stacklevel=2,
            )
        if self.verbose:
            scores = result.scores()
            finite = scores[np.isfinite(scores)]
            summary = f"mean score {finite.mean():.4f}" if len(finite) else "no defined scores"
            print(
                f"Ensemble: {len(results)} / {self.n_trials} trials, "
                f"{result.n_failed} failed, {summary}"
            )
        return result

    def _run_trial(self, inputs: PreparedInputs, trial: int) -> TrialResult:
        rng = trial_rng(self.base_seed, trial)
        seed = trial_seed(self.base_seed, trial)
        try:
            return self.fitter.run(inputs, rng, trial=trial, seed=seed)
        except SolverFailure as e:
            empty = np.empty(0, dtype=np.intp)
            return TrialResult(
                trial=trial,
                seed=seed,
                n_sampled=0,
                n_dropped=0,
                train_index=empty,
                test_index=empty,
                lambdas=np.empty(0),
                selected=None,
                n_nonzero=None,
                performance=None,
                error=str(e),
            )
