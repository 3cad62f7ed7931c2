"""
Cross-validated lasso fitting on one random train/test split.

One trial:

1. drop rows with a missing feature or response,
2. classification only: balance the classes by pairing every positive row
   with an equal-size random sample of complete negative rows, then drop
   any incomplete positives from that sample,
3. split the remaining rows into train/test,
4. fit a cross-validated regularization path on the training rows,
5. pick a lambda (one-standard-error rule or minimum error),
6. predict the held-out rows and score them (Pearson correlation or ROC/AUC).
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from typing import Optional, Union

import numpy as np

from lassostab._preprocess import PreparedInputs, prepare_inputs
from lassostab.config import LambdaCriterion, SplitPolicy, TaskConfig
from lassostab.core.metrics import (
    ClassificationPerformance,
    RegressionPerformance,
    pearson_performance,
    roc_performance,
)
from lassostab.core.missing import complete_rows
from lassostab.core.sampling import balanced_indices, train_test_split_indices
from lassostab.exceptions import ConfigurationError, DegenerateSplitWarning, SolverFailure
from lassostab.solver import FittedPath, RegularizationPathSolver

Performance = Union[RegressionPerformance, ClassificationPerformance]


@dataclass(frozen=True)
class SelectedLambda:
    """A lambda picked off a fitted path, with its position in that path."""
    value: float
    index: int
    criterion: LambdaCriterion


@dataclass(frozen=True)
class TrialResult:
    """
    Outcome of one train/test trial.

    Row positions refer to the matrix passed to the fitter. `n_dropped`
    counts the incomplete rows of that matrix; `n_sampled` is the candidate
    row count (the balanced sample for classification, before incomplete
    positives are removed). `performance` is None when the trial had no
    held-out rows or failed; `error` holds the failure message in the
    latter case.
    """
    trial: int
    seed: Optional[int]
    n_sampled: int
    n_dropped: int
    train_index: np.ndarray
    test_index: np.ndarray
    lambdas: np.ndarray
    selected: Optional[SelectedLambda]
    n_nonzero: Optional[int]
    performance: Optional[Performance]
    error: Optional[str] = None
    path: Optional[FittedPath] = field(default=None, repr=False)

    @property
    def failed(self) -> bool:
        return self.error is not None


def select_lambda(path: FittedPath, criterion: LambdaCriterion) -> SelectedLambda:
    """
    Choose a lambda from a cross-validated path.

    MINIMUM takes the lambda with the smallest error; ONE_STANDARD_ERROR the
    largest lambda whose error is within one standard error of that minimum.
    Ties go to the largest lambda.
    """
    criterion = LambdaCriterion.parse(criterion)
    cv_mean = path.cv_mean
    i_min = int(np.argmin(cv_mean))
    bound = cv_mean[i_min]
    if criterion is LambdaCriterion.ONE_STANDARD_ERROR:
        se = path.cv_se[i_min]
        bound = bound + (se if np.isfinite(se) else 0.0)

    candidates = np.flatnonzero(cv_mean <= bound)
    idx = int(candidates[np.argmax(path.lambdas[candidates])])
    return SelectedLambda(value=float(path.lambdas[idx]), index=idx, criterion=criterion)


class CrossValidatedFitter:
    """
    Fit and score one cross-validated lasso trial.

    Parameters
    ----------
    task : TaskConfig
        `Regression()` or `Classification(positive_indices)`.
    split : SplitPolicy, optional
        Train fraction and fold count. Defaults to 0.8 / 10 folds.
    criterion : LambdaCriterion or str, default='1se'
        Lambda selection rule.
    solver : RegularizationPathSolver, optional
        Path solver; a default one is created if omitted.
    verbose : bool, default=False
        Print per-trial diagnostics.
    """

    def __init__(
        self,
        task: TaskConfig,
        split: Optional[SplitPolicy] = None,
        criterion: Union[LambdaCriterion, str] = LambdaCriterion.ONE_STANDARD_ERROR,
        solver: Optional[RegularizationPathSolver] = None,
        verbose: bool = False,
    ):
        if not isinstance(task, TaskConfig):
            raise ConfigurationError(f"task must be a TaskConfig, got {type(task).__name__}")
        self.task = task
        self.split = split if split is not None else SplitPolicy()
        self.criterion = LambdaCriterion.parse(criterion)
        self.solver = solver if solver is not None else RegularizationPathSolver()
        self.verbose = verbose

    def prepare(self, X, y=None) -> PreparedInputs:
        """
        Validate inputs once for any number of trials.

        Emits DegenerateSplitWarning when the split leaves nothing held out.
        """
        inputs = prepare_inputs(X, y, self.task)
        complete = complete_rows(inputs.X, inputs.y)
        if self.task.is_classification:
            n_pos = int(np.sum(inputs.y == 1))
            n_neg = int(np.sum(inputs.y[complete] == 0))
            if n_neg < n_pos:
                raise ConfigurationError(
                    f"Class balancing needs at least {n_pos} complete negative rows, "
                    f"found {n_neg} after dropping rows with missing values."
                )
            available = int(np.sum(inputs.y[complete] == 1)) + n_pos
        else:
            available = len(complete)
        self.split.check_rows(self.split.n_train(available))

        if not self.split.holds_out:
            warnings.warn(
                "train_fraction=1.0 leaves no held-out rows; performance is undefined "
                "and will be reported as None.",
                DegenerateSplitWarning,
                stacklevel=3,
            )
        return inputs

    def fit_trial(
        self,
        X,
        y=None,
        rng: Union[np.random.Generator, int, None] = None,
        trial: int = 0,
        keep_path: bool = False,
    ) -> TrialResult:
        """
        Run one trial. SolverFailure propagates to the caller.

        `rng` may be a Generator or an int seed; None draws fresh entropy.
        """
        inputs = self.prepare(X, y)
        seed = rng if isinstance(rng, (int, np.integer)) else None
        return self.run(inputs, np.random.default_rng(rng), trial=trial, seed=seed, keep_path=keep_path)

    def run(
        self,
        inputs: PreparedInputs,
        rng: np.random.Generator,
        trial: int = 0,
        seed: Optional[int] = None,
        keep_path: bool = False,
    ) -> TrialResult:
        """Run one trial on inputs already checked by `prepare`."""
        X, y = inputs.X, inputs.y
        complete = complete_rows(X, y)
        n_dropped = len(y) - len(complete)
        if self.verbose and n_dropped:
            print(f"Trial {trial}: dropped {n_dropped} / {len(y)} rows with missing values")

        if self.task.is_classification:
            # negatives come from complete rows only; incomplete positives fall out below
            rows = balanced_indices(y, rng, candidates=complete)
            kept = complete_rows(X, y, rows)
        else:
            rows = np.arange(len(y))
            kept = complete

        n_train = self.split.n_train(len(kept))
        if n_train < 1:
            raise SolverFailure(f"Trial {trial}: no training rows among {len(kept)} complete rows.")
        if self.split.holds_out and n_train < len(kept):
            train, test = train_test_split_indices(kept, n_train, rng)
        else:
            if self.split.holds_out:
                warnings.warn(
                    f"Trial {trial}: {len(kept)} rows leave none held out "
                    f"at train_fraction={self.split.train_fraction}.",
                    DegenerateSplitWarning,
                    stacklevel=2,
                )
            train, test = kept, np.empty(0, dtype=kept.dtype)

        path = self.solver.fit_cv(
            X[train],
            y[train],
            self.task.family,
            self.split.fold_count,
            rng,
            feature_names=inputs.feature_names,
        )
        selected = select_lambda(path, self.criterion)

        performance = None
        if len(test):
            pred = path.predict(X[test], selected.index)
            if self.task.is_classification:
                performance = roc_performance(y[test], pred)
            else:
                performance = pearson_performance(y[test], pred)

        if self.verbose:
            score = "n/a" if performance is None else f"{performance.score:.4f}"
            print(
                f"Trial {trial}: lambda={selected.value:.4g} ({self.criterion.value}), "
                f"{path.n_nonzero(selected.index)} non-zero, score={score}"
            )

        return TrialResult(
            trial=trial,
            seed=seed,
            n_sampled=len(rows),
            n_dropped=n_dropped,
            train_index=train,
            test_index=test,
            lambdas=path.lambdas,
            selected=selected,
            n_nonzero=path.n_nonzero(selected.index),
            performance=performance,
            path=path if keep_path else None,
        )
