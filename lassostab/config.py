"""
Task, split and analysis configuration.

`TaskConfig` is a tagged variant: `Regression()` or
`Classification(positive_indices)`. The classification arm cannot be built
without its positive row set, so downstream code never has to check for it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

import numpy as np
import pandas as pd

from lassostab.exceptions import ConfigurationError


GAUSSIAN = "gaussian"
BINOMIAL = "binomial"


class TaskConfig:
    """Base class for the two task variants."""

    family: str = ""

    @staticmethod
    def from_mode(mode: str, positive_indices: Optional[Iterable] = None) -> "TaskConfig":
        """Build a task from a mode string ('regression' or 'classification')."""
        if not isinstance(mode, str):
            raise ConfigurationError(f"mode must be a string, got {type(mode).__name__}")
        key = mode.strip().lower()
        if key == "regression":
            return Regression()
        if key == "classification":
            if positive_indices is None:
                raise ConfigurationError(
                    "Classification mode requires positive_indices."
                )
            return Classification(positive_indices)
        raise ConfigurationError(
            f"mode must be 'regression' or 'classification', got '{mode}'"
        )

    @property
    def is_classification(self) -> bool:
        return self.family == BINOMIAL

    def validate_against(self, index: pd.Index) -> None:
        """Check the task is usable on a matrix with this row index."""

    def labels(self, index: pd.Index) -> Optional[np.ndarray]:
        """Response derived from the task, or None when the caller supplies it."""
        return None


@dataclass(frozen=True)
class Regression(TaskConfig):
    """Continuous response, Pearson correlation on held-out rows."""

    family: str = field(default=GAUSSIAN, init=False)


@dataclass(frozen=True)
class Classification(TaskConfig):
    """
    Binary response defined by a set of positive rows.

    Parameters
    ----------
    positive_indices : iterable
        Row labels (DataFrame index labels) of the positive class. Every other
        row of the matrix is a negative.
    """

    positive_indices: frozenset = frozenset()
    family: str = field(default=BINOMIAL, init=False)

    def __post_init__(self):
        if self.positive_indices is None:
            raise ConfigurationError("Classification requires positive_indices.")
        if isinstance(self.positive_indices, (str, bytes)):
            raise ConfigurationError("positive_indices must be a collection of row labels.")
        positives = frozenset(self.positive_indices)
        if not positives:
            raise ConfigurationError("positive_indices must not be empty.")
        object.__setattr__(self, "positive_indices", positives)

    def validate_against(self, index: pd.Index) -> None:
        missing = self.positive_indices.difference(index)
        if missing:
            shown = sorted(missing, key=str)[:5]
            raise ConfigurationError(
                f"{len(missing)} positive index label(s) not found in the feature matrix: {shown}"
            )
        n_pos = int(index.isin(list(self.positive_indices)).sum())
        n_neg = len(index) - n_pos
        if n_neg == 0:
            raise ConfigurationError("No negative rows left outside positive_indices.")
        if n_neg < n_pos:
            raise ConfigurationError(
                f"Class balancing needs at least {n_pos} negative rows, found {n_neg}."
            )

    def labels(self, index: pd.Index) -> np.ndarray:
        return index.isin(list(self.positive_indices)).astype(np.int32)


class LambdaCriterion(str, Enum):
    """Rule for picking one lambda off a cross-validated path."""

    ONE_STANDARD_ERROR = "1se"
    MINIMUM = "min"

    @classmethod
    def parse(cls, value) -> "LambdaCriterion":
        if isinstance(value, cls):
            return value
        aliases = {
            "1se": cls.ONE_STANDARD_ERROR,
            "one_standard_error": cls.ONE_STANDARD_ERROR,
            "lambda.1se": cls.ONE_STANDARD_ERROR,
            "min": cls.MINIMUM,
            "minimum": cls.MINIMUM,
            "lambda.min": cls.MINIMUM,
        }
        key = str(value).strip().lower()
        if key not in aliases:
            raise ConfigurationError(
                f"lambda_criterion must be '1se' or 'min', got '{value}'"
            )
        return aliases[key]


@dataclass(frozen=True)
class SplitPolicy:
    """
    Train/test and cross-validation sizing.

    Parameters
    ----------
    train_fraction : float
        Share of complete rows used for training, in (0, 1]. 1.0 leaves no
        held-out rows.
    fold_count : int
        Folds for the cross-validated path search, at least 3.
    """

    train_fraction: float = 0.8
    fold_count: int = 10

    def __post_init__(self):
        tf = self.train_fraction
        if isinstance(tf, bool) or not isinstance(tf, (int, float, np.floating, np.integer)):
            raise ConfigurationError(f"train_fraction must be a number, got {tf!r}")
        if not (0.0 < float(tf) <= 1.0):
            raise ConfigurationError(f"train_fraction must be in (0, 1], got {tf}")
        fc = self.fold_count
        if isinstance(fc, bool) or not isinstance(fc, (int, np.integer)) or fc < 3:
            raise ConfigurationError(f"fold_count must be an integer >= 3, got {fc}")

    @property
    def holds_out(self) -> bool:
        return float(self.train_fraction) < 1.0

    def n_train(self, n: int) -> int:
        """Training rows for n complete rows, rounded half up."""
        return int(np.floor(float(self.train_fraction) * n + 0.5))

    def check_rows(self, n: int) -> None:
        if self.fold_count > n:
            raise ConfigurationError(
                f"fold_count={self.fold_count} exceeds the {n} available rows"
            )


@dataclass
class AnalysisConfig:
    """
    Options for `lassostab.api.run_analysis`.

    Parameters
    ----------
    mode : str
        'regression' or 'classification'.
    positive_indices : iterable, optional
        Positive row labels, required for classification.
    train_fraction : float
        Training share per trial, in (0, 1].
    lambda_criterion : str
        '1se' (largest lambda within one standard error) or 'min'.
    n_trials : int
        Repeated train/test splits.
    fold_count : int
        Cross-validation folds per trial.
    run_stability : bool
        Also run bootstrap stability selection.
    n_bootstrap : int
        Bootstrap replicates for stability selection.
    min_stability : float
        Selection threshold on stability, in [0, 1].
    base_seed : int
        Seed every per-trial and per-replicate generator derives from.
    n_jobs : int
        Worker count for trials and replicates. 1 runs sequentially.
    lambda_trial : int
        Trial whose lambda path feeds the bootstrap (negative counts from the end).
    verbose : bool
        Print diagnostics.
    show_progress : bool
        Show tqdm progress bars.
    """
    mode: str = "regression"
    positive_indices: Optional[Iterable] = None
    train_fraction: float = 0.8
    lambda_criterion: str = "1se"
    n_trials: int = 1
    fold_count: int = 10
    run_stability: bool = False
    n_bootstrap: int = 100
    min_stability: float = 0.7
    base_seed: int = 42
    n_jobs: int = 1
    lambda_trial: int = -1
    verbose: bool = False
    show_progress: bool = False

    def task(self) -> TaskConfig:
        return TaskConfig.from_mode(self.mode, self.positive_indices)

    def split(self) -> SplitPolicy:
        return SplitPolicy(train_fraction=self.train_fraction, fold_count=self.fold_count)

    def criterion(self) -> LambdaCriterion:
        return LambdaCriterion.parse(self.lambda_criterion)

    def validate(self) -> None:
        """Raise ConfigurationError on the first invalid option."""
        self.task()
        self.split()
        self.criterion()
        check_positive_int("n_trials", self.n_trials)
        check_positive_int("n_bootstrap", self.n_bootstrap)
        check_positive_int("n_jobs", self.n_jobs, allow_all=True)
        check_min_stability(self.min_stability)
        if not isinstance(self.base_seed, (int, np.integer)) or self.base_seed < 0:
            raise ConfigurationError(f"base_seed must be a non-negative integer, got {self.base_seed!r}")


def check_min_stability(value) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"min_stability must be a number, got {value!r}") from None
    if not (0.0 <= value <= 1.0):
        raise ConfigurationError(f"min_stability must be in [0, 1], got {value}")
    return value


def check_positive_int(name: str, value, allow_all: bool = False) -> None:
    # joblib reads -1 as "all cores"
    if allow_all and value == -1:
        return
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value < 1:
        raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
