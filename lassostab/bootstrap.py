"""
Bootstrap coefficient ensembles over a fixed lambda sequence.

Every replicate is fitted at the same externally supplied lambdas so that
coefficients are comparable across replicates.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

import numpy as np
from joblib import Parallel, delayed
from tqdm import tqdm

from lassostab._preprocess import prepare_inputs
from lassostab.config import TaskConfig, check_positive_int
from lassostab.core.missing import complete_rows
from lassostab.core.sampling import bootstrap_indices, trial_rng
from lassostab.exceptions import ConfigurationError, SolverFailure
from lassostab.solver import RegularizationPathSolver


@dataclass(frozen=True)
class CoefficientTensor:
    """
    Coefficients of every bootstrap model at every lambda.

    Attributes
    ----------
    values : ndarray of shape (n_features, n_lambdas, n_bootstrap)
        Slice `values[:, :, b]` is replicate b's coefficient vector at each
        lambda, intercept excluded.
    feature_names : list of str
    lambdas : ndarray of shape (n_lambdas,)
        The lambda sequence the tensor was built from, in its given order.
    """
    values: np.ndarray
    feature_names: List[str]
    lambdas: np.ndarray

    def __post_init__(self):
        values = np.array(self.values, dtype=np.float64)
        lambdas = np.array(self.lambdas, dtype=np.float64)
        if values.ndim != 3:
            raise ValueError(f"Coefficient tensor must be 3D, got shape {values.shape}")
        if values.shape[0] != len(self.feature_names):
            raise ValueError(
                f"{values.shape[0]} feature rows but {len(self.feature_names)} feature names"
            )
        if values.shape[1] != len(lambdas):
            raise ValueError(
                f"Lambda axis has length {values.shape[1]}, lambda sequence has {len(lambdas)}"
            )
        values.setflags(write=False)
        lambdas.setflags(write=False)
        object.__setattr__(self, "values", values)
        object.__setattr__(self, "lambdas", lambdas)
        object.__setattr__(self, "feature_names", list(self.feature_names))

    @property
    def shape(self):
        return self.values.shape

    @property
    def n_bootstrap(self) -> int:
        return self.values.shape[2]

    def flattened(self) -> np.ndarray:
        """(n_features, n_lambdas * n_bootstrap) view of all cells per feature."""
        return self.values.reshape(self.values.shape[0], -1)


def check_lambdas(lambdas) -> np.ndarray:
    """Validate a fixed lambda sequence without reordering it."""
    if lambdas is None:
        raise ConfigurationError("A lambda sequence is required.")
    arr = np.asarray(lambdas, dtype=np.float64).ravel()
    if arr.size == 0:
        raise ConfigurationError("The lambda sequence is empty.")
    if not np.all(np.isfinite(arr)) or np.any(arr <= 0):
        raise ConfigurationError("Lambdas must be finite and strictly positive.")
    return arr


class BootstrapCoefficientEstimator:
    """
    Fit the lasso on bootstrap resamples at a fixed lambda sequence.

    Parameters
    ----------
    lambdas : array-like
        Fixed lambda sequence, typically the path of a named earlier
        cross-validated fit. Never re-derived or reordered.
    n_bootstrap : int, default=100
        Bootstrap replicates.
    base_seed : int, default=42
        Seed each replicate's generator is derived from.
    n_jobs : int, default=1
        Parallel workers (-1 = all cores). 1 runs sequentially.
    parallel_backend : str, default='threads'
        Joblib backend preference.
    solver : RegularizationPathSolver, optional
    max_redraws : int, default=10
        Classification only: redraws allowed when a resample holds one class.
    chunk_size : int, default=20
        Replicates scheduled per batch.
    show_progress : bool, default=False
    verbose : bool, default=False
    """

    def __init__(
        self,
        lambdas,
        n_bootstrap: int = 100,
        base_seed: int = 42,
        n_jobs: int = 1,
        parallel_backend: Optional[str] = 'threads',
        solver: Optional[RegularizationPathSolver] = None,
        max_redraws: int = 10,
        chunk_size: int = 20,
        show_progress: bool = False,
        verbose: bool = False,
    ):
        self.lambdas = lambdas
        self.n_bootstrap = n_bootstrap
        self.base_seed = base_seed
        self.n_jobs = n_jobs
        self.parallel_backend = parallel_backend
        self.solver = solver
        self.max_redraws = max_redraws
        self.chunk_size = chunk_size
        self.show_progress = show_progress
        self.verbose = verbose

    def fit(self, X, y=None, task: Optional[TaskConfig] = None) -> CoefficientTensor:
        """
        Build the coefficient tensor.

        Parameters
        ----------
        X : DataFrame or array of shape (n_samples, n_features)
        y : array-like, optional
            Response; derived from `task` for classification.
        task : TaskConfig
            `Regression()` or `Classification(positive_indices)`.

        Returns
        -------
        CoefficientTensor of shape (n_features, len(lambdas), n_bootstrap)
        """
        lambdas = check_lambdas(self.lambdas)
        check_positive_int("n_bootstrap", self.n_bootstrap)
        check_positive_int("n_jobs", self.n_jobs, allow_all=True)
        check_positive_int("chunk_size", self.chunk_size)
        if not isinstance(task, TaskConfig):
            raise ConfigurationError("fit() requires a TaskConfig (Regression() or Classification(...)).")

        inputs = prepare_inputs(X, y, task)
        kept = complete_rows(inputs.X, inputs.y)
        n_dropped = len(inputs.y) - len(kept)
        if self.verbose and n_dropped:
            print(f"Bootstrap: dropped {n_dropped} / {len(inputs.y)} rows with missing values")
        if len(kept) < 2:
            raise SolverFailure(f"Only {len(kept)} complete rows available for bootstrapping.")

        X_c = inputs.X[kept]
        y_c = inputs.y[kept]
        solver = self.solver if self.solver is not None else RegularizationPathSolver()
        family = task.family

        def single_run(b):
            rng = trial_rng(self.base_seed, b)
            idx = bootstrap_indices(len(y_c), rng)
            if task.is_classification:
                redraws = 0
                while len(np.unique(y_c[idx])) < 2:
                    if redraws >= self.max_redraws:
                        raise SolverFailure(
                            f"Replicate {b}: every resample held a single class "
                            f"after {self.max_redraws} redraws."
                        )
                    idx = bootstrap_indices(len(y_c), rng)
                    redraws += 1
            coefs = solver.fit_path(X_c[idx], y_c[idx], family, lambdas)
            return coefs[:, 1:].T

        p = X_c.shape[1]
        values = np.empty((p, len(lambdas), self.n_bootstrap), dtype=np.float64)

        starts = range(0, self.n_bootstrap, self.chunk_size)
        for start in tqdm(starts, disable=not self.show_progress, desc="bootstrap"):
            stop = min(start + self.chunk_size, self.n_bootstrap)
            if self.n_jobs == 1:
                chunk = [single_run(b) for b in range(start, stop)]
            else:
                chunk = Parallel(n_jobs=self.n_jobs, prefer=self.parallel_backend)(
                    delayed(single_run)(b) for b in range(start, stop)
                )
            for b, coef in zip(range(start, stop), chunk):
                values[:, :, b] = coef

        if self.verbose:
            print(
                f"Bootstrap ({family}): {self.n_bootstrap} replicates x {len(lambdas)} lambdas "
                f"on {len(y_c)} rows"
            )
        return CoefficientTensor(values=values, feature_names=inputs.feature_names, lambdas=lambdas)
