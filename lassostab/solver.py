"""
Regularization path solver.

Thin adapter over scikit-learn's coordinate-descent solvers: `lasso_path`
for the gaussian family and warm-started L1 `LogisticRegression` for the
binomial family. Features are standardized before fitting and coefficients
are reported on the original feature scale, with the intercept in column 0.

Penalty scaling follows the usual lasso convention

    gaussian:  1/(2n) ||y - b0 - Xb||^2 + lambda ||b||_1
    binomial: -1/n loglik(b0, b)         + lambda ||b||_1

so that `C = 1 / (n * lambda)` for `LogisticRegression`.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import List, Optional

import numpy as np
from scipy.special import expit
from sklearn.linear_model import LogisticRegression, lasso_path
from sklearn.metrics import mean_squared_error
from sklearn.model_selection import KFold, StratifiedKFold
from sklearn.preprocessing import StandardScaler

from lassostab.config import BINOMIAL, GAUSSIAN
from lassostab.core.metrics import binomial_deviance
from lassostab.exceptions import SolverFailure


@dataclass(frozen=True)
class FittedPath:
    """
    Cross-validated regularization path for one fit.

    Attributes
    ----------
    lambdas : ndarray of shape (n_lambdas,)
        Strictly decreasing penalty strengths.
    cv_mean : ndarray of shape (n_lambdas,)
        Mean held-out error across folds (MSE or binomial deviance).
    cv_se : ndarray of shape (n_lambdas,)
        Standard error of `cv_mean`.
    coefs : ndarray of shape (n_lambdas, n_features + 1)
        Coefficients fitted on all training rows; column 0 is the intercept.
    family : str
        'gaussian' or 'binomial'.
    feature_names : list of str
    n_folds_used : int
        Folds that produced at least one finite error.
    """
    lambdas: np.ndarray
    cv_mean: np.ndarray
    cv_se: np.ndarray
    coefs: np.ndarray
    family: str
    feature_names: List[str]
    n_folds_used: int

    def index_of(self, lam: float) -> int:
        """Position of `lam` in the path."""
        hits = np.flatnonzero(self.lambdas == lam)
        if len(hits) == 0:
            raise ValueError(f"lambda={lam} is not on the fitted path")
        return int(hits[0])

    def linear_predictor(self, X: np.ndarray, index: int) -> np.ndarray:
        coef = self.coefs[index]
        return np.asarray(X, dtype=np.float64) @ coef[1:] + coef[0]

    def predict(self, X: np.ndarray, index: int) -> np.ndarray:
        """Continuous predictions at path position `index` (probabilities for binomial)."""
        eta = self.linear_predictor(X, index)
        if self.family == BINOMIAL:
            return expit(eta)
        return eta

    def n_nonzero(self, index: int) -> int:
        return int(np.count_nonzero(self.coefs[index, 1:]))


class RegularizationPathSolver:
    """
    L1 path fitting for gaussian and binomial responses.

    Parameters
    ----------
    n_lambdas : int, default=100
        Length of the derived lambda path.
    lambda_min_ratio : float, optional
        Smallest lambda as a fraction of lambda_max. Defaults to 1e-4 when
        n > p and 1e-2 otherwise.
    max_iter : int, default=3000
        Solver iteration cap per lambda.
    tol : float, default=1e-4
        Solver tolerance.
    random_state : int, default=0
        Seed for the saga solver's sample shuffling (binomial family).
    """

    def __init__(
        self,
        n_lambdas: int = 100,
        lambda_min_ratio: Optional[float] = None,
        max_iter: int = 3000,
        tol: float = 1e-4,
        random_state: int = 0,
    ):
        self.n_lambdas = n_lambdas
        self.lambda_min_ratio = lambda_min_ratio
        self.max_iter = max_iter
        self.tol = tol
        self.random_state = random_state

    def lambda_grid(self, X: np.ndarray, y: np.ndarray, family: str) -> np.ndarray:
        """Log-spaced path from the smallest lambda that zeroes every coefficient."""
        X, y = _as_float(X, y)
        n, p = X.shape
        Xs = StandardScaler().fit_transform(X)
        lambda_max = np.max(np.abs(Xs.T @ (y - y.mean()))) / n if p else 0.0
        if not np.isfinite(lambda_max) or lambda_max <= 0:
            raise SolverFailure(
                "Degenerate design: response or features are constant, no lambda path exists."
            )
        ratio = self.lambda_min_ratio
        if ratio is None:
            ratio = 1e-4 if n > p else 1e-2
        return np.geomspace(lambda_max, lambda_max * ratio, self.n_lambdas)

    def fit_path(
        self,
        X: np.ndarray,
        y: np.ndarray,
        family: str,
        lambdas: np.ndarray,
    ) -> np.ndarray:
        """
        Plain (non cross-validated) fit at each given lambda.

        Returns
        -------
        coefs : ndarray of shape (len(lambdas), n_features + 1)
            Rows follow the caller's lambda order; column 0 is the intercept.
        """
        X, y = _as_float(X, y)
        lambdas = np.asarray(lambdas, dtype=np.float64)
        if family not in (GAUSSIAN, BINOMIAL):
            raise ValueError(f"Unknown family '{family}'")
        if family == BINOMIAL and len(np.unique(y)) < 2:
            raise SolverFailure("Binomial fit needs both classes in the response.")

        scaler = StandardScaler()
        Xs = scaler.fit_transform(X)
        # warm starts run from the largest lambda down
        order = np.argsort(-lambdas, kind="mergesort")
        try:
            with warnings.catch_warnings():
                warnings.simplefilter("ignore")
                if family == GAUSSIAN:
                    beta, b0 = self._gaussian(Xs, y, lambdas[order])
                else:
                    beta, b0 = self._binomial(Xs, y, lambdas[order])
        except (ValueError, FloatingPointError, np.linalg.LinAlgError) as e:
            raise SolverFailure(f"{family} path fit failed: {e}") from e

        # back to the original feature scale
        beta = beta / scaler.scale_[None, :]
        b0 = b0 - beta @ scaler.mean_

        coefs = np.empty((len(lambdas), X.shape[1] + 1), dtype=np.float64)
        coefs[order, 0] = b0
        coefs[order, 1:] = beta
        if not np.isfinite(coefs).all():
            raise SolverFailure(f"{family} path fit produced non-finite coefficients.")
        return coefs

    def fit_cv(
        self,
        X: np.ndarray,
        y: np.ndarray,
        family: str,
        fold_count: int,
        rng: np.random.Generator,
        feature_names: Optional[List[str]] = None,
    ) -> FittedPath:
        """
        Derive a lambda path and score it with k-fold cross-validation.

        Folds come from a shuffled `KFold` (`StratifiedKFold` for binomial
        responses) seeded from `rng`. Folds that cannot be fitted (for example a single-class training
        fold) are skipped. Lambdas without a finite error in at least two
        folds are dropped from the path.
        """
        X, y = _as_float(X, y)
        n, p = X.shape
        if n < fold_count:
            raise SolverFailure(f"{n} training rows cannot fill {fold_count} folds.")
        if family == BINOMIAL and len(np.unique(y)) < 2:
            raise SolverFailure("Binomial fit needs both classes in the training rows.")

        lambdas = self.lambda_grid(X, y, family)
        coefs = self.fit_path(X, y, family, lambdas)

        random_state = int(rng.integers(np.iinfo(np.int32).max))
        if family == BINOMIAL and np.bincount(y.astype(int)).max() >= fold_count:
            cv = StratifiedKFold(n_splits=fold_count, shuffle=True, random_state=random_state)
        else:
            cv = KFold(n_splits=fold_count, shuffle=True, random_state=random_state)

        errors = np.full((fold_count, len(lambdas)), np.nan)
        with warnings.catch_warnings():
            # StratifiedKFold warns when the minority class is smaller than fold_count
            warnings.simplefilter("ignore", UserWarning)
            splits = list(cv.split(X, y))
        for k, (train, held) in enumerate(splits):
            try:
                fold_coefs = self.fit_path(X[train], y[train], family, lambdas)
            except SolverFailure:
                continue
            eta = X[held] @ fold_coefs[:, 1:].T + fold_coefs[:, 0]
            if family == BINOMIAL:
                prob = expit(eta)
                errors[k] = [binomial_deviance(y[held], prob[:, j]) for j in range(len(lambdas))]
            else:
                errors[k] = [mean_squared_error(y[held], eta[:, j]) for j in range(len(lambdas))]

        errors[~np.isfinite(errors)] = np.nan
        n_valid = np.sum(~np.isnan(errors), axis=0)
        keep = n_valid >= 2
        if not keep.any():
            raise SolverFailure("No lambda produced a finite cross-validated error.")

        errors = errors[:, keep]
        n_valid = n_valid[keep]
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", RuntimeWarning)
            cv_mean = np.nanmean(errors, axis=0)
            cv_se = np.sqrt(np.nanmean((errors - cv_mean) ** 2, axis=0) / (n_valid - 1))

        return FittedPath(
            lambdas=lambdas[keep],
            cv_mean=cv_mean,
            cv_se=cv_se,
            coefs=coefs[keep],
            family=family,
            feature_names=list(feature_names) if feature_names is not None else [f"x{i}" for i in range(p)],
            n_folds_used=int(np.sum(np.any(~np.isnan(errors), axis=1))),
        )

    def _gaussian(self, Xs, y, lambdas):
        y_mean = y.mean()
        _, beta, _ = lasso_path(
            Xs, y - y_mean, alphas=lambdas, max_iter=self.max_iter, tol=self.tol
        )
        beta = beta.T
        return beta, np.full(len(lambdas), y_mean)

    def _binomial(self, Xs, y, lambdas):
        n, p = Xs.shape
        beta = np.zeros((len(lambdas), p))
        b0 = np.zeros(len(lambdas))
        model = LogisticRegression(
            penalty='l1',
            solver='saga',
            max_iter=self.max_iter,
            tol=self.tol,
            warm_start=True,
            random_state=self.random_state,
        )
        for i, lam in enumerate(lambdas):
            model.set_params(C=1.0 / (n * lam))
            model.fit(Xs, y)
            beta[i] = model.coef_[0]
            b0[i] = model.intercept_[0]
        return beta, b0


def _as_float(X, y):
    X = np.asarray(X, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64).ravel()
    if X.ndim != 2 or X.shape[0] != len(y):
        raise ValueError(f"X shape {X.shape} does not match y length {len(y)}")
    return X, y
