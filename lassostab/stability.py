import numpy as np
import pandas as pd
from dataclasses import dataclass
from typing import Optional, List
import warnings

from sklearn.base import BaseEstimator

from lassostab._preprocess import check_feature_names
from lassostab.bootstrap import CoefficientTensor
from lassostab.config import check_min_stability
from lassostab.exceptions import NumericalDegeneracy


POSITIVE = 'positive'
NEGATIVE = 'negative'


# =============================================================================
# Records
# =============================================================================

@dataclass(frozen=True)
class StabilityRecord:
    """
    Stability summary of one feature.

    Attributes
    ----------
    feature : str
    stability : float
        Fraction of (lambda, replicate) cells with a non-zero coefficient.
    z_score : float
        Mean over sample standard deviation of the cell values. NaN when
        the standard deviation is zero.
    direction : str or None
        'positive' (z > 0), 'negative' (z < 0), None otherwise.
    selected : bool
        stability >= min_stability and z-score defined.
    degenerate : bool
        True when the z-score is undefined.
    values : ndarray of shape (n_lambdas * n_bootstrap,)
        Flattened coefficient values, for plotting distributions.
    """
    feature: str
    stability: float
    z_score: float
    direction: Optional[str]
    selected: bool
    degenerate: bool
    values: np.ndarray


@dataclass(frozen=True)
class StabilityResult:
    """
    Stability of every feature under one (lambdas, n_bootstrap) pair.

    Scores from results with different `lambdas` or `n_bootstrap` are not
    comparable.
    """
    records: List[StabilityRecord]
    selected: List[str]
    positive: List[str]
    negative: List[str]
    degenerate: List[str]
    min_stability: float
    lambdas: np.ndarray
    n_bootstrap: int

    def record(self, feature: str) -> StabilityRecord:
        for rec in self.records:
            if rec.feature == feature:
                return rec
        raise KeyError(feature)

    def selected_records(self) -> List[StabilityRecord]:
        """Selected features, ordered by stability (descending)."""
        by_name = {rec.feature: rec for rec in self.records}
        return [by_name[f] for f in self.selected]


# =============================================================================
# Stability Selector
# =============================================================================

class StabilitySelector(BaseEstimator):
    """
    Reduce a bootstrap coefficient tensor to per-feature stability scores.

    For each feature, all (lambda x replicate) cells are pooled. Stability
    is the share of non-zero cells; the direction z-score is the pooled mean
    over the pooled sample standard deviation. Features at or above
    `min_stability` are kept, ordered by stability, and split by the sign of
    their z-score. Features whose z-score is exactly zero land in neither
    direction.

    Parameters
    ----------
    min_stability : float, default=0.7
        Minimum stability to select a feature, in [0, 1].
    coef_threshold : float, default=0.0
        A cell counts as non-zero when |coef| > coef_threshold.
    verbose : bool, default=False
        Print a selection summary.

    Attributes
    ----------
    stability_ : ndarray of shape (n_features,)
    z_scores_ : ndarray of shape (n_features,)
        NaN for degenerate features.
    feature_names_in_ : list of str
    selected_features_ : ndarray
        Indices of selected features, most stable first.
    selected_feature_names_ : list of str
    positive_features_ : list of str
    negative_features_ : list of str
    degenerate_features_ : list of str
        Features with zero coefficient spread (undefined z-score).
    result_ : StabilityResult
    """

    def __init__(
        self,
        min_stability: float = 0.7,
        coef_threshold: float = 0.0,
        verbose: bool = False
    ):
        self.min_stability = min_stability
        self.coef_threshold = coef_threshold
        self.verbose = verbose

    def fit(self, tensor: CoefficientTensor, feature_names=None) -> StabilityResult:
        """
        Score every feature of `tensor`.

        Parameters
        ----------
        tensor : CoefficientTensor
        feature_names : list of str or DataFrame, optional
            Names to report, or the original feature matrix to take them
            from. Defaults to the names stored on the tensor.

        Returns
        -------
        StabilityResult
        """
        min_stability = check_min_stability(self.min_stability)
        if not isinstance(tensor, CoefficientTensor):
            raise TypeError(f"Expected a CoefficientTensor, got {type(tensor).__name__}")

        cells = tensor.flattened()
        p, n_cells = cells.shape
        if isinstance(feature_names, pd.DataFrame):
            feature_names = list(feature_names.columns)
        names = tensor.feature_names if feature_names is None else check_feature_names(feature_names, p)

        if n_cells == 0:
            stability = np.zeros(p)
        else:
            stability = np.mean(np.abs(cells) > self.coef_threshold, axis=1)

        mean = cells.mean(axis=1) if n_cells else np.zeros(p)
        std = cells.std(axis=1, ddof=1) if n_cells > 1 else np.zeros(p)
        degenerate = ~(np.isfinite(std) & (std > 0))

        z_scores = np.full(p, np.nan)
        z_scores[~degenerate] = mean[~degenerate] / std[~degenerate]

        degenerate_names = [names[i] for i in np.flatnonzero(degenerate)]
        if degenerate_names:
            shown = degenerate_names[:5]
            warnings.warn(
                f"{len(degenerate_names)} feature(s) have zero coefficient spread and no "
                f"defined z-score; excluded from selection: "
                f"{shown}{'...' if len(degenerate_names) > 5 else ''}",
                NumericalDegeneracy,
                stacklevel=2,
            )

        mask = (stability >= min_stability) & ~degenerate
        selected = np.where(mask)[0]
        order = np.argsort(-stability[selected], kind="mergesort")
        selected = selected[order]

        positive = [names[i] for i in selected if z_scores[i] > 0]
        negative = [names[i] for i in selected if z_scores[i] < 0]

        records = []
        for i, name in enumerate(names):
            if degenerate[i]:
                direction = None
            elif z_scores[i] > 0:
                direction = POSITIVE
            elif z_scores[i] < 0:
                direction = NEGATIVE
            else:
                direction = None
            records.append(StabilityRecord(
                feature=name,
                stability=float(stability[i]),
                z_score=float(z_scores[i]),
                direction=direction,
                selected=bool(mask[i]),
                degenerate=bool(degenerate[i]),
                values=cells[i].copy(),
            ))

        self.feature_names_in_ = list(names)
        self.n_features_in_ = p
        self.stability_ = stability
        self.z_scores_ = z_scores
        self.selected_features_ = selected
        self.selected_feature_names_ = [names[i] for i in selected]
        self.n_features_selected_ = len(selected)
        self.positive_features_ = positive
        self.negative_features_ = negative
        self.degenerate_features_ = degenerate_names
        self._cells = cells

        self.result_ = StabilityResult(
            records=records,
            selected=self.selected_feature_names_,
            positive=positive,
            negative=negative,
            degenerate=degenerate_names,
            min_stability=min_stability,
            lambdas=tensor.lambdas,
            n_bootstrap=tensor.n_bootstrap,
        )

        if self.verbose:
            print(f"Selected {self.n_features_selected_} / {p} features "
                  f"({len(positive)} positive, {len(negative)} negative, "
                  f"{len(degenerate_names)} degenerate)")

        return self.result_

    def get_feature_info(self) -> pd.DataFrame:
        """
        Get DataFrame with stability details for every feature.

        Returns
        -------
        DataFrame with columns:
            feature: name
            stability: fraction of non-zero cells
            z_score: mean / std of cell values (NaN if degenerate)
            direction: 'positive', 'negative' or None
            selected: whether it passed the threshold
            degenerate: whether the z-score is undefined
        """
        if not hasattr(self, 'result_'):
            raise ValueError("Must call fit() before get_feature_info()")
        records = self.result_.records
        return pd.DataFrame({
            'feature': [r.feature for r in records],
            'stability': [r.stability for r in records],
            'z_score': [r.z_score for r in records],
            'direction': [r.direction for r in records],
            'selected': [r.selected for r in records],
            'degenerate': [r.degenerate for r in records],
        }).sort_values('stability', ascending=False, kind='mergesort').reset_index(drop=True)

    def coefficient_values(self, feature: str) -> np.ndarray:
        """Flattened (lambda x replicate) coefficient values of one feature."""
        if not hasattr(self, '_cells'):
            raise ValueError("Must call fit() before coefficient_values()")
        idx = self.feature_names_in_.index(feature)
        return self._cells[idx].copy()

    def get_support(self, indices: bool = False) -> np.ndarray:
        """Get mask or indices of selected features."""
        if indices:
            return self.selected_features_
        mask = np.zeros(self.n_features_in_, dtype=bool)
        mask[self.selected_features_] = True
        return mask
