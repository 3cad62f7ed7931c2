from dataclasses import dataclass

import numpy as np
from scipy import stats
from sklearn.metrics import log_loss, roc_auc_score, roc_curve


@dataclass(frozen=True)
class RegressionPerformance:
    """Held-out Pearson correlation for one trial."""
    correlation: float
    p_value: float
    n_test: int

    @property
    def score(self):
        return self.correlation


@dataclass(frozen=True)
class ClassificationPerformance:
    """Held-out ROC curve and AUC for one trial."""
    fpr: np.ndarray
    tpr: np.ndarray
    thresholds: np.ndarray
    auc: float
    n_test: int

    @property
    def score(self):
        return self.auc


def pearson_performance(y_true, y_pred):
    """Correlation between predictions and truth; NaN when undefined."""
    y_true = np.asarray(y_true, dtype=np.float64)
    y_pred = np.asarray(y_pred, dtype=np.float64)
    n = len(y_true)
    # constant input has no correlation (e.g. every coefficient shrunk to zero)
    if n < 2 or np.ptp(y_true) == 0 or np.ptp(y_pred) == 0:
        return RegressionPerformance(float('nan'), float('nan'), n)
    r, p = stats.pearsonr(y_true, y_pred)
    return RegressionPerformance(float(np.clip(r, -1.0, 1.0)), float(p), n)


def roc_performance(y_true, scores):
    """ROC curve from continuous scores; NaN AUC when only one class is present."""
    y_true = np.asarray(y_true).astype(int)
    scores = np.asarray(scores, dtype=np.float64)
    n = len(y_true)
    if len(np.unique(y_true)) < 2:
        empty = np.empty(0)
        return ClassificationPerformance(empty, empty, empty, float('nan'), n)
    fpr, tpr, thresholds = roc_curve(y_true, scores)
    auc = roc_auc_score(y_true, scores)
    return ClassificationPerformance(fpr, tpr, thresholds, float(auc), n)


def binomial_deviance(y_true, prob, eps=1e-5):
    """Mean binomial deviance, probabilities clipped away from 0 and 1."""
    prob = np.clip(np.asarray(prob, dtype=np.float64), eps, 1.0 - eps)
    return float(2.0 * log_loss(np.asarray(y_true).astype(int), prob, labels=[0, 1]))
