"""Input validation and conversion shared by the fitters."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

import numpy as np
import pandas as pd

from lassostab.config import TaskConfig
from lassostab.exceptions import ConfigurationError


@dataclass(frozen=True)
class PreparedInputs:
    """Float matrix and response aligned row-for-row, plus row/column labels."""
    X: np.ndarray
    y: np.ndarray
    feature_names: List[str]
    index: pd.Index


def to_numpy(data, dtype=np.float64) -> np.ndarray:
    """Convert pandas/list input to a float array, non-finite values as NaN."""
    if isinstance(data, (pd.DataFrame, pd.Series)):
        arr = data.to_numpy(dtype=dtype, na_value=np.nan)
    else:
        arr = np.asarray(data, dtype=dtype)
    return np.where(np.isfinite(arr), arr, np.nan)


def prepare_inputs(X, y, task: TaskConfig) -> PreparedInputs:
    """
    Validate a feature matrix and response for a task.

    For classification the response is derived from the positive row
    labels; a supplied `y` must agree with it. Inputs are never modified.
    """
    if isinstance(X, pd.DataFrame):
        feature_names = [str(c) for c in X.columns]
        index = X.index
    else:
        X = np.asarray(X)
        if X.ndim != 2:
            raise ConfigurationError(f"Feature matrix must be 2D, got shape {X.shape}")
        feature_names = [f"x{i}" for i in range(X.shape[1])]
        index = pd.RangeIndex(X.shape[0])

    try:
        values = to_numpy(X)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Feature matrix must be numeric: {e}") from e
    if values.shape[1] == 0:
        raise ConfigurationError("Feature matrix has no columns.")

    task.validate_against(index)
    derived = task.labels(index)

    if derived is not None:
        response = derived.astype(np.float64)
        if y is not None:
            supplied = _response_array(y)
            if len(supplied) != len(response) or not np.array_equal(supplied, response):
                raise ConfigurationError(
                    "Supplied response disagrees with the labels implied by positive_indices."
                )
    else:
        if y is None:
            raise ConfigurationError("Regression requires a response vector.")
        response = _response_array(y)

    if len(response) != values.shape[0]:
        raise ConfigurationError(
            f"Response length {len(response)} does not match {values.shape[0]} matrix rows."
        )
    return PreparedInputs(values, response, feature_names, index)


def _response_array(y) -> np.ndarray:
    try:
        arr = to_numpy(y).ravel()
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Response must be numeric: {e}") from e
    return arr


def check_feature_names(names: Optional[List[str]], p: int) -> List[str]:
    if names is None:
        return [f"x{i}" for i in range(p)]
    names = [str(n) for n in names]
    if len(names) != p:
        raise ConfigurationError(f"Expected {p} feature names, got {len(names)}")
    return names
