"""Complete-case row filtering."""

from __future__ import annotations

import numpy as np


def complete_rows(X: np.ndarray, y: np.ndarray | None = None, rows: np.ndarray | None = None) -> np.ndarray:
    """Positions among `rows` with every feature (and the response) finite.

    Parameters
    ----------
    X : ndarray of shape (n, p)
        Feature matrix, may contain NaN/inf.
    y : ndarray of shape (n,), optional
        Response. Rows with a missing response are dropped too.
    rows : ndarray of int, optional
        Candidate positions. Defaults to all rows.

    Returns
    -------
    kept : ndarray of int
        Subset of `rows`, original order preserved. Matrix and response
        must both be indexed with it.
    """
    X = np.asarray(X)
    if X.ndim != 2:
        raise ValueError("complete_rows expects a 2D array")
    if rows is None:
        rows = np.arange(X.shape[0])
    rows = np.asarray(rows, dtype=np.intp)

    ok = np.isfinite(X[rows]).all(axis=1)
    if y is not None:
        y_rows = np.asarray(y, dtype=np.float64)[rows]
        ok &= np.isfinite(y_rows)
    return rows[ok]
