import numpy as np
import pandas as pd
import pytest

from lassostab import RegularizationPathSolver


@pytest.fixture
def small_solver():
    return RegularizationPathSolver(n_lambdas=15)


@pytest.fixture
def regression_data():
    rng = np.random.default_rng(42)
    n, p = 100, 3
    X = pd.DataFrame(rng.normal(size=(n, p)), columns=[f"f{i}" for i in range(p)])
    y = 2.0 * X["f0"] + 0.5 * X["f1"] + rng.normal(size=n) * 0.5
    return X, y


@pytest.fixture
def classification_data():
    rng = np.random.default_rng(7)
    n, p = 200, 3
    X = pd.DataFrame(
        rng.normal(size=(n, p)),
        columns=[f"f{i}" for i in range(p)],
        index=[f"s{i}" for i in range(n)],
    )
    score = X["f0"] + rng.normal(size=n) * 0.5
    positives = score.nlargest(10).index.tolist()
    return X, positives


@pytest.fixture
def binomial_solver():
    return RegularizationPathSolver(n_lambdas=12, lambda_min_ratio=0.05, max_iter=500)
