import numpy as np
import pytest

from lassostab.core.metrics import binomial_deviance, pearson_performance, roc_performance
from lassostab.core.missing import complete_rows
from lassostab.core.sampling import (
    balanced_indices,
    bootstrap_indices,
    train_test_split_indices,
    trial_rng,
    trial_seed,
)


def test_trial_seeds_are_stable_and_distinct():
    assert trial_seed(42, 0) == trial_seed(42, 0)
    assert trial_seed(42, 0) != trial_seed(42, 1)
    assert trial_seed(42, 0) != trial_seed(43, 0)
    assert trial_rng(1, 2).integers(1_000_000) == trial_rng(1, 2).integers(1_000_000)


def test_balanced_indices_pairs_every_positive():
    labels = np.array([1, 0, 0, 1, 0, 0, 0, 1, 0, 0])
    idx = balanced_indices(labels, np.random.default_rng(0))

    assert len(idx) == 6
    assert set(np.flatnonzero(labels == 1)) <= set(idx)
    assert len(np.unique(idx)) == 6


def test_balanced_indices_draws_negatives_from_candidates():
    labels = np.array([1, 0, 0, 1, 0, 0, 0, 1, 0, 0])
    candidates = np.array([0, 2, 5, 8, 9])
    idx = balanced_indices(labels, np.random.default_rng(0), candidates=candidates)

    negatives = idx[labels[idx] == 0]
    assert len(negatives) == 3
    assert set(negatives) <= {2, 5, 8, 9}

    with pytest.raises(ValueError):
        balanced_indices(labels, np.random.default_rng(0), candidates=np.array([2, 5]))


def test_train_test_split_is_a_partition():
    rows = np.array([0, 2, 3, 5, 8, 9, 11])
    train, test = train_test_split_indices(rows, 5, np.random.default_rng(0))

    assert len(train) == 5
    assert len(np.intersect1d(train, test)) == 0
    np.testing.assert_array_equal(np.sort(np.concatenate([train, test])), rows)


def test_bootstrap_indices_draw_with_replacement():
    idx = bootstrap_indices(50, np.random.default_rng(0))

    assert len(idx) == 50
    assert idx.min() >= 0 and idx.max() < 50
    assert len(np.unique(idx)) < 50


def test_complete_rows_checks_features_and_response():
    X = np.array([[1.0, 2.0], [np.nan, 1.0], [3.0, np.inf], [4.0, 5.0]])
    y = np.array([1.0, 2.0, 3.0, np.nan])

    np.testing.assert_array_equal(complete_rows(X), [0, 3])
    np.testing.assert_array_equal(complete_rows(X, y), [0])
    np.testing.assert_array_equal(complete_rows(X, rows=np.array([3, 1])), [3])


def test_pearson_performance_bounds_and_constant_input():
    perf = pearson_performance([1, 2, 3, 4], [2, 4, 6, 8.5])
    assert -1 <= perf.correlation <= 1
    assert perf.correlation == pytest.approx(1.0, abs=1e-2)

    flat = pearson_performance([1, 2, 3], [5, 5, 5])
    assert np.isnan(flat.correlation)
    assert flat.n_test == 3


def test_roc_performance():
    perf = roc_performance([0, 0, 1, 1], [0.1, 0.4, 0.35, 0.8])
    assert perf.auc == pytest.approx(0.75)
    assert perf.fpr[0] == 0 and perf.tpr[-1] == 1

    one_class = roc_performance([1, 1], [0.2, 0.9])
    assert np.isnan(one_class.auc)


def test_binomial_deviance_prefers_calibrated_probabilities():
    y = np.array([0, 1, 1, 0])
    good = binomial_deviance(y, [0.1, 0.9, 0.8, 0.2])
    bad = binomial_deviance(y, [0.9, 0.1, 0.2, 0.8])
    assert good < bad


def test_binomial_deviance_is_twice_the_log_loss():
    assert binomial_deviance([1, 0], [0.5, 0.5]) == pytest.approx(2.0 * np.log(2.0))
    # one-class folds still score
    assert binomial_deviance([1, 1], [0.9, 0.8]) == pytest.approx(-np.log(0.9) - np.log(0.8))
