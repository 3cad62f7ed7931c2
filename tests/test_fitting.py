import numpy as np
import pandas as pd
import pytest

from lassostab import (
    Classification,
    ConfigurationError,
    CrossValidatedFitter,
    DegenerateSplitWarning,
    FittedPath,
    LambdaCriterion,
    Regression,
    SplitPolicy,
    select_lambda,
)
from lassostab.core.missing import complete_rows


def _path(cv_mean, cv_se):
    lambdas = np.array([1.0, 0.5, 0.25, 0.125])
    return FittedPath(
        lambdas=lambdas,
        cv_mean=np.asarray(cv_mean, dtype=float),
        cv_se=np.asarray(cv_se, dtype=float),
        coefs=np.zeros((4, 3)),
        family="gaussian",
        feature_names=["a", "b"],
        n_folds_used=3,
    )


def test_select_lambda_one_standard_error_and_minimum():
    path = _path([3.0, 2.0, 1.5, 1.4], [0.1, 0.1, 0.2, 0.2])

    one_se = select_lambda(path, LambdaCriterion.ONE_STANDARD_ERROR)
    minimum = select_lambda(path, "min")

    assert one_se.value == 0.25
    assert one_se.index == 2
    assert minimum.value == 0.125
    assert minimum.index == 3


def test_select_lambda_ties_go_to_largest_lambda():
    path = _path([2.0, 1.0, 1.0, 3.0], [0.0, 0.0, 0.0, 0.0])

    assert select_lambda(path, "min").value == 0.5
    assert select_lambda(path, "1se").value == 0.5


def test_select_lambda_rejects_unknown_criterion():
    with pytest.raises(ConfigurationError):
        select_lambda(_path([1, 1, 1, 1], [0, 0, 0, 0]), "median")


def test_split_policy_validation():
    with pytest.raises(ConfigurationError):
        SplitPolicy(train_fraction=0.0)
    with pytest.raises(ConfigurationError):
        SplitPolicy(train_fraction=1.5)
    with pytest.raises(ConfigurationError):
        SplitPolicy(fold_count=2)
    assert SplitPolicy(train_fraction=1.0).holds_out is False
    assert SplitPolicy(train_fraction=0.8).n_train(25) == 20
    assert SplitPolicy(train_fraction=0.5).n_train(5) == 3


def test_classification_requires_positive_indices():
    with pytest.raises(ConfigurationError):
        Classification()
    with pytest.raises(ConfigurationError):
        Classification(None)
    with pytest.raises(ConfigurationError):
        Classification([])


def test_classification_positive_indices_must_exist(classification_data):
    X, _ = classification_data
    fitter = CrossValidatedFitter(Classification(["nope"]), split=SplitPolicy(0.8, 3))
    with pytest.raises(ConfigurationError):
        fitter.fit_trial(X, rng=0)


def test_fold_count_larger_than_rows_is_rejected(regression_data):
    X, y = regression_data
    fitter = CrossValidatedFitter(Regression(), split=SplitPolicy(0.8, 90))
    with pytest.raises(ConfigurationError):
        fitter.fit_trial(X, y, rng=0)


def test_regression_trial_selects_lambda_on_path(regression_data, small_solver):
    X, y = regression_data
    fitter = CrossValidatedFitter(Regression(), split=SplitPolicy(0.8, 5), solver=small_solver)
    result = fitter.fit_trial(X, y, rng=1, keep_path=True)

    assert result.selected.value in result.path.lambdas
    assert result.path.lambdas[result.selected.index] == result.selected.value
    assert -1.0 <= result.performance.correlation <= 1.0
    assert result.performance.correlation > 0.5
    assert result.n_nonzero >= 1


def test_train_test_partition_complete_rows(regression_data, small_solver):
    X, y = regression_data
    X = X.copy()
    X.iloc[[3, 17, 40], 1] = np.nan
    X.iloc[55, 0] = np.inf
    fitter = CrossValidatedFitter(Regression(), split=SplitPolicy(0.7, 5), solver=small_solver)
    result = fitter.fit_trial(X, y, rng=2)

    complete = complete_rows(X.to_numpy(dtype=float), y.to_numpy())
    assert result.n_dropped == 4
    assert len(np.intersect1d(result.train_index, result.test_index)) == 0
    np.testing.assert_array_equal(
        np.sort(np.concatenate([result.train_index, result.test_index])),
        complete,
    )
    assert len(result.train_index) == round(0.7 * 96)


def test_missing_response_rows_are_dropped(regression_data, small_solver):
    X, y = regression_data
    y = y.copy()
    y.iloc[[0, 1]] = np.nan
    fitter = CrossValidatedFitter(Regression(), split=SplitPolicy(0.8, 5), solver=small_solver)
    result = fitter.fit_trial(X, y, rng=3)

    assert result.n_dropped == 2
    assert 0 not in result.train_index and 0 not in result.test_index


def test_full_train_fraction_warns_without_performance(regression_data, small_solver):
    X, y = regression_data
    fitter = CrossValidatedFitter(Regression(), split=SplitPolicy(1.0, 5), solver=small_solver)

    with pytest.warns(DegenerateSplitWarning):
        result = fitter.fit_trial(X, y, rng=4)

    assert result.performance is None
    assert len(result.test_index) == 0
    assert len(result.train_index) == len(X)
    assert result.selected is not None


def test_classification_trial_is_balanced(classification_data, binomial_solver):
    X, positives = classification_data
    fitter = CrossValidatedFitter(
        Classification(positives), split=SplitPolicy(0.8, 3), solver=binomial_solver,
    )
    result = fitter.fit_trial(X, rng=5)

    rows = np.concatenate([result.train_index, result.test_index])
    labels = X.index[rows].isin(positives)
    assert result.n_sampled == 20
    assert labels.sum() == 10
    assert len(rows) == 20
    assert len(result.test_index) == 4
    auc = result.performance.auc
    assert np.isnan(auc) or 0.0 <= auc <= 1.0


def _with_missing_negatives(X, positives, count):
    X = X.copy()
    negatives = X.index[~X.index.isin(positives)]
    X.loc[negatives[:count], "f1"] = np.nan
    return X


def test_classification_negatives_drawn_from_complete_rows(classification_data, binomial_solver):
    X, positives = classification_data
    X = _with_missing_negatives(X, positives, 150)
    fitter = CrossValidatedFitter(
        Classification(positives), split=SplitPolicy(0.8, 3), solver=binomial_solver,
    )
    result = fitter.fit_trial(X, rng=1)

    rows = np.concatenate([result.train_index, result.test_index])
    labels = X.index[rows].isin(positives)
    assert result.n_dropped == 150
    assert result.n_sampled == 20
    assert labels.sum() == 10
    assert (~labels).sum() == 10
    assert np.isfinite(X.to_numpy(dtype=float)[rows]).all()


def test_incomplete_positives_leave_the_balanced_sample(classification_data, binomial_solver):
    X, positives = classification_data
    X = X.copy()
    X.loc[positives[:2], "f2"] = np.nan
    fitter = CrossValidatedFitter(
        Classification(positives), split=SplitPolicy(0.8, 3), solver=binomial_solver,
    )
    result = fitter.fit_trial(X, rng=2)

    rows = np.concatenate([result.train_index, result.test_index])
    labels = X.index[rows].isin(positives)
    assert result.n_sampled == 20
    assert labels.sum() == 8
    assert (~labels).sum() == 10


def test_too_few_complete_negatives_is_rejected(classification_data):
    X, positives = classification_data
    X = _with_missing_negatives(X, positives, 185)
    fitter = CrossValidatedFitter(Classification(positives), split=SplitPolicy(0.8, 3))
    with pytest.raises(ConfigurationError):
        fitter.fit_trial(X, rng=0)


def test_classification_response_must_match_positive_set(classification_data):
    X, positives = classification_data
    wrong = pd.Series(np.zeros(len(X)), index=X.index)
    fitter = CrossValidatedFitter(Classification(positives), split=SplitPolicy(0.8, 3))
    with pytest.raises(ConfigurationError):
        fitter.fit_trial(X, wrong, rng=0)


def test_ndarray_input_gets_generated_names(small_solver):
    rng = np.random.default_rng(9)
    X = rng.normal(size=(60, 2))
    y = X[:, 0] * 3 + rng.normal(size=60) * 0.2
    fitter = CrossValidatedFitter(Regression(), split=SplitPolicy(0.8, 3), solver=small_solver)
    result = fitter.fit_trial(X, y, rng=0, keep_path=True)

    assert result.path.feature_names == ["x0", "x1"]
