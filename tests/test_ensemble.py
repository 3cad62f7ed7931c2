import numpy as np
import pytest

from lassostab import (
    Classification,
    ConfigurationError,
    CrossValidatedFitter,
    EnsembleEvaluator,
    Regression,
    RegularizationPathSolver,
    SolverFailure,
    SplitPolicy,
)


class FlakySolver(RegularizationPathSolver):
    """Fails every second cross-validated fit."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.calls = 0

    def fit_cv(self, *args, **kwargs):
        self.calls += 1
        if self.calls % 2 == 0:
            raise SolverFailure("rank deficient")
        return super().fit_cv(*args, **kwargs)


def _regression_fitter(solver, train_fraction=0.8):
    return CrossValidatedFitter(
        Regression(), split=SplitPolicy(train_fraction, 5), solver=solver,
    )


def test_regression_ensemble_collects_every_trial(regression_data, small_solver):
    X, y = regression_data
    result = EnsembleEvaluator(_regression_fitter(small_solver), n_trials=5).evaluate(X, y)

    correlations = result.correlations()
    assert len(result.trials) == 5
    assert len(correlations) == 5
    assert np.all((correlations >= -1) & (correlations <= 1))
    assert result.n_failed == 0
    assert not result.cancelled
    assert [t.trial for t in result.trials] == list(range(5))


def test_trials_resample_independently(regression_data, small_solver):
    X, y = regression_data
    result = EnsembleEvaluator(_regression_fitter(small_solver), n_trials=3).evaluate(X, y)

    first, second = result.trials[0].test_index, result.trials[1].test_index
    assert not np.array_equal(first, second)


def test_same_seed_reproduces_results(regression_data, small_solver):
    X, y = regression_data
    a = EnsembleEvaluator(_regression_fitter(small_solver), n_trials=4, base_seed=11).evaluate(X, y)
    b = EnsembleEvaluator(_regression_fitter(small_solver), n_trials=4, base_seed=11).evaluate(X, y)
    c = EnsembleEvaluator(_regression_fitter(small_solver), n_trials=4, base_seed=12).evaluate(X, y)

    np.testing.assert_array_equal(a.scores(), b.scores())
    for ta, tb in zip(a.trials, b.trials):
        np.testing.assert_array_equal(ta.train_index, tb.train_index)
        np.testing.assert_array_equal(ta.lambdas, tb.lambdas)
    assert not np.array_equal(a.scores(), c.scores())


def test_results_do_not_depend_on_worker_count(regression_data, small_solver):
    X, y = regression_data
    serial = EnsembleEvaluator(
        _regression_fitter(small_solver), n_trials=4, chunk_size=3,
    ).evaluate(X, y)
    threaded = EnsembleEvaluator(
        _regression_fitter(small_solver), n_trials=4, chunk_size=3, n_jobs=2,
    ).evaluate(X, y)

    np.testing.assert_array_equal(serial.scores(), threaded.scores())
    assert [t.seed for t in serial.trials] == [t.seed for t in threaded.trials]


def test_failed_trials_are_recorded_and_counted(regression_data):
    X, y = regression_data
    solver = FlakySolver(n_lambdas=10)

    with pytest.warns(RuntimeWarning, match="2 of 4 trials failed"):
        result = EnsembleEvaluator(_regression_fitter(solver), n_trials=4).evaluate(X, y)

    assert result.n_failed == 2
    assert [t.failed for t in result.trials] == [False, True, False, True]
    assert result.performances[1] is None
    assert np.isnan(result.scores()[1])
    assert np.isfinite(result.scores()[0])
    with pytest.raises(ConfigurationError):
        result.lambda_sequence(1)
    assert len(result.lambda_sequence(0)) > 0


def test_should_stop_keeps_finished_trials(regression_data, small_solver):
    X, y = regression_data
    polls = []

    def should_stop():
        polls.append(1)
        return len(polls) > 1

    result = EnsembleEvaluator(
        _regression_fitter(small_solver), n_trials=6, chunk_size=2,
    ).evaluate(X, y, should_stop=should_stop)

    assert result.cancelled
    assert len(result.trials) == 2
    assert result.n_requested == 6


def test_classification_ensemble_balances_every_trial(classification_data, binomial_solver):
    X, positives = classification_data
    fitter = CrossValidatedFitter(
        Classification(positives), split=SplitPolicy(0.8, 3), solver=binomial_solver,
    )
    result = EnsembleEvaluator(fitter, n_trials=3).evaluate(X)

    assert len(result.trials) == 3
    assert all(t.n_sampled == 20 for t in result.trials)
    aucs = result.aucs()
    finite = aucs[np.isfinite(aucs)]
    assert np.all((finite >= 0) & (finite <= 1))
    for trial, fpr, tpr in result.roc_curves():
        assert fpr[0] == 0 and tpr[-1] == 1
    with pytest.raises(ValueError):
        result.correlations()


def test_full_train_fraction_ensemble(regression_data, small_solver):
    from lassostab import DegenerateSplitWarning

    X, y = regression_data
    with pytest.warns(DegenerateSplitWarning):
        result = EnsembleEvaluator(
            _regression_fitter(small_solver, train_fraction=1.0), n_trials=2,
        ).evaluate(X, y)

    assert result.performances == [None, None]
    assert np.all(np.isnan(result.scores()))


def test_to_frame_has_one_row_per_trial(regression_data, small_solver):
    X, y = regression_data
    frame = EnsembleEvaluator(_regression_fitter(small_solver), n_trials=3).evaluate(X, y).to_frame()

    assert len(frame) == 3
    assert {"trial", "score", "lambda", "n_train", "n_test", "failed"} <= set(frame.columns)
    assert (frame["n_train"] == 80).all()


def test_invalid_trial_count(regression_data, small_solver):
    X, y = regression_data
    with pytest.raises(ConfigurationError):
        EnsembleEvaluator(_regression_fitter(small_solver), n_trials=0).evaluate(X, y)
