"""Errors and warnings raised by lassostab."""


class ConfigurationError(ValueError):
    """Invalid option or input combination. Always fatal, never retried."""


class SolverFailure(RuntimeError):
    """The regularization path could not be fitted or scored."""


class DegenerateSplitWarning(UserWarning):
    """No held-out rows are left, so performance is undefined."""


class NumericalDegeneracy(RuntimeWarning):
    """A coefficient distribution has zero spread and no defined z-score."""
