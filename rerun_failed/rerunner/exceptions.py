"""Rerunner exceptions."""


class RerunError(Exception):
    """A failure that aborts the whole pass.

    Raised when the target runs cannot be resolved: a named PR cannot be
    fetched, the open PR list cannot be fetched, or a repository-wide run
    listing fails. The underlying error is chained as ``__cause__``.
    """
