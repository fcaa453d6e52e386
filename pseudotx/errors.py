class PseudoTxError(Exception):
    """Base exception for pseudotx errors."""


class InvalidOperationError(PseudoTxError, ValueError):
    """An operation was constructed with missing or empty fields."""


class BackendWriteError(PseudoTxError):
    """A backend write or marker call reported an error."""


class InsufficientFundsError(PseudoTxError):
    """The wallet balance does not cover the requested amount."""
