"""Errors shared by the store adapters."""


class StoreError(RuntimeError):
    """Raised when the remote store could not complete a request."""
