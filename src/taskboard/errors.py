# Rev 0.1.0
"""Error taxonomy shared by the repository, the store and the CLI.

Nothing here is retried; every error reaches the immediate caller.
"""
from __future__ import annotations


class TaskboardError(Exception):
    """Base for every error the board raises on purpose."""


class ValidationError(TaskboardError):
    """Payload failed its schema; raised before any backend call."""


class NotFound(TaskboardError):
    """The targeted row does not exist."""


class BackendError(TaskboardError):
    """A query or write failed in the backing store."""


class PartialFailure(BackendError):
    """
    A multi-step operation failed partway.

    `compensated` tells whether the prior state was restored (compensating
    delete for create, transaction rollback for move).
    """

    def __init__(self, message: str, *, compensated: bool) -> None:
        super().__init__(message)
        self.compensated = compensated
