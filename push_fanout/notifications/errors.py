"""Failures raised by the notification pipeline.

Per-token delivery problems are not exceptions: they come back as
``DeliveryOutcome`` values. The classes here cover failures of a whole
operation and map onto HTTP status codes at the API boundary.
"""

from __future__ import annotations


class PushPipelineError(Exception):
    status_code: int = 500

    def __init__(self, message: str, *, failed_state: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.failed_state = failed_state


class NoTargetsError(PushPipelineError):
    status_code = 404


class DeliveryError(PushPipelineError):
    """The provider call itself failed, as opposed to returning per-token results."""


class StoreUnavailableError(PushPipelineError):
    """A token or log store operation failed."""


class CleanupJobError(PushPipelineError):
    """Terminal failure of a scheduled cleanup run."""
