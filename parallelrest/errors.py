"""Exceptions raised by parallelrest."""

from __future__ import annotations

from typing import Any


class ParallelRestError(Exception):
    """Base class for errors raised by parallelrest."""


class TransportError(ParallelRestError):
    """The HTTP client failed to execute a request.

    Raised by HTTP clients and recorded on the request's `Outcome`; a
    parallel run never raises it to the caller.
    """

    def __init__(self, message: str, request: Any = None) -> None:
        super().__init__(message)
        self.request = request


class LifecycleError(ParallelRestError):
    """An executor operation was used in the wrong lifecycle state,
    e.g. running a batch after `shutdown()`."""
