"""
Request registry for parallel execution.

Holds pending requests keyed by a freshly generated identifier. The registry
only grows: running a batch does not clear it, so a second run re-dispatches
every request still registered.
"""

from __future__ import annotations

import logging
import threading
import uuid
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union

from .types import PendingRequest

logger = logging.getLogger(__name__)


class Registration(Enum):
    """Marker returned by `register_many` when no sequence was given."""

    NOT_PROVIDED = "not_provided"


def new_request_id() -> str:
    return str(uuid.uuid4())


class RequestRegistry:
    """
    Thread-safe mapping of request id to pending request.

    Example:
        >>> registry = RequestRegistry()
        >>> request_id = registry.register(HttpRequest.get("https://example.com"))
        >>> request_id in registry
        True
    """

    def __init__(self) -> None:
        self._requests: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def register(self, request: Any) -> str:
        """
        Register a single request.

        A fresh id is returned even for a `None` request, but nothing is
        stored for it and it never takes part in a run.
        """
        request_id = new_request_id()
        if request is None:
            logger.debug("Ignoring registration of empty request (id=%s)", request_id)
            return request_id

        with self._lock:
            self._requests[request_id] = request
        logger.debug("Registered request %s", request_id)
        return request_id

    def register_many(
        self,
        requests: Optional[Iterable[Any]],
    ) -> Union[Dict[str, Any], Registration]:
        """
        Register a sequence of requests.

        Args:
            requests: Requests to register, or None

        Returns:
            `Registration.NOT_PROVIDED` when `requests` is None, otherwise a
            new dict of id -> request in input order (empty for an empty
            sequence). `None` items are skipped.
        """
        if requests is None:
            return Registration.NOT_PROVIDED

        added: Dict[str, Any] = {}
        for request in requests:
            if request is None:
                continue
            added[new_request_id()] = request

        if added:
            with self._lock:
                self._requests.update(added)
            logger.debug("Registered %d requests", len(added))
        return added

    def snapshot(self) -> Dict[str, Any]:
        """Copy of the current id -> request mapping."""
        with self._lock:
            return dict(self._requests)

    def pending(self) -> List[PendingRequest]:
        return [
            PendingRequest(request_id=request_id, request=request)
            for request_id, request in self.snapshot().items()
        ]

    def get(self, request_id: str) -> Any:
        with self._lock:
            return self._requests.get(request_id)

    def __contains__(self, request_id: object) -> bool:
        with self._lock:
            return request_id in self._requests

    def __len__(self) -> int:
        with self._lock:
            return len(self._requests)

    def __iter__(self) -> Iterator[str]:
        return iter(self.snapshot())

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(pending={len(self)})"
