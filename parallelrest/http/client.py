"""HTTP client collaborators used by the parallel executor."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import requests
from requests.adapters import HTTPAdapter

from ..errors import TransportError
from ..types import HttpRequest

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "parallelrest/0.1"


class BaseHttpClient(ABC):
    """
    Blocking HTTP client interface.

    Implementations are shared by all worker threads of an executor and
    must be safe to call concurrently.
    """

    @abstractmethod
    def execute(self, request: Any) -> Any:
        """Execute `request` and return the fully received response."""

    def close(self) -> None:
        """Release connections held by the client."""


class RequestsHttpClient(BaseHttpClient):
    """
    `BaseHttpClient` backed by a `requests.Session`.

    Usage:
        client = RequestsHttpClient(pool_maxsize=10)
        response = client.execute(HttpRequest.get("https://example.com"))
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        pool_maxsize: int = 5,
        user_agent: Optional[str] = None,
        raise_for_status: bool = False,
    ) -> None:
        if session is None:
            user_agent = user_agent or DEFAULT_USER_AGENT
            session = requests.Session()
            # One pooled connection per worker thread
            adapter = HTTPAdapter(pool_connections=pool_maxsize, pool_maxsize=pool_maxsize)
            session.mount("https://", adapter)
            session.mount("http://", adapter)
        self.session = session
        if user_agent:
            self.session.headers.update({"User-Agent": user_agent})
        self.raise_for_status = raise_for_status

    def execute(self, request: HttpRequest) -> requests.Response:
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Making request:\n%s %s\n%s",
                request.method,
                request.url,
                "\n".join(f"{k}: {v}" for k, v in request.headers.items()),
            )

        try:
            response = self.session.request(
                request.method,
                request.url,
                headers=request.headers or None,
                params=request.params,
                data=request.data,
                json=request.json,
                timeout=request.timeout,
            )
            if self.raise_for_status:
                response.raise_for_status()
        except requests.RequestException as e:
            raise TransportError(
                f"{request.method} {request.url} failed: {e}",
                request=request,
            ) from e

        logger.debug(
            "Got response: %s %s -> %d",
            request.method,
            request.url,
            response.status_code,
        )
        return response

    def close(self) -> None:
        self.session.close()
