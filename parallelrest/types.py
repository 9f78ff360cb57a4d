from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class HttpRequest:
    """
    A fully constructed HTTP request for the default requests-based client.

    The executor treats registered requests as opaque values; this type is
    only interpreted by `RequestsHttpClient`.
    """

    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    params: Optional[Dict[str, Any]] = None
    data: Any = None
    json: Any = None
    timeout: Optional[float] = None

    @classmethod
    def get(cls, url: str, **kwargs: Any) -> "HttpRequest":
        return cls(method="GET", url=url, **kwargs)

    @classmethod
    def post(cls, url: str, **kwargs: Any) -> "HttpRequest":
        return cls(method="POST", url=url, **kwargs)


@dataclass(frozen=True)
class PendingRequest:
    request_id: str
    request: Any


@dataclass
class Outcome:
    """Result of executing one registered request.

    Attributes:
        request_id: Identifier assigned when the request was registered
        response: Response returned by the HTTP client (if successful)
        error: Exception raised by the HTTP client (if failed)
        latency_ms: Time spent in the HTTP client in milliseconds
    """

    request_id: str
    response: Any = None
    error: Optional[BaseException] = None
    latency_ms: float = 0.0

    @property
    def success(self) -> bool:
        return self.error is None
