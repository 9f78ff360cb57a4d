"""HTTP client collaborators."""

from .client import DEFAULT_USER_AGENT, BaseHttpClient, RequestsHttpClient

__all__ = [
    "DEFAULT_USER_AGENT",
    "BaseHttpClient",
    "RequestsHttpClient",
]
