# cutscene/core/interfaces/http_client.py
from abc import ABC, abstractmethod
from typing import Any, Dict

from cutscene.core.models.artifact import ContentPayload

class HttpClientPort(ABC):
    @abstractmethod
    async def __aenter__(self) -> "HttpClientPort":
        """Async context manager entry method"""
        pass

    @abstractmethod
    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit method"""
        pass

    @abstractmethod
    async def get_json(self, url: str, headers: Dict[str, str] | None = None, timeout: float | None = None) -> Dict[str, Any]:
        """Make a GET request and return the parsed JSON body.

        HTTP error statuses raise TransportError carrying the status code.
        The timeout is optional; adapters may use an internal default ClientTimeout
        when timeout is None.
        """
        pass

    @abstractmethod
    async def post_json(self, url: str, json: Dict[str, Any] | None, headers: Dict[str, str] | None = None, timeout: float | None = None) -> Dict[str, Any]:
        """Make a POST request and return the parsed JSON body.

        HTTP error statuses raise TransportError carrying the status code and
        the provider's error message when one can be extracted.
        """
        pass

    @abstractmethod
    async def get_bytes(self, url: str, headers: Dict[str, str] | None = None, params: Dict[str, str] | None = None, timeout: float | None = None) -> ContentPayload:
        """Download a binary body together with its content headers."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the HTTP client session"""
        pass
