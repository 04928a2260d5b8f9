# cutscene/adapters/aiohttp_client_adapter.py
import asyncio
import aiohttp
from typing import Any, Dict, Optional

from cutscene.core.interfaces.http_client import HttpClientPort
from cutscene.core.exceptions import TransportError
from cutscene.core.models.artifact import ContentPayload
from cutscene.core.settings import logger


def _extract_error_message(body: Any) -> Optional[str]:
    """Pull a human-readable message out of a provider error body.

    OpenAI nests it under error.message, Replicate uses detail/title.
    """
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        for key in ("detail", "message", "title"):
            if body.get(key):
                return str(body[key])
    if isinstance(body, str) and body.strip():
        return body.strip()[:200]
    return None


class AioHttpClientAdapter(HttpClientPort):
    def __init__(self, total_timeout: float = 30.0, download_timeout: float = 300.0):
        self._session: Optional[aiohttp.ClientSession] = None
        # Per-field timeouts are fixed at init time so callers don't need to
        # construct ClientTimeout objects themselves. Video downloads get a
        # longer total budget than JSON calls.
        self._default_sock_read: float = 30.0
        self._default_sock_connect: float = 10.0
        self._default_client_timeout = aiohttp.ClientTimeout(
            total=total_timeout,
            sock_read=self._default_sock_read,
            sock_connect=self._default_sock_connect,
        )
        self._download_client_timeout = aiohttp.ClientTimeout(
            total=download_timeout,
            sock_read=self._default_sock_read,
            sock_connect=self._default_sock_connect,
        )

    async def __aenter__(self):
        """Async context manager entry"""
        self._session = aiohttp.ClientSession()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        await self.close()
        return False

    def _timeout(self, timeout: float | None, default: aiohttp.ClientTimeout) -> aiohttp.ClientTimeout:
        if timeout is None:
            return default
        # Keep adapter-level sock_read/sock_connect values but apply provided total
        return aiohttp.ClientTimeout(
            total=timeout,
            sock_read=self._default_sock_read,
            sock_connect=self._default_sock_connect,
        )

    def _require_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError("HTTP client not initialized. Use 'async with' context manager.")
        return self._session

    async def get_json(self, url: str, headers: Dict[str, str] | None = None, timeout: float | None = None) -> Dict[str, Any]:
        return await self._request_json(
            "GET", url, headers=headers, timeout=self._timeout(timeout, self._default_client_timeout)
        )

    async def post_json(self, url: str, json: Dict[str, Any] | None, headers: Dict[str, str] | None = None, timeout: float | None = None) -> Dict[str, Any]:
        return await self._request_json(
            "POST", url, headers=headers, json=json, timeout=self._timeout(timeout, self._default_client_timeout)
        )

    async def _request_json(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        """Send a request and parse its JSON body.

        Translates HTTP/network errors into TransportError.
        """
        session = self._require_session()
        try:
            async with session.request(method, url, **kwargs) as response:
                try:
                    body = await response.json()
                except (aiohttp.ContentTypeError, ValueError):
                    body = await response.text()

                if response.status >= 400:
                    message = _extract_error_message(body) or f"HTTP {response.status}"
                    logger.error(
                        f"HTTP error from provider. method={method} url={url} status={response.status} message={message}"
                    )
                    raise TransportError(message, status=response.status, url=url)

                if not isinstance(body, dict):
                    logger.error(
                        "Invalid JSON response from provider. URL: %s, Content: %s",
                        url,
                        str(body)[:500],
                    )
                    raise TransportError(
                        "The response from the provider was not valid JSON.",
                        status=502,
                        url=url,
                        diagnostic=str(body)[:100],
                    )
                return body

        except asyncio.TimeoutError:
            logger.error("Timeout when requesting provider. method=%s URL: %s", method, url)
            raise TransportError("The request to the provider timed out.", url=url, timeout=True)

        except aiohttp.ClientError as client_error:
            logger.error(
                "Connection error when requesting provider. URL: %s, Error: %s",
                url,
                str(client_error),
            )
            raise TransportError(
                f"Connection error with the provider: {client_error}", url=url
            )

    async def get_bytes(self, url: str, headers: Dict[str, str] | None = None, params: Dict[str, str] | None = None, timeout: float | None = None) -> ContentPayload:
        session = self._require_session()
        client_timeout = self._timeout(timeout, self._download_client_timeout)
        try:
            async with session.get(url, headers=headers, params=params, timeout=client_timeout) as response:
                if response.status >= 400:
                    try:
                        body = await response.json()
                    except (aiohttp.ContentTypeError, ValueError):
                        body = await response.text()
                    message = _extract_error_message(body) or f"HTTP {response.status}"
                    # 404 is the normal "not rendered yet" answer; keep it quiet
                    if response.status == 404:
                        logger.debug(f"Content not found url={url}")
                    else:
                        logger.error(
                            f"HTTP error downloading content. url={url} status={response.status} message={message}"
                        )
                    raise TransportError(message, status=response.status, url=url)

                data = await response.read()
                length = response.headers.get("Content-Length")
                return ContentPayload(
                    data=data,
                    content_type=response.headers.get("Content-Type") or "video/mp4",
                    content_length=int(length) if length and length.isdigit() else len(data),
                    content_disposition=response.headers.get("Content-Disposition"),
                )

        except asyncio.TimeoutError:
            logger.error("Timeout when downloading content. URL: %s", url)
            raise TransportError("The content download timed out.", url=url, timeout=True)

        except aiohttp.ClientError as client_error:
            logger.error(
                "Connection error when downloading content. URL: %s, Error: %s",
                url,
                str(client_error),
            )
            raise TransportError(
                f"Connection error while downloading content: {client_error}", url=url
            )

    async def close(self) -> None:
        """Close the session"""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
