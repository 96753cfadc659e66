"""Synchronous HTTP transport shared by the REST adapters.

The transport holds only immutable configuration (base URL, headers, auth,
timeout) and opens a short-lived httpx client per call, so one instance can
be shared across threads for read-only use.
"""
import time
from collections.abc import Callable
from typing import Any

import httpx
from loguru import logger

from track.core.constants import DEFAULT_TIMEOUT
from track.core.exceptions import (
    ApiError,
    HttpError,
    ParseError,
    RateLimitedError,
    TrackError,
    UnauthorizedError,
)


MessageExtractor = Callable[[Any], str | None]


def default_error_message(body: Any) -> str | None:
    """Pull a server message out of a decoded error body.

    Looks at ``message``, then ``errors[0].message``.
    """
    if not isinstance(body, dict):
        return None
    message = body.get("message")
    if isinstance(message, str) and message:
        return message
    errors = body.get("errors")
    if isinstance(errors, list) and errors:
        first = errors[0]
        if isinstance(first, dict) and first.get("message"):
            return str(first["message"])
        if isinstance(first, str):
            return first
    return None


def _retry_after(response: httpx.Response) -> int | None:
    raw = response.headers.get("retry-after")
    if raw and raw.isdigit():
        return int(raw)
    reset = response.headers.get("x-ratelimit-reset")
    if reset and reset.isdigit():
        return max(0, int(reset) - int(time.time()))
    return None


def is_rate_limited(response: httpx.Response) -> bool:
    if response.status_code == 429:
        return True
    return response.status_code == 403 and response.headers.get("x-ratelimit-remaining") == "0"


class HttpTransport:
    """Request/response transport with auth headers and status-to-error mapping.

    Args:
        base_url: Root URL every path is appended to.
        headers: Headers sent with each request (auth headers included).
        auth: Optional httpx basic-auth tuple.
        timeout: Seconds before a request fails with HttpError.
        error_message: Backend-specific extractor for server messages.
    """

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        auth: tuple[str, str] | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        error_message: MessageExtractor = default_error_message,
    ):
        self.base_url = base_url.rstrip("/")
        self.headers = {"Accept": "application/json", **(headers or {})}
        self.auth = auth
        self.timeout = timeout
        self._error_message = error_message

    def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        not_found: TrackError | None = None,
    ) -> httpx.Response:
        """Send a request and fold any failure into the neutral taxonomy.

        Args:
            method: HTTP verb.
            path: Path below base_url, starting with '/'.
            params: Query parameters; None values are dropped.
            json: JSON body.
            not_found: Error to raise on 404 instead of ApiError.

        Returns:
            The successful response.

        Raises:
            UnauthorizedError: On 401, or 403 without a rate-limit marker.
            RateLimitedError: On 429, or 403 with ``x-ratelimit-remaining: 0``.
            ApiError: On any other non-success status.
            HttpError: On connection failures and timeouts.
        """
        url = f"{self.base_url}{path}"
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        start = time.monotonic()
        try:
            with httpx.Client(timeout=self.timeout, auth=self.auth) as client:
                response = client.request(method, url, params=params, json=json, headers=self.headers)
        except httpx.TimeoutException as e:
            raise HttpError(f"timeout after {self.timeout}s: {url}") from e
        except httpx.HTTPError as e:
            raise HttpError(f"{e.__class__.__name__}: {e}") from e

        logger.debug(
            "HTTP request",
            method=method,
            url=url,
            status=response.status_code,
            elapsed_ms=int((time.monotonic() - start) * 1000),
        )

        if response.is_success:
            return response
        raise self._status_error(response, not_found)

    def _status_error(self, response: httpx.Response, not_found: TrackError | None) -> TrackError:
        status = response.status_code
        if is_rate_limited(response):
            return RateLimitedError(retry_after=_retry_after(response))
        if status in (401, 403):
            return UnauthorizedError()
        if status == 404 and not_found is not None:
            return not_found
        return ApiError(status, self.error_text(response))

    def error_text(self, response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        message = self._error_message(body) if body is not None else None
        if message:
            return message
        return response.text.strip() or response.reason_phrase or f"HTTP {response.status_code}"

    @staticmethod
    def decode(response: httpx.Response) -> Any:
        """Decode a JSON body; an empty body decodes to None.

        Raises:
            ParseError: If the body is not valid JSON.
        """
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ParseError(f"invalid JSON in response: {e}") from e

    def get(self, path: str, **kwargs: Any) -> Any:
        return self.decode(self.request("GET", path, **kwargs))

    def post(self, path: str, **kwargs: Any) -> Any:
        return self.decode(self.request("POST", path, **kwargs))

    def put(self, path: str, **kwargs: Any) -> Any:
        return self.decode(self.request("PUT", path, **kwargs))

    def patch(self, path: str, **kwargs: Any) -> Any:
        return self.decode(self.request("PATCH", path, **kwargs))

    def delete(self, path: str, **kwargs: Any) -> Any:
        return self.decode(self.request("DELETE", path, **kwargs))
