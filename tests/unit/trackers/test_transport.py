"""Tests for the shared HTTP transport and its status mapping."""
from unittest.mock import MagicMock

import httpx
import pytest

from track.core.exceptions import (
    ApiError,
    HttpError,
    IssueNotFoundError,
    ParseError,
    RateLimitedError,
    UnauthorizedError,
)
from track.trackers.transport import HttpTransport, default_error_message


@pytest.fixture
def transport() -> HttpTransport:
    return HttpTransport("https://tracker.test/api/", headers={"Authorization": "Bearer t"}, timeout=5)


class TestRequest:
    def test_builds_url_and_drops_none_params(self, transport, mock_http: MagicMock, http_response) -> None:
        mock_http.return_value = http_response(200, {"ok": True})

        assert transport.get("/issues", params={"q": "x", "skip": None}) == {"ok": True}

        args, kwargs = mock_http.call_args
        assert args == ("GET", "https://tracker.test/api/issues")
        assert kwargs["params"] == {"q": "x"}
        assert kwargs["headers"]["Authorization"] == "Bearer t"
        assert kwargs["headers"]["Accept"] == "application/json"

    def test_json_body_is_forwarded(self, transport, mock_http: MagicMock, http_response) -> None:
        mock_http.return_value = http_response(201, {"id": "1"})
        transport.post("/issues", json={"summary": "s"})
        assert mock_http.call_args.kwargs["json"] == {"summary": "s"}

    def test_empty_body_decodes_to_none(self, transport, mock_http: MagicMock, http_response) -> None:
        mock_http.return_value = http_response(204)
        assert transport.delete("/issues/1") is None

    def test_invalid_json_is_parse_error(self, transport, mock_http: MagicMock, http_response) -> None:
        mock_http.return_value = http_response(200, text="<html>")
        with pytest.raises(ParseError):
            transport.get("/issues")


class TestStatusMapping:
    @pytest.mark.parametrize("status", [401, 403])
    def test_unauthorized(self, transport, mock_http: MagicMock, http_response, status: int) -> None:
        mock_http.return_value = http_response(status, {"message": "nope"})
        with pytest.raises(UnauthorizedError):
            transport.get("/issues")

    def test_429_is_rate_limited(self, transport, mock_http: MagicMock, http_response) -> None:
        mock_http.return_value = http_response(429, headers={"retry-after": "17"})
        with pytest.raises(RateLimitedError) as exc_info:
            transport.get("/issues")
        assert exc_info.value.retry_after == 17

    def test_403_with_exhausted_quota_is_rate_limited(self, transport, mock_http: MagicMock, http_response) -> None:
        mock_http.return_value = http_response(403, headers={"x-ratelimit-remaining": "0"})
        with pytest.raises(RateLimitedError):
            transport.get("/issues")

    def test_404_uses_supplied_error(self, transport, mock_http: MagicMock, http_response) -> None:
        mock_http.return_value = http_response(404, {"message": "gone"})
        with pytest.raises(IssueNotFoundError):
            transport.get("/issues/X-1", not_found=IssueNotFoundError("X-1"))

    def test_404_without_hint_is_api_error(self, transport, mock_http: MagicMock, http_response) -> None:
        mock_http.return_value = http_response(404, {"message": "gone"})
        with pytest.raises(ApiError) as exc_info:
            transport.get("/nowhere")
        assert exc_info.value.status == 404
        assert exc_info.value.message == "gone"

    def test_server_error_keeps_text(self, transport, mock_http: MagicMock, http_response) -> None:
        mock_http.return_value = http_response(500, text="upstream exploded")
        with pytest.raises(ApiError) as exc_info:
            transport.get("/issues")
        assert exc_info.value.message == "upstream exploded"

    def test_custom_message_extractor(self, mock_http: MagicMock, http_response) -> None:
        transport = HttpTransport("https://t.test", error_message=lambda body: body.get("error"))
        mock_http.return_value = http_response(400, {"error": "bad query"})
        with pytest.raises(ApiError, match="bad query"):
            transport.get("/x")


class TestNetworkFailures:
    def test_timeout(self, transport, mock_http: MagicMock) -> None:
        mock_http.side_effect = httpx.ReadTimeout("slow")
        with pytest.raises(HttpError, match="timeout after 5"):
            transport.get("/issues")

    def test_connect_error(self, transport, mock_http: MagicMock) -> None:
        mock_http.side_effect = httpx.ConnectError("refused")
        with pytest.raises(HttpError, match="ConnectError"):
            transport.get("/issues")


@pytest.mark.parametrize(
    "body,expected",
    [
        ({"message": "top"}, "top"),
        ({"errors": [{"message": "first"}]}, "first"),
        ({"errors": ["plain"]}, "plain"),
        ({"other": 1}, None),
        ("text", None),
    ],
)
def test_default_error_message(body, expected) -> None:
    assert default_error_message(body) == expected
