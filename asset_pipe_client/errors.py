"""Error definitions for asset_pipe_client.

Every error carries a stable ``code`` attribute for structured handling,
in addition to a human-readable message.
"""

from __future__ import annotations

from typing import Any

# Error code constants
ASSET_PIPE_ERROR = "asset_pipe_error"
VALIDATION_ERROR = "validation"
CLIENT_ERROR = "client_error"
SERVER_ERROR = "server_error"
NETWORK_ERROR = "network_error"
TIMEOUT_ERROR = "timeout"
SYNC_PARSE_ERROR = "sync_parse_error"

UNKNOWN_SERVER_ERROR_MESSAGE = (
    "Asset build server responded with unknown error. Http status {status_code}"
)


class AssetPipeError(Exception):
    """Base error for all asset pipe client failures."""

    def __init__(self, message: str, code: str = ASSET_PIPE_ERROR) -> None:
        """Initialize AssetPipeError.

        Args:
            message: Error description.
            code: Error code for structured error handling.
        """
        super().__init__(message)
        self.message = message
        self.code = code


class ValidationError(AssetPipeError, ValueError):
    """Raised when a public operation receives malformed arguments.

    Raised before any network activity takes place.
    """

    def __init__(
        self,
        message: str,
        details: list[dict[str, Any]] | None = None,
        code: str = VALIDATION_ERROR,
    ) -> None:
        super().__init__(message, code=code)
        self.details = details or []


class ClientError(AssetPipeError):
    """Raised when the build server rejects a request with HTTP 400."""

    def __init__(
        self, message: str, status_code: int = 400, code: str = CLIENT_ERROR
    ) -> None:
        super().__init__(message, code=code)
        self.status_code = status_code


class ServerError(AssetPipeError):
    """Raised when the build server answers with an unexpected status."""

    def __init__(
        self,
        status_code: int,
        server_message: str | None = None,
        code: str = SERVER_ERROR,
    ) -> None:
        message = UNKNOWN_SERVER_ERROR_MESSAGE.format(status_code=status_code)
        if server_message:
            message = f"{message}: {server_message}"
        super().__init__(message, code=code)
        self.status_code = status_code
        self.server_message = server_message


class TransportError(AssetPipeError):
    """Raised when the HTTP request itself fails (connection, DNS, timeout)."""

    def __init__(self, message: str, code: str = NETWORK_ERROR) -> None:
        super().__init__(message, code=code)


class SyncParseError(AssetPipeError):
    """Raised when the /sync/ response body is not valid JSON."""

    def __init__(self, message: str, code: str = SYNC_PARSE_ERROR) -> None:
        super().__init__(message, code=code)


def error_from_response(status_code: int, body: Any) -> AssetPipeError:
    """Map a non-success build server response to an error.

    Args:
        status_code: HTTP status code of the response.
        body: Parsed JSON body, or the raw text when it was not JSON.

    Returns:
        ClientError for 400 responses, ServerError for anything else.
    """
    server_message: str | None = None
    if isinstance(body, dict) and body.get("message"):
        server_message = str(body["message"])

    if status_code == 400:
        return ClientError(server_message or str(body or "Bad request"))
    return ServerError(status_code, server_message)


__all__ = [
    "ASSET_PIPE_ERROR",
    "AssetPipeError",
    "CLIENT_ERROR",
    "ClientError",
    "NETWORK_ERROR",
    "SERVER_ERROR",
    "SYNC_PARSE_ERROR",
    "ServerError",
    "SyncParseError",
    "TIMEOUT_ERROR",
    "TransportError",
    "UNKNOWN_SERVER_ERROR_MESSAGE",
    "VALIDATION_ERROR",
    "ValidationError",
    "error_from_response",
]
