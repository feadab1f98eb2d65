class GatewayError(Exception):
    """Base error; carries the HTTP status the API layer answers with."""

    status_code = 500
    code = "internal_error"
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def headers(self) -> dict[str, str]:
        return {}


class UpstreamConnectionError(GatewayError):
    status_code = 503
    code = "service_offline"
    default_message = "Upstream service is unreachable"


class UpstreamAuthError(GatewayError):
    status_code = 502
    code = "upstream_auth"
    default_message = "Upstream service rejected the configured credentials"


class UpstreamError(GatewayError):
    status_code = 502
    code = "upstream_error"
    default_message = "Upstream service returned an unexpected response"


class ServiceNotConfiguredError(GatewayError):
    status_code = 503
    code = "not_configured"
    default_message = "Service is not configured"


class NotReadyError(GatewayError):
    status_code = 503
    code = "not_ready"
    default_message = "Requested range is not downloaded yet"

    def __init__(self, message: str | None = None, retry_after: int = 5):
        super().__init__(message)
        self.retry_after = retry_after

    def headers(self) -> dict[str, str]:
        return {"Retry-After": str(self.retry_after)}


class NotFoundError(GatewayError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found"


class GoneError(NotFoundError):
    """The torrent or file existed but has been removed upstream."""

    code = "gone"
    default_message = "Torrent or file no longer exists"


class RangeNotSatisfiableError(GatewayError):
    status_code = 416
    code = "range_not_satisfiable"
    default_message = "Requested range is beyond the end of the file"

    def __init__(self, size: int, message: str | None = None):
        super().__init__(message)
        self.size = size

    def headers(self) -> dict[str, str]:
        return {"Content-Range": f"bytes */{self.size}"}


class InvalidRequestError(GatewayError):
    status_code = 400
    code = "bad_request"
    default_message = "Bad request"
