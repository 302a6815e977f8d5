from typing import Optional

import requests

INVALID_CREDENTIAL = "invalid_credential"
PERMISSION_DENIED = "permission_denied"
NOT_FOUND = "not_found"
RATE_LIMITED = "rate_limited"
BAD_REQUEST = "bad_request"
UPSTREAM_ERROR = "upstream_error"
TIMEOUT = "timeout"
NETWORK_ERROR = "network_error"
MALFORMED_RESPONSE = "malformed_response"
CANCELLED = "cancelled"
ENCODING_FAILED = "encoding_failed"

REASONS = {
    INVALID_CREDENTIAL: "The API key is invalid.",
    PERMISSION_DENIED: "The API key is not allowed to read this endpoint.",
    NOT_FOUND: "The endpoint does not exist on this service.",
    RATE_LIMITED: "Too many requests; the API rate limit was reached.",
    BAD_REQUEST: "The API rejected the request.",
    UPSTREAM_ERROR: "The API returned a server error.",
    TIMEOUT: "The API did not respond in time.",
    NETWORK_ERROR: "Could not reach the service. Check the service ID.",
    MALFORMED_RESPONSE: "The API returned an unexpected response.",
    CANCELLED: "The export was cancelled.",
    ENCODING_FAILED: "The records could not be converted to CSV.",
}

_STATUS_CATEGORIES = {
    400: BAD_REQUEST,
    401: INVALID_CREDENTIAL,
    403: PERMISSION_DENIED,
    404: NOT_FOUND,
    429: RATE_LIMITED,
}


class ExportError(Exception):
    """Base class for every error raised by the exporter."""


class ConfigError(ExportError, ValueError):
    """Raised before any request is made when the configuration is unusable."""


class ArchiveError(ExportError):
    """Raised when the zip payload cannot be built."""


class FetchError(ExportError):
    """A failure fetching one endpoint, translated to a stable category."""

    def __init__(
        self, endpoint: str, category: str, detail: Optional[str] = None
    ):
        self.endpoint = endpoint
        self.category = category
        self.detail = detail
        super().__init__(f"[{endpoint}] {self.reason}")

    @property
    def reason(self) -> str:
        return REASONS.get(self.category, REASONS[BAD_REQUEST])


def category_for_status(status: int) -> str:
    if status in _STATUS_CATEGORIES:
        return _STATUS_CATEGORIES[status]
    if status >= 500:
        return UPSTREAM_ERROR
    return BAD_REQUEST


def translate_exception(endpoint: str, e: Exception) -> FetchError:
    """Map a transport/HTTP/decoding exception onto a FetchError category.

    The raw exception text is kept in ``detail`` for the operator log only.
    """
    if isinstance(e, FetchError):
        return e
    if isinstance(e, requests.HTTPError):
        status = getattr(e.response, "status_code", None) or 0
        return FetchError(endpoint, category_for_status(status), str(e))
    if isinstance(e, requests.Timeout):
        return FetchError(endpoint, TIMEOUT, str(e))
    if isinstance(e, requests.ConnectionError):
        return FetchError(endpoint, NETWORK_ERROR, str(e))
    # a malformed service id yields an unusable URL; these also subclass ValueError
    if isinstance(
        e,
        (
            requests.exceptions.InvalidURL,
            requests.exceptions.MissingSchema,
            requests.exceptions.InvalidSchema,
        ),
    ):
        return FetchError(endpoint, NETWORK_ERROR, str(e))
    # requests' JSONDecodeError subclasses ValueError
    if isinstance(e, ValueError):
        return FetchError(endpoint, MALFORMED_RESPONSE, str(e))
    if isinstance(e, requests.RequestException):
        return FetchError(endpoint, NETWORK_ERROR, str(e))
    return FetchError(endpoint, MALFORMED_RESPONSE, f"{type(e).__name__}: {e}")
