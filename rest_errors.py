# rest_errors.py - error kinds raised by RestClient


class RestClientError(Exception):
    """Base error for the REST client."""


class ConfigurationError(RestClientError):
    """Invalid base address or timeout, raised at construction time."""


class TransportError(RestClientError):
    """Network-level failure (DNS, refused connection, timeout)."""


class CancellationError(RestClientError):
    """The request was aborted through the client's cancellation controller."""


class SerializationError(RestClientError):
    """Body is not valid JSON, has the wrong shape, or cannot be encoded."""


class HttpStatusError(RestClientError):
    """The server answered with a non-2xx status."""

    def __init__(self, status_code, url, body=""):
        super().__init__(f"HTTP {status_code} for {url}")
        self.status_code = status_code
        self.url = url
        self.body = body
