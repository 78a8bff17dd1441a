# rest_client.py - JSON REST client wrapper around requests
import math
import os
import threading
from urllib.parse import urljoin, urlsplit

import requests

from json_codec import codec_for, convert
from rest_errors import (
    CancellationError,
    ConfigurationError,
    HttpStatusError,
    RestClientError,
    TransportError,
)
from utils.logger import get_logger

DEFAULT_TIMEOUT = 30  # seconds
JSON_MEDIA_TYPE = "application/json"
_ERROR_BODY_PREVIEW = 500


def _validate_base_url(base_url):
    if not isinstance(base_url, str) or not base_url.strip():
        raise ConfigurationError("base address is required")
    base_url = base_url.strip()
    try:
        parts = urlsplit(base_url)
        parts.port
    except ValueError as e:
        raise ConfigurationError(f"invalid base address {base_url!r}: {e}") from e
    if parts.scheme not in ("http", "https") or not parts.hostname:
        raise ConfigurationError(f"invalid base address {base_url!r}, expected scheme://host:port")
    return base_url


def _valid_timeout(value):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value > 0


def _env_flag(value: str) -> bool:
    return value.strip().lower() not in ("0", "false", "no", "off", "")


class RestClient:
    """GET/POST/DELETE against one base address with JSON payloads.

    All calls share one ``requests.Session`` and one cancellation controller.
    The client adds no locking of its own. ``requests`` does not document
    ``Session`` as thread-safe; concurrent calls from several threads work
    for plain GET/POST/DELETE, but use one client per thread if you also
    mutate session state such as cookies or mounted adapters.
    ``timeout``, ``can_set_timeout`` and ``use_streams`` may be changed at any
    time and are read when a request starts.

    Failure contract:
      - get() never raises at runtime, it logs and returns [].
      - delete() never raises at runtime, it logs and returns False.
      - post() returns [] when cancelled and raises TransportError,
        HttpStatusError or SerializationError otherwise.
    Every soft failure is also passed to ``error_handler(operation, error)``.
    """

    def __init__(self, base_url, timeout=None, can_set_timeout=None, use_streams=True,
                 logger=None, error_handler=None, session=None):
        self.base_url = _validate_base_url(base_url)
        self.timeout = timeout
        self.can_set_timeout = (timeout is not None) if can_set_timeout is None else can_set_timeout
        self.use_streams = use_streams
        self.logger = logger or get_logger("rest-client")
        self.error_handler = error_handler
        self.session = session or requests.Session()
        self._cancel_event = threading.Event()

    @classmethod
    def from_env(cls, **kwargs):
        """Build a client from BASE_URL, TIMEOUT and USE_STREAMS."""
        base_url = os.environ.get("BASE_URL", "http://127.0.0.1:8000")
        timeout = os.environ.get("TIMEOUT")
        if timeout is not None:
            try:
                timeout = float(timeout)
            except ValueError as e:
                raise ConfigurationError(f"TIMEOUT must be a number of seconds, got {timeout!r}") from e
        use_streams = _env_flag(os.environ.get("USE_STREAMS", "1"))
        return cls(base_url, timeout=timeout, use_streams=use_streams, **kwargs)

    @property
    def timeout(self):
        return self._timeout

    @timeout.setter
    def timeout(self, value):
        if value is not None and not _valid_timeout(value):
            raise ConfigurationError(f"timeout must be a positive number of seconds, got {value!r}")
        self._timeout = value

    @property
    def effective_timeout(self):
        if self.can_set_timeout and self._timeout is not None:
            return self._timeout
        return DEFAULT_TIMEOUT

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def _url(self, endpoint):
        return urljoin(self.base_url, endpoint)

    def _send(self, method, endpoint, cancel_event, data=None, stream=False):
        if cancel_event.is_set():
            raise CancellationError("client was cancelled, call renew_cancellation() before new requests")
        url = self._url(endpoint)
        headers = {"Accept": JSON_MEDIA_TYPE}
        if data is not None:
            headers["Content-Type"] = JSON_MEDIA_TYPE

        self.logger.info("%s %s", method, url)
        try:
            resp = self.session.request(method, url, headers=headers, data=data,
                                        timeout=self.effective_timeout, stream=stream)
        except requests.RequestException as e:
            raise TransportError(f"{method} {url} failed: {e}") from e
        self.logger.info("Status %s for %s %s", resp.status_code, method, url)

        if cancel_event.is_set():
            resp.close()
            raise CancellationError(f"{method} {url} was cancelled")
        if not 200 <= resp.status_code < 300:
            try:
                body = resp.text[:_ERROR_BODY_PREVIEW]
            except requests.RequestException:
                body = ""
            finally:
                resp.close()
            raise HttpStatusError(resp.status_code, url, body)
        return resp

    @staticmethod
    def _read(decode, resp, cancel_event):
        try:
            return decode(resp, cancel_event)
        except requests.RequestException as e:
            raise TransportError(f"reading response from {resp.url} failed: {e}") from e

    def _soft_fail(self, operation, endpoint, error):
        self.logger.warning("%s %s failed (%s): %s", operation, endpoint, type(error).__name__, error)
        if self.error_handler is not None:
            self.error_handler(operation, error)

    def get(self, endpoint, target=None) -> list:
        """Fetch a JSON array from ``endpoint`` and convert each element to ``target``."""
        cancel_event = self._cancel_event
        use_streams = self.use_streams
        codec = codec_for(use_streams)
        try:
            with self._send("GET", endpoint, cancel_event, stream=use_streams) as resp:
                items = self._read(codec.decode_collection, resp, cancel_event)
            return [convert(item, target) for item in items]
        except RestClientError as e:
            self._soft_fail("GET", endpoint, e)
            return []

    def post(self, endpoint, payload, target=None) -> list:
        """Create a resource; returns ``[created]``, or ``[]`` for a null body or cancellation."""
        cancel_event = self._cancel_event
        use_streams = self.use_streams
        codec = codec_for(use_streams)
        try:
            body = codec.encode(payload, cancel_event)
            with self._send("POST", endpoint, cancel_event, data=body, stream=use_streams) as resp:
                created = self._read(codec.decode_resource, resp, cancel_event)
        except CancellationError as e:
            self._soft_fail("POST", endpoint, e)
            return []
        if created is None:
            return []
        return [convert(created, target)]

    def delete(self, endpoint) -> bool:
        """Delete the resource at ``endpoint``; False means the delete did not succeed."""
        cancel_event = self._cancel_event
        try:
            with self._send("DELETE", endpoint, cancel_event):
                pass
        except RestClientError as e:
            self._soft_fail("DELETE", endpoint, e)
            return False
        return True

    def cancel_request(self):
        """Cancel every in-flight and future request on this client.

        A request still waiting for response headers is not interrupted: it
        notices the cancellation once the headers arrive, or fails when
        ``effective_timeout`` expires. Requests reading a streamed body stop
        at the next chunk.
        """
        self.logger.info("Cancellation requested for %s", self.base_url)
        self._cancel_event.set()

    def renew_cancellation(self):
        """Start a new cancel scope after cancel_request().

        Requests that started before the renewal stay cancelled.
        """
        if self._cancel_event.is_set():
            self._cancel_event = threading.Event()

    def close(self):
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False
