# json_codec.py - streamed and buffered JSON (de)serialization for RestClient
"""
Two interchangeable strategies behind one interface:

- StreamingJsonCodec encodes request bodies chunk by chunk with
  ``JSONEncoder.iterencode`` and decodes JSON arrays element by element
  while the response body is still arriving.
- BufferedJsonCodec encodes to one string and decodes ``response.text``.

Both produce the same values for well-formed JSON.
"""
import codecs
import dataclasses
import json
from typing import Any, Iterable, Iterator, List

from rest_errors import CancellationError, SerializationError

CHUNK_SIZE = 1024
_WHITESPACE = " \t\n\r"


def _to_jsonable(obj):
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def check_cancelled(cancel_event):
    if cancel_event is not None and cancel_event.is_set():
        raise CancellationError("request was cancelled")


def convert(value: Any, target=None) -> Any:
    """Turn a decoded JSON value into ``target``.

    ``None`` keeps the JSON value as is, a dataclass type is built from the
    keys of a JSON object, any other callable is applied to the value.
    """
    if target is None:
        return value
    try:
        if dataclasses.is_dataclass(target):
            if not isinstance(value, dict):
                raise TypeError(f"expected a JSON object, got {type(value).__name__}")
            return target(**value)
        return target(value)
    except (TypeError, ValueError, KeyError) as e:
        name = getattr(target, "__name__", repr(target))
        raise SerializationError(f"cannot convert to {name}: {e}") from e


def iter_json_array(chunks: Iterable[bytes]) -> Iterator[Any]:
    """Yield the elements of a JSON array read from a stream of byte chunks.

    A top-level ``null`` yields nothing. Raises ``ValueError`` on malformed or
    truncated input, or when the document is not an array.
    """
    decoder = json.JSONDecoder()
    utf8 = codecs.getincrementaldecoder("utf-8")()
    chunks = iter(chunks)
    buf, pos, eof = "", 0, False
    state = "open"

    while True:
        while pos < len(buf) and buf[pos] in _WHITESPACE:
            pos += 1

        need_more = pos >= len(buf)
        if not need_more:
            if state == "open":
                if buf[pos] != "[":
                    # not an array: decode the remainder as one document
                    rest = buf[pos:] + "".join(utf8.decode(c) for c in chunks)
                    rest += utf8.decode(b"", final=True)
                    if json.loads(rest) is not None:
                        raise ValueError("expected a JSON array")
                    return
                pos += 1
                state = "first"
                continue
            if state == "first" and buf[pos] == "]":
                state = "done"
                pos += 1
            elif state in ("first", "item"):
                try:
                    item, end = decoder.raw_decode(buf, pos)
                except json.JSONDecodeError:
                    if eof:
                        raise
                    need_more = True
                else:
                    # a number cut by a chunk boundary ("1." / "2e") decodes
                    # short; accept only once a separator follows it
                    after = end
                    while after < len(buf) and buf[after] in _WHITESPACE:
                        after += 1
                    if eof or (after < len(buf) and buf[after] in ",]"):
                        yield item
                        pos = end
                        state = "sep"
                    else:
                        need_more = True
            elif state == "sep":
                if buf[pos] == ",":
                    state = "item"
                elif buf[pos] == "]":
                    state = "done"
                else:
                    raise ValueError(f"unexpected {buf[pos]!r} in JSON array")
                pos += 1
            else:
                raise ValueError("extra data after JSON array")

        if need_more:
            if eof:
                if state in ("open", "done"):
                    return
                raise ValueError("truncated JSON array")
            try:
                chunk = next(chunks)
            except StopIteration:
                buf = buf[pos:] + utf8.decode(b"", final=True)
                eof = True
            else:
                buf = buf[pos:] + utf8.decode(chunk)
            pos = 0


class JsonCodec:
    """Serialization strategy used by RestClient."""

    name = "json"

    def encode(self, payload, cancel_event=None):
        raise NotImplementedError

    def decode_collection(self, response, cancel_event=None) -> List[Any]:
        raise NotImplementedError

    def decode_resource(self, response, cancel_event=None) -> Any:
        raise NotImplementedError


class StreamingJsonCodec(JsonCodec):
    name = "stream"

    def __init__(self, chunk_size: int = CHUNK_SIZE):
        self.chunk_size = chunk_size

    def _body_chunks(self, response, cancel_event):
        for chunk in response.iter_content(chunk_size=self.chunk_size):
            check_cancelled(cancel_event)
            if chunk:
                yield chunk

    def encode(self, payload, cancel_event=None):
        # fail before sending when the top-level value is obviously unsupported
        encoder = json.JSONEncoder(default=_to_jsonable)
        pieces = encoder.iterencode(payload)
        try:
            first = next(pieces, "")
        except (TypeError, ValueError) as e:
            raise SerializationError(f"cannot encode payload: {e}") from e
        return self._chunked(first, pieces, cancel_event)

    def _chunked(self, first, pieces, cancel_event):
        pending = [first]
        size = len(first)
        try:
            for piece in pieces:
                pending.append(piece)
                size += len(piece)
                if size >= self.chunk_size:
                    check_cancelled(cancel_event)
                    yield "".join(pending).encode("utf-8")
                    pending, size = [], 0
        except (TypeError, ValueError) as e:
            raise SerializationError(f"cannot encode payload: {e}") from e
        check_cancelled(cancel_event)
        if pending:
            yield "".join(pending).encode("utf-8")

    def decode_collection(self, response, cancel_event=None):
        try:
            return list(iter_json_array(self._body_chunks(response, cancel_event)))
        except ValueError as e:
            raise SerializationError(f"invalid JSON array: {e}") from e

    def decode_resource(self, response, cancel_event=None):
        body = b"".join(self._body_chunks(response, cancel_event))
        if not body.strip():
            return None
        try:
            return json.loads(body)
        except ValueError as e:
            raise SerializationError(f"invalid JSON body: {e}") from e


class BufferedJsonCodec(JsonCodec):
    name = "buffer"

    def encode(self, payload, cancel_event=None):
        try:
            return json.dumps(payload, default=_to_jsonable).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise SerializationError(f"cannot encode payload: {e}") from e

    def _load(self, response, cancel_event):
        if response.encoding is None:
            response.encoding = "utf-8"
        content = response.text
        check_cancelled(cancel_event)
        if not content.strip():
            return None
        try:
            return json.loads(content)
        except ValueError as e:
            raise SerializationError(f"invalid JSON body: {e}") from e

    def decode_collection(self, response, cancel_event=None):
        data = self._load(response, cancel_event)
        if data is None:
            return []
        if not isinstance(data, list):
            raise SerializationError("invalid JSON array: expected a JSON array")
        return data

    def decode_resource(self, response, cancel_event=None):
        return self._load(response, cancel_event)


_STREAMING = StreamingJsonCodec()
_BUFFERED = BufferedJsonCodec()


def codec_for(use_streams: bool) -> JsonCodec:
    return _STREAMING if use_streams else _BUFFERED
