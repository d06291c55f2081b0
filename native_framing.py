# native_framing.py
"""
Length-prefixed JSON framing for native messaging over a byte pipe.
Each frame is a 4-byte little-endian length followed by that many bytes of UTF-8 JSON.
"""
from __future__ import annotations

import json
import struct
from typing import Any, Callable, Optional

HEADER = struct.Struct("<I")
HEADER_SIZE = HEADER.size
MAX_LENGTH = 0xFFFFFFFF

AWAITING_LENGTH = "awaiting_length"
AWAITING_PAYLOAD = "awaiting_payload"
DISCARDING = "discarding"


class BridgeError(Exception):
    type = "BRIDGE_ERROR"


class ReceiveError(BridgeError):
    """Inbound payload could not be decoded; `raw` holds the payload text."""
    type = "RECEIVE_ERROR"

    def __init__(self, message: str, raw: str = "") -> None:
        super().__init__(message)
        self.raw = raw


class FrameTooLargeError(ReceiveError):
    def __init__(self, length: int, limit: int) -> None:
        super().__init__(f"frame length {length} exceeds max_frame_size {limit}")
        self.length = length
        self.limit = limit


class SendError(BridgeError):
    type = "SEND_ERROR"


EncodeError = SendError

MessageHandler = Callable[[Any], None]
ErrorHandler = Callable[[ReceiveError, str], None]


def frame_bytes(payload: bytes) -> bytes:
    if len(payload) > MAX_LENGTH:
        raise SendError(f"payload of {len(payload)} bytes does not fit a 32-bit length")
    return HEADER.pack(len(payload)) + payload


def encode_message(message: Any, max_frame_size: Optional[int] = None) -> bytes:
    try:
        text = json.dumps(message, ensure_ascii=False, allow_nan=False, separators=(",", ":"))
    except (TypeError, ValueError, RecursionError) as e:
        raise SendError(str(e)) from e
    try:
        payload = text.encode("utf-8")
    except UnicodeEncodeError:
        # lone surrogates have no UTF-8 form; write them as \uXXXX escapes
        payload = json.dumps(message, ensure_ascii=True, allow_nan=False, separators=(",", ":")).encode("ascii")
    if max_frame_size is not None and len(payload) > max_frame_size:
        raise SendError(f"message of {len(payload)} bytes exceeds limit {max_frame_size}")
    return frame_bytes(payload)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def decode_payload(payload: bytes) -> Any:
    raw = payload.decode("utf-8", errors="replace")
    try:
        return json.loads(raw, parse_constant=_reject_constant)
    except (ValueError, RecursionError) as e:
        raise ReceiveError(str(e), raw) from e


class FrameDecoder:
    """
    Incremental reassembly of frames from arbitrarily sized chunks.

    Every `feed` drains as many complete frames as the buffer holds. Decoded
    messages go to `on_message`; payloads that are not valid JSON go to
    `on_error` as a ReceiveError together with the raw text, and decoding
    carries on with the next frame.
    """

    def __init__(self, on_message: MessageHandler, on_error: ErrorHandler,
                 max_frame_size: Optional[int] = None) -> None:
        self._on_message = on_message
        self._on_error = on_error
        self.max_frame_size = max_frame_size
        self.reset()

    def reset(self) -> None:
        self._buffer = bytearray()
        self._has_length = False
        self._length = 0
        self._skip = 0

    @property
    def state(self) -> str:
        if self._skip:
            return DISCARDING
        return AWAITING_PAYLOAD if self._has_length else AWAITING_LENGTH

    @property
    def pending_length(self) -> int:
        return self._length

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    def feed(self, chunk: bytes) -> None:
        if self._skip:
            chunk = self._discard(chunk)
        self._buffer.extend(chunk)
        while self._next_frame():
            pass

    def _discard(self, chunk: bytes) -> bytes:
        n = min(self._skip, len(chunk))
        self._skip -= n
        return chunk[n:]

    def _next_frame(self) -> bool:
        # handlers may reset the decoder, so state is re-read on every pass
        if not self._has_length:
            if len(self._buffer) < HEADER_SIZE:
                return False
            (length,) = HEADER.unpack_from(self._buffer, 0)
            del self._buffer[:HEADER_SIZE]
            if self.max_frame_size is not None and length > self.max_frame_size:
                self._skip = length
                rest = bytes(self._buffer)
                self._buffer = bytearray()
                self._on_error(FrameTooLargeError(length, self.max_frame_size), "")
                if not self._skip:
                    # reset() from inside the handler
                    return False
                self._buffer.extend(self._discard(rest))
                return not self._skip
            self._length = length
            self._has_length = True

        if len(self._buffer) < self._length:
            return False

        payload = bytes(self._buffer[:self._length])
        del self._buffer[:self._length]
        self._has_length = False
        self._length = 0

        try:
            message = decode_payload(payload)
        except ReceiveError as e:
            self._on_error(e, e.raw)
        else:
            self._on_message(message)
        return True
