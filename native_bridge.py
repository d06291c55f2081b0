# native_bridge.py
"""
Native messaging bridge over a pair of byte streams (normally stdin/stdout).
Inbound chunks are reassembled into JSON messages, outbound messages are framed.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, BinaryIO, Callable, List, Optional

from native_framing import FrameDecoder, ErrorHandler, MessageHandler, encode_message

PARENT_WINDOW_FLAG = "--parent-window="

EndHandler = Callable[[], None]


@dataclass(frozen=True)
class HostArgs:
    origin: str
    parent_window: Optional[int] = None


def parse_host_args(argv: List[str]) -> HostArgs:
    # argv from the browser: (script path, origin, parent window handle)
    # the window handle is only passed on Windows
    origin = argv[1] if len(argv) > 1 else ""
    parent_window = None
    if len(argv) > 2 and PARENT_WINDOW_FLAG in argv[2]:
        value = argv[2].split("=")[1]
        try:
            parent_window = int(value)
        except ValueError:
            parent_window = None
    return HostArgs(origin=origin, parent_window=parent_window)


class NativeBridge:
    """
    Pairs one inbound and one outbound byte stream under the native messaging protocol.

    Results only leave the bridge through the three handlers: `on_message(message)`,
    `on_error(err, raw)` and `on_end()`. Optional mirrors get a verbatim copy of every
    chunk read and every frame written.
    """

    def __init__(self, argv: List[str], input: BinaryIO, output: BinaryIO,
                 on_message: MessageHandler, on_error: ErrorHandler, on_end: EndHandler,
                 mirror_input_to=None, mirror_output_to=None,
                 max_frame_size: Optional[int] = None,
                 max_outgoing_size: Optional[int] = None,
                 read_chunk_size: int = 4096) -> None:
        args = parse_host_args(argv)
        self._origin = args.origin
        self._parent_window = args.parent_window

        self.input = input
        self.output = output
        self.mirror_input_to = mirror_input_to
        self.mirror_output_to = mirror_output_to
        self.max_outgoing_size = max_outgoing_size
        self.read_chunk_size = read_chunk_size

        self._on_end = on_end
        self._decoder = FrameDecoder(on_message, on_error, max_frame_size=max_frame_size)
        self._subscribed = True
        self._ended = False
        self._write_lock = threading.Lock()

    @property
    def origin(self) -> str:
        """Origin of the caller, usually chrome-extension://<extension id>/"""
        return self._origin

    @property
    def parent_window(self) -> Optional[int]:
        """Native handle of the calling browser window (Windows only)."""
        return self._parent_window

    @property
    def closed(self) -> bool:
        return not self._subscribed

    def run(self) -> None:
        """Pump the input stream in the calling thread until it ends."""
        read = getattr(self.input, "read1", None) or self.input.read
        while True:
            chunk = read(self.read_chunk_size)
            if not chunk:
                break
            self._on_data_chunk(chunk)
        self._on_input_end()

    def start(self) -> threading.Thread:
        t = threading.Thread(target=self.run, name="native-bridge-input", daemon=True)
        t.start()
        return t

    def _on_data_chunk(self, chunk: bytes) -> None:
        if self.mirror_input_to is not None:
            self.mirror_input_to.write(chunk)
        if not self._subscribed:
            logging.debug("bridge closed, dropping %d inbound bytes", len(chunk))
            return
        self._decoder.feed(chunk)

    def _on_input_end(self) -> None:
        if self._ended:
            return
        self._ended = True
        self._on_end()

    def emit(self, message: Any) -> None:
        """
        Frame `message` as JSON and write it to the output.
        Raises SendError (nothing is written) if the message cannot be serialized.
        """
        frame = encode_message(message, max_frame_size=self.max_outgoing_size)
        with self._write_lock:
            self.output.write(frame)
            if hasattr(self.output, "flush"):
                self.output.flush()
            if self.mirror_output_to is not None:
                self.mirror_output_to.write(frame)

    def close(self) -> None:
        if self._subscribed:
            logging.debug("closing native bridge for %s", self._origin or "<unknown origin>")
        self._subscribed = False
        self._decoder.reset()
