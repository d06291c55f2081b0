#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Native messaging echo host
- Reads length-prefixed JSON messages from the browser on stdin
- Echoes each message back on stdout
- Optional raw byte mirrors (sealed when a mirror key is configured)
- Structured JSON logs to stderr or a log file; stdout carries the protocol only
- Exits when the browser closes stdin
"""
import json
import logging
import os
import sys

from host_config import HostConfig, config_path_from_env, load_host_config
from mirror_log import open_mirror
from native_bridge import NativeBridge
from native_framing import SendError

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def configure_logging(config: HostConfig) -> None:
    kwargs = {"filename": config.log_file} if config.log_file else {"stream": sys.stderr}
    logging.basicConfig(level=config.log_level, format=LOG_FORMAT, force=True, **kwargs)


def _mirror_key(config: HostConfig):
    key_hex = os.environ.get(config.mirror_key_env, "")
    return bytes.fromhex(key_hex) if key_hex else None


def build_bridge(argv, stdin, stdout, config: HostConfig) -> NativeBridge:
    key = _mirror_key(config)
    mirror_in = open_mirror(config.mirror_input_path, key, "in") if config.mirror_input_path else None
    mirror_out = open_mirror(config.mirror_output_path, key, "out") if config.mirror_output_path else None

    bridge = None

    def on_message(message):
        logging.info(json.dumps({"event": "message", "origin": bridge.origin, "message": message}))
        try:
            bridge.emit({"echo": message, "origin": bridge.origin})
        except SendError as e:
            logging.error(json.dumps({"event": "send_error", "type": e.type, "error": str(e)}))

    def on_error(err, raw):
        logging.warning(json.dumps({"event": "receive_error", "type": err.type, "error": str(err), "raw": raw}))

    def on_end():
        logging.info(json.dumps({"event": "end", "detail": "stdin ended, exiting native host"}))
        bridge.close()

    bridge = NativeBridge(
        argv, stdin, stdout,
        on_message=on_message,
        on_error=on_error,
        on_end=on_end,
        mirror_input_to=mirror_in,
        mirror_output_to=mirror_out,
        max_frame_size=config.max_frame_size,
        max_outgoing_size=config.max_outgoing_size,
        read_chunk_size=config.read_chunk_size,
    )
    return bridge


def main(argv=None):
    argv = sys.argv if argv is None else argv
    config = load_host_config(config_path_from_env())
    configure_logging(config)

    bridge = build_bridge(argv, sys.stdin.buffer, sys.stdout.buffer, config)
    logging.info(json.dumps({"event": "start", "origin": bridge.origin, "parent_window": bridge.parent_window}))
    try:
        bridge.run()
    except KeyboardInterrupt:
        logging.info("Shutting down")
    finally:
        bridge.close()
        for mirror in (bridge.mirror_input_to, bridge.mirror_output_to):
            if mirror is not None:
                mirror.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
