#!/usr/bin/env python3
"""
Verify sealed mirror logs and optionally replay the captured bytes through the frame decoder.
"""
from __future__ import annotations

import argparse
import base64
import hashlib
import json
import sys
from typing import Any, Dict, Iterable, Iterator, List, Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

from mirror_log import AAD, GENESIS, canonical_json, record_nonce
from native_framing import FrameDecoder


class MirrorIntegrityError(Exception):
    def __init__(self, seq: int, reason: str) -> None:
        super().__init__(f"record {seq}: {reason}")
        self.seq = seq
        self.reason = reason


def iter_records(path: str, key: bytes) -> Iterator[Dict[str, Any]]:
    aead = ChaCha20Poly1305(key)
    chain = GENESIS
    seq = 0

    with open(path, "rb") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            seq += 1
            nonce = record_nonce(key, chain, seq)
            try:
                record_bytes = aead.decrypt(nonce, base64.b64decode(line), AAD)
            except (InvalidTag, ValueError):
                raise MirrorIntegrityError(seq, "AEAD decrypt failed") from None

            record = json.loads(record_bytes.decode("utf-8"))
            if bytes.fromhex(record.get("chain_prev", "")) != chain:
                raise MirrorIntegrityError(seq, "chain_prev mismatch")

            # Recompute chain hash from canonical record sans chain_hash
            record_for_hash = dict(record)
            record_for_hash.pop("chain_hash", None)
            chain = hashlib.sha256(chain + canonical_json(record_for_hash)).digest()
            if record.get("chain_hash") != chain.hex():
                raise MirrorIntegrityError(seq, "chain_hash mismatch")

            data = base64.b64decode(record["data"])
            if hashlib.sha256(data).hexdigest() != record.get("data_hash"):
                raise MirrorIntegrityError(seq, "data_hash mismatch")
            yield record


def replay_frames(records: Iterable[Dict[str, Any]]) -> List[Tuple[Any, str]]:
    """Decode the captured byte stream; errors come back as (ReceiveError, raw) pairs."""
    events: List[Tuple[Any, str]] = []
    decoder = FrameDecoder(
        on_message=lambda message: events.append((message, json.dumps(message))),
        on_error=lambda err, raw: events.append((err, raw)),
    )
    for record in records:
        decoder.feed(base64.b64decode(record["data"]))
    return events


def main(argv=None):
    ap = argparse.ArgumentParser()
    ap.add_argument("--log", required=True, help="path to a sealed mirror log")
    ap.add_argument("--key-hex", required=True, help="hex-encoded 32-byte mirror key")
    ap.add_argument("--limit", type=int, default=0, help="max records to print (0 = none)")
    ap.add_argument("--decode", action="store_true", help="replay captured bytes through the frame decoder")
    args = ap.parse_args(argv)

    key = bytes.fromhex(args.key_hex)
    records: List[Dict[str, Any]] = []
    try:
        for record in iter_records(args.log, key):
            records.append(record)
            if args.limit and record["seq"] <= args.limit:
                print(json.dumps(record, indent=2, sort_keys=True))
    except MirrorIntegrityError as e:
        print(f"[FAIL] {e}")
        return 1

    if args.decode:
        for event, raw in replay_frames(records):
            if isinstance(event, Exception):
                print(f"[{event.type}] {event} raw={raw!r}")
            else:
                print(raw)

    print(f"[OK] verified {len(records)} records")
    return 0


if __name__ == "__main__":
    sys.exit(main())
