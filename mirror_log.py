# mirror_log.py
"""
Sealed, hash-chained mirror of raw protocol bytes for after-the-fact diagnostics.
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import json
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

AAD = b"mirror"
GENESIS = b"\x00" * 32


@dataclass
class MirrorRecord:
    ts: float
    seq: int
    direction: str
    data_hash: str
    chain_hash: str


def canonical_json(obj: Dict[str, Any]) -> bytes:
    return json.dumps(obj, sort_keys=True, separators=(",", ":")).encode("utf-8")


def record_nonce(key: bytes, chain: bytes, seq: int) -> bytes:
    # deterministic nonce derived from key + previous chain hash + seq
    return hmac.new(key, chain + seq.to_bytes(8, "big"), hashlib.sha256).digest()[:12]


class SealedMirror:
    """Writable sink; each write() becomes one sealed line in the log."""

    def __init__(self, path: str, key: bytes, direction: str) -> None:
        if len(key) != 32:
            raise ValueError("mirror key must be 32 bytes")
        self.path = path
        self.direction = direction
        self._key = key
        self._aead = ChaCha20Poly1305(key)
        self._seq = 0
        self._chain = GENESIS
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)

    def write(self, data: bytes) -> MirrorRecord:
        self._seq += 1
        chain_prev = self._chain
        record = {
            "ts": time.time(),
            "seq": self._seq,
            "direction": self.direction,
            "data": base64.b64encode(data).decode("ascii"),
            "data_hash": hashlib.sha256(data).hexdigest(),
            "chain_prev": chain_prev.hex(),
        }
        self._chain = hashlib.sha256(chain_prev + canonical_json(record)).digest()
        record["chain_hash"] = self._chain.hex()

        nonce = record_nonce(self._key, chain_prev, self._seq)
        sealed = self._aead.encrypt(nonce, json.dumps(record).encode("utf-8"), AAD)

        with open(self.path, "ab") as f:
            f.write(base64.b64encode(sealed) + b"\n")

        return MirrorRecord(
            ts=record["ts"],
            seq=self._seq,
            direction=self.direction,
            data_hash=record["data_hash"],
            chain_hash=record["chain_hash"],
        )

    def flush(self) -> None:
        pass

    def close(self) -> None:
        pass


def open_mirror(path: str, key: Optional[bytes], direction: str):
    if key:
        return SealedMirror(path, key, direction)
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    return open(path, "ab")
