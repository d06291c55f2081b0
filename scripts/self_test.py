#!/usr/bin/env python3
"""
End-to-end local self-test:
- Starts native_host.py as a subprocess, the way a browser launches it
- Sends framed messages (one of them split across writes) on its stdin
- Verifies the echoed frames on its stdout and a clean exit once stdin closes
"""
from __future__ import annotations

import os
import subprocess
import sys
import time

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, ROOT)

from native_framing import FrameDecoder, encode_message  # noqa: E402

ORIGIN = "chrome-extension://selftest/"


def main():
    env = dict(os.environ)
    env.pop("CNB_CONFIG", None)
    proc = subprocess.Popen(
        [sys.executable, os.path.join(ROOT, "native_host.py"), ORIGIN],
        stdin=subprocess.PIPE, stdout=subprocess.PIPE, stderr=subprocess.PIPE,
        cwd=ROOT, env=env,
    )

    first = encode_message({"ok": "boomer"})
    second = encode_message({"greeting": "oh hai", "farewell": "bye"})
    proc.stdin.write(first)
    proc.stdin.flush()
    for i in range(0, len(second), 3):
        proc.stdin.write(second[i:i + 3])
        proc.stdin.flush()
        time.sleep(0.01)
    proc.stdin.close()

    out = proc.stdout.read()
    proc.wait(timeout=10)

    received = []
    errors = []
    decoder = FrameDecoder(received.append, lambda err, raw: errors.append((err, raw)))
    decoder.feed(out)

    expected = [
        {"echo": {"ok": "boomer"}, "origin": ORIGIN},
        {"echo": {"greeting": "oh hai", "farewell": "bye"}, "origin": ORIGIN},
    ]
    if errors or received != expected:
        sys.stderr.write(proc.stderr.read().decode("utf-8", errors="replace"))
        raise SystemExit(f"self-test failed: echo mismatch {received!r} {errors!r}")
    if proc.returncode != 0:
        raise SystemExit(f"self-test failed: host exited with {proc.returncode}")

    print("[OK] self-test passed")


if __name__ == "__main__":
    main()
