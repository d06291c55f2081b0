# host_config.py
"""
Load native host settings from YAML, with CNB_* environment overrides.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional

import yaml

ENV_PREFIX = "CNB_"
CONFIG_ENV = "CNB_CONFIG"

# Browsers reject host-to-extension messages above 1 MB.
DEFAULT_MAX_OUTGOING = 1024 * 1024


@dataclass(frozen=True)
class HostConfig:
    log_level: str = "INFO"
    log_file: Optional[str] = None
    read_chunk_size: int = 4096
    max_frame_size: Optional[int] = None
    max_outgoing_size: Optional[int] = DEFAULT_MAX_OUTGOING
    mirror_input_path: Optional[str] = None
    mirror_output_path: Optional[str] = None
    mirror_key_env: str = "CNB_MIRROR_KEY"


_INT_FIELDS = {"read_chunk_size", "max_frame_size", "max_outgoing_size"}


def _coerce(name: str, value: Any) -> Any:
    if value is None or (isinstance(value, str) and value.strip().lower() in ("", "none", "null")):
        if name in ("log_level", "mirror_key_env", "read_chunk_size"):
            raise ValueError(f"{name} must not be empty")
        return None
    if name in _INT_FIELDS:
        try:
            n = int(value)
        except (TypeError, ValueError):
            raise ValueError(f"{name} must be an integer, got {value!r}") from None
        if n <= 0:
            raise ValueError(f"{name} must be positive, got {n}")
        return n
    if name == "log_level":
        return str(value).upper()
    return str(value)


def _apply(cfg: HostConfig, raw: Mapping[str, Any]) -> HostConfig:
    known = {f.name for f in fields(HostConfig)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ValueError(f"unknown config keys: {', '.join(unknown)}")
    return replace(cfg, **{k: _coerce(k, v) for k, v in raw.items()})


def config_path_from_env(environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    environ = os.environ if environ is None else environ
    return environ.get(CONFIG_ENV) or None


def load_host_config(path: Optional[str] = None,
                     environ: Optional[Mapping[str, str]] = None) -> HostConfig:
    environ = os.environ if environ is None else environ
    cfg = HostConfig()

    if path:
        if not os.path.isfile(path):
            raise FileNotFoundError(f"config file not found: {path}")
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"config must be a mapping: {path}")
        cfg = _apply(cfg, raw)

    overrides: Dict[str, str] = {}
    for f in fields(HostConfig):
        key = ENV_PREFIX + f.name.upper()
        if key in environ:
            overrides[f.name] = environ[key]
    return _apply(cfg, overrides)
