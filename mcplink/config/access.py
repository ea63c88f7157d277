"""Process-local cache of loaded TransportConfig objects.

Entries are keyed by the resolved config file path together with the
MCPLINK_* environment variables, since both feed into the settings model.
"""

from __future__ import annotations

import os
import threading
from pathlib import Path

from mcplink.config.loader import get_config_path, load_config
from mcplink.config.schema import TransportConfig

ENV_PREFIX = "MCPLINK_"

_lock = threading.RLock()
_cache: dict[tuple[str, tuple[tuple[str, str], ...]], TransportConfig] = {}


def _resolved(config_path: Path | None) -> Path:
    return Path(config_path or get_config_path()).expanduser().resolve()


def _env_snapshot() -> tuple[tuple[str, str], ...]:
    return tuple(sorted((k, v) for k, v in os.environ.items() if k.upper().startswith(ENV_PREFIX)))


def get_config(*, config_path: Path | None = None, force_reload: bool = False) -> TransportConfig:
    """Load the config once per file and environment; force_reload re-reads it."""
    path = _resolved(config_path)
    key = (str(path), _env_snapshot())
    with _lock:
        if force_reload or key not in _cache:
            _cache[key] = load_config(path)
        return _cache[key]


def clear_config_cache(*, config_path: Path | None = None) -> None:
    """Drop cached entries for one file, or everything when no path is given."""
    with _lock:
        if config_path is None:
            _cache.clear()
            return
        path = str(_resolved(config_path))
        for key in [k for k in _cache if k[0] == path]:
            del _cache[key]
