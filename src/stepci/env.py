# env.py
from __future__ import annotations

import logging
from typing import Dict, Mapping, Optional

from .errors import ConfigError

logger = logging.getLogger(__name__)


def _check(layer: Mapping[str, str]) -> None:
    for key, value in layer.items():
        if not isinstance(key, str):
            raise ConfigError("keys must be strings", key=repr(key))
        if not key or "=" in key or "\0" in key:
            raise ConfigError("not a valid variable name", key=key)
        if not isinstance(value, str):
            raise ConfigError(f"value must be a string, got {type(value).__name__}", key=key)
        if "\0" in value:
            raise ConfigError("value contains a NUL byte", key=key)


def resolve_layers(*layers: Optional[Mapping[str, str]]) -> Dict[str, str]:
    """
    Merge environment layers left to right; later layers win.

    Returns a fresh dict. None layers are skipped. Input mappings are
    never mutated.
    """
    resolved: Dict[str, str] = {}
    for layer in layers:
        if not layer:
            continue
        _check(layer)
        resolved.update(layer)
    return resolved


def resolve(global_defaults: Optional[Mapping[str, str]], job_env: Optional[Mapping[str, str]]) -> Dict[str, str]:
    """Overlay a job's env on the global defaults (job keys win)."""
    resolved = resolve_layers(global_defaults, job_env)
    if job_env:
        overridden = sorted(k for k in job_env if global_defaults and k in global_defaults)
        if overridden:
            logger.debug("job env overrides defaults: %s", ", ".join(overridden))
    return resolved
