from __future__ import annotations
import os


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except ValueError:
        return default


MANIFEST = os.environ.get("STEPCI_MANIFEST", "stepci.yml")
LOG_LEVEL = os.environ.get("STEPCI_LOG_LEVEL")
WORKERS = _int_env("STEPCI_WORKERS", 1)
OUTPUT_TAIL = _int_env("STEPCI_OUTPUT_TAIL", 4000)
