"""In-memory and JSON-file flag store implementations."""

from __future__ import annotations

import json
import os
import threading
from pathlib import Path

from packages.stash_shared.logging import get_logger, log_context
from resources.adapters.flags.adapter import FlagStore

_LOGGER = get_logger(__name__)


class InMemoryFlagStore(FlagStore):
    """Process-local flags, lost on restart."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def delete(self, key: str) -> None:
        self._values.pop(key, None)


class JsonFileFlagStore(FlagStore):
    """Flags persisted as one JSON object file.

    Unreadable or corrupt files read as empty. Write failures raise
    ``OSError``; callers treat flags as advisory and carry on.
    """

    def __init__(self, *, path: str | Path) -> None:
        self._path = Path(path).expanduser()
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            values = self._read()
            values[key] = value
            self._write(values)

    def delete(self, key: str) -> None:
        with self._lock:
            values = self._read()
            if values.pop(key, None) is not None:
                self._write(values)

    def _read(self) -> dict[str, str]:
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as exc:
            with log_context({"path": str(self._path), "error": type(exc).__name__}):
                _LOGGER.warning("Ignoring unreadable flag file")
            return {}
        if not isinstance(raw, dict):
            return {}
        return {str(key): str(value) for key, value in raw.items()}

    def _write(self, values: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        staging = self._path.with_suffix(self._path.suffix + ".tmp")
        staging.write_text(json.dumps(values, sort_keys=True), encoding="utf-8")
        os.replace(staging, self._path)
