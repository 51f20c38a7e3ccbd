from __future__ import annotations

import json
import os
import threading
from pathlib import Path

from app.errors import PersistenceReadError, PersistenceWriteError


class InMemoryKeyValueStore:
    """Process-local store with the same contract as the file-backed one."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._lock = threading.Lock()
        self._values: dict[str, str] = dict(initial or {})
        self.writes = 0

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value
            self.writes += 1

    def delete(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)
            self.writes += 1


class JsonFileKeyValueStore:
    """String key/value store kept in one JSON object file.

    Writes go to a sibling temp file first and are swapped in with
    ``os.replace`` so a crash mid-write never leaves a truncated store.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise PersistenceReadError(f"cannot read {self.path}: {exc}") from exc
        if not raw.strip():
            return {}
        try:
            decoded = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise PersistenceReadError(f"corrupt store {self.path}: {exc}") from exc
        if not isinstance(decoded, dict):
            raise PersistenceReadError(f"corrupt store {self.path}: top level is not an object")
        return {str(k): v for k, v in decoded.items() if isinstance(v, str)}

    def _write_all(self, values: dict[str, str]) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(values, ensure_ascii=False, indent=2), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise PersistenceWriteError(f"cannot write {self.path}: {exc}") from exc

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            try:
                values = self._read_all()
            except PersistenceReadError:
                # a corrupt file is replaced rather than blocking every write
                values = {}
            values[key] = value
            self._write_all(values)

    def delete(self, key: str) -> None:
        with self._lock:
            try:
                values = self._read_all()
            except PersistenceReadError:
                values = {}
            if key not in values:
                return
            values.pop(key)
            self._write_all(values)
