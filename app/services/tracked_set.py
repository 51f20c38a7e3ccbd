from __future__ import annotations

import json
import logging
import threading
from typing import Callable

from app.errors import PersistenceReadError

logger = logging.getLogger(__name__)

TRACKED_IDS_KEY = "@crypto_tracker_selected_coins"

TrackedSetListener = Callable[[tuple[str, ...]], None]


class TrackedSetManager:
    """Ordered, de-duplicated, never-empty set of tracked coin ids.

    Every mutation writes the full new set to the store first; the in-memory
    set only changes once that write succeeded, so a failed write leaves
    memory and storage in agreement and the store error propagates.
    """

    def __init__(self, store, default_ids: list[str], *, key: str = TRACKED_IDS_KEY) -> None:
        defaults = self._dedupe(default_ids)
        if not defaults:
            raise ValueError("default tracked set must not be empty")
        self.store = store
        self.key = key
        self.default_ids: tuple[str, ...] = tuple(defaults)
        self._lock = threading.RLock()
        self._ids: tuple[str, ...] = self.default_ids
        self._listeners: list[TrackedSetListener] = []

    @staticmethod
    def _dedupe(ids) -> list[str]:
        out: list[str] = []
        for raw in ids:
            value = str(raw).strip()
            if value and value not in out:
                out.append(value)
        return out

    @staticmethod
    def _normalize_id(coin_id: str) -> str:
        value = str(coin_id or "").strip()
        if not value:
            raise ValueError("INVALID_COIN_ID")
        return value

    def subscribe(self, listener: TrackedSetListener) -> None:
        self._listeners.append(listener)

    def current(self) -> tuple[str, ...]:
        with self._lock:
            return self._ids

    def _read_persisted(self) -> list[str] | None:
        try:
            raw = self.store.get(self.key)
        except PersistenceReadError as exc:
            logger.warning("[TRACKED][load_failed] key=%s error=%s", self.key, exc)
            return None
        if raw is None:
            return None
        try:
            decoded = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("[TRACKED][load_corrupt] key=%s", self.key)
            return None
        if not isinstance(decoded, list) or not all(isinstance(v, str) for v in decoded):
            logger.warning("[TRACKED][load_corrupt] key=%s reason=not_a_string_array", self.key)
            return None
        return self._dedupe(decoded) or None

    def load(self) -> tuple[str, ...]:
        persisted = self._read_persisted()
        with self._lock:
            self._ids = tuple(persisted) if persisted else self.default_ids
            logger.info(
                "[TRACKED][loaded] source=%s ids=%s",
                "store" if persisted else "defaults",
                ",".join(self._ids),
            )
            return self._ids

    def _commit(self, new_ids: tuple[str, ...]) -> tuple[str, ...]:
        # store.set raises PersistenceWriteError before memory is touched
        self.store.set(self.key, json.dumps(list(new_ids)))
        self._ids = new_ids
        return new_ids

    def _notify(self, ids: tuple[str, ...]) -> None:
        for listener in list(self._listeners):
            listener(ids)

    def add(self, coin_id: str) -> tuple[str, ...]:
        value = self._normalize_id(coin_id)
        with self._lock:
            if value in self._ids:
                return self._ids
            ids = self._commit(self._ids + (value,))
        logger.info("[TRACKED][added] id=%s count=%d", value, len(ids))
        self._notify(ids)
        return ids

    def remove(self, coin_id: str) -> tuple[str, ...]:
        value = self._normalize_id(coin_id)
        with self._lock:
            if value not in self._ids:
                return self._ids
            remaining = tuple(i for i in self._ids if i != value)
            if not remaining:
                remaining = (self.default_ids[0],)
            if remaining == self._ids:
                return self._ids
            ids = self._commit(remaining)
        logger.info("[TRACKED][removed] id=%s count=%d", value, len(ids))
        self._notify(ids)
        return ids

    def reset(self) -> tuple[str, ...]:
        with self._lock:
            changed = self._ids != self.default_ids
            ids = self._commit(self.default_ids)
        logger.info("[TRACKED][reset] ids=%s", ",".join(ids))
        if changed:
            self._notify(ids)
        return ids
