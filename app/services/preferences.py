from __future__ import annotations

import json
import logging
import threading

from app.errors import ErrorKind, PersistenceReadError, PersistenceWriteError
from app.schemas.preferences import Preferences, Theme

logger = logging.getLogger(__name__)

THEME_KEY = "@crypto_tracker_theme"
ADS_ENABLED_KEY = "@crypto_tracker_ads_enabled"

_THEMES = ("light", "dark")


class PreferenceStore:
    """Theme and ads flag, best-effort persisted.

    Setters apply the new value in memory first and then write it. A failed
    write is logged and reported through the returned error kind; memory is
    not rolled back.
    """

    def __init__(self, store, *, theme_key: str = THEME_KEY, ads_key: str = ADS_ENABLED_KEY) -> None:
        self.store = store
        self.theme_key = theme_key
        self.ads_key = ads_key
        self._lock = threading.Lock()
        self._prefs = Preferences()

    def _read(self, key: str) -> str | None:
        try:
            return self.store.get(key)
        except PersistenceReadError as exc:
            logger.warning("[PREFS][load_failed] key=%s error=%s", key, exc)
            return None

    def load(self) -> Preferences:
        defaults = Preferences()

        theme = self._read(self.theme_key)
        if theme not in _THEMES:
            if theme is not None:
                logger.warning("[PREFS][load_corrupt] key=%s", self.theme_key)
            theme = defaults.theme

        ads_enabled = defaults.ads_enabled
        raw_ads = self._read(self.ads_key)
        if raw_ads is not None:
            try:
                decoded = json.loads(raw_ads)
            except (TypeError, ValueError):
                decoded = None
            if isinstance(decoded, bool):
                ads_enabled = decoded
            else:
                logger.warning("[PREFS][load_corrupt] key=%s", self.ads_key)

        with self._lock:
            self._prefs = Preferences(theme=theme, ads_enabled=ads_enabled)
            return self._prefs.model_copy()

    def current(self) -> Preferences:
        with self._lock:
            return self._prefs.model_copy()

    def _persist(self, key: str, value: str) -> ErrorKind | None:
        try:
            self.store.set(key, value)
        except PersistenceWriteError as exc:
            logger.error("[PREFS][persist_failed] key=%s error=%s", key, exc)
            return exc.kind
        return None

    def set_theme(self, value: Theme) -> ErrorKind | None:
        if value not in _THEMES:
            raise ValueError("INVALID_THEME")
        with self._lock:
            self._prefs = self._prefs.model_copy(update={"theme": value})
        return self._persist(self.theme_key, value)

    def toggle_theme(self) -> ErrorKind | None:
        with self._lock:
            theme = "light" if self._prefs.theme == "dark" else "dark"
        return self.set_theme(theme)

    def set_ads_enabled(self, value: bool) -> ErrorKind | None:
        with self._lock:
            self._prefs = self._prefs.model_copy(update={"ads_enabled": bool(value)})
        return self._persist(self.ads_key, json.dumps(bool(value)))

    def toggle_ads(self) -> ErrorKind | None:
        with self._lock:
            value = not self._prefs.ads_enabled
        return self.set_ads_enabled(value)

    def reset(self) -> ErrorKind | None:
        return self.set_ads_enabled(Preferences().ads_enabled)
