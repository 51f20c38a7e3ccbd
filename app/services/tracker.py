from __future__ import annotations

import logging
import time
from typing import Callable

from app.errors import ErrorKind
from app.schemas.coin import CoinDetails, SearchCandidate, SearchResult
from app.schemas.preferences import PreferencesView, Theme, palette_for
from app.schemas.sync import SyncState, SyncStateView
from app.services.freshness import describe_last_updated, is_stale
from app.services.preferences import PreferenceStore
from app.services.sync_engine import SyncEngine
from app.services.tracked_set import TrackedSetManager

logger = logging.getLogger(__name__)


class CoinTrackerService:
    """Operations the client UI calls; wires the tracked set into the sync engine."""

    SEARCH_MIN_QUERY_LEN = 2
    SEARCH_LIMIT = 10

    def __init__(
        self,
        *,
        store,
        price_provider,
        default_ids: list[str],
        refresh_interval_sec: float = 30.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.price_provider = price_provider
        self.clock = clock
        self.stale_after_sec = refresh_interval_sec * 2
        self.tracked_set = TrackedSetManager(store, default_ids)
        self.preference_store = PreferenceStore(store)
        self.engine = SyncEngine(
            price_provider=price_provider,
            tracked_ids_provider=self.tracked_set.current,
            interval_sec=refresh_interval_sec,
            clock=clock,
        )
        self.tracked_set.subscribe(self.engine.on_tracked_set_changed)

    def bootstrap(self) -> None:
        ids = self.tracked_set.load()
        self.preference_store.load()
        self.engine.on_tracked_set_changed(ids)
        self.engine.start()

    def shutdown(self) -> None:
        self.engine.stop()

    def _view(self, state: SyncState) -> SyncStateView:
        now = self.clock()
        return SyncStateView(
            **state.model_dump(),
            last_updated=describe_last_updated(state.last_success_at, now),
            stale=is_stale(state.last_success_at, self.stale_after_sec, now),
        )

    def state(self) -> SyncStateView:
        return self._view(self.engine.state())

    def refresh_now(self) -> SyncStateView:
        return self._view(self.engine.refresh_now())

    def tracked(self) -> list[str]:
        return list(self.tracked_set.current())

    def add_tracked(self, coin_id: str) -> list[str]:
        return list(self.tracked_set.add(coin_id))

    def remove_tracked(self, coin_id: str) -> list[str]:
        return list(self.tracked_set.remove(coin_id))

    def preferences(self, persist_error: ErrorKind | None = None) -> PreferencesView:
        prefs = self.preference_store.current()
        return PreferencesView(
            **prefs.model_dump(),
            palette=palette_for(prefs.theme),
            persist_error=persist_error.value if persist_error else None,
        )

    def set_theme(self, theme: Theme) -> PreferencesView:
        return self.preferences(self.preference_store.set_theme(theme))

    def toggle_theme(self) -> PreferencesView:
        return self.preferences(self.preference_store.toggle_theme())

    def set_ads_enabled(self, value: bool) -> PreferencesView:
        return self.preferences(self.preference_store.set_ads_enabled(value))

    def toggle_ads(self) -> PreferencesView:
        return self.preferences(self.preference_store.toggle_ads())

    def reset_to_defaults(self) -> dict:
        ids = self.tracked_set.reset()
        prefs = self.preferences(self.preference_store.reset())
        return {"tracked_ids": list(ids), "preferences": prefs.model_dump()}

    def search(self, text: str) -> SearchResult:
        query = (text or "").strip()
        if len(query) < self.SEARCH_MIN_QUERY_LEN:
            return SearchResult(query=query, candidates=[])

        try:
            rows = self.price_provider.search(query)
        except Exception as exc:
            logger.warning("[SEARCH][failed] query=%s error=%s", query, exc)
            return SearchResult(query=query, candidates=[], error=ErrorKind.SEARCH_ERROR.value)

        tracked = set(self.tracked_set.current())
        seen: set[str] = set()
        candidates: list[SearchCandidate] = []
        for row in rows[: self.SEARCH_LIMIT]:
            coin_id = row.get("id")
            if not coin_id or coin_id in tracked or coin_id in seen:
                continue
            seen.add(coin_id)
            candidates.append(SearchCandidate.model_validate(row))
        return SearchResult(query=query, candidates=candidates)

    def coin_details(self, coin_id: str) -> CoinDetails:
        return CoinDetails.model_validate(self.price_provider.get_coin_details(coin_id))

    def provider_healthy(self) -> bool:
        return bool(self.price_provider.ping())
