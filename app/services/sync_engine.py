from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from typing import Callable, Iterable

from app.errors import error_kind_of
from app.schemas.coin import CoinSnapshot
from app.schemas.sync import SyncState

logger = logging.getLogger(__name__)

SyncStateListener = Callable[[SyncState], None]


class SyncEngine:
    """Scheduled, batched price refresh with a non-overlapping fetch cycle.

    At most one provider call is outstanding at any time. The in-flight
    cycle is represented by a ``Future``: manual refreshes coalesce onto it,
    timer ticks are dropped while it exists. ``stop()`` bumps the generation
    counter, and a cycle whose generation no longer matches on completion is
    discarded without touching the published state.
    """

    def __init__(
        self,
        *,
        price_provider,
        tracked_ids_provider: Callable[[], Iterable[str]] | None = None,
        interval_sec: float = 30.0,
        clock: Callable[[], float] = time.time,
        join_timeout_sec: float = 1.0,
    ) -> None:
        self.price_provider = price_provider
        self.tracked_ids_provider = tracked_ids_provider
        self.interval_sec = interval_sec
        self.clock = clock
        self.join_timeout_sec = join_timeout_sec

        self._lock = threading.Lock()
        self._state = SyncState()
        self._generation = 0
        self._inflight: Future | None = None
        self._rerun_requested = False
        self._running = False
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._listeners: list[SyncStateListener] = []
        self._metrics = {
            "cycles": 0,
            "failures": 0,
            "skipped_ticks": 0,
            "coalesced_refreshes": 0,
            "discarded_responses": 0,
        }

    @property
    def running(self) -> bool:
        return self._running

    @property
    def generation(self) -> int:
        return self._generation

    def state(self) -> SyncState:
        with self._lock:
            return self._state.model_copy(deep=True)

    def subscribe(self, listener: SyncStateListener) -> None:
        self._listeners.append(listener)

    def _notify(self, state: SyncState | None) -> None:
        if state is None:
            return
        for listener in list(self._listeners):
            try:
                listener(state.model_copy(deep=True))
            except Exception:
                logger.exception("[SYNC][listener_failed]")

    def _current_ids(self) -> list[str]:
        if self.tracked_ids_provider is None:
            return list(self._state.tracked_ids)
        return list(self.tracked_ids_provider())

    def _settled_phase(self) -> str:
        if self._state.last_error is not None:
            return "FAILED"
        if self._state.last_success_at is not None:
            return "READY"
        return "IDLE"

    # -- fetch cycle -------------------------------------------------------

    def _begin_cycle(self) -> tuple[Future, int, list[str], SyncState]:
        """Claim the busy slot and publish the loading/refreshing flags. Lock held."""
        ids = self._current_ids()
        fut: Future = Future()
        self._inflight = fut
        first_load = not self._state.snapshots
        self._state = self._state.model_copy(
            update={
                "phase": "LOADING" if first_load else "REFRESHING",
                "loading": first_load,
                "refreshing": not first_load,
                "tracked_ids": ids,
            }
        )
        logger.debug("[SYNC][cycle_start] generation=%d ids=%s", self._generation, ",".join(ids))
        return fut, self._generation, ids, self._state.model_copy(deep=True)

    def _run_cycle(self, fut: Future, generation: int, ids: list[str]) -> SyncState:
        snapshots: dict[str, CoinSnapshot] = {}
        error: Exception | None = None
        try:
            if ids:
                for row in self.price_provider.get_markets(ids):
                    snapshot = CoinSnapshot.model_validate(row)
                    snapshots[snapshot.id] = snapshot
        except Exception as exc:
            error = exc
        return self._complete_cycle(fut, generation, snapshots, error)

    def _complete_cycle(
        self,
        fut: Future,
        generation: int,
        snapshots: dict[str, CoinSnapshot],
        error: Exception | None,
    ) -> SyncState:
        published: SyncState | None = None
        rerun = False
        with self._lock:
            if self._inflight is fut:
                self._inflight = None

            if generation != self._generation:
                self._metrics["discarded_responses"] += 1
                logger.info(
                    "[SYNC][cycle_discarded] generation=%d current=%d",
                    generation,
                    self._generation,
                )
                result = self._state.model_copy(deep=True)
            else:
                self._metrics["cycles"] += 1
                if error is None:
                    tracked = set(self._state.tracked_ids)
                    self._state = self._state.model_copy(
                        update={
                            "phase": "READY",
                            "snapshots": {cid: s for cid, s in snapshots.items() if cid in tracked},
                            "loading": False,
                            "refreshing": False,
                            "last_error": None,
                            "last_error_message": None,
                            "last_success_at": int(self.clock()),
                        }
                    )
                    logger.info("[SYNC][cycle_ok] coins=%d", len(self._state.snapshots))
                else:
                    self._metrics["failures"] += 1
                    kind = error_kind_of(error)
                    self._state = self._state.model_copy(
                        update={
                            "phase": "FAILED",
                            "loading": False,
                            "refreshing": False,
                            "last_error": kind,
                            "last_error_message": str(error),
                        }
                    )
                    logger.warning(
                        "[SYNC][cycle_failed] kind=%s cached=%d error=%s",
                        kind.value,
                        len(self._state.snapshots),
                        error,
                    )
                result = self._state.model_copy(deep=True)
                published = result
                rerun = self._rerun_requested and self._running
                self._rerun_requested = False

        fut.set_result(result)
        self._notify(published)
        if rerun:
            self._spawn_refresh()
        return result

    def refresh_now(self) -> SyncState:
        """Run a cycle now, or wait for the one already in flight."""
        with self._lock:
            if self._inflight is not None:
                self._metrics["coalesced_refreshes"] += 1
                fut = self._inflight
                cycle = None
            else:
                cycle = self._begin_cycle()
                fut = cycle[0]

        if cycle is None:
            return fut.result()

        fut, generation, ids, started = cycle
        self._notify(started)
        return self._run_cycle(fut, generation, ids)

    def tick(self) -> SyncState | None:
        """Scheduled cycle. Returns None when skipped because a cycle is in flight."""
        with self._lock:
            if self._inflight is not None:
                self._metrics["skipped_ticks"] += 1
                logger.info("[SYNC][tick_skipped] reason=cycle_in_flight")
                return None
            fut, generation, ids, started = self._begin_cycle()

        self._notify(started)
        return self._run_cycle(fut, generation, ids)

    def _spawn_refresh(self) -> None:
        threading.Thread(target=self.refresh_now, daemon=True, name="sync-engine-refresh").start()

    # -- tracked set -------------------------------------------------------

    def on_tracked_set_changed(self, new_ids: Iterable[str]) -> SyncState:
        ids = list(new_ids)
        keep = set(ids)
        with self._lock:
            snapshots = {cid: s for cid, s in self._state.snapshots.items() if cid in keep}
            purged = len(self._state.snapshots) - len(snapshots)
            self._state = self._state.model_copy(update={"snapshots": snapshots, "tracked_ids": ids})
            published = self._state.model_copy(deep=True)

            missing = [cid for cid in ids if cid not in snapshots]
            fetch = self._running and bool(missing)
            if fetch and self._inflight is not None:
                # the in-flight cycle may predate the change; run once more after it
                self._rerun_requested = True
                fetch = False

        logger.info("[SYNC][tracked_changed] ids=%s purged=%d missing=%d", ",".join(ids), purged, len(missing))
        self._notify(published)
        if fetch:
            self._spawn_refresh()
        return published

    # -- lifecycle ---------------------------------------------------------

    def _loop(self, stop_event: threading.Event) -> None:
        while True:
            try:
                self.tick()
            except Exception:  # pragma: no cover
                logger.exception("[SYNC][tick_error]")
            # waiting only after the cycle returned keeps ticks from overlapping
            if stop_event.wait(self.interval_sec):
                return

    def start(self, tracked_ids_provider: Callable[[], Iterable[str]] | None = None) -> None:
        with self._lock:
            if self._running:
                return
            if tracked_ids_provider is not None:
                self.tracked_ids_provider = tracked_ids_provider
            self._generation += 1
            self._running = True
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._loop,
                args=(self._stop_event,),
                daemon=True,
                name="sync-engine",
            )
            thread = self._thread
        logger.info("[SYNC][start] generation=%d interval_sec=%s", self._generation, self.interval_sec)
        thread.start()

    def stop(self) -> None:
        with self._lock:
            self._running = False
            self._generation += 1
            self._inflight = None
            self._rerun_requested = False
            self._stop_event.set()
            thread = self._thread
            self._thread = None
            if self._state.loading or self._state.refreshing:
                self._state = self._state.model_copy(
                    update={"loading": False, "refreshing": False, "phase": self._settled_phase()}
                )
            generation = self._generation

        logger.info("[SYNC][stop] generation=%d", generation)
        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=self.join_timeout_sec)

    def metrics(self) -> dict:
        with self._lock:
            return {
                **self._metrics,
                "generation": self._generation,
                "running": self._running,
                "in_flight": self._inflight is not None,
                "cached_coins": len(self._state.snapshots),
                "last_success_at": self._state.last_success_at,
            }
