from typing import Literal

from pydantic import BaseModel, Field

from app.errors import ErrorKind
from app.schemas.coin import CoinSnapshot

SyncPhase = Literal["IDLE", "LOADING", "READY", "FAILED", "REFRESHING"]


class SyncState(BaseModel):
    phase: SyncPhase = "IDLE"
    snapshots: dict[str, CoinSnapshot] = Field(default_factory=dict)
    tracked_ids: list[str] = Field(default_factory=list)
    loading: bool = False
    refreshing: bool = False
    last_error: ErrorKind | None = None
    last_error_message: str | None = None
    last_success_at: int | None = None


class SyncStateView(SyncState):
    last_updated: str
    stale: bool
