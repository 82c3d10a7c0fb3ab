from __future__ import annotations

from enum import StrEnum


class SyncState(StrEnum):
    IDLE = "idle"
    LOADING = "loading"
    LIVE = "live"
    REFRESHING = "refreshing"
    ERROR = "error"


SYNC_ALLOWED_TRANSITIONS: dict[SyncState, set[SyncState]] = {
    SyncState.IDLE: {SyncState.LOADING},
    SyncState.LOADING: {SyncState.LIVE, SyncState.REFRESHING, SyncState.ERROR, SyncState.IDLE},
    SyncState.LIVE: {SyncState.REFRESHING, SyncState.ERROR, SyncState.IDLE},
    SyncState.REFRESHING: {SyncState.LIVE, SyncState.ERROR, SyncState.IDLE},
    SyncState.ERROR: {SyncState.REFRESHING, SyncState.LIVE, SyncState.IDLE},
}


def can_sync_transition(source: SyncState, target: SyncState) -> bool:
    if source == target:
        return True
    return target in SYNC_ALLOWED_TRANSITIONS.get(source, set())
