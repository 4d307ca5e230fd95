"""Репозитории для работы с БД."""

from .cache_repo import (
    CACHE_TABLES,
    SqlCacheStore,
    list_deployed_tokens,
    list_stale_keys,
    read_cache_entry,
    upsert_cache_entry,
)
from .history_repo import SqlScoreHistory, list_snapshots, record_daily_snapshot
from .token_events_repo import (
    get_token_event,
    insert_new_token_if_absent,
    list_unanalyzed,
    mark_analyzed,
)

__all__ = [
    "CACHE_TABLES",
    "SqlCacheStore",
    "SqlScoreHistory",
    "get_token_event",
    "insert_new_token_if_absent",
    "list_deployed_tokens",
    "list_snapshots",
    "list_stale_keys",
    "list_unanalyzed",
    "mark_analyzed",
    "read_cache_entry",
    "record_daily_snapshot",
    "upsert_cache_entry",
]
