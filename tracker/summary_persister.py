"""
summary_persister.py — Writes aggregator output into Sessions / SessionPlayers.

Runs right after a match is appended.  It must never raise: a failure here
leaves the derived tables stale (the reconciler repairs them later) but the
already-written match stays untouched.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Sequence

from tracker.config import TrackerConfig
from tracker.record_store import (
    MATCHES,
    SESSION_PLAYERS,
    SESSIONS,
    SqlRecordStore,
    find_column_index,
)
from tracker.records import SessionSummary, parse_match_rows, utcnow
from tracker.stats_aggregator import compute_session_stats

logger = logging.getLogger(__name__)


@dataclass
class PersistResult:
    success: bool
    error: Optional[str] = None
    summary: Optional[SessionSummary] = None
    players_written: int = 0


def find_rows(
    table_rows: Sequence[Sequence[Any]], key: dict[str, Any]
) -> list[int]:
    """Indices (positions in table_rows) of data rows whose columns equal `key`."""
    headers = table_rows[0] if table_rows else []
    positions = {name: find_column_index(headers, name) for name in key}
    return [
        index
        for index, row in enumerate(table_rows[1:], start=1)
        if all(row[positions[name]] == value for name, value in key.items())
    ]


def upsert_row(
    store: SqlRecordStore,
    table: str,
    table_rows: Sequence[Sequence[Any]],
    key: dict[str, Any],
    row: Sequence[Any],
) -> str:
    """Updates the row matching `key` in place, or appends it.

    If the key matches several rows (left behind by an interleaved writer),
    the first one is updated and the rest are deleted, highest index first.
    Returns "updated" or "appended".
    """
    matches = find_rows(table_rows, key)
    if not matches:
        store.append(table, row)
        return "appended"

    first, duplicates = matches[0], matches[1:]
    store.update_row(table, first, row)
    if duplicates:
        logger.warning(
            "[persist] %s: %d duplicate rows for %s removed", table, len(duplicates), key
        )
        # Indices above `first`, so the update position is not shifted
        store.delete_rows(table, duplicates)
    return "updated"


def save_session_summary(
    store: SqlRecordStore,
    config: TrackerConfig,
    session_id: str,
    now: Optional[datetime] = None,
) -> PersistResult:
    """Recomputes one session and upserts its Sessions + SessionPlayers rows.

    Only roster players with at least one match in the session get a row.
    Any failure is logged and returned as PersistResult(success=False).
    """
    try:
        matches = parse_match_rows(store.get_all_rows(MATCHES))
        stats = compute_session_stats(
            session_id, matches, config.roster, computed_at=now or utcnow()
        )

        if stats.summary.match_count == 0:
            # Sessions rows are created by the first match; nothing to write yet
            logger.info("[persist] session %s has no matches, nothing written", session_id)
            return PersistResult(success=True, summary=stats.summary)

        action = upsert_row(
            store,
            SESSIONS,
            store.get_all_rows(SESSIONS),
            {"SessionId": session_id},
            stats.summary.to_row(),
        )

        played = stats.played()
        for stat in played:
            # Re-read each time: a duplicate cleanup may have shifted positions
            upsert_row(
                store,
                SESSION_PLAYERS,
                store.get_all_rows(SESSION_PLAYERS),
                {"SessionId": session_id, "Player": stat.player},
                stat.to_row(),
            )

        logger.info(
            "[persist] session %s %s: matches=%d players=%d",
            session_id, action, stats.summary.match_count, len(played),
        )
        return PersistResult(success=True, summary=stats.summary, players_written=len(played))
    except Exception as exc:
        logger.error(
            "[persist] failed to save summary for session %s: %s", session_id, exc,
            exc_info=True,
        )
        return PersistResult(success=False, error=str(exc))
