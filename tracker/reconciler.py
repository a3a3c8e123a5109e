"""
reconciler.py — Rebuilds derived session tables from the Matches table.

Used after matches are deleted or edited by hand, and by the admin script
for a full rebuild.  Everything here is idempotent: running it twice gives
the same Sessions / SessionPlayers content (apart from LastUpdated).

Invariants restored per session:
  - Sessions row exists iff at least one match carries the session id
  - SessionPlayers row exists iff the player appears as side A or B in one
    of those matches
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence

from tracker.config import TrackerConfig
from tracker.record_store import (
    MATCHES,
    SESSION_PLAYERS,
    SESSIONS,
    SqlRecordStore,
    find_column_index,
)
from tracker.records import parse_match_rows, session_ids_in
from tracker.summary_persister import find_rows, save_session_summary

logger = logging.getLogger(__name__)

ACTION_RECALCULATED = "recalculated"
ACTION_REMOVED = "removed"
ACTION_ERROR = "error"


@dataclass
class ReconcileResult:
    session_id: str
    action: str
    match_count: int = 0
    stale_players_removed: int = 0
    error: Optional[str] = None


@dataclass
class BulkRecomputeResult:
    recalculated: int = 0
    removed: int = 0
    errors: list[tuple[str, str]] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return self.recalculated + self.removed


def _players_in_session(store: SqlRecordStore, session_id: str) -> set[str]:
    matches = parse_match_rows(store.get_all_rows(MATCHES))
    names: set[str] = set()
    for match in matches:
        if match.session_id == session_id:
            names.add(match.player_a)
            names.add(match.player_b)
    return names


def cleanup_stale_session_players(
    store: SqlRecordStore,
    session_id: str,
    roster: Optional[Sequence[str]] = None,
) -> int:
    """Deletes SessionPlayers rows of players who no longer appear in the session.

    With a roster, rows of players who have left it are stale as well, since
    the persister only writes rows for roster members.
    Returns the number of rows removed.
    """
    active = _players_in_session(store, session_id)
    if roster is not None:
        active &= set(roster)
    rows = store.get_all_rows(SESSION_PLAYERS)
    player_col = find_column_index(rows[0], "Player")

    stale = [
        index
        for index in find_rows(rows, {"SessionId": session_id})
        if rows[index][player_col] not in active
    ]
    removed = store.delete_rows(SESSION_PLAYERS, stale)
    if removed:
        logger.info(
            "[reconcile] session %s: removed %d stale player rows", session_id, removed
        )
    return removed


def remove_empty_session(store: SqlRecordStore, session_id: str) -> int:
    """Deletes the Sessions row and every SessionPlayers row for `session_id`.

    Returns the total number of rows removed.
    """
    removed = 0
    for table in (SESSION_PLAYERS, SESSIONS):
        indices = find_rows(store.get_all_rows(table), {"SessionId": session_id})
        removed += store.delete_rows(table, indices)
    logger.info("[reconcile] session %s removed (%d derived rows)", session_id, removed)
    return removed


def recompute_session_stats(
    store: SqlRecordStore,
    config: TrackerConfig,
    session_id: str,
    now: Optional[datetime] = None,
) -> ReconcileResult:
    """Re-derives one session strictly from the current Matches content.

    action = "removed" when no match carries the id any more,
             "recalculated" after a successful rebuild,
             "error" otherwise (never raises).
    """
    try:
        matches = parse_match_rows(store.get_all_rows(MATCHES))
        match_count = sum(1 for m in matches if m.session_id == session_id)

        if match_count == 0:
            remove_empty_session(store, session_id)
            return ReconcileResult(session_id=session_id, action=ACTION_REMOVED)

        # Prune first so the upsert below cannot keep a stale row alive
        stale_removed = cleanup_stale_session_players(store, session_id, config.roster)
        persisted = save_session_summary(store, config, session_id, now=now)
        if not persisted.success:
            return ReconcileResult(
                session_id=session_id,
                action=ACTION_ERROR,
                match_count=match_count,
                stale_players_removed=stale_removed,
                error=persisted.error,
            )
        return ReconcileResult(
            session_id=session_id,
            action=ACTION_RECALCULATED,
            match_count=match_count,
            stale_players_removed=stale_removed,
        )
    except Exception as exc:
        logger.error(
            "[reconcile] recompute failed for session %s: %s", session_id, exc,
            exc_info=True,
        )
        return ReconcileResult(session_id=session_id, action=ACTION_ERROR, error=str(exc))


def known_session_ids(store: SqlRecordStore) -> list[str]:
    """Session ids referenced by Matches, Sessions or SessionPlayers (first-seen order)."""
    ids: dict[str, None] = {}
    for session_id in session_ids_in(parse_match_rows(store.get_all_rows(MATCHES))):
        ids.setdefault(session_id, None)
    for table in (SESSIONS, SESSION_PLAYERS):
        rows = store.get_all_rows(table)
        col = find_column_index(rows[0], "SessionId")
        for row in rows[1:]:
            if row[col]:
                ids.setdefault(row[col], None)
    return list(ids)


def recompute_all_sessions(
    store: SqlRecordStore,
    config: TrackerConfig,
    now: Optional[datetime] = None,
) -> BulkRecomputeResult:
    """Runs recompute_session_stats for every known session.

    A failing session is recorded in `errors` and the run continues.
    """
    result = BulkRecomputeResult()
    session_ids = known_session_ids(store)
    logger.info("[reconcile] bulk recompute over %d sessions", len(session_ids))

    for session_id in session_ids:
        outcome = recompute_session_stats(store, config, session_id, now=now)
        if outcome.action == ACTION_RECALCULATED:
            result.recalculated += 1
        elif outcome.action == ACTION_REMOVED:
            result.removed += 1
        else:
            result.errors.append((session_id, outcome.error or "unknown error"))

    logger.info(
        "[reconcile] bulk recompute done: recalculated=%d removed=%d errors=%d",
        result.recalculated, result.removed, len(result.errors),
    )
    return result
