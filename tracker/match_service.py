"""
match_service.py — Submission path and read helpers for the HTTP layer.

log_match() is the only place new MatchRecords are created:
  1. validate input (raises MatchValidationError for client errors)
  2. pick the session (session_assigner)
  3. append to Matches (the one write allowed to fail loudly)
  4. refresh the session's derived rows (best effort, never blocks step 3)
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from tracker.config import MAX_INTENSITY, MAX_NAME_LENGTH, MIN_INTENSITY, TrackerConfig
from tracker.record_store import (
    MATCHES,
    SESSION_PLAYERS,
    SESSIONS,
    SqlRecordStore,
    find_column_index,
)
from tracker.reconciler import ACTION_RECALCULATED, ReconcileResult, recompute_session_stats
from tracker.records import (
    MatchRecord,
    Outcome,
    PlayerSessionStat,
    SessionSummary,
    match_from_row,
    player_stat_from_row,
    summary_from_row,
    utcnow,
)
from tracker.session_assigner import SessionAssignment, resolve_session_for_new_match
from tracker.summary_persister import PersistResult, save_session_summary

logger = logging.getLogger(__name__)


class MatchValidationError(ValueError):
    """Submitted match fields are missing or malformed."""


@dataclass
class LoggedMatch:
    record: MatchRecord
    row_index: int
    assignment: SessionAssignment
    summary_result: PersistResult


def _clean_name(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise MatchValidationError(f"{field_name} is required")
    name = value.strip()
    if len(name) > MAX_NAME_LENGTH:
        raise MatchValidationError(f"{field_name} is longer than {MAX_NAME_LENGTH} characters")
    return name


def validate_match(
    config: TrackerConfig,
    player_a: Any,
    player_b: Any,
    outcome: Any,
    intensity: Any,
    venue: Any = "",
    duration_minutes: Any = None,
) -> tuple[str, str, Outcome, int, str, Optional[int]]:
    """Checks and normalises submitted fields.

    Returns (player_a, player_b, outcome, intensity, venue, duration_minutes).
    """
    a = _clean_name(player_a, "player_a")
    b = _clean_name(player_b, "player_b")
    if a == b:
        raise MatchValidationError("player_a and player_b must be different players")
    if config.roster:
        unknown = [name for name in (a, b) if name not in config.roster]
        if unknown:
            raise MatchValidationError(
                f"unknown player(s) {unknown}; roster is {list(config.roster)}"
            )

    try:
        parsed_outcome = Outcome.parse(outcome)
    except ValueError as exc:
        raise MatchValidationError(str(exc)) from exc

    # bool is an int subclass; True/False are not valid intensities
    if isinstance(intensity, bool) or not isinstance(intensity, int):
        raise MatchValidationError(f"intensity must be an integer, got {intensity!r}")
    if not MIN_INTENSITY <= intensity <= MAX_INTENSITY:
        raise MatchValidationError(
            f"intensity must be between {MIN_INTENSITY} and {MAX_INTENSITY}, got {intensity}"
        )

    if venue is None:
        venue = ""
    if not isinstance(venue, str):
        raise MatchValidationError("venue must be a string")
    venue = venue.strip()
    if len(venue) > MAX_NAME_LENGTH:
        raise MatchValidationError(f"venue is longer than {MAX_NAME_LENGTH} characters")

    if duration_minutes is not None:
        if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int):
            raise MatchValidationError("duration_minutes must be an integer")
        if duration_minutes < 0:
            raise MatchValidationError("duration_minutes must not be negative")

    return a, b, parsed_outcome, intensity, venue, duration_minutes


def log_match(
    store: SqlRecordStore,
    config: TrackerConfig,
    player_a: Any,
    player_b: Any,
    outcome: Any,
    intensity: Any,
    venue: Any = "",
    notes: str = "",
    duration_minutes: Any = None,
    now: Optional[datetime] = None,
) -> LoggedMatch:
    """Validates, assigns a session, appends the match and refreshes its stats."""
    a, b, parsed_outcome, intensity, venue, duration_minutes = validate_match(
        config, player_a, player_b, outcome, intensity, venue, duration_minutes
    )
    now = now or utcnow()

    assignment = resolve_session_for_new_match(store, config, venue, now=now)
    record = MatchRecord(
        timestamp=now,
        player_a=a,
        player_b=b,
        outcome=parsed_outcome,
        intensity=intensity,
        venue=venue,
        session_id=assignment.session_id,
        notes=(notes or "").strip(),
        duration_minutes=duration_minutes,
    )

    row_index = store.append(MATCHES, record.to_row())
    logger.info(
        "[match] logged row %d: %s vs %s -> %s (intensity=%d, venue=%r, session=%s)",
        row_index, a, b, parsed_outcome.value, intensity, venue, assignment.session_id,
    )

    # The match is committed; stats failures must not surface to the caller
    try:
        summary_result = save_session_summary(store, config, assignment.session_id, now=now)
    except Exception as exc:
        logger.error("[match] session stats update raised: %s", exc, exc_info=True)
        summary_result = PersistResult(success=False, error=str(exc))
    if not summary_result.success:
        logger.warning(
            "[match] stats for session %s are stale: %s",
            assignment.session_id, summary_result.error,
        )

    return LoggedMatch(
        record=record,
        row_index=row_index,
        assignment=assignment,
        summary_result=summary_result,
    )


def delete_match(
    store: SqlRecordStore,
    config: TrackerConfig,
    row_index: int,
    now: Optional[datetime] = None,
) -> ReconcileResult:
    """Deletes one Matches row and reconciles the session it belonged to.

    Raises IndexError for an unknown row.
    """
    rows = store.get_all_rows(MATCHES)
    if not 1 <= row_index < len(rows):
        raise IndexError(f"Matches row {row_index} does not exist")
    # Only the session id is read, so malformed rows can still be removed
    raw_session = rows[row_index][find_column_index(rows[0], "SessionId")]
    session_id = "" if raw_session is None else str(raw_session).strip()

    store.delete_row(MATCHES, row_index)
    logger.info("[match] deleted row %d (session=%s)", row_index, session_id)
    if not session_id:
        # Pre-session rows feed no derived view
        return ReconcileResult(session_id="", action=ACTION_RECALCULATED)
    return recompute_session_stats(store, config, session_id, now=now)


# ---------------------------------------------------------------------------
# Reads for the API endpoints
# ---------------------------------------------------------------------------

def list_matches(
    store: SqlRecordStore, session_id: Optional[str] = None
) -> list[tuple[int, MatchRecord]]:
    """(row_index, record) pairs, optionally limited to one session."""
    rows = store.get_all_rows(MATCHES)
    result = []
    for index, row in enumerate(rows[1:], start=1):
        try:
            record = match_from_row(rows[0], row)
        except ValueError as exc:
            logger.warning("[match] skipping malformed row %d: %s", index, exc)
            continue
        if session_id is None or record.session_id == session_id:
            result.append((index, record))
    return result


def list_sessions(store: SqlRecordStore) -> list[SessionSummary]:
    rows = store.get_all_rows(SESSIONS)
    return [summary_from_row(rows[0], row) for row in rows[1:]]


def get_session(
    store: SqlRecordStore, session_id: str
) -> Optional[tuple[SessionSummary, list[PlayerSessionStat]]]:
    """Summary plus player rows for one session, or None if it has no Sessions row."""
    summary = next((s for s in list_sessions(store) if s.session_id == session_id), None)
    if summary is None:
        return None
    rows = store.get_all_rows(SESSION_PLAYERS)
    players = [
        stat
        for stat in (player_stat_from_row(rows[0], row) for row in rows[1:])
        if stat.session_id == session_id
    ]
    return summary, players

