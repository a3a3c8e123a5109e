"""
session_assigner.py — Decides which session a new match belongs to.

A session is a run of matches played at the same venue without a break
longer than the configured gap.  Rules, in this order:

  1. no prior match                          -> new session
  2. both venues known and different         -> new session (even 1 minute later)
  3. gap since prior match > gap_hours       -> new session
     prior match has no session id           -> new session
  4. otherwise                               -> continue the prior session

An empty venue on either side means "unknown" and never splits.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from tracker.config import TrackerConfig
from tracker.record_store import MATCHES, SqlRecordStore, find_column_index
from tracker.records import MatchRecord, ensure_utc, match_from_row, utcnow

logger = logging.getLogger(__name__)

REASON_NO_PRIOR_MATCH = "no_prior_match"
REASON_VENUE_CHANGED = "venue_changed"
REASON_GAP_EXCEEDED = "gap_exceeded"
REASON_MISSING_SESSION_ID = "missing_session_id"
REASON_LOOKUP_FAILED = "lookup_failed"
REASON_CONTINUED = "continued"


@dataclass(frozen=True)
class SessionAssignment:
    session_id: str
    is_new: bool
    reason: str


def new_session_id() -> str:
    return str(uuid.uuid4())


def _fresh(reason: str) -> SessionAssignment:
    return SessionAssignment(session_id=new_session_id(), is_new=True, reason=reason)


def assign_session(
    last_match: Optional[MatchRecord],
    gap_hours: float,
    new_venue: str,
    now: Optional[datetime] = None,
) -> SessionAssignment:
    """Picks the session for a match about to be written.  Performs no writes."""
    if last_match is None:
        return _fresh(REASON_NO_PRIOR_MATCH)

    prior_venue = (last_match.venue or "").strip()
    venue = (new_venue or "").strip()
    if prior_venue and venue and prior_venue != venue:
        return _fresh(REASON_VENUE_CHANGED)

    now = ensure_utc(now) if now is not None else utcnow()
    elapsed_minutes = (now - ensure_utc(last_match.timestamp)).total_seconds() / 60
    if elapsed_minutes > gap_hours * 60:
        return _fresh(REASON_GAP_EXCEEDED)
    if not last_match.session_id:
        return _fresh(REASON_MISSING_SESSION_ID)

    return SessionAssignment(
        session_id=last_match.session_id, is_new=False, reason=REASON_CONTINUED
    )


def get_last_match(store: SqlRecordStore) -> Optional[MatchRecord]:
    """Most recently appended match (last data row), or None for an empty table."""
    rows = store.get_all_rows(MATCHES)
    if len(rows) < 2:
        return None
    return match_from_row(rows[0], rows[-1])


def resolve_session_for_new_match(
    store: SqlRecordStore,
    config: TrackerConfig,
    venue: str,
    now: Optional[datetime] = None,
) -> SessionAssignment:
    """assign_session() against the store's latest match.

    Session continuity is best effort: if the prior match cannot be read,
    the new match simply starts a session of its own.
    """
    try:
        last_match = get_last_match(store)
    except Exception as exc:
        logger.warning(
            "[session] could not read previous match (%s), starting a new session", exc
        )
        return _fresh(REASON_LOOKUP_FAILED)

    assignment = assign_session(last_match, config.session_gap_hours, venue, now=now)
    if assignment.reason == REASON_VENUE_CHANGED:
        logger.info(
            "[session] venue changed %r -> %r, new session %s",
            last_match.venue, venue, assignment.session_id,
        )
    elif assignment.is_new:
        logger.info("[session] new session %s (%s)", assignment.session_id, assignment.reason)
    else:
        logger.debug("[session] continuing session %s", assignment.session_id)
    return assignment


# ---------------------------------------------------------------------------
# Backfill for rows written before sessions existed
# ---------------------------------------------------------------------------

def backfill_session_ids(store: SqlRecordStore, config: TrackerConfig) -> int:
    """Fills SessionId on Matches rows that have none.

    Walks the table in row order and applies assign_session() with the
    previous row as the prior match and the row's own timestamp as "now".
    Rows that already carry an id are left untouched (but still serve as the
    prior match for the next row).  Returns the number of rows updated.
    """
    rows = store.get_all_rows(MATCHES)
    if len(rows) < 2:
        return 0
    headers = rows[0]
    session_col = find_column_index(headers, "SessionId")

    updated = 0
    previous: Optional[MatchRecord] = None
    for index, row in enumerate(rows[1:], start=1):
        try:
            record = match_from_row(headers, row)
        except ValueError as exc:
            logger.warning("[session] backfill: skipping malformed row %d: %s", index, exc)
            continue

        if not record.session_id:
            assignment = assign_session(
                previous, config.session_gap_hours, record.venue, now=record.timestamp
            )
            new_row = list(row)
            new_row[session_col] = assignment.session_id
            store.update_row(MATCHES, index, new_row)
            record = match_from_row(headers, new_row)
            updated += 1
        previous = record

    logger.info("[session] backfill: assigned session ids to %d matches", updated)
    return updated
