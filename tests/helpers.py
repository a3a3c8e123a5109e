# tests/helpers.py

from datetime import datetime, timedelta, timezone

from tracker.record_store import MATCHES, SqlRecordStore
from tracker.records import MatchRecord, Outcome

# Fixed clock so derived rows are byte-comparable between runs
BASE_TIME = datetime(2026, 3, 14, 18, 0, tzinfo=timezone.utc)


def make_match(
    player_a="Alice",
    player_b="Bob",
    outcome=Outcome.A,
    intensity=1,
    venue="Home",
    session_id="S1",
    minutes=0,
    notes="",
) -> MatchRecord:
    """MatchRecord at BASE_TIME + `minutes`."""
    return MatchRecord(
        timestamp=BASE_TIME + timedelta(minutes=minutes),
        player_a=player_a,
        player_b=player_b,
        outcome=Outcome.parse(outcome),
        intensity=intensity,
        venue=venue,
        session_id=session_id,
        notes=notes,
    )


def add_matches(store: SqlRecordStore, *matches: MatchRecord) -> None:
    """Writes matches straight to the Matches table, bypassing the service."""
    for match in matches:
        store.append(MATCHES, match.to_row())
