"""
records.py — Typed domain records and their table-row conversions.

MatchRecord is the immutable source-of-truth record.  SessionSummary and
PlayerSessionStat are derived values produced by stats_aggregator.py and
written by summary_persister.py.  Conversions read columns by header name
(find_column_index), so a table with reordered columns still parses.
"""

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Optional, Sequence

from tracker.record_store import SchemaError, find_column_index

logger = logging.getLogger(__name__)


def ensure_utc(value: datetime) -> datetime:
    """Treats naive datetimes (as returned by SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, str) and value:
        return ensure_utc(datetime.fromisoformat(value))
    raise ValueError(f"not a timestamp: {value!r}")


def _optional_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    return _to_datetime(value)


def _to_int(value: Any) -> int:
    if value is None or value == "":
        return 0
    return int(value)


def _to_str(value: Any) -> str:
    return "" if value is None else str(value).strip()


class Outcome(str, enum.Enum):
    A = "A"
    B = "B"
    DRAW = "Draw"

    @classmethod
    def parse(cls, value: Any) -> "Outcome":
        """Case-insensitive lookup: "a", "B", "draw" ..."""
        if isinstance(value, Outcome):
            return value
        text = _to_str(value).lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        raise ValueError(f"unknown outcome {value!r} (expected A, B or Draw)")


# ---------------------------------------------------------------------------
# Matches
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MatchRecord:
    timestamp: datetime
    player_a: str
    player_b: str
    outcome: Outcome
    intensity: int
    venue: str = ""
    session_id: str = ""
    notes: str = ""
    duration_minutes: Optional[int] = None

    def side_of(self, player: str) -> Optional[str]:
        """"A" / "B" when `player` took part in this match, else None."""
        if player == self.player_a:
            return "A"
        if player == self.player_b:
            return "B"
        return None

    def to_row(self) -> list[Any]:
        return [
            self.timestamp,
            self.player_a,
            self.player_b,
            self.outcome.value,
            self.notes,
            self.venue,
            self.intensity,
            self.duration_minutes,
            self.session_id,
        ]


def match_from_row(headers: Sequence[str], row: Sequence[Any]) -> MatchRecord:
    """Builds a MatchRecord from one data row.  Raises ValueError/SchemaError."""
    def col(name: str) -> Any:
        return row[find_column_index(headers, name)]

    duration = col("DurationMinutes")
    return MatchRecord(
        timestamp=_to_datetime(col("Timestamp")),
        player_a=_to_str(col("PlayerA")),
        player_b=_to_str(col("PlayerB")),
        outcome=Outcome.parse(col("Outcome")),
        intensity=_to_int(col("Intensity")),
        venue=_to_str(col("Venue")),
        session_id=_to_str(col("SessionId")),
        notes=_to_str(col("Notes")),
        duration_minutes=None if duration in (None, "") else int(duration),
    )


def parse_match_rows(table_rows: Sequence[Sequence[Any]]) -> list[MatchRecord]:
    """Converts a full-range Matches read (header first) into MatchRecords.

    Unparseable rows are logged and skipped; a missing column is a schema
    problem and propagates as SchemaError.
    """
    if not table_rows:
        return []
    headers = list(table_rows[0])
    # Fail fast on schema mismatch instead of logging every row
    for name in ("Timestamp", "PlayerA", "PlayerB", "Outcome", "Intensity", "SessionId"):
        find_column_index(headers, name)

    records: list[MatchRecord] = []
    for index, row in enumerate(table_rows[1:], start=1):
        try:
            records.append(match_from_row(headers, row))
        except SchemaError:
            raise
        except (TypeError, ValueError, IndexError) as exc:
            logger.warning("[records] skipping malformed Matches row %d: %s", index, exc)
    return records


def session_ids_in(records: Iterable[MatchRecord]) -> list[str]:
    """Distinct non-empty session ids in first-seen order."""
    seen: dict[str, None] = {}
    for record in records:
        if record.session_id:
            seen.setdefault(record.session_id, None)
    return list(seen)


# ---------------------------------------------------------------------------
# Derived views
# ---------------------------------------------------------------------------

@dataclass
class SessionSummary:
    session_id: str
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    match_count: int = 0
    a_wins: int = 0
    b_wins: int = 0
    draws: int = 0
    avg_intensity: float = 0.0
    last_updated: Optional[datetime] = None

    def to_row(self) -> list[Any]:
        return [
            self.session_id,
            self.start_time,
            self.end_time,
            self.match_count,
            self.a_wins,
            self.b_wins,
            self.draws,
            self.avg_intensity,
            self.last_updated,
        ]


@dataclass
class PlayerSessionStat:
    session_id: str
    player: str
    matches: int = 0
    wins: int = 0
    wins_as_a: int = 0
    wins_as_b: int = 0
    losses: int = 0
    losses_as_a: int = 0
    losses_as_b: int = 0
    draws: int = 0
    draws_as_a: int = 0
    draws_as_b: int = 0
    inflicted: int = 0
    suffered: int = 0
    last_updated: Optional[datetime] = None

    def to_row(self) -> list[Any]:
        return [
            self.session_id,
            self.player,
            self.matches,
            self.wins,
            self.wins_as_a,
            self.wins_as_b,
            self.losses,
            self.losses_as_a,
            self.losses_as_b,
            self.draws,
            self.draws_as_a,
            self.draws_as_b,
            self.inflicted,
            self.suffered,
            self.last_updated,
        ]


@dataclass
class SessionStats:
    """Aggregator output: one summary plus per-roster-player counters."""
    summary: SessionSummary
    players: dict[str, PlayerSessionStat] = field(default_factory=dict)

    def played(self) -> list[PlayerSessionStat]:
        """Player stats with at least one match, in roster order."""
        return [stat for stat in self.players.values() if stat.matches > 0]


def summary_from_row(headers: Sequence[str], row: Sequence[Any]) -> SessionSummary:
    def col(name: str) -> Any:
        return row[find_column_index(headers, name)]

    avg = col("AvgIntensity")
    return SessionSummary(
        session_id=_to_str(col("SessionId")),
        start_time=_optional_datetime(col("StartTime")),
        end_time=_optional_datetime(col("EndTime")),
        match_count=_to_int(col("MatchCount")),
        a_wins=_to_int(col("AWins")),
        b_wins=_to_int(col("BWins")),
        draws=_to_int(col("Draws")),
        avg_intensity=float(avg) if avg not in (None, "") else 0.0,
        last_updated=_optional_datetime(col("LastUpdated")),
    )


def player_stat_from_row(headers: Sequence[str], row: Sequence[Any]) -> PlayerSessionStat:
    def col(name: str) -> Any:
        return row[find_column_index(headers, name)]

    return PlayerSessionStat(
        session_id=_to_str(col("SessionId")),
        player=_to_str(col("Player")),
        matches=_to_int(col("Matches")),
        wins=_to_int(col("Wins")),
        wins_as_a=_to_int(col("WinsAsA")),
        wins_as_b=_to_int(col("WinsAsB")),
        losses=_to_int(col("Losses")),
        losses_as_a=_to_int(col("LossesAsA")),
        losses_as_b=_to_int(col("LossesAsB")),
        draws=_to_int(col("Draws")),
        draws_as_a=_to_int(col("DrawsAsA")),
        draws_as_b=_to_int(col("DrawsAsB")),
        inflicted=_to_int(col("Inflicted")),
        suffered=_to_int(col("Suffered")),
        last_updated=_optional_datetime(col("LastUpdated")),
    )

