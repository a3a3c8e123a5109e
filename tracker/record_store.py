"""
record_store.py — Tabular record store used by the session/stats engine.

The engine only ever sees "tables" as ordered lists of rows with a header
row on top, the same shape a spreadsheet range has:

    get_all_rows("Matches") -> [
        ["Timestamp", "PlayerA", ...],      # index 0: header
        [datetime(...), "Alice", ...],      # index 1: first data row
        ...
    ]

Rows are addressed by that position, so deleting row 3 shifts every later
row up by one.  Callers that delete several rows must go from the highest
index downward.

SqlRecordStore maps the three logical tables onto the ORM tables in
models.py using SQLAlchemy Core.  Every call runs in its own
engine.begin() transaction; there is no isolation across calls (single
writer assumed).
"""

import logging
from typing import Any, Sequence

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.engine import Connection, Engine

from tracker.models import MatchRow, SessionPlayerRow, SessionRow

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Table names and headers (column order is a wire contract)
# ---------------------------------------------------------------------------

MATCHES = "Matches"
SESSIONS = "Sessions"
SESSION_PLAYERS = "SessionPlayers"

MATCHES_HEADERS: list[str] = [
    "Timestamp", "PlayerA", "PlayerB", "Outcome", "Notes",
    "Venue", "Intensity", "DurationMinutes", "SessionId",
]
SESSIONS_HEADERS: list[str] = [
    "SessionId", "StartTime", "EndTime", "MatchCount",
    "AWins", "BWins", "Draws", "AvgIntensity", "LastUpdated",
]
SESSION_PLAYERS_HEADERS: list[str] = [
    "SessionId", "Player", "Matches",
    "Wins", "WinsAsA", "WinsAsB",
    "Losses", "LossesAsA", "LossesAsB",
    "Draws", "DrawsAsA", "DrawsAsB",
    "Inflicted", "Suffered", "LastUpdated",
]

TABLE_HEADERS: dict[str, list[str]] = {
    MATCHES: MATCHES_HEADERS,
    SESSIONS: SESSIONS_HEADERS,
    SESSION_PLAYERS: SESSION_PLAYERS_HEADERS,
}


class SchemaError(ValueError):
    """A table does not have the column (or row width) the caller expects."""


def find_column_index(headers: Sequence[str], name: str) -> int:
    """Returns the position of `name` in a header row.

    Raises SchemaError when the column is missing.
    """
    try:
        return list(headers).index(name)
    except ValueError:
        raise SchemaError(f"column {name!r} not found in headers {list(headers)}") from None


# ---------------------------------------------------------------------------
# SQLAlchemy-backed store
# ---------------------------------------------------------------------------

_ORM_TABLES = {
    MATCHES: MatchRow.__table__,
    SESSIONS: SessionRow.__table__,
    SESSION_PLAYERS: SessionPlayerRow.__table__,
}


class SqlRecordStore:
    """Record store over a SQLAlchemy engine (SQLite or PostgreSQL)."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    # -- helpers ------------------------------------------------------------

    @staticmethod
    def _table(table: str):
        try:
            return _ORM_TABLES[table]
        except KeyError:
            raise KeyError(f"unknown table {table!r}") from None

    @staticmethod
    def _data_columns(sa_table) -> list:
        # Declaration order in models.py == header order
        return [c for c in sa_table.columns if c.name != "row_id"]

    def _row_values(self, table: str, row: Sequence[Any]) -> dict[str, Any]:
        sa_table = self._table(table)
        columns = self._data_columns(sa_table)
        if len(row) != len(columns):
            raise SchemaError(
                f"{table}: expected {len(columns)} values, got {len(row)}"
            )
        return {col.name: value for col, value in zip(columns, row)}

    def _row_id_at(self, conn: Connection, table: str, index: int) -> int:
        """Translates a 1-based data-row position into the surrogate row_id."""
        sa_table = self._table(table)
        if index < 1:
            raise IndexError(f"{table}: row index {index} out of range (data rows start at 1)")
        row_id = conn.execute(
            select(sa_table.c.row_id)
            .order_by(sa_table.c.row_id)
            .offset(index - 1)
            .limit(1)
        ).scalar()
        if row_id is None:
            raise IndexError(f"{table}: row index {index} out of range")
        return row_id

    # -- public API ---------------------------------------------------------

    def get_all_rows(self, table: str) -> list[list[Any]]:
        """Full-range read: header row followed by data rows in insertion order."""
        sa_table = self._table(table)
        columns = self._data_columns(sa_table)
        with self._engine.connect() as conn:
            result = conn.execute(select(*columns).order_by(sa_table.c.row_id)).all()
        return [list(TABLE_HEADERS[table])] + [list(r) for r in result]

    def append(self, table: str, row: Sequence[Any]) -> int:
        """Appends a row; returns its index (position in get_all_rows)."""
        sa_table = self._table(table)
        values = self._row_values(table, row)
        with self._engine.begin() as conn:
            conn.execute(insert(sa_table).values(**values))
            count = conn.execute(select(func.count()).select_from(sa_table)).scalar()
        return int(count)

    def update_row(self, table: str, index: int, row: Sequence[Any]) -> None:
        sa_table = self._table(table)
        values = self._row_values(table, row)
        with self._engine.begin() as conn:
            row_id = self._row_id_at(conn, table, index)
            conn.execute(
                update(sa_table).where(sa_table.c.row_id == row_id).values(**values)
            )

    def delete_row(self, table: str, index: int) -> None:
        sa_table = self._table(table)
        with self._engine.begin() as conn:
            row_id = self._row_id_at(conn, table, index)
            conn.execute(delete(sa_table).where(sa_table.c.row_id == row_id))
        logger.debug("[store] deleted %s row %d", table, index)

    def delete_rows(self, table: str, indices: Sequence[int]) -> int:
        """Deletes several rows by position, highest index first.

        Returns the number of rows removed.
        """
        removed = 0
        for index in sorted(set(indices), reverse=True):
            self.delete_row(table, index)
            removed += 1
        return removed
