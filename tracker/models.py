"""
models.py — SQLAlchemy ORM models backing the three tracker tables.

Importing this module registers all models with Base (from database.py),
so Alembic can detect the full schema via Base.metadata.

Each table has a surrogate autoincrement `row_id` that only fixes row order;
it is never exposed.  The remaining columns are declared in the exact order
of the public table headers (see record_store.py), which is a wire contract
with external reporting tools.
"""

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    Integer,
    String,
    Text,
)

from tracker.database import Base


# ---------------------------------------------------------------------------
# Source of truth
# ---------------------------------------------------------------------------

class MatchRow(Base):
    """One logged match. Append-only."""
    __tablename__ = "matches"

    row_id = Column(Integer, primary_key=True, autoincrement=True)
    # Always UTC; SQLite hands it back naive (see records.ensure_utc)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    player_a = Column(String(64), nullable=False)
    player_b = Column(String(64), nullable=False)
    outcome = Column(String(8), nullable=False)     # "A", "B" or "Draw"
    notes = Column(Text, nullable=False, default="")
    venue = Column(String(64), nullable=False, default="")
    intensity = Column(Integer, nullable=False, default=0)   # 0..5
    duration_minutes = Column(Integer)
    session_id = Column(String(36), nullable=False, default="", index=True)


# ---------------------------------------------------------------------------
# Derived views (rebuilt by reconciler.py)
# ---------------------------------------------------------------------------

class SessionRow(Base):
    __tablename__ = "sessions"

    row_id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(36), nullable=False, index=True)
    start_time = Column(DateTime(timezone=True))
    end_time = Column(DateTime(timezone=True))
    match_count = Column(Integer, nullable=False, default=0)
    a_wins = Column(Integer, nullable=False, default=0)
    b_wins = Column(Integer, nullable=False, default=0)
    draws = Column(Integer, nullable=False, default=0)
    avg_intensity = Column(Float, nullable=False, default=0.0)
    last_updated = Column(DateTime(timezone=True))


class SessionPlayerRow(Base):
    """Per-player counters within one session; `*_as_a` / `*_as_b` split by side."""
    __tablename__ = "session_players"

    row_id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(36), nullable=False, index=True)
    player = Column(String(64), nullable=False)
    matches = Column(Integer, nullable=False, default=0)
    wins = Column(Integer, nullable=False, default=0)
    wins_as_a = Column(Integer, nullable=False, default=0)
    wins_as_b = Column(Integer, nullable=False, default=0)
    losses = Column(Integer, nullable=False, default=0)
    losses_as_a = Column(Integer, nullable=False, default=0)
    losses_as_b = Column(Integer, nullable=False, default=0)
    draws = Column(Integer, nullable=False, default=0)
    draws_as_a = Column(Integer, nullable=False, default=0)
    draws_as_b = Column(Integer, nullable=False, default=0)
    inflicted = Column(Integer, nullable=False, default=0)
    suffered = Column(Integer, nullable=False, default=0)
    last_updated = Column(DateTime(timezone=True))
