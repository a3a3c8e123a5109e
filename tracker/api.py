import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from tracker.config import TrackerConfig, load_config
from tracker.database import create_all_tables, engine
from tracker.match_service import (
    MatchValidationError,
    delete_match,
    get_session,
    list_matches,
    list_sessions,
    log_match,
)
from tracker.reconciler import recompute_all_sessions, recompute_session_stats
from tracker.record_store import SqlRecordStore
from tracker.records import MatchRecord, PlayerSessionStat, SessionSummary
from tracker.session_assigner import backfill_session_ids

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    # Idempotent; Alembic is the authoritative source for PostgreSQL
    create_all_tables()
    yield


app = FastAPI(title="Match Session Tracker", lifespan=lifespan)

# The submission form is served from a different origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_store() -> SqlRecordStore:
    return SqlRecordStore(engine)


def get_config() -> TrackerConfig:
    """Read per request so roster changes apply without a restart."""
    return load_config()


# ========== Pydantic Models ==========

class MatchSubmission(BaseModel):
    player_a: str
    player_b: str
    outcome: str               # "A", "B" or "Draw"
    intensity: int
    venue: str = ""
    notes: str = ""
    duration_minutes: int | None = None


class MatchOut(BaseModel):
    row_index: int
    timestamp: datetime
    player_a: str
    player_b: str
    outcome: str
    intensity: int
    venue: str
    session_id: str
    notes: str
    duration_minutes: int | None = None


class MatchSubmissionResponse(BaseModel):
    match: MatchOut
    new_session: bool
    session_reason: str
    stats_updated: bool


class SessionOut(BaseModel):
    session_id: str
    start_time: datetime | None = None
    end_time: datetime | None = None
    match_count: int
    a_wins: int
    b_wins: int
    draws: int
    avg_intensity: float
    last_updated: datetime | None = None


class PlayerStatOut(BaseModel):
    player: str
    matches: int
    wins: int
    wins_as_a: int
    wins_as_b: int
    losses: int
    losses_as_a: int
    losses_as_b: int
    draws: int
    draws_as_a: int
    draws_as_b: int
    inflicted: int
    suffered: int
    last_updated: datetime | None = None


class SessionDetail(BaseModel):
    session: SessionOut
    players: list[PlayerStatOut]


class ReconcileOut(BaseModel):
    session_id: str
    action: str
    match_count: int
    stale_players_removed: int
    error: str | None = None


class BulkRecomputeOut(BaseModel):
    recalculated: int
    removed: int
    errors: list[dict]
    backfilled: int = 0


def _match_out(row_index: int, record: MatchRecord) -> MatchOut:
    return MatchOut(
        row_index=row_index,
        timestamp=record.timestamp,
        player_a=record.player_a,
        player_b=record.player_b,
        outcome=record.outcome.value,
        intensity=record.intensity,
        venue=record.venue,
        session_id=record.session_id,
        notes=record.notes,
        duration_minutes=record.duration_minutes,
    )


def _session_out(summary: SessionSummary) -> SessionOut:
    return SessionOut(
        session_id=summary.session_id,
        start_time=summary.start_time,
        end_time=summary.end_time,
        match_count=summary.match_count,
        a_wins=summary.a_wins,
        b_wins=summary.b_wins,
        draws=summary.draws,
        avg_intensity=summary.avg_intensity,
        last_updated=summary.last_updated,
    )


def _player_out(stat: PlayerSessionStat) -> PlayerStatOut:
    return PlayerStatOut(
        player=stat.player,
        matches=stat.matches,
        wins=stat.wins,
        wins_as_a=stat.wins_as_a,
        wins_as_b=stat.wins_as_b,
        losses=stat.losses,
        losses_as_a=stat.losses_as_a,
        losses_as_b=stat.losses_as_b,
        draws=stat.draws,
        draws_as_a=stat.draws_as_a,
        draws_as_b=stat.draws_as_b,
        inflicted=stat.inflicted,
        suffered=stat.suffered,
        last_updated=stat.last_updated,
    )


# ========== Matches ==========

@app.post("/api/matches", response_model=MatchSubmissionResponse, status_code=201)
def submit_match(
    data: MatchSubmission,
    store: SqlRecordStore = Depends(get_store),
    config: TrackerConfig = Depends(get_config),
):
    """Logs one match.  Succeeds even if the session stats could not be refreshed."""
    try:
        logged = log_match(
            store,
            config,
            player_a=data.player_a,
            player_b=data.player_b,
            outcome=data.outcome,
            intensity=data.intensity,
            venue=data.venue,
            notes=data.notes,
            duration_minutes=data.duration_minutes,
        )
    except MatchValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return MatchSubmissionResponse(
        match=_match_out(logged.row_index, logged.record),
        new_session=logged.assignment.is_new,
        session_reason=logged.assignment.reason,
        stats_updated=logged.summary_result.success,
    )


@app.get("/api/matches", response_model=list[MatchOut])
def get_matches(
    session_id: str | None = Query(default=None, description="Only matches of this session"),
    store: SqlRecordStore = Depends(get_store),
):
    return [_match_out(index, record) for index, record in list_matches(store, session_id)]


@app.delete("/api/matches/{row_index}", response_model=ReconcileOut)
def remove_match(
    row_index: int,
    store: SqlRecordStore = Depends(get_store),
    config: TrackerConfig = Depends(get_config),
):
    """Deletes a match by row position and reconciles its session."""
    try:
        result = delete_match(store, config, row_index)
    except IndexError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return ReconcileOut(**vars(result))


# ========== Sessions ==========

@app.get("/api/sessions", response_model=list[SessionOut])
def get_sessions(store: SqlRecordStore = Depends(get_store)):
    return [_session_out(summary) for summary in list_sessions(store)]


@app.get("/api/sessions/{session_id}", response_model=SessionDetail)
def get_session_detail(session_id: str, store: SqlRecordStore = Depends(get_store)):
    found = get_session(store, session_id)
    if found is None:
        raise HTTPException(status_code=404, detail=f"session {session_id} not found")
    summary, players = found
    return SessionDetail(
        session=_session_out(summary),
        players=[_player_out(stat) for stat in players],
    )


@app.post("/api/sessions/{session_id}/recompute", response_model=ReconcileOut)
def recompute_session(
    session_id: str,
    store: SqlRecordStore = Depends(get_store),
    config: TrackerConfig = Depends(get_config),
):
    result = recompute_session_stats(store, config, session_id)
    logger.info("[api] recompute session %s -> %s", session_id, result.action)
    return ReconcileOut(**vars(result))


# ========== Maintenance ==========

@app.post("/api/admin/recompute", response_model=BulkRecomputeOut)
def recompute_everything(
    store: SqlRecordStore = Depends(get_store),
    config: TrackerConfig = Depends(get_config),
):
    """Rebuilds Sessions / SessionPlayers for every known session."""
    result = recompute_all_sessions(store, config)
    return BulkRecomputeOut(
        recalculated=result.recalculated,
        removed=result.removed,
        errors=[{"session_id": sid, "error": msg} for sid, msg in result.errors],
    )


@app.post("/api/admin/backfill-sessions", response_model=BulkRecomputeOut)
def backfill_sessions(
    store: SqlRecordStore = Depends(get_store),
    config: TrackerConfig = Depends(get_config),
):
    """Assigns session ids to old matches that have none, then rebuilds all sessions."""
    backfilled = backfill_session_ids(store, config)
    result = recompute_all_sessions(store, config)
    return BulkRecomputeOut(
        recalculated=result.recalculated,
        removed=result.removed,
        errors=[{"session_id": sid, "error": msg} for sid, msg in result.errors],
        backfilled=backfilled,
    )
