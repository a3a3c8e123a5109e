"""
stats_aggregator.py — Derives session and per-player statistics from matches.

Pure computation: takes the full match list, filters it to one session and
accumulates counters in a single pass.  Calling it twice on the same input
gives the same output, which is what lets the reconciler rebuild derived
tables from scratch at any time.

Intensity attribution:
  decisive result -> winner: +intensity to `inflicted`
                     loser:  +intensity to `suffered`
  draw            -> both:   +intensity to `suffered` (nobody inflicts)
"""

import logging
from datetime import datetime
from typing import Iterable, Optional, Sequence

from tracker.records import (
    MatchRecord,
    Outcome,
    PlayerSessionStat,
    SessionStats,
    SessionSummary,
    utcnow,
)

logger = logging.getLogger(__name__)


def _credit_player(stat: PlayerSessionStat, side: str, match: MatchRecord) -> None:
    stat.matches += 1
    if match.outcome is Outcome.DRAW:
        stat.draws += 1
        if side == "A":
            stat.draws_as_a += 1
        else:
            stat.draws_as_b += 1
        stat.suffered += match.intensity
    elif match.outcome.value == side:
        stat.wins += 1
        if side == "A":
            stat.wins_as_a += 1
        else:
            stat.wins_as_b += 1
        stat.inflicted += match.intensity
    else:
        stat.losses += 1
        if side == "A":
            stat.losses_as_a += 1
        else:
            stat.losses_as_b += 1
        stat.suffered += match.intensity


def compute_session_stats(
    session_id: str,
    all_matches: Iterable[MatchRecord],
    roster: Sequence[str],
    computed_at: Optional[datetime] = None,
) -> SessionStats:
    """Builds the SessionSummary and a roster-keyed PlayerSessionStat map.

    Every roster name gets an entry; players who did not play in the session
    keep all-zero counters.  A session with no matches yields a zero summary
    (start/end None) rather than an error.
    """
    computed_at = computed_at or utcnow()
    summary = SessionSummary(session_id=session_id, last_updated=computed_at)
    players: dict[str, PlayerSessionStat] = {
        name: PlayerSessionStat(session_id=session_id, player=name, last_updated=computed_at)
        for name in roster
    }

    intensity_total = 0
    for match in all_matches:
        if match.session_id != session_id:
            continue

        summary.match_count += 1
        if match.outcome is Outcome.A:
            summary.a_wins += 1
        elif match.outcome is Outcome.B:
            summary.b_wins += 1
        else:
            summary.draws += 1
        intensity_total += match.intensity

        if summary.start_time is None or match.timestamp < summary.start_time:
            summary.start_time = match.timestamp
        if summary.end_time is None or match.timestamp > summary.end_time:
            summary.end_time = match.timestamp

        for name, stat in players.items():
            side = match.side_of(name)
            if side is None:
                continue
            _credit_player(stat, side, match)

    if summary.match_count:
        summary.avg_intensity = intensity_total / summary.match_count

    logger.debug(
        "[stats] session %s: matches=%d A=%d B=%d draws=%d avg_intensity=%.2f",
        session_id, summary.match_count, summary.a_wins, summary.b_wins,
        summary.draws, summary.avg_intensity,
    )
    return SessionStats(summary=summary, players=players)
