"""
config.py — Project-wide constants and the runtime tracker configuration.

Constants at the top are stable across environments.  The roster and the
session gap are runtime settings read from environment variables (or a .env
file loaded by the entry point) and passed around as a TrackerConfig value,
never looked up globally by the core modules.
"""

import logging
import math
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Match field limits, enforced by match_service.validate_match.
# ---------------------------------------------------------------------------

MIN_INTENSITY: int = 0
MAX_INTENSITY: int = 5

# Longest accepted player name / venue label (matches the column widths in models.py)
MAX_NAME_LENGTH: int = 64

# ---------------------------------------------------------------------------
# Session grouping
# ---------------------------------------------------------------------------

# Two matches further apart than this belong to different sessions.
DEFAULT_SESSION_GAP_HOURS: float = 6.0


@dataclass(frozen=True)
class TrackerConfig:
    """Player roster (ordered, distinct names) and session gap threshold."""

    roster: tuple[str, ...] = ()
    session_gap_hours: float = DEFAULT_SESSION_GAP_HOURS

    def __post_init__(self) -> None:
        if math.isnan(self.session_gap_hours) or self.session_gap_hours < 0:
            raise ValueError(
                f"session_gap_hours must be >= 0, got {self.session_gap_hours}"
            )
        if len(set(self.roster)) != len(self.roster):
            raise ValueError(f"roster contains duplicate names: {list(self.roster)}")


def parse_roster(raw: str) -> tuple[str, ...]:
    """Splits a comma-separated roster, dropping blanks and repeated names."""
    names: list[str] = []
    for part in raw.split(","):
        name = part.strip()
        if not name:
            continue
        if name in names:
            logger.warning("[config] duplicate roster name %r ignored", name)
            continue
        names.append(name)
    return tuple(names)


def load_config() -> TrackerConfig:
    """Reads PLAYER_ROSTER and SESSION_GAP_HOURS from the environment.

    Called at request time so roster edits in the environment take effect
    without restarting anything that imported this module.
    """
    roster = parse_roster(os.getenv("PLAYER_ROSTER", ""))
    gap_raw = os.getenv("SESSION_GAP_HOURS", str(DEFAULT_SESSION_GAP_HOURS))
    try:
        gap_hours = float(gap_raw)
    except ValueError:
        gap_hours = None
    # nan never compares greater, so it would disable gap splits
    if gap_hours is None or math.isnan(gap_hours) or gap_hours < 0:
        logger.warning(
            "[config] SESSION_GAP_HOURS=%r is not a non-negative number, using default %.1f",
            gap_raw, DEFAULT_SESSION_GAP_HOURS,
        )
        gap_hours = DEFAULT_SESSION_GAP_HOURS
    return TrackerConfig(roster=roster, session_gap_hours=gap_hours)
