"""
Round end estimate: latest scheduled battle of the round plus the tournament's
round delay. Bad timestamps are skipped rather than raised.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Iterable, Optional

from arena.models.tournament_battle import TournamentBattle

logger = logging.getLogger(__name__)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Coerce a stored timestamp to a datetime.

    Accepts datetime objects and ISO-8601 strings ("2024-01-10T10:00",
    "2024-01-10 10:00:00", trailing "Z"). Returns None for anything else.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            logger.warning(f"Skipping unparseable timestamp: {value!r}")
            return None
    logger.warning(f"Skipping timestamp of unsupported type {type(value).__name__}: {value!r}")
    return None


def normalize_delay_days(round_delay_days: Any) -> int:
    """Whole days of delay, clamped at 0. Unusable values count as no delay."""
    try:
        days = int(round_delay_days or 0)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring invalid round_delay_days: {round_delay_days!r}")
        return 0
    return max(0, days)


def latest_scheduled_at(battles: Iterable[TournamentBattle]) -> Optional[datetime]:
    latest: Optional[datetime] = None
    for battle in battles:
        scheduled = parse_timestamp(battle.scheduled_at)
        if scheduled is None:
            continue
        try:
            if latest is None or scheduled > latest:
                latest = scheduled
        except TypeError:
            # naive vs aware comparison; keep the first one seen
            logger.warning(f"Skipping scheduled_at with mismatched timezone on battle {battle.id}")
    return latest


def estimate_round_end(battles: Iterable[TournamentBattle], round_delay_days: Any = 0) -> Optional[datetime]:
    """
    Estimated end of a round, or None when no battle has a usable scheduled_at.

    `battles` should be the battles of a single round.
    """
    latest = latest_scheduled_at(battles)
    if latest is None:
        return None
    return latest + timedelta(days=normalize_delay_days(round_delay_days))
