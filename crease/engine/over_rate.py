"""
Over-rate timer.

Compares overs actually bowled with the overs that should have been bowled
at the expected pace since the innings clock started. Purely advisory: it
reads the timer block on the state and never changes it.
"""

from crease.config import settings
from crease.engine.delivery import BALLS_PER_OVER
from crease.models import MatchFormat, MatchTimer, OverRateStatus


def minutes_per_over_for(match_format: MatchFormat) -> float:
    if match_format == MatchFormat.TEST:
        return settings.minutes_per_over_test
    return settings.minutes_per_over_limited


def elapsed_seconds(timer: MatchTimer, now: float) -> float:
    """Playing time since the clock started, with every pause taken out."""
    if timer.start_time is None:
        return 0.0
    elapsed = now - timer.start_time - timer.total_allowances
    if timer.is_paused and timer.last_pause_time is not None:
        elapsed -= now - timer.last_pause_time
    return max(0.0, elapsed)


def over_rate_status(
    timer: MatchTimer,
    total_balls: int,
    now: float,
    minutes_per_over: float | None = None,
    active: bool = True,
    tolerance_overs: float | None = None,
) -> OverRateStatus:
    if minutes_per_over is None:
        minutes_per_over = settings.minutes_per_over_limited
    if tolerance_overs is None:
        tolerance_overs = settings.over_rate_tolerance_overs

    elapsed = elapsed_seconds(timer, now)
    actual_overs = total_balls / BALLS_PER_OVER
    expected_overs = elapsed / (minutes_per_over * 60) if minutes_per_over > 0 else 0.0

    return OverRateStatus(
        elapsed_seconds=int(elapsed),
        actual_overs=round(actual_overs, 2),
        expected_overs=round(expected_overs, 2),
        behind_rate=active and expected_overs - actual_overs > tolerance_overs,
    )


def format_elapsed(seconds: int) -> str:
    """mm:ss, or h:mm:ss once past the hour."""
    hours, rem = divmod(int(seconds), 3600)
    minutes, secs = divmod(rem, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"
