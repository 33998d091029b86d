"""Pure streak transitions. Dates are calendar days; no clock access here."""
from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable

from fitplan.domain.streak import StreakData


def calculate_streak_after_completion(previous: StreakData, completion_date: date) -> StreakData:
    """Return the streak after a fully completed ``completion_date``."""
    last = previous.last_completed_date
    if last is None:
        current = 1
        start = completion_date
    else:
        delta = (completion_date - last).days
        if delta <= 0:
            # Already counted, or a date before the last completion.
            return previous
        if delta == 1:
            current = previous.current_streak + 1
            start = previous.streak_start_date or last
        else:
            current = 1
            start = completion_date

    return StreakData(
        current_streak=current,
        longest_streak=max(previous.longest_streak, current),
        last_completed_date=completion_date,
        streak_start_date=start,
    )


def needs_reset(streak: StreakData, today: date) -> bool:
    """True when an active streak was broken: the last completion is before yesterday."""
    if not streak.has_active_streak:
        return False
    if streak.last_completed_date is None:
        return True
    return (today - streak.last_completed_date).days > 1


def reset_streak(streak: StreakData) -> StreakData:
    return StreakData(
        current_streak=0,
        longest_streak=streak.longest_streak,
        last_completed_date=streak.last_completed_date,
        streak_start_date=None,
    )


def apply_lazy_reset(streak: StreakData, today: date) -> StreakData:
    return reset_streak(streak) if needs_reset(streak, today) else streak


def can_continue_today(streak: StreakData, today: date) -> bool:
    """True when completing ``today`` would extend the current streak."""
    last = streak.last_completed_date
    return last is not None and (today - last).days == 1


def calculate_streak_from_history(completed_dates: Iterable[date], today: date) -> StreakData:
    """Rebuild streak state from the set of fully completed dates.

    The current streak only counts if its most recent day is today or
    yesterday; otherwise it has already lapsed and is reported as 0.
    """
    ordered = sorted(set(completed_dates))
    if not ordered:
        return StreakData()

    longest = 0
    run_length = 0
    run_start = ordered[0]
    previous_day = None
    for day in ordered:
        if previous_day is not None and day - previous_day == timedelta(days=1):
            run_length += 1
        else:
            run_length = 1
            run_start = day
        longest = max(longest, run_length)
        previous_day = day

    last = ordered[-1]
    if (today - last).days > 1:
        return StreakData(current_streak=0, longest_streak=longest, last_completed_date=last)
    return StreakData(
        current_streak=run_length,
        longest_streak=longest,
        last_completed_date=last,
        streak_start_date=run_start,
    )
