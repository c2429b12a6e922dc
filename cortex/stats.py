"""Dashboard overview numbers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta

from .models import Note, Session, Todo
from .tree.forest import Forest

WEEKDAY_LABELS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
ACTIVITY_DAYS = 7


@dataclass(frozen=True)
class DailyActivity:
    day: date
    label: str
    minutes: int


@dataclass(frozen=True)
class OverviewStats:
    notes: int
    todos: int
    completed_todos: int
    sessions: int
    total_session_seconds: int
    completion_rate: int  # percent
    hours_learned: float
    activity: tuple[DailyActivity, ...]


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


def _local_day(epoch_ms: int) -> date:
    return datetime.fromtimestamp(epoch_ms / 1000).date()


def overview_stats(forest: Forest, *, today: date | None = None) -> OverviewStats:
    """Counts across the forest plus focus minutes for the last seven days.

    Sessions are attributed to the local calendar day they were recorded on.
    """
    today = today or date.today()
    notes = todos = completed = 0
    sessions: list[Session] = []
    for node in forest:
        if isinstance(node, Note):
            notes += 1
        elif isinstance(node, Todo):
            todos += 1
            completed += node.completed
        elif isinstance(node, Session):
            sessions.append(node)

    seconds_by_day: dict[date, int] = {}
    for session in sessions:
        day = _local_day(session.created_at)
        seconds_by_day[day] = seconds_by_day.get(day, 0) + session.session_duration

    activity = []
    for offset in range(ACTIVITY_DAYS - 1, -1, -1):
        day = today - timedelta(days=offset)
        activity.append(
            DailyActivity(
                day=day,
                label=WEEKDAY_LABELS[day.weekday()],
                minutes=_round_half_up(seconds_by_day.get(day, 0) / 60),
            )
        )

    total_seconds = sum(s.session_duration for s in sessions)
    return OverviewStats(
        notes=notes,
        todos=todos,
        completed_todos=completed,
        sessions=len(sessions),
        total_session_seconds=total_seconds,
        completion_rate=_round_half_up(completed / todos * 100) if todos else 0,
        hours_learned=round(total_seconds / 3600, 1),
        activity=tuple(activity),
    )
