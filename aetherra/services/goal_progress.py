"""
Goal progress and status transitions.

    active ──(current >= target)──────────────▶ completed
    active ──(now > deadline, not completed)──▶ overdue

``completed``, ``overdue`` and ``cancelled`` are never left automatically;
only a manual edit can move a goal out of them.
"""

from datetime import datetime
from typing import Any, Optional

from aetherra.utils.time import to_naive_utc, utcnow

ACTIVE = "active"
COMPLETED = "completed"
OVERDUE = "overdue"
CANCELLED = "cancelled"
GOAL_STATUSES = (ACTIVE, COMPLETED, OVERDUE, CANCELLED)


def raw_progress(goal: Any) -> float:
    """Unclamped progress percentage."""
    if goal.target_type == "percentage" and goal.baseline:
        return (goal.baseline - goal.current) / goal.baseline * 100
    if not goal.target:
        return 0.0
    return goal.current / goal.target * 100


def goal_progress(goal: Any) -> float:
    """Progress percentage clamped to [0, 100] for display."""
    return min(max(raw_progress(goal), 0.0), 100.0)


def next_status(goal: Any, now: Optional[datetime] = None) -> str:
    """Status after applying the automatic transitions; does not mutate."""
    if goal.status != ACTIVE:
        return goal.status
    # Raw comparison for every target type: a percentage goal completes on
    # current >= target, not on goal_progress() reaching 100.
    if goal.current >= goal.target:
        return COMPLETED
    now = to_naive_utc(now) or utcnow()
    if goal.deadline is not None and now > to_naive_utc(goal.deadline):
        return OVERDUE
    return ACTIVE


def apply_transitions(goal: Any, now: Optional[datetime] = None) -> bool:
    """Update ``goal.status`` in place. Returns True when it changed."""
    status = next_status(goal, now)
    if status != goal.status:
        goal.status = status
        return True
    return False


def mark_milestones(goal: Any, now: Optional[datetime] = None) -> int:
    """Flag milestones whose value the current progress has reached."""
    if not goal.milestones:
        return 0
    now = to_naive_utc(now) or utcnow()
    progress = goal_progress(goal)
    reached = 0
    milestones = []
    for milestone in goal.milestones:
        milestone = dict(milestone)
        if not milestone.get("reached") and progress >= milestone.get("value", 0):
            milestone["reached"] = True
            milestone["reached_at"] = now.isoformat()
            reached += 1
        milestones.append(milestone)
    # Reassign so the JSON column registers the change
    goal.milestones = milestones
    return reached
