"""Pure lookup helpers deciding which goal an operation targets."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from savebot.services.goal_errors import GoalNotFound, NoGoalSpecified, StaleLastGoal
from savebot.utils import normalize_goal_name

if TYPE_CHECKING:
    from savebot.services.goals_service import Goal


def find_goal(goals: Sequence[Goal], name: str) -> Goal | None:
    """Return the goal whose name matches ignoring case and spacing, or None."""
    key = normalize_goal_name(name)
    for goal in goals:
        if normalize_goal_name(goal.name) == key:
            return goal
    return None


def resolve_goal(
    goals: Sequence[Goal],
    last_goal: str | None,
    name: str | None = None,
) -> Goal:
    """
    Pick the target goal for an operation.

    Order:
    - explicit name: must match, else GoalNotFound
    - last-interacted goal: must still exist, else StaleLastGoal
    - neither: NoGoalSpecified

    Callers update the last-interacted pointer themselves after success.
    """
    if name is not None and name.strip():
        goal = find_goal(goals, name)
        if goal is None:
            raise GoalNotFound(name.strip())
        return goal

    if last_goal:
        goal = find_goal(goals, last_goal)
        if goal is None:
            raise StaleLastGoal(last_goal)
        return goal

    raise NoGoalSpecified()
