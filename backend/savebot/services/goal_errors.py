"""Error kinds raised by the goal store and resolver."""

from __future__ import annotations

from typing import Any


class GoalError(Exception):
    """Base exception for recoverable, user-facing goal errors."""

    code = "goal_error"


class DuplicateGoalName(GoalError):
    """Raised when a goal with the same name (ignoring case) already exists."""

    code = "duplicate_name"

    def __init__(self, name: str):
        super().__init__(f"A goal named {name!r} already exists")
        self.name = name


class InvalidTarget(GoalError):
    code = "invalid_target"


class InvalidAmount(GoalError):
    code = "invalid_amount"


class InvalidGoalName(GoalError):
    code = "invalid_name"


class NoGoals(GoalError):
    """Raised when an operation needs at least one goal and the user has none."""

    code = "no_goals"

    def __init__(self) -> None:
        super().__init__("You have no active goals")


class GoalNotFound(GoalError):
    code = "goal_not_found"

    def __init__(self, name: str):
        super().__init__(f"Goal {name!r} not found")
        self.name = name


class NoGoalSpecified(GoalError):
    code = "no_goal_specified"

    def __init__(self) -> None:
        super().__init__("No goal name given and no recent goal to fall back on")


class StaleLastGoal(GoalError):
    """Raised when the last-interacted-goal pointer names a goal that no longer exists."""

    code = "stale_last_goal"

    def __init__(self, name: str):
        super().__init__(f"Last used goal {name!r} no longer exists")
        self.name = name


class PersistenceFailure(GoalError):
    """
    Raised when loading or saving the goal snapshot fails.

    When raised after a mutation, `result` holds what the operation returned; the
    in-memory change stays applied and is retried on the next flush.
    """

    code = "persistence_failure"

    def __init__(self, message: str, result: Any = None):
        super().__init__(message)
        self.result = result
