"""Text templates for chat replies."""

from __future__ import annotations

from decimal import Decimal

from savebot.services.goal_errors import (
    DuplicateGoalName,
    GoalError,
    GoalNotFound,
    InvalidAmount,
    InvalidGoalName,
    InvalidTarget,
    NoGoals,
    NoGoalSpecified,
    PersistenceFailure,
    StaleLastGoal,
)
from savebot.services.goals_service import MAX_AMOUNT, MAX_GOAL_NAME_LENGTH, Goal
from savebot.utils import quantize_amount

PROGRESS_BAR_CELLS = 20

WELCOME_TEXT = (
    "Welcome to the Micro-savings Bot! Set a goal with /setgoal <name> <amount>, "
    "then save toward it with /add <amount>."
)

HELP_TEXT = """I can help you save for your small goals.

Here's what you can do:
- /setgoal <name> <amount> (e.g., /setgoal New Book 50)
- /add <amount> [goal_name] (e.g., /add 10 or /add 5 New Book)
- /goals (See all your active goals)
- /progress [goal_name] (Check specific goal progress)
- /delete <goal_name> (Remove a goal)

Let's start saving!"""

USAGE = {
    "setgoal": "Usage: /setgoal <name> <amount> (e.g., /setgoal New Book 50)",
    "add": "Usage: /add <amount> [goal_name] (e.g., /add 10 or /add 5 New Book)",
    "delete": "Usage: /delete <goal_name> (e.g., /delete New Book)",
}

UNKNOWN_COMMAND_TEXT = "I don't know that command. Send /help to see what I can do."
EXPIRED_BUTTON_TEXT = "This button has expired. Send /goals to get a fresh list."
DELETE_CANCELLED_TEXT = "Okay, I kept your goal."
UNSAVED_CHANGE_TEXT = "Warning: I couldn't save this change to disk, it may be lost if I restart."


def money(value: Decimal) -> str:
    return f"${quantize_amount(value)}"


def progress_bar(percentage: int) -> str:
    filled = max(0, min(percentage, 100)) * PROGRESS_BAR_CELLS // 100
    return "▓" * filled + "░" * (PROGRESS_BAR_CELLS - filled) + f" {percentage}%"


def goal_line(goal: Goal) -> str:
    return f"- {goal.name}: {money(goal.saved)} / {money(goal.target)}"


def goal_created(goal: Goal) -> str:
    return (
        f'Goal "{goal.name}" set for {money(goal.target)}. '
        "Start saving with /add <amount>! Good luck"
    )


def contribution_added(goal: Goal, amount: Decimal) -> str:
    return (
        f'Goal "{goal.name}" updated. You saved {money(amount)}. '
        f"Total saved: {money(goal.saved)} / {money(goal.target)}"
    )


def goal_reached(goal: Goal) -> str:
    return f'Goal "{goal.name}" met! Congratulations!'


def goal_already_reached(goal: Goal) -> str:
    return f'You are already past your "{goal.name}" target. Extra savings are still counted.'


def goal_progress(goal: Goal) -> str:
    lines = [
        f'Progress for "{goal.name}":',
        f"Saved: {money(goal.saved)} / {money(goal.target)}",
        progress_bar(goal.progress_pct),
    ]
    if goal.reached:
        lines.append("Target reached!")
    else:
        lines.append(f"Remaining: {money(goal.remaining)}")
    return "\n".join(lines)


def goals_list(goals: list[Goal]) -> str:
    return "Your active goals:\n" + "\n".join(goal_line(goal) for goal in goals)


def goal_deleted(goal: Goal) -> str:
    return f'Goal "{goal.name}" deleted.'


def confirm_delete(goal: Goal) -> str:
    return f'Delete "{goal.name}" ({money(goal.saved)} / {money(goal.target)})? This cannot be undone.'


def add_to_goal_hint(goal: Goal) -> str:
    return f'To save toward "{goal.name}", send /add <amount> {goal.name}'


def no_goals_text() -> str:
    return "You have no active goals. Set one with /setgoal <name> <amount>."


def error_text(exc: GoalError) -> str:
    """User-facing text for every goal error kind."""
    if isinstance(exc, DuplicateGoalName):
        return f'You already have a goal named "{exc.name}". Please choose a different name.'
    if isinstance(exc, InvalidTarget):
        return f"The target amount must be greater than 0 and at most {money(MAX_AMOUNT)}."
    if isinstance(exc, InvalidAmount):
        return f"The amount must be greater than 0 and at most {money(MAX_AMOUNT)}."
    if isinstance(exc, InvalidGoalName):
        return f"Goal names must be 1 to {MAX_GOAL_NAME_LENGTH} characters long."
    if isinstance(exc, NoGoals):
        return no_goals_text()
    if isinstance(exc, GoalNotFound):
        return f'I couldn\'t find a goal named "{exc.name}". Send /goals to see your goals.'
    if isinstance(exc, NoGoalSpecified):
        return "Which goal? Add the goal name, e.g. /add 5 New Book."
    if isinstance(exc, StaleLastGoal):
        return f'Your last goal "{exc.name}" no longer exists. Add the goal name, e.g. /add 5 New Book.'
    if isinstance(exc, PersistenceFailure):
        return UNSAVED_CHANGE_TEXT
    return "Something went wrong with that goal. Please try again."
