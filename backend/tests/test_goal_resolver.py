from __future__ import annotations

from decimal import Decimal

import pytest

from savebot.services.goal_errors import GoalNotFound, NoGoalSpecified, StaleLastGoal
from savebot.services.goal_resolver import find_goal, resolve_goal
from savebot.services.goals_service import Goal

GOALS = [Goal("New Book", Decimal("50.00")), Goal("Trip", Decimal("100.00"))]


def test_find_goal_ignores_case_and_spacing() -> None:
    assert find_goal(GOALS, "new   BOOK").name == "New Book"
    assert find_goal(GOALS, "Car") is None


def test_explicit_name_wins_over_last_goal() -> None:
    assert resolve_goal(GOALS, "Trip", "new book").name == "New Book"


def test_explicit_name_not_found() -> None:
    with pytest.raises(GoalNotFound):
        resolve_goal(GOALS, "Trip", "Car")


def test_falls_back_to_last_goal() -> None:
    assert resolve_goal(GOALS, "trip").name == "Trip"


def test_blank_name_counts_as_missing() -> None:
    assert resolve_goal(GOALS, "Trip", "  ").name == "Trip"


def test_stale_last_goal() -> None:
    with pytest.raises(StaleLastGoal) as excinfo:
        resolve_goal(GOALS, "Bike")

    assert excinfo.value.name == "Bike"


def test_no_goal_specified() -> None:
    with pytest.raises(NoGoalSpecified):
        resolve_goal(GOALS, None)
