"""In-memory goal store with write-through snapshot persistence."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation, ROUND_FLOOR
from typing import Any, Protocol

from savebot.services.goal_errors import (
    DuplicateGoalName,
    GoalError,
    GoalNotFound,
    InvalidAmount,
    InvalidGoalName,
    InvalidTarget,
    NoGoals,
    PersistenceFailure,
)
from savebot.services.goal_resolver import find_goal, resolve_goal
from savebot.utils import clean_goal_name, normalize_goal_name, quantize_amount

logger = logging.getLogger(__name__)

# Names are echoed back inside inline-button callback data, which Telegram caps at 64 bytes.
MAX_GOAL_NAME_LENGTH = 48

# Same bound as the REST request models: 12 digits, 2 of them after the point.
MAX_AMOUNT = Decimal("9999999999.99")


@dataclass
class Goal:
    """One savings target for one user."""

    name: str
    target: Decimal
    saved: Decimal = Decimal("0.00")

    @property
    def reached(self) -> bool:
        return self.saved >= self.target

    @property
    def remaining(self) -> Decimal:
        return quantize_amount(max(self.target - self.saved, Decimal("0.00")))

    @property
    def progress_pct(self) -> int:
        if self.target <= Decimal("0.00"):
            return 0
        pct = int(((self.saved / self.target) * Decimal("100")).to_integral_value(rounding=ROUND_FLOOR))
        return max(0, min(pct, 100))


@dataclass
class UserGoals:
    goals: list[Goal] = field(default_factory=list)
    last_goal: str | None = None


@dataclass
class ContributionResult:
    goal: Goal
    reached_target: bool
    newly_reached: bool


class GoalStorage(Protocol):
    def load(self) -> dict[str, UserGoals]: ...

    def save(self, users: dict[str, UserGoals]) -> None: ...


def _user_key(user_id: Any) -> str:
    return str(user_id)


def _to_amount(value: Decimal | int | str, error: type[GoalError], label: str) -> Decimal:
    """Parse a money amount in (0, MAX_AMOUNT], raising `error` for anything else."""
    try:
        amount = quantize_amount(Decimal(str(value)))
    except InvalidOperation as exc:
        raise error(f"{label} must be a number no larger than {MAX_AMOUNT}") from exc
    if not amount.is_finite() or not Decimal("0.00") < amount <= MAX_AMOUNT:
        raise error(f"{label} must be greater than 0 and at most {MAX_AMOUNT}")
    return amount


def _copy_user(user: UserGoals) -> UserGoals:
    return UserGoals(goals=[replace(goal) for goal in user.goals], last_goal=user.last_goal)


def _dedupe_goals(user_id: str, user: UserGoals) -> UserGoals:
    """Drop goals whose name repeats an earlier one, keeping the first occurrence."""
    kept: list[Goal] = []
    for goal in user.goals:
        if find_goal(kept, goal.name) is not None:
            logger.warning("Dropping duplicate goal %r for user %s from snapshot", goal.name, user_id)
            continue
        kept.append(goal)
    return UserGoals(goals=kept, last_goal=user.last_goal)


class GoalStore:
    """
    Owns every user's goals and last-interacted-goal pointer.

    Operations run to completion without yielding, so one event loop needs no locking.
    After each successful mutation the full snapshot is written through `storage`.
    Goals handed to callers are copies.
    """

    def __init__(self, storage: GoalStorage, users: dict[str, UserGoals] | None = None) -> None:
        self._storage = storage
        self._users: dict[str, UserGoals] = users if users is not None else {}
        self._dirty = False

    @classmethod
    def open(cls, storage: GoalStorage) -> GoalStore:
        """Load the whole snapshot from storage; raises PersistenceFailure if it cannot be read."""
        loaded = storage.load()
        users = {
            _user_key(user_id): _dedupe_goals(_user_key(user_id), user)
            for user_id, user in loaded.items()
        }
        logger.info("Loaded goals for %d user(s)", len(users))
        return cls(storage, users)

    @property
    def dirty(self) -> bool:
        return self._dirty

    def snapshot(self) -> dict[str, UserGoals]:
        return {user_id: _copy_user(user) for user_id, user in self._users.items()}

    def flush(self) -> None:
        """Write the snapshot if there are unsaved changes."""
        if not self._dirty:
            return
        self._storage.save(self.snapshot())
        self._dirty = False

    def close(self) -> None:
        self.flush()

    def _commit(self, result: Any) -> Any:
        self._dirty = True
        try:
            self.flush()
        except PersistenceFailure as exc:
            logger.error("Goal change applied in memory but not saved: %s", exc)
            raise PersistenceFailure(str(exc), result=result) from exc
        return result

    def _user_with_goals(self, user_id: Any) -> UserGoals:
        user = self._users.get(_user_key(user_id))
        if user is None or not user.goals:
            raise NoGoals()
        return user

    def last_goal(self, user_id: Any) -> str | None:
        user = self._users.get(_user_key(user_id))
        if user is None:
            return None
        return user.last_goal

    def list_goals(self, user_id: Any) -> list[Goal]:
        """Goals in creation order; empty for unknown users."""
        user = self._users.get(_user_key(user_id))
        if user is None:
            return []
        return [replace(goal) for goal in user.goals]

    def create_goal(self, user_id: Any, name: str, target: Decimal | int | str) -> Goal:
        display_name = clean_goal_name(name or "")
        if not display_name:
            raise InvalidGoalName("Goal name must not be empty")
        if len(display_name) > MAX_GOAL_NAME_LENGTH:
            raise InvalidGoalName(f"Goal name must be at most {MAX_GOAL_NAME_LENGTH} characters")

        key = _user_key(user_id)
        user = self._users.get(key)
        if user is not None and find_goal(user.goals, display_name) is not None:
            raise DuplicateGoalName(display_name)

        target_amount = _to_amount(target, InvalidTarget, "Target amount")

        if user is None:
            user = self._users.setdefault(key, UserGoals())

        goal = Goal(name=display_name, target=target_amount)
        user.goals.append(goal)
        user.last_goal = goal.name
        logger.info("User %s created goal %r (target %s)", key, goal.name, goal.target)
        return self._commit(replace(goal))

    def contribute(
        self,
        user_id: Any,
        amount: Decimal | int | str,
        name: str | None = None,
    ) -> ContributionResult:
        """Add `amount` to the named goal, or to the last-interacted goal when no name is given."""
        user = self._user_with_goals(user_id)

        amount_value = _to_amount(amount, InvalidAmount, "Contribution amount")

        goal = resolve_goal(user.goals, user.last_goal, name)
        was_reached = goal.reached
        goal.saved = quantize_amount(goal.saved + amount_value)
        user.last_goal = goal.name

        logger.info(
            "User %s added %s to goal %r (%s / %s)",
            _user_key(user_id), amount_value, goal.name, goal.saved, goal.target,
        )
        return self._commit(
            ContributionResult(
                goal=replace(goal),
                reached_target=goal.reached,
                newly_reached=goal.reached and not was_reached,
            )
        )

    def get_progress(self, user_id: Any, name: str) -> Goal:
        user = self._user_with_goals(user_id)
        goal = find_goal(user.goals, name)
        if goal is None:
            raise GoalNotFound(clean_goal_name(name))

        user.last_goal = goal.name
        return self._commit(replace(goal))

    def delete_goal(self, user_id: Any, name: str) -> Goal:
        user = self._user_with_goals(user_id)
        goal = find_goal(user.goals, name)
        if goal is None:
            raise GoalNotFound(clean_goal_name(name))

        user.goals = [item for item in user.goals if item is not goal]
        if user.last_goal and normalize_goal_name(user.last_goal) == normalize_goal_name(goal.name):
            user.last_goal = None

        logger.info("User %s deleted goal %r", _user_key(user_id), goal.name)
        return self._commit(replace(goal))
