"""Snapshot persistence for the goal store (one JSON document keyed by user id)."""

from __future__ import annotations

import logging
import os
import tempfile
from decimal import Decimal, InvalidOperation
from pathlib import Path

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_serializer

from savebot.services.goal_errors import PersistenceFailure
from savebot.services.goals_service import Goal, UserGoals
from savebot.utils import quantize_amount

logger = logging.getLogger(__name__)


class GoalRecord(BaseModel):
    name: str = Field(min_length=1)
    target: Decimal
    saved: Decimal = Decimal("0.00")

    @field_serializer("target", "saved")
    def serialize_decimal(self, value: Decimal) -> str:
        return str(value)


class UserRecord(BaseModel):
    goals: list[GoalRecord] = Field(default_factory=list)
    last_interacted_goal: str | None = None


_SNAPSHOT_ADAPTER = TypeAdapter(dict[str, UserRecord])


def users_to_snapshot(users: dict[str, UserGoals]) -> dict[str, UserRecord]:
    return {
        user_id: UserRecord(
            goals=[GoalRecord(name=goal.name, target=goal.target, saved=goal.saved) for goal in user.goals],
            last_interacted_goal=user.last_goal,
        )
        for user_id, user in users.items()
    }


def snapshot_to_users(snapshot: dict[str, UserRecord]) -> dict[str, UserGoals]:
    return {
        user_id: UserGoals(
            goals=[
                Goal(name=goal.name, target=quantize_amount(goal.target), saved=quantize_amount(goal.saved))
                for goal in record.goals
            ],
            last_goal=record.last_interacted_goal,
        )
        for user_id, record in snapshot.items()
    }


def dump_snapshot(users: dict[str, UserGoals]) -> str:
    return _SNAPSHOT_ADAPTER.dump_json(users_to_snapshot(users), indent=2).decode("utf-8")


def parse_snapshot(raw: str | bytes) -> dict[str, UserGoals]:
    """Parse a serialized snapshot; raises PersistenceFailure on malformed input."""
    try:
        records = _SNAPSHOT_ADAPTER.validate_json(raw)
    except ValidationError as exc:
        raise PersistenceFailure(f"Goal snapshot is malformed: {exc.error_count()} error(s)") from exc
    try:
        return snapshot_to_users(records)
    except InvalidOperation as exc:
        raise PersistenceFailure("Goal snapshot holds an amount that cannot be stored in cents") from exc


class JsonGoalStorage:
    """
    Reads and writes the full snapshot at `path`.

    A missing file is an empty snapshot. Writes go to a temp file in the same
    directory and are moved into place, so a failed write leaves the previous
    snapshot intact.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)

    def load(self) -> dict[str, UserGoals]:
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            logger.info("No goal snapshot at %s; starting empty", self.path)
            return {}
        except OSError as exc:
            raise PersistenceFailure(f"Could not read {self.path}: {exc}") from exc

        if not raw.strip():
            return {}
        return parse_snapshot(raw)

    def save(self, users: dict[str, UserGoals]) -> None:
        payload = dump_snapshot(users)
        tmp_name: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as handle:
                tmp_name = handle.name
                handle.write(payload)
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as exc:
            raise PersistenceFailure(f"Could not write {self.path}: {exc}") from exc
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    logger.warning("Could not remove temp snapshot %s", tmp_name)


class InMemoryGoalStorage:
    """Keeps the serialized snapshot in memory; used for tests and throwaway runs."""

    def __init__(self, raw: str = "{}") -> None:
        self.raw = raw
        self.saves = 0

    def load(self) -> dict[str, UserGoals]:
        return parse_snapshot(self.raw)

    def save(self, users: dict[str, UserGoals]) -> None:
        self.raw = dump_snapshot(users)
        self.saves += 1

