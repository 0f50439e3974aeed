"""Goals router exposing the chat bot's goal store over JSON."""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_serializer

from .services.goal_errors import (
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
from .services.goals_service import ContributionResult, Goal, GoalStore
from .storage import get_goal_store

# Endpoints must stay `async def`: store calls run on the event loop, never in a worker thread.
router = APIRouter(prefix="/users/{user_id}/goals", tags=["goals"])

_STATUS_BY_ERROR: dict[type[GoalError], int] = {
    DuplicateGoalName: status.HTTP_409_CONFLICT,
    InvalidTarget: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InvalidAmount: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InvalidGoalName: status.HTTP_422_UNPROCESSABLE_ENTITY,
    NoGoals: status.HTTP_404_NOT_FOUND,
    GoalNotFound: status.HTTP_404_NOT_FOUND,
    NoGoalSpecified: status.HTTP_409_CONFLICT,
    StaleLastGoal: status.HTTP_409_CONFLICT,
    PersistenceFailure: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _money(value: Decimal) -> str:
    return str(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _raise_http(exc: GoalError) -> NoReturn:
    status_code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_400_BAD_REQUEST)
    raise HTTPException(status_code=status_code, detail={"code": exc.code, "message": str(exc)}) from exc


class GoalCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    target_amount: Decimal = Field(max_digits=12, decimal_places=2)


class ContributionRequest(BaseModel):
    amount: Decimal = Field(max_digits=12, decimal_places=2)
    goal_name: str | None = Field(default=None, max_length=120)


class GoalResponse(BaseModel):
    name: str
    target_amount: Decimal
    saved_amount: Decimal
    remaining_amount: Decimal
    progress_pct: int
    reached: bool

    @field_serializer("target_amount", "saved_amount", "remaining_amount")
    def serialize_decimal(self, value: Decimal) -> str:
        return _money(value)

    @classmethod
    def from_goal(cls, goal: Goal) -> GoalResponse:
        return cls(
            name=goal.name,
            target_amount=goal.target,
            saved_amount=goal.saved,
            remaining_amount=goal.remaining,
            progress_pct=goal.progress_pct,
            reached=goal.reached,
        )


class ContributionResponse(BaseModel):
    goal: GoalResponse
    reached_target: bool
    newly_reached: bool

    @classmethod
    def from_result(cls, result: ContributionResult) -> ContributionResponse:
        return cls(
            goal=GoalResponse.from_goal(result.goal),
            reached_target=result.reached_target,
            newly_reached=result.newly_reached,
        )


@router.post("", response_model=GoalResponse, status_code=status.HTTP_201_CREATED)
async def create_goal_endpoint(
    user_id: str,
    payload: GoalCreateRequest,
    store: GoalStore = Depends(get_goal_store),
) -> GoalResponse:
    """Create one savings goal; it becomes the user's last-interacted goal."""
    try:
        return GoalResponse.from_goal(store.create_goal(user_id, payload.name, payload.target_amount))
    except GoalError as exc:
        _raise_http(exc)


@router.get("", response_model=list[GoalResponse])
async def list_goals_endpoint(
    user_id: str,
    store: GoalStore = Depends(get_goal_store),
) -> list[GoalResponse]:
    """List the user's goals in creation order (empty for unknown users)."""
    return [GoalResponse.from_goal(goal) for goal in store.list_goals(user_id)]


@router.post("/contributions", response_model=ContributionResponse)
async def contribute_endpoint(
    user_id: str,
    payload: ContributionRequest,
    store: GoalStore = Depends(get_goal_store),
) -> ContributionResponse:
    """
    Add money toward one goal.

    Without `goal_name` the user's last-interacted goal is used.
    """
    try:
        result = store.contribute(user_id, payload.amount, payload.goal_name)
        return ContributionResponse.from_result(result)
    except GoalError as exc:
        _raise_http(exc)


@router.get("/{goal_name}", response_model=GoalResponse)
async def get_goal_endpoint(
    user_id: str,
    goal_name: str,
    store: GoalStore = Depends(get_goal_store),
) -> GoalResponse:
    try:
        return GoalResponse.from_goal(store.get_progress(user_id, goal_name))
    except GoalError as exc:
        _raise_http(exc)


@router.delete("/{goal_name}", response_model=GoalResponse)
async def delete_goal_endpoint(
    user_id: str,
    goal_name: str,
    store: GoalStore = Depends(get_goal_store),
) -> GoalResponse:
    """Delete one goal and return it as it was."""
    try:
        return GoalResponse.from_goal(store.delete_goal(user_id, goal_name))
    except GoalError as exc:
        _raise_http(exc)
