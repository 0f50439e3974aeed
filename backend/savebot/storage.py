from __future__ import annotations

import logging

from fastapi import HTTPException

from .config import settings
from .services.goal_errors import PersistenceFailure
from .services.goal_storage import JsonGoalStorage
from .services.goals_service import GoalStore

logger = logging.getLogger(__name__)

# Process-wide store, opened in the app lifespan and injected through get_goal_store.
store: GoalStore | None = None


def init_goal_store(path: str | None = None) -> GoalStore:
    global store

    store = GoalStore.open(JsonGoalStorage(path or settings.goals_state_path))
    return store


def close_goal_store() -> None:
    global store

    if store is None:
        return

    try:
        store.close()
    except PersistenceFailure:
        logger.exception("Final goal snapshot flush failed")
    store = None


def get_goal_store() -> GoalStore:
    # Centralized guard to avoid obscure None-type errors in route handlers.
    if store is None:
        raise HTTPException(status_code=500, detail="Goal store is not initialized")

    return store
