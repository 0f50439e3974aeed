import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from .bot.webhook import router as telegram_router
from .config import settings
from .goals import router as goals_router
from .logging_config import configure_logging
from .storage import close_goal_store, init_goal_store

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging(settings.log_level)
    init_goal_store()
    logger.info("%s started", settings.app_name)
    yield
    close_goal_store()


app = FastAPI(title=settings.app_name, lifespan=lifespan)
app.include_router(telegram_router)
app.include_router(goals_router)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


if __name__ == "__main__":
    uvicorn.run("savebot.main:app", host="0.0.0.0", port=8000)
