"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from relaychat.config import get_settings
from relaychat.db.session import init_db
from relaychat.routers import quick_actions, sessions

logger = logging.getLogger(__name__)


def _prepare_store() -> None:
    """Create the messages table when a store is configured."""

    try:
        init_db()
    except Exception:
        logger.exception("Message store initialization failed; continuing without it.")


@asynccontextmanager
async def lifespan(_: FastAPI):
    _prepare_store()
    yield


settings = get_settings()
app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(sessions.router, tags=["sessions"])
app.include_router(quick_actions.router, tags=["quick-actions"])


@app.get("/health")
def health() -> dict[str, object]:
    """Simple health check endpoint."""

    return {"status": "ok", "persistence": get_settings().persistence_enabled}
