import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI

from app.api import auth, bookmark, dashboard
from app.db import DatabaseManager
from app.dependencies import bookmark_service, get_current_user
from app.models.user import User
from app.schemas.responses import HealthCheckResponseSchema

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    this_db = DatabaseManager()
    app.state.driver = this_db.driver
    logger.info("Connected to Neo4j")
    yield
    bookmark_service.feed.close()
    this_db.close()


app = FastAPI(title="Smart Bookmarks", lifespan=lifespan)
app.include_router(auth.router)
app.include_router(bookmark.router)
app.include_router(dashboard.router)


@app.get("/api/health", response_model=HealthCheckResponseSchema)
async def health_check() -> HealthCheckResponseSchema:
    return HealthCheckResponseSchema(success=True)


@app.get("/api/me", response_model=User)
async def get_current_user_profile(
    current_user: User = Depends(get_current_user),
) -> User:
    """Get the current user's profile.

    Args:
        current_user: Injected by the auth dependency

    Returns:
        The current user's profile
    """
    return current_user
