from pydantic import BaseModel, ConfigDict, Field

from app.models.bookmark import BookmarkView
from app.models.user import User


class HealthCheckResponseSchema(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = Field(description="Whether the service is up")


class DashboardResponseSchema(BaseModel):
    """Everything the dashboard page renders on first load.

    Attributes:
        user: The signed-in user shown in the navigation bar
        bookmarks: The user's bookmarks, newest first
    """

    model_config = ConfigDict(frozen=True)

    user: User = Field(description="The signed-in user")
    bookmarks: list[BookmarkView] = Field(
        default_factory=list, description="The user's bookmarks, newest first"
    )


class LandingResponseSchema(BaseModel):
    model_config = ConfigDict(frozen=True)

    login_url: str = Field(description="Where the sign-in button points")
    error: str | None = Field(None, description="Set to 'auth' after a failed sign-in")
