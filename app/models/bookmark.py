import re
from datetime import datetime
from enum import Enum

from pydantic import (
    UUID4,
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

_http_url = TypeAdapter(HttpUrl)
_scheme = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")


def normalize_url(url: str) -> str:
    """Prefix ``https://`` when the submitted URL carries no scheme.

    A URL that already names a scheme is returned as typed, so
    ``httpbin.org`` becomes ``https://httpbin.org`` while ``ftp://x.org``
    keeps its scheme and is later rejected as not http(s).

    Args:
        url: The URL as typed by the user

    Returns:
        The URL that should be validated and stored
    """
    url = url.strip()
    return url if _scheme.match(url) else f"https://{url}"


class BookmarkCreate(BaseModel):
    """Model for a bookmark as submitted by a user.

    The URL is scheme-prefixed and must parse as an absolute http(s) URL.
    The stored value is the prefixed string, not pydantic's re-serialized
    form, so ``example.com`` is kept as ``https://example.com``.

    Attributes:
        title: Display label for the bookmark
        url: Absolute URL the bookmark points to
    """

    model_config = ConfigDict(frozen=True)

    title: str = Field(description="Display label for the bookmark")
    url: str = Field(description="Absolute URL the bookmark points to")

    @field_validator("title")
    def validate_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title must not be empty")
        return v

    @field_validator("url")
    def validate_url(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("URL must not be empty")
        v = normalize_url(v)
        try:
            _http_url.validate_python(v)
        except ValidationError:
            raise ValueError("URL must be an absolute http(s) URL")
        return v


class Bookmark(BaseModel):
    """Model representing a stored bookmark.

    Attributes:
        bookmark_id: Unique identifier assigned by the store
        user_id: ID of the user who owns the bookmark
        url: Absolute URL the bookmark points to
        title: Display label for the bookmark
        created_at: When the bookmark was created, the sole sort key
    """

    model_config = ConfigDict(frozen=True)

    bookmark_id: UUID4
    user_id: UUID4
    url: str
    title: str
    created_at: datetime


class ChangeType(str, Enum):
    INSERT = "INSERT"
    DELETE = "DELETE"


class BookmarkChange(BaseModel):
    """A row-level change delivered by the change feed.

    Attributes:
        event_type: Whether the bookmark was inserted or deleted
        user_id: Owner of the changed bookmark, used to scope delivery
        bookmark_id: ID of the changed bookmark
        new: The full bookmark for inserts, None for deletes
    """

    model_config = ConfigDict(frozen=True)

    event_type: ChangeType
    user_id: UUID4
    bookmark_id: UUID4
    new: Bookmark | None = None

    @model_validator(mode="after")
    def validate_new(self) -> "BookmarkChange":
        if self.event_type == ChangeType.INSERT and self.new is None:
            raise ValueError("Insert changes must carry the new bookmark")
        return self

    @classmethod
    def insert(cls, bookmark: Bookmark) -> "BookmarkChange":
        return cls(
            event_type=ChangeType.INSERT,
            user_id=bookmark.user_id,
            bookmark_id=bookmark.bookmark_id,
            new=bookmark,
        )

    @classmethod
    def delete(cls, user_id: UUID4, bookmark_id: UUID4) -> "BookmarkChange":
        return cls(
            event_type=ChangeType.DELETE, user_id=user_id, bookmark_id=bookmark_id
        )


class BookmarkView(Bookmark):
    """A bookmark with the presentation fields the dashboard renders.

    Attributes:
        favicon_url: Favicon for the bookmark's host, empty if unavailable
        relative_time: Human-readable age such as ``5m ago``
    """

    favicon_url: str
    relative_time: str
