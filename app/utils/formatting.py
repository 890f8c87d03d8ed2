from datetime import UTC, datetime
from urllib.parse import urlparse

from app.models.bookmark import Bookmark, BookmarkView

FAVICON_SERVICE_URL = "https://www.google.com/s2/favicons?domain={domain}&sz=32"


def format_date(value: datetime) -> str:
    """Format a timestamp as its UTC calendar date, ``YYYY-MM-DD``."""
    return value.astimezone(UTC).strftime("%Y-%m-%d")


def relative_time(value: datetime, now: datetime | None = None) -> str:
    """Describe how long ago a timestamp was.

    Args:
        value: The timestamp to describe
        now: Reference time, defaults to the current UTC time

    Returns:
        ``Just now``, ``<n>m ago``, ``<n>h ago``, ``<n>d ago`` for anything
        under a week, otherwise the calendar date
    """
    now = now or datetime.now(UTC)
    seconds = (now - value).total_seconds()
    minutes = int(seconds // 60)
    hours = int(seconds // 3600)
    days = int(seconds // 86400)

    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if hours < 24:
        return f"{hours}h ago"
    if days < 7:
        return f"{days}d ago"
    return format_date(value)


def favicon_url(url: str) -> str:
    """Favicon URL for the bookmark's host, or an empty string."""
    try:
        domain = urlparse(url).hostname
    except ValueError:
        return ""
    if not domain:
        return ""
    return FAVICON_SERVICE_URL.format(domain=domain)


def to_view(bookmark: Bookmark, now: datetime | None = None) -> BookmarkView:
    return BookmarkView(
        **bookmark.model_dump(),
        favicon_url=favicon_url(bookmark.url),
        relative_time=relative_time(bookmark.created_at, now),
    )
