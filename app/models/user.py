from datetime import datetime

from pydantic import UUID4, BaseModel, ConfigDict, EmailStr


class User(BaseModel):
    """User model representing a signed-in bookmark owner.

    Attributes:
        user_id: Unique identifier for the user
        auth_id: Identity provider's subject identifier
        email: Verified email address
        display_name: Name shown in the navigation bar
        avatar_url: URL of the provider avatar, if any
        created_at: When the account was first seen
    """

    model_config = ConfigDict(frozen=True)

    user_id: UUID4
    auth_id: str
    email: EmailStr
    display_name: str
    avatar_url: str | None = None
    created_at: datetime


class Session(BaseModel):
    """Tokens issued by the identity provider after the OAuth code exchange.

    Attributes:
        access_token: Bearer token used to authenticate later requests
        id_token: OpenID Connect identity token, if requested
        token_type: Token type, normally ``Bearer``
        expires_in: Lifetime of the access token in seconds
    """

    model_config = ConfigDict(frozen=True)

    access_token: str
    id_token: str | None = None
    token_type: str = "Bearer"
    expires_in: int = 86400
