from datetime import UTC, datetime
from os import environ
from typing import Any, cast
from urllib.parse import urlencode
from uuid import uuid4

import httpx
from jose import JWTError, jwt
from jose.exceptions import JWTClaimsError
from neo4j import ManagedTransaction
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.db import DatabaseManager
from app.models.user import Session, User


class Auth0Profile(BaseModel):
    """Model representing an Auth0 user profile.

    Attributes:
        sub: Unique Auth0 identifier (e.g., 'google-oauth2|12345')
        email: User's email address
        name: User's full name
        picture: URL to user's profile picture
        nickname: User's nickname
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    sub: str = Field(description="Unique Auth0 identifier")
    email: EmailStr = Field(description="User's email address")
    name: str | None = Field(None, description="User's full name")
    picture: str | None = Field(None, description="URL to user's profile picture")
    nickname: str | None = Field(None, description="User's nickname")


class AuthError(Exception):
    """Base exception for auth-related errors."""

    pass


class InvalidTokenError(AuthError):
    """Exception raised when a token is invalid."""

    pass


class TokenExpiredError(AuthError):
    """Exception raised when a token has expired."""

    pass


class UserNotFoundError(AuthError):
    """Exception raised when a user cannot be found."""

    pass


class AuthService:
    """Service for Auth0 sign-in, token validation and user lookup.

    The application never handles credentials: users sign in at Auth0,
    the callback exchanges the one-time code for a session, and every
    later request carries the resulting access token.

    Attributes:
        domain: Auth0 tenant domain
        audience: Auth0 API audience
        client_id: Auth0 application client ID
        client_secret: Auth0 application client secret
        algorithms: List of supported JWT algorithms
    """

    def __init__(self) -> None:
        """Initialize the auth service with Auth0 configuration."""
        self.domain: str = environ.get("AUTH0_DOMAIN", "")
        self.audience: str = environ.get("AUTH0_AUDIENCE", "")
        self.client_id: str = environ.get("AUTH0_CLIENT_ID", "")
        self.client_secret: str = environ.get("AUTH0_CLIENT_SECRET", "")
        self.algorithms: list[str] = ["RS256"]

    def authorize_url(self, redirect_uri: str, state: str | None = None) -> str:
        """Build the Auth0 login URL.

        Args:
            redirect_uri: Where Auth0 sends the user back with a code
            state: Opaque value echoed back to the callback

        Returns:
            The URL to redirect the browser to
        """
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
            "scope": "openid profile email",
            "audience": self.audience,
        }
        if state:
            params["state"] = state
        return f"https://{self.domain}/authorize?{urlencode(params)}"

    def exchange_code_for_session(self, code: str, redirect_uri: str) -> Session:
        """Exchange a one-time authorization code for a session.

        Args:
            code: Code received on the OAuth callback
            redirect_uri: The redirect URI used for the authorization request

        Returns:
            The session issued by Auth0

        Raises:
            InvalidTokenError: If the exchange is rejected
        """
        try:
            with httpx.Client() as client:
                response = client.post(
                    f"https://{self.domain}/oauth/token",
                    data={
                        "grant_type": "authorization_code",
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "code": code,
                        "redirect_uri": redirect_uri,
                    },
                )
                response.raise_for_status()
                return Session(**response.json())
        except httpx.HTTPError as e:
            raise InvalidTokenError(f"Failed to exchange code: {str(e)}")

    def sign_out_url(self, return_to: str) -> str:
        """Build the Auth0 logout URL that ends the provider session."""
        params = {"client_id": self.client_id, "returnTo": return_to}
        return f"https://{self.domain}/v2/logout?{urlencode(params)}"

    def validate_token(self, token: str) -> dict[str, Any]:
        """Validate an Auth0 JWT token.

        Args:
            token: The JWT token to validate

        Returns:
            The decoded token payload

        Raises:
            InvalidTokenError: If token is invalid
            TokenExpiredError: If token has expired
        """
        try:
            jwks_url = f"https://{self.domain}/.well-known/jwks.json"
            jwks = httpx.get(jwks_url).json()

            unverified_header = jwt.get_unverified_header(token)
            rsa_key = {}

            for key in jwks["keys"]:
                if key["kid"] == unverified_header["kid"]:
                    rsa_key = {
                        "kty": key["kty"],
                        "kid": key["kid"],
                        "use": key["use"],
                        "n": key["n"],
                        "e": key["e"],
                    }
                    break

            if not rsa_key:
                raise InvalidTokenError("Unable to find appropriate key")

            payload = jwt.decode(
                token,
                rsa_key,
                algorithms=self.algorithms,
                audience=self.audience,
                issuer=f"https://{self.domain}/",
            )
            return cast(dict[str, Any], payload)

        except JWTClaimsError as e:
            raise InvalidTokenError(f"Invalid claims: {str(e)}")
        except JWTError as e:
            if "expired" in str(e).lower():
                raise TokenExpiredError("Token has expired")
            raise InvalidTokenError(f"Invalid token: {str(e)}")
        except httpx.HTTPError as e:
            raise InvalidTokenError(f"Failed to fetch signing keys: {str(e)}")

    def _get_auth0_profile(self, access_token: str) -> Auth0Profile:
        """Get user profile information from Auth0.

        Raises:
            InvalidTokenError: If profile fetch fails
        """
        try:
            url = f"https://{self.domain}/userinfo"
            headers = {"Authorization": f"Bearer {access_token}"}

            with httpx.Client() as client:
                response = client.get(url, headers=headers)
                response.raise_for_status()
                return Auth0Profile(**response.json())

        except httpx.HTTPError as e:
            raise InvalidTokenError(f"Failed to get user profile: {str(e)}")

    def _find_user(self, tx: ManagedTransaction, auth_id: str) -> User | None:
        query = """
        MATCH (user:User {auth_id: $auth_id})
        RETURN user
        """
        result = tx.run(query, auth_id=auth_id)
        if record := result.single():
            return User(**record["user"])
        return None

    def _create_user_from_auth0(
        self, tx: ManagedTransaction, profile: Auth0Profile
    ) -> User:
        query = """
        CREATE (user:User {
            user_id: $user_id,
            auth_id: $auth_id,
            email: $email,
            display_name: $display_name,
            avatar_url: $avatar_url,
            created_at: $created_at
        })
        RETURN user
        """
        result = tx.run(
            query,
            user_id=str(uuid4()),
            auth_id=profile.sub,
            email=str(profile.email),
            display_name=profile.name or profile.nickname or str(profile.email),
            avatar_url=profile.picture,
            created_at=datetime.now(UTC).isoformat(),
        )
        if record := result.single():
            return User(**record["user"])
        raise ValueError("Failed to create user")

    async def get_current_user(self, token: str) -> User:
        """Get the current authenticated user from token.

        Args:
            token: The JWT token string

        Returns:
            The authenticated user

        Raises:
            InvalidTokenError: If token is invalid
            TokenExpiredError: If token has expired
            UserNotFoundError: If user cannot be found
        """
        try:
            self.validate_token(token)
            return self.get_or_create_user(token)
        except AuthError:
            raise
        except Exception as e:
            raise UserNotFoundError(f"Failed to get user: {str(e)}")

    def get_or_create_user(self, access_token: str) -> User:
        """Get existing user or create new one from Auth0 profile.

        Args:
            access_token: Valid Auth0 access token

        Returns:
            The existing or newly created user

        Raises:
            UserNotFoundError: If user fetch/creation fails
        """
        try:
            profile = self._get_auth0_profile(access_token)

            db_manager = DatabaseManager()
            with db_manager.session() as session:
                if user := session.execute_read(self._find_user, profile.sub):
                    return user
                return session.execute_write(self._create_user_from_auth0, profile)
        except Exception as e:
            raise UserNotFoundError(f"Failed to get or create user: {str(e)}")
