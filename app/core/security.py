"""Security related functions."""

from datetime import UTC, datetime, timedelta
from uuid import UUID

import httpx
import jwt
from jwt import InvalidTokenError

from app.core.config import settings
from app.exceptions.auth import AuthenticationError

FILE_TOKEN_PURPOSE = "file"


class ClerkAuthenticator:
    """
    Handles Clerk API authentication and token verification.

    In production the token signature is checked against Clerk's JWKS; in
    development and testing the payload is decoded without verification.

    :ivar clerk_api_url: The base URL of the Clerk API.
    :type clerk_api_url: str
    :ivar secret_key: The Clerk secret key used to fetch the JWKS.
    :type secret_key: str
    """

    def __init__(self):
        self.clerk_api_url = str(settings.clerk_api_url).rstrip("/")
        self.secret_key = settings.clerk_secret_key

    async def get_jwks(self) -> dict:
        """Get JWKS from Clerk for token verification."""
        headers = {"Authorization": f"Bearer {self.secret_key}"} if self.secret_key else {}
        async with httpx.AsyncClient() as client:
            response = await client.get(f"{self.clerk_api_url}/v1/jwks", headers=headers)
            response.raise_for_status()
            return response.json()

    async def verify_token(self, token: str) -> dict:
        """
        Verifies a Clerk session token and returns its payload.

        :param token: The JWT token to be verified.
        :return: A dictionary containing the decoded payload of the token if validation succeeds.
        """
        try:
            if not settings.is_production:
                return jwt.decode(
                    token,
                    key="",
                    options={"verify_signature": False, "verify_aud": False, "verify_exp": False},
                )

            kid = jwt.get_unverified_header(token).get("kid")
            jwks = await self.get_jwks()
            signing_key = next(
                (jwt.PyJWK(key) for key in jwks.get("keys", []) if key.get("kid") == kid), None
            )
            if signing_key is None:
                raise InvalidTokenError("Signing key not found")
            return jwt.decode(
                token,
                key=signing_key.key,
                algorithms=["RS256"],
                options={"verify_aud": False},
            )
        except (InvalidTokenError, httpx.HTTPError) as e:
            raise AuthenticationError(f"Invalid authentication token: {str(e)}") from e


def create_file_token(file_id: UUID, user_id: UUID, expires_minutes: int | None = None) -> str:
    """Sign a short-lived token granting read access to one stored file."""
    expire = datetime.now(UTC) + timedelta(
        minutes=expires_minutes if expires_minutes is not None else settings.file_url_expire_minutes
    )
    payload = {
        "sub": str(user_id),
        "fid": str(file_id),
        "purpose": FILE_TOKEN_PURPOSE,
        "exp": expire,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def verify_file_token(token: str, file_id: UUID) -> UUID | None:
    """Return the owning user id if ``token`` grants access to ``file_id``, else None."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except InvalidTokenError:
        return None

    if payload.get("purpose") != FILE_TOKEN_PURPOSE or payload.get("fid") != str(file_id):
        return None
    try:
        return UUID(payload["sub"])
    except (KeyError, ValueError):
        return None
