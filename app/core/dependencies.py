"""Request dependencies: Clerk authentication and the process-wide generation services."""

import logging
from functools import lru_cache

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import ClerkAuthenticator
from app.database import AsyncSessionLocal, get_db
from app.domains.generation.dispatcher import GenerationDispatcher
from app.domains.user.service import UserService
from app.exceptions.auth import AuthenticationError, InactiveUserError
from app.exceptions.base import BaseAppException
from app.providers.registry import ProviderRegistry
from app.providers.registry import get_provider_registry as registry_singleton
from models import User

logger = logging.getLogger(__name__)

# Missing headers are rejected by validate_token with the regular error envelope
security = HTTPBearer(auto_error=False)
auth = ClerkAuthenticator()


async def validate_token(credentials: HTTPAuthorizationCredentials | None = Depends(security)) -> dict:
    """Verify the Clerk session token and return its claims.

    Raises:
        AuthenticationError: If the token is missing, invalid or expired
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Authentication token is required")

    try:
        payload = await auth.verify_token(credentials.credentials)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Token validation error: {str(e)}")
        raise AuthenticationError() from e

    if not payload:
        raise AuthenticationError("Invalid authentication token")
    return payload


async def get_current_user(
    request: Request,
    payload: dict = Depends(validate_token),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the token's Clerk subject to a local user, creating it on first sight.

    Raises:
        AuthenticationError: If the token has no subject
        InactiveUserError: If the local account is switched off
    """
    clerk_user_id = payload.get("sub")
    if not clerk_user_id:
        raise AuthenticationError("Invalid token payload - missing user ID")

    try:
        user = await UserService(db).get_or_create_user(clerk_user_id, payload)
    except Exception as e:
        logger.error(f"User lookup failed for {clerk_user_id}: {str(e)}")
        raise BaseAppException("Authentication service error", error_code="AUTH_SERVICE_ERROR") from e

    if not user.is_active:
        raise InactiveUserError()

    request.state.user_id = user.id
    request.state.clerk_user_id = clerk_user_id
    return user


def get_provider_registry() -> ProviderRegistry:
    """Process-wide provider registry."""
    return registry_singleton()


@lru_cache
def get_generation_dispatcher() -> GenerationDispatcher:
    """Process-wide dispatcher; background generations open sessions from ``AsyncSessionLocal``."""
    return GenerationDispatcher(AsyncSessionLocal, registry_singleton())
