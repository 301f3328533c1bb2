"""
Dependency injection for Meetspace.
Provides caching, authentication and health dependencies.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..db.database import db_manager
from ..db.redis_client import CacheManager, redis_connection
from ..services.jwt_service import JWTService, jwt_service

logger = logging.getLogger(__name__)

# Security scheme
security = HTTPBearer()


async def get_cache_manager() -> Optional[CacheManager]:
    """
    Cache manager bound to the shared Redis client, or None when Redis is
    not initialized. Callers treat None as "no caching".
    """
    try:
        redis_manager = redis_connection.get_manager()
    except RuntimeError:
        return None
    cache_manager = CacheManager(redis_manager.redis_client)
    await cache_manager.initialize()
    return cache_manager


async def get_token_verifier() -> JWTService:
    """Shared verifier, initialized on first use outside the lifespan."""
    if not jwt_service._initialized:
        await jwt_service.initialize()
    return jwt_service


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    verifier: JWTService = Depends(get_token_verifier)
) -> Dict[str, Any]:
    """
    Caller identity from the bearer token: user_id, email, name and role.

    Raises:
        HTTPException: 401 when the token is missing, expired or forged
    """
    user = verifier.verify_token(credentials.credentials)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired access token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_optional_current_user(
    request: Request,
    verifier: JWTService = Depends(get_token_verifier)
) -> Optional[Dict[str, Any]]:
    """
    Current user if a valid bearer token is present, None otherwise.
    """
    scheme, _, token = (request.headers.get("Authorization") or "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return verifier.verify_token(token)


async def check_service_health() -> Dict[str, str]:
    """Database and Redis reachability."""
    database = "healthy" if db_manager.health_check() else "unhealthy"
    redis = "healthy" if await redis_connection.health_check() else "unhealthy"
    overall = "healthy" if database == "healthy" and redis == "healthy" else "unhealthy"
    return {"database": database, "redis": redis, "overall": overall}
