"""FastAPI dependencies for database sessions, authentication and collaborators."""
from typing import AsyncGenerator, Optional

import jwt
import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from credit_ledger.adapters.asaas_adapter import AsaasAdapter
from credit_ledger.auth.jwt import Identity, jwt_auth
from credit_ledger.config import settings
from credit_ledger.database import AsyncSessionLocal
from credit_ledger.integrations.analytics_forwarder import AnalyticsForwarder

logger = structlog.get_logger(__name__)

# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Database session dependency.

    Yields:
        AsyncSession: Database session for the request lifecycle
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Identity:
    """
    Resolve the authenticated caller and its team from the bearer token.

    Raises:
        HTTPException: If token is invalid, expired, or missing
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = credentials.credentials

    try:
        identity = jwt_auth.identity_from_token(token)
    except jwt.ExpiredSignatureError:
        logger.warning("token_expired")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError as e:
        logger.warning("invalid_token", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid authentication token: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.info("user_authenticated", user_id=identity.user_id, team_id=str(identity.team_id))
    return identity


def get_gateway() -> AsaasAdapter:
    """Payment gateway adapter dependency."""
    return AsaasAdapter(settings)


def get_analytics_forwarder() -> AnalyticsForwarder:
    """Analytics forwarder dependency."""
    return AnalyticsForwarder(settings)
