import logging
import time
from typing import Optional
from uuid import UUID
from fastapi import Request
from fastapi.responses import JSONResponse
from festival_portal.database import get_db_connection
from festival_portal.core.access import Principal
from festival_portal.models.festival import UserProfile

logger = logging.getLogger(__name__)

PUBLIC_PATHS = ['/', '/health', '/docs', '/redoc', '/openapi.json']

SESSION_COOKIE = "session-token"


async def resolve_principal(session_token: str) -> Optional[Principal]:
    """Active session -> Principal built from the user's profile"""
    async with get_db_connection(use_transaction=False) as conn:
        row = await conn.fetchrow(
            """
            SELECT up.id, up.festival_id, up.role, up.full_name, up.email,
                   up.locale, COALESCE(up.has_password, false) AS has_password, up.created_at
            FROM sessions s
            JOIN user_profiles up ON up.id = s.user_id
            WHERE s.id = $1 AND s.expires_at > NOW() AND s.is_active = true
            LIMIT 1
            """,
            session_token
        )
    if not row:
        return None

    profile = UserProfile(**{k: str(v) if isinstance(v, UUID) else v for k, v in dict(row).items()})
    return Principal.from_profile(profile)


async def principal_middleware(request: Request, call_next):
    """
    Resolve the caller from the session cookie.
    Sets request.state.principal (None when unauthenticated) for use in endpoints.
    """
    request.state.principal = None

    if request.url.path in PUBLIC_PATHS:
        return await call_next(request)

    session_token = request.cookies.get(SESSION_COOKIE)
    if session_token:
        try:
            request.state.principal = await resolve_principal(session_token)
        except ValueError as e:
            logger.warning(f"Session {session_token[:8]}... has an invalid profile: {e}")
        except Exception as e:
            logger.error(f"Principal resolution error: {e}", exc_info=True)
            return JSONResponse(
                status_code=500,
                content={"error": True, "message": "Internal server error during authentication"}
            )

    return await call_next(request)


def get_principal(request: Request) -> Optional[Principal]:
    """Helper function to get the principal from request"""
    return getattr(request.state, 'principal', None)


async def request_logging_middleware(request: Request, call_next):
    """Simple request logging middleware"""
    start_time = time.time()

    method = request.method
    path = request.url.path

    response = await call_next(request)

    duration = round((time.time() - start_time) * 1000, 2)
    principal = get_principal(request)
    festival = principal.festival_id if principal else "-"
    logger.info(f"{method} {path} | {response.status_code} | {duration}ms | festival={festival}")

    return response
