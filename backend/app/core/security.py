"""
Acting-user resolution.

Authentication happens upstream: the auth gateway verifies the session and
forwards the opaque user id in a header. This module only reads it.
"""

from fastapi import HTTPException, Request, status

from app.core.config import get_settings

settings = get_settings()


async def get_current_user_id(request: Request) -> str:
    user_id = request.headers.get(settings.USER_ID_HEADER, "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return user_id
