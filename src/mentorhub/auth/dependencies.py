"""FastAPI authentication dependencies."""

from __future__ import annotations

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from mentorhub.auth.jwt import verify_token
from mentorhub.database import get_session
from mentorhub.db.models import User
from mentorhub.profiles.service import get_user_by_id
from mentorhub.progress.errors import AuthenticationRequired

# auto_error=False so a missing header maps to the login redirect payload, not a bare 403
_bearer = HTTPBearer(auto_error=False)


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> User | None:
    """
    Resolve the caller if a valid access token is present.

    Anonymous callers (no token, bad token, unknown user) get None.
    """
    if credentials is None:
        return None
    try:
        payload = verify_token(credentials.credentials, expected_type="access")
    except jwt.InvalidTokenError:
        return None
    return await get_user_by_id(db, int(payload["sub"]))


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> User:
    """
    Extract and verify JWT, return User model.

    Raises AuthenticationRequired (401 + login_url) or 403 for banned accounts.
    """
    if credentials is None:
        raise AuthenticationRequired("Authentication required")
    try:
        payload = verify_token(credentials.credentials, expected_type="access")
    except jwt.InvalidTokenError as e:
        raise AuthenticationRequired(str(e)) from e

    user = await get_user_by_id(db, int(payload["sub"]))
    if user is None:
        raise AuthenticationRequired("User not found")
    if user.is_banned:
        raise HTTPException(status_code=403, detail="Account is banned")
    return user
