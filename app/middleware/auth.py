"""Bearer token authentication. The token subject is the owner of rules and tasks."""
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request, status
from jose import JWTError, jwt
from pydantic import BaseModel

from app.config import settings


class CurrentUser(BaseModel):
    """Owner identity taken from the token."""
    user_id: str
    email: Optional[str] = None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def create_access_token(user_id: str, email: Optional[str] = None, **claims) -> str:
    """Issue a signed token for a user (used by tooling and tests)."""
    payload = {"sub": user_id, "email": email, **claims}
    return jwt.encode(payload, settings.AUTH_SECRET, algorithm=settings.AUTH_ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Verify a token's signature and expiry.

    Raises:
        HTTPException: 401 if the token is expired, malformed or has no subject
    """
    try:
        claims = jwt.decode(token, settings.AUTH_SECRET, algorithms=[settings.AUTH_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except JWTError as e:
        raise _unauthorized(f"Invalid token: {e}")

    if not claims.get("sub"):
        raise _unauthorized("Invalid token: missing user ID")
    return claims


async def get_current_user(request: Request) -> CurrentUser:
    """FastAPI dependency: resolve the caller from the Authorization header."""
    scheme, _, token = request.headers.get("authorization", "").partition(" ")
    if scheme != "Bearer" or not token:
        raise _unauthorized("Missing or invalid Authorization header")

    claims = decode_access_token(token)
    return CurrentUser(user_id=claims["sub"], email=claims.get("email"))
