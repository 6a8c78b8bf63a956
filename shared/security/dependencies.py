"""
Replaces the old pass-through dispatcher middleware: every dispatch and
inventory-admin route now depends on get_current_dispatcher, which rejects
requests without a valid, unexpired bearer token.
"""
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from .jwt_handler import verify_access_token

# Defines the expected header format (Bearer <token>)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/dispatcher-login", auto_error=False)

DISPATCHER_ROLES = frozenset({"dispatcher", "admin"})


@dataclass(frozen=True)
class CurrentDispatcher:
    username: str
    role: str


async def get_current_dispatcher(
    request: Request, token: str | None = Depends(oauth2_scheme)
) -> CurrentDispatcher:
    """Dependency to validate the dispatcher JWT and return its identity."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not token:
        raise credentials_exception

    payload = verify_access_token(token, request.app.state.settings.jwt_secret_key)
    if payload is None:
        raise credentials_exception

    username = payload.get("sub")
    role = payload.get("role")
    if username is None or role not in DISPATCHER_ROLES:
        raise credentials_exception

    # Store in request state for downstream use (like rate limiting)
    request.state.dispatcher = username
    return CurrentDispatcher(username=username, role=role)
