"""
Shared dependencies for FastAPI routes
"""
from typing import Any, Dict, Generator, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from leadflow.core.security import decode_token
from leadflow.database.models.database import AppUser
from leadflow.database.session import get_session
from leadflow.services.authorization import ActorContext
from leadflow.utils.exceptions import NotFoundError, UnauthenticatedError

bearer_scheme = HTTPBearer(auto_error=False)


def get_db() -> Generator:
    """
    Database session dependency.
    Yields a database session from the pool and ensures it's closed after use.
    """
    db = get_session()
    try:
        yield db
    finally:
        db.close()


def get_token_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Dict[str, Any]:
    """Verified claims of the caller's bearer token"""
    if credentials is None or not credentials.credentials:
        raise UnauthenticatedError()
    return decode_token(credentials.credentials)


def get_current_user(
    claims: Dict[str, Any] = Depends(get_token_claims),
    db: Session = Depends(get_db),
) -> AppUser:
    user = db.get(AppUser, claims["sub"])
    if user is None:
        raise NotFoundError("User profile not found")
    return user


def get_current_actor(user: AppUser = Depends(get_current_user)) -> ActorContext:
    """Actor context passed explicitly to every service call"""
    return ActorContext.from_user(user)
