"""
Bearer token handling.
Tokens are issued by the identity provider; ``create_access_token`` exists for
local development and the maintenance CLI.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from leadflow.core.config import settings
from leadflow.utils.exceptions import UnauthenticatedError
from leadflow.utils.logging import get_logger

logger = get_logger(__name__)


def create_access_token(
    subject: str,
    email: Optional[str] = None,
    name: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a signed JWT whose ``sub`` is the user's uid"""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.security.access_token_expire_minutes)
    )
    claims: Dict[str, Any] = {"sub": subject, "exp": expire}
    if email:
        claims["email"] = email
    if name:
        claims["name"] = name
    return jwt.encode(claims, settings.security.secret_key, algorithm=settings.security.algorithm)


def decode_token(token: str) -> Dict[str, Any]:
    """
    Verify a bearer token and return its claims.

    Raises:
        UnauthenticatedError: If the token is invalid, expired or has no subject
    """
    try:
        payload = jwt.decode(token, settings.security.secret_key, algorithms=[settings.security.algorithm])
    except JWTError as e:
        logger.warning(f"[yellow]JWT decode error:[/yellow] {e}")
        raise UnauthenticatedError("Invalid or expired token")

    if not payload.get("sub"):
        logger.warning("[yellow]Token missing 'sub' field[/yellow]")
        raise UnauthenticatedError("Invalid or expired token")
    return payload
