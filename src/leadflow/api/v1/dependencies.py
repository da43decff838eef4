"""
API-specific dependencies for v1 endpoints
"""
from fastapi import Depends

from leadflow.core.dependencies import get_current_actor
from leadflow.services.authorization import ActorContext
from leadflow.utils.exceptions import PermissionDeniedError


def require_supervisor(actor: ActorContext = Depends(get_current_actor)) -> ActorContext:
    """Active manager or admin"""
    if not actor.is_active or not actor.is_supervisor:
        raise PermissionDeniedError("Manager or admin access required")
    return actor


def require_admin(actor: ActorContext = Depends(get_current_actor)) -> ActorContext:
    if not actor.is_active or not actor.is_admin:
        raise PermissionDeniedError("Admin access required")
    return actor
