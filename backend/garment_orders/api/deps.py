"""
FastAPI dependencies for caller identity and database sessions.

Authentication is terminated by the upstream gateway, which forwards the
verified principal in the ``X-User-Id`` and ``X-User-Role`` headers. These
dependencies turn those headers into a CallerIdentity and enforce route
level roles; ownership rules stay in the order service.
"""

from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from garment_orders.core.exceptions import OrderValidationError
from garment_orders.core.logging import get_logger, set_caller_id
from garment_orders.core.security import CallerIdentity, UserRole, require_role
from garment_orders.database.connection import get_db
from garment_orders.services.orders.service import OrderService

logger = get_logger(__name__)


async def get_current_caller(
    x_user_id: Annotated[Optional[str], Header()] = None,
    x_user_role: Annotated[Optional[str], Header()] = None,
) -> CallerIdentity:
    """
    Build the caller identity from gateway headers.

    Raises:
        HTTPException: 401 if the headers are missing or malformed
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Authentication required",
    )

    if not x_user_id or not x_user_role:
        logger.warning("Authentication failed: identity headers missing")
        raise credentials_exception

    try:
        user_id = UUID(x_user_id)
        role = UserRole.from_string(x_user_role)
    except (ValueError, OrderValidationError):
        logger.warning(
            "Authentication failed: malformed identity headers",
            user_id=x_user_id,
            role=x_user_role,
        )
        raise credentials_exception

    set_caller_id(str(user_id))
    return CallerIdentity(user_id=user_id, role=role)


def require_roles(*allowed_roles: UserRole):
    """
    Create a dependency that requires one of the given roles.

    Example:
        @router.get("/admin/all")
        async def list_all(caller: Annotated[CallerIdentity, Depends(require_roles(UserRole.ADMIN))]):
            ...
    """

    async def role_checker(
        caller: Annotated[CallerIdentity, Depends(get_current_caller)],
    ) -> CallerIdentity:
        require_role(caller, *allowed_roles)
        return caller

    return role_checker


async def get_order_service(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> OrderService:
    return OrderService(db)


CurrentCaller = Annotated[CallerIdentity, Depends(get_current_caller)]
BuyerCaller = Annotated[CallerIdentity, Depends(require_roles(UserRole.BUYER))]
StaffCaller = Annotated[
    CallerIdentity, Depends(require_roles(UserRole.MANAGER, UserRole.ADMIN))
]
AdminCaller = Annotated[CallerIdentity, Depends(require_roles(UserRole.ADMIN))]
OrderServiceDep = Annotated[OrderService, Depends(get_order_service)]
