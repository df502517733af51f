"""
Caller identity and role checks.

Authentication happens upstream; by the time a request reaches the order
core its caller is a plain CallerIdentity value passed explicitly into each
operation. This module only answers "may this caller do that".
"""

import enum
from dataclasses import dataclass
from typing import Union
from uuid import UUID

from garment_orders.core.exceptions import OrderValidationError, UnauthorizedError
from garment_orders.core.logging import get_logger

logger = get_logger(__name__)


class UserRole(str, enum.Enum):
    """Marketplace roles."""

    BUYER = "buyer"
    MANAGER = "manager"
    ADMIN = "admin"

    @classmethod
    def from_string(cls, value: str) -> "UserRole":
        try:
            return cls(value.strip().lower())
        except (ValueError, AttributeError) as e:
            raise OrderValidationError(
                f"Invalid role: {value}", role=value
            ) from e


STAFF_ROLES = frozenset({UserRole.MANAGER, UserRole.ADMIN})


@dataclass(frozen=True)
class CallerIdentity:
    """The authenticated principal acting on an order."""

    user_id: UUID
    role: UserRole

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


def require_role(caller: CallerIdentity, *allowed_roles: UserRole) -> None:
    """
    Ensure the caller holds one of the allowed roles.

    Raises:
        UnauthorizedError: If the caller's role is not allowed
    """
    if caller.role not in allowed_roles:
        logger.warning(
            "Access denied: insufficient role",
            caller_id=str(caller.user_id),
            caller_role=caller.role.value,
            required_roles=[role.value for role in allowed_roles],
        )
        raise UnauthorizedError(
            f"Role '{caller.role.value}' is not authorized to access this route",
            caller_id=str(caller.user_id),
            caller_role=caller.role.value,
        )


def require_owner(
    caller: CallerIdentity,
    owner_id: Union[UUID, str],
    message: str = "Not authorized",
) -> None:
    """
    Ensure the caller is the owner of a resource.

    Raises:
        UnauthorizedError: If the caller does not own the resource
    """
    if str(caller.user_id) != str(owner_id):
        logger.warning(
            "Access denied: caller is not the owner",
            caller_id=str(caller.user_id),
            owner_id=str(owner_id),
        )
        raise UnauthorizedError(
            message,
            caller_id=str(caller.user_id),
            owner_id=str(owner_id),
        )


def require_owner_or_staff(
    caller: CallerIdentity, owner_id: Union[UUID, str]
) -> None:
    """Allow the owning buyer, or any manager/admin."""
    if caller.is_staff:
        return
    require_owner(caller, owner_id, "Not authorized to view this order")
