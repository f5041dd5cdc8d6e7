"""
Runtime validation utilities for ensuring architectural contracts.

This module provides functions to validate:

- Repository and gateway implementations against their Protocols using
  @runtime_checkable.
- Actors against the ownership and role rules shared by all use cases.

The goal is to catch wiring errors at construction time and authorization
errors before any store is touched.
"""

from typing import Any, Optional, Type, TypeVar
import logging

from pharmacy.domain import Actor, Role
from pharmacy.errors import ForbiddenError

logger = logging.getLogger(__name__)

P = TypeVar("P")


class RepositoryValidationError(Exception):
    """Raised when repository contract validation fails"""

    pass


def validate_repository_protocol(
    repository: object, protocol: Type[P]
) -> None:
    """
    Validate that an implementation satisfies a protocol contract.

    Args:
        repository: The implementation to validate
        protocol: The protocol class to validate against

    Raises:
        RepositoryValidationError: If validation fails

    Example:
        >>> from pharmacy.repos.memory.stock import MemoryStockRepository
        >>> from pharmacy.repositories import StockRepository
        >>> validate_repository_protocol(
        ...     MemoryStockRepository(), StockRepository
        ... )
    """
    logger.debug(
        "Validating repository protocol",
        extra={
            "repository_type": type(repository).__name__,
            "protocol_name": protocol.__name__,
        },
    )

    if not isinstance(repository, protocol):
        logger.error(
            "Repository protocol validation failed",
            extra={
                "repository_type": type(repository).__name__,
                "protocol_name": protocol.__name__,
            },
        )
        raise RepositoryValidationError(
            f"Repository {type(repository).__name__} does not implement "
            f"{protocol.__name__} protocol. Missing or incorrect methods."
        )


def ensure_repository_protocol(repository: object, protocol: Type[P]) -> P:
    """
    Validate and return an implementation with proper type annotation.

    Returns:
        The validated repository (type checker knows it satisfies the
        protocol)
    """
    validate_repository_protocol(repository, protocol)
    return repository  # type: ignore[return-value]


def ensure_unit_of_work_factory(factory: object) -> Any:
    """Ensure an object satisfies the UnitOfWorkFactory protocol"""
    from pharmacy.repositories import UnitOfWorkFactory

    return ensure_repository_protocol(factory, UnitOfWorkFactory)  # type: ignore[type-abstract]


def ensure_request_repository(repo: object) -> Any:
    """Ensure an object satisfies the RequestRepository protocol"""
    from pharmacy.repositories import RequestRepository

    return ensure_repository_protocol(repo, RequestRepository)  # type: ignore[type-abstract]


def ensure_order_repository(repo: object) -> Any:
    """Ensure an object satisfies the OrderRepository protocol"""
    from pharmacy.repositories import OrderRepository

    return ensure_repository_protocol(repo, OrderRepository)  # type: ignore[type-abstract]


def ensure_stock_repository(repo: object) -> Any:
    """Ensure an object satisfies the StockRepository protocol"""
    from pharmacy.repositories import StockRepository

    return ensure_repository_protocol(repo, StockRepository)  # type: ignore[type-abstract]


def ensure_payment_gateway(gateway: object) -> Any:
    """Ensure an object satisfies the PaymentGateway protocol"""
    from pharmacy.repositories import PaymentGateway

    return ensure_repository_protocol(gateway, PaymentGateway)  # type: ignore[type-abstract]


def ensure_notifier(notifier: object) -> Any:
    """Ensure an object satisfies the Notifier protocol"""
    from pharmacy.repositories import Notifier

    return ensure_repository_protocol(notifier, Notifier)  # type: ignore[type-abstract]


# --- Authorization ---


def ensure_owner_or_elevated(actor: Actor, owner_id: str) -> None:
    """
    Allow the owner of a request/order, pharmacy staff and system admins.

    Raises:
        ForbiddenError: For any other actor
    """
    if actor.user_id == owner_id or actor.is_elevated:
        return
    logger.warning(
        "Access denied",
        extra={
            "actor_id": actor.user_id,
            "actor_role": actor.role.value,
            "owner_id": owner_id,
        },
    )
    raise ForbiddenError("Not authorized to access this resource")


def ensure_elevated(actor: Actor, action: str) -> None:
    """Allow only pharmacy staff and system admins."""
    if actor.is_elevated:
        return
    logger.warning(
        "Elevated role required",
        extra={
            "actor_id": actor.user_id,
            "actor_role": actor.role.value,
            "action": action,
        },
    )
    raise ForbiddenError(f"Only pharmacy staff may {action}")


def ensure_can_view_order(
    actor: Actor, owner_id: str, delivery_partner_id: Optional[str]
) -> None:
    """Owners, staff/admins and the assigned delivery partner may read."""
    if (
        actor.role == Role.DELIVERY_PARTNER
        and delivery_partner_id is not None
        and actor.user_id == delivery_partner_id
    ):
        return
    ensure_owner_or_elevated(actor, owner_id)
