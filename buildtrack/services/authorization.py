# buildtrack/services/authorization.py
"""
Ownership checks for the User -> Client -> Project -> {Contract, Receipt} chain.

The storage layer resolves who owns a resource and hands back an
``Ownership`` value; the decision itself happens here, so it can be tested
without a database.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from ..errors import AuthorizationError, NotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ownership:
    """Result of walking a resource back to its owning user."""
    resource: str
    resource_id: str
    exists: bool
    owner_id: Optional[str] = None

    @property
    def unassigned(self) -> bool:
        """True for a resource that exists but has no owner chain (e.g. a receipt with no project)."""
        return self.exists and self.owner_id is None

    @classmethod
    def missing(cls, resource: str, resource_id: str) -> 'Ownership':
        return cls(resource=resource, resource_id=resource_id, exists=False)


def check_access(user_id: str, ownership: Ownership, allow_unassigned: bool = False) -> None:
    """
    Raise unless ``user_id`` may act on the resource described by ``ownership``.

    Unassigned resources are only allowed when ``allow_unassigned`` is set;
    receipts use this so anyone signed in can work the unassigned inbox.
    """
    if not ownership.exists:
        raise NotFoundError(f"{ownership.resource.capitalize()} not found")

    if ownership.unassigned:
        if allow_unassigned:
            return
        logger.warning(f"{ownership.resource} {ownership.resource_id} has no owner chain; denying user {user_id}")
        raise AuthorizationError()

    if ownership.owner_id != user_id:
        logger.warning(
            f"User {user_id} attempted to access {ownership.resource} {ownership.resource_id} "
            f"owned by another user"
        )
        raise AuthorizationError()


def is_accessible(user_id: str, ownership: Ownership, allow_unassigned: bool = False) -> bool:
    try:
        check_access(user_id, ownership, allow_unassigned=allow_unassigned)
    except (AuthorizationError, NotFoundError):
        return False
    return True
