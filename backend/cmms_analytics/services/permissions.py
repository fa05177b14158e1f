"""
Caller identity and permission checks for the reporting endpoints.
"""
import logging
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from cmms_analytics.core.exceptions import ForbiddenError, MissingTenantError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Caller:
    """The authenticated principal a request runs as."""

    tenant_id: Optional[int]
    user_id: int
    roles: FrozenSet[str] = field(default_factory=frozenset)
    permissions: FrozenSet[str] = field(default_factory=frozenset)
    is_superuser: bool = False

    def require_tenant(self) -> int:
        if self.tenant_id is None:
            raise MissingTenantError()
        return self.tenant_id


def has_permission(caller: Caller, resource: str, action: str) -> bool:
    return caller.is_superuser or f"{resource}.{action}" in caller.permissions


def assert_permission(caller: Caller, resource: str, action: str) -> None:
    """Raise ForbiddenError unless the caller may perform ``action`` on ``resource``."""
    if not has_permission(caller, resource, action):
        logger.warning(f"User {caller.user_id} denied {resource}.{action}")
        raise ForbiddenError(f"Permission '{resource}.{action}' required")
