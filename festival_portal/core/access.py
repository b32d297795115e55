from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional
import logging

from festival_portal.core.exceptions import AuthorizationError
from festival_portal.models.festival import UserProfile, UserRole

logger = logging.getLogger(__name__)


class Resource(str, Enum):
    TICKET_SALES = "ticket_sales"
    INCOME = "income"
    EXPENSES = "expenses"
    SPONSORS = "sponsors"
    SPONSOR_DELIVERABLES = "sponsor_deliverables"
    SYNC_LOGS = "sync_logs"
    INTEGRATIONS = "integrations"
    REPORTS = "reports"


class Action(str, Enum):
    READ = "read"
    WRITE = "write"
    SYNC = "sync"


@dataclass(frozen=True)
class Principal:
    """Authenticated caller; every query is scoped to `festival_id`"""
    user_id: str
    festival_id: str
    role: UserRole
    email: Optional[str] = None

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "Principal":
        return cls(user_id=profile.id, festival_id=profile.festival_id, role=profile.role, email=profile.email)

    @property
    def is_sponsor(self) -> bool:
        return self.role == UserRole.SPONSOR


ALL_MEMBERS: FrozenSet[UserRole] = frozenset(UserRole)
ADMIN_ONLY: FrozenSet[UserRole] = frozenset({UserRole.ADMIN})

# Sponsor-role reads of sponsors/deliverables are allowed here and narrowed
# to the caller's own sponsor rows by the repository. Ticket sales are only
# written by the sync job, which runs outside any principal.
PERMISSIONS: Dict[Resource, Dict[Action, FrozenSet[UserRole]]] = {
    Resource.TICKET_SALES: {Action.READ: ALL_MEMBERS},
    Resource.INCOME: {Action.READ: ALL_MEMBERS, Action.WRITE: ADMIN_ONLY},
    Resource.EXPENSES: {Action.READ: ALL_MEMBERS, Action.WRITE: ADMIN_ONLY},
    Resource.SPONSORS: {Action.READ: ALL_MEMBERS, Action.WRITE: ADMIN_ONLY},
    Resource.SPONSOR_DELIVERABLES: {Action.READ: ALL_MEMBERS, Action.WRITE: ADMIN_ONLY},
    Resource.SYNC_LOGS: {Action.READ: ALL_MEMBERS},
    Resource.INTEGRATIONS: {Action.READ: ADMIN_ONLY, Action.SYNC: ADMIN_ONLY},
    Resource.REPORTS: {Action.READ: ALL_MEMBERS},
}


def is_allowed(principal: Principal, resource: Resource, action: Action) -> bool:
    return principal.role in PERMISSIONS.get(resource, {}).get(action, frozenset())


def authorize(principal: Principal, resource: Resource, action: Action) -> None:
    """Raise AuthorizationError unless the principal's role may do `action` on `resource`"""
    if not is_allowed(principal, resource, action):
        logger.warning(
            f"Denied {action.value} on {resource.value} for user {principal.user_id} "
            f"(role={principal.role.value}, festival={principal.festival_id})"
        )
        raise AuthorizationError(
            f"Role '{principal.role.value}' may not {action.value} {resource.value}",
            {"resource": resource.value, "action": action.value}
        )


def normalize_email(email: Optional[str]) -> Optional[str]:
    if email is None:
        return None
    email = email.strip().lower()
    return email or None


def sponsor_matches(principal: Principal, contact_email: Optional[str]) -> bool:
    """Whether a sponsor row belongs to a sponsor-role principal (trimmed, case-insensitive)"""
    own = normalize_email(principal.email)
    return own is not None and own == normalize_email(contact_email)
