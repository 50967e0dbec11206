"""Role hierarchy and the authoritative access policy.

Every route consults ``POLICY`` through ``check_permission`` and clients
receive the same table from ``policy_table()``, so server-side enforcement
and client-side gating cannot drift apart.

Role levels (higher is more privileged):
- Admin:   3
- Manager: 2
- Client:  1
- User:    0
"""
import enum
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from .models import RoleName

logger = logging.getLogger("agency-core.permissions")


class PermissionDeniedError(Exception):
    """Raised when a role set does not satisfy the policy for an action."""

    def __init__(self, action: "Action", resource: "ResourceType", required_role: RoleName):
        self.action = action
        self.resource = resource
        self.required_role = required_role
        super().__init__(
            f"'{action.value}' on '{resource.value}' requires role {required_role.value} or higher"
        )


class Action(str, enum.Enum):
    """Operations subject to authorization."""

    LIST = "list"
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    MANAGE = "manage"


class ResourceType(str, enum.Enum):
    """Resource types subject to authorization."""

    CLIENT = "client"
    PROJECT = "project"
    TASK = "task"
    FINANCIAL_RECORD = "financial_record"
    RESOURCE = "resource"
    RESOURCE_ALLOCATION = "resource_allocation"
    AI_MODEL = "ai_model"
    AI_DEPLOYMENT = "ai_deployment"
    USER = "user"
    DASHBOARD = "dashboard"
    ADMIN = "admin"


ROLE_HIERARCHY: dict[RoleName, int] = {
    RoleName.ADMIN: 3,
    RoleName.MANAGER: 2,
    RoleName.CLIENT: 1,
    RoleName.USER: 0,
}

LOWEST_LEVEL = min(ROLE_HIERARCHY.values())

# Entity types that follow the standard CRUD policy
_STANDARD_RESOURCES = (
    ResourceType.CLIENT,
    ResourceType.PROJECT,
    ResourceType.TASK,
    ResourceType.RESOURCE,
    ResourceType.RESOURCE_ALLOCATION,
    ResourceType.AI_MODEL,
    ResourceType.AI_DEPLOYMENT,
)


def _build_policy() -> dict[tuple[Action, ResourceType], RoleName]:
    policy: dict[tuple[Action, ResourceType], RoleName] = {}

    for resource in _STANDARD_RESOURCES:
        policy[(Action.LIST, resource)] = RoleName.USER
        policy[(Action.READ, resource)] = RoleName.USER
        policy[(Action.CREATE, resource)] = RoleName.MANAGER
        policy[(Action.UPDATE, resource)] = RoleName.MANAGER
        policy[(Action.DELETE, resource)] = RoleName.ADMIN

    # Financial data is hidden from clients and plain users
    for action in (Action.LIST, Action.READ, Action.CREATE, Action.UPDATE):
        policy[(action, ResourceType.FINANCIAL_RECORD)] = RoleName.MANAGER
    policy[(Action.DELETE, ResourceType.FINANCIAL_RECORD)] = RoleName.ADMIN

    # Account administration
    for action in Action:
        policy[(action, ResourceType.USER)] = RoleName.ADMIN

    policy[(Action.READ, ResourceType.DASHBOARD)] = RoleName.USER
    policy[(Action.MANAGE, ResourceType.ADMIN)] = RoleName.ADMIN
    policy[(Action.READ, ResourceType.ADMIN)] = RoleName.ADMIN

    return policy


# (action, resource type) -> minimum role
POLICY: dict[tuple[Action, ResourceType], RoleName] = _build_policy()


def role_level(role_name: str) -> int:
    """
    Get the hierarchy level of a role name.

    Matching is case-insensitive; unknown names get the lowest level.

    Args:
        role_name: Role name such as "Admin" or "manager"

    Returns:
        Hierarchy level (0-3)
    """
    for role, level in ROLE_HIERARCHY.items():
        if role.value.lower() == (role_name or "").strip().lower():
            return level
    return LOWEST_LEVEL


def highest_role_level(role_names: Iterable[str]) -> int:
    """Return the highest hierarchy level in a role set (lowest level if empty)."""
    return max((role_level(name) for name in role_names), default=LOWEST_LEVEL)


def highest_role(role_names: Iterable[str]) -> RoleName:
    """Return the most privileged built-in role in a role set."""
    level = highest_role_level(role_names)
    for role, role_lvl in ROLE_HIERARCHY.items():
        if role_lvl == level:
            return role
    return RoleName.USER


def minimum_role(action: Action, resource: ResourceType) -> RoleName:
    """
    Look up the minimum role for an action on a resource type.

    Pairs missing from the policy table require Admin.
    """
    return POLICY.get((action, resource), RoleName.ADMIN)


def is_allowed(role_names: Iterable[str], action: Action, resource: ResourceType) -> bool:
    """Check whether any role in the set reaches the required level."""
    required = minimum_role(action, resource)
    return highest_role_level(role_names) >= ROLE_HIERARCHY[required]


def check_permission(role_names: Iterable[str], action: Action, resource: ResourceType) -> None:
    """
    Enforce the policy for an action on a resource type.

    Raises:
        PermissionDeniedError: If the role set is insufficient
    """
    role_names = list(role_names)
    if not is_allowed(role_names, action, resource):
        required = minimum_role(action, resource)
        logger.warning(
            f"Denied {action.value} on {resource.value}: roles={role_names}, required={required.value}"
        )
        raise PermissionDeniedError(action, resource, required)


def allowed_actions(role_names: Iterable[str]) -> dict[str, list[str]]:
    """Map each resource type to the actions the role set may perform."""
    level = highest_role_level(role_names)
    result: dict[str, list[str]] = {}
    for (action, resource), required in POLICY.items():
        if level >= ROLE_HIERARCHY[required]:
            result.setdefault(resource.value, []).append(action.value)
    return {resource: sorted(actions) for resource, actions in sorted(result.items())}


def policy_table() -> list[dict]:
    """Serialisable policy table for client-side gating."""
    return [
        {
            "action": action.value,
            "resource": resource.value,
            "minimum_role": required.value,
            "minimum_level": ROLE_HIERARCHY[required],
        }
        for (action, resource), required in sorted(
            POLICY.items(), key=lambda item: (item[0][1].value, item[0][0].value)
        )
    ]


# ============================================================================
# Route gating
# ============================================================================


class GateDecision(str, enum.Enum):
    """Outcome of a route gate check."""

    ALLOW = "allow"
    LOGIN = "login"
    UNAUTHORIZED = "unauthorized"


@dataclass
class GateResult:
    decision: GateDecision
    redirect_to: Optional[str] = None
    user_level: Optional[int] = None
    required_level: int = LOWEST_LEVEL


def evaluate_gate(
    role_names: Optional[Iterable[str]],
    required_role: RoleName = RoleName.USER,
    login_path: str = "/auth/login",
    unauthorized_path: str = "/unauthorized",
) -> GateResult:
    """
    Decide whether a caller may enter a role-gated route.

    Args:
        role_names: Caller's roles, or None when there is no session
        required_role: Minimum role for the route
        login_path: Redirect target for unauthenticated callers
        unauthorized_path: Redirect target for under-privileged callers

    Returns:
        GateResult with the decision and redirect target (if any)
    """
    required_level = ROLE_HIERARCHY[required_role]

    if role_names is None:
        return GateResult(GateDecision.LOGIN, redirect_to=login_path, required_level=required_level)

    level = highest_role_level(role_names)
    if level < required_level:
        return GateResult(
            GateDecision.UNAUTHORIZED,
            redirect_to=unauthorized_path,
            user_level=level,
            required_level=required_level,
        )

    return GateResult(GateDecision.ALLOW, user_level=level, required_level=required_level)
