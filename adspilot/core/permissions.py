from typing import Dict, FrozenSet

from adspilot.models.user import User, UserRole

LOGS_VIEW_ALL = "logs.view.all"
LOGS_VIEW_OWN = "logs.view.own"
RULES_EXECUTE_ALL = "rules.execute.all"

ROLE_PERMISSIONS: Dict[UserRole, FrozenSet[str]] = {
    UserRole.SUPERADMIN: frozenset({LOGS_VIEW_ALL, LOGS_VIEW_OWN, RULES_EXECUTE_ALL}),
    UserRole.ADMIN: frozenset({LOGS_VIEW_ALL, LOGS_VIEW_OWN, RULES_EXECUTE_ALL}),
    UserRole.MANAGER: frozenset({LOGS_VIEW_OWN}),
    UserRole.STAFF: frozenset({LOGS_VIEW_OWN}),
    UserRole.USER: frozenset({LOGS_VIEW_OWN}),
}


def has_permission(user: User, permission: str) -> bool:
    """Vérifie qu'un rôle porte la permission demandée"""
    try:
        role = UserRole(user.role)
    except ValueError:
        return False
    return permission in ROLE_PERMISSIONS.get(role, frozenset())
