"""
auth/roles.py -- Static role hierarchy and the checks built on it.

Roles form a total order by level: user=1 < admin=2. A role satisfies a
requirement when its level is at least the required level, so an admin passes
every user check.

Unknown role strings never satisfy any check. get_role_level() raises for
them instead of returning a sentinel, so a typo in a role constant fails loudly
rather than quietly denying (or granting) access.

Layer rule: pure functions, no imports from the rest of auth/.
"""

from __future__ import annotations

from dataclasses import dataclass

ROLE_USER = "user"
ROLE_ADMIN = "admin"

ROLE_LEVEL_USER = 1
ROLE_LEVEL_ADMIN = 2

ROLE_LEVELS: dict[str, int] = {
    ROLE_USER: ROLE_LEVEL_USER,
    ROLE_ADMIN: ROLE_LEVEL_ADMIN,
}


class UnknownRoleError(ValueError):
    """Raised when a role string is not part of the hierarchy."""

    def __init__(self, role: str) -> None:
        self.role = role
        super().__init__(f"Unknown role: {role!r}")


@dataclass(frozen=True)
class RoleInfo:
    name: str
    level: int
    description: str


_ROLE_INFO: dict[str, RoleInfo] = {
    ROLE_USER: RoleInfo(ROLE_USER, ROLE_LEVEL_USER, "Regular user; may manage their own sessions."),
    ROLE_ADMIN: RoleInfo(ROLE_ADMIN, ROLE_LEVEL_ADMIN, "Administrator; has every permission."),
}

_DISPLAY_NAMES: dict[str, str] = {
    ROLE_USER: "User",
    ROLE_ADMIN: "Administrator",
}


def get_role_level(role: str) -> int:
    """Return the ordinal level of role. Raises UnknownRoleError for unknown roles."""
    try:
        return ROLE_LEVELS[role]
    except KeyError:
        raise UnknownRoleError(role) from None


def get_role_info(role: str) -> RoleInfo:
    try:
        return _ROLE_INFO[role]
    except KeyError:
        raise UnknownRoleError(role) from None


def has_role(actual: str, required: str) -> bool:
    """Return True if actual ranks at or above required.

    False whenever either role is unknown -- never raises.
    """
    try:
        return get_role_level(actual) >= get_role_level(required)
    except UnknownRoleError:
        return False


def has_any_role(actual: str, *required: str) -> bool:
    return any(has_role(actual, r) for r in required)


def has_all_roles(actual: str, *required: str) -> bool:
    return all(has_role(actual, r) for r in required)


def is_admin(role: str) -> bool:
    return has_role(role, ROLE_ADMIN)


def is_user(role: str) -> bool:
    """True for regular users and everything above them."""
    return has_role(role, ROLE_USER)


def validate_role(role: str) -> bool:
    return role in ROLE_LEVELS


def valid_roles() -> list[str]:
    """Return every known role, lowest level first."""
    return sorted(ROLE_LEVELS, key=ROLE_LEVELS.__getitem__)


def role_hierarchy() -> dict[str, list[str]]:
    """Map each role to the roles it includes (itself and everything below)."""
    return {role: subordinate_roles(role) for role in valid_roles()}


def subordinate_roles(role: str) -> list[str]:
    """Return the roles whose checks role satisfies, lowest level first."""
    level = get_role_level(role)
    return [r for r in valid_roles() if ROLE_LEVELS[r] <= level]


def role_display_name(role: str) -> str:
    # Unknown roles are shown verbatim.
    return _DISPLAY_NAMES.get(role, role)
