"""
tests/test_roles.py -- Unit tests for the static role hierarchy.

Covers:
  - level lookup and UnknownRoleError
  - has_role ordering (admin satisfies user, never the reverse)
  - unknown roles never satisfy any check
  - helper views: valid_roles, role_hierarchy, subordinate_roles, display names
"""

from __future__ import annotations

import pytest

from auth.roles import (
    ROLE_ADMIN,
    ROLE_USER,
    UnknownRoleError,
    get_role_info,
    get_role_level,
    has_all_roles,
    has_any_role,
    has_role,
    is_admin,
    is_user,
    role_display_name,
    role_hierarchy,
    subordinate_roles,
    valid_roles,
    validate_role,
)


class TestRoleLevels:
    """get_role_level() and get_role_info()."""

    def test_known_levels(self) -> None:
        assert get_role_level(ROLE_USER) == 1
        assert get_role_level(ROLE_ADMIN) == 2

    def test_unknown_role_raises(self) -> None:
        with pytest.raises(UnknownRoleError) as exc_info:
            get_role_level("superuser")
        assert exc_info.value.role == "superuser"
        assert isinstance(exc_info.value, ValueError)

    def test_role_info(self) -> None:
        info = get_role_info(ROLE_ADMIN)
        assert info.name == "admin"
        assert info.level == 2
        assert info.description

    def test_role_names_are_case_sensitive(self) -> None:
        with pytest.raises(UnknownRoleError):
            get_role_level("Admin")


class TestHasRole:
    """Hierarchical permission checks."""

    @pytest.mark.parametrize(
        ("actual", "required", "expected"),
        [
            (ROLE_USER, ROLE_USER, True),
            (ROLE_ADMIN, ROLE_USER, True),
            (ROLE_ADMIN, ROLE_ADMIN, True),
            (ROLE_USER, ROLE_ADMIN, False),
        ],
    )
    def test_ordering(self, actual: str, required: str, expected: bool) -> None:
        assert has_role(actual, required) is expected

    def test_unknown_actual_role_never_passes(self) -> None:
        assert has_role("guest", ROLE_USER) is False
        assert has_role("", ROLE_USER) is False

    def test_unknown_required_role_never_passes(self) -> None:
        assert has_role(ROLE_ADMIN, "root") is False

    def test_any_and_all(self) -> None:
        assert has_any_role(ROLE_USER, ROLE_ADMIN, ROLE_USER) is True
        assert has_any_role(ROLE_USER, ROLE_ADMIN) is False
        assert has_all_roles(ROLE_ADMIN, ROLE_USER, ROLE_ADMIN) is True
        assert has_all_roles(ROLE_USER, ROLE_USER, ROLE_ADMIN) is False

    def test_is_admin_and_is_user(self) -> None:
        assert is_admin(ROLE_ADMIN) and not is_admin(ROLE_USER)
        assert is_user(ROLE_USER) and is_user(ROLE_ADMIN)
        assert not is_user("nobody")


class TestRoleViews:
    """Listing and display helpers."""

    def test_validate_role(self) -> None:
        assert validate_role(ROLE_USER)
        assert not validate_role("moderator")

    def test_valid_roles_sorted_by_level(self) -> None:
        assert valid_roles() == [ROLE_USER, ROLE_ADMIN]

    def test_hierarchy(self) -> None:
        assert role_hierarchy() == {ROLE_USER: [ROLE_USER], ROLE_ADMIN: [ROLE_USER, ROLE_ADMIN]}
        assert subordinate_roles(ROLE_ADMIN) == [ROLE_USER, ROLE_ADMIN]

    def test_display_names(self) -> None:
        assert role_display_name(ROLE_USER) == "User"
        assert role_display_name(ROLE_ADMIN) == "Administrator"
        assert role_display_name("auditor") == "auditor"
