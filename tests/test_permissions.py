"""Tests for the role hierarchy, policy table and route gate."""
import pytest
from agency_core.models import RoleName
from agency_core.permissions import (
    Action,
    GateDecision,
    PermissionDeniedError,
    POLICY,
    ResourceType,
    allowed_actions,
    check_permission,
    evaluate_gate,
    highest_role,
    highest_role_level,
    is_allowed,
    minimum_role,
    policy_table,
    role_level,
)


class TestRoleLevels:
    """Test role hierarchy lookups."""

    def test_hierarchy_order(self):
        assert role_level("Admin") == 3
        assert role_level("Manager") == 2
        assert role_level("Client") == 1
        assert role_level("User") == 0

    def test_case_insensitive(self):
        assert role_level("admin") == 3
        assert role_level(" MANAGER ") == 2

    def test_unknown_role_gets_lowest_level(self):
        assert role_level("Superuser") == 0
        assert role_level("") == 0

    def test_highest_level_of_role_set(self):
        assert highest_role_level(["User", "Manager"]) == 2
        assert highest_role_level(["Client", "Admin", "User"]) == 3
        assert highest_role_level([]) == 0

    def test_highest_role(self):
        assert highest_role(["User", "Client"]) == RoleName.CLIENT
        assert highest_role([]) == RoleName.USER


class TestPolicy:
    """Test the centralized policy table."""

    def test_standard_crud_policy(self):
        for resource in (ResourceType.CLIENT, ResourceType.PROJECT, ResourceType.AI_DEPLOYMENT):
            assert minimum_role(Action.LIST, resource) == RoleName.USER
            assert minimum_role(Action.READ, resource) == RoleName.USER
            assert minimum_role(Action.CREATE, resource) == RoleName.MANAGER
            assert minimum_role(Action.UPDATE, resource) == RoleName.MANAGER
            assert minimum_role(Action.DELETE, resource) == RoleName.ADMIN

    def test_financial_records_hidden_below_manager(self):
        assert not is_allowed(["Client"], Action.LIST, ResourceType.FINANCIAL_RECORD)
        assert not is_allowed(["User"], Action.READ, ResourceType.FINANCIAL_RECORD)
        assert is_allowed(["Manager"], Action.LIST, ResourceType.FINANCIAL_RECORD)
        assert not is_allowed(["Manager"], Action.DELETE, ResourceType.FINANCIAL_RECORD)

    def test_user_administration_is_admin_only(self):
        for action in Action:
            assert minimum_role(action, ResourceType.USER) == RoleName.ADMIN

    def test_unlisted_pair_requires_admin(self):
        assert (Action.MANAGE, ResourceType.PROJECT) not in POLICY
        assert minimum_role(Action.MANAGE, ResourceType.PROJECT) == RoleName.ADMIN
        assert not is_allowed(["Manager"], Action.MANAGE, ResourceType.PROJECT)

    def test_any_role_in_set_counts(self):
        assert is_allowed(["User", "Manager"], Action.CREATE, ResourceType.TASK)

    def test_check_permission_raises_with_required_role(self):
        with pytest.raises(PermissionDeniedError) as exc_info:
            check_permission(["User"], Action.DELETE, ResourceType.CLIENT)

        error = exc_info.value
        assert error.required_role == RoleName.ADMIN
        assert error.action == Action.DELETE
        assert error.resource == ResourceType.CLIENT
        assert "Admin" in str(error)

    def test_check_permission_passes(self):
        check_permission(["Admin"], Action.DELETE, ResourceType.CLIENT)  # Should not raise

    def test_allowed_actions(self):
        allowed = allowed_actions(["Client"])
        assert allowed["project"] == ["list", "read"]
        assert "financial_record" not in allowed
        assert "user" not in allowed

        admin_allowed = allowed_actions(["Admin"])
        assert admin_allowed["project"] == ["create", "delete", "list", "read", "update"]
        assert "manage" in admin_allowed["user"]

    def test_policy_table_matches_policy(self):
        table = policy_table()
        assert len(table) == len(POLICY)
        entry = next(e for e in table if e["action"] == "delete" and e["resource"] == "client")
        assert entry == {
            "action": "delete",
            "resource": "client",
            "minimum_role": "Admin",
            "minimum_level": 3,
        }


class TestRouteGate:
    """Test route gating decisions."""

    def test_no_session_redirects_to_login(self):
        result = evaluate_gate(None, RoleName.USER)
        assert result.decision == GateDecision.LOGIN
        assert result.redirect_to == "/auth/login"
        assert result.user_level is None

    def test_insufficient_role_redirects_to_unauthorized(self):
        result = evaluate_gate(["Client"], RoleName.MANAGER)
        assert result.decision == GateDecision.UNAUTHORIZED
        assert result.redirect_to == "/unauthorized"
        assert result.user_level == 1
        assert result.required_level == 2

    def test_sufficient_role_allows(self):
        result = evaluate_gate(["Manager"], RoleName.MANAGER)
        assert result.decision == GateDecision.ALLOW
        assert result.redirect_to is None

    def test_empty_role_set_counts_as_lowest_level(self):
        assert evaluate_gate([], RoleName.USER).decision == GateDecision.ALLOW
        assert evaluate_gate([], RoleName.CLIENT).decision == GateDecision.UNAUTHORIZED

    def test_custom_redirect_paths(self):
        result = evaluate_gate(None, login_path="/signin")
        assert result.redirect_to == "/signin"
