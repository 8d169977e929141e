from datetime import datetime

import pytest

from carehome.utils.permission_util import (
    Capability, DEFAULT_POLICY, PermissionPolicy, ReasonCode, ResourceRef, Role,
    has_capability, owns_or_escalated,
)
from carehome.utils.principal_util import Principal


def principal(role, staff_id=1, facility_id='oak-house'):
    return Principal(id=staff_id, role=role, facility_id=facility_id, is_active=True,
                     locked_until=None, credential_changed_at=datetime(2024, 1, 1))


class TestCapabilityTable:
    @pytest.mark.parametrize('capability', [
        Capability.VIEW_RESIDENTS, Capability.CREATE_LOGS,
        Capability.VIEW_CARE_PLANS, Capability.COMPLETE_TASKS,
    ])
    def test_every_role_has_base_capabilities(self, capability):
        for role in Role:
            assert has_capability(role, capability)

    def test_carer_cannot_write_care_plans(self):
        assert not has_capability(Role.CARER, Capability.CREATE_CARE_PLANS)
        assert has_capability(Role.SENIOR, Capability.CREATE_CARE_PLANS)

    @pytest.mark.parametrize('capability', [
        Capability.MANAGE_RESIDENTS, Capability.MANAGE_STAFF, Capability.VIEW_AUDIT,
    ])
    def test_admin_only_capabilities(self, capability):
        assert not has_capability(Role.CARER, capability)
        assert not has_capability(Role.SENIOR, capability)
        assert has_capability(Role.ADMIN, capability)

    def test_table_is_read_only(self):
        with pytest.raises(TypeError):
            DEFAULT_POLICY.capabilities[Role.CARER] = frozenset(Capability)

    def test_rejects_role_without_capabilities(self):
        with pytest.raises(ValueError):
            PermissionPolicy(capabilities={
                Role.CARER: frozenset({Capability.VIEW_RESIDENTS}),
                Role.SENIOR: frozenset({Capability.VIEW_RESIDENTS, Capability.VIEW_REPORTS}),
                Role.ADMIN: frozenset(),
            })

    def test_rejects_senior_not_above_carer(self):
        same = frozenset({Capability.VIEW_RESIDENTS})
        with pytest.raises(ValueError):
            PermissionPolicy(capabilities={Role.CARER: same, Role.SENIOR: same, Role.ADMIN: same})


class TestOwnership:
    def test_owner_is_allowed(self):
        assert owns_or_escalated(principal(Role.CARER, staff_id=7), {7, 9})

    def test_carer_without_ownership_is_refused(self):
        assert not owns_or_escalated(principal(Role.CARER, staff_id=7), {9})

    @pytest.mark.parametrize('role', [Role.SENIOR, Role.ADMIN])
    def test_senior_roles_escalate(self, role):
        assert owns_or_escalated(principal(role, staff_id=7), set())

    @pytest.mark.parametrize('role', list(Role))
    def test_other_facility_is_refused_for_every_role(self, role):
        assert not owns_or_escalated(principal(role, staff_id=7), {7}, facility_id='elm-court')


class TestEvaluate:
    def test_capability_is_checked_before_ownership(self):
        resource = ResourceRef(type='residents', id=1, owner_ids=frozenset({99}), facility_id='oak-house')
        decision = DEFAULT_POLICY.evaluate(principal(Role.CARER), Capability.MANAGE_RESIDENTS, resource)
        assert not decision
        assert decision.reason is ReasonCode.ROLE_INSUFFICIENT

    def test_not_owned(self):
        resource = ResourceRef(type='residents', id=1, owner_ids=frozenset({99}), facility_id='oak-house')
        decision = DEFAULT_POLICY.evaluate(principal(Role.CARER), Capability.CREATE_LOGS, resource)
        assert decision.reason is ReasonCode.RESOURCE_NOT_OWNED

    def test_allowed(self):
        resource = ResourceRef(type='residents', id=1, owner_ids=frozenset({1}), facility_id='oak-house')
        decision = DEFAULT_POLICY.evaluate(principal(Role.CARER), Capability.CREATE_LOGS, resource)
        assert decision
        assert decision.reason is None

    def test_no_predicates_allows(self):
        assert DEFAULT_POLICY.evaluate(principal(Role.CARER))
