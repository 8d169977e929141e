# /carehome/utils/permission_util.py
"""Role and capability policy for care staff.

Everything here is pure: the capability table is built once at import time,
wrapped read-only, and evaluated without touching the request or database.
"""
import enum
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping, Optional


class Role(enum.Enum):
    """Staff access levels, lowest first."""
    CARER = 'Carer'
    SENIOR = 'Senior'
    ADMIN = 'Admin'

    @property
    def rank(self) -> int:
        return _ROLE_RANKS[self]


_ROLE_RANKS = {Role.CARER: 1, Role.SENIOR: 2, Role.ADMIN: 3}


class Capability(enum.Enum):
    VIEW_RESIDENTS = 'view_residents'
    CREATE_LOGS = 'create_logs'
    VIEW_CARE_PLANS = 'view_care_plans'
    COMPLETE_TASKS = 'complete_tasks'
    CREATE_CARE_PLANS = 'create_care_plans'
    VIEW_REPORTS = 'view_reports'
    MANAGE_TASKS = 'manage_tasks'
    MANAGE_RESIDENTS = 'manage_residents'
    MANAGE_STAFF = 'manage_staff'
    VIEW_AUDIT = 'view_audit'


class ReasonCode(enum.Enum):
    """Why a request was refused. Only the code ever reaches an audit record."""
    ROLE_INSUFFICIENT = 'role-insufficient'
    RESOURCE_NOT_OWNED = 'resource-not-owned'
    ACCOUNT_LOCKED = 'account-locked'
    ACCOUNT_INACTIVE = 'account-inactive'
    TOKEN_STALE = 'token-stale'
    TOKEN_MISSING = 'token-missing'
    TOKEN_INVALID = 'token-invalid'
    TOKEN_EXPIRED = 'token-expired'
    PRINCIPAL_NOT_FOUND = 'principal-not-found'
    INVALID_CREDENTIALS = 'invalid-credentials'


_BASE_CAPABILITIES = frozenset({
    Capability.VIEW_RESIDENTS,
    Capability.CREATE_LOGS,
    Capability.VIEW_CARE_PLANS,
    Capability.COMPLETE_TASKS,
})

_ELEVATED_CAPABILITIES = _BASE_CAPABILITIES | {
    Capability.CREATE_CARE_PLANS,
    Capability.VIEW_REPORTS,
    Capability.MANAGE_TASKS,
}


@dataclass(frozen=True)
class ResourceRef:
    """What the gate needs to know about a target resource to check ownership."""
    type: str
    id: object
    owner_ids: frozenset = field(default_factory=frozenset)
    facility_id: Optional[str] = None


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[ReasonCode] = None

    def __bool__(self):
        return self.allowed


ALLOW = Decision(True)


@dataclass(frozen=True)
class PermissionPolicy:
    """Immutable role -> capability table plus the ownership escalation threshold.

    The table must be total over ``Role`` with a non-empty set per role, and the
    elevated role's set must strictly contain the base role's set.
    """
    capabilities: Mapping[Role, frozenset]
    escalation_threshold: Role = Role.SENIOR
    wildcard_role: Role = Role.ADMIN

    def __post_init__(self):
        table = {role: frozenset(caps) for role, caps in self.capabilities.items()}
        missing = [role.value for role in Role if not table.get(role)]
        if missing:
            raise ValueError(f"Capability table has no capabilities for: {', '.join(missing)}")
        if not table[Role.CARER] < table[Role.SENIOR]:
            raise ValueError("Senior capabilities must be a strict superset of Carer capabilities")
        object.__setattr__(self, 'capabilities', MappingProxyType(table))

    def has_capability(self, role: Role, capability: Capability) -> bool:
        if role is self.wildcard_role:
            return True
        return capability in self.capabilities[role]

    def owns_or_escalated(self, principal, owner_ids: Iterable, facility_id: Optional[str] = None) -> bool:
        """True if the principal owns the resource or outranks the escalation threshold.

        Escalation never crosses facilities: a resource belonging to another
        tenant is refused for every role.
        """
        if facility_id is not None and facility_id != principal.facility_id:
            return False
        if principal.id in set(owner_ids):
            return True
        return principal.role.rank >= self.escalation_threshold.rank

    def evaluate(self, principal, capability: Optional[Capability] = None,
                 resource: Optional[ResourceRef] = None) -> Decision:
        """Combine the declared predicates with AND; capability is checked first."""
        if capability is not None and not self.has_capability(principal.role, capability):
            return Decision(False, ReasonCode.ROLE_INSUFFICIENT)
        if resource is not None and not self.owns_or_escalated(principal, resource.owner_ids, resource.facility_id):
            return Decision(False, ReasonCode.RESOURCE_NOT_OWNED)
        return ALLOW


DEFAULT_POLICY = PermissionPolicy(capabilities={
    Role.CARER: _BASE_CAPABILITIES,
    Role.SENIOR: _ELEVATED_CAPABILITIES,
    Role.ADMIN: frozenset(Capability),
})


def has_capability(role: Role, capability: Capability) -> bool:
    return DEFAULT_POLICY.has_capability(role, capability)


def owns_or_escalated(principal, owner_ids: Iterable, facility_id: Optional[str] = None) -> bool:
    return DEFAULT_POLICY.owns_or_escalated(principal, owner_ids, facility_id)
