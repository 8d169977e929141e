# /carehome/utils/principal_util.py
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from carehome.utils.permission_util import ReasonCode, Role
from carehome.utils.token_util import ExpiredToken, TokenError


@dataclass(frozen=True)
class Principal:
    """Current state of an authenticated staff member, rebuilt on every request."""
    id: int
    role: Role
    facility_id: str
    is_active: bool
    locked_until: Optional[datetime]
    credential_changed_at: datetime

    @classmethod
    def from_staff(cls, staff):
        return cls(
            id=staff.id,
            role=Role(staff.access_level),
            facility_id=staff.facility_id,
            is_active=bool(staff.is_active),
            locked_until=staff.account_locked_until,
            credential_changed_at=staff.password_changed_at,
        )

    def is_locked(self, now=None) -> bool:
        now = now or datetime.utcnow()
        return self.locked_until is not None and self.locked_until > now


class ResolutionError(Exception):
    """Raised when a token cannot be turned into a usable principal."""
    reason = ReasonCode.PRINCIPAL_NOT_FOUND

    def __init__(self, message, reason=None, claimed_id=None):
        super().__init__(message)
        if reason is not None:
            self.reason = reason
        self.claimed_id = claimed_id


class Unauthenticated(ResolutionError):
    pass


class AccountDisabled(ResolutionError):
    reason = ReasonCode.ACCOUNT_INACTIVE


class AccountLocked(ResolutionError):
    reason = ReasonCode.ACCOUNT_LOCKED


class TokenStale(ResolutionError):
    reason = ReasonCode.TOKEN_STALE


class PrincipalResolver:
    def __init__(self, codec, store):
        self.codec = codec
        self.store = store

    def resolve(self, token: str, token_type: str = 'access') -> Principal:
        """Verify ``token`` and load the principal's current state.

        Nothing is cached: a staff record disabled between two requests is
        refused on the second one.
        """
        try:
            claims = self.codec.verify(token, expected_type=token_type)
        except ExpiredToken as exc:
            raise Unauthenticated('Token has expired', reason=ReasonCode.TOKEN_EXPIRED) from exc
        except TokenError as exc:
            raise Unauthenticated('Token is invalid', reason=ReasonCode.TOKEN_INVALID) from exc
        return self.principal_for(claims)

    def principal_for(self, claims) -> Principal:
        """Load and check the staff record named by already-verified claims."""
        record = self.store.find_by_id(claims.principal_id)
        if record is None:
            raise Unauthenticated('Principal not found', claimed_id=claims.principal_id)

        principal = Principal.from_staff(record)
        if not principal.is_active:
            raise AccountDisabled('Account disabled', claimed_id=claims.principal_id)
        if principal.is_locked():
            raise AccountLocked('Account locked', claimed_id=claims.principal_id)

        # JWT iat has whole-second resolution, so compare against the
        # credential change truncated to the second.
        changed_at = principal.credential_changed_at
        if changed_at is not None and claims.issued_at < changed_at.replace(microsecond=0):
            raise TokenStale('Token predates credential change', claimed_id=claims.principal_id)

        return principal
