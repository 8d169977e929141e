# /carehome/utils/audit_util.py
"""Compliance audit trail.

Records are redacted before they leave this module and written to an
append-only sink. Writing an audit record never raises into the caller: a
failing sink is reported on the application log and the request carries on.
"""
import enum
import json
import logging
import os
import re
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from flask import current_app
from sqlalchemy.orm import Session

from carehome.extensions import db
from carehome.models.system_models import AuditLog
from carehome.utils.permission_util import ReasonCode

REDACTION_MARKER = '[REDACTED]'

# Compared after lower-casing and dropping separators, so nhsNumber,
# nhs_number and NHS-Number are all the same key.
SENSITIVE_FIELDS = frozenset({
    'password',
    'pin',
    'token',
    'authorization',
    'secret',
    'nhsnumber',
    'nationalinsurancenumber',
    'dateofbirth',
    'emergencycontact',
    'emergencycontacts',
    'nextofkin',
    'medicalhistory',
    'medications',
    'currentmedications',
})

SENSITIVE_SUFFIXES = ('password', 'token', 'secret')

_MAX_DEPTH = 32


class AuditCategory(enum.Enum):
    AUTHENTICATION = 'authentication'
    RESOURCE_ACCESS = 'resource-access'
    RESOURCE_MUTATION = 'resource-mutation'
    SECURITY_DENIAL = 'security-denial'
    CARE_EVENT = 'care-event'


class AuditOutcome(enum.Enum):
    ALLOW = 'allow'
    DENY = 'deny'
    ERROR = 'error'
    UNKNOWN = 'unknown'  # the handler started but its result was never observed


def _normalise_key(key):
    return re.sub(r'[^a-z0-9]', '', str(key).lower())


def is_sensitive(key) -> bool:
    normalised = _normalise_key(key)
    return normalised in SENSITIVE_FIELDS or normalised.endswith(SENSITIVE_SUFFIXES)


def redact(payload, _depth=0, _path=None):
    """Return a copy of ``payload`` with every sensitive key's value replaced.

    Walks dicts, lists and tuples at any depth. Leaves are coerced to
    JSON-friendly scalars. Running it twice gives the same result as once.
    """
    if _path is None:
        _path = set()
    if isinstance(payload, (dict, list, tuple)):
        if id(payload) in _path or _depth >= _MAX_DEPTH:
            return REDACTION_MARKER
        _path = _path | {id(payload)}
        if isinstance(payload, dict):
            return {
                str(key): REDACTION_MARKER if is_sensitive(key) else redact(value, _depth + 1, _path)
                for key, value in payload.items()
            }
        return [redact(item, _depth + 1, _path) for item in payload]
    if payload is None or isinstance(payload, (str, bool, int, float)):
        return payload
    if isinstance(payload, enum.Enum):
        return payload.value
    if isinstance(payload, datetime):
        return payload.isoformat()
    return str(payload)


@dataclass(frozen=True)
class AuditRecord:
    action: str
    category: AuditCategory
    outcome: AuditOutcome
    timestamp: datetime = field(default_factory=datetime.utcnow)
    actor_id: Optional[str] = None
    actor_role: Optional[str] = None
    tenant_id: Optional[str] = None
    target_type: Optional[str] = None
    target_id: Optional[str] = None
    reason_code: Optional[ReasonCode] = None
    redacted_details: dict = field(default_factory=dict)
    retention_class: str = 'cqc-7y'

    def to_dict(self):
        data = {
            'timestamp': self.timestamp.isoformat(),
            'actorId': self.actor_id,
            'actorRole': self.actor_role,
            'tenantId': self.tenant_id,
            'action': self.action,
            'targetType': self.target_type,
            'targetId': self.target_id,
            'outcome': self.outcome.value,
            'redactedDetails': self.redacted_details,
            'category': self.category.value,
            'retentionClass': self.retention_class,
        }
        if self.reason_code is not None:
            data['reasonCode'] = self.reason_code.value
        return data


class DatabaseAuditSink:
    """Writes ``AuditLog`` rows in a session of its own.

    The business request's transaction is never committed or rolled back by
    an audit write.
    """

    def append(self, record: AuditRecord) -> None:
        with Session(db.engine) as session:
            session.add(AuditLog.from_record(record))
            session.commit()


class JsonLinesAuditSink:
    """Appends one JSON document per line. Ordering is insertion order within the process."""

    def __init__(self, path):
        self.path = path
        self._lock = threading.Lock()

    def append(self, record: AuditRecord) -> None:
        line = json.dumps(record.to_dict(), default=str)
        with self._lock:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self.path, 'a', encoding='utf-8') as handle:
                handle.write(line + '\n')


class AuditRecorder:
    def __init__(self, sink, retention_class='cqc-7y', logger=None, audit_logger=None):
        self.sink = sink
        self.retention_class = retention_class
        self.logger = logger or logging.getLogger(__name__)
        self.audit_logger = audit_logger or logging.getLogger('CARE_AUDIT')

    def record(self, event_type, actor=None, details=None, *,
               category=AuditCategory.CARE_EVENT, outcome=AuditOutcome.ALLOW,
               target_type=None, target_id=None, reason=None,
               actor_id=None, tenant_id=None) -> None:
        """Redact and persist one audit record. Never raises."""
        try:
            if actor is not None:
                actor_id = actor.id
                tenant_id = actor.facility_id
            record = AuditRecord(
                action=event_type,
                category=category,
                outcome=outcome,
                actor_id=str(actor_id) if actor_id is not None else None,
                actor_role=actor.role.value if actor is not None else None,
                tenant_id=tenant_id,
                target_type=target_type,
                target_id=str(target_id) if target_id is not None else None,
                reason_code=reason,
                redacted_details=redact(details or {}),
                retention_class=self.retention_class,
            )
            self.audit_logger.info(
                f"Action='{record.action}', Category='{record.category.value}', "
                f"ActorID='{record.actor_id}', Outcome='{record.outcome.value}', "
                f"Reason='{record.reason_code.value if record.reason_code else None}', "
                f"Target='{record.target_type}:{record.target_id}'"
            )
            self.sink.append(record)
        except Exception as exc:
            # The business response must still go out; operators see the gap here.
            self.logger.error(
                f"Failed to persist audit record action='{event_type}' outcome='{getattr(outcome, 'value', outcome)}': {exc!r}"
            )


def get_recorder() -> AuditRecorder:
    return current_app.extensions['audit_recorder']


def record_audit_event(event_type, actor, details=None, **kwargs) -> None:
    """Record a domain event (care plan versioned, account disabled...) from a handler."""
    get_recorder().record(event_type, actor, details, **kwargs)


def build_sink(config):
    kind = config.get('AUDIT_SINK', 'database')
    if kind == 'database':
        return DatabaseAuditSink()
    if kind == 'file':
        return JsonLinesAuditSink(config['AUDIT_LOG_PATH'])
    raise ValueError(f"Unknown AUDIT_SINK '{kind}'")
