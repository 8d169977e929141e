# /carehome/models/system_models.py
from datetime import datetime
from sqlalchemy import event
from carehome.extensions import db

class AuditLog(db.Model):
    """Append-only compliance audit trail"""
    __tablename__ = 'audit_logs'

    id = db.Column(db.Integer, primary_key=True)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    # Not a foreign key: denials are attributed to whatever id the token claimed.
    actor_id = db.Column(db.String(64), index=True)
    actor_role = db.Column(db.String(20))
    facility_id = db.Column(db.String(64), index=True)
    action = db.Column(db.String(100), nullable=False)
    category = db.Column(db.String(32), nullable=False, index=True)
    target_type = db.Column(db.String(100))
    target_id = db.Column(db.String(100))
    outcome = db.Column(db.String(10), nullable=False)
    reason_code = db.Column(db.String(32))
    details = db.Column(db.JSON)
    retention_class = db.Column(db.String(32), nullable=False)

    @classmethod
    def from_record(cls, record):
        return cls(
            timestamp=record.timestamp,
            actor_id=record.actor_id,
            actor_role=record.actor_role,
            facility_id=record.tenant_id,
            action=record.action,
            category=record.category.value,
            target_type=record.target_type,
            target_id=record.target_id,
            outcome=record.outcome.value,
            reason_code=record.reason_code.value if record.reason_code else None,
            details=record.redacted_details,
            retention_class=record.retention_class,
        )

    def to_dict(self):
        data = {
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
            'actorId': self.actor_id,
            'actorRole': self.actor_role,
            'tenantId': self.facility_id,
            'action': self.action,
            'targetType': self.target_type,
            'targetId': self.target_id,
            'outcome': self.outcome,
            'redactedDetails': self.details or {},
            'category': self.category,
            'retentionClass': self.retention_class,
        }
        if self.reason_code:
            data['reasonCode'] = self.reason_code
        return data


@event.listens_for(AuditLog, 'before_update')
def _refuse_audit_update(mapper, connection, target):
    raise ValueError('Audit records are immutable')


@event.listens_for(AuditLog, 'before_delete')
def _refuse_audit_delete(mapper, connection, target):
    raise ValueError('Audit records cannot be deleted')
