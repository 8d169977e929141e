# /carehome/models/resident_models.py
from datetime import datetime
from carehome.extensions import db
from carehome.utils.encryption_util import encryptor
from carehome.utils.permission_util import ResourceRef

# --- Association tables ---
staff_residents = db.Table('staff_residents',
    db.Column('staff_id', db.Integer, db.ForeignKey('staff.id'), primary_key=True),
    db.Column('resident_id', db.Integer, db.ForeignKey('residents.id'), primary_key=True)
)

class Resident(db.Model):
    """Resident profile. Identifiers are stored encrypted."""
    __tablename__ = 'residents'

    id = db.Column(db.Integer, primary_key=True)
    facility_id = db.Column(db.String(64), nullable=False, index=True)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    preferred_name = db.Column(db.String(100))
    room_number = db.Column(db.String(20))
    date_of_birth = db.Column(db.String(255))  # Encrypted
    nhs_number = db.Column(db.String(255))  # Encrypted
    status = db.Column(db.String(20), nullable=False, default='active')
    created_by = db.Column(db.Integer, db.ForeignKey('staff.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    assigned_staff = db.relationship(
        'Staff',
        secondary=staff_residents,
        backref=db.backref('assigned_residents', lazy='dynamic'),
        lazy='select'
    )

    STATUSES = ('active', 'archived')

    @property
    def owner_ids(self):
        """Staff who may act on this resident without escalation."""
        return frozenset([self.created_by] + [staff.id for staff in self.assigned_staff])

    def resource_ref(self):
        return ResourceRef(type='residents', id=self.id, owner_ids=self.owner_ids, facility_id=self.facility_id)

    def to_dict(self, include_identifiers=False):
        data = {
            'id': self.id,
            'facility_id': self.facility_id,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'preferred_name': self.preferred_name,
            'room_number': self.room_number,
            'status': self.status,
            'assigned_staff': sorted(staff.id for staff in self.assigned_staff),
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        if include_identifiers:
            data['date_of_birth'] = encryptor.decrypt(self.date_of_birth) if self.date_of_birth else None
            data['nhs_number'] = encryptor.decrypt(self.nhs_number) if self.nhs_number else None
        return data
