# /carehome/models/staff_models.py
from datetime import datetime
from flask import current_app
from carehome.extensions import db, bcrypt
from carehome.utils.permission_util import Role

class Staff(db.Model):
    """Staff account with lockout and credential-change tracking."""
    __tablename__ = 'staff'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    job_title = db.Column(db.String(100))  # e.g. 'Nurse', 'Activities Coordinator'
    access_level = db.Column(db.String(20), nullable=False, default=Role.CARER.value)
    facility_id = db.Column(db.String(64), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login = db.Column(db.DateTime)
    failed_login_attempts = db.Column(db.Integer, default=0, nullable=False)
    account_locked_until = db.Column(db.DateTime)
    password_changed_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    __table_args__ = (
        db.Index('ix_staff_facility_active', 'facility_id', 'is_active'),
    )

    @property
    def role(self) -> Role:
        return Role(self.access_level)

    @role.setter
    def role(self, value):
        self.access_level = Role(value).value

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    @property
    def is_locked(self) -> bool:
        return bool(self.account_locked_until and self.account_locked_until > datetime.utcnow())

    def set_password(self, password: str) -> None:
        """Hashes and sets the password, enforcing complexity rules.

        Bumps ``password_changed_at``, which invalidates every token minted
        before this call.
        """
        if not self._validate_password_strength(password):
            raise ValueError("Password does not meet complexity requirements")
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')
        self.password_changed_at = datetime.utcnow()

    def check_password(self, password: str) -> bool:
        """Checks a password and handles login attempt logic."""
        if self.is_locked:
            return False
        if self.account_locked_until:
            # Previous lock has expired, start counting again.
            self.account_locked_until = None
            self.failed_login_attempts = 0

        is_valid = bcrypt.check_password_hash(self.password_hash, password)

        if not is_valid:
            self.failed_login_attempts = (self.failed_login_attempts or 0) + 1
            if self.failed_login_attempts >= current_app.config['MAX_FAILED_LOGINS']:
                self.account_locked_until = datetime.utcnow() + current_app.config['ACCOUNT_LOCKOUT']
        else:
            self.failed_login_attempts = 0
            self.last_login = datetime.utcnow()

        db.session.commit()
        return is_valid

    def unlock(self) -> None:
        self.account_locked_until = None
        self.failed_login_attempts = 0

    def to_dict(self):
        """Serializes the staff member for API responses. Never includes the hash."""
        return {
            'id': self.id,
            'email': self.email,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'job_title': self.job_title,
            'role': self.access_level,
            'facility_id': self.facility_id,
            'is_active': self.is_active,
            'is_locked': self.is_locked,
            'last_login': self.last_login.isoformat() if self.last_login else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    @staticmethod
    def _validate_password_strength(password: str) -> bool:
        """Validates that a password meets the required complexity."""
        return (len(password) >= 12 and
                any(c.isupper() for c in password) and
                any(c.islower() for c in password) and
                any(c.isdigit() for c in password) and
                any(c in '!@#$%^&*()_+-=[]{}|;:,.<>?' for c in password))


class StaffRepository:
    """Staff store consumed by the principal resolver."""

    def find_by_id(self, staff_id):
        try:
            key = int(staff_id)
        except (TypeError, ValueError):
            return None
        # Always re-read so a just-disabled account is seen on the next request.
        return db.session.get(Staff, key, populate_existing=True)
