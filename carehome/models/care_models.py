# /carehome/models/care_models.py
from datetime import datetime
from carehome.extensions import db

LOG_CATEGORIES = [
    'Personal Care',
    'Health & Medical',
    'Nutrition & Hydration',
    'Medication',
    'Social & Activities',
    'Behavioral Observation',
    'Communication',
    'Safety & Incidents',
    'Mobility & Exercise',
    'Sleep & Rest',
    'Emotional Wellbeing',
    'Family Contact',
    'Professional Visits',
    'General Care',
    'Other',
]

LOG_PRIORITIES = ['Low', 'Medium', 'High', 'Urgent']

class DailyLog(db.Model):
    """A single care entry written by a carer for a resident."""
    __tablename__ = 'daily_logs'

    id = db.Column(db.Integer, primary_key=True)
    resident_id = db.Column(db.Integer, db.ForeignKey('residents.id'), nullable=False, index=True)
    facility_id = db.Column(db.String(64), nullable=False, index=True)
    author_id = db.Column(db.Integer, db.ForeignKey('staff.id'), nullable=False)
    category = db.Column(db.String(50), nullable=False)
    item = db.Column(db.String(255), nullable=False)
    details = db.Column(db.Text, nullable=False)
    priority = db.Column(db.String(10), nullable=False, default='Medium')
    pain_level = db.Column(db.Integer)
    logged_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime)
    updated_by = db.Column(db.Integer, db.ForeignKey('staff.id'))

    resident = db.relationship('Resident', backref=db.backref('daily_logs', lazy='dynamic'))
    author = db.relationship('Staff', foreign_keys=[author_id])

    def to_dict(self):
        return {
            'id': self.id,
            'resident_id': self.resident_id,
            'author_id': self.author_id,
            'author_name': self.author.full_name if self.author else None,
            'category': self.category,
            'item': self.item,
            'details': self.details,
            'priority': self.priority,
            'pain_level': self.pain_level,
            'logged_at': self.logged_at.isoformat() if self.logged_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
            'updated_by': self.updated_by,
        }


class CarePlan(db.Model):
    """Versioned care plan. Only one plan per resident is active at a time."""
    __tablename__ = 'care_plans'

    id = db.Column(db.Integer, primary_key=True)
    resident_id = db.Column(db.Integer, db.ForeignKey('residents.id'), nullable=False, index=True)
    facility_id = db.Column(db.String(64), nullable=False, index=True)
    author_id = db.Column(db.Integer, db.ForeignKey('staff.id'), nullable=False)
    version = db.Column(db.Integer, nullable=False, default=1)
    status = db.Column(db.String(20), nullable=False, default='active')  # active, superseded
    strengths = db.Column(db.JSON, default=list)
    needs = db.Column(db.JSON, default=list)
    risks = db.Column(db.JSON, default=list)
    actions = db.Column(db.JSON, default=list)
    review_date = db.Column(db.Date)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    resident = db.relationship('Resident', backref=db.backref('care_plans', lazy='dynamic'))

    def to_dict(self):
        return {
            'id': self.id,
            'resident_id': self.resident_id,
            'author_id': self.author_id,
            'version': self.version,
            'status': self.status,
            'strengths': self.strengths or [],
            'needs': self.needs or [],
            'risks': self.risks or [],
            'actions': self.actions or [],
            'review_date': self.review_date.isoformat() if self.review_date else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
