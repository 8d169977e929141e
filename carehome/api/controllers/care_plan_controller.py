from datetime import date
from flask import request, jsonify
from carehome.extensions import db
from carehome.models.care_models import CarePlan
from carehome.models.resident_models import Resident
from carehome.utils.audit_util import record_audit_event

PLAN_SECTIONS = ('strengths', 'needs', 'risks', 'actions')


def list_care_plans(resident_id, principal):
    plans = (CarePlan.query
             .filter_by(resident_id=resident_id)
             .order_by(CarePlan.version.desc())
             .all())
    return jsonify({'care_plans': [plan.to_dict() for plan in plans]}), 200


def create_care_plan(resident_id, principal):
    """Writes a new version of the resident's care plan.

    The currently active plan (if any) is marked superseded in the same
    transaction, so a resident never has two active plans.
    """
    data = request.get_json(silent=True) or {}

    sections = {}
    for section in PLAN_SECTIONS:
        value = data.get(section, [])
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            return jsonify({'error': f'{section} must be a list of strings'}), 400
        sections[section] = value
    if not any(sections.values()):
        return jsonify({'error': 'A care plan needs at least one entry'}), 400

    review_date = None
    if data.get('review_date'):
        try:
            review_date = date.fromisoformat(data['review_date'])
        except (TypeError, ValueError):
            return jsonify({'error': 'review_date must be an ISO date (YYYY-MM-DD)'}), 400

    resident = db.session.get(Resident, resident_id)
    current = CarePlan.query.filter_by(resident_id=resident.id, status='active').first()
    latest_version = (db.session.query(db.func.max(CarePlan.version))
                      .filter(CarePlan.resident_id == resident.id)
                      .scalar()) or 0

    if current:
        current.status = 'superseded'
    plan = CarePlan(
        resident_id=resident.id,
        facility_id=resident.facility_id,
        author_id=principal.id,
        version=latest_version + 1,
        status='active',
        review_date=review_date,
        **sections,
    )
    db.session.add(plan)
    db.session.commit()

    record_audit_event(
        'CARE_PLAN_VERSIONED', principal,
        {'resident_id': resident.id, 'version': plan.version,
         'previous_version': current.version if current else None},
        target_type='care_plans',
        target_id=plan.id,
    )
    return jsonify({'message': 'Care plan saved', 'care_plan': plan.to_dict()}), 201
