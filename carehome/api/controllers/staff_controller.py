from flask import request, jsonify
from carehome.extensions import db
from carehome.models.staff_models import Staff
from carehome.utils.audit_util import record_audit_event
from carehome.utils.permission_util import ResourceRef, Role


def load_staff_ref(staff_id):
    staff = db.session.get(Staff, staff_id)
    if staff is None:
        return None
    # A staff record is "owned" by the person it describes.
    return ResourceRef(type='staff', id=staff.id, owner_ids=frozenset([staff.id]), facility_id=staff.facility_id)


def create_staff(principal):
    """Creates a staff account in the caller's facility."""
    data = request.get_json(silent=True) or {}

    required_fields = ['email', 'password', 'first_name', 'last_name']
    if any(not data.get(field) for field in required_fields):
        return jsonify({'error': 'Missing required fields'}), 400

    try:
        role = Role(data.get('role', Role.CARER.value))
    except ValueError:
        return jsonify({'error': 'Invalid role'}), 400

    email = data['email'].strip().lower()
    if Staff.query.filter_by(email=email).first():
        return jsonify({'error': 'Email already exists'}), 409

    staff = Staff(
        email=email,
        first_name=data['first_name'],
        last_name=data['last_name'],
        job_title=data.get('job_title'),
        facility_id=principal.facility_id,
    )
    staff.role = role
    try:
        staff.set_password(data['password'])
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    db.session.add(staff)
    db.session.commit()
    return jsonify({'message': 'Staff member created successfully', 'staff': staff.to_dict()}), 201


def list_staff(principal):
    staff_members = (Staff.query
                     .filter_by(facility_id=principal.facility_id)
                     .order_by(Staff.last_name, Staff.first_name)
                     .all())
    return jsonify({'staff': [s.to_dict() for s in staff_members], 'total': len(staff_members)}), 200


def get_staff(staff_id, principal):
    staff = db.session.get(Staff, staff_id)
    return jsonify({'staff': staff.to_dict()}), 200


def update_staff_status(staff_id, principal):
    data = request.get_json(silent=True) or {}
    if not isinstance(data.get('is_active'), bool):
        return jsonify({'error': 'is_active must be true or false'}), 400
    if staff_id == principal.id:
        return jsonify({'error': 'You cannot change the status of your own account'}), 400

    staff = db.session.get(Staff, staff_id)
    staff.is_active = data['is_active']
    db.session.commit()

    record_audit_event(
        'STAFF_ACCOUNT_ENABLED' if staff.is_active else 'STAFF_ACCOUNT_DISABLED',
        principal,
        target_type='staff',
        target_id=staff.id,
    )
    return jsonify({'message': 'Staff status updated', 'staff': staff.to_dict()}), 200


def unlock_staff(staff_id, principal):
    staff = db.session.get(Staff, staff_id)
    staff.unlock()
    db.session.commit()
    return jsonify({'message': 'Account unlocked', 'staff': staff.to_dict()}), 200
