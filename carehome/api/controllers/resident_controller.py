import re
from datetime import date
from flask import request, jsonify
from carehome.extensions import db
from carehome.models.resident_models import Resident
from carehome.models.staff_models import Staff
from carehome.utils.encryption_util import encryptor
from carehome.utils.errors import ValidationError
from carehome.utils.permission_util import DEFAULT_POLICY

NHS_NUMBER_PATTERN = re.compile(r'^\d{10}$')


def load_resident_ref(resident_id):
    resident = db.session.get(Resident, resident_id)
    return resident.resource_ref() if resident else None


def _clean_nhs_number(value):
    cleaned = re.sub(r'[\s-]', '', str(value))
    if not NHS_NUMBER_PATTERN.match(cleaned):
        raise ValidationError('NHS number must be 10 digits')
    return cleaned


def _clean_date_of_birth(value):
    try:
        parsed = date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError('date_of_birth must be an ISO date (YYYY-MM-DD)')
    if parsed > date.today():
        raise ValidationError('date_of_birth cannot be in the future')
    return parsed.isoformat()


def _facility_staff(staff_ids, facility_id):
    """Active staff in ``facility_id`` matching ``staff_ids``; any miss is a validation error."""
    if not isinstance(staff_ids, list):
        raise ValidationError('staff_ids must be a list')
    try:
        wanted = {int(staff_id) for staff_id in staff_ids}
    except (TypeError, ValueError):
        raise ValidationError('staff_ids must contain staff ids')
    if not wanted:
        return []
    staff = Staff.query.filter(
        Staff.id.in_(wanted),
        Staff.facility_id == facility_id,
        Staff.is_active.is_(True),
    ).all()
    if len(staff) != len(wanted):
        raise ValidationError('One or more staff members were not found in this facility')
    return staff


def list_residents(principal):
    """Lists residents in the caller's facility.

    Carers only see residents they are assigned to; senior staff see everyone.
    """
    query = Resident.query.filter_by(facility_id=principal.facility_id)

    status = request.args.get('status', 'active')
    if status != 'all':
        query = query.filter_by(status=status)

    if principal.role.rank < DEFAULT_POLICY.escalation_threshold.rank:
        query = query.filter(db.or_(
            Resident.created_by == principal.id,
            Resident.assigned_staff.any(Staff.id == principal.id),
        ))

    residents = query.order_by(Resident.last_name, Resident.first_name).all()
    return jsonify({'residents': [r.to_dict() for r in residents], 'total': len(residents)}), 200


def create_resident(principal):
    data = request.get_json(silent=True) or {}
    if not data.get('first_name') or not data.get('last_name'):
        return jsonify({'error': 'first_name and last_name are required'}), 400

    resident = Resident(
        facility_id=principal.facility_id,
        first_name=data['first_name'],
        last_name=data['last_name'],
        preferred_name=data.get('preferred_name'),
        room_number=data.get('room_number'),
        created_by=principal.id,
    )
    if data.get('nhs_number'):
        resident.nhs_number = encryptor.encrypt(_clean_nhs_number(data['nhs_number']))
    if data.get('date_of_birth'):
        resident.date_of_birth = encryptor.encrypt(_clean_date_of_birth(data['date_of_birth']))
    if 'staff_ids' in data:
        resident.assigned_staff = _facility_staff(data['staff_ids'], principal.facility_id)

    db.session.add(resident)
    db.session.commit()
    return jsonify({'message': 'Resident created successfully',
                    'resident': resident.to_dict(include_identifiers=True)}), 201


def get_resident(resident_id, principal):
    resident = db.session.get(Resident, resident_id)
    return jsonify({'resident': resident.to_dict(include_identifiers=True)}), 200


def update_resident(resident_id, principal):
    resident = db.session.get(Resident, resident_id)
    data = request.get_json(silent=True) or {}

    for field in ('first_name', 'last_name', 'preferred_name', 'room_number'):
        if field in data:
            if field in ('first_name', 'last_name') and not data[field]:
                return jsonify({'error': f'{field} cannot be empty'}), 400
            setattr(resident, field, data[field])

    if 'status' in data:
        if data['status'] not in Resident.STATUSES:
            return jsonify({'error': f"status must be one of: {', '.join(Resident.STATUSES)}"}), 400
        resident.status = data['status']

    if 'nhs_number' in data:
        resident.nhs_number = encryptor.encrypt(_clean_nhs_number(data['nhs_number'])) if data['nhs_number'] else None
    if 'date_of_birth' in data:
        resident.date_of_birth = (encryptor.encrypt(_clean_date_of_birth(data['date_of_birth']))
                                  if data['date_of_birth'] else None)

    db.session.commit()
    return jsonify({'message': 'Resident updated successfully',
                    'resident': resident.to_dict(include_identifiers=True)}), 200


def assign_staff(resident_id, principal):
    """Replaces the set of staff assigned to a resident."""
    resident = db.session.get(Resident, resident_id)
    data = request.get_json(silent=True) or {}
    if 'staff_ids' not in data:
        return jsonify({'error': 'staff_ids is required'}), 400

    resident.assigned_staff = _facility_staff(data['staff_ids'], resident.facility_id)
    db.session.commit()
    return jsonify({'message': 'Staff assignment updated', 'resident': resident.to_dict()}), 200
