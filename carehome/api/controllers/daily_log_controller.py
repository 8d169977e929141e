from datetime import datetime, timedelta
from flask import request, jsonify
from carehome.extensions import db
from carehome.models.care_models import DailyLog, LOG_CATEGORIES, LOG_PRIORITIES
from carehome.models.resident_models import Resident
from carehome.utils.audit_util import record_audit_event
from carehome.utils.errors import ForbiddenError
from carehome.utils.permission_util import DEFAULT_POLICY, ResourceRef
from carehome.utils.query_util import get_limit

MAX_PAGE_SIZE = 200
# Carers may correct their own entries for this long; senior staff at any time.
CARER_EDIT_WINDOW = timedelta(hours=24)
EDITABLE_FIELDS = ('category', 'item', 'details', 'priority', 'pain_level')


def load_daily_log_ref(log_id):
    """A log belongs to the staff member who wrote it."""
    log = db.session.get(DailyLog, log_id)
    if log is None:
        return None
    return ResourceRef(type='daily_logs', id=log.id, owner_ids=frozenset([log.author_id]),
                       facility_id=log.facility_id)


def load_daily_log_reader_ref(log_id):
    """Readers of a log: its author plus everyone who may act on the resident."""
    log = db.session.get(DailyLog, log_id)
    if log is None:
        return None
    return ResourceRef(type='daily_logs', id=log.id,
                       owner_ids=log.resident.owner_ids | {log.author_id},
                       facility_id=log.facility_id)


def _validate_log_fields(data, partial=False):
    """Returns an error message, or None if ``data`` is acceptable."""
    if not partial and any(not data.get(field) for field in ('category', 'item', 'details')):
        return 'Missing required fields'
    for field in ('item', 'details'):
        if field in data and not data[field]:
            return f'{field} cannot be empty'
    if 'category' in data and data['category'] not in LOG_CATEGORIES:
        return 'Invalid category'
    if 'priority' in data and data['priority'] not in LOG_PRIORITIES:
        return f"priority must be one of: {', '.join(LOG_PRIORITIES)}"
    pain_level = data.get('pain_level')
    if pain_level is not None:
        if isinstance(pain_level, bool) or not isinstance(pain_level, int) or not 0 <= pain_level <= 10:
            return 'pain_level must be a whole number from 0 to 10'
    return None


def create_daily_log(resident_id, principal):
    """Records a daily care entry for a resident."""
    data = request.get_json(silent=True) or {}
    error = _validate_log_fields(data)
    if error:
        return jsonify({'error': error}), 400

    resident = db.session.get(Resident, resident_id)
    if resident.status != 'active':
        return jsonify({'error': 'Cannot add logs for an archived resident'}), 409

    log = DailyLog(
        resident_id=resident.id,
        facility_id=resident.facility_id,
        author_id=principal.id,
        category=data['category'],
        item=data['item'],
        details=data['details'],
        priority=data.get('priority', 'Medium'),
        pain_level=data.get('pain_level'),
    )
    db.session.add(log)
    db.session.commit()
    return jsonify({'message': 'Daily log recorded', 'log': log.to_dict()}), 201


def list_daily_logs(resident_id, principal):
    query = DailyLog.query.filter_by(resident_id=resident_id)

    category = request.args.get('category')
    if category:
        query = query.filter_by(category=category)

    limit = get_limit(50, MAX_PAGE_SIZE)
    logs = query.order_by(DailyLog.logged_at.desc(), DailyLog.id.desc()).limit(limit).all()
    return jsonify({'logs': [log.to_dict() for log in logs], 'total': len(logs)}), 200


def get_daily_log(log_id, principal):
    log = db.session.get(DailyLog, log_id)
    return jsonify({'log': log.to_dict()}), 200


def update_daily_log(log_id, principal):
    log = db.session.get(DailyLog, log_id)

    if (principal.role.rank < DEFAULT_POLICY.escalation_threshold.rank
            and datetime.utcnow() - log.logged_at > CARER_EDIT_WINDOW):
        raise ForbiddenError('Logs can only be edited within 24 hours of creation')

    data = {key: value for key, value in (request.get_json(silent=True) or {}).items() if key in EDITABLE_FIELDS}
    if not data:
        return jsonify({'error': f"Nothing to update; editable fields: {', '.join(EDITABLE_FIELDS)}"}), 400
    error = _validate_log_fields(data, partial=True)
    if error:
        return jsonify({'error': error}), 400

    for field, value in data.items():
        setattr(log, field, value)
    log.updated_at = datetime.utcnow()
    log.updated_by = principal.id
    db.session.commit()
    return jsonify({'message': 'Daily log updated', 'log': log.to_dict()}), 200


def delete_daily_log(log_id, principal):
    log = db.session.get(DailyLog, log_id)
    details = {
        'resident_id': log.resident_id,
        'category': log.category,
        'reason': (request.get_json(silent=True) or {}).get('reason', 'Not specified'),
    }
    db.session.delete(log)
    db.session.commit()

    record_audit_event('DAILY_LOG_DELETED', principal, details, target_type='daily_logs', target_id=log_id)
    return jsonify({'message': 'Daily log deleted successfully'}), 200
