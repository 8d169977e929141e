from flask import request, jsonify, current_app
from carehome.models.system_models import AuditLog
from carehome.utils.audit_util import AuditCategory, AuditOutcome
from carehome.utils.query_util import get_limit

MAX_REPORT_ROWS = 500


def get_audit_report(principal):
    """Audit records for the caller's facility, newest first."""
    if current_app.config.get('AUDIT_SINK') != 'database':
        return jsonify({'error': 'Audit reports are only available with the database audit sink'}), 400

    query = AuditLog.query.filter_by(facility_id=principal.facility_id)

    category = request.args.get('category')
    if category:
        if category not in {c.value for c in AuditCategory}:
            return jsonify({'error': 'Invalid category'}), 400
        query = query.filter_by(category=category)

    outcome = request.args.get('outcome')
    if outcome:
        if outcome not in {o.value for o in AuditOutcome}:
            return jsonify({'error': 'Invalid outcome'}), 400
        query = query.filter_by(outcome=outcome)

    action = request.args.get('action')
    if action:
        query = query.filter_by(action=action)

    limit = get_limit(100, MAX_REPORT_ROWS)
    records = query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(limit).all()
    return jsonify({'records': [record.to_dict() for record in records], 'total': len(records)}), 200
