from flask import request, jsonify, current_app
from carehome.extensions import db
from carehome.models.staff_models import Staff
from carehome.utils.audit_util import AuditCategory, AuditOutcome, record_audit_event
from carehome.utils.decorators import extract_bearer_token
from carehome.utils.permission_util import ReasonCode
from carehome.utils.principal_util import Principal, ResolutionError


def _codec():
    return current_app.extensions['token_codec']


def _login_denied(staff, reason, details=None):
    record_audit_event(
        'STAFF_LOGIN', None, details,
        category=AuditCategory.AUTHENTICATION,
        outcome=AuditOutcome.DENY,
        reason=reason,
        actor_id=staff.id if staff else None,
        tenant_id=staff.facility_id if staff else None,
    )


def login_staff():
    """Checks credentials and issues a token pair.

    Unknown emails and wrong passwords get the same response.
    """
    data = request.get_json(silent=True)
    if not data or not data.get('email') or not data.get('password'):
        return jsonify({'error': 'Email and password required'}), 400

    staff = Staff.query.filter_by(email=data['email'].strip().lower()).first()
    if not staff:
        _login_denied(None, ReasonCode.INVALID_CREDENTIALS)
        return jsonify({'error': 'Invalid credentials'}), 401
    if staff.is_locked:
        _login_denied(staff, ReasonCode.ACCOUNT_LOCKED)
        return jsonify({'error': 'Account locked due to multiple failed attempts'}), 423
    if not staff.check_password(data['password']):
        if staff.is_locked:
            _login_denied(staff, ReasonCode.ACCOUNT_LOCKED, {'failed_attempts': staff.failed_login_attempts})
            return jsonify({'error': 'Account locked due to multiple failed attempts'}), 423
        _login_denied(staff, ReasonCode.INVALID_CREDENTIALS, {'failed_attempts': staff.failed_login_attempts})
        return jsonify({'error': 'Invalid credentials'}), 401
    if not staff.is_active:
        _login_denied(staff, ReasonCode.ACCOUNT_INACTIVE)
        return jsonify({'error': 'Account deactivated'}), 403

    principal = Principal.from_staff(staff)
    pair = _codec().issue(staff.id, staff.role, staff.facility_id)
    record_audit_event('STAFF_LOGIN', principal, category=AuditCategory.AUTHENTICATION)

    response = pair.to_dict()
    response['staff'] = staff.to_dict()
    return jsonify(response), 200


def refresh_tokens():
    """Exchanges a refresh token for a new pair after re-checking the account."""
    token = extract_bearer_token(request)
    if token is None:
        return jsonify({'error': 'Refresh token required'}), 401

    resolver = current_app.extensions['principal_resolver']
    try:
        principal = resolver.resolve(token, token_type='refresh')
    except ResolutionError as e:
        record_audit_event(
            'TOKEN_REFRESH', None,
            category=AuditCategory.AUTHENTICATION,
            outcome=AuditOutcome.DENY,
            reason=e.reason,
            actor_id=e.claimed_id,
        )
        return jsonify({'error': 'Authentication required', 'code': 'unauthenticated'}), 401

    pair = _codec().issue(principal.id, principal.role, principal.facility_id)
    record_audit_event('TOKEN_REFRESH', principal, category=AuditCategory.AUTHENTICATION)
    return jsonify(pair.to_dict()), 200


def logout_staff(principal):
    # Tokens are stateless; the client discards them and the audit trail
    # records that the session ended.
    return jsonify({'message': 'Successfully logged out'}), 200


def change_staff_password(principal):
    data = request.get_json(silent=True) or {}
    if not data.get('current_password') or not data.get('new_password'):
        return jsonify({'error': 'Current and new passwords required'}), 400

    staff = db.session.get(Staff, principal.id)
    if not staff.check_password(data['current_password']):
        return jsonify({'error': 'Invalid current password'}), 401

    try:
        staff.set_password(data['new_password'])
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    db.session.commit()

    # Every token issued before this point is now stale, including the one
    # used for this request, so hand back a fresh pair.
    pair = _codec().issue(staff.id, staff.role, staff.facility_id)
    response = pair.to_dict()
    response['message'] = 'Password changed successfully'
    return jsonify(response), 200


def verify_token(principal):
    staff = db.session.get(Staff, principal.id)
    return jsonify({'valid': True, 'staff': staff.to_dict()}), 200
