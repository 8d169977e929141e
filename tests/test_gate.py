from datetime import datetime, timedelta

import pytest
from flask import abort, jsonify
from werkzeug.exceptions import NotFound

from carehome.extensions import db
from carehome.utils.permission_util import ReasonCode, Role
from carehome.utils.token_util import TokenCodec, TokenSettings
from tests.conftest import FailingSink

DAILY_LOG = {'category': 'Personal Care', 'item': 'Morning wash', 'details': 'Assisted with wash and dressing.'}


def daily_log_url(resident):
    return f'/api/residents/{resident.id}/daily-logs'


class WorkerTimeout(BaseException):
    pass


class TestDailyLogScenarios:
    def test_unassigned_carer_is_refused(self, client, make_staff, make_resident, auth_headers, audit_sink):
        admin = make_staff(Role.ADMIN)
        carer = make_staff(Role.CARER)
        resident = make_resident(admin)

        response = client.post(daily_log_url(resident), json=DAILY_LOG, headers=auth_headers(carer))

        assert response.status_code == 403
        assert len(audit_sink.records) == 1
        record = audit_sink.records[0].to_dict()
        assert record['outcome'] == 'deny'
        assert record['reasonCode'] == 'resource-not-owned'
        assert record['actorId'] == str(carer.id)
        assert record['targetType'] == 'residents'
        assert record['targetId'] == str(resident.id)
        assert record['category'] == 'security-denial'

    def test_assigned_carer_can_log(self, client, make_staff, make_resident, auth_headers, audit_sink):
        admin = make_staff(Role.ADMIN)
        carer = make_staff(Role.CARER)
        resident = make_resident(admin, assigned=[carer])

        response = client.post(daily_log_url(resident), json=DAILY_LOG, headers=auth_headers(carer))

        assert response.status_code == 201
        assert response.get_json()['log']['author_id'] == carer.id

    def test_senior_escalates(self, client, make_staff, make_resident, auth_headers, audit_sink):
        admin = make_staff(Role.ADMIN)
        senior = make_staff(Role.SENIOR)
        resident = make_resident(admin)

        response = client.post(daily_log_url(resident), json=DAILY_LOG, headers=auth_headers(senior))

        assert response.status_code == 201
        assert len(audit_sink.records) == 1
        record = audit_sink.records[0].to_dict()
        assert record['outcome'] == 'allow'
        assert record['actorRole'] == 'Senior'
        assert record['category'] == 'resource-mutation'
        assert record['redactedDetails']['fields'] == ['category', 'details', 'item']
        assert 'Morning wash' not in str(record)

    def test_disabled_account_is_refused(self, client, make_staff, make_resident, auth_headers, audit_sink):
        admin = make_staff(Role.ADMIN)
        senior = make_staff(Role.SENIOR)
        resident = make_resident(admin)
        headers = auth_headers(senior)

        senior.is_active = False
        db.session.commit()

        response = client.post(daily_log_url(resident), json=DAILY_LOG, headers=headers)

        assert response.status_code == 401
        assert response.get_json()['code'] == 'unauthenticated'
        record = audit_sink.records[0].to_dict()
        assert record['reasonCode'] == 'account-inactive'
        assert record['actorId'] == str(senior.id)

    def test_locked_account_is_refused(self, client, make_staff, make_resident, auth_headers, audit_sink):
        admin = make_staff(Role.ADMIN)
        resident = make_resident(admin)
        headers = auth_headers(admin)

        admin.account_locked_until = datetime.utcnow() + timedelta(hours=2)
        db.session.commit()

        response = client.get(f'/api/residents/{resident.id}', headers=headers)
        assert response.status_code == 401
        assert audit_sink.records[0].reason_code is ReasonCode.ACCOUNT_LOCKED

    def test_token_from_before_password_change(self, client, make_staff, make_resident, auth_headers, audit_sink):
        admin = make_staff(Role.ADMIN)
        resident = make_resident(admin)
        headers = auth_headers(admin)

        admin.password_changed_at = datetime.utcnow() + timedelta(seconds=2)
        db.session.commit()

        response = client.get(f'/api/residents/{resident.id}', headers=headers)
        assert response.status_code == 401
        assert audit_sink.records[0].reason_code is ReasonCode.TOKEN_STALE

    def test_audit_outage_does_not_block_care(self, app, client, make_staff, make_resident, auth_headers, caplog):
        app.extensions['audit_recorder'].sink = FailingSink()
        admin = make_staff(Role.ADMIN)
        senior = make_staff(Role.SENIOR)
        resident = make_resident(admin)

        response = client.post(daily_log_url(resident), json=DAILY_LOG, headers=auth_headers(senior))

        assert response.status_code == 201
        assert any('Failed to persist audit record' in message for message in caplog.messages)

    def test_role_insufficient(self, client, make_staff, make_resident, auth_headers, audit_sink):
        admin = make_staff(Role.ADMIN)
        carer = make_staff(Role.CARER)
        resident = make_resident(admin, assigned=[carer])

        response = client.post(f'/api/residents/{resident.id}/care-plans',
                               json={'needs': ['Hoist for transfers']}, headers=auth_headers(carer))

        assert response.status_code == 403
        assert audit_sink.records[0].reason_code is ReasonCode.ROLE_INSUFFICIENT


class TestAuthenticationStages:
    def test_missing_token_is_not_audited(self, client, audit_sink):
        response = client.get('/api/residents')
        assert response.status_code == 401
        assert response.headers['WWW-Authenticate'] == 'Bearer'
        assert audit_sink.records == []

    def test_garbage_token(self, client, audit_sink):
        response = client.get('/api/residents', headers={'Authorization': 'Bearer nonsense'})
        assert response.status_code == 401
        assert response.get_json()['code'] == 'unauthenticated'
        assert audit_sink.records[0].reason_code is ReasonCode.TOKEN_INVALID

    def test_expired_token_is_distinguishable(self, app, client, make_staff, audit_sink):
        carer = make_staff(Role.CARER)
        codec = TokenCodec(TokenSettings(access_ttl=timedelta(seconds=-10)))
        token = codec.issue(carer.id, carer.role, carer.facility_id).access_token

        response = client.get('/api/residents', headers={'Authorization': f'Bearer {token}'})

        assert response.status_code == 401
        assert response.get_json()['code'] == 'token_expired'
        assert audit_sink.records[0].reason_code is ReasonCode.TOKEN_EXPIRED

    def test_refresh_token_cannot_be_used_as_access(self, client, make_staff, tokens_for, audit_sink):
        carer = make_staff(Role.CARER)
        refresh = tokens_for(carer).refresh_token
        response = client.get('/api/residents', headers={'Authorization': f'Bearer {refresh}'})
        assert response.status_code == 401

    def test_cookie_token(self, client, make_staff, tokens_for, audit_sink):
        carer = make_staff(Role.CARER)
        client.set_cookie('access_token', tokens_for(carer).access_token)
        assert client.get('/api/residents').status_code == 200

    def test_unknown_staff(self, app, client, audit_sink):
        token = app.extensions['token_codec'].issue(999, Role.ADMIN, 'oak-house').access_token

        response = client.get('/api/residents', headers={'Authorization': f'Bearer {token}'})
        assert response.status_code == 401
        assert audit_sink.records[0].reason_code is ReasonCode.PRINCIPAL_NOT_FOUND
        assert audit_sink.records[0].actor_id == '999'


class TestHandlerOutcomes:
    def test_missing_resource_is_404_and_audited(self, client, make_staff, auth_headers, audit_sink):
        admin = make_staff(Role.ADMIN)
        response = client.get('/api/residents/999', headers=auth_headers(admin))
        assert response.status_code == 404
        assert len(audit_sink.records) == 1
        assert audit_sink.records[0].outcome.value == 'error'

    def test_client_error_response_is_audited_as_error(self, client, make_staff, make_resident,
                                                       auth_headers, audit_sink):
        admin = make_staff(Role.ADMIN)
        resident = make_resident(admin)
        response = client.post(daily_log_url(resident), json={'item': 'x'}, headers=auth_headers(admin))
        assert response.status_code == 400
        assert [r.outcome.value for r in audit_sink.records] == ['error']

    def test_handler_exception_is_audited_and_propagates(self, app, make_staff, tokens_for, audit_sink):
        admin = make_staff(Role.ADMIN)
        gate = app.extensions['request_gate']

        def view(principal):
            raise RuntimeError('boom')

        headers = {'Authorization': f'Bearer {tokens_for(admin).access_token}'}
        with app.test_request_context('/api/anything', method='POST', headers=headers, json={'a': 1}):
            with pytest.raises(RuntimeError):
                gate.guard(view, (), {}, action='TEST_ACTION')

        assert len(audit_sink.records) == 1
        record = audit_sink.records[0]
        assert record.outcome.value == 'error'
        assert record.redacted_details['error'] == 'RuntimeError'
        assert record.redacted_details['status'] == 500

    def test_http_exception_keeps_its_status(self, app, make_staff, tokens_for, audit_sink):
        admin = make_staff(Role.ADMIN)
        gate = app.extensions['request_gate']

        def view(principal):
            abort(404)

        headers = {'Authorization': f'Bearer {tokens_for(admin).access_token}'}
        with app.test_request_context('/api/anything', headers=headers):
            with pytest.raises(NotFound):
                gate.guard(view, (), {}, action='TEST_ACTION')

        assert len(audit_sink.records) == 1
        assert audit_sink.records[0].outcome.value == 'error'
        assert audit_sink.records[0].redacted_details['status'] == 404

    def test_failing_resource_loader_is_audited_and_propagates(self, app, make_staff, tokens_for, audit_sink):
        admin = make_staff(Role.ADMIN)
        gate = app.extensions['request_gate']
        handled = []

        def view(resident_id, principal):
            handled.append(resident_id)

        def loader(resident_id):
            raise RuntimeError('database went away')

        headers = {'Authorization': f'Bearer {tokens_for(admin).access_token}'}
        with app.test_request_context('/api/residents/1', headers=headers):
            with pytest.raises(RuntimeError):
                gate.guard(view, (), {'resident_id': 1}, action='TEST_ACTION', resource=loader)

        assert handled == []
        assert len(audit_sink.records) == 1
        record = audit_sink.records[0]
        assert record.outcome.value == 'error'
        assert record.target_id == '1'
        assert record.redacted_details == {'stage': 'resource-load'}

    def test_interrupted_handler_is_audited_as_unknown(self, app, make_staff, tokens_for, audit_sink):
        admin = make_staff(Role.ADMIN)
        gate = app.extensions['request_gate']

        def view(principal):
            raise WorkerTimeout()

        headers = {'Authorization': f'Bearer {tokens_for(admin).access_token}'}
        with app.test_request_context('/api/anything', headers=headers):
            with pytest.raises(WorkerTimeout):
                gate.guard(view, (), {}, action='TEST_ACTION')

        assert [r.outcome.value for r in audit_sink.records] == ['unknown']

    def test_view_receives_principal(self, app, make_staff, tokens_for, audit_sink):
        senior = make_staff(Role.SENIOR)
        gate = app.extensions['request_gate']

        def view(principal):
            return jsonify({'id': principal.id, 'role': principal.role.value})

        headers = {'Authorization': f'Bearer {tokens_for(senior).access_token}'}
        with app.test_request_context('/api/anything', headers=headers):
            response = gate.guard(view, (), {}, action='TEST_ACTION')

        assert response.get_json() == {'id': senior.id, 'role': 'Senior'}
        assert audit_sink.records[0].outcome.value == 'allow'
        assert audit_sink.records[0].category.value == 'resource-access'
