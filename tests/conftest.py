import itertools

import pytest

from carehome import create_app
from carehome.extensions import db
from carehome.models.resident_models import Resident
from carehome.models.staff_models import Staff
from carehome.utils.permission_util import Role

PASSWORD = 'Sup3r-Secure-Pass!'


class ListSink:
    """In-memory audit sink so tests can inspect exactly what was recorded."""

    def __init__(self):
        self.records = []

    def append(self, record):
        self.records.append(record)


class FailingSink:
    def append(self, record):
        raise RuntimeError('audit store unavailable')


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def audit_sink(app):
    sink = ListSink()
    app.extensions['audit_recorder'].sink = sink
    return sink


@pytest.fixture
def make_staff(app):
    counter = itertools.count(1)

    def _make(role=Role.CARER, facility_id='oak-house', is_active=True, email=None):
        n = next(counter)
        staff = Staff(
            email=email or f'staff{n}@oakhouse.example',
            first_name='Test',
            last_name=f'Staff{n}',
            facility_id=facility_id,
            is_active=is_active,
        )
        staff.role = role
        staff.set_password(PASSWORD)
        db.session.add(staff)
        db.session.commit()
        return staff

    return _make


@pytest.fixture
def make_resident(app):
    def _make(creator, assigned=(), facility_id=None, **fields):
        resident = Resident(
            first_name=fields.pop('first_name', 'Edith'),
            last_name=fields.pop('last_name', 'Jones'),
            facility_id=facility_id or creator.facility_id,
            created_by=creator.id,
            **fields,
        )
        resident.assigned_staff = list(assigned)
        db.session.add(resident)
        db.session.commit()
        return resident

    return _make


@pytest.fixture
def tokens_for(app):
    def _issue(staff):
        return app.extensions['token_codec'].issue(staff.id, staff.role, staff.facility_id)
    return _issue


@pytest.fixture
def auth_headers(tokens_for):
    def _headers(staff):
        return {'Authorization': f'Bearer {tokens_for(staff).access_token}'}
    return _headers
