"""
Pytest configuration and fixtures
"""
import itertools
from decimal import Decimal

import pytest

from gymledger import create_app, db
from gymledger.services.members import create_member
from gymledger.services.plans import create_plan
from gymledger.services.tenants import onboard_tenant


# Test markers
def pytest_configure(config):
    config.addinivalue_line(
        "markers", "unit: Unit tests"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests"
    )


@pytest.fixture
def app():
    """Fresh application with an empty in-memory database per test"""
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.engine.dispose()


@pytest.fixture
def cli_runner(app):
    return app.test_cli_runner()


@pytest.fixture
def tenant(app):
    return onboard_tenant(
        name='Nyx Gym',
        address='123 Fitness St, Muscle City, Fitland',
        phone='+6281234567890',
        owner_name='Nyx Gym Owner',
        owner_email='owner@nyxgym.com',
        owner_password='password',
        owner_phone='+6281111111111',
    )


@pytest.fixture
def gym(tenant):
    return tenant[0]


@pytest.fixture
def owner(tenant):
    return tenant[1]


@pytest.fixture
def other_tenant(app):
    return onboard_tenant(
        name='Iron Temple',
        address='9 Barbell Road',
        phone='+6282222222222',
        owner_name='Iron Temple Owner',
        owner_email='owner@irontemple.com',
        owner_password='password',
    )


@pytest.fixture
def make_member(gym, owner):
    """Factory for members; phones are unique unless given"""
    phones = (f'+62813{n:08d}' for n in itertools.count(1))

    def _make(phone=None, full_name='Budi Santoso', gender='M', gym_id=None, staff_id=None, **kwargs):
        return create_member(
            gym_id or gym.id,
            staff_id or owner.id,
            full_name=full_name,
            phone=phone or next(phones),
            gender=gender,
            **kwargs
        )

    return _make


@pytest.fixture
def make_plan(gym, owner):
    def _make(name='Monthly', duration_days=30, price=Decimal('250000'), gym_id=None, staff_id=None, **kwargs):
        return create_plan(
            gym_id or gym.id,
            staff_id or owner.id,
            name=name,
            duration_days=duration_days,
            price=price,
            **kwargs
        )

    return _make


@pytest.fixture
def monthly_plan(make_plan):
    return make_plan()


@pytest.fixture
def member(make_member):
    return make_member()
