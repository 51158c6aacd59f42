from datetime import date
from decimal import Decimal

import pytest

from gymledger.exceptions import BusinessRuleViolation, InvalidAmount, NotFound, ValidationError
from gymledger.services.memberships import assign_membership, cancel_membership
from gymledger.services.plans import (
    activate_plan, create_plan, deactivate_plan, get_plan, list_plans, restore_plan, soft_delete_plan,
    update_plan
)
from gymledger.services.staff import create_staff

pytestmark = pytest.mark.integration


def test_create_plan(gym, owner):
    plan = create_plan(gym.id, owner.id, 'Monthly', 30, '250000', description='Full access')

    assert plan.price == Decimal('250000.00')
    assert plan.duration_days == 30
    assert plan.is_active
    assert get_plan(gym.id, plan.id) is plan


def test_only_owners_manage_plans(gym, owner):
    clerk = create_staff(gym.id, owner.id, 'Front Desk', 'desk@nyxgym.com', 'secret')

    with pytest.raises(BusinessRuleViolation):
        create_plan(gym.id, clerk.id, 'Monthly', 30, 250000)


@pytest.mark.parametrize('duration', [0, -30, '30', 1.5])
def test_duration_must_be_positive_integer(gym, owner, duration):
    with pytest.raises(ValidationError):
        create_plan(gym.id, owner.id, 'Broken', duration, 1000)


def test_price_must_not_be_negative(gym, owner):
    with pytest.raises(InvalidAmount):
        create_plan(gym.id, owner.id, 'Broken', 30, -1)


def test_deactivate_hides_plan_from_active_list(gym, owner, make_plan):
    monthly = make_plan('Monthly', 30)
    annual = make_plan('Annual', 365)

    deactivate_plan(gym.id, owner.id, annual.id)
    assert list_plans(gym.id, active_only=True) == [monthly]
    assert list_plans(gym.id) == [monthly, annual]

    activate_plan(gym.id, owner.id, annual.id)
    assert list_plans(gym.id, active_only=True) == [monthly, annual]


def test_update_plan(gym, owner, monthly_plan):
    update_plan(gym.id, owner.id, monthly_plan.id, name='Monthly Plus', price=300000)

    assert monthly_plan.name == 'Monthly Plus'
    assert monthly_plan.price == Decimal('300000.00')


def test_plan_of_running_membership_cannot_be_deleted(gym, owner, member, monthly_plan):
    membership = assign_membership(gym.id, member.id, monthly_plan.id, date(2026, 1, 1))

    with pytest.raises(BusinessRuleViolation) as excinfo:
        soft_delete_plan(gym.id, owner.id, monthly_plan.id)
    assert excinfo.value.blocking == {'memberships': [membership.id]}

    cancel_membership(gym.id, membership.id)
    soft_delete_plan(gym.id, owner.id, monthly_plan.id)

    with pytest.raises(NotFound):
        get_plan(gym.id, monthly_plan.id)
    assert membership.plan is monthly_plan

    restore_plan(gym.id, owner.id, monthly_plan.id)
    assert get_plan(gym.id, monthly_plan.id) is monthly_plan
