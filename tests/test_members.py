from datetime import date
from decimal import Decimal

import pytest

from gymledger import db
from gymledger.exceptions import (
    BusinessRuleViolation, DuplicateIdentity, InvalidEnumValue, NotFound, TenantIsolationViolation
)
from gymledger.models import Member
from gymledger.services.members import (
    assign_member_code, find_or_offer_restore, get_member, list_members, restore_member,
    soft_delete_member, update_member
)
from gymledger.services.memberships import assign_membership, cancel_membership
from gymledger.services.payments import record_payment, transition_payment_status

pytestmark = pytest.mark.integration


def test_create_member_assigns_code_from_id(make_member, owner):
    member = make_member(full_name='Budi Santoso', email='budi@example.com', date_of_birth=date(1990, 5, 17))

    assert member.id == 1
    assert member.code == 'MBR-0001'
    assert member.created_by == owner.id
    assert member.status == 'ACTIVE'


def test_codes_follow_row_ids_and_are_not_reused(make_member):
    first = make_member()
    soft_delete_member(first.gym_id, first.id)
    second = make_member()

    assert second.code == 'MBR-0002'
    assert first.code != second.code


def test_code_assignment_is_idempotent(member):
    code = member.code

    assert assign_member_code(member) == code
    assert member.code == code


def test_code_cannot_be_replaced(member):
    with pytest.raises(BusinessRuleViolation):
        member.code = 'MBR-9999'

    with pytest.raises(BusinessRuleViolation):
        update_member(member.gym_id, member.id, code='MBR-9999')


def test_invalid_gender_rejected(make_member):
    with pytest.raises(InvalidEnumValue):
        make_member(gender='X')

    assert Member.query.count() == 0


def test_live_phone_conflict(make_member):
    existing = make_member(phone='+6281300000001')

    with pytest.raises(DuplicateIdentity) as excinfo:
        make_member(phone='+6281300000001')

    assert excinfo.value.field == 'phone'
    assert excinfo.value.conflicting_id == existing.id
    assert excinfo.value.restorable_id is None


def test_live_email_conflict(make_member):
    existing = make_member(email='budi@example.com')

    with pytest.raises(DuplicateIdentity) as excinfo:
        make_member(email='budi@example.com')

    assert excinfo.value.field == 'email'
    assert excinfo.value.conflicting_id == existing.id


def test_tombstoned_phone_is_offered_for_restore(make_member):
    old = make_member(phone='+6281234567890')
    soft_delete_member(old.gym_id, old.id)

    with pytest.raises(DuplicateIdentity) as excinfo:
        make_member(phone='+6281234567890')

    assert excinfo.value.restorable_id == old.id
    assert excinfo.value.conflicting_id is None
    assert Member.query.count() == 1


def test_tombstoned_phone_can_be_reused_on_request(make_member):
    old = make_member(phone='+6281234567890')
    soft_delete_member(old.gym_id, old.id)

    fresh = make_member(phone='+6281234567890', ignore_restorable=True)

    assert fresh.id != old.id
    assert fresh.code != old.code


def test_find_or_offer_restore(gym, make_member):
    assert find_or_offer_restore(gym.id, '+6281234567890') == ('none', None)

    member = make_member(phone='+6281234567890')
    offer = find_or_offer_restore(gym.id, '+6281234567890')
    assert offer.kind == 'live_conflict'
    assert offer.member is member

    soft_delete_member(gym.id, member.id)
    offer = find_or_offer_restore(gym.id, '+6281234567890')
    assert offer.kind == 'restorable'
    assert offer.member is member


def test_offer_covers_members_created_by_other_staff(gym, owner, make_member):
    from gymledger.services.staff import create_staff

    clerk = create_staff(gym.id, owner.id, 'Front Desk', 'desk@nyxgym.com', 'secret')
    member = make_member(phone='+6281234567890', staff_id=clerk.id)
    soft_delete_member(gym.id, member.id)

    with pytest.raises(DuplicateIdentity) as excinfo:
        make_member(phone='+6281234567890', staff_id=owner.id)

    assert excinfo.value.restorable_id == member.id


def test_phone_uniqueness_is_per_gym(make_member, other_tenant):
    other_gym, other_owner = other_tenant
    make_member(phone='+6281300000001')

    member = make_member(phone='+6281300000001', gym_id=other_gym.id, staff_id=other_owner.id)

    assert member.gym_id == other_gym.id


def test_get_member_of_other_gym(member, other_tenant):
    other_gym, _ = other_tenant

    with pytest.raises(TenantIsolationViolation):
        get_member(other_gym.id, member.id)


def test_get_member_hides_tombstoned(member):
    soft_delete_member(member.gym_id, member.id)

    with pytest.raises(NotFound):
        get_member(member.gym_id, member.id)
    assert get_member(member.gym_id, member.id, include_deleted=True) is member


def test_list_members(gym, make_member):
    budi = make_member(full_name='Budi Santoso', phone='+6281300000001')
    siti = make_member(full_name='Siti Rahma', phone='+6281300000002', gender='F')
    gone = make_member(full_name='Agus Salim', phone='+6281300000003')
    soft_delete_member(gym.id, gone.id)

    assert set(list_members(gym.id)) == {budi, siti}
    assert set(list_members(gym.id, include_deleted=True)) == {budi, siti, gone}
    assert list_members(gym.id, search='siti') == [siti]
    assert list_members(gym.id, search=budi.code) == [budi]

    page = list_members(gym.id, page=1, per_page=1)
    assert page.total == 2
    assert len(page.items) == 1


def test_update_member(gym, make_member):
    member = make_member(phone='+6281300000001')
    make_member(phone='+6281300000002')

    update_member(gym.id, member.id, full_name='Budi S.', status='INACTIVE')
    assert member.full_name == 'Budi S.'
    assert member.status == 'INACTIVE'

    with pytest.raises(DuplicateIdentity):
        update_member(gym.id, member.id, phone='+6281300000002')
    assert member.phone == '+6281300000001'


def test_soft_delete_blocked_by_active_membership(gym, member, monthly_plan):
    membership = assign_membership(gym.id, member.id, monthly_plan.id, date(2026, 1, 1))

    with pytest.raises(BusinessRuleViolation) as excinfo:
        soft_delete_member(gym.id, member.id)

    assert excinfo.value.blocking == {'memberships': [membership.id]}
    assert not member.is_deleted


def test_soft_delete_blocked_by_pending_payment(gym, member):
    payment = record_payment(gym.id, member.id, Decimal('250000'), 'MEMBERSHIP', 'CASH')

    with pytest.raises(BusinessRuleViolation) as excinfo:
        soft_delete_member(gym.id, member.id)

    assert excinfo.value.blocking == {'payments': [payment.id]}


def test_soft_delete_does_not_cascade(gym, member, monthly_plan):
    membership = assign_membership(gym.id, member.id, monthly_plan.id, date(2026, 1, 1))
    payment = record_payment(gym.id, member.id, Decimal('250000'), 'MEMBERSHIP', 'CASH',
                             membership_id=membership.id)
    transition_payment_status(gym.id, payment.id, 'PAID')
    cancel_membership(gym.id, membership.id)

    soft_delete_member(gym.id, member.id)

    assert member.is_deleted
    assert not membership.is_deleted
    assert not payment.is_deleted
    assert membership.status == 'CANCELLED'


def test_restore_keeps_code_and_history(gym, member, monthly_plan):
    code = member.code
    membership = assign_membership(gym.id, member.id, monthly_plan.id, date(2026, 1, 1))
    cancel_membership(gym.id, membership.id)
    soft_delete_member(gym.id, member.id)

    restored = restore_member(gym.id, member.id)

    assert restored.code == code
    assert not restored.is_deleted
    assert restored.memberships.count() == 1
    # memberships are not resurrected
    assert membership.status == 'CANCELLED'


def test_restore_refused_when_phone_was_taken(gym, make_member):
    old = make_member(phone='+6281234567890')
    soft_delete_member(gym.id, old.id)
    make_member(phone='+6281234567890', ignore_restorable=True)

    with pytest.raises(DuplicateIdentity):
        restore_member(gym.id, old.id)

    assert db.session.get(Member, old.id).is_deleted


def test_restore_live_member_refused(member):
    with pytest.raises(BusinessRuleViolation):
        restore_member(member.gym_id, member.id)
