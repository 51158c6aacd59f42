from datetime import date, datetime

import pytest

from gymledger import db
from gymledger.exceptions import CheckInRejected, TenantIsolationViolation, ValidationError
from gymledger.models import CheckIn
from gymledger.models.enums import RejectionReason
from gymledger.services.attendance import check_in, list_check_ins, void_check_in
from gymledger.services.members import soft_delete_member
from gymledger.services.memberships import assign_membership, cancel_membership, list_memberships, recompute_statuses
from gymledger.services.payments import list_payments, record_payment

pytestmark = pytest.mark.integration

VISIT = datetime(2026, 1, 10, 7, 30)


@pytest.fixture
def membership(gym, member, monthly_plan):
    return assign_membership(gym.id, member.id, monthly_plan.id, date(2026, 1, 1), auto_renew=True)


def test_check_in_admits_member(gym, member, membership):
    visit = check_in(gym.id, member.id, 'Kiosk #1', VISIT)

    assert visit.member_id == member.id
    assert visit.membership_id == membership.id
    assert visit.checked_in_at == VISIT
    assert visit.admitted_by == 'Kiosk #1'
    assert visit.check_in_date == date(2026, 1, 10)


def test_repeated_check_ins_are_kept(gym, member, membership):
    check_in(gym.id, member.id, 'Front desk', VISIT)
    check_in(gym.id, member.id, 'Front desk', VISIT)

    assert CheckIn.query.filter_by(member_id=member.id).count() == 2


def test_pending_renewal_still_admits(gym, member, membership):
    recompute_statuses(date(2026, 1, 28), renewal_window_days=7)
    assert membership.status == 'PENDING_RENEWAL'

    visit = check_in(gym.id, member.id, 'Front desk', datetime(2026, 1, 28, 18, 0))

    assert visit.membership_id == membership.id


def test_deleted_member_rejected(gym, member):
    member.mark_deleted()
    db.session.commit()

    with pytest.raises(CheckInRejected) as excinfo:
        check_in(gym.id, member.id, 'Front desk', VISIT)

    assert excinfo.value.reason == RejectionReason.MEMBER_DELETED
    assert CheckIn.query.count() == 0


def test_member_without_membership_rejected(gym, member):
    with pytest.raises(CheckInRejected) as excinfo:
        check_in(gym.id, member.id, 'Front desk', VISIT)

    assert excinfo.value.reason == RejectionReason.NO_ACTIVE_MEMBERSHIP


def test_check_in_outside_period_rejected(gym, member, membership):
    with pytest.raises(CheckInRejected):
        check_in(gym.id, member.id, 'Front desk', datetime(2026, 2, 1, 8, 0))


def test_admitted_by_required(gym, member, membership):
    with pytest.raises(ValidationError):
        check_in(gym.id, member.id, '', VISIT)


def test_check_in_at_other_gym(member, membership, other_tenant):
    other_gym, _ = other_tenant

    with pytest.raises(TenantIsolationViolation):
        check_in(other_gym.id, member.id, 'Front desk', VISIT)


def test_void_and_list_check_ins(gym, member, membership):
    first = check_in(gym.id, member.id, 'Front desk', datetime(2026, 1, 5, 7, 0))
    second = check_in(gym.id, member.id, 'Front desk', datetime(2026, 1, 20, 7, 0))

    void_check_in(gym.id, first.id)

    assert list_check_ins(gym.id) == [second]
    assert list_check_ins(gym.id, include_deleted=True) == [second, first]
    assert list_check_ins(gym.id, start=date(2026, 1, 1), end=date(2026, 1, 10), include_deleted=True) == [first]
    assert list_check_ins(gym.id, member_id=member.id, start=date(2026, 1, 20), end=date(2026, 1, 20)) == [second]


def test_deleted_member_history_hidden_but_payments_listed(gym, member, membership, make_member):
    other = make_member()
    kept = assign_membership(gym.id, other.id, membership.membership_plan_id, date(2026, 1, 1))
    other_visit = check_in(gym.id, other.id, 'Front desk', VISIT)

    visit = check_in(gym.id, member.id, 'Front desk', VISIT)
    payment = record_payment(gym.id, member.id, 250000, 'MEMBERSHIP', 'CASH', status='PAID',
                             membership_id=membership.id)
    cancel_membership(gym.id, membership.id)
    soft_delete_member(gym.id, member.id)

    assert list_check_ins(gym.id) == [other_visit]
    assert list_check_ins(gym.id, member_id=member.id) == []
    assert set(list_check_ins(gym.id, include_deleted=True)) == {visit, other_visit}

    assert list_memberships(gym.id) == [kept]
    assert list_memberships(gym.id, member_id=member.id) == []
    assert list_memberships(gym.id, member_id=member.id, include_deleted=True) == [membership]

    assert list_payments(gym.id) == [payment]
