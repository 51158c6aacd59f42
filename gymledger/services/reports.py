"""Read-only aggregates for reporting.

Unlike the list operations these include the history of deleted members:
money collected and visits made stay in the numbers after a member leaves.
Voided check-ins are corrections and are not counted.
"""
from decimal import Decimal

from gymledger import db
from gymledger.models import CheckIn, Membership, Payment
from gymledger.models.enums import MembershipStatus, PaymentMethod, PaymentStatus, values
from gymledger.utils.helpers import CENTS, day_bounds


def _money(value):
    return Decimal(str(value or 0)).quantize(CENTS)


def _paid_in_period(gym_id, start, end):
    lower, upper = day_bounds(start, end)
    return (
        Payment.gym_id == gym_id,
        Payment.status == PaymentStatus.PAID.value,
        Payment.paid_at >= lower,
        Payment.paid_at < upper,
    )


def revenue_by_method(gym_id, start, end):
    """PAID revenue per payment method between two dates (inclusive)"""
    rows = db.session.query(
        Payment.method,
        db.func.sum(Payment.amount).label('total')
    ).filter(
        *_paid_in_period(gym_id, start, end)
    ).group_by(Payment.method).all()

    totals = {method: _money(0) for method in values(PaymentMethod)}
    for method, total in rows:
        totals[method] = _money(total)
    return totals


def total_revenue(gym_id, start, end):
    """Total PAID revenue between two dates (inclusive)"""
    result = db.session.query(db.func.sum(Payment.amount)).filter(
        *_paid_in_period(gym_id, start, end)
    ).scalar()
    return _money(result)


def attendance_count(gym_id, start, end):
    lower, upper = day_bounds(start, end)
    return CheckIn.query.filter(
        CheckIn.gym_id == gym_id,
        CheckIn.live(),
        CheckIn.checked_in_at >= lower,
        CheckIn.checked_in_at < upper,
    ).count()


def churn_summary(gym_id, start, end):
    """Memberships that ended (expired or cancelled) between two dates"""
    lower, upper = day_bounds(start, end)
    rows = db.session.query(
        Membership.status,
        db.func.count(Membership.id)
    ).filter(
        Membership.gym_id == gym_id,
        Membership.status.in_([MembershipStatus.EXPIRED.value, MembershipStatus.CANCELLED.value]),
        Membership.status_changed_at >= lower,
        Membership.status_changed_at < upper,
    ).group_by(Membership.status).all()

    counts = dict(rows)
    expired = counts.get(MembershipStatus.EXPIRED.value, 0)
    cancelled = counts.get(MembershipStatus.CANCELLED.value, 0)
    return {'expired': expired, 'cancelled': cancelled, 'total': expired + cancelled}
