"""Payment ledger.

Payments are financial history: they are never edited (corrections are new
records) and stay listed whatever happens to the member who paid.
"""
import logging

from flask import current_app

from gymledger import db
from gymledger.exceptions import InvalidStatusTransition, NotFound, ValidationError
from gymledger.models import Payment
from gymledger.models.enums import PaymentPurpose, PaymentMethod, PaymentStatus, coerce_enum
from gymledger.models.tenancy import ensure_same_tenant
from gymledger.utils.helpers import as_datetime, commit, day_bounds, to_money, utcnow

from .members import get_member
from .memberships import get_membership

logger = logging.getLogger(__name__)


def record_payment(gym_id, member_id, amount, purpose, method, status=PaymentStatus.PENDING, notes=None,
                   membership_id=None, paid_at=None):
    """
    Record a charge

    Args:
        amount: non-negative Decimal, int or numeric string
        purpose, method, status: enum members or their exact values
        membership_id: membership the payment is for, if any
        paid_at: charge timestamp, defaults to now

    Raises:
        InvalidAmount, InvalidEnumValue: malformed input
    """
    amount = to_money(amount)
    purpose = coerce_enum(PaymentPurpose, purpose, 'purpose')
    method = coerce_enum(PaymentMethod, method, 'method')
    status = coerce_enum(PaymentStatus, status, 'status')

    member = get_member(gym_id, member_id)

    membership = None
    if membership_id is not None:
        membership = get_membership(gym_id, membership_id)
        if membership.member_id != member.id:
            raise ValidationError(f'Membership {membership.id} does not belong to member {member.code}')

    payment = Payment(
        gym_id=gym_id,
        member_id=member.id,
        membership_id=membership.id if membership else None,
        amount=amount,
        purpose=purpose.value,
        method=method.value,
        status=status.value,
        paid_at=as_datetime(paid_at) if paid_at is not None else utcnow(),
        notes=notes,
    )
    db.session.add(payment)
    commit()

    logger.info(
        f'Gym #{gym_id}: recorded {status.value} payment #{payment.id} of {payment.amount} '
        f'({purpose.value}, {method.value}) for member {member.code}'
    )
    return payment


def get_payment(gym_id, payment_id, for_update=False):
    query = Payment.query.filter(Payment.id == payment_id)
    if for_update:
        query = query.with_for_update().populate_existing()
    payment = query.first()

    if payment is None:
        raise NotFound('Payment', payment_id)
    ensure_same_tenant(gym_id, 'request', ('payment', payment))
    return payment


def transition_payment_status(gym_id, payment_id, new_status, at=None):
    """
    Move a payment along PENDING -> PAID -> REFUNDED or PENDING -> CANCELLED

    The amount is never touched. Settling a payment (PAID) moves ``paid_at``
    to the settlement time so revenue lands in the period it was received.
    """
    new_status = coerce_enum(PaymentStatus, new_status, 'status')
    payment = get_payment(gym_id, payment_id, for_update=True)

    if not payment.can_transition_to(new_status.value):
        raise InvalidStatusTransition('Payment', payment.status, new_status.value)

    stamp = as_datetime(at) if at is not None else utcnow()
    previous = payment.status
    payment.status = new_status.value
    payment.status_changed_at = stamp
    if new_status == PaymentStatus.PAID:
        payment.paid_at = stamp
    commit()

    logger.info(f'Gym #{gym_id}: payment #{payment.id} {previous} -> {payment.status}')
    return payment


def list_payments(gym_id, member_id=None, status=None, start=None, end=None, page=None, per_page=None):
    """
    Payments of a gym, newest first

    Payments of deleted members are always included.
    """
    query = Payment.query.filter(Payment.gym_id == gym_id)

    if member_id is not None:
        query = query.filter(Payment.member_id == member_id)
    if status:
        query = query.filter(Payment.status == coerce_enum(PaymentStatus, status, 'status').value)

    lower, upper = day_bounds(start, end)
    if lower is not None:
        query = query.filter(Payment.paid_at >= lower)
    if upper is not None:
        query = query.filter(Payment.paid_at < upper)

    query = query.order_by(Payment.paid_at.desc(), Payment.id.desc())
    if page is None:
        return query.all()
    return query.paginate(page=page, per_page=per_page or current_app.config['ITEMS_PER_PAGE'],
                          error_out=False)
