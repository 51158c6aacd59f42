import logging

from gymledger import db
from gymledger.exceptions import CheckInRejected, NotFound, ValidationError
from gymledger.models import CheckIn, Member
from gymledger.models.enums import MemberStatus, RejectionReason
from gymledger.models.tenancy import ensure_same_tenant
from gymledger.utils.helpers import as_datetime, commit, day_bounds

from .memberships import active_membership_for

logger = logging.getLogger(__name__)


def check_in(gym_id, member_id, admitted_by, as_of):
    """
    Admit a member for a visit

    Args:
        gym_id: gym the visit happens at
        member_id: visiting member
        admitted_by: staff name or kiosk identifier, stored as given
        as_of: visit timestamp

    Returns:
        CheckIn

    Raises:
        CheckInRejected: member deleted, or no membership grants access at ``as_of``
    """
    if not admitted_by:
        raise ValidationError('admitted_by is required')

    member = Member.query.filter(Member.id == member_id).with_for_update().first()
    if member is None:
        raise NotFound('Member', member_id)
    ensure_same_tenant(gym_id, 'check-in', ('member', member))

    if member.is_deleted:
        logger.warning(f'Gym #{gym_id}: check-in rejected for member #{member.id}: deleted')
        raise CheckInRejected(member.id, RejectionReason.MEMBER_DELETED)

    membership = None
    if member.status == MemberStatus.ACTIVE.value:
        membership = active_membership_for(member.id, as_of, for_update=True)
    if membership is None:
        logger.warning(f'Gym #{gym_id}: check-in rejected for member {member.code}: no active membership')
        raise CheckInRejected(member.id, RejectionReason.NO_ACTIVE_MEMBERSHIP)

    visit = CheckIn(
        gym_id=gym_id,
        member_id=member.id,
        membership_id=membership.id,
        checked_in_at=as_datetime(as_of),
        admitted_by=admitted_by,
    )
    db.session.add(visit)
    commit()

    logger.info(f'Gym #{gym_id}: member {member.code} checked in by {admitted_by}')
    return visit


def get_check_in(gym_id, check_in_id, include_deleted=False):
    visit = db.session.get(CheckIn, check_in_id)
    if visit is None:
        raise NotFound('CheckIn', check_in_id)
    ensure_same_tenant(gym_id, 'request', ('check-in', visit))
    if visit.is_deleted and not include_deleted:
        raise NotFound('CheckIn', check_in_id)
    return visit


def list_check_ins(gym_id, member_id=None, start=None, end=None, include_deleted=False):
    """
    Check-ins between two dates (inclusive), newest first

    Voided check-ins and visits of deleted members are left out unless
    ``include_deleted`` is set.
    """
    query = CheckIn.query.filter(CheckIn.gym_id == gym_id)

    if member_id is not None:
        query = query.filter(CheckIn.member_id == member_id)
    lower, upper = day_bounds(start, end)
    if lower is not None:
        query = query.filter(CheckIn.checked_in_at >= lower)
    if upper is not None:
        query = query.filter(CheckIn.checked_in_at < upper)
    if not include_deleted:
        query = query.join(Member, CheckIn.member_id == Member.id).filter(CheckIn.live(), Member.live())

    return query.order_by(CheckIn.checked_in_at.desc(), CheckIn.id.desc()).all()


def void_check_in(gym_id, check_in_id, at=None):
    """Tombstone a check-in entered by mistake"""
    visit = get_check_in(gym_id, check_in_id)
    visit.mark_deleted(at)
    commit()
    logger.info(f'Gym #{gym_id}: voided check-in #{visit.id}')
    return visit
