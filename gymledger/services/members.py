import logging
from collections import namedtuple

from flask import current_app

from gymledger import db
from gymledger.exceptions import BusinessRuleViolation, DuplicateIdentity, NotFound, ValidationError
from gymledger.models import Member, Membership, Payment
from gymledger.models.enums import (
    Gender, MemberStatus, PaymentStatus, ACCESS_MEMBERSHIP_STATUSES, coerce_enum
)
from gymledger.models.member import format_member_code
from gymledger.models.tenancy import ensure_same_tenant
from gymledger.utils.helpers import commit, flush

from .staff import get_acting_staff

logger = logging.getLogger(__name__)

# kind: 'none', 'live_conflict' or 'restorable'
RestoreOffer = namedtuple('RestoreOffer', ['kind', 'member'])

EDITABLE_FIELDS = ('full_name', 'phone', 'email', 'gender', 'date_of_birth', 'status')


def get_member(gym_id, member_id, include_deleted=False, for_update=False):
    """Load a member of this gym; tombstoned members count as missing unless asked for"""
    query = Member.query.filter(Member.id == member_id)
    if for_update:
        query = query.with_for_update().populate_existing()
    member = query.first()

    if member is None:
        raise NotFound('Member', member_id)
    ensure_same_tenant(gym_id, 'request', ('member', member))
    if member.is_deleted and not include_deleted:
        raise NotFound('Member', member_id)
    return member


def _live_match(gym_id, field, value, exclude_id=None):
    query = Member.query.filter(
        Member.gym_id == gym_id,
        getattr(Member, field) == value,
        Member.live(),
    )
    if exclude_id is not None:
        query = query.filter(Member.id != exclude_id)
    return query.first()


def _deleted_match(gym_id, phone):
    return Member.query.filter(
        Member.gym_id == gym_id,
        Member.phone == phone,
        Member.deleted_at.isnot(None),
    ).order_by(Member.deleted_at.desc()).first()


def _ensure_identity_available(gym_id, phone, email, exclude_id=None):
    existing = _live_match(gym_id, 'phone', phone, exclude_id)
    if existing is not None:
        raise DuplicateIdentity('phone', phone, conflicting_id=existing.id)

    if email:
        existing = _live_match(gym_id, 'email', email, exclude_id)
        if existing is not None:
            raise DuplicateIdentity('email', email, conflicting_id=existing.id)


def find_or_offer_restore(gym_id, phone):
    """
    Look up a phone before registering a new member

    A deleted member with the same phone is offered for restore so a
    returning customer keeps their history instead of getting a new identity.
    Deleted members created by any staff are considered.
    """
    live = _live_match(gym_id, 'phone', phone)
    if live is not None:
        return RestoreOffer('live_conflict', live)

    deleted = _deleted_match(gym_id, phone)
    if deleted is not None:
        return RestoreOffer('restorable', deleted)

    return RestoreOffer('none', None)


def assign_member_code(member):
    """Derive the member code from the row id; a code once set is kept"""
    if member.code is None:
        member.code = format_member_code(member.id)
    return member.code


def create_member(gym_id, staff_id, full_name, phone, gender, email=None, date_of_birth=None,
                  status=MemberStatus.ACTIVE, ignore_restorable=False):
    """
    Register a member

    Args:
        gym_id: acting gym
        staff_id: staff registering the member (audit reference)
        ignore_restorable: create a fresh identity even when a deleted member
            with this phone exists

    Raises:
        DuplicateIdentity: phone/email used by a live member, or a deleted
            member with this phone can be restored (``restorable_id``)
    """
    get_acting_staff(gym_id, staff_id)
    gender = coerce_enum(Gender, gender, 'gender')
    status = coerce_enum(MemberStatus, status, 'status')
    if not full_name or not phone:
        raise ValidationError('full_name and phone are required')

    _ensure_identity_available(gym_id, phone, email)
    if not ignore_restorable:
        offer = find_or_offer_restore(gym_id, phone)
        if offer.kind == 'restorable':
            raise DuplicateIdentity('phone', phone, restorable_id=offer.member.id)

    member = Member(
        gym_id=gym_id,
        created_by=staff_id,
        full_name=full_name,
        phone=phone,
        email=email or None,
        gender=gender.value,
        date_of_birth=date_of_birth,
        status=status.value,
    )
    db.session.add(member)

    # The code is derived from the id, so the row has to exist first
    flush()
    assign_member_code(member)
    commit()

    logger.info(f'Gym #{gym_id}: staff {staff_id} registered member {member.code}')
    return member


def list_members(gym_id, include_deleted=False, status=None, search=None, page=None, per_page=None):
    query = Member.query.filter(Member.gym_id == gym_id)

    if not include_deleted:
        query = query.filter(Member.live())

    if status:
        query = query.filter(Member.status == coerce_enum(MemberStatus, status, 'status').value)

    # Search filter
    if search:
        query = query.filter(
            db.or_(
                Member.full_name.ilike(f'%{search}%'),
                Member.phone.ilike(f'%{search}%'),
                Member.email.ilike(f'%{search}%'),
                Member.code.ilike(f'%{search}%'),
            )
        )

    query = query.order_by(Member.created_at.desc(), Member.id.desc())
    if page is None:
        return query.all()
    return query.paginate(page=page, per_page=per_page or current_app.config['ITEMS_PER_PAGE'],
                          error_out=False)


def update_member(gym_id, member_id, **changes):
    """Edit member details; the member code cannot be edited"""
    if 'code' in changes:
        raise BusinessRuleViolation('Member codes are fixed at registration')
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f'Cannot update member fields: {", ".join(sorted(unknown))}')

    member = get_member(gym_id, member_id, for_update=True)

    if 'gender' in changes:
        changes['gender'] = coerce_enum(Gender, changes['gender'], 'gender').value
    if 'status' in changes:
        changes['status'] = coerce_enum(MemberStatus, changes['status'], 'status').value
    if 'email' in changes:
        changes['email'] = changes['email'] or None
    if 'full_name' in changes and not changes['full_name']:
        raise ValidationError('full_name is required')
    if 'phone' in changes and not changes['phone']:
        raise ValidationError('phone is required')

    _ensure_identity_available(
        gym_id,
        changes.get('phone', member.phone),
        changes.get('email', member.email),
        exclude_id=member.id,
    )

    for field, value in changes.items():
        setattr(member, field, value)
    commit()

    logger.info(f'Gym #{gym_id}: updated member {member.code} ({", ".join(sorted(changes))})')
    return member


def deletion_blockers(member):
    """Rows that keep a member from being deleted, by table"""
    memberships = Membership.query.filter(
        Membership.member_id == member.id,
        Membership.status.in_(ACCESS_MEMBERSHIP_STATUSES),
        Membership.live(),
    ).with_for_update().all()
    payments = Payment.query.filter(
        Payment.member_id == member.id,
        Payment.status == PaymentStatus.PENDING.value,
        Payment.live(),
    ).all()

    blocking = {}
    if memberships:
        blocking['memberships'] = [row.id for row in memberships]
    if payments:
        blocking['payments'] = [row.id for row in payments]
    return blocking


def soft_delete_member(gym_id, member_id, at=None):
    """
    Tombstone a member

    Refused while the member holds a running membership or owes a pending
    payment. Memberships, check-ins and payments are left untouched.
    """
    member = get_member(gym_id, member_id, for_update=True)

    blocking = deletion_blockers(member)
    if blocking:
        logger.warning(f'Gym #{gym_id}: refused to delete member {member.code}: {blocking}')
        raise BusinessRuleViolation(
            f'Member {member.code} has running memberships or pending payments',
            blocking=blocking,
        )

    member.mark_deleted(at)
    commit()

    logger.info(f'Gym #{gym_id}: deleted member {member.code}')
    return member


def restore_member(gym_id, member_id):
    """
    Bring a deleted member back with their code and history

    Memberships are not reactivated; the caller decides whether a new one is
    needed.
    """
    member = get_member(gym_id, member_id, include_deleted=True, for_update=True)
    if not member.is_deleted:
        raise BusinessRuleViolation(f'Member {member.code} is not deleted')

    # Someone may have registered with the phone/email in the meantime
    _ensure_identity_available(gym_id, member.phone, member.email, exclude_id=member.id)

    member.clear_deleted()
    commit()

    logger.info(f'Gym #{gym_id}: restored member {member.code}')
    return member
