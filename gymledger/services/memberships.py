"""Membership lifecycle.

Status moves only forward::

    ACTIVE -> PENDING_RENEWAL -> EXPIRED
    ACTIVE -> EXPIRED                      (auto_renew off)
    PENDING_RENEWAL -> ACTIVE              (renewed; the successor is a new row)
    ACTIVE | PENDING_RENEWAL -> CANCELLED  (staff)

EXPIRED and CANCELLED rows never change status again. Date-driven moves are
applied by ``recompute_statuses``, which an external scheduler runs daily.
"""
import logging
from datetime import timedelta

from flask import current_app

from gymledger import db
from gymledger.exceptions import (
    BusinessRuleViolation, InvalidStatusTransition, MemberNotEligible, NotFound, ValidationError
)
from gymledger.models import Member, Membership
from gymledger.models.enums import (
    MembershipStatus, MemberStatus, ACCESS_MEMBERSHIP_STATUSES, TERMINAL_MEMBERSHIP_STATUSES, coerce_enum
)
from gymledger.models.tenancy import ensure_same_tenant
from gymledger.utils.helpers import as_date, as_datetime, commit, utcnow

from .members import get_member
from .plans import get_plan

logger = logging.getLogger(__name__)


def get_membership(gym_id, membership_id, include_deleted=False, for_update=False):
    query = Membership.query.filter(Membership.id == membership_id)
    if for_update:
        query = query.with_for_update().populate_existing()
    membership = query.first()

    if membership is None:
        raise NotFound('Membership', membership_id)
    ensure_same_tenant(gym_id, 'request', ('membership', membership))
    if membership.is_deleted and not include_deleted:
        raise NotFound('Membership', membership_id)
    return membership


def list_memberships(gym_id, member_id=None, status=None, include_deleted=False):
    """Memberships of a gym; rows of deleted members are hidden with the deleted rows"""
    query = Membership.query.filter(Membership.gym_id == gym_id)
    if member_id is not None:
        query = query.filter(Membership.member_id == member_id)
    if status:
        query = query.filter(Membership.status == coerce_enum(MembershipStatus, status, 'status').value)
    if not include_deleted:
        query = query.join(Member, Membership.member_id == Member.id).filter(Membership.live(), Member.live())
    return query.order_by(Membership.start_date.desc(), Membership.id.desc()).all()


def _usable_plan(gym_id, plan_id):
    plan = get_plan(gym_id, plan_id)
    if not plan.is_active:
        raise BusinessRuleViolation(f'Plan {plan.name} is not offered anymore')
    return plan


def _overlapping(member_id, start_date, end_date, exclude_id=None):
    query = Membership.query.filter(
        Membership.member_id == member_id,
        Membership.status.in_(ACCESS_MEMBERSHIP_STATUSES),
        Membership.live(),
        Membership.start_date <= end_date,
        Membership.end_date >= start_date,
    )
    if exclude_id is not None:
        query = query.filter(Membership.id != exclude_id)
    return query.all()


def _ensure_no_overlap(member, start_date, end_date, exclude_id=None):
    overlapping = _overlapping(member.id, start_date, end_date, exclude_id)
    if overlapping:
        raise BusinessRuleViolation(
            f'Member {member.code} already holds a membership between {start_date} and {end_date}',
            blocking={'memberships': [row.id for row in overlapping]},
        )


def assign_membership(gym_id, member_id, plan_id, start_date, auto_renew=False, override_inactive=False):
    """
    Give a member a plan starting on ``start_date``

    The end date is computed once, from the plan's duration at this moment,
    and stored; later plan edits do not move it.

    Raises:
        TenantIsolationViolation: member or plan belongs to another gym
        MemberNotEligible: member is deleted, or INACTIVE without override
        BusinessRuleViolation: plan is deactivated or the period overlaps
            another running membership
    """
    member = get_member(gym_id, member_id, include_deleted=True, for_update=True)
    plan = get_plan(gym_id, plan_id)

    if member.is_deleted:
        raise MemberNotEligible(
            f'Member {member.code} is deleted; restore them first',
            blocking={'members': [member.id]},
        )
    if member.status == MemberStatus.INACTIVE.value and not override_inactive:
        raise MemberNotEligible(f'Member {member.code} is inactive')
    if not plan.is_active:
        raise BusinessRuleViolation(f'Plan {plan.name} is not offered anymore')

    start_date = as_date(start_date)
    end_date = start_date + timedelta(days=plan.duration_days)
    _ensure_no_overlap(member, start_date, end_date)

    membership = Membership(
        gym_id=gym_id,
        member_id=member.id,
        membership_plan_id=plan.id,
        start_date=start_date,
        end_date=end_date,
        status=MembershipStatus.ACTIVE.value,
        status_changed_at=utcnow(),
        auto_renew=bool(auto_renew),
    )
    db.session.add(membership)
    commit()

    logger.info(
        f'Gym #{gym_id}: assigned {plan.name} to member {member.code} '
        f'({start_date} - {end_date}, membership #{membership.id})'
    )
    return membership


def renew_membership(gym_id, membership_id, as_of, plan_id=None):
    """
    Renew a running membership

    A successor row is created, starting where the current one ends (or at
    ``as_of`` if that is already past). The renewed row goes back to ACTIVE,
    keeps its own end date and expires through the sweep as usual.

    Returns:
        The new membership
    """
    # Lock order: member, then membership
    member_id = get_membership(gym_id, membership_id).member_id
    member = get_member(gym_id, member_id, include_deleted=True, for_update=True)
    current = get_membership(gym_id, membership_id, for_update=True)

    if current.status not in ACCESS_MEMBERSHIP_STATUSES:
        raise InvalidStatusTransition('Membership', current.status, MembershipStatus.ACTIVE.value)
    if current.renewed_at is not None:
        raise BusinessRuleViolation(
            f'Membership {current.id} was already renewed',
            blocking={'memberships': [row.id for row in current.renewals]},
        )
    if member.is_deleted:
        raise MemberNotEligible(f'Member {member.code} is deleted; restore them first')

    plan = _usable_plan(gym_id, plan_id or current.membership_plan_id)

    day = as_date(as_of)
    start_date = current.end_date if current.end_date >= day else day
    end_date = start_date + timedelta(days=plan.duration_days)
    _ensure_no_overlap(member, start_date, end_date, exclude_id=current.id)

    stamp = as_datetime(as_of)
    successor = Membership(
        gym_id=gym_id,
        member_id=member.id,
        membership_plan_id=plan.id,
        start_date=start_date,
        end_date=end_date,
        status=MembershipStatus.ACTIVE.value,
        status_changed_at=stamp,
        auto_renew=current.auto_renew,
        renewal_of_id=current.id,
    )
    db.session.add(successor)

    if current.status != MembershipStatus.ACTIVE.value:
        current.status = MembershipStatus.ACTIVE.value
        current.status_changed_at = stamp
    current.renewed_at = stamp
    commit()

    logger.info(
        f'Gym #{gym_id}: renewed membership #{current.id} of member {member.code} '
        f'as #{successor.id} ({start_date} - {end_date})'
    )
    return successor


def cancel_membership(gym_id, membership_id, at=None):
    membership = get_membership(gym_id, membership_id, for_update=True)
    if membership.status not in ACCESS_MEMBERSHIP_STATUSES:
        raise InvalidStatusTransition('Membership', membership.status, MembershipStatus.CANCELLED.value)

    membership.status = MembershipStatus.CANCELLED.value
    membership.status_changed_at = at or utcnow()
    commit()

    logger.info(f'Gym #{gym_id}: cancelled membership #{membership.id}')
    return membership


def recompute_statuses(as_of, gym_id=None, renewal_window_days=None):
    """
    Apply the date-driven status moves as of ``as_of``

    Every live, non-terminal membership is evaluated; rows already in their
    target state are left alone, so running the sweep twice for the same
    ``as_of`` changes nothing the second time.

    Args:
        as_of: evaluation date or datetime
        gym_id: restrict the sweep to one gym
        renewal_window_days: defaults to RENEWAL_WINDOW_DAYS

    Returns:
        dict with ``transitioned``, ``pending_renewal`` and ``expired`` counts
    """
    if renewal_window_days is None:
        renewal_window_days = current_app.config['RENEWAL_WINDOW_DAYS']
    if renewal_window_days < 0:
        raise ValidationError('renewal_window_days cannot be negative')

    query = Membership.query.filter(
        Membership.status.notin_(TERMINAL_MEMBERSHIP_STATUSES),
        Membership.live(),
    )
    if gym_id is not None:
        query = query.filter(Membership.gym_id == gym_id)

    stamp = as_datetime(as_of)
    result = {'transitioned': 0, 'pending_renewal': 0, 'expired': 0}

    for membership in query.order_by(Membership.id).with_for_update().all():
        target = membership.target_status(as_of, renewal_window_days)
        if target == membership.status:
            continue

        logger.debug(f'Membership #{membership.id}: {membership.status} -> {target}')
        membership.status = target
        membership.status_changed_at = stamp
        result['transitioned'] += 1
        if target == MembershipStatus.EXPIRED.value:
            result['expired'] += 1
        else:
            result['pending_renewal'] += 1

    commit()

    scope = f'gym #{gym_id}' if gym_id is not None else 'all gyms'
    logger.info(
        f'Status sweep as of {as_date(as_of)} ({scope}): {result["transitioned"]} transitioned, '
        f'{result["pending_renewal"]} pending renewal, {result["expired"]} expired'
    )
    return result


def active_membership_for(member_id, as_of, for_update=False):
    """The membership granting access at ``as_of``, or None"""
    day = as_date(as_of)
    query = Membership.query.filter(
        Membership.member_id == member_id,
        Membership.status.in_(ACCESS_MEMBERSHIP_STATUSES),
        Membership.live(),
        Membership.start_date <= day,
        Membership.end_date >= day,
    ).order_by(Membership.end_date.desc(), Membership.id.desc())
    if for_update:
        query = query.with_for_update().populate_existing()
    return query.first()


def has_gym_access(member_id, as_of, gym_id=None):
    """
    True if the member may enter the gym at ``as_of``

    The member must be live and ACTIVE and hold an ACTIVE or PENDING_RENEWAL
    membership whose period contains the date.
    """
    member = db.session.get(Member, member_id)
    if member is None:
        raise NotFound('Member', member_id)
    if gym_id is not None:
        ensure_same_tenant(gym_id, 'request', ('member', member))

    if member.is_deleted or member.status != MemberStatus.ACTIVE.value:
        return False
    return active_membership_for(member.id, as_of) is not None


def soft_delete_membership(gym_id, membership_id, at=None):
    """Tombstone a finished membership; running ones must be cancelled first"""
    membership = get_membership(gym_id, membership_id, for_update=True)
    if not membership.is_terminal:
        raise BusinessRuleViolation(
            f'Membership {membership.id} is {membership.status}; cancel it before deleting',
            blocking={'memberships': [membership.id]},
        )

    membership.mark_deleted(at)
    commit()
    logger.info(f'Gym #{gym_id}: deleted membership #{membership.id}')
    return membership


def restore_membership(gym_id, membership_id):
    membership = get_membership(gym_id, membership_id, include_deleted=True, for_update=True)
    if not membership.is_deleted:
        raise BusinessRuleViolation(f'Membership {membership.id} is not deleted')

    membership.clear_deleted()
    commit()
    logger.info(f'Gym #{gym_id}: restored membership #{membership.id}')
    return membership
