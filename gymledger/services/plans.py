import logging

from gymledger import db
from gymledger.exceptions import BusinessRuleViolation, NotFound, ValidationError
from gymledger.models import MembershipPlan, Membership
from gymledger.models.enums import TERMINAL_MEMBERSHIP_STATUSES
from gymledger.models.tenancy import ensure_same_tenant
from gymledger.utils.helpers import commit, to_money

from .staff import require_owner

logger = logging.getLogger(__name__)


def _validate_duration(duration_days):
    if isinstance(duration_days, bool) or not isinstance(duration_days, int) or duration_days <= 0:
        raise ValidationError(f'duration_days must be a positive whole number, got {duration_days!r}')
    return duration_days


def get_plan(gym_id, plan_id, include_deleted=False):
    plan = db.session.get(MembershipPlan, plan_id)
    if plan is None:
        raise NotFound('MembershipPlan', plan_id)
    ensure_same_tenant(gym_id, 'request', ('membership plan', plan))
    if plan.is_deleted and not include_deleted:
        raise NotFound('MembershipPlan', plan_id)
    return plan


def list_plans(gym_id, active_only=False):
    query = MembershipPlan.query.filter(
        MembershipPlan.gym_id == gym_id,
        MembershipPlan.live(),
    )
    if active_only:
        query = query.filter(MembershipPlan.is_active.is_(True))
    return query.order_by(MembershipPlan.duration_days, MembershipPlan.name).all()


def create_plan(gym_id, acting_staff_id, name, duration_days, price, description=None, is_active=True):
    """Add a plan to the gym's catalog (owners only)"""
    require_owner(gym_id, acting_staff_id)
    if not name:
        raise ValidationError('Plan name is required')

    plan = MembershipPlan(
        gym_id=gym_id,
        name=name,
        description=description,
        duration_days=_validate_duration(duration_days),
        price=to_money(price, 'price'),
        is_active=bool(is_active),
    )
    db.session.add(plan)
    commit()

    logger.info(f'Gym #{gym_id}: created plan #{plan.id} {plan.name} ({plan.duration_days} days, {plan.price})')
    return plan


def update_plan(gym_id, acting_staff_id, plan_id, name=None, duration_days=None, price=None, description=None):
    """
    Edit a plan

    Memberships already assigned keep their dates; only future assignments
    see a new duration or price.
    """
    require_owner(gym_id, acting_staff_id)
    plan = get_plan(gym_id, plan_id)

    if name is not None:
        if not name:
            raise ValidationError('Plan name is required')
        plan.name = name
    if duration_days is not None:
        plan.duration_days = _validate_duration(duration_days)
    if price is not None:
        plan.price = to_money(price, 'price')
    if description is not None:
        plan.description = description

    commit()
    logger.info(f'Gym #{gym_id}: updated plan #{plan.id}')
    return plan


def _set_active(gym_id, acting_staff_id, plan_id, is_active):
    require_owner(gym_id, acting_staff_id)
    plan = get_plan(gym_id, plan_id)
    plan.is_active = is_active
    commit()
    logger.info(f"Gym #{gym_id}: plan #{plan.id} {'activated' if is_active else 'deactivated'}")
    return plan


def deactivate_plan(gym_id, acting_staff_id, plan_id):
    """Hide a plan from new assignments; existing memberships are untouched"""
    return _set_active(gym_id, acting_staff_id, plan_id, False)


def activate_plan(gym_id, acting_staff_id, plan_id):
    return _set_active(gym_id, acting_staff_id, plan_id, True)


def soft_delete_plan(gym_id, acting_staff_id, plan_id, at=None):
    require_owner(gym_id, acting_staff_id)
    plan = get_plan(gym_id, plan_id)

    running = Membership.query.filter(
        Membership.membership_plan_id == plan.id,
        Membership.status.notin_(TERMINAL_MEMBERSHIP_STATUSES),
        Membership.live(),
    ).all()
    if running:
        raise BusinessRuleViolation(
            f'Plan {plan.name} is still held by running memberships',
            blocking={'memberships': [row.id for row in running]},
        )

    plan.mark_deleted(at)
    commit()
    logger.info(f'Gym #{gym_id}: deleted plan #{plan.id}')
    return plan


def restore_plan(gym_id, acting_staff_id, plan_id):
    require_owner(gym_id, acting_staff_id)
    plan = get_plan(gym_id, plan_id, include_deleted=True)
    if not plan.is_deleted:
        raise BusinessRuleViolation(f'Plan {plan.name} is not deleted')

    plan.clear_deleted()
    commit()
    logger.info(f'Gym #{gym_id}: restored plan #{plan.id}')
    return plan
