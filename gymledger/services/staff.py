import logging

from gymledger import db
from gymledger.exceptions import BusinessRuleViolation, DuplicateIdentity, NotFound
from gymledger.models import StaffUser
from gymledger.models.enums import StaffRole, AccountStatus, coerce_enum
from gymledger.models.tenancy import ensure_same_tenant
from gymledger.utils.helpers import commit, utcnow

logger = logging.getLogger(__name__)


def ensure_email_available(email, exclude_id=None):
    query = StaffUser.query.filter(StaffUser.email == email)
    if exclude_id is not None:
        query = query.filter(StaffUser.id != exclude_id)
    if query.first() is not None:
        raise DuplicateIdentity('email', email)


def _get_staff(gym_id, staff_id, include_deleted=False):
    user = db.session.get(StaffUser, staff_id)
    if user is None:
        raise NotFound('StaffUser', staff_id)
    ensure_same_tenant(gym_id, 'request', ('staff user', user))
    if user.is_deleted and not include_deleted:
        raise NotFound('StaffUser', staff_id)
    return user


def get_acting_staff(gym_id, staff_id):
    """
    Resolve the staff member performing an operation

    The session layer authenticates; here we only make sure the account is
    live, active and belongs to the gym being written to.
    """
    user = _get_staff(gym_id, staff_id)
    if not user.is_active:
        raise BusinessRuleViolation(f'Staff account {staff_id} is not active')
    return user


def require_owner(gym_id, staff_id):
    user = get_acting_staff(gym_id, staff_id)
    if not user.is_owner:
        raise BusinessRuleViolation(f'Staff {staff_id} is not an owner of this gym')
    return user


def _live_owner_ids(gym_id):
    rows = StaffUser.query.filter(
        StaffUser.gym_id == gym_id,
        StaffUser.role == StaffRole.OWNER.value,
        StaffUser.status == AccountStatus.ACTIVE.value,
        StaffUser.live(),
    ).all()
    return [row.id for row in rows]


def _ensure_not_last_owner(user):
    if user.is_owner and _live_owner_ids(user.gym_id) == [user.id]:
        raise BusinessRuleViolation(
            f'Staff {user.id} is the last active owner of gym {user.gym_id}',
            blocking={'owners': [user.id]},
        )


def create_staff(gym_id, acting_staff_id, name, email, password, role=StaffRole.STAFF, phone=None):
    """Create a staff account (owners only)"""
    require_owner(gym_id, acting_staff_id)
    role = coerce_enum(StaffRole, role, 'role')
    ensure_email_available(email)

    user = StaffUser(
        gym_id=gym_id,
        name=name,
        email=email,
        phone=phone,
        role=role.value,
    )
    user.set_password(password)
    db.session.add(user)
    commit()

    logger.info(f'Gym #{gym_id}: staff {acting_staff_id} created {role.value} account #{user.id}')
    return user


def list_staff(gym_id, include_deleted=False):
    query = StaffUser.query.filter(StaffUser.gym_id == gym_id)
    if not include_deleted:
        query = query.filter(StaffUser.live())
    return query.order_by(StaffUser.name).all()


def set_staff_status(gym_id, acting_staff_id, staff_id, status):
    require_owner(gym_id, acting_staff_id)
    status = coerce_enum(AccountStatus, status, 'status')
    user = _get_staff(gym_id, staff_id)

    if status == AccountStatus.INACTIVE:
        _ensure_not_last_owner(user)

    user.status = status.value
    commit()
    logger.info(f'Gym #{gym_id}: staff #{staff_id} is now {status.value}')
    return user


def offboard_staff(gym_id, acting_staff_id, staff_id):
    """
    Soft-delete a staff account

    Members the staff created keep pointing at the tombstoned row.
    """
    require_owner(gym_id, acting_staff_id)
    if acting_staff_id == staff_id:
        raise BusinessRuleViolation('Staff cannot off-board themselves')

    user = _get_staff(gym_id, staff_id)
    _ensure_not_last_owner(user)

    user.mark_deleted()
    commit()
    logger.info(f'Gym #{gym_id}: off-boarded staff #{staff_id}')
    return user


def restore_staff(gym_id, acting_staff_id, staff_id):
    require_owner(gym_id, acting_staff_id)
    user = _get_staff(gym_id, staff_id, include_deleted=True)
    if not user.is_deleted:
        raise BusinessRuleViolation(f'Staff {staff_id} is not deleted')

    user.clear_deleted()
    commit()
    logger.info(f'Gym #{gym_id}: restored staff #{staff_id}')
    return user


def authenticate(email, password):
    """Return the staff account for valid credentials, None otherwise"""
    user = StaffUser.query.filter_by(email=email).first()
    if user is None or not user.is_active or not user.check_password(password):
        return None
    user.last_login = utcnow()
    commit()
    return user
