import logging

from gymledger import db
from gymledger.exceptions import BusinessRuleViolation, NotFound
from gymledger.models import Gym, StaffUser
from gymledger.models.enums import StaffRole
from gymledger.utils.helpers import commit, flush

logger = logging.getLogger(__name__)


def create_tenant(name, address=None, phone=None):
    """Create a gym"""
    gym = Gym(name=name, address=address, phone=phone)
    db.session.add(gym)
    commit()
    logger.info(f'Created gym #{gym.id}: {gym.name}')
    return gym


def get_tenant(gym_id):
    gym = db.session.get(Gym, gym_id)
    if gym is None or gym.is_deleted:
        raise NotFound('Gym', gym_id)
    return gym


def onboard_tenant(name, address, phone, owner_name, owner_email, owner_password, owner_phone=None):
    """Create a gym and its first owner in one transaction"""
    from .staff import ensure_email_available

    ensure_email_available(owner_email)

    gym = Gym(name=name, address=address, phone=phone)
    db.session.add(gym)
    flush()

    owner = StaffUser(
        gym_id=gym.id,
        name=owner_name,
        email=owner_email,
        phone=owner_phone,
        role=StaffRole.OWNER.value,
    )
    owner.set_password(owner_password)
    db.session.add(owner)
    commit()

    logger.info(f'Onboarded gym #{gym.id} with owner {owner.email}')
    return gym, owner


def delete_tenant(gym_id):
    """
    Hard-delete a gym that has no rows at all

    Tenant data is never destroyed implicitly: any child row, tombstoned or
    not, blocks the delete.
    """
    gym = db.session.get(Gym, gym_id)
    if gym is None:
        raise NotFound('Gym', gym_id)

    counts = {table: count for table, count in gym.child_counts().items() if count}
    if counts:
        raise BusinessRuleViolation(f'Gym {gym_id} still owns data', blocking=counts)

    db.session.delete(gym)
    commit()
    logger.info(f'Deleted empty gym #{gym_id}')
