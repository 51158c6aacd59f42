"""Demo data: one gym, its owner and a plan catalog"""
import logging
from decimal import Decimal

from gymledger.models import Gym
from gymledger.services.plans import create_plan
from gymledger.services.tenants import onboard_tenant

logger = logging.getLogger(__name__)

DEMO_GYM = {
    'name': 'Nyx Gym',
    'address': '123 Fitness St, Muscle City, Fitland',
    'phone': '+6281234567890',
}

DEMO_OWNER = {
    'owner_name': 'Nyx Gym Owner',
    'owner_email': 'owner@nyxgym.com',
    'owner_password': 'password',
    'owner_phone': '+6281111111111',
}

# (name, duration_days, price)
DEMO_PLANS = [
    ('Monthly', 30, Decimal('250000.00')),
    ('Quarterly', 90, Decimal('675000.00')),
    ('Semi-annual', 180, Decimal('1300000.00')),
    ('Annual', 365, Decimal('2400000.00')),
]


def seed_demo_data():
    """
    Create the demo gym unless a gym with its name already exists

    Returns:
        (gym, owner, plans) or None when the data is already there
    """
    if Gym.query.filter_by(name=DEMO_GYM['name']).first():
        logger.info('Demo data already present')
        return None

    gym, owner = onboard_tenant(**DEMO_GYM, **DEMO_OWNER)
    plans = [
        create_plan(gym.id, owner.id, name=name, duration_days=days, price=price)
        for name, days, price in DEMO_PLANS
    ]

    logger.info(f'Seeded demo gym #{gym.id} with {len(plans)} plans')
    return gym, owner, plans
