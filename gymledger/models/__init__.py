# Models package
from .gym import Gym
from .user import StaffUser
from .member import Member
from .membership import MembershipPlan, Membership
from .attendance import CheckIn
from .payment import Payment
from . import tenancy  # noqa: F401  (registers the flush hook)
