from datetime import timedelta

from gymledger import db
from gymledger.utils.helpers import as_date
from .enums import (
    MembershipStatus, TERMINAL_MEMBERSHIP_STATUSES, ACCESS_MEMBERSHIP_STATUSES, check_in_clause
)
from .mixins import TimestampMixin, SoftDeleteMixin


class MembershipPlan(TimestampMixin, SoftDeleteMixin, db.Model):
    """Plan model - pricing/duration templates"""
    __tablename__ = 'membership_plans'
    __table_args__ = (
        db.CheckConstraint('duration_days > 0', name='ck_membership_plans_duration_days'),
        db.CheckConstraint('price >= 0', name='ck_membership_plans_price'),
        {'sqlite_autoincrement': True},
    )

    id = db.Column(db.Integer, primary_key=True)
    gym_id = db.Column(db.Integer, db.ForeignKey('gyms.id', ondelete='RESTRICT'), nullable=False, index=True)

    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)
    duration_days = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Numeric(12, 2), nullable=False)

    # Inactive plans are hidden from new assignments only
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Relationships
    memberships = db.relationship('Membership', backref='plan', lazy='dynamic', passive_deletes='all')

    def __repr__(self):
        return f'<MembershipPlan {self.name}>'

    def tenant_references(self):
        return []


class Membership(TimestampMixin, SoftDeleteMixin, db.Model):
    """Membership model - one member holding one plan for a fixed period"""
    __tablename__ = 'memberships'
    __table_args__ = (
        db.CheckConstraint(check_in_clause('status', MembershipStatus), name='ck_memberships_status'),
        db.CheckConstraint('end_date >= start_date', name='ck_memberships_period'),
        db.Index('idx_memberships_status', 'status', 'deleted_at'),
        db.Index('idx_memberships_member_period', 'member_id', 'start_date', 'end_date'),
        {'sqlite_autoincrement': True},
    )

    id = db.Column(db.Integer, primary_key=True)
    gym_id = db.Column(db.Integer, db.ForeignKey('gyms.id', ondelete='RESTRICT'), nullable=False, index=True)
    member_id = db.Column(db.Integer, db.ForeignKey('members.id', ondelete='RESTRICT'), nullable=False)
    membership_plan_id = db.Column(db.Integer, db.ForeignKey('membership_plans.id', ondelete='RESTRICT'),
                                   nullable=False)

    # Dates: end_date is computed once at assignment and never recomputed
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)

    # Status: ACTIVE, PENDING_RENEWAL, EXPIRED, CANCELLED
    status = db.Column(db.String(20), nullable=False, default=MembershipStatus.ACTIVE.value)
    status_changed_at = db.Column(db.DateTime)
    auto_renew = db.Column(db.Boolean, nullable=False, default=False)

    # Renewal chain: the successor points at the row it renews
    renewal_of_id = db.Column(db.Integer, db.ForeignKey('memberships.id', ondelete='RESTRICT'))
    renewed_at = db.Column(db.DateTime)

    renewal_of = db.relationship('Membership', remote_side=[id],
                                 backref=db.backref('renewals', lazy='dynamic'))

    def __repr__(self):
        return f'<Membership {self.id} - {self.status}>'

    @property
    def is_terminal(self):
        return self.status in TERMINAL_MEMBERSHIP_STATUSES

    def covers(self, as_of):
        """True if the date falls inside [start_date, end_date]"""
        day = as_date(as_of)
        return self.start_date <= day <= self.end_date

    def grants_access(self, as_of):
        return (
            not self.is_deleted
            and self.status in ACCESS_MEMBERSHIP_STATUSES
            and self.covers(as_of)
        )

    def target_status(self, as_of, renewal_window_days):
        """
        Status this row should have at ``as_of``

        Only ever moves forward (ACTIVE -> PENDING_RENEWAL -> EXPIRED); terminal
        rows keep their status.
        """
        if self.is_terminal:
            return self.status

        day = as_date(as_of)
        if day > self.end_date:
            return MembershipStatus.EXPIRED.value

        window_opens = self.end_date - timedelta(days=renewal_window_days)
        if self.auto_renew and self.renewed_at is None and day > window_opens:
            return MembershipStatus.PENDING_RENEWAL.value

        return self.status

    def tenant_references(self):
        from .member import Member
        refs = [
            ('member', Member, self.member_id),
            ('membership plan', MembershipPlan, self.membership_plan_id),
        ]
        if self.renewal_of_id is not None:
            refs.append(('membership', Membership, self.renewal_of_id))
        return refs
