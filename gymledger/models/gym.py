from gymledger import db
from .mixins import TimestampMixin, SoftDeleteMixin


class Gym(TimestampMixin, SoftDeleteMixin, db.Model):
    """Gym model - the tenant every other row belongs to"""
    __tablename__ = 'gyms'
    __table_args__ = {'sqlite_autoincrement': True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    address = db.Column(db.Text)
    phone = db.Column(db.String(20))

    # Relationships
    users = db.relationship('StaffUser', backref='gym', lazy='dynamic', passive_deletes='all')
    members = db.relationship('Member', backref='gym', lazy='dynamic', passive_deletes='all')
    plans = db.relationship('MembershipPlan', backref='gym', lazy='dynamic', passive_deletes='all')
    memberships = db.relationship('Membership', backref='gym', lazy='dynamic', passive_deletes='all')
    check_ins = db.relationship('CheckIn', backref='gym', lazy='dynamic', passive_deletes='all')
    payments = db.relationship('Payment', backref='gym', lazy='dynamic', passive_deletes='all')

    def __repr__(self):
        return f'<Gym {self.name}>'

    def child_counts(self):
        """Rows of every table that reference this gym, tombstoned ones included"""
        return {
            'users': self.users.count(),
            'members': self.members.count(),
            'membership_plans': self.plans.count(),
            'memberships': self.memberships.count(),
            'checkins': self.check_ins.count(),
            'payments': self.payments.count(),
        }
