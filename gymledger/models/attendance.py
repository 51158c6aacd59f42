from gymledger import db
from .mixins import TimestampMixin, SoftDeleteMixin


class CheckIn(TimestampMixin, SoftDeleteMixin, db.Model):
    """Member check-in records"""
    __tablename__ = 'checkins'
    __table_args__ = (
        db.Index('idx_checkins_date', 'gym_id', 'checked_in_at'),
        db.Index('idx_checkins_member', 'member_id', 'checked_in_at'),
        {'sqlite_autoincrement': True},
    )

    id = db.Column(db.Integer, primary_key=True)
    gym_id = db.Column(db.Integer, db.ForeignKey('gyms.id', ondelete='RESTRICT'), nullable=False)
    member_id = db.Column(db.Integer, db.ForeignKey('members.id', ondelete='RESTRICT'), nullable=False)

    # Membership that granted the admission
    membership_id = db.Column(db.Integer, db.ForeignKey('memberships.id', ondelete='RESTRICT'))

    checked_in_at = db.Column(db.DateTime, nullable=False)

    # Staff name or kiosk identifier; self check-ins have no staff row to point at
    admitted_by = db.Column(db.String(100), nullable=False)

    membership = db.relationship('Membership', backref=db.backref('check_ins', lazy='dynamic'))

    def __repr__(self):
        return f'<CheckIn {self.member_id} - {self.checked_in_at}>'

    @property
    def check_in_date(self):
        """Check-in date only"""
        return self.checked_in_at.date()

    def tenant_references(self):
        from .member import Member
        from .membership import Membership
        refs = [('member', Member, self.member_id)]
        if self.membership_id is not None:
            refs.append(('membership', Membership, self.membership_id))
        return refs
