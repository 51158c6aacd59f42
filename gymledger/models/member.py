from sqlalchemy.orm import validates

from gymledger import db
from gymledger.exceptions import BusinessRuleViolation
from .enums import Gender, MemberStatus, check_in_clause
from .mixins import TimestampMixin, SoftDeleteMixin

LIVE_ROWS = db.text('deleted_at IS NULL')

# Member codes look like MBR-0042; numbering follows the global row id
MEMBER_CODE_PREFIX = 'MBR'
MEMBER_CODE_WIDTH = 4


def format_member_code(member_id):
    return f'{MEMBER_CODE_PREFIX}-{member_id:0{MEMBER_CODE_WIDTH}d}'


class Member(TimestampMixin, SoftDeleteMixin, db.Model):
    """Member model - Gym members/clients"""
    __tablename__ = 'members'
    __table_args__ = (
        db.CheckConstraint(check_in_clause('gender', Gender), name='ck_members_gender'),
        db.CheckConstraint(check_in_clause('status', MemberStatus), name='ck_members_status'),
        db.CheckConstraint(f"code IS NULL OR code LIKE '{MEMBER_CODE_PREFIX}-%'", name='ck_members_code_format'),
        # Deleted members must not block a returning phone/email
        db.Index('uq_members_gym_phone_live', 'gym_id', 'phone', unique=True,
                 sqlite_where=LIVE_ROWS, postgresql_where=LIVE_ROWS),
        db.Index('uq_members_gym_email_live', 'gym_id', 'email', unique=True,
                 sqlite_where=LIVE_ROWS, postgresql_where=LIVE_ROWS),
        db.Index('idx_members_status', 'gym_id', 'status', 'deleted_at'),
        {'sqlite_autoincrement': True},
    )

    id = db.Column(db.Integer, primary_key=True)
    gym_id = db.Column(db.Integer, db.ForeignKey('gyms.id', ondelete='RESTRICT'), nullable=False, index=True)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False)

    # Assigned right after the row gets its id, never changed afterwards
    code = db.Column(db.String(20), unique=True)

    # Basic info
    full_name = db.Column(db.String(150), nullable=False)
    phone = db.Column(db.String(20), nullable=False)
    email = db.Column(db.String(120))
    gender = db.Column(db.String(1), nullable=False)
    date_of_birth = db.Column(db.Date)

    # Status: ACTIVE, INACTIVE
    status = db.Column(db.String(10), nullable=False, default=MemberStatus.ACTIVE.value)

    # Relationships
    memberships = db.relationship('Membership', backref='member', lazy='dynamic',
                                  order_by='desc(Membership.start_date)', passive_deletes='all')
    check_ins = db.relationship('CheckIn', backref='member', lazy='dynamic',
                                order_by='desc(CheckIn.checked_in_at)', passive_deletes='all')
    payments = db.relationship('Payment', backref='member', lazy='dynamic', passive_deletes='all')

    def __repr__(self):
        return f'<Member {self.code or self.id}>'

    @validates('code')
    def _validate_code(self, key, value):
        if self.code is not None and value != self.code:
            raise BusinessRuleViolation(f'Member code {self.code} is fixed and cannot be replaced')
        return value

    @property
    def is_active_member(self):
        return self.status == MemberStatus.ACTIVE.value

    def tenant_references(self):
        from .user import StaffUser
        return [('staff user', StaffUser, self.created_by)]
