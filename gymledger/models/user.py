from werkzeug.security import generate_password_hash, check_password_hash
from flask_login import UserMixin

from gymledger import db, login_manager
from .enums import StaffRole, AccountStatus, check_in_clause
from .mixins import TimestampMixin, SoftDeleteMixin


class StaffUser(UserMixin, TimestampMixin, SoftDeleteMixin, db.Model):
    """Staff user model - owners and front-desk staff of one gym"""
    __tablename__ = 'users'
    __table_args__ = (
        db.CheckConstraint(check_in_clause('role', StaffRole), name='ck_users_role'),
        db.CheckConstraint(check_in_clause('status', AccountStatus), name='ck_users_status'),
        {'sqlite_autoincrement': True},
    )

    id = db.Column(db.Integer, primary_key=True)
    gym_id = db.Column(db.Integer, db.ForeignKey('gyms.id', ondelete='RESTRICT'), nullable=False, index=True)

    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    phone = db.Column(db.String(20))
    password_hash = db.Column(db.String(255), nullable=False)

    # Role: OWNER can manage staff and plans, STAFF runs the front desk
    role = db.Column(db.String(10), nullable=False, default=StaffRole.STAFF.value)
    status = db.Column(db.String(10), nullable=False, default=AccountStatus.ACTIVE.value)

    last_login = db.Column(db.DateTime)

    # Relationships
    created_members = db.relationship('Member', backref='created_by_user',
                                      foreign_keys='Member.created_by', lazy='dynamic',
                                      passive_deletes='all')

    def __repr__(self):
        return f'<StaffUser {self.email}>'

    def set_password(self, password):
        """Set password hash"""
        self.password_hash = generate_password_hash(password, method='pbkdf2:sha256')

    def check_password(self, password):
        """Check password"""
        return check_password_hash(self.password_hash, password)

    @property
    def is_owner(self):
        return self.role == StaffRole.OWNER.value

    @property
    def is_active(self):
        """Flask-Login refuses sessions for inactive or off-boarded accounts"""
        return self.status == AccountStatus.ACTIVE.value and not self.is_deleted

    def tenant_references(self):
        return []


@login_manager.user_loader
def load_user(user_id):
    """Load staff user for Flask-Login"""
    user = db.session.get(StaffUser, int(user_id))
    if user is None or not user.is_active:
        return None
    return user
