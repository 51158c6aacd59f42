from sqlalchemy.orm import validates

from gymledger import db
from gymledger.exceptions import BusinessRuleViolation
from gymledger.utils.helpers import utcnow
from .enums import PaymentPurpose, PaymentMethod, PaymentStatus, check_in_clause
from .mixins import TimestampMixin, SoftDeleteMixin


class Payment(TimestampMixin, SoftDeleteMixin, db.Model):
    """Payment records - kept for good, whatever happens to the member"""
    __tablename__ = 'payments'
    __table_args__ = (
        db.CheckConstraint('amount >= 0', name='ck_payments_amount'),
        db.CheckConstraint(check_in_clause('purpose', PaymentPurpose), name='ck_payments_purpose'),
        db.CheckConstraint(check_in_clause('method', PaymentMethod), name='ck_payments_method'),
        db.CheckConstraint(check_in_clause('status', PaymentStatus), name='ck_payments_status'),
        db.Index('idx_payments_date', 'gym_id', 'paid_at'),
        {'sqlite_autoincrement': True},
    )

    # Allowed status moves; everything else is an InvalidStatusTransition
    TRANSITIONS = {
        PaymentStatus.PENDING.value: (PaymentStatus.PAID.value, PaymentStatus.CANCELLED.value),
        PaymentStatus.PAID.value: (PaymentStatus.REFUNDED.value,),
        PaymentStatus.REFUNDED.value: (),
        PaymentStatus.CANCELLED.value: (),
    }

    id = db.Column(db.Integer, primary_key=True)
    gym_id = db.Column(db.Integer, db.ForeignKey('gyms.id', ondelete='RESTRICT'), nullable=False)
    member_id = db.Column(db.Integer, db.ForeignKey('members.id', ondelete='RESTRICT'), nullable=False)
    membership_id = db.Column(db.Integer, db.ForeignKey('memberships.id', ondelete='RESTRICT'))

    amount = db.Column(db.Numeric(12, 2), nullable=False)

    # Purpose: MEMBERSHIP, CLASS, RETAIL
    purpose = db.Column(db.String(20), nullable=False)
    # Method: CASH, DEBIT_CARD, BANK_TRANSFER, E_WALLET
    method = db.Column(db.String(20), nullable=False)
    # Status: PENDING, PAID, REFUNDED, CANCELLED
    status = db.Column(db.String(20), nullable=False, default=PaymentStatus.PENDING.value)

    paid_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    status_changed_at = db.Column(db.DateTime)
    notes = db.Column(db.Text)

    membership = db.relationship('Membership', backref=db.backref('payments', lazy='dynamic'))

    def __repr__(self):
        return f'<Payment {self.amount} - {self.status}>'

    @validates('amount')
    def _validate_amount(self, key, value):
        # Corrections are new records, never edits
        if self.amount is not None:
            raise BusinessRuleViolation(f'Payment {self.id} amount is immutable')
        return value

    def can_transition_to(self, new_status):
        return new_status in self.TRANSITIONS.get(self.status, ())

    def tenant_references(self):
        from .member import Member
        from .membership import Membership
        refs = [('member', Member, self.member_id)]
        if self.membership_id is not None:
            refs.append(('membership', Membership, self.membership_id))
        return refs
