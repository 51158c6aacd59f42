from gymledger import db
from gymledger.utils.helpers import utcnow


class TimestampMixin:
    """created_at / updated_at pair"""
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class SoftDeleteMixin:
    """Tombstone column plus the mechanics of setting and clearing it.

    Whether a row may be tombstoned is decided by the owning service; this
    mixin carries no guards of its own.
    """
    deleted_at = db.Column(db.DateTime, nullable=True, index=True)

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    def mark_deleted(self, at=None):
        self.deleted_at = at or utcnow()

    def clear_deleted(self):
        self.deleted_at = None

    @classmethod
    def live(cls):
        """Filter expression for rows that are not tombstoned"""
        return cls.deleted_at.is_(None)
