from feedhub.extensions import db
from sqlalchemy import func

FEED_TYPES = ('RSS', 'RSS2', 'ATOM')


class Feed(db.Model):
    __tablename__ = 'feeds'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(256), nullable=False)
    feed_url = db.Column(db.String(2048), nullable=False, unique=True)
    feed_type = db.Column(db.String(8), default='RSS2')
    journal_name = db.Column(db.String(256))
    is_active = db.Column(db.Boolean, default=True)
    sync_interval_min = db.Column(db.Integer, default=60)
    last_sync_at = db.Column(db.DateTime(timezone=True))
    error_count = db.Column(db.Integer, default=0)
    last_error = db.Column(db.String(512))
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), onupdate=func.now())

    articles = db.relationship('Article', back_populates='feed', lazy='dynamic')

    __table_args__ = (
        db.Index('ix_feeds_active_last_sync', 'is_active', 'last_sync_at'),
    )

    def health_state(self):
        if not self.is_active:
            return 'inactive'
        if (self.error_count or 0) >= 2:
            return 'degraded'
        if self.last_sync_at is None:
            return 'pending'
        return 'healthy'

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'feed_url': self.feed_url,
            'feed_type': self.feed_type,
            'journal_name': self.journal_name,
            'is_active': self.is_active,
            'sync_interval_min': self.sync_interval_min,
            'last_sync_at': self.last_sync_at.isoformat() if self.last_sync_at else None,
            'error_count': self.error_count or 0,
            'last_error': self.last_error,
            'health_state': self.health_state(),
        }
