from .. import db
from .user import utcnow


class Rating(db.Model):
    __tablename__ = 'ratings'
    __table_args__ = (
        db.UniqueConstraint('user_id', 'novel_id', name='uq_rating_user_novel'),
        db.CheckConstraint('value BETWEEN 1 AND 5', name='ck_rating_value_range'),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    novel_id = db.Column(db.Integer, db.ForeignKey('novels.id', ondelete='CASCADE'), nullable=False)
    value = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = db.relationship('User', back_populates='ratings')
    novel = db.relationship('Novel', back_populates='ratings')

    def __repr__(self):
        return f'<Rating user={self.user_id} novel={self.novel_id} value={self.value}>'
