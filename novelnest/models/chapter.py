from .. import db


class Chapter(db.Model):
    __tablename__ = 'chapters'
    __table_args__ = (
        db.UniqueConstraint('novel_id', 'chapter_number', name='uq_chapter_novel_number'),
    )

    id = db.Column(db.Integer, primary_key=True)
    novel_id = db.Column(db.Integer, db.ForeignKey('novels.id', ondelete='CASCADE'), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    content = db.Column(db.Text, nullable=False)
    # 1-based, contiguous within a novel
    chapter_number = db.Column(db.Integer, nullable=False)

    novel = db.relationship('Novel', back_populates='chapters')

    def to_dict(self):
        return {
            'title': self.title,
            'content': self.content,
            'chapterNumber': self.chapter_number,
        }

    def __repr__(self):
        return f'<Chapter {self.novel_id}#{self.chapter_number}: {self.title}>'
