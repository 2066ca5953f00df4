from .. import db
from .user import utcnow

# Fixed genre enumeration, in display order
GENRES = (
    'Fantasy',
    'Science Fiction',
    'Romance',
    'Mystery',
    'Thriller',
    'Horror',
    'Historical',
    'Adventure',
    'Literary',
    'Young Adult',
    'Comedy',
    'Drama',
)

TITLE_MAX_LENGTH = 100
SYNOPSIS_MAX_LENGTH = 2000


class NovelGenre(db.Model):
    __tablename__ = 'novel_genres'

    novel_id = db.Column(db.Integer, db.ForeignKey('novels.id', ondelete='CASCADE'), primary_key=True)
    genre = db.Column(db.String(40), primary_key=True)

    def __repr__(self):
        return f'<NovelGenre {self.novel_id}:{self.genre}>'


class Novel(db.Model):
    __tablename__ = 'novels'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(TITLE_MAX_LENGTH), nullable=False)
    synopsis = db.Column(db.Text, nullable=False)
    author_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    has_chapters = db.Column(db.Boolean, default=False, nullable=False)
    content = db.Column(db.Text, nullable=True)  # flat novels only

    # Rating aggregate, only ever changed by atomic SQL updates in ratings.py
    rating_total = db.Column(db.Integer, default=0, nullable=False)
    rating_count = db.Column(db.Integer, default=0, nullable=False)
    average_rating = db.Column(db.Float, default=0.0, nullable=False)

    version = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    author = db.relationship('User', backref=db.backref('novels', lazy='dynamic'))
    chapters = db.relationship('Chapter',
                               back_populates='novel',
                               order_by='Chapter.chapter_number',
                               cascade='all, delete-orphan')
    genre_links = db.relationship('NovelGenre', cascade='all, delete-orphan', lazy='selectin')
    ratings = db.relationship('Rating', back_populates='novel', lazy='dynamic',
                              cascade='all, delete')

    __mapper_args__ = {'version_id_col': version}

    @property
    def genres(self):
        names = {link.genre for link in self.genre_links}
        return [g for g in GENRES if g in names]

    @genres.setter
    def genres(self, values):
        wanted = list(dict.fromkeys(values))
        kept = [link for link in self.genre_links if link.genre in wanted]
        have = {link.genre for link in kept}
        self.genre_links = kept + [NovelGenre(genre=g) for g in wanted if g not in have]

    def to_dict(self, include_content=True):
        """Serialize the novel aggregate for the API.

        Only the shape that is present is emitted: a flat novel carries
        ``content``, a chaptered one ``chapters``. Listings pass
        ``include_content=False`` and get ``chapterCount`` instead.
        """
        data = {
            'id': self.id,
            'title': self.title,
            'synopsis': self.synopsis,
            'genres': self.genres,
            'author': {'id': self.author.id, 'name': self.author.name} if self.author else None,
            'hasChapters': self.has_chapters,
            'averageRating': self.average_rating,
            'ratingCount': self.rating_count,
            'totalScore': self.rating_total,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }
        if self.has_chapters:
            if include_content:
                data['chapters'] = [c.to_dict() for c in self.chapters]
            else:
                data['chapterCount'] = len(self.chapters)
        elif include_content:
            data['content'] = self.content
        return {k: v for k, v in data.items() if v is not None}

    def __repr__(self):
        return f'<Novel {self.id}: {self.title}>'
