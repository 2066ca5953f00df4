from .user import User
from .novel import Novel, NovelGenre, GENRES
from .chapter import Chapter
from .rating import Rating

__all__ = [
    'User',
    'Novel', 'NovelGenre', 'GENRES',
    'Chapter',
    'Rating',
]
