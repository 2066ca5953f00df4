"""Per-user ratings and the novel's rating aggregate.

``Rating`` rows are the source of truth; ``Novel.rating_total``,
``rating_count`` and ``average_rating`` are derived from them. Both are
written in one transaction, and the aggregate is only ever adjusted with
relative SQL updates (``total = total + delta``), so concurrent raters never
overwrite each other's contribution.
"""

import logging
from typing import NamedTuple, Optional

from sqlalchemy import Float, case, cast, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from . import db
from .errors import NotFoundError, ValidationError
from .models import Novel, Rating, User
from .models.user import utcnow
from .transactions import run_in_transaction

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


class RatingConflict(Exception):
    """The rating row changed between our read and our write."""


class RatingResult(NamedTuple):
    average: float
    count: int
    user_rating: int

    def to_dict(self):
        return {'average': self.average, 'count': self.count, 'userRating': self.user_rating}


def validate_rating_value(value):
    # JSON clients may send 5.0 for 5; bool is an int subclass and never a rating
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, bool) or not isinstance(value, int) or not MIN_RATING <= value <= MAX_RATING:
        raise ValidationError(f"Rating must be an integer between {MIN_RATING} and {MAX_RATING}",
                              details={'field': 'rating'})
    return value


def _adjust_aggregate(novel_id, score_delta, count_delta):
    new_total = Novel.rating_total + score_delta
    new_count = Novel.rating_count + count_delta
    stmt = (
        update(Novel)
        .where(Novel.id == novel_id)
        .values(
            rating_total=new_total,
            rating_count=new_count,
            average_rating=case((new_count > 0, cast(new_total, Float) / new_count), else_=0.0),
            version=Novel.version + 1,
            updated_at=Novel.updated_at,
        )
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount != 1:
        # deleted under us; the retry will surface NotFoundError
        raise RatingConflict(f"novel {novel_id} vanished during rating")


def rate_novel(novel_id, user, value) -> RatingResult:
    """Record ``user``'s rating of a novel, replacing any earlier one."""
    value = validate_rating_value(value)
    user_id = user.id

    def operation():
        if db.session.get(User, user_id) is None:
            raise NotFoundError("User not found", details={'user_id': user_id})
        if db.session.get(Novel, novel_id) is None:
            raise NotFoundError("Novel not found", details={'novel_id': novel_id})

        existing = db.session.execute(
            select(Rating.id, Rating.value).where(Rating.user_id == user_id, Rating.novel_id == novel_id)
        ).first()

        if existing is None:
            db.session.add(Rating(user_id=user_id, novel_id=novel_id, value=value))
            # Raises IntegrityError if the same user's first rating raced us
            db.session.flush()
            _adjust_aggregate(novel_id, value, 1)
        elif existing.value != value:
            swapped = db.session.execute(
                update(Rating)
                .where(Rating.id == existing.id, Rating.value == existing.value)
                .values(value=value, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if swapped.rowcount != 1:
                raise RatingConflict(f"rating {existing.id} changed concurrently")
            _adjust_aggregate(novel_id, value - existing.value, 0)

        row = db.session.execute(
            select(Novel.average_rating, Novel.rating_count).where(Novel.id == novel_id)
        ).one()
        return RatingResult(average=row.average_rating, count=row.rating_count, user_rating=value)

    result = run_in_transaction(operation, 'rate novel',
                                retry_on=(RatingConflict, IntegrityError, StaleDataError),
                                novel_id=novel_id, user_id=user_id)
    logger.info("User %s rated novel %s: %d (average %.2f over %d)",
                user_id, novel_id, value, result.average, result.count)
    return result


def get_rating_summary(novel_id, user=None) -> dict:
    novel = db.session.get(Novel, novel_id)
    if novel is None:
        raise NotFoundError("Novel not found", details={'novel_id': novel_id})
    user_rating: Optional[int] = None
    if user is not None:
        user_rating = db.session.execute(
            select(Rating.value).where(Rating.user_id == user.id, Rating.novel_id == novel_id)
        ).scalar()
    return {
        'average': novel.average_rating,
        'count': novel.rating_count,
        'userRating': user_rating,
    }


def list_user_ratings(user) -> list:
    rows = db.session.execute(
        select(Rating.novel_id, Rating.value, Novel.title)
        .join(Novel, Novel.id == Rating.novel_id)
        .where(Rating.user_id == user.id)
        .order_by(Rating.updated_at.desc(), Rating.id.desc())
    ).all()
    return [{'novelId': r.novel_id, 'title': r.title, 'rating': r.value} for r in rows]
