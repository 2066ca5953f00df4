import logging

from flask import current_app
from sqlalchemy.orm.exc import StaleDataError

from . import db
from .errors import ConflictError

logger = logging.getLogger(__name__)


def run_in_transaction(operation, action, retry_on=(StaleDataError,), **context):
    """Run ``operation`` and commit, retrying on optimistic-concurrency conflicts.

    ``operation`` must re-read everything it needs: after a rollback every
    instance in the session is expired. Any other exception rolls the session
    back and propagates, so a failed write never leaves partial state behind.
    Once ``NOVELNEST_MAX_WRITE_ATTEMPTS`` conflicts have been seen a
    ``ConflictError`` is raised.
    """
    max_attempts = current_app.config.get('NOVELNEST_MAX_WRITE_ATTEMPTS', 3)
    for attempt in range(1, max_attempts + 1):
        try:
            result = operation()
            db.session.commit()
            return result
        except retry_on as e:
            db.session.rollback()
            logger.warning("%s conflicted (attempt %d/%d, %s): %s",
                           action, attempt, max_attempts, context, e)
        except Exception:
            db.session.rollback()
            raise
    logger.error("%s gave up after %d attempts (%s)", action, max_attempts, context)
    raise ConflictError("Concurrent update conflict, please retry", details=context)
