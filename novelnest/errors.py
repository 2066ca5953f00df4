"""Error taxonomy shared by the services and the JSON API."""

import logging
from typing import Optional

from flask import jsonify, request
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class NovelNestError(Exception):
    """Base exception for all domain errors."""

    status_code = 500

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message

    def to_dict(self) -> dict:
        data = {'error': self.message}
        if self.details:
            data['details'] = self.details
        return data


class ValidationError(NovelNestError):
    """Malformed or missing input."""

    status_code = 400


class AuthError(NovelNestError):
    """Missing or invalid credential."""

    status_code = 401

    def __init__(self, message: str = "Authentication required", details: Optional[dict] = None):
        super().__init__(message, details)


class ForbiddenError(NovelNestError):
    """Authenticated, but not allowed to touch this resource."""

    status_code = 403


class NotFoundError(NovelNestError):
    status_code = 404


class ConflictError(NovelNestError):
    """Concurrent-update contention that survived every retry."""

    status_code = 409


def register_error_handlers(app):
    from . import db

    @app.errorhandler(NovelNestError)
    def handle_domain_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        # Keep the regular HTML pages for anything outside the API
        if not request.path.startswith('/api') or error.code < 400:
            return error
        return jsonify({'error': error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        db.session.rollback()
        return jsonify({'error': 'Internal server error'}), 500
