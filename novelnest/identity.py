import logging
import re

from flask import current_app
from sqlalchemy.exc import IntegrityError

from . import db
from .errors import AuthError, ValidationError
from .models import User
from .transactions import run_in_transaction

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
NAME_MAX_LENGTH = 80
EMAIL_MAX_LENGTH = 120


def _clean_name(name):
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Name is required", details={'field': 'name'})
    name = name.strip()
    if len(name) > NAME_MAX_LENGTH:
        raise ValidationError(f"Name cannot be more than {NAME_MAX_LENGTH} characters",
                              details={'field': 'name'})
    return name


def _clean_email(email):
    if not isinstance(email, str) or not email.strip():
        raise ValidationError("Email is required", details={'field': 'email'})
    email = email.strip().lower()
    if len(email) > EMAIL_MAX_LENGTH or not EMAIL_PATTERN.match(email):
        raise ValidationError("Invalid email address", details={'field': 'email'})
    return email


def _check_password_strength(password, field='password'):
    min_length = current_app.config.get('NOVELNEST_MIN_PASSWORD_LENGTH', 6)
    if not isinstance(password, str) or len(password) < min_length:
        raise ValidationError(f"Password must be at least {min_length} characters",
                              details={'field': field})
    return password


def _email_taken(email, exclude_user_id=None):
    query = User.query.filter_by(email=email)
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    return db.session.query(query.exists()).scalar()


def register_user(name, email, password) -> User:
    name = _clean_name(name)
    email = _clean_email(email)
    _check_password_strength(password)
    if _email_taken(email):
        raise ValidationError("User already exists", details={'field': 'email'})

    def operation():
        user = User(name=name, email=email)
        user.password = password
        db.session.add(user)
        return user

    try:
        user = run_in_transaction(operation, 'register user', retry_on=())
    except IntegrityError:
        # two registrations raced past the check above
        raise ValidationError("User already exists", details={'field': 'email'})
    logger.info("Registered user %s", user.id)
    return user


def authenticate(email, password) -> User:
    """Resolve an email/password pair to a user, or raise ``AuthError``."""
    if not isinstance(email, str) or not isinstance(password, str) or not email or not password:
        raise ValidationError("Email and password are required")
    user = User.query.filter_by(email=email.strip().lower()).first()
    if user is None or not user.verify_password(password):
        logger.info("Failed login attempt for %s", email.strip().lower())
        raise AuthError("Invalid email or password")
    return user


def update_profile(user, name=None, email=None) -> User:
    updates = {}
    if name is not None:
        updates['name'] = _clean_name(name)
    if email is not None:
        updates['email'] = _clean_email(email)
        if _email_taken(updates['email'], exclude_user_id=user.id):
            raise ValidationError("Email is already registered", details={'field': 'email'})
    if not updates:
        raise ValidationError("No profile fields provided")

    user_id = user.id

    def operation():
        target = db.session.get(User, user_id)
        for key, value in updates.items():
            setattr(target, key, value)
        return target

    try:
        updated = run_in_transaction(operation, 'update profile', retry_on=(), user_id=user_id)
    except IntegrityError:
        # another account claimed the address after the check above
        raise ValidationError("Email is already registered", details={'field': 'email'})
    logger.info("Profile updated for user %s (%s)", user_id, ', '.join(sorted(updates)))
    return updated


def change_password(user, current_password, new_password):
    if not isinstance(current_password, str) or not user.verify_password(current_password):
        raise ValidationError("Current password is incorrect", details={'field': 'currentPassword'})
    _check_password_strength(new_password, field='newPassword')
    user_id = user.id

    def operation():
        target = db.session.get(User, user_id)
        target.password = new_password

    run_in_transaction(operation, 'change password', retry_on=(), user_id=user_id)
    logger.info("Password changed for user %s", user_id)
