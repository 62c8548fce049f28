"""User registration, login and account recovery."""

from __future__ import annotations

import logging
from typing import Dict, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from werkzeug.security import check_password_hash, generate_password_hash

from .db import is_unique_violation, unit_of_work
from .errors import AlreadyExists, InvalidInput, NotFound
from .models import TRACKING_OPTIONS, User, db
from .validation import is_valid_email, is_valid_username, validate_password

logger = logging.getLogger(__name__)

USERNAME_FORMAT_ERROR = "Username can only contain letters, numbers, and underscores"


def _normalize_answer(answer: str) -> str:
    return (answer or "").strip().lower()


def _check_password(password: str) -> None:
    problem = validate_password(password)
    if problem:
        raise InvalidInput(problem)


def register_user(username, password, name, email, security_question, security_answer) -> User:
    fields = [username, password, name, email, security_question, security_answer]
    if not all(isinstance(v, str) and v.strip() for v in fields):
        raise InvalidInput("All fields are required")
    username = username.strip()
    email = email.strip()
    if not is_valid_email(email):
        raise InvalidInput("Invalid email format")
    _check_password(password)
    if not is_valid_username(username):
        raise InvalidInput(USERNAME_FORMAT_ERROR)

    existing = db.session.scalar(
        select(User.id).where(or_(User.username == username, User.email == email))
    )
    if existing is not None:
        raise AlreadyExists("Username or email already exists")

    user = User(
        username=username,
        name=name.strip(),
        email=email,
        password_hash=generate_password_hash(password),
        security_question=security_question.strip(),
        security_answer_hash=generate_password_hash(_normalize_answer(security_answer)),
        tracking_option="both",
    )
    try:
        with unit_of_work() as session:
            session.add(user)
            session.flush()
    except IntegrityError as exc:
        if is_unique_violation(exc):
            raise AlreadyExists("Username or email already exists") from exc
        raise
    logger.info("registered user=%s", user.id)
    return user


def authenticate(username, password) -> User:
    if not username or not password:
        raise InvalidInput("Username and password are required")
    username = str(username).strip()
    if not is_valid_username(username):
        raise InvalidInput("Invalid username format. " + USERNAME_FORMAT_ERROR)
    user = db.session.execute(select(User).where(User.username == username)).scalar_one_or_none()
    if user is None or not check_password_hash(user.password_hash, password):
        raise InvalidInput("Invalid credentials")
    return user


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


def user_profile(user: User) -> Dict[str, object]:
    return {
        "userId": user.id,
        "username": user.username,
        "name": user.name,
        "email": user.email,
        "trackingOption": user.tracking_option,
        "createdAt": user.created_at.isoformat(),
    }


def set_tracking_option(user_id: int, option) -> User:
    option = (option or "").strip().lower() if isinstance(option, str) else option
    if option not in TRACKING_OPTIONS:
        raise InvalidInput("Tracking option must be income, expenses or both")
    with unit_of_work():
        user = get_user(user_id)
        user.tracking_option = option
    logger.info("user=%s tracking_option=%s", user_id, option)
    return user


def find_username(email) -> User:
    if not email:
        raise InvalidInput("Email is required")
    email = str(email).strip()
    if not is_valid_email(email):
        raise InvalidInput("Invalid email format")
    user = db.session.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if user is None:
        raise NotFound("No account found with this email address")
    return user


def start_password_reset(username: Optional[str] = None, email: Optional[str] = None) -> User:
    """Look up the user whose security question must be answered."""
    if not username and not email:
        raise InvalidInput("Username or email is required")
    if email:
        if not is_valid_email(email):
            raise InvalidInput("Invalid email format")
        stmt = select(User).where(User.email == email.strip())
    else:
        if not is_valid_username(username):
            raise InvalidInput("Invalid username format. " + USERNAME_FORMAT_ERROR)
        stmt = select(User).where(User.username == username.strip())
    user = db.session.execute(stmt).scalar_one_or_none()
    if user is None:
        raise NotFound("User not found")
    return user


def reset_password(user_id, security_answer, new_password) -> None:
    if not user_id or not security_answer or not new_password:
        raise InvalidInput("All fields are required")
    _check_password(new_password)
    try:
        user_key = int(user_id)
    except (TypeError, ValueError) as exc:
        raise NotFound("User not found") from exc
    with unit_of_work():
        user = get_user(user_key)
        if not check_password_hash(user.security_answer_hash, _normalize_answer(security_answer)):
            raise InvalidInput("Incorrect security answer")
        user.password_hash = generate_password_hash(new_password)
    logger.info("user=%s reset password", user_key)
