"""
Authentication helper library for the core REST API
"""

import datetime
import logging
from typing import Optional

from jose import jwt
from sqlalchemy.orm import Session
from argon2 import PasswordHasher, profiles

from . import base
from ..persistence import models
from ..settings import Settings


logger = logging.getLogger(__name__)

_password_check: Optional[PasswordHasher] = None


def hash_password(password: str) -> str:
    return _get_password_check().hash(password)


def check_user_credentials(email: str, password: str, session: Session) -> models.User:
    """
    Check the correctness of a password for a given user, raise some error otherwise

    :raises ValueError: if the user is unknown or disabled
    :raises argon2.exceptions.VerificationError: if the password doesn't match
    """

    checker = _get_password_check()
    user = session.query(models.User).filter_by(email=email.strip().lower()).first()
    if user is None:
        raise ValueError(f"Unknown user {email!r}!")
    if not user.is_active:
        raise ValueError(f"User {email!r} is disabled!")
    checker.verify(user.hashed_password, password)
    if checker.check_needs_rehash(user.hashed_password):
        logger.debug(f"Rehashing password of user {user.id}")
        user.hashed_password = checker.hash(password)
        session.add(user)
        session.commit()
    return user


def _get_password_check() -> PasswordHasher:
    global _password_check
    if _password_check is not None:
        return _password_check
    config = Settings()
    if config.server.allow_weak_insecure_password_hashes:
        _password_check = PasswordHasher.from_parameters(profiles.CHEAPEST)
    else:
        _password_check = PasswordHasher.from_parameters(profiles.RFC_9106_LOW_MEMORY)
    return _password_check


def get_signing_key(settings: Settings) -> str:
    return settings.server.jwt_secret or base.runtime_key


def create_access_token(user_id: str, settings: Settings) -> str:
    now = datetime.datetime.now(datetime.timezone.utc)
    return jwt.encode(
        {
            "exp": now + datetime.timedelta(minutes=settings.server.token_expiration_minutes),
            "iat": now,
            "sub": user_id
        },
        get_signing_key(settings),
        algorithm=jwt.ALGORITHMS.HS256
    )
