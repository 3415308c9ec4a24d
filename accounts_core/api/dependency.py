"""
Accounts core API dependency library
"""

import logging
from typing import Generator, Optional

import sqlalchemy.exc
import fastapi.datastructures
from fastapi import Depends, Request, Response
from fastapi.security import OAuth2PasswordBearer
from jose import jwt
from sqlalchemy.orm import Session

from . import auth, base
from ..caching import CachingEngine
from ..persistence import database, models
from ..settings import Settings


logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/login")


def get_session() -> Generator[Session, None, None]:
    """
    Return a generator to handle database sessions gracefully
    """

    session = database.get_new_session()

    try:
        yield session
        session.flush()
    except sqlalchemy.exc.DBAPIError as exc:
        details = (exc.statement or "").replace("\n", "")
        logger.exception(f"{type(exc).__name__}: {exc.orig!s} @ {details!r}")
        session.rollback()
        raise
    except sqlalchemy.exc.SQLAlchemyError as exc:
        logger.exception(f"{type(exc).__name__}: {str(exc)}")
        session.rollback()
        raise
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_settings(request: Request) -> Settings:
    settings = getattr(request.app.state, "settings", None)
    if settings is None:
        settings = Settings()
        request.app.state.settings = settings
    return settings


def get_caching_engine(request: Request) -> CachingEngine:
    engine = getattr(request.app.state, "caching_engine", None)
    if engine is None:
        raise RuntimeError("No caching engine has been configured for the application")
    return engine


class MinimalRequestData:
    """
    Collection of minimal dependencies used by unauthenticated path operations
    """

    def __init__(
            self,
            request: Request,
            response: Response,
            session: Session = Depends(get_session),
            config: Settings = Depends(get_settings),
            engine: CachingEngine = Depends(get_caching_engine)
    ):
        self.request = request
        self.response = response
        self.headers: fastapi.datastructures.Headers = request.headers
        self.session = session
        self.config = config
        self.engine = engine


def check_auth_token(
        token: str = Depends(oauth2_scheme),
        config: Settings = Depends(get_settings)
) -> str:
    """
    Validate the bearer token and return the ID of the user it was issued for
    """

    try:
        payload = jwt.decode(
            token,
            auth.get_signing_key(config),
            algorithms=[jwt.ALGORITHMS.HS256],
            options={"require_exp": True, "require_iat": True, "require_sub": True}
        )
    except (jwt.JWTError, ValueError) as exc:
        raise base.Unauthorized("Failed to validate token successfully", detail=str(exc)) from exc

    user_id = payload.get("sub", None)
    if not user_id:
        raise base.Unauthorized("Failed to validate token successfully", detail="missing subject")
    return user_id


class LocalRequestData(MinimalRequestData):
    """
    Collection of core dependencies used by all authenticated path operations

    This class stores references to various important objects that
    will almost certainly be used by request handlers (path operations).
    Note that any dependency added here will be added to the OpenAPI
    definition, if it refers to a Query, Header, Path or Cookie.
    """

    def __init__(
            self,
            request: Request,
            response: Response,
            session: Session = Depends(get_session),
            config: Settings = Depends(get_settings),
            engine: CachingEngine = Depends(get_caching_engine),
            user_id: str = Depends(check_auth_token)
    ):
        super().__init__(request, response, session, config, engine)

        user: Optional[models.User] = session.get(models.User, user_id)
        if user is None or not user.is_active:
            raise base.Unauthorized("Token owner couldn't be determined", detail=f"user={user_id!r}")
        self.user: models.User = user

    @property
    def is_admin(self) -> bool:
        return bool(self.user.is_admin)

    def owns(self, user: models.User) -> bool:
        return self.user.id == user.id

    def require_admin(self):
        if not self.is_admin:
            raise base.Forbidden("Administrator privileges are required for this operation.")
