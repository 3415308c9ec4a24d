"""
Accounts core database models
"""

import uuid
import datetime

from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.dialects import mysql

from .database import Base
from .. import schemas
from ..caching import ResourceVersion
from ..caching.fingerprint import to_utc


def utcnow() -> datetime.datetime:
    """
    Return the current time as naive UTC datetime, as stored in the database
    """

    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


# microseconds are part of the entity tags, so backends must not round to whole seconds
Timestamp = DateTime().with_variant(mysql.DATETIME(fsp=6), "mysql", "mariadb")


def _make_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """
    Model representing one user account of the API
    """

    __tablename__ = "users"

    id: str = Column(String(36), nullable=False, primary_key=True, default=_make_id)
    email: str = Column(String(254), nullable=False, unique=True)
    """Lower-cased e-mail address which is also used as login name"""
    display_name: str = Column(String(100), nullable=False)
    first_name: str = Column(String(50), nullable=True)
    last_name: str = Column(String(50), nullable=True)
    hashed_password: str = Column(String(255), nullable=False)
    is_active: bool = Column(Boolean, nullable=False, default=True)
    """Flag indicating a disabled user account, which can't login anymore"""
    is_admin: bool = Column(Boolean, nullable=False, default=False)
    created_at: datetime.datetime = Column(Timestamp, nullable=False, default=utcnow)
    updated_at: datetime.datetime = Column(Timestamp, nullable=False, default=utcnow, onupdate=utcnow)
    """Time of the last modification, the source of the entity tag of the user"""

    @property
    def version(self) -> ResourceVersion:
        """
        Identity and modification time of the user used to calculate entity tags
        """

        return ResourceVersion(self.id, self.updated_at)

    @property
    def schema(self) -> schemas.User:
        """
        Pydantic schema representation of the database model that can be sent to clients
        """

        return schemas.User(
            id=self.id,
            email=self.email,
            display_name=self.display_name,
            first_name=self.first_name,
            last_name=self.last_name,
            is_active=self.is_active,
            is_admin=self.is_admin,
            created_at=to_utc(self.created_at),
            updated_at=to_utc(self.updated_at)
        )

    def __repr__(self) -> str:
        return f"User(id={self.id}, email={self.email}, active={self.is_active})"
