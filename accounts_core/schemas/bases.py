"""
Accounts core schemas for users and authentication
"""

import datetime
from typing import List, Optional

import pydantic


__all__ = [
    "Token",
    "User",
    "UserCreation",
    "UserUpdate",
    "UserPatch",
    "UserList",
    "EmailChange",
    "PasswordChange",
    "Health"
]


Name = pydantic.constr(strip_whitespace=True, min_length=1, max_length=100)
OptionalName = Optional[pydantic.constr(strip_whitespace=True, max_length=50)]
Email = pydantic.constr(strip_whitespace=True, to_lower=True, max_length=254, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
Password = pydantic.constr(min_length=8, max_length=128)


class Token(pydantic.BaseModel):
    access_token: str
    token_type: str


class User(pydantic.BaseModel):
    id: str
    email: str
    display_name: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_active: bool
    is_admin: bool
    created_at: datetime.datetime
    updated_at: datetime.datetime


class UserCreation(pydantic.BaseModel):
    email: Email
    display_name: Name
    password: Password
    first_name: OptionalName = None
    last_name: OptionalName = None


class UserUpdate(pydantic.BaseModel):
    display_name: Name
    first_name: OptionalName = None
    last_name: OptionalName = None


class UserPatch(pydantic.BaseModel):
    display_name: Optional[Name] = None
    first_name: OptionalName = None
    last_name: OptionalName = None


class EmailChange(pydantic.BaseModel):
    new_email: Email


class PasswordChange(pydantic.BaseModel):
    current_password: str
    new_password: Password
    confirm_new_password: str

    @pydantic.model_validator(mode="after")
    def check_confirmation(self) -> "PasswordChange":
        if self.new_password != self.confirm_new_password:
            raise ValueError("The new password and its confirmation don't match")
        return self


class UserList(pydantic.BaseModel):
    users: List[User]
    total_count: pydantic.NonNegativeInt
    page: pydantic.PositiveInt
    page_size: pydantic.PositiveInt
    total_pages: pydantic.NonNegativeInt
    has_next_page: bool
    has_previous_page: bool

    @classmethod
    def create(cls, users: List[User], total_count: int, page: int, page_size: int) -> "UserList":
        total_pages = (total_count + page_size - 1) // page_size
        return cls(
            users=users,
            total_count=total_count,
            page=page,
            page_size=page_size,
            total_pages=total_pages,
            has_next_page=page < total_pages,
            has_previous_page=page > 1
        )


class Health(pydantic.BaseModel):
    status: str
    uptime: float
