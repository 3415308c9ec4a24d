"""
Generic helper library for the core REST API
"""

import logging
from typing import Optional, Tuple, Type

import sqlalchemy
import sqlalchemy.orm

from .base import Forbidden, NotFound
from .dependency import LocalRequestData
from ..caching import ResourceClass
from ..persistence import models
from ..misc.logger import enforce_logger


def return_one(
        object_id: str,
        model: Type[models.Base],
        session: sqlalchemy.orm.Session
) -> models.Base:
    """
    Return the object of a given model that's identified by its object ID

    :param object_id: internal ID (primary key in the database) of the model
    :param model: class of a SQLAlchemy model
    :param session: database session which should be used to perform the query
    :return: resulting entity as SQLAlchemy model
    :raises NotFound: when the specified object ID returned no result
    """

    obj = session.get(model, object_id)
    if obj is None:
        raise NotFound(f"{model.__name__} with ID {object_id!r}")
    return obj


def ensure_access(user: models.User, local: LocalRequestData, logger: Optional[logging.Logger] = None):
    """
    Ensure that the requesting user owns the given user account or is an administrator

    :raises Forbidden: when the requesting user is neither the owner nor an administrator
    """

    if local.owns(user) or local.is_admin:
        return
    enforce_logger(logger).info(f"Denied access of user {local.user.id} to user {user.id}")
    raise Forbidden("You are not allowed to access or modify this user.", detail=f"user={user.id}")


def resource_class_of(user: models.User, local: LocalRequestData) -> ResourceClass:
    if local.owns(user):
        return ResourceClass.OWNED_BY_REQUESTER
    return ResourceClass.OWNED_BY_OTHER


def paginate(query: sqlalchemy.orm.Query, page: int, page_size: int, order_by=models.User.id) -> Tuple[list, int]:
    """
    Return the models of one page of the query ordered by their ID together with the total number of models
    """

    total = query.count()
    items = query.order_by(sqlalchemy.asc(order_by)).offset((page - 1) * page_size).limit(page_size).all()
    return items, total
