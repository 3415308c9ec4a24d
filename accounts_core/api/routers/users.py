"""
Accounts core router module for /users requests
"""

import logging

import pydantic
import sqlalchemy
import sqlalchemy.orm
from argon2.exceptions import VerificationError
from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from ..base import BadRequest, Conflict, NotFound
from ..dependency import LocalRequestData, MinimalRequestData
from ..etag import ETag
from .. import auth, helpers
from ...caching import ResourceClass
from ...persistence import models
from ... import schemas


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])

PageSize = pydantic.conint(ge=1, le=100)


def _etag(local: MinimalRequestData) -> ETag:
    return ETag(local.request, local.response, local.engine)


def _list_users(
        query: sqlalchemy.orm.Query,
        page: int,
        page_size: int,
        resource_class: ResourceClass,
        local: LocalRequestData
) -> schemas.UserList:
    users, total = helpers.paginate(query, page, page_size)
    scope = {"page": page, "page_size": page_size, "total": total}
    _etag(local).read_many([u.version for u in users], resource_class, scope)
    return schemas.UserList.create([u.schema for u in users], total, page, page_size)


def _get_visible_user(user_id: str, local: LocalRequestData) -> models.User:
    user = helpers.return_one(user_id, models.User, local.session)
    if not user.is_active and not local.is_admin and not local.owns(user):
        raise NotFound(f"User with ID {user_id!r}")
    return user


def _touch(user: models.User, local: MinimalRequestData):
    user.updated_at = models.utcnow()
    local.session.add(user)
    local.session.commit()


@router.post(
    "",
    status_code=201,
    response_model=schemas.User,
    responses={k: {"model": schemas.APIError} for k in (400, 409)}
)
async def create_new_user(body: schemas.UserCreation, local: MinimalRequestData = Depends(MinimalRequestData)):
    """
    Register a new user account

    This endpoint doesn't need authentication. The response contains the
    entity tag of the new user as well as its location.

    * `409`: if the e-mail address is already in use
    """

    if local.session.query(models.User).filter_by(email=body.email).first() is not None:
        raise Conflict(f"The e-mail address {body.email!r} is already in use.", detail=body.email)

    user = models.User(
        email=body.email,
        display_name=body.display_name,
        first_name=body.first_name,
        last_name=body.last_name,
        hashed_password=auth.hash_password(body.password),
        is_active=True,
        is_admin=False
    )
    local.session.add(user)
    local.session.commit()
    logger.info(f"Created new user {user.id} ({user.email})")

    _etag(local).written(user.version, ResourceClass.OWNED_BY_REQUESTER)
    local.response.headers["Location"] = str(local.request.url_for("get_user_by_id", user_id=user.id))
    return user.schema


@router.get(
    "",
    response_model=schemas.UserList,
    responses={304: {"description": "Not Modified"}, 403: {"model": schemas.APIError}}
)
async def get_all_users(
        page: pydantic.PositiveInt = 1,
        page_size: PageSize = 20,
        include_inactive: bool = False,
        local: LocalRequestData = Depends(LocalRequestData)
):
    """
    Return one page of all users ordered by their ID

    The entity tag of the response describes the users on the requested page
    together with the paging parameters and the total number of users.

    * `403`: if a non-administrator asks for inactive users
    """

    query = local.session.query(models.User)
    if include_inactive:
        local.require_admin()
    else:
        query = query.filter_by(is_active=True)
    return _list_users(query, page, page_size, ResourceClass.COLLECTION, local)


@router.get(
    "/search",
    response_model=schemas.UserList,
    responses={304: {"description": "Not Modified"}, 403: {"model": schemas.APIError}}
)
async def search_for_users(
        term: str = Query(min_length=1, max_length=100),
        page: pydantic.PositiveInt = 1,
        page_size: PageSize = 20,
        include_inactive: bool = False,
        local: LocalRequestData = Depends(LocalRequestData)
):
    """
    Return one page of users whose display name or e-mail address contains the search `term`

    The search is case-insensitive. Search results are cached for a shorter time than
    other collections.

    * `403`: if a non-administrator asks for inactive users
    """

    pattern = f"%{term.strip()}%"
    query = local.session.query(models.User).filter(sqlalchemy.or_(
        models.User.display_name.ilike(pattern),
        models.User.email.ilike(pattern)
    ))
    if include_inactive:
        local.require_admin()
    else:
        query = query.filter_by(is_active=True)
    return _list_users(query, page, page_size, ResourceClass.SEARCH_RESULT, local)


@router.get(
    "/me",
    response_model=schemas.User,
    responses={304: {"description": "Not Modified"}}
)
async def get_own_user(local: LocalRequestData = Depends(LocalRequestData)):
    """
    Return the user account of the authenticated user
    """

    _etag(local).read_one(local.user.version, ResourceClass.OWNED_BY_REQUESTER)
    return local.user.schema


@router.put(
    "/me",
    response_model=schemas.User,
    responses={412: {"model": schemas.PreconditionFailedError}}
)
async def update_own_user(body: schemas.UserUpdate, local: LocalRequestData = Depends(LocalRequestData)):
    """
    Replace the profile of the authenticated user

    * `412`: if the `If-Match` header doesn't match the current entity tag
    """

    etag = _etag(local)
    etag.precondition(local.user.version, ResourceClass.OWNED_BY_REQUESTER)
    for k, v in body.model_dump().items():
        setattr(local.user, k, v)
    _touch(local.user, local)
    etag.written(local.user.version, ResourceClass.OWNED_BY_REQUESTER)
    return local.user.schema


@router.post(
    "/me/password",
    response_model=schemas.User,
    responses={400: {"model": schemas.APIError}, 412: {"model": schemas.PreconditionFailedError}}
)
async def change_own_password(body: schemas.PasswordChange, local: LocalRequestData = Depends(LocalRequestData)):
    """
    Change the password of the authenticated user

    The current password is required as well. Previously issued tokens stay valid.

    * `400`: if the current password is wrong or the confirmation doesn't match
    * `412`: if the `If-Match` header doesn't match the current entity tag
    """

    etag = _etag(local)
    etag.precondition(local.user.version, ResourceClass.OWNED_BY_REQUESTER)
    try:
        auth.check_user_credentials(local.user.email, body.current_password, local.session)
    except VerificationError as exc:
        raise BadRequest("The current password is wrong.", detail=f"user={local.user.id}") from exc

    local.user.hashed_password = auth.hash_password(body.new_password)
    _touch(local.user, local)
    logger.info(f"User {local.user.id} changed their password")
    etag.written(local.user.version, ResourceClass.OWNED_BY_REQUESTER)
    return local.user.schema


@router.get(
    "/{user_id}",
    response_model=schemas.User,
    responses={304: {"description": "Not Modified"}, 404: {"model": schemas.APIError}}
)
async def get_user_by_id(user_id: str, local: LocalRequestData = Depends(LocalRequestData)):
    """
    Return details about a specific user identified by its `user_id`

    Inactive users are only visible to themselves and to administrators.

    * `404`: if the user ID is unknown
    """

    user = _get_visible_user(user_id, local)
    _etag(local).read_one(user.version, helpers.resource_class_of(user, local))
    return user.schema


@router.put(
    "/{user_id}",
    response_model=schemas.User,
    responses={
        **{k: {"model": schemas.APIError} for k in (403, 404)},
        412: {"model": schemas.PreconditionFailedError}
    }
)
async def update_user(user_id: str, body: schemas.UserUpdate, local: LocalRequestData = Depends(LocalRequestData)):
    """
    Replace the profile of a user, which is only allowed for its owner or administrators

    * `403`: if the authenticated user is neither the owner nor an administrator
    * `404`: if the user ID is unknown
    * `412`: if the `If-Match` header doesn't match the current entity tag
    """

    return _modify_user(user_id, body.model_dump(), local)


@router.patch(
    "/{user_id}",
    response_model=schemas.User,
    responses={
        **{k: {"model": schemas.APIError} for k in (403, 404)},
        412: {"model": schemas.PreconditionFailedError}
    }
)
async def patch_user(user_id: str, body: schemas.UserPatch, local: LocalRequestData = Depends(LocalRequestData)):
    """
    Change only the given fields of the profile of a user

    The same access rules and preconditions as for `PUT` apply. Fields
    that are not present in the request body stay untouched.
    """

    changes = body.model_dump(exclude_unset=True)
    if "display_name" in changes and changes["display_name"] is None:
        del changes["display_name"]
    return _modify_user(user_id, changes, local)


def _modify_user(user_id: str, changes: dict, local: LocalRequestData) -> schemas.User:
    user = _get_visible_user(user_id, local)
    helpers.ensure_access(user, local, logger)
    resource_class = helpers.resource_class_of(user, local)

    etag = _etag(local)
    etag.precondition(user.version, resource_class)
    for k, v in changes.items():
        setattr(user, k, v)
    _touch(user, local)
    logger.debug(f"Updated fields {sorted(changes)} of user {user.id}")
    etag.written(user.version, resource_class)
    return user.schema


@router.put(
    "/{user_id}/email",
    response_model=schemas.User,
    responses={
        **{k: {"model": schemas.APIError} for k in (403, 404, 409)},
        412: {"model": schemas.PreconditionFailedError}
    }
)
async def change_email(user_id: str, body: schemas.EmailChange, local: LocalRequestData = Depends(LocalRequestData)):
    """
    Change the e-mail address of a user, which is also the login name

    Only the owner and administrators may change the address.

    * `403`: if the authenticated user is neither the owner nor an administrator
    * `404`: if the user ID is unknown
    * `409`: if the e-mail address is already used by another user
    * `412`: if the `If-Match` header doesn't match the current entity tag
    """

    user = _get_visible_user(user_id, local)
    helpers.ensure_access(user, local, logger)
    resource_class = helpers.resource_class_of(user, local)

    etag = _etag(local)
    etag.precondition(user.version, resource_class)
    other = local.session.query(models.User).filter_by(email=body.new_email).first()
    if other is not None and other.id != user.id:
        raise Conflict(f"The e-mail address {body.new_email!r} is already in use.", detail=body.new_email)

    old_email = user.email
    user.email = body.new_email
    _touch(user, local)
    logger.info(f"Changed e-mail address of user {user.id} from {old_email} to {user.email}")
    etag.written(user.version, resource_class)
    return user.schema


@router.post(
    "/{user_id}/deactivate",
    response_model=schemas.User,
    responses={
        **{k: {"model": schemas.APIError} for k in (403, 404, 409)},
        412: {"model": schemas.PreconditionFailedError}
    }
)
async def deactivate_user(user_id: str, local: LocalRequestData = Depends(LocalRequestData)):
    """
    Deactivate a user account, which prevents any further login (administrators only)

    * `409`: if the user is already inactive or administrators target their own account
    """

    return _set_active_state(user_id, False, local)


@router.post(
    "/{user_id}/reactivate",
    response_model=schemas.User,
    responses={
        **{k: {"model": schemas.APIError} for k in (403, 404, 409)},
        412: {"model": schemas.PreconditionFailedError}
    }
)
async def reactivate_user(user_id: str, local: LocalRequestData = Depends(LocalRequestData)):
    """
    Reactivate a previously deactivated user account (administrators only)

    * `409`: if the user is already active
    """

    return _set_active_state(user_id, True, local)


def _set_active_state(user_id: str, active: bool, local: LocalRequestData) -> schemas.User:
    local.require_admin()
    user = helpers.return_one(user_id, models.User, local.session)

    etag = _etag(local)
    etag.precondition(user.version, ResourceClass.ADMINISTRATIVE)
    if user.is_active == active:
        raise Conflict(f"The user is already {'active' if active else 'inactive'}.", detail=f"user={user.id}")
    if local.owns(user):
        raise Conflict("You can't deactivate your own user account.", detail=f"user={user.id}")

    user.is_active = active
    _touch(user, local)
    logger.info(f"User {user.id} has been {'reactivated' if active else 'deactivated'} by {local.user.id}")
    etag.written(user.version, ResourceClass.ADMINISTRATIVE)
    return user.schema


@router.delete(
    "/{user_id}",
    status_code=204,
    response_class=Response,
    responses={
        **{k: {"model": schemas.APIError} for k in (403, 404, 409)},
        412: {"model": schemas.PreconditionFailedError}
    }
)
async def delete_user(user_id: str, local: LocalRequestData = Depends(LocalRequestData)):
    """
    Delete a user account permanently (administrators only)

    * `409`: if administrators try to delete their own account
    * `412`: if the `If-Match` header doesn't match the current entity tag
    """

    local.require_admin()
    user = helpers.return_one(user_id, models.User, local.session)
    _etag(local).precondition(user.version, ResourceClass.ADMINISTRATIVE)
    if local.owns(user):
        raise Conflict("You can't delete your own user account.", detail=f"user={user.id}")

    local.session.delete(user)
    local.session.commit()
    logger.info(f"User {user_id} has been deleted by {local.user.id}")
    return Response(status_code=204)
