"""
Accounts core router module for authentication
"""

import logging

from argon2.exceptions import VerificationError
from fastapi import APIRouter, Depends
from fastapi.security import OAuth2PasswordRequestForm

from ..base import Unauthorized
from ..dependency import MinimalRequestData
from ..etag import ETag
from .. import auth
from ... import schemas


logger = logging.getLogger(__name__)

router = APIRouter(tags=["Authentication"])


@router.post(
    "/login",
    response_model=schemas.Token,
    responses={401: {"model": schemas.APIError}}
)
async def login(
        data: OAuth2PasswordRequestForm = Depends(),
        local: MinimalRequestData = Depends(MinimalRequestData)
):
    """
    Login using e-mail address and password via the OAuth Password Flow

    Note that this endpoint is the only API endpoint that uses URL-encoded
    form data instead of JSON bodies, since this is enforced by the OAuth
    standard for the Password Flow. The `username` field holds the e-mail
    address of the user. Responses of this endpoint are never cached.

    See RFC 6749, section 1.3.3, for more details.
    """

    ETag(local.request, local.response, local.engine).uncached()
    logger.debug(f"Login request using e-mail address {data.username!r}...")
    try:
        user = auth.check_user_credentials(data.username, data.password, local.session)
    except (ValueError, VerificationError) as exc:
        raise Unauthorized("Invalid credentials", detail=f"username={data.username!r}, password=?") from exc

    logger.info(f"User {user.id} logged in successfully")
    return schemas.Token(
        access_token=auth.create_access_token(user.id, local.config),
        token_type="bearer"
    )
