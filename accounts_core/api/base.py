"""
Accounts core REST API base library
"""

import time
import logging
import secrets
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .. import schemas
from ..caching import ConflictBody


logger = logging.getLogger(__name__)

startup = time.time()
runtime_key = secrets.token_hex(32)


async def handle_generic_exception(request: Request, _: Exception):
    logger.exception("Unhandled exception caught in base exception handler!")
    status_code = 500
    msg = "Unexpected server error. The requested action wasn't completed successfully."

    return JSONResponse(jsonable_encoder(schemas.APIError(
        status=status_code,
        method=request.method,
        request=request.url.path,
        repeat=False,
        message=msg,
        details=""
    )), status_code=status_code)


async def handle_request_validation_error(request: Request, exc: RequestValidationError):
    status_code = 400
    msgs = "\n".join(["\t" + error["msg"] for error in exc.errors()])
    message = f"Failed to process the request:\n{msgs}"

    return JSONResponse(jsonable_encoder(schemas.APIError(
        status=status_code,
        method=request.method,
        request=request.url.path,
        repeat=False,
        message=message,
        details=str(exc.errors())
    )), status_code=status_code)


class APIException(HTTPException):
    """
    Base class for any kind of generic API exception
    """

    def __init__(
            self,
            status_code: int,
            detail: Optional[str],
            repeat: bool = False,
            message: Optional[str] = None,
            headers: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.repeat = repeat
        self.message = message

    @classmethod
    async def handle(cls, request: Request, exc: StarletteHTTPException) -> Response:
        """
        Handle exceptions in a generic way to produce APIError models

        Responses of conditional requests are special: a ``NotModified``
        exception yields an empty body, a ``PreconditionFailed`` exception
        yields its conflict body. Both keep their entity and cache headers.
        """

        status_code = getattr(exc, "status_code", 500)
        repeat = getattr(exc, "repeat", False)
        message = getattr(exc, "message", None) or exc.__class__.__name__
        headers = getattr(exc, "headers", None)

        if isinstance(exc, NotModified):
            return Response(status_code=status_code, headers=headers)
        if isinstance(exc, PreconditionFailed):
            logger.debug(f"Precondition failed @ '{request.method} {request.url.path}' (details: {exc.detail})")
            body = schemas.PreconditionFailedError(**exc.body.dict())
            return JSONResponse(jsonable_encoder(body), status_code=status_code, headers=headers)

        logger.debug(
            f"{type(exc).__name__}: {message} @ '{request.method} "
            f"{request.url.path}' (details: {exc.detail})"
        )
        return JSONResponse(jsonable_encoder(schemas.APIError(
            status=status_code,
            method=request.method,
            request=request.url.path,
            repeat=repeat,
            message=message,
            details=str(exc.detail)
        )), status_code=status_code, headers=headers)


class BadRequest(APIException):
    """
    Exception when the user probably messed something up

    The `message` field must be user-friendly and not too informative!
    """

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(
            status_code=400,
            detail=detail,
            repeat=True,
            message=message
        )


class Unauthorized(APIException):
    """
    Exception when a request lacks valid credentials
    """

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(
            status_code=401,
            detail=detail,
            repeat=False,
            message=message,
            headers={"WWW-Authenticate": "Bearer"}
        )


class Forbidden(APIException):
    """
    Exception when an authenticated user is not allowed to access or modify a resource
    """

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(
            status_code=403,
            detail=detail,
            repeat=False,
            message=message
        )


class NotFound(APIException):
    """
    Exception when a requested resource was not found in the system
    """

    def __init__(self, resource: str, detail: Optional[str] = None):
        super().__init__(
            status_code=404,
            detail=detail,
            repeat=False,
            message=f"{str(resource)!r} was not found."
        )


class Conflict(APIException):
    """
    Exception for invalid states or other data clashes
    """

    def __init__(self, message: str, detail: Optional[str] = None, repeat: bool = False):
        super().__init__(
            status_code=409,
            detail=detail,
            repeat=repeat,
            message=message
        )


class NotModified(APIException):
    """
    Exception when the user agent already has the most recent version of a resource
    """

    def __init__(self, resource: str, headers: Optional[Dict[str, str]] = None):
        super().__init__(
            status_code=304,
            detail=resource,
            repeat=False,
            message="Not Modified",
            headers=headers
        )


class PreconditionFailed(APIException):
    """
    Exception when a conditional request doesn't match the current state of a resource

    This is the optimistic concurrency check of state-changing requests.
    The response carries the ``body`` instead of an ``APIError`` model.
    """

    def __init__(self, resource: str, body: ConflictBody, headers: Optional[Dict[str, str]] = None):
        super().__init__(
            status_code=412,
            detail=resource,
            repeat=False,
            message=body.message,
            headers=headers
        )
        self.body = body
