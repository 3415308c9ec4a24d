"""
Accounts core REST API definitions

This API manages user accounts. Every user resource and every collection
of users carries an entity tag (``ETag``) describing its current state,
which allows user agents to revalidate cached copies with conditional
requests and to detect mid-air collisions when modifying users.
"""

import logging.config
from typing import Any, Callable, Dict, Optional, Union

import fastapi
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import base
from .routers import router
from .. import schemas, __version__
from ..caching import CachePolicyTable, CachingEngine
from ..persistence import database
from ..settings import Settings


DEFAULT_EXCEPTION_HANDLERS = {
    StarletteHTTPException: base.APIException.handle,
    RequestValidationError: base.handle_request_validation_error,
    Exception: base.handle_generic_exception
}


API_V1_DOC = """Accounts core REST API definition version 1

This API requires authentication using JSON web tokens for most of its
endpoints. Logging in with e-mail address and password (see `POST /login`)
yields a token that should be included in the `Authorization` header with
the type `Bearer`. Registering a new user (`POST /users`) doesn't need a token.

The API tries to always return JSON-encoded data to any kind of request,
if return data is necessary for that response. The only exceptions are
`304` (Not Modified) and `204` (No Content), which have no body at all,
and `412` (Precondition Failed), which uses a small conflict body with the
fields `code` and `message` instead of the `APIError` schema used by all
other error responses.

Caching and concurrency control works as follows:

1. Every response describing a user or a list of users contains the header
   fields `ETag`, `Cache-Control` and `Vary`. Single users also carry
   `Last-Modified`, lists of users don't. The entity tag of a list covers
   the users on the page as well as the total number of users. Responses
   are private to the authenticated user and must be revalidated once expired.
2. A `GET` request may contain `If-None-Match` with previously received
   entity tags or (for single users) `If-Modified-Since`. If the resource
   didn't change, the API answers with `304` (Not Modified), an empty body
   and fresh headers.
3. A modifying request (`PUT`, `PATCH`, `POST` on a user, `DELETE`) may
   contain `If-Match` with the entity tag the client's change is based on.
   If the user changed in the meantime, the API answers with `412`
   (Precondition Failed) and the current `ETag`. Values that don't look
   like entity tags at all never match, so they result in `412`, too.
   Requests without `If-Match` are always processed.

The remaining `4xx` error responses are used as usual: `400` for invalid
requests, `401` for missing or invalid tokens, `403` for operations the
authenticated user isn't allowed to perform, `404` for unknown users and
`409` for conflicts like an e-mail address being already in use.
"""


def _make_app(
        title: str,
        version: str,
        description: str,
        exception_handlers: Optional[Dict[Any, Callable]] = None,
        root_redirect: bool = True,
        responses: Optional[Dict[Union[int, str], Dict[str, Any]]] = None,
        **kwargs
) -> fastapi.FastAPI:
    app = fastapi.FastAPI(
        title=title,
        version=version,
        description=description,
        docs_url="/docs",
        redoc_url="/redoc",
        responses=responses or {400: {"model": schemas.APIError}},
        **kwargs
    )

    handlers = exception_handlers or DEFAULT_EXCEPTION_HANDLERS
    for exc in handlers:
        app.add_exception_handler(exc, handlers[exc])

    if root_redirect:
        @app.get("/", include_in_schema=False)
        async def redirect_root():
            return fastapi.responses.RedirectResponse("./docs")

    return app


def create_caching_engine(settings: Settings) -> CachingEngine:
    """
    Create the caching engine with the cache durations of the given settings
    """

    return CachingEngine(policies=CachePolicyTable(settings.caching.durations))


def create_app(
        settings: Optional[Settings] = None,
        configure_logging: bool = True,
        configure_database: bool = True,
        engine: Optional[CachingEngine] = None
) -> fastapi.FastAPI:
    """
    Create a new ``FastAPI`` instance using the specified settings and switches

    This function is conveniently used to allow overwriting the settings
    before launching the application as well as to allow multiple ``FastAPI``
    instances in one program, which in turn makes unit testing much easier.

    :param settings: optional Settings instance (would be created if not present)
    :param configure_logging: switch whether to configure logging
    :param configure_database: switch whether to configure the database
    :param engine: optional caching engine (would be created from the settings if not present)
    :return: new ``FastAPI`` instance
    """

    if settings is None:
        settings = Settings()

    if configure_logging:
        logging.config.dictConfig(settings.logging.model_dump())
    logger = logging.getLogger(__name__)
    logger.debug("Starting application...")

    if configure_database:
        database.init(settings.database.connection, settings.database.debug_sql)

    app = _make_app(
        title="Accounts core REST API",
        version=__version__,
        description=API_V1_DOC,
        responses={400: {"model": schemas.APIError}, 401: {"model": schemas.APIError}}
    )
    app.state.settings = settings
    app.state.caching_engine = engine or create_caching_engine(settings)
    app.include_router(router, prefix="/api")

    logger.debug(f"Registered {len(app.routes)} routes")
    return app


class APIWrapper:
    """
    Wrapper class around the FastAPI main object, accessible via the ``app`` property

    There should be only one global instance of this object, which should only
    export its functionality to hold the ``app`` property. This wrapper can be
    used to allow easy command-line usage via ``uvicorn`` calls. Example:

    .. code-block::

        uvicorn accounts_core.api:api.app
    """

    def __init__(self):
        self._app: Optional[fastapi.FastAPI] = None

    def set_app(self, application: fastapi.FastAPI):
        if not isinstance(application, fastapi.FastAPI):
            raise TypeError
        self._app = application

    @property
    def app(self) -> fastapi.FastAPI:
        """
        Return the ``app`` instance (or create it with default settings if it doesn't exist)
        """

        if self._app is not None:
            return self._app
        self._app = create_app()
        return self._app


api = APIWrapper()
