"""
Helper functions to make writing unit tests for the accounts core easier
"""

import os
import sys
import random
import string
import secrets
import tempfile
import unittest
from typing import Iterable, List, Mapping, Optional, Tuple, Type, Union

import httpx
import pydantic
import sqlalchemy.orm
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine as _Engine

from accounts_core import schemas as _schemas, settings as _settings
from accounts_core.api import auth
from accounts_core.api.api import create_app
from accounts_core.persistence import database, models

from . import conf


class BaseTest(unittest.TestCase):
    """
    A base class for unit tests which introduces simple setup and teardown of unit tests

    If a subclass needs special setup or teardown functionality, it **MUST**
    call the superclasses setup and teardown methods: the superclass setup
    method at the beginning of the subclass setup method, the superclass
    teardown method at the end of the subclass teardown method.
    """

    config_file: Optional[str] = None
    database_url: Optional[str] = None
    _database_file: Optional[str] = None
    _old_config_paths: Optional[List[str]] = None

    def setUp(self) -> None:
        self.config_file = os.path.join(tempfile.gettempdir(), f"config_{os.getpid()}_{secrets.token_hex(8)}.json")
        self._old_config_paths = _settings.CONFIG_PATHS
        _settings.CONFIG_PATHS = [self.config_file]

        if conf.DATABASE_URL is not None:
            self.database_url = conf.DATABASE_URL

        else:
            self._database_file = conf.DATABASE_DEFAULT_FILE_FORMAT.format(
                os.getpid(),
                "".join([random.choice(string.ascii_lowercase) for _ in range(6)])
            )

            try:
                open(self._database_file, "wb").close()
                os.remove(self._database_file)
                self.database_url = conf.DATABASE_URL_FORMAT.format(self._database_file)

            except OSError as exc:
                self.database_url = conf.DATABASE_FALLBACK_URL
                self._database_file = None
                print(
                    f"{exc}: Falling back to in-memory database. This is not recommended!",
                    file=sys.stderr
                )

        config = _settings.get_default_core_config(self.database_url)
        config.database.debug_sql = conf.SQLALCHEMY_ECHOING
        config.server.allow_weak_insecure_password_hashes = True
        config.server.jwt_secret = secrets.token_hex(32)
        with open(self.config_file, "w") as f:
            f.write(config.model_dump_json())

        auth._password_check = None
        database.PRINT_SQLITE_WARNING = False

    def tearDown(self) -> None:
        if database._engine is not None:
            database._engine.dispose()

        if self.database_url != conf.DATABASE_FALLBACK_URL and self._database_file:
            if os.path.exists(self._database_file):
                os.remove(self._database_file)

        if self.config_file and os.path.exists(self.config_file):
            os.remove(self.config_file)
        _settings.CONFIG_PATHS = self._old_config_paths
        auth._password_check = None

    @staticmethod
    def get_db_session() -> sqlalchemy.orm.Session:
        return database.get_new_session()

    def make_user(
            self,
            email: str,
            password: str = "correct horse battery",
            display_name: Optional[str] = None,
            admin: bool = False,
            active: bool = True
    ) -> str:
        """
        Create a user directly in the database and return its ID
        """

        with self.get_db_session() as session:
            user = models.User(
                email=email,
                display_name=display_name or email.split("@")[0],
                hashed_password=auth.hash_password(password),
                is_active=active,
                is_admin=admin
            )
            session.add(user)
            session.commit()
            return user.id


class BasePersistenceTests(BaseTest):
    engine: _Engine
    session: sqlalchemy.orm.Session

    def setUp(self) -> None:
        super().setUp()
        database.init(self.database_url, conf.SQLALCHEMY_ECHOING)
        self.engine = database.get_engine()
        self.session = database.get_new_session()

    def tearDown(self) -> None:
        self.session.close()
        super().tearDown()


class BaseAPITests(BaseTest):
    client: TestClient
    settings: _settings.Settings
    token: Optional[str] = None

    def setUp(self) -> None:
        super().setUp()
        self.settings = _settings.Settings()
        if conf.SERVER_LOGGING_OVERWRITE:
            self.settings.logging = _schemas.config.LoggingConfig(**conf.SERVER_LOGGING_OVERWRITE)
        self.app = create_app(self.settings, configure_logging=conf.SERVER_LOGGING_OVERWRITE is not None)
        self.client = TestClient(self.app)
        self.token = None

    def tearDown(self) -> None:
        self.client.close()
        super().tearDown()

    def assertQuery(
            self,
            endpoint: Tuple[str, str],
            status_code: Union[int, Iterable[int]] = 200,
            json: Optional[Union[dict, pydantic.BaseModel]] = None,
            headers: Optional[dict] = None,
            token: Optional[str] = None,
            r_none: bool = False,
            r_is_json: bool = True,
            r_headers: Optional[Union[Mapping, Iterable]] = None,
            r_schema: Optional[Union[pydantic.BaseModel, Type[pydantic.BaseModel]]] = None,
            **kwargs
    ) -> httpx.Response:
        """
        Do a query to the specified endpoint and return the response

        Besides also carrying the optional JSON data, headers and other keyword arguments,
        this function asserts that the response has the specified status code. Furthermore,
        the optional asserted response headers and asserted response schema can be used,
        where the headers are either an iterable to only assert certain keys or a mapping
        to also assert values, and the schema is either a schema class or an instance
        thereof (in the later case, the values will be compared to the response, too).

        :param endpoint: tuple of the method and the path of the endpoint below ``/api``
        :param status_code: asserted status code(s) of the response
        :param json: optional dictionary or model holding the request data
        :param headers: optional set of headers to sent in the request
        :param token: optional bearer token replacing the token of the last login
        :param r_none: switch to expect no (=empty) result and skip all other response content checks
        :param r_is_json: switch to check that the response contains JSON data
        :param r_headers: optional set of headers which are asserted in the response
        :param r_schema: optional class or instance of a response schema to be asserted
        :param kwargs: dict of any further keyword arguments, passed to ``TestClient.request``
        :return: response to the requested resource
        """

        method, path = endpoint
        if not path.startswith("/"):
            path = "/" + path
        if isinstance(json, pydantic.BaseModel):
            json = json.model_dump(mode="json")

        headers = dict(headers or {})
        if token or self.token:
            headers.setdefault("Authorization", f"Bearer {token or self.token}")
        response = self.client.request(method.upper(), "/api" + path, json=json, headers=headers, **kwargs)

        if isinstance(status_code, int):
            self.assertEqual(status_code, response.status_code, response.text)
        else:
            self.assertIn(response.status_code, list(status_code), response.text)

        if r_headers is not None:
            for k in (r_headers.keys() if isinstance(r_headers, Mapping) else r_headers):
                self.assertIsNotNone(response.headers.get(k), response.headers)
                if isinstance(r_headers, Mapping):
                    self.assertEqual(r_headers[k], response.headers.get(k), response.headers)

        if r_none:
            self.assertEqual("", response.text)

        elif r_is_json:
            try:
                self.assertIsNotNone(response.json())
            except ValueError:
                self.fail(("No JSON content detected", response.headers, response.text))

            if r_schema and isinstance(r_schema, pydantic.BaseModel):
                self.assertEqual(r_schema, type(r_schema)(**response.json()), response.json())
            elif r_schema and isinstance(r_schema, type) and issubclass(r_schema, pydantic.BaseModel):
                self.assertTrue(r_schema(**response.json()), response.json())

        return response

    def login(self, email: str, password: str = "correct horse battery") -> str:
        response = self.client.post(
            "/api/login",
            data={"grant_type": "password", "username": email, "password": password}
        )
        if response.status_code != 200:
            self.fail(f"Failed to login ({response.status_code}): {response.text}")
        self.token = response.json()["access_token"]
        return self.token

    def make_and_login_user(self, email: str, admin: bool = False) -> Tuple[str, str]:
        user_id = self.make_user(email, admin=admin)
        return user_id, self.login(email)

    def get_user(self, user_id: str, token: Optional[str] = None) -> _schemas.User:
        return _schemas.User(**self.assertQuery(("GET", f"/users/{user_id}"), token=token).json())
