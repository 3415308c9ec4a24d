"""
Accounts core unit tests for settings, persistence, helpers and the command line
"""

import io
import json
import logging
import argparse
import datetime
import contextlib
import unittest as _unittest

from argon2.exceptions import VerificationError
from sqlalchemy.dialects import mysql
from sqlalchemy.schema import CreateTable

from accounts_core import settings as _settings
from accounts_core.__main__ import add_user, get_parser, promote_user, show_users
from accounts_core.api import auth
from accounts_core.caching import ResourceClass, ResourceVersion
from accounts_core.misc.logger import NoDebugFilter, enforce_logger
from accounts_core.persistence import models

from . import utils


class SettingsTests(utils.BaseTest):
    def test_settings_from_config_file(self):
        with open(self.config_file, "w") as f:
            json.dump({
                "server": {"port": 8765, "allow_weak_insecure_password_hashes": True},
                "caching": {"collection": 15, "administrative": 0},
                "database": {"connection": self.database_url}
            }, f)

        settings = _settings.Settings()
        self.assertEqual(8765, settings.server.port)
        self.assertEqual(self.database_url, settings.database.connection)
        self.assertEqual(15, settings.caching.durations[ResourceClass.COLLECTION])
        self.assertEqual(0, settings.caching.durations[ResourceClass.ADMINISTRATIVE])
        self.assertEqual(300, settings.caching.durations[ResourceClass.OWNED_BY_REQUESTER])
        self.assertEqual(1, settings.logging.version)

        settings = _settings.Settings(server={"port": 9999})
        self.assertEqual(9999, settings.server.port)

    def test_invalid_config_file(self):
        with open(self.config_file, "w") as f:
            f.write("{ no json")
        old_function = _settings.SETTINGS_LOG_ERROR_FUNCTION
        messages = []
        _settings.SETTINGS_LOG_ERROR_FUNCTION = messages.append
        try:
            with self.assertRaises(ValueError):
                _settings.Settings()
        finally:
            _settings.SETTINGS_LOG_ERROR_FUNCTION = old_function
        self.assertEqual(1, len(messages))

        with open(self.config_file, "w") as f:
            json.dump({"caching": {"collection": -5}}, f)
        with self.assertRaises(ValueError):
            _settings.Settings()

    def test_store_default_configuration(self):
        config = _settings.store_configuration(_settings.get_default_core_config("sqlite:///foo.db"), self.config_file)
        self.assertEqual("sqlite:///foo.db", config.database.connection)
        with open(self.config_file) as f:
            content = json.load(f)
        self.assertEqual(_settings.get_default_config()["caching"], content["caching"])
        self.assertEqual("sqlite:///foo.db", _settings.Settings().database.connection)


class LoggerTests(_unittest.TestCase):
    def test_enforce_logger(self):
        self.assertIs(logging.getLogger("accounts_core"), enforce_logger())
        self.assertIs(logging.getLogger("foo"), enforce_logger(fallback="foo"))
        logger = logging.getLogger("bar")
        self.assertIs(logger, enforce_logger(logger))
        with self.assertRaises(TypeError):
            enforce_logger("bar")

    def test_no_debug_filter(self):
        f = NoDebugFilter("multipart.multipart")

        def _record(name: str, level: int) -> logging.LogRecord:
            return logging.LogRecord(name, level, __file__, 1, "message", None, None)

        self.assertFalse(f.filter(_record("multipart.multipart", logging.DEBUG)))
        self.assertFalse(f.filter(_record("multipart.multipart.child", logging.DEBUG)))
        self.assertTrue(f.filter(_record("multipart.multipart", logging.INFO)))
        self.assertTrue(f.filter(_record("accounts_core", logging.DEBUG)))


class PersistenceTests(utils.BasePersistenceTests):
    def test_user_versions_and_schemas(self):
        user = models.User(email="alice@example.org", display_name="Alice", hashed_password=auth.hash_password("secret"))
        self.session.add(user)
        self.session.commit()

        self.assertEqual(36, len(user.id))
        self.assertTrue(user.is_active)
        self.assertFalse(user.is_admin)
        self.assertIsInstance(user.version, ResourceVersion)
        self.assertEqual(user.id, user.version.id)
        self.assertEqual(user.updated_at, user.version.last_modified)

        schema = user.schema
        self.assertEqual(datetime.timezone.utc, schema.updated_at.tzinfo)
        self.assertEqual(user.updated_at, schema.updated_at.replace(tzinfo=None))

        before = user.updated_at
        user.display_name = "Alice L."
        self.session.commit()
        self.assertGreater(user.updated_at, before)
        self.assertLessEqual(user.created_at, before)

    def test_timestamps_keep_fractional_seconds(self):
        ddl = str(CreateTable(models.User.__table__).compile(dialect=mysql.dialect()))
        self.assertEqual(2, ddl.count("DATETIME(6)"), ddl)

        moment = datetime.datetime(2024, 3, 1, 12, 30, 15, 123456)
        user = models.User(email="carol@example.org", display_name="Carol", hashed_password="-", updated_at=moment)
        self.session.add(user)
        self.session.commit()
        user_id = user.id
        with self.get_db_session() as session:
            self.assertEqual(moment, session.get(models.User, user_id).updated_at)

    def test_check_user_credentials(self):
        self.session.add(models.User(
            email="bob@example.org",
            display_name="Bob",
            hashed_password=auth.hash_password("correct horse battery")
        ))
        self.session.commit()

        user = auth.check_user_credentials(" BOB@example.org", "correct horse battery", self.session)
        self.assertEqual("bob@example.org", user.email)
        with self.assertRaises(ValueError):
            auth.check_user_credentials("alice@example.org", "correct horse battery", self.session)
        with self.assertRaises(VerificationError):
            auth.check_user_credentials("bob@example.org", "wrong", self.session)

        user.is_active = False
        self.session.commit()
        with self.assertRaises(ValueError):
            auth.check_user_credentials("bob@example.org", "correct horse battery", self.session)


class StandaloneCLITests(utils.BasePersistenceTests):
    @staticmethod
    def _run(func, *args: str) -> str:
        namespace = get_parser("accounts_core").parse_args(list(args))
        output = io.StringIO()
        with contextlib.redirect_stdout(output):
            result = func(namespace)
        if result != 0:
            raise RuntimeError(f"Command {args} failed with exit code {result}")
        return output.getvalue()

    def test_users_commands(self):
        self._run(add_user, "users", "add", "--email", "Admin@Example.org", "--name", "Admin", "--password", "abc")
        self._run(add_user, "users", "add", "--email", "bob@example.org", "--name", "Bob", "--password", "abc")
        with self.assertRaises(RuntimeError):
            self._run(add_user, "users", "add", "--email", "bob@example.org", "--name", "Bob", "--password", "abc")

        users = json.loads(self._run(show_users, "users", "show", "--json"))
        self.assertEqual(["admin@example.org", "bob@example.org"], [u["email"] for u in users])
        self.assertFalse(any(u["is_admin"] for u in users))

        self._run(promote_user, "users", "promote", users[1]["id"])
        self._run(promote_user, "users", "promote", users[1]["id"])
        with self.assertRaises(RuntimeError):
            self._run(promote_user, "users", "promote", "unknown")

        updated = json.loads(self._run(show_users, "users", "show", "--json"))
        self.assertTrue(updated[1]["is_admin"])
        self.assertNotEqual(users[1]["updated_at"], updated[1]["updated_at"])
        self.assertIn("bob@example.org", self._run(show_users, "users", "show"))

    def test_parser(self):
        parser = get_parser("accounts_core")
        namespace = parser.parse_args(["run", "--port", "8080", "--no-access-log"])
        self.assertIsInstance(namespace, argparse.Namespace)
        self.assertEqual(8080, namespace.port)
        self.assertTrue(namespace.no_access_log)
        self.assertEqual("config.json", namespace.config)
        with contextlib.redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit):
                parser.parse_args(["users", "add", "--name", "missing e-mail"])


if __name__ == '__main__':
    _unittest.main()
