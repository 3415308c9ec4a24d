#!/usr/bin/env python3

import os
import sys
import getpass
import argparse
import logging
from typing import List, Optional
from collections import OrderedDict

try:
    import ujson as json
except ImportError:
    import json

import uvicorn
import sqlalchemy.exc

from accounts_core import settings as _settings
from accounts_core.api import auth
from accounts_core.api.api import api, create_app
from accounts_core.persistence import database, models


def get_parser(program: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=program)

    commands = parser.add_subparsers(
        description="Available sub-commands: init, users*, run",
        dest="command",
        required=True,
        metavar="<command>",
        help="the sub-command to be executed (some have their own subcommands, too)"
    )

    parser_init = commands.add_parser(
        "init",
        description="Initialize the project by creating the config file and the database tables"
    )

    parser_users = commands.add_parser(
        "users",
        description="Manage user accounts"
    )
    user_command = parser_users.add_subparsers(
        description="Available actions: show, add, promote",
        dest="action",
        metavar="<action>",
        required=True,
        help="action to perform for users"
    )
    parser_users_show = user_command.add_parser(
        "show",
        description="Show a list of all users"
    )
    parser_users_add = user_command.add_parser(
        "add",
        description="Add a new user account, e.g. the first administrator"
    )
    parser_users_promote = user_command.add_parser(
        "promote",
        description="Grant administrator privileges to an existing user"
    )

    parser_run = commands.add_parser(
        "run",
        description="Run 'uvicorn' ASGI server to serve the accounts core REST API"
    )

    parser_init.add_argument(
        "--database",
        type=str,
        metavar="url",
        help="Database connection URL including scheme and auth"
    )

    parser_users_show.add_argument(
        "--json",
        action="store_true",
        help="Print the result in JSON format instead of human-readable text"
    )
    parser_users_show.add_argument(
        "--indent",
        type=int,
        metavar="n",
        help="(JSON-only) Indent the JSON response with n spaces (default: none)"
    )

    parser_users_add.add_argument(
        "--email",
        type=str,
        metavar="address",
        required=True,
        help="E-mail address of the new user, which is used as login name"
    )
    parser_users_add.add_argument(
        "--name",
        type=str,
        metavar="name",
        required=True,
        help="Display name of the new user"
    )
    parser_users_add.add_argument(
        "--password",
        type=str,
        metavar="passwd",
        help="Password for the new user (will be asked interactively if omitted)"
    )
    parser_users_add.add_argument(
        "--admin",
        action="store_true",
        help="Grant administrator privileges to the new user"
    )

    parser_users_promote.add_argument(
        "identifier",
        metavar="ID",
        type=str,
        help="Unique ID to identify the user"
    )

    parser_run.add_argument(
        "--host",
        type=str,
        metavar="host",
        help="Bind TCP socket to this host (overwrite config)"
    )
    parser_run.add_argument(
        "--port",
        type=int,
        metavar="port",
        help="Bind TCP socket to this port (overwrite config)"
    )
    parser_run.add_argument(
        "--config",
        type=str,
        metavar="config",
        default="config.json",
        help="Overwrite the config file (defaults to 'config.json')"
    )
    parser_run.add_argument(
        "--debug",
        action="store_true",
        help="Enable full debug mode including debug logs of the caching engine"
    )
    parser_run.add_argument(
        "--debug-sql",
        action="store_true",
        help="Enable echoing of database actions (overwrites config)"
    )
    parser_run.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload"
    )
    parser_run.add_argument(
        "--workers",
        type=int,
        default=None,
        metavar="n",
        help="Number of worker processes (not valid with --reload)",
    )
    parser_run.add_argument(
        "--no-access-log",
        action="store_true",
        help="Disable access logs"
    )
    parser_run.add_argument(
        "--root-path",
        type=str,
        default="",
        metavar="p",
        help="Sub-mount the application below the given path"
    )

    return parser


def run_server(args: argparse.Namespace):
    if args.debug:
        print("Do not start the server this way during production!", file=sys.stderr)

    _settings.CONFIG_PATHS.insert(0, args.config)
    try:
        settings = _settings.Settings()
    except ValueError:
        print("Ensure that the configuration file is valid. Please correct any errors.", file=sys.stderr)
        raise

    if args.debug:
        settings.logging.root["level"] = "DEBUG"
        for handler in settings.logging.handlers:
            settings.logging.handlers[handler]["level"] = "DEBUG"
    if args.debug_sql:
        settings.database.debug_sql = args.debug_sql

    port = args.port
    if port is None:
        port = settings.server.port
    host = args.host
    if host is None:
        host = settings.server.host

    app = create_app(settings=settings)
    api.set_app(app)

    logging.getLogger("accounts_core").info(f"Server running at host {host} port {port}")
    uvicorn.run(
        "accounts_core.api:api.app" if args.reload else app,
        port=port,
        host=host,
        reload=args.reload,
        workers=args.workers,
        log_level="debug" if args.debug else "info",
        log_config=settings.logging.model_dump(),
        access_log=not args.no_access_log,
        proxy_headers=True,
        root_path=args.root_path
    )


def _load_settings() -> _settings.Settings:
    config = _settings.Settings()
    database.init(config.database.connection, config.database.debug_sql)
    return config


def init_project(args: argparse.Namespace) -> int:
    if any(os.path.exists(path) for path in _settings.CONFIG_PATHS):
        print(
            "A config file has been found and will be used. If you want a fresh installation, "
            "you should remove the config file and clear the database, then run this command again."
        )
    else:
        print("No settings file found. A basic config will be created now.")
        _settings.store_configuration(_settings.get_default_core_config(_settings.get_db_from_env(args.database)))

    config = _settings.Settings()
    if args.database:
        config.database.connection = args.database
    database.init(config.database.connection, config.database.debug_sql)

    with database.get_new_session() as session:
        try:
            count = session.query(models.User).count()
        except sqlalchemy.exc.DatabaseError:
            print("The table 'users' couldn't be created in the database.", file=sys.stderr)
            return 1

    if count == 0:
        print(
            "\nThere's no user yet. Use the 'users add --admin' sub-command "
            "to create the first administrator of the API."
        )
    print("Done.")
    return 0


def print_table(objs: List[dict], keys: Optional[List[str]] = None):
    info = OrderedDict()
    if keys:
        for k in keys:
            info[k] = len(k)
    for obj in objs:
        for key in obj:
            if keys and key not in keys:
                continue
            if key not in info:
                info[key] = len(key)
            info[key] = max(len(str(obj.get(key))), info.get(key))
    print(" | ".join([f"{k:<{info[k]}}" for k in info]))
    print("-+-".join(["-" * info[k] for k in info]))
    for obj in objs:
        print(" | ".join([f"{obj[k]!s:<{info[k]}}" for k in info]))


def show_users(args: argparse.Namespace) -> int:
    _load_settings()
    with database.get_new_session() as session:
        users = session.query(models.User).order_by(models.User.created_at).all()

        if args.json:
            print(json.dumps([user.schema.model_dump(mode="json") for user in users], indent=args.indent or 0))
            return 0
        print_table(
            [user.schema.model_dump() for user in users],
            ["id", "email", "display_name", "is_active", "is_admin", "updated_at"]
        )
    return 0


def add_user(args: argparse.Namespace) -> int:
    email = args.email.strip().lower()
    if not email or not args.name.strip():
        print("Empty e-mail addresses or names are not allowed.", file=sys.stderr)
        return 1

    _load_settings()
    with database.get_new_session() as session:
        if session.query(models.User).filter_by(email=email).first() is not None:
            print(f"A user with the e-mail address {email!r} already exists. Exiting.", file=sys.stderr)
            return 1

        passwd = args.password or getpass.getpass()
        if not passwd:
            print("A password is mandatory. No new user account created!", file=sys.stderr)
            return 1

        user = models.User(
            email=email,
            display_name=args.name.strip(),
            hashed_password=auth.hash_password(passwd),
            is_active=True,
            is_admin=args.admin
        )
        session.add(user)
        session.commit()
        print(f"Successfully created new user {user.id} ({email!r}).")
    return 0


def promote_user(args: argparse.Namespace) -> int:
    _load_settings()
    with database.get_new_session() as session:
        user: Optional[models.User] = session.get(models.User, args.identifier)
        if user is None:
            print(f"No user with identifier {args.identifier} has been found!", file=sys.stderr)
            return 1
        if user.is_admin:
            print("No modification required, the user is already an administrator.")
            return 0

        user.is_admin = True
        user.updated_at = models.utcnow()
        session.add(user)
        session.commit()
        print(f"Successfully promoted user {user.id} ({user.email!r}) to administrator!")
    return 0


def handle_users(args: argparse.Namespace) -> int:
    return {
        "show": show_users,
        "add": add_user,
        "promote": promote_user
    }[args.action](args)


if __name__ == '__main__':
    program_name = sys.argv[0] if not sys.argv[0].endswith("__main__.py") else "accounts_core"
    namespace = get_parser(program_name).parse_args(sys.argv[1:])

    command_functions = {
        "run": run_server,
        "init": init_project,
        "users": handle_users
    }
    exit(command_functions[namespace.command](namespace))
