#!/usr/bin/env python3
"""
authgate -- command-line entry point.

Usage:
  python main.py create-user alice
  python main.py create-user ops --operator
  echo 'S3cret!' | python main.py create-user alice --password-stdin
  python main.py set-role alice operator
  python main.py serve --host 0.0.0.0 --port 8080

create-user and set-role write straight to the configured identity store
(DATABASE_URL or PG_CONN_STR). They are the only way to create an operator
account; the HTTP surface never grants roles, and re-registering a name
through POST /register resets it to a plain user.

Environment variables: see core/config.py. SECRET_KEY is required unless
DEBUG=true.
"""

import argparse
import getpass
import sys

from auth.models import Identity
from auth.service import MAX_USERNAME_LENGTH
from auth.store import SqlIdentityStore
from auth.tokens import MAX_PASSWORD_BYTES, hash_password
from core.config import get_settings


def _read_password(from_stdin: bool) -> str:
    if from_stdin:
        return sys.stdin.readline().rstrip("\n")
    first = getpass.getpass("Password: ")
    second = getpass.getpass("Repeat password: ")
    if first != second:
        print("  [!] Passwords do not match.")
        return ""
    return first


def create_user(username: str, operator: bool, password_stdin: bool) -> int:
    settings = get_settings()
    if settings.identity_backend != "sql":
        print("  [!] create-user needs IDENTITY_BACKEND=sql; the memory backend lives only inside the server.")
        return 1
    if not username or len(username) > MAX_USERNAME_LENGTH:
        print(f"  [!] Username must be 1-{MAX_USERNAME_LENGTH} characters.")
        return 1
    password = _read_password(password_stdin)
    if not password or len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        print(f"  [!] Password must be 1-{MAX_PASSWORD_BYTES} bytes.")
        return 1

    role = "operator" if operator else "user"
    store = SqlIdentityStore(settings.database_url)
    try:
        store.put(Identity(username=username, password_digest=hash_password(password), role=role))
    finally:
        store.close()
    print(f"  {role} '{username}' saved.")
    return 0


def set_role(username: str, role: str) -> int:
    settings = get_settings()
    if settings.identity_backend != "sql":
        print("  [!] set-role needs IDENTITY_BACKEND=sql; the memory backend lives only inside the server.")
        return 1
    store = SqlIdentityStore(settings.database_url)
    try:
        found = store.set_role(username, role)
    finally:
        store.close()
    if not found:
        print(f"  [!] No such user: '{username}'")
        return 1
    print(f"  '{username}' is now {role}.")
    return 0


def serve(host: str, port: int) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=host, port=port)
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="authgate",
        description="Registration, login, sessions, and confined file access.",
    )
    sub = parser.add_subparsers(dest="command")

    p_user = sub.add_parser("create-user", help="Create a user, or replace an existing one (password and role)")
    p_user.add_argument("username")
    p_user.add_argument(
        "--operator",
        action="store_true",
        help="Give the account the operator role (required for GET /debug_env)",
    )
    p_user.add_argument(
        "--password-stdin",
        action="store_true",
        help="Read the password from the first line of stdin instead of prompting",
    )

    p_role = sub.add_parser("set-role", help="Change the role of an existing user (password unchanged)")
    p_role.add_argument("username")
    p_role.add_argument("role", choices=["user", "operator"])

    p_serve = sub.add_parser("serve", help="Run the HTTP service with uvicorn")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=8080)

    args = parser.parse_args()

    if args.command == "create-user":
        sys.exit(create_user(args.username, args.operator, args.password_stdin))
    elif args.command == "set-role":
        sys.exit(set_role(args.username, args.role))
    elif args.command == "serve":
        sys.exit(serve(args.host, args.port))
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
