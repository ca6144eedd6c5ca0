#!/usr/bin/env python3
"""
SecretKeeper -- store logins, notes and bank cards behind an encrypted server.

Usage:
  secretkeeper run
  secretkeeper register --login alice --password pw1
  secretkeeper login --login alice --password pw1
  secretkeeper add-credentials --user alice --login mail@example.com --password s3cret
  secretkeeper get-credentials --user alice [--login mail@example.com]
  secretkeeper update-credentials --user alice --login mail@example.com --password n3w
  secretkeeper delete-credentials --user alice [--login mail@example.com]
  secretkeeper add-note --user alice --title wifi --content "pa55word"
  secretkeeper get-note --user alice [--title wifi]
  secretkeeper update-note --user alice --title wifi --content "n3w"
  secretkeeper delete-note --user alice [--title wifi]
  secretkeeper add-card --user alice --bank alpha --number 1111222233334444 --cv 123 --password 1243
  secretkeeper get-card --user alice [--bank alpha] [--number 1111222233334444]
  secretkeeper delete-card --user alice [--bank alpha] [--number 1111222233334444]
  secretkeeper version

Environment variables (or .env):
  APPLICATION_HOST / APPLICATION_PORT   where the client finds the server and
                                        where `run` binds it.
  SECRET_KEY / ENCRYPTION_KEY           server only; see core/config.py.

Client commands only send user_name; the server keeps the session token
issued at login. Log in first, then use the data commands within the token
lifetime (1 hour by default).
"""

import argparse
import json
import re
from typing import Any, Optional

import requests

from core.config import get_client_settings
from core.version import __version__

_CARD_NUMBER_RE = re.compile(r"^\d{16}$")
_CARD_CV_RE = re.compile(r"^\d{3}$")

# Module-level session shared across calls for connection pooling.
_session = requests.Session()
_session.max_redirects = 3


def _payload(**fields: Optional[str]) -> dict[str, str]:
    """Drop unset optional fields so the server sees them as absent, not empty."""
    return {k: v for k, v in fields.items() if v is not None}


def _post(path: str, payload: dict[str, Any]) -> int:
    """POST payload to the API and print the outcome. Returns a process exit code."""
    settings = get_client_settings()
    url = f"{settings.server_url}/api/v1{path}"
    try:
        resp = _session.post(url, json=payload, timeout=settings.request_timeout_seconds)
    except requests.RequestException as e:
        print(f"  [!] Could not reach SecretKeeper at {settings.server_url}: {e}")
        return 1

    if resp.status_code == 204:
        print(f"  No data for user {payload.get('user_name') or payload.get('login')!r}.")
        return 0

    try:
        body: Any = resp.json()
    except ValueError:
        body = resp.text

    if not resp.ok:
        message = body.get("error", {}).get("message") if isinstance(body, dict) else body
        print(f"  [!] {resp.status_code} {resp.reason}: {message}")
        return 1

    if isinstance(body, dict) and set(body) == {"message"}:
        print(f"  {body['message']}")
    else:
        print(json.dumps(body, indent=2, ensure_ascii=False))
    return 0


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_run(args: argparse.Namespace) -> int:
    import uvicorn

    from core.config import get_settings

    settings = get_settings()
    uvicorn.run("asgi:app", host=settings.application_host, port=settings.application_port)
    return 0


def _cmd_register(args: argparse.Namespace) -> int:
    code = _post("/auth/register", {"login": args.login, "password": args.password})
    if code == 0:
        print(f"  User {args.login!r} was successfully registered.")
    return code


def _cmd_login(args: argparse.Namespace) -> int:
    code = _post("/auth/login", {"login": args.login, "password": args.password})
    if code == 0:
        print(f"  User {args.login!r} was successfully logged in.")
    return code


def _cmd_add_credentials(args: argparse.Namespace) -> int:
    return _post(
        "/save/credentials",
        _payload(user_name=args.user, login=args.login, password=args.password, metadata=args.metadata),
    )


def _cmd_get_credentials(args: argparse.Namespace) -> int:
    return _post("/get/credentials", _payload(user_name=args.user, login=args.login))


def _cmd_update_credentials(args: argparse.Namespace) -> int:
    return _post(
        "/update/credentials",
        _payload(user_name=args.user, login=args.login, password=args.password, metadata=args.metadata),
    )


def _cmd_delete_credentials(args: argparse.Namespace) -> int:
    return _post("/delete/credentials", _payload(user_name=args.user, login=args.login))


def _cmd_add_note(args: argparse.Namespace) -> int:
    return _post(
        "/save/note",
        _payload(user_name=args.user, title=args.title, content=args.content, metadata=args.metadata),
    )


def _cmd_get_note(args: argparse.Namespace) -> int:
    return _post("/get/note", _payload(user_name=args.user, title=args.title))


def _cmd_update_note(args: argparse.Namespace) -> int:
    return _post(
        "/update/note",
        _payload(user_name=args.user, title=args.title, content=args.content, metadata=args.metadata),
    )


def _cmd_delete_note(args: argparse.Namespace) -> int:
    return _post("/delete/note", _payload(user_name=args.user, title=args.title))


def _cmd_add_card(args: argparse.Namespace) -> int:
    if not _CARD_NUMBER_RE.match(args.number):
        print("  [!] The card number must consist of 16 digits.")
        return 2
    if not _CARD_CV_RE.match(args.cv):
        print("  [!] The card cv code must consist of 3 digits.")
        return 2
    return _post(
        "/save/card",
        _payload(
            user_name=args.user,
            bank_name=args.bank,
            number=args.number,
            cv=args.cv,
            password=args.password,
            metadata=args.metadata,
        ),
    )


def _cmd_get_card(args: argparse.Namespace) -> int:
    return _post("/get/card", _payload(user_name=args.user, bank_name=args.bank, number=args.number))


def _cmd_delete_card(args: argparse.Namespace) -> int:
    return _post("/delete/card", _payload(user_name=args.user, bank_name=args.bank, number=args.number))


def _cmd_version(args: argparse.Namespace) -> int:
    print(f"secretkeeper {__version__}")
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="secretkeeper",
        description="Store logins, notes and bank cards in an encrypted SecretKeeper server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    p = sub.add_parser("run", help="Start the SecretKeeper API server")
    p.set_defaults(func=_cmd_run)

    for name, func, text in (
        ("register", _cmd_register, "Register a new SecretKeeper login"),
        ("login", _cmd_login, "Log in and start a server-side session"),
    ):
        p = sub.add_parser(name, help=text)
        p.add_argument("--login", required=True, help="SecretKeeper login")
        p.add_argument("--password", required=True, help="SecretKeeper password")
        p.set_defaults(func=func)

    # Credentials
    p = sub.add_parser("add-credentials", help="Save a login/password pair")
    p.add_argument("--user", required=True, help="SecretKeeper user name")
    p.add_argument("--login", required=True, help="Login to store")
    p.add_argument("--password", required=True, help="Password to store (encrypted at rest)")
    p.add_argument("--metadata", help="Optional free-text metadata")
    p.set_defaults(func=_cmd_add_credentials)

    p = sub.add_parser("get-credentials", help="Show stored login/password pairs")
    p.add_argument("--user", required=True, help="SecretKeeper user name")
    p.add_argument("--login", help="Only show this login")
    p.set_defaults(func=_cmd_get_credentials)

    p = sub.add_parser("update-credentials", help="Change the stored password for a login")
    p.add_argument("--user", required=True, help="SecretKeeper user name")
    p.add_argument("--login", required=True, help="Login whose password changes")
    p.add_argument("--password", required=True, help="New password")
    p.add_argument("--metadata", help="Optional free-text metadata")
    p.set_defaults(func=_cmd_update_credentials)

    p = sub.add_parser("delete-credentials", help="Delete stored login/password pairs")
    p.add_argument("--user", required=True, help="SecretKeeper user name")
    p.add_argument("--login", help="Only delete this login")
    p.set_defaults(func=_cmd_delete_credentials)

    # Notes
    p = sub.add_parser("add-note", help="Save a note")
    p.add_argument("--user", required=True, help="SecretKeeper user name")
    p.add_argument("--title", required=True, help="Note title")
    p.add_argument("--content", help="Note text (encrypted at rest)")
    p.add_argument("--metadata", help="Optional free-text metadata")
    p.set_defaults(func=_cmd_add_note)

    p = sub.add_parser("get-note", help="Show stored notes")
    p.add_argument("--user", required=True, help="SecretKeeper user name")
    p.add_argument("--title", help="Only show notes with this title")
    p.set_defaults(func=_cmd_get_note)

    p = sub.add_parser("update-note", help="Replace the content of a note")
    p.add_argument("--user", required=True, help="SecretKeeper user name")
    p.add_argument("--title", required=True, help="Title of the note to change")
    p.add_argument("--content", required=True, help="New note text")
    p.add_argument("--metadata", help="Optional free-text metadata")
    p.set_defaults(func=_cmd_update_note)

    p = sub.add_parser("delete-note", help="Delete stored notes")
    p.add_argument("--user", required=True, help="SecretKeeper user name")
    p.add_argument("--title", help="Only delete notes with this title")
    p.set_defaults(func=_cmd_delete_note)

    # Cards
    p = sub.add_parser("add-card", help="Save bank card details")
    p.add_argument("--user", required=True, help="SecretKeeper user name")
    p.add_argument("--bank", required=True, help="Bank name")
    p.add_argument("--number", required=True, help="16-digit card number")
    p.add_argument("--cv", required=True, help="3-digit cv code (encrypted at rest)")
    p.add_argument("--password", required=True, help="Card PIN/password (encrypted at rest)")
    p.add_argument("--metadata", help="Optional free-text metadata")
    p.set_defaults(func=_cmd_add_card)

    for name, func, text in (
        ("get-card", _cmd_get_card, "Show stored bank cards"),
        ("delete-card", _cmd_delete_card, "Delete stored bank cards"),
    ):
        p = sub.add_parser(name, help=text)
        p.add_argument("--user", required=True, help="SecretKeeper user name")
        p.add_argument("--bank", help="Only cards from this bank")
        p.add_argument("--number", help="Only the card with this number")
        p.set_defaults(func=func)

    p = sub.add_parser("version", help="Show the SecretKeeper version")
    p.set_defaults(func=_cmd_version)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 0
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
