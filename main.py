#!/usr/bin/env python3
"""
Vet1Stop -- resource directory for veterans: education, health, careers and
life & leisure services.

Usage:
  python main.py list --category education --tag gi-bill
  python main.py search "mental health"
  python main.py featured --category careers
  python main.py show 1b4e28ba-2fa1-11d2-883f-0016d3cca427
  python main.py related 1b4e28ba-2fa1-11d2-883f-0016d3cca427
  python main.py import resources.json
  python main.py signin vet@example.com
  python main.py signup vet@example.com
  python main.py signin-google
  python main.py signout
  python main.py whoami

Environment variables (or .env):
  RESOURCE_DB_URL     SQLAlchemy URL of the resource database (default: local SQLite file)
  SESSION_DB_URL      SQLAlchemy URL of the persisted session (default: local SQLite file)
  IDENTITY_API_KEY    Identity Toolkit API key. Required for sign-in commands.
  GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET
                      Enable "signin-google".
"""

import argparse
import getpass
import logging
import sys
import webbrowser
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from auth.errors import AuthError
from auth.identity import build_identity_client
from auth.oauth import build_consent_flow
from auth.session import SessionManager
from auth.store import SessionPersistence
from core.config import Settings, get_settings
from core.formatter import disable_color, print_resource, print_session, print_summary, to_json
from resources.errors import ResourceError
from resources.ingest import parse_resources_json
from resources.models import ResourceCategory, ResourceFilter, ResourceSubcategory, ResourceWithReferences
from resources.store import ResourceStore

logger = logging.getLogger("vet1stop.cli")


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def _resource_store(settings: Settings) -> ResourceStore:
    return ResourceStore(settings.resource_db_url) if settings.resource_db_url else ResourceStore()


@contextmanager
def _session_manager(settings: Settings) -> Iterator[SessionManager]:
    persistence = SessionPersistence(settings.session_db_url) if settings.session_db_url else SessionPersistence()
    try:
        consent_flow = build_consent_flow(settings, _browser_prompt)
        client = build_identity_client(settings, persistence=persistence, consent_flow=consent_flow)
    except Exception:
        persistence.close()
        raise
    try:
        with SessionManager(client) as manager:
            yield manager
    finally:
        client.close()


def _browser_prompt(url: str) -> Optional[str]:
    """Open the consent page and read back the URL the browser was redirected to.

    An empty answer cancels the sign-in.
    """
    print("\n  Opening Google sign-in in your browser. If it does not open, visit:\n")
    print(f"    {url}\n")
    webbrowser.open(url)
    try:
        return input("  Paste the full URL you were redirected to (blank to cancel): ").strip() or None
    except EOFError:
        return None


def _load_file(path: str) -> Optional[str]:
    """Read an import file, refusing anything that is not a regular file."""
    file_path = Path(path).resolve()
    if not file_path.is_file():
        print(f"  [!] '{path}' is not a readable file.")
        return None
    try:
        return file_path.read_text(encoding="utf-8")
    except OSError as e:
        print(f"  [!] Could not read file '{path}': {e}")
        return None


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _emit(resources, as_json: bool) -> None:
    if as_json:
        print(to_json(resources))
    else:
        print_summary(resources)


def cmd_list(args, settings: Settings) -> int:
    store = _resource_store(settings)
    try:
        resource_filter = ResourceFilter(
            category=args.category,
            subcategory=args.subcategory,
            eligibility=args.eligibility,
            tags=args.tag or None,
            featured=True if args.featured else None,
            search=args.search,
        )
        _emit(store.list_resources(resource_filter), args.json)
    finally:
        store.close()
    return 0


def cmd_search(args, settings: Settings) -> int:
    store = _resource_store(settings)
    try:
        _emit(store.search(" ".join(args.text)), args.json)
    finally:
        store.close()
    return 0


def cmd_featured(args, settings: Settings) -> int:
    store = _resource_store(settings)
    try:
        _emit(store.get_featured(args.category), args.json)
    finally:
        store.close()
    return 0


def cmd_show(args, settings: Settings) -> int:
    store = _resource_store(settings)
    try:
        item: ResourceWithReferences = store.get_with_related(args.id)
    finally:
        store.close()
    if args.json:
        print(to_json(item))
    else:
        print_resource(item)
    return 0


def cmd_related(args, settings: Settings) -> int:
    store = _resource_store(settings)
    try:
        _emit(store.get_related(args.id), args.json)
    finally:
        store.close()
    return 0


def cmd_import(args, settings: Settings) -> int:
    content = _load_file(args.file)
    if content is None:
        return 1
    try:
        records = parse_resources_json(content)
    except ValueError as e:
        print(f"  [!] Could not import '{args.file}': {e}")
        return 1
    store = _resource_store(settings)
    created = 0
    try:
        for record in records:
            try:
                store.create_resource(record)
                created += 1
            except ValueError as e:
                print(f"  [!] Skipped '{record.title}': {e}")
    finally:
        store.close()
    print(f"  Imported {created} resource(s).")
    return 0


def cmd_signin(args, settings: Settings) -> int:
    with _session_manager(settings) as manager:
        manager.sign_in(args.email, getpass.getpass("  Password: "))
        print_session(manager.state)
    return 0


def cmd_signup(args, settings: Settings) -> int:
    with _session_manager(settings) as manager:
        password = getpass.getpass("  Password: ")
        if password != getpass.getpass("  Confirm password: "):
            print("  [!] Passwords do not match.")
            return 1
        manager.sign_up(args.email, password)
        print_session(manager.state)
    return 0


def cmd_signin_google(args, settings: Settings) -> int:
    if not settings.google_enabled:
        print("  [!] Google sign-in is not configured (set GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET).")
        return 1
    with _session_manager(settings) as manager:
        manager.sign_in_with_federated_provider()
        print_session(manager.state)
    return 0


def cmd_signout(args, settings: Settings) -> int:
    with _session_manager(settings) as manager:
        manager.sign_out()
        print_session(manager.state)
    return 0


def cmd_whoami(args, settings: Settings) -> int:
    with _session_manager(settings) as manager:
        print_session(manager.state)
    return 0


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vet1stop",
        description="Browse the Vet1Stop resource directory and manage your sign-in.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--no-color", action="store_true", help="Disable ANSI color codes in terminal output")
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    categories = [c.value for c in ResourceCategory]
    subcategories = [s.value for s in ResourceSubcategory]

    p = sub.add_parser("list", help="List resources matching a filter")
    p.add_argument("--category", choices=categories)
    p.add_argument("--subcategory", choices=subcategories)
    p.add_argument("--eligibility", metavar="TAG", help="Only resources with this eligibility tag")
    p.add_argument("--tag", action="append", metavar="TAG", help="Match any of these tags (repeatable)")
    p.add_argument("--featured", action="store_true", help="Only featured resources")
    p.add_argument("--search", metavar="TEXT", help="Case-insensitive text in title or description")
    p.add_argument("--json", action="store_true", help="Output structured JSON")
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("search", help="Search titles and descriptions")
    p.add_argument("text", nargs="+")
    p.add_argument("--json", action="store_true", help="Output structured JSON")
    p.set_defaults(func=cmd_search)

    p = sub.add_parser("featured", help="List featured resources")
    p.add_argument("--category", choices=categories)
    p.add_argument("--json", action="store_true", help="Output structured JSON")
    p.set_defaults(func=cmd_featured)

    p = sub.add_parser("show", help="Show one resource with related resources")
    p.add_argument("id")
    p.add_argument("--json", action="store_true", help="Output structured JSON")
    p.set_defaults(func=cmd_show)

    p = sub.add_parser("related", help="List resources related to one resource")
    p.add_argument("id")
    p.add_argument("--json", action="store_true", help="Output structured JSON")
    p.set_defaults(func=cmd_related)

    p = sub.add_parser("import", help="Import resources from a JSON file")
    p.add_argument("file", metavar="PATH")
    p.set_defaults(func=cmd_import)

    p = sub.add_parser("signin", help="Sign in with email and password")
    p.add_argument("email")
    p.set_defaults(func=cmd_signin)

    p = sub.add_parser("signup", help="Create an account with email and password")
    p.add_argument("email")
    p.set_defaults(func=cmd_signup)

    p = sub.add_parser("signin-google", help="Sign in with Google")
    p.set_defaults(func=cmd_signin_google)

    p = sub.add_parser("signout", help="Sign out")
    p.set_defaults(func=cmd_signout)

    p = sub.add_parser("whoami", help="Show the current session")
    p.set_defaults(func=cmd_whoami)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 0

    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    if args.no_color:
        disable_color()

    try:
        return args.func(args, settings)
    except (ResourceError, AuthError) as e:
        print(f"  [!] {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
