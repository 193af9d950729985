#!/usr/bin/env python3
"""
SessionGate -- run the login workflow from the terminal.

Usage:
  python main.py login --username admin
  python main.py login --username admin --base-url https://tower.example.com
  python main.py login --username admin --pre-auth-url /jobs/42
  python main.py login --username admin --logout
  python main.py login --username admin -v

The password is always prompted for; it is never accepted on the command line.

Environment variables (see core/config.py):
  SESSIONGATE_API_BASE_URL        API root (default http://localhost:8043)
  SESSIONGATE_SESSION_TIMEOUT     Client-side idle timeout in seconds
  SESSIONGATE_STATE_DB_PATH       Where navigation state is persisted

Exit status: 0 when the session was established, 1 otherwise.
"""

import argparse
import asyncio
import getpass
import logging
import sys
from typing import Optional

from client.http import ApiClient, HttpAuthenticator, HttpLicenseChecker
from client.terminal import TerminalAlerts, TerminalForm, TerminalNavigator
from core.config import Settings, get_settings
from core.models import LoginOutcome
from state.store import NavigationStore
from workflow.engine import SessionWorkflowEngine
from workflow.timer import SessionTimer


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sessiongate",
        description="Sign in to a token-auth API and resolve the post-login destination.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command")

    login = sub.add_parser("login", help="Run the login workflow")
    login.add_argument("--username", metavar="NAME", help="Username (prompted if omitted)")
    login.add_argument("--base-url", metavar="URL", help="API root, overrides SESSIONGATE_API_BASE_URL")
    login.add_argument("--state-db", metavar="PATH", help="Navigation state database, overrides SESSIONGATE_STATE_DB_PATH")
    login.add_argument("--pre-auth-url", metavar="PATH", help="Deep link to return to after login")
    login.add_argument("--logout", action="store_true", help="Invalidate the token again once the workflow finishes")
    login.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def _settings_for(args: argparse.Namespace) -> Settings:
    overrides: dict = {}
    if args.base_url:
        overrides["api_base_url"] = args.base_url
    if args.state_db:
        overrides["state_db_path"] = args.state_db
    return Settings(**overrides) if overrides else get_settings()


def _report(outcome: LoginOutcome) -> None:
    if outcome.status == "authenticated":
        print(f"\n  Signed in. Destination: {outcome.destination}\n")
    elif outcome.status == "invalid":
        print("\n  [!] Username and password are both required.\n")
    elif outcome.status == "credentials":
        errors = outcome.attempt.field_errors if outcome.attempt else {}
        if errors:
            for field_name, message in sorted(errors.items()):
                print(f"  [!] {field_name}: {message}")
            print()
        else:
            print("\n  [!] Invalid username or password.\n")
    elif outcome.status == "failed":
        print(f"\n  [!] Sign-in aborted during the {outcome.failure.stage.value} stage.\n")
    else:
        print("\n  [!] Another sign-in is already in progress.\n")


async def run_login(settings: Settings, username: str, password: str, pre_auth_url: Optional[str], logout: bool) -> int:
    store = NavigationStore(settings.state_db_path)
    navigator = TerminalNavigator()
    timer = SessionTimer(settings.session_timeout)
    try:
        if pre_auth_url:
            store.set_pre_auth_url(pre_auth_url)
        async with ApiClient(settings, timer=timer) as api:
            engine = SessionWorkflowEngine(
                HttpAuthenticator(api),
                HttpLicenseChecker(api),
                timer,
                store,
                navigator,
                TerminalAlerts(),
                form=TerminalForm(),
                settings=settings,
            )
            if engine.session_expired:
                print("  Your previous session timed out.")

            outcome = await engine.submit(username, password)
            _report(outcome)

            if outcome.status == "failed":
                # Let the delayed logout redirect land before the loop closes.
                await asyncio.sleep(settings.logout_redirect_delay + 0.05)
            if outcome.ok:
                store.record_last_path(outcome.destination, str(engine.context.user_id))
                if logout:
                    await engine.logout()
            return 0 if outcome.ok else 1
    finally:
        timer.clear()
        store.close()


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command != "login":
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    settings = _settings_for(args)
    username = args.username or input("Username: ")
    password = getpass.getpass("Password: ")

    print(f"\nSessionGate -- {settings.api_base_url}")
    print("─" * 40)
    return asyncio.run(run_login(settings, username, password, args.pre_auth_url, args.logout))


if __name__ == "__main__":
    sys.exit(main())
