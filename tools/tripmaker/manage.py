#!/usr/bin/env python3
"""CLI management tool for user accounts.

Provides commands to:
- Add users with scrypt-hashed passwords
- List all users
- Show a user's profile
- Update profile fields
"""

import argparse
import asyncio
import getpass
import sys

from .accounts import AccountService
from .auth.models import CURRENCIES, LANGUAGES, Failure
from .auth.store import StoreError, UserStore
from .auth.tokens import TokenIssuer
from .config import ConfigError, load_config
from .validation import MIN_PASSWORD_LENGTH, is_valid_email


def add_user(args, accounts: AccountService) -> int:
    """Add a new user with optional password prompt."""
    email = args.email

    if not is_valid_email(email):
        print(f"Error: '{email}' is not a valid email address", file=sys.stderr)
        return 1

    # Prompt for password if not provided
    if args.password:
        password = args.password
    else:
        password = getpass.getpass(f"Password for {email}: ")

    if len(password) < MIN_PASSWORD_LENGTH:
        print(
            f"Error: Password must be at least {MIN_PASSWORD_LENGTH} characters",
            file=sys.stderr,
        )
        return 1

    result = asyncio.run(accounts.register(email, password))
    if isinstance(result, Failure):
        print(f"Error: {result.message}", file=sys.stderr)
        return 1

    print(f"✓ User created: {result.id} ({result.email})")
    return 0


def list_users(args, accounts: AccountService) -> int:
    """List all users with their language and currency preferences."""
    users = asyncio.run(accounts.list_users())

    if not users:
        print("No users found")
        return 0

    print(f"{'ID':<38} {'Email':<32} {'Lang':<5} {'Currency':<8}")
    print("-" * 86)

    for user in users:
        print(f"{user.id:<38} {user.email:<32} {user.language:<5} {user.currencyType:<8}")

    return 0


def show_profile(args, accounts: AccountService) -> int:
    """Print one user's profile."""
    result = asyncio.run(accounts.get_profile(args.id))
    if isinstance(result, Failure):
        print(f"Error: User '{args.id}' not found", file=sys.stderr)
        return 1

    for name, value in result.to_dict().items():
        print(f"{name:<13} {value}")
    return 0


def set_profile(args, accounts: AccountService) -> int:
    """Update the profile fields given on the command line."""
    fields = {
        name: value
        for name, value in (
            ("email", args.email),
            ("phone", args.phone),
            ("country", args.country),
            ("language", args.language),
            ("currencyType", args.currency),
        )
        if value is not None
    }
    if not fields:
        print("Error: Nothing to update", file=sys.stderr)
        return 1
    if "email" in fields and not is_valid_email(fields["email"]):
        print(f"Error: '{fields['email']}' is not a valid email address", file=sys.stderr)
        return 1

    result = asyncio.run(accounts.update_profile(args.id, fields))
    if isinstance(result, Failure):
        print(f"Error: {result.message}", file=sys.stderr)
        return 1

    print(f"✓ Updated {result.id}: {', '.join(sorted(fields))}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage TripMaker user accounts")
    parser.add_argument(
        "--config",
        "-c",
        default=None,
        help="Path to config.json (same file and environment as the server)",
    )
    parser.add_argument(
        "--db-path",
        default=None,
        help="Path to the users JSON file (overrides config and USER_DB_PATH)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # add-user command
    add_parser = subparsers.add_parser("add-user", help="Add a new user")
    add_parser.add_argument("--email", required=True, help="Email address")
    add_parser.add_argument("--password", help="Password (prompted if omitted)")

    # list-users command
    subparsers.add_parser("list-users", help="List all users")

    # show-profile command
    show_parser = subparsers.add_parser("show-profile", help="Show a user's profile")
    show_parser.add_argument("--id", required=True, help="User ID")

    # set-profile command
    set_parser = subparsers.add_parser("set-profile", help="Update profile fields")
    set_parser.add_argument("--id", required=True, help="User ID")
    set_parser.add_argument("--email", help="New email address")
    set_parser.add_argument("--phone", help="Phone number")
    set_parser.add_argument("--country", help="Country name")
    set_parser.add_argument("--language", choices=LANGUAGES, help="Language code")
    set_parser.add_argument("--currency", choices=CURRENCIES, help="Currency code")

    return parser


COMMANDS = {
    "add-user": add_user,
    "list-users": list_users,
    "show-profile": show_profile,
    "set-profile": set_profile,
}


def main(argv=None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        storage = load_config(args.config)["storage"]
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    store = UserStore(
        db_path=args.db_path or storage["path"],
        scratch_path=storage["scratch_path"],
    )
    # Tokens minted here are never handed out, so a throwaway secret is fine.
    accounts = AccountService(store, TokenIssuer.ephemeral())

    try:
        return COMMANDS[args.command](args, accounts)
    except StoreError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
