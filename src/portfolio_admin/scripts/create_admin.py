"""Create the admin principal, or reset its password and profile."""
from __future__ import annotations

import argparse
import getpass
import sys

from portfolio_admin.core.errors import BackendFailure, ValidationError
from portfolio_admin.core.security import hash_password
from portfolio_admin.core.settings import settings
from portfolio_admin.db.session import build_engine, build_session_factory, create_tables
from portfolio_admin.repositories.admin_repo import AdminRepository
from portfolio_admin.services.validation import validate_email, validate_password


def upsert_admin(
    database_url: str,
    *,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
) -> str:
    """Create or reset the admin and return ``"created"`` or ``"updated"``."""
    email = validate_email(email)
    validate_password(password)

    engine = build_engine(database_url)
    try:
        create_tables(engine)
        db = build_session_factory(engine)()
        try:
            repo = AdminRepository(db)
            admin = repo.get_by_email(email)
            if admin is None:
                repo.create(
                    email=email,
                    password_hash=hash_password(password),
                    first_name=first_name,
                    last_name=last_name,
                )
                return "created"
            repo.update_password(admin, hash_password(password))
            repo.update_profile(admin, first_name=first_name, last_name=last_name, email=email)
            return "updated"
        finally:
            db.close()
    finally:
        engine.dispose()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Create or reset the dashboard admin")
    parser.add_argument("--email", required=True)
    parser.add_argument(
        "--password",
        default=None,
        help="New password (prompted for when omitted)",
    )
    parser.add_argument("--first-name", default="")
    parser.add_argument("--last-name", default="")
    parser.add_argument(
        "--url",
        default=None,
        help="Override database URL (defaults to effective settings URL)",
    )
    args = parser.parse_args(argv)

    password = args.password or getpass.getpass("Admin password: ")
    try:
        outcome = upsert_admin(
            args.url or settings.effective_database_url,
            email=args.email,
            password=password,
            first_name=args.first_name,
            last_name=args.last_name,
        )
    except ValidationError as exc:
        print(f"[create_admin] ERROR: {exc.message}", file=sys.stderr)
        sys.exit(2)
    except BackendFailure as exc:
        print(f"[create_admin] ERROR: {exc.context}: {exc.cause}", file=sys.stderr)
        sys.exit(1)
    print(f"[create_admin] {outcome} admin {args.email.strip().lower()}")


if __name__ == "__main__":
    main()
