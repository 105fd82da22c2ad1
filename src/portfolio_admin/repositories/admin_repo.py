"""Data access helpers for the admin principal."""
from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portfolio_admin.core.errors import BackendFailure
from portfolio_admin.models.admin import Admin

__all__ = ["AdminRepository", "normalize_email"]


def normalize_email(email: str) -> str:
    """Return the canonical (trimmed, lower-cased) form of an email address."""
    return email.strip().lower()


class AdminRepository:
    """Thin wrapper around database access for the admin entity.

    Every driver error is re-raised as :class:`BackendFailure` tagged with
    the operation name, so callers never handle SQLAlchemy exceptions.
    """

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    def get_by_email(self, email: str) -> Admin | None:
        """Return the admin registered under ``email`` (case-insensitive)."""
        stmt = select(Admin).where(func.lower(Admin.email) == normalize_email(email))
        try:
            return self.session.execute(stmt).scalars().first()
        except SQLAlchemyError as err:
            raise BackendFailure("AdminRepository.get_by_email", err) from err

    def get_by_id(self, admin_id: str) -> Admin | None:
        """Return an admin by primary key."""
        try:
            return self.session.get(Admin, admin_id)
        except SQLAlchemyError as err:
            raise BackendFailure("AdminRepository.get_by_id", err) from err

    def find_matching(self, admin_id: str, email: str) -> Admin | None:
        """Return the admin only if both the id and the email still match."""
        stmt = select(Admin).where(
            Admin.id == admin_id,
            func.lower(Admin.email) == normalize_email(email),
        )
        try:
            return self.session.execute(stmt).scalars().first()
        except SQLAlchemyError as err:
            raise BackendFailure("AdminRepository.find_matching", err) from err

    def create(
        self,
        *,
        email: str,
        password_hash: str,
        first_name: str,
        last_name: str,
    ) -> Admin:
        """Insert a new admin and return the persisted ORM instance."""
        admin = Admin(
            email=normalize_email(email),
            password=password_hash,
            first_name=first_name,
            last_name=last_name,
        )
        try:
            self.session.add(admin)
            self.session.commit()
        except SQLAlchemyError as err:
            self.session.rollback()
            raise BackendFailure("AdminRepository.create", err) from err
        return admin

    def update_password(self, admin: Admin, password_hash: str) -> Admin:
        """Replace the stored password hash."""
        admin.password = password_hash
        return self._commit(admin, "AdminRepository.update_password")

    def update_profile(
        self,
        admin: Admin,
        *,
        first_name: str,
        last_name: str,
        email: str,
    ) -> Admin:
        """Apply profile changes to an existing admin."""
        admin.first_name = first_name
        admin.last_name = last_name
        admin.email = normalize_email(email)
        return self._commit(admin, "AdminRepository.update_profile")

    def _commit(self, admin: Admin, context: str) -> Admin:
        try:
            self.session.add(admin)
            self.session.commit()
            self.session.refresh(admin)
        except SQLAlchemyError as err:
            self.session.rollback()
            raise BackendFailure(context, err) from err
        return admin
