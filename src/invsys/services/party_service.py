from __future__ import annotations

import re
from typing import Optional

from invsys.domain.errors import (
    ConflictError,
    CustomerNotFoundError,
    SupplierNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from invsys.domain.models import User
from invsys.services.stock_ledger import utc_now_iso
from invsys.services.transaction_engine import positive_id

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class _PartyService:
    table = ""
    label = ""
    not_found = SupplierNotFoundError

    def __init__(self, repo):
        self.repo = repo

    def _clean(self, name: str, email: str, phone: Optional[str]) -> tuple[str, str, Optional[str]]:
        name = (name or "").strip()
        email = (email or "").strip()
        phone = (phone or "").strip() or None
        if not name:
            raise ValidationError("Name is required.")
        if len(name) > 200:
            raise ValidationError("Name must have at most 200 characters.")
        if not email:
            raise ValidationError("Email is required.")
        if len(email) > 150 or not _EMAIL_RE.match(email):
            raise ValidationError(f"Invalid email: {email}")
        if phone is not None and len(phone) > 20:
            raise ValidationError("Phone must have at most 20 characters.")
        return name, email, phone

    def add(self, name: str, email: str, phone: Optional[str] = None) -> int:
        name, email, phone = self._clean(name, email, phone)
        if self.repo.party_email_taken(self.table, email):
            raise ConflictError(f"A {self.label} with this email already exists.")
        return self.repo.add_party(self.table, name, email, phone, utc_now_iso())

    def get(self, party_id: int):
        pid = positive_id(party_id, f"{self.label.capitalize()} id")
        party = self.repo.get_party(self.table, pid)
        if party is None:
            raise self.not_found(pid)
        return party

    def list_all(self) -> list:
        return self.repo.list_parties(self.table)

    def update(self, party_id: int, name: str, email: str, phone: Optional[str] = None):
        name, email, phone = self._clean(name, email, phone)
        pid = self.get(party_id).id
        if self.repo.party_email_taken(self.table, email, exclude_id=pid):
            raise ConflictError(f"A {self.label} with this email already exists.")
        self.repo.update_party(self.table, pid, name, email, phone)
        return self.get(pid)

    def delete(self, party_id: int) -> None:
        pid = self.get(party_id).id
        if self.repo.party_has_transactions(self.table, pid):
            raise ConflictError(f"The {self.label} cannot be deleted because it has recorded transactions.")
        self.repo.delete_party(self.table, pid)


class SupplierService(_PartyService):
    table = "suppliers"
    label = "supplier"
    not_found = SupplierNotFoundError


class CustomerService(_PartyService):
    table = "customers"
    label = "customer"
    not_found = CustomerNotFoundError


class UserDirectory:
    """Acting users as known to the transaction records (display names only)."""

    def __init__(self, repo):
        self.repo = repo

    def add_user(self, username: str, first_name: str, last_name: str) -> int:
        username = (username or "").strip()
        first_name = (first_name or "").strip()
        last_name = (last_name or "").strip()
        if not username or not first_name:
            raise ValidationError("Username and first name are required.")
        if self.repo.get_user_by_username(username):
            raise ConflictError(f"User already exists: {username}")
        return self.repo.add_user(username, first_name, last_name)

    def get_user(self, user_id: int) -> User:
        uid = positive_id(user_id, "User id")
        user = self.repo.get_user(uid)
        if user is None:
            raise UserNotFoundError(uid)
        return user
