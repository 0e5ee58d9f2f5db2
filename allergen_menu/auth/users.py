from __future__ import annotations

import threading
import uuid
from typing import Any

import bcrypt

_users: dict[str, dict[str, Any]] = {}
_lock = threading.Lock()


def _hash_password(plain: str) -> str:
    return bcrypt.hashpw(plain.encode(), bcrypt.gensalt()).decode()


def _verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode(), hashed.encode())


def _public(email: str, record: dict[str, Any]) -> dict[str, Any]:
    return {"id": record["id"], "email": email, "role": record["role"]}


def _seed_users() -> None:
    """Pre-seed demo users on import."""
    _users["owner@example.com"] = {
        "id": "user_owner",
        "password_hash": _hash_password("owner123"),
        "role": "owner",
    }
    _users["admin@example.com"] = {
        "id": "user_admin",
        "password_hash": _hash_password("admin123"),
        "role": "admin",
    }


def sign_up(email: str, password: str) -> dict[str, Any] | None:
    """Register a restaurant owner. Returns ``None`` if the email is taken."""
    email = email.strip().lower()
    with _lock:
        if email in _users:
            return None
        _users[email] = {
            "id": f"user_{uuid.uuid4().hex[:12]}",
            "password_hash": _hash_password(password),
            "role": "owner",
        }
        return _public(email, _users[email])


def authenticate(email: str, password: str) -> dict[str, Any] | None:
    """Verify credentials. Returns ``{id, email, role}`` or ``None``."""
    email = email.strip().lower()
    record = _users.get(email)
    if record and _verify_password(password, record["password_hash"]):
        return _public(email, record)
    return None


_seed_users()
