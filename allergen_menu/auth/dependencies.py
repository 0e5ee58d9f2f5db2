from __future__ import annotations

from collections.abc import Callable

from fastapi import HTTPException, Request

SESSION_KEY = "user"


def get_current_user(request: Request) -> dict | None:
    """``{id, email, role}`` of the signed-in account, or ``None``."""
    user = request.session.get(SESSION_KEY)
    if not user or not user.get("id"):
        return None
    return user


def require_user(request: Request) -> dict:
    user = get_current_user(request)
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def require_role(role: str) -> Callable[[Request], dict]:
    """Dependency factory: 401 when signed out, 403 for any other role."""

    def dependency(request: Request) -> dict:
        user = require_user(request)
        if user.get("role") != role:
            raise HTTPException(status_code=403, detail=f"{role.capitalize()} access required")
        return user

    return dependency


require_admin = require_role("admin")
