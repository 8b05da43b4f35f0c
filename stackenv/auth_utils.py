"""Shared authentication and authorization utilities."""

import hmac
from typing import Protocol

import bcrypt
from starlette.requests import Request


def verify_password(plain: str, hashed: str) -> bool:
    """Verify a password against a hash. Handles both bcrypt and legacy plaintext."""
    if hashed.startswith("$2b$") or hashed.startswith("$2a$"):
        try:
            return bcrypt.checkpw(plain.encode(), hashed.encode())
        except ValueError:
            # bcrypt rejects passwords over 72 bytes
            return False
    # Legacy plaintext: constant-time comparison
    return hmac.compare_digest(plain.encode(), hashed.encode())


class Authorizer(Protocol):
    def can(self, username: str | None, resource: str, action: str, scope_id: int | None = None) -> bool:
        ...


class AllowAllAuthorizer:
    """Grants every action. Authentication is left to the middleware."""

    def can(self, username, resource, action, scope_id=None) -> bool:
        return True


def can(request: Request, resource: str, action: str, scope_id: int | None = None) -> bool:
    """Ask the app's authorizer whether the current user may act on a resource."""
    authorizer = getattr(request.app.state, "authorizer", None) or AllowAllAuthorizer()
    username = getattr(request.state, "auth_user", None)
    return authorizer.can(username, resource, action, scope_id)
