"""
JWT Auth Middleware — Parses JWT from Authorization header, sets g.current_user.

Runs before the access guard. It never rejects a request on its own:
a missing, expired or invalid token simply leaves ``g.current_user = None``
and the guard answers with "Unauthenticated" where a role is required.

The global role is always read through the membership resolver installed by
the access guard (the users table by default); the token's "role" claim is
informational only, so a demoted user loses the bypass immediately.
"""

import logging

import jwt as pyjwt
from flask import g, request

from taskpilot.services.access_decision import AuthenticatedUser
from taskpilot.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/health",
    "/static/",
)


def current_user() -> AuthenticatedUser | None:
    return getattr(g, "current_user", None)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.current_user = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        token = auth_header[7:]  # Strip "Bearer "

        try:
            payload = decode_access_token(token)
        except pyjwt.ExpiredSignatureError:
            logger.info("Expired access token on %s", path)
            return
        except pyjwt.InvalidTokenError as exc:
            logger.info("Invalid access token on %s: %s", path, exc)
            return

        user_id = payload.get("sub")
        if not user_id:
            return

        # access_guard imports this module
        from taskpilot.middleware.access_guard import get_resolver

        g.current_user = AuthenticatedUser(
            id=str(user_id),
            global_role=get_resolver().global_role(str(user_id)),
        )
