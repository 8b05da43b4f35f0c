import base64
import binascii
import secrets

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from stackenv.auth_utils import verify_password


class BasicAuthMiddleware(BaseHTTPMiddleware):
    """Optional HTTP Basic Auth. Skips auth when unconfigured and for health checks."""

    # Paths that never require auth
    PUBLIC_PATHS = {"/api/ping"}

    def __init__(self, app, get_settings_fn):
        super().__init__(app)
        self._get_settings = get_settings_fn

    async def dispatch(self, request: Request, call_next) -> Response:
        settings = self._get_settings()

        if not settings.is_auth_configured:
            return await call_next(request)

        if request.url.path in self.PUBLIC_PATHS:
            return await call_next(request)

        # Check Authorization header
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Basic "):
            try:
                decoded = base64.b64decode(auth_header[6:]).decode("utf-8")
                username, password = decoded.split(":", 1)
            except (binascii.Error, UnicodeDecodeError, ValueError):
                username = password = None
            if (
                username is not None
                and secrets.compare_digest(username.encode(), settings.auth_username.encode())
                and verify_password(password, settings.auth_password)
            ):
                request.state.auth_user = username
                return await call_next(request)

        return Response(
            status_code=401,
            headers={"WWW-Authenticate": 'Basic realm="stackenv"'},
            content="Unauthorized",
        )
