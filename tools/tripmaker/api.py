"""ApiServer - aiohttp JSON API over AccountService."""

import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Optional

from aiohttp import web

from . import __version__
from .accounts import AccountService
from .auth.models import Failure, FailureKind
from .auth.store import StoreError
from .auth.tokens import TokenClaims, TokenExpired, TokenInvalid
from .validation import profile_fields, validate_credentials, validate_profile_update

logger = logging.getLogger(__name__)

FAILURE_STATUS = {
    FailureKind.DUPLICATE_EMAIL: 409,
    FailureKind.INVALID_CREDENTIALS: 401,
    FailureKind.NOT_FOUND: 404,
}


def error_response(status: int, message: str) -> web.Response:
    return web.json_response({"error": message}, status=status)


def failure_response(failure: Failure) -> web.Response:
    return error_response(FAILURE_STATUS[failure.kind], failure.message)


@web.middleware
async def error_middleware(request: web.Request, handler):
    """Turn storage failures and unexpected exceptions into JSON errors."""
    try:
        return await handler(request)
    except web.HTTPException as e:
        if e.status == 404:
            return error_response(404, "Not found.")
        raise
    except StoreError as e:
        logger.error(f"Storage failure on {request.method} {request.path}: {e}")
        return error_response(503, "User storage is temporarily unavailable.")
    except Exception as e:
        logger.error(f"Unhandled error on {request.method} {request.path}: {e}", exc_info=True)
        return error_response(500, "Internal server error.")


class ApiServer:
    """HTTP API for registration, login and profiles.

    Routes:
        GET  /              service info
        GET  /health        liveness
        POST /register      create account
        POST /login         authenticate
        GET  /profile/{id}  read profile
        PUT  /profile/{id}  partial profile update

    A bearer token is optional on profile routes; when one is sent it must be
    valid and belong to the profile being accessed.
    """

    def __init__(self, config: dict[str, Any], accounts: AccountService):
        if accounts is None:
            raise ValueError("ApiServer requires an AccountService instance")
        self.accounts = accounts
        self.host = config.get("host", "0.0.0.0")
        self.port = config.get("port", 3000)
        self.started_at = time.monotonic()
        self.app = self.build_app()
        self.runner = None
        self.site = None

    def build_app(self) -> web.Application:
        app = web.Application(middlewares=[error_middleware], client_max_size=10 * 1024)
        app.router.add_get("/", self.handle_index)
        app.router.add_get("/health", self.handle_health)
        app.router.add_post("/register", self.handle_register)
        app.router.add_post("/login", self.handle_login)
        app.router.add_get("/profile/{id}", self.handle_get_profile)
        app.router.add_put("/profile/{id}", self.handle_update_profile)
        return app

    async def start(self) -> None:
        """Start aiohttp web server."""
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        self.site = web.TCPSite(self.runner, self.host, self.port)
        await self.site.start()
        logger.info(f"ApiServer listening on {self.host}:{self.port}")

    async def stop(self) -> None:
        """Stop web server gracefully."""
        if self.site:
            await self.site.stop()
        if self.runner:
            await self.runner.cleanup()
        logger.info("ApiServer stopped")

    async def _read_json(self, request: web.Request) -> Any:
        try:
            return await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return None

    def _authenticate(self, request: web.Request) -> tuple[Optional[TokenClaims], Optional[web.Response]]:
        """Verify the bearer token if one is present.

        Returns (claims, None) on success, (None, None) when no token was
        sent, and (None, response) when the token is rejected.
        """
        header = request.headers.get("Authorization", "")
        scheme, _, token = header.partition(" ")
        if not header or scheme.lower() != "bearer" or not token.strip():
            return None, None

        try:
            return self.accounts.verify_token(token.strip()), None
        except TokenExpired:
            return None, error_response(401, "Token expired, please log in again.")
        except TokenInvalid:
            logger.debug(f"Rejected bearer token from {request.remote}")
            return None, error_response(401, "Invalid or expired token.")

    def _authorize_profile(self, request: web.Request) -> Optional[web.Response]:
        claims, rejection = self._authenticate(request)
        if rejection is not None:
            return rejection
        if claims is not None and claims.user_id != request.match_info["id"]:
            return error_response(403, "Token does not grant access to this profile.")
        return None

    async def handle_index(self, request):
        return web.json_response(
            {
                "message": "TripMaker Authentication API",
                "version": __version__,
                "health": f"{request.scheme}://{request.host}/health",
            }
        )

    async def handle_health(self, request):
        return web.json_response(
            {
                "status": "ok",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "uptime": round(time.monotonic() - self.started_at, 3),
            }
        )

    async def handle_register(self, request):
        body = await self._read_json(request)
        error = validate_credentials(body, registering=True)
        if error:
            return error_response(400, error)

        result = await self.accounts.register(body["email"], body["password"])
        if isinstance(result, Failure):
            return failure_response(result)
        return web.json_response(result.to_dict(), status=201)

    async def handle_login(self, request):
        body = await self._read_json(request)
        error = validate_credentials(body, registering=False)
        if error:
            return error_response(400, error)

        result = await self.accounts.login(body["email"], body["password"])
        if isinstance(result, Failure):
            return failure_response(result)
        return web.json_response({**result.to_dict(), "message": "Login successful."})

    async def handle_get_profile(self, request):
        rejection = self._authorize_profile(request)
        if rejection is not None:
            return rejection

        result = await self.accounts.get_profile(request.match_info["id"])
        if isinstance(result, Failure):
            return failure_response(result)
        return web.json_response(result.to_dict())

    async def handle_update_profile(self, request):
        rejection = self._authorize_profile(request)
        if rejection is not None:
            return rejection

        body = await self._read_json(request)
        error = validate_profile_update(body)
        if error:
            return error_response(400, error)

        result = await self.accounts.update_profile(request.match_info["id"], profile_fields(body))
        if isinstance(result, Failure):
            return failure_response(result)
        return web.json_response(result.to_dict())
