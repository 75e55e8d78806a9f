"""JWT token validation and current-user resolution."""

import logging
from typing import Any

import jwt

from apitoolbox.controllers.interfaces import TokenValidator, UserProvider
from apitoolbox.controllers.request import ApiRequest
from apitoolbox.core.config import settings
from apitoolbox.core.exceptions import (
    AccessDeniedError,
    AlertError,
    JwtNotConfiguredError,
    TokenNotFoundError,
    UserNotFoundError,
)

logger = logging.getLogger(__name__)


class JwtTokenValidator:
    """Validates HS256 (or configured) bearer tokens signed with a shared secret.

    The token is read from ``Authorization: Bearer <token>`` or, failing
    that, from a ``?token=`` query parameter.
    """

    def __init__(self, secret: str, algorithm: str = "HS256", user_claim: str = "sub"):
        self.secret = secret
        self.algorithm = algorithm
        self.user_claim = user_claim

    def get_token(self, request: ApiRequest) -> str | None:
        authorization = request.header("Authorization") or ""
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            return credentials.strip()
        token = request.query.get("token")
        return token if isinstance(token, str) and token else None

    def authenticate(self, token: str) -> Any | None:
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.InvalidTokenError as exc:
            logger.info("Rejected token: %s", exc)
            raise AccessDeniedError() from exc
        return payload.get(self.user_claim)


def default_token_validator() -> JwtTokenValidator | None:
    """Validator built from settings, or None when no JWT secret is configured."""
    if not settings.jwt_enabled:
        return None
    return JwtTokenValidator(
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        user_claim=settings.jwt_user_claim,
    )


class CurrentUserResolver:
    """Resolves the authenticated user of one request, at most once."""

    def __init__(
        self,
        request: ApiRequest,
        validator: TokenValidator | None,
        users: UserProvider | None,
        backend_header: str | None = None,
    ):
        self.request = request
        self.validator = validator
        self.users = users
        self.backend_header = backend_header or settings.backend_header
        self._user: Any = None

    async def resolve(self) -> Any:
        if self._user is not None:
            return self._user

        if self.validator is None or self.users is None:
            raise JwtNotConfiguredError()

        token = self.validator.get_token(self.request)
        if not token:
            raise TokenNotFoundError()

        user_id = self.validator.authenticate(token)
        if not user_id:
            raise UserNotFoundError()

        user = await self.users.get_active(user_id)
        if user is None:
            raise UserNotFoundError()

        self._user = user
        return user

    async def is_backend(self) -> bool:
        """True for authenticated requests coming from the backend UI."""
        try:
            await self.resolve()
        except AlertError:
            return False
        return self.request.header(self.backend_header) == "backend"
