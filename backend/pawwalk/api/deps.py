from typing import Optional, Protocol

from fastapi import Depends, Header

from pawwalk.core.config import settings
from pawwalk.core.errors import Unauthorized


class IdentityResolver(Protocol):
    def resolve(self, token: str) -> Optional[str]:
        """Return the user id for a bearer token, or None."""


class StaticTokenResolver:
    """Token -> user id map, normally loaded from settings.auth_tokens."""

    def __init__(self, tokens: dict[str, str]):
        self._tokens = dict(tokens)

    def resolve(self, token: str) -> Optional[str]:
        return self._tokens.get(token)


def get_identity_resolver() -> IdentityResolver:
    return StaticTokenResolver(settings.auth_tokens)


def get_current_user_id(
    authorization: Optional[str] = Header(None),
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> str:
    if not authorization:
        raise Unauthorized("Authorization header is required")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthorized("Authorization header must be 'Bearer <token>'")
    user_id = resolver.resolve(token.strip())
    if not user_id:
        raise Unauthorized("Invalid or expired token")
    return user_id
