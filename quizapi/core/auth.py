"""
Token issuance/verification and request authorization.

Tokens are HS256 JWTs carrying the user's identity, role names and
``resource:action`` permission strings. Authorization is a string-membership
test against those embedded claims: no store lookup happens at request time,
so role or permission edits only take effect once a new token is issued.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import ValidationError

from quizapi.core.errors import ErrorKind, Result, unwrap
from quizapi.models.schemas import TokenClaims

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    def __init__(self, secret: str, ttl: timedelta = timedelta(hours=24), algorithm: str = "HS256",
                 clock: Callable[[], datetime] = _utcnow):
        self.secret = secret
        self.ttl = ttl
        self.algorithm = algorithm
        self.clock = clock

    def issue(self, claims: TokenClaims) -> str:
        now = self.clock()
        payload = {
            "user_id": claims.user_id,
            "username": claims.username,
            "email": claims.email,
            "roles": list(claims.roles),
            "permissions": list(claims.permissions),
            "iat": int(now.timestamp()),
            "exp": int((now + self.ttl).timestamp()),
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> Result[TokenClaims]:
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm], options={"require": ["exp"]})
        except jwt.ExpiredSignatureError:
            return Result.failure(ErrorKind.INVALID_TOKEN, "Token has expired")
        except jwt.InvalidTokenError as e:
            logger.debug(f"Token rejected: {e}")
            return Result.failure(ErrorKind.INVALID_TOKEN, "Invalid token")
        try:
            claims = TokenClaims(
                user_id=payload["user_id"],
                username=payload["username"],
                email=payload["email"],
                roles=payload.get("roles", []),
                permissions=payload.get("permissions", []),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            )
        except (KeyError, TypeError, ValidationError):
            return Result.failure(ErrorKind.INVALID_TOKEN, "Malformed token payload")
        return Result.success(claims)


# ============= Authorization decisions =============

def check_permission(claims: TokenClaims, resource: str, action: str) -> Result[TokenClaims]:
    required = f"{resource}:{action}"
    if required not in claims.permissions:
        logger.debug(f"User {claims.username} lacks permission {required}")
        return Result.failure(ErrorKind.FORBIDDEN, f"Permission denied: {required}")
    return Result.success(claims)


def check_role(claims: TokenClaims, role_name: str) -> Result[TokenClaims]:
    if role_name not in claims.roles:
        logger.debug(f"User {claims.username} lacks role {role_name}")
        return Result.failure(ErrorKind.FORBIDDEN, f"Role required: {role_name}")
    return Result.success(claims)


def authenticate(tokens: TokenService, token: Optional[str]) -> Result[TokenClaims]:
    """Verify a bearer token; every failure is reported as unauthenticated."""
    if not token:
        return Result.failure(ErrorKind.UNAUTHENTICATED, "Access token required")
    result = tokens.verify(token)
    if not result.ok:
        return Result.failure(ErrorKind.UNAUTHENTICATED, "Invalid or expired token")
    return result


# ============= FastAPI dependencies =============

bearer = HTTPBearer(auto_error=False)


def get_token_service(request: Request) -> TokenService:
    return request.app.state.tokens


def get_current_user(creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
                     tokens: TokenService = Depends(get_token_service)) -> TokenClaims:
    return unwrap(authenticate(tokens, creds.credentials if creds else None))


def require_permission(resource: str, action: str):
    def checker(user: TokenClaims = Depends(get_current_user)) -> TokenClaims:
        return unwrap(check_permission(user, resource, action))
    return checker


def require_role(role_name: str):
    def checker(user: TokenClaims = Depends(get_current_user)) -> TokenClaims:
        return unwrap(check_role(user, role_name))
    return checker
