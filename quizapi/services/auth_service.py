import logging
from typing import List, Tuple

from sqlalchemy.exc import IntegrityError

from quizapi.core.auth import TokenService
from quizapi.core.errors import ErrorKind, Result, guarded
from quizapi.core.security import PasswordHasher
from quizapi.models.schemas import AuthResponse, TokenClaims, UserProfile, UserRecord
from quizapi.services.store import CredentialStore

logger = logging.getLogger(__name__)


def flatten_grants(user: UserRecord) -> Tuple[List[str], List[str]]:
    """Role names and ``resource:action`` strings of a user, first occurrence kept."""
    roles = list(dict.fromkeys(role.name for role in user.roles))
    permissions = list(dict.fromkeys(p.scope for role in user.roles for p in role.permissions))
    return roles, permissions


def build_profile(user: UserRecord) -> UserProfile:
    roles, permissions = flatten_grants(user)
    return UserProfile(id=user.id, username=user.username, email=user.email, roles=roles, permissions=permissions)


class AuthService:
    def __init__(self, store: CredentialStore, tokens: TokenService, hasher: PasswordHasher):
        self.store = store
        self.tokens = tokens
        self.hasher = hasher

    def _respond(self, user: UserRecord) -> AuthResponse:
        profile = build_profile(user)
        token = self.tokens.issue(TokenClaims(
            user_id=profile.id, username=profile.username, email=profile.email,
            roles=profile.roles, permissions=profile.permissions,
        ))
        return AuthResponse(token=token, user=profile)

    @guarded
    def register(self, username: str, email: str, password: str) -> Result[AuthResponse]:
        # Login matches either column, so neither value may collide with either column.
        taken = (self.store.find_user_by_username_or_email(username) is not None
                 or self.store.find_user_by_username_or_email(email) is not None)
        if taken:
            logger.info(f"Registration rejected, {username!r} or {email!r} already exists")
            return Result.failure(ErrorKind.CONFLICT, "Username or email already exists")
        try:
            user = self.store.save_user(username, email, self.hasher.hash(password))
        except IntegrityError:
            # Lost a race against a concurrent registration.
            return Result.failure(ErrorKind.CONFLICT, "Username or email already exists")
        logger.info(f"Registered user {user.id} ({user.username})")
        return Result.success(self._respond(user))

    @guarded
    def login(self, username: str, password: str) -> Result[AuthResponse]:
        user = self.store.find_user_by_username_or_email(username)
        if user is None or not user.is_active or not self.hasher.verify(password, user.password_hash):
            logger.info(f"Failed login for {username!r}")
            return Result.failure(ErrorKind.INVALID_CREDENTIALS, "Invalid credentials")
        logger.info(f"User {user.id} logged in")
        return Result.success(self._respond(user))

    @guarded
    def profile(self, user_id: int) -> Result[UserProfile]:
        user = self.store.find_user_with_roles(user_id)
        if user is None:
            return Result.failure(ErrorKind.NOT_FOUND, "User not found")
        return Result.success(build_profile(user))
