from __future__ import annotations

from datetime import datetime, timedelta, timezone
import logging

from ..core.config import Settings
from ..core.errors import (
    DuplicateEmail,
    InvalidCredentials,
    InvalidOrExpiredToken,
    InvalidToken,
    NotFound,
    ValidationError,
)
from ..core.policy import ALLOWED_ROLES, ROLE_ADMIN, ROLE_USER, Principal
from ..core.security import (
    BCRYPT_MAX_BYTES,
    create_access_token,
    decode_token,
    hash_password,
    hash_token_sha256_b64,
    make_pwd_context,
    new_reset_token,
    verify_password,
)
from ..stores.base import UserStore
from ..stores.records import UserRecord
from .mail_notifications import build_password_reset_mail
from .mail_service import Mailer, normalize_email_address

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def validate_password(password: str | None) -> str:
    if not password:
        raise ValidationError("Password is required")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if len(password.encode("utf-8")) > BCRYPT_MAX_BYTES:
        raise ValidationError(f"Password must be <= {BCRYPT_MAX_BYTES} bytes")
    return password


def normalize_email(email: str | None) -> str:
    raw = (email or "").strip()
    if not raw:
        raise ValidationError("Email is required")
    normalized = normalize_email_address(raw)
    if not normalized:
        raise ValidationError("Invalid email")
    return normalized.lower()


class CredentialService:
    """Users, passwords and bearer tokens."""

    def __init__(self, users: UserStore, settings: Settings, mailer: Mailer):
        self.users = users
        self.settings = settings
        self.mailer = mailer
        self.pwd_context = make_pwd_context(settings.PASSWORD_HASH_ROUNDS)

    def register(self, name: str | None, email: str | None, password: str | None, role: str = ROLE_USER) -> UserRecord:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Name is required")
        email = normalize_email(email)
        validate_password(password)
        if role not in ALLOWED_ROLES:
            raise ValidationError(f"Invalid role: {role}")

        user = self.users.create(
            name=name,
            email=email,
            password_hash=hash_password(self.pwd_context, password),
            role=role,
        )
        logger.info("user registered id=%s role=%s", user.id, user.role)
        return user

    def issue_token(self, user: UserRecord) -> str:
        return create_access_token(
            user.id,
            secret=self.settings.JWT_SECRET,
            expires_min=self.settings.JWT_EXPIRES_MIN,
            email=user.email,
            role=user.role,
        )

    def authenticate(self, email: str | None, password: str | None) -> tuple[str, UserRecord]:
        user = self.users.get_by_email((email or "").strip().lower())
        if not user or not verify_password(self.pwd_context, password or "", user.password_hash):
            raise InvalidCredentials()
        return self.issue_token(user), user

    def verify(self, token: str) -> Principal:
        payload = decode_token(token, secret=self.settings.JWT_SECRET)
        sub = payload.get("sub")
        if not sub:
            raise InvalidToken()
        # trust the stored user, not the role claim baked into the token
        user = self.users.get(str(sub))
        if not user:
            raise InvalidToken("User not found")
        return Principal.from_user(user)

    def request_password_reset(self, email: str | None) -> None:
        user = self.users.get_by_email((email or "").strip().lower())
        if not user:
            logger.info("password reset requested for unknown address")
            return

        token = new_reset_token()
        ttl_min = self.settings.RESET_TOKEN_TTL_MIN
        expires_at = datetime.now(timezone.utc) + timedelta(minutes=ttl_min)
        self.users.set_reset_token(user.id, hash_token_sha256_b64(token), expires_at)
        self.mailer.send(
            build_password_reset_mail(user, token, app_base_url=self.settings.APP_BASE_URL, ttl_min=ttl_min)
        )
        logger.info("password reset issued user_id=%s", user.id)

    def reset_password(self, token: str | None, new_password: str | None) -> None:
        if not token:
            raise InvalidOrExpiredToken()
        token_hash = hash_token_sha256_b64(token)
        user = self.users.get_by_reset_token(token_hash)
        now = datetime.now(timezone.utc)
        if not user or not user.reset_token_expires_at or user.reset_token_expires_at <= now:
            raise InvalidOrExpiredToken()

        validate_password(new_password)
        if not self.users.consume_reset_token(user.id, token_hash, hash_password(self.pwd_context, new_password)):
            raise InvalidOrExpiredToken()
        logger.info("password reset completed user_id=%s", user.id)

    def change_password(self, principal: Principal, current_password: str | None, new_password: str | None) -> None:
        user = self.users.get(principal.id)
        if not user or not verify_password(self.pwd_context, current_password or "", user.password_hash):
            raise InvalidCredentials("Current password is incorrect")
        validate_password(new_password)
        self.users.set_password(user.id, hash_password(self.pwd_context, new_password))
        logger.info("password changed user_id=%s", user.id)

    def set_role(self, user_id: str, role: str) -> UserRecord:
        if role not in ALLOWED_ROLES:
            raise ValidationError(f"Invalid role: {role}")
        user = self.users.set_role(user_id, role)
        if not user:
            raise NotFound("User not found")
        logger.info("role changed user_id=%s role=%s", user.id, role)
        return user

    def ensure_admin(self) -> UserRecord:
        """Seed the default admin once; an existing account with that email is left as is."""
        email = self.settings.ADMIN_EMAIL.strip().lower()
        existing = self.users.get_by_email(email)
        if existing:
            return existing
        try:
            admin = self.users.create(
                name=self.settings.ADMIN_NAME,
                email=email,
                password_hash=hash_password(self.pwd_context, self.settings.ADMIN_PASSWORD),
                role=ROLE_ADMIN,
            )
        except DuplicateEmail:
            # another worker seeded it first
            return self.users.get_by_email(email)
        logger.info("default admin created: %s", email)
        return admin
