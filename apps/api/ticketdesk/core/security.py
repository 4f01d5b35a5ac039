from datetime import datetime, timedelta, timezone
import base64
import hashlib
import secrets

from passlib.context import CryptContext
import jwt

from .errors import ExpiredToken, InvalidToken

JWT_ALGORITHM = "HS256"
BCRYPT_MAX_BYTES = 72


def make_pwd_context(rounds: int = 12) -> CryptContext:
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)


def hash_password(pwd_context: CryptContext, pw: str) -> str:
    return pwd_context.hash(pw)


def verify_password(pwd_context: CryptContext, pw: str, hashed: str) -> bool:
    if not hashed:
        return False
    try:
        return pwd_context.verify(pw, hashed)
    except ValueError:
        # unknown or corrupt hash format
        return False


def hash_token_sha256_b64(token: str) -> str:
    digest = hashlib.sha256(token.encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


def new_reset_token() -> str:
    return secrets.token_urlsafe(32)


def create_access_token(
    sub: str,
    *,
    secret: str,
    expires_min: int,
    email: str | None = None,
    role: str | None = None,
) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": sub,
        "email": email,
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=expires_min)).timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


def decode_token(token: str, *, secret: str) -> dict:
    try:
        return jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError as exc:
        raise ExpiredToken() from exc
    except jwt.InvalidTokenError as exc:
        raise InvalidToken() from exc
