import hashlib
import secrets
from datetime import datetime, timedelta

from passlib.context import CryptContext

BCRYPT_ROUNDS = 10
RESET_TOKEN_BYTES = 20
RESET_TOKEN_EXPIRES_MINUTES = 10

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed_password: str | None) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(password, hashed_password)


def hash_reset_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def generate_reset_token(now: datetime | None = None) -> tuple[str, str, datetime]:
    """Return the raw token to mail out, the hash to store, and its expiry."""
    raw_token = secrets.token_hex(RESET_TOKEN_BYTES)
    issued_at = now or datetime.utcnow()
    return raw_token, hash_reset_token(raw_token), issued_at + timedelta(minutes=RESET_TOKEN_EXPIRES_MINUTES)
