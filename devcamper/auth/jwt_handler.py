from datetime import datetime, timedelta, timezone

import jwt

from devcamper.core.config import Settings


def create_access_token(subject: str, settings: Settings, expires_minutes: int | None = None) -> str:
    issued_at = datetime.now(timezone.utc)
    lifetime = timedelta(minutes=expires_minutes or settings.jwt_expires_minutes)
    payload = {"sub": subject, "exp": issued_at + lifetime, "iat": issued_at}
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: Settings) -> dict:
    """Return the claims of a token signed with the configured secret; raises ``jwt.PyJWTError`` otherwise."""
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
