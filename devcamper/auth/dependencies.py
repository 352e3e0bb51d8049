import logging

import jwt
from fastapi import Depends, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from devcamper.auth import jwt_handler
from devcamper.core.config import Settings, get_settings
from devcamper.core.errors import AuthError
from devcamper.database import get_db
from devcamper.models.user import User

logger = logging.getLogger(__name__)

TOKEN_COOKIE_NAME = "token"
NOT_AUTHORIZED = "Not authorized to access this route"

security = HTTPBearer(auto_error=False)


def extract_token(request: Request, credentials: HTTPAuthorizationCredentials | None) -> str | None:
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(TOKEN_COOKIE_NAME)


def resolve_user(token: str | None, db: Session, settings: Settings) -> User:
    if not token:
        raise AuthError(NOT_AUTHORIZED)

    try:
        payload = jwt_handler.decode_access_token(token, settings)
    except jwt.PyJWTError as exc:
        raise AuthError(NOT_AUTHORIZED) from exc

    subject = payload.get("sub")
    try:
        user_id = int(subject)
    except (TypeError, ValueError) as exc:
        raise AuthError(NOT_AUTHORIZED) from exc

    user = db.get(User, user_id)
    if user is None:
        # Token outlived its user; treat the caller as unauthenticated.
        logger.info("Rejected token for missing user %s", user_id)
        raise AuthError(NOT_AUTHORIZED)
    return user


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    return resolve_user(extract_token(request, credentials), db, settings)


def ensure_role(user: User, roles: tuple[str, ...]) -> User:
    if user.role not in roles:
        raise AuthError(
            f"User role '{user.role}' is not authorized to access this route",
            status.HTTP_403_FORBIDDEN,
        )
    return user


def authorize(*roles: str):
    def role_checker(current_user: User = Depends(get_current_user)) -> User:
        return ensure_role(current_user, roles)

    return role_checker


def ensure_owner_or_admin(resource, user: User, message: str) -> None:
    if not resource.is_owned_by(user) and not user.is_admin:
        raise AuthError(message)
