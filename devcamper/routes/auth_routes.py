import logging
import re
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationInfo, field_validator
from sqlalchemy.orm import Session

from devcamper.auth import jwt_handler
from devcamper.auth.dependencies import TOKEN_COOKIE_NAME, get_current_user
from devcamper.auth.passwords import generate_reset_token, hash_password, hash_reset_token, verify_password
from devcamper.core.config import Settings, get_settings
from devcamper.core.errors import AuthError, NotFoundError, ServerError, ValidationError
from devcamper.core.mailer import MailError, Mailer, get_mailer
from devcamper.core.responses import envelope
from devcamper.database import get_db, write_transaction
from devcamper.models.user import REGISTRABLE_ROLES, ROLE_USER, User

logger = logging.getLogger(__name__)

router = APIRouter(tags=['auth'])

EMAIL_PATTERN = re.compile(r'^\w+([\.-]?\w+)*@\w+([\.-]?\w+)*(\.\w{2,3})+$')
MAX_EMAIL_LENGTH = 320
MIN_PASSWORD_LENGTH = 6
INVALID_CREDENTIALS = 'Invalid credentials'


def normalize_email(value: str) -> str:
    normalized = value.strip().lower()
    if not normalized:
        raise ValueError('Please add an email')
    if len(normalized) > MAX_EMAIL_LENGTH or not EMAIL_PATTERN.match(normalized):
        raise ValueError('Please add a valid email')
    return normalized


def check_password_length(value: str) -> str:
    if len(value) < MIN_PASSWORD_LENGTH:
        raise ValueError(f'Password should have at least {MIN_PASSWORD_LENGTH} characters')
    return value


def reject_null(value, info: ValidationInfo):
    """Before-validator for partial updates of columns that can not be cleared."""
    if value is None:
        raise ValueError(f'{info.field_name} can not be null')
    return value


def normalize_name(value: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError('Please enter a name')
    return normalized


class RegisterRequest(BaseModel):
    name: str
    email: str
    password: str
    role: str = ROLE_USER

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        return normalize_name(value)

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return normalize_email(value)

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        return check_password_length(value)

    @field_validator('role')
    @classmethod
    def validate_role(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in REGISTRABLE_ROLES:
            raise ValueError(f"Role must be one of: {', '.join(REGISTRABLE_ROLES)}")
        return normalized


class LoginRequest(BaseModel):
    email: str | None = None
    password: str | None = None


class UpdateDetailsRequest(BaseModel):
    name: str | None = None
    email: str | None = None

    reject_nulls = field_validator('name', 'email', mode='before')(reject_null)

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str | None) -> str | None:
        return None if value is None else normalize_name(value)

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str | None) -> str | None:
        return None if value is None else normalize_email(value)


class UpdatePasswordRequest(BaseModel):
    current_password: str | None = None
    new_password: str | None = None

    @field_validator('new_password')
    @classmethod
    def validate_new_password(cls, value: str | None) -> str | None:
        return None if value is None else check_password_length(value)


class ForgotPasswordRequest(BaseModel):
    email: str | None = None


class ResetPasswordRequest(BaseModel):
    password: str

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        return check_password_length(value)


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    role: str
    created_at: datetime | None = None

    class Config:
        from_attributes = True


def serialize_user(user: User) -> dict:
    return UserResponse.model_validate(user).model_dump(mode='json')


def ensure_email_available(db: Session, email: str, exclude_user_id: int | None = None) -> None:
    query = db.query(User).filter(User.email == email)
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    if query.first() is not None:
        raise ValidationError('Duplicate field value entered')


def send_token_response(user: User, settings: Settings, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    token = jwt_handler.create_access_token(subject=str(user.id), settings=settings)
    max_age = settings.jwt_cookie_expire_days * 24 * 60 * 60
    response = JSONResponse(status_code=status_code, content={'success': True, 'token': token})
    response.set_cookie(
        key=TOKEN_COOKIE_NAME,
        value=token,
        max_age=max_age,
        expires=datetime.now(timezone.utc) + timedelta(seconds=max_age),
        httponly=True,
        secure=settings.is_production,
    )
    return response


def build_reset_url(request: Request, raw_token: str) -> str:
    base_url = str(request.base_url).rstrip('/')
    return f'{base_url}/api/v1/auth/resetpassword/{raw_token}'


@router.post('/register')
def register(
    data: RegisterRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    with write_transaction(db):
        ensure_email_available(db, data.email)
        user = User(
            name=data.name,
            email=data.email,
            role=data.role,
            hashed_password=hash_password(data.password),
        )
        db.add(user)
    db.refresh(user)

    logger.info('Registered user %s with role %s', user.id, user.role)
    return send_token_response(user, settings)


@router.post('/login')
def login(
    data: LoginRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    if not data.email or not data.password:
        raise ValidationError('Please provide email and password')

    user = db.query(User).filter(User.email == data.email.strip().lower()).first()

    # Unknown email and wrong password fail the same way.
    if user is None or not verify_password(data.password, user.hashed_password):
        raise AuthError(INVALID_CREDENTIALS)

    return send_token_response(user, settings)


@router.get('/logout')
def logout():
    response = JSONResponse(content=envelope())
    response.set_cookie(
        key=TOKEN_COOKIE_NAME,
        value='none',
        max_age=1,
        expires=datetime.now(timezone.utc) + timedelta(seconds=1),
        httponly=True,
    )
    return response


@router.get('/me')
def me(current_user: User = Depends(get_current_user)):
    return envelope(serialize_user(current_user))


@router.put('/updatedetails')
def update_details(
    data: UpdateDetailsRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    with write_transaction(db):
        user = db.get(User, current_user.id)
        if data.email is not None:
            ensure_email_available(db, data.email, exclude_user_id=user.id)
            user.email = data.email
        if data.name is not None:
            user.name = data.name
    db.refresh(user)

    return envelope(serialize_user(user))


@router.put('/updatepassword')
def update_password(
    data: UpdatePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    if not data.current_password or not data.new_password:
        raise ValidationError('Please enter current and new password')

    user = db.get(User, current_user.id)
    if not verify_password(data.current_password, user.hashed_password):
        raise AuthError('Current password is incorrect')

    with write_transaction(db):
        user.hashed_password = hash_password(data.new_password)
    db.refresh(user)

    return send_token_response(user, settings)


@router.post('/forgotpassword')
def forgot_password(
    data: ForgotPasswordRequest,
    request: Request,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    if not data.email or not data.email.strip():
        raise ValidationError('Please enter email')

    user = db.query(User).filter(User.email == data.email.strip().lower()).first()
    if user is None:
        raise NotFoundError('No user found with that email')

    raw_token, token_hash, expires_at = generate_reset_token()
    with write_transaction(db):
        user.reset_password_token = token_hash
        user.reset_password_expire = expires_at

    message = (
        'You are receiving this email because you (or someone else) has requested the reset of a password. '
        f'Please make a PUT request to: \n\n{build_reset_url(request, raw_token)}'
    )
    try:
        mailer.send(to=user.email, subject='Password reset token', body=message)
    except MailError as exc:
        logger.exception('Password reset email to user %s failed', user.id)
        with write_transaction(db):
            user.clear_reset_token()
        raise ServerError('Email could not be sent') from exc

    return envelope('Email sent')


@router.put('/resetpassword/{resettoken}')
def reset_password(
    resettoken: str,
    data: ResetPasswordRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    user = db.query(User).filter(
        User.reset_password_token == hash_reset_token(resettoken),
        User.reset_password_expire > datetime.utcnow(),
    ).first()
    if user is None:
        raise ValidationError('Invalid token')

    with write_transaction(db):
        user.hashed_password = hash_password(data.password)
        user.clear_reset_token()
    db.refresh(user)

    return send_token_response(user, settings)
