import logging

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from devcamper.auth.dependencies import authorize
from devcamper.auth.passwords import hash_password
from devcamper.core.errors import NotFoundError, ValidationError
from devcamper.core.query import advanced_results
from devcamper.core.responses import envelope
from devcamper.database import get_db, write_transaction
from devcamper.models.bootcamp import Bootcamp
from devcamper.models.course import Course
from devcamper.models.review import Review, update_average_rating
from devcamper.models.user import ROLE_ADMIN, ROLE_USER, ROLES, User
from devcamper.routes.auth_routes import (
    check_password_length,
    ensure_email_available,
    normalize_email,
    normalize_name,
    reject_null,
    serialize_user,
)

logger = logging.getLogger(__name__)

# Every user management route is admin only.
router = APIRouter(prefix='/users', tags=['users'], dependencies=[Depends(authorize(ROLE_ADMIN))])


def check_role(value: str) -> str:
    normalized = value.strip().lower()
    if normalized not in ROLES:
        raise ValueError(f"Role must be one of: {', '.join(ROLES)}")
    return normalized


class CreateUserRequest(BaseModel):
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
        return check_role(value)


class UpdateUserRequest(BaseModel):
    name: str | None = None
    email: str | None = None
    role: str | None = None

    reject_nulls = field_validator('name', 'email', 'role', mode='before')(reject_null)

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str | None) -> str | None:
        return None if value is None else normalize_name(value)

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str | None) -> str | None:
        return None if value is None else normalize_email(value)

    @field_validator('role')
    @classmethod
    def validate_role(cls, value: str | None) -> str | None:
        return None if value is None else check_role(value)


def get_user_or_404(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError(f'No user found with ID {user_id}')
    return user


@router.get('')
def get_users(request: Request, db: Session = Depends(get_db)):
    return advanced_results(db, User, dict(request.query_params), serialize_user)


@router.get('/{user_id}')
def get_user(user_id: int, db: Session = Depends(get_db)):
    return envelope(serialize_user(get_user_or_404(db, user_id)))


@router.post('', status_code=status.HTTP_201_CREATED)
def create_user(data: CreateUserRequest, db: Session = Depends(get_db)):
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

    return envelope(serialize_user(user))


@router.put('/{user_id}')
def update_user(user_id: int, data: UpdateUserRequest, db: Session = Depends(get_db)):
    user = get_user_or_404(db, user_id)

    with write_transaction(db):
        changes = data.model_dump(exclude_unset=True)
        if 'email' in changes:
            ensure_email_available(db, changes['email'], exclude_user_id=user.id)
        for field, value in changes.items():
            setattr(user, field, value)
    db.refresh(user)

    return envelope(serialize_user(user))


@router.delete('/{user_id}')
def delete_user(user_id: int, db: Session = Depends(get_db)):
    user = get_user_or_404(db, user_id)

    owns_content = (
        db.query(Bootcamp.id).filter(Bootcamp.user_id == user.id).first() is not None
        or db.query(Course.id).filter(Course.user_id == user.id).first() is not None
    )
    if owns_content:
        raise ValidationError(f'User {user.id} still owns bootcamps or courses')

    with write_transaction(db):
        reviews = db.query(Review).filter(Review.user_id == user.id).all()
        reviewed_bootcamp_ids = {review.bootcamp_id for review in reviews}
        for review in reviews:
            db.delete(review)
        for bootcamp_id in reviewed_bootcamp_ids:
            update_average_rating(db, bootcamp_id)
        db.delete(user)

    logger.info('Deleted user %s', user_id)
    return envelope()
