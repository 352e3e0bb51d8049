import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, StrictInt, field_validator
from sqlalchemy.orm import Session

from devcamper.auth.dependencies import authorize, ensure_owner_or_admin
from devcamper.core.errors import NotFoundError
from devcamper.core.query import advanced_results
from devcamper.core.responses import envelope, list_envelope
from devcamper.database import get_db, write_transaction
from devcamper.models.bootcamp import Bootcamp
from devcamper.models.review import MAX_RATING, MIN_RATING, Review, update_average_rating
from devcamper.models.user import ROLE_ADMIN, ROLE_USER, User
from devcamper.routes.auth_routes import reject_null
from devcamper.routes.course_routes import BootcampSummaryResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=['reviews'])

MAX_TITLE_LENGTH = 100


def check_title(value: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError('Please add a title for the review')
    if len(normalized) > MAX_TITLE_LENGTH:
        raise ValueError(f'Review title can not have more than {MAX_TITLE_LENGTH} characters')
    return normalized


def check_text(value: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError('Please add some text')
    return normalized


def check_rating(value: int) -> int:
    if value < MIN_RATING or value > MAX_RATING:
        raise ValueError(f'Please add a rating between {MIN_RATING} and {MAX_RATING}')
    return value


class CreateReviewRequest(BaseModel):
    title: str
    text: str
    rating: StrictInt

    @field_validator('title')
    @classmethod
    def validate_title(cls, value: str) -> str:
        return check_title(value)

    @field_validator('text')
    @classmethod
    def validate_text(cls, value: str) -> str:
        return check_text(value)

    @field_validator('rating')
    @classmethod
    def validate_rating(cls, value: int) -> int:
        return check_rating(value)


class UpdateReviewRequest(BaseModel):
    title: str | None = None
    text: str | None = None
    rating: StrictInt | None = None

    reject_nulls = field_validator('title', 'text', 'rating', mode='before')(reject_null)

    @field_validator('title')
    @classmethod
    def validate_title(cls, value: str | None) -> str | None:
        return None if value is None else check_title(value)

    @field_validator('text')
    @classmethod
    def validate_text(cls, value: str | None) -> str | None:
        return None if value is None else check_text(value)

    @field_validator('rating')
    @classmethod
    def validate_rating(cls, value: int | None) -> int | None:
        return None if value is None else check_rating(value)


class ReviewResponse(BaseModel):
    id: int
    title: str
    text: str
    rating: int
    created_at: datetime | None = None
    bootcamp_id: int
    user_id: int
    bootcamp: BootcampSummaryResponse | None = None

    class Config:
        from_attributes = True


def serialize_review(review: Review) -> dict:
    return ReviewResponse.model_validate(review).model_dump(mode='json')


def get_review_or_404(db: Session, review_id: int) -> Review:
    review = db.get(Review, review_id)
    if review is None:
        raise NotFoundError(f'No review found with ID {review_id}')
    return review


@router.get('/reviews')
def get_reviews(request: Request, db: Session = Depends(get_db)):
    return advanced_results(db, Review, dict(request.query_params), serialize_review)


@router.get('/bootcamps/{bootcamp_id}/reviews')
def get_bootcamp_reviews(bootcamp_id: int, db: Session = Depends(get_db)):
    reviews = db.query(Review).filter(Review.bootcamp_id == bootcamp_id).order_by(Review.id.asc()).all()
    return list_envelope([serialize_review(review) for review in reviews])


@router.get('/reviews/{review_id}')
def get_review(review_id: int, db: Session = Depends(get_db)):
    return envelope(serialize_review(get_review_or_404(db, review_id)))


@router.post('/bootcamps/{bootcamp_id}/reviews', status_code=status.HTTP_201_CREATED)
def create_review(
    bootcamp_id: int,
    data: CreateReviewRequest,
    current_user: User = Depends(authorize(ROLE_USER, ROLE_ADMIN)),
    db: Session = Depends(get_db),
):
    bootcamp = db.get(Bootcamp, bootcamp_id)
    if bootcamp is None:
        raise NotFoundError(f'No bootcamp found with ID {bootcamp_id}')

    review = Review(**data.model_dump(), bootcamp_id=bootcamp.id, user_id=current_user.id)

    # A second review by the same user trips the unique constraint on flush.
    with write_transaction(db):
        db.add(review)
        update_average_rating(db, bootcamp.id)
    db.refresh(review)

    logger.info('User %s reviewed bootcamp %s', current_user.id, bootcamp.id)
    return envelope(serialize_review(review))


@router.put('/reviews/{review_id}')
def update_review(
    review_id: int,
    data: UpdateReviewRequest,
    current_user: User = Depends(authorize(ROLE_USER, ROLE_ADMIN)),
    db: Session = Depends(get_db),
):
    review = get_review_or_404(db, review_id)
    ensure_owner_or_admin(review, current_user, 'Not authorized to update this review')

    with write_transaction(db):
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(review, field, value)
        update_average_rating(db, review.bootcamp_id)
    db.refresh(review)

    return envelope(serialize_review(review))


@router.delete('/reviews/{review_id}')
def delete_review(
    review_id: int,
    current_user: User = Depends(authorize(ROLE_USER, ROLE_ADMIN)),
    db: Session = Depends(get_db),
):
    review = get_review_or_404(db, review_id)
    ensure_owner_or_admin(review, current_user, 'Not authorized to delete this review')

    bootcamp_id = review.bootcamp_id
    with write_transaction(db):
        db.delete(review)
        update_average_rating(db, bootcamp_id)

    return envelope()
