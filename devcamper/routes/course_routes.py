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
from devcamper.models.course import SKILL_LEVELS, Course, update_average_cost
from devcamper.models.user import ROLE_ADMIN, ROLE_PUBLISHER, User
from devcamper.routes.auth_routes import reject_null

logger = logging.getLogger(__name__)

router = APIRouter(tags=['courses'])


def check_required_text(value: str, field_name: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError(f'Please add a {field_name}')
    return normalized


def check_tuition(value: int) -> int:
    if value < 0:
        raise ValueError('Tuition cost can not be negative')
    return value


def check_minimum_skill(value: str) -> str:
    normalized = value.strip().lower()
    if normalized not in SKILL_LEVELS:
        raise ValueError(f"Minimum skill must be one of: {', '.join(SKILL_LEVELS)}")
    return normalized


class CreateCourseRequest(BaseModel):
    title: str
    description: str
    weeks: str
    tuition: StrictInt
    minimum_skill: str
    scholarship_available: bool = False

    @field_validator('title')
    @classmethod
    def validate_title(cls, value: str) -> str:
        return check_required_text(value, 'course title')

    @field_validator('description')
    @classmethod
    def validate_description(cls, value: str) -> str:
        return check_required_text(value, 'description')

    @field_validator('weeks')
    @classmethod
    def validate_weeks(cls, value: str) -> str:
        return check_required_text(value, 'number of weeks')

    @field_validator('tuition')
    @classmethod
    def validate_tuition(cls, value: int) -> int:
        return check_tuition(value)

    @field_validator('minimum_skill')
    @classmethod
    def validate_minimum_skill(cls, value: str) -> str:
        return check_minimum_skill(value)


class UpdateCourseRequest(BaseModel):
    title: str | None = None
    description: str | None = None
    weeks: str | None = None
    tuition: StrictInt | None = None
    minimum_skill: str | None = None
    scholarship_available: bool | None = None

    reject_nulls = field_validator(
        'title', 'description', 'weeks', 'tuition', 'minimum_skill', 'scholarship_available',
        mode='before',
    )(reject_null)

    @field_validator('title')
    @classmethod
    def validate_title(cls, value: str | None) -> str | None:
        return None if value is None else check_required_text(value, 'course title')

    @field_validator('description')
    @classmethod
    def validate_description(cls, value: str | None) -> str | None:
        return None if value is None else check_required_text(value, 'description')

    @field_validator('weeks')
    @classmethod
    def validate_weeks(cls, value: str | None) -> str | None:
        return None if value is None else check_required_text(value, 'number of weeks')

    @field_validator('tuition')
    @classmethod
    def validate_tuition(cls, value: int | None) -> int | None:
        return None if value is None else check_tuition(value)

    @field_validator('minimum_skill')
    @classmethod
    def validate_minimum_skill(cls, value: str | None) -> str | None:
        return None if value is None else check_minimum_skill(value)


class BootcampSummaryResponse(BaseModel):
    id: int
    name: str
    description: str

    class Config:
        from_attributes = True


class CourseResponse(BaseModel):
    id: int
    title: str
    description: str
    weeks: str
    tuition: int
    minimum_skill: str
    scholarship_available: bool | None = None
    created_at: datetime | None = None
    bootcamp_id: int
    user_id: int
    bootcamp: BootcampSummaryResponse | None = None

    class Config:
        from_attributes = True


def serialize_course(course: Course) -> dict:
    return CourseResponse.model_validate(course).model_dump(mode='json')


def get_course_or_404(db: Session, course_id: int) -> Course:
    course = db.get(Course, course_id)
    if course is None:
        raise NotFoundError(f'No course with ID of {course_id}')
    return course


@router.get('/courses')
def get_courses(request: Request, db: Session = Depends(get_db)):
    return advanced_results(db, Course, dict(request.query_params), serialize_course)


@router.get('/bootcamps/{bootcamp_id}/courses')
def get_bootcamp_courses(bootcamp_id: int, db: Session = Depends(get_db)):
    courses = db.query(Course).filter(Course.bootcamp_id == bootcamp_id).order_by(Course.id.asc()).all()
    return list_envelope([serialize_course(course) for course in courses])


@router.get('/courses/{course_id}')
def get_course(course_id: int, db: Session = Depends(get_db)):
    return envelope(serialize_course(get_course_or_404(db, course_id)))


@router.post('/bootcamps/{bootcamp_id}/courses', status_code=status.HTTP_201_CREATED)
def create_course(
    bootcamp_id: int,
    data: CreateCourseRequest,
    current_user: User = Depends(authorize(ROLE_PUBLISHER, ROLE_ADMIN)),
    db: Session = Depends(get_db),
):
    bootcamp = db.get(Bootcamp, bootcamp_id)
    if bootcamp is None:
        raise NotFoundError(f'No bootcamp with ID of {bootcamp_id}')
    ensure_owner_or_admin(
        bootcamp,
        current_user,
        f'User {current_user.id} is not authorized to add a course to bootcamp {bootcamp.id}',
    )

    course = Course(**data.model_dump(), bootcamp_id=bootcamp.id, user_id=current_user.id)
    with write_transaction(db):
        db.add(course)
        update_average_cost(db, bootcamp.id)
    db.refresh(course)

    return envelope(serialize_course(course))


@router.put('/courses/{course_id}')
def update_course(
    course_id: int,
    data: UpdateCourseRequest,
    current_user: User = Depends(authorize(ROLE_PUBLISHER, ROLE_ADMIN)),
    db: Session = Depends(get_db),
):
    course = get_course_or_404(db, course_id)
    ensure_owner_or_admin(course, current_user, f'User {current_user.id} is not authorized to update this course')

    with write_transaction(db):
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(course, field, value)
        update_average_cost(db, course.bootcamp_id)
    db.refresh(course)

    return envelope(serialize_course(course))


@router.delete('/courses/{course_id}')
def delete_course(
    course_id: int,
    current_user: User = Depends(authorize(ROLE_PUBLISHER, ROLE_ADMIN)),
    db: Session = Depends(get_db),
):
    course = get_course_or_404(db, course_id)
    ensure_owner_or_admin(course, current_user, f'User {current_user.id} is not authorized to delete this course')

    bootcamp_id = course.bootcamp_id
    with write_transaction(db):
        db.delete(course)
        update_average_cost(db, bootcamp_id)

    return envelope()
