import logging
import math
import re
from datetime import datetime

from fastapi import APIRouter, Depends, File, Path, Request, UploadFile, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from devcamper.auth.dependencies import authorize, ensure_owner_or_admin
from devcamper.core.config import Settings, get_settings
from devcamper.core.errors import NotFoundError, ServerError, ValidationError
from devcamper.core.geocoder import GeocodingError, Geocoder, GeoLocation, LocationNotFoundError, get_geocoder
from devcamper.core.query import advanced_results
from devcamper.core.responses import envelope, list_envelope
from devcamper.core.uploads import save_bootcamp_photo
from devcamper.database import get_db, write_transaction
from devcamper.models.bootcamp import CAREERS, Bootcamp, slugify
from devcamper.models.user import ROLE_ADMIN, ROLE_PUBLISHER, User
from devcamper.routes.auth_routes import normalize_email, reject_null

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/bootcamps', tags=['bootcamps'])

EARTH_RADIUS_KM = 6378
MAX_NAME_LENGTH = 50
MAX_DESCRIPTION_LENGTH = 500
MAX_PHONE_LENGTH = 20
URL_PATTERN = re.compile(
    r'^https?://(www\.)?[-a-zA-Z0-9@:%._+~#=]{1,256}\.[a-zA-Z0-9()]{1,6}\b([-a-zA-Z0-9()@:%_+.~#?&/=]*)$'
)


def check_name(value: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError('Please add a name')
    if len(normalized) > MAX_NAME_LENGTH:
        raise ValueError(f'Name can not be more than {MAX_NAME_LENGTH} characters')
    return normalized


def check_description(value: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError('Please add a description')
    if len(normalized) > MAX_DESCRIPTION_LENGTH:
        raise ValueError(f'Description can not be more than {MAX_DESCRIPTION_LENGTH} characters')
    return normalized


def check_website(value: str) -> str:
    normalized = value.strip()
    if not URL_PATTERN.match(normalized):
        raise ValueError('Please use a valid URL with HTTP or HTTPS')
    return normalized


def check_phone(value: str) -> str:
    normalized = value.strip()
    if len(normalized) > MAX_PHONE_LENGTH:
        raise ValueError(f'Phone number can not be longer than {MAX_PHONE_LENGTH} characters')
    return normalized


def check_address(value: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError('Please add an address')
    return normalized


def check_careers(value: list[str]) -> list[str]:
    if not value:
        raise ValueError('Please add at least one career')
    invalid = [career for career in value if career not in CAREERS]
    if invalid:
        raise ValueError(f"Invalid careers: {', '.join(invalid)}")
    return list(dict.fromkeys(value))


class CreateBootcampRequest(BaseModel):
    name: str
    description: str
    website: str | None = None
    phone: str | None = None
    email: str | None = None
    address: str
    careers: list[str]
    housing: bool = False
    job_assistance: bool = False
    job_guarantee: bool = False
    accept_gi: bool = False

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        return check_name(value)

    @field_validator('description')
    @classmethod
    def validate_description(cls, value: str) -> str:
        return check_description(value)

    @field_validator('website')
    @classmethod
    def validate_website(cls, value: str | None) -> str | None:
        return None if value is None else check_website(value)

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, value: str | None) -> str | None:
        return None if value is None else check_phone(value)

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str | None) -> str | None:
        return None if value is None else normalize_email(value)

    @field_validator('address')
    @classmethod
    def validate_address(cls, value: str) -> str:
        return check_address(value)

    @field_validator('careers')
    @classmethod
    def validate_careers(cls, value: list[str]) -> list[str]:
        return check_careers(value)


class UpdateBootcampRequest(BaseModel):
    name: str | None = None
    description: str | None = None
    website: str | None = None
    phone: str | None = None
    email: str | None = None
    address: str | None = None
    careers: list[str] | None = None
    housing: bool | None = None
    job_assistance: bool | None = None
    job_guarantee: bool | None = None
    accept_gi: bool | None = None

    reject_nulls = field_validator(
        'name', 'description', 'address', 'careers', 'housing', 'job_assistance', 'job_guarantee', 'accept_gi',
        mode='before',
    )(reject_null)

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str | None) -> str | None:
        return None if value is None else check_name(value)

    @field_validator('description')
    @classmethod
    def validate_description(cls, value: str | None) -> str | None:
        return None if value is None else check_description(value)

    @field_validator('website')
    @classmethod
    def validate_website(cls, value: str | None) -> str | None:
        return None if value is None else check_website(value)

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, value: str | None) -> str | None:
        return None if value is None else check_phone(value)

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str | None) -> str | None:
        return None if value is None else normalize_email(value)

    @field_validator('address')
    @classmethod
    def validate_address(cls, value: str | None) -> str | None:
        return None if value is None else check_address(value)

    @field_validator('careers')
    @classmethod
    def validate_careers(cls, value: list[str] | None) -> list[str] | None:
        return None if value is None else check_careers(value)


class BootcampResponse(BaseModel):
    id: int
    user_id: int
    name: str
    slug: str | None = None
    description: str
    website: str | None = None
    phone: str | None = None
    email: str | None = None
    address: str
    latitude: float | None = None
    longitude: float | None = None
    formatted_address: str | None = None
    street: str | None = None
    city: str | None = None
    state: str | None = None
    zipcode: str | None = None
    country: str | None = None
    careers: list[str]
    average_rating: float | None = None
    average_cost: int | None = None
    photo: str | None = None
    housing: bool | None = None
    job_assistance: bool | None = None
    job_guarantee: bool | None = None
    accept_gi: bool | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


def serialize_bootcamp(bootcamp: Bootcamp) -> dict:
    return BootcampResponse.model_validate(bootcamp).model_dump(mode='json')


def get_bootcamp_or_404(db: Session, bootcamp_id: int) -> Bootcamp:
    bootcamp = db.get(Bootcamp, bootcamp_id)
    if bootcamp is None:
        raise NotFoundError(f'Bootcamp not found with ID of {bootcamp_id}')
    return bootcamp


def geocode(geocoder: Geocoder, address: str) -> GeoLocation:
    try:
        return geocoder.geocode(address)
    except LocationNotFoundError as exc:
        raise ValidationError(str(exc)) from exc
    except GeocodingError as exc:
        raise ServerError('Geocoding service unavailable') from exc


def central_angle(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Angle in radians between two points on a sphere (haversine)."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = phi2 - phi1
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * math.asin(min(1.0, math.sqrt(a)))


def find_bootcamps_within(db: Session, latitude: float, longitude: float, radius: float) -> list[Bootcamp]:
    # Latitude difference never exceeds the great-circle angle, so it is a safe prefilter.
    lat_delta = math.degrees(radius)
    candidates = db.query(Bootcamp).filter(
        Bootcamp.latitude.is_not(None),
        Bootcamp.longitude.is_not(None),
        Bootcamp.latitude >= latitude - lat_delta,
        Bootcamp.latitude <= latitude + lat_delta,
    ).order_by(Bootcamp.id.asc()).all()

    return [
        bootcamp
        for bootcamp in candidates
        if central_angle(latitude, longitude, bootcamp.latitude, bootcamp.longitude) <= radius
    ]


@router.get('')
def get_bootcamps(request: Request, db: Session = Depends(get_db)):
    return advanced_results(db, Bootcamp, dict(request.query_params), serialize_bootcamp)


@router.get('/radius/{zipcode}/{distance}')
def get_bootcamps_in_radius(
    zipcode: str,
    distance: float = Path(..., gt=0),
    db: Session = Depends(get_db),
    geocoder: Geocoder = Depends(get_geocoder),
):
    location = geocode(geocoder, zipcode)
    radius = distance / EARTH_RADIUS_KM

    bootcamps = find_bootcamps_within(db, location.latitude, location.longitude, radius)

    return list_envelope([serialize_bootcamp(bootcamp) for bootcamp in bootcamps])


@router.get('/{bootcamp_id}')
def get_bootcamp(bootcamp_id: int, db: Session = Depends(get_db)):
    return envelope(serialize_bootcamp(get_bootcamp_or_404(db, bootcamp_id)))


@router.post('', status_code=status.HTTP_201_CREATED)
def create_bootcamp(
    data: CreateBootcampRequest,
    current_user: User = Depends(authorize(ROLE_PUBLISHER, ROLE_ADMIN)),
    db: Session = Depends(get_db),
    geocoder: Geocoder = Depends(get_geocoder),
):
    published = db.query(Bootcamp).filter(Bootcamp.user_id == current_user.id).first()
    if published is not None and not current_user.is_admin:
        raise ValidationError(f'User with ID {current_user.id} has already published a bootcamp')

    bootcamp = Bootcamp(**data.model_dump(), slug=slugify(data.name), user_id=current_user.id)
    bootcamp.apply_location(geocode(geocoder, data.address))

    with write_transaction(db):
        db.add(bootcamp)
    db.refresh(bootcamp)

    logger.info('User %s created bootcamp %s', current_user.id, bootcamp.id)
    return envelope(serialize_bootcamp(bootcamp))


@router.put('/{bootcamp_id}')
def update_bootcamp(
    bootcamp_id: int,
    data: UpdateBootcampRequest,
    current_user: User = Depends(authorize(ROLE_PUBLISHER, ROLE_ADMIN)),
    db: Session = Depends(get_db),
    geocoder: Geocoder = Depends(get_geocoder),
):
    bootcamp = get_bootcamp_or_404(db, bootcamp_id)
    ensure_owner_or_admin(bootcamp, current_user, f'User {current_user.id} is not authorized to update this bootcamp')

    changes = data.model_dump(exclude_unset=True)
    if 'address' in changes and changes['address'] != bootcamp.address:
        bootcamp.apply_location(geocode(geocoder, changes['address']))
    if 'name' in changes:
        bootcamp.slug = slugify(changes['name'])

    with write_transaction(db):
        for field, value in changes.items():
            setattr(bootcamp, field, value)
    db.refresh(bootcamp)

    return envelope(serialize_bootcamp(bootcamp))


@router.delete('/{bootcamp_id}')
def delete_bootcamp(
    bootcamp_id: int,
    current_user: User = Depends(authorize(ROLE_PUBLISHER, ROLE_ADMIN)),
    db: Session = Depends(get_db),
):
    bootcamp = get_bootcamp_or_404(db, bootcamp_id)
    ensure_owner_or_admin(bootcamp, current_user, f'User {current_user.id} is not authorized to delete this bootcamp')

    # Courses and reviews go with it through the relationship cascade.
    with write_transaction(db):
        db.delete(bootcamp)

    logger.info('User %s deleted bootcamp %s', current_user.id, bootcamp_id)
    return envelope()


@router.put('/{bootcamp_id}/photo')
def bootcamp_photo_upload(
    bootcamp_id: int,
    file: UploadFile | None = File(None),
    current_user: User = Depends(authorize(ROLE_PUBLISHER, ROLE_ADMIN)),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    bootcamp = get_bootcamp_or_404(db, bootcamp_id)
    ensure_owner_or_admin(bootcamp, current_user, f'User {current_user.id} is not authorized to update this bootcamp')

    if file is None:
        raise ValidationError('Please upload a file')

    filename = save_bootcamp_photo(
        bootcamp_id=bootcamp.id,
        original_name=file.filename or '',
        content_type=file.content_type,
        data=file.file.read(),
        settings=settings,
    )

    with write_transaction(db):
        bootcamp.photo = filename

    return envelope(filename)
