"""Bootcamp model definitions."""

import re
from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from devcamper.database import Base

CAREERS = (
    "Web Development",
    "Mobile Development",
    "UI/UX",
    "Data Science",
    "Business",
    "Other",
)
DEFAULT_PHOTO = "no-photo.jpg"


def slugify(value: str) -> str:
    slug = re.sub(r"[^\w\s-]", "", value.lower()).strip()
    return re.sub(r"[\s_-]+", "-", slug).strip("-")


class Bootcamp(Base):
    """Represents a bootcamp listing owned by a single publisher."""
    __tablename__ = "bootcamps"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(50), unique=True, nullable=False)
    slug = Column(String, index=True)
    description = Column(String(500), nullable=False)
    website = Column(String)
    phone = Column(String(20))
    email = Column(String)
    address = Column(String, nullable=False)

    latitude = Column(Float)
    longitude = Column(Float)
    formatted_address = Column(String)
    street = Column(String)
    city = Column(String)
    state = Column(String)
    zipcode = Column(String)
    country = Column(String)

    careers = Column(JSON, nullable=False, default=list)
    average_rating = Column(Float)
    average_cost = Column(Integer)
    photo = Column(String, default=DEFAULT_PHOTO)
    housing = Column(Boolean, default=False)
    job_assistance = Column(Boolean, default=False)
    job_guarantee = Column(Boolean, default=False)
    accept_gi = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    courses = relationship("Course", back_populates="bootcamp", cascade="all, delete-orphan")
    reviews = relationship("Review", back_populates="bootcamp", cascade="all, delete-orphan")

    def is_owned_by(self, user) -> bool:
        return self.user_id == user.id

    def apply_location(self, location) -> None:
        self.latitude = location.latitude
        self.longitude = location.longitude
        self.formatted_address = location.formatted_address
        self.street = location.street
        self.city = location.city
        self.state = location.state
        self.zipcode = location.zipcode
        self.country = location.country
