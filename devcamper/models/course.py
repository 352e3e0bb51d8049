"""Course model definitions."""

import logging
import math
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, relationship

from devcamper.database import Base
from devcamper.models.bootcamp import Bootcamp

logger = logging.getLogger(__name__)

SKILL_LEVELS = ("beginner", "intermediate", "advanced")


class Course(Base):
    """Represents a course offered by a bootcamp."""
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(String, nullable=False)
    weeks = Column(String, nullable=False)
    tuition = Column(Integer, nullable=False)
    minimum_skill = Column(String, nullable=False)
    scholarship_available = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    bootcamp_id = Column(Integer, ForeignKey("bootcamps.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    bootcamp = relationship("Bootcamp", back_populates="courses")

    def is_owned_by(self, user) -> bool:
        return self.user_id == user.id


def update_average_cost(db: Session, bootcamp_id: int) -> None:
    """Store the mean tuition, rounded up to the next ten, on the bootcamp.

    Runs inside the caller's session so the value commits with the course write.
    Errors from the aggregate query are logged and only roll back its savepoint.
    """
    db.flush()
    try:
        with db.begin_nested():
            average = db.query(func.avg(Course.tuition)).filter(Course.bootcamp_id == bootcamp_id).scalar()
            bootcamp = db.get(Bootcamp, bootcamp_id)
            if bootcamp is not None:
                bootcamp.average_cost = math.ceil(average / 10) * 10 if average is not None else None
    except SQLAlchemyError:
        logger.exception("Could not update average cost for bootcamp %s", bootcamp_id)
