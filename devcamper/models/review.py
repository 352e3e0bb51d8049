"""Review model definitions."""

import logging
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, relationship

from devcamper.database import Base
from devcamper.models.bootcamp import Bootcamp

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 10


class Review(Base):
    """Represents a user's review of a bootcamp. One per user and bootcamp."""
    __tablename__ = "reviews"
    __table_args__ = (UniqueConstraint("bootcamp_id", "user_id", name="uq_reviews_bootcamp_user"),)

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(100), nullable=False)
    text = Column(String, nullable=False)
    rating = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    bootcamp_id = Column(Integer, ForeignKey("bootcamps.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    bootcamp = relationship("Bootcamp", back_populates="reviews")

    def is_owned_by(self, user) -> bool:
        return self.user_id == user.id


def update_average_rating(db: Session, bootcamp_id: int) -> None:
    """Recompute the bootcamp's average rating from its current reviews.

    The new value is assigned in the caller's session, so it is committed
    together with the review write that triggered it. A bootcamp left with no
    reviews gets ``None``. A failing aggregate query is logged and does not
    fail the review write: it runs in a savepoint, so only the savepoint is
    rolled back.
    """
    db.flush()
    try:
        with db.begin_nested():
            average = db.query(func.avg(Review.rating)).filter(Review.bootcamp_id == bootcamp_id).scalar()
            bootcamp = db.get(Bootcamp, bootcamp_id)
            if bootcamp is not None:
                bootcamp.average_rating = float(average) if average is not None else None
    except SQLAlchemyError:
        logger.exception("Could not update average rating for bootcamp %s", bootcamp_id)
