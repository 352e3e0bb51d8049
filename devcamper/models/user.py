"""User model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String

from devcamper.database import Base

ROLE_USER = "user"
ROLE_PUBLISHER = "publisher"
ROLE_ADMIN = "admin"
ROLES = (ROLE_USER, ROLE_PUBLISHER, ROLE_ADMIN)
REGISTRABLE_ROLES = (ROLE_USER, ROLE_PUBLISHER)


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"
    __hidden_fields__ = ("hashed_password", "reset_password_token", "reset_password_expire")

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    role = Column(String, nullable=False, default=ROLE_USER)  # user/publisher/admin
    hashed_password = Column(String, nullable=False)
    reset_password_token = Column(String, index=True)
    reset_password_expire = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def clear_reset_token(self) -> None:
        self.reset_password_token = None
        self.reset_password_expire = None
