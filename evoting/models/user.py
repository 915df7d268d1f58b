from sqlalchemy import Column, Integer, String, DateTime, Boolean
from sqlalchemy.orm import validates
from sqlalchemy.sql import func
from evoting.core.database import Base


class User(Base):
    """
    User model for voters and election administrators.

    Admins log in with email and a password set at creation time.
    Non-admins (voters) log in with their nim and receive a password
    by email when credentials are issued.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    # Student/member number - the voter's login identifier
    nim = Column(String, unique=True, index=True, nullable=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    # bcrypt hash; empty until credentials are issued for voters
    password = Column(String, nullable=True)
    is_admin = Column(Boolean, default=False, nullable=False)
    # Only set for non-admin users
    year_class = Column(Integer, nullable=True)
    voted = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    @validates("voted", "is_admin")
    def validate_flag(self, key, value):
        if not isinstance(value, bool):
            raise ValueError(f"{key} must be a boolean, got {value!r}")
        return value
