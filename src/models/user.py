"""User database model.

This module defines the User database model using SQLAlchemy.
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship
from .base import Base


class UserModel(Base):
    """User database model."""

    __tablename__ = "users"

    user_id = Column(String, primary_key=True, index=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(String, nullable=False)  # 'Administrator', 'Instructor' or 'Learner'
    active = Column(Boolean, nullable=False, default=True)
    approved = Column(Boolean, nullable=False, default=False)
    image = Column(String, nullable=True)
    token = Column(String, nullable=True)  # current session token
    reset_password_token = Column(String, nullable=True, unique=True, index=True)
    reset_password_expires = Column(DateTime(timezone=True), nullable=True)
    profile_id = Column(String, ForeignKey("profiles.profile_id"), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    profile = relationship("ProfileModel")
