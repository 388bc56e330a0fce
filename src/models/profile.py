"""Profile database model.

Additional personal details attached to each user. Created empty at signup.
"""

from sqlalchemy import Column, String
from .base import Base


class ProfileModel(Base):
    """Profile database model."""

    __tablename__ = "profiles"

    profile_id = Column(String, primary_key=True, index=True)
    gender = Column(String, nullable=True)
    date_of_birth = Column(String, nullable=True)
    about = Column(String, nullable=True)
    contact = Column(String, nullable=True)
