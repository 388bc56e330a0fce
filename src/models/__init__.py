"""Database models for the Credential Store."""

from .base import Base
from .otp import OtpModel
from .profile import ProfileModel
from .user import UserModel

__all__ = ["Base", "OtpModel", "ProfileModel", "UserModel"]
