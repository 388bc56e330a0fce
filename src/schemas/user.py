"""User and authentication schema definitions.

Request models accept the camelCase names used by the web client
(``firstName``, ``confirmPassword``, ``accountType``...) as well as their
snake_case field names.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    """Closed set of account roles.

    Roles are flat: no role implies another.
    """

    ADMINISTRATOR = "Administrator"
    INSTRUCTOR = "Instructor"
    LEARNER = "Learner"


class Profile(BaseModel):
    profile_id: str
    gender: Optional[str] = None
    date_of_birth: Optional[str] = None
    about: Optional[str] = None
    contact: Optional[str] = None


class User(BaseModel):
    """A user record.

    Secrets are loaded for internal checks but excluded from every dump.
    """

    user_id: str
    first_name: str
    last_name: str
    email: str
    role: Role
    active: bool = True
    approved: bool = False
    image: Optional[str] = None
    profile_id: str
    created_at: datetime
    password_hash: Optional[str] = Field(default=None, exclude=True)
    token: Optional[str] = Field(default=None, exclude=True)
    reset_password_token: Optional[str] = Field(default=None, exclude=True)
    reset_password_expires: Optional[datetime] = Field(default=None, exclude=True)


class Identity(BaseModel):
    """Claims carried by a verified session token."""

    user_id: str
    email: str
    role: Role


class _CamelRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SendOtpRequest(_CamelRequest):
    email: Optional[str] = None


class SignupRequest(_CamelRequest):
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    email: Optional[str] = None
    password: Optional[str] = None
    confirm_password: Optional[str] = Field(default=None, alias="confirmPassword")
    account_type: Optional[str] = Field(default=None, alias="accountType")
    otp: Optional[str] = None


class LoginRequest(_CamelRequest):
    email: Optional[str] = None
    password: Optional[str] = None


class ChangePasswordRequest(_CamelRequest):
    old_password: Optional[str] = Field(default=None, alias="oldPassword")
    new_password: Optional[str] = Field(default=None, alias="newPassword")
    confirm_password: Optional[str] = Field(default=None, alias="confirmPassword")


class ResetPasswordTokenRequest(_CamelRequest):
    email: Optional[str] = None
    name: Optional[str] = None


class ResetPasswordRequest(_CamelRequest):
    token: Optional[str] = None
    new_password: Optional[str] = Field(default=None, alias="newPassword")
    confirm_password: Optional[str] = Field(default=None, alias="confirmPassword")


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class SignupResponse(MessageResponse):
    user: User
    profile: Profile


class LoginResponse(MessageResponse):
    user: User
    token: str


class CurrentUserResponse(MessageResponse):
    user: User
