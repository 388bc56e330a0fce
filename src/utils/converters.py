"""Conversions between database models and schema objects."""

from core.clock import as_utc
from models.profile import ProfileModel
from models.user import UserModel
from schemas.user import Profile, Role, User


def model_to_user(model: UserModel) -> User:
    return User(
        user_id=model.user_id,
        first_name=model.first_name,
        last_name=model.last_name,
        email=model.email,
        role=Role(model.role),
        active=model.active,
        approved=model.approved,
        image=model.image,
        profile_id=model.profile_id,
        created_at=as_utc(model.created_at),
        password_hash=model.password_hash,
        token=model.token,
        reset_password_token=model.reset_password_token,
        reset_password_expires=as_utc(model.reset_password_expires),
    )


def model_to_profile(model: ProfileModel) -> Profile:
    return Profile(
        profile_id=model.profile_id,
        gender=model.gender,
        date_of_birth=model.date_of_birth,
        about=model.about,
        contact=model.contact,
    )
