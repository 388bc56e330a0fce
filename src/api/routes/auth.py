"""Authentication routes.

This module handles HTTP endpoints for OTP signup, login, logout, password
change and password reset.
"""

import logging

from fastapi import APIRouter, Depends, Response, status

import config
from core.authorization import get_current_identity
from core.dependencies import (
    LoginManagerDep,
    OtpManagerDep,
    PasswordResetManagerDep,
    RegistrationManagerDep,
    UserManagerDep,
)
from core.exceptions import InvalidTokenError
from schemas.user import (
    ChangePasswordRequest,
    CurrentUserResponse,
    Identity,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ResetPasswordRequest,
    ResetPasswordTokenRequest,
    SendOtpRequest,
    SignupRequest,
    SignupResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["Auth"])

COOKIE_MAX_AGE_SECONDS = config.TOKEN_COOKIE_EXPIRE_DAYS * 24 * 60 * 60


@router.post("/sendOTP", response_model=MessageResponse, summary="Send signup OTP")
def send_otp(req: SendOtpRequest, otp_manager: OtpManagerDep) -> MessageResponse:
    """Mail a signup OTP to an unregistered email.

    The code itself is never part of the response.
    """
    otp_manager.request_otp(req.email)
    return MessageResponse(message="OTP sent successfully")


@router.post(
    "/signup",
    response_model=SignupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
)
def signup(req: SignupRequest, registration_manager: RegistrationManagerDep) -> SignupResponse:
    """Register a new user with a valid signup OTP.

    Args:
        req: Signup payload.
        registration_manager: Injected RegistrationManager instance.

    Returns:
        SignupResponse with the created user and profile.
    """
    user, profile = registration_manager.register(req)
    return SignupResponse(
        message="User registered successfully", user=user, profile=profile
    )


@router.post("/login", response_model=LoginResponse, summary="Log in")
def login(req: LoginRequest, response: Response, login_manager: LoginManagerDep) -> LoginResponse:
    """Login with email and password.

    The token is returned in the body and as an HTTP-only cookie. The cookie
    lives for TOKEN_COOKIE_EXPIRE_DAYS, longer than the token inside it.

    Args:
        req: Login request with email and password.
        response: Outgoing response, used to set the cookie.
        login_manager: Injected LoginManager instance.

    Returns:
        LoginResponse with user information and session token.
    """
    result = login_manager.login(req.email, req.password)
    response.set_cookie(
        key=config.TOKEN_COOKIE_NAME,
        value=result.token,
        max_age=COOKIE_MAX_AGE_SECONDS,
        httponly=True,
        secure=config.COOKIE_SECURE,
        samesite="lax",
    )
    return LoginResponse(message="Logged in successfully", user=result.user, token=result.token)


@router.put("/logout", response_model=MessageResponse, summary="Log out")
def logout(
    response: Response,
    login_manager: LoginManagerDep,
    identity: Identity = Depends(get_current_identity),
) -> MessageResponse:
    """Clear the stored session token and the cookie."""
    login_manager.logout(identity.user_id)
    response.delete_cookie(config.TOKEN_COOKIE_NAME, httponly=True)
    return MessageResponse(message="Logged out successfully")


@router.post("/change-password", response_model=MessageResponse, summary="Change password")
def change_password(
    req: ChangePasswordRequest,
    login_manager: LoginManagerDep,
    identity: Identity = Depends(get_current_identity),
) -> MessageResponse:
    """Change the password of the logged in user."""
    login_manager.change_password(
        identity.user_id, req.old_password, req.new_password, req.confirm_password
    )
    return MessageResponse(message="Password updated successfully")


@router.post(
    "/reset-password-token",
    response_model=MessageResponse,
    summary="Send password reset link",
)
def reset_password_token(
    req: ResetPasswordTokenRequest,
    reset_manager: PasswordResetManagerDep,
) -> MessageResponse:
    """Mail a password reset link. The link is not echoed back."""
    reset_manager.request_reset(req.email, req.name)
    return MessageResponse(message="Reset password link sent successfully")


@router.post("/reset-password", response_model=MessageResponse, summary="Reset password")
def reset_password(
    req: ResetPasswordRequest,
    reset_manager: PasswordResetManagerDep,
) -> MessageResponse:
    """Set a new password with a reset token."""
    reset_manager.reset_password(req.token, req.new_password, req.confirm_password)
    return MessageResponse(message="Password updated successfully")


@router.get("/me", response_model=CurrentUserResponse, summary="Current user")
def get_current_user_info(
    user_manager: UserManagerDep,
    identity: Identity = Depends(get_current_identity),
) -> CurrentUserResponse:
    """Get current authenticated user information."""
    user = user_manager.get_user_by_id(identity.user_id)
    if user is None:
        raise InvalidTokenError("User no longer exists")
    return CurrentUserResponse(message="User fetched successfully", user=user)
