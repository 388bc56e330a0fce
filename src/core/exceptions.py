"""Custom exception classes for the marketplace auth service.

Every error raised by the auth managers derives from ``AuthServiceError`` and
carries the HTTP status and stable error code it is reported with.
"""


class AuthServiceError(Exception):
    """Base exception for all auth service errors."""

    status_code: int = 500
    error_code: str = "Internal"
    default_message: str = "An internal error occurred"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInputError(AuthServiceError):
    """Raised when a required field is missing or malformed."""

    status_code = 400
    error_code = "InvalidInput"
    default_message = "All fields are required"


class PasswordMismatchError(AuthServiceError):
    """Raised when a password and its confirmation differ."""

    status_code = 400
    error_code = "PasswordMismatch"
    default_message = "Password and confirm password do not match"


class AlreadyRegisteredError(AuthServiceError):
    """Raised when an email already belongs to a user."""

    status_code = 409
    error_code = "AlreadyRegistered"
    default_message = "User already registered"


class OtpExpiredError(AuthServiceError):
    """Raised when no live OTP exists for an email."""

    status_code = 400
    error_code = "OtpExpired"
    default_message = "OTP has expired or was never requested"


class OtpInvalidError(AuthServiceError):
    """Raised when the presented OTP does not match."""

    status_code = 400
    error_code = "OtpInvalid"
    default_message = "Invalid OTP"


class InvalidCredentialsError(AuthServiceError):
    """Raised on any failed credential check.

    Unknown email and wrong password share this error so that responses
    do not reveal which accounts exist.
    """

    status_code = 400
    error_code = "InvalidCredentials"
    default_message = "Invalid email or password"


class MissingTokenError(AuthServiceError):
    """Raised when a protected request carries no session token."""

    status_code = 401
    error_code = "MissingToken"
    default_message = "Token is missing"


class InvalidTokenError(AuthServiceError):
    """Raised when a token is malformed, forged, expired or unknown."""

    status_code = 401
    error_code = "InvalidToken"
    default_message = "Token is invalid"


class TokenExpiredError(AuthServiceError):
    """Raised when a password reset token is past its expiry."""

    status_code = 401
    error_code = "TokenExpired"
    default_message = "Token expired"


class AccessDeniedError(AuthServiceError):
    """Raised when an authenticated identity lacks the required role."""

    status_code = 403
    error_code = "AccessDenied"
    default_message = "You are not allowed to access this resource"


class UserNotFoundError(AuthServiceError):
    """Raised when a requested user cannot be found."""

    status_code = 404
    error_code = "NotFound"
    default_message = "User not found"

    def __init__(self, identifier: str = None):
        """Initialize the exception.

        Args:
            identifier: Email or id that was looked up. Kept on the instance
                for logging only; the message stays generic.
        """
        self.identifier = identifier
        super().__init__()


class MailDeliveryError(AuthServiceError):
    """Raised when the mail collaborator fails to deliver a message."""

    status_code = 500
    error_code = "Internal"
    default_message = "Unable to send email"


class InternalError(AuthServiceError):
    """Raised for store or hashing failures not otherwise classified."""

    pass


class ConfigurationError(AuthServiceError):
    """Raised when there is a configuration error."""

    default_message = "Service is misconfigured"
