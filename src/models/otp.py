"""OTP database model.

One row per issued verification code. Rows are live until ``expires_at``;
expired rows are purged by the OTP manager.
"""

from sqlalchemy import Column, DateTime, Integer, String
from .base import Base


class OtpModel(Base):
    """One-time password database model."""

    __tablename__ = "otps"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, nullable=False, index=True)
    otp = Column(String, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    consumed_at = Column(DateTime(timezone=True), nullable=True)
