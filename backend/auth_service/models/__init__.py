"""SQLAlchemy ORM models for the authentication service.

All models are exported from this module for convenient imports:
    from auth_service.models import Account, VerificationChallenge

- account.py: Account
- verification_challenge.py: VerificationChallenge (one per account)
"""

from auth_service.models.account import Account
from auth_service.models.base import Base, TimestampMixin
from auth_service.models.verification_challenge import VerificationChallenge

__all__ = [
    "Account",
    "Base",
    "TimestampMixin",
    "VerificationChallenge",
]
