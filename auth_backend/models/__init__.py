"""
SQLAlchemy models for Auth Backend.
"""

from auth_backend.models.account import Account
from auth_backend.models.challenge import PendingChallenge
from auth_backend.models.revoked_token import RevokedToken

__all__ = ["Account", "PendingChallenge", "RevokedToken"]
