"""
Persistence layer for Auth Backend.
"""

from auth_backend.store.accounts import AccountStore, normalize_email
from auth_backend.store.challenges import ChallengeStore
from auth_backend.store.revocations import RevocationStore

__all__ = ["AccountStore", "ChallengeStore", "RevocationStore", "normalize_email"]
