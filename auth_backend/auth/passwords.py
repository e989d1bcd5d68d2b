"""
Password hashing helpers.
"""

import bcrypt

from auth_backend.models.account import Account


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a password using bcrypt."""
    # bcrypt has a 72-byte limit, so truncate if needed
    password_bytes = password.encode('utf-8')[:72]
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password_bytes, salt)
    return hashed.decode('utf-8')


def check_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    # bcrypt has a 72-byte limit, so truncate if needed (must match hash_password)
    password_bytes = plain_password.encode('utf-8')[:72]
    hashed_bytes = hashed_password.encode('utf-8')
    try:
        return bcrypt.checkpw(password_bytes, hashed_bytes)
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def hash_if_changed(account: Account, plain_password: str | None, rounds: int = 12) -> bool:
    """
    Store a fresh hash on the account when a plaintext password is supplied.

    The stored hash is left untouched when no plaintext is given, so an
    existing hash is never hashed a second time.

    Returns:
        True if the account's password hash was replaced.
    """
    if not plain_password:
        return False
    account.password_hash = hash_password(plain_password, rounds)
    return True


def verify_password(account: Account, plain_password: str) -> bool:
    """Check a plaintext password against the account. Password-less accounts never match."""
    if not account.password_hash:
        return False
    return check_password(plain_password, account.password_hash)
