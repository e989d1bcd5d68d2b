"""
Tests for password hashing helpers.
"""

from auth_backend.auth.passwords import (
    check_password,
    hash_if_changed,
    hash_password,
    verify_password,
)
from auth_backend.models.account import Account


def test_hash_and_check():
    hashed = hash_password("secret1", rounds=4)
    assert hashed != "secret1"
    assert check_password("secret1", hashed)
    assert not check_password("secret2", hashed)


def test_hashes_are_salted():
    assert hash_password("secret1", rounds=4) != hash_password("secret1", rounds=4)


def test_long_passwords_truncate_consistently():
    base = "a1" * 40
    hashed = hash_password(base, rounds=4)
    assert check_password(base, hashed)
    assert check_password(base + "extra", hashed)


def test_check_against_non_hash():
    assert not check_password("secret1", "plaintext")


def test_hash_if_changed():
    account = Account(email="a@x.com", username="alice")
    assert hash_if_changed(account, None, rounds=4) is False
    assert account.password_hash is None

    assert hash_if_changed(account, "secret1", rounds=4) is True
    first = account.password_hash
    assert verify_password(account, "secret1")

    # No plaintext: the existing hash is kept as is
    assert hash_if_changed(account, "", rounds=4) is False
    assert account.password_hash == first


def test_password_less_account_never_matches():
    account = Account(email="a@x.com", username="alice")
    assert not verify_password(account, "")
    assert not verify_password(account, "secret1")
