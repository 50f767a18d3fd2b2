"""Unit tests for password hashing and account ID generation."""

from src.gs_account.auth.credentials import (
    generate_account_id,
    hash_password,
    verify_password,
)


def test_hash_is_not_plain():
    hashed = hash_password("MySecret1", rounds=4)
    assert hashed != "MySecret1"
    assert hashed.startswith("$2")


def test_verify_correct_password():
    hashed = hash_password("MySecret1", rounds=4)
    assert verify_password("MySecret1", hashed) is True


def test_verify_wrong_password():
    hashed = hash_password("MySecret1", rounds=4)
    assert verify_password("WrongPass9", hashed) is False


def test_verify_against_non_bcrypt_value():
    assert verify_password("MySecret1", "not-a-hash") is False


def test_account_ids_are_unique_strings():
    ids = {generate_account_id() for _ in range(1000)}
    assert len(ids) == 1000
    assert all(isinstance(i, str) and len(i) == 32 for i in ids)
