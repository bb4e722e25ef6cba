"""Tests for bearer credentials and password digests."""

from datetime import timedelta

import jwt
import pytest

from healthbar.services.credentials import (
    InvalidCredential,
    check_password,
    hash_password,
    issue_token,
    verify_token,
)


def test_issue_and_verify():
    token = issue_token("u-1", "jane@example.com", "patient")
    claims = verify_token(token)

    assert claims["user_id"] == "u-1"
    assert claims["email"] == "jane@example.com"
    assert claims["role"] == "patient"
    assert claims["exp"] > claims["iat"]


def test_wrong_secret_rejected():
    token = issue_token("u-1", "jane@example.com", "patient", secret="other-secret")
    with pytest.raises(InvalidCredential):
        verify_token(token)


def test_expired_token_rejected():
    token = issue_token("u-1", "jane@example.com", "doctor", expires_in=timedelta(seconds=-1))
    with pytest.raises(InvalidCredential):
        verify_token(token)


def test_tampered_token_rejected():
    token = issue_token("u-1", "jane@example.com", "patient")
    header, payload, signature = token.split(".")
    tampered = ".".join([header, payload, signature[::-1]])
    with pytest.raises(InvalidCredential):
        verify_token(tampered)


def test_unknown_role_rejected():
    token = jwt.encode(
        {"user_id": "u-1", "email": "a@b.c", "role": "admin", "exp": 4102444800},
        "test-secret",
        algorithm="HS256",
    )
    with pytest.raises(InvalidCredential):
        verify_token(token)


def test_missing_claim_rejected():
    token = jwt.encode({"user_id": "u-1", "role": "patient", "exp": 4102444800}, "test-secret", algorithm="HS256")
    with pytest.raises(InvalidCredential):
        verify_token(token)


def test_password_hashing():
    digest = hash_password("correct horse")

    assert digest != "correct horse"
    assert check_password("correct horse", digest)
    assert not check_password("battery staple", digest)


def test_check_password_against_non_bcrypt_digest():
    assert not check_password("anything", "plaintext-not-a-hash")
