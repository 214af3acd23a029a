"""Tests for bcrypt password hashing."""

import bcrypt

from src.uh_user.application.password import hash_password, with_password_hash


class TestHashPassword:
    def test_hash_verifies(self) -> None:
        hashed = hash_password("engine1843")
        assert hashed.startswith("$2")
        assert bcrypt.checkpw(b"engine1843", hashed.encode())

    def test_longest_accepted_password_hashes(self) -> None:
        plain = "x" * 72
        assert bcrypt.checkpw(plain.encode(), hash_password(plain).encode())

    def test_salted(self) -> None:
        assert hash_password("same") != hash_password("same")


class TestWithPasswordHash:
    def test_replaces_password(self) -> None:
        out = with_password_hash({"first_name": "Ada", "password": "engine1843"})
        assert "password" not in out
        assert bcrypt.checkpw(b"engine1843", out["password_hash"].encode())
        assert out["first_name"] == "Ada"

    def test_without_password_is_a_copy(self) -> None:
        fields = {"first_name": "Ada"}
        out = with_password_hash(fields)
        assert out == fields
        assert out is not fields
