"""Password hashing, user creation and login."""

import pytest

from conftest import PASSWORD
from salesapi.errors import ConflictError, InvalidCredentials, ValidationError
from salesapi.extensions import db
from salesapi.models import User
from salesapi.services import auth_service, token_service


class TestPasswords:

    def test_hash_and_verify(self, app_ctx):
        hashed = auth_service.hash_password("correct horse")
        assert hashed != "correct horse"
        assert auth_service.verify_password("correct horse", hashed)
        assert not auth_service.verify_password("wrong horse", hashed)

    def test_short_password_rejected(self, app_ctx):
        with pytest.raises(ValidationError):
            auth_service.hash_password("short")

    def test_non_bcrypt_hash_does_not_verify(self):
        assert auth_service.verify_password("anything", "not-a-hash") is False


class TestUsers:

    def test_duplicate_username(self, app_ctx, seed):
        with pytest.raises(ConflictError):
            auth_service.create_user("admin_user", PASSWORD)

    def test_blank_username(self, app_ctx, seed):
        with pytest.raises(ValidationError):
            auth_service.create_user("   ", PASSWORD)

    def test_login_issues_token_with_current_roles(self, app_ctx, seed):
        result = auth_service.login("admin_user", PASSWORD)

        claims = token_service.verify_token(result.token)
        assert claims.subject_id == seed.admin_id
        assert claims.roles == ("admin",)
        assert result.user.last_login_at is not None

    def test_inactive_user_cannot_login(self, app_ctx, seed):
        user = db.session.get(User, seed.vendedor_id)
        user.is_active = False
        db.session.commit()

        with pytest.raises(InvalidCredentials):
            auth_service.authenticate("vendedor_user", PASSWORD)
