"""
Bearer token codec tests.

Verifies:
- Issued tokens verify back to the same claims
- Tampered, foreign-key and garbage tokens are invalid (not expired)
- Expiry is checked against the encoded exp
- Missing tokens are reported as missing
"""

from datetime import datetime, timedelta

import pytest
from itsdangerous import URLSafeSerializer

from salesapi.errors import TokenExpired, TokenInvalid, TokenMissing
from salesapi.services import token_service
from salesapi.services.token_service import TOKEN_SALT, extract_bearer, issue_token, verify_token
from salesapi.time_utils import epoch_seconds


SECRET = "unit-test-secret"
ISSUED = datetime(2026, 10, 19, 12, 0, 0)


def _issue(**overrides):
    kwargs = {
        "subject_id": 42,
        "display_name": "ana",
        "role_names": ["vendedor", "almacen"],
        "ttl": 3600,
        "now": ISSUED,
        "secret_key": SECRET,
    }
    kwargs.update(overrides)
    return issue_token(**kwargs)


class TestIssueAndVerify:

    def test_claims_survive(self):
        claims = verify_token(_issue(), now=ISSUED + timedelta(minutes=5), secret_key=SECRET)

        assert claims.subject_id == 42
        assert claims.display_name == "ana"
        assert claims.primary_role == "vendedor"
        assert claims.roles == ("vendedor", "almacen")
        assert claims.issued_at == epoch_seconds(ISSUED)
        assert claims.expires_at == epoch_seconds(ISSUED) + 3600

    def test_no_roles_has_no_primary_role(self):
        claims = verify_token(_issue(role_names=[]), now=ISSUED, secret_key=SECRET)
        assert claims.primary_role is None
        assert claims.roles == ()

    def test_timedelta_ttl(self):
        claims = verify_token(_issue(ttl=timedelta(hours=8)), now=ISSUED, secret_key=SECRET)
        assert claims.expires_at - claims.issued_at == 8 * 3600

    def test_non_positive_ttl_rejected(self):
        with pytest.raises(ValueError):
            _issue(ttl=0)

    def test_ttl_defaults_to_config(self, app_ctx):
        token = issue_token(1, "admin_user", ["admin"], now=ISSUED)
        claims = verify_token(token, now=ISSUED)
        assert claims.expires_at - claims.issued_at == app_ctx.config["TOKEN_TTL_SECONDS"]

    def test_missing_secret_key_is_a_configuration_error(self, app_ctx):
        app_ctx.config["TOKEN_SECRET_KEY"] = None
        with pytest.raises(RuntimeError):
            issue_token(1, "admin_user", ["admin"])


class TestRejection:

    def test_expired(self):
        token = _issue(ttl=60)
        with pytest.raises(TokenExpired):
            verify_token(token, now=ISSUED + timedelta(seconds=61), secret_key=SECRET)

    def test_valid_at_exact_expiry(self):
        token = _issue(ttl=60)
        claims = verify_token(token, now=ISSUED + timedelta(seconds=60), secret_key=SECRET)
        assert claims.subject_id == 42

    def test_wrong_key(self):
        with pytest.raises(TokenInvalid):
            verify_token(_issue(), now=ISSUED, secret_key="another-secret")

    def test_tampered_payload(self):
        token = _issue()
        signature = token.rpartition(".")[2]
        forged = URLSafeSerializer("attacker", salt=TOKEN_SALT).dumps({"sub": 1})
        tampered = forged.rpartition(".")[0] + "." + signature

        with pytest.raises(TokenInvalid):
            verify_token(tampered, now=ISSUED, secret_key=SECRET)

    def test_garbage(self):
        with pytest.raises(TokenInvalid):
            verify_token("not-a-token", now=ISSUED, secret_key=SECRET)

    def test_tampered_expired_token_is_invalid_not_expired(self):
        token = _issue(ttl=1)
        with pytest.raises(TokenInvalid):
            verify_token(token + "x", now=ISSUED + timedelta(days=1), secret_key=SECRET)

    def test_signed_payload_with_wrong_shape(self):
        token = URLSafeSerializer(SECRET, salt=TOKEN_SALT).dumps({"sub": "42", "name": "ana"})
        with pytest.raises(TokenInvalid):
            verify_token(token, now=ISSUED, secret_key=SECRET)

    @pytest.mark.parametrize("token", [None, "", "   "])
    def test_missing(self, token):
        with pytest.raises(TokenMissing):
            verify_token(token, now=ISSUED, secret_key=SECRET)


class TestExtractBearer:

    @pytest.mark.parametrize(
        "header,expected",
        [
            ("Bearer abc.def", "abc.def"),
            ("bearer   abc.def  ", "abc.def"),
            ("Basic dXNlcjpwYXNz", None),
            ("Bearer", None),
            ("", None),
            (None, None),
        ],
    )
    def test_extract(self, header, expected):
        assert extract_bearer(header) == expected

    def test_claims_to_dict_uses_wire_names(self):
        claims = token_service.verify_token(_issue(), now=ISSUED, secret_key=SECRET)
        data = claims.to_dict()
        assert data["role"] == "vendedor"
        assert data["roles"] == ["vendedor", "almacen"]
