"""
Tests for token issuing and validation.
"""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from models.user import UserType
from services.errors import SigningError
from services.tokens import Claims, TokenIssuer, TokenKind, TokenValidator, hash_token

ACCESS_SECRET = "test-access-secret-0123456789abcdef"
REFRESH_SECRET = "test-refresh-secret-0123456789abcdef"


@pytest.fixture
def issuer() -> TokenIssuer:
    return TokenIssuer(ACCESS_SECRET, REFRESH_SECRET, issuer="storefront", audience="storefront-users")


@pytest.fixture
def validator() -> TokenValidator:
    return TokenValidator(ACCESS_SECRET, REFRESH_SECRET, issuer="storefront", audience="storefront-users")


@pytest.fixture
def claims() -> Claims:
    return Claims(user_id=7, email="a@x.com", user_type=UserType.CUSTOMER)


class TestClaims:
    def test_accepts_role_string(self):
        claims = Claims(user_id=1, email="b@x.com", user_type="admin")
        assert claims.user_type is UserType.ADMIN
        assert claims.is_admin

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"user_id": 0, "email": "a@x.com", "user_type": "customer"},
            {"user_id": True, "email": "a@x.com", "user_type": "customer"},
            {"user_id": 1, "email": "", "user_type": "customer"},
            {"user_id": 1, "email": "a@x.com", "user_type": "superuser"},
        ],
    )
    def test_refuses_invalid_fields(self, kwargs):
        with pytest.raises(ValueError):
            Claims(**kwargs)

    def test_refuses_missing_fields(self):
        with pytest.raises(TypeError):
            Claims(user_id=1, email="a@x.com")

    def test_from_payload_missing_field_is_none(self):
        assert Claims.from_payload({"sub": "1", "email": "a@x.com"}) is None
        assert Claims.from_payload({"sub": "abc", "email": "a@x.com", "user_type": "admin"}) is None


class TestTokenIssuer:
    def test_access_token_round_trip(self, issuer, validator, claims):
        issued = issuer.issue_access_token(claims)

        assert validator.verify(issued.token, TokenKind.ACCESS) == claims

    def test_refresh_token_round_trip(self, issuer, validator, claims):
        issued = issuer.issue_refresh_token(claims)

        assert validator.verify(issued.token, TokenKind.REFRESH) == claims

    def test_ttls(self, issuer, claims):
        now = datetime(2030, 1, 1, tzinfo=timezone.utc)

        access = issuer.issue_access_token(claims, now=now)
        refresh = issuer.issue_refresh_token(claims, now=now)

        assert access.expires_at == now + timedelta(minutes=15)
        assert refresh.expires_at == now + timedelta(days=7)

    def test_payload_shape(self, issuer, claims):
        issued = issuer.issue_access_token(claims)
        payload = jwt.get_unverified_claims(issued.token)

        assert payload["sub"] == "7"
        assert payload["email"] == "a@x.com"
        assert payload["user_type"] == "customer"
        assert payload["type"] == "access"
        assert payload["jti"] == issued.jti
        assert payload["iss"] == "storefront"
        assert payload["aud"] == "storefront-users"

    def test_each_token_is_unique(self, issuer, claims):
        assert issuer.issue_refresh_token(claims).token != issuer.issue_refresh_token(claims).token

    def test_refuses_to_sign_non_claims(self, issuer):
        with pytest.raises(SigningError):
            issuer.issue_access_token({"userId": 1, "email": "a@x.com"})

    @pytest.mark.parametrize("access_secret,refresh_secret", [("", REFRESH_SECRET), (ACCESS_SECRET, "")])
    def test_missing_secret_is_signing_error(self, access_secret, refresh_secret):
        with pytest.raises(SigningError):
            TokenIssuer(access_secret, refresh_secret)

    def test_equal_secrets_are_signing_error(self):
        with pytest.raises(SigningError):
            TokenIssuer(ACCESS_SECRET, ACCESS_SECRET)

    def test_from_settings(self):
        issuer = TokenIssuer.from_settings()
        assert issuer.access_ttl == timedelta(minutes=15)
        assert issuer.refresh_ttl == timedelta(days=7)


class TestTokenValidator:
    def test_expired_access_token_rejected(self, issuer, validator, claims):
        issued = issuer.issue_access_token(claims, now=datetime.now(timezone.utc) - timedelta(minutes=16))

        assert validator.verify(issued.token, TokenKind.ACCESS) is None

    def test_access_token_not_accepted_as_refresh(self, issuer, validator, claims):
        issued = issuer.issue_access_token(claims)

        assert validator.verify(issued.token, TokenKind.REFRESH) is None

    def test_refresh_token_not_accepted_as_access(self, issuer, validator, claims):
        issued = issuer.issue_refresh_token(claims)

        assert validator.verify(issued.token, TokenKind.ACCESS) is None

    def test_refresh_secret_cannot_forge_access_token(self, validator, claims):
        now = datetime.now(timezone.utc)
        forged = jwt.encode(
            {
                "sub": "7",
                "email": "a@x.com",
                "user_type": "admin",
                "type": "access",
                "iat": now,
                "exp": now + timedelta(minutes=5),
                "iss": "storefront",
                "aud": "storefront-users",
            },
            REFRESH_SECRET,
            algorithm="HS256",
        )

        assert validator.verify(forged, TokenKind.ACCESS) is None

    def test_tampered_token_rejected(self, issuer, validator, claims):
        token = issuer.issue_access_token(claims).token

        assert validator.verify(token[:-5] + "XXXXX", TokenKind.ACCESS) is None

    def test_wrong_audience_rejected(self, validator, claims):
        other = TokenIssuer(ACCESS_SECRET, REFRESH_SECRET, issuer="storefront", audience="someone-else")

        assert validator.verify(other.issue_access_token(claims).token, TokenKind.ACCESS) is None

    @pytest.mark.parametrize("token", [None, "", "   ", "invalid.jwt.token", "abc"])
    def test_malformed_input_returns_none(self, validator, token):
        assert validator.verify(token, TokenKind.ACCESS) is None

    def test_token_without_claims_fields_rejected(self, validator):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {
                "sub": "7",
                "type": "access",
                "exp": now + timedelta(minutes=5),
                "iss": "storefront",
                "aud": "storefront-users",
            },
            ACCESS_SECRET,
            algorithm="HS256",
        )

        assert validator.verify(token, TokenKind.ACCESS) is None


def test_hash_token_is_sha256_hex():
    digest = hash_token("raw-token")

    assert len(digest) == 64
    assert digest == hash_token("raw-token")
    assert digest != hash_token("raw-token2")
