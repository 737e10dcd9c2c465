# tests/auth/test_jwt_auth.py

import uuid
from datetime import datetime, timedelta, timezone

import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from solvo.auth import jwt as jwt_utils
from solvo.auth.jwt import JWTAuthenticator, decode_and_validate, load_verification_key
from solvo.auth.schemas import AuthenticatedUser, get_tier_level
from solvo.config import AuthSettings

SECRET = "unit-test-secret-key-0123456789abcdefgh"


# --- Test Fixtures ---

@pytest.fixture
def hs_settings() -> AuthSettings:
    return AuthSettings(secret=SECRET, algorithm="HS256", public_key_path=None, issuer=None, audience=None)


@pytest.fixture(scope="module")
def test_keys(tmp_path_factory):
    """Generates temporary RSA keys for testing."""
    key_dir = tmp_path_factory.mktemp("test_keys")
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    pem_public = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo
    )
    public_key_path = key_dir / "test_public.pem"
    public_key_path.write_bytes(pem_public)
    return {"private": private_key, "public": public_key_path}


def _claims(**overrides):
    now = datetime.now(timezone.utc)
    claims = {"sub": str(uuid.uuid4()), "iat": now, "exp": now + timedelta(minutes=5), "tier": "premium"}
    claims.update(overrides)
    return {k: v for k, v in claims.items() if v is not None}


# --- Decoding ---

def test_decode_valid_token(hs_settings):
    claims = _claims()
    payload = decode_and_validate(jwt.encode(claims, SECRET, algorithm="HS256"), hs_settings)
    assert payload["sub"] == claims["sub"]


def test_decode_expired_token(hs_settings):
    token = jwt.encode(_claims(exp=datetime.now(timezone.utc) - timedelta(minutes=5)), SECRET, algorithm="HS256")
    with pytest.raises(jwt_utils.TokenExpired):
        decode_and_validate(token, hs_settings)


def test_leeway_tolerates_small_clock_skew(hs_settings):
    token = jwt.encode(_claims(exp=datetime.now(timezone.utc) - timedelta(seconds=5)), SECRET, algorithm="HS256")
    assert decode_and_validate(token, hs_settings)["sub"]


def test_decode_bad_signature(hs_settings):
    token = jwt.encode(_claims(), "a-completely-different-secret-0123456789", algorithm="HS256")
    with pytest.raises(jwt_utils.TokenInvalid):
        decode_and_validate(token, hs_settings)


def test_decode_requires_sub(hs_settings):
    token = jwt.encode(_claims(sub=None), SECRET, algorithm="HS256")
    with pytest.raises(jwt_utils.TokenInvalid) as exc_info:
        decode_and_validate(token, hs_settings)
    assert exc_info.value.code == "TOKEN_MISSING_CLAIM"


def test_decode_empty_token(hs_settings):
    with pytest.raises(jwt_utils.TokenInvalid):
        decode_and_validate("", hs_settings)


def test_audience_and_issuer_enforced_when_configured():
    settings = AuthSettings(secret=SECRET, algorithm="HS256", public_key_path=None,
                            issuer="solvo-auth", audience="solvo-api")
    good = jwt.encode(_claims(iss="solvo-auth", aud="solvo-api"), SECRET, algorithm="HS256")
    wrong_aud = jwt.encode(_claims(iss="solvo-auth", aud="someone-else"), SECRET, algorithm="HS256")
    wrong_iss = jwt.encode(_claims(iss="intruder", aud="solvo-api"), SECRET, algorithm="HS256")

    assert decode_and_validate(good, settings)["aud"] == "solvo-api"
    with pytest.raises(jwt_utils.TokenInvalid) as exc_info:
        decode_and_validate(wrong_aud, settings)
    assert exc_info.value.code == "TOKEN_INVALID_AUDIENCE"
    with pytest.raises(jwt_utils.TokenInvalid) as exc_info:
        decode_and_validate(wrong_iss, settings)
    assert exc_info.value.code == "TOKEN_INVALID_ISSUER"


def test_rs256_with_public_key_file(test_keys):
    settings = AuthSettings(algorithm="RS256", public_key_path=str(test_keys["public"]), issuer=None, audience=None)
    token = jwt.encode(_claims(sub="rsa-user"), test_keys["private"], algorithm="RS256")
    assert decode_and_validate(token, settings)["sub"] == "rsa-user"


def test_missing_public_key_file(tmp_path):
    settings = AuthSettings(algorithm="RS256", public_key_path=str(tmp_path / "absent.pem"))
    with pytest.raises(EnvironmentError):
        load_verification_key(settings)


# --- Authenticator ---

@pytest.mark.asyncio
async def test_authenticator_returns_subject_and_tier(hs_settings):
    token = jwt.encode(_claims(sub="user-42"), SECRET, algorithm="HS256")
    user = await JWTAuthenticator(hs_settings).authenticate(token)
    assert user == AuthenticatedUser(id="user-42", tier="premium")


@pytest.mark.asyncio
async def test_authenticator_defaults_tier_to_free(hs_settings):
    token = jwt.encode(_claims(sub="user-42", tier=None), SECRET, algorithm="HS256")
    user = await JWTAuthenticator(hs_settings).authenticate(token)
    assert user.tier == "free"


@pytest.mark.asyncio
@pytest.mark.parametrize("token", [None, "", "garbage"])
async def test_authenticator_rejects_missing_or_malformed(hs_settings, token):
    assert await JWTAuthenticator(hs_settings).authenticate(token) is None


def test_tier_levels():
    assert get_tier_level("premium") == 20
    assert get_tier_level("FREE") == 0
    assert get_tier_level("enterprise") == -1
    assert get_tier_level(None) == -1
