# solvo/auth/jwt.py
import logging
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Optional

import jwt
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import serialization

from solvo.auth.schemas import AuthenticatedUser
from solvo.config import AuthSettings

_log = logging.getLogger(__name__)


# --- Custom Exceptions ---
class TokenError(Exception):
    """Base class for token-related errors."""
    def __init__(self, message="Token error occurred", code="TOKEN_ERROR"):
        self.message = message
        self.code = code
        super().__init__(self.message)

class TokenExpired(TokenError):
    """Raised when a token's expiration time has passed."""
    def __init__(self, message="Token has expired", code="TOKEN_EXPIRED"):
        super().__init__(message, code)

class TokenInvalid(TokenError):
    """Raised when a token is invalid (bad signature, wrong format, claims etc.)."""
    def __init__(self, message="Token is invalid", code="TOKEN_INVALID"):
        super().__init__(message, code)


def load_verification_key(settings: AuthSettings) -> Any:
    """Returns the PEM public key when one is configured, else the shared secret."""
    if not settings.public_key_path:
        return settings.secret
    key_path = Path(settings.public_key_path)
    try:
        with open(key_path, "rb") as key_file:
            return serialization.load_pem_public_key(key_file.read(), backend=default_backend())
    except FileNotFoundError as e:
        raise EnvironmentError(f"JWT public key file not found: {e}")
    except ValueError as e:
        raise EnvironmentError(f"JWT public key at {key_path} could not be parsed: {e}")


def decode_and_validate(token: str, settings: AuthSettings, key: Any = None) -> Dict[str, Any]:
    """
    Decodes and validates a JWT access token.

    Args:
        token: The JWT token string.
        settings: Algorithm, issuer and audience to validate against.
        key: Verification key; loaded from settings when omitted.

    Returns:
        The decoded payload dictionary.

    Raises:
        TokenExpired: If the token has expired.
        TokenInvalid: If the token is invalid (bad signature, format, claims).
    """
    if not token:
        raise TokenInvalid("Token cannot be empty.")

    options: Dict[str, Any] = {"require": ["exp", "sub"]}
    if not settings.audience:
        options["verify_aud"] = False

    try:
        payload = jwt.decode(
            token,
            key if key is not None else load_verification_key(settings),
            algorithms=[settings.algorithm],
            audience=settings.audience,
            issuer=settings.issuer,
            options=options,
            # Leeway accounts for clock skew between servers
            leeway=timedelta(seconds=settings.leeway_seconds),
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpired()
    except jwt.InvalidAudienceError:
        raise TokenInvalid("Invalid audience.", code="TOKEN_INVALID_AUDIENCE")
    except jwt.InvalidIssuerError:
        raise TokenInvalid("Invalid issuer.", code="TOKEN_INVALID_ISSUER")
    except jwt.MissingRequiredClaimError as e:
        raise TokenInvalid(f"Missing required claim: {e}", code="TOKEN_MISSING_CLAIM")
    except jwt.DecodeError as e:
        raise TokenInvalid(f"Token decoding failed: {e}", code="TOKEN_DECODE_ERROR")
    except jwt.InvalidTokenError as e:
        raise TokenInvalid(f"Token is invalid: {e}", code="TOKEN_GENERIC_INVALID")

    sub = payload.get("sub")
    if not sub or not isinstance(sub, str):
        raise TokenInvalid("Token missing 'sub' claim.", code="TOKEN_MISSING_SUB")
    return payload


class JWTAuthenticator:
    """Resolves the submitting subject from a bearer/cookie access token."""

    def __init__(self, settings: AuthSettings):
        self.settings = settings
        self._key = load_verification_key(settings)

    async def authenticate(self, token: Optional[str]) -> Optional[AuthenticatedUser]:
        if not token:
            _log.info("Auth failed: no token provided")
            return None
        try:
            payload = decode_and_validate(token, self.settings, key=self._key)
        except TokenError as e:
            # Reason stays server-side; callers only see a generic 401
            _log.info(f"Auth failed. Code: {e.code}, Msg: {e.message}")
            return None
        tier = payload.get("tier") or "free"
        return AuthenticatedUser(id=payload["sub"], tier=str(tier))
