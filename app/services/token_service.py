"""JWT access token validation (ES256).

Tokens are issued by the platform's identity service; this service only
verifies them.  ``create_access_token`` exists so dev tooling and tests
can mint tokens signed with the same key.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives.asymmetric import ec

# Dev/test: ephemeral EC key pair generated on import.
_private_key = ec.generate_private_key(ec.SECP256R1())
_public_key = _private_key.public_key()

ALGORITHM = "ES256"
ISSUER = "lms-identity"
AUDIENCE = "learning-engine"
ACCESS_TOKEN_TTL_MIN = 15


def create_access_token(*, sub: str, roles: list[str] | None = None) -> str:
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "iss": ISSUER,
        "aud": AUDIENCE,
        "exp": now + timedelta(minutes=ACCESS_TOKEN_TTL_MIN),
        "iat": now,
        "jti": str(uuid.uuid4()),
        "roles": roles or ["learner"],
    }
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature and claims, return the payload.

    Pins the algorithm to ES256 so alg:none and alg-switching tokens are
    rejected.  Raises jwt.ExpiredSignatureError, jwt.InvalidTokenError.
    """
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=AUDIENCE,
        options={"require": ["sub", "exp", "iat", "jti"]},
    )
