"""
ScanLedger Backend — Bearer Token Verification
================================================

What:  Turns `Authorization: Bearer <jwt>` into a verified ActorContext.
How:   PyJWT decodes and verifies the HS256 signature and expiry against
       JWT_SECRET. Tokens are issued by the login service, not here.

Claims read:
    username     required
    position     required (older tokens carry it as `role`)
    description  optional; copied into every ledger row the actor records

Any failure raises AuthenticationError (401) before a route body runs.
"""

import logging
from typing import Any, Dict, Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from scanledger.config import settings
from scanledger.exceptions import AuthenticationError
from scanledger.schemas.scan import ActorContext

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False, description="JWT issued by the login service")


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Verify a token and return its claims.

    Raises:
        AuthenticationError: bad signature, expired, or not a JWT at all
    """
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError as e:
        raise AuthenticationError(message="Token has expired", error_code="INVALID_TOKEN") from e
    except jwt.InvalidTokenError as e:
        logger.warning("Token verification failed: %s", str(e))
        raise AuthenticationError(message="Invalid token", error_code="INVALID_TOKEN") from e
    return claims


def actor_from_claims(claims: Dict[str, Any]) -> ActorContext:
    username = claims.get("username")
    role = claims.get("position") or claims.get("role")
    if not username or not role:
        raise AuthenticationError(
            message="Token is missing the username or position claim",
            error_code="INVALID_TOKEN",
        )
    return ActorContext(
        username=str(username),
        role=str(role).upper(),
        description=str(claims.get("description") or ""),
    )


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> ActorContext:
    """FastAPI dependency supplying the verified actor for the request."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError()
    return actor_from_claims(decode_access_token(credentials.credentials))
