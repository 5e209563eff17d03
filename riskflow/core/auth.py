"""
Keycloak JWT Authentication.

Validates Bearer tokens against the Keycloak JWKS endpoint and turns the
claims into a ``Caller`` (user id, unit affiliation, roles) for the workflow
guards. Disabled in development via AUTH_ENABLED=false.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import httpx
import structlog
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from riskflow.core.config import Settings, get_settings

logger = structlog.get_logger()
security = HTTPBearer(auto_error=False)

_jwks_cache: Optional[dict] = None


@dataclass(frozen=True)
class Caller:
    user_id: str
    unit_id: Optional[str]
    roles: frozenset[str] = field(default_factory=frozenset)

    def has_role(self, *roles: str) -> bool:
        return any(r in self.roles for r in roles)


async def _fetch_jwks(keycloak_url: str) -> dict:
    global _jwks_cache
    if _jwks_cache:
        return _jwks_cache
    async with httpx.AsyncClient() as client:
        resp = await client.get(f"{keycloak_url}/protocol/openid-connect/certs")
        resp.raise_for_status()
        _jwks_cache = resp.json()
        return _jwks_cache


async def verify_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    settings: Settings = Depends(get_settings),
) -> dict:
    """
    FastAPI dependency: extracts and validates the JWT.
    Returns the decoded token payload (claims).
    """
    if not settings.auth_enabled:
        return {
            "sub": settings.dev_user_id,
            settings.unit_claim: settings.dev_unit_id,
            settings.roles_claim: list(settings.dev_roles),
        }

    if credentials is None:
        raise HTTPException(status_code=401, detail="Missing authorization header")

    token = credentials.credentials
    try:
        jwks = await _fetch_jwks(settings.keycloak_url)
        unverified_header = jwt.get_unverified_header(token)
        key = next(
            (k for k in jwks.get("keys", []) if k["kid"] == unverified_header.get("kid")),
            None,
        )
        if not key:
            raise HTTPException(status_code=401, detail="Invalid token signing key")

        payload = jwt.decode(
            token,
            key,
            algorithms=["RS256"],
            audience=settings.keycloak_audience,
            issuer=settings.keycloak_url,
        )
        return payload

    except JWTError as e:
        logger.warning("jwt_validation_failed", error=str(e))
        raise HTTPException(status_code=401, detail=f"Token validation failed: {e}")


def caller_from_claims(claims: dict, settings: Settings) -> Caller:
    # Keycloak puts realm roles under realm_access unless a mapper flattens them
    roles = claims.get(settings.roles_claim)
    if roles is None:
        roles = claims.get("realm_access", {}).get("roles", [])
    return Caller(
        user_id=claims["sub"],
        unit_id=claims.get(settings.unit_claim),
        roles=frozenset(roles),
    )


async def get_caller(
    token_payload: dict = Depends(verify_token),
    settings: Settings = Depends(get_settings),
) -> Caller:
    if "sub" not in token_payload:
        raise HTTPException(status_code=401, detail="Token has no subject")
    return caller_from_claims(token_payload, settings)
