import os
from datetime import datetime, timedelta, timezone
from typing import Annotated, Optional

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

bearer = HTTPBearer(auto_error=False)

JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
JWT_ALG = "HS256"
TOKEN_TTL_MINUTES = int(os.getenv("TOKEN_TTL_MINUTES", "60"))

# Admins manage quotes; leads only get previews.
ROLE_ADMIN = "admin"
ROLE_LEAD = "lead"
ROLES = (ROLE_ADMIN, ROLE_LEAD)


def issue_token(sub: str, role: str, ttl_minutes: int = TOKEN_TTL_MINUTES) -> str:
    if role not in ROLES:
        raise HTTPException(status_code=400, detail=f"role must be one of {', '.join(ROLES)}")
    now = datetime.now(tz=timezone.utc)
    payload = {
        "sub": sub,
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=ttl_minutes)).timestamp()),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALG)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])
    except jwt.PyJWTError as e:
        raise HTTPException(status_code=401, detail=f"Invalid token: {e}")


def get_principal(
    creds: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer)],
) -> dict:
    if creds is None:
        raise HTTPException(status_code=401, detail="Missing bearer token")
    return decode_token(creds.credentials)


def require_roles(*allowed_roles: str):
    allowed = set(allowed_roles)

    def _dep(principal: Annotated[dict, Depends(get_principal)]) -> dict:
        if principal.get("role") not in allowed:
            raise HTTPException(status_code=403, detail="Forbidden")
        return principal

    return _dep


# Every quote-management route goes through this one.
require_admin = require_roles(ROLE_ADMIN)


def principal_label(principal: dict | None) -> str:
    """Who to record as the actor on lead status history rows (email, then sub, then role)."""
    p = principal or {}
    return str(p.get("email") or p.get("sub") or p.get("role") or "system")
