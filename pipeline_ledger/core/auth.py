"""JWT authentication for FastAPI.

The CRM login route issues an HS256 session token which the browser sends
either as a bearer header or as the ``token`` cookie.
"""

from dataclasses import dataclass

import jwt as pyjwt
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from pipeline_ledger.core.config import get_settings

_bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthUser:
    """Authenticated CRM user extracted from the session JWT."""

    user_id: str
    name: str
    claims: dict


def decode_session_jwt(token: str) -> AuthUser:
    """Verify and decode a CRM session JWT.

    Raises ``HTTPException(401)`` on any validation failure.
    """
    settings = get_settings()
    if not settings.jwt_secret:
        raise HTTPException(status_code=500, detail="Authentication is misconfigured")

    try:
        payload = pyjwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"verify_exp": True, "require": ["exp"]},
        )
    except pyjwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except pyjwt.MissingRequiredClaimError as exc:
        raise HTTPException(status_code=401, detail=f"Missing required claim: {exc}")
    except pyjwt.InvalidTokenError as exc:
        raise HTTPException(status_code=401, detail=f"Invalid token: {exc}")

    user_id = payload.get("userId") or payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Token missing user id")

    name = payload.get("name") or payload.get("email") or str(user_id)
    return AuthUser(user_id=str(user_id), name=name, claims=payload)


async def require_auth(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> AuthUser:
    """FastAPI dependency that extracts and validates the session JWT.

    Usage::

        @router.get("/protected")
        async def protected(user: AuthUser = Depends(require_auth)):
            ...
    """
    settings = get_settings()
    token = credentials.credentials if credentials is not None else request.cookies.get(settings.auth_cookie_name)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    user = decode_session_jwt(token)

    # Downstream error handlers log the user id
    request.state.user_id = user.user_id
    return user
