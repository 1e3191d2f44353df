import logging
import os
from typing import Any, Dict

from dotenv import load_dotenv
from fastapi import HTTPException, Request, status
from jose import jwt
from jose.exceptions import ExpiredSignatureError, JWTClaimsError, JWTError

load_dotenv()

logger = logging.getLogger(__name__)

# === Token Configuration ===
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_AUDIENCE = os.getenv("JWT_AUDIENCE")
JWT_ISSUER = os.getenv("JWT_ISSUER")


def _extract_bearer_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header is missing",
        )

    # The token is expected to be in the format "Bearer <token>"
    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format",
        )
    return parts[1]


def decode_token(token: str) -> Dict[str, Any]:
    """Validate signature, expiry and (when configured) audience and issuer."""
    options = {"verify_aud": JWT_AUDIENCE is not None}
    try:
        return jwt.decode(
            token,
            JWT_SECRET_KEY,
            algorithms=[JWT_ALGORITHM],
            audience=JWT_AUDIENCE,
            issuer=JWT_ISSUER,
            options=options,
        )
    except ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired"
        )
    except JWTClaimsError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token claims: {e}"
        )
    except JWTError as e:
        logger.warning(f"Rejected bearer token: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Token validation failed: {e}"
        )


def get_current_user(request: Request) -> Dict[str, Any]:
    """
    FastAPI dependency to validate the JWT from the Authorization header.

    Usage:
        @router.get("/secure-data")
        def secure_endpoint(user: dict = Depends(get_current_user)):
            ...
    """
    token = _extract_bearer_token(request)
    return decode_token(token)


def get_user_identifier(user: Dict[str, Any]) -> str:
    """Best human-readable identifier carried by the token claims."""
    if not user:
        return "system"
    return user.get("email") or user.get("username") or user.get("sub") or "unknown"
