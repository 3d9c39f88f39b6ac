from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import HTTPException, status
from jose import jwt
from jose.exceptions import JWTError

from schoolshop.config import settings


logger = logging.getLogger("auth.jwt")


def verify_access_token(token: str) -> Dict[str, Any]:
    """Verify a shared-secret signed bearer token and return its claims."""
    options = {"verify_aud": bool(settings.AUTH_JWT_AUDIENCE)}
    try:
        claims = jwt.decode(
            token,
            key=settings.AUTH_JWT_SECRET,
            algorithms=[settings.AUTH_JWT_ALGORITHM],
            audience=settings.AUTH_JWT_AUDIENCE or None,
            options=options,
        )
    except (JWTError, ValueError) as exc:
        logger.warning("Token verification failed", exc_info=exc)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc
    logger.debug("Verified token", extra={"sub": claims.get("sub"), "aud": claims.get("aud")})
    return claims
