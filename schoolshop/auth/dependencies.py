from dataclasses import dataclass
import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from schoolshop.auth.jwt import verify_access_token
from schoolshop.db.deps import get_session
from schoolshop.db.repositories.access import AccessRepository
from schoolshop.errors import ForbiddenError


bearer_scheme = HTTPBearer(auto_error=False)
logger = logging.getLogger("auth.deps")


@dataclass
class AuthContext:
    user_id: str


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> AuthContext:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")

    claims = verify_access_token(credentials.credentials)
    user_id = claims.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token claims")
    return AuthContext(user_id=str(user_id))


def ensure_admin(session: Session, auth: AuthContext) -> None:
    if not AccessRepository(session).is_admin(user_id=auth.user_id):
        logger.info("Admin capability missing", extra={"sub": auth.user_id})
        raise ForbiddenError(message="Admin capability required")


def ensure_school_access(session: Session, auth: AuthContext, *, school_id: str) -> None:
    access = AccessRepository(session)
    if access.is_admin(user_id=auth.user_id):
        return
    if access.has_school_role(user_id=auth.user_id, school_id=school_id):
        return
    logger.info("School access missing", extra={"sub": auth.user_id, "school_id": school_id})
    raise ForbiddenError(message="School role or admin capability required")


def require_admin(
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> AuthContext:
    ensure_admin(session, auth)
    return auth
