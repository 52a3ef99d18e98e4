# spentiva/api/v1/deps.py
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
from typing import Generator

from spentiva.db.session import get_db
from spentiva.db import models
from spentiva.services.security import JWTError, decode_access_token

# auto_error=False so a missing header is a 401 in the envelope, not Starlette's 403
bearer_scheme = HTTPBearer(auto_error=False)

CREDENTIALS_ERROR = "Could not validate credentials"


def get_db_dep(db: Session = Depends(get_db)) -> Generator[Session, None, None]:
    # routers depend on this, tests override get_db underneath it
    yield db


def _unauthorized(detail: str = CREDENTIALS_ERROR) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db_dep),
) -> models.User:
    if credentials is None or not credentials.credentials:
        raise _unauthorized("Not authenticated")
    try:
        payload = decode_access_token(credentials.credentials)
    except JWTError:
        raise _unauthorized()

    sub = payload.get("sub")
    try:
        user_id = int(sub)
    except (TypeError, ValueError):
        raise _unauthorized()

    user = db.query(models.User).filter(models.User.id == user_id).first()
    if not user:
        raise _unauthorized()
    return user


def require_admin(current_user: models.User = Depends(get_current_user)) -> models.User:
    if current_user.role != models.UserRole.admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return current_user


def is_admin(user: models.User) -> bool:
    return user.role == models.UserRole.admin
