"""
Shared FastAPI dependencies: authentication and the confirmation unit of work.
"""
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional
from chainmove.core.security import decode_access_token
from chainmove.db.session import get_db, SessionLocal
from chainmove.db.unit_of_work import UnitOfWork
from chainmove.models.user import User, UserRole

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> User:
    """Resolve the bearer token to an active user."""
    payload = decode_access_token(credentials.credentials) if credentials else None
    if not payload or "user_id" not in payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = db.query(User).filter(User.id == payload["user_id"]).first()
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def get_current_driver(current_user: User = Depends(get_current_user)) -> User:
    """Only drivers may use the repayment endpoints."""
    if current_user.role != UserRole.DRIVER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only drivers can access repayments."
        )
    return current_user


def get_unit_of_work() -> UnitOfWork:
    """Unit of work injected into the confirmation orchestrator."""
    return UnitOfWork(SessionLocal)
