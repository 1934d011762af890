from typing import List

from fastapi import Depends, HTTPException, status, Request
from jose import JWTError, jwt
from sqlalchemy.orm import Session
from sitepay.db.session import SessionLocal
from sitepay.core.config import settings
from sitepay.core.enums import ADMIN_ROLES, Role
from sitepay.db.models.user import User

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def _unauthorized(detail: str):
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"}
    )

async def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    token = request.headers.get("Authorization") or request.cookies.get("access_token")

    if not token:
        raise _unauthorized("Not authenticated")

    # Remove "Bearer " prefix if present
    if token.startswith("Bearer "):
        token = token.split(" ", 1)[1]

    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        username: str = payload.get("sub")
        if username is None:
            raise _unauthorized("Invalid credential")
    except JWTError:
        raise _unauthorized("Could not validate credentials")

    user = db.query(User).filter(User.username == username).first()
    if user is None:
        raise _unauthorized("User not found")
    if not user.is_active or user.status == "inactive":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is inactive")

    return user

def is_admin(user: User) -> bool:
    return user.role in ADMIN_ROLES

def check_admin(user: User):
    if not is_admin(user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")

def check_roles(user: User, roles: List[str]):
    if user.role not in roles and not is_admin(user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")

def managed_site_ids(user: User) -> List[int]:
    """Sites a site manager is assigned to; empty for every other role."""
    if user.role != Role.SITE_MANAGER.value:
        return []
    return [s.id for s in user.sites]
