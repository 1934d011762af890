import logging

from fastapi import APIRouter, Depends, HTTPException, status, Form
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sitepay.db.models.user import User
from sitepay.core.security import verify_password, create_access_token
from sitepay.routers import deps

router = APIRouter(tags=["auth"])

logger = logging.getLogger(__name__)

@router.post("/login")
async def login(
    username: str = Form(...),
    password: str = Form(...),
    db: Session = Depends(deps.get_db)
):
    db_user = db.query(User).filter(User.username == username).first()
    if not db_user or not verify_password(password, db_user.hashed_password):
        logger.warning("Failed login for %s", username)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if not db_user.is_active or db_user.status == "inactive":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is inactive")

    access_token = create_access_token(data={"sub": db_user.username, "role": db_user.role})

    response = JSONResponse({"access_token": access_token, "token_type": "bearer", "role": db_user.role})
    response.set_cookie(key="access_token", value=f"Bearer {access_token}", httponly=True)
    return response

@router.get("/logout")
async def logout():
    response = JSONResponse({"status": "success", "message": "Logged out"})
    response.delete_cookie("access_token")
    return response

@router.get("/me")
async def me(user: User = Depends(deps.get_current_user)):
    return {
        "id": user.id,
        "username": user.username,
        "full_name": user.full_name,
        "role": user.role,
        "site_ids": [s.id for s in user.sites]
    }
