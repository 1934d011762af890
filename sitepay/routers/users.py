from math import ceil
from typing import Optional

import pydantic
from fastapi import APIRouter, Depends, HTTPException, status, Body
from sqlalchemy.orm import Session
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from sitepay.db.models.user import User
from sitepay.routers import deps
from sitepay.core.enums import Role, EmploymentType
from sitepay.core.security import get_password_hash
from sitepay.utils.activity import log_activity

router = APIRouter(
    prefix="/users",
    tags=["users"],
    dependencies=[Depends(deps.get_current_user)]
)

class UserCreate(pydantic.BaseModel):
    username: str
    password: str
    full_name: str
    role: Role = Role.WORKER
    email: Optional[str] = None
    phone: Optional[str] = None
    employment_type: Optional[EmploymentType] = None
    daily_wage: Optional[float] = None

def user_to_dict(u: User) -> dict:
    return {
        "id": u.id,
        "username": u.username,
        "full_name": u.full_name,
        "email": u.email,
        "phone": u.phone,
        "role": u.role,
        "status": u.status,
        "employment_type": u.employment_type,
        "daily_wage": u.daily_wage,
    }

@router.get("/")
async def list_users(
    page: int = 1,
    limit: int = 20,
    role: Optional[str] = None,
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    deps.check_admin(user)
    page = max(page, 1)
    limit = max(1, min(limit, 100))

    query = db.query(User)
    if role:
        query = query.filter(User.role == role)

    total_records = query.with_entities(func.count(User.id)).scalar()
    users = query.order_by(User.full_name).offset((page - 1) * limit).limit(limit).all()

    return {
        "users": [user_to_dict(u) for u in users],
        "page": page,
        "total_pages": ceil(total_records / limit),
        "total_records": total_records
    }

@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_user(
    data: UserCreate = Body(...),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    deps.check_admin(user)

    if data.daily_wage is not None and data.daily_wage <= 0:
        raise HTTPException(status_code=400, detail="Daily wage must be greater than zero")

    new_user = User(
        username=data.username,
        hashed_password=get_password_hash(data.password),
        full_name=data.full_name,
        role=data.role.value,
        email=data.email,
        phone=data.phone,
        employment_type=data.employment_type.value if data.employment_type else None,
        daily_wage=data.daily_wage,
    )
    db.add(new_user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Username already exists")

    log_activity(db, user, "CREATE", "USER", new_user.id, f"Created user {data.username} ({data.role.value})")

    return {"status": "success", "message": "User created", "user": user_to_dict(new_user)}

@router.post("/{id}/deactivate")
async def deactivate_user(
    id: int,
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    deps.check_admin(user)

    if user.id == id:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")

    target = db.query(User).filter(User.id == id).first()
    if not target:
        raise HTTPException(status_code=404, detail="User not found")

    target.status = "inactive"
    target.is_active = False
    db.commit()

    log_activity(db, user, "DEACTIVATE", "USER", id, f"Deactivated user {target.username}")

    return {"status": "success", "message": "User deactivated"}
