from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status, Body
from sqlalchemy.orm import Session

from sitepay.db.models.site import Site
from sitepay.db.models.user import User
from sitepay.routers import deps
from sitepay.utils.activity import log_activity

router = APIRouter(
    prefix="/sites",
    tags=["sites"],
    dependencies=[Depends(deps.get_current_user)]
)

def site_to_dict(site: Site, with_users: bool = False) -> dict:
    data = {
        "id": site.id,
        "name": site.name,
        "address": site.address,
        "is_active": site.is_active,
    }
    if with_users:
        data["users"] = [{"id": u.id, "name": u.display_name, "role": u.role} for u in site.users]
    return data

@router.get("/")
async def list_sites(db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    if deps.is_admin(user):
        sites = db.query(Site).order_by(Site.name).all()
    else:
        # Everyone else sees only assigned sites
        sites = sorted(user.sites, key=lambda s: s.name)

    return [site_to_dict(s, with_users=deps.is_admin(user)) for s in sites]

@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_site(
    name: str = Body(...),
    address: Optional[str] = Body(None),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    deps.check_admin(user)

    if not name.strip():
        raise HTTPException(status_code=400, detail="Site name is required")

    site = Site(name=name.strip(), address=address)
    db.add(site)
    db.commit()

    log_activity(db, user, "CREATE", "SITE", site.id, f"Created site {site.name}")

    return {"status": "success", "message": "Site created", "site": site_to_dict(site)}

@router.post("/{id}/assign")
async def assign_users(
    id: int,
    user_ids: List[int] = Body(..., embed=True),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    deps.check_admin(user)

    site = db.query(Site).filter(Site.id == id).first()
    if not site:
        raise HTTPException(status_code=404, detail="Site not found")

    # Replace the whole assignment list
    site.users = db.query(User).filter(User.id.in_(user_ids)).all() if user_ids else []
    db.commit()

    log_activity(db, user, "ASSIGN", "SITE", site.id, f"Assigned users {user_ids}")

    return {"status": "success", "message": "Assignments updated", "site": site_to_dict(site, with_users=True)}
