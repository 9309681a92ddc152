"""Settings and self-service user routes."""

from typing import Any

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from ..auth.service import create_user
from ..auth.tokens import Principal
from ..database.base import get_db
from ..dependencies import get_current_principal
from ..responses import success
from .schemas import PasswordChangeRequest, ProfileUpdateRequest, UserCreateRequest, UserUpdateRequest
from .service import (
    change_password,
    deactivate_user,
    get_own_user,
    get_settings_overview,
    list_active_users,
    serialize_preferences,
    serialize_user,
    update_notifications,
    update_profile,
    update_user,
)

settings_router = APIRouter(prefix="/api/settings", tags=["settings"])
users_router = APIRouter(prefix="/api/users", tags=["users"])


@settings_router.get("/me")
def my_settings(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    overview = get_settings_overview(db, principal.user_id)
    # Preferences may have just been created
    db.commit()
    return success(overview)


@settings_router.put("/profile")
def edit_profile(
    body: ProfileUpdateRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    user = update_profile(db, principal.user_id, body.name, body.email or "")
    db.commit()
    return success({
        "user": {"id": str(user.id), "name": user.name, "email": user.email, "role": str(user.role)},
        "message": "Profile updated successfully",
    })


@settings_router.put("/password")
def edit_password(
    body: PasswordChangeRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    change_password(db, principal.user_id, body.current_password, body.new_password)
    db.commit()
    return success({"message": "Password updated successfully"})


@settings_router.put("/notifications")
def edit_notifications(
    body: dict[str, Any] = Body(default_factory=dict),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    prefs = update_notifications(db, principal.user_id, body)
    db.commit()
    return success({"notifications": serialize_preferences(prefs), "message": "Notification settings updated"})


@users_router.get("")
@users_router.get("/", include_in_schema=False)
def list_users(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return success([serialize_user(u) for u in list_active_users(db)])


@users_router.post("")
@users_router.post("/", include_in_schema=False)
def create_user_route(body: UserCreateRequest, db: Session = Depends(get_db)):
    user = create_user(db, body.name, body.email, body.password)
    db.commit()
    return success(serialize_user(user), status_code=201)


@users_router.get("/{user_id}")
def get_user_route(
    user_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return success(serialize_user(get_own_user(db, user_id, principal.user_id)))


@users_router.put("/{user_id}")
def update_user_route(
    user_id: str,
    body: UserUpdateRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    user = get_own_user(db, user_id, principal.user_id)
    update_user(db, user, name=body.name, email=body.email, password=body.password)
    db.commit()
    return success(serialize_user(user))


@users_router.delete("/{user_id}")
def delete_user_route(
    user_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    user = get_own_user(db, user_id, principal.user_id)
    deactivate_user(db, user)
    db.commit()
    return success({"message": "User deleted successfully"})
