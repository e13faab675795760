import logging

from fastapi import APIRouter, Depends
from pymongo import ReturnDocument
from pymongo.database import Database

from dashboard import load_dashboard_stats
from database import USERS, get_db, get_document, get_documents, utcnow
from errors import AlreadyExistsError, InvalidRequestError
from schemas import ChangePasswordPayload, ProfileUpdate
from security import get_current_user, get_password_hash, public_user, require_admin, verify_password

logger = logging.getLogger(__name__)

# Cart routes share the /api/users prefix and are registered first (see cart.py)
router = APIRouter(prefix="/api/users", tags=["users"])


def update_profile(db: Database, user: dict, changes: ProfileUpdate) -> dict:
    fields = changes.model_dump(exclude_none=True)
    if "email" in fields:
        fields["email"] = fields["email"].strip().lower()
        taken = db[USERS].find_one({"email": fields["email"], "_id": {"$ne": user["_id"]}})
        if taken:
            raise AlreadyExistsError("Email already registered")
    if not fields:
        return user
    fields["updated_at"] = utcnow()
    return db[USERS].find_one_and_update(
        {"_id": user["_id"]},
        {"$set": fields},
        return_document=ReturnDocument.AFTER,
    )


def change_password(db: Database, user: dict, body: ChangePasswordPayload) -> None:
    if not verify_password(body.current_password, user["password_hash"]):
        raise InvalidRequestError("Current password is incorrect", "current_password")
    db[USERS].update_one(
        {"_id": user["_id"]},
        {"$set": {"password_hash": get_password_hash(body.new_password), "updated_at": utcnow()}},
    )


# ========== ROUTES ==========

@router.get("")
def list_users(admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    return [public_user(u) for u in get_documents(db, USERS)]


@router.get("/profile")
def get_profile(user: dict = Depends(get_current_user)):
    return public_user(user)


@router.put("/profile")
def edit_profile(body: ProfileUpdate, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    return public_user(update_profile(db, user, body))


@router.put("/password")
def edit_password(body: ChangePasswordPayload, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    change_password(db, user, body)
    logger.info("Password changed for user %s", user["_id"])
    return {"msg": "Password updated successfully"}


@router.get("/admin/dashboard-stats")
def dashboard_stats(admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    return load_dashboard_stats(db)


@router.get("/{user_id}")
def get_user(user_id: str, admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    return public_user(get_document(db, USERS, user_id, "User"))
