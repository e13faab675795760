import logging

from fastapi import APIRouter, Depends
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from config import Settings
from database import USERS, create_document, get_db, utcnow
from errors import AlreadyExistsError, UnauthorizedError
from schemas import (
    ForgotPasswordPayload,
    LoginPayload,
    RegisterPayload,
    ResetPasswordPayload,
    User as UserSchema,
)
from security import (
    create_access_token,
    create_reset_token,
    get_current_user,
    get_password_hash,
    get_settings,
    public_user,
    verify_password,
    verify_reset_token,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _normalize_email(email: str) -> str:
    return email.strip().lower()


@router.post("/register", status_code=201)
def register(body: RegisterPayload, db: Database = Depends(get_db), settings: Settings = Depends(get_settings)):
    email = _normalize_email(body.email)
    if db[USERS].find_one({"email": email}):
        raise AlreadyExistsError("Email already registered")
    user = UserSchema(
        name=body.name,
        email=email,
        password_hash=get_password_hash(body.password),
        phone=body.phone,
        address=body.address,
    )
    try:
        uid = create_document(db, USERS, user)
    except DuplicateKeyError:
        raise AlreadyExistsError("Email already registered")
    doc = db[USERS].find_one({"email": email})
    logger.info("Registered user %s", uid)
    return {"token": create_access_token(settings, doc), "user": public_user(doc)}


@router.post("/login")
def login(body: LoginPayload, db: Database = Depends(get_db), settings: Settings = Depends(get_settings)):
    user = db[USERS].find_one({"email": _normalize_email(body.email)})
    if not user or not verify_password(body.password, user["password_hash"]):
        logger.warning("Failed login for %s", body.email)
        raise UnauthorizedError("Invalid credentials")
    return {"token": create_access_token(settings, user), "user": public_user(user)}


@router.get("/me")
def me(user: dict = Depends(get_current_user)):
    return public_user(user)


@router.post("/forgot-password")
def forgot_password(
    body: ForgotPasswordPayload,
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Issue a reset token. The response is the same whether or not the email exists."""
    response = {"msg": "If that email is registered, a password reset link has been sent"}
    user = db[USERS].find_one({"email": _normalize_email(body.email)})
    if not user:
        return response
    token = create_reset_token(settings, user)
    # Email delivery is handled outside this service
    logger.info("Password reset requested for user %s", user["_id"])
    if settings.expose_reset_tokens:
        response["reset_token"] = token
    return response


@router.post("/reset-password")
def reset_password(
    body: ResetPasswordPayload,
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    user = verify_reset_token(settings, db, body.token)
    db[USERS].update_one(
        {"_id": user["_id"]},
        {"$set": {"password_hash": get_password_hash(body.new_password), "updated_at": utcnow()}},
    )
    logger.info("Password reset completed for user %s", user["_id"])
    return {"msg": "Password has been reset"}
