# backend/security.py

import hashlib
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, Header, Request
from fastapi.security import OAuth2PasswordBearer
from passlib.context import CryptContext
from pymongo.database import Database

from config import Settings
from database import USERS, get_db, object_id, to_str_id
from errors import ForbiddenError, UnauthorizedError

logger = logging.getLogger(__name__)

# Create the context once and reuse it
bcrypt_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

oauth2_bearer = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

ACCESS_SCOPE = "access_token"
RESET_SCOPE = "password_reset"


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    try:
        return bcrypt_context.hash(password)
    except Exception:
        logger.exception("Error occurred while hashing password.")
        raise


def public_user(user: dict) -> dict:
    """User document as returned by the API, without the password hash."""
    data = to_str_id(user)
    data.pop("password_hash", None)
    return data


def create_access_token(settings: Settings, user: dict) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
    payload = {
        "sub": str(user["_id"]),
        "user": {"id": str(user["_id"]), "role": user.get("role", "customer")},
        "scope": ACCESS_SCOPE,
        "exp": expire,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def _password_fingerprint(password_hash: str) -> str:
    # Changes whenever the password does, so a reset token is single-use
    return hashlib.sha256(password_hash.encode()).hexdigest()[:16]


def create_reset_token(settings: Settings, user: dict) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.reset_token_expire_minutes)
    payload = {
        "sub": str(user["_id"]),
        "scope": RESET_SCOPE,
        "pwd": _password_fingerprint(user["password_hash"]),
        "exp": expire,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(settings: Settings, token: str, scope: str) -> dict:
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token has expired, please login again")
    except jwt.PyJWTError:
        raise UnauthorizedError("Invalid token, please login again")
    if payload.get("scope") != scope or not payload.get("sub"):
        raise UnauthorizedError("Invalid token, please login again")
    return payload


def verify_reset_token(settings: Settings, db: Database, token: str) -> dict:
    """Return the user a reset token was issued to, if it is still usable."""
    payload = decode_token(settings, token, RESET_SCOPE)
    user = db[USERS].find_one({"_id": object_id(payload["sub"], "User")})
    if not user or payload.get("pwd") != _password_fingerprint(user["password_hash"]):
        raise UnauthorizedError("Reset link is invalid or has already been used")
    return user


def get_current_user(
    bearer: Optional[str] = Depends(oauth2_bearer),
    x_auth_token: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
    db: Database = Depends(get_db),
) -> dict:
    token = x_auth_token or bearer
    if not token:
        raise UnauthorizedError("No token provided, authentication required")
    payload = decode_token(settings, token, ACCESS_SCOPE)
    user = db[USERS].find_one({"_id": object_id(payload["sub"], "User")})
    if not user:
        raise UnauthorizedError("User no longer exists")
    return user


def require_admin(user: dict = Depends(get_current_user)) -> dict:
    if user.get("role") != "admin":
        logger.warning("Admin check failed for user %s (role=%s)", user["_id"], user.get("role"))
        raise ForbiddenError("Access denied. Admin permission required")
    return user


def is_admin(user: dict) -> bool:
    return user.get("role") == "admin"
