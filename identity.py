import logging
from typing import Optional

from pydantic import ValidationError as SchemaError
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document
from errors import AuthError, ConflictError, NotFoundError, ValidationError
from schemas import User
from security import hash_password, verify_password

logger = logging.getLogger(__name__)

ROLES = ("farmer", "buyer")


def public_profile(user: dict) -> dict:
    return {
        "id": str(user["_id"]),
        "name": user["name"],
        "email": user["email"],
        "role": user["role"],
    }


def get_user_by_email(db: Database, email: str) -> Optional[dict]:
    return db["user"].find_one({"email": email})


def register(db: Database, name: Optional[str], email: Optional[str], password: Optional[str],
             role: Optional[str]) -> dict:
    if not name or not email or not password or not role:
        raise ValidationError("All fields are required")
    if role not in ROLES:
        raise ValidationError("User type must be 'farmer' or 'buyer'")
    email = email.strip().lower()
    if get_user_by_email(db, email):
        raise ConflictError("User already exists")

    try:
        user = User(name=name, email=email, password_hash=hash_password(password), role=role)
    except SchemaError:
        raise ValidationError("Invalid email address")
    try:
        user_id = create_document(db, "user", user)
    except DuplicateKeyError:
        # lost a race with a concurrent registration
        raise ConflictError("User already exists")
    logger.info("Registered %s %s", role, user_id)
    return {"id": user_id, "name": user.name, "email": user.email, "role": user.role}


def login(db: Database, email: Optional[str], password: Optional[str]) -> dict:
    if not email or not password:
        raise ValidationError("Email and password are required")
    email = email.strip().lower()
    user = get_user_by_email(db, email)
    if not user:
        raise NotFoundError("User not found")
    if not verify_password(password, user.get("password_hash", "")):
        logger.warning("Failed login attempt for %s", email)
        raise AuthError("Invalid password")
    return public_profile(user)
