"""
Credential service

Password hashing, JWT issue/verify, user registration and login, and the
FastAPI dependencies that turn a bearer token into a Principal.

Authorization is capability based: a route asks for a Capability and the
caller's Role either grants it or the request fails with 403.
"""

import os
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import Depends, Header
from jose import JWTError, jwt
from passlib.context import CryptContext
from pymongo.errors import DuplicateKeyError

from database import get_db, mongo_errors, serialize_doc
from errors import AuthenticationError, ForbiddenError, ValidationError
from schemas import LoginInput, RegisterInput, User as UserSchema

logger = logging.getLogger(__name__)

# JWT Config
SECRET_KEY = os.getenv("JWT_SECRET", "dev-secret-change")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
# Emails allowed to self-register as admin; otherwise only an admin can create one
ADMIN_EMAILS = {e.strip().lower() for e in os.getenv("ADMIN_EMAILS", "").split(",") if e.strip()}

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class Role(str, Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"


class Capability(str, Enum):
    SHOP = "shop"
    MANAGE_CATALOG = "manage_catalog"
    VIEW_ALL_ORDERS = "view_all_orders"
    MANAGE_USERS = "manage_users"


ROLE_CAPABILITIES = {
    Role.CUSTOMER: frozenset({Capability.SHOP}),
    Role.ADMIN: frozenset(Capability),
}


@dataclass(frozen=True)
class Principal:
    id: str
    role: Role

    def can(self, capability: Capability) -> bool:
        return capability in ROLE_CAPABILITIES[self.role]


# Utilities

def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(user_id: str, role: Role, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {"sub": user_id, "role": Role(role).value, "exp": expire}
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Principal:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        logger.warning("Rejected invalid or expired token")
        raise AuthenticationError("Invalid or expired token")
    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token")
    try:
        role = Role(payload.get("role"))
    except ValueError:
        logger.warning("Rejected token with unknown role for user %s", user_id)
        raise AuthenticationError("Invalid token")
    return Principal(id=str(user_id), role=role)


def _public_user(doc: Dict[str, Any]) -> Dict[str, Any]:
    user = serialize_doc(doc)
    # Never send password hash
    user.pop("password_hash", None)
    return user


# Users

def register_user(db, payload: RegisterInput, caller: Optional[Principal] = None) -> Dict[str, Any]:
    email = payload.email.lower()
    try:
        role = Role(payload.role) if payload.role else Role.CUSTOMER
    except ValueError:
        raise ValidationError(f"Unknown role: {payload.role}")
    if role is not Role.CUSTOMER and email not in ADMIN_EMAILS:
        if caller is None or not caller.can(Capability.MANAGE_USERS):
            logger.warning("Refused %s registration for %s", role.value, email)
            raise ForbiddenError(f"Requires {Capability.MANAGE_USERS.value} permission to register role {role.value}")
    with mongo_errors("register user"):
        if db["user"].find_one({"email": email}):
            raise ValidationError("User exists")
        user_model = UserSchema(
            name=payload.name,
            email=email,
            password_hash=hash_password(payload.password),
            role=role.value,
        )
        try:
            result = db["user"].insert_one(user_model.model_dump())
        except DuplicateKeyError:
            raise ValidationError("User exists")
        user = db["user"].find_one({"_id": result.inserted_id})
    logger.info("Registered user %s with role %s", result.inserted_id, role.value)
    return _public_user(user)


def authenticate_user(db, payload: LoginInput) -> Dict[str, Any]:
    with mongo_errors("look up user"):
        user = db["user"].find_one({"email": payload.email.lower()})
    if not user or not verify_password(payload.password, user.get("password_hash", "")):
        raise AuthenticationError("Invalid credentials")
    return _public_user(user)


def login(db, payload: LoginInput) -> Dict[str, Any]:
    user = authenticate_user(db, payload)
    token = create_access_token(user["id"], Role(user.get("role", Role.CUSTOMER.value)))
    logger.info("User %s logged in", user["id"])
    return {"access_token": token, "token_type": "bearer", "user": user}


# Dependencies

def get_current_user(authorization: Optional[str] = Header(default=None)) -> Principal:
    if not authorization:
        raise AuthenticationError("No token")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Malformed authorization header")
    return decode_token(token.strip())


def get_optional_user(authorization: Optional[str] = Header(default=None)) -> Optional[Principal]:
    if authorization is None:
        return None
    return get_current_user(authorization)


def require(capability: Capability):
    """Dependency factory: the caller must hold ``capability``."""

    def dependency(principal: Principal = Depends(get_current_user)) -> Principal:
        if not principal.can(capability):
            raise ForbiddenError(f"Requires {capability.value} permission")
        return principal

    return dependency


def ensure_user_indexes(db=None):
    db = db if db is not None else get_db()
    with mongo_errors("create user indexes"):
        db["user"].create_index("email", unique=True)
