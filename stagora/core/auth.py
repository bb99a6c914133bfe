"""
Authentication Utility - JWT and Password handling.

Provides:
- Password hashing with bcrypt
- JWT token creation/verification
- FastAPI dependencies for protected routes (role guards included)
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from stagora.core.config import get_settings
from stagora.db.mongodb import get_collection, COLLECTIONS
from stagora.services.mongo_service import is_valid_object_id, to_object_id

settings = get_settings()

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Bearer token extractor
bearer_scheme = HTTPBearer()
optional_bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    """Hash password with bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password against hash."""
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Optional[dict]:
    """Decode and verify JWT token."""
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme)) -> dict:
    """
    FastAPI dependency - Get current authenticated user.

    Usage:
        @router.get("/protected")
        async def route(user: dict = Depends(get_current_user)):
            return user
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired token",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_token(credentials.credentials)
    if not payload:
        raise credentials_exception

    user_id = payload.get("sub")
    if not user_id or not is_valid_object_id(user_id):
        raise credentials_exception

    # Verify user exists
    user = get_collection(COLLECTIONS["users"]).find_one(
        {"_id": to_object_id(user_id)},
        {"email": 1, "role": 1, "is_verified": 1, "ban": 1}
    )
    if not user:
        raise credentials_exception
    if user.get("ban"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="This account has been banned")

    return {"user_id": str(user["_id"]), "email": user["email"], "role": user["role"]}


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_bearer_scheme),
) -> Optional[dict]:
    """Like get_current_user, but anonymous requests get None instead of a 401."""
    if credentials is None:
        return None
    return await get_current_user(credentials)


def require_role(*roles: str):

    """Build a dependency that only lets the given roles through."""
    async def dependency(user: dict = Depends(get_current_user)) -> dict:
        if user["role"] not in roles:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user
    return dependency


get_current_admin = require_role("admin")
get_current_company = require_role("company")
get_current_student = require_role("student")


def ensure_owner_or_admin(user: dict, owner_id: str) -> None:
    """403 unless the caller owns the resource or is an admin."""
    if user["role"] != "admin" and user["user_id"] != str(owner_id):
        raise HTTPException(status_code=403, detail="You do not have access to this resource")
