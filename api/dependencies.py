"""API Dependencies - Authentication and role checks"""
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from domain.auth import User, UserInDB
from domain.enums import UserRole
from infrastructure.security import decode_access_token, get_password_hash
from api.schemas import TokenData

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")

# Seeded user directory, one user per role
_fake_users_db = {
    "admin": {
        "username": "admin",
        "full_name": "Admin User",
        "email": "admin@example.com",
        "plain_password": "admin123",  # Will be hashed on first access
        "disabled": False,
        "role": UserRole.ADMIN,
        "hotel_id": "H1",
        "user_id": "123e4567-e89b-12d3-a456-426614174000"
    },
    "manager": {
        "username": "manager",
        "full_name": "Revenue Manager",
        "email": "manager@example.com",
        "plain_password": "manager123",
        "disabled": False,
        "role": UserRole.MANAGER,
        "hotel_id": "H1",
        "user_id": "123e4567-e89b-12d3-a456-426614174001"
    },
    "staff": {
        "username": "staff",
        "full_name": "Front Desk",
        "email": "staff@example.com",
        "plain_password": "staff123",
        "disabled": False,
        "role": UserRole.STAFF,
        "hotel_id": "H1",
        "user_id": "123e4567-e89b-12d3-a456-426614174002"
    },
    "guest": {
        "username": "guest",
        "full_name": "Guest User",
        "email": "guest@example.com",
        "plain_password": "guest123",
        "disabled": False,
        "role": UserRole.GUEST,
        "hotel_id": "H1",
        "user_id": "123e4567-e89b-12d3-a456-426614174003"
    },
}

fake_users_db = _fake_users_db

# Cache for hashed passwords
_password_hash_cache = {}

def _get_hashed_password(username: str) -> str:
    """Lazily hash passwords on first access"""
    if username not in _password_hash_cache:
        user = _fake_users_db.get(username)
        if user and "plain_password" in user:
            _password_hash_cache[username] = get_password_hash(user["plain_password"])
    return _password_hash_cache.get(username, "")

def get_user(db, username: str):
    if username in db:
        user_dict = db[username].copy()
        if "plain_password" in user_dict:
            user_dict["hashed_password"] = _get_hashed_password(username)
            del user_dict["plain_password"]
        return UserInDB(**user_dict)
    return None

async def get_current_user(request: Request, token: str = Depends(oauth2_scheme)):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_access_token(token)
        username: str = payload.get("sub")
        if username is None:
            raise credentials_exception
        token_data = TokenData(username=username)
    except JWTError:
        raise credentials_exception

    user = get_user(_fake_users_db, username=token_data.username)
    if user is None:
        raise credentials_exception
    # Seen by the exception handlers
    request.state.user = user
    return user

async def get_current_active_user(current_user: User = Depends(get_current_user)):
    if current_user.disabled:
        raise HTTPException(status_code=400, detail="Inactive user")
    return current_user

def require_roles(*roles: UserRole):
    """Dependency factory rejecting identities outside ``roles`` with 403"""

    async def checker(current_user: User = Depends(get_current_active_user)) -> User:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{current_user.role.value}' is not allowed to perform this action",
            )
        return current_user

    return checker

require_admin = require_roles(UserRole.ADMIN)
require_manager = require_roles(UserRole.ADMIN, UserRole.MANAGER)
require_staff = require_roles(UserRole.ADMIN, UserRole.MANAGER, UserRole.STAFF)
