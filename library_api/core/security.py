# library_api/core/security.py
from datetime import datetime, timedelta, timezone
from typing import Optional, List

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from loguru import logger
from passlib.context import CryptContext
from pydantic import BaseModel, ValidationError

from library_api.core.config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES
from library_api.models.enum import UserRole

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# auto_error is off: AuthMiddleware already answers requests without a bearer token
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token", auto_error=False)


class CallerIdentity(BaseModel):
    """Who is calling, as resolved from the bearer token."""
    id: str
    role: UserRole
    username: Optional[str] = None


# --- Password Functions ---
def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


# --- Token Functions ---
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> CallerIdentity:
    """
    Decode a bearer token into a caller identity.
    Raises JWTError when the signature, expiry or claims are not acceptable.
    """
    payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    user_id = payload.get("sub")
    if not user_id:
        raise JWTError("Subject ('sub') missing in token payload.")
    try:
        return CallerIdentity(id=str(user_id), role=payload.get("role"), username=payload.get("username"))
    except ValidationError as e:
        raise JWTError(f"Invalid role claim: {payload.get('role')!r}") from e


# --- Current caller dependency ---
async def get_current_identity(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
) -> CallerIdentity:
    """
    Returns the identity placed in request.state by AuthMiddleware, decoding the
    token here only when the middleware did not run.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    identity: Optional[CallerIdentity] = getattr(request.state, "identity", None)
    if identity is not None:
        return identity

    logger.warning("Identity not found in request state, attempting token decode in dependency.")
    if not token:
        raise credentials_exception
    try:
        return decode_access_token(token)
    except JWTError as e:
        logger.warning(f"Token decode failed in get_current_identity dependency: {e}")
        raise credentials_exception


# --- Role Checking Dependency ---
def require_roles(required_roles: List[UserRole]):
    """
    Factory for a dependency that checks if the caller has one of the required roles.
    """
    async def roles_checker(caller: CallerIdentity = Depends(get_current_identity)) -> CallerIdentity:
        if caller.role not in required_roles:
            logger.warning(
                f"Forbidden: caller '{caller.id}' with role '{caller.role.value}' "
                f"attempted action requiring one of roles: {[r.value for r in required_roles]}."
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Operation not permitted. Required roles: {[r.value for r in required_roles]}",
            )
        return caller
    return roles_checker


require_admin = require_roles([UserRole.ADMIN])
require_any_role = require_roles([UserRole.ADMIN, UserRole.AUTHOR, UserRole.USER])
