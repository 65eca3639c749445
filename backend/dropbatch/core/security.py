from datetime import datetime, timedelta

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dropbatch.core.config import settings
from dropbatch.core.database import get_db
from dropbatch.models.user import User
from dropbatch.schemas.user import Identity

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

# auto_error off: a missing token means an anonymous sender, not a 401
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token", auto_error=False)

_credentials_exception = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)

def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


async def get_current_identity(
    token: str | None = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> Identity | None:
    """Resolve the bearer token to an identity, or ``None`` when there is no token.

    A token that is present but invalid is rejected rather than treated as
    anonymous.
    """
    if not token:
        return None
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise _credentials_exception
    email = payload.get("sub")
    if not email:
        raise _credentials_exception

    result = await db.execute(select(User).where(User.email == email))
    user = result.scalars().first()
    if user is None or not user.is_active:
        raise _credentials_exception
    return Identity(id=user.id, email=user.email)


async def require_identity(identity: Identity | None = Depends(get_current_identity)) -> Identity:
    if identity is None:
        raise _credentials_exception
    return identity
