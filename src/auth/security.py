from datetime import datetime, timedelta, timezone
from typing import Optional, Union
from uuid import UUID

from jose import jwt

from src.config import settings

ALGORITHM = settings.ALGORITHM


def create_access_token(subject: Union[str, UUID], expires_delta: Optional[timedelta] = None) -> str:
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode = {"exp": expire, "sub": str(subject)}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)
