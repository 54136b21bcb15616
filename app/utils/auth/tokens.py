from datetime import datetime, timedelta, timezone
from jose import jwt
from app.core.config import settings

def create_token(data: dict, expires_delta: timedelta = timedelta(hours=1), secret: str | None = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, secret or settings.SECRET_KEY, algorithm=settings.ALGORITHM)
