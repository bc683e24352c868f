from datetime import datetime

from jose import jwt

from openbookcorner.core.config import settings

ALGORITHM = "HS256"


def create_access_token(data: dict, expires_at: datetime) -> str:
    return jwt.encode({**data, "exp": expires_at}, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and verify a token. Raises ``jose.JWTError`` when invalid or expired."""
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
