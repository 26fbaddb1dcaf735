from datetime import datetime, timedelta
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import ValidationError
from tubely.config import Settings
from tubely.dependencies import get_app_settings
from tubely.errors import AuthInvalid, AuthMissing
from tubely.schemas.user import TokenPayload

security = HTTPBearer(auto_error=False)

# Use Argon2 for password hashing
pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto",
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str | None) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(plain, hashed)


def create_access_token(user_id: str, secret: str, algorithm: str = "HS256", expires_in_minutes: int = 60) -> str:
    expire = datetime.utcnow() + timedelta(minutes=expires_in_minutes)
    payload = {
        "sub": user_id,
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def get_bearer_token(credentials: HTTPAuthorizationCredentials | None) -> str:
    """Token from an `Authorization: Bearer ...` header, or AuthMissing."""
    if not credentials or not credentials.credentials:
        raise AuthMissing()
    return credentials.credentials


def validate_jwt(token: str, secret: str, algorithm: str = "HS256") -> str:
    """Return the user id carried by a valid access token, or raise AuthInvalid."""
    try:
        payload = TokenPayload(**jwt.decode(token, secret, algorithms=[algorithm]))
    except (JWTError, ValidationError) as e:
        raise AuthInvalid(cause=e) from e
    if payload.type != "access":
        raise AuthInvalid(cause=ValueError(f"unexpected token type {payload.type!r}"))
    return payload.sub


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    settings: Settings = Depends(get_app_settings),
) -> str:
    token = get_bearer_token(credentials)
    return validate_jwt(token, settings.secret_key, settings.algorithm)
