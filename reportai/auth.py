"""Password hashing and bearer tokens for the ``/api`` routes."""

import datetime
from typing import Any, Dict, Optional

import bcrypt
import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from reportai.config import Settings, get_settings
from reportai.errors import AuthError, InvalidToken

SALT_ROUNDS = 12
JWT_ALGORITHM = "HS256"

bearer_scheme = HTTPBearer(auto_error=False)


def _password_bytes(password: str) -> bytes:
    # bcrypt only looks at the first 72 bytes
    return password.encode("utf-8")[:72]


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=SALT_ROUNDS)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(password), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_token(user: Dict[str, Any], settings: Settings) -> str:
    """Signed token carrying the user id and email."""
    now = datetime.datetime.now(datetime.timezone.utc)
    payload = {
        "userId": user["id"],
        "email": user["email"],
        "iat": now,
        "exp": now + datetime.timedelta(hours=settings.jwt_expires_hours),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def decode_token(token: str, settings: Settings) -> Dict[str, Any]:
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[JWT_ALGORITHM])
    except jwt.PyJWTError as e:
        raise InvalidToken() from e
    if not payload.get("userId"):
        raise InvalidToken()
    return payload


def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> Optional[Dict[str, Any]]:
    """Token payload when a bearer token is sent, otherwise None."""
    if credentials is None:
        return None
    return decode_token(credentials.credentials, settings)


def get_current_user(user: Optional[Dict[str, Any]] = Depends(get_optional_user)) -> Dict[str, Any]:
    if user is None:
        raise AuthError()
    return user
