"""Session tokens, password hashing and the FastAPI security dependency.

Sessions are signed JWTs carrying ``user_id``, ``email`` and ``role``. The
token normally travels in the HTTP-only ``token`` cookie set at login;
a bearer ``Authorization`` header with the same token is accepted too
(handy for scripts and API clients).

`get_current_user` raises `Unauthorized` on any authentication issue so
it can be used directly inside route dependencies.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Request, Security
from fastapi.security import APIKeyCookie, HTTPAuthorizationCredentials, HTTPBearer
import jwt
from passlib.context import CryptContext
from sqlmodel import Session

from .database import get_session
from .errors import Unauthorized
from . import models, repositories

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
SESSION_COOKIE = 'token'

cookie_scheme = APIKeyCookie(name=SESSION_COOKIE, auto_error=False)
bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return PWD_CTX.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    return PWD_CTX.verify(password, password_hash)


def create_token(user: models.User, secret: str, algorithm: str = 'HS256', expire_days: int = 7) -> str:
    """Sign a session token for `user` valid for `expire_days`."""
    expire = datetime.now(timezone.utc) + timedelta(days=expire_days)
    payload = {
        "user_id": user.id,
        "email": user.email,
        "role": models.Role(user.role).value,
        "exp": int(expire.timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_token(token: str, secret: str, algorithm: str = 'HS256') -> dict:
    """Decode and verify a session token.

    Returns the decoded payload on success or raises `Unauthorized`.
    """
    try:
        return jwt.decode(token, secret, algorithms=[algorithm])
    except jwt.ExpiredSignatureError:
        raise Unauthorized('token expired')
    except jwt.InvalidTokenError:
        raise Unauthorized('invalid token')


def _extract_token(cookie_token: Optional[str], credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if cookie_token:
        return cookie_token
    if credentials and credentials.credentials:
        return credentials.credentials
    return None


def get_current_user(
    request: Request,
    cookie_token: Optional[str] = Security(cookie_scheme),
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    db: Session = Depends(get_session),
) -> models.User:
    """FastAPI dependency that returns the authenticated user.

    The token is taken from the session cookie (or the bearer header),
    verified with the app's settings and resolved to a `User` row.
    """
    token = _extract_token(cookie_token, credentials)
    if not token:
        raise Unauthorized('not authenticated')
    settings = request.app.state.settings
    payload = decode_token(token, settings.JWT_SECRET, settings.JWT_ALGORITHM)
    user_id = payload.get('user_id')
    if not user_id:
        raise Unauthorized('invalid token payload')
    user = repositories.UserRepository(db).get(user_id)
    if not user:
        raise Unauthorized('user not found')
    return user
