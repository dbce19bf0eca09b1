import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from passlib.exc import UnknownHashError

from storefront_api.config import Settings


logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 10
LOGIN_ROLE = 4

_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)
_bearer = HTTPBearer(auto_error=False)


# PUBLIC_INTERFACE
def hash_password(password: str) -> str:
    """Hash a plaintext password."""
    return _pwd_context.hash(password)


# PUBLIC_INTERFACE
def verify_password(password: str, password_hash: str) -> bool:
    """Verify a plaintext password against a stored hash.

    A stored value that is not a recognised hash never matches.
    """
    try:
        return _pwd_context.verify(password, password_hash)
    except UnknownHashError:
        logger.error("Stored password is not a recognised hash; refusing login")
        return False


# PUBLIC_INTERFACE
def create_access_token(claims: Dict[str, Any], settings: Settings) -> str:
    """Sign ``claims`` into a JWT that expires after the configured lifetime."""
    to_encode = claims.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_expires_minutes)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


# PUBLIC_INTERFACE
def decode_access_token(token: str, settings: Settings) -> Dict[str, Any]:
    """Verify signature and expiry of ``token`` and return its claims.

    Raises ``jose.JWTError`` (or its subclass ``ExpiredSignatureError``).
    """
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])


# PUBLIC_INTERFACE
def create_user_access_token(user: Dict[str, Any], settings: Settings) -> str:
    """Create the login token for a user row."""
    return create_access_token(
        {
            "userId": user["id"],
            "email": user["email"],
            "fname": user["fname"],
            "lname": user["lname"],
            "role": LOGIN_ROLE,
        },
        settings,
    )


# PUBLIC_INTERFACE
def unauthorized(detail: str = "Invalid authorization") -> HTTPException:
    """401 carrying the Bearer challenge header."""
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


# PUBLIC_INTERFACE
def get_current_claims(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> Dict[str, Any]:
    """Dependency that returns the decoded claims of the bearer token."""
    # HTTPBearer yields None both for a missing header and for a non-Bearer scheme.
    if credentials is None:
        logger.warning("Rejected %s %s: missing bearer token", request.method, request.url.path)
        raise unauthorized()

    settings: Settings = request.app.state.settings
    try:
        return decode_access_token(credentials.credentials, settings)
    except ExpiredSignatureError:
        logger.warning("Rejected %s %s: token expired", request.method, request.url.path)
        raise unauthorized("Token expired")
    except JWTError as exc:
        logger.warning("Rejected %s %s: invalid token (%s)", request.method, request.url.path, exc)
        raise unauthorized("Invalid token")
