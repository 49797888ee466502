import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Union
from uuid import uuid4

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt
from sqlalchemy.orm import Session

from core.exceptions import ForbiddenError
from database.database import get_db
from models.user import Role, User
from utils.state import State
from utils.token import decodeJWT, verify_token


class JWTBearer(HTTPBearer):
    def __init__(self, auto_error: bool = True):
        super(JWTBearer, self).__init__(auto_error=auto_error)

    async def __call__(self, request: Request):
        credentials: HTTPAuthorizationCredentials = await super(
            JWTBearer, self
        ).__call__(request)
        if credentials:
            if not credentials.scheme == "Bearer":
                raise HTTPException(
                    status_code=403, detail="Invalid authentication scheme."
                )
            if not self.verify_jwt(credentials.credentials):
                raise HTTPException(
                    status_code=401, detail="Invalid token or expired token."
                )
            return credentials.credentials
        else:
            raise HTTPException(status_code=403, detail="Invalid authorization code.")

    def verify_jwt(self, jwtoken: str) -> bool:
        return decodeJWT(jwtoken) is not None


def _encode(subject: Union[str, Any], expires_delta: timedelta, kind: str) -> str:
    to_encode = {
        "exp": datetime.now(timezone.utc) + expires_delta,
        "sub": subject,
        "type": kind,
        "jti": uuid4().hex,
    }
    return jwt.encode(
        to_encode,
        os.getenv("JWT_SECRET_KEY"),
        algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
    )


def create_access_token(subject: str, expires_delta: timedelta = None) -> str:
    if expires_delta is None:
        expires_delta = timedelta(
            minutes=int(os.getenv("JWT_ACCESS_TOKEN_EXPIRE_MINUTES", "30"))
        )
    return _encode(subject, expires_delta, "access")


def create_refresh_token(subject: str, expires_delta: timedelta = None) -> str:
    if expires_delta is None:
        expires_delta = timedelta(
            minutes=int(os.getenv("JWT_REFRESH_TOKEN_EXPIRE_MINUTES", "1440"))
        )
    return _encode(subject, expires_delta, "refresh")


@dataclass(frozen=True)
class StaffSession:
    """The signed-in staff member, handed explicitly to every protected handler."""

    user_id: str
    email: str
    full_name: str | None
    role: Role
    token: str

    @property
    def display_name(self) -> str:
        return self.full_name or "Unknown Doctor"

    @property
    def is_admin(self) -> bool:
        return self.email.lower() in admin_emails()


def admin_emails() -> set:
    raw = os.getenv("ADMIN_EMAILS", "")
    return {email.strip().lower() for email in raw.split(",") if email.strip()}


def get_session(
    token: str = Depends(JWTBearer()),
    db: Session = Depends(get_db),
) -> StaffSession:
    """Resolve the bearer token into a live session.

    A token is only honoured while its row in the tokens table is active, so
    logging out or logging in again elsewhere ends the session.
    """
    payload = decodeJWT(token)
    if not payload or payload.get("type") != "access":
        raise HTTPException(status_code=401, detail="Invalid token or expired token.")
    token_record = verify_token(token, db)
    user = db.query(User).filter(User.user_id == token_record.user_id).first()
    if not user:
        State.logger.error(f"Session token {token_record.token_id} has no user")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found"
        )
    return StaffSession(
        user_id=user.user_id,
        email=user.email,
        full_name=user.full_name,
        role=Role.from_stored(user.role),
        token=token,
    )


def require_doctor(session: StaffSession = Depends(get_session)) -> StaffSession:
    if session.role is not Role.DOCTOR:
        State.logger.warning(
            f"User {session.user_id} with role {session.role.value} denied clinical access"
        )
        raise ForbiddenError("Your account is awaiting approval by an administrator")
    return session


def require_admin(session: StaffSession = Depends(get_session)) -> StaffSession:
    if not session.is_admin:
        State.logger.warning(f"User {session.user_id} denied admin access")
        raise ForbiddenError("Administrator access required")
    return session
