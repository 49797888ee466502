import os

from fastapi import HTTPException, status
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from models.token import Token
from utils.state import State

password_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def get_hashed_password(password: str) -> str:
    return password_context.hash(password)


def verify_password(password: str, hashed_pass: str) -> bool:
    return password_context.verify(password, hashed_pass)


def verify_token(token: str, db: Session) -> Token:
    token_record = (
        db.query(Token)
        .filter(Token.access_token == token, Token.status.is_(True))
        .first()
    )
    if not token_record:
        State.logger.error("Invalid or expired token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token"
        )
    return token_record


def decodeJWT(jwtoken: str):
    try:
        payload = jwt.decode(
            jwtoken,
            os.getenv("JWT_SECRET_KEY"),
            algorithms=[os.getenv("JWT_ALGORITHM", "HS256")],
        )
        return payload
    except JWTError:
        return None
