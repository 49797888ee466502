import datetime
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import desc

from core.auth import (
    StaffSession,
    create_access_token,
    create_refresh_token,
    get_session,
)
from database.database import get_db
from models.token import Token
from models.user import Role, User
from schema.auth import LoginRequest, RefreshRequest, RegisterRequest
from utils.state import State
from utils.token import decodeJWT, get_hashed_password, verify_password

router = APIRouter()


@router.post("/register", status_code=201)
async def register_user(
    req: RegisterRequest,
    db=Depends(get_db),
):
    try:
        email = req.email.strip().lower()
        user = db.query(User).filter(User.email == email).first()
        if user:
            State.logger.error("User with email already exists")
            raise HTTPException(
                status_code=400, detail="User with email already exists"
            )
        new_user = User(
            user_id=str(uuid4()),
            full_name=req.full_name,
            email=email,
            password=get_hashed_password(req.password),
            # New accounts wait for an administrator to approve them
            role=Role.PENDING.value,
            time_created=datetime.datetime.now(datetime.UTC).isoformat(),
            time_updated=datetime.datetime.now(datetime.UTC).isoformat(),
        )
        db.add(new_user)
        db.commit()
        db.refresh(new_user)
        return {
            "message": "Registration successful. Wait for administrator approval to access your account.",
            "user": new_user.to_dict(),
        }
    except HTTPException:
        raise
    except Exception as e:
        State.logger.error(f"An error occured while registering user: {str(e)}")
        raise HTTPException(
            status_code=500, detail=f"An error occured while registering user: {str(e)}"
        )


@router.post("/login")
async def login_user(
    req: LoginRequest,
    db=Depends(get_db),
):
    try:
        user = db.query(User).filter(User.email == req.email.strip().lower()).first()
        if not user or not verify_password(req.password, user.password):
            State.logger.error("Invalid credentials")
            raise HTTPException(status_code=401, detail="Invalid credentials")
        access_token = create_access_token(subject=user.user_id)
        refresh_token = create_refresh_token(subject=user.user_id)

        # Logout of previous session
        previous = db.query(Token).filter_by(user_id=user.user_id, status=True).all()
        for token in previous:
            token.status = False
            token.time_updated = datetime.datetime.now(datetime.UTC).isoformat()

        new_token = Token(
            token_id=str(uuid4()),
            user_id=user.user_id,
            access_token=access_token,
            refresh_token=refresh_token,
            status=True,
            time_created=datetime.datetime.now(datetime.UTC).isoformat(),
            time_updated=datetime.datetime.now(datetime.UTC).isoformat(),
        )
        db.add(new_token)
        db.commit()
        State.logger.info(f"User {user.user_id} signed in")
        return {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "user": user.to_dict(),
        }
    except HTTPException:
        raise
    except Exception as e:
        State.logger.error(f"An error occured while login: {str(e)}")
        raise HTTPException(
            status_code=500, detail=f"An error occured while login: {str(e)}"
        )


@router.post("/refresh")
async def refresh_token(
    req: RefreshRequest,
    db=Depends(get_db),
):
    try:
        payload = decodeJWT(req.refresh_token)
        if not payload or payload.get("type") != "refresh":
            State.logger.error("Invalid refresh token")
            raise HTTPException(status_code=401, detail="Invalid refresh token")
        user_id = payload["sub"]
        token = (
            db.query(Token)
            .filter_by(user_id=user_id, refresh_token=req.refresh_token, status=True)
            .order_by(desc(Token.time_created))
            .first()
        )
        if not token:
            State.logger.error("Refresh token does not belong to an active session")
            raise HTTPException(status_code=401, detail="Invalid refresh token")
        new_access_token = create_access_token(subject=user_id)
        new_refresh_token = create_refresh_token(subject=user_id)
        token.access_token = new_access_token
        token.refresh_token = new_refresh_token
        token.time_updated = datetime.datetime.now(datetime.UTC).isoformat()
        db.commit()
        return {
            "access_token": new_access_token,
            "refresh_token": new_refresh_token,
        }
    except HTTPException:
        raise
    except Exception as e:
        State.logger.error(f"An error occured while refreshing token: {str(e)}")
        raise HTTPException(
            status_code=500, detail=f"An error occured while refreshing token: {str(e)}"
        )


@router.post("/logout")
async def logout_user(
    session: StaffSession = Depends(get_session),
    db=Depends(get_db),
):
    try:
        token = (
            db.query(Token)
            .filter_by(user_id=session.user_id, access_token=session.token, status=True)
            .first()
        )
        if token:
            token.status = False
            token.time_updated = datetime.datetime.now(datetime.UTC).isoformat()
            db.commit()
        State.logger.info(f"User {session.user_id} signed out")
        return {"message": "User logged out successfully"}
    except HTTPException:
        raise
    except Exception as e:
        State.logger.error(f"An error occured while logout: {str(e)}")
        raise HTTPException(
            status_code=500, detail=f"An error occured while logout: {str(e)}"
        )
