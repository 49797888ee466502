from fastapi import APIRouter, Depends, HTTPException

from controllers.admin import list_users
from core.auth import StaffSession, get_session, require_admin
from core.exceptions import AppException
from database.database import get_db
from models.user import User
from utils.state import State

router = APIRouter()


@router.get("/")
async def get_users(
    session: StaffSession = Depends(require_admin),
    db=Depends(get_db),
):
    try:
        users = list_users(db)
        return {"users": [user.to_dict() for user in users]}
    except (HTTPException, AppException):
        raise
    except Exception as e:
        State.logger.error(f"An error occured while fetching all users: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"An error occured while fetching all users: {str(e)}",
        )


@router.get("/me")
async def get_self(
    session: StaffSession = Depends(get_session),
    db=Depends(get_db),
):
    try:
        user = db.query(User).filter(User.user_id == session.user_id).first()
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        return {"user": user.to_dict(), "is_admin": session.is_admin}
    except HTTPException:
        raise
    except Exception as e:
        State.logger.error(f"An error occured while fetching user details: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"An error occured while fetching user details: {str(e)}",
        )
