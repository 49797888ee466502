from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from controllers.admin import run_migration, update_user_role
from core.auth import StaffSession, require_admin
from core.exceptions import AppException
from core.storage import get_storage
from database.database import get_db
from schema.admin import UpdateRoleRequest
from utils.state import State

router = APIRouter()


@router.post("/admin/update-user-role")
async def update_role(
    payload: dict = Body(...),
    session: StaffSession = Depends(require_admin),
    db=Depends(get_db),
):
    try:
        req = UpdateRoleRequest.model_validate(payload)
    except ValidationError as e:
        State.logger.error(f"Invalid role update request: {e.errors()}")
        return JSONResponse(
            status_code=400,
            content={"error": "User ID and a role of doctor, pending or unset are required"},
        )
    try:
        user = update_user_role(req.user_id, req.role, db)
        return {
            "success": True,
            "message": f"User role updated to {req.role.value}",
            "user": user.to_dict(),
        }
    except AppException as e:
        return JSONResponse(status_code=e.status_code, content={"error": e.detail})
    except Exception as e:
        State.logger.error(f"Error updating user role: {str(e)}")
        return JSONResponse(
            status_code=500,
            content={"error": f"Failed to update user role: {str(e)}"},
        )


@router.post("/migrate")
async def migrate(
    session: StaffSession = Depends(require_admin),
    storage=Depends(get_storage),
):
    try:
        message = run_migration(storage)
        State.logger.info(message)
        return {"success": True, "message": message}
    except AppException as e:
        State.logger.error(f"Migration failed: {e.detail}")
        return JSONResponse(
            status_code=500, content={"success": False, "error": e.detail}
        )
    except Exception as e:
        State.logger.error(f"Migration failed: {str(e)}")
        return JSONResponse(
            status_code=500, content={"success": False, "error": "Migration failed"}
        )
