from pydantic import BaseModel, ConfigDict, Field

from models.user import Role


class UpdateRoleRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId", min_length=1)
    role: Role
