import uuid
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Permission(BaseModel):
    id: uuid.UUID
    name: str
    model_config = ConfigDict(from_attributes=True)


class RoleBase(BaseModel):
    name: str = Field(min_length=1)


class RoleCreate(RoleBase):
    permission_ids: list[uuid.UUID] = []


class RoleMetadataUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    # Replaces the role's full grant set when present
    permission_ids: list[uuid.UUID] | None = None

    @model_validator(mode="after")
    def _require_a_field(self):
        if self.name is None and self.permission_ids is None:
            raise ValueError("Provide name or permission_ids")
        return self

    def changed_fields(self) -> list[str]:
        return sorted(self.model_dump(exclude_unset=True, exclude_none=True))


class RoleMembersUpdate(BaseModel):
    member_ids: list[uuid.UUID]


class RoleLevelUpdate(BaseModel):
    """Role ids listed from highest to lowest desired rank."""
    role_ids: list[uuid.UUID] = Field(min_length=1)

    @field_validator("role_ids")
    @classmethod
    def _dedupe(cls, value: list[uuid.UUID]) -> list[uuid.UUID]:
        return list(dict.fromkeys(value))


class Role(RoleBase):
    id: uuid.UUID
    chat_id: uuid.UUID
    role_level: int | None = None
    is_default_role: bool
    permissions: list[Permission] = []
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)
