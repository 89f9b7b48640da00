import uuid
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class ChatBase(BaseModel):
    name: str | None = None
    is_private: bool = False


class GroupChatCreate(ChatBase):
    name: str = Field(min_length=1)


class DirectChatCreate(BaseModel):
    target_user_id: uuid.UUID


class Chat(ChatBase):
    id: uuid.UUID
    type: str
    owner_id: uuid.UUID | None = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class ChatMember(BaseModel):
    id: uuid.UUID
    chat_id: uuid.UUID
    user_id: uuid.UUID
    muted_until: datetime | None = None
    joined_at: datetime
    model_config = ConfigDict(from_attributes=True)


class MuteRequest(BaseModel):
    muted_until: datetime
