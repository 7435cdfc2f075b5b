from pydantic import BaseModel
from uuid import UUID
from datetime import datetime
from typing import List, Literal, Optional


# Create chat
class CreateChatModel(BaseModel):
    local_id: UUID
    city: str


class ChatData(BaseModel):
    id: UUID
    traveler_id: UUID
    local_id: UUID
    city: str
    status: str
    last_message_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


# Inbox
class ChatUser(BaseModel):
    id: UUID
    full_name: str = ""
    avatar_url: Optional[str] = None
    last_active_at: Optional[datetime] = None


class LastMessage(BaseModel):
    id: UUID
    content: str
    sender_id: UUID
    created_at: datetime
    is_from_user: bool


class ChatListItem(BaseModel):
    id: UUID
    city: str
    status: str
    last_message_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    other_user: ChatUser
    user_role: Literal["traveler", "local"]
    last_message: Optional[LastMessage] = None
    unread_count: int


# Chat details
class ParticipantData(BaseModel):
    user_id: UUID
    role: Literal["traveler", "local"]
    joined_at: Optional[datetime] = None
    user: Optional[ChatUser] = None


class ChatDetailData(ChatData):
    participants: List[ParticipantData]


# Messages
class SendMessageModel(BaseModel):
    content: str
    message_type: Literal["text", "image", "location"] = "text"
    # client-chosen id, lets an optimistic echo be replaced in place
    id: Optional[UUID] = None


class SenderInfo(BaseModel):
    id: UUID
    full_name: str = ""
    avatar_url: Optional[str] = None


class MessageData(BaseModel):
    id: UUID
    chat_id: UUID
    sender_id: UUID
    content: str
    message_type: str = "text"
    is_read: bool = False
    created_at: datetime
    sender: Optional[SenderInfo] = None


# Read receipts
class MarkReadModel(BaseModel):
    message_ids: List[UUID]


class MarkReadData(BaseModel):
    updated: int
