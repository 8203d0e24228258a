"""
Notes, Reminders and Chat Models

The household board: shared notes, time-based reminders (optionally
attached to a note) and a chat. Chat messages are soft-deleted so the
conversation keeps its shape.
"""

from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from flatmate.models.common import UtcDatetime, utcnow


DELETED_MESSAGE_PLACEHOLDER = "[message deleted]"


class NoteType(str, Enum):
    GENERAL = "general"
    SHOPPING_LIST = "shoppingList"
    REMINDER = "reminder"


class Note(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    title: str = Field(..., min_length=1, max_length=100)
    content: str = Field(default="", max_length=2000)
    type: NoteType = NoteType.GENERAL
    created_by: UUID
    created_at: UtcDatetime = Field(default_factory=utcnow)
    updated_at: UtcDatetime = Field(default_factory=utcnow)
    is_archived: bool = False


class CreateNoteInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=100)
    content: str = Field(default="", max_length=2000)
    type: NoteType = NoteType.GENERAL
    created_by: UUID


class UpdateNoteInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    content: Optional[str] = Field(default=None, max_length=2000)
    type: Optional[NoteType] = None


class Reminder(BaseModel):
    """A dated reminder; notified_at is set once it is dismissed."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    note_id: Optional[UUID] = None
    description: str = Field(..., min_length=1, max_length=200)
    due_date: UtcDatetime
    created_by: UUID
    notified_at: Optional[UtcDatetime] = None
    created_at: UtcDatetime = Field(default_factory=utcnow)


class CreateReminderInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    note_id: Optional[UUID] = None
    description: str = Field(..., min_length=1, max_length=200)
    due_date: UtcDatetime
    created_by: UUID


class UpdateReminderInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    note_id: Optional[UUID] = None
    description: Optional[str] = Field(default=None, min_length=1, max_length=200)
    due_date: Optional[UtcDatetime] = None


class ChatMessage(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    content: str = Field(..., min_length=1, max_length=1000)
    author_id: UUID
    created_at: UtcDatetime = Field(default_factory=utcnow)
    edited_at: Optional[UtcDatetime] = None
    is_deleted: bool = False


class SendMessageInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    content: str = Field(..., min_length=1, max_length=1000)
    author_id: UUID


class EditMessageInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    content: str = Field(..., min_length=1, max_length=1000)
    author_id: UUID


class MessageQuery(BaseModel):
    """Window over the chat, oldest first; limit keeps the newest."""

    limit: Optional[int] = Field(default=None, ge=1)
    before: Optional[UtcDatetime] = None
    after: Optional[UtcDatetime] = None
