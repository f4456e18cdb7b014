from datetime import datetime
from typing import Annotated, List, Optional
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from todoapp.constants.constants import INT32_MAX, INT32_MIN

# Task ids and sequences live in 32-bit INTEGER columns
Int32 = Annotated[int, Field(ge=INT32_MIN, le=INT32_MAX)]


class FileAttachment(BaseModel):
    """A named file stored in the blob store."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)


ImageList = TypeAdapter(List[str])
FileList = TypeAdapter(List[FileAttachment])


class TaskResponse(BaseModel):
    id: int
    text: str
    description: Optional[str] = None
    done: bool
    images: List[str] = Field(default_factory=list)
    files: List[FileAttachment] = Field(default_factory=list)
    parent_id: Optional[int] = None
    user_id: str
    sequence: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("images", "files", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return value or []


class TaskDetailResponse(TaskResponse):
    """A task plus the ids it is linked with through relationships."""
    linked_parent_ids: List[int] = Field(default_factory=list)
    linked_child_ids: List[int] = Field(default_factory=list)


class TaskListResponse(BaseModel):
    tasks: List[TaskResponse]
    revision: int


class RevisionResponse(BaseModel):
    revision: int


class RelationshipResponse(BaseModel):
    parent_id: int
    child_id: int

    model_config = ConfigDict(from_attributes=True)


class TaskCreateRequest(BaseModel):
    """Request schema for creating a new task."""
    text: str = Field(..., min_length=1)


class SequenceItem(BaseModel):
    id: Int32
    sequence: Int32


class TextItem(BaseModel):
    id: Int32
    text: str = Field(..., min_length=1)


class TaskIdsRequest(BaseModel):
    """Request schema for the multi-select bulk operations."""
    ids: List[Int32] = Field(default_factory=list)


class TaskDetailsUpdateRequest(BaseModel):
    """Partial update: only fields sent by the client are applied."""
    text: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    images: Optional[List[str]] = None
    files: Optional[List[FileAttachment]] = None
    parent_id: Optional[Int32] = None


class LinkRequest(BaseModel):
    parent_id: Int32
    child_id: Int32


class SetLinksRequest(BaseModel):
    child_ids: List[Int32] = Field(default_factory=list)


class AttachmentUploadResponse(BaseModel):
    name: str
    url: str
