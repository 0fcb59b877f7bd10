"""
Pydantic schemas for the family admin API.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class CurrentUserResponse(BaseModel):
    uid: str
    email: Optional[str] = None


class FamilySummaryResponse(BaseModel):
    id: str
    name: str
    member_count: int


class ListFamiliesResponse(BaseModel):
    families: list[FamilySummaryResponse]
    total: int


class FamilyResponse(BaseModel):
    family_id: str
    loading: bool
    family: Optional[dict] = None
    member_count: int = 0


class SessionResponse(BaseModel):
    session_id: str
    family_id: str
    loading: bool
    family: Optional[dict] = None
    member_ids: list[str] = Field(default_factory=list)
    notifications: list[str] = Field(default_factory=list)


class MemberResponse(BaseModel):
    session_id: str
    member: dict
    depth: int
    color: str
    image_url: Optional[str] = None
    notifications: list[str] = Field(default_factory=list)


class FieldEditRequest(BaseModel):
    field: Literal["name", "address", "phone", "occupation", "status", "image"]
    value: Optional[str] = None


class NameRequest(BaseModel):
    name: str = Field(..., max_length=256)


class DeleteMemberResponse(BaseModel):
    deleted: bool
    notifications: list[str] = Field(default_factory=list)


class SaveResponse(BaseModel):
    saved: bool
    notifications: list[str] = Field(default_factory=list)


class ProgramPayload(BaseModel):
    title: str = ""
    type: Literal[
        "Wedding", "Birthday", "Anniversary", "Get Together", "Meeting", "Other"
    ] = "Get Together"
    date: str = ""
    time: str = ""
    location: str = ""
    description: str = ""
    status: Literal["Upcoming", "Completed", "Cancelled"] = "Upcoming"
    visibility: bool = True
    image_url: Optional[str] = None


class ProgramResponse(BaseModel):
    id: str
    title: str
    type: str
    date: str
    time: str
    display_time: str
    location: str
    description: str
    status: str
    visibility: bool
    image_url: Optional[str] = None
    created_at: Optional[Any] = None


class ListProgramsResponse(BaseModel):
    programs: list[ProgramResponse]
    total: int


class ImageUploadResponse(BaseModel):
    url: str


class UserResponse(BaseModel):
    id: str
    name: str
    email: str
    role: str
    suspended: bool


class ListUsersResponse(BaseModel):
    users: list[UserResponse]
    total: int
    error: Optional[str] = None


class SuspendRequest(BaseModel):
    currently_suspended: bool = False


class SuspendResponse(BaseModel):
    id: str
    suspended: bool


class RenameUserRequest(BaseModel):
    name: str = Field(..., max_length=256)


class StatusResponse(BaseModel):
    status: Literal["ok"]
