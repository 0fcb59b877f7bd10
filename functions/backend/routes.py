"""
HTTP routes for the family admin API.
"""

from __future__ import annotations

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile

from backend.auth import AuthUser
from backend.config import get_settings
from backend.dashboard import list_families
from backend.db import DbClient, DocumentNotFoundError
from backend.dependencies import (
    get_current_user,
    get_db_client,
    get_program_service,
    get_session_store,
    get_storage_client,
    get_user_service,
)
from backend.family_session import FamilyEditorSession, SessionStore
from backend.member_editor import MemberEditor
from backend.programs import Program, ProgramService, format_time_12h, search_programs
from backend.schemas import (
    CurrentUserResponse,
    DeleteMemberResponse,
    FamilyResponse,
    FamilySummaryResponse,
    FieldEditRequest,
    ImageUploadResponse,
    ListFamiliesResponse,
    ListProgramsResponse,
    ListUsersResponse,
    MemberResponse,
    NameRequest,
    ProgramPayload,
    ProgramResponse,
    RenameUserRequest,
    SaveResponse,
    SessionResponse,
    StatusResponse,
    SuspendRequest,
    SuspendResponse,
    UserResponse,
)
from backend.storage import StorageClient
from backend.users import UserService, search_users
from shared.family_stats import count_members
from shared.member_convert import member_to_document, normalize_member

logger = logging.getLogger(__name__)

health_router = APIRouter()
router = APIRouter(dependencies=[Depends(get_current_user)])


@health_router.get("/health", response_model=StatusResponse)
def health():
    return StatusResponse(status="ok")


@router.get("/me", response_model=CurrentUserResponse)
def current_user(user: AuthUser = Depends(get_current_user)):
    return CurrentUserResponse(uid=user.uid, email=user.email)


# Families


@router.get("/families", response_model=ListFamiliesResponse)
def get_families(
    query: str | None = Query(None),
    db: DbClient = Depends(get_db_client),
):
    settings = get_settings()
    families = list_families(db, query=query, collection=settings.families_collection)
    return ListFamiliesResponse(
        families=[FamilySummaryResponse(**asdict(family)) for family in families],
        total=len(families),
    )


@router.get("/families/{family_id}", response_model=FamilyResponse)
def get_family(family_id: str, db: DbClient = Depends(get_db_client)):
    settings = get_settings()
    data = db.get_document(settings.families_collection, family_id)
    if data is None:
        # Not distinguished from a family that is still loading.
        return FamilyResponse(family_id=family_id, loading=True)
    root = normalize_member({"id": family_id, **data}, fallback_id=family_id)
    return FamilyResponse(
        family_id=family_id,
        loading=False,
        family=member_to_document(root),
        member_count=count_members(root),
    )


# Editing sessions


def _require_session(session_id: str, store: SessionStore) -> FamilyEditorSession:
    session = store.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def _require_editor(session: FamilyEditorSession, member_id: str) -> MemberEditor:
    if session.loading:
        raise HTTPException(status_code=409, detail="Family is still loading")
    editor = session.editor_for(member_id)
    if editor is None:
        raise HTTPException(status_code=404, detail="Member not found")
    return editor


def _session_response(session: FamilyEditorSession) -> SessionResponse:
    return SessionResponse(
        session_id=session.session_id,
        family_id=session.family_id,
        loading=session.loading,
        family=member_to_document(session.family) if session.family else None,
        member_ids=session.member_ids,
        notifications=session.drain_notifications(),
    )


def _member_response(
    session: FamilyEditorSession, editor: MemberEditor
) -> MemberResponse:
    return MemberResponse(
        session_id=session.session_id,
        member=member_to_document(editor.member),
        depth=editor.depth,
        color=editor.color,
        image_url=editor.image_url,
        notifications=session.drain_notifications(),
    )


@router.post(
    "/families/{family_id}/sessions", response_model=SessionResponse, status_code=201
)
def open_family_session(
    family_id: str,
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    store: SessionStore = Depends(get_session_store),
):
    settings = get_settings()
    session = FamilyEditorSession.open(
        family_id,
        db=db,
        storage=storage,
        collection=settings.families_collection,
        image_url_expires_in=settings.image_url_expires_in,
    )
    store.add(session)
    with session.lock:
        return _session_response(session)


@router.get("/sessions/{session_id}", response_model=SessionResponse)
def get_session(session_id: str, store: SessionStore = Depends(get_session_store)):
    session = _require_session(session_id, store)
    with session.lock:
        return _session_response(session)


@router.post("/sessions/{session_id}/reload", response_model=SessionResponse)
def reload_session(session_id: str, store: SessionStore = Depends(get_session_store)):
    session = _require_session(session_id, store)
    with session.lock:
        session.reload()
        return _session_response(session)


@router.delete("/sessions/{session_id}", response_model=StatusResponse)
def close_session(session_id: str, store: SessionStore = Depends(get_session_store)):
    if not store.close(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return StatusResponse(status="ok")


@router.post("/sessions/{session_id}/save", response_model=SaveResponse)
def save_session(session_id: str, store: SessionStore = Depends(get_session_store)):
    session = _require_session(session_id, store)
    with session.lock:
        if session.loading:
            raise HTTPException(status_code=409, detail="Family is still loading")
        if not session.save():
            detail = "; ".join(session.drain_notifications()) or "Failed to save"
            raise HTTPException(status_code=502, detail=detail)
        return SaveResponse(saved=True, notifications=session.drain_notifications())


@router.get(
    "/sessions/{session_id}/members/{member_id}", response_model=MemberResponse
)
def get_member(
    session_id: str, member_id: str, store: SessionStore = Depends(get_session_store)
):
    session = _require_session(session_id, store)
    with session.lock:
        return _member_response(session, _require_editor(session, member_id))


@router.patch(
    "/sessions/{session_id}/members/{member_id}", response_model=MemberResponse
)
def edit_member_field(
    session_id: str,
    member_id: str,
    payload: FieldEditRequest,
    store: SessionStore = Depends(get_session_store),
):
    session = _require_session(session_id, store)
    with session.lock:
        editor = _require_editor(session, member_id)
        try:
            editor.change_field(payload.field, payload.value)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        return _member_response(session, editor)


@router.post(
    "/sessions/{session_id}/members/{member_id}/spouse", response_model=MemberResponse
)
def add_member_spouse(
    session_id: str,
    member_id: str,
    payload: NameRequest,
    store: SessionStore = Depends(get_session_store),
):
    session = _require_session(session_id, store)
    with session.lock:
        editor = _require_editor(session, member_id)
        editor.add_spouse(payload.name)
        return _member_response(session, editor)


@router.post(
    "/sessions/{session_id}/members/{member_id}/children",
    response_model=MemberResponse,
)
def add_member_child(
    session_id: str,
    member_id: str,
    payload: NameRequest,
    store: SessionStore = Depends(get_session_store),
):
    session = _require_session(session_id, store)
    with session.lock:
        editor = _require_editor(session, member_id)
        editor.add_child(payload.name)
        return _member_response(session, editor)


@router.delete(
    "/sessions/{session_id}/members/{member_id}",
    response_model=DeleteMemberResponse,
)
def delete_member(
    session_id: str,
    member_id: str,
    confirm: bool = Query(False),
    store: SessionStore = Depends(get_session_store),
):
    session = _require_session(session_id, store)
    with session.lock:
        _require_editor(session, member_id)
        deleted = session.delete_member(member_id, confirmed=confirm)
        return DeleteMemberResponse(
            deleted=deleted, notifications=session.drain_notifications()
        )


@router.post(
    "/sessions/{session_id}/members/{member_id}/image", response_model=MemberResponse
)
def upload_member_image(
    session_id: str,
    member_id: str,
    file: UploadFile = File(...),
    store: SessionStore = Depends(get_session_store),
):
    session = _require_session(session_id, store)
    data = file.file.read()
    if not data:
        raise HTTPException(status_code=400, detail="Image file required")
    with session.lock:
        editor = _require_editor(session, member_id)
        if not editor.attach_image(data, content_type=file.content_type or "image/jpeg"):
            detail = "; ".join(session.drain_notifications()) or "Upload failed"
            raise HTTPException(status_code=502, detail=detail)
        return _member_response(session, editor)


@router.delete(
    "/sessions/{session_id}/members/{member_id}/image", response_model=MemberResponse
)
def remove_member_image(
    session_id: str, member_id: str, store: SessionStore = Depends(get_session_store)
):
    session = _require_session(session_id, store)
    with session.lock:
        editor = _require_editor(session, member_id)
        editor.remove_image()
        return _member_response(session, editor)


# Programs


def _program_response(program: Program) -> ProgramResponse:
    return ProgramResponse(
        id=program.id,
        title=program.title,
        type=program.type.value,
        date=program.date,
        time=program.time,
        display_time=format_time_12h(program.time),
        location=program.location,
        description=program.description,
        status=program.status.value,
        visibility=program.visibility,
        image_url=program.image_url,
        created_at=program.created_at,
    )


@router.get("/programs", response_model=ListProgramsResponse)
def get_programs(
    query: str | None = Query(None),
    service: ProgramService = Depends(get_program_service),
):
    programs = search_programs(service.list_programs(), query)
    return ListProgramsResponse(
        programs=[_program_response(program) for program in programs],
        total=len(programs),
    )


@router.post("/programs", response_model=ProgramResponse, status_code=201)
def create_program(
    payload: ProgramPayload, service: ProgramService = Depends(get_program_service)
):
    return _program_response(service.create_program(payload.model_dump()))


@router.put("/programs/{program_id}", response_model=ProgramResponse)
def update_program(
    program_id: str,
    payload: ProgramPayload,
    service: ProgramService = Depends(get_program_service),
):
    try:
        program = service.update_program(program_id, payload.model_dump())
    except DocumentNotFoundError as e:
        raise HTTPException(status_code=404, detail="Program not found") from e
    return _program_response(program)


@router.delete("/programs/{program_id}", response_model=StatusResponse)
def delete_program(
    program_id: str, service: ProgramService = Depends(get_program_service)
):
    service.delete_program(program_id)
    return StatusResponse(status="ok")


@router.post("/programs/{program_id}/visibility", response_model=ProgramResponse)
def toggle_program_visibility(
    program_id: str, service: ProgramService = Depends(get_program_service)
):
    try:
        program = service.toggle_visibility(program_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail="Program not found") from e
    return _program_response(program)


@router.post("/program-images", response_model=ImageUploadResponse)
async def upload_program_image(
    file: UploadFile = File(...),
    service: ProgramService = Depends(get_program_service),
):
    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail="Image file required")
    try:
        url = service.upload_program_image(
            file.filename or "image", data, content_type=file.content_type or "image/jpeg"
        )
    except Exception as e:
        logger.error("Program image upload failed: %s", e)
        raise HTTPException(
            status_code=502, detail=f"Failed to upload image: {e}"
        ) from e
    return ImageUploadResponse(url=url)


# Users


def _user_response(user) -> UserResponse:
    return UserResponse(**asdict(user))


@router.get("/users", response_model=ListUsersResponse)
def get_users(
    query: str | None = Query(None),
    service: UserService = Depends(get_user_service),
):
    listing = service.list_users()
    users = search_users(listing.users, query)
    return ListUsersResponse(
        users=[_user_response(user) for user in users],
        total=len(users),
        error=listing.error,
    )


@router.post("/users/{user_id}/suspend", response_model=SuspendResponse)
def toggle_user_suspension(
    user_id: str,
    payload: SuspendRequest,
    service: UserService = Depends(get_user_service),
):
    try:
        suspended = service.toggle_suspended(user_id, payload.currently_suspended)
    except DocumentNotFoundError as e:
        raise HTTPException(status_code=404, detail="User not found") from e
    return SuspendResponse(id=user_id, suspended=suspended)


@router.patch("/users/{user_id}", response_model=StatusResponse)
def rename_user(
    user_id: str,
    payload: RenameUserRequest,
    service: UserService = Depends(get_user_service),
):
    try:
        service.rename_user(user_id, payload.name)
    except DocumentNotFoundError as e:
        raise HTTPException(status_code=404, detail="User not found") from e
    return StatusResponse(status="ok")


@router.delete("/users/{user_id}", response_model=StatusResponse)
def delete_user(user_id: str, service: UserService = Depends(get_user_service)):
    service.delete_user(user_id)
    return StatusResponse(status="ok")
