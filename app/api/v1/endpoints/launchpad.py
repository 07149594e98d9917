from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.database import get_async_session as get_session
from app.core.exceptions import AppError
from app.schemas.auth import CurrentUser
from app.schemas.launchpad import (
    ApproveRequest,
    ApproveResponse,
    LaunchpadSessionListResponse,
    LaunchpadSessionResponse,
    SessionUpdateRequest,
)
from app.schemas.response import ApiResponse
from app.services.document_text_extractor import DocumentTextExtractor
from app.services.launchpad.session_service import LaunchpadSessionService
from app.utils.logging import get_logger
from app.utils.responses import create_api_response, http_error_from

LOGGER = get_logger(__name__)

router = APIRouter()


def get_document_extractor() -> DocumentTextExtractor:
    return DocumentTextExtractor()


async def get_launchpad_service(
    db_session: Annotated[AsyncSession, Depends(get_session)],
) -> LaunchpadSessionService:
    return LaunchpadSessionService(db_session)


def _session_payload(session) -> dict:
    return LaunchpadSessionResponse.model_validate(session).model_dump(mode="json")


@router.post(
    "/upload",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a document and create a draft session",
    operation_id="upload_launchpad_document",
)
async def upload_document(
    request: Request,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    service: Annotated[LaunchpadSessionService, Depends(get_launchpad_service)],
    extractor: Annotated[DocumentTextExtractor, Depends(get_document_extractor)],
    document: UploadFile = File(..., description="PDF, DOCX or TXT document"),
    target_year: Optional[int] = Form(None, description="Plan year; defaults to the current year"),
    target_quarter: Optional[int] = Form(None, ge=1, le=4, description="Optional plan quarter"),
) -> ApiResponse:
    """Extract the document's text and create a draft session."""
    # One byte past the limit is enough for the size check to reject it
    data = await document.read(extractor.max_upload_bytes + 1)
    try:
        text = await extractor.extract(data, document.content_type, filename=document.filename)
        session = await service.create_session(
            current_user,
            document_name=document.filename,
            text=text,
            target_year=target_year,
            target_quarter=target_quarter,
        )
    except AppError as e:
        raise http_error_from(e, request) from e

    return create_api_response(
        data=_session_payload(session),
        message="Document uploaded",
        request=request,
    )


@router.get(
    "/sessions",
    response_model=ApiResponse,
    summary="List Launchpad sessions",
    operation_id="list_launchpad_sessions",
)
async def list_sessions(
    request: Request,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    service: Annotated[LaunchpadSessionService, Depends(get_launchpad_service)],
) -> ApiResponse:
    """List the caller's sessions in the current tenant, newest first."""
    try:
        sessions = await service.list_sessions(current_user)
    except AppError as e:
        raise http_error_from(e, request) from e

    data = LaunchpadSessionListResponse(
        total=len(sessions),
        sessions=[LaunchpadSessionResponse.model_validate(s) for s in sessions],
    )
    return create_api_response(data=data, message="Sessions retrieved", request=request)


@router.get(
    "/{session_id}",
    response_model=ApiResponse,
    summary="Get a Launchpad session",
    operation_id="get_launchpad_session",
)
async def get_session_detail(
    request: Request,
    session_id: UUID,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    service: Annotated[LaunchpadSessionService, Depends(get_launchpad_service)],
) -> ApiResponse:
    try:
        session = await service.get_session(session_id, current_user)
    except AppError as e:
        raise http_error_from(e, request) from e

    return create_api_response(data=_session_payload(session), message="Session retrieved", request=request)


@router.post(
    "/{session_id}/analyze",
    response_model=ApiResponse,
    summary="Analyze a draft session",
    operation_id="analyze_launchpad_session",
)
async def analyze_session(
    request: Request,
    session_id: UUID,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    service: Annotated[LaunchpadSessionService, Depends(get_launchpad_service)],
) -> ApiResponse:
    """Run the model over the document and store the proposal for review.

    The call blocks until analysis finishes; clients poll the session's
    ``analysis_progress`` for intermediate progress.
    """
    try:
        session = await service.analyze(session_id, current_user)
    except AppError as e:
        raise http_error_from(e, request) from e

    return create_api_response(data=_session_payload(session), message="Analysis complete", request=request)


@router.patch(
    "/{session_id}",
    response_model=ApiResponse,
    summary="Edit a session's proposal or approval flags",
    operation_id="update_launchpad_session",
)
async def update_session(
    request: Request,
    session_id: UUID,
    payload: SessionUpdateRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    service: Annotated[LaunchpadSessionService, Depends(get_launchpad_service)],
) -> ApiResponse:
    try:
        session = await service.update_proposal(
            session_id,
            current_user,
            user_edits=payload.user_edits,
            approval_flags=payload.approval_flags,
        )
    except AppError as e:
        raise http_error_from(e, request) from e

    return create_api_response(data=_session_payload(session), message="Session updated", request=request)


@router.post(
    "/{session_id}/approve",
    response_model=ApiResponse,
    summary="Approve a session and create its plan entities",
    operation_id="approve_launchpad_session",
)
async def approve_session(
    request: Request,
    session_id: UUID,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    service: Annotated[LaunchpadSessionService, Depends(get_launchpad_service)],
    payload: Optional[ApproveRequest] = None,
) -> ApiResponse:
    """Commit the edited proposal; duplicates are skipped and counted."""
    try:
        session, result = await service.approve(session_id, current_user, payload)
    except AppError as e:
        raise http_error_from(e, request) from e

    data = ApproveResponse(
        session=LaunchpadSessionResponse.model_validate(session),
        created=result,
    )
    return create_api_response(
        data=data,
        message="Company OS entities created successfully",
        request=request,
    )


@router.delete(
    "/{session_id}",
    response_model=ApiResponse,
    summary="Delete a Launchpad session",
    operation_id="delete_launchpad_session",
)
async def delete_session(
    request: Request,
    session_id: UUID,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    service: Annotated[LaunchpadSessionService, Depends(get_launchpad_service)],
) -> ApiResponse:
    try:
        await service.delete(session_id, current_user)
    except AppError as e:
        raise http_error_from(e, request) from e

    return create_api_response(
        data={"session_id": str(session_id), "deleted": True},
        message="Session deleted",
        request=request,
    )
