from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple
from uuid import uuid4

from fastapi import HTTPException, Request, status

from app.core.exceptions import (
    AppError,
    CommitError,
    ConfigurationError,
    InvalidStateTransitionError,
    PipelineError,
    SessionAccessDeniedError,
    SessionNotFoundError,
    ValidationError,
)
from app.schemas.response import ApiResponse, ErrorDetail, ResponseMeta

# Most specific first
ERROR_STATUS: Tuple[Tuple[type, int, str], ...] = (
    (ValidationError, status.HTTP_400_BAD_REQUEST, "Invalid Request"),
    (SessionNotFoundError, status.HTTP_404_NOT_FOUND, "Session Not Found"),
    (SessionAccessDeniedError, status.HTTP_403_FORBIDDEN, "Access Denied"),
    (InvalidStateTransitionError, status.HTTP_409_CONFLICT, "Invalid Session State"),
    (CommitError, 422, "Approval Incomplete"),
    (PipelineError, status.HTTP_502_BAD_GATEWAY, "Analysis Failed"),
    (ConfigurationError, status.HTTP_503_SERVICE_UNAVAILABLE, "Model Not Configured"),
)


def _request_id(request: Optional[Request]) -> str:
    if request is not None:
        for attr in ("request_id", "correlation_id"):
            value = getattr(request.state, attr, None)
            if value:
                return value
    return str(uuid4())


def create_api_response(
    data: Any,
    message: str = "Operation successful",
    status: bool = True,
    request: Optional[Request] = None,
    api_version: str = "v1"
) -> Dict[str, Any]:
    """Create a standardized API response as a dictionary.

    Returns a dict to be compatible with FastAPI's response_model=dict.
    """
    meta = ResponseMeta(
        timestamp=datetime.now(timezone.utc),
        request_id=_request_id(request),
        api_version=api_version
    )

    if isinstance(data, dict):
        data_dict = data
    elif hasattr(data, "model_dump"):
        data_dict = data.model_dump(mode="json")
    elif isinstance(data, list):
        data_dict = {"items": [item.model_dump(mode="json") if hasattr(item, "model_dump") else item for item in data]}
    elif data is None:
        data_dict = {}
    else:
        data_dict = {"value": data}

    response = ApiResponse(
        status=status,
        message=message,
        data=data_dict,
        meta=meta
    )
    return response.model_dump(mode="json")


def create_error_detail(
    title: str,
    status: int,
    detail: str,
    request: Optional[Request] = None,
    instance: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> ErrorDetail:
    """Create a standardized error detail (RFC 7807)."""
    return ErrorDetail(
        title=title,
        status=status,
        detail=detail,
        instance=instance or (request.url.path if request else None),
        request_id=_request_id(request),
        timestamp=datetime.now(timezone.utc),
        extra=extra,
    )


def http_error_from(error: AppError, request: Optional[Request] = None) -> HTTPException:
    """Map an application error to an HTTPException carrying an ErrorDetail."""
    status_code, title = status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Error"
    for error_type, mapped_status, mapped_title in ERROR_STATUS:
        if isinstance(error, error_type):
            status_code, title = mapped_status, mapped_title
            break

    extra = None
    if isinstance(error, CommitError) and error.result is not None:
        extra = {"created": error.result.model_dump(mode="json")}
    elif isinstance(error, InvalidStateTransitionError) and error.current_status:
        extra = {"current_status": error.current_status}

    detail = create_error_detail(
        title=title,
        status=status_code,
        detail=str(error),
        request=request,
        extra=extra,
    )
    return HTTPException(status_code=status_code, detail=detail.model_dump(mode="json"))
