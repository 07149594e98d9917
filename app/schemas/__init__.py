from .launchpad import (
    ApprovalFlags,
    ApproveRequest,
    CommitResult,
    LaunchpadSessionResponse,
    ProposedPlan,
)
from .response import ApiResponse, ErrorDetail

__all__ = [
    "ApprovalFlags",
    "ApproveRequest",
    "CommitResult",
    "LaunchpadSessionResponse",
    "ProposedPlan",
    "ApiResponse",
    "ErrorDetail",
]
