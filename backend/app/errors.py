"""
Failure taxonomy shared by services and routers.

Every failure carries a stable machine-readable reason string; routers map
reasons to HTTP status codes and answer ``{"error": <reason>}``.
"""
from __future__ import annotations

from enum import Enum

from fastapi import HTTPException, status


class FailureReason(str, Enum):
    no_source_found = "no_source_found"
    generation_disabled = "generation_disabled"
    generation_not_configured = "generation_not_configured"
    generation_upstream_error = "generation_upstream_error"
    image_unavailable = "image_unavailable"
    invite_expired = "invite_expired"
    invite_already_used = "invite_already_used"
    invite_not_found = "invite_not_found"
    destination_not_eligible = "destination_not_eligible"
    candidate_not_found = "candidate_not_found"
    destination_not_found = "destination_not_found"
    contact_phone_required = "contact_phone_required"
    draft_not_found = "draft_not_found"
    draft_not_approved = "draft_not_approved"
    invalid_transition = "invalid_transition"
    auto_blog_disabled = "auto_blog_disabled"
    workflow_disabled = "workflow_disabled"
    workflow_not_configured = "workflow_not_configured"
    workflow_upstream_error = "workflow_upstream_error"


HTTP_STATUS_BY_REASON: dict[FailureReason, int] = {
    FailureReason.no_source_found: status.HTTP_404_NOT_FOUND,
    FailureReason.generation_disabled: status.HTTP_503_SERVICE_UNAVAILABLE,
    FailureReason.generation_not_configured: status.HTTP_503_SERVICE_UNAVAILABLE,
    FailureReason.generation_upstream_error: status.HTTP_502_BAD_GATEWAY,
    FailureReason.image_unavailable: status.HTTP_404_NOT_FOUND,
    FailureReason.invite_expired: status.HTTP_410_GONE,
    FailureReason.invite_already_used: status.HTTP_409_CONFLICT,
    FailureReason.invite_not_found: status.HTTP_404_NOT_FOUND,
    FailureReason.destination_not_eligible: status.HTTP_409_CONFLICT,
    FailureReason.candidate_not_found: status.HTTP_404_NOT_FOUND,
    FailureReason.destination_not_found: status.HTTP_404_NOT_FOUND,
    FailureReason.contact_phone_required: status.HTTP_400_BAD_REQUEST,
    FailureReason.draft_not_found: status.HTTP_404_NOT_FOUND,
    FailureReason.draft_not_approved: status.HTTP_400_BAD_REQUEST,
    FailureReason.invalid_transition: status.HTTP_409_CONFLICT,
    FailureReason.auto_blog_disabled: status.HTTP_409_CONFLICT,
    FailureReason.workflow_disabled: status.HTTP_503_SERVICE_UNAVAILABLE,
    FailureReason.workflow_not_configured: status.HTTP_503_SERVICE_UNAVAILABLE,
    FailureReason.workflow_upstream_error: status.HTTP_502_BAD_GATEWAY,
}


class EditorialError(Exception):
    """Raised by services when an operation fails for a known reason."""

    def __init__(self, reason: FailureReason, detail: str | None = None):
        self.reason = FailureReason(reason)
        self.detail = detail
        super().__init__(detail or self.reason.value)

    def to_http(self) -> HTTPException:
        code = HTTP_STATUS_BY_REASON.get(self.reason, status.HTTP_400_BAD_REQUEST)
        return HTTPException(status_code=code, detail={"error": self.reason.value})
