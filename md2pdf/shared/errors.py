"""
Error taxonomy shared by the HTTP layer, the render pipeline and the CLI.
"""

from typing import Any


class Md2PdfError(Exception):
    """Base error carrying an HTTP status and a machine-readable code."""

    code = "error"
    http_status = 500

    def __init__(
        self,
        message: str,
        code: str | None = None,
        http_status: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if http_status is not None:
            self.http_status = http_status
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON error responses."""
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(Md2PdfError):
    """Request rejected before any engine is launched."""

    code = "validation_error"
    http_status = 400


class NotFoundError(Md2PdfError):
    """Referenced entity does not exist."""

    code = "not_found"
    http_status = 404


class RenderAborted(Md2PdfError):
    """Job was cancelled or its engine session was torn down concurrently."""

    code = "render_aborted"
    http_status = 499

    def __init__(self, job_id: str, message: str = "Render aborted") -> None:
        super().__init__(message, details={"render_id": job_id})
        self.job_id = job_id


class RenderFailed(Md2PdfError):
    """Engine launch failure, timeout, or any other unexpected engine error."""

    code = "render_failed"
    http_status = 500


class CancelFailed(Md2PdfError):
    """A cancel request could not terminate the job's rendering engine."""

    code = "cancel_failed"
    http_status = 500
