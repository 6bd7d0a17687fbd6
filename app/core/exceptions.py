"""
Error types shared by the GitLab client, the services and the HTTP layer.

Single-target operations raise these directly. Batch operations catch them
per project and turn them into result data.
"""

from typing import Optional


class GitLabAPIError(Exception):
    """Non-success response from the GitLab REST API."""

    def __init__(self, status_code: int, reason: str = "", body: str = ""):
        self.status_code = status_code
        self.reason = reason
        self.body = body
        super().__init__(f"GitLab API Error: {status_code} {reason} - {body}")

    @property
    def is_unauthorized(self) -> bool:
        return self.status_code == 401

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class MissingCredentialError(Exception):
    """Raised before any network call when no personal access token is available."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or "Authorization token is required")


class InvalidRequestError(ValueError):
    """A required parameter is missing or blank."""


def upstream_status(error: Exception) -> Optional[int]:
    """HTTP status of a GitLab API failure, None for anything else."""
    return error.status_code if isinstance(error, GitLabAPIError) else None
