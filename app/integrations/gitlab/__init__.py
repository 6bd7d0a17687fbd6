"""
GitLab integration package.
"""

from app.integrations.gitlab.client import GitLabClient

__all__ = [
    "GitLabClient",
]
