"""Repository-host client and response models."""

from .client import GitHubClient
from .models import CheckStatus, PullRequest, Review, UpdateResult

__all__ = ["GitHubClient", "CheckStatus", "PullRequest", "Review", "UpdateResult"]
