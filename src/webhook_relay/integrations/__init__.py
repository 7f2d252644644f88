"""Outbound integrations with third-party APIs."""

from .github import GitHubActionsClient, GitHubDispatchError

__all__ = ["GitHubActionsClient", "GitHubDispatchError"]
