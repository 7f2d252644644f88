"""GitHub Actions client.

Triggers ``workflow_dispatch`` runs with a personal access token.
Deliveries are attempted once; there is no retry queue.
"""

import logging
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"


class GitHubDispatchError(Exception):
    """Raised when GitHub rejects a workflow dispatch."""

    def __init__(self, status_code: Optional[int], message: str):
        self.status_code = status_code
        super().__init__(message)


class GitHubActionsClient:
    """Triggers GitHub Actions workflows.

    Example:
        client = GitHubActionsClient(token=settings.github_pat)
        await client.trigger_workflow(
            "your-github-username", "your-repo-name", "your_workflow.yml", "main",
            inputs={"example_input": "Hello"},
        )
    """

    def __init__(
        self,
        token: str,
        base_url: str = GITHUB_API_URL,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize client.

        Args:
            token: GitHub personal access token.
            base_url: API root, overridable for GitHub Enterprise.
            timeout_seconds: HTTP request timeout.
            transport: Optional httpx transport (used by tests).
        """
        if not token:
            raise ValueError("A GitHub token is required")
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout_seconds
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self.token}",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "webhook-relay",
        }

    async def trigger_workflow(
        self,
        owner: str,
        repo: str,
        workflow_id: str,
        ref: str,
        inputs: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Create a workflow dispatch event.

        Args:
            owner: Repository owner.
            repo: Repository name.
            workflow_id: Workflow file name or numeric ID.
            ref: Branch or tag to run on.
            inputs: Optional workflow inputs.

        Raises:
            GitHubDispatchError: On a transport failure or non-2xx response.
        """
        url = f"{self.base_url}/repos/{owner}/{repo}/actions/workflows/{workflow_id}/dispatches"
        payload = {"ref": ref, "inputs": inputs or {}}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload, headers=self._headers())
        except httpx.HTTPError as e:
            raise GitHubDispatchError(None, f"failed to trigger workflow: {e}") from e

        if not 200 <= response.status_code < 300:
            raise GitHubDispatchError(
                response.status_code,
                f"failed to trigger workflow: {response.status_code} {response.text[:1000]}",
            )

        logger.info(f"Triggered workflow {workflow_id} on {owner}/{repo}@{ref}")
