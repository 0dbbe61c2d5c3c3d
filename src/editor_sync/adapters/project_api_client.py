"""Web app API client for creating remote projects."""

from dataclasses import dataclass

import httpx

from editor_sync.domain.errors import RemoteCallFailure
from editor_sync.services.sync import ProjectCreator


@dataclass
class HttpxProjectApiClient(ProjectCreator):
    """Creates projects through the web app so server-side policies apply."""

    base_url: str
    http_client: httpx.AsyncClient
    timeout: float = 15.0

    @classmethod
    def create(
        cls, base_url: str, access_token: str | None = None, timeout: float = 15.0
    ) -> "HttpxProjectApiClient":
        """Create a client with a managed httpx session."""
        headers = {"Authorization": f"Bearer {access_token}"} if access_token else {}
        return cls(
            base_url=base_url.rstrip("/"),
            http_client=httpx.AsyncClient(headers=headers),
            timeout=timeout,
        )

    async def create_project(self, name: str | None = None) -> str:
        """Create a remote project and return its id."""
        url = f"{self.base_url}/api/projects/new"
        payload: dict[str, object] = {}
        if name is not None:
            payload["name"] = name
        try:
            response = await self.http_client.post(
                url, json=payload, timeout=self.timeout
            )
        except httpx.HTTPError as exc:
            raise RemoteCallFailure(f"Project creation request failed: {exc}") from exc
        try:
            body = response.json()
        except ValueError:
            body = {}
        project_id = body.get("id") if isinstance(body, dict) else None
        if response.is_error or not project_id:
            details = body.get("details") if isinstance(body, dict) else None
            raise RemoteCallFailure(details or "Failed to create remote project")
        return str(project_id)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
