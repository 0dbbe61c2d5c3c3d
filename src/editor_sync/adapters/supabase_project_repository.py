"""Supabase-backed remote project repository."""

from dataclasses import dataclass
from datetime import UTC, datetime

import httpx
from supabase import Client, PostgrestAPIError

from editor_sync.domain.errors import RemoteCallFailure
from editor_sync.domain.remote import RemoteProject
from editor_sync.services.artifacts import RemoteProjectRepository


@dataclass
class SupabaseProjectRepository(RemoteProjectRepository):
    """Supabase implementation for the ``projects`` table."""

    client: Client

    def update_project(self, project_id: str, fields: dict[str, object]) -> None:
        """Update columns on a project row."""
        try:
            self.client.table("projects").update(fields).eq("id", project_id).execute()
        except (PostgrestAPIError, httpx.HTTPError) as exc:
            raise RemoteCallFailure(f"Failed to update project {project_id}") from exc

    def append_event(
        self, project_id: str, event_type: str, meta: dict[str, object] | None = None
    ) -> None:
        """Append an event to ``projects.data.events``."""
        try:
            response = (
                self.client.table("projects")
                .select("data")
                .eq("id", project_id)
                .limit(1)
                .execute()
            )
            row = response.data[0] if response.data else {}
            data = dict(row.get("data") or {})
            events = list(data.get("events") or [])
            event: dict[str, object] = {
                "type": event_type,
                "timestamp": datetime.now(tz=UTC).isoformat(),
            }
            if meta:
                event.update({key: value for key, value in meta.items() if value})
            data["events"] = [*events, event]
            self.client.table("projects").update({"data": data}).eq(
                "id", project_id
            ).execute()
        except (PostgrestAPIError, httpx.HTTPError) as exc:
            raise RemoteCallFailure(
                f"Failed to append event to project {project_id}"
            ) from exc

    def list_recent_projects(self, owner_id: str, limit: int) -> list[RemoteProject]:
        """Return the owner's newest projects."""
        try:
            response = (
                self.client.table("projects")
                .select("*")
                .eq("user_id", owner_id)
                .order("created_at", desc=True)
                .limit(limit)
                .execute()
            )
        except (PostgrestAPIError, httpx.HTTPError) as exc:
            raise RemoteCallFailure("Failed to list remote projects") from exc
        return [_parse_project(row) for row in response.data or []]


def _parse_project(row: dict[str, object]) -> RemoteProject:
    """Parse a project row into a domain model."""
    return RemoteProject(
        id=str(row["id"]),
        owner_id=str(row.get("user_id", "")),
        name=str(row.get("name") or "Untitled"),
        created_at=datetime.fromisoformat(str(row["created_at"])),
        primary_image_url=row.get("primary_image_url"),
        generated_image_url=row.get("generated_image_url"),
        thumbnail_url=row.get("thumbnail_url"),
    )
