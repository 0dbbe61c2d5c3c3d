"""Domain models for remote (backend) projects."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class RemoteProject:
    """A project row owned by the remote backend."""

    id: str
    owner_id: str
    name: str
    created_at: datetime
    primary_image_url: str | None = None
    generated_image_url: str | None = None
    thumbnail_url: str | None = None
