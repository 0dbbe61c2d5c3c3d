"""Domain model for editor images."""

from dataclasses import dataclass
from datetime import datetime

INLINE_PREFIX = "data:"


@dataclass(frozen=True)
class StoredImage:
    """An image held by the editor, either inline data or an external URL."""

    id: str
    url: str
    name: str
    created_at: datetime
    size: int | None = None

    @property
    def is_inline(self) -> bool:
        """Return True when the image is an embedded data URL."""
        return self.url.startswith(INLINE_PREFIX)
