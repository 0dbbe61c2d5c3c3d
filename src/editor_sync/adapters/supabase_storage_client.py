"""Supabase Storage adapter for project images."""

import asyncio
import base64
import binascii
from dataclasses import dataclass

import httpx
from supabase import Client, StorageException

from editor_sync.domain.errors import RemoteCallFailure
from editor_sync.services.artifacts import ArtifactStorage


def image_path(owner_id: str, project_id: str, filename: str) -> str:
    """Build the bucket path ``{owner}/{project}/{filename}``."""
    return f"{owner_id}/{project_id}/{filename}"


def decode_data_url(data_url: str) -> tuple[bytes, str]:
    """Return the bytes and MIME type of a base64 data URL."""
    header, sep, encoded = data_url.partition(",")
    if not sep or not header.startswith("data:") or ";base64" not in header:
        raise ValueError("Not a base64 data URL")
    mime = header[len("data:") :].split(";", 1)[0] or "image/png"
    return base64.b64decode(encoded, validate=True), mime


@dataclass
class SupabaseStorageClient(ArtifactStorage):
    """Uploads inline images with upsert so repeated syncs are idempotent."""

    client: Client
    bucket: str = "images"

    async def upload_image(
        self, owner_id: str, project_id: str, data_url: str, filename: str
    ) -> str:
        """Upload a data URL and return its public URL."""
        try:
            content, mime = decode_data_url(data_url)
        except (ValueError, binascii.Error) as exc:
            raise RemoteCallFailure(f"Invalid inline image {filename}: {exc}") from exc
        path = image_path(owner_id, project_id, filename)
        return await asyncio.to_thread(self._upload, path, content, mime)

    def _upload(self, path: str, content: bytes, mime: str) -> str:
        bucket = self.client.storage.from_(self.bucket)
        try:
            bucket.upload(
                path=path,
                file=content,
                file_options={"content-type": mime, "upsert": "true"},
            )
            return bucket.get_public_url(path)
        except (StorageException, httpx.HTTPError) as exc:
            raise RemoteCallFailure(f"Upload to {path} failed: {exc}") from exc
