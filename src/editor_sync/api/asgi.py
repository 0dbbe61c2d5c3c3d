"""ASGI entrypoint for the editor sync API."""

from editor_sync.api.app import create_app
from editor_sync.containers import build_container

app = create_app(build_container())
