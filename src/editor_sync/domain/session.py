"""Live editing session state."""

from dataclasses import dataclass, field

from editor_sync.domain.images import StoredImage

DEFAULT_PROJECT_NAME = "Untitled"


@dataclass
class EditorSession:
    """Mutable state of the current editing session.

    History operations capture this object's setters, never module state.
    """

    owner_id: str | None = None
    remote_id: str | None = None
    local_project_id: str | None = None
    name: str = DEFAULT_PROJECT_NAME
    primary_image: StoredImage | None = None
    generated_image: StoredImage | None = None
    reference_images: list[StoredImage] = field(default_factory=list)
    prompt: str | None = None
    adjustments: dict[str, object] | None = None
    filter: str | None = None

    def set_primary_image(self, image: StoredImage | None) -> None:
        self.primary_image = image

    def set_generated_image(self, image: StoredImage | None) -> None:
        self.generated_image = image

    def set_reference_images(self, images: list[StoredImage]) -> None:
        self.reference_images = list(images)

    def set_prompt(self, prompt: str | None) -> None:
        self.prompt = prompt

    def set_adjustments(self, adjustments: dict[str, object] | None) -> None:
        self.adjustments = adjustments

    def set_filter(self, filter_id: str | None) -> None:
        self.filter = filter_id

    def has_persistable_state(self) -> bool:
        """Return True once an upload, prompt or generation exists."""
        return bool(
            self.primary_image
            or self.generated_image
            or self.reference_images
            or (self.prompt and self.prompt.strip())
        )

    def reset(self) -> None:
        """Start a blank project, keeping the signed-in owner."""
        self.remote_id = None
        self.local_project_id = None
        self.name = DEFAULT_PROJECT_NAME
        self.primary_image = None
        self.generated_image = None
        self.reference_images = []
        self.prompt = None
        self.adjustments = None
        self.filter = None
