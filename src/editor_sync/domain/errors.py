"""Error taxonomy for the local project store and sync."""


class NotFoundError(LookupError):
    """Raised when an operation targets an unknown local project id."""

    def __init__(self, project_id: str) -> None:
        super().__init__(f"Local project not found: {project_id}")
        self.project_id = project_id


class DuplicateIdError(ValueError):
    """Raised when saving a local project whose id already exists."""

    def __init__(self, project_id: str) -> None:
        super().__init__(f"Local project already exists: {project_id}")
        self.project_id = project_id


class RemoteIdConflictError(ValueError):
    """Raised when a synced project would be relinked to another remote id."""

    def __init__(self, project_id: str, current: str, requested: str) -> None:
        super().__init__(
            f"Local project {project_id} is linked to {current}, refusing {requested}"
        )
        self.project_id = project_id
        self.current = current
        self.requested = requested


class RemoteCallFailure(RuntimeError):
    """Raised when a remote collaborator call fails."""
