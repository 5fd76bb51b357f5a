"""Store exceptions.

Not-found / already-exists / invalid-id errors are raised at precondition
checks and passed to callers untouched. Anything else that goes wrong on
disk surfaces as ``StorageFailedError`` with the original exception chained.
"""

from __future__ import annotations


class StoreError(Exception):
    """Base class for every error raised by the store."""


class ProjectNotFoundError(StoreError):
    def __init__(self, project_id: str) -> None:
        self.project_id = project_id
        super().__init__(f"project not found: {project_id}")


class ProjectAlreadyExistsError(StoreError):
    def __init__(self, project_id: str) -> None:
        self.project_id = project_id
        super().__init__(f"project already exists: {project_id}")


class InvalidProjectIDError(StoreError):
    def __init__(self, project_id: str) -> None:
        self.project_id = project_id
        super().__init__(f"invalid project ID: {project_id!r}")


class TaskNotFoundError(StoreError):
    def __init__(self, project_id: str, task_id: str) -> None:
        self.project_id = project_id
        self.task_id = task_id
        super().__init__(f"task not found: {project_id}/{task_id}")


class TaskAlreadyExistsError(StoreError):
    def __init__(self, project_id: str, task_id: str) -> None:
        self.project_id = project_id
        self.task_id = task_id
        super().__init__(f"task already exists: {project_id}/{task_id}")


class InvalidTaskIDError(StoreError):
    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(f"invalid task ID: {task_id!r}")


class ArtifactNotFoundError(StoreError):
    def __init__(self, project_id: str, task_id: str, artifact_id: str) -> None:
        self.project_id = project_id
        self.task_id = task_id
        self.artifact_id = artifact_id
        super().__init__(f"artifact not found: {project_id}/{task_id}/{artifact_id}")


class StorageFailedError(StoreError):
    """An I/O or (de)serialization failure. The cause is on ``__cause__``."""

    def __init__(self, message: str) -> None:
        super().__init__(f"storage operation failed: {message}")
