"""Request-level operations on top of the store.

Takes raw user input: IDs are normalized and checked here before anything
touches the disk, names default to the raw ID, and every mutation is logged.
"""

from __future__ import annotations

import logging

from agentmem.store.errors import InvalidProjectIDError, InvalidTaskIDError, StoreError
from agentmem.store.filesystem import FileSystemStore
from agentmem.store.ids import is_valid, normalize
from agentmem.store.models import (
    Artifact,
    ArtifactType,
    ListOptions,
    ListResult,
    Project,
    Task,
    TaskStatus,
    new_artifact,
    new_project,
    new_task,
)

logger = logging.getLogger(__name__)


def parse_status(value: str | None) -> TaskStatus | None:
    """Map a user-supplied status string to ``TaskStatus``; empty means no status."""
    if not value:
        return None
    try:
        return TaskStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in TaskStatus)
        raise ValueError(f"invalid status {value!r} (expected one of: {allowed})") from None


class TaskService:
    """Project, task and artifact management."""

    def __init__(self, store: FileSystemStore) -> None:
        self.store = store

    # ── Projects ─────────────────────────────────────────────

    def create_project(
        self,
        project_id: str,
        name: str = "",
        description: str = "",
        workspace_path: str = "",
        metadata: dict[str, str] | None = None,
    ) -> Project:
        pid = normalize(project_id)
        if not is_valid(pid):
            raise InvalidProjectIDError(project_id)

        project = new_project(pid, name or project_id, now=self.store.now())
        project.description = description
        project.workspace_path = workspace_path
        if metadata is not None:
            project.metadata = dict(metadata)

        try:
            self.store.create_project(project)
        except StoreError as e:
            logger.error("Failed to create project %s: %s", pid, e)
            raise
        logger.info("Created project %s (%s)", pid, project.name)
        return project

    def get_project(self, project_id: str) -> Project:
        return self.store.get_project(normalize(project_id))

    def list_projects(self, limit: int = 0, offset: int = 0) -> ListResult[Project]:
        return self.store.list_projects(ListOptions(limit=limit, offset=offset))

    def update_project(
        self,
        project_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
        workspace_path: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> Project:
        """Change only the fields that are given."""
        pid = normalize(project_id)
        project = self.store.get_project(pid)

        if name is not None:
            project.name = name
        if description is not None:
            project.description = description
        if workspace_path is not None:
            project.workspace_path = workspace_path
        if metadata is not None:
            project.metadata = dict(metadata)

        try:
            self.store.update_project(project)
        except StoreError as e:
            logger.error("Failed to update project %s: %s", pid, e)
            raise
        logger.info("Updated project %s", pid)
        return project

    def delete_project(self, project_id: str) -> None:
        pid = normalize(project_id)
        try:
            self.store.delete_project(pid)
        except StoreError as e:
            logger.error("Failed to delete project %s: %s", pid, e)
            raise
        logger.info("Deleted project %s", pid)

    # ── Tasks ────────────────────────────────────────────────

    def create_task(
        self,
        project_id: str,
        task_id: str,
        name: str = "",
        description: str = "",
        workspace_path: str = "",
        metadata: dict[str, str] | None = None,
    ) -> Task:
        pid = normalize(project_id)
        tid = normalize(task_id)
        if not is_valid(tid):
            raise InvalidTaskIDError(task_id)

        task = new_task(pid, tid, name or task_id, now=self.store.now())
        task.description = description
        task.workspace_path = workspace_path
        if metadata is not None:
            task.metadata = dict(metadata)

        try:
            self.store.create_task(task)
        except StoreError as e:
            logger.error("Failed to create task %s/%s: %s", pid, tid, e)
            raise
        logger.info("Created task %s/%s (%s)", pid, tid, task.name)
        return task

    def get_task(self, project_id: str, task_id: str) -> Task:
        return self.store.get_task(normalize(project_id), normalize(task_id))

    def list_tasks(
        self,
        project_id: str,
        limit: int = 0,
        offset: int = 0,
        status: str | None = None,
    ) -> ListResult[Task]:
        opts = ListOptions(limit=limit, offset=offset, status=parse_status(status))
        return self.store.list_tasks(normalize(project_id), opts)

    def list_all_tasks(self, limit: int = 0, offset: int = 0, status: str | None = None) -> ListResult[Task]:
        opts = ListOptions(limit=limit, offset=offset, status=parse_status(status))
        return self.store.list_all_tasks(opts)

    def update_task(
        self,
        project_id: str,
        task_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
        workspace_path: str | None = None,
        status: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> Task:
        """Change only the fields that are given; a new status moves the task directory."""
        pid = normalize(project_id)
        tid = normalize(task_id)
        new_status = parse_status(status)
        task = self.store.get_task(pid, tid)

        if name is not None:
            task.name = name
        if description is not None:
            task.description = description
        if workspace_path is not None:
            task.workspace_path = workspace_path
        if new_status is not None:
            task.status = new_status
        if metadata is not None:
            task.metadata = dict(metadata)

        try:
            self.store.update_task(task)
        except StoreError as e:
            logger.error("Failed to update task %s/%s: %s", pid, tid, e)
            raise
        logger.info("Updated task %s/%s (status=%s)", pid, tid, task.status)
        return task

    def delete_task(self, project_id: str, task_id: str) -> None:
        pid = normalize(project_id)
        tid = normalize(task_id)
        try:
            self.store.delete_task(pid, tid)
        except StoreError as e:
            logger.error("Failed to delete task %s/%s: %s", pid, tid, e)
            raise
        logger.info("Deleted task %s/%s", pid, tid)

    # ── Artifacts ────────────────────────────────────────────

    def save_artifact(
        self,
        project_id: str,
        task_id: str,
        content: str,
        artifact_type: str = "",
        metadata: dict[str, str] | None = None,
    ) -> Artifact:
        pid = normalize(project_id)
        tid = normalize(task_id)
        self.store.get_task(pid, tid)

        artifact = new_artifact(
            pid,
            tid,
            artifact_type or ArtifactType.GENERIC.value,
            content,
            now=self.store.now(),
        )
        if metadata is not None:
            artifact.metadata = dict(metadata)

        try:
            self.store.save_artifact(artifact)
        except StoreError as e:
            logger.error("Failed to save artifact for %s/%s: %s", pid, tid, e)
            raise
        logger.info("Saved %s artifact %s for %s/%s", artifact.type, artifact.id, pid, tid)
        return artifact

    def get_artifact(self, project_id: str, task_id: str, artifact_id: str) -> Artifact:
        return self.store.get_artifact(normalize(project_id), normalize(task_id), artifact_id)

    def list_artifacts(
        self, project_id: str, task_id: str, limit: int = 0, offset: int = 0
    ) -> ListResult[Artifact]:
        opts = ListOptions(limit=limit, offset=offset)
        return self.store.list_artifacts(normalize(project_id), normalize(task_id), opts)

    def search_artifacts(
        self,
        query: str,
        project_id: str = "",
        task_id: str = "",
        limit: int = 0,
        offset: int = 0,
    ) -> ListResult[Artifact]:
        """Empty ``project_id`` / ``task_id`` widen the search to everything."""
        return self.store.search_artifacts(
            query,
            normalize(project_id) if project_id else None,
            normalize(task_id) if task_id else None,
            ListOptions(limit=limit, offset=offset),
        )

    def delete_artifact(self, project_id: str, task_id: str, artifact_id: str) -> None:
        pid = normalize(project_id)
        tid = normalize(task_id)
        try:
            self.store.delete_artifact(pid, tid, artifact_id)
        except StoreError as e:
            logger.error("Failed to delete artifact %s of %s/%s: %s", artifact_id, pid, tid, e)
            raise
        logger.info("Deleted artifact %s of %s/%s", artifact_id, pid, tid)

    def effective_workspace_path(self, project_id: str, task_id: str) -> str:
        """The task's workspace, falling back to its project's."""
        task = self.get_task(project_id, task_id)
        if task.workspace_path:
            return task.workspace_path
        return self.get_project(project_id).workspace_path
